#!/usr/bin/env python3
'''
Created on Oct 18, 2026

@author:

Reads .pgrid_index.json from a base path and prints N random directories
sorted alphabetically.

'''

import os
import sys
import random
import argparse

from s_pgrid_newest import load_entries


#======================================================================
#
def pick_random(entries, n):
    """ n random index paths (all of them if fewer), alphabetical """
    paths = [str(e.get("path", "")) for e in entries]
    selected = random.sample(paths, min(n, len(paths)))
    return sorted(selected)

#======================================================================
#
def main(argv=None):

    parser = argparse.ArgumentParser(
        prog="pgrid-random",
        description="Prints N random directories from .pgrid_index.json sorted alphabetically.")
    parser.add_argument("base_path", nargs="?", help="Directory holding .pgrid_index.json.")
    parser.add_argument("n", nargs="?", help="How many directories to print.")
    args = parser.parse_args(argv)

    if not args.base_path or not args.n:
        parser.print_usage(sys.stderr)
        return 1

    try:
        n = int(args.n)
    except ValueError:
        n = 0
    if n < 1:
        print("Error: n must be a positive integer", file=sys.stderr)
        return 1

    if not os.path.isdir(args.base_path):
        print(f"Error: {args.base_path} is not a directory", file=sys.stderr)
        return 1

    try:
        entries = load_entries(os.path.abspath(args.base_path))
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    for path in pick_random(entries, n):
        print(path)
    return 0


if __name__ == "__main__":
    sys.exit(main())
