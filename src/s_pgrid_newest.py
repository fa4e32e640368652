#!/usr/bin/env python3
'''
Created on Oct 18, 2026

@author:

Reads .pgrid_index.json from a base path and prints the indexed directories
sorted by their newest file, oldest first so the newest end up at the bottom.

'''

import os
import sys
import argparse
from datetime import datetime

from s_pgrid_db import read_index
from utils_file import index_path_for

import logging
logger = logging.getLogger(__name__)


#======================================================================
#
def load_entries(base_path):
    entries = read_index(base_path)
    if entries is None:
        raise FileNotFoundError(f"Failed to read index file at {index_path_for(base_path)}. "
                                "Make sure you've run pgrid first.")
    return entries

#======================================================================
#
def format_newest(entries):
    """ aligned 'Path  Latest Modified' table, oldest first """
    rows = []
    for entry in sorted(entries, key=lambda e: e.get("latestMtime", 0)):
        date = datetime.fromtimestamp(entry.get("latestMtime", 0) / 1000)
        rows.append((str(entry.get("path", "")), date.strftime("%Y-%m-%d %H:%M:%S")))

    width = max([len(p) for p, _ in rows] + [len("Path")])

    lines = [f"{'Path'.ljust(width)}  {'Latest Modified'.ljust(20)}",
             f"{'-' * width}  {'-' * 20}"]
    for path, date in rows:
        lines.append(f"{path.ljust(width)}  {date.ljust(20)}")
    return lines

#======================================================================
#
def main(argv=None):

    parser = argparse.ArgumentParser(
        prog="pgrid-newest",
        description="Prints directories from .pgrid_index.json sorted by newest modified file.")
    parser.add_argument("base_path", nargs="?", help="Directory holding .pgrid_index.json.")
    args = parser.parse_args(argv)

    logging.basicConfig(stream=sys.stderr, level=logging.WARNING)

    if not args.base_path:
        parser.print_usage(sys.stderr)
        return 1

    if not os.path.isdir(args.base_path):
        print(f"Error: {args.base_path} is not a directory", file=sys.stderr)
        return 1

    try:
        entries = load_entries(os.path.abspath(args.base_path))
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    for line in format_newest(entries):
        print(line)
    return 0


if __name__ == "__main__":
    sys.exit(main())
