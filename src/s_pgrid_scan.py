#!/usr/bin/env python3
'''
Created on Oct 18, 2026

@author:

Single pass breadth-first scan of a media tree.  The result is a read-only
snapshot that every later stage uses instead of walking the filesystem again.

'''

import os
from collections import deque, namedtuple

import utils_media
from utils_file import is_hidden, path_depth
from utils_system import print_runtime

import logging
logger = logging.getLogger(__name__)


# full_path is the identity, rel_path is relative to the containing directory
FileRef = namedtuple("FileRef", ["full_path", "rel_path"])

#======================================================================
#
class ScanResult():
    """
    Tree snapshot keyed by directory path.

        directories : every directory visited, in breadth-first order
        files       : directory -> [FileRef] of its direct media files
        subdirs     : directory -> [path] of its scanned child directories
        loops       : directories skipped because their real path was
                      already visited
    """

    def __init__(self, root) :
        self.root = root
        self.directories = []
        self.files = {}
        self.subdirs = {}
        self.loops = []
        self._descendants = {}

    def __repr__(self) :
        return f"ScanResult: {self.root} ({len(self.directories)} dirs, {self.file_count()} files)"

    def file_count(self):
        return sum(len(v) for v in self.files.values())

    def deepest_first(self):
        """ directories sorted by path segment count, deepest first """
        return sorted(self.directories, key=lambda d: (-path_depth(d), d))

    def descendant_files(self, directory):
        """
        Absolute paths of every media file at or below directory.
        Memoized; children are resolved before parents.
        """
        cached = self._descendants.get(directory)
        if cached is not None:
            return cached

        # iterative post-order
        stack = [(directory, False)]
        while stack:
            d, expanded = stack.pop()
            if d in self._descendants:
                continue
            if not expanded:
                stack.append((d, True))
                for child in self.subdirs.get(d, []):
                    if child not in self._descendants:
                        stack.append((child, False))
                continue

            result = [f.full_path for f in self.files.get(d, [])]
            for child in self.subdirs.get(d, []):
                result.extend(self._descendants[child])
            self._descendants[d] = result

        return self._descendants[directory]

#======================================================================
#
@print_runtime("scan")
def scan_tree(root):
    """
    Breadth-first traversal of root.

    - directories whose real path was already visited are skipped (symlink
      loops) and logged
    - hidden directories are never entered
    - unreadable directories are logged and treated as empty
    - files are kept when they classify as image or video and are not
      mosaics from a previous run
    """
    root = os.path.abspath(root)
    result = ScanResult(root)

    visited = set()
    queue = deque([root])

    while queue:
        directory = queue.popleft()

        real = os.path.realpath(directory)
        if real in visited:
            logger.info(f"Skipping already visited directory (symlink loop?): {directory} -> {real}")
            result.loops.append(directory)
            continue
        visited.add(real)

        result.directories.append(directory)
        files = result.files.setdefault(directory, [])
        subdirs = result.subdirs.setdefault(directory, [])

        try:
            with os.scandir(directory) as it:
                entries = sorted(it, key=lambda e: e.name)
        except OSError as e:
            logger.warning(f"Cannot read directory {directory}: {e.__class__.__name__}: {e}")
            continue

        for entry in entries:
            try:
                if entry.is_dir():
                    if is_hidden(entry.name):
                        continue
                    subdirs.append(entry.path)
                    queue.append(entry.path)
                    continue

                if not entry.is_file():
                    continue
            except OSError as e:
                logger.warning(f"Cannot stat {entry.path}: {e}")
                continue

            if utils_media.is_grid_artifact(entry.name):
                continue
            if utils_media.is_media_file(entry.name):
                files.append(FileRef(entry.path, entry.name))

    # children that were skipped as loops are not part of the tree
    scanned = set(result.directories)
    for directory, subdirs in result.subdirs.items():
        subdirs[:] = [d for d in subdirs if d in scanned]

    logger.info(f"Scan found {len(result.directories)} directories, {result.file_count()} media files"
                f" ({len(result.loops)} skipped as already visited) - {root}")

    return result
