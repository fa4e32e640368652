#!/usr/bin/env python3
'''
Created on Oct 18, 2026

@author:


sudo apt install ffmpeg

Builds, for every directory below a root that holds media:
    .<dirname>_pgrid.json   metadata cache            (in the parent)
    <dirname>_pgrid.jpg     2x2 preview grid + cache  (in the parent)
    .pgrid_index.json       freshness index           (in the directory)

'''

import os
import sys
import time
import random
import argparse

from PIL import Image

import utils_media
import utils_picture
import utils_video
import s_pgrid_db
from s_pgrid_scan import scan_tree
from m_helper import AttribObject, MissingDependency
from utils_file import grid_path_for, viewer_path_for, write_bytes_file, copy_file
from utils_system import check_dependencies, start_timer, print_timer, INSTALL_HINT

#========================================
import logging
logger = logging.getLogger(__name__)
#^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^


VIEWER_SOURCE = os.path.join(os.path.dirname(os.path.abspath(__file__)), "grid-viewer.html")

#======================================================================
#
grid_defaults = {

    "fqdn": (None, str),

    "cell_size": (utils_picture.CELL_SIZE, int),
    "grid_cells": (utils_picture.GRID_CELLS, int),
    "jpeg_quality": (utils_picture.JPEG_QUALITY, int),
    "max_workers": (s_pgrid_db.MAX_WORKERS, int),
    "video_seek_cap": (utils_video.MAX_CAPTURE_SECONDS, float),

    "copy_viewer": (True, bool),
    "viewer_source": (VIEWER_SOURCE, str),

    # results
    "scan": (None, None),
    "index": (None, None),
    "dir_stats": ({}, dict),
    "processed_order": ([], list),
    "viewer_dirs": (set(), None),

    "grids_generated": (0, int),
    "grids_skipped": (0, int),
    "dirs_failed": (0, int),
}

class GridRun(AttribObject):

    attrib_defaults = grid_defaults

    def __init__(self, config=None) :

        super().__init__(config)

        if self.fqdn is None :
            raise ValueError("a root directory is required")
        if self.cell_size <= 0 or self.grid_cells <= 0 :
            raise ValueError("cell size and grid cells must be positive")
        if not 1 <= self.jpeg_quality <= 100 :
            raise ValueError("jpeg quality must be between 1 and 100")
        if self.max_workers < 1 :
            raise ValueError("workers must be at least 1")

        self.fqdn = os.path.abspath(self.fqdn)
        self.index = s_pgrid_db.IndexAggregator()

#......................................................................
#
    def run(self):
        """
        Scans once, then processes every directory deepest-first.
        Returns the summary dict.
        """
        logger.info(f"Scanning {self.fqdn}")
        self.scan = scan_tree(self.fqdn)

        start_timer(f"Processing {len(self.scan.directories)} directories")
        for directory in self.scan.deepest_first():
            dir_start = time.perf_counter()
            try:
                self.process_directory(directory)
            except Exception:
                # one directory must never abort its siblings
                self.dirs_failed += 1
                logger.exception(f"Processing failed - {directory}")
            self.processed_order.append(directory)
            logger.info(f"Directory {directory} processing took {(time.perf_counter() - dir_start) * 1000:.2f}ms")
        print_timer("directories")

        summary = self.summary()
        self.print_stats(summary)
        return summary

#......................................................................
#
    def process_directory(self, directory):
        """
        reconcile cache -> aggregate index -> compose grid
        """
        files = self.scan.descendant_files(directory)
        subdirs = self.scan.subdirs.get(directory, [])

        cache, new_count = s_pgrid_db.reconcile_cache(directory, files, subdirs,
                                                      max_workers=self.max_workers)
        self.dir_stats[directory] = {"processed": len(files), "new": new_count, "grid": False}

        self.index.aggregate(directory, subdirs, cache)

        if not files:
            return

        if self.compose_directory_grid(directory, files, cache):
            self.grids_generated += 1
            self.dir_stats[directory]["grid"] = True
        else:
            self.grids_skipped += 1

#......................................................................
#
    def render_cell(self, fqfn):
        """ cell sized image for one file, or None """
        size = self.cell_size
        if utils_media.is_video_file(fqfn):
            img = utils_video.extract_frame(fqfn, size, size, cap=self.video_seek_cap)
            if img is None:
                return None
            if img.size != (size, size):
                img = utils_picture.fit_cell(img, size, size)
            return img

        return utils_picture.open_cell(fqfn, size, size)

#......................................................................
#
    def compose_directory_grid(self, directory, files, cache):
        """
        Samples up to grid_cells**2 files from the whole subtree, renders
        them into their slots and writes the grid with its metadata trailer.

        Returns True when a grid file was written.
        """
        start = time.perf_counter()

        selected = list(files)
        random.shuffle(selected)
        selected = selected[:self.grid_cells * self.grid_cells]

        cells = []
        for idx, fqfn in enumerate(selected):
            file_start = time.perf_counter()
            try:
                img = self.render_cell(fqfn)
            except (OSError, ValueError, Image.DecompressionBombError) as e:
                logger.warning(f"Error processing {fqfn}: {e.__class__.__name__}: {e}")
                continue
            if img is None:
                continue
            cells.append((idx, img))
            logger.debug(f"Processed {os.path.basename(fqfn)} in {(time.perf_counter() - file_start) * 1000:.2f}ms")

        logger.info(f"Thumbnail generation took {(time.perf_counter() - start) * 1000:.2f}ms"
                    f" (processed {len(cells)} files) - {directory}")

        if not cells:
            logger.info(f"No usable files, grid skipped - {directory}")
            return False

        canvas = utils_picture.compose_grid(cells, self.cell_size, self.grid_cells)
        jpeg_bytes = utils_picture.encode_jpeg(canvas, self.jpeg_quality)

        metadata = {
            "version": s_pgrid_db.GRID_METADATA_VERSION,
            "files": cache,
            "directories": self.index.descendant_birthtimes(directory),
        }
        data = utils_picture.append_metadata(jpeg_bytes, metadata)

        grid_fqfn = grid_path_for(directory)
        try:
            write_bytes_file(grid_fqfn, data)
        except OSError as e:
            logger.error(f"Could not write grid {grid_fqfn}: {e}")
            return False

        logger.info(f"Grid written ({len(data) - len(jpeg_bytes)} bytes metadata)"
                    f" in {(time.perf_counter() - start) * 1000:.2f}ms - {grid_fqfn}")

        if self.copy_viewer:
            self.install_viewer(directory)

        return True

#......................................................................
#
    def install_viewer(self, directory):
        target = viewer_path_for(directory)
        parent = os.path.dirname(target)
        if parent in self.viewer_dirs:
            return
        try:
            copy_file(self.viewer_source, target)
            self.viewer_dirs.add(parent)
            logger.debug(f"Copied grid viewer to {target}")
        except OSError as e:
            logger.error(f"Error copying grid viewer to {target}: {e}")

#......................................................................
#
    def summary(self):
        root_entries = self.index.entries.get(self.fqdn, [])
        return {
            "directories": len(self.scan.directories),
            "files": self.scan.file_count(),
            "new_files": sum(s["new"] for s in self.dir_stats.values()),
            "grids_generated": self.grids_generated,
            "grids_skipped": self.grids_skipped,
            "dirs_failed": self.dirs_failed,
            "loops_skipped": len(self.scan.loops),
            "index_size": len(root_entries),
        }

#......................................................................
#
    def print_stats(self, summary) :

        logger.info("----------")
        logger.info("Directories scanned: {}".format(summary["directories"]))
        logger.info("Media files: {}".format(summary["files"]))
        logger.info("Probed (new or changed): {}".format(summary["new_files"]))
        logger.info("Grids generated: {}".format(summary["grids_generated"]))
        logger.info("Grids skipped: {}".format(summary["grids_skipped"]))
        logger.info("Directories failed: {}".format(summary["dirs_failed"]))
        logger.info("Index entries: {}".format(summary["index_size"]))
        logger.info("----------")


#======================================================================
#
def build_parser():
    parser = argparse.ArgumentParser(
        prog="pgrid",
        description="Build preview grids, metadata caches and freshness indexes for a media tree.")

    parser.add_argument("directory", nargs="?", help="Root of the media tree.")

    parser.add_argument("--cell-size", help="Cell edge in pixels.", default=None)
    parser.add_argument("--grid-cells", help="Cells per row and per column.", default=None)
    parser.add_argument("--quality", help="JPEG quality.", default=None)
    parser.add_argument("--workers", help="Concurrent probes per directory.", default=None)
    parser.add_argument("--no-viewer", help="Do not copy the grid viewer next to grids.", action="store_true")

    parser.add_argument("--debug", help="Prints lots of debug.", action="store_true")
    parser.add_argument("--quiet", help="Only prints warnings and errors.", action="store_true")
    return parser

#======================================================================
#
def main(argv=None):

    parser = build_parser()
    args = parser.parse_args(argv)

    # configure logging
    level = logging.INFO
    if args.quiet :
        level = logging.WARNING
    if args.debug :
        level = logging.DEBUG
    logging.basicConfig(stream=sys.stdout, level=level)
    logging.getLogger().setLevel(level)

    if not args.directory :
        parser.print_usage(sys.stderr)
        print("Error: a root directory is required", file=sys.stderr)
        return 1

    script_start = time.perf_counter()

    try:
        check_dependencies()
    except MissingDependency as e:
        print(f"Error: {e}", file=sys.stderr)
        print(INSTALL_HINT, file=sys.stderr)
        return 1

    if not os.path.isdir(args.directory) :
        print(f"Error: {args.directory} is not a directory", file=sys.stderr)
        return 1

    try:
        run = GridRun({
            "fqdn": args.directory,
            "cell_size": args.cell_size,
            "grid_cells": args.grid_cells,
            "jpeg_quality": args.quality,
            "max_workers": args.workers,
            "copy_viewer": not args.no_viewer,
        })
    except ValueError as e:
        parser.print_usage(sys.stderr)
        print(f"Error: {e}", file=sys.stderr)
        return 1

    try:
        run.run()
    except Exception as e:
        logger.exception(f"Error processing directory: {e}")
        logger.error(f"Script failed after {(time.perf_counter() - script_start) * 1000:.2f}ms")
        return 1

    logger.info(f"=== Script completed in {(time.perf_counter() - script_start) * 1000:.2f}ms ===")
    return 0


if __name__ == "__main__":
    sys.exit(main())
