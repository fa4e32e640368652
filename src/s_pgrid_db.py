#!/usr/bin/env python3
'''
Created on Oct 18, 2026

@author:

Per directory metadata caches and the freshness index.

Cache sidecar (.<dirname>_pgrid.json, in the parent directory):

    { "<relpath>": {"fileSize": int, "mtime": int ms, "size": {"width": int, "height": int}} }

Index (.pgrid_index.json, inside the directory):

    {"version": 1, "directories": [{"path", "latestMtime", "fileCount", "birthtime"}], "generatedAt": iso}

'''

import time
import concurrent.futures
from datetime import datetime, timezone

import utils_media
import utils_picture
import utils_video
from utils_file import (cache_path_for, grid_path_for, index_path_for, rel_key,
                        stat_size_mtime, birthtime_ms, read_json_file, write_json_file)

import logging
logger = logging.getLogger(__name__)


GRID_METADATA_VERSION = 2
INDEX_VERSION = 1

MAX_WORKERS = 10


####################################################################################
####################################################################################
##########                                                                ##########
##########   cache entries                                                ##########
##########                                                                ##########
####################################################################################
####################################################################################


#======================================================================
#
def make_entry(file_size=0, mtime=0, width=0, height=0):
    return {
        "fileSize": int(file_size),
        "mtime": int(mtime),
        "size": {"width": int(width), "height": int(height)},
    }

#======================================================================
#
def entry_is_fresh(entry, file_size, mtime):
    """ reusable without probing iff size and mtime match exactly """
    if not entry:
        return False
    return entry.get("fileSize") == file_size and entry.get("mtime") == mtime

#======================================================================
#
def normalize_entry(raw):
    """
    Returns a well formed cache entry, or None when raw cannot be one.
    Missing size information defaults to 0 x 0.
    """
    if not isinstance(raw, dict):
        return None
    try:
        size = raw.get("size") or {}
        if not isinstance(size, dict):
            size = {}
        return make_entry(raw.get("fileSize", 0) or 0,
                          raw.get("mtime", 0) or 0,
                          size.get("width", 0) or 0,
                          size.get("height", 0) or 0)
    except (TypeError, ValueError):
        return None

#======================================================================
#
def normalize_cache(raw):
    """ keeps only keys whose value is a valid entry """
    if not isinstance(raw, dict):
        return {}
    cache = {}
    for key, value in raw.items():
        entry = normalize_entry(value)
        if entry is not None:
            cache[str(key)] = entry
    return cache

#======================================================================
#
def migrate_grid_metadata(raw):
    """
    Brings a mosaic trailer to the current layout.

        v1 : the bare cache object
        v2 : {"version": 2, "files": <cache>, "directories": {relpath: birthtime}}

    Returns None when raw is not a trailer of a known version.
    """
    if not isinstance(raw, dict):
        return None

    version = raw.get("version")
    if version is None:
        return {"version": GRID_METADATA_VERSION, "files": normalize_cache(raw), "directories": {}}

    if version == 2:
        directories = raw.get("directories")
        if not isinstance(directories, dict):
            directories = {}
        return {
            "version": GRID_METADATA_VERSION,
            "files": normalize_cache(raw.get("files")),
            "directories": {str(k): int(v) for k, v in directories.items() if isinstance(v, (int, float))},
        }

    logger.warning(f"Unknown grid metadata version {version!r}")
    return None

#======================================================================
#
def read_grid_metadata(fqfn):
    """ trailer of a mosaic file, migrated to the current version, or None """
    return migrate_grid_metadata(utils_picture.read_metadata_file(fqfn))


####################################################################################
####################################################################################
##########                                                                ##########
##########   cache load / save                                            ##########
##########                                                                ##########
####################################################################################
####################################################################################


#======================================================================
#
def read_cache_file(fqfn):
    """ parsed sidecar, or None when missing or unparsable """
    raw = read_json_file(fqfn)
    if not isinstance(raw, dict):
        return None
    return normalize_cache(raw)

#======================================================================
#
def load_cache(directory):
    """
    The directory's persisted cache.  Falls back to the files block of the
    directory's mosaic trailer, then to an empty cache.  Never raises.
    """
    cache = read_cache_file(cache_path_for(directory))
    if cache is not None:
        return cache

    metadata = read_grid_metadata(grid_path_for(directory))
    if metadata is not None:
        logger.info(f"Cache restored from grid metadata ({len(metadata['files'])} entries) - {directory}")
        return metadata["files"]

    return {}

#======================================================================
#
def save_cache(directory, cache):
    """ full overwrite, keys sorted so unchanged trees rewrite identical bytes """
    write_json_file(cache_path_for(directory), cache, sort_keys=True)

#======================================================================
#
def recover_child_caches(cache, directory, subdirs):
    """
    Merges every entry of each immediate child's cache into cache under
    '<childname>/<key>'.  Keys already present win.  Deeper descendants are
    not consulted.

    Returns the number of recovered entries.
    """
    recovered = 0
    for child in subdirs:
        child_cache = read_cache_file(cache_path_for(child))
        if not child_cache:
            continue
        prefix = rel_key(child, directory)
        for key, entry in child_cache.items():
            merged_key = f"{prefix}/{key}"
            if merged_key not in cache:
                cache[merged_key] = entry
                recovered += 1

    if recovered:
        logger.debug(f"Recovered {recovered} cache entries from subdirectories - {directory}")
    return recovered


####################################################################################
####################################################################################
##########                                                                ##########
##########   reconcile                                                    ##########
##########                                                                ##########
####################################################################################
####################################################################################


#======================================================================
#
def probe_file(fqfn):
    """
    Pixel dimensions of an image (header decode) or video (first stream).
    (0, 0) on any failure.
    """
    kind = utils_media.classify(fqfn)
    if kind == utils_media.IMAGE:
        return utils_picture.image_dimensions(fqfn)
    if kind == utils_media.VIDEO:
        return utils_video.probe_dimensions(fqfn)
    return 0, 0

#======================================================================
#
def reconcile_file(fqfn, key, old_entry, probe):
    """
    Returns (key, entry, is_new).  A stat failure leaves size/mtime at zero
    and counts as a miss.
    """
    try:
        file_size, mtime = stat_size_mtime(fqfn)
        stat_ok = True
    except OSError as e:
        logger.warning(f"Could not stat {fqfn}: {e}")
        file_size, mtime = 0, 0
        stat_ok = False

    if stat_ok and entry_is_fresh(old_entry, file_size, mtime):
        return key, old_entry, False

    try:
        width, height = probe(fqfn)
    except Exception as e:
        # any probe failure leaves the entry at 0 x 0
        logger.warning(f"Probe failed for {fqfn}: {e.__class__.__name__}: {e}")
        width, height = 0, 0

    return key, make_entry(file_size, mtime, width, height), True

#======================================================================
#
def reconcile_cache(directory, live_files, subdirs, max_workers=MAX_WORKERS, probe=None):
    """
    Brings the directory's cache in line with live_files.

    Parameters:
        directory   : directory owning the cache
        live_files  : absolute paths of every media file at or below directory
        subdirs     : immediate child directories (for cache recovery)
        max_workers : probes in flight at once
        probe       : callable(path) -> (width, height), defaults to probe_file

    Steps:
        1. load the persisted cache (empty on any failure)
        2. recover entries from the immediate children's caches
        3. drop keys not in live_files
        4. reuse fresh entries, probe the rest in a bounded pool
        5. write the sidecar

    Returns:
        (cache, new_count)
    """
    probe = probe or probe_file
    start = time.perf_counter()

    cache = load_cache(directory)
    recover_child_caches(cache, directory, subdirs)

    live = {rel_key(f, directory): f for f in live_files}
    cache = {k: v for k, v in cache.items() if k in live}

    results = []
    if live:
        workers = max(1, min(max_workers, len(live)))
        with concurrent.futures.ThreadPoolExecutor(max_workers=workers) as executor:
            futures = [executor.submit(reconcile_file, fqfn, key, cache.get(key), probe)
                       for key, fqfn in live.items()]
            for future in concurrent.futures.as_completed(futures):
                results.append(future.result())

    new_count = 0
    reconciled = {}
    for key, entry, is_new in sorted(results, key=lambda r: r[0]):
        reconciled[key] = entry
        if is_new:
            new_count += 1

    try:
        save_cache(directory, reconciled)
    except (OSError, ValueError) as e:
        logger.error(f"Could not write cache {cache_path_for(directory)}: {e}")

    duration = (time.perf_counter() - start) * 1000
    logger.info(f"Cache update took {duration:.2f}ms (processed {len(live)} files, {new_count} new) - {directory}")

    return reconciled, new_count


####################################################################################
####################################################################################
##########                                                                ##########
##########   freshness index                                              ##########
##########                                                                ##########
####################################################################################
####################################################################################


#======================================================================
#
def make_index_entry(directory, cache, path="."):
    """
    Index entry for a directory from its fresh cache, or None when the
    cache is empty.
    """
    if not cache:
        return None
    return {
        "path": path,
        "latestMtime": max(entry["mtime"] for entry in cache.values()),
        "fileCount": len(cache),
        "birthtime": birthtime_ms(directory),
    }

#======================================================================
#
def prefix_entries(entries, prefix):
    """ re-roots entries that are relative to a child onto its parent """
    rebased = []
    for entry in entries:
        path = prefix if entry["path"] == "." else f"{prefix}/{entry['path']}"
        rebased.append(dict(entry, path=path))
    return rebased

#======================================================================
#
def read_index(directory):
    """ entries of the directory's index file, or None when unreadable """
    raw = read_json_file(index_path_for(directory))
    if not isinstance(raw, dict) or not isinstance(raw.get("directories"), list):
        return None
    return raw["directories"]

#======================================================================
#
def write_index(directory, entries):
    data = {
        "version": INDEX_VERSION,
        "directories": entries,
        "generatedAt": datetime.now(timezone.utc).isoformat(timespec="seconds"),
    }
    write_json_file(index_path_for(directory), data)

#======================================================================
#
class IndexAggregator():
    """
    Collects index entries bottom-up.  Directories must be added deepest
    first so each child's entries are already in memory when its parent is
    aggregated.
    """

    def __init__(self) :
        self.entries = {}

    def aggregate(self, directory, subdirs, cache):
        """
        Own entry (if any) plus every immediate child's entries re-rooted
        on directory.  Writes the index file when the list is non-empty.

        Returns the combined list.
        """
        combined = []
        own = make_index_entry(directory, cache)
        if own is not None:
            combined.append(own)

        for child in subdirs:
            child_entries = self.entries.get(child)
            if child_entries is None:
                logger.debug(f"No index entries for {child}")
                continue
            combined.extend(prefix_entries(child_entries, rel_key(child, directory)))

        combined.sort(key=lambda e: e["path"])
        self.entries[directory] = combined

        if combined:
            try:
                write_index(directory, combined)
            except (OSError, ValueError) as e:
                logger.error(f"Could not write index {index_path_for(directory)}: {e}")

        return combined

    def descendant_birthtimes(self, directory):
        """ {relpath: birthtime} of every descendant with an index entry """
        return {e["path"]: e["birthtime"] for e in self.entries.get(directory, []) if e["path"] != "."}
