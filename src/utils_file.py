#!/usr/bin/python3
'''
Created on Oct 18, 2026

@author:

Filesystem helpers: stat values in the units stored in the caches, the
naming conventions for the per directory artifacts, and JSON persistence.

'''

import os
import json
import shutil
import contextlib

from m_helper import PathTraversal

import logging
logger = logging.getLogger(__name__)


CACHE_PREFIX = "."
CACHE_SUFFIX = "_pgrid.json"
GRID_SUFFIX = "_pgrid.jpg"
INDEX_FILENAME = ".pgrid_index.json"
VIEWER_FILENAME = "0grid-viewer.html"

HIDDEN_PREFIX = "."


########################################################################
#
# naming conventions
#
def validate_path(directory):
    """
    Normalizes directory and rejects anything that still contains a '..'
    segment.
    """
    normalized = os.path.normpath(directory)
    if ".." in normalized.split(os.sep):
        raise PathTraversal(f"Path traversal detected: {directory}")
    return normalized

def cache_path_for(directory):
    """ .<dirname>_pgrid.json in the parent directory """
    directory = validate_path(directory)
    return os.path.join(os.path.dirname(directory), CACHE_PREFIX + os.path.basename(directory) + CACHE_SUFFIX)

def grid_path_for(directory):
    """ <dirname>_pgrid.jpg in the parent directory """
    directory = validate_path(directory)
    return os.path.join(os.path.dirname(directory), os.path.basename(directory) + GRID_SUFFIX)

def index_path_for(directory):
    return os.path.join(validate_path(directory), INDEX_FILENAME)

def viewer_path_for(directory):
    directory = validate_path(directory)
    return os.path.join(os.path.dirname(directory), VIEWER_FILENAME)

def is_hidden(name):
    return name.startswith(HIDDEN_PREFIX)

def path_depth(path):
    """ number of path segments, used to order directories deepest-first """
    return len([p for p in os.path.normpath(path).split(os.sep) if p])

def rel_key(path, start):
    """ relative path with '/' separators, used as a cache / index key """
    rel = os.path.relpath(path, start)
    if os.sep != "/":
        rel = rel.replace(os.sep, "/")
    return rel


########################################################################
#
# stat helpers
#
def stat_size_mtime(path):
    """
    Returns (size in bytes, mtime in integer milliseconds).
    Raises OSError when the file cannot be stat'ed.
    """
    st = os.stat(path)
    return st.st_size, st.st_mtime_ns // 1_000_000

def birthtime_ms(path):
    """
    Directory / file creation time in integer milliseconds.  Falls back to
    st_ctime where the platform does not report a birth time.  Returns 0
    when stat fails.
    """
    try:
        st = os.stat(path)
    except OSError as e:
        logger.warning(f"Could not stat {path}: {e}")
        return 0

    birth = getattr(st, "st_birthtime", None)
    if birth is None:
        birth = st.st_ctime
    return int(birth * 1000)


########################################################################
#
# JSON persistence
#
def read_json_file(fqfn):
    """
    Returns the parsed JSON document, or None when the file is missing,
    unreadable or not valid JSON.
    """
    try:
        with open(fqfn, "r", encoding="utf-8") as f:
            return json.load(f)
    except FileNotFoundError:
        return None
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.debug(f"Unreadable JSON {fqfn}: {e}")
        return None

def write_json_file(fqfn, data, sort_keys=False):
    """
    Writes data as indented JSON through a temporary file in the same
    directory, then replaces the target.
    """
    tmp_fqfn = fqfn + ".tmp"
    try:
        with open(tmp_fqfn, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, sort_keys=sort_keys)
            f.write("\n")
        os.replace(tmp_fqfn, fqfn)
    finally:
        with contextlib.suppress(FileNotFoundError):
            os.remove(tmp_fqfn)

def write_bytes_file(fqfn, data):
    tmp_fqfn = fqfn + ".tmp"
    try:
        with open(tmp_fqfn, "wb") as f:
            f.write(data)
        os.replace(tmp_fqfn, fqfn)
    finally:
        with contextlib.suppress(FileNotFoundError):
            os.remove(tmp_fqfn)

def copy_file(src, dst):
    shutil.copyfile(src, dst)
