#!/usr/bin/env python3
'''
Created on Oct 18, 2026

@author:

Media classification by extension / MIME type.

'''

import os
import mimetypes

from utils_file import GRID_SUFFIX

import logging
logger = logging.getLogger(__name__)


#======================================================================
# classification results
IMAGE = "image"
VIDEO = "video"
SKIP = "skip"
OTHER = "other"

#======================================================================
# Global sets of known image and video file extensions (lowercase, no dot)
IMAGE_EXTENSIONS = {
    "jpg", "jpeg", "jpe", "jfif", "png", "gif", "webp", "bmp", "tif", "tiff",
    "avif", "heic", "heif",
}

VIDEO_EXTENSIONS = {
    "mp4", "m4v", "mov", "avi", "mkv", "wmv", "flv", "webm", "mpg", "mpeg",
    "3gp", "ogv",
}

# known-problematic formats that report an image/video MIME but cannot be
# rendered into a grid cell, plus archives and partial downloads
SKIP_EXTENSIONS = {
    "psd", "psb", "xcf", "kra", "ora",
    "zip", "rar", "7z", "tar", "gz", "bz2", "xz",
    "part", "crdownload", "ytdl", "tmp", "download",
}

# AppleDouble resource forks
SKIP_PREFIXES = ("._",)

#======================================================================
#
def get_ext(path):
    return os.path.splitext(path)[1].lstrip(".").lower()

#======================================================================
#
def classify(path):
    """
    Returns IMAGE, VIDEO, SKIP or OTHER for a file name or path.

    The deny list wins over the allow list.  A MIME type of image/* or
    video/* counts as media even when the extension is not in the tables.
    Never raises.
    """
    name = os.path.basename(path)
    ext = get_ext(name)

    if ext in SKIP_EXTENSIONS or name.startswith(SKIP_PREFIXES):
        return SKIP

    if ext in IMAGE_EXTENSIONS:
        return IMAGE
    if ext in VIDEO_EXTENSIONS:
        return VIDEO

    mime, _ = mimetypes.guess_type(name, strict=False)
    mime = (mime or "").lower()
    if mime.startswith("image/"):
        return IMAGE
    if mime.startswith("video/"):
        return VIDEO

    return OTHER

def is_media_file(path):
    return classify(path) in (IMAGE, VIDEO)

def is_video_file(path):
    return classify(path) == VIDEO

def is_grid_artifact(path):
    return os.path.basename(path).endswith(GRID_SUFFIX)
