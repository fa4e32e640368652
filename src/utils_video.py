#!/usr/bin/env python3
'''
Created on Oct 18, 2026

@author:


sudo apt install ffmpeg



'''

import os
import json
import subprocess
import tempfile

from PIL import Image, UnidentifiedImageError

from utils_system import run_command

import logging
logger = logging.getLogger(__name__)


# never seek further than this into a video for its thumbnail
MAX_CAPTURE_SECONDS = 5.0

#======================================================================
#
def probe_duration(fqfn):
    """
    Returns the container duration in seconds via ffprobe.
    Raises on process failure or unparsable output.
    """
    cmd = [
        "ffprobe", "-v", "error",
        "-show_entries", "format=duration",
        "-of", "default=noprint_wrappers=1:nokey=1",
        fqfn,
    ]
    output = run_command(cmd).stdout
    return float(output.strip())

#======================================================================
#
def probe_dimensions(fqfn):
    """
    Returns (width, height) of the first video stream via ffprobe.
    Returns (0, 0) when the probe fails or the stream reports no size.
    """
    cmd = [
        "ffprobe", "-v", "error",
        "-select_streams", "v:0",
        "-show_entries", "stream=width,height",
        "-of", "json",
        fqfn,
    ]
    try:
        probe = json.loads(run_command(cmd).stdout)
    except (OSError, subprocess.SubprocessError, json.JSONDecodeError) as e:
        logger.warning(f"ffprobe failed for {fqfn}: {e.__class__.__name__}: {e}")
        return 0, 0

    streams = probe.get("streams") or []
    if not streams:
        return 0, 0

    width = streams[0].get("width") or 0
    height = streams[0].get("height") or 0
    if not width or not height:
        return 0, 0
    return int(width), int(height)

#======================================================================
#
def capture_timestamp(duration, cap=MAX_CAPTURE_SECONDS):
    """ midpoint of the video, capped """
    if duration is None or duration != duration or duration <= 0:
        return 0.0
    return min(duration / 2, cap)

#======================================================================
#
def extract_frame(fqfn, width, height, cap=MAX_CAPTURE_SECONDS):
    """
    Grabs one frame near the start of the video, scaled to cover and center
    cropped to width x height.

    Returns a loaded PIL Image, or None on any failure.  The temporary
    directory holding the grabbed frame is removed on every exit path.
    """
    try:
        timestamp = capture_timestamp(probe_duration(fqfn), cap)
    except (OSError, subprocess.SubprocessError, ValueError) as e:
        logger.warning(f"Duration probe failed for {fqfn}: {e.__class__.__name__}: {e}")
        return None

    vf = f"scale={width}:{height}:force_original_aspect_ratio=increase,crop={width}:{height}"

    try:
        with tempfile.TemporaryDirectory(prefix="pgrid-") as tmp_dir:
            tmp_fqfn = os.path.join(tmp_dir, "frame.jpg")
            cmd = [
                "ffmpeg", "-v", "error",
                "-ss", f"{timestamp:.3f}",
                "-i", fqfn,
                "-vframes", "1",
                "-vf", vf,
                "-y",
                tmp_fqfn,
            ]
            run_command(cmd)

            with Image.open(tmp_fqfn) as img:
                img.load()
                return img.convert("RGB")

    except (OSError, subprocess.SubprocessError, UnidentifiedImageError, ValueError) as e:
        logger.warning(f"Error creating thumbnail for {fqfn}: {e.__class__.__name__}: {e}")
        return None
