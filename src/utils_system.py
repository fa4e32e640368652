#!/usr/bin/env python3
'''
Created on Oct 18, 2026

@author:


sudo apt install ffmpeg



'''

import time
import shutil
import subprocess
from functools import wraps

from m_helper import MissingDependency

import logging
logger = logging.getLogger(__name__)


REQUIRED_COMMANDS = ["ffmpeg", "ffprobe"]

INSTALL_HINT = "Please install them using your system's package manager (e.g. 'sudo apt install ffmpeg')."

#======================================================================
#
def print_runtime(label=None):
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            start = time.perf_counter()
            result = func(*args, **kwargs)
            duration = time.perf_counter() - start
            name = label or func.__name__
            logger.info(f"[{name}] completed in {duration:.3f} seconds")
            return result
        return wrapper
    return decorator


_timer_state = {"last": None}

def start_timer(label):
    """
    Starts or resets the global timer.
    """
    logger.info(f"{label}")

    _timer_state["last"] = time.perf_counter()

def print_timer(label):
    """
    Prints elapsed time since last start or print, and resets the timer.
    Returns the elapsed seconds, or None when the timer was never started.
    """
    now = time.perf_counter()
    last = _timer_state.get("last")
    duration = None
    if last is None:
        logger.info(f"[{label}] timer not started")
    else:
        duration = now - last
        logger.info(f"[{label}] completed in {duration:.3f} seconds")
    _timer_state["last"] = now
    return duration

#======================================================================
#
def check_dependencies(commands=REQUIRED_COMMANDS):
    """
    Verifies every external tool can be started with -version.
    Raises MissingDependency naming all tools that could not.
    """
    missing = []
    for cmd in commands:
        if shutil.which(cmd) is None:
            missing.append(cmd)
            continue
        try:
            subprocess.run([cmd, "-version"], stdout=subprocess.DEVNULL,
                           stderr=subprocess.DEVNULL, check=False)
        except OSError:
            missing.append(cmd)

    if missing:
        raise MissingDependency(missing)

#======================================================================
#
def run_command(cmd, text=True):
    """
    Runs cmd to completion with both pipes drained concurrently.  Text
    output is decoded as UTF-8 with undecodable bytes replaced.
    Returns the CompletedProcess; a non-zero exit raises CalledProcessError.
    """
    logger.debug(f"run: {' '.join(cmd)}")
    if text:
        return subprocess.run(cmd, capture_output=True, text=True, encoding="utf-8",
                              errors="replace", check=True)
    return subprocess.run(cmd, capture_output=True, check=True)
