#!/usr/bin/python3
'''
Created on Oct 18, 2026

@author:

Image helpers built on Pillow: header probing, cover-fit cells, grid
composition and the JPEG metadata trailer.

'''

import io
import json

from PIL import Image, ImageOps

import logging
logger = logging.getLogger(__name__)


JPEG_QUALITY = 85
CELL_SIZE = 360
GRID_CELLS = 2          # cells per row and per column

BACKGROUND = (0, 0, 0)

METADATA_MARKER = b"\n<!--PGGRID_METADATA:"
METADATA_END_MARKER = b"-->\n"

#=========================================================
def image_dimensions(fqfn):
    """
    Returns (width, height) read from the image header.  Pixel data is
    not decoded.  Returns (0, 0) when the file cannot be identified.
    """
    try:
        with Image.open(fqfn) as img:
            width, height = img.size
            return int(width or 0), int(height or 0)
    except (OSError, ValueError, Image.DecompressionBombError) as e:
        logger.warning(f"Image probe failed: {fqfn} -> {e.__class__.__name__}: {e}")
        return 0, 0

#=========================================================
def fit_cell(img, width, height):
    """
    Cover-fit img into width x height: scale so both sides cover the cell,
    then crop centered.
    """
    img = ImageOps.exif_transpose(img)
    if img.mode != "RGB":
        img = img.convert("RGB")
    return ImageOps.fit(img, (width, height), method=Image.Resampling.LANCZOS, centering=(0.5, 0.5))

#=========================================================
def open_cell(fqfn, width, height):
    """
    Decodes an image file and returns it fitted to a cell.
    Raises OSError / ValueError on decode failure.
    """
    with Image.open(fqfn) as img:
        img.load()
        return fit_cell(img, width, height)

#=========================================================
def cell_position(index, cells_per_row, cell_size):
    """ (left, top) pixel offset of a slot """
    row = index // cells_per_row
    col = index % cells_per_row
    return col * cell_size, row * cell_size

#=========================================================
def compose_grid(cells, cell_size=CELL_SIZE, grid_cells=GRID_CELLS):
    """
    Pastes cells onto a blank square canvas.

    Parameters:
        cells     : list of (slot index, PIL Image already cell sized)
        cell_size : pixel size of one square cell
        grid_cells: cells per row (and per column)

    Returns:
        PIL Image of (cell_size * grid_cells) square
    """
    grid_size = cell_size * grid_cells
    canvas = Image.new("RGB", (grid_size, grid_size), BACKGROUND)
    for index, cell in cells:
        canvas.paste(cell, cell_position(index, grid_cells, cell_size))
    return canvas

#=========================================================
def encode_jpeg(img, quality=JPEG_QUALITY):
    buf = io.BytesIO()
    img.save(buf, format="JPEG", quality=quality)
    return buf.getvalue()

#=========================================================
def append_metadata(jpeg_bytes, metadata):
    """
    JPEG bytes + marker + ASCII-escaped JSON + end marker.  Image decoders stop at
    the end-of-image segment and ignore the trailer.
    """
    payload = json.dumps(metadata, separators=(",", ":")).encode("ascii")
    return jpeg_bytes + METADATA_MARKER + payload + METADATA_END_MARKER

#=========================================================
def extract_metadata(data):
    """
    Returns the JSON value stored after the last metadata marker, or None
    when there is no trailer or it does not parse.
    """
    start = data.rfind(METADATA_MARKER)
    if start < 0:
        return None
    start += len(METADATA_MARKER)
    end = data.rfind(METADATA_END_MARKER)
    if end < start:
        return None
    try:
        return json.loads(data[start:end].decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.debug(f"Unparsable grid metadata: {e}")
        return None

#=========================================================
def read_metadata_file(fqfn):
    try:
        with open(fqfn, "rb") as f:
            data = f.read()
    except OSError:
        return None
    return extract_metadata(data)
