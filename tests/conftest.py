# tests/conftest.py
# Bootstrap so the flat modules under src/ import when running pytest from the repo root
import sys
from pathlib import Path

import pytest
from PIL import Image

TESTS_DIR = Path(__file__).resolve().parent
REPO_ROOT = TESTS_DIR.parent
SRC_DIR = REPO_ROOT / "src"

if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))


@pytest.fixture
def make_image():
    """Writes a solid colour image, creating parent directories."""

    def _make(path, size=(64, 48), color=(255, 0, 0), fmt=None):
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        Image.new("RGB", size, color).save(path, format=fmt)
        return str(path)

    return _make


@pytest.fixture
def make_corrupt():
    """Writes a file with a media extension that no decoder accepts."""

    def _make(path):
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(b"this is not an image")
        return str(path)

    return _make


@pytest.fixture
def lib(tmp_path):
    """Media root below tmp_path so sidecars of the root land in tmp_path."""
    root = tmp_path / "lib"
    root.mkdir()
    return root

