"""
Shared pytest configuration for the DCI packaging scripts.

Puts scripts/ on sys.path (the scripts import each other as top-level
modules) and provides a factory for small source icons.
"""

import os
import sys

import pytest
from PIL import Image

_SCRIPTS_PATH = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "scripts"))
if _SCRIPTS_PATH not in sys.path:
    sys.path.insert(0, _SCRIPTS_PATH)


@pytest.fixture
def make_icon():
    """Return a function writing a solid-color PNG and returning its path."""
    def _make(path, color=(200, 30, 30, 255), size=(64, 64)):
        path.parent.mkdir(parents=True, exist_ok=True)
        Image.new("RGBA", size, color).save(path)
        return str(path)
    return _make
