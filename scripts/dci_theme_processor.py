#!/usr/bin/env python3
"""Common library for DCI icon theme packaging.

Used by dci_file.py, dci_symlinks.py, dci_image.py, dci_dark_theme.py and
dci_icon_theme.py.

Provides the shared constants (base size, container extension, default
scale/quality policy), the error kinds raised by the library modules, the
exit codes the command line maps them to, and the optional JSON build
profile loader.
"""

import json
import os
import sys
from dataclasses import dataclass, field


# Every icon is packaged under this category directory: /256/...
BASE_SIZE_PX = 256

# Output container extension
DCI_EXTENSION = ".dci"

# State directory suffixes
LIGHT_SUFFIX = ".light"
DARK_SUFFIX = ".dark"

# Source directory holding dark overrides, relative to the light icon
DARK_DIR_NAME = "dark"

# Scale factor -> encoder quality. Smaller scales keep full fidelity.
DEFAULT_SCALE_QUALITY = {2: 100, 3: 90}

# Image format name -> (file extension, Pillow format name)
IMAGE_FORMATS = {
    "webp": ("webp", "WEBP"),
    "png": ("png", "PNG"),
    "jpg": ("jpg", "JPEG"),
}

# Source files rendered by cairosvg instead of Pillow
VECTOR_EXTENSIONS = (".svg", ".svgz")

# Process exit codes, one per fatal precondition or failure
EXIT_NO_ARGUMENTS = 1
EXIT_NO_SOURCE = 2
EXIT_NO_MATCH = 3
EXIT_NO_OUTPUT = 4
EXIT_OUTPUT_DIR = 5
EXIT_WRITE_FAILED = 6
EXIT_SYMLINK_MAP = 7
EXIT_OUTPUT_EXISTS = 8
EXIT_ENCODE_FAILED = 9
EXIT_MIRROR_FAILED = 10
EXIT_BAD_PROFILE = 11


class DciError(Exception):
    """Base class for every error raised by the packaging library."""


class ContainerError(DciError):
    """A container operation would break a virtual filesystem invariant."""


class MirrorError(ContainerError):
    """Mirroring a light state into its dark sibling failed part way."""


class SerializeError(DciError):
    """The container could not be written to disk."""


class ImageDecodeError(DciError):
    """The source image is missing or cannot be decoded."""


class EncodeError(DciError):
    """The image codec failed to encode a decoded bitmap."""


class AliasTableIOError(DciError):
    """The alias table (symlink map) file cannot be opened."""


class ProfileError(DciError):
    """The JSON build profile is malformed."""


def fatal_error(message, code=1):
    """Print a fatal error message and exit with the given status."""
    print(f"FATAL ERROR! {message}", file=sys.stderr)
    sys.exit(code)


def usage_error(docstring, message=None, code=1):
    """Print help (docstring) and optional error message, then exit."""
    print(docstring)
    if message:
        print(f"Error: {message}", file=sys.stderr)
    sys.exit(code)


def warning(message):
    """Print a recoverable problem; processing continues."""
    print(f"  WARNING: {message}", file=sys.stderr)


def complete_base_name(path):
    """File name without its last extension ("a.b.png" -> "a.b")."""
    return os.path.splitext(os.path.basename(path))[0]


@dataclass
class BuildProfile:
    """Encoding policy used for every icon of a run.

    Attributes:
        image_format: Key of IMAGE_FORMATS (webp, png, jpg).
        scales:       Scale factor -> quality (0-100), processed in
                      ascending scale order.
        base_size:    Category size in pixels, fixed at BASE_SIZE_PX.
    """

    image_format: str = "webp"
    scales: dict = field(default_factory=lambda: dict(DEFAULT_SCALE_QUALITY))
    base_size: int = BASE_SIZE_PX

    @property
    def extension(self):
        return IMAGE_FORMATS[self.image_format][0]

    def scale_qualities(self):
        """Return sorted (scale, quality) pairs."""
        return sorted(self.scales.items())


def load_build_profile(path):
    """Load a JSON build profile.

    Format:
        {"format": "webp", "scales": {"2": 100, "3": 90}}

    Both keys are optional; missing keys keep the defaults. Raises
    ProfileError on unreadable files or invalid values.
    """
    try:
        with open(path, encoding="utf-8") as f:
            raw = json.load(f)
    except (OSError, ValueError) as e:
        raise ProfileError(f"Cannot read build profile {path}: {e}") from e

    if not isinstance(raw, dict):
        raise ProfileError(f"Build profile must be a JSON object: {path}")

    profile = BuildProfile()

    image_format = raw.get("format", profile.image_format)
    if image_format not in IMAGE_FORMATS:
        known = ", ".join(sorted(IMAGE_FORMATS))
        raise ProfileError(f"Unknown image format '{image_format}'. "
                           f"Use one of: {known}")
    profile.image_format = image_format

    if "scales" in raw:
        scales_raw = raw["scales"]
        if not isinstance(scales_raw, dict) or not scales_raw:
            raise ProfileError("'scales' must be a non-empty object")
        scales = {}
        for key, quality in scales_raw.items():
            try:
                scale = int(key)
            except ValueError as e:
                raise ProfileError(f"Scale must be an integer, got: {key}") from e
            if scale < 1:
                raise ProfileError(f"Scale must be >= 1, got: {scale}")
            if (isinstance(quality, bool) or not isinstance(quality, int)
                    or not 0 <= quality <= 100):
                raise ProfileError(f"Quality for scale {scale} must be an "
                                   f"integer in 0-100, got: {quality}")
            scales[scale] = quality
        profile.scales = scales

    return profile
