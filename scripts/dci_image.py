#!/usr/bin/env python3
"""Encode one source icon into the bytes stored at /<size>/<state>/<scale>/1.<ext>.

Raster sources are decoded with Pillow. For JPEG the decoder is asked for a
draft at the target size, which reduces while decoding. SVG sources are
rendered by cairosvg straight at the target size. Anything that does not come
out exactly target x target is resized with a LANCZOS filter, then saved in
the requested format and quality.
"""

import io
import os

from PIL import Image

from dci_theme_processor import (
    BASE_SIZE_PX, IMAGE_FORMATS, VECTOR_EXTENSIONS, EncodeError,
    ImageDecodeError,
)

# Pillow errors meaning "this file is not a usable image"
_DECODE_ERRORS = (OSError, SyntaxError, ValueError, Image.DecompressionBombError)


def _render_vector(source_path, target):
    """Render an SVG to PNG bytes at target x target."""
    try:
        import cairosvg
        return cairosvg.svg2png(url=source_path, output_width=target,
                                output_height=target)
    except Exception as e:
        raise ImageDecodeError(f"SVG conversion failed: {source_path} - {e}") from e


def load_image(source_path, target):
    """Decode source_path into a target x target Pillow image.

    Raises ImageDecodeError if the file is missing or not an image.
    """
    if not os.path.isfile(source_path):
        raise ImageDecodeError(f"Image file not found: {source_path}")

    if source_path.lower().endswith(VECTOR_EXTENSIONS):
        source = io.BytesIO(_render_vector(source_path, target))
    else:
        source = source_path

    try:
        with Image.open(source) as img:
            img.draft(img.mode, (target, target))
            img.load()
            # resize() falls back to NEAREST for palette and bilevel images
            if img.mode not in ("RGB", "RGBA"):
                img = img.convert("RGBA")
            if img.size != (target, target):
                return img.resize((target, target), Image.Resampling.LANCZOS)
            return img.copy()
    except _DECODE_ERRORS as e:
        raise ImageDecodeError(f"Ignore the null image file: {source_path} "
                               f"({e})") from e


def encode_image(image, quality, image_format="webp"):
    """Save a decoded image to bytes. Raises EncodeError on codec failure."""
    _, pil_format = IMAGE_FORMATS[image_format]
    if pil_format == "JPEG":
        image = image.convert("RGB")
    elif image.mode not in ("RGB", "RGBA"):
        image = image.convert("RGBA")

    buffer = io.BytesIO()
    try:
        image.save(buffer, format=pil_format, quality=quality)
    except (OSError, ValueError, KeyError) as e:
        raise EncodeError(f"Failed on encoding {pil_format} image: {e}") from e
    return buffer.getvalue()


def encode_variant(source_path, scale, quality, image_format="webp",
                   base_size=BASE_SIZE_PX):
    """Return the encoded bytes of source_path at scale * base_size pixels."""
    target = scale * base_size
    image = load_image(source_path, target)
    return encode_image(image, quality, image_format)
