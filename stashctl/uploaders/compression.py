"""Client-side image compression before upload.

Images larger than the configured dimension or size are downscaled and
re-encoded in their own format with Pillow. Compression is best-effort: any
failure hands back the original file so the upload can proceed.
"""

from __future__ import annotations

import io
import logging
from dataclasses import replace
from typing import Optional

from PIL import Image, ImageOps

from stashctl.core.exceptions import CompressionError
from stashctl.models.progress import SourceFile
from stashctl.uploaders.constants import (
    COMPRESSIBLE_FORMATS,
    DEFAULT_IMAGE_QUALITY,
    DEFAULT_MAX_IMAGE_DIMENSION,
    DEFAULT_MAX_IMAGE_SIZE_BYTES,
    IMAGE_QUALITY_STEP,
    LOSSY_FORMATS,
    MIN_IMAGE_QUALITY,
)

logger = logging.getLogger(__name__)


def _encode(img: Image.Image, fmt: str, quality: int) -> bytes:
    buf = io.BytesIO()
    if fmt == "JPEG":
        img.save(buf, format="JPEG", quality=quality, optimize=True, progressive=True)
    elif fmt == "WEBP":
        img.save(buf, format="WEBP", quality=quality, method=6)
    else:
        img.save(buf, format=fmt, optimize=True)
    return buf.getvalue()


def recompress(
    data: bytes,
    fmt: str,
    *,
    max_dimension: int,
    max_size_bytes: int,
    quality: int = DEFAULT_IMAGE_QUALITY,
    file_name: str = "image",
) -> Optional[bytes]:
    """Downscale and re-encode image bytes.

    Lossy formats step quality down by ``IMAGE_QUALITY_STEP`` until the
    output fits ``max_size_bytes`` or ``MIN_IMAGE_QUALITY`` is reached.

    Returns:
        Encoded bytes, or None when the image already fits both limits or is
        animated.

    Raises:
        CompressionError: If Pillow cannot decode or encode the image.
    """
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.load()
            if getattr(img, "is_animated", False):
                return None

            needs_resize = max(img.size) > max_dimension
            if not needs_resize and len(data) <= max_size_bytes:
                return None

            work = ImageOps.exif_transpose(img)
            if needs_resize:
                work.thumbnail((max_dimension, max_dimension), Image.Resampling.LANCZOS)
            if fmt == "JPEG" and work.mode not in ("RGB", "L"):
                work = work.convert("RGB")

            while True:
                out = _encode(work, fmt, quality)
                if (
                    len(out) <= max_size_bytes
                    or fmt not in LOSSY_FORMATS
                    or quality - IMAGE_QUALITY_STEP < MIN_IMAGE_QUALITY
                ):
                    return out
                quality -= IMAGE_QUALITY_STEP
    except CompressionError:
        raise
    except Exception as e:
        raise CompressionError(file_name, str(e) or type(e).__name__) from e


def compress_image(
    source: SourceFile,
    *,
    max_dimension: int = DEFAULT_MAX_IMAGE_DIMENSION,
    max_size_bytes: int = DEFAULT_MAX_IMAGE_SIZE_BYTES,
    quality: int = DEFAULT_IMAGE_QUALITY,
) -> SourceFile:
    """Shrink an image payload before transfer.

    Non-images, image types Pillow does not re-encode here (GIF, SVG, ...),
    images already within limits, and images that would not get smaller are
    returned unchanged. The result keeps the original name and media type.

    Args:
        source: File to compress.
        max_dimension: Longest edge in pixels after downscaling.
        max_size_bytes: Target encoded size.
        quality: Starting quality for lossy formats.

    Returns:
        Compressed SourceFile, or ``source`` itself.
    """
    if not source.is_image:
        return source

    fmt = COMPRESSIBLE_FORMATS.get(source.mime_type.lower())
    if fmt is None:
        logger.debug("No re-encoder for %s (%s)", source.name, source.mime_type)
        return source

    try:
        data = recompress(
            source.data,
            fmt,
            max_dimension=max_dimension,
            max_size_bytes=max_size_bytes,
            quality=quality,
            file_name=source.name,
        )
    except CompressionError as e:
        logger.warning("%s; uploading original", e.message)
        return source

    if data is None or len(data) >= source.size:
        return source

    logger.info(
        "Compressed %s from %d to %d bytes",
        source.name,
        source.size,
        len(data),
    )
    return replace(source, data=data)
