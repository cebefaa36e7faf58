"""
Media Optimizer — compress/convert images before upload.

Image pipeline:
1. Resize so the longest side fits the policy's max dimension
2. Strip alpha channel when not needed (RGBA → RGB)
3. Convert to WebP (default) or JPEG

Policies differ by where the image appears:
- featured: 1200 px, quality 70
- inline:    800 px, quality 70

Animated formats (GIF) and SVG pass through untouched.

The original bytes go in, optimized bytes come out. The caller decides
where to store them.
"""

from __future__ import annotations

import asyncio
import io
import logging
from dataclasses import dataclass
from typing import Tuple

from PIL import Image, UnidentifiedImageError

from ..errors import CompressionError

logger = logging.getLogger(__name__)

# ── Defaults ─────────────────────────────────────────────────

FEATURED_MAX_DIMENSION = 1200  # px, longest side
INLINE_MAX_DIMENSION = 800     # px, longest side
QUALITY = 70                   # lossy quality (1-100)
TARGET_FORMAT = "WEBP"         # preferred image output format

PASSTHROUGH_MIMES = ("image/gif", "image/svg+xml")


@dataclass(frozen=True)
class CompressionOptions:
    """Parameters for one compression pass."""

    max_width: int
    quality: int = QUALITY
    format: str = TARGET_FORMAT


FEATURED_POLICY = CompressionOptions(max_width=FEATURED_MAX_DIMENSION)
INLINE_POLICY = CompressionOptions(max_width=INLINE_MAX_DIMENSION)


def policy_for(kind: str) -> CompressionOptions:
    """Compression policy for a media kind (``featured`` or ``inline``)."""
    return FEATURED_POLICY if kind == "featured" else INLINE_POLICY


# ── Image optimization ───────────────────────────────────────


def optimize_image(
    data: bytes,
    mime_type: str,
    options: CompressionOptions = INLINE_POLICY,
) -> Tuple[bytes, str, str]:
    """
    Optimize an image: resize + convert.

    Args:
        data: Raw image bytes.
        mime_type: Original MIME type (e.g. "image/png").
        options: Max dimension, quality and target format.

    Returns:
        Tuple of (optimized_bytes, new_mime_type, new_extension).
        Pass-through formats return the original bytes.

    Raises:
        CompressionError: If the bytes cannot be decoded or encoded.
    """
    if mime_type in PASSTHROUGH_MIMES:
        return data, mime_type, _mime_to_ext(mime_type)

    try:
        img = Image.open(io.BytesIO(data))
        img.load()
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError) as e:
        raise CompressionError(f"Cannot read image ({mime_type}): {e}") from e

    original_size = len(data)
    original_dims = img.size

    # ── Resize if over max dimension ─────────────────────
    w, h = img.size
    if max(w, h) > options.max_width:
        ratio = options.max_width / max(w, h)
        new_w = max(1, int(w * ratio))
        new_h = max(1, int(h * ratio))
        img = img.resize((new_w, new_h), Image.LANCZOS)
        logger.debug(
            f"Resized: {w}x{h} → {new_w}x{new_h} "
            f"(max_dim={options.max_width})"
        )

    # ── Convert color mode ───────────────────────────────
    fmt = options.format.upper()

    if fmt == "JPEG" and img.mode in ("RGBA", "LA", "P"):
        # JPEG has no alpha; flatten onto white
        if img.mode == "P":
            img = img.convert("RGBA")
        bg = Image.new("RGB", img.size, (255, 255, 255))
        bg.paste(img, mask=img.split()[-1] if "A" in img.mode else None)
        img = bg
    elif fmt == "WEBP" and img.mode in ("P", "LA"):
        img = img.convert("RGBA")
    elif img.mode == "CMYK":
        img = img.convert("RGB")

    if fmt in ("JPEG", "WEBP") and img.mode == "RGBA":
        if not _has_meaningful_alpha(img):
            img = img.convert("RGB")

    # ── Encode ───────────────────────────────────────────
    buf = io.BytesIO()
    save_kwargs = {"quality": options.quality, "optimize": True}
    if fmt == "WEBP":
        save_kwargs["method"] = 4  # compression effort (0-6)
    try:
        img.save(buf, format=fmt, **save_kwargs)
    except (OSError, ValueError, KeyError) as e:
        raise CompressionError(f"Cannot encode image as {fmt}: {e}") from e
    optimized = buf.getvalue()

    new_mime = f"image/{fmt.lower()}"
    new_ext = _mime_to_ext(new_mime)

    pct = len(optimized) / original_size * 100 if original_size else 0
    logger.info(
        f"Optimized: {original_dims[0]}x{original_dims[1]} "
        f"({mime_type}) → {img.size[0]}x{img.size[1]} "
        f"({new_mime}): "
        f"{original_size:,} → {len(optimized):,} bytes "
        f"({pct:.0f}%)"
    )

    return optimized, new_mime, new_ext


class PillowCompressor:
    """Async compression primitive; Pillow work runs in a worker thread."""

    async def compress(
        self,
        data: bytes,
        mime_type: str,
        options: CompressionOptions,
    ) -> Tuple[bytes, str, str]:
        return await asyncio.to_thread(optimize_image, data, mime_type, options)


# ── Internal helpers ─────────────────────────────────────────


def _has_meaningful_alpha(img) -> bool:
    """Check if an RGBA image actually uses transparency."""
    if img.mode != "RGBA":
        return False
    alpha = img.split()[-1]
    extrema = alpha.getextrema()
    # If min alpha is 255, the entire image is fully opaque
    return extrema[0] < 255


def _mime_to_ext(mime_type: str) -> str:
    """Map image MIME type to file extension (without the dot)."""
    mapping = {
        "image/png": "png",
        "image/jpeg": "jpg",
        "image/webp": "webp",
        "image/gif": "gif",
        "image/svg+xml": "svg",
    }
    return mapping.get(mime_type, "bin")
