"""
Media Staging — Encode images as inline data URIs before any upload.

An image inserted in the editor is not uploaded straight away. It is encoded
as a ``data:image/<type>;base64,...`` URI (a *staged reference*) and kept in
the content tree. Previewing, undoing, or discarding it costs nothing in
storage; the bytes only become a durable object when the post is saved
(see ``publishing/commit.py``).

A staged reference is told apart from a resolved one by its scheme prefix,
so a reference that already points at storage is never uploaded again.

## Usage

    from quillpost.media.staging import encode_file_as_staged_reference, is_staged

    ref = encode_file_as_staged_reference(Path("diagram.png"))
    assert is_staged(ref)
    data, mime = decode_staged_reference(ref)
"""

from __future__ import annotations

import base64
import binascii
import mimetypes
import re
from pathlib import Path
from typing import Optional, Tuple, Union

from ..errors import ContentError, ValidationError

STAGED_PREFIX = "data:image/"
RESOLVED_SCHEMES = ("https://", "http://")

# Accepted for staging (matches what the editor upload button allows)
ALLOWED_IMAGE_TYPES = (
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/webp",
    "image/gif",
)
MAX_IMAGE_BYTES = 5 * 1024 * 1024

_DATA_URI_RE = re.compile(r"^data:(?P<mime>image/[\w.+-]+);base64,(?P<payload>.*)$", re.S)

# Magic bytes → MIME, for bytes that arrive without a filename
_SIGNATURES = (
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
)


def is_staged(ref: Optional[str]) -> bool:
    """True if ``ref`` is an inline data URI that still needs uploading."""
    return isinstance(ref, str) and ref.startswith(STAGED_PREFIX)


def is_resolved(ref: Optional[str]) -> bool:
    """True if ``ref`` is an absolute URL into durable storage."""
    return isinstance(ref, str) and ref.startswith(RESOLVED_SCHEMES)


def sniff_image_type(data: bytes) -> Optional[str]:
    """Guess an image MIME type from its leading bytes."""
    for signature, mime in _SIGNATURES:
        if data.startswith(signature):
            return mime
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    return None


def encode_file_as_staged_reference(
    source: Union[Path, str, bytes],
    mime_type: Optional[str] = None,
) -> str:
    """
    Encode an image file (or raw bytes) as a staged data URI.

    Pure and network-free.

    Args:
        source: Path to the image, or its raw bytes
        mime_type: Explicit MIME type; otherwise guessed from the file
            suffix, then from the image header

    Returns:
        ``data:<mime>;base64,<payload>``

    Raises:
        ValidationError: If the bytes are not a supported image
    """
    if isinstance(source, bytes):
        data = source
        guessed = None
    else:
        path = Path(source)
        data = path.read_bytes()
        guessed = mimetypes.guess_type(path.name)[0]

    mime = mime_type or guessed or sniff_image_type(data)
    if mime == "image/jpg":
        mime = "image/jpeg"
    validate_image_file(data, mime)

    payload = base64.b64encode(data).decode("ascii")
    return f"data:{mime};base64,{payload}"


def decode_staged_reference(ref: str) -> Tuple[bytes, str]:
    """
    Decode a staged data URI back to bytes.

    Returns:
        Tuple of (image_bytes, mime_type)

    Raises:
        ContentError: If ``ref`` is not a well-formed staged reference
    """
    match = _DATA_URI_RE.match(ref) if isinstance(ref, str) else None
    if not match:
        raise ContentError("Not a staged image reference", field="src")

    try:
        data = base64.b64decode(match.group("payload"), validate=True)
    except (binascii.Error, ValueError) as e:
        raise ContentError(f"Staged image is not valid base64: {e}", field="src") from e

    return data, match.group("mime")


def validate_image_file(data: bytes, mime_type: Optional[str]) -> None:
    """
    Check an image is a supported type and size.

    Raises:
        ValidationError: With a message the author can act on
    """
    if mime_type not in ALLOWED_IMAGE_TYPES:
        raise ValidationError(
            "Invalid file type. Please upload a JPG, PNG, WebP, or GIF image.",
            field="image",
            details={"mime_type": mime_type},
        )
    if not data:
        raise ValidationError("Empty file", field="image")
    if len(data) > MAX_IMAGE_BYTES:
        raise ValidationError(
            "File size too large. Please upload an image smaller than 5MB.",
            field="image",
            details={"size_bytes": len(data), "max_bytes": MAX_IMAGE_BYTES},
        )


def alt_text_from_filename(filename: str) -> str:
    """Derive default alt text: ``my_cool-photo.jpg`` → ``my cool photo``."""
    stem = re.sub(r"\.[^/.]+$", "", filename)
    spaced = re.sub(r"[-_]", " ", stem)
    return re.sub(r"\s+", " ", spaced).strip()
