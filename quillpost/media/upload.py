"""
Upload Service — Turn one staged reference into a durable storage URL.

    staged data URI → decode → compress (policy by kind) → path → upload → URL

Object paths are deterministic given the post slug, the media kind and the
commit clock:

    {year}/{month:02}/{slug}/{kind}-{epoch_ms}.{ext}
    2026/10/my-cool-post/inline-1792396800123.webp

The millisecond clock is strictly increasing within a process, so images
uploaded concurrently for the same post never share a path.
"""

from __future__ import annotations

import logging
import threading
import time
from datetime import datetime, timezone
from typing import Callable, Optional

from ..errors import (
    CompressionError,
    ContentError,
    StorageError,
    UploadError,
    ValidationError,
)
from .optimize import PillowCompressor, policy_for
from .staging import decode_staged_reference
from .storage import StorageClient

logger = logging.getLogger(__name__)


class MonotonicMillis:
    """Wall-clock epoch milliseconds that never repeat or go backwards."""

    def __init__(self, source: Callable[[], float] = time.time):
        self._source = source
        self._last = 0
        self._lock = threading.Lock()

    def __call__(self) -> int:
        with self._lock:
            now = int(self._source() * 1000)
            if now <= self._last:
                now = self._last + 1
            self._last = now
            return now


_process_clock = MonotonicMillis()


def build_storage_path(slug: str, kind: str, ext: str, epoch_ms: int) -> str:
    """Object path for an image uploaded at ``epoch_ms`` (UTC year/month)."""
    when = datetime.fromtimestamp(epoch_ms / 1000, tz=timezone.utc)
    return f"{when.year}/{when.month:02d}/{slug}/{kind}-{epoch_ms}.{ext}"


class UploadService:
    """Compresses and stores staged images for one bucket."""

    def __init__(
        self,
        storage: StorageClient,
        compressor: Optional[PillowCompressor] = None,
        clock: Optional[Callable[[], int]] = None,
    ):
        self.storage = storage
        self.compressor = compressor or PillowCompressor()
        self.clock = clock or _process_clock

    async def upload_staged(self, ref: str, slug: str, kind: str) -> str:
        """
        Upload one staged image.

        Args:
            ref: Staged data URI
            slug: Slug of the post the image belongs to
            kind: ``featured`` or ``inline`` (selects the compression policy)

        Returns:
            Public URL of the stored object

        Raises:
            UploadError: If decoding, compression or storage fails
        """
        if not slug:
            raise UploadError(kind, "post slug is required to place the image")

        try:
            data, mime = decode_staged_reference(ref)
            compressed, out_mime, ext = await self.compressor.compress(
                data, mime, policy_for(kind),
            )
            path = build_storage_path(slug, kind, ext, self.clock())
            url = await self.storage.upload(compressed, path, out_mime)
        except (ContentError, CompressionError, StorageError) as e:
            raise UploadError(kind, e.message, details={"slug": slug}) from e

        logger.info(
            f"Uploaded {kind} image to {path}",
            extra={"slug": slug, "media_kind": kind, "storage_path": path},
        )
        return url

    async def delete_image(self, url: str) -> str:
        """
        Delete a stored image by its public URL.

        Returns:
            The object path that was removed

        Raises:
            ValidationError: If the URL does not point into the bucket
        """
        path = self.storage.path_from_public_url(url)
        if not path:
            raise ValidationError(
                f"Not an image in bucket '{self.storage.bucket}'",
                field="url",
                details={"url": url},
            )
        await self.storage.remove([path])
        logger.info(f"Deleted image {path}", extra={"storage_path": path})
        return path
