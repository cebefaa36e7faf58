"""
Shared fixtures.

Provides in-memory storage and repository, a wired post service, Pillow
image factories, and a Flask test app built around the in-memory services.
"""

from __future__ import annotations

import io
from typing import Iterable, Optional

import pytest

from quillpost.errors import CompressionError
from quillpost.media.optimize import PillowCompressor
from quillpost.media.staging import encode_file_as_staged_reference
from quillpost.media.storage import MemoryStorage
from quillpost.media.upload import UploadService
from quillpost.persistence.memory import MemoryRepository
from quillpost.publishing.service import PostService
from quillpost.publishing.taxonomy import TaxonomyService
from quillpost.services import Services


# ── Image helpers ────────────────────────────────────────────


def _png(width: int, height: int, color=(255, 0, 0)) -> bytes:
    from PIL import Image

    img = Image.new("RGB", (width, height), color)
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def make_png():
    """Factory: make_png(width, height, color=(r, g, b)) -> PNG bytes."""
    return _png


@pytest.fixture
def make_staged():
    """Factory: a staged data URI for a solid-colour PNG."""
    def _make(width: int = 40, height: int = 30, color=(255, 0, 0)) -> str:
        return encode_file_as_staged_reference(_png(width, height, color))
    return _make


# ── Fakes ────────────────────────────────────────────────────


class SelectiveCompressor(PillowCompressor):
    """Compressor that fails for chosen inputs and records what it saw."""

    def __init__(self, fail_on: Iterable[bytes] = ()):
        self.fail_on = set(fail_on)
        self.calls = []

    async def compress(self, data, mime_type, options):
        self.calls.append((len(data), mime_type, options))
        if data in self.fail_on:
            raise CompressionError("simulated codec failure")
        return await super().compress(data, mime_type, options)


class FixedClock:
    """Millisecond clock starting at a fixed instant."""

    def __init__(self, start_ms: int = 1_767_225_600_000):  # 2026-01-01T00:00:00Z
        self.now = start_ms

    def __call__(self) -> int:
        self.now += 1
        return self.now


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def repository() -> MemoryRepository:
    return MemoryRepository()


@pytest.fixture
def compressor() -> SelectiveCompressor:
    return SelectiveCompressor()


@pytest.fixture
def uploads(storage, compressor) -> UploadService:
    return UploadService(storage, compressor=compressor, clock=FixedClock())


@pytest.fixture
def post_service(repository, uploads) -> PostService:
    return PostService(repository, uploads)


@pytest.fixture
def taxonomy(repository) -> TaxonomyService:
    return TaxonomyService(repository)


@pytest.fixture
def services(repository, storage, uploads, post_service, taxonomy) -> Services:
    return Services(
        repository=repository,
        storage=storage,
        uploads=uploads,
        posts=post_service,
        taxonomy=taxonomy,
    )


# ── Flask ────────────────────────────────────────────────────


@pytest.fixture
def app(services):
    """Flask test app around the in-memory services."""
    from quillpost.admin.server import create_app

    app = create_app(services)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    """Flask test client."""
    return app.test_client()


def paragraph_doc(*sentences: str, extra: Optional[list] = None) -> dict:
    """Raw JSON doc with one paragraph per sentence."""
    content = [
        {"type": "paragraph", "content": [{"type": "text", "text": s}]}
        for s in sentences
    ]
    return {"type": "doc", "content": content + (extra or [])}


@pytest.fixture
def doc_json():
    """Factory for raw JSON documents: doc_json("Hello", "World", extra=[...])."""
    return paragraph_doc
