"""
Storage Clients — Where compressed images end up.

Two implementations of the same interface:

- ``SupabaseStorage``: Supabase Storage REST API over ``httpx``
- ``MemoryStorage``: in-process dict, for local use and tests

## Configuration

- SUPABASE_URL / SUPABASE_KEY: project URL and API key
- MEDIA_BUCKET: bucket name (default ``blog-images``)

Objects are written with ``x-upsert: false`` so an existing object is never
overwritten, and served with a one-hour cache header.
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple
from urllib.parse import urlsplit

import httpx

from ..config import QuillpostConfig
from ..errors import StorageError

logger = logging.getLogger(__name__)

CACHE_CONTROL_SECONDS = 3600
LIST_PAGE_SIZE = 1000

IMAGE_NAME_RE = re.compile(r"\.(jpe?g|png|gif|webp)$", re.IGNORECASE)


@dataclass
class StoredImage:
    """An image already in the bucket, for the editor's picker."""

    path: str
    url: str
    created_at: Optional[str] = None

    @property
    def name(self) -> str:
        return self.path.rsplit("/", 1)[-1]

    def to_dict(self) -> Dict[str, Any]:
        return {"url": self.url, "path": self.path, "name": self.name}


class StorageClient(ABC):
    """Object storage for one media bucket."""

    bucket: str

    @abstractmethod
    async def upload(self, data: bytes, path: str, content_type: str) -> str:
        """
        Store ``data`` at ``path`` and return its public URL.

        Raises:
            StorageError: If the object could not be written
        """
        pass

    @abstractmethod
    def get_public_url(self, path: str) -> str:
        """Public URL of the object at ``path``."""
        pass

    @abstractmethod
    async def remove(self, paths: Iterable[str]) -> None:
        """Delete the objects at ``paths``."""
        pass

    @abstractmethod
    async def list_images(self, limit: int = LIST_PAGE_SIZE) -> List[StoredImage]:
        """Images in the bucket (every folder), newest first."""
        pass

    def path_from_public_url(self, url: str) -> Optional[str]:
        """
        Recover the object path from a public URL.

        The path is everything after the bucket segment. Returns None when
        the URL does not point into this bucket.
        """
        parts = urlsplit(url).path.split("/")
        if self.bucket not in parts:
            return None
        index = parts.index(self.bucket)
        path = "/".join(parts[index + 1:])
        return path or None


class SupabaseStorage(StorageClient):
    """Supabase Storage client."""

    def __init__(
        self,
        storage_url: str,
        api_key: str,
        bucket: str,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.storage_url = storage_url.rstrip("/")
        self.api_key = api_key
        self.bucket = bucket
        self.timeout = timeout
        self._client = client

    @classmethod
    def from_config(
        cls,
        config: QuillpostConfig,
        client: Optional[httpx.AsyncClient] = None,
    ) -> "SupabaseStorage":
        config.require_supabase()
        return cls(
            storage_url=config.storage_url,
            api_key=config.supabase_key,
            bucket=config.media_bucket,
            timeout=config.http_timeout,
            client=client,
        )

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "apikey": self.api_key,
        }

    async def _send(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            if self._client is not None:
                return await self._client.request(method, url, **kwargs)
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                return await client.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            raise StorageError(f"Storage request timed out after {self.timeout}s") from e
        except httpx.RequestError as e:
            raise StorageError(f"Storage request failed: {e}") from e

    async def upload(self, data: bytes, path: str, content_type: str) -> str:
        url = f"{self.storage_url}/object/{self.bucket}/{path}"
        headers = {
            **self._headers(),
            "Content-Type": content_type,
            "x-upsert": "false",
            "cache-control": f"max-age={CACHE_CONTROL_SECONDS}",
        }

        response = await self._send("POST", url, content=data, headers=headers)
        if response.status_code >= 400:
            logger.error(f"Storage upload rejected: {response.status_code} for {path}")
            raise StorageError(
                f"Storage returned {response.status_code}",
                details={"path": path, "body": response.text[:200]},
            )

        logger.debug(f"Stored {len(data):,} bytes at {path}", extra={"storage_path": path})
        return self.get_public_url(path)

    def get_public_url(self, path: str) -> str:
        return f"{self.storage_url}/object/public/{self.bucket}/{path}"

    async def remove(self, paths: Iterable[str]) -> None:
        prefixes = list(paths)
        if not prefixes:
            return
        url = f"{self.storage_url}/object/{self.bucket}"
        response = await self._send(
            "DELETE", url, json={"prefixes": prefixes}, headers=self._headers(),
        )
        if response.status_code >= 400:
            logger.error(f"Storage delete rejected: {response.status_code}")
            raise StorageError(
                f"Storage returned {response.status_code}",
                details={"paths": prefixes, "body": response.text[:200]},
            )
        logger.info(f"Removed {len(prefixes)} object(s) from {self.bucket}")

    async def _list_folder(self, prefix: str) -> List[Dict[str, Any]]:
        url = f"{self.storage_url}/object/list/{self.bucket}"
        body = {
            "prefix": prefix,
            "limit": LIST_PAGE_SIZE,
            "offset": 0,
            "sortBy": {"column": "created_at", "order": "desc"},
        }
        response = await self._send("POST", url, json=body, headers=self._headers())
        if response.status_code >= 400:
            logger.error(f"Storage list rejected: {response.status_code} for '{prefix}'")
            raise StorageError(
                f"Storage returned {response.status_code}",
                details={"prefix": prefix, "body": response.text[:200]},
            )
        return response.json()

    async def list_images(self, limit: int = LIST_PAGE_SIZE) -> List[StoredImage]:
        # Objects live under year/month/slug folders; folder entries have no id
        images: List[StoredImage] = []
        folders = [""]
        while folders:
            prefix = folders.pop(0)
            for entry in await self._list_folder(prefix):
                path = f"{prefix}/{entry['name']}" if prefix else entry["name"]
                if entry.get("id") is None:
                    folders.append(path)
                elif IMAGE_NAME_RE.search(entry["name"]):
                    images.append(StoredImage(
                        path=path,
                        url=self.get_public_url(path),
                        created_at=entry.get("created_at"),
                    ))

        images.sort(key=lambda image: image.created_at or "", reverse=True)
        logger.debug(f"Listed {len(images)} image(s) in {self.bucket}")
        return images[:limit]



class MemoryStorage(StorageClient):
    """
    In-process object store.

    Behaves like the real bucket: writing an existing path fails, and URLs
    are absolute ``http`` URLs with the bucket name as a path segment.
    """

    def __init__(
        self,
        bucket: str = "blog-images",
        base_url: str = "http://localhost/storage/v1/object/public",
    ):
        self.bucket = bucket
        self.base_url = base_url.rstrip("/")
        self.objects: Dict[str, Tuple[bytes, str]] = {}
        self.uploads: List[str] = []

    async def upload(self, data: bytes, path: str, content_type: str) -> str:
        if path in self.objects:
            raise StorageError("The resource already exists", details={"path": path})
        self.objects[path] = (data, content_type)
        self.uploads.append(path)
        logger.debug(f"[memory] stored {path} ({content_type})")
        return self.get_public_url(path)

    def get_public_url(self, path: str) -> str:
        return f"{self.base_url}/{self.bucket}/{path}"

    async def remove(self, paths: Iterable[str]) -> None:
        for path in paths:
            self.objects.pop(path, None)

    async def list_images(self, limit: int = LIST_PAGE_SIZE) -> List[StoredImage]:
        # Newest first is reverse insertion order
        paths = [p for p in reversed(list(self.objects)) if IMAGE_NAME_RE.search(p)]
        return [StoredImage(path=p, url=self.get_public_url(p)) for p in paths[:limit]]
