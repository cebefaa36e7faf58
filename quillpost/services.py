"""
Service Wiring — Build the storage, repository and services from config.

With Supabase configured, posts go to PostgREST and images to Supabase
Storage. Without it (or with ``in_memory=True``) everything lives in
process memory, which is what ``--dry-run`` and local tryouts use.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from .config import QuillpostConfig, load_config
from .media.storage import MemoryStorage, StorageClient, SupabaseStorage
from .media.upload import UploadService
from .persistence.base import PostRepository
from .persistence.memory import MemoryRepository
from .persistence.supabase import SupabaseRepository
from .publishing.service import PostService
from .publishing.taxonomy import TaxonomyService

logger = logging.getLogger(__name__)


@dataclass
class Services:
    repository: PostRepository
    storage: StorageClient
    uploads: UploadService
    posts: PostService
    taxonomy: TaxonomyService


def build_services(
    config: Optional[QuillpostConfig] = None,
    in_memory: bool = False,
) -> Services:
    """Wire the pipeline for ``config`` (loaded from the environment if omitted)."""
    config = config or load_config()

    storage: StorageClient
    repository: PostRepository
    if in_memory or not config.has_supabase():
        if not in_memory:
            logger.warning("Supabase not configured; using in-memory storage (nothing is persisted)")
        storage = MemoryStorage(bucket=config.media_bucket)
        repository = MemoryRepository()
    else:
        storage = SupabaseStorage.from_config(config)
        repository = SupabaseRepository.from_config(config)
        logger.debug(f"Using Supabase at {config.supabase_url} (bucket={config.media_bucket})")

    uploads = UploadService(storage)
    return Services(
        repository=repository,
        storage=storage,
        uploads=uploads,
        posts=PostService(repository, uploads),
        taxonomy=TaxonomyService(repository),
    )
