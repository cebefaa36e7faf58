"""
Config Loader — Load configuration from master key or individual env vars.

Supports two modes:
1. Master JSON key: Single QUILLPOST_CONFIG env var with all settings
2. Individual keys: Separate env vars for each setting (fallback)

## Usage

    # Option 1: Master config (one deployment secret)
    export QUILLPOST_CONFIG='{"supabase_url": "https://xyz.supabase.co", "supabase_key": "..."}'

    # Option 2: Individual keys
    export SUPABASE_URL="https://xyz.supabase.co"
    export SUPABASE_KEY="service-role-or-anon-key"

The loader tries master config first, then fills gaps from individual keys.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

MASTER_ENV_VAR = "QUILLPOST_CONFIG"

DEFAULT_MEDIA_BUCKET = "blog-images"
DEFAULT_HTTP_TIMEOUT = 30.0


@dataclass
class QuillpostConfig:
    """All runtime settings in one place."""

    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    media_bucket: str = DEFAULT_MEDIA_BUCKET
    http_timeout: float = DEFAULT_HTTP_TIMEOUT

    def has_supabase(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)

    def require_supabase(self) -> None:
        """Raise ConfigurationError unless Supabase is fully configured."""
        missing = [
            name for name, value in (
                ("SUPABASE_URL", self.supabase_url),
                ("SUPABASE_KEY", self.supabase_key),
            )
            if not value
        ]
        if missing:
            raise ConfigurationError(
                f"Supabase is not configured (missing {', '.join(missing)})",
                details={"missing": missing},
            )

    @property
    def rest_url(self) -> str:
        return f"{(self.supabase_url or '').rstrip('/')}/rest/v1"

    @property
    def storage_url(self) -> str:
        return f"{(self.supabase_url or '').rstrip('/')}/storage/v1"


def load_config() -> QuillpostConfig:
    """
    Load configuration from master key or individual env vars.

    Priority:
    1. QUILLPOST_CONFIG (master JSON)
    2. Individual environment variables

    Returns:
        QuillpostConfig with all available settings
    """
    config = QuillpostConfig()

    master_config = os.environ.get(MASTER_ENV_VAR)
    if master_config:
        try:
            data = json.loads(master_config)
            config = _parse_master_config(data)
            logger.info(f"Loaded configuration from {MASTER_ENV_VAR}")
        except json.JSONDecodeError as e:
            logger.error(f"Invalid {MASTER_ENV_VAR} JSON: {e}")

    return _load_individual_vars(config)


def _parse_master_config(data: Dict[str, Any]) -> QuillpostConfig:
    """Parse master config JSON into settings."""
    return QuillpostConfig(
        supabase_url=data.get("supabase_url") or data.get("SUPABASE_URL"),
        supabase_key=data.get("supabase_key") or data.get("SUPABASE_KEY"),
        media_bucket=(
            data.get("media_bucket") or data.get("MEDIA_BUCKET") or DEFAULT_MEDIA_BUCKET
        ),
        http_timeout=_parse_timeout(
            data.get("http_timeout") or data.get("HTTP_TIMEOUT")
        ),
    )


def _load_individual_vars(existing: QuillpostConfig) -> QuillpostConfig:
    """Load from individual env vars, filling in missing values."""
    bucket = existing.media_bucket
    if bucket == DEFAULT_MEDIA_BUCKET:
        bucket = os.environ.get("MEDIA_BUCKET") or DEFAULT_MEDIA_BUCKET

    timeout = existing.http_timeout
    if timeout == DEFAULT_HTTP_TIMEOUT:
        timeout = _parse_timeout(os.environ.get("HTTP_TIMEOUT"))

    return QuillpostConfig(
        supabase_url=existing.supabase_url or os.environ.get("SUPABASE_URL"),
        supabase_key=existing.supabase_key or os.environ.get("SUPABASE_KEY"),
        media_bucket=bucket,
        http_timeout=timeout,
    )


def _parse_timeout(value: Any) -> float:
    if value in (None, ""):
        return DEFAULT_HTTP_TIMEOUT
    try:
        return float(value)
    except (TypeError, ValueError):
        logger.warning(f"Ignoring invalid HTTP_TIMEOUT: {value!r}")
        return DEFAULT_HTTP_TIMEOUT
