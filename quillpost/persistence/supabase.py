"""
Supabase Repository — Blog tables over the PostgREST API.

## Configuration

- SUPABASE_URL: project URL (``https://<ref>.supabase.co``)
- SUPABASE_KEY: API key sent as ``apikey`` and bearer token

## Error mapping

- HTTP 409, or a Postgres ``23505`` error code → ``ConflictError``
  (the unique index on ``lower(slug)`` firing)
- anything else ≥ 400, timeouts, connection errors → ``PersistenceError``

Post reads embed the join table (``blog_post_tags(tag_id)``) and flatten
it into a ``tag_ids`` list on the row.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

import httpx

from ..config import QuillpostConfig
from ..errors import ConflictError, NotFoundError, PersistenceError
from ..models.post import ListFilters
from .base import PostRepository, Row

logger = logging.getLogger(__name__)

POSTS = "blog_posts"
POST_TAGS = "blog_post_tags"
CATEGORIES = "blog_categories"
TAGS = "blog_tags"

POST_SELECT = f"*,{POST_TAGS}(tag_id)"

UNIQUE_VIOLATION = "23505"


def _quote(value: str) -> str:
    """Quote a value for use inside a PostgREST filter expression."""
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_").replace("*", "\\*")


def _ilike_exact(value: str) -> str:
    """Case-insensitive equality via ``ilike`` with wildcards escaped."""
    return f"ilike.{_escape_like(value)}"


def _ilike_contains(value: str) -> str:
    """Case-insensitive substring match via ``ilike``."""
    return f"ilike.*{_escape_like(value)}*"


def _flatten_tags(row: Row) -> Row:
    out = dict(row)
    joins = out.pop(POST_TAGS, None) or []
    out["tag_ids"] = [str(j["tag_id"]) for j in joins if j.get("tag_id") is not None]
    return out


def _parse_total(response: httpx.Response, fallback: int) -> int:
    """Read the total from ``Content-Range: 0-9/42``."""
    content_range = response.headers.get("content-range", "")
    _, _, total = content_range.partition("/")
    try:
        return int(total)
    except ValueError:
        return fallback


class SupabaseRepository(PostRepository):
    """PostgREST-backed repository."""

    def __init__(
        self,
        rest_url: str,
        api_key: str,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.rest_url = rest_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._client = client

    @classmethod
    def from_config(
        cls,
        config: QuillpostConfig,
        client: Optional[httpx.AsyncClient] = None,
    ) -> "SupabaseRepository":
        config.require_supabase()
        return cls(
            rest_url=config.rest_url,
            api_key=config.supabase_key,
            timeout=config.http_timeout,
            client=client,
        )

    # ── Transport ────────────────────────────────────────────

    def _headers(self, prefer: Optional[str] = None) -> Dict[str, str]:
        headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        if prefer:
            headers["Prefer"] = prefer
        return headers

    async def _request(
        self,
        method: str,
        table: str,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
        prefer: Optional[str] = None,
    ) -> httpx.Response:
        url = f"{self.rest_url}/{table}"
        kwargs = {"params": params, "json": json, "headers": self._headers(prefer)}
        try:
            if self._client is not None:
                response = await self._client.request(method, url, **kwargs)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            raise PersistenceError(
                f"Database request timed out after {self.timeout}s",
                details={"table": table},
            ) from e
        except httpx.RequestError as e:
            raise PersistenceError(f"Database request failed: {e}", details={"table": table}) from e

        self._raise_for_status(response, method, table)
        return response

    @staticmethod
    def _raise_for_status(response: httpx.Response, method: str, table: str) -> None:
        if response.status_code < 400:
            return

        try:
            body = response.json()
        except ValueError:
            body = {"message": response.text[:200]}
        if not isinstance(body, dict):
            body = {"message": str(body)[:200]}

        message = body.get("message") or f"HTTP {response.status_code}"
        details = {"table": table, "status": response.status_code, "code": body.get("code")}

        if response.status_code == 409 or body.get("code") == UNIQUE_VIOLATION:
            raise ConflictError(message, details=details)

        logger.error(f"PostgREST {method} {table} failed: {response.status_code} {message}")
        raise PersistenceError(f"Failed to {method.lower()} {table}: {message}", details=details)

    # ── Posts ────────────────────────────────────────────────

    async def _find_id_by_slug(
        self, table: str, slug: str, exclude_id: Optional[str],
    ) -> Optional[str]:
        params = {"select": "id", "slug": _ilike_exact(slug), "limit": "1"}
        if exclude_id is not None:
            params["id"] = f"neq.{exclude_id}"
        rows = (await self._request("GET", table, params=params)).json()
        return str(rows[0]["id"]) if rows else None

    async def find_post_id_by_slug(
        self, slug: str, exclude_id: Optional[str] = None,
    ) -> Optional[str]:
        return await self._find_id_by_slug(POSTS, slug, exclude_id)

    async def insert_post(self, row: Row) -> Row:
        response = await self._request("POST", POSTS, json=row, prefer="return=representation")
        stored = response.json()[0]
        logger.info(f"Inserted post {stored['id']}", extra={"post_id": str(stored["id"])})
        return _flatten_tags(stored)

    async def update_post(self, post_id: str, row: Row) -> Row:
        response = await self._request(
            "PATCH", POSTS,
            params={"id": f"eq.{post_id}"},
            json=row,
            prefer="return=representation",
        )
        rows = response.json()
        if not rows:
            raise NotFoundError(f"Post {post_id} not found", details={"id": post_id})
        logger.info(f"Updated post {post_id}", extra={"post_id": post_id})
        return _flatten_tags(rows[0])

    async def delete_post(self, post_id: str) -> None:
        response = await self._request(
            "DELETE", POSTS,
            params={"id": f"eq.{post_id}"},
            prefer="return=representation",
        )
        if not response.json():
            raise NotFoundError(f"Post {post_id} not found", details={"id": post_id})
        logger.info(f"Deleted post {post_id}", extra={"post_id": post_id})

    async def get_post(self, post_id: str, include_drafts: bool = True) -> Optional[Row]:
        params = {"select": POST_SELECT, "id": f"eq.{post_id}"}
        if not include_drafts:
            params["status"] = "eq.published"
        rows = (await self._request("GET", POSTS, params=params)).json()
        return _flatten_tags(rows[0]) if rows else None

    async def get_post_by_slug(self, slug: str) -> Optional[Row]:
        params = {
            "select": POST_SELECT,
            "slug": _ilike_exact(slug),
            "status": "eq.published",
            "published_at": f"lte.{datetime.now(timezone.utc).isoformat()}",
            "limit": "1",
        }
        rows = (await self._request("GET", POSTS, params=params)).json()
        return _flatten_tags(rows[0]) if rows else None

    async def list_posts(self, filters: ListFilters) -> Tuple[List[Row], int]:
        params: Dict[str, Any] = {
            "select": POST_SELECT,
            "order": f"{filters.sort_by}.{filters.sort_order}.nullslast",
            "limit": str(filters.limit),
            "offset": str(filters.offset),
        }
        if filters.status:
            params["status"] = f"eq.{filters.status}"
        if filters.status == "published":
            params["published_at"] = f"lte.{datetime.now(timezone.utc).isoformat()}"
        if filters.category_id:
            params["category_id"] = f"eq.{filters.category_id}"
        if filters.search:
            pattern = _quote(f"*{filters.search}*")
            params["or"] = f"(title.ilike.{pattern},excerpt.ilike.{pattern})"
        if filters.tag_id:
            joins = (await self._request(
                "GET", POST_TAGS,
                params={"select": "post_id", "tag_id": f"eq.{filters.tag_id}"},
            )).json()
            post_ids = [str(j["post_id"]) for j in joins]
            if not post_ids:
                return [], 0
            params["id"] = f"in.({','.join(_quote(p) for p in post_ids)})"

        response = await self._request("GET", POSTS, params=params, prefer="count=exact")
        rows = [_flatten_tags(r) for r in response.json()]
        return rows, _parse_total(response, len(rows))

    async def replace_post_tags(self, post_id: str, tag_ids: Sequence[str]) -> None:
        await self._request("DELETE", POST_TAGS, params={"post_id": f"eq.{post_id}"})
        unique = list(dict.fromkeys(tag_ids))
        if unique:
            await self._request(
                "POST", POST_TAGS,
                json=[{"post_id": post_id, "tag_id": tag_id} for tag_id in unique],
            )
        logger.debug(f"Post {post_id} now has {len(unique)} tag(s)", extra={"post_id": post_id})

    async def increment_views(self, post_id: str) -> None:
        await self._request("POST", "rpc/increment_post_views", json={"post_id": post_id})

    # ── Categories ───────────────────────────────────────────

    async def find_category_id_by_slug(
        self, slug: str, exclude_id: Optional[str] = None,
    ) -> Optional[str]:
        return await self._find_id_by_slug(CATEGORIES, slug, exclude_id)

    async def insert_category(self, row: Row) -> Row:
        response = await self._request("POST", CATEGORIES, json=row, prefer="return=representation")
        return response.json()[0]

    async def update_category(self, category_id: str, row: Row) -> Row:
        response = await self._request(
            "PATCH", CATEGORIES,
            params={"id": f"eq.{category_id}"},
            json=row,
            prefer="return=representation",
        )
        rows = response.json()
        if not rows:
            raise NotFoundError(f"Category {category_id} not found", details={"id": category_id})
        return rows[0]

    async def list_categories(self) -> List[Row]:
        response = await self._request("GET", CATEGORIES, params={"select": "*", "order": "name.asc"})
        return response.json()

    async def delete_category(self, category_id: str) -> None:
        # blog_posts.category_id is ON DELETE SET NULL
        response = await self._request(
            "DELETE", CATEGORIES,
            params={"id": f"eq.{category_id}"},
            prefer="return=representation",
        )
        if not response.json():
            raise NotFoundError(f"Category {category_id} not found", details={"id": category_id})
        logger.info(f"Deleted category {category_id}")

    # ── Tags ─────────────────────────────────────────────────

    async def get_tags_by_slugs(self, slugs: Sequence[str]) -> List[Row]:
        if not slugs:
            return []
        params = {"select": "*", "slug": f"in.({','.join(_quote(s) for s in slugs)})"}
        return (await self._request("GET", TAGS, params=params)).json()

    async def insert_tags(self, rows: Sequence[Row]) -> List[Row]:
        if not rows:
            return []
        response = await self._request("POST", TAGS, json=list(rows), prefer="return=representation")
        return response.json()

    async def find_tag_id_by_slug(
        self, slug: str, exclude_id: Optional[str] = None,
    ) -> Optional[str]:
        return await self._find_id_by_slug(TAGS, slug, exclude_id)

    async def update_tag(self, tag_id: str, row: Row) -> Row:
        response = await self._request(
            "PATCH", TAGS,
            params={"id": f"eq.{tag_id}"},
            json=row,
            prefer="return=representation",
        )
        rows = response.json()
        if not rows:
            raise NotFoundError(f"Tag {tag_id} not found", details={"id": tag_id})
        return rows[0]

    async def delete_tag(self, tag_id: str) -> None:
        # Join rows go with it (ON DELETE CASCADE)
        response = await self._request(
            "DELETE", TAGS,
            params={"id": f"eq.{tag_id}"},
            prefer="return=representation",
        )
        if not response.json():
            raise NotFoundError(f"Tag {tag_id} not found", details={"id": tag_id})
        logger.info(f"Deleted tag {tag_id}")

    async def search_tags(self, query: str, limit: int = 10) -> List[Row]:
        params = {
            "select": "*",
            "name": _ilike_contains(query),
            "order": "name.asc",
            "limit": str(limit),
        }
        return (await self._request("GET", TAGS, params=params)).json()

    async def list_tags(self) -> List[Row]:
        response = await self._request("GET", TAGS, params={"select": "*", "order": "name.asc"})
        return response.json()
