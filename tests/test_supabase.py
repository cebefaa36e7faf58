"""
Tests for the Supabase clients (storage + PostgREST repository).

Uses httpx.MockTransport so no network is touched.

Tests cover:
- Request shape: URLs, headers, filters
- Error mapping: 409 / 23505 → ConflictError, other failures → PersistenceError
- Storage upload headers, public URLs, removal, image listing
"""

import json

import httpx
import pytest

from quillpost.config import QuillpostConfig
from quillpost.errors import ConfigurationError, ConflictError, NotFoundError, PersistenceError, StorageError
from quillpost.media.storage import SupabaseStorage
from quillpost.models.post import ListFilters
from quillpost.persistence.supabase import SupabaseRepository

BASE = "https://proj.supabase.co"


class Recorder:
    """MockTransport handler that records requests and replays canned responses."""

    def __init__(self, *responses: httpx.Response):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.responses:
            return self.responses.pop(0)
        return httpx.Response(200, json=[])


def _client(recorder: Recorder) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(recorder))


def _repo(recorder: Recorder) -> SupabaseRepository:
    return SupabaseRepository(f"{BASE}/rest/v1", "service-key", client=_client(recorder))


def _storage(recorder: Recorder) -> SupabaseStorage:
    return SupabaseStorage(f"{BASE}/storage/v1", "service-key", "blog-images", client=_client(recorder))


# ═══════════════════════════════════════════════════════════════════
# Config wiring
# ═══════════════════════════════════════════════════════════════════


class TestFromConfig:

    def test_requires_supabase(self):
        with pytest.raises(ConfigurationError):
            SupabaseRepository.from_config(QuillpostConfig())

    def test_urls_from_config(self):
        config = QuillpostConfig(supabase_url=f"{BASE}/", supabase_key="k", media_bucket="media")
        repo = SupabaseRepository.from_config(config)
        storage = SupabaseStorage.from_config(config)
        assert repo.rest_url == f"{BASE}/rest/v1"
        assert storage.storage_url == f"{BASE}/storage/v1"
        assert storage.bucket == "media"


# ═══════════════════════════════════════════════════════════════════
# Repository
# ═══════════════════════════════════════════════════════════════════


class TestSupabaseRepository:

    @pytest.mark.asyncio
    async def test_find_slug_is_case_insensitive_and_excludes_self(self):
        rec = Recorder(httpx.Response(200, json=[{"id": 7}]))
        found = await _repo(rec).find_post_id_by_slug("my_post", exclude_id="3")

        assert found == "7"
        request = rec.requests[0]
        assert request.method == "GET"
        assert request.url.path == "/rest/v1/blog_posts"
        assert request.url.params["slug"] == "ilike.my\\_post"
        assert request.url.params["id"] == "neq.3"
        assert request.headers["apikey"] == "service-key"
        assert request.headers["authorization"] == "Bearer service-key"

    @pytest.mark.asyncio
    async def test_find_slug_none(self):
        assert await _repo(Recorder()).find_post_id_by_slug("free") is None

    @pytest.mark.asyncio
    async def test_insert_returns_representation(self):
        rec = Recorder(httpx.Response(201, json=[{"id": "p1", "slug": "s", "title": "T"}]))
        row = await _repo(rec).insert_post({"slug": "s", "title": "T"})

        assert row["id"] == "p1"
        assert row["tag_ids"] == []
        request = rec.requests[0]
        assert request.method == "POST"
        assert request.headers["prefer"] == "return=representation"
        assert json.loads(request.content) == {"slug": "s", "title": "T"}

    @pytest.mark.asyncio
    async def test_unique_violation_409_is_conflict(self):
        rec = Recorder(httpx.Response(409, json={
            "code": "23505",
            "message": 'duplicate key value violates unique constraint "blog_posts_slug_lower_idx"',
        }))
        with pytest.raises(ConflictError) as exc:
            await _repo(rec).insert_post({"slug": "dup"})
        assert exc.value.details["code"] == "23505"

    @pytest.mark.asyncio
    async def test_unique_violation_code_without_409(self):
        rec = Recorder(httpx.Response(400, json={"code": "23505", "message": "duplicate"}))
        with pytest.raises(ConflictError):
            await _repo(rec).update_post("p1", {"slug": "dup"})

    @pytest.mark.asyncio
    async def test_server_error_is_persistence_error(self):
        rec = Recorder(httpx.Response(500, text="upstream down"))
        with pytest.raises(PersistenceError) as exc:
            await _repo(rec).insert_post({"slug": "x"})
        assert exc.value.details["status"] == 500

    @pytest.mark.asyncio
    async def test_connection_error_is_persistence_error(self):
        def refuse(request):
            raise httpx.ConnectError("refused", request=request)

        repo = SupabaseRepository(
            f"{BASE}/rest/v1", "k",
            client=httpx.AsyncClient(transport=httpx.MockTransport(refuse)),
        )
        with pytest.raises(PersistenceError):
            await repo.get_post("p1")

    @pytest.mark.asyncio
    async def test_update_missing_row(self):
        with pytest.raises(NotFoundError):
            await _repo(Recorder(httpx.Response(200, json=[]))).update_post("nope", {"title": "x"})

    @pytest.mark.asyncio
    async def test_get_post_flattens_tags(self):
        rec = Recorder(httpx.Response(200, json=[{
            "id": "p1", "slug": "s",
            "blog_post_tags": [{"tag_id": "t1"}, {"tag_id": "t2"}],
        }]))
        row = await _repo(rec).get_post("p1", include_drafts=False)

        assert row["tag_ids"] == ["t1", "t2"]
        assert "blog_post_tags" not in row
        params = rec.requests[0].url.params
        assert params["select"] == "*,blog_post_tags(tag_id)"
        assert params["status"] == "eq.published"

    @pytest.mark.asyncio
    async def test_list_posts_query_and_total(self):
        rec = Recorder(httpx.Response(
            200,
            json=[{"id": "p1", "blog_post_tags": []}],
            headers={"Content-Range": "0-0/42"},
        ))
        rows, total = await _repo(rec).list_posts(ListFilters(search="news", category_id="c1"))

        assert total == 42
        assert len(rows) == 1
        params = rec.requests[0].url.params
        assert params["status"] == "eq.published"
        assert params["published_at"].startswith("lte.")
        assert params["category_id"] == "eq.c1"
        assert params["or"] == '(title.ilike."*news*",excerpt.ilike."*news*")'
        assert params["order"] == "published_at.desc.nullslast"
        assert params["limit"] == "10"
        assert params["offset"] == "0"
        assert rec.requests[0].headers["prefer"] == "count=exact"

    @pytest.mark.asyncio
    async def test_list_by_tag_looks_up_join_table(self):
        rec = Recorder(
            httpx.Response(200, json=[{"post_id": "p1"}, {"post_id": "p2"}]),
            httpx.Response(200, json=[], headers={"Content-Range": "*/0"}),
        )
        await _repo(rec).list_posts(ListFilters(tag_id="t9", status=None))

        assert rec.requests[0].url.path == "/rest/v1/blog_post_tags"
        assert rec.requests[0].url.params["tag_id"] == "eq.t9"
        assert rec.requests[1].url.params["id"] == 'in.("p1","p2")'
        assert "status" not in rec.requests[1].url.params

    @pytest.mark.asyncio
    async def test_list_by_unused_tag_short_circuits(self):
        rec = Recorder(httpx.Response(200, json=[]))
        assert await _repo(rec).list_posts(ListFilters(tag_id="t9")) == ([], 0)
        assert len(rec.requests) == 1

    @pytest.mark.asyncio
    async def test_replace_post_tags(self):
        rec = Recorder()
        await _repo(rec).replace_post_tags("p1", ["t1", "t2", "t1"])

        delete, insert = rec.requests
        assert delete.method == "DELETE"
        assert delete.url.params["post_id"] == "eq.p1"
        assert insert.method == "POST"
        assert json.loads(insert.content) == [
            {"post_id": "p1", "tag_id": "t1"},
            {"post_id": "p1", "tag_id": "t2"},
        ]

    @pytest.mark.asyncio
    async def test_replace_with_no_tags_only_deletes(self):
        rec = Recorder()
        await _repo(rec).replace_post_tags("p1", [])
        assert [r.method for r in rec.requests] == ["DELETE"]

    @pytest.mark.asyncio
    async def test_increment_views_calls_rpc(self):
        rec = Recorder(httpx.Response(204))
        await _repo(rec).increment_views("p1")
        assert rec.requests[0].url.path == "/rest/v1/rpc/increment_post_views"
        assert json.loads(rec.requests[0].content) == {"post_id": "p1"}

    @pytest.mark.asyncio
    async def test_get_tags_by_slugs(self):
        rec = Recorder(httpx.Response(200, json=[{"id": "t1", "slug": "python", "name": "Python"}]))
        rows = await _repo(rec).get_tags_by_slugs(["python", "rust"])
        assert rows[0]["slug"] == "python"
        assert rec.requests[0].url.params["slug"] == 'in.("python","rust")'

    @pytest.mark.asyncio
    async def test_delete_category(self):
        rec = Recorder(httpx.Response(200, json=[{"id": "c1"}]))
        await _repo(rec).delete_category("c1")
        request = rec.requests[0]
        assert request.method == "DELETE"
        assert request.url.path == "/rest/v1/blog_categories"
        assert request.url.params["id"] == "eq.c1"
        assert request.headers["prefer"] == "return=representation"

    @pytest.mark.asyncio
    async def test_delete_missing_category(self):
        with pytest.raises(NotFoundError):
            await _repo(Recorder(httpx.Response(200, json=[]))).delete_category("nope")

    @pytest.mark.asyncio
    async def test_update_tag(self):
        rec = Recorder(httpx.Response(200, json=[{"id": "t1", "name": "Rust", "slug": "rust"}]))
        row = await _repo(rec).update_tag("t1", {"name": "Rust", "slug": "rust"})
        assert row["slug"] == "rust"
        request = rec.requests[0]
        assert request.method == "PATCH"
        assert request.url.params["id"] == "eq.t1"
        assert json.loads(request.content) == {"name": "Rust", "slug": "rust"}

    @pytest.mark.asyncio
    async def test_delete_missing_tag(self):
        with pytest.raises(NotFoundError):
            await _repo(Recorder(httpx.Response(200, json=[]))).delete_tag("nope")

    @pytest.mark.asyncio
    async def test_search_tags_escapes_wildcards(self):
        rec = Recorder(httpx.Response(200, json=[{"id": "t1", "name": "snake_case"}]))
        rows = await _repo(rec).search_tags("snake_", limit=5)
        assert rows[0]["name"] == "snake_case"
        params = rec.requests[0].url.params
        assert rec.requests[0].url.path == "/rest/v1/blog_tags"
        assert params["name"] == "ilike.*snake\\_*"
        assert params["order"] == "name.asc"
        assert params["limit"] == "5"



# ═══════════════════════════════════════════════════════════════════
# Storage
# ═══════════════════════════════════════════════════════════════════


class TestSupabaseStorage:

    @pytest.mark.asyncio
    async def test_upload(self):
        rec = Recorder(httpx.Response(200, json={"Key": "blog-images/2026/01/p/inline-1.webp"}))
        url = await _storage(rec).upload(b"webp-bytes", "2026/01/p/inline-1.webp", "image/webp")

        assert url == f"{BASE}/storage/v1/object/public/blog-images/2026/01/p/inline-1.webp"
        request = rec.requests[0]
        assert request.method == "POST"
        assert request.url.path == "/storage/v1/object/blog-images/2026/01/p/inline-1.webp"
        assert request.headers["x-upsert"] == "false"
        assert request.headers["cache-control"] == "max-age=3600"
        assert request.headers["content-type"] == "image/webp"
        assert request.content == b"webp-bytes"

    @pytest.mark.asyncio
    async def test_upload_rejected(self):
        rec = Recorder(httpx.Response(400, json={"error": "Duplicate", "message": "The resource already exists"}))
        with pytest.raises(StorageError):
            await _storage(rec).upload(b"x", "a/b.webp", "image/webp")

    @pytest.mark.asyncio
    async def test_timeout(self):
        def slow(request):
            raise httpx.ReadTimeout("slow", request=request)

        storage = SupabaseStorage(
            f"{BASE}/storage/v1", "k", "blog-images",
            client=httpx.AsyncClient(transport=httpx.MockTransport(slow)),
        )
        with pytest.raises(StorageError):
            await storage.upload(b"x", "a/b.webp", "image/webp")

    @pytest.mark.asyncio
    async def test_remove(self):
        rec = Recorder(httpx.Response(200, json=[]))
        await _storage(rec).remove(["2026/01/p/inline-1.webp"])
        request = rec.requests[0]
        assert request.method == "DELETE"
        assert request.url.path == "/storage/v1/object/blog-images"
        assert json.loads(request.content) == {"prefixes": ["2026/01/p/inline-1.webp"]}

    def test_path_from_public_url(self):
        storage = _storage(Recorder())
        url = f"{BASE}/storage/v1/object/public/blog-images/2026/01/p/featured-9.webp"
        assert storage.path_from_public_url(url) == "2026/01/p/featured-9.webp"

    @pytest.mark.asyncio
    async def test_list_images_walks_folders(self):
        def entry(name, created_at):
            return {"name": name, "id": f"id-{name}", "created_at": created_at}

        folder = {"name": "2026", "id": None}
        rec = Recorder(
            httpx.Response(200, json=[folder, entry("notes.txt", "2026-01-01T00:00:00Z")]),
            httpx.Response(200, json=[{"name": "01", "id": None}]),
            httpx.Response(200, json=[{"name": "my-post", "id": None}]),
            httpx.Response(200, json=[
                entry("inline-1.webp", "2026-01-02T00:00:00Z"),
                entry("featured-2.JPG", "2026-01-03T00:00:00Z"),
            ]),
        )

        images = await _storage(rec).list_images()

        assert [i.path for i in images] == [
            "2026/01/my-post/featured-2.JPG",
            "2026/01/my-post/inline-1.webp",
        ]
        assert images[0].to_dict() == {
            "url": f"{BASE}/storage/v1/object/public/blog-images/2026/01/my-post/featured-2.JPG",
            "path": "2026/01/my-post/featured-2.JPG",
            "name": "featured-2.JPG",
        }
        first = rec.requests[0]
        assert first.method == "POST"
        assert first.url.path == "/storage/v1/object/list/blog-images"
        assert json.loads(first.content) == {
            "prefix": "",
            "limit": 1000,
            "offset": 0,
            "sortBy": {"column": "created_at", "order": "desc"},
        }
        assert [json.loads(r.content)["prefix"] for r in rec.requests[1:]] == [
            "2026", "2026/01", "2026/01/my-post",
        ]

    @pytest.mark.asyncio
    async def test_list_images_rejected(self):
        rec = Recorder(httpx.Response(400, json={"message": "Bucket not found"}))
        with pytest.raises(StorageError):
            await _storage(rec).list_images()
