"""
Admin API — Post endpoints.

Blueprint: posts_bp
Prefix: /api/posts
Routes:
    GET    /api/posts              # List posts (query: status, category_id, tag_id, search, limit, offset, sort_by, sort_order)
    POST   /api/posts              # Create a post from a draft
    GET    /api/posts/<post_id>    # Get one post (drafts included)
    GET    /api/posts/<post_id>/related  # Live posts in the same category (query: limit)
    PUT    /api/posts/<post_id>    # Save a draft over an existing post
    DELETE /api/posts/<post_id>    # Hard-delete a post

Errors: 400 validation, 404 unknown post, 409 slug conflict, 502 database.
"""

from __future__ import annotations

import logging
from typing import Optional

from flask import Blueprint, jsonify, request
from pydantic import ValidationError as PydanticValidationError

from ..async_utils import run_async
from ..errors import NotFoundError, ValidationError
from ..models.post import ListFilters, PostDraft
from ..publishing.service import SaveOutcome
from .helpers import json_body, services

posts_bp = Blueprint("posts", __name__)

logger = logging.getLogger(__name__)


def _save_response(outcome: SaveOutcome, status: int):
    return jsonify({
        "success": True,
        "post": outcome.post.model_dump(mode="json"),
        "upload_failures": [
            {"kind": f.kind, "reason": f.reason, "error": f.message}
            for f in outcome.failures
        ],
    }), status


def _save(post_id: Optional[str]):
    draft = PostDraft.from_payload(json_body())
    return run_async(services().posts.save_outcome(draft, post_id=post_id))


@posts_bp.route("", methods=["GET"])
def api_list_posts():
    args = {k: v for k, v in request.args.items() if v != ""}
    if args.get("status") == "all":
        args["status"] = None
    try:
        filters = ListFilters.model_validate(args)
    except PydanticValidationError as e:
        first = e.errors()[0]
        raise ValidationError(first["msg"], field=".".join(str(p) for p in first["loc"])) from e

    page = run_async(services().posts.list(filters))
    return jsonify(page.model_dump(mode="json"))


@posts_bp.route("", methods=["POST"])
def api_create_post():
    return _save_response(_save(None), 201)


@posts_bp.route("/<post_id>", methods=["PUT"])
def api_update_post(post_id: str):
    return _save_response(_save(post_id), 200)


@posts_bp.route("/<post_id>", methods=["GET"])
def api_get_post(post_id: str):
    post = run_async(services().posts.get(post_id, include_drafts=True))
    if post is None:
        raise NotFoundError(f"Post {post_id} not found", details={"id": post_id})
    return jsonify({"success": True, "post": post.model_dump(mode="json")})


@posts_bp.route("/<post_id>", methods=["DELETE"])
def api_delete_post(post_id: str):
    run_async(services().posts.delete(post_id))
    return jsonify({"success": True, "deleted": post_id})


@posts_bp.route("/<post_id>/related", methods=["GET"])
def api_related_posts(post_id: str):
    limit = request.args.get("limit", 3, type=int)
    posts = run_async(services().posts.related(post_id, limit=limit))
    return jsonify({"posts": [p.model_dump(mode="json") for p in posts]})
