"""
Admin API — Categories and tags.

Blueprint: taxonomy_bp
Prefix: /api
Routes:
    GET    /api/categories                  # List categories
    POST   /api/categories                  # Create: {name, description?}
    PATCH  /api/categories/<category_id>    # Rename / re-describe
    DELETE /api/categories/<category_id>    # Delete; its posts become uncategorised
    GET    /api/tags                        # List tags, or search with ?q=&limit=
    POST   /api/tags                        # Create-or-get: {names: [...]}
    PATCH  /api/tags/<tag_id>               # Rename: {name}
    DELETE /api/tags/<tag_id>               # Delete and unlink from posts
"""

from __future__ import annotations

from flask import Blueprint, jsonify, request

from ..async_utils import run_async
from ..errors import ValidationError
from .helpers import json_body, services

taxonomy_bp = Blueprint("taxonomy", __name__)


@taxonomy_bp.route("/categories", methods=["GET"])
def api_list_categories():
    categories = run_async(services().taxonomy.list_categories())
    return jsonify({"categories": [c.model_dump(mode="json") for c in categories]})


@taxonomy_bp.route("/categories", methods=["POST"])
def api_create_category():
    body = json_body()
    category = run_async(services().taxonomy.create_category(
        body.get("name") or "", body.get("description"),
    ))
    return jsonify({"success": True, "category": category.model_dump(mode="json")}), 201


@taxonomy_bp.route("/categories/<category_id>", methods=["PATCH"])
def api_update_category(category_id: str):
    body = json_body()
    kwargs = {"name": body.get("name")}
    if "description" in body:
        kwargs["description"] = body["description"]
    category = run_async(services().taxonomy.update_category(category_id, **kwargs))
    return jsonify({"success": True, "category": category.model_dump(mode="json")})


@taxonomy_bp.route("/categories/<category_id>", methods=["DELETE"])
def api_delete_category(category_id: str):
    run_async(services().taxonomy.delete_category(category_id))
    return jsonify({"success": True, "deleted": category_id})


@taxonomy_bp.route("/tags", methods=["GET"])
def api_list_tags():
    query = request.args.get("q")
    if query is not None:
        limit = request.args.get("limit", 10, type=int)
        tags = run_async(services().taxonomy.search_tags(query, limit=limit))
    else:
        tags = run_async(services().taxonomy.list_tags())
    return jsonify({"tags": [t.model_dump(mode="json") for t in tags]})


@taxonomy_bp.route("/tags", methods=["POST"])
def api_create_tags():
    names = json_body().get("names")
    if not isinstance(names, list):
        raise ValidationError("names must be a list of tag names", field="names")
    tags = run_async(services().taxonomy.create_or_get_tags(str(n) for n in names))
    return jsonify({"success": True, "tags": [t.model_dump(mode="json") for t in tags]})


@taxonomy_bp.route("/tags/<tag_id>", methods=["PATCH"])
def api_update_tag(tag_id: str):
    tag = run_async(services().taxonomy.update_tag(tag_id, json_body().get("name") or ""))
    return jsonify({"success": True, "tag": tag.model_dump(mode="json")})


@taxonomy_bp.route("/tags/<tag_id>", methods=["DELETE"])
def api_delete_tag(tag_id: str):
    run_async(services().taxonomy.delete_tag(tag_id))
    return jsonify({"success": True, "deleted": tag_id})
