"""
Admin API — Editor helper endpoints.

Blueprint: core_bp
Prefix: /api
Routes:
    POST /api/reading-time    # {content} → {reading_time}
    POST /api/slug            # {title} → {slug}
"""

from __future__ import annotations

from flask import Blueprint, jsonify

from ..content.reading_time import estimate_reading_time
from ..publishing.slug import generate_slug
from .helpers import json_body

core_bp = Blueprint("core", __name__)


@core_bp.route("/reading-time", methods=["POST"])
def api_reading_time():
    """Estimate minutes to read; malformed content yields 1."""
    content = json_body().get("content")
    return jsonify({"reading_time": estimate_reading_time(content)})


@core_bp.route("/slug", methods=["POST"])
def api_slug():
    title = json_body().get("title") or ""
    return jsonify({"slug": generate_slug(str(title))})
