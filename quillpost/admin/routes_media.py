"""
Admin API — Editor image endpoints.

Blueprint: media_bp
Prefix: /api/media
Routes:
    GET    /api/media                  # Images already in the bucket, newest first
    POST   /api/media/editor-upload    # Stage an image as a data URI (no storage write)
    DELETE /api/media                  # Delete a stored image by public URL
"""

from __future__ import annotations

import logging

from flask import Blueprint, jsonify, request

from ..async_utils import run_async
from ..errors import ValidationError
from ..media.staging import alt_text_from_filename, encode_file_as_staged_reference
from .helpers import json_body, services

media_bp = Blueprint("media", __name__)

logger = logging.getLogger(__name__)


@media_bp.route("/editor-upload", methods=["POST"])
def api_editor_upload():
    """
    Stage an image picked in the editor.

    The image is validated and returned as a data URI; nothing is uploaded
    until the post is saved.

    Returns the editor's expected format:
        {success: 1, file: {url: "data:image/..."}, alt, size_bytes}
    """
    if "image" not in request.files:
        return jsonify({"success": 0, "error": "No image provided"}), 400

    file = request.files["image"]
    if not file.filename:
        return jsonify({"success": 0, "error": "Empty filename"}), 400

    file_data = file.read()
    mime_type = file.mimetype if file.mimetype != "application/octet-stream" else None

    try:
        data_uri = encode_file_as_staged_reference(file_data, mime_type)
    except ValidationError as e:
        logger.info(f"Editor upload rejected: {file.filename}: {e.message}")
        return jsonify({"success": 0, "error": e.message}), 400

    logger.info(f"Editor upload (staged): {file.filename} ({len(file_data)} bytes)")

    return jsonify({
        "success": 1,
        "file": {"url": data_uri},
        "alt": alt_text_from_filename(file.filename),
        "size_bytes": len(file_data),
    })


@media_bp.route("", methods=["GET"])
def api_list_images():
    """Images for the editor's picker: {images: [{url, path, name}]}."""
    images = run_async(services().storage.list_images())
    return jsonify({"images": [i.to_dict() for i in images]})


@media_bp.route("", methods=["DELETE"])
def api_delete_image():
    """Delete a stored image: body {url}."""
    url = json_body().get("url")
    if not url:
        raise ValidationError("Image URL is required", field="url")

    path = run_async(services().uploads.delete_image(url))
    return jsonify({"success": True, "deleted": path})
