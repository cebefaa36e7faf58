"""
Local Admin Server — Flask JSON API for the editor.

This provides a simple web server for local authoring.
It should NEVER be exposed to the internet: it has no authentication.
"""

from __future__ import annotations

import logging
import time
from typing import Optional

from flask import Flask, jsonify, request

from ..errors import QuillpostError
from ..media.staging import MAX_IMAGE_BYTES
from ..services import Services, build_services
from .routes_core import core_bp
from .routes_media import media_bp
from .routes_posts import posts_bp
from .routes_taxonomy import taxonomy_bp

logger = logging.getLogger(__name__)


def create_app(services: Optional[Services] = None) -> Flask:
    """Create the Flask application around a wired set of services."""
    app = Flask(__name__)

    app.config["SERVICES"] = services or build_services()

    # Staged images are capped at 5 MB; leave room for multipart overhead
    app.config["MAX_CONTENT_LENGTH"] = MAX_IMAGE_BYTES + 1024 * 1024

    # ── Register Blueprints ───────────────────────────────────────
    app.register_blueprint(core_bp, url_prefix="/api")                  # /api/reading-time, /api/slug
    app.register_blueprint(media_bp, url_prefix="/api/media")           # /api/media/*
    app.register_blueprint(posts_bp, url_prefix="/api/posts")           # /api/posts/*
    app.register_blueprint(taxonomy_bp, url_prefix="/api")              # /api/categories, /api/tags

    # ── Error Handlers ────────────────────────────────────────────

    @app.errorhandler(QuillpostError)
    def pipeline_error(e: QuillpostError):
        """Map domain errors to their HTTP status with a JSON body."""
        log_fn = logger.warning if e.status_code < 500 else logger.error
        log_fn(f"{request.method} {request.path} failed: {e}")
        return jsonify({"success": False, **e.to_dict()}), e.status_code

    @app.errorhandler(413)
    def request_entity_too_large(e):
        """Return JSON for 413 so the editor gets a parseable response."""
        max_mb = MAX_IMAGE_BYTES / (1024 * 1024)
        return jsonify({
            "success": 0,
            "error": f"File too large (max {max_mb:.0f} MB)",
        }), 413

    @app.errorhandler(500)
    def internal_server_error(e):
        """Catch-all: return JSON for any unhandled 500 so clients never see raw HTML."""
        logger.exception(f"Unhandled 500 on {request.method} {request.path}: {e}")
        return jsonify({
            "success": False,
            "error": f"Internal server error: {e}",
        }), 500

    # ── Request Logging ───────────────────────────────────────────

    @app.before_request
    def log_request_start():
        request.environ["quillpost.start"] = time.time()

    @app.after_request
    def log_request_end(response):
        """Log API requests with duration."""
        started = request.environ.get("quillpost.start")
        duration_ms = int((time.time() - started) * 1000) if started else 0
        if request.path.startswith("/api/"):
            logger.info(
                f"{request.method} {request.path} → {response.status_code} ({duration_ms}ms)"
            )
        return response

    logger.info("Admin server initialized")
    return app


def run_server(host: str = "127.0.0.1", port: int = 5050, debug: bool = False) -> None:
    """Run the admin server (blocking)."""
    app = create_app()
    logger.info(f"Admin API listening on http://{host}:{port}")
    app.run(host=host, port=port, debug=debug, use_reloader=False)
