"""
Local Admin Server — JSON API for the editor.

Usage:
    quillpost serve
    python -m quillpost.admin --port 8000

Endpoints:
    - Stage editor images as data URIs
    - Save / fetch / delete posts through the publish pipeline
    - Categories and tags
    - Reading time and slug previews
"""

from .server import create_app, run_server

__all__ = ["create_app", "run_server"]
