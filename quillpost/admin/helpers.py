"""
Admin server shared helpers.

Functions used across multiple route blueprints.
"""

from __future__ import annotations

from typing import Any, Dict

from flask import current_app, request

from ..errors import ValidationError
from ..services import Services


def services() -> Services:
    """The services wired into the running app."""
    return current_app.config["SERVICES"]


def json_body() -> Dict[str, Any]:
    """
    The request body as a JSON object.

    Raises:
        ValidationError: If the body is missing or not a JSON object
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data
