"""
Comments Module — Threaded comment views.
"""

from .threading import build_comment_forest

__all__ = ["build_comment_forest"]
