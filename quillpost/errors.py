"""
Errors — Domain exception taxonomy for the publishing pipeline.

Every failure the pipeline surfaces to the authoring boundary (admin API,
CLI) is one of these. The boundary maps them to user-visible messages or
HTTP status codes; the pipeline itself never retries.

## Usage

    from quillpost.errors import ConflictError, ValidationError

    try:
        await service.save(draft)
    except ValidationError as e:
        print(f"Fix and retry: {e}")
    except ConflictError as e:
        print(f"Slug taken: {e.details['slug']}")
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class QuillpostError(Exception):
    """Base class for all pipeline errors."""

    status_code = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-friendly representation for API responses."""
        payload: Dict[str, Any] = {
            "error": self.message,
            "type": type(self).__name__,
        }
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationError(QuillpostError):
    """Raised when input is invalid and the caller must correct it."""

    status_code = 400

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.field = field
        super().__init__(message, details)

    def __str__(self) -> str:
        if self.field:
            return f"{self.field}: {self.message}"
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        if self.field:
            payload["field"] = self.field
        return payload


class ContentError(ValidationError):
    """Raised when a content tree or staged reference is malformed."""


class ConflictError(QuillpostError):
    """Raised when a slug (or other unique key) is already taken."""

    status_code = 409


class UploadError(QuillpostError):
    """Raised when compressing or storing one staged image fails."""

    status_code = 502

    def __init__(self, kind: str, reason: str, details: Optional[Dict[str, Any]] = None):
        self.kind = kind
        self.reason = reason
        super().__init__(f"Failed to upload {kind} image: {reason}", details)


class CompressionError(QuillpostError):
    """Raised when an image cannot be decoded or re-encoded."""


class StorageError(QuillpostError):
    """Raised when the object store rejects or cannot be reached for a request."""

    status_code = 502


class PersistenceError(QuillpostError):
    """Raised when a database read or write fails."""

    status_code = 502


class NotFoundError(QuillpostError):
    """Raised when a requested row does not exist."""

    status_code = 404


class ConfigurationError(QuillpostError):
    """Raised when configuration is missing or invalid."""
