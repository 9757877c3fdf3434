"""Exception hierarchy for the missions catalog.

Each failure class maps to one HTTP status in ``api.py``. Per-record
ingestion rejections are not exceptions; see ``pipelines.normalization``.
"""

from __future__ import annotations


class SpaceMissionsError(Exception):
    """Base exception for all catalog failures."""


class ValidationError(SpaceMissionsError):
    """Raised for bad pagination bounds or invalid mutation input."""


class NotFoundError(SpaceMissionsError):
    """Raised when a referenced mission or rocket does not exist."""


class ConflictError(SpaceMissionsError):
    """Raised when a write would violate a unique key."""


class AuthenticationError(SpaceMissionsError):
    """Raised for bad credentials or an invalid bearer token."""


class IngestionError(SpaceMissionsError):
    """Raised when the batch write of an import fails."""
