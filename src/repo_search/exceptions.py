"""Exception hierarchy for repo-search.

Input problems (non-string text, empty queries) never raise; they degrade to
empty results. The classes below cover the conditions callers must handle.
"""

from __future__ import annotations


class RepoSearchError(Exception):
    """Base class for all repo-search exceptions."""


class SnapshotError(RepoSearchError, ValueError):
    """Raised when a snapshot is missing fields or carries malformed values."""


class StorageError(RepoSearchError):
    """Raised when a snapshot store cannot read or write its backing medium."""
