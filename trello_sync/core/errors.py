"""
Trello Sync — Error taxonomy.

Every failure the engine knows how to isolate is a ``SyncError`` carrying the
name of the operation that failed, so a single log line says where a
deliverable stopped.
"""

from __future__ import annotations

from typing import Optional


class SyncError(Exception):
    """Base class for per-deliverable and batch-level sync failures."""

    def __init__(self, message: str, operation: str = "") -> None:
        super().__init__(message)
        self.message = message
        self.operation = operation

    def __str__(self) -> str:
        if self.operation:
            return f"{self.operation}: {self.message}"
        return self.message


class NotFound(SyncError):
    """No deliverable matches the id within the tax season."""


class BoardMissing(SyncError):
    """No board relation is recorded for the tax season and board category."""


class BoardItemMissing(SyncError):
    """A list, label or template card the card builder needs is not on the board."""


class ChecklistMissing(SyncError):
    """The named checklist is not on the target card."""


class ConflictError(SyncError):
    """An unarchived relation already exists for the same key."""


class StoreError(SyncError):
    """A relation-store or deliverable-source database operation failed."""


class ServiceError(SyncError):
    """A Trello API call failed after retries."""

    def __init__(
        self,
        message: str,
        operation: str = "",
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message, operation)
        self.status_code = status_code
