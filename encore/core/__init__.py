"""
Core domain package.

This package contains business logic which should be independent of any UI layer
(web, CLI, etc.). The goal is to keep this layer small, testable, and free of
networking concerns.

The error taxonomy lives here so every layer can distinguish:
- FetchError: a load failed, nothing was mutated
- PersistError: a non-ordering mutation failed, nothing was mutated
- ReorderError: a reorder failed and the local view was corrected by a reload
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:
    from encore.core.db.models import SongRow

__all__: list[str] = [
    "CoreError",
    "FetchError",
    "PersistError",
    "NotFoundError",
    "ValidationError",
    "ReorderError",
    "Busy",
]


class CoreError(Exception):
    """Base class for core-layer exceptions."""


class FetchError(CoreError):
    """Raised when a collection (or any record set) could not be loaded."""


class PersistError(CoreError):
    """Raised when a create/update/delete could not be persisted."""


class NotFoundError(PersistError):
    """Raised when an entity (song/setlist/band/etc.) cannot be found."""


class ValidationError(PersistError):
    """Raised when a write was refused because its input is invalid."""


class ReorderError(CoreError):
    """
    Raised when one or more position updates of a reorder failed.

    By the time this is raised the manager has already reloaded the
    collection, so `items` is the corrected (server) order.
    """

    def __init__(
        self,
        message: str,
        *,
        failed_ids: Sequence[str] = (),
        items: Sequence[SongRow] = (),
    ) -> None:
        super().__init__(message)
        self.failed_ids: tuple[str, ...] = tuple(failed_ids)
        self.items: tuple[SongRow, ...] = tuple(items)


class Busy(CoreError):
    """Reserved for managers that reject overlapping operations instead of queueing."""
