"""
Internal DB subpackage for Encore.

This package splits the record store into focused units (models, schema/
migrations, and query helpers) while keeping `SqliteRecordStore` as the single
public interface that the rest of the codebase imports.

Re-exports here are primarily for convenience inside the `core` package.
External code should import the store from `encore.core.record_store`.
"""

from __future__ import annotations

# Models / DTOs
from .models import (
    TABLES,
    BandMemberRow,
    BandRow,
    NewSong,
    ProfileRow,
    SetlistRow,
    SongRow,
    TableSpec,
)

# Schema / migrations
from .schema import ensure_schema, migrate

__all__ = [
    # models
    "TABLES",
    "TableSpec",
    "SongRow",
    "SetlistRow",
    "BandRow",
    "BandMemberRow",
    "ProfileRow",
    "NewSong",
    # schema
    "ensure_schema",
    "migrate",
]
