"""
Database schema + migrations for Encore.

- Connection management and the public `SqliteRecordStore` facade live in
  `encore.core.record_store`
- Schema creation, schema versioning, and forward-only migrations live here

Design notes:
- We use SQLite `PRAGMA user_version` as the schema version.
- Migrations are forward-only (no downgrade support).
- Ids are opaque text (uuid4 hex), timestamps are ISO-8601 UTC text so that
  lexical order equals chronological order.
"""

from __future__ import annotations

from typing import Final

import aiosqlite

# Bump when you change the schema and add a migration in `migrate()`.
SCHEMA_VERSION: Final[int] = 3


async def ensure_schema(conn: aiosqlite.Connection) -> None:
    """
    Create or migrate schema to current version.

    This function assumes:
    - `conn` is an open aiosqlite connection
    - foreign_keys pragma is enabled by the caller
    """
    cursor = await conn.execute("PRAGMA user_version;")
    row = await cursor.fetchone()
    current = int(row[0]) if row is not None else 0

    if current > SCHEMA_VERSION:
        raise RuntimeError(
            f"Database schema version {current} is newer than supported {SCHEMA_VERSION}."
        )

    if current == SCHEMA_VERSION:
        return

    await migrate(conn, from_version=current, to_version=SCHEMA_VERSION)
    await conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION};")
    await conn.commit()


async def migrate(conn: aiosqlite.Connection, *, from_version: int, to_version: int) -> None:
    """
    Perform forward-only migrations.

    Keep migrations small. If you need a big refactor, create a new DB.
    """
    # v0 -> v1: bands, members, profiles
    if from_version == 0 and to_version >= 1:
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS bands (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                description TEXT,
                created_by TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
            """
        )
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS band_members (
                id TEXT PRIMARY KEY,
                band_id TEXT NOT NULL REFERENCES bands(id) ON DELETE CASCADE,
                user_id TEXT NOT NULL,
                role TEXT NOT NULL DEFAULT 'member',
                joined_at TEXT NOT NULL,
                UNIQUE(band_id, user_id)
            )
            """
        )
        await conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_band_members_user ON band_members(user_id);"
        )
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS profiles (
                id TEXT PRIMARY KEY,
                display_name TEXT,
                instrument TEXT,
                photo_url TEXT,
                band_id TEXT REFERENCES bands(id) ON DELETE SET NULL,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
            """
        )
        await conn.commit()
        from_version = 1

    # v1 -> v2: setlists
    if from_version == 1 and to_version >= 2:
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS setlists (
                id TEXT PRIMARY KEY,
                band_id TEXT NOT NULL REFERENCES bands(id) ON DELETE CASCADE,
                name TEXT NOT NULL,
                description TEXT,
                venue TEXT,
                performed_on TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
            """
        )
        await conn.execute("CREATE INDEX IF NOT EXISTS idx_setlists_band ON setlists(band_id);")
        await conn.commit()
        from_version = 2

    # v2 -> v3: songs
    if from_version == 2 and to_version >= 3:
        # No UNIQUE(setlist_id, position): reorders write one row at a time,
        # so positions are transiently duplicated while a reorder is in flight.
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS songs (
                id TEXT PRIMARY KEY,
                setlist_id TEXT NOT NULL REFERENCES setlists(id) ON DELETE CASCADE,
                band_id TEXT NOT NULL REFERENCES bands(id) ON DELETE CASCADE,
                user_id TEXT,
                name TEXT NOT NULL,
                position INTEGER NOT NULL DEFAULT 0,

                artist TEXT,
                album TEXT,
                lyrics TEXT,
                chords TEXT,
                notes TEXT,
                thumbnail_url TEXT,
                duration TEXT,
                tempo INTEGER,

                spotify_id TEXT,
                spotify_url TEXT,
                release_date TEXT,
                popularity INTEGER,
                preview_url TEXT,

                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
            """
        )
        await conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_songs_setlist_position ON songs(setlist_id, position);"
        )
        await conn.execute("CREATE INDEX IF NOT EXISTS idx_songs_band ON songs(band_id);")
        await conn.commit()
        from_version = 3
