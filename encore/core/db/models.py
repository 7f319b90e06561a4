"""
DB models (DTOs) and small normalization helpers.

This module is intentionally lightweight:
- No DB connection knowledge
- No SQL
- Pure dataclasses + helper functions

Every table the record store serves is described by a `TableSpec`, which is
the single source of truth for the column whitelist. Payload keys outside the
whitelist are rejected on write; extra columns on read are ignored.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any, Mapping


@dataclass(frozen=True, slots=True)
class SongRow:
    """
    Song record as stored in SQLite.

    Notes:
    - `position` defines the order within `setlist_id` (ascending).
    - `lyrics` may carry inline `[Chord]` markup; `chords` is a separate,
      generated progression. The two are never derived from each other.
    - `duration` is an interval string ("HH:MM:SS").
    """

    id: str
    setlist_id: str
    band_id: str
    name: str
    position: int
    created_at: str
    updated_at: str
    user_id: str | None = None
    artist: str | None = None
    album: str | None = None
    lyrics: str | None = None
    chords: str | None = None
    notes: str | None = None
    thumbnail_url: str | None = None
    duration: str | None = None
    tempo: int | None = None
    spotify_id: str | None = None
    spotify_url: str | None = None
    release_date: str | None = None
    popularity: int | None = None
    preview_url: str | None = None


@dataclass(frozen=True, slots=True)
class SetlistRow:
    """Setlist record. Song count and total duration are derived, not stored."""

    id: str
    band_id: str
    name: str
    created_at: str
    updated_at: str
    description: str | None = None
    venue: str | None = None
    performed_on: str | None = None


@dataclass(frozen=True, slots=True)
class BandRow:
    """Band record (the namespace songs and setlists belong to)."""

    id: str
    name: str
    created_at: str
    updated_at: str
    description: str | None = None
    created_by: str | None = None


@dataclass(frozen=True, slots=True)
class BandMemberRow:
    """Membership of a user in a band."""

    id: str
    band_id: str
    user_id: str
    joined_at: str
    role: str = "member"


@dataclass(frozen=True, slots=True)
class ProfileRow:
    """
    User profile.

    `id` is the user id handed to us by the auth provider, so unlike the
    other tables it is supplied by the caller.
    """

    id: str
    created_at: str
    updated_at: str
    display_name: str | None = None
    instrument: str | None = None
    photo_url: str | None = None
    band_id: str | None = None


@dataclass(frozen=True, slots=True)
class NewSong:
    """
    Input record for creating a song.

    `setlist_id`, `band_id` and `position` are filled in by the collection
    manager, so they are not part of this record.
    """

    name: str
    user_id: str | None = None
    artist: str | None = None
    album: str | None = None
    lyrics: str | None = None
    chords: str | None = None
    notes: str | None = None
    thumbnail_url: str | None = None
    duration: str | None = None
    tempo: int | None = None
    spotify_id: str | None = None
    spotify_url: str | None = None
    release_date: str | None = None
    popularity: int | None = None
    preview_url: str | None = None

    def to_record(self) -> dict[str, Any]:
        """Return the non-empty fields as a store payload."""
        record: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if f.name == "name":
                value = normalize_text(value) or ""
            elif isinstance(value, str):
                value = normalize_text(value)
            if value is not None:
                record[f.name] = value
        return record


@dataclass(frozen=True, slots=True)
class TableSpec:
    """
    Column whitelist and ownership rules for one table.

    - `server_columns` are assigned by the store and cannot be written by callers.
    - `created_columns` receive the creation timestamp on insert.
    - `touch_column` receives the current timestamp on every update.
    - `caller_id` allows callers to supply `id` on insert (profiles).
    """

    name: str
    row_type: type
    created_columns: tuple[str, ...] = ("created_at", "updated_at")
    touch_column: str | None = "updated_at"
    caller_id: bool = False
    columns: tuple[str, ...] = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "columns", tuple(f.name for f in fields(self.row_type)))

    @property
    def server_columns(self) -> tuple[str, ...]:
        owned = tuple(self.created_columns)
        if self.touch_column and self.touch_column not in owned:
            owned = (*owned, self.touch_column)
        return owned if self.caller_id else ("id", *owned)

    @property
    def writable_columns(self) -> tuple[str, ...]:
        return tuple(c for c in self.columns if c not in self.server_columns)


TABLES: dict[str, TableSpec] = {
    "songs": TableSpec(name="songs", row_type=SongRow),
    "setlists": TableSpec(name="setlists", row_type=SetlistRow),
    "bands": TableSpec(name="bands", row_type=BandRow),
    "band_members": TableSpec(
        name="band_members",
        row_type=BandMemberRow,
        created_columns=("joined_at",),
        touch_column=None,
    ),
    "profiles": TableSpec(name="profiles", row_type=ProfileRow, caller_id=True),
}


def row_from_mapping(row_type: type, data: Mapping[str, Any]) -> Any:
    """
    Build a typed row from a mapping (e.g. an `aiosqlite.Row`).

    Keys that are not fields of `row_type` are ignored.
    """
    keys = set(data.keys())
    kwargs = {f.name: data[f.name] for f in fields(row_type) if f.name in keys}
    return row_type(**kwargs)


def normalize_text(value: str | None) -> str | None:
    """
    Normalize optional text fields:
    - strip whitespace
    - coerce empty strings to None
    """
    if value is None:
        return None
    v = value.strip()
    return v if v else None
