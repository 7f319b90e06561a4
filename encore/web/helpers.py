"""
Helpers shared by the route modules: serialization and request bodies.
"""

from __future__ import annotations

from dataclasses import asdict, is_dataclass
from typing import Any

from pydantic import BaseModel, Field

from encore.core.durations import format_display


def to_dict(row: Any) -> dict[str, Any]:
    """
    Convert a row (dict or dataclass) to a dictionary.

    Songs additionally get a `display_duration` ("M:SS").
    """
    if isinstance(row, dict):
        return row
    if is_dataclass(row) and not isinstance(row, type):
        data = asdict(row)
        if "duration" in data and "setlist_id" in data:
            data["display_duration"] = format_display(data["duration"])
        return data
    raise TypeError(f"Cannot serialize {type(row).__name__}")


# =============================================================================
# Request bodies
# =============================================================================


class BandCreate(BaseModel):
    user_id: str
    name: str
    description: str | None = None


class MemberAdd(BaseModel):
    user_id: str
    role: str = "member"


class ProfileUpdate(BaseModel):
    display_name: str | None = None
    instrument: str | None = None
    photo_url: str | None = None
    band_id: str | None = None


class SetlistCreate(BaseModel):
    name: str
    description: str | None = None
    venue: str | None = None
    performed_on: str | None = None


class SetlistUpdate(BaseModel):
    name: str | None = None
    description: str | None = None
    venue: str | None = None
    performed_on: str | None = None


class SongCreate(BaseModel):
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


class SongUpdate(BaseModel):
    name: str | None = None
    artist: str | None = None
    album: str | None = None
    lyrics: str | None = None
    chords: str | None = None
    notes: str | None = None
    thumbnail_url: str | None = None
    duration: str | None = None
    tempo: int | None = None


class TrackImageBody(BaseModel):
    url: str
    width: int | None = None
    height: int | None = None


class TrackBody(BaseModel):
    """A search hit as returned by /api/search."""

    external_id: str
    title: str
    artists: list[str] = Field(default_factory=list)
    album: str | None = None
    duration_ms: int | None = None
    images: list[TrackImageBody] = Field(default_factory=list)
    popularity: int | None = None
    preview_url: str | None = None
    external_url: str | None = None
    release_date: str | None = None
    audio_key: int | None = None
    audio_mode: int | None = None


class SongImport(BaseModel):
    track: TrackBody
    user_id: str | None = None


class ReorderRequest(BaseModel):
    """Either `from_index` or `song_id` identifies the song to move."""

    to_index: int
    from_index: int | None = None
    song_id: str | None = None


class LyricsRequest(BaseModel):
    artist: str | None = None
    title: str | None = None
