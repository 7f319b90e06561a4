"""
Pure ordering helpers for setlist songs.

Nothing in here touches I/O. The collection manager composes these into the
optimistic-update / persist / reload cycle.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Sequence, TypeVar

from encore.core.db.models import SongRow

T = TypeVar("T")


def move_item(items: Sequence[T], from_index: int, to_index: int) -> list[T]:
    """
    Single-element list move.

    Removes the element at `from_index` and reinserts it at `to_index`.
    Elements strictly between the two indices shift by one; everything
    outside that range keeps its index.
    """
    size = len(items)
    if not 0 <= from_index < size:
        raise IndexError(f"from_index {from_index} out of range for {size} items")
    if not 0 <= to_index < size:
        raise IndexError(f"to_index {to_index} out of range for {size} items")

    result = list(items)
    if from_index == to_index:
        return result
    result.insert(to_index, result.pop(from_index))
    return result


def position_changes(songs: Sequence[SongRow]) -> dict[str, int]:
    """
    Map song id -> new dense position for every song whose stored position
    differs from its index.
    """
    return {song.id: index for index, song in enumerate(songs) if song.position != index}


def with_dense_positions(songs: Sequence[SongRow]) -> list[SongRow]:
    """Return the songs with `position` rewritten to match list index."""
    return [
        song if song.position == index else replace(song, position=index)
        for index, song in enumerate(songs)
    ]


def next_position(songs: Sequence[SongRow]) -> int:
    """
    Position for a song appended to the collection.

    `max(position) + 1`, so legacy gaps are preserved rather than filled;
    0 for an empty collection.
    """
    if not songs:
        return 0
    return max(song.position for song in songs) + 1


def is_dense(songs: Sequence[SongRow]) -> bool:
    """True when positions are exactly 0..N-1 in list order."""
    return all(song.position == index for index, song in enumerate(songs))
