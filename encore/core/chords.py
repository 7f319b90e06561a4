"""
Inline chord markup in lyrics.

Lyrics may carry chords inline, ChordPro style: "[G]Here comes the [C]sun".
These helpers read that markup. They are unrelated to the generated
`chords` field of a song.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Literal

CHORD_PATTERN = re.compile(
    r"\[([A-G][#b]?m?(?:maj7|min7|7|sus2|sus4|add9|6|9|11|13)?(?:/[A-G][#b]?)?)\]"
)


@dataclass(frozen=True, slots=True)
class Segment:
    kind: Literal["text", "chord"]
    content: str


def extract_chords(lyrics: str | None) -> list[str]:
    """Unique chords in order of first appearance."""
    if not lyrics:
        return []
    seen: dict[str, None] = {}
    for match in CHORD_PATTERN.finditer(lyrics):
        seen.setdefault(match.group(1), None)
    return list(seen)


def parse_line(line: str) -> list[Segment]:
    segments: list[Segment] = []
    cursor = 0
    for match in CHORD_PATTERN.finditer(line):
        if match.start() > cursor:
            segments.append(Segment("text", line[cursor : match.start()]))
        segments.append(Segment("chord", match.group(1)))
        cursor = match.end()
    if cursor < len(line):
        segments.append(Segment("text", line[cursor:]))
    return segments


def parse_lyrics(lyrics: str | None) -> list[list[Segment]]:
    """Split lyrics into lines of text/chord segments. Empty lines stay empty lists."""
    if not lyrics:
        return []
    return [parse_line(line) for line in lyrics.split("\n")]
