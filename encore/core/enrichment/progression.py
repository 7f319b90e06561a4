"""
Suggested chord progressions.

A deterministic lookup: (key, mode) -> four-chord progression. The key comes
from the search provider's audio analysis when available (Spotify pitch class
+ mode), else from a keyword heuristic over the title and artist, else C major.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final, Mapping

# Spotify pitch class notation: 0 = C, 1 = C#/Db, ...
PITCH_CLASSES: Final[tuple[str, ...]] = (
    "C", "Db", "D", "Eb", "E", "F", "F#", "G", "Ab", "A", "Bb", "B",
)  # fmt: skip

PROGRESSIONS: Final[Mapping[str, tuple[str, str, str, str]]] = {
    # Major keys (I-vi-IV-V)
    "C": ("C", "Am", "F", "G"),
    "G": ("G", "Em", "C", "D"),
    "D": ("D", "Bm", "G", "A"),
    "A": ("A", "F#m", "D", "E"),
    "E": ("E", "C#m", "A", "B"),
    "B": ("B", "G#m", "E", "F#"),
    "F#": ("F#", "D#m", "B", "C#"),
    "F": ("F", "Dm", "Bb", "C"),
    "Bb": ("Bb", "Gm", "Eb", "F"),
    "Eb": ("Eb", "Cm", "Ab", "Bb"),
    "Ab": ("Ab", "Fm", "Db", "Eb"),
    "Db": ("Db", "Bbm", "Gb", "Ab"),
    # Minor keys (i-VI-III-VII)
    "Am": ("Am", "F", "C", "G"),
    "Em": ("Em", "C", "G", "D"),
    "Bm": ("Bm", "G", "D", "A"),
    "F#m": ("F#m", "D", "A", "E"),
    "C#m": ("C#m", "A", "E", "B"),
    "G#m": ("G#m", "E", "B", "F#"),
    "D#m": ("D#m", "B", "F#", "C#"),
    "Dm": ("Dm", "Bb", "F", "C"),
    "Gm": ("Gm", "Eb", "Bb", "F"),
    "Cm": ("Cm", "Ab", "Eb", "Bb"),
    "Fm": ("Fm", "Db", "Ab", "Eb"),
    "Bbm": ("Bbm", "Gb", "Db", "Ab"),
}

MAJOR_PATTERN: Final = "I-vi-IV-V"
MINOR_PATTERN: Final = "i-VI-III-VII"

# First match wins.
_KEYWORD_KEYS: Final[tuple[tuple[tuple[str, ...], str], ...]] = (
    (("blue", "sad"), "Am"),
    (("happy", "bright"), "G"),
    (("rock", "metal"), "E"),
    (("country", "folk"), "G"),
    (("jazz",), "F"),
)


@dataclass(frozen=True, slots=True)
class ChordProgression:
    key: str
    chords: tuple[str, ...]
    pattern: str

    def format(self) -> str:
        """E.g. "G: G - Em - C - D (I-vi-IV-V)"."""
        return f"{self.key}: {' - '.join(self.chords)} ({self.pattern})"


def key_from_features(key: int | None, mode: int | None) -> tuple[str, str] | None:
    """
    Spotify pitch class + mode (1 = major, 0 = minor) -> (key name, mode).

    Minor keys get an "m" suffix. Returns None when either signal is missing.
    """
    if key is None or mode is None or not 0 <= key < len(PITCH_CLASSES):
        return None
    name = PITCH_CLASSES[key]
    if mode == 1:
        return name, "major"
    return f"{name}m", "minor"


def detect_key(title: str, artist: str) -> str:
    """Keyword heuristic over title + artist. Defaults to C."""
    text = f"{title} {artist}".lower()
    for keywords, key in _KEYWORD_KEYS:
        if any(k in text for k in keywords):
            return key
    return "C"


def generate_chord_progression(
    title: str,
    artist: str,
    *,
    key: int | None = None,
    mode: int | None = None,
) -> ChordProgression:
    """
    Suggest a four-chord progression for a song.

    Keys without an entry in the table (e.g. "Gbm") fall back to C major's
    progression but keep the detected key name.
    """
    detected = key_from_features(key, mode)
    if detected is not None:
        key_name, mode_name = detected
    else:
        # Heuristic keys only pick a progression; the pattern stays major.
        key_name, mode_name = detect_key(title or "", artist or ""), "major"

    chords = PROGRESSIONS.get(key_name, PROGRESSIONS["C"])
    pattern = MINOR_PATTERN if mode_name == "minor" else MAJOR_PATTERN
    return ChordProgression(key=key_name, chords=tuple(chords), pattern=pattern)
