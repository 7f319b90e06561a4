"""
Metadata enrichment for new songs.

- `spotify`: track search + audio features
- `lyrics`: lyrics lookup (lyrics.ovh, Genius fallback)
- `progression`: deterministic chord progression suggestions
- `enricher`: the merge policy that turns a search hit into a `NewSong`
"""

from __future__ import annotations

from encore.core.enrichment.enricher import SongEnricher, import_track
from encore.core.enrichment.lyrics import Lyrics, LyricsClient
from encore.core.enrichment.progression import ChordProgression, generate_chord_progression
from encore.core.enrichment.results import LookupResult, LookupStatus
from encore.core.enrichment.spotify import AudioFeatures, SpotifyClient, TrackMatch

__all__ = [
    "AudioFeatures",
    "ChordProgression",
    "LookupResult",
    "LookupStatus",
    "Lyrics",
    "LyricsClient",
    "SongEnricher",
    "SpotifyClient",
    "TrackMatch",
    "generate_chord_progression",
    "import_track",
]
