"""
Song enrichment: merge a search hit with best-effort lyrics and chords.

Merge policy:
- name, artist, duration (and artwork/ids) come from the search hit and are
  always present.
- lyrics and the key used for the chord suggestion come from independent
  lookups, run concurrently, each with its own timeout. A failed, slow or
  empty lookup only leaves its field out; it never fails the song.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Awaitable, Protocol, TypeVar

from encore.core.db.models import NewSong, SongRow
from encore.core.enrichment.progression import generate_chord_progression
from encore.core.enrichment.results import LookupResult
from encore.core.enrichment.spotify import AudioFeatures, TrackMatch, track_to_song_fields

if TYPE_CHECKING:
    from encore.core.collection import OrderedCollectionManager
    from encore.core.enrichment.lyrics import Lyrics

logger = logging.getLogger(__name__)

T = TypeVar("T")


class LyricsProvider(Protocol):
    async def fetch(self, artist: str, title: str) -> LookupResult[Lyrics]: ...


class AudioFeaturesProvider(Protocol):
    async def audio_features(self, track_id: str) -> LookupResult[AudioFeatures]: ...


class SongEnricher:
    """Builds a `NewSong` from a search hit plus optional enrichment."""

    def __init__(
        self,
        *,
        lyrics: LyricsProvider | None = None,
        features: AudioFeaturesProvider | None = None,
        lyrics_timeout: float = 8.0,
        features_timeout: float = 5.0,
    ) -> None:
        self._lyrics = lyrics
        self._features = features
        self._lyrics_timeout = lyrics_timeout
        self._features_timeout = features_timeout

    async def enrich(self, track: TrackMatch, *, user_id: str | None = None) -> NewSong:
        base = track_to_song_fields(track)
        lyrics_result, features_result = await asyncio.gather(
            self._lookup_lyrics(base["artist"] or "", track.title),
            self._lookup_features(track),
        )

        lyrics = lyrics_result.value.text if lyrics_result.ok else None
        features = features_result.value if features_result.ok else None
        progression = generate_chord_progression(
            track.title,
            base["artist"] or "",
            key=features.key if features else None,
            mode=features.mode if features else None,
        )
        tempo = round(features.tempo) if features and features.tempo else None

        logger.info(
            "Enriched %r: lyrics=%s key=%s",
            track.title,
            lyrics_result.status.value,
            progression.key,
        )
        return NewSong(
            **base,
            user_id=user_id,
            lyrics=lyrics,
            chords=progression.format(),
            tempo=tempo,
        )

    async def _lookup_lyrics(self, artist: str, title: str) -> LookupResult[Lyrics]:
        if self._lyrics is None or not artist:
            return LookupResult.not_found("lyrics lookup skipped")
        return await self._bounded(
            "lyrics", self._lyrics.fetch(artist, title), self._lyrics_timeout
        )

    async def _lookup_features(self, track: TrackMatch) -> LookupResult[AudioFeatures]:
        # The search hit may already carry the audio analysis.
        if track.audio_key is not None and track.audio_mode is not None:
            return LookupResult.success(AudioFeatures(key=track.audio_key, mode=track.audio_mode))
        if self._features is None or not track.external_id:
            return LookupResult.not_found("audio features lookup skipped")
        return await self._bounded(
            "audio features",
            self._features.audio_features(track.external_id),
            self._features_timeout,
        )

    @staticmethod
    async def _bounded(
        label: str, lookup: Awaitable[LookupResult[T]], timeout: float
    ) -> LookupResult[T]:
        """Run a lookup with a timeout; any failure becomes a TRANSPORT_ERROR result."""
        try:
            return await asyncio.wait_for(lookup, timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("%s lookup timed out after %.1fs", label, timeout)
            return LookupResult.transport_error(f"{label} lookup timed out")
        except Exception as exc:
            logger.warning("%s lookup failed: %s", label, exc)
            return LookupResult.transport_error(f"{label} lookup failed: {exc}")


async def import_track(
    manager: OrderedCollectionManager,
    enricher: SongEnricher,
    track: TrackMatch,
    *,
    user_id: str | None = None,
) -> SongRow:
    """
    Enrich a search hit and add it to the end of the manager's setlist.

    Only persistence failures surface (as `PersistError`).
    """
    song = await enricher.enrich(track, user_id=user_id)
    return await manager.insert(song)
