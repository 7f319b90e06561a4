"""
Lyrics lookup.

Sources, in order of preference:
1. lyrics.ovh - free, returns the full text (confidence 0.8)
2. Genius search - only used when an access token is configured; Genius does
   not serve lyrics through its API, so the result is a link (confidence 0.7)

`fetch()` never raises. Transport problems and rate limiting are reported as
TRANSPORT_ERROR, a miss on every source as NOT_FOUND; callers treat both as
"no lyrics".
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from urllib.parse import quote

import httpx

from encore.core.enrichment.results import LookupResult, LookupStatus

logger = logging.getLogger(__name__)

LYRICS_OVH_URL = "https://api.lyrics.ovh/v1"
GENIUS_API_URL = "https://api.genius.com"


@dataclass(frozen=True, slots=True)
class Lyrics:
    text: str
    source: str
    confidence: float
    url: str | None = None

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {
            "lyrics": self.text,
            "source": self.source,
            "confidence": self.confidence,
        }
        if self.url:
            data["url"] = self.url
        return data


class LyricsClient:
    """Async lyrics client with a lyrics.ovh -> Genius fallback chain."""

    def __init__(
        self,
        *,
        genius_access_token: str | None = None,
        timeout: float = 8.0,
        http: httpx.AsyncClient | None = None,
        lyrics_ovh_url: str = LYRICS_OVH_URL,
        genius_url: str = GENIUS_API_URL,
    ) -> None:
        self._genius_token = genius_access_token
        self._lyrics_ovh_url = lyrics_ovh_url.rstrip("/")
        self._genius_url = genius_url.rstrip("/")
        self._owns_http = http is None
        self._http = http or httpx.AsyncClient(timeout=httpx.Timeout(timeout))

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def fetch(self, artist: str, title: str) -> LookupResult[Lyrics]:
        artist = (artist or "").strip()
        title = (title or "").strip()
        if not artist or not title:
            return LookupResult.not_found("artist and title are required")

        attempts = [await self._from_lyrics_ovh(artist, title)]
        if not attempts[0].ok and self._genius_token:
            attempts.append(await self._from_genius(artist, title))

        for attempt in attempts:
            if attempt.ok:
                return attempt

        errors = [a.error for a in attempts if a.status is LookupStatus.TRANSPORT_ERROR]
        if errors:
            logger.warning("Lyrics lookup for %r by %s failed: %s", title, artist, "; ".join(errors))
            return LookupResult.transport_error("; ".join(e or "" for e in errors))
        logger.info("No lyrics found for %r by %s", title, artist)
        return LookupResult.not_found(f"no lyrics for {title!r} by {artist}")

    async def _from_lyrics_ovh(self, artist: str, title: str) -> LookupResult[Lyrics]:
        url = f"{self._lyrics_ovh_url}/{quote(artist, safe='')}/{quote(title, safe='')}"
        try:
            response = await self._http.get(url)
        except httpx.HTTPError as exc:
            return LookupResult.transport_error(f"lyrics.ovh: {exc}")

        if response.status_code == 404:
            return LookupResult.not_found("lyrics.ovh: not found")
        if response.status_code != 200:
            return LookupResult.transport_error(f"lyrics.ovh returned {response.status_code}")

        try:
            text = (response.json().get("lyrics") or "").strip()
        except (ValueError, AttributeError) as exc:
            return LookupResult.transport_error(f"lyrics.ovh: malformed response: {exc}")
        if not text:
            return LookupResult.not_found("lyrics.ovh: empty lyrics")
        return LookupResult.success(Lyrics(text=text, source="lyrics.ovh", confidence=0.8))

    async def _from_genius(self, artist: str, title: str) -> LookupResult[Lyrics]:
        try:
            response = await self._http.get(
                f"{self._genius_url}/search",
                params={"q": f"{title} {artist}".strip()},
                headers={"Authorization": f"Bearer {self._genius_token}"},
            )
        except httpx.HTTPError as exc:
            return LookupResult.transport_error(f"genius: {exc}")

        if response.status_code != 200:
            return LookupResult.transport_error(f"genius returned {response.status_code}")

        try:
            hits = (response.json().get("response") or {}).get("hits") or []
        except (ValueError, AttributeError) as exc:
            return LookupResult.transport_error(f"genius: malformed response: {exc}")
        if not hits:
            return LookupResult.not_found("genius: no hits")

        song = hits[0].get("result") or {}
        song_url = song.get("url")
        if not song_url:
            return LookupResult.not_found("genius: hit without url")
        text = f"Lyrics available on Genius: {song_url}\n\n[Visit link for full lyrics]"
        return LookupResult.success(
            Lyrics(text=text, source="genius.com", confidence=0.7, url=song_url)
        )
