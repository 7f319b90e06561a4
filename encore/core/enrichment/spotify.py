"""
Spotify Web API client (track search + audio features).

Uses the client-credentials flow: no user login, only app credentials. The
access token is cached on the client instance and refreshed shortly before it
expires.

Every public method returns a `LookupResult`; nothing here raises on
transport, auth or rate-limit problems.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any

import httpx

from encore.core.durations import format_interval
from encore.core.enrichment.results import LookupResult

logger = logging.getLogger(__name__)

TOKEN_URL = "https://accounts.spotify.com/api/token"
API_URL = "https://api.spotify.com/v1"

# Refresh this many seconds before the token actually expires.
TOKEN_EXPIRY_MARGIN = 60


@dataclass(frozen=True, slots=True)
class TrackImage:
    url: str
    width: int | None = None
    height: int | None = None


@dataclass(frozen=True, slots=True)
class TrackMatch:
    """A search hit, reduced to what Encore stores."""

    external_id: str
    title: str
    artists: tuple[str, ...] = ()
    album: str | None = None
    duration_ms: int | None = None
    images: tuple[TrackImage, ...] = ()
    popularity: int | None = None
    preview_url: str | None = None
    external_url: str | None = None
    release_date: str | None = None
    # Audio analysis, when the provider already knows it.
    audio_key: int | None = None
    audio_mode: int | None = None

    @classmethod
    def from_api(cls, item: dict[str, Any]) -> TrackMatch:
        album = item.get("album") or {}
        images = tuple(
            TrackImage(url=img["url"], width=img.get("width"), height=img.get("height"))
            for img in album.get("images") or ()
            if img.get("url")
        )
        return cls(
            external_id=str(item.get("id", "")),
            title=str(item.get("name", "")),
            artists=tuple(a.get("name", "") for a in item.get("artists") or () if a.get("name")),
            album=album.get("name"),
            duration_ms=item.get("duration_ms"),
            images=images,
            popularity=item.get("popularity"),
            preview_url=item.get("preview_url"),
            external_url=(item.get("external_urls") or {}).get("spotify"),
            release_date=album.get("release_date"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "external_id": self.external_id,
            "title": self.title,
            "artists": list(self.artists),
            "album": self.album,
            "duration_ms": self.duration_ms,
            "images": [
                {"url": i.url, "width": i.width, "height": i.height} for i in self.images
            ],
            "popularity": self.popularity,
            "preview_url": self.preview_url,
            "external_url": self.external_url,
            "release_date": self.release_date,
            "audio_key": self.audio_key,
            "audio_mode": self.audio_mode,
        }


@dataclass(frozen=True, slots=True)
class AudioFeatures:
    key: int | None = None
    mode: int | None = None
    tempo: float | None = None


def best_image_url(images: tuple[TrackImage, ...] | list[TrackImage]) -> str | None:
    """
    Pick a thumbnail: prefer a medium image (250-400 px wide), else the largest.
    """
    if not images:
        return None
    by_width = sorted(images, key=lambda i: i.width or 0, reverse=True)
    for image in by_width:
        if image.width is not None and 250 <= image.width <= 400:
            return image.url
    return by_width[0].url


def track_to_song_fields(track: TrackMatch) -> dict[str, Any]:
    """Base song fields from a search hit (name, artist, duration, artwork, ids)."""
    return {
        "name": track.title,
        "artist": ", ".join(track.artists) or None,
        "duration": format_interval(track.duration_ms),
        "thumbnail_url": best_image_url(track.images),
        "album": track.album,
        "spotify_id": track.external_id or None,
        "spotify_url": track.external_url,
        "release_date": track.release_date,
        "popularity": track.popularity,
        "preview_url": track.preview_url,
    }


class SpotifyClient:
    """
    Minimal async Spotify client.

    Usage:
        client = SpotifyClient(client_id, client_secret)
        result = await client.search("wonderwall", limit=5)
        if result.ok:
            ...
        await client.aclose()
    """

    def __init__(
        self,
        client_id: str | None,
        client_secret: str | None,
        *,
        market: str = "US",
        timeout: float = 10.0,
        http: httpx.AsyncClient | None = None,
        token_url: str = TOKEN_URL,
        api_url: str = API_URL,
    ) -> None:
        self._client_id = client_id
        self._client_secret = client_secret
        self._market = market
        self._token_url = token_url
        self._api_url = api_url.rstrip("/")
        self._owns_http = http is None
        self._http = http or httpx.AsyncClient(timeout=httpx.Timeout(timeout))
        self._token: str | None = None
        self._token_expires_at = 0.0

    @property
    def configured(self) -> bool:
        return bool(self._client_id and self._client_secret)

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def search(self, query: str, limit: int = 20) -> LookupResult[list[TrackMatch]]:
        """Search tracks. An empty hit list is NOT_FOUND."""
        query = query.strip()
        if not query:
            return LookupResult.not_found("empty query")
        limit = max(1, min(int(limit), 50))

        data = await self._get(
            "/search",
            params={"q": query, "type": "track", "limit": str(limit), "market": self._market},
        )
        if not data.ok:
            return LookupResult(data.status, error=data.error)

        items = ((data.value or {}).get("tracks") or {}).get("items") or []
        matches = [TrackMatch.from_api(item) for item in items if item]
        if not matches:
            return LookupResult.not_found(f"no tracks for {query!r}")
        logger.debug("Spotify search %r -> %d tracks", query, len(matches))
        return LookupResult.success(matches)

    async def audio_features(self, track_id: str) -> LookupResult[AudioFeatures]:
        """Key/mode/tempo for a track. Missing analysis is NOT_FOUND."""
        data = await self._get(f"/audio-features/{track_id}")
        if not data.ok:
            return LookupResult(data.status, error=data.error)
        payload = data.value or {}
        key = payload.get("key")
        # Spotify reports -1 when no key was detected.
        features = AudioFeatures(
            key=key if isinstance(key, int) and key >= 0 else None,
            mode=payload.get("mode"),
            tempo=payload.get("tempo"),
        )
        if features.key is None and features.mode is None:
            return LookupResult.not_found("no audio analysis")
        return LookupResult.success(features)

    # =========================================================================
    # Internals
    # =========================================================================

    async def _access_token(self) -> LookupResult[str]:
        if self._token and time.monotonic() < self._token_expires_at:
            return LookupResult.success(self._token)
        if not self.configured:
            return LookupResult.transport_error("Spotify credentials are not configured")

        try:
            response = await self._http.post(
                self._token_url,
                data={"grant_type": "client_credentials"},
                auth=(self._client_id or "", self._client_secret or ""),
            )
        except httpx.HTTPError as exc:
            logger.warning("Spotify token request failed: %s", exc)
            return LookupResult.transport_error(f"token request failed: {exc}")

        if response.status_code != 200:
            logger.warning("Spotify token request returned %d", response.status_code)
            return LookupResult.transport_error(f"token request returned {response.status_code}")

        try:
            payload = response.json()
            token = str(payload["access_token"])
            expires_in = int(payload.get("expires_in", 3600))
        except (ValueError, KeyError, TypeError) as exc:
            return LookupResult.transport_error(f"malformed token response: {exc}")

        self._token = token
        self._token_expires_at = time.monotonic() + max(0, expires_in - TOKEN_EXPIRY_MARGIN)
        return LookupResult.success(token)

    async def _get(self, path: str, params: dict[str, str] | None = None) -> LookupResult[dict]:
        token = await self._access_token()
        if not token.ok:
            return LookupResult(token.status, error=token.error)

        try:
            response = await self._http.get(
                f"{self._api_url}{path}",
                params=params,
                headers={"Authorization": f"Bearer {token.value}"},
            )
        except httpx.HTTPError as exc:
            logger.warning("Spotify request %s failed: %s", path, exc)
            return LookupResult.transport_error(str(exc))

        if response.status_code == 404:
            return LookupResult.not_found(f"{path} not found")
        if response.status_code == 401:
            # Token revoked or expired early; force a refresh next time.
            self._token = None
        if response.status_code != 200:
            logger.warning("Spotify request %s returned %d", path, response.status_code)
            return LookupResult.transport_error(f"{path} returned {response.status_code}")

        try:
            return LookupResult.success(response.json())
        except ValueError as exc:
            return LookupResult.transport_error(f"malformed response: {exc}")
