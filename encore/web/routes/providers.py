"""
Provider proxy routes.

The browser cannot call the music APIs directly (CORS, secrets), so these
endpoints forward the request server-side:
- /api/search: track search
- /api/lyrics: lyrics lookup
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, HTTPException, Query

from encore.core.enrichment.results import LookupStatus
from encore.web.helpers import LyricsRequest

if TYPE_CHECKING:
    from fastapi import FastAPI

    from encore.core.enrichment.lyrics import LyricsClient
    from encore.core.enrichment.spotify import SpotifyClient

logger = logging.getLogger(__name__)


def register_provider_routes(
    app: FastAPI,
    *,
    spotify: SpotifyClient | None,
    lyrics: LyricsClient | None,
) -> None:
    """Register the search and lyrics proxy routes."""
    router = APIRouter(tags=["providers"])

    @router.get("/api/search")
    async def search_tracks(
        q: str = Query(..., min_length=1), limit: int = Query(20, ge=1, le=50)
    ) -> dict[str, Any]:
        if spotify is None:
            raise HTTPException(status_code=503, detail="Track search is not configured")
        result = await spotify.search(q, limit=limit)
        if result.status is LookupStatus.TRANSPORT_ERROR:
            raise HTTPException(status_code=502, detail=result.error or "Search failed")
        tracks = [t.to_dict() for t in result.value or ()]
        return {"query": q, "count": len(tracks), "tracks": tracks}

    @router.post("/api/lyrics")
    async def fetch_lyrics(body: LyricsRequest) -> dict[str, Any]:
        if not body.artist or not body.title:
            raise HTTPException(status_code=400, detail="Artist and title are required")
        if lyrics is None:
            raise HTTPException(status_code=503, detail="Lyrics lookup is not configured")
        result = await lyrics.fetch(body.artist, body.title)
        if not result.ok or result.value is None:
            raise HTTPException(status_code=404, detail="No lyrics found from any source")
        return result.value.to_dict()

    app.include_router(router)
