"""
REST API Routes for Encore.

Provides REST endpoints for the web UI:
- /api/status: Server status
- /api/bands/*, /api/users/*: Bands, memberships and profiles
- /api/setlists/*: Setlists and their ordered songs

Core errors are mapped to HTTP status codes by the handlers registered in
`encore.web.server`.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, HTTPException

from encore import __version__
from encore.core.chords import extract_chords, parse_lyrics
from encore.core.db.models import NewSong
from encore.core.enrichment.enricher import import_track
from encore.core.enrichment.spotify import TrackImage, TrackMatch
from encore.web.helpers import (
    BandCreate,
    MemberAdd,
    ProfileUpdate,
    ReorderRequest,
    SetlistCreate,
    SetlistUpdate,
    SongCreate,
    SongImport,
    SongUpdate,
    to_dict,
)

if TYPE_CHECKING:
    from fastapi import FastAPI

    from encore.core.bands import BandService
    from encore.core.collection import CollectionRegistry, OrderedCollectionManager
    from encore.core.enrichment.enricher import SongEnricher

logger = logging.getLogger(__name__)


def register_api_routes(
    app: FastAPI,
    *,
    bands: BandService,
    collections: CollectionRegistry,
    enricher: SongEnricher,
) -> None:
    """
    Register API routes with the FastAPI app.

    Args:
        app: FastAPI application instance
        bands: Band/setlist/profile operations
        collections: Registry of per-setlist song managers
        enricher: Builds songs from search hits
    """
    router = APIRouter(tags=["api"])

    async def manager_for(setlist_id: str) -> OrderedCollectionManager:
        setlist = await bands.get_setlist(setlist_id)
        return await collections.get(setlist_id, band_id=setlist.band_id)

    def songs_payload(manager: OrderedCollectionManager) -> dict[str, Any]:
        songs = [to_dict(s) for s in manager.items]
        return {"setlist_id": manager.setlist_id, "count": len(songs), "songs": songs}

    # =========================================================================
    # Server Status
    # =========================================================================

    @router.get("/api/status")
    async def server_status() -> dict[str, Any]:
        """Get server status and basic info."""
        return {
            "server": "encore",
            "version": __version__,
            "active_setlists": len(collections),
        }

    # =========================================================================
    # Bands, members, profiles
    # =========================================================================

    @router.post("/api/bands", status_code=201)
    async def create_band(body: BandCreate) -> dict[str, Any]:
        band = await bands.create_band(body.user_id, body.name, body.description)
        return to_dict(band)

    @router.get("/api/bands/{band_id}")
    async def get_band(band_id: str) -> dict[str, Any]:
        band = await bands.get_band(band_id)
        members = await bands.members(band_id)
        return {**to_dict(band), "members": [to_dict(m) for m in members]}

    @router.post("/api/bands/{band_id}/members", status_code=201)
    async def join_band(band_id: str, body: MemberAdd) -> dict[str, Any]:
        member = await bands.join_band(body.user_id, band_id, role=body.role)
        return to_dict(member)

    @router.delete("/api/bands/{band_id}/members/{user_id}", status_code=204)
    async def leave_band(band_id: str, user_id: str) -> None:
        await bands.leave_band(user_id, band_id)

    @router.get("/api/users/{user_id}/bands")
    async def user_bands(user_id: str) -> dict[str, Any]:
        result = await bands.bands_for_user(user_id)
        return {"count": len(result), "bands": [to_dict(b) for b in result]}

    @router.get("/api/users/{user_id}/profile")
    async def get_profile(user_id: str) -> dict[str, Any]:
        profile = await bands.get_profile(user_id)
        if profile is None:
            raise HTTPException(status_code=404, detail="Profile not found")
        return to_dict(profile)

    @router.patch("/api/users/{user_id}/profile")
    async def update_profile(user_id: str, body: ProfileUpdate) -> dict[str, Any]:
        profile = await bands.update_profile(user_id, body.model_dump(exclude_unset=True))
        return to_dict(profile)

    # =========================================================================
    # Setlists
    # =========================================================================

    @router.get("/api/bands/{band_id}/setlists")
    async def list_setlists(band_id: str) -> dict[str, Any]:
        await bands.get_band(band_id)
        setlists = await bands.list_setlists(band_id)
        return {"count": len(setlists), "setlists": [to_dict(s) for s in setlists]}

    @router.post("/api/bands/{band_id}/setlists", status_code=201)
    async def create_setlist(band_id: str, body: SetlistCreate) -> dict[str, Any]:
        setlist = await bands.create_setlist(
            band_id,
            body.name,
            description=body.description,
            venue=body.venue,
            performed_on=body.performed_on,
        )
        return to_dict(setlist)

    @router.get("/api/setlists/{setlist_id}")
    async def get_setlist(setlist_id: str) -> dict[str, Any]:
        summary = await bands.setlist_summary(setlist_id)
        return {
            **to_dict(summary.setlist),
            "song_count": summary.song_count,
            "total_duration_seconds": summary.total_duration_seconds,
        }

    @router.patch("/api/setlists/{setlist_id}")
    async def update_setlist(setlist_id: str, body: SetlistUpdate) -> dict[str, Any]:
        fields = body.model_dump(exclude_unset=True)
        if not fields:
            raise HTTPException(status_code=400, detail="Nothing to update")
        setlist = await bands.update_setlist(setlist_id, fields)
        return to_dict(setlist)

    @router.delete("/api/setlists/{setlist_id}", status_code=204)
    async def delete_setlist(setlist_id: str) -> None:
        await bands.delete_setlist(setlist_id)
        collections.discard(setlist_id)

    # =========================================================================
    # Songs (ordered)
    # =========================================================================

    @router.get("/api/setlists/{setlist_id}/songs")
    async def list_songs(setlist_id: str, reload: bool = False) -> dict[str, Any]:
        manager = await manager_for(setlist_id)
        if reload:
            await manager.load()
        return songs_payload(manager)

    @router.post("/api/setlists/{setlist_id}/songs", status_code=201)
    async def add_song(setlist_id: str, body: SongCreate) -> dict[str, Any]:
        manager = await manager_for(setlist_id)
        song = await manager.insert(NewSong(**body.model_dump()))
        return to_dict(song)

    @router.post("/api/setlists/{setlist_id}/songs/import", status_code=201)
    async def import_song(setlist_id: str, body: SongImport) -> dict[str, Any]:
        """Add a song from a search hit, with lyrics and a chord suggestion when available."""
        manager = await manager_for(setlist_id)
        track_data = body.track.model_dump()
        track = TrackMatch(
            **{
                **track_data,
                "artists": tuple(track_data["artists"]),
                "images": tuple(TrackImage(**i) for i in track_data["images"]),
            }
        )
        created = await import_track(manager, enricher, track, user_id=body.user_id)
        return to_dict(created)

    @router.post("/api/setlists/{setlist_id}/reorder")
    async def reorder_songs(setlist_id: str, body: ReorderRequest) -> dict[str, Any]:
        manager = await manager_for(setlist_id)
        if body.song_id is not None:
            await manager.move(body.song_id, body.to_index)
        elif body.from_index is not None:
            await manager.reorder(body.from_index, body.to_index)
        else:
            raise HTTPException(status_code=400, detail="from_index or song_id is required")
        return songs_payload(manager)

    @router.patch("/api/setlists/{setlist_id}/songs/{song_id}")
    async def update_song(setlist_id: str, song_id: str, body: SongUpdate) -> dict[str, Any]:
        fields = body.model_dump(exclude_unset=True)
        if not fields:
            raise HTTPException(status_code=400, detail="Nothing to update")
        manager = await manager_for(setlist_id)
        song = await manager.update_fields(song_id, fields)
        return to_dict(song)

    @router.delete("/api/setlists/{setlist_id}/songs/{song_id}", status_code=204)
    async def delete_song(setlist_id: str, song_id: str) -> None:
        manager = await manager_for(setlist_id)
        await manager.remove(song_id)

    @router.get("/api/setlists/{setlist_id}/songs/{song_id}/chords")
    async def song_chords(setlist_id: str, song_id: str) -> dict[str, Any]:
        """Inline [Chord] markup of the lyrics, next to the generated progression."""
        manager = await manager_for(setlist_id)
        song = manager.items[manager.index_of(song_id)]
        return {
            "song_id": song.id,
            "generated": song.chords,
            "inline": extract_chords(song.lyrics),
            "lines": [
                [{"type": seg.kind, "content": seg.content} for seg in line]
                for line in parse_lyrics(song.lyrics)
            ],
        }

    app.include_router(router)
