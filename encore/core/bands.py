"""
Bands, memberships, profiles and setlists.

These are plain record-store operations without any ordering concerns; the
songs inside a setlist are owned by `encore.core.collection`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Mapping, TypeVar

from encore.core import FetchError, NotFoundError, ValidationError
from encore.core.db.models import BandMemberRow, BandRow, ProfileRow, SetlistRow, normalize_text
from encore.core.durations import total_seconds
from encore.core.record_store import to_persist_error

if TYPE_CHECKING:
    from encore.core.record_store import RecordStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

ROLE_ADMIN = "admin"
ROLE_MEMBER = "member"


@dataclass(frozen=True, slots=True)
class SetlistSummary:
    setlist: SetlistRow
    song_count: int
    total_duration_seconds: int


class BandService:
    """
    High-level operations on bands and their setlists.

    All methods translate store failures: reads raise `FetchError`, writes
    raise `PersistError` (or its `NotFoundError`/`ValidationError` subclasses).
    """

    def __init__(self, store: RecordStore) -> None:
        self._store = store

    # =========================================================================
    # Bands
    # =========================================================================

    async def create_band(
        self, user_id: str, name: str, description: str | None = None
    ) -> BandRow:
        """Create a band, make the creator its admin and point their profile at it."""
        if not normalize_text(name):
            raise ValidationError("A band needs a name")
        band: BandRow = await self._write(
            "Could not create band",
            self._store.insert(
                "bands",
                {
                    "name": normalize_text(name) or "",
                    "description": normalize_text(description),
                    "created_by": user_id,
                },
            ),
        )
        await self._write(
            "Could not add band admin",
            self._store.insert(
                "band_members", {"band_id": band.id, "user_id": user_id, "role": ROLE_ADMIN}
            ),
        )
        await self.update_profile(user_id, {"band_id": band.id})
        logger.info("Created band %s (%s) for user %s", band.id, band.name, user_id)
        return band

    async def get_band(self, band_id: str) -> BandRow:
        band = await self._read(f"Could not load band {band_id}", self._store.get("bands", band_id))
        if band is None:
            raise NotFoundError(f"Band {band_id} does not exist")
        return band

    async def join_band(
        self, user_id: str, band_id: str, role: str = ROLE_MEMBER
    ) -> BandMemberRow:
        """Join an existing band. Joining twice returns the existing membership."""
        await self.get_band(band_id)
        existing = await self._membership(user_id, band_id)
        if existing is not None:
            return existing

        member: BandMemberRow = await self._write(
            "Could not join band",
            self._store.insert("band_members", {"band_id": band_id, "user_id": user_id, "role": role}),
        )
        await self.update_profile(user_id, {"band_id": band_id})
        logger.info("User %s joined band %s as %s", user_id, band_id, role)
        return member

    async def leave_band(self, user_id: str, band_id: str) -> None:
        membership = await self._membership(user_id, band_id)
        if membership is None:
            raise NotFoundError(f"User {user_id} is not a member of band {band_id}")
        await self._write("Could not leave band", self._store.delete("band_members", membership.id))

        profile = await self.get_profile(user_id)
        if profile is not None and profile.band_id == band_id:
            await self.update_profile(user_id, {"band_id": None})
        logger.info("User %s left band %s", user_id, band_id)

    async def members(self, band_id: str) -> list[BandMemberRow]:
        return await self._read(
            f"Could not load members of band {band_id}",
            self._store.list("band_members", {"band_id": band_id}, [("joined_at", "asc")]),
        )

    async def bands_for_user(self, user_id: str) -> list[BandRow]:
        memberships: list[BandMemberRow] = await self._read(
            f"Could not load bands of user {user_id}",
            self._store.list("band_members", {"user_id": user_id}, [("joined_at", "asc")]),
        )
        bands: list[BandRow] = []
        for membership in memberships:
            band = await self._read(
                f"Could not load band {membership.band_id}",
                self._store.get("bands", membership.band_id),
            )
            if band is not None:
                bands.append(band)
        return bands

    async def _membership(self, user_id: str, band_id: str) -> BandMemberRow | None:
        rows = await self._read(
            "Could not load membership",
            self._store.list("band_members", {"user_id": user_id, "band_id": band_id}),
        )
        return rows[0] if rows else None

    # =========================================================================
    # Profiles
    # =========================================================================

    async def get_profile(self, user_id: str) -> ProfileRow | None:
        return await self._read(
            f"Could not load profile {user_id}", self._store.get("profiles", user_id)
        )

    async def update_profile(self, user_id: str, fields: Mapping[str, Any]) -> ProfileRow:
        """Insert-or-update the user's profile."""
        existing = await self.get_profile(user_id)
        if existing is None:
            return await self._write(
                "Could not create profile",
                self._store.insert("profiles", {"id": user_id, **fields}),
            )
        return await self._write(
            "Could not update profile", self._store.update("profiles", user_id, dict(fields))
        )

    # =========================================================================
    # Setlists
    # =========================================================================

    async def create_setlist(
        self,
        band_id: str,
        name: str,
        *,
        description: str | None = None,
        venue: str | None = None,
        performed_on: str | None = None,
    ) -> SetlistRow:
        if not normalize_text(name):
            raise ValidationError("A setlist needs a name")
        await self.get_band(band_id)
        setlist: SetlistRow = await self._write(
            "Could not create setlist",
            self._store.insert(
                "setlists",
                {
                    "band_id": band_id,
                    "name": normalize_text(name) or "",
                    "description": normalize_text(description),
                    "venue": normalize_text(venue),
                    "performed_on": normalize_text(performed_on),
                },
            ),
        )
        logger.info("Created setlist %s (%s) in band %s", setlist.id, setlist.name, band_id)
        return setlist

    async def get_setlist(self, setlist_id: str) -> SetlistRow:
        setlist = await self._read(
            f"Could not load setlist {setlist_id}", self._store.get("setlists", setlist_id)
        )
        if setlist is None:
            raise NotFoundError(f"Setlist {setlist_id} does not exist")
        return setlist

    async def list_setlists(self, band_id: str) -> list[SetlistRow]:
        return await self._read(
            f"Could not load setlists of band {band_id}",
            self._store.list("setlists", {"band_id": band_id}, [("created_at", "desc")]),
        )

    async def update_setlist(self, setlist_id: str, fields: Mapping[str, Any]) -> SetlistRow:
        return await self._write(
            f"Could not update setlist {setlist_id}",
            self._store.update("setlists", setlist_id, dict(fields)),
        )

    async def delete_setlist(self, setlist_id: str) -> None:
        """Delete a setlist; its songs go with it (ON DELETE CASCADE)."""
        await self._write(
            f"Could not delete setlist {setlist_id}", self._store.delete("setlists", setlist_id)
        )
        logger.info("Deleted setlist %s", setlist_id)

    async def setlist_summary(self, setlist_id: str) -> SetlistSummary:
        """Setlist plus derived song count and total duration."""
        setlist = await self.get_setlist(setlist_id)
        songs = await self._read(
            f"Could not load songs of setlist {setlist_id}",
            self._store.list("songs", {"setlist_id": setlist_id}),
        )
        return SetlistSummary(
            setlist=setlist,
            song_count=len(songs),
            total_duration_seconds=total_seconds(s.duration for s in songs),
        )

    # =========================================================================
    # Error translation
    # =========================================================================

    @staticmethod
    async def _read(message: str, op: Awaitable[T]) -> T:
        try:
            return await op
        except Exception as exc:
            logger.warning("%s: %s", message, exc)
            raise FetchError(f"{message}: {exc}") from exc

    @staticmethod
    async def _write(message: str, op: Awaitable[T]) -> T:
        try:
            return await op
        except Exception as exc:
            logger.warning("%s: %s", message, exc)
            raise to_persist_error(message, exc) from exc
