"""
Ordered song collections for Encore setlists.

This module owns the in-memory order of the songs in one setlist and keeps it
consistent with the record store.

Design decisions:
- Reorders are optimistic: the new order is visible immediately, position
  updates are then persisted one row at a time, concurrently.
- If any position update fails, the updates that did succeed are written
  back to their old positions (best effort), the local order is reloaded from
  the store and `ReorderError` is raised. Local state never silently diverges
  from what is persisted.
- Inserts, deletes and field edits are NOT optimistic: the local list only
  changes after the store confirmed the write.
- Overlapping operations are queued on an `asyncio.Lock` (never interleaved).
  A queued reorder uses the order produced by the one before it.
- Positions are densified (0..N-1) on every reorder; deletes leave gaps.
"""

from __future__ import annotations

import asyncio
import logging
from collections import OrderedDict
from enum import Enum
from typing import TYPE_CHECKING, Any, Mapping

from encore.core import FetchError, NotFoundError, ReorderError, ValidationError
from encore.core.db.models import NewSong, SongRow
from encore.core.events import SetlistChangedEvent
from encore.core.record_store import to_persist_error
from encore.core.reorder import (
    is_dense,
    move_item,
    next_position,
    position_changes,
    with_dense_positions,
)

if TYPE_CHECKING:
    from encore.core.events import EventBus
    from encore.core.record_store import RecordStore

logger = logging.getLogger(__name__)

SONGS_TABLE = "songs"

# Position ascending; newest first among equal (legacy, unordered) positions.
SONG_ORDER: tuple[tuple[str, str], ...] = (("position", "asc"), ("created_at", "desc"))

# Fields that only the manager itself may change.
ORDERING_FIELDS = frozenset({"position", "setlist_id", "band_id", "id"})


class ReorderState(Enum):
    """State of the most recent reorder."""

    IDLE = "idle"
    OPTIMISTIC_APPLIED = "optimistic_applied"
    CONFIRMED = "confirmed"
    REVERTING = "reverting"


class OrderedCollectionManager:
    """
    Authoritative in-memory ordering of the songs of one setlist.

    Usage:
        manager = OrderedCollectionManager(store, setlist_id, band_id=band_id)
        await manager.load()
        await manager.reorder(0, 2)

    `items` is a read-only snapshot; callers must not mutate songs behind
    the manager's back.
    """

    def __init__(
        self,
        store: RecordStore,
        setlist_id: str,
        *,
        band_id: str | None = None,
        events: EventBus | None = None,
    ) -> None:
        self._store = store
        self._setlist_id = setlist_id
        self._band_id = band_id
        self._events = events
        self._items: list[SongRow] = []
        self._lock = asyncio.Lock()
        self.state = ReorderState.IDLE

    @property
    def setlist_id(self) -> str:
        return self._setlist_id

    @property
    def items(self) -> tuple[SongRow, ...]:
        return tuple(self._items)

    @property
    def pending(self) -> bool:
        """True while an operation is in flight."""
        return self._lock.locked()

    def __len__(self) -> int:
        return len(self._items)

    def index_of(self, song_id: str) -> int:
        for index, song in enumerate(self._items):
            if song.id == song_id:
                return index
        raise NotFoundError(f"Song {song_id} is not in setlist {self._setlist_id}")

    # =========================================================================
    # Operations
    # =========================================================================

    async def load(self, setlist_id: str | None = None) -> tuple[SongRow, ...]:
        """
        Fetch all songs of the setlist and replace the local order wholesale.

        Passing a different `setlist_id` switches the active setlist. On failure
        the previous list (and active setlist) is kept and `FetchError` is raised.
        """
        async with self._lock:
            await self._load(setlist_id)
            await self._publish("loaded", [s.id for s in self._items])
            return self.items

    async def insert(self, song: NewSong, at_end: bool = True) -> SongRow:
        """
        Create a song at the end of the setlist.

        New songs always get `max(position) + 1` (0 when empty); `at_end=False`
        is accepted but callers move the song afterwards with `reorder`.
        """
        async with self._lock:
            record: dict[str, Any] = song.to_record()
            if not record.get("name"):
                raise ValidationError("A song needs a name")

            band_id = await self._resolve_band_id()
            position = next_position(self._items)
            record.update(setlist_id=self._setlist_id, band_id=band_id, position=position)

            try:
                created: SongRow = await self._store.insert(SONGS_TABLE, record)
            except Exception as exc:
                logger.warning("collection.insert failed for setlist %s: %s", self._setlist_id, exc)
                raise to_persist_error(f"Could not add song {record['name']!r}", exc) from exc

            self._items.append(created)
            logger.info(
                "collection.insert: setlist=%s song=%s position=%d len=%d at_end=%s",
                self._setlist_id,
                created.id,
                created.position,
                len(self._items),
                at_end,
            )
            await self._publish("added", [created.id])
            return created

    async def reorder(self, from_index: int, to_index: int) -> None:
        """
        Move the song at `from_index` to `to_index` and persist the new order.

        Raises:
            IndexError: an index is out of range (nothing happens).
            ReorderError: some position updates failed; the previous order was
                written back and reloaded.
            FetchError: the corrective reload failed too; the pre-reorder order
                is restored.
        """
        async with self._lock:
            await self._reorder(from_index, to_index)

    async def move(self, song_id: str, to_index: int) -> None:
        """Move a song (by id) to `to_index`."""
        async with self._lock:
            await self._reorder(self.index_of(song_id), to_index)

    async def remove(self, song_id: str) -> None:
        """Delete a song. Positions of the remaining songs are left as they are."""
        async with self._lock:
            index = self.index_of(song_id)
            try:
                await self._store.delete(SONGS_TABLE, song_id)
            except Exception as exc:
                logger.warning("collection.remove failed for song %s: %s", song_id, exc)
                raise to_persist_error(f"Could not delete song {song_id}", exc) from exc

            del self._items[index]
            logger.info(
                "collection.remove: setlist=%s song=%s len=%d",
                self._setlist_id,
                song_id,
                len(self._items),
            )
            await self._publish("removed", [song_id])

    async def update_fields(self, song_id: str, fields: Mapping[str, Any]) -> SongRow:
        """
        Persist non-ordering field edits and adopt the record the store returns.

        Ordering fields (`position`, `setlist_id`, ...) are rejected.
        """
        async with self._lock:
            forbidden = sorted(ORDERING_FIELDS.intersection(fields))
            if forbidden:
                raise ValidationError(
                    f"Field(s) {', '.join(forbidden)} cannot be edited directly; use reorder"
                )
            index = self.index_of(song_id)
            try:
                updated: SongRow = await self._store.update(SONGS_TABLE, song_id, dict(fields))
            except Exception as exc:
                logger.warning("collection.update_fields failed for song %s: %s", song_id, exc)
                raise to_persist_error(f"Could not update song {song_id}", exc) from exc

            self._items[index] = updated
            logger.debug("collection.update_fields: song=%s fields=%s", song_id, sorted(fields))
            await self._publish("updated", [song_id])
            return updated

    # =========================================================================
    # Internals (caller holds the lock)
    # =========================================================================

    async def _load(self, setlist_id: str | None = None) -> None:
        target = setlist_id or self._setlist_id
        try:
            rows = await self._store.list(SONGS_TABLE, {"setlist_id": target}, SONG_ORDER)
        except Exception as exc:
            logger.warning("collection.load failed for setlist %s: %s", target, exc)
            raise FetchError(f"Could not load setlist {target}: {exc}") from exc

        if target != self._setlist_id:
            self._setlist_id = target
            self._band_id = None
        self._items = list(rows)
        logger.debug("collection.load: setlist=%s len=%d", target, len(self._items))

    async def _reorder(self, from_index: int, to_index: int) -> None:
        size = len(self._items)
        if not (0 <= from_index < size and 0 <= to_index < size):
            raise IndexError(
                f"Cannot move {from_index} -> {to_index} in a setlist of {size} songs"
            )
        if from_index == to_index:
            return

        before = list(self._items)
        moved = move_item(before, from_index, to_index)
        changes = position_changes(moved)

        # Optimistic: the new order is visible before any I/O.
        self._items = with_dense_positions(moved)
        self.state = ReorderState.OPTIMISTIC_APPLIED
        logger.info(
            "collection.reorder: setlist=%s from=%d to=%d updates=%d",
            self._setlist_id,
            from_index,
            to_index,
            len(changes),
        )

        song_ids = list(changes)
        results = await asyncio.gather(
            *(
                self._store.update(SONGS_TABLE, song_id, {"position": changes[song_id]})
                for song_id in song_ids
            ),
            return_exceptions=True,
        )
        failed = [sid for sid, r in zip(song_ids, results) if isinstance(r, BaseException)]

        if not failed:
            confirmed = {sid: r for sid, r in zip(song_ids, results)}
            self._items = [confirmed.get(song.id, song) for song in self._items]
            self.state = ReorderState.CONFIRMED
            if not is_dense(self._items):
                logger.debug(
                    "collection.reorder: setlist %s positions not dense after confirm",
                    self._setlist_id,
                )
            await self._publish("reordered", [s.id for s in self._items])
            return

        self.state = ReorderState.REVERTING
        logger.warning(
            "collection.reorder: %d of %d position updates failed for setlist %s; reverting",
            len(failed),
            len(song_ids),
            self._setlist_id,
        )
        written = [sid for sid in song_ids if sid not in failed]
        await self._restore_positions(written, before)
        try:
            await self._load()
        except FetchError:
            self._items = before
            self.state = ReorderState.IDLE
            raise
        self.state = ReorderState.IDLE
        await self._publish("reverted", [s.id for s in self._items])
        raise ReorderError(
            f"{len(failed)} position update(s) failed; order reverted",
            failed_ids=failed,
            items=self._items,
        )

    async def _restore_positions(self, song_ids: list[str], before: list[SongRow]) -> None:
        """Best effort: write the pre-reorder position back for every song already moved."""
        if not song_ids:
            return
        old_positions = {song.id: song.position for song in before}
        results = await asyncio.gather(
            *(
                self._store.update(SONGS_TABLE, song_id, {"position": old_positions[song_id]})
                for song_id in song_ids
            ),
            return_exceptions=True,
        )
        for song_id, result in zip(song_ids, results):
            if isinstance(result, BaseException):
                logger.warning(
                    "collection.reorder: could not restore position of song %s: %s",
                    song_id,
                    result,
                )

    async def _resolve_band_id(self) -> str:
        if self._band_id is not None:
            return self._band_id
        try:
            setlist = await self._store.get("setlists", self._setlist_id)
        except Exception as exc:
            raise to_persist_error(f"Could not look up setlist {self._setlist_id}", exc) from exc
        if setlist is None:
            raise NotFoundError(f"Setlist {self._setlist_id} does not exist")
        self._band_id = setlist.band_id
        return setlist.band_id

    async def _publish(self, action: str, song_ids: list[str]) -> None:
        if self._events is None:
            return
        await self._events.publish(
            SetlistChangedEvent(setlist_id=self._setlist_id, action=action, song_ids=tuple(song_ids))
        )


class CollectionRegistry:
    """
    Manages one `OrderedCollectionManager` per active setlist.

    Managers are created and loaded on first use and shared afterwards, so
    concurrent requests against the same setlist are queued on the same lock.
    At most `max_managers` are kept; the least recently used idle manager is
    dropped first and simply reloads on its next use.
    """

    def __init__(
        self,
        store: RecordStore,
        *,
        events: EventBus | None = None,
        max_managers: int = 128,
    ) -> None:
        self._store = store
        self._events = events
        self._max_managers = max(1, max_managers)
        self._managers: OrderedDict[str, OrderedCollectionManager] = OrderedDict()
        self._lock = asyncio.Lock()

    async def get(self, setlist_id: str, *, band_id: str | None = None) -> OrderedCollectionManager:
        """
        Get (or create and load) the manager for a setlist.

        Raises:
            FetchError: the initial load failed; nothing is cached.
        """
        async with self._lock:
            manager = self._managers.get(setlist_id)
            if manager is not None:
                self._managers.move_to_end(setlist_id)
                return manager
            manager = OrderedCollectionManager(
                self._store, setlist_id, band_id=band_id, events=self._events
            )
            await manager.load()
            self._managers[setlist_id] = manager
            logger.debug("Created collection manager for setlist %s", setlist_id)
            self._evict(keep=setlist_id)
            return manager

    def _evict(self, *, keep: str) -> None:
        excess = len(self._managers) - self._max_managers
        if excess <= 0:
            return
        # Managers with queued operations stay until they are idle.
        idle = [
            sid for sid, m in self._managers.items() if sid != keep and not m.pending
        ]
        for setlist_id in idle[:excess]:
            del self._managers[setlist_id]
            logger.debug("Evicted collection manager for setlist %s", setlist_id)

    def discard(self, setlist_id: str) -> OrderedCollectionManager | None:
        """Forget a setlist's manager (e.g. after the setlist was deleted)."""
        return self._managers.pop(setlist_id, None)

    def __len__(self) -> int:
        return len(self._managers)

    def __contains__(self, setlist_id: str) -> bool:
        return setlist_id in self._managers
