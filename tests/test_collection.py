"""
Tests for OrderedCollectionManager and CollectionRegistry.

Tests cover:
- Loading and the (position asc, created_at desc) order
- Optimistic reorders, persisted one row at a time
- Partial failure: written positions are put back, then reload and ReorderError
- Reload failure: the pre-reorder order is restored and FetchError raised
- Queued (serialized) operations
- Non-optimistic insert/remove/update_fields
- Change events
"""

from __future__ import annotations

import asyncio

import pytest

from encore.core import FetchError, NotFoundError, PersistError, ReorderError, ValidationError
from encore.core.collection import (
    CollectionRegistry,
    OrderedCollectionManager,
    ReorderState,
)
from encore.core.db.models import NewSong
from encore.core.events import EventBus, SetlistChangedEvent
from encore.core.record_store import StoreError

from conftest import FakeStore


def ids(manager: OrderedCollectionManager) -> list[str]:
    return [song.id for song in manager.items]


def positions(manager: OrderedCollectionManager) -> list[int]:
    return [song.position for song in manager.items]


@pytest.fixture
def store(fake_store: FakeStore) -> FakeStore:
    fake_store.add_setlist()
    return fake_store


@pytest.fixture
async def manager(store: FakeStore) -> OrderedCollectionManager:
    store.add_songs(["A", "B", "C", "D"])
    mgr = OrderedCollectionManager(store, "set-1")
    await mgr.load()
    return mgr


# =============================================================================
# Load
# =============================================================================


class TestLoad:
    """Tests for loading a setlist."""

    async def test_load_orders_by_position(self, store: FakeStore) -> None:
        store.add_songs(["C", "A", "B"], positions=[2, 0, 1])
        mgr = OrderedCollectionManager(store, "set-1")

        items = await mgr.load()

        assert [s.id for s in items] == ["A", "B", "C"]
        assert len(mgr) == 3

    async def test_equal_positions_newest_first(self, store: FakeStore) -> None:
        store.add_songs(["old", "new"], positions=[0, 0])
        mgr = OrderedCollectionManager(store, "set-1")

        await mgr.load()

        assert ids(mgr) == ["new", "old"]

    async def test_load_only_own_setlist(self, store: FakeStore) -> None:
        store.add_setlist("set-2")
        store.add_songs(["A"])
        store.add_songs(["X"], setlist_id="set-2")
        mgr = OrderedCollectionManager(store, "set-1")

        await mgr.load()

        assert ids(mgr) == ["A"]

    async def test_load_switches_setlist(self, store: FakeStore) -> None:
        store.add_setlist("set-2")
        store.add_songs(["A"])
        store.add_songs(["X", "Y"], setlist_id="set-2")
        mgr = OrderedCollectionManager(store, "set-1")
        await mgr.load()

        await mgr.load("set-2")

        assert mgr.setlist_id == "set-2"
        assert ids(mgr) == ["X", "Y"]

    async def test_load_failure_keeps_previous_list(
        self, store: FakeStore, manager: OrderedCollectionManager
    ) -> None:
        store.fail_list = True

        with pytest.raises(FetchError):
            await manager.load()

        assert ids(manager) == ["A", "B", "C", "D"]

    async def test_items_is_snapshot(self, manager: OrderedCollectionManager) -> None:
        assert isinstance(manager.items, tuple)

    async def test_index_of(self, manager: OrderedCollectionManager) -> None:
        assert manager.index_of("C") == 2
        with pytest.raises(NotFoundError):
            manager.index_of("nope")


# =============================================================================
# Reorder
# =============================================================================


class TestReorder:
    """Tests for optimistic reorders."""

    async def test_reorder_moves_and_persists(
        self, store: FakeStore, manager: OrderedCollectionManager
    ) -> None:
        await manager.reorder(0, 2)

        assert ids(manager) == ["B", "C", "A", "D"]
        assert positions(manager) == [0, 1, 2, 3]
        assert store.positions() == {"A": 2, "B": 0, "C": 1, "D": 3}
        assert manager.state is ReorderState.CONFIRMED

    async def test_only_changed_rows_are_written(
        self, store: FakeStore, manager: OrderedCollectionManager
    ) -> None:
        await manager.reorder(0, 2)

        written = {call[1]: call[2] for call in store.update_calls}
        assert written == {"B": {"position": 0}, "C": {"position": 1}, "A": {"position": 2}}

    async def test_move_last_to_first(self, store: FakeStore) -> None:
        store.add_songs(["X", "Y", "Z"])
        mgr = OrderedCollectionManager(store, "set-1")
        await mgr.load()

        await mgr.reorder(2, 0)

        assert ids(mgr) == ["Z", "X", "Y"]
        assert len(store.update_calls) == 3
        assert store.positions() == {"Z": 0, "X": 1, "Y": 2}

    async def test_same_index_is_noop(
        self, store: FakeStore, manager: OrderedCollectionManager
    ) -> None:
        await manager.reorder(1, 1)

        assert store.update_calls == []
        assert ids(manager) == ["A", "B", "C", "D"]

    @pytest.mark.parametrize("from_index,to_index", [(-1, 0), (0, 4), (4, 0)])
    async def test_out_of_range(
        self,
        store: FakeStore,
        manager: OrderedCollectionManager,
        from_index: int,
        to_index: int,
    ) -> None:
        with pytest.raises(IndexError):
            await manager.reorder(from_index, to_index)

        assert store.update_calls == []
        assert ids(manager) == ["A", "B", "C", "D"]

    async def test_reorder_is_permutation(self, manager: OrderedCollectionManager) -> None:
        await manager.reorder(3, 1)

        assert sorted(ids(manager)) == ["A", "B", "C", "D"]
        assert len(set(ids(manager))) == 4

    async def test_reorder_densifies_gaps(self, store: FakeStore) -> None:
        store.add_songs(["A", "B", "C"], positions=[0, 2, 5])
        mgr = OrderedCollectionManager(store, "set-1")
        await mgr.load()

        await mgr.reorder(2, 0)

        assert ids(mgr) == ["C", "A", "B"]
        assert store.positions() == {"C": 0, "A": 1, "B": 2}

    async def test_optimistic_order_visible_before_persist(
        self, store: FakeStore, manager: OrderedCollectionManager
    ) -> None:
        store.gate = asyncio.Event()

        task = asyncio.create_task(manager.reorder(0, 2))
        await asyncio.sleep(0)
        while len(store.update_calls) < 3:
            await asyncio.sleep(0)

        assert ids(manager) == ["B", "C", "A", "D"]
        assert positions(manager) == [0, 1, 2, 3]
        assert manager.state is ReorderState.OPTIMISTIC_APPLIED
        assert manager.pending
        # Nothing persisted yet
        assert store.positions() == {"A": 0, "B": 1, "C": 2, "D": 3}

        store.gate.set()
        await task

        assert not manager.pending
        assert manager.state is ReorderState.CONFIRMED

    async def test_move_by_id(self, store: FakeStore, manager: OrderedCollectionManager) -> None:
        await manager.move("D", 0)

        assert ids(manager) == ["D", "A", "B", "C"]
        assert store.positions() == {"D": 0, "A": 1, "B": 2, "C": 3}

    async def test_move_unknown_id(self, manager: OrderedCollectionManager) -> None:
        with pytest.raises(NotFoundError):
            await manager.move("nope", 0)


class TestReorderFailure:
    """Tests for partial persistence failure."""

    async def test_partial_failure_reverts_to_original_order(
        self, store: FakeStore, manager: OrderedCollectionManager
    ) -> None:
        store.fail_update_ids = {"C"}

        with pytest.raises(ReorderError) as exc_info:
            await manager.reorder(0, 2)

        # B and A were written, then put back.
        assert ("songs", "A", {"position": 0}) in store.update_calls[3:]
        assert ("songs", "B", {"position": 1}) in store.update_calls[3:]
        assert store.positions() == {"A": 0, "B": 1, "C": 2, "D": 3}
        assert ids(manager) == ["A", "B", "C", "D"]
        assert positions(manager) == [0, 1, 2, 3]
        assert exc_info.value.failed_ids == ("C",)
        assert [s.id for s in exc_info.value.items] == ids(manager)
        assert manager.state is ReorderState.IDLE

    async def test_all_updates_attempted(
        self, store: FakeStore, manager: OrderedCollectionManager
    ) -> None:
        store.fail_update_ids = {"B"}

        with pytest.raises(ReorderError):
            await manager.reorder(0, 2)

        assert sorted(call[1] for call in store.update_calls[:3]) == ["A", "B", "C"]

    async def test_failed_restore_reloads_store_order(
        self, store: FakeStore, manager: OrderedCollectionManager
    ) -> None:
        store.fail_update_ids = {"C"}
        applied = store.update

        async def update_once(table, id, fields):
            # Each song accepts only its first write.
            if any(call[1] == id for call in store.update_calls):
                store.update_calls.append((table, id, dict(fields)))
                raise StoreError(f"update of {id} failed")
            return await applied(table, id, fields)

        store.update = update_once

        with pytest.raises(ReorderError):
            await manager.reorder(0, 2)

        # Nothing could be put back: the local order mirrors the store.
        assert store.positions() == {"A": 2, "B": 0, "C": 2, "D": 3}
        assert ids(manager) == ["B", "C", "A", "D"]
        assert manager.state is ReorderState.IDLE

    async def test_total_failure_restores_store_order(
        self, store: FakeStore, manager: OrderedCollectionManager
    ) -> None:
        store.fail_update_ids = {"A", "B", "C", "D"}

        with pytest.raises(ReorderError) as exc_info:
            await manager.reorder(0, 3)

        assert ids(manager) == ["A", "B", "C", "D"]
        assert set(exc_info.value.failed_ids) == {"A", "B", "C", "D"}

    async def test_reload_failure_restores_previous_order(
        self, store: FakeStore, manager: OrderedCollectionManager
    ) -> None:
        store.fail_update_ids = {"C"}
        store.fail_list = True

        with pytest.raises(FetchError):
            await manager.reorder(0, 2)

        assert ids(manager) == ["A", "B", "C", "D"]
        assert positions(manager) == [0, 1, 2, 3]
        assert manager.state is ReorderState.IDLE


class TestQueuedOperations:
    """Tests for serialization of overlapping operations."""

    async def test_overlapping_reorders_are_queued(
        self, store: FakeStore, manager: OrderedCollectionManager
    ) -> None:
        store.gate = asyncio.Event()

        first = asyncio.create_task(manager.reorder(0, 3))
        second = asyncio.create_task(manager.reorder(0, 3))
        while len(store.update_calls) < 4:
            await asyncio.sleep(0)
        for _ in range(5):
            await asyncio.sleep(0)
        calls_during_first = len(store.update_calls)

        store.gate.set()
        await asyncio.gather(first, second)

        # The second reorder started from the order the first produced.
        assert calls_during_first == 4
        assert ids(manager) == ["C", "D", "A", "B"]
        assert store.positions() == {"C": 0, "D": 1, "A": 2, "B": 3}

    async def test_insert_waits_for_reorder(
        self, store: FakeStore, manager: OrderedCollectionManager
    ) -> None:
        store.gate = asyncio.Event()

        reorder = asyncio.create_task(manager.reorder(0, 1))
        insert = asyncio.create_task(manager.insert(NewSong(name="E")))
        while not store.update_calls:
            await asyncio.sleep(0)
        assert len(manager) == 4

        store.gate.set()
        await asyncio.gather(reorder, insert)

        assert len(manager) == 5
        assert manager.items[-1].name == "E"
        assert manager.items[-1].position == 4


# =============================================================================
# Insert / remove / update
# =============================================================================


class TestInsert:
    """Tests for adding songs."""

    async def test_insert_into_empty(self, store: FakeStore) -> None:
        mgr = OrderedCollectionManager(store, "set-1")
        await mgr.load()

        song = await mgr.insert(NewSong(name="First", artist="  Band  "))

        assert song.position == 0
        assert song.artist == "Band"
        assert song.band_id == "band-1"
        assert ids(mgr) == [song.id]

    async def test_insert_preserves_gaps(self, store: FakeStore) -> None:
        store.add_songs(["A", "B", "C"], positions=[0, 2, 5])
        mgr = OrderedCollectionManager(store, "set-1")
        await mgr.load()

        song = await mgr.insert(NewSong(name="New"))

        assert song.position == 6
        assert positions(mgr) == [0, 2, 5, 6]

    async def test_insert_uses_given_band(self, store: FakeStore) -> None:
        mgr = OrderedCollectionManager(store, "set-1", band_id="band-9")
        await mgr.load()

        song = await mgr.insert(NewSong(name="x"))

        assert song.band_id == "band-9"

    async def test_insert_at_end_false_still_appends(
        self, manager: OrderedCollectionManager
    ) -> None:
        song = await manager.insert(NewSong(name="E"), at_end=False)

        assert manager.items[-1].id == song.id

    async def test_insert_requires_name(self, manager: OrderedCollectionManager) -> None:
        with pytest.raises(ValidationError):
            await manager.insert(NewSong(name="   "))
        assert len(manager) == 4

    async def test_insert_unknown_setlist(self, fake_store: FakeStore) -> None:
        mgr = OrderedCollectionManager(fake_store, "missing")
        await mgr.load()

        with pytest.raises(NotFoundError):
            await mgr.insert(NewSong(name="x"))

    async def test_insert_failure_is_not_optimistic(
        self, store: FakeStore, manager: OrderedCollectionManager
    ) -> None:
        store.fail_insert = True

        with pytest.raises(PersistError):
            await manager.insert(NewSong(name="E"))

        assert ids(manager) == ["A", "B", "C", "D"]


class TestRemove:
    """Tests for deleting songs."""

    async def test_remove_leaves_gap(
        self, store: FakeStore, manager: OrderedCollectionManager
    ) -> None:
        await manager.remove("B")

        assert ids(manager) == ["A", "C", "D"]
        assert positions(manager) == [0, 2, 3]
        assert store.update_calls == []
        assert "B" not in store.tables["songs"]

    async def test_remove_unknown(self, manager: OrderedCollectionManager) -> None:
        with pytest.raises(NotFoundError):
            await manager.remove("nope")

    async def test_remove_failure_keeps_song(
        self, store: FakeStore, manager: OrderedCollectionManager
    ) -> None:
        store.fail_delete = True

        with pytest.raises(PersistError):
            await manager.remove("B")

        assert ids(manager) == ["A", "B", "C", "D"]


class TestUpdateFields:
    """Tests for non-ordering edits."""

    async def test_update_fields_adopts_store_row(self, manager: OrderedCollectionManager) -> None:
        updated = await manager.update_fields("B", {"notes": "capo 2"})

        assert updated.notes == "capo 2"
        assert manager.items[1].notes == "capo 2"
        assert ids(manager) == ["A", "B", "C", "D"]

    @pytest.mark.parametrize("field", ["position", "setlist_id", "band_id", "id"])
    async def test_ordering_fields_rejected(
        self, store: FakeStore, manager: OrderedCollectionManager, field: str
    ) -> None:
        with pytest.raises(ValidationError):
            await manager.update_fields("B", {field: "x"})
        assert store.update_calls == []

    async def test_update_failure_keeps_item(
        self, store: FakeStore, manager: OrderedCollectionManager
    ) -> None:
        store.fail_update_ids = {"B"}

        with pytest.raises(PersistError):
            await manager.update_fields("B", {"notes": "x"})

        assert manager.items[1].notes is None


# =============================================================================
# Events
# =============================================================================


class TestEvents:
    """Tests for setlist change events."""

    async def test_events_published(self, store: FakeStore) -> None:
        store.add_songs(["A", "B"])
        bus = EventBus()
        received: list[SetlistChangedEvent] = []

        async def on_change(event: SetlistChangedEvent) -> None:
            received.append(event)

        await bus.subscribe("setlist.*", on_change)
        mgr = OrderedCollectionManager(store, "set-1", events=bus)

        await mgr.load()
        await mgr.reorder(1, 0)
        await mgr.remove("A")

        assert [e.event_type for e in received] == [
            "setlist.songs.loaded",
            "setlist.songs.reordered",
            "setlist.songs.removed",
        ]
        assert received[1].song_ids == ("B", "A")

    async def test_reverted_event(self, store: FakeStore) -> None:
        store.add_songs(["A", "B"])
        store.fail_update_ids = {"A"}
        bus = EventBus()
        received: list[str] = []

        async def on_change(event: SetlistChangedEvent) -> None:
            received.append(event.action)

        await bus.subscribe("setlist.songs.reverted", on_change)
        mgr = OrderedCollectionManager(store, "set-1", events=bus)
        await mgr.load()

        with pytest.raises(ReorderError):
            await mgr.reorder(0, 1)

        assert received == ["reverted"]

    async def test_unsubscribe(self) -> None:
        bus = EventBus()
        received: list[str] = []

        async def on_change(event: SetlistChangedEvent) -> None:
            received.append(event.action)

        await bus.subscribe("setlist.*", on_change)
        assert await bus.publish(SetlistChangedEvent(setlist_id="set-1", action="loaded")) == 1

        assert await bus.unsubscribe("setlist.*", on_change) is True
        assert await bus.publish(SetlistChangedEvent(setlist_id="set-1", action="removed")) == 0
        assert await bus.unsubscribe("setlist.*", on_change) is False
        assert received == ["loaded"]


# =============================================================================
# Registry
# =============================================================================


class TestCollectionRegistry:
    """Tests for the per-setlist manager registry."""

    async def test_get_creates_and_loads(self, store: FakeStore) -> None:
        store.add_songs(["A", "B"])
        registry = CollectionRegistry(store)

        manager = await registry.get("set-1")

        assert ids(manager) == ["A", "B"]
        assert "set-1" in registry
        assert len(registry) == 1

    async def test_get_returns_same_manager(self, store: FakeStore) -> None:
        registry = CollectionRegistry(store)

        first, second = await asyncio.gather(registry.get("set-1"), registry.get("set-1"))

        assert first is second

    async def test_failed_load_is_not_cached(self, store: FakeStore) -> None:
        registry = CollectionRegistry(store)
        store.fail_list = True

        with pytest.raises(FetchError):
            await registry.get("set-1")

        assert "set-1" not in registry

    async def test_discard(self, store: FakeStore) -> None:
        registry = CollectionRegistry(store)
        manager = await registry.get("set-1")

        assert registry.discard("set-1") is manager
        assert registry.discard("set-1") is None
        assert len(registry) == 0

    async def test_least_recently_used_is_evicted(self, store: FakeStore) -> None:
        store.add_setlist("set-2")
        store.add_setlist("set-3")
        registry = CollectionRegistry(store, max_managers=2)

        await registry.get("set-1")
        await registry.get("set-2")
        await registry.get("set-1")
        await registry.get("set-3")

        assert len(registry) == 2
        assert "set-1" in registry
        assert "set-2" not in registry
        assert "set-3" in registry

    async def test_busy_manager_is_not_evicted(self, store: FakeStore) -> None:
        store.add_setlist("set-2")
        store.add_songs(["A", "B"])
        store.gate = asyncio.Event()
        registry = CollectionRegistry(store, max_managers=1)
        busy = await registry.get("set-1")

        task = asyncio.create_task(busy.reorder(0, 1))
        while not store.update_calls:
            await asyncio.sleep(0)
        await registry.get("set-2")

        assert "set-1" in registry
        assert len(registry) == 2

        store.gate.set()
        await task
