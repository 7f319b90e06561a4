"""
Shared fixtures for the Encore test suite.

`FakeStore` is an in-memory `RecordStore` with failure injection, used to
exercise the collection manager without SQLite.
"""

from __future__ import annotations

import asyncio
import itertools
from dataclasses import replace
from typing import Any, Mapping

import pytest

from encore.core.db.models import TABLES, SetlistRow, SongRow
from encore.core.record_store import (
    RecordNotFoundError,
    SqliteRecordStore,
    StoreError,
    validate_payload,
)


class FakeStore:
    """
    In-memory record store.

    Failure injection:
    - `fail_update_ids`: ids whose update raises `StoreError`
    - `fail_list` / `fail_insert` / `fail_delete`: make that operation raise
    - `gate`: when set, updates wait on this event before applying

    Every update call is recorded in `update_calls`.
    """

    def __init__(self) -> None:
        self.tables: dict[str, dict[str, Any]] = {name: {} for name in TABLES}
        self.fail_update_ids: set[str] = set()
        self.fail_list = False
        self.fail_insert = False
        self.fail_delete = False
        self.gate: asyncio.Event | None = None
        self.update_calls: list[tuple[str, str, dict[str, Any]]] = []
        self._ids = itertools.count(1)
        self._clock = itertools.count(1)

    def _now(self) -> str:
        return f"2024-01-01T00:00:{next(self._clock):06d}"

    # -------------------------------------------------------------------------
    # Seeding
    # -------------------------------------------------------------------------

    def add_setlist(self, setlist_id: str = "set-1", band_id: str = "band-1") -> SetlistRow:
        now = self._now()
        row = SetlistRow(id=setlist_id, band_id=band_id, name="Friday", created_at=now, updated_at=now)
        self.tables["setlists"][setlist_id] = row
        return row

    def add_songs(
        self,
        names: list[str],
        *,
        positions: list[int] | None = None,
        setlist_id: str = "set-1",
        band_id: str = "band-1",
    ) -> list[SongRow]:
        """Seed songs using their names as ids."""
        rows = []
        for index, name in enumerate(names):
            now = self._now()
            row = SongRow(
                id=name,
                setlist_id=setlist_id,
                band_id=band_id,
                name=name,
                position=positions[index] if positions is not None else index,
                created_at=now,
                updated_at=now,
            )
            self.tables["songs"][name] = row
            rows.append(row)
        return rows

    def positions(self) -> dict[str, int]:
        return {sid: row.position for sid, row in self.tables["songs"].items()}

    # -------------------------------------------------------------------------
    # RecordStore contract
    # -------------------------------------------------------------------------

    async def list(
        self,
        table: str,
        filters: Mapping[str, Any] | None = None,
        order_by: Any = None,
    ) -> list[Any]:
        if self.fail_list:
            raise StoreError("list failed")
        rows = [
            row
            for row in self.tables[table].values()
            if all(getattr(row, k) == v for k, v in (filters or {}).items())
        ]
        rows.sort(key=lambda r: r.id)
        for column, direction in reversed(list(order_by or ())):
            rows.sort(key=lambda r: getattr(r, column), reverse=direction == "desc")
        return rows

    async def get(self, table: str, id: str) -> Any | None:
        return self.tables[table].get(id)

    async def insert(self, table: str, record: Mapping[str, Any]) -> Any:
        if self.fail_insert:
            raise StoreError("insert failed")
        spec = TABLES[table]
        validate_payload(spec, record, allow_id=spec.caller_id)
        now = self._now()
        values = dict(record)
        values.setdefault("id", f"{table}-{next(self._ids)}")
        for column in spec.created_columns:
            values[column] = now
        row = spec.row_type(**values)
        self.tables[table][row.id] = row
        return row

    async def update(self, table: str, id: str, fields: Mapping[str, Any]) -> Any:
        self.update_calls.append((table, id, dict(fields)))
        if self.gate is not None:
            await self.gate.wait()
        if id in self.fail_update_ids:
            raise StoreError(f"update of {id} failed")
        row = self.tables[table].get(id)
        if row is None:
            raise RecordNotFoundError(f"No {table} row with id {id}")
        validate_payload(TABLES[table], fields, allow_id=False)
        updated = replace(row, **fields)
        self.tables[table][id] = updated
        return updated

    async def delete(self, table: str, id: str) -> None:
        if self.fail_delete:
            raise StoreError("delete failed")
        if self.tables[table].pop(id, None) is None:
            raise RecordNotFoundError(f"No {table} row with id {id}")


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def fake_store() -> FakeStore:
    """In-memory store with failure injection."""
    return FakeStore()


@pytest.fixture
async def sqlite_store() -> SqliteRecordStore:
    """Create an in-memory SQLite record store for testing."""
    store = SqliteRecordStore(":memory:")
    await store.open()
    await store.ensure_schema()
    yield store
    await store.close()
