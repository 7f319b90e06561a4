"""
Record store: generic row-level CRUD over the Encore tables.

Goals:
- A tiny contract (`RecordStore`) that the core depends on, so the ordering
  logic can be tested against fakes.
- SQLite + aiosqlite implementation (`SqliteRecordStore`), async/await friendly.
- Typed rows in, typed rows out. Payloads are validated against the table's
  column whitelist; unknown keys are rejected.

Every operation is row-scoped and commits on its own. There is deliberately no
multi-row transaction primitive in the contract.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping, Protocol

import aiosqlite

from encore.core import NotFoundError, PersistError, ValidationError
from encore.core.db.models import TABLES, TableSpec, row_from_mapping
from encore.core.db.ordering import OrderBy, order_clause, where_clause
from encore.core.db.schema import ensure_schema as ensure_schema_sql

logger = logging.getLogger(__name__)


class StoreError(RuntimeError):
    """Base error for record store operations (I/O, constraint, closed store)."""


class RecordValidationError(StoreError):
    """Raised when a payload, filter or ordering references unknown or read-only columns."""


class RecordNotFoundError(StoreError):
    """Raised when update/delete targets an id that does not exist."""


class RecordStore(Protocol):
    """Row-level persistence contract consumed by the core."""

    async def list(
        self,
        table: str,
        filters: Mapping[str, Any] | None = None,
        order_by: OrderBy | None = None,
    ) -> "list[Any]": ...

    async def get(self, table: str, id: str) -> Any | None: ...

    async def insert(self, table: str, record: Mapping[str, Any]) -> Any: ...

    async def update(self, table: str, id: str, fields: Mapping[str, Any]) -> Any: ...

    async def delete(self, table: str, id: str) -> None: ...


def to_persist_error(message: str, exc: Exception) -> PersistError:
    """Translate a store failure into the matching core error."""
    if isinstance(exc, RecordNotFoundError):
        return NotFoundError(f"{message}: {exc}")
    if isinstance(exc, RecordValidationError):
        return ValidationError(f"{message}: {exc}")
    return PersistError(f"{message}: {exc}")


def utc_now() -> str:
    """Current time as an ISO-8601 UTC string (lexically sortable)."""
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


def new_id() -> str:
    return uuid.uuid4().hex


def table_spec(table: str) -> TableSpec:
    try:
        return TABLES[table]
    except KeyError:
        raise RecordValidationError(f"Unknown table {table!r}") from None


def validate_payload(spec: TableSpec, payload: Mapping[str, Any], *, allow_id: bool) -> None:
    """Reject keys that are unknown or owned by the store."""
    writable = set(spec.writable_columns)
    if allow_id:
        writable.add("id")
    bad = sorted(k for k in payload if k not in writable)
    if bad:
        raise RecordValidationError(
            f"Column(s) {', '.join(bad)} cannot be written to {spec.name}"
        )


class SqliteRecordStore:
    """
    Async SQLite implementation of `RecordStore`.

    Usage:
        store = SqliteRecordStore("encore.sqlite3")
        await store.open()
        await store.ensure_schema()
        ... queries ...
        await store.close()

    Notes:
    - This class is designed to be injected into other components.
    - Connections are not pooled; we keep a single connection.
    """

    def __init__(self, db_path: str | Path) -> None:
        self._db_path = str(db_path)
        self._conn: aiosqlite.Connection | None = None

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    async def open(self) -> None:
        if self._conn is not None:
            return
        self._conn = await aiosqlite.connect(self._db_path)
        self._conn.row_factory = aiosqlite.Row

        await self._conn.execute("PRAGMA foreign_keys = ON;")
        await self._conn.execute("PRAGMA journal_mode = WAL;")
        await self._conn.execute("PRAGMA synchronous = NORMAL;")
        logger.debug("Opened record store at %s", self._db_path)

    async def close(self) -> None:
        if self._conn is None:
            return
        await self._conn.close()
        self._conn = None

    def _require_conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise StoreError("SqliteRecordStore is not open. Call await store.open() first.")
        return self._conn

    async def ensure_schema(self) -> None:
        """Create or migrate schema to current version."""
        conn = self._require_conn()
        await ensure_schema_sql(conn)

    # ===========================================================================
    # RecordStore contract
    # ===========================================================================

    async def list(
        self,
        table: str,
        filters: Mapping[str, Any] | None = None,
        order_by: OrderBy | None = None,
    ) -> "list[Any]":
        spec = table_spec(table)
        try:
            where, params = where_clause(spec, filters)
            order = order_clause(spec, order_by)
        except ValueError as exc:
            raise RecordValidationError(str(exc)) from exc

        sql = f"SELECT * FROM {spec.name} {where} {order}"
        rows = await self._fetchall(sql, params)
        return [row_from_mapping(spec.row_type, r) for r in rows]

    async def get(self, table: str, id: str) -> Any | None:
        spec = table_spec(table)
        rows = await self._fetchall(f"SELECT * FROM {spec.name} WHERE id = ?", [id])
        if not rows:
            return None
        return row_from_mapping(spec.row_type, rows[0])

    async def insert(self, table: str, record: Mapping[str, Any]) -> Any:
        spec = table_spec(table)
        validate_payload(spec, record, allow_id=spec.caller_id)
        if spec.caller_id and not record.get("id"):
            raise RecordValidationError(f"{spec.name} records require an explicit id")

        now = utc_now()
        values: dict[str, Any] = dict(record)
        if not spec.caller_id:
            values["id"] = new_id()
        for column in spec.created_columns:
            values[column] = now

        columns = ", ".join(values)
        placeholders = ", ".join(f":{c}" for c in values)
        await self._write(
            f"INSERT INTO {spec.name} ({columns}) VALUES ({placeholders})",
            values,
        )
        created = await self.get(table, values["id"])
        if created is None:
            raise StoreError(f"Inserted {spec.name} row {values['id']} could not be read back")
        return created

    async def update(self, table: str, id: str, fields: Mapping[str, Any]) -> Any:
        spec = table_spec(table)
        validate_payload(spec, fields, allow_id=False)
        values: dict[str, Any] = dict(fields)
        if spec.touch_column:
            values[spec.touch_column] = utc_now()
        if not values:
            raise RecordValidationError(f"Empty update for {spec.name} row {id}")

        assignments = ", ".join(f"{c} = :{c}" for c in values)
        rowcount = await self._write(
            f"UPDATE {spec.name} SET {assignments} WHERE id = :__id",
            {**values, "__id": id},
        )
        if rowcount == 0:
            raise RecordNotFoundError(f"No {spec.name} row with id {id}")
        updated = await self.get(table, id)
        if updated is None:
            raise RecordNotFoundError(f"No {spec.name} row with id {id}")
        return updated

    async def delete(self, table: str, id: str) -> None:
        spec = table_spec(table)
        rowcount = await self._write(f"DELETE FROM {spec.name} WHERE id = ?", [id])
        if rowcount == 0:
            raise RecordNotFoundError(f"No {spec.name} row with id {id}")

    # ===========================================================================
    # Internals
    # ===========================================================================

    async def _fetchall(self, sql: str, params: Any) -> "list[aiosqlite.Row]":
        conn = self._require_conn()
        try:
            cursor = await conn.execute(sql, params)
            rows = await cursor.fetchall()
            await cursor.close()
        except aiosqlite.Error as exc:
            raise StoreError(str(exc)) from exc
        return rows

    async def _write(self, sql: str, params: Any) -> int:
        conn = self._require_conn()
        try:
            cursor = await conn.execute(sql, params)
            rowcount = cursor.rowcount
            await cursor.close()
            await conn.commit()
        except aiosqlite.IntegrityError as exc:
            await conn.rollback()
            raise RecordValidationError(str(exc)) from exc
        except aiosqlite.Error as exc:
            await conn.rollback()
            raise StoreError(str(exc)) from exc
        return rowcount
