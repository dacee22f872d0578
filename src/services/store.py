"""Record store and object storage collaborators.

The grievance service treats its relational database and its attachment
bucket as external collaborators.  This module defines the interfaces
the rest of the code depends on and an in-process implementation of
each, used for local development and tests.

Record store contract:

* Tables are addressed by name; rows are plain ``dict`` objects.
* Reads filter by column equality (``filters``) and, optionally, an
  arbitrary ``predicate``; results can be ordered, offset and limited.
* :meth:`RecordStore.listen` opens an INSERT change feed on a table,
  filtered the same way as reads.  Rows are delivered in insert order.
"""

from __future__ import annotations

import asyncio
import copy
from collections import defaultdict
from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable

import structlog

logger = structlog.get_logger(__name__)

Row = dict[str, Any]
Predicate = Callable[[Row], bool]


class StoreError(Exception):
    """Raised by a record store when an operation cannot be completed."""


class ChangeFeedClosed(StoreError):
    """Raised when reading from a change feed that has been closed."""


# ---------------------------------------------------------------------------
# Change feed
# ---------------------------------------------------------------------------


class ChangeFeed:
    """Stream of rows inserted into one table that match a filter.

    Created by :meth:`RecordStore.listen`.  ``next()`` waits for the
    next row; ``fail()`` injects an error that the next reader receives,
    which is how a backend reports a dropped connection.
    """

    __slots__ = ("_closed", "_filters", "_on_close", "_queue", "table")

    def __init__(
        self,
        table: str,
        filters: dict[str, Any],
        on_close: Callable[[ChangeFeed], None] | None = None,
    ) -> None:
        self.table = table
        self._filters = filters
        self._queue: asyncio.Queue[Row | BaseException] = asyncio.Queue()
        self._closed = False
        self._on_close = on_close

    @property
    def closed(self) -> bool:
        return self._closed

    def matches(self, row: Row) -> bool:
        return all(row.get(k) == v for k, v in self._filters.items())

    def publish(self, row: Row) -> None:
        if not self._closed:
            self._queue.put_nowait(row)

    def fail(self, exc: BaseException) -> None:
        if not self._closed:
            self._queue.put_nowait(exc)

    async def next(self) -> Row:
        if self._closed:
            raise ChangeFeedClosed(f"Change feed on {self.table!r} is closed")
        item = await self._queue.get()
        if isinstance(item, BaseException):
            raise item
        return item

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._on_close is not None:
            self._on_close(self)
        # Wake any reader blocked in next().
        self._queue.put_nowait(ChangeFeedClosed(f"Change feed on {self.table!r} is closed"))


# ---------------------------------------------------------------------------
# Record store protocol
# ---------------------------------------------------------------------------


@runtime_checkable
class RecordStore(Protocol):
    """Table-oriented CRUD with an INSERT change feed."""

    async def insert(self, table: str, row: Row) -> Row: ...

    async def select(
        self,
        table: str,
        *,
        filters: dict[str, Any] | None = None,
        predicate: Predicate | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[Row]: ...

    async def select_one(self, table: str, *, filters: dict[str, Any]) -> Row | None: ...

    async def update(self, table: str, values: Row, *, filters: dict[str, Any]) -> list[Row]: ...

    async def delete(self, table: str, *, filters: dict[str, Any]) -> int: ...

    async def count(
        self,
        table: str,
        *,
        filters: dict[str, Any] | None = None,
        predicate: Predicate | None = None,
    ) -> int: ...

    def listen(self, table: str, *, filters: dict[str, Any] | None = None) -> ChangeFeed: ...


# ---------------------------------------------------------------------------
# In-memory record store
# ---------------------------------------------------------------------------


def _matches(row: Row, filters: dict[str, Any] | None, predicate: Predicate | None) -> bool:
    if filters and any(row.get(k) != v for k, v in filters.items()):
        return False
    return predicate is None or predicate(row)


class InMemoryRecordStore:
    """Dict-of-lists record store guarded by an :class:`asyncio.Lock`.

    Rows without an ``id`` get an auto-incrementing integer id per
    table, always above any explicit integer id already inserted.
    Every read returns deep copies so callers can never mutate stored
    state behind the store's back.
    """

    __slots__ = ("_feeds", "_ids", "_lock", "_tables")

    def __init__(self) -> None:
        self._tables: dict[str, list[Row]] = defaultdict(list)
        self._ids: dict[str, int] = defaultdict(int)
        self._feeds: dict[str, list[ChangeFeed]] = defaultdict(list)
        self._lock = asyncio.Lock()

    # -- RecordStore interface -------------------------------------------------

    async def insert(self, table: str, row: Row) -> Row:
        async with self._lock:
            stored = copy.deepcopy(row)
            if stored.get("id") is None:
                stored["id"] = self._ids[table] + 1
            if isinstance(stored["id"], int):
                self._ids[table] = max(self._ids[table], stored["id"])
            self._tables[table].append(stored)
            for feed in list(self._feeds[table]):
                if feed.matches(stored):
                    feed.publish(copy.deepcopy(stored))
            return copy.deepcopy(stored)

    async def select(
        self,
        table: str,
        *,
        filters: dict[str, Any] | None = None,
        predicate: Predicate | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[Row]:
        async with self._lock:
            rows = [r for r in self._tables[table] if _matches(r, filters, predicate)]
            if order_by is not None:
                if descending:
                    # Ties keep the most recently inserted row first.
                    rows.reverse()
                rows.sort(key=lambda r: (r.get(order_by) is None, r.get(order_by)), reverse=descending)
            rows = rows[offset:]
            if limit is not None:
                rows = rows[:limit]
            return copy.deepcopy(rows)

    async def select_one(self, table: str, *, filters: dict[str, Any]) -> Row | None:
        rows = await self.select(table, filters=filters, limit=1)
        return rows[0] if rows else None

    async def update(self, table: str, values: Row, *, filters: dict[str, Any]) -> list[Row]:
        async with self._lock:
            updated: list[Row] = []
            for row in self._tables[table]:
                if _matches(row, filters, None):
                    row.update(copy.deepcopy(values))
                    updated.append(copy.deepcopy(row))
            return updated

    async def delete(self, table: str, *, filters: dict[str, Any]) -> int:
        async with self._lock:
            before = len(self._tables[table])
            self._tables[table] = [r for r in self._tables[table] if not _matches(r, filters, None)]
            return before - len(self._tables[table])

    async def count(
        self,
        table: str,
        *,
        filters: dict[str, Any] | None = None,
        predicate: Predicate | None = None,
    ) -> int:
        async with self._lock:
            return sum(1 for r in self._tables[table] if _matches(r, filters, predicate))

    def listen(self, table: str, *, filters: dict[str, Any] | None = None) -> ChangeFeed:
        feed = ChangeFeed(table, dict(filters or {}), on_close=self._detach)
        self._feeds[table].append(feed)
        logger.debug("store.listen", table=table, filters=filters)
        return feed

    # -- Helpers ---------------------------------------------------------------

    def _detach(self, feed: ChangeFeed) -> None:
        feeds = self._feeds.get(feed.table, [])
        if feed in feeds:
            feeds.remove(feed)

    def listener_count(self, table: str) -> int:
        """Number of open change feeds on *table*."""
        return len(self._feeds.get(table, []))


# ---------------------------------------------------------------------------
# Object storage
# ---------------------------------------------------------------------------


@runtime_checkable
class ObjectStorage(Protocol):
    """Attachment bucket: upload bytes, get back a public URL."""

    async def upload(self, path: str, content: bytes) -> str: ...


class InMemoryObjectStorage:
    """Process-local bucket that serves objects under ``base_url``."""

    __slots__ = ("_base_url", "_objects")

    def __init__(self, base_url: str = "http://localhost:8000/storage/complaint-attachments") -> None:
        self._base_url = base_url.rstrip("/")
        self._objects: dict[str, bytes] = {}

    async def upload(self, path: str, content: bytes) -> str:
        if path in self._objects:
            raise StoreError(f"Object already exists: {path}")
        self._objects[path] = content
        return f"{self._base_url}/{path}"

    def get(self, path: str) -> bytes | None:
        return self._objects.get(path)
