"""Record storage and session identity used by the quiz services.

Records are plain dictionaries grouped in named collections. Every record gets
an integer ``id`` on creation. Values must be JSON-compatible (timestamps are
stored as ISO-8601 strings) so that any store can persist them as-is.

Writes that must land together run inside ``transaction()``: either all of
them are kept or none are.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import contextmanager
import copy
from threading import RLock
from typing import Any

from quizdesk.core.errors import NotFound
from quizdesk.core.models import Identity

QUIZZES = "quizzes"
QUESTIONS = "questions"
ATTEMPTS = "attempts"
PROFILES = "profiles"

Record = dict[str, Any]


class RecordStore(ABC):
    """Storage/identity collaborator consumed by the quiz core."""

    def __init__(self, identity: Identity | None = None) -> None:
        self._identity = identity

    # --- Identity ---

    def sign_in(self, identity: Identity) -> None:
        self._identity = identity

    def sign_out(self) -> None:
        self._identity = None

    def get_current_identity(self) -> Identity | None:
        return self._identity

    # --- Records ---

    @abstractmethod
    def transaction(self) -> Iterator[None]:
        """Context manager grouping writes; nested calls join the outer one."""

    @abstractmethod
    def create_record(self, collection: str, fields: Record) -> Record: ...

    @abstractmethod
    def read_record(self, collection: str, filters: Record) -> Record | None: ...

    @abstractmethod
    def update_record(self, collection: str, record_id: int, fields: Record) -> None: ...

    @abstractmethod
    def delete_record(self, collection: str, record_id: int) -> None: ...

    @abstractmethod
    def list_records(
        self,
        collection: str,
        filters: Record | None = None,
        order_by: str | None = None,
        descending: bool = False,
    ) -> list[Record]: ...


class InMemoryRecordStore(RecordStore):
    """Thread-safe store keeping every collection in process memory.

    Records handed out are deep copies; callers never hold a reference to
    stored state.
    """

    def __init__(self, identity: Identity | None = None) -> None:
        super().__init__(identity=identity)
        self._lock = RLock()
        self._tables: dict[str, dict[int, Record]] = {}
        self._counters: dict[str, int] = {}

    @contextmanager
    def transaction(self) -> Iterator[None]:
        with self._lock:
            snapshot = copy.deepcopy(self._tables), dict(self._counters)
            try:
                yield
            except Exception:
                self._tables, self._counters = snapshot
                raise

    def create_record(self, collection: str, fields: Record) -> Record:
        with self._lock:
            record_id = self._counters.get(collection, 0) + 1
            self._counters[collection] = record_id
            record = copy.deepcopy(fields)
            record["id"] = record_id
            self._tables.setdefault(collection, {})[record_id] = record
            return copy.deepcopy(record)

    def read_record(self, collection: str, filters: Record) -> Record | None:
        with self._lock:
            for record in self._iter_matching(collection, filters):
                return copy.deepcopy(record)
            return None

    def update_record(self, collection: str, record_id: int, fields: Record) -> None:
        with self._lock:
            record = self._tables.get(collection, {}).get(record_id)
            if record is None:
                raise NotFound(f"No {collection} record with id {record_id}.")
            updated = copy.deepcopy(fields)
            updated.pop("id", None)
            record.update(updated)

    def delete_record(self, collection: str, record_id: int) -> None:
        with self._lock:
            table = self._tables.get(collection, {})
            if record_id not in table:
                raise NotFound(f"No {collection} record with id {record_id}.")
            del table[record_id]

    def list_records(
        self,
        collection: str,
        filters: Record | None = None,
        order_by: str | None = None,
        descending: bool = False,
    ) -> list[Record]:
        with self._lock:
            records = [copy.deepcopy(r) for r in self._iter_matching(collection, filters or {})]
        if order_by is not None:
            # Records missing the field sort first; id keeps equal keys stable.
            records.sort(
                key=lambda r: (r.get(order_by) is not None, r.get(order_by), r["id"]),
                reverse=descending,
            )
        return records

    def _iter_matching(self, collection: str, filters: Record):
        table = self._tables.get(collection, {})
        for record_id in sorted(table):
            record = table[record_id]
            if all(record.get(key) == value for key, value in filters.items()):
                yield record
