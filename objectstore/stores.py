"""
Record stores for versioned objects.

A record store is an append-only table of immutable records. The versioning
engine only talks to the abstract ``RecordStore`` interface, so any backend
that preserves the ordering and atomicity guarantees below can be plugged in
through the ``OBJECTSTORE["STORE_BACKEND"]`` setting.

Guarantees every backend must provide:
    - ``append`` is atomic: readers never observe a partially written record.
    - ids are assigned by the store, strictly increasing, never reused.
    - ``query`` honours the requested ordering exactly, with ``id`` as the
      final tie-break.
"""

import copy
import enum
import itertools
import logging
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Collection, Dict, Iterator, List, NamedTuple, Optional

from django.db import DatabaseError, connection, transaction
from django.db.models import Max, Q

from objectstore.errors import StoreUnavailable
from objectstore.models import VersionedObject

logger = logging.getLogger(__name__)

# Rows pulled per round trip when streaming query results
QUERY_CHUNK_SIZE = 500

# Largest value a signed 64-bit integer column can hold
MAX_INTEGER = 2**63 - 1


@dataclass(frozen=True)
class Record:
    """One immutable version of a key's value."""

    id: int
    key: str
    value: Any
    created_at: int

    @property
    def position(self) -> "Position":
        return Position(self.created_at, self.id)


class Position(NamedTuple):
    """Ordering key of a record: ``(created_at, id)``, compared lexicographically."""

    created_at: int
    id: int


class Ordering(enum.Enum):
    RECENCY_DESC = "recency_desc"  # (created_at desc, id desc)
    RECENCY_ASC = "recency_asc"  # (created_at asc, id asc)
    ID_DESC = "id_desc"


@dataclass(frozen=True)
class RecordFilter:
    """Conditions a record must satisfy to be returned by ``RecordStore.query``."""

    key: Optional[str] = None
    created_at_lte: Optional[int] = None
    ids: Optional[Collection[int]] = None
    latest_per_key: bool = False


class RecordStore(ABC):
    """Interface consumed by the versioning engine."""

    @abstractmethod
    def append(self, key: str, value: Any, created_at: int) -> Record:
        """Persist a new record and return it with its assigned id."""

    @abstractmethod
    def max_id_per_key(self) -> Dict[str, int]:
        """Map every distinct key to the highest record id stored under it."""

    @abstractmethod
    def query(
        self,
        record_filter: RecordFilter,
        ordering: Ordering,
        limit: Optional[int] = None,
        after: Optional[Position] = None,
    ) -> List[Record]:
        """
        Return records matching ``record_filter`` in ``ordering``.

        Args:
            record_filter: Key, created_at upper bound, id-set and
                latest-version-per-key conditions
            ordering: Sort order of the result
            limit: Maximum number of records to return
            after: Exclusive position; only records strictly after it in
                ``ordering`` are returned
        """

    @abstractmethod
    def ping(self) -> None:
        """Raise StoreUnavailable if the store cannot serve requests."""


def _is_after(position: Position, after: Position, ordering: Ordering) -> bool:
    if ordering is Ordering.RECENCY_DESC:
        return position < after
    if ordering is Ordering.RECENCY_ASC:
        return position > after
    return position.id < after.id


class InMemoryRecordStore(RecordStore):
    """
    Process-local record store.

    Appends are serialized by a lock; values are deep-copied on the way in
    and out so callers can never mutate a stored version.
    """

    def __init__(self):
        self._records: List[Record] = []
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def append(self, key: str, value: Any, created_at: int) -> Record:
        with self._lock:
            record = Record(
                id=next(self._ids),
                key=key,
                value=copy.deepcopy(value),
                created_at=created_at,
            )
            self._records.append(record)
        return self._detach(record)

    def max_id_per_key(self) -> Dict[str, int]:
        latest: Dict[str, int] = {}
        for record in self._snapshot():
            if record.id > latest.get(record.key, 0):
                latest[record.key] = record.id
        return latest

    def query(
        self,
        record_filter: RecordFilter,
        ordering: Ordering,
        limit: Optional[int] = None,
        after: Optional[Position] = None,
    ) -> List[Record]:
        ids = set(record_filter.ids) if record_filter.ids is not None else None
        latest_ids = (
            set(self.max_id_per_key().values()) if record_filter.latest_per_key else None
        )
        matches = [
            record
            for record in self._snapshot()
            if (record_filter.key is None or record.key == record_filter.key)
            and (
                record_filter.created_at_lte is None
                or record.created_at <= record_filter.created_at_lte
            )
            and (ids is None or record.id in ids)
            and (latest_ids is None or record.id in latest_ids)
            and (after is None or _is_after(record.position, after, ordering))
        ]

        if ordering is Ordering.ID_DESC:
            matches.sort(key=lambda record: record.id, reverse=True)
        else:
            matches.sort(
                key=lambda record: record.position,
                reverse=ordering is Ordering.RECENCY_DESC,
            )

        if limit is not None:
            matches = matches[:limit]
        return [self._detach(record) for record in matches]

    def ping(self) -> None:
        return None

    def _snapshot(self) -> List[Record]:
        with self._lock:
            return list(self._records)

    @staticmethod
    def _detach(record: Record) -> Record:
        return Record(
            id=record.id,
            key=record.key,
            value=copy.deepcopy(record.value),
            created_at=record.created_at,
        )


@contextmanager
def _translate_database_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except DatabaseError as exc:
        logger.error(f"Record store {operation} failed: {exc}")
        raise StoreUnavailable(f"Record store could not complete {operation}") from exc


def _to_record(row: VersionedObject) -> Record:
    return Record(
        id=row.pk,
        key=row.key,
        value=row.value,
        created_at=row.created_at_timestamp,
    )


class DjangoRecordStore(RecordStore):
    """Record store backed by the ``VersionedObject`` table."""

    ORDER_FIELDS = {
        Ordering.RECENCY_DESC: ("-created_at_timestamp", "-id"),
        Ordering.RECENCY_ASC: ("created_at_timestamp", "id"),
        Ordering.ID_DESC: ("-id",),
    }

    def append(self, key: str, value: Any, created_at: int) -> Record:
        with _translate_database_errors("append"):
            with transaction.atomic():
                row = VersionedObject.objects.create(
                    key=key,
                    value=value,
                    created_at_timestamp=created_at,
                )
        return _to_record(row)

    def max_id_per_key(self) -> Dict[str, int]:
        with _translate_database_errors("max_id_per_key"):
            rows = (
                VersionedObject.objects.order_by()
                .values("key")
                .annotate(max_id=Max("id"))
            )
            return {row["key"]: row["max_id"] for row in rows}

    def query(
        self,
        record_filter: RecordFilter,
        ordering: Ordering,
        limit: Optional[int] = None,
        after: Optional[Position] = None,
    ) -> List[Record]:
        queryset = VersionedObject.objects.all()

        if record_filter.key is not None:
            queryset = queryset.filter(key=record_filter.key)
        if record_filter.created_at_lte is not None:
            queryset = queryset.filter(
                created_at_timestamp__lte=record_filter.created_at_lte
            )
        if record_filter.ids is not None:
            queryset = queryset.filter(id__in=list(record_filter.ids))
        if record_filter.latest_per_key:
            queryset = queryset.filter(id__in=self._latest_ids())

        if after is not None:
            queryset = queryset.filter(self._after_condition(after, ordering))

        queryset = queryset.order_by(*self.ORDER_FIELDS[ordering])
        if limit is not None:
            queryset = queryset[:limit]

        with _translate_database_errors("query"):
            return [
                _to_record(row)
                for row in queryset.iterator(chunk_size=QUERY_CHUNK_SIZE)
            ]

    def ping(self) -> None:
        with _translate_database_errors("ping"):
            with connection.cursor() as cursor:
                cursor.execute("SELECT 1")

    @staticmethod
    def _latest_ids():
        return (
            VersionedObject.objects.order_by()
            .values("key")
            .annotate(max_id=Max("id"))
            .values("max_id")
        )

    @staticmethod
    def _after_condition(after: Position, ordering: Ordering) -> Q:
        if ordering is Ordering.ID_DESC:
            return Q(id__lt=after.id)
        if ordering is Ordering.RECENCY_DESC:
            return Q(created_at_timestamp__lt=after.created_at) | Q(
                created_at_timestamp=after.created_at, id__lt=after.id
            )
        return Q(created_at_timestamp__gt=after.created_at) | Q(
            created_at_timestamp=after.created_at, id__gt=after.id
        )
