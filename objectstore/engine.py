"""
Versioning engine: the read and write semantics of the object store.

Every write appends a new immutable version. Reads resolve "latest" and
"as of T" by ordering a key's versions on ``(created_at, id)``; ``id`` is the
authoritative tie-break because the store assigns it in insertion order.

The latest-per-key listing restricts records to the ``max(id)`` of each key
and pages them on ``(created_at desc, id desc)`` using an exclusive cursor
position. Stores apply the per-key reduction inside the same query so the
candidate set never has to travel through the engine.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, List, Optional

from django.utils import timezone

from objectstore.cursors import Cursor
from objectstore.errors import InvalidInput, NotFound
from objectstore.stores import MAX_INTEGER, Ordering, Record, RecordFilter, RecordStore

logger = logging.getLogger(__name__)

MAX_KEY_BYTES = 255
DEFAULT_PAGE_SIZE = 20


def current_timestamp() -> int:
    return int(timezone.now().timestamp())


@dataclass(frozen=True)
class Page:
    items: List[Record]
    next_cursor: Optional[Cursor] = None
    prev_cursor: Optional[Cursor] = None


def validate_key(key: Any) -> str:
    if not isinstance(key, str) or not key:
        raise InvalidInput("key", "The key field is required.")
    if len(key.encode("utf-8")) > MAX_KEY_BYTES:
        raise InvalidInput("key", f"The key may not be greater than {MAX_KEY_BYTES} bytes.")
    return key


def validate_value(value: Any) -> Any:
    if value is None:
        raise InvalidInput("value", "The value field is required.")
    try:
        json.dumps(value, allow_nan=False)
    except (TypeError, ValueError) as exc:
        raise InvalidInput("value", "The value must be a JSON document.") from exc
    return value


def validate_timestamp(timestamp: Any) -> int:
    if not isinstance(timestamp, int) or isinstance(timestamp, bool) or timestamp < 1:
        raise InvalidInput("timestamp", "The timestamp must be a valid Unix timestamp.")
    # Later than any storable version, so equivalent to the upper bound
    return min(timestamp, MAX_INTEGER)


def validate_page_size(page_size: Any) -> int:
    if not isinstance(page_size, int) or isinstance(page_size, bool) or page_size < 1:
        raise InvalidInput("page_size", "The page size must be a positive integer.")
    return page_size


class VersioningEngine:
    """Implements store, find-latest, as-of and list-latest over a RecordStore."""

    def __init__(self, store: RecordStore, clock: Optional[Callable[[], int]] = None):
        self.record_store = store
        self.clock = clock or current_timestamp

    def store(self, key: str, value: Any) -> Record:
        """Append a new version of ``key``; identical values still create a version."""
        validate_key(key)
        validate_value(value)

        record = self.record_store.append(key, value, self.clock())
        logger.info(f"Stored version {record.id} of {key!r} at {record.created_at}")
        return record

    def find_latest_by_key(self, key: str) -> Record:
        validate_key(key)
        records = self.record_store.query(RecordFilter(key=key), Ordering.RECENCY_DESC, limit=1)
        if not records:
            logger.debug(f"No versions stored for {key!r}")
            raise NotFound(f"No object stored under {key!r}")
        return records[0]

    def get_value_at(self, key: str, timestamp: int) -> Record:
        """Return the version of ``key`` that was current at ``timestamp``."""
        validate_key(key)
        timestamp = validate_timestamp(timestamp)

        records = self.record_store.query(
            RecordFilter(key=key, created_at_lte=timestamp),
            Ordering.RECENCY_DESC,
            limit=1,
        )
        if not records:
            logger.debug(f"No version of {key!r} at or before {timestamp}")
            raise NotFound(f"No object stored under {key!r} at {timestamp}")
        return records[0]

    def list_latest(
        self,
        cursor: Optional[Cursor] = None,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> Page:
        """
        Return one page of the latest version of every key.

        The listing is ordered by ``(created_at desc, id desc)``. A cursor
        pointing to next items continues past the last record of the page it
        came from; one pointing to previous items walks back before the
        first record.

        Args:
            cursor: Decoded cursor from a previous page, or None for the first page
            page_size: Maximum number of records on the page

        Returns:
            Page with the records and cursors for the adjacent pages
        """
        validate_page_size(page_size)

        backwards = cursor is not None and not cursor.points_to_next
        rows = self.record_store.query(
            RecordFilter(latest_per_key=True),
            Ordering.RECENCY_ASC if backwards else Ordering.RECENCY_DESC,
            limit=page_size + 1,
            after=cursor.position if cursor is not None else None,
        )
        has_more = len(rows) > page_size
        items = rows[:page_size]
        if not items:
            return Page(items=[])

        if backwards:
            items.reverse()
            has_next, has_prev = True, has_more
        else:
            has_next, has_prev = has_more, cursor is not None

        return Page(
            items=items,
            next_cursor=Cursor.for_record(items[-1], points_to_next=True) if has_next else None,
            prev_cursor=Cursor.for_record(items[0], points_to_next=False) if has_prev else None,
        )
