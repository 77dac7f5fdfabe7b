"""
Opaque pagination cursors for the latest-object listing.

A cursor captures the ordering key ``(created_at, id)`` of a record on the
edge of a page, plus the direction to continue in. It is serialized as
URL-safe base64 of a small JSON object, so it survives process restarts and
carries no storage-engine specific state.
"""

import base64
import binascii
import json
from dataclasses import dataclass

from objectstore.errors import InvalidCursor
from objectstore.stores import MAX_INTEGER, Position, Record

_FIELDS = {"created_at", "id", "next"}


@dataclass(frozen=True)
class Cursor:
    created_at: int
    id: int
    points_to_next: bool = True

    @classmethod
    def for_record(cls, record: Record, points_to_next: bool) -> "Cursor":
        return cls(record.created_at, record.id, points_to_next)

    @property
    def position(self) -> Position:
        return Position(self.created_at, self.id)

    def encode(self) -> str:
        payload = json.dumps(
            {"created_at": self.created_at, "id": self.id, "next": self.points_to_next},
            separators=(",", ":"),
            sort_keys=True,
        )
        return base64.urlsafe_b64encode(payload.encode("utf-8")).decode("ascii").rstrip("=")

    @classmethod
    def decode(cls, text: str) -> "Cursor":
        """
        Parse a cursor produced by ``encode``.

        Raises:
            InvalidCursor: If ``text`` is not a well-formed cursor
        """
        if not isinstance(text, str) or not text:
            raise InvalidCursor("Cursor must be a non-empty string")

        padded = text + "=" * (-len(text) % 4)
        try:
            raw = base64.b64decode(padded, altchars=b"-_", validate=True)
            payload = json.loads(raw.decode("utf-8"))
        except (binascii.Error, UnicodeError, ValueError) as exc:
            raise InvalidCursor("Cursor is not valid") from exc

        if not isinstance(payload, dict) or set(payload) != _FIELDS:
            raise InvalidCursor("Cursor is not valid")

        created_at, record_id, points_to_next = (
            payload["created_at"],
            payload["id"],
            payload["next"],
        )
        if not _is_int(created_at) or created_at < 0 or created_at > MAX_INTEGER:
            raise InvalidCursor("Cursor timestamp is not valid")
        if not _is_int(record_id) or record_id < 1 or record_id > MAX_INTEGER:
            raise InvalidCursor("Cursor id is not valid")
        if not isinstance(points_to_next, bool):
            raise InvalidCursor("Cursor direction is not valid")

        return cls(created_at, record_id, points_to_next)


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)
