"""Opaque offset cursors for the token list."""

from __future__ import annotations

import base64
import binascii
import json
import time
from dataclasses import dataclass
from typing import Sequence, TypeVar

from loguru import logger

from tokenprism.core.models import PaginationMeta

T = TypeVar("T")


@dataclass(frozen=True)
class Cursor:
    offset: int
    timestamp: int


def encode_cursor(offset: int, timestamp: int | None = None) -> str:
    """Encode an offset and issue time as url-safe base64 JSON."""
    payload = {"offset": offset, "timestamp": int(time.time() * 1000) if timestamp is None else timestamp}
    return base64.urlsafe_b64encode(json.dumps(payload).encode("utf-8")).decode("ascii")


def decode_cursor(cursor: str) -> Cursor:
    """Decode a cursor produced by :func:`encode_cursor`.

    Raises:
        ValueError: the cursor is not valid base64 JSON with a non-negative offset.
    """
    try:
        raw = base64.urlsafe_b64decode(cursor.encode("ascii"))
        data = json.loads(raw.decode("utf-8"))
        offset = data["offset"]
        timestamp = data.get("timestamp", 0)
    except (binascii.Error, UnicodeError, ValueError, KeyError, TypeError, AttributeError) as e:
        raise ValueError("Invalid cursor format") from e

    if isinstance(offset, bool) or not isinstance(offset, int) or offset < 0:
        raise ValueError("Invalid cursor format")
    return Cursor(offset=offset, timestamp=int(timestamp) if isinstance(timestamp, (int, float)) else 0)


def paginate(items: Sequence[T], cursor: str | None, limit: int) -> tuple[list[T], PaginationMeta]:
    """Slice ``items`` from the cursor's offset; a malformed cursor restarts at 0."""
    offset = 0
    if cursor:
        try:
            offset = decode_cursor(cursor).offset
        except ValueError:
            logger.warning("Invalid cursor, starting from beginning", cursor=cursor)

    page = list(items[offset : offset + limit])
    has_more = offset + limit < len(items)
    meta = PaginationMeta(
        next_cursor=encode_cursor(offset + limit) if has_more else None,
        has_more=has_more,
        total=len(items),
    )
    return page, meta
