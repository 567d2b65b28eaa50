"""Opaque keyset cursors for paginated reconciliation jobs."""

import base64
import binascii
import json
from datetime import datetime
from typing import Optional, Tuple

from sqlalchemy import and_, or_

from contact_sync.exceptions import InvalidCursor


def encode_cursor(created_at: datetime, row_id: str) -> str:
    """Encode the last row of a page as an opaque token."""
    payload = json.dumps({"c": created_at.isoformat(), "i": row_id}, separators=(",", ":"))
    return base64.urlsafe_b64encode(payload.encode("utf-8")).decode("ascii")


def decode_cursor(cursor: Optional[str]) -> Optional[Tuple[datetime, str]]:
    """Return (created_at, id) of the last row seen, or None for the first page."""
    if not cursor:
        return None

    try:
        payload = json.loads(base64.urlsafe_b64decode(cursor.encode("ascii")))
        return datetime.fromisoformat(payload["c"]), str(payload["i"])
    except (binascii.Error, UnicodeError, ValueError, KeyError, TypeError) as e:
        raise InvalidCursor(f"Invalid cursor: {cursor!r}") from e


def apply_keyset(query, model, cursor: Optional[str], batch_size: int):
    """
    Restrict `query` to one page after `cursor`, ordered by (created_at, id).

    Fetches batch_size + 1 rows so the caller can tell whether more remain.
    """
    position = decode_cursor(cursor)
    if position:
        created_at, row_id = position
        query = query.filter(
            or_(
                model.created_at > created_at,
                and_(model.created_at == created_at, model.id > row_id)
            )
        )

    return query.order_by(model.created_at, model.id).limit(batch_size + 1)


def split_page(rows: list, batch_size: int):
    """Return (page, next_cursor, done) from a batch_size + 1 fetch."""
    done = len(rows) <= batch_size
    page = rows[:batch_size]
    if done or not page:
        return page, None, True

    last = page[-1]
    return page, encode_cursor(last.created_at, last.id), False
