"""Cursor pagination: response envelope and keyset cursor codec."""

import base64
import binascii
from datetime import datetime
from typing import Generic, TypeVar
from uuid import UUID

from pydantic import BaseModel, Field

T = TypeVar("T")

CURSOR_SEPARATOR = "|"


class PaginatedResponse(BaseModel, Generic[T]):
    """A page of results, newest first.

    The cursor is opaque to clients; pass `next_cursor` back to get the next page.
    """

    items: list[T]
    next_cursor: str | None = Field(
        default=None,
        description="Opaque cursor for fetching the next page. None if no more pages.",
    )
    has_more: bool = Field(
        default=False,
        description="Whether there are more items after this page.",
    )


def encode_cursor(created_at: datetime, id: UUID) -> str:
    """Encode the position of the last row on a page.

    The row id breaks ties between rows created in the same instant.
    """
    raw = f"{created_at.isoformat()}{CURSOR_SEPARATOR}{id}"
    return base64.urlsafe_b64encode(raw.encode()).decode()


def decode_cursor(cursor: str) -> tuple[datetime, UUID]:
    """Decode a cursor produced by encode_cursor.

    Raises:
        ValueError: If the cursor is malformed.
    """
    try:
        raw = base64.urlsafe_b64decode(cursor.encode()).decode()
    except (binascii.Error, UnicodeDecodeError) as e:
        raise ValueError("Invalid cursor") from e

    created_at, sep, id = raw.partition(CURSOR_SEPARATOR)
    if not sep:
        raise ValueError("Invalid cursor")
    return datetime.fromisoformat(created_at), UUID(id)
