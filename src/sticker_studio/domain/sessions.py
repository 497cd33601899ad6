"""Domain models for persisted sticker sessions."""

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from typing import Generic, TypeVar

from sticker_studio.domain.errors import (
    NotFoundError,
    StickerStudioError,
    StoreConnectionFailure,
)

T = TypeVar("T")


@dataclass(frozen=True)
class SessionRecord:
    """A stored batch keyed by session id."""

    session_id: str
    items: dict[int, dict[str, object]]
    metadata: dict[str, object]
    created_at: datetime
    expires_at: datetime
    updated_at: datetime | None = None

    def ordered_items(self) -> list[dict[str, object]]:
        """Return item payloads sorted by slot index."""
        return [self.items[index] for index in sorted(self.items)]


@dataclass(frozen=True)
class SessionSummary:
    """Lightweight view of a session for gallery listings."""

    session_id: str
    style: str
    created_at: datetime
    total_items: int
    successful_items: int


class StoreStatus(StrEnum):
    """Result kinds for session store operations."""

    OK = "ok"
    NOT_FOUND = "not_found"
    CONNECTION_ERROR = "connection_error"
    QUERY_ERROR = "query_error"


@dataclass(frozen=True)
class StoreResult(Generic[T]):
    """Explicit success or failure of a store operation."""

    status: StoreStatus
    data: T | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is StoreStatus.OK

    @classmethod
    def success(cls, data: T | None = None) -> "StoreResult[T]":
        return cls(status=StoreStatus.OK, data=data)

    @classmethod
    def not_found(cls, error: str = "Session not found") -> "StoreResult[T]":
        return cls(status=StoreStatus.NOT_FOUND, error=error)

    @classmethod
    def failure(cls, status: StoreStatus, error: str) -> "StoreResult[T]":
        return cls(status=status, error=error)

    def unwrap(self) -> T | None:
        """Return the data or raise the matching error."""
        if self.status is StoreStatus.OK:
            return self.data
        if self.status is StoreStatus.NOT_FOUND:
            raise NotFoundError(self.error or "Session not found")
        if self.status is StoreStatus.CONNECTION_ERROR:
            raise StoreConnectionFailure(self.error or "Store unavailable")
        raise StickerStudioError(self.error or "Store query failed")
