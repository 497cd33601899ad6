"""Session persistence with TTL expiry and explicit result values."""

import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, replace
from datetime import UTC, datetime, timedelta
from typing import Protocol, TypeVar

from sticker_studio.domain.batch import AttemptOutcome, outcome_to_payload
from sticker_studio.domain.errors import StoreConnectionFailure
from sticker_studio.domain.sessions import (
    SessionRecord,
    SessionSummary,
    StoreResult,
    StoreStatus,
)

T = TypeVar("T")

SessionItem = AttemptOutcome | dict[str, object]

_logger = logging.getLogger(__name__)


class SessionRepository(Protocol):
    """Persistence interface for sticker sessions.

    Implementations raise StoreConnectionFailure when the backend cannot be
    reached and any other exception for failed queries.
    """

    async def replace_session(  # noqa: PLR0913
        self,
        session_id: str,
        items: dict[int, dict[str, object]],
        metadata: dict[str, object],
        created_at: datetime,
        expires_at: datetime,
    ) -> None:
        """Replace the whole session, creating it when absent."""

    async def upsert_item(  # noqa: PLR0913
        self,
        session_id: str,
        index: int,
        payload: dict[str, object],
        created_at: datetime,
        expires_at: datetime,
    ) -> None:
        """Write one item slot, creating an empty session shell if needed."""

    async def fetch_session(
        self, session_id: str, now: datetime
    ) -> SessionRecord | None:
        """Return the session unless it is absent or expired at ``now``."""

    async def touch_session(self, session_id: str, expires_at: datetime) -> None:
        """Move the expiry of a session."""

    async def update_metadata(
        self,
        session_id: str,
        metadata: dict[str, object],
        updated_at: datetime,
        expires_at: datetime,
    ) -> bool:
        """Replace session metadata and return whether the session exists."""

    async def list_recent(self, now: datetime, limit: int) -> list[SessionSummary]:
        """Return summaries of the newest unexpired sessions."""

    async def delete_expired(self, now: datetime) -> int:
        """Delete expired sessions and return how many were removed."""

    async def count_sessions(self) -> int:
        """Return the number of stored sessions."""


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


@dataclass
class SessionStore:
    """Session store that never raises across its API boundary."""

    repository: SessionRepository
    ttl_seconds: int = 3600
    clock: Callable[[], datetime] = _utcnow

    async def put(
        self,
        session_id: str,
        items: Sequence[SessionItem],
        metadata: dict[str, object] | None = None,
    ) -> StoreResult[None]:
        """Replace the whole session with a new batch of items."""

        async def operation() -> StoreResult[None]:
            now = self.clock()
            payloads = {
                index: _item_payload(index, item, now)
                for index, item in enumerate(items)
            }
            failed = sum(1 for payload in payloads.values() if "error" in payload)
            full_metadata = {
                **(metadata or {}),
                "total_items": len(payloads),
                "successful": len(payloads) - failed,
                "failed": failed,
            }
            await self.repository.replace_session(
                session_id,
                items=payloads,
                metadata=full_metadata,
                created_at=now,
                expires_at=self._expiry(now),
            )
            _logger.info("Saved session %s with %s items", session_id, len(payloads))
            return StoreResult.success()

        return await self._guard("put", session_id, operation)

    async def put_item(
        self, session_id: str, index: int, item: SessionItem
    ) -> StoreResult[None]:
        """Upsert a single item slot without touching the other slots."""

        async def operation() -> StoreResult[None]:
            if index < 0:
                return StoreResult.failure(
                    StoreStatus.QUERY_ERROR, f"Invalid item index: {index}"
                )
            now = self.clock()
            await self.repository.upsert_item(
                session_id,
                index=index,
                payload=_item_payload(index, item, now),
                created_at=now,
                expires_at=self._expiry(now),
            )
            return StoreResult.success()

        return await self._guard("put_item", session_id, operation)

    async def get(self, session_id: str) -> StoreResult[SessionRecord]:
        """Load a session and refresh its expiry."""

        async def operation() -> StoreResult[SessionRecord]:
            now = self.clock()
            record = await self.repository.fetch_session(session_id, now)
            if record is None or record.expires_at <= now:
                return StoreResult.not_found()
            expires_at = self._expiry(now)
            await self.repository.touch_session(session_id, expires_at)
            return StoreResult.success(replace(record, expires_at=expires_at))

        return await self._guard("get", session_id, operation)

    async def update_metadata(
        self, session_id: str, metadata: dict[str, object]
    ) -> StoreResult[None]:
        """Replace the metadata of an existing session."""

        async def operation() -> StoreResult[None]:
            now = self.clock()
            found = await self.repository.update_metadata(
                session_id,
                metadata=metadata,
                updated_at=now,
                expires_at=self._expiry(now),
            )
            if not found:
                return StoreResult.not_found()
            return StoreResult.success()

        return await self._guard("update_metadata", session_id, operation)

    async def list_recent(self, limit: int = 10) -> StoreResult[list[SessionSummary]]:
        """Summarize the newest sessions for a gallery view."""

        async def operation() -> StoreResult[list[SessionSummary]]:
            summaries = await self.repository.list_recent(self.clock(), limit)
            return StoreResult.success(summaries)

        return await self._guard("list_recent", None, operation)

    async def cleanup_expired(self) -> StoreResult[int]:
        """Delete expired sessions; expiry does not depend on this running."""

        async def operation() -> StoreResult[int]:
            deleted = await self.repository.delete_expired(self.clock())
            _logger.info("Cleaned up %s expired sessions", deleted)
            return StoreResult.success(deleted)

        return await self._guard("cleanup_expired", None, operation)

    async def health_check(self) -> StoreResult[dict[str, object]]:
        """Report connectivity and the number of stored sessions."""

        async def operation() -> StoreResult[dict[str, object]]:
            count = await self.repository.count_sessions()
            return StoreResult.success(
                {
                    "connected": True,
                    "documents_count": count,
                    "timestamp": self.clock().isoformat(),
                }
            )

        return await self._guard("health_check", None, operation)

    def _expiry(self, now: datetime) -> datetime:
        return now + timedelta(seconds=self.ttl_seconds)

    async def _guard(
        self,
        action: str,
        session_id: str | None,
        operation: Callable[[], Awaitable[StoreResult[T]]],
    ) -> StoreResult[T]:
        try:
            return await operation()
        except StoreConnectionFailure as exc:
            _logger.warning(
                "Session store unavailable during %s (session=%s): %s",
                action,
                session_id,
                exc,
            )
            return StoreResult.failure(StoreStatus.CONNECTION_ERROR, str(exc))
        except Exception as exc:
            _logger.exception(
                "Session store %s failed (session=%s)", action, session_id
            )
            return StoreResult.failure(
                StoreStatus.QUERY_ERROR, str(exc) or type(exc).__name__
            )


def _item_payload(index: int, item: SessionItem, now: datetime) -> dict[str, object]:
    payload = dict(item) if isinstance(item, dict) else outcome_to_payload(item)
    payload["index"] = index
    payload["saved_at"] = now.isoformat()
    return payload

