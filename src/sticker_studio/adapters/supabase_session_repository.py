"""Supabase-backed sticker session repository."""

from dataclasses import dataclass
from datetime import datetime

from supabase import AsyncClient

from sticker_studio.adapters.supabase_connection import SupabaseConnectionManager
from sticker_studio.domain.sessions import SessionRecord, SessionSummary
from sticker_studio.services.sessions import SessionRepository

_SESSIONS_TABLE = "sticker_sessions"
_ITEMS_TABLE = "sticker_session_items"


@dataclass
class SupabaseSessionRepository(SessionRepository):
    """Supabase implementation for sticker sessions.

    Items live in their own table keyed by ``(session_id, item_index)`` so a
    single slot can be upserted without rewriting the others. Eviction of rows
    past ``expires_at`` is left to a scheduled database job; reads filter on
    ``expires_at`` so expired rows are never returned.
    """

    connection: SupabaseConnectionManager

    async def replace_session(  # noqa: PLR0913
        self,
        session_id: str,
        items: dict[int, dict[str, object]],
        metadata: dict[str, object],
        created_at: datetime,
        expires_at: datetime,
    ) -> None:
        """Write the new items, drop stale slots, then update the session row.

        The session row is written last so a failed item write leaves the
        previous metadata describing the items that are still stored.
        """
        async with self.connection.session() as client:
            await self._ensure_session(client, session_id, created_at, expires_at)
            if items:
                await (
                    client.table(_ITEMS_TABLE)
                    .upsert(
                        [
                            {
                                "session_id": session_id,
                                "item_index": index,
                                "payload": payload,
                            }
                            for index, payload in sorted(items.items())
                        ],
                        on_conflict="session_id,item_index",
                    )
                    .execute()
                )
            await (
                client.table(_ITEMS_TABLE)
                .delete()
                .eq("session_id", session_id)
                .gte("item_index", max(items, default=-1) + 1)
                .execute()
            )
            await (
                client.table(_SESSIONS_TABLE)
                .update(
                    {
                        "metadata": metadata,
                        "updated_at": created_at.isoformat(),
                        "expires_at": expires_at.isoformat(),
                    }
                )
                .eq("session_id", session_id)
                .execute()
            )

    async def upsert_item(  # noqa: PLR0913
        self,
        session_id: str,
        index: int,
        payload: dict[str, object],
        created_at: datetime,
        expires_at: datetime,
    ) -> None:
        """Create the session shell if needed, then upsert one item row."""
        async with self.connection.session() as client:
            await self._ensure_session(client, session_id, created_at, expires_at)
            await (
                client.table(_SESSIONS_TABLE)
                .update(
                    {
                        "updated_at": created_at.isoformat(),
                        "expires_at": expires_at.isoformat(),
                    }
                )
                .eq("session_id", session_id)
                .execute()
            )
            await (
                client.table(_ITEMS_TABLE)
                .upsert(
                    {
                        "session_id": session_id,
                        "item_index": index,
                        "payload": payload,
                    },
                    on_conflict="session_id,item_index",
                )
                .execute()
            )

    async def fetch_session(
        self, session_id: str, now: datetime
    ) -> SessionRecord | None:
        """Return the session with its items, if present and unexpired."""
        async with self.connection.session() as client:
            response = await (
                client.table(_SESSIONS_TABLE)
                .select("session_id, metadata, created_at, updated_at, expires_at")
                .eq("session_id", session_id)
                .gt("expires_at", now.isoformat())
                .limit(1)
                .execute()
            )
            if not response.data:
                return None
            row = response.data[0]
            items_response = await (
                client.table(_ITEMS_TABLE)
                .select("item_index, payload")
                .eq("session_id", session_id)
                .order("item_index")
                .execute()
            )
        updated_at = row.get("updated_at")
        return SessionRecord(
            session_id=row["session_id"],
            items={
                int(item["item_index"]): item["payload"]
                for item in items_response.data or []
            },
            metadata=row.get("metadata") or {},
            created_at=datetime.fromisoformat(row["created_at"]),
            expires_at=datetime.fromisoformat(row["expires_at"]),
            updated_at=datetime.fromisoformat(updated_at) if updated_at else None,
        )

    async def touch_session(self, session_id: str, expires_at: datetime) -> None:
        """Move the expiry of a session."""
        async with self.connection.session() as client:
            await (
                client.table(_SESSIONS_TABLE)
                .update({"expires_at": expires_at.isoformat()})
                .eq("session_id", session_id)
                .execute()
            )

    async def update_metadata(
        self,
        session_id: str,
        metadata: dict[str, object],
        updated_at: datetime,
        expires_at: datetime,
    ) -> bool:
        """Replace metadata and return whether a row was updated."""
        async with self.connection.session() as client:
            response = await (
                client.table(_SESSIONS_TABLE)
                .update(
                    {
                        "metadata": metadata,
                        "updated_at": updated_at.isoformat(),
                        "expires_at": expires_at.isoformat(),
                    }
                )
                .eq("session_id", session_id)
                .execute()
            )
        return bool(response.data)

    async def list_recent(self, now: datetime, limit: int) -> list[SessionSummary]:
        """Return the newest unexpired sessions, summarized from metadata."""
        async with self.connection.session() as client:
            response = await (
                client.table(_SESSIONS_TABLE)
                .select("session_id, metadata, created_at")
                .gt("expires_at", now.isoformat())
                .order("created_at", desc=True)
                .limit(limit)
                .execute()
            )
        summaries = []
        for row in response.data or []:
            metadata = row.get("metadata") or {}
            summaries.append(
                SessionSummary(
                    session_id=row["session_id"],
                    style=str(metadata.get("style") or "unknown"),
                    created_at=datetime.fromisoformat(row["created_at"]),
                    total_items=int(metadata.get("total_items", 0)),
                    successful_items=int(metadata.get("successful", 0)),
                )
            )
        return summaries

    async def delete_expired(self, now: datetime) -> int:
        """Delete sessions past their expiry; items cascade."""
        async with self.connection.session() as client:
            response = await (
                client.table(_SESSIONS_TABLE)
                .delete()
                .lt("expires_at", now.isoformat())
                .execute()
            )
        return len(response.data or [])

    async def count_sessions(self) -> int:
        """Return the number of stored sessions."""
        async with self.connection.session() as client:
            response = await (
                client.table(_SESSIONS_TABLE)
                .select("session_id", count="exact")
                .limit(1)
                .execute()
            )
        return response.count or 0

    async def _ensure_session(
        self,
        client: AsyncClient,
        session_id: str,
        created_at: datetime,
        expires_at: datetime,
    ) -> None:
        """Insert an empty session row unless one already exists."""
        await (
            client.table(_SESSIONS_TABLE)
            .upsert(
                {
                    "session_id": session_id,
                    "metadata": {},
                    "created_at": created_at.isoformat(),
                    "updated_at": created_at.isoformat(),
                    "expires_at": expires_at.isoformat(),
                },
                on_conflict="session_id",
                ignore_duplicates=True,
            )
            .execute()
        )
