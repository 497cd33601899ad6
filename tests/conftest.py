"""Shared test fixtures."""

import asyncio
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime, timedelta

import pytest

from sticker_studio.config import Settings
from sticker_studio.containers import AppContainer
from sticker_studio.domain.batch import GeneratedImage
from sticker_studio.domain.errors import BackendCallFailure
from sticker_studio.domain.poses import DEFAULT_POSE_CATALOG, PoseCatalog
from sticker_studio.domain.sessions import SessionRecord, SessionSummary
from sticker_studio.services.generation import ImageGenerationClient
from sticker_studio.services.orchestrator import BatchOrchestrator
from sticker_studio.services.sessions import SessionRepository, SessionStore


@dataclass
class FakeMsClock:
    """Millisecond clock advanced by fake backend calls."""

    now_ms: int = 1_700_000_000_000

    def __call__(self) -> int:
        return self.now_ms

    def advance(self, ms: int) -> None:
        self.now_ms += ms


@dataclass
class FakeDateClock:
    """Wall clock for session expiry tests."""

    now: datetime = field(default_factory=lambda: datetime(2025, 1, 1, tzinfo=UTC))

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@dataclass
class ScriptedImageClient(ImageGenerationClient):
    """Fake generation client with scripted latency and failures per pose."""

    clock: FakeMsClock = field(default_factory=FakeMsClock)
    latencies_ms: dict[str, int] = field(default_factory=dict)
    failures: dict[str, str] = field(default_factory=dict)
    hanging: set[str] = field(default_factory=set)
    empty: set[str] = field(default_factory=set)
    catalog: PoseCatalog = DEFAULT_POSE_CATALOG
    calls: list[str] = field(default_factory=list)
    in_flight: int = 0
    max_in_flight: int = 0

    async def generate(self, image_bytes: bytes, prompt: str) -> GeneratedImage:
        pose_id = self._pose_for(prompt)
        self.calls.append(pose_id)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
            if pose_id in self.hanging:
                await asyncio.Event().wait()
            self.clock.advance(self.latencies_ms.get(pose_id, 100))
            if pose_id in self.failures:
                raise BackendCallFailure(self.failures[pose_id])
            if pose_id in self.empty:
                return GeneratedImage(image_bytes=b"")
            return GeneratedImage(image_bytes=f"sticker-{pose_id}".encode())
        finally:
            self.in_flight -= 1

    def _pose_for(self, prompt: str) -> str:
        for pose in self.catalog:
            if pose.prompt_fragment in prompt:
                return pose.id
        raise AssertionError(f"Prompt does not match any pose: {prompt}")


@dataclass
class InMemorySessionRepository(SessionRepository):
    """In-memory session repository for tests."""

    sessions: dict[str, SessionRecord] = field(default_factory=dict)
    error: Exception | None = None
    failing_methods: set[str] = field(default_factory=set)

    async def replace_session(  # noqa: PLR0913
        self,
        session_id: str,
        items: dict[int, dict[str, object]],
        metadata: dict[str, object],
        created_at: datetime,
        expires_at: datetime,
    ) -> None:
        self._raise_if_broken("replace_session")
        existing = self.sessions.get(session_id)
        self.sessions[session_id] = SessionRecord(
            session_id=session_id,
            items=dict(items),
            metadata=dict(metadata),
            created_at=existing.created_at if existing else created_at,
            expires_at=expires_at,
            updated_at=created_at,
        )

    async def upsert_item(  # noqa: PLR0913
        self,
        session_id: str,
        index: int,
        payload: dict[str, object],
        created_at: datetime,
        expires_at: datetime,
    ) -> None:
        self._raise_if_broken("upsert_item")
        if session_id not in self.sessions:
            self.sessions[session_id] = SessionRecord(
                session_id=session_id,
                items={},
                metadata={},
                created_at=created_at,
                expires_at=expires_at,
            )
        await asyncio.sleep(0)
        record = self.sessions[session_id]
        self.sessions[session_id] = replace(
            record,
            items={**record.items, index: payload},
            expires_at=expires_at,
            updated_at=created_at,
        )

    async def fetch_session(
        self, session_id: str, now: datetime
    ) -> SessionRecord | None:
        self._raise_if_broken("fetch_session")
        record = self.sessions.get(session_id)
        if record is None or record.expires_at <= now:
            return None
        return record

    async def touch_session(self, session_id: str, expires_at: datetime) -> None:
        self._raise_if_broken("touch_session")
        record = self.sessions.get(session_id)
        if record is not None:
            self.sessions[session_id] = replace(record, expires_at=expires_at)

    async def update_metadata(
        self,
        session_id: str,
        metadata: dict[str, object],
        updated_at: datetime,
        expires_at: datetime,
    ) -> bool:
        self._raise_if_broken("update_metadata")
        record = self.sessions.get(session_id)
        if record is None:
            return False
        self.sessions[session_id] = replace(
            record,
            metadata=dict(metadata),
            updated_at=updated_at,
            expires_at=expires_at,
        )
        return True

    async def list_recent(self, now: datetime, limit: int) -> list[SessionSummary]:
        self._raise_if_broken("list_recent")
        live = [record for record in self.sessions.values() if record.expires_at > now]
        live.sort(key=lambda record: record.created_at, reverse=True)
        return [
            SessionSummary(
                session_id=record.session_id,
                style=str(record.metadata.get("style") or "unknown"),
                created_at=record.created_at,
                total_items=int(record.metadata.get("total_items", 0)),
                successful_items=int(record.metadata.get("successful", 0)),
            )
            for record in live[:limit]
        ]

    async def delete_expired(self, now: datetime) -> int:
        self._raise_if_broken("delete_expired")
        expired = [
            session_id
            for session_id, record in self.sessions.items()
            if record.expires_at < now
        ]
        for session_id in expired:
            del self.sessions[session_id]
        return len(expired)

    async def count_sessions(self) -> int:
        self._raise_if_broken("count_sessions")
        return len(self.sessions)

    def _raise_if_broken(self, method: str) -> None:
        if self.error is None:
            return
        if not self.failing_methods or method in self.failing_methods:
            raise self.error


@pytest.fixture
def settings() -> Settings:
    return Settings(
        openai_api_key="openai-key",
        supabase_url="https://example.supabase.co",
        supabase_service_key="service-key",
    )


@pytest.fixture
def ms_clock() -> FakeMsClock:
    return FakeMsClock()


@pytest.fixture
def date_clock() -> FakeDateClock:
    return FakeDateClock()


@pytest.fixture
def image_client(ms_clock: FakeMsClock) -> ScriptedImageClient:
    return ScriptedImageClient(clock=ms_clock)


@pytest.fixture
def session_repository() -> InMemorySessionRepository:
    return InMemorySessionRepository()


@pytest.fixture
def container(
    settings: Settings,
    ms_clock: FakeMsClock,
    date_clock: FakeDateClock,
    image_client: ScriptedImageClient,
    session_repository: InMemorySessionRepository,
) -> AppContainer:
    orchestrator = BatchOrchestrator(client=image_client, clock=ms_clock)
    session_store = SessionStore(
        repository=session_repository,
        ttl_seconds=settings.session_ttl_seconds,
        clock=date_clock,
    )

    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=settings,
        orchestrator=orchestrator,
        session_store=session_store,
        close_resources=close_resources,
    )
