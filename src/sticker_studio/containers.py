"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from sticker_studio.adapters.openai_image_client import OpenAIImageClient
from sticker_studio.adapters.supabase_connection import SupabaseConnectionManager
from sticker_studio.adapters.supabase_session_repository import (
    SupabaseSessionRepository,
)
from sticker_studio.config import Settings
from sticker_studio.domain.poses import DEFAULT_POSE_CATALOG
from sticker_studio.services.orchestrator import BatchOrchestrator
from sticker_studio.services.sessions import SessionStore


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    orchestrator: BatchOrchestrator
    session_store: SessionStore
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container.

    Nothing here touches the network: the Supabase client is created lazily on
    the first store operation.
    """
    resolved_settings = settings or Settings()
    image_client = OpenAIImageClient.create(
        api_key=resolved_settings.openai_api_key,
        model=resolved_settings.openai_image_model,
        size=resolved_settings.openai_image_size,
    )
    orchestrator = BatchOrchestrator(
        client=image_client,
        catalog=DEFAULT_POSE_CATALOG,
        timeout_seconds=resolved_settings.generation_timeout_seconds,
        max_concurrency=resolved_settings.max_concurrency,
    )
    connection = SupabaseConnectionManager(
        url=resolved_settings.supabase_url,
        key=resolved_settings.supabase_service_key,
        check_timeout_seconds=resolved_settings.store_check_timeout_seconds,
        connect_timeout_seconds=resolved_settings.store_connect_timeout_seconds,
    )
    session_store = SessionStore(
        repository=SupabaseSessionRepository(connection),
        ttl_seconds=resolved_settings.session_ttl_seconds,
    )

    async def close_resources() -> None:
        await image_client.close()
        await connection.close()

    return AppContainer(
        settings=resolved_settings,
        orchestrator=orchestrator,
        session_store=session_store,
        close_resources=close_resources,
    )
