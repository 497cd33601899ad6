"""Lazily created, self-healing Supabase async client."""

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass, field

import httpx
from supabase import AsyncClient, acreate_client

from sticker_studio.domain.errors import ConfigurationError, StoreConnectionFailure

ClientFactory = Callable[[str, str], Awaitable[AsyncClient]]

_logger = logging.getLogger(__name__)


@dataclass
class SupabaseConnectionManager:
    """Owns the single Supabase client shared by all session operations.

    The client is created on first use. Creating a client makes no network
    call, so every new client is checked before it is handed out. Every
    ``client()`` call checks the current client and replaces it when the check
    fails; replaced clients have their HTTP session closed. Creation happens
    under a lock so concurrent first callers end up sharing one client.
    """

    url: str
    key: str
    check_table: str = "sticker_sessions"
    check_timeout_seconds: float = 5.0
    connect_timeout_seconds: float = 10.0
    client_factory: ClientFactory = acreate_client
    _client: AsyncClient | None = field(default=None, init=False, repr=False)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False, repr=False)

    def __post_init__(self) -> None:
        if not self.url:
            raise ConfigurationError("SUPABASE_URL is not set")
        if not self.key:
            raise ConfigurationError("SUPABASE_SERVICE_KEY is not set")

    @property
    def connected(self) -> bool:
        return self._client is not None

    async def client(self) -> AsyncClient:
        """Return a live client, connecting or reconnecting as needed."""
        current = self._client
        if current is not None and await self._is_alive(current):
            return current
        async with self._lock:
            if self._client is not None and self._client is not current:
                return self._client
            if current is not None:
                _logger.warning("Supabase connection lost, reconnecting")
                self._client = None
                await _discard(current)
            self._client = await self._connect()
            return self._client

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncClient]:
        """Yield a live client; transport errors surface as connection failures."""
        client = await self.client()
        try:
            yield client
        except httpx.TransportError as exc:
            raise StoreConnectionFailure(
                f"Supabase request failed: {str(exc) or type(exc).__name__}"
            ) from exc

    async def close(self) -> None:
        """Close the current client; the next call reconnects."""
        async with self._lock:
            client, self._client = self._client, None
            if client is not None:
                await _discard(client)

    async def _connect(self) -> AsyncClient:
        _logger.info("Connecting to Supabase")
        try:
            client = await asyncio.wait_for(
                self.client_factory(self.url, self.key),
                timeout=self.connect_timeout_seconds,
            )
        except TimeoutError as exc:
            raise StoreConnectionFailure(
                f"Timed out connecting to Supabase after "
                f"{self.connect_timeout_seconds:g}s"
            ) from exc
        except Exception as exc:
            raise StoreConnectionFailure(
                f"Could not connect to Supabase: {exc}"
            ) from exc
        try:
            alive = await self._is_alive(client)
        except Exception:
            await _discard(client)
            raise
        if not alive:
            await _discard(client)
            raise StoreConnectionFailure("Supabase is unreachable")
        _logger.info("Connected to Supabase")
        return client

    async def _is_alive(self, client: AsyncClient) -> bool:
        """Query the server; only transport failures count as a dead client."""
        try:
            await asyncio.wait_for(
                client.table(self.check_table).select("session_id").limit(1).execute(),
                timeout=self.check_timeout_seconds,
            )
        except (httpx.TransportError, TimeoutError) as exc:
            reason = str(exc) or type(exc).__name__
            _logger.warning("Supabase liveness check failed: %s", reason)
            return False
        return True


async def _discard(client: AsyncClient) -> None:
    try:
        await client.postgrest.aclose()
    except Exception:
        _logger.warning("Failed to close Supabase HTTP session", exc_info=True)
