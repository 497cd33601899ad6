"""FastAPI application factory."""

import asyncio
import base64
import binascii
import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import asdict
from datetime import UTC, datetime

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, StreamingResponse

from sticker_studio.api.models import BatchRequest
from sticker_studio.app_logging import configure_logging
from sticker_studio.containers import AppContainer
from sticker_studio.domain.batch import (
    AttemptOutcome,
    BatchMode,
    BatchResult,
    outcome_to_payload,
    resolve_mode,
)
from sticker_studio.domain.errors import ConfigurationError
from sticker_studio.domain.sessions import SessionRecord, StoreResult, StoreStatus
from sticker_studio.domain.styles import StyleId, resolve_style
from sticker_studio.services.progress import ProgressChannel

_logger = logging.getLogger(__name__)

_NO_CACHE = {"Cache-Control": "no-cache, no-store, must-revalidate"}


def create_app(container: AppContainer) -> FastAPI:  # noqa: PLR0915
    """Create a FastAPI app configured with dependencies."""
    configure_logging()
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    @app.get("/health")
    async def health(request: Request) -> JSONResponse:
        """Report session store connectivity and configured credentials."""
        state_container: AppContainer = request.app.state.container
        result = await state_container.session_store.health_check()
        if result.ok and result.data is not None:
            store = {"success": True, **result.data}
        else:
            store = {
                "success": False,
                "connected": False,
                "error": result.error,
                "timestamp": _utc_timestamp(),
            }
        settings = state_container.settings
        return JSONResponse(
            {
                "service": "sticker-studio",
                "environment": settings.environment,
                "store": store,
                "credentials": {
                    "openai_api_key": bool(settings.openai_api_key),
                    "supabase_url": bool(settings.supabase_url),
                    "supabase_service_key": bool(settings.supabase_service_key),
                },
                "timestamp": _utc_timestamp(),
            },
            status_code=200 if result.ok else 503,
            headers=_NO_CACHE,
        )

    @app.get("/poses")
    async def list_poses(request: Request) -> dict[str, object]:
        """Return the pose catalog in generation order."""
        state_container: AppContainer = request.app.state.container
        return {
            "poses": [
                {"id": pose.id, "name": pose.name, "emoji": pose.emoji}
                for pose in state_container.orchestrator.catalog
            ]
        }

    @app.get("/styles")
    async def list_styles() -> dict[str, object]:
        """Return the supported sticker styles."""
        return {"styles": [style.value for style in StyleId]}

    @app.post("/batches", response_model=None)
    async def create_batch(
        payload: BatchRequest, request: Request
    ) -> dict[str, object] | JSONResponse:
        """Generate a batch and optionally store it under a session id."""
        state_container: AppContainer = request.app.state.container
        try:
            image = _decode_image(payload.image)
            result = await state_container.orchestrator.run_batch(
                image, payload.style, payload.mode
            )
        except ConfigurationError as exc:
            return _error_response(400, "INVALID_REQUEST", str(exc))

        body: dict[str, object] = {
            "success": True,
            "results": _format_batch_result(result),
            "message": f"Batch generation completed in {result.mode} mode",
        }
        if payload.session_id:
            saved = await state_container.session_store.put(
                payload.session_id,
                result.items,
                _batch_metadata(payload.style, result),
            )
            body["session_id"] = payload.session_id
            body["saved"] = saved.ok
            if not saved.ok:
                logger.error(
                    "Failed to store batch",
                    extra={"session_id": payload.session_id, "error": saved.error},
                )
                body["save_error"] = saved.error
        return body

    @app.post("/batches/stream", response_model=None)
    async def stream_batch(
        payload: BatchRequest, request: Request
    ) -> StreamingResponse | JSONResponse:
        """Stream progress events as NDJSON, ending with the batch result."""
        state_container: AppContainer = request.app.state.container
        try:
            image = _decode_image(payload.image)
            style = resolve_style(payload.style)
            mode = resolve_mode(payload.mode)
        except ConfigurationError as exc:
            return _error_response(400, "INVALID_REQUEST", str(exc))

        return StreamingResponse(
            _stream_batch(state_container, image, style, mode, payload.session_id),
            media_type="application/x-ndjson",
        )

    @app.get("/sessions", response_model=None)
    async def recent_sessions(
        request: Request, limit: int = 10
    ) -> dict[str, object] | JSONResponse:
        """Return summaries of the newest sessions."""
        state_container: AppContainer = request.app.state.container
        result = await state_container.session_store.list_recent(
            max(1, min(limit, 50))
        )
        if not result.ok:
            return _store_error_response(result)
        summaries = result.data or []
        return {
            "sessions": [
                {**asdict(summary), "created_at": summary.created_at.isoformat()}
                for summary in summaries
            ],
            "total": len(summaries),
        }

    @app.get("/sessions/{session_id}", response_model=None)
    async def get_session(
        session_id: str, request: Request
    ) -> dict[str, object] | JSONResponse:
        """Return a stored session, refreshing its expiry."""
        state_container: AppContainer = request.app.state.container
        result = await state_container.session_store.get(session_id)
        if not result.ok or result.data is None:
            return _store_error_response(result)
        return _format_session(result.data)

    return app


async def _stream_batch(  # noqa: PLR0913
    state_container: AppContainer,
    image: bytes,
    style: StyleId,
    mode: BatchMode,
    session_id: str | None,
) -> AsyncIterator[str]:
    """Run a batch and yield NDJSON lines: progress events, then the result.

    When the consumer goes away before the batch finishes the batch task is
    cancelled.
    """
    store = state_container.session_store
    channel = ProgressChannel()

    async def persist_outcome(index: int, outcome: AttemptOutcome) -> None:
        if session_id is None:
            return
        saved = await store.put_item(session_id, index, outcome)
        if not saved.ok:
            _logger.warning(
                "Failed to store sticker %s for session %s: %s",
                index,
                session_id,
                saved.error,
            )

    task = asyncio.create_task(
        state_container.orchestrator.run_batch(
            image,
            style,
            mode,
            progress=channel,
            on_outcome=persist_outcome if session_id else None,
        )
    )
    task.add_done_callback(lambda _: channel.close())
    awaited = False
    try:
        async for event in channel.events():
            yield _ndjson({"type": "progress", **event.as_dict()})
        awaited = True
        try:
            result = await task
        except Exception as exc:
            _logger.exception("Streaming batch failed")
            yield _ndjson(
                {
                    "type": "error",
                    "error": _error_detail(state_container, exc, "Batch failed"),
                }
            )
            return
        if session_id:
            saved = await store.update_metadata(
                session_id, _batch_metadata(style, result)
            )
            if not saved.ok:
                _logger.warning(
                    "Failed to store metadata for session %s: %s",
                    session_id,
                    saved.error,
                )
        yield _ndjson({"type": "result", "results": _format_batch_result(result)})
    finally:
        if not task.done():
            _logger.warning("Stream consumer left, cancelling batch")
            task.cancel()
        elif not awaited and not task.cancelled() and task.exception() is not None:
            _logger.error(
                "Batch failed after the stream consumer left",
                exc_info=task.exception(),
            )


def _decode_image(raw: str) -> bytes:
    """Decode a base64 string or data URL into image bytes."""
    encoded = raw.split(",", maxsplit=1)[1] if "," in raw else raw
    try:
        image = base64.b64decode(encoded.strip(), validate=True)
    except (binascii.Error, ValueError):
        raise ConfigurationError("Image must be a base64 string") from None
    if not image:
        raise ConfigurationError("Image data is required")
    return image


def _batch_metadata(style: str, result: BatchResult) -> dict[str, object]:
    return {
        "style": str(style),
        "mode": result.mode.value,
        "timestamp": result.ended_at_ms,
        "total_items": len(result.items),
        "successful": result.metrics.successful,
        "failed": result.metrics.failed,
    }


def _format_batch_result(result: BatchResult) -> dict[str, object]:
    """Format a batch result as a JSON-friendly dict."""
    return {
        "mode": result.mode.value,
        "started_at_ms": result.started_at_ms,
        "ended_at_ms": result.ended_at_ms,
        "total_duration_ms": result.total_duration_ms,
        "items": [outcome_to_payload(item) for item in result.items],
        "metrics": asdict(result.metrics),
    }


def _format_session(record: SessionRecord) -> dict[str, object]:
    return {
        "session_id": record.session_id,
        "items": record.ordered_items(),
        "metadata": record.metadata,
        "created_at": record.created_at.isoformat(),
        "updated_at": record.updated_at.isoformat() if record.updated_at else None,
        "expires_at": record.expires_at.isoformat(),
    }


def _store_error_response(result: StoreResult) -> JSONResponse:
    if result.status is StoreStatus.NOT_FOUND:
        return _error_response(404, "NOT_FOUND", result.error or "Session not found")
    if result.status is StoreStatus.CONNECTION_ERROR:
        return _error_response(
            503, "STORE_UNAVAILABLE", "Session store temporarily unavailable"
        )
    return _error_response(500, "STORE_ERROR", "Session store query failed")


def _error_response(status_code: int, error_code: str, message: str) -> JSONResponse:
    return JSONResponse(
        {"success": False, "error": message, "error_code": error_code},
        status_code=status_code,
    )


def _error_detail(state_container: AppContainer, exc: Exception, fallback: str) -> str:
    """Return a user-facing error message with local debug info."""
    if state_container.settings.environment == "local":
        detail = f"{type(exc).__name__}: {exc}".strip()
        if detail:
            return f"{fallback} (debug: {detail})"
    return fallback


def _ndjson(payload: dict[str, object]) -> str:
    return json.dumps(payload) + "\n"


def _utc_timestamp() -> str:
    return datetime.now(tz=UTC).isoformat()
