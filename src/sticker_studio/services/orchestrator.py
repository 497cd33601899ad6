"""Batch orchestration of per-pose sticker generation."""

import asyncio
import logging
import secrets
import time
from collections.abc import Awaitable, Callable
from contextlib import nullcontext
from dataclasses import dataclass

from sticker_studio.domain.batch import (
    Artifact,
    AttemptOutcome,
    BatchMetrics,
    BatchMode,
    BatchResult,
    GeneratedImage,
    GenerationFailure,
    ProgressEvent,
    ProgressStatus,
    resolve_mode,
)
from sticker_studio.domain.errors import BackendCallFailure, ConfigurationError
from sticker_studio.domain.poses import (
    DEFAULT_POSE_CATALOG,
    PoseCatalog,
    PoseDescriptor,
)
from sticker_studio.domain.styles import StyleId, build_prompt, resolve_style
from sticker_studio.services.generation import ImageGenerationClient
from sticker_studio.services.progress import ProgressChannel

OutcomeHook = Callable[[int, AttemptOutcome], Awaitable[None]]

_logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


@dataclass
class BatchOrchestrator:
    """Runs one generation call per pose and aggregates the results."""

    client: ImageGenerationClient
    catalog: PoseCatalog = DEFAULT_POSE_CATALOG
    timeout_seconds: float = 120.0
    max_concurrency: int | None = None
    clock: Callable[[], int] = _now_ms

    def __post_init__(self) -> None:
        if self.max_concurrency is not None and self.max_concurrency < 1:
            raise ConfigurationError(
                f"max_concurrency must be at least 1, got {self.max_concurrency}"
            )
        if self.timeout_seconds <= 0:
            raise ConfigurationError(
                f"timeout_seconds must be positive, got {self.timeout_seconds}"
            )

    async def run_batch(
        self,
        source_image: bytes,
        style_id: str,
        mode: BatchMode | str,
        progress: ProgressChannel | None = None,
        on_outcome: OutcomeHook | None = None,
    ) -> BatchResult:
        """Generate every pose of the catalog for a source image.

        Setup problems raise ConfigurationError before any backend call. Per-pose
        errors never propagate; they are returned as GenerationFailure items.
        """
        style = resolve_style(style_id)
        batch_mode = resolve_mode(mode)
        if not isinstance(source_image, bytes | bytearray) or not source_image:
            raise ConfigurationError("Source image is required")

        total = len(self.catalog)
        _logger.info(
            "Starting batch: mode=%s style=%s poses=%s", batch_mode, style, total
        )
        started_at = self.clock()
        if batch_mode is BatchMode.SEQUENTIAL:
            outcomes = await self._run_sequential(
                bytes(source_image), style, progress, on_outcome
            )
        else:
            outcomes = await self._run_parallel(
                bytes(source_image), style, progress, on_outcome
            )
        ended_at = self.clock()

        metrics = BatchMetrics.from_outcomes(outcomes)
        _publish(
            progress,
            ProgressEvent(
                status=ProgressStatus.COMPLETED,
                current=total,
                total=total,
                message=f"{metrics.successful}/{total} stickers generated",
            ),
        )
        _logger.info(
            "Batch completed: mode=%s successful=%s failed=%s total_ms=%s",
            batch_mode,
            metrics.successful,
            metrics.failed,
            ended_at - started_at,
        )
        return BatchResult(
            mode=batch_mode,
            started_at_ms=started_at,
            ended_at_ms=ended_at,
            total_duration_ms=ended_at - started_at,
            items=outcomes,
            metrics=metrics,
        )

    async def _run_sequential(
        self,
        source_image: bytes,
        style: StyleId,
        progress: ProgressChannel | None,
        on_outcome: OutcomeHook | None,
    ) -> list[AttemptOutcome]:
        outcomes: list[AttemptOutcome] = []
        total = len(self.catalog)
        for index, pose in enumerate(self.catalog):
            _publish(
                progress,
                ProgressEvent(
                    status=ProgressStatus.GENERATING,
                    current=index + 1,
                    total=total,
                    pose_name=pose.name,
                ),
            )
            outcome = await self._attempt(source_image, style, pose)
            outcomes.append(outcome)
            await _notify(on_outcome, index, outcome)
        return outcomes

    async def _run_parallel(
        self,
        source_image: bytes,
        style: StyleId,
        progress: ProgressChannel | None,
        on_outcome: OutcomeHook | None,
    ) -> list[AttemptOutcome]:
        total = len(self.catalog)
        slots: list[AttemptOutcome | None] = [None] * total
        completed = 0
        semaphore = (
            asyncio.Semaphore(self.max_concurrency)
            if self.max_concurrency is not None
            else None
        )

        async def run_slot(index: int, pose: PoseDescriptor) -> None:
            nonlocal completed
            async with semaphore or nullcontext():
                outcome = await self._attempt(source_image, style, pose)
            slots[index] = outcome
            completed += 1
            _publish(
                progress,
                ProgressEvent(
                    status=ProgressStatus.ITEM_COMPLETED,
                    current=completed,
                    total=total,
                    pose_name=pose.name,
                ),
            )
            await _notify(on_outcome, index, outcome)

        _publish(
            progress,
            ProgressEvent(
                status=ProgressStatus.STARTING_PARALLEL, current=0, total=total
            ),
        )
        await asyncio.gather(
            *(run_slot(index, pose) for index, pose in enumerate(self.catalog))
        )

        outcomes: list[AttemptOutcome] = []
        for index, slot in enumerate(slots):
            if slot is None:
                raise RuntimeError(f"Slot {index} was never filled")
            outcomes.append(slot)
        return outcomes

    async def _attempt(
        self, source_image: bytes, style: StyleId, pose: PoseDescriptor
    ) -> AttemptOutcome:
        """Run one backend call and convert any error into a failure."""
        prompt = build_prompt(style, pose)
        started_at = self.clock()
        try:
            image = await asyncio.wait_for(
                self.client.generate(source_image, prompt),
                timeout=self.timeout_seconds,
            )
            if not isinstance(image, GeneratedImage) or not image.image_bytes:
                raise BackendCallFailure("No image data found in response")
        except TimeoutError:
            message = f"Generation timed out after {self.timeout_seconds:g}s"
            return self._failure(pose, message, started_at)
        except Exception as exc:
            return self._failure(pose, str(exc) or type(exc).__name__, started_at)

        finished_at = self.clock()
        duration = finished_at - started_at
        _logger.info("Generated %s in %sms", pose.id, duration)
        return Artifact(
            id=f"batch_{pose.id}_{finished_at}_{secrets.token_hex(5)}",
            pose_id=pose.id,
            name=pose.name,
            image_bytes=image.image_bytes,
            mime_type=image.mime_type or "image/png",
            generated_at_ms=finished_at,
            generation_duration_ms=duration,
        )

    def _failure(
        self, pose: PoseDescriptor, message: str, started_at: int
    ) -> GenerationFailure:
        duration = self.clock() - started_at
        _logger.warning(
            "Generation failed for %s after %sms: %s", pose.id, duration, message
        )
        return GenerationFailure(
            pose_id=pose.id,
            name=pose.name,
            error_message=message,
            duration_ms=duration,
        )


def _publish(progress: ProgressChannel | None, event: ProgressEvent) -> None:
    if progress is not None:
        progress.publish(event)


async def _notify(
    hook: OutcomeHook | None, index: int, outcome: AttemptOutcome
) -> None:
    if hook is None:
        return
    try:
        await hook(index, outcome)
    except Exception:
        _logger.exception("Outcome hook failed for slot %s", index)
