"""Domain models for sticker batches."""

import base64
import math
from dataclasses import dataclass, field
from enum import StrEnum

from sticker_studio.domain.errors import ConfigurationError


class BatchMode(StrEnum):
    """How the poses of a batch are dispatched."""

    SEQUENTIAL = "sequential"
    PARALLEL = "parallel"


def resolve_mode(raw: BatchMode | str) -> BatchMode:
    """Return the batch mode for a raw value, raising ConfigurationError."""
    try:
        return BatchMode(raw)
    except ValueError:
        valid = ", ".join(mode.value for mode in BatchMode)
        raise ConfigurationError(
            f"Invalid mode '{raw}'. Mode must be one of: {valid}"
        ) from None


class ProgressStatus(StrEnum):
    """Progress event kinds."""

    STARTING_PARALLEL = "starting_parallel"
    GENERATING = "generating"
    ITEM_COMPLETED = "item_completed"
    COMPLETED = "completed"


@dataclass(frozen=True)
class GeneratedImage:
    """Raw image returned by a generation client."""

    image_bytes: bytes
    mime_type: str = "image/png"


@dataclass(frozen=True)
class Artifact:
    """A successfully generated sticker."""

    id: str
    pose_id: str
    name: str
    image_bytes: bytes
    mime_type: str
    generated_at_ms: int
    generation_duration_ms: int


@dataclass(frozen=True)
class GenerationFailure:
    """A pose whose generation failed."""

    pose_id: str
    name: str
    error_message: str
    duration_ms: int


AttemptOutcome = Artifact | GenerationFailure


@dataclass(frozen=True)
class BatchMetrics:
    """Aggregate timing and success counts for a finished batch."""

    successful: int
    failed: int
    average_ms: int
    min_ms: int
    max_ms: int
    per_item_ms: list[int] = field(default_factory=list)

    @classmethod
    def from_outcomes(cls, outcomes: list[AttemptOutcome]) -> "BatchMetrics":
        """Compute metrics over successful durations only."""
        durations = [
            outcome.generation_duration_ms
            for outcome in outcomes
            if isinstance(outcome, Artifact)
        ]
        failed = len(outcomes) - len(durations)
        if not durations:
            return cls(
                successful=0, failed=failed, average_ms=0, min_ms=0, max_ms=0
            )
        return cls(
            successful=len(durations),
            failed=failed,
            average_ms=_round_half_up(sum(durations) / len(durations)),
            min_ms=min(durations),
            max_ms=max(durations),
            per_item_ms=durations,
        )


@dataclass(frozen=True)
class BatchResult:
    """Outcome of one run of the orchestrator."""

    mode: BatchMode
    started_at_ms: int
    ended_at_ms: int
    total_duration_ms: int
    items: list[AttemptOutcome]
    metrics: BatchMetrics


@dataclass(frozen=True)
class ProgressEvent:
    """A progress notification emitted while a batch runs."""

    status: ProgressStatus
    current: int
    total: int
    pose_name: str | None = None
    message: str | None = None

    def as_dict(self) -> dict[str, object]:
        """Return a JSON-friendly representation."""
        return {
            "status": self.status.value,
            "current": self.current,
            "total": self.total,
            "pose_name": self.pose_name,
            "message": self.message,
        }


def outcome_to_payload(outcome: AttemptOutcome) -> dict[str, object]:
    """Serialize an outcome for storage or HTTP responses."""
    if isinstance(outcome, Artifact):
        return {
            "id": outcome.id,
            "pose_id": outcome.pose_id,
            "name": outcome.name,
            "data": base64.b64encode(outcome.image_bytes).decode("ascii"),
            "mime_type": outcome.mime_type,
            "generated_at_ms": outcome.generated_at_ms,
            "generation_duration_ms": outcome.generation_duration_ms,
        }
    return {
        "id": f"failed_{outcome.pose_id}",
        "pose_id": outcome.pose_id,
        "name": outcome.name,
        "error": outcome.error_message,
        "generation_duration_ms": outcome.duration_ms,
    }


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)
