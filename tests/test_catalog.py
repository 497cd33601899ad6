"""Tests for poses, styles and batch metrics."""

import pytest

from sticker_studio.domain.batch import (
    Artifact,
    BatchMetrics,
    GenerationFailure,
    outcome_to_payload,
)
from sticker_studio.domain.errors import ConfigurationError
from sticker_studio.domain.poses import (
    DEFAULT_POSE_CATALOG,
    PoseCatalog,
    PoseDescriptor,
)
from sticker_studio.domain.styles import StyleId, build_prompt, resolve_style


def _artifact(duration: int) -> Artifact:
    return Artifact(
        id=f"a{duration}",
        pose_id="p",
        name="P",
        image_bytes=b"\x00\x01",
        mime_type="image/png",
        generated_at_ms=10,
        generation_duration_ms=duration,
    )


def _failure(duration: int = 5) -> GenerationFailure:
    return GenerationFailure(
        pose_id="p", name="P", error_message="boom", duration_ms=duration
    )


def test_default_catalog_order() -> None:
    assert [pose.id for pose in DEFAULT_POSE_CATALOG] == [
        "sleeping_side",
        "crying_sad",
        "super_happy",
        "working_laptop",
        "sleeping_pillow",
        "hungry_drooling",
    ]
    assert DEFAULT_POSE_CATALOG.get("crying_sad").name == "Crying"
    with pytest.raises(KeyError):
        DEFAULT_POSE_CATALOG.get("dancing")


def test_catalog_rejects_empty_and_duplicate_poses() -> None:
    pose = PoseDescriptor(id="a", name="A", prompt_fragment="sitting")

    with pytest.raises(ConfigurationError):
        PoseCatalog([])
    with pytest.raises(ConfigurationError, match="Duplicate pose id"):
        PoseCatalog([pose, pose])


def test_every_style_builds_prompt_with_pose() -> None:
    pose = DEFAULT_POSE_CATALOG[0]

    for style in StyleId:
        prompt = build_prompt(style, pose)
        assert pose.prompt_fragment in prompt
        assert "{pose}" not in prompt


def test_resolve_style_lists_valid_choices() -> None:
    assert resolve_style("pusheen") is StyleId.PUSHEEN
    with pytest.raises(ConfigurationError, match="cartoon, anime"):
        resolve_style("oil")


def test_metrics_cover_successes_only() -> None:
    metrics = BatchMetrics.from_outcomes(
        [_artifact(1), _failure(1000), _artifact(2)]
    )

    assert metrics.successful == 2
    assert metrics.failed == 1
    assert metrics.average_ms == 2
    assert metrics.min_ms == 1
    assert metrics.max_ms == 2
    assert metrics.per_item_ms == [1, 2]


def test_metrics_for_empty_batch() -> None:
    metrics = BatchMetrics.from_outcomes([])

    assert metrics == BatchMetrics(
        successful=0, failed=0, average_ms=0, min_ms=0, max_ms=0
    )


def test_outcome_payloads() -> None:
    assert outcome_to_payload(_artifact(7)) == {
        "id": "a7",
        "pose_id": "p",
        "name": "P",
        "data": "AAE=",
        "mime_type": "image/png",
        "generated_at_ms": 10,
        "generation_duration_ms": 7,
    }
    assert outcome_to_payload(_failure()) == {
        "id": "failed_p",
        "pose_id": "p",
        "name": "P",
        "error": "boom",
        "generation_duration_ms": 5,
    }
