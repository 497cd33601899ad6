"""Pose catalog for sticker batches."""

from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from sticker_studio.domain.errors import ConfigurationError


@dataclass(frozen=True)
class PoseDescriptor:
    """A named pose variation requested for every batch."""

    id: str
    name: str
    prompt_fragment: str
    emoji: str = ""


class PoseCatalog:
    """Fixed, ordered list of poses."""

    def __init__(self, poses: Iterable[PoseDescriptor]) -> None:
        self._poses = tuple(poses)
        if not self._poses:
            raise ConfigurationError("Pose catalog must not be empty")
        self._by_id: dict[str, PoseDescriptor] = {}
        for pose in self._poses:
            if pose.id in self._by_id:
                raise ConfigurationError(f"Duplicate pose id: {pose.id}")
            self._by_id[pose.id] = pose

    def __iter__(self) -> Iterator[PoseDescriptor]:
        return iter(self._poses)

    def __len__(self) -> int:
        return len(self._poses)

    def __getitem__(self, index: int) -> PoseDescriptor:
        return self._poses[index]

    def get(self, pose_id: str) -> PoseDescriptor:
        """Return a pose by id, raising KeyError when unknown."""
        return self._by_id[pose_id]


DEFAULT_POSE_CATALOG = PoseCatalog(
    [
        PoseDescriptor(
            id="sleeping_side",
            name="Sleeping on its side",
            emoji="😴",
            prompt_fragment=(
                "lying down in a relaxed sleeping position on their side with "
                "closed eyes, peaceful expression, and completely relaxed body "
                "language"
            ),
        ),
        PoseDescriptor(
            id="crying_sad",
            name="Crying",
            emoji="😢",
            prompt_fragment=(
                "with a sad crying expression, teary eyes, droopy ears, and "
                "vulnerable emotional posture looking melancholic and needing "
                "comfort"
            ),
        ),
        PoseDescriptor(
            id="super_happy",
            name="Super happy",
            emoji="😊",
            prompt_fragment=(
                "with an extremely happy and excited expression, bright cheerful "
                "eyes, tongue out if appropriate, radiating pure joy and "
                "enthusiasm"
            ),
        ),
        PoseDescriptor(
            id="working_laptop",
            name="Working on a laptop",
            emoji="💻",
            prompt_fragment=(
                "sitting at a small laptop computer with focused concentrated "
                "expression, appearing to be working or studying diligently"
            ),
        ),
        PoseDescriptor(
            id="sleeping_pillow",
            name="Sleeping with a pillow",
            emoji="🛏️",
            prompt_fragment=(
                "cuddling with a soft pillow in a cozy sleeping position, "
                "completely comfortable and content, curled up peacefully"
            ),
        ),
        PoseDescriptor(
            id="hungry_drooling",
            name="Hungry",
            emoji="🍽️",
            prompt_fragment=(
                "with an extremely hungry expression, drooling slightly, eyes "
                "focused on food, looking starved and eager to eat with "
                "anticipation"
            ),
        ),
    ]
)
