"""Client-side annotation overlay state with freeze/resume reconciliation."""

from collections.abc import Iterable
from dataclasses import dataclass, field

from assist_signaling.domain.annotations import Annotation, FrozenFrameSnapshot
from assist_signaling.domain.signals import epoch_ms


def _ordered(annotations: Iterable[Annotation]) -> list[Annotation]:
    return sorted(
        annotations, key=lambda annotation: (annotation.created_at, annotation.id)
    )


@dataclass
class AnnotationBoard:
    """Annotations visible on one endpoint during a session."""

    _annotations: dict[str, Annotation] = field(default_factory=dict)
    frozen_frame: FrozenFrameSnapshot | None = None

    @property
    def is_frozen(self) -> bool:
        """Return whether the video is currently frozen."""
        return self.frozen_frame is not None

    @property
    def annotations(self) -> list[Annotation]:
        """Return annotations ordered by creation time."""
        return _ordered(self._annotations.values())

    def add(self, annotation: Annotation) -> None:
        """Add or replace an annotation."""
        self._annotations[annotation.id] = annotation

    def remove(self, annotation_id: str) -> None:
        """Remove an annotation if present."""
        self._annotations.pop(annotation_id, None)

    def clear(self) -> None:
        """Remove every annotation."""
        self._annotations.clear()

    def freeze(self, captured_at: int | None = None) -> FrozenFrameSnapshot:
        """Freeze the video and capture the current overlay."""
        self.frozen_frame = FrozenFrameSnapshot(
            captured_at=captured_at if captured_at is not None else epoch_ms(),
            annotations=tuple(self.annotations),
        )
        return self.frozen_frame

    def resume(self, incoming: Iterable[Annotation] = ()) -> list[Annotation]:
        """Unfreeze and reconcile with the peer's full annotation list.

        The result is the union of local and incoming annotations, keyed by
        id and ordered by creation time, so nothing drawn while frozen is lost.
        """
        for annotation in incoming:
            self._annotations[annotation.id] = annotation
        self.frozen_frame = None
        return self.annotations

    def snapshot(self) -> list[dict[str, object]]:
        """Return the wire form of the current annotations."""
        return [annotation.to_payload() for annotation in self.annotations]

    def reset(self) -> None:
        """Drop all session-scoped overlay state."""
        self._annotations.clear()
        self.frozen_frame = None
