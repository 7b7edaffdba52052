"""Annotation overlays drawn during a call."""

import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from uuid import uuid4

from assist_signaling.domain.signals import epoch_ms

DEFAULT_COLOR = "#FF0000"
DEFAULT_STROKE_WIDTH = 4.0
# Points are normalized to 0-1, so the tolerance is a fraction of the frame.
SIMPLIFY_EPSILON = 0.002


class AnnotationKind(str, Enum):
    """Kinds of overlay a participant can draw."""

    DRAWING = "drawing"
    POINTER = "pointer"
    ARROW = "arrow"
    CIRCLE = "circle"
    TEXT = "text"
    ANIMATION = "animation"


class AnimationKind(str, Enum):
    """Animation styles for animated annotations."""

    PULSE = "pulse"
    BOUNCE = "bounce"
    HIGHLIGHT = "highlight"


@dataclass(frozen=True)
class Point:
    """Normalized point on the video frame."""

    x: float
    y: float


@dataclass(frozen=True)
class Annotation:
    """Ephemeral overlay scoped to a call session."""

    id: str
    kind: AnnotationKind
    points: tuple[Point, ...]
    color: str = DEFAULT_COLOR
    stroke_width: float = DEFAULT_STROKE_WIDTH
    text: str | None = None
    animation: AnimationKind | None = None
    created_at: int = field(default_factory=epoch_ms)
    is_complete: bool = True

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "Annotation":
        """Build an annotation from its wire representation."""
        raw_points = payload.get("points") or []
        points = tuple(
            Point(x=float(point["x"]), y=float(point["y"]))
            for point in raw_points
        )
        animation = payload.get("animationType")
        return cls(
            id=str(payload["id"]),
            kind=AnnotationKind(payload["type"]),
            points=points,
            color=str(payload.get("color") or DEFAULT_COLOR),
            stroke_width=float(payload.get("strokeWidth") or DEFAULT_STROKE_WIDTH),
            text=payload.get("text"),
            animation=AnimationKind(animation) if animation else None,
            created_at=int(payload.get("timestamp") or 0),
            is_complete=bool(payload.get("isComplete", True)),
        )

    def to_payload(self) -> dict[str, object]:
        """Serialize to the wire representation."""
        payload: dict[str, object] = {
            "id": self.id,
            "type": self.kind.value,
            "points": [{"x": point.x, "y": point.y} for point in self.points],
            "color": self.color,
            "strokeWidth": self.stroke_width,
            "timestamp": self.created_at,
            "isComplete": self.is_complete,
        }
        if self.text is not None:
            payload["text"] = self.text
        if self.animation is not None:
            payload["animationType"] = self.animation.value
        return payload


@dataclass(frozen=True)
class FrozenFrameSnapshot:
    """Overlay state captured when the video was frozen."""

    captured_at: int
    annotations: tuple[Annotation, ...]

    def to_payload(self) -> dict[str, object]:
        """Serialize to the wire representation."""
        return {
            "capturedAt": self.captured_at,
            "annotations": [annotation.to_payload() for annotation in self.annotations],
        }


def build_annotation(  # noqa: PLR0913
    kind: AnnotationKind,
    points: Sequence[Point],
    *,
    color: str = DEFAULT_COLOR,
    stroke_width: float = DEFAULT_STROKE_WIDTH,
    text: str | None = None,
    animation: AnimationKind | None = None,
    created_at: int | None = None,
) -> Annotation:
    """Create an annotation with points normalized for its kind."""
    return Annotation(
        id=str(uuid4()),
        kind=kind,
        points=tuple(normalize_points(kind, points)),
        color=color,
        stroke_width=stroke_width,
        text=text,
        animation=animation,
        created_at=created_at if created_at is not None else epoch_ms(),
    )


def normalize_points(kind: AnnotationKind, points: Sequence[Point]) -> list[Point]:
    """Reduce a drawn path to the points the annotation kind needs."""
    if not points:
        return []
    if kind in {AnnotationKind.ARROW, AnnotationKind.CIRCLE}:
        return [points[0], points[-1]] if len(points) >= 2 else list(points)
    if kind == AnnotationKind.POINTER:
        return [points[-1]]
    return simplify_path(points, SIMPLIFY_EPSILON)


def simplify_path(points: Sequence[Point], epsilon: float) -> list[Point]:
    """Simplify a path with the Ramer-Douglas-Peucker algorithm."""
    if len(points) <= 2:
        return list(points)

    start, end = points[0], points[-1]
    max_distance = 0.0
    max_index = 0
    for index in range(1, len(points) - 1):
        distance = _perpendicular_distance(points[index], start, end)
        if distance > max_distance:
            max_distance = distance
            max_index = index

    if max_distance > epsilon:
        left = simplify_path(points[: max_index + 1], epsilon)
        right = simplify_path(points[max_index:], epsilon)
        return left[:-1] + right
    return [start, end]


def _perpendicular_distance(point: Point, line_start: Point, line_end: Point) -> float:
    dx = line_end.x - line_start.x
    dy = line_end.y - line_start.y
    if dx == 0 and dy == 0:
        return math.hypot(point.x - line_start.x, point.y - line_start.y)
    t = ((point.x - line_start.x) * dx + (point.y - line_start.y) * dy) / (
        dx * dx + dy * dy
    )
    nearest_x = line_start.x + t * dx
    nearest_y = line_start.y + t * dy
    return math.hypot(point.x - nearest_x, point.y - nearest_y)
