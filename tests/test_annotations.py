"""Tests for annotations and freeze/resume reconciliation."""

from assist_signaling.client.annotations import AnnotationBoard
from assist_signaling.domain.annotations import (
    AnimationKind,
    Annotation,
    AnnotationKind,
    Point,
    build_annotation,
    normalize_points,
    simplify_path,
)


def _circle(annotation_id: str, created_at: int) -> Annotation:
    return Annotation(
        id=annotation_id,
        kind=AnnotationKind.CIRCLE,
        points=(Point(0.5, 0.5), Point(0.6, 0.5)),
        created_at=created_at,
    )


def test_simplify_drops_collinear_points() -> None:
    points = [Point(0.0, 0.0), Point(0.25, 0.25), Point(0.5, 0.5), Point(1.0, 1.0)]

    assert simplify_path(points, 0.002) == [Point(0.0, 0.0), Point(1.0, 1.0)]


def test_simplify_keeps_corners() -> None:
    points = [Point(0.0, 0.0), Point(0.5, 0.0), Point(0.5, 0.5), Point(0.5, 1.0)]

    assert simplify_path(points, 0.002) == [
        Point(0.0, 0.0),
        Point(0.5, 0.0),
        Point(0.5, 1.0),
    ]


def test_normalize_points_per_kind() -> None:
    path = [Point(0.1, 0.1), Point(0.2, 0.3), Point(0.4, 0.2)]

    assert normalize_points(AnnotationKind.ARROW, path) == [path[0], path[-1]]
    assert normalize_points(AnnotationKind.CIRCLE, path) == [path[0], path[-1]]
    assert normalize_points(AnnotationKind.POINTER, path) == [path[-1]]
    assert normalize_points(AnnotationKind.DRAWING, []) == []


def test_payload_round_trip_keeps_optional_fields() -> None:
    annotation = build_annotation(
        AnnotationKind.ANIMATION,
        [Point(0.3, 0.3)],
        text="here",
        animation=AnimationKind.PULSE,
        created_at=1000,
    )

    payload = annotation.to_payload()

    assert payload["type"] == "animation"
    assert payload["animationType"] == "pulse"
    assert payload["strokeWidth"] == 4.0
    assert Annotation.from_payload(payload) == annotation


def test_from_payload_applies_defaults() -> None:
    annotation = Annotation.from_payload(
        {"id": "a1", "type": "pointer", "points": [{"x": 0.2, "y": 0.8}]}
    )

    assert annotation.color == "#FF0000"
    assert annotation.stroke_width == 4.0
    assert annotation.points == (Point(0.2, 0.8),)
    assert annotation.is_complete


def test_freeze_then_resume_returns_same_set() -> None:
    board = AnnotationBoard()
    board.add(_circle("a1", 10))

    snapshot = board.freeze(captured_at=5)
    resumed = board.resume([_circle("a1", 10)])

    assert snapshot.annotations == (_circle("a1", 10),)
    assert snapshot.to_payload()["capturedAt"] == 5
    assert resumed == [_circle("a1", 10)]
    assert not board.is_frozen


def test_resume_merges_annotations_drawn_while_frozen() -> None:
    board = AnnotationBoard()
    board.add(_circle("b", 30))
    board.freeze()
    board.add(_circle("c", 20))

    resumed = board.resume([_circle("a", 10), _circle("b", 30)])

    assert [annotation.id for annotation in resumed] == ["a", "c", "b"]


def test_clear_and_reset() -> None:
    board = AnnotationBoard()
    board.add(_circle("a", 1))
    board.freeze()

    board.clear()
    assert board.annotations == []
    assert board.is_frozen

    board.add(_circle("b", 2))
    board.reset()
    assert board.snapshot() == []
    assert not board.is_frozen
