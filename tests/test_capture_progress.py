import pytest

from photosphere_app.models.capture_session import (
    CaptureDirection,
    CapturedPhoto,
    CaptureProgressTracker,
    direction_for_count,
)
from photosphere_app.models.orientation import OrientationSample


def _capture(tracker: CaptureProgressTracker, count: int) -> list:
    return [tracker.capture(b"jpeg", OrientationSample(alpha=30.0 * i)) for i in range(count)]


def _photo(index: int) -> CapturedPhoto:
    return CapturedPhoto(id=index + 1, data=b"x", orientation=OrientationSample(alpha=30.0 * index))


def test_twelve_captures_follow_direction_sequence():
    tracker = CaptureProgressTracker()
    directions = []
    for i in range(12):
        progress = tracker.add_photo(_photo(i))
        directions.append(progress.current_direction.value)
    expected = ["right"] * 3 + ["back"] * 3 + ["left"] * 3 + ["up"] * 3
    assert directions == expected
    assert tracker.completed == 12


def test_initial_state_points_front():
    tracker = CaptureProgressTracker()
    assert tracker.completed == 0
    assert tracker.current_direction is CaptureDirection.FRONT
    assert tracker.guidance() == "Point your camera straight ahead"
    assert len(tracker.session) == 0


def test_captures_beyond_target_are_accepted():
    tracker = CaptureProgressTracker(total_needed=12)
    _capture(tracker, 15)
    assert tracker.completed == 15
    assert len(tracker.session) == 15
    assert tracker.current_direction is CaptureDirection.UP
    assert tracker.completion_fraction() == pytest.approx(15 / 12)
    assert tracker.progress.percent() == 100


def test_reset_returns_to_initial_state():
    tracker = CaptureProgressTracker()
    _capture(tracker, 7)
    tracker.reset()
    assert tracker.completed == 0
    assert tracker.current_direction is CaptureDirection.FRONT
    assert tracker.snapshot() == ()
    assert tracker.session.total_needed == 12


def test_photo_ids_are_monotonic_and_order_is_preserved():
    tracker = CaptureProgressTracker()
    photos = _capture(tracker, 4)
    ids = [photo.id for photo in photos]
    assert ids == sorted(ids)
    assert len(set(ids)) == 4
    assert [photo.id for photo in tracker.snapshot()] == ids
    tracker.reset()
    assert tracker.capture(b"y", OrientationSample()).id > ids[-1]


def test_snapshot_is_not_affected_by_later_captures():
    tracker = CaptureProgressTracker()
    _capture(tracker, 3)
    snapshot = tracker.snapshot()
    _capture(tracker, 2)
    assert len(snapshot) == 3
    assert tracker.completed == 5


def test_compose_and_finish_thresholds():
    tracker = CaptureProgressTracker()
    _capture(tracker, 2)
    assert not tracker.can_compose
    _capture(tracker, 1)
    assert tracker.can_compose
    assert not tracker.can_finish
    _capture(tracker, 3)
    assert tracker.can_finish


@pytest.mark.parametrize(
    "count, expected",
    [(0, "front"), (1, "right"), (3, "right"), (4, "back"), (6, "back"), (7, "left"), (9, "left"), (10, "up"), (40, "up")],
)
def test_direction_thresholds(count, expected):
    assert direction_for_count(count).value == expected


def test_completion_fraction_is_relative_to_target():
    tracker = CaptureProgressTracker(total_needed=8)
    _capture(tracker, 2)
    assert tracker.completion_fraction() == pytest.approx(0.25)
    assert tracker.progress.percent() == 25
