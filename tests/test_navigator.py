import math
import threading

import pytest

from photosphere_app.config import NavigatorConfig
from photosphere_app.models.orientation import OrientationSample
from photosphere_app.viewer.navigator import (
    DeviceOrientation,
    DragEnd,
    DragMove,
    DragStart,
    NavigatorMode,
    SphericalNavigator,
    Zoom,
)

FULL_SAMPLE = OrientationSample(alpha=90.0, beta=30.0, gamma=5.0)


def test_initial_state_is_auto_rotating():
    navigator = SphericalNavigator()
    view = navigator.current_view()
    assert navigator.mode is NavigatorMode.AUTO_ROTATING
    assert view.fov_deg == 75.0
    assert view.orientation.theta == 0.0
    assert view.orientation.phi == 0.0


def test_drag_preempts_device_tracking_and_falls_back_to_auto_rotate():
    navigator = SphericalNavigator()
    assert navigator.on_device_orientation(FULL_SAMPLE)
    assert navigator.mode is NavigatorMode.DEVICE_TRACKING

    navigator.on_drag_start()
    assert navigator.mode is NavigatorMode.DRAGGING
    navigator.on_drag_end()
    assert navigator.mode is NavigatorMode.AUTO_ROTATING


def test_device_tracking_is_not_resumed_until_re_enabled():
    navigator = SphericalNavigator()
    navigator.on_drag_start()
    navigator.on_drag_end()
    assert not navigator.on_device_orientation(FULL_SAMPLE)
    assert navigator.mode is NavigatorMode.AUTO_ROTATING

    navigator.enable_device_tracking()
    assert navigator.on_device_orientation(FULL_SAMPLE)
    assert navigator.mode is NavigatorMode.DEVICE_TRACKING


def test_device_orientation_sets_absolute_pose():
    navigator = SphericalNavigator()
    navigator.on_device_orientation(FULL_SAMPLE)
    navigator.on_device_orientation(OrientationSample(alpha=-90.0, beta=200.0, gamma=0.0))
    orientation = navigator.current_view().orientation
    assert orientation.theta == pytest.approx(math.radians(270.0))
    assert orientation.phi == pytest.approx(math.pi / 2)


@pytest.mark.parametrize(
    "sample",
    [
        OrientationSample(alpha=None, beta=10.0, gamma=10.0),
        OrientationSample(alpha=10.0, beta=None, gamma=10.0),
        OrientationSample(alpha=10.0, beta=10.0, gamma=None),
    ],
)
def test_partial_samples_are_ignored(sample):
    navigator = SphericalNavigator()
    before = navigator.current_view()
    assert not navigator.on_device_orientation(sample)
    assert navigator.current_view() == before


def test_zero_angles_are_a_valid_sample():
    navigator = SphericalNavigator()
    assert navigator.on_device_orientation(OrientationSample(alpha=0.0, beta=0.0, gamma=0.0))
    assert navigator.mode is NavigatorMode.DEVICE_TRACKING


def test_device_samples_ignored_while_dragging():
    navigator = SphericalNavigator()
    navigator.on_drag_start()
    navigator.enable_device_tracking()
    assert not navigator.on_device_orientation(FULL_SAMPLE)
    assert navigator.mode is NavigatorMode.DRAGGING
    assert navigator.current_view().orientation.theta == 0.0


def test_drag_move_updates_orientation_incrementally():
    navigator = SphericalNavigator(NavigatorConfig(drag_sensitivity=0.01))
    navigator.on_drag_start()
    navigator.on_drag_move(10.0, 20.0)
    navigator.on_drag_move(10.0, 0.0)
    orientation = navigator.current_view().orientation
    assert orientation.theta == pytest.approx(-0.2)
    assert orientation.phi == pytest.approx(-0.2)


def test_drag_clamps_phi_at_poles():
    navigator = SphericalNavigator()
    navigator.on_drag_start()
    navigator.on_drag_move(0.0, -10_000.0)
    assert navigator.current_view().orientation.phi == pytest.approx(math.pi / 2)
    navigator.on_drag_move(0.0, 50_000.0)
    assert navigator.current_view().orientation.phi == pytest.approx(-math.pi / 2)


def test_drag_move_without_drag_is_ignored():
    navigator = SphericalNavigator()
    navigator.on_drag_move(100.0, 100.0)
    assert navigator.current_view().orientation.theta == 0.0


def test_idle_tick_only_rotates_in_auto_mode():
    navigator = SphericalNavigator(NavigatorConfig(auto_rotate_rate=0.5))
    navigator.on_idle_tick(2.0)
    assert navigator.current_view().orientation.theta == pytest.approx(1.0)

    navigator.on_device_orientation(FULL_SAMPLE)
    theta = navigator.current_view().orientation.theta
    navigator.on_idle_tick(2.0)
    assert navigator.current_view().orientation.theta == theta

    navigator.on_drag_start()
    navigator.on_idle_tick(2.0)
    assert navigator.current_view().orientation.theta == theta


def test_idle_tick_keeps_phi():
    navigator = SphericalNavigator()
    navigator.on_drag_start()
    navigator.on_drag_move(0.0, -30.0)
    navigator.on_drag_end()
    phi = navigator.current_view().orientation.phi
    navigator.on_idle_tick(1.0)
    assert navigator.current_view().orientation.phi == phi


def test_zoom_stays_within_limits_and_keeps_mode():
    navigator = SphericalNavigator()
    for _ in range(50):
        navigator.on_zoom(1000.0)
        assert 30.0 <= navigator.current_view().fov_deg <= 90.0
    assert navigator.current_view().fov_deg == 90.0
    for _ in range(50):
        navigator.on_zoom(-1000.0)
        assert 30.0 <= navigator.current_view().fov_deg <= 90.0
    assert navigator.current_view().fov_deg == 30.0
    navigator.on_zoom(100.0)
    assert navigator.current_view().fov_deg == pytest.approx(35.0)
    assert navigator.mode is NavigatorMode.AUTO_ROTATING


def test_tick_applies_queued_events_then_idle_rotation():
    navigator = SphericalNavigator(NavigatorConfig(drag_sensitivity=0.01, auto_rotate_rate=1.0))
    navigator.post(DragStart())
    navigator.post(DragMove(5.0, 0.0))
    navigator.post(DragMove(5.0, 0.0))
    navigator.post(DragEnd())
    navigator.post(Zoom(20.0))
    navigator.post(Zoom(20.0))
    view = navigator.tick(0.5)
    assert view.mode is NavigatorMode.AUTO_ROTATING
    assert view.orientation.theta == pytest.approx(-0.1 + 0.5)
    assert view.fov_deg == pytest.approx(77.0)


def test_tick_keeps_latest_device_sample():
    navigator = SphericalNavigator()
    navigator.post(DeviceOrientation(OrientationSample(alpha=10.0, beta=0.0, gamma=0.0)))
    navigator.post(DeviceOrientation(OrientationSample(alpha=20.0, beta=0.0, gamma=0.0)))
    view = navigator.tick(0.1)
    assert view.mode is NavigatorMode.DEVICE_TRACKING
    assert view.orientation.theta == pytest.approx(math.radians(20.0))


def test_dispatch_rejects_unknown_events():
    with pytest.raises(TypeError):
        SphericalNavigator().dispatch(object())


def test_events_posted_from_other_threads():
    navigator = SphericalNavigator(NavigatorConfig(zoom_sensitivity=0.001, initial_fov_deg=30.0))

    def worker():
        for _ in range(500):
            navigator.post(Zoom(1.0))

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    view = navigator.tick(0.0)
    assert view.fov_deg == pytest.approx(32.0)


def test_queued_sample_after_follow_device_moves_camera():
    navigator = SphericalNavigator()
    navigator.post(DragStart())
    navigator.post(DragEnd())
    navigator.post(DeviceOrientation(OrientationSample(alpha=45.0, beta=10.0, gamma=0.0)))
    view = navigator.tick(0.0)
    assert view.mode is NavigatorMode.AUTO_ROTATING
    assert view.orientation.theta == 0.0

    navigator.enable_device_tracking()
    navigator.post(DeviceOrientation(OrientationSample(alpha=45.0, beta=10.0, gamma=0.0)))
    view = navigator.tick(0.0)
    assert view.mode is NavigatorMode.DEVICE_TRACKING
    assert view.orientation.theta == pytest.approx(math.radians(45.0))
    assert view.orientation.phi == pytest.approx(math.radians(10.0))
