import numpy as np

from photosphere_app.config import CompositorConfig
from photosphere_app.errors import DecodeError
from photosphere_app.io.compositor import PanoramaCompositor
from photosphere_app.models.capture_session import CapturedPhoto
from photosphere_app.models.orientation import OrientationSample
from photosphere_app.workers.task_runner import CompositionTask, FunctionTask


def _photos(count):
    image = np.full((30, 60, 3), 200, dtype=np.uint8)
    return [
        CapturedPhoto(
            id=index,
            data=b"",
            orientation=OrientationSample(alpha=index * 60.0, beta=90.0, gamma=0.0),
            pixels=image,
        )
        for index in range(1, count + 1)
    ]


def _record(task):
    seen = {"finished": [], "failed": [], "progress": [], "cancelled": 0}
    task.signals.finished.connect(seen["finished"].append)
    task.signals.failed.connect(seen["failed"].append)
    task.signals.progress.connect(seen["progress"].append)

    def on_cancelled():
        seen["cancelled"] += 1

    task.signals.cancelled.connect(on_cancelled)
    return seen


def _compositor():
    return PanoramaCompositor(CompositorConfig(width=360, height=180, max_workers=2))


def test_composition_task_emits_buffer_and_progress():
    task = CompositionTask(_photos(6), _compositor())
    seen = _record(task)
    task.run()
    assert seen["failed"] == []
    assert len(seen["finished"]) == 1
    assert seen["finished"][0].size == (360, 180)
    assert seen["progress"][-1] == 100


def test_cancelled_composition_task_never_emits_buffer():
    task = CompositionTask(_photos(6), _compositor())
    seen = _record(task)
    task.cancel()
    task.run()
    assert task.is_cancelled
    assert seen["finished"] == []
    assert seen["cancelled"] == 1


def test_composition_task_reports_insufficient_photos():
    task = CompositionTask(_photos(2), _compositor())
    seen = _record(task)
    task.run()
    assert seen["finished"] == []
    assert len(seen["failed"]) == 1
    assert "At least 3 photos" in seen["failed"][0]


def test_function_task_forwards_result():
    task = FunctionTask(sum, [1, 2, 3])
    seen = _record(task)
    task.run()
    assert seen["finished"] == [6]


def test_failure_after_cancel_is_reported_as_cancelled():
    class FailingCompositor:
        def __init__(self):
            self.task = None

        def compose(self, photos, *, progress=None, cancel_event=None):
            self.task.cancel()
            raise DecodeError(3, "truncated")

    compositor = FailingCompositor()
    task = CompositionTask(_photos(3), compositor)
    compositor.task = task
    seen = _record(task)
    task.run()
    assert seen["failed"] == []
    assert seen["finished"] == []
    assert seen["cancelled"] == 1
