"""Shared fixtures: sample records, a scripted viewport and a manual clock."""

import pytest

from datahub_stats.errors import SignalSourceUnavailable


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------
@pytest.fixture
def usage_records():
    return [
        {"event_timestamp": "2024-05-01T08:00:00", "channel": "A", "process_group": "BILLING", "event_count": 2},
        {"event_timestamp": "2024-05-01T09:30:00", "channel": "B", "process_group": "METERING", "event_count": 3},
        {"event_timestamp": "2024-05-02T10:00:00", "channel": "A", "process_group": "BILLING", "event_count": 1},
    ]


@pytest.fixture
def error_records():
    return [
        {"event_timestamp": "2024-05-01", "errortype": "TIMEOUT_ERROR", "type": "system_error", "event_count": 100},
        {"event_timestamp": "2024-05-01", "errortype": "VALIDATION_ERROR", "type": "validation_error", "event_count": 300},
        {"event_timestamp": "2024-05-02", "errortype": "TIMEOUT_ERROR", "type": "system_error", "event_count": 200},
    ]


@pytest.fixture
def response_records():
    return [
        {"timestamp": "2024-05-01", "channel": "REST_API", "mean_response_time_ms": 100.0,
         "std_deviation_ms": 10.0, "event_count": 1},
        {"timestamp": "2024-05-01", "channel": "EDI", "mean_response_time_ms": 300.0,
         "std_deviation_ms": 20.0, "event_count": 3},
        {"timestamp": "2024-05-02", "channel": "REST_API", "mean_response_time_ms": 200.0,
         "std_deviation_ms": 10.0, "event_count": 1},
    ]


# ---------------------------------------------------------------------------
# Tracker host doubles
# ---------------------------------------------------------------------------
class FakeHandle:
    def __init__(self, on_cancel=None):
        self.cancelled = False
        self._on_cancel = on_cancel

    def cancel(self):
        self.cancelled = True
        if self._on_cancel is not None:
            self._on_cancel()


class ManualScheduler:
    """Virtual clock: callbacks run only when the test advances time."""

    def __init__(self):
        self.now = 0.0
        self._timers: list = []
        # every (handle, callback, args) ever scheduled, cancelled or not
        self.history: list = []

    def call_later(self, delay, callback, *args):
        handle = FakeHandle()
        self._timers.append((self.now + delay, handle, callback, args))
        self.history.append((handle, callback, args))
        return handle

    @property
    def pending(self) -> int:
        return sum(1 for _, handle, _, _ in self._timers if not handle.cancelled)

    def advance(self, seconds):
        target = self.now + seconds
        while True:
            due = sorted(
                (t for t in self._timers if t[0] <= target and not t[1].cancelled),
                key=lambda t: t[0],
            )
            if not due:
                break
            when, handle, callback, args = due[0]
            self._timers.remove(due[0])
            self.now = when
            callback(*args)
        self.now = target


class FakeViewport:
    """Page double with fixed section offsets.

    Animation frames are queued and run by flush_frames().
    """

    def __init__(self, tops=None, viewport_height=900.0, intersections=True, scroll_fails=False):
        self.tops = dict(tops or {"usage": 600.0, "errors": 1800.0, "response_times": 3000.0})
        self.height = viewport_height
        self.position = 0.0
        self.intersections_supported = intersections
        self.scroll_fails = scroll_fails

        self.intersection_callbacks: list = []
        self.scroll_callbacks: list = []
        self.frames: list = []
        self.scroll_calls: list[float] = []
        self.handles: list[FakeHandle] = []

    def _handle(self, owner, item):
        handle = FakeHandle(lambda: owner.remove(item) if item in owner else None)
        self.handles.append(handle)
        return handle

    def observe_intersections(self, callback):
        if not self.intersections_supported:
            raise SignalSourceUnavailable("no intersection support")
        self.intersection_callbacks.append(callback)
        return self._handle(self.intersection_callbacks, callback)

    def add_scroll_listener(self, callback):
        if self.scroll_fails:
            raise OSError("scroll listener rejected")
        self.scroll_callbacks.append(callback)
        return self._handle(self.scroll_callbacks, callback)

    def request_animation_frame(self, callback):
        self.frames.append(callback)
        return self._handle(self.frames, callback)

    def scroll_top(self):
        return self.position

    def viewport_height(self):
        return self.height

    def section_top(self, section):
        return self.tops.get(section)

    def scroll_to(self, offset):
        self.scroll_calls.append(offset)
        self.position = offset
        for callback in list(self.scroll_callbacks):
            callback()

    # -- test drivers -------------------------------------------------------
    def emit(self, *entries):
        for callback in list(self.intersection_callbacks):
            callback(list(entries))

    def scroll(self, position):
        self.position = position
        for callback in list(self.scroll_callbacks):
            callback()

    def flush_frames(self):
        frames, self.frames = self.frames, []
        for callback in frames:
            callback()


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def viewport():
    return FakeViewport()


@pytest.fixture
def make_viewport():
    """Factory for viewports with non-default capabilities."""
    return FakeViewport
