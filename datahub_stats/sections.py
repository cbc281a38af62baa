"""
Active-section tracking for the sticky section navigation.

Two independent signals propose the active section:

- intersection signals (which sections are visible, and how much), applied
  after a debounce delay with the latest signal winning;
- scroll-position samples, at most one per animation frame, applied
  immediately.

Both feed one ordered event queue drained by reduce_section_state(), a
pure reducer. Precedence: while a debounced intersection transition is
pending, scroll samples are dropped; otherwise the latest signal wins.
Manual selection (a navigation click) applies synchronously, scrolls to the
section and leaves any pending debounce untouched.

The hosting environment is reached only through ViewportHost and a
Scheduler (an asyncio event loop satisfies Scheduler).
"""

import logging
from collections import deque
from dataclasses import dataclass, replace
from functools import partial
from typing import Any, Callable, Iterable, Mapping, Protocol

from .config import (
    DEBOUNCE_SECONDS,
    HEADER_OFFSET_PX,
    MIN_INTERSECTION_RATIO,
    SCROLL_VIEWPORT_FRACTION,
    SECTIONS,
)
from .errors import SignalSourceError, SignalSourceUnavailable, UnknownSection

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Host interfaces
# ---------------------------------------------------------------------------
class Handle(Protocol):
    def cancel(self) -> None:
        ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> Handle:
        ...


class ViewportHost(Protocol):
    """Visibility, scroll and geometry access provided by the page."""

    def observe_intersections(
        self, callback: Callable[[list["IntersectionEntry"]], None]
    ) -> Handle:
        """Raise SignalSourceUnavailable if visibility notifications are unsupported."""

    def add_scroll_listener(self, callback: Callable[[], None]) -> Handle:
        ...

    def request_animation_frame(self, callback: Callable[[], None]) -> Handle:
        ...

    def scroll_top(self) -> float:
        ...

    def viewport_height(self) -> float:
        ...

    def section_top(self, section: str) -> float | None:
        """Document offset of the section's top edge, or None if not rendered."""

    def scroll_to(self, offset: float) -> None:
        ...


# ---------------------------------------------------------------------------
# Signals, state and effects
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class IntersectionEntry:
    section: str
    ratio: float
    top: float
    is_intersecting: bool = True


@dataclass(frozen=True)
class IntersectionSignal:
    entries: tuple[IntersectionEntry, ...]


@dataclass(frozen=True)
class ScrollSignal:
    candidate: str


@dataclass(frozen=True)
class ManualSelect:
    section: str


@dataclass(frozen=True)
class DebounceElapsed:
    section: str
    token: int


@dataclass(frozen=True)
class SectionState:
    active: str
    pending: str | None = None
    # generation of the most recent debounce timer; older firings are stale
    token: int = 0


@dataclass(frozen=True)
class ScheduleDebounce:
    section: str
    token: int


@dataclass(frozen=True)
class CancelDebounce:
    pass


@dataclass(frozen=True)
class ScrollTo:
    section: str


@dataclass(frozen=True)
class Notify:
    previous: str
    section: str


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------
def pick_intersection_winner(
    entries: Iterable[IntersectionEntry],
    min_ratio: float = MIN_INTERSECTION_RATIO,
) -> str | None:
    """Most visible section above `min_ratio`; ties go to the one nearest the top."""
    visible = [e for e in entries if e.is_intersecting and e.ratio > min_ratio]
    if not visible:
        return None
    return min(visible, key=lambda e: (-e.ratio, e.top)).section


def scroll_candidate(
    section_tops: Mapping[str, float | None],
    scroll_top: float,
    viewport_height: float,
    header_offset: float = HEADER_OFFSET_PX,
    viewport_fraction: float = SCROLL_VIEWPORT_FRACTION,
) -> str:
    """Last section (in presentation order) whose top edge has been scrolled past.

    A section counts as reached when
    scroll_top + header_offset >= top - viewport_height * viewport_fraction.
    Falls back to the first section.
    """
    sections = list(section_tops)
    if not sections:
        raise UnknownSection("No sections to choose from")

    current = sections[0]
    for section, top in section_tops.items():
        if top is None:
            continue
        if scroll_top + header_offset >= top - viewport_height * viewport_fraction:
            current = section
    return current


def _activate(state: SectionState, section: str) -> tuple[SectionState, list]:
    if section == state.active:
        return state, []
    return replace(state, active=section), [Notify(state.active, section)]


def reduce_section_state(
    state: SectionState,
    event: object,
    min_ratio: float = MIN_INTERSECTION_RATIO,
) -> tuple[SectionState, list]:
    """Apply one signal to the tracker state.

    Returns
    -------
    (new_state, effects) where effects is a list of ScheduleDebounce,
    CancelDebounce, ScrollTo and Notify instances for the caller to carry out.
    """
    if isinstance(event, IntersectionSignal):
        effects: list = []
        if state.pending is not None:
            effects.append(CancelDebounce())
            state = replace(state, pending=None)

        winner = pick_intersection_winner(event.entries, min_ratio)
        if winner is None or winner == state.active:
            return state, effects

        token = state.token + 1
        effects.append(ScheduleDebounce(winner, token))
        return replace(state, pending=winner, token=token), effects

    if isinstance(event, DebounceElapsed):
        if event.token != state.token or event.section != state.pending:
            return state, []
        return _activate(replace(state, pending=None), event.section)

    if isinstance(event, ScrollSignal):
        if state.pending is not None:
            return state, []
        return _activate(state, event.candidate)

    if isinstance(event, ManualSelect):
        state, effects = _activate(state, event.section)
        return state, effects + [ScrollTo(event.section)]

    raise TypeError(f"Unsupported section event: {event!r}")


# ---------------------------------------------------------------------------
# Tracker
# ---------------------------------------------------------------------------
class ActiveSectionTracker:
    """Holds the active page section and wires host signals into the reducer.

    Usage
    -----
        tracker = ActiveSectionTracker(host, loop)
        tracker.subscribe(lambda section: print("now on", section))
        tracker.start()
        ...
        tracker.close()
    """

    def __init__(
        self,
        host: ViewportHost,
        scheduler: Scheduler,
        sections: Iterable[str] = SECTIONS,
        debounce: float = DEBOUNCE_SECONDS,
        min_ratio: float = MIN_INTERSECTION_RATIO,
        header_offset: float = HEADER_OFFSET_PX,
        viewport_fraction: float = SCROLL_VIEWPORT_FRACTION,
    ):
        self._sections = tuple(sections)
        if not self._sections:
            raise UnknownSection("At least one section is required")

        self._host = host
        self._scheduler = scheduler
        self._debounce = debounce
        self._min_ratio = min_ratio
        self._header_offset = header_offset
        self._viewport_fraction = viewport_fraction

        self._state = SectionState(active=self._sections[0])
        self._queue: deque = deque()
        self._draining = False
        self._listeners: list[Callable[[str], None]] = []

        self._timer: Handle | None = None
        self._frame: Handle | None = None
        self._intersection_sub: Handle | None = None
        self._scroll_sub: Handle | None = None
        self._started = False
        self._closed = False

    # -- public API ---------------------------------------------------------
    @property
    def active(self) -> str:
        return self._state.active

    @property
    def pending(self) -> str | None:
        return self._state.pending

    @property
    def sections(self) -> tuple[str, ...]:
        return self._sections

    @property
    def intersection_enabled(self) -> bool:
        return self._intersection_sub is not None

    @property
    def closed(self) -> bool:
        return self._closed

    def start(self) -> "ActiveSectionTracker":
        """Register the intersection observer and scroll listener.

        Missing intersection support degrades to scroll-only tracking. If the
        scroll listener cannot be registered, everything registered so far
        is released and SignalSourceError is raised.
        """
        if self._closed:
            raise SignalSourceError("Tracker is closed")
        if self._started:
            return self

        try:
            self._intersection_sub = self._host.observe_intersections(self._on_intersections)
        except (SignalSourceUnavailable, NotImplementedError) as exc:
            logger.warning("Intersection signals unavailable (%s); tracking by scroll position only", exc)
            self._intersection_sub = None

        try:
            self._scroll_sub = self._host.add_scroll_listener(self._on_scroll)
        except Exception as exc:
            self._closed = True
            self._release()
            raise SignalSourceError("Could not register scroll listener") from exc

        self._started = True
        self._on_scroll()
        return self

    def select(self, section: str) -> None:
        """Manual navigation: activate `section` now and scroll to it."""
        if section not in self._sections:
            raise UnknownSection(f"Unknown section: {section!r}")
        self._dispatch(ManualSelect(section))

    def subscribe(self, callback: Callable[[str], None]) -> Callable[[], None]:
        """Call `callback(section)` on every change. Returns an unsubscribe function."""
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def close(self) -> None:
        """Release the observer, scroll listener, pending timer and frame together."""
        if self._closed:
            return
        self._closed = True
        self._queue.clear()
        self._listeners.clear()
        self._release()

    def __enter__(self) -> "ActiveSectionTracker":
        return self.start()

    def __exit__(self, *exc_info) -> None:
        self.close()

    # -- host callbacks -----------------------------------------------------
    def _on_intersections(self, entries: Iterable[IntersectionEntry]) -> None:
        if self._closed:
            return
        known = tuple(e for e in entries if e.section in self._sections)
        self._dispatch(IntersectionSignal(known))

    def _on_scroll(self, *_: Any) -> None:
        if self._closed or self._frame is not None:
            return
        self._frame = self._host.request_animation_frame(self._sample_scroll)

    def _sample_scroll(self, *_: Any) -> None:
        self._frame = None
        if self._closed:
            return
        tops = {section: self._host.section_top(section) for section in self._sections}
        candidate = scroll_candidate(
            tops,
            self._host.scroll_top(),
            self._host.viewport_height(),
            self._header_offset,
            self._viewport_fraction,
        )
        self._dispatch(ScrollSignal(candidate))

    def _on_debounce(self, section: str, token: int) -> None:
        # a superseded timer firing late must not drop the live timer's handle
        if token == self._state.token:
            self._timer = None
        if self._closed:
            return
        self._dispatch(DebounceElapsed(section, token))

    # -- event loop -----------------------------------------------------------
    def _dispatch(self, event: object) -> None:
        self._queue.append(event)
        if self._draining:
            return
        self._draining = True
        try:
            while self._queue:
                self._state, effects = reduce_section_state(
                    self._state, self._queue.popleft(), self._min_ratio
                )
                for effect in effects:
                    self._apply(effect)
        finally:
            self._draining = False

    def _apply(self, effect: object) -> None:
        if self._closed:
            return
        if isinstance(effect, CancelDebounce):
            self._cancel_timer()
        elif isinstance(effect, ScheduleDebounce):
            self._cancel_timer()
            self._timer = self._scheduler.call_later(
                self._debounce, partial(self._on_debounce, effect.section, effect.token)
            )
        elif isinstance(effect, ScrollTo):
            top = self._host.section_top(effect.section)
            if top is not None:
                self._host.scroll_to(max(0.0, top - self._header_offset))
        elif isinstance(effect, Notify):
            logger.debug("Active section %s -> %s", effect.previous, effect.section)
            for callback in list(self._listeners):
                callback(effect.section)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _release(self) -> None:
        handles = [self._timer, self._frame, self._intersection_sub, self._scroll_sub]
        self._timer = self._frame = self._intersection_sub = self._scroll_sub = None

        failures = []
        for handle in handles:
            if handle is None:
                continue
            try:
                handle.cancel()
            except Exception as exc:
                failures.append(exc)
        if failures:
            raise SignalSourceError(f"{len(failures)} signal source(s) failed to release") from failures[0]
