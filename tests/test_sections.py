"""
Tests for active-section tracking: reducer rules and tracker wiring.
"""

import logging

import pytest

from datahub_stats.errors import SignalSourceError, UnknownSection
from datahub_stats.sections import (
    ActiveSectionTracker,
    CancelDebounce,
    DebounceElapsed,
    IntersectionEntry,
    IntersectionSignal,
    ManualSelect,
    Notify,
    ScheduleDebounce,
    ScrollSignal,
    ScrollTo,
    SectionState,
    pick_intersection_winner,
    reduce_section_state,
    scroll_candidate,
)

TOPS = {"usage": 600.0, "errors": 1800.0, "response_times": 3000.0}


class TestPickIntersectionWinner:
    """Test the visibility winner."""

    def test_highest_ratio_wins(self):
        """Test that the most visible section wins."""
        entries = [IntersectionEntry("usage", 0.3, -200.0), IntersectionEntry("errors", 0.6, 120.0)]
        assert pick_intersection_winner(entries) == "errors"

    def test_tie_goes_to_topmost(self):
        """Test that equal ratios fall back to the smaller top offset."""
        entries = [IntersectionEntry("errors", 0.5, 300.0), IntersectionEntry("usage", 0.5, 10.0)]
        assert pick_intersection_winner(entries) == "usage"

    def test_ratio_must_exceed_minimum(self):
        """Test that ratios at or below the threshold are ignored."""
        entries = [IntersectionEntry("usage", 0.1, 0.0), IntersectionEntry("errors", 0.05, 0.0)]
        assert pick_intersection_winner(entries) is None

    def test_not_intersecting_ignored(self):
        """Test that entries leaving the viewport do not count."""
        entries = [IntersectionEntry("usage", 0.9, 0.0, is_intersecting=False)]
        assert pick_intersection_winner(entries) is None


class TestScrollCandidate:
    """Test the scroll-position fallback."""

    def test_top_of_page_is_first_section(self):
        """Test the default when no section has been reached."""
        assert scroll_candidate(TOPS, 0.0, 900.0) == "usage"

    def test_last_reached_section(self):
        """Test that the last section past the threshold wins."""
        # 2000 + 120 >= 1800 - 270, but < 3000 - 270
        assert scroll_candidate(TOPS, 2000.0, 900.0) == "errors"
        assert scroll_candidate(TOPS, 2700.0, 900.0) == "response_times"

    def test_unrendered_section_skipped(self):
        """Test that sections without geometry are passed over."""
        tops = dict(TOPS, errors=None)
        assert scroll_candidate(tops, 2000.0, 900.0) == "usage"

    def test_no_sections(self):
        """Test that an empty section list raises."""
        with pytest.raises(UnknownSection):
            scroll_candidate({}, 0.0, 900.0)


class TestReduceSectionState:
    """Test the pure transition rules."""

    def test_intersection_schedules_debounce(self):
        """Test that a new winner is deferred, not applied."""
        state, effects = reduce_section_state(
            SectionState("usage"),
            IntersectionSignal((IntersectionEntry("errors", 0.6, 0.0),)),
        )
        assert state == SectionState("usage", pending="errors", token=1)
        assert effects == [ScheduleDebounce("errors", 1)]

    def test_newer_intersection_cancels_pending(self):
        """Test that the latest intersection signal replaces the pending one."""
        state = SectionState("usage", pending="errors", token=1)
        state, effects = reduce_section_state(
            state, IntersectionSignal((IntersectionEntry("response_times", 0.7, 0.0),)),
        )
        assert effects == [CancelDebounce(), ScheduleDebounce("response_times", 2)]
        assert state.pending == "response_times"

    def test_intersection_back_to_active_clears_pending(self):
        """Test that re-confirming the active section drops the pending switch."""
        state = SectionState("usage", pending="errors", token=1)
        state, effects = reduce_section_state(
            state, IntersectionSignal((IntersectionEntry("usage", 0.8, 0.0),)),
        )
        assert effects == [CancelDebounce()]
        assert state == SectionState("usage", pending=None, token=1)

    def test_debounce_elapsed_activates(self):
        """Test that the current timer commits the pending section."""
        state, effects = reduce_section_state(
            SectionState("usage", pending="errors", token=3), DebounceElapsed("errors", 3),
        )
        assert state.active == "errors"
        assert state.pending is None
        assert effects == [Notify("usage", "errors")]

    def test_stale_debounce_ignored(self):
        """Test that an older timer generation has no effect."""
        state = SectionState("usage", pending="errors", token=3)
        assert reduce_section_state(state, DebounceElapsed("errors", 2)) == (state, [])

    def test_scroll_applies_immediately(self):
        """Test that a scroll sample switches at once."""
        state, effects = reduce_section_state(SectionState("usage"), ScrollSignal("errors"))
        assert state.active == "errors"
        assert effects == [Notify("usage", "errors")]

    def test_scroll_dropped_while_pending(self):
        """Test that a pending intersection transition takes precedence."""
        state = SectionState("usage", pending="errors", token=1)
        assert reduce_section_state(state, ScrollSignal("response_times")) == (state, [])

    def test_same_section_is_noop(self):
        """Test that re-activating the active section emits nothing."""
        state = SectionState("usage")
        assert reduce_section_state(state, ScrollSignal("usage")) == (state, [])

    def test_manual_select_keeps_pending(self):
        """Test that a click switches and scrolls without touching the timer."""
        state = SectionState("usage", pending="errors", token=1)
        state, effects = reduce_section_state(state, ManualSelect("response_times"))
        assert state == SectionState("response_times", pending="errors", token=1)
        assert effects == [Notify("usage", "response_times"), ScrollTo("response_times")]

    def test_unknown_event(self):
        """Test that unsupported events raise."""
        with pytest.raises(TypeError):
            reduce_section_state(SectionState("usage"), object())


class TestActiveSectionTracker:
    """Test the tracker against a fake page and a manual clock."""

    def test_initial_section(self, viewport, scheduler):
        """Test that tracking starts on the first section."""
        with ActiveSectionTracker(viewport, scheduler) as tracker:
            viewport.flush_frames()
            assert tracker.active == "usage"
            assert tracker.intersection_enabled

    def test_debounced_intersection(self, viewport, scheduler):
        """Test that the more visible section wins after the delay."""
        tracker = ActiveSectionTracker(viewport, scheduler).start()
        changes = []
        tracker.subscribe(changes.append)

        viewport.emit(IntersectionEntry("errors", 0.6, 120.0), IntersectionEntry("usage", 0.3, -200.0))
        scheduler.advance(0.1)
        assert tracker.active == "usage"

        scheduler.advance(0.06)
        assert tracker.active == "errors"
        assert changes == ["errors"]
        tracker.close()

    def test_last_intersection_wins(self, viewport, scheduler):
        """Test that a burst of signals settles on the latest one."""
        tracker = ActiveSectionTracker(viewport, scheduler).start()
        changes = []
        tracker.subscribe(changes.append)

        viewport.emit(IntersectionEntry("errors", 0.6, 0.0))
        scheduler.advance(0.1)
        viewport.emit(IntersectionEntry("response_times", 0.7, 0.0))
        scheduler.advance(0.1)
        assert tracker.active == "usage"

        scheduler.advance(0.1)
        assert tracker.active == "response_times"
        assert changes == ["response_times"]
        tracker.close()

    def test_unknown_sections_in_signal_ignored(self, viewport, scheduler):
        """Test that entries for unregistered sections are dropped."""
        tracker = ActiveSectionTracker(viewport, scheduler).start()
        viewport.emit(IntersectionEntry("footer", 0.9, 0.0))
        assert scheduler.pending == 0
        tracker.close()

    def test_scroll_fallback(self, make_viewport, scheduler, caplog):
        """Test scroll-only tracking when intersections are unsupported."""
        viewport = make_viewport(intersections=False)
        with caplog.at_level(logging.WARNING):
            tracker = ActiveSectionTracker(viewport, scheduler).start()

        assert not tracker.intersection_enabled
        assert "scroll position only" in caplog.text

        viewport.flush_frames()
        viewport.scroll(2000.0)
        viewport.flush_frames()
        assert tracker.active == "errors"
        tracker.close()

    def test_scroll_sampled_once_per_frame(self, viewport, scheduler):
        """Test that scroll events are throttled to the animation frame."""
        tracker = ActiveSectionTracker(viewport, scheduler).start()
        viewport.flush_frames()

        viewport.scroll(1000.0)
        viewport.scroll(2000.0)
        viewport.scroll(2800.0)
        assert len(viewport.frames) == 1

        viewport.flush_frames()
        assert tracker.active == "response_times"
        tracker.close()

    def test_scroll_ignored_while_intersection_pending(self, viewport, scheduler):
        """Test intersection precedence during the debounce window."""
        tracker = ActiveSectionTracker(viewport, scheduler).start()
        viewport.flush_frames()

        viewport.emit(IntersectionEntry("errors", 0.6, 0.0))
        viewport.scroll(2800.0)
        viewport.flush_frames()
        assert tracker.active == "usage"

        scheduler.advance(0.15)
        assert tracker.active == "errors"

        viewport.scroll(2900.0)
        viewport.flush_frames()
        assert tracker.active == "response_times"
        tracker.close()

    def test_manual_select(self, viewport, scheduler):
        """Test that a click activates at once and scrolls below the header."""
        tracker = ActiveSectionTracker(viewport, scheduler).start()
        changes = []
        tracker.subscribe(changes.append)

        tracker.select("response_times")
        assert tracker.active == "response_times"
        assert viewport.scroll_calls == [2880.0]

        viewport.flush_frames()
        assert changes == ["response_times"]
        tracker.close()

    def test_manual_select_leaves_pending_debounce(self, viewport, scheduler):
        """Test that a pending intersection transition still fires after a click."""
        tracker = ActiveSectionTracker(viewport, scheduler).start()
        viewport.emit(IntersectionEntry("errors", 0.6, 0.0))
        tracker.select("response_times")
        assert scheduler.pending == 1

        scheduler.advance(0.15)
        assert tracker.active == "errors"
        tracker.close()

    def test_select_unknown_section(self, viewport, scheduler):
        """Test that selecting an unregistered section raises."""
        tracker = ActiveSectionTracker(viewport, scheduler).start()
        with pytest.raises(UnknownSection):
            tracker.select("footer")
        tracker.close()

    def test_unsubscribe(self, viewport, scheduler):
        """Test that an unsubscribed callback stops receiving changes."""
        tracker = ActiveSectionTracker(viewport, scheduler).start()
        changes = []
        unsubscribe = tracker.subscribe(changes.append)
        unsubscribe()
        tracker.select("errors")
        assert changes == []
        tracker.close()

    def test_close_releases_everything(self, viewport, scheduler):
        """Test that teardown cancels the observer, listener, timer and frame."""
        tracker = ActiveSectionTracker(viewport, scheduler).start()
        viewport.emit(IntersectionEntry("errors", 0.6, 0.0))
        assert scheduler.pending == 1
        assert len(viewport.frames) == 1

        tracker.close()

        assert scheduler.pending == 0
        assert viewport.frames == []
        assert viewport.intersection_callbacks == []
        assert viewport.scroll_callbacks == []
        assert tracker.closed

        tracker.close()
        scheduler.advance(1.0)
        assert tracker.active == "usage"

    def test_late_stale_timer_keeps_live_handle(self, viewport, scheduler):
        """Test that a superseded timer firing late does not orphan the live timer."""
        tracker = ActiveSectionTracker(viewport, scheduler).start()
        viewport.emit(IntersectionEntry("errors", 0.6, 0.0))
        viewport.emit(IntersectionEntry("response_times", 0.7, 0.0))

        (_, stale_callback, _), (live_handle, _, _) = scheduler.history
        stale_callback()
        assert tracker.active == "usage"
        assert tracker.pending == "response_times"

        tracker.close()
        assert live_handle.cancelled

    def test_scroll_registration_failure(self, make_viewport, scheduler):
        """Test that a failed scroll listener releases the intersection observer."""
        viewport = make_viewport(scroll_fails=True)
        tracker = ActiveSectionTracker(viewport, scheduler)

        with pytest.raises(SignalSourceError):
            tracker.start()

        assert viewport.intersection_callbacks == []
        assert tracker.closed

    def test_empty_sections_rejected(self, viewport, scheduler):
        """Test that a tracker needs at least one section."""
        with pytest.raises(UnknownSection):
            ActiveSectionTracker(viewport, scheduler, sections=[])
