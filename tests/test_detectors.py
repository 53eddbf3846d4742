# ==============================================================================
# Tests for Interaction Detectors
# ==============================================================================
"""
Tests for each detector in isolation: a real Page and VirtualScheduler, an
EventRecorder without a flush hook, and assertions on the buffer.
"""

import pytest

from tracklens.tracker.config import TrackerConfig
from tracklens.tracker.detectors import (
    ClickDetector,
    ElementVisibilityDetector,
    ErrorDetector,
    FormDetector,
    IdleDetector,
    MouseTrailDetector,
    PerformanceDetector,
    ScrollDetector,
    SnapshotDetector,
    Throttle,
    VisibilityDetector,
)
from tracklens.tracker.page import (
    DomNode,
    ErrorEvent,
    FocusEvent,
    NavigationTiming,
    Page,
    PerformanceEntry,
    PointerEvent,
)
from tracklens.tracker.recorder import EventRecorder, TrackerState

T0 = 1_700_000_000_000


def _attach(detector_cls, page, scheduler, **config):
    state = TrackerState(session_id="sess_1", user_id="u1", start_time=scheduler.now(), last_activity=scheduler.now())
    recorder = EventRecorder(page, scheduler, state)
    detector = detector_cls(recorder, TrackerConfig(**config))
    detector.attach()
    return detector, recorder


def _types(recorder) -> list[str]:
    return [e.type for e in recorder.buffer]


def _of(recorder, type_: str) -> list:
    return [e for e in recorder.buffer if e.type == type_]


def _click(x, y, target=None) -> PointerEvent:
    return PointerEvent(client_x=x, client_y=y, page_x=x, page_y=y + 500, target=target)


# ==============================================================================
# Throttle
# ==============================================================================


class TestThrottle:
    def test_drops_calls_inside_interval(self, scheduler):
        throttle = Throttle(scheduler.now, 100)
        results = []
        for _ in range(4):
            results.append(throttle.allow())
            scheduler.advance(40)
        # t=0 allowed, 40 and 80 dropped, 120 allowed
        assert results == [True, False, False, True]

    def test_zero_interval_allows_everything(self, scheduler):
        throttle = Throttle(scheduler.now, 0)
        assert all(throttle.allow() for _ in range(5))


# ==============================================================================
# Clicks and rage clicks
# ==============================================================================


class TestClickDetector:
    """Tests for click recording and rage-click bursts."""

    def test_click_payload(self, page, scheduler):
        button = page.body.append(DomNode("BUTTON", id="save", text_content="Save"))
        _, recorder = _attach(ClickDetector, page, scheduler)

        page.dispatch("click", PointerEvent(client_x=10, client_y=20, page_x=10, page_y=820, button=0, target=button))

        (event,) = recorder.buffer
        assert event.type == "click"
        assert event.data["x"] == 10
        assert event.data["pageY"] == 820
        assert event.data["button"] == 0
        assert event.data["element"]["selector"] == "button#save"
        assert event.data["timestamp"] == T0

    def test_click_updates_activity(self, page, scheduler):
        _, recorder = _attach(ClickDetector, page, scheduler)
        scheduler.advance(3_000)
        page.dispatch("click", _click(1, 1))
        assert recorder.state.last_activity == T0 + 3_000

    def test_rage_click_scenario(self, page, scheduler):
        _, recorder = _attach(ClickDetector, page, scheduler)
        for x, y in [(100, 100), (110, 105), (95, 98)]:
            page.dispatch("click", _click(x, y))
            scheduler.advance(200)

        (rage,) = _of(recorder, "rage_click")
        assert rage.data["clickCount"] == 3
        assert (rage.data["x"], rage.data["y"]) == (102, 101)
        assert _types(recorder) == ["click", "click", "click", "rage_click"]

    def test_back_to_back_bursts_each_emit_once(self, page, scheduler):
        _, recorder = _attach(ClickDetector, page, scheduler)
        for _ in range(2):
            for _ in range(3):
                page.dispatch("click", _click(300, 300))
                scheduler.advance(50)

        assert len(_of(recorder, "rage_click")) == 2

    def test_spread_burst_clears_window(self, page, scheduler):
        detector, recorder = _attach(ClickDetector, page, scheduler)
        for x in (0, 200, 400):
            page.dispatch("click", _click(x, 0))
            scheduler.advance(10)

        assert _of(recorder, "rage_click") == []
        assert detector.history == []

        # Two more tight clicks are not enough on their own
        page.dispatch("click", _click(400, 0))
        page.dispatch("click", _click(400, 0))
        assert _of(recorder, "rage_click") == []

    def test_clicks_outside_window_do_not_count(self, page, scheduler):
        _, recorder = _attach(ClickDetector, page, scheduler)
        page.dispatch("click", _click(50, 50))
        scheduler.advance(1_000)
        page.dispatch("click", _click(50, 50))
        scheduler.advance(100)
        page.dispatch("click", _click(50, 50))

        assert _of(recorder, "rage_click") == []

    def test_tolerance_is_strict(self, page, scheduler):
        _, recorder = _attach(ClickDetector, page, scheduler, rage_click_tolerance=10)
        # Centroid x = 10, so 0 and 20 sit exactly on the tolerance
        for x in (0, 10, 20):
            page.dispatch("click", _click(x, 0))
        assert _of(recorder, "rage_click") == []


# ==============================================================================
# Mouse and scroll sampling
# ==============================================================================


class TestMouseTrailDetector:
    """Tests for pointer sampling and chunked trails."""

    def test_throttled_samples(self, page, scheduler):
        detector, recorder = _attach(MouseTrailDetector, page, scheduler)
        for _ in range(5):
            page.dispatch("mousemove", _click(10, 10))
            scheduler.advance(50)

        # Samples at t=0, 100, 200
        assert len(detector.trail) == 3
        assert recorder.buffer == []

    def test_chunk_emitted_at_trail_size(self, page, scheduler):
        detector, recorder = _attach(MouseTrailDetector, page, scheduler, mouse_trail_size=5)
        for i in range(7):
            page.dispatch("mousemove", _click(i, i))
            scheduler.advance(100)

        (trail,) = _of(recorder, "mouse_trail")
        points = trail.data["points"]
        assert [p["x"] for p in points] == [0, 1, 2, 3, 4]
        assert set(points[0]) == {"x", "y", "pageX", "pageY", "t"}
        assert len(detector.trail) == 2

    def test_flush_trail(self, page, scheduler):
        detector, recorder = _attach(MouseTrailDetector, page, scheduler)
        page.dispatch("mousemove", _click(1, 1))
        detector.flush_trail()
        detector.flush_trail()

        assert len(_of(recorder, "mouse_trail")) == 1
        assert detector.trail == []

    def test_moves_count_as_activity_even_when_dropped(self, page, scheduler):
        _, recorder = _attach(MouseTrailDetector, page, scheduler)
        page.dispatch("mousemove", _click(1, 1))
        scheduler.advance(30)
        page.dispatch("mousemove", _click(2, 2))
        assert recorder.state.last_activity == T0 + 30


class TestScrollDetector:
    """Tests for scroll depth sampling."""

    def _scroll(self, page, scheduler, y):
        page.scroll_y = y
        page.dispatch("scroll")
        scheduler.advance(300)

    def test_percent_and_max_depth(self, page, scheduler):
        _, recorder = _attach(ScrollDetector, page, scheduler)
        # Scrollable height is 2720 - 720 = 2000
        for y in (500, 1500, 1000):
            self._scroll(page, scheduler, y)

        samples = [(e.data["scrollPercent"], e.data["maxDepth"]) for e in recorder.buffer]
        assert samples == [(25, 25), (75, 75), (50, 75)]
        assert recorder.state.max_scroll_depth == 75

    def test_bounds(self, page, scheduler):
        _, recorder = _attach(ScrollDetector, page, scheduler)
        for y in (-200, 9_999, 0, 2_000, 3):
            self._scroll(page, scheduler, y)

        previous_max = 0
        for event in recorder.buffer:
            assert 0 <= event.data["scrollPercent"] <= 100
            assert event.data["maxDepth"] >= previous_max
            previous_max = event.data["maxDepth"]
        assert previous_max == 100

    def test_unscrollable_page_is_zero(self, scheduler):
        page = Page("https://app.example.com/", doc_height=500, inner_height=720)
        _, recorder = _attach(ScrollDetector, page, scheduler)
        self._scroll(page, scheduler, 40)
        assert recorder.buffer[0].data["scrollPercent"] == 0

    def test_throttled(self, page, scheduler):
        _, recorder = _attach(ScrollDetector, page, scheduler)
        for y in (100, 200, 300):
            page.scroll_y = y
            page.dispatch("scroll")
            scheduler.advance(100)
        # t=0 sampled, t=100 and t=200 dropped
        assert len(recorder.buffer) == 1


# ==============================================================================
# Forms, visibility, idle
# ==============================================================================


class TestFormDetector:
    """Tests for privacy-preserving focus/blur tracking."""

    def test_focus_and_blur(self, page, scheduler):
        field = page.body.append(DomNode("INPUT", input_type="email", name="email", value="a@b.c"))
        _, recorder = _attach(FormDetector, page, scheduler)

        page.dispatch("focusin", FocusEvent(field))
        page.dispatch("focusout", FocusEvent(field))

        focus, blur = recorder.buffer
        assert focus.type == "form_focus"
        assert focus.data["fieldType"] == "email"
        assert focus.data["fieldName"] == "email"
        assert blur.type == "form_blur"
        assert blur.data["hasValue"] is True
        assert "a@b.c" not in str(blur.data)

    def test_field_type_and_name_fallbacks(self, page, scheduler):
        area = page.body.append(DomNode("TEXTAREA", id="notes"))
        _, recorder = _attach(FormDetector, page, scheduler)

        page.dispatch("focusout", FocusEvent(area))

        (blur,) = recorder.buffer
        assert blur.data["fieldType"] == "textarea"
        assert blur.data["fieldName"] == "notes"
        assert blur.data["hasValue"] is False

    def test_non_form_elements_ignored(self, page, scheduler):
        div = page.body.append(DomNode("DIV"))
        _, recorder = _attach(FormDetector, page, scheduler)
        page.dispatch("focusin", FocusEvent(div))
        assert recorder.buffer == []


class TestVisibilityDetector:
    def test_state_change(self, page, scheduler):
        _, recorder = _attach(VisibilityDetector, page, scheduler)
        page.visibility_state = "hidden"
        page.dispatch("visibilitychange")

        (event,) = recorder.buffer
        assert event.data == {"hidden": True, "state": "hidden"}


class TestIdleDetector:
    """Tests for periodic idle transitions."""

    def test_idle_start_and_end(self, page, scheduler):
        _, recorder = _attach(IdleDetector, page, scheduler)

        scheduler.advance(60_000)
        assert recorder.buffer == []

        scheduler.advance(10_000)
        (start,) = recorder.buffer
        assert start.type == "idle_start"
        assert start.data == {"idleAfter": 60_000}
        assert recorder.state.is_idle

        scheduler.advance(5_000)
        recorder.touch()
        scheduler.advance(5_000)

        end = recorder.buffer[-1]
        assert end.type == "idle_end"
        assert end.data == {"idleDuration": 75_000}
        assert not recorder.state.is_idle

    def test_single_idle_start_while_idle(self, page, scheduler):
        _, recorder = _attach(IdleDetector, page, scheduler)
        scheduler.advance(200_000)
        assert _types(recorder) == ["idle_start"]


# ==============================================================================
# Performance and element visibility
# ==============================================================================


class NoObserverPage(Page):
    """A page on a platform without performance or intersection observers."""

    def observe_performance(self, entry_type, callback):
        raise NotImplementedError(entry_type)

    def create_intersection_observer(self, callback, thresholds):
        return None


class TestPerformanceDetector:
    """Tests for navigation timing and web vitals."""

    def _timing(self) -> NavigationTiming:
        return NavigationTiming(
            fetch_start=10,
            domain_lookup_start=12,
            domain_lookup_end=32.4,
            connect_start=32.4,
            connect_end=60.6,
            request_start=61,
            response_start=181,
            dom_interactive=410,
            dom_content_loaded_event_end=510,
            load_event_end=1_010,
            transfer_size=4_096,
        )

    def test_navigation_timing(self, page, scheduler):
        page.nav_timing = self._timing()
        _, recorder = _attach(PerformanceDetector, page, scheduler)

        (event,) = recorder.buffer
        assert event.data == {
            "dns": 20,
            "tcp": 28,
            "ttfb": 120,
            "domLoad": 500,
            "fullLoad": 1_000,
            "domInteractive": 400,
            "transferSize": 4_096,
        }

    def test_waits_for_load(self, scheduler):
        page = Page("https://app.example.com/", ready_state="loading")
        page.nav_timing = self._timing()
        _, recorder = _attach(PerformanceDetector, page, scheduler)
        assert recorder.buffer == []

        page.dispatch("load")
        scheduler.advance(999)
        assert recorder.buffer == []
        scheduler.advance(1)
        assert _types(recorder) == ["performance"]

    def test_web_vitals(self, page, scheduler):
        _, recorder = _attach(PerformanceDetector, page, scheduler)

        page.emit_performance_entries(
            "largest-contentful-paint", [PerformanceEntry(start_time=800.2), PerformanceEntry(start_time=1_200.6)]
        )
        page.emit_performance_entries("first-input", [PerformanceEntry(start_time=2_000, processing_start=2_016.4)])

        vitals = [(e.data["name"], e.data["value"]) for e in _of(recorder, "web_vital")]
        assert vitals == [("LCP", 1_201), ("FID", 16)]

    def test_cls_is_cumulative_and_ignores_input_shifts(self, page, scheduler):
        _, recorder = _attach(PerformanceDetector, page, scheduler)

        page.emit_performance_entries("layout-shift", [PerformanceEntry(value=0.05)])
        page.emit_performance_entries(
            "layout-shift", [PerformanceEntry(value=0.5, had_recent_input=True), PerformanceEntry(value=0.0204)]
        )

        values = [e.data["value"] for e in _of(recorder, "web_vital")]
        assert values == [pytest.approx(0.05), pytest.approx(0.07)]

    def test_missing_observers_degrade(self, scheduler):
        page = NoObserverPage("https://app.example.com/")
        page.nav_timing = self._timing()
        _, recorder = _attach(PerformanceDetector, page, scheduler)
        assert _types(recorder) == ["performance"]

    def test_missing_timing_skips_performance_event(self, page, scheduler):
        _, recorder = _attach(PerformanceDetector, page, scheduler)
        assert recorder.buffer == []


class TestElementVisibilityDetector:
    """Tests for threshold crossings of landmark elements."""

    def test_observes_landmarks_once(self, page, scheduler):
        main = page.body.append(DomNode("MAIN"))
        card = page.body.append(DomNode("SECTION", class_name="card"))
        page.body.append(DomNode("DIV"))
        tracked = page.body.append(DomNode("DIV", attributes={"data-track": ""}))

        detector, _ = _attach(ElementVisibilityDetector, page, scheduler)

        targets = detector.observer.targets
        assert len(targets) == 3
        assert all(any(t is node for t in targets) for node in (main, card, tracked))

    def test_emits_on_crossing_while_intersecting(self, page, scheduler):
        main = page.body.append(DomNode("MAIN", id="content"))
        _, recorder = _attach(ElementVisibilityDetector, page, scheduler)

        page.set_intersection(main, 0.3)
        page.set_intersection(main, 0.4)
        page.set_intersection(main, 1.0)
        page.set_intersection(main, 0.0)

        visible = [e.data["visiblePercent"] for e in _of(recorder, "element_visible")]
        assert visible == [30, 100]
        assert recorder.buffer[0].data["element"]["selector"] == "main#content"

    def test_unsupported_platform(self, scheduler):
        page = NoObserverPage("https://app.example.com/")
        page.body.append(DomNode("MAIN"))
        detector, recorder = _attach(ElementVisibilityDetector, page, scheduler)
        assert detector.observer is None
        assert recorder.buffer == []


# ==============================================================================
# Errors and snapshots
# ==============================================================================


class TestErrorDetector:
    def test_error_payload(self, page, scheduler):
        _, recorder = _attach(ErrorDetector, page, scheduler)
        page.dispatch(
            "error",
            ErrorEvent(message="x is undefined", filename="app.js", lineno=12, colno=4, stack="E" * 900),
        )

        (event,) = recorder.buffer
        assert event.data["message"] == "x is undefined"
        assert event.data["line"] == 12
        assert len(event.data["stack"]) == 500

    def test_defaults(self, page, scheduler):
        _, recorder = _attach(ErrorDetector, page, scheduler)
        page.dispatch("error", ErrorEvent())
        assert recorder.buffer[0].data == {
            "message": "Unknown error",
            "filename": None,
            "line": None,
            "col": None,
            "stack": None,
        }


class BrokenSnapshotPage(Page):
    def outer_html(self) -> str:
        raise RuntimeError("serialization failed")


class TestSnapshotDetector:
    """Tests for periodic DOM snapshots."""

    def test_periodic_truncated_snapshot(self, page, scheduler):
        page.body.append(DomNode("P", text_content="y" * 60_000))
        _, recorder = _attach(SnapshotDetector, page, scheduler, screenshot_interval=1_000)

        scheduler.advance(2_500)
        snapshots = _of(recorder, "dom_snapshot")
        assert len(snapshots) == 2
        assert len(snapshots[0].data["snapshot"]) == 50_000
        assert snapshots[0].data["title"] == "Dashboard"

    def test_zero_interval_disables(self, page, scheduler):
        _attach(SnapshotDetector, page, scheduler, screenshot_interval=0)
        assert scheduler.pending == 0

    def test_flag_disables(self, page, scheduler):
        _attach(SnapshotDetector, page, scheduler, capture_screenshots=False)
        assert scheduler.pending == 0

    def test_failure_is_silent(self, scheduler):
        page = BrokenSnapshotPage("https://app.example.com/")
        _, recorder = _attach(SnapshotDetector, page, scheduler, screenshot_interval=1_000)
        scheduler.advance(1_000)
        assert recorder.buffer == []


# ==============================================================================
# Detach
# ==============================================================================


class TestDetach:
    def test_detach_removes_listeners_and_timers(self, page, scheduler):
        click, recorder = _attach(ClickDetector, page, scheduler)
        idle, _ = _attach(IdleDetector, page, scheduler)

        click.detach()
        idle.detach()
        page.dispatch("click", _click(1, 1))

        assert recorder.buffer == []
        assert scheduler.pending == 0
