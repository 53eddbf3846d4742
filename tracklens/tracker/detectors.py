# ==============================================================================
# Interaction Detectors
# ==============================================================================
"""
Independent observers that turn page activity into recorded events.

Each detector is constructed with the shared EventRecorder and the frozen
TrackerConfig, registers its listeners and timers in ``attach()`` and
removes them in ``detach()``. Every callback is wrapped by
``swallow_errors`` so a failing detector degrades to a no-op for its own
signal only.

Detectors:
- ClickDetector: clicks plus rage-click bursts
- MouseTrailDetector: throttled pointer samples, emitted in chunks
- ScrollDetector: throttled scroll depth with a per-page maximum
- FormDetector: focus/blur on input, select and textarea (never values)
- VisibilityDetector: document visibility changes
- IdleDetector: periodic active/idle transitions
- NavigationDetector: page views and SPA route changes
- PerformanceDetector: navigation timing and web vitals
- ElementVisibilityDetector: threshold crossings of landmark elements
- ErrorDetector: uncaught errors
- SnapshotDetector: periodic truncated DOM snapshots
"""

import logging
import math
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any

from tracklens.core.models import EventKind
from tracklens.core.payloads import (
    ClickData,
    DomSnapshotData,
    ElementVisibleData,
    FormBlurData,
    FormFocusData,
    IdleEndData,
    IdleStartData,
    JsErrorData,
    MouseTrailData,
    PageExitData,
    PageViewData,
    PerformanceData,
    PointSample,
    RageClickData,
    ScrollData,
    VisibilityData,
    WebVitalData,
)
from tracklens.tracker.config import TrackerConfig
from tracklens.tracker.descriptor import describe_element
from tracklens.tracker.navigation import HistoryInterceptor
from tracklens.tracker.page import (
    ErrorEvent,
    FocusEvent,
    IntersectionEntry,
    PerformanceEntry,
    PointerEvent,
)
from tracklens.tracker.recorder import EventRecorder, swallow_errors

logger = logging.getLogger(__name__)

FORM_TAGS = frozenset({"INPUT", "SELECT", "TEXTAREA"})


def _half_up(value: float) -> int:
    return math.floor(value + 0.5)


class Throttle:
    """
    Drop-style sampler: a call is allowed when at least ``interval_ms`` has
    passed since the last allowed call. Suppressed calls are not queued.
    """

    def __init__(self, clock: Callable[[], int], interval_ms: int):
        self._clock = clock
        self._interval = interval_ms
        self._last: int | None = None

    def allow(self) -> bool:
        now = self._clock()
        if self._last is not None and now - self._last < self._interval:
            return False
        self._last = now
        return True


# ==============================================================================
# Base
# ==============================================================================


class Detector(ABC):
    """Base class: shared collaborators plus listener and timer bookkeeping."""

    def __init__(self, recorder: EventRecorder, config: TrackerConfig):
        self.recorder = recorder
        self.config = config
        self.page = recorder.page
        self.scheduler = recorder.scheduler
        self.state = recorder.state
        self._listeners: list[tuple[str, Callable]] = []
        self._timers: list[Any] = []

    @abstractmethod
    def attach(self) -> None:
        """Register listeners and timers. Called once per page load."""
        pass

    def detach(self) -> None:
        for name, listener in self._listeners:
            self.page.remove_event_listener(name, listener)
        for handle in self._timers:
            self.scheduler.cancel(handle)
        self._listeners.clear()
        self._timers.clear()

    def _listen(self, name: str, listener: Callable) -> None:
        self.page.add_event_listener(name, listener)
        self._listeners.append((name, listener))

    def _every(self, interval_ms: int, callback: Callable[[], None]) -> None:
        self._timers.append(self.scheduler.set_interval(callback, interval_ms))


# ==============================================================================
# Pointer and scroll
# ==============================================================================


class ClickDetector(Detector):
    """Records every click and emits rage_click for tight rapid bursts."""

    def __init__(self, recorder: EventRecorder, config: TrackerConfig):
        super().__init__(recorder, config)
        self.history: list[tuple[float, float, int]] = []

    def attach(self) -> None:
        self._listen("click", self.on_click)

    @swallow_errors
    def on_click(self, event: PointerEvent) -> None:
        self.recorder.touch()
        now = self.recorder.now()
        element = describe_element(event.target, self.page)

        self.recorder.record(
            EventKind.CLICK,
            ClickData(
                x=event.client_x,
                y=event.client_y,
                page_x=event.page_x,
                page_y=event.page_y,
                button=event.button,
                element=element,
                timestamp=now,
            ),
        )
        self._check_rage(event.client_x, event.client_y, now, element)

    def _check_rage(self, x: float, y: float, now: int, element) -> None:
        config = self.config
        self.history.append((x, y, now))
        self.history = [c for c in self.history if now - c[2] < config.rage_click_window]

        if len(self.history) < config.rage_click_threshold:
            return

        count = len(self.history)
        avg_x = sum(c[0] for c in self.history) / count
        avg_y = sum(c[1] for c in self.history) / count
        is_cluster = all(
            abs(c[0] - avg_x) < config.rage_click_tolerance
            and abs(c[1] - avg_y) < config.rage_click_tolerance
            for c in self.history
        )
        if is_cluster:
            self.recorder.record(
                EventKind.RAGE_CLICK,
                RageClickData(x=_half_up(avg_x), y=_half_up(avg_y), click_count=count, element=element),
            )
        # Windows never overlap, even when the burst was too spread out
        self.history = []


class MouseTrailDetector(Detector):
    """Samples pointer movement and emits it in fixed-size mouse_trail chunks."""

    def __init__(self, recorder: EventRecorder, config: TrackerConfig):
        super().__init__(recorder, config)
        self.trail: list[PointSample] = []
        self._throttle = Throttle(recorder.now, config.mouse_sample_rate)

    def attach(self) -> None:
        self._listen("mousemove", self.on_move)

    @swallow_errors
    def on_move(self, event: PointerEvent) -> None:
        self.recorder.touch()
        if not self._throttle.allow():
            return

        self.trail.append(
            PointSample(
                x=event.client_x,
                y=event.client_y,
                page_x=event.page_x,
                page_y=event.page_y,
                t=self.recorder.now(),
            )
        )
        if len(self.trail) >= self.config.mouse_trail_size:
            self.flush_trail()

    def flush_trail(self) -> None:
        """Emit any buffered points as one mouse_trail event."""
        if not self.trail:
            return
        points, self.trail = self.trail, []
        self.recorder.record(EventKind.MOUSE_TRAIL, MouseTrailData(points=points))


class ScrollDetector(Detector):
    """Samples scroll depth as a percentage of the scrollable height."""

    def __init__(self, recorder: EventRecorder, config: TrackerConfig):
        super().__init__(recorder, config)
        self._throttle = Throttle(recorder.now, config.scroll_sample_rate)

    def attach(self) -> None:
        self._listen("scroll", self.on_scroll)

    def scroll_percent(self) -> int:
        """Current depth in [0, 100]; 0 when the page cannot scroll."""
        scrollable = self.page.doc_height - self.page.inner_height
        if scrollable <= 0:
            return 0
        return min(max(_half_up(self.page.scroll_y / scrollable * 100), 0), 100)

    @swallow_errors
    def on_scroll(self, event=None) -> None:
        self.recorder.touch()
        if not self._throttle.allow():
            return

        percent = self.scroll_percent()
        if percent > self.state.max_scroll_depth:
            self.state.max_scroll_depth = percent

        self.recorder.record(
            EventKind.SCROLL,
            ScrollData(
                scroll_y=_half_up(self.page.scroll_y),
                scroll_percent=percent,
                max_depth=self.state.max_scroll_depth,
            ),
        )


# ==============================================================================
# Forms, visibility, idle
# ==============================================================================


class FormDetector(Detector):
    """Focus and blur on form fields. Field values are never captured."""

    def attach(self) -> None:
        self._listen("focusin", self.on_focus)
        self._listen("focusout", self.on_blur)

    def _field(self, event: FocusEvent) -> dict | None:
        target = event.target
        if target is None or target.tag_name.upper() not in FORM_TAGS:
            return None
        return {
            "element": describe_element(target, self.page),
            "field_type": target.input_type or target.tag_name.lower(),
            "field_name": target.name or target.id or None,
        }

    @swallow_errors
    def on_focus(self, event: FocusEvent) -> None:
        self.recorder.touch()
        field = self._field(event)
        if field is not None:
            self.recorder.record(EventKind.FORM_FOCUS, FormFocusData(**field))

    @swallow_errors
    def on_blur(self, event: FocusEvent) -> None:
        field = self._field(event)
        if field is not None:
            self.recorder.record(
                EventKind.FORM_BLUR, FormBlurData(**field, has_value=bool(event.target.value))
            )


class VisibilityDetector(Detector):
    def attach(self) -> None:
        self._listen("visibilitychange", self.on_change)

    @swallow_errors
    def on_change(self, event=None) -> None:
        self.recorder.record(
            EventKind.VISIBILITY,
            VisibilityData(hidden=self.page.hidden, state=self.page.visibility_state),
        )


class IdleDetector(Detector):
    """
    Periodically compares time since last activity against the idle timeout.

    ``idle_end`` reports the gap between the last activity before going idle
    and the activity that ended it.
    """

    def attach(self) -> None:
        self._every(self.config.idle_check_interval, self.check)

    @swallow_errors
    def check(self) -> None:
        state = self.state
        now = self.recorder.now()
        was_idle = state.is_idle
        state.is_idle = now - state.last_activity > self.config.idle_timeout

        if state.is_idle and not was_idle:
            state.idle_since = state.last_activity
            self.recorder.record(EventKind.IDLE_START, IdleStartData(idle_after=self.config.idle_timeout))
        elif was_idle and not state.is_idle:
            self.recorder.record(
                EventKind.IDLE_END, IdleEndData(idle_duration=state.last_activity - state.idle_since)
            )


# ==============================================================================
# Navigation
# ==============================================================================


class NavigationDetector(Detector):
    """Page views, plus page_exit/page_view pairs on SPA route changes."""

    def __init__(self, recorder: EventRecorder, config: TrackerConfig, history: HistoryInterceptor):
        super().__init__(recorder, config)
        self.history = history

    def attach(self) -> None:
        self.history.subscribe(self.check_navigation)
        self.history.attach()

    def detach(self) -> None:
        self.history.detach()
        super().detach()

    @staticmethod
    def _location_key(location) -> str:
        return location.pathname + location.hash

    def track_page_view(self) -> None:
        """Start a new page view at the current location."""
        state = self.state
        location = self.page.location
        state.page_view_count += 1
        state.current_url = location.href
        state.location_key = self._location_key(location)
        state.page_started_at = self.recorder.now()
        state.max_scroll_depth = 0

        self.recorder.record(
            EventKind.PAGE_VIEW,
            PageViewData(
                url=location.href,
                path=location.pathname,
                title=self.page.title,
                referrer=self.page.referrer,
                page_view_number=state.page_view_count,
            ),
        )

    @swallow_errors
    def check_navigation(self) -> None:
        """Emit page_exit + page_view if the path or hash changed."""
        state = self.state
        if self._location_key(self.page.location) == state.location_key:
            return

        self.recorder.record(
            EventKind.PAGE_EXIT,
            PageExitData(
                url=state.current_url,
                time_on_page=self.recorder.now() - state.page_started_at,
                max_scroll_depth=state.max_scroll_depth,
            ),
        )
        self.track_page_view()


# ==============================================================================
# Load-time signals
# ==============================================================================


class PerformanceDetector(Detector):
    """
    Navigation timing once per load, plus LCP, FID and CLS observers.

    CLS is a running sum of layout shifts not caused by recent input and
    is re-emitted on every observer callback, so the latest value wins.
    """

    def __init__(self, recorder: EventRecorder, config: TrackerConfig):
        super().__init__(recorder, config)
        self.cls_value = 0.0

    def attach(self) -> None:
        if self.page.ready_state == "complete":
            self.capture()
        else:
            self._listen("load", self.on_load)

    @swallow_errors
    def on_load(self, event=None) -> None:
        self._timers.append(self.scheduler.set_timeout(self.capture, self.config.performance_delay))

    @swallow_errors
    def capture(self) -> None:
        timing = self.page.navigation_timing()
        if timing is not None:
            self.recorder.record(
                EventKind.PERFORMANCE,
                PerformanceData(
                    dns=_half_up(timing.domain_lookup_end - timing.domain_lookup_start),
                    tcp=_half_up(timing.connect_end - timing.connect_start),
                    ttfb=_half_up(timing.response_start - timing.request_start),
                    dom_load=_half_up(timing.dom_content_loaded_event_end - timing.fetch_start),
                    full_load=_half_up(timing.load_event_end - timing.fetch_start),
                    dom_interactive=_half_up(timing.dom_interactive - timing.fetch_start),
                    transfer_size=timing.transfer_size or 0,
                ),
            )

        self._observe("largest-contentful-paint", self.on_lcp)
        self._observe("first-input", self.on_fid)
        self._observe("layout-shift", self.on_layout_shift)

    def _observe(self, entry_type: str, callback) -> None:
        try:
            self.page.observe_performance(entry_type, callback)
        except NotImplementedError:
            logger.debug("Performance observer %s unsupported", entry_type)

    def _vital(self, name: str, value: float) -> None:
        self.recorder.record(EventKind.WEB_VITAL, WebVitalData(name=name, value=value))

    @swallow_errors
    def on_lcp(self, entries: list[PerformanceEntry]) -> None:
        if entries:
            self._vital("LCP", _half_up(entries[-1].start_time))

    @swallow_errors
    def on_fid(self, entries: list[PerformanceEntry]) -> None:
        for entry in entries:
            self._vital("FID", _half_up(entry.processing_start - entry.start_time))

    @swallow_errors
    def on_layout_shift(self, entries: list[PerformanceEntry]) -> None:
        for entry in entries:
            if not entry.had_recent_input:
                self.cls_value += entry.value
        self._vital("CLS", _half_up(self.cls_value * 1000) / 1000)


class ElementVisibilityDetector(Detector):
    """Watches landmark elements and reports threshold crossings."""

    def __init__(self, recorder: EventRecorder, config: TrackerConfig):
        super().__init__(recorder, config)
        self.observer = None

    def attach(self) -> None:
        if self.page.ready_state == "complete":
            self.setup()
        else:
            self._listen("load", self.setup)

    @swallow_errors
    def setup(self, event=None) -> None:
        self.observer = self.page.create_intersection_observer(
            self.on_entries, list(self.config.visibility_thresholds)
        )
        if self.observer is None:
            return

        for selector in self.config.visibility_selectors:
            try:
                nodes = self.page.query_selector_all(selector)
            except ValueError:
                logger.debug("Skipping unsupported selector %s", selector)
                continue
            for node in nodes:
                self.observer.observe(node)

    @swallow_errors
    def on_entries(self, entries: list[IntersectionEntry]) -> None:
        for entry in entries:
            if entry.is_intersecting:
                self.recorder.record(
                    EventKind.ELEMENT_VISIBLE,
                    ElementVisibleData(
                        element=describe_element(entry.target, self.page),
                        visible_percent=_half_up(entry.intersection_ratio * 100),
                    ),
                )


# ==============================================================================
# Errors and snapshots
# ==============================================================================


class ErrorDetector(Detector):
    def attach(self) -> None:
        self._listen("error", self.on_error)

    @swallow_errors
    def on_error(self, event: ErrorEvent) -> None:
        stack = event.stack[: self.config.stack_max_chars] if event.stack else None
        self.recorder.record(
            EventKind.JS_ERROR,
            JsErrorData(
                message=event.message or "Unknown error",
                filename=event.filename or None,
                line=event.lineno or None,
                col=event.colno or None,
                stack=stack,
            ),
        )


class SnapshotDetector(Detector):
    """Periodic, truncated DOM snapshot. Disabled by a zero interval."""

    def attach(self) -> None:
        if self.config.capture_screenshots and self.config.screenshot_interval > 0:
            self._every(self.config.screenshot_interval, self.capture)

    @swallow_errors
    def capture(self) -> None:
        if not self.config.capture_screenshots:
            return
        self.recorder.record(
            EventKind.DOM_SNAPSHOT,
            DomSnapshotData(
                snapshot=self.page.outer_html()[: self.config.snapshot_max_chars],
                url=self.page.location.href,
                title=self.page.title,
            ),
        )
