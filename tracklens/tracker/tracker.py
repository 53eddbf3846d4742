# ==============================================================================
# Tracker
# ==============================================================================
"""
One tracker instance per page load.

``Tracker`` owns the shared state, the event recorder, the transmitter and
every detector, and wires them together:

    page = Page("https://erp.example.com/dashboard", title="Dashboard")
    scheduler = VirtualScheduler(start_ms=1_700_000_000_000)
    tracker = Tracker(page, scheduler, TrackerConfig.from_attributes(attrs))
    tracker.start()

After ``start()`` the host only dispatches page events; the tracker records,
batches and delivers on its own timers. ``page_hide()`` is the unload path:
it flushes the pending mouse trail, appends a session_end summary and
flushes synchronously.
Without an explicit fallback the tracker POSTs over its own HttpTransport.
"""

import logging
import random
from typing import Any

from tracklens.core.models import EventKind
from tracklens.core.payloads import CustomData, SessionEndData, SessionStartData
from tracklens.tracker.config import TrackerConfig
from tracklens.tracker.detectors import (
    ClickDetector,
    Detector,
    ElementVisibilityDetector,
    ErrorDetector,
    FormDetector,
    IdleDetector,
    MouseTrailDetector,
    NavigationDetector,
    PerformanceDetector,
    ScrollDetector,
    SnapshotDetector,
    VisibilityDetector,
)
from tracklens.tracker.navigation import HistoryInterceptor
from tracklens.tracker.page import Page, Scheduler
from tracklens.tracker.recorder import EventRecorder, TrackerState, generate_session_id, swallow_errors
from tracklens.tracker.transmitter import BatchTransmitter, BeaconTransport, HttpTransport, Transport

logger = logging.getLogger(__name__)

DEV_HOSTNAMES = ("localhost", "127.0.0.1")
UNLOAD_EVENTS = ("beforeunload", "pagehide")


class Tracker:
    """Client-side behavioral tracker for a single page load."""

    def __init__(
        self,
        page: Page,
        scheduler: Scheduler,
        config: TrackerConfig | None = None,
        beacon: Transport | None = None,
        fallback: Transport | None = None,
        rng: random.Random | None = None,
    ):
        """
        Args:
            page: Host page the tracker observes
            scheduler: Clock and timers
            config: Embedding configuration (defaults when None)
            beacon: Preferred transport; defaults to the page's beacon
            fallback: Transport used when the beacon is missing or refuses;
                      defaults to an HttpTransport owned by the tracker
            rng: Random source for the session id
        """
        self.page = page
        self.scheduler = scheduler
        self.config = config or TrackerConfig()

        self._owned_transport: HttpTransport | None = None
        if fallback is None:
            fallback = self._owned_transport = HttpTransport(timeout=self.config.http_timeout / 1000)

        now = scheduler.now()
        self.state = TrackerState(
            session_id=generate_session_id(now, rng),
            user_id=self.config.user_id,
            start_time=now,
            last_activity=now,
        )
        self.recorder = EventRecorder(page, scheduler, self.state, max_batch_size=self.config.max_batch_size)
        self.transmitter = BatchTransmitter(
            self.recorder,
            page,
            self.config,
            self.state,
            beacon=beacon if beacon is not None else BeaconTransport(page),
            fallback=fallback,
        )
        self.recorder.on_full = self.transmitter.flush

        self.history = HistoryInterceptor(page, scheduler)
        self.navigation = NavigationDetector(self.recorder, self.config, self.history)
        self.mouse = MouseTrailDetector(self.recorder, self.config)
        self.detectors: list[Detector] = [
            ClickDetector(self.recorder, self.config),
            ScrollDetector(self.recorder, self.config),
            FormDetector(self.recorder, self.config),
            VisibilityDetector(self.recorder, self.config),
            ErrorDetector(self.recorder, self.config),
            IdleDetector(self.recorder, self.config),
            SnapshotDetector(self.recorder, self.config),
            PerformanceDetector(self.recorder, self.config),
            ElementVisibilityDetector(self.recorder, self.config),
            self.navigation,
        ]
        if self.config.session_capture:
            self.detectors.append(self.mouse)

        self._flush_timer: Any = None
        self._started = False
        self._ended = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Record session_start and the first page_view, then attach everything."""
        if self._started:
            return
        self._started = True

        page = self.page
        self.recorder.record(
            EventKind.SESSION_START,
            SessionStartData(
                url=page.location.href,
                referrer=page.referrer,
                user_agent=page.user_agent,
                screen=f"{page.screen_width}x{page.screen_height}",
                viewport=self.recorder.viewport(),
                timezone=page.timezone,
            ),
        )
        self.navigation.track_page_view()

        for detector in self.detectors:
            detector.attach()
        for name in UNLOAD_EVENTS:
            page.add_event_listener(name, self.page_hide)
        self._flush_timer = self.scheduler.set_interval(self.transmitter.flush, self.config.flush_interval)

        if page.location.hostname in DEV_HOSTNAMES:
            logger.info(
                "Tracker initialized (session=%s, user=%s, endpoint=%s)",
                self.state.session_id,
                self.state.user_id,
                self.config.endpoint,
            )

    def stop(self) -> None:
        """
        Detach all listeners, cancel timers and release the HTTP transport
        the tracker created. Buffered events stay put.
        """
        if not self._started:
            return
        for detector in self.detectors:
            detector.detach()
        for name in UNLOAD_EVENTS:
            self.page.remove_event_listener(name, self.page_hide)
        if self._flush_timer is not None:
            self.scheduler.cancel(self._flush_timer)
            self._flush_timer = None
        if self._owned_transport is not None:
            self._owned_transport.close(wait=False)
        self._started = False

    @swallow_errors
    def page_hide(self, event=None) -> None:
        """
        Unload path: trail remainder, session_end summary, final flush.

        Runs once per page load even when both beforeunload and pagehide fire.
        """
        if self._ended:
            return
        self._ended = True
        self.mouse.flush_trail()
        self.recorder.record(
            EventKind.SESSION_END,
            SessionEndData(
                duration=self.scheduler.now() - self.state.start_time,
                page_view_count=self.state.page_view_count,
                max_scroll_depth=self.state.max_scroll_depth,
                final_url=self.page.location.href,
            ),
        )
        self.transmitter.flush()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def session_id(self) -> str:
        return self.state.session_id

    @property
    def user_id(self) -> str:
        return self.state.user_id

    def set_user_id(self, user_id: str) -> None:
        """Attribute subsequent events to a different user."""
        self.state.user_id = user_id

    def track_event(self, name: str, data: Any = None) -> None:
        """Record an application-defined ``custom`` event."""
        self.recorder.record(EventKind.CUSTOM, CustomData(name=name, data=data))

    def flush(self) -> None:
        self.transmitter.flush()

    def pending_count(self) -> int:
        """Number of events waiting in the buffer."""
        return len(self.recorder.buffer)

    def push_state(self, url: str) -> None:
        """SPA route change through the history interceptor."""
        self.history.push_state(url)

    def replace_state(self, url: str) -> None:
        self.history.replace_state(url)
