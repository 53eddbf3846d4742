# ==============================================================================
# Event Recorder and Tracker State
# ==============================================================================
"""
The in-page event buffer and the state every detector shares.

One TrackerState and one EventRecorder exist per page load. Detectors get
both injected; nothing lives at module scope.

``EventRecorder.record()`` stamps an event with time, session, user, URL
and a viewport snapshot, appends it to the buffer and, when the buffer
reaches the batch cap, calls the flush hook before returning. The buffer
therefore never holds ``max_batch_size`` events once ``record()`` returns
with a flush hook attached.
"""

import functools
import logging
import random
import string
from collections.abc import Callable
from dataclasses import dataclass

from tracklens.core.models import EventKind, TrackingEvent, Viewport
from tracklens.core.payloads import Payload
from tracklens.tracker.page import Page, Scheduler

logger = logging.getLogger(__name__)

_BASE36 = string.digits + string.ascii_lowercase


def _to_base36(value: int) -> str:
    digits = ""
    while True:
        value, rem = divmod(value, 36)
        digits = _BASE36[rem] + digits
        if value == 0:
            return digits


def generate_session_id(now_ms: int, rng: random.Random | None = None) -> str:
    """Client-side session id: ``sess_<base36 time>_<9 random chars>``."""
    rng = rng or random.Random()
    suffix = "".join(rng.choice(_BASE36) for _ in range(9))
    return f"sess_{_to_base36(now_ms)}_{suffix}"


def swallow_errors(func: Callable) -> Callable:
    """
    Run a tracker callback, logging and discarding any exception.

    Tracked pages must never observe tracker failures.
    """

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except Exception as e:
            logger.debug("Tracker callback %s failed: %s", func.__qualname__, e)
            return None

    return wrapper


@dataclass
class TrackerState:
    """Mutable per-page-load tracker state shared by all detectors."""

    session_id: str
    user_id: str
    start_time: int
    last_activity: int
    current_url: str = ""
    location_key: str = ""
    page_started_at: int = 0
    page_view_count: int = 0
    max_scroll_depth: int = 0
    is_idle: bool = False
    idle_since: int = 0


class EventRecorder:
    """Appends stamped events to the in-memory buffer."""

    def __init__(
        self,
        page: Page,
        scheduler: Scheduler,
        state: TrackerState,
        max_batch_size: int = 500,
        on_full: Callable[[], None] | None = None,
    ):
        """
        Args:
            page: Page providing URL and viewport
            scheduler: Clock source
            state: Shared tracker state (session and user ids)
            max_batch_size: Buffer length that triggers on_full
            on_full: Flush hook, normally BatchTransmitter.flush
        """
        self.page = page
        self.scheduler = scheduler
        self.state = state
        self.max_batch_size = max_batch_size
        self.on_full = on_full
        self.buffer: list[TrackingEvent] = []

    def now(self) -> int:
        return self.scheduler.now()

    def touch(self) -> None:
        """Mark user activity now."""
        self.state.last_activity = self.scheduler.now()

    def viewport(self) -> Viewport:
        page = self.page
        return Viewport(
            width=page.inner_width,
            height=page.inner_height,
            scroll_x=round(page.scroll_x),
            scroll_y=round(page.scroll_y),
            doc_height=page.doc_height,
            doc_width=page.doc_width,
        )

    def record(self, kind: EventKind | str, data: Payload | dict) -> TrackingEvent:
        """
        Stamp and buffer one event.

        Args:
            kind: Event kind
            data: Typed payload or a ready camelCase dict

        Returns:
            The buffered event
        """
        event = TrackingEvent(
            type=kind.value if isinstance(kind, EventKind) else kind,
            timestamp=self.scheduler.now(),
            session_id=self.state.session_id,
            user_id=self.state.user_id,
            url=self.page.location.href,
            path=self.page.location.pathname,
            viewport=self.viewport(),
            data=data.to_data() if isinstance(data, Payload) else dict(data),
        )
        self.buffer.append(event)

        if len(self.buffer) >= self.max_batch_size and self.on_full is not None:
            self.on_full()
        return event

    def drain(self, limit: int) -> list[TrackingEvent]:
        """Remove and return up to ``limit`` events from the front (FIFO)."""
        taken = self.buffer[:limit]
        del self.buffer[:limit]
        return taken
