# ==============================================================================
# In-Memory Event Store
# ==============================================================================
"""
Volatile reference implementation of the EventStore interface.

Events live in a plain list capped at ``max_events``. When an append finds the
log full, the oldest half is dropped in one slice: old data is traded away to
keep memory bounded, there is no per-event ring rotation.

Sessions live in a dict and are never evicted; their lifetime is the process
lifetime.
"""

import logging

from tracklens.base.repositories import EventStore
from tracklens.core.models import SessionSummary, TrackingEvent

logger = logging.getLogger(__name__)

DEFAULT_MAX_EVENTS = 100_000


class InMemoryEventStore(EventStore):
    """Capped in-process event log with oldest-half eviction."""

    name = "memory"

    def __init__(self, max_events: int = DEFAULT_MAX_EVENTS):
        """
        Initialize the store.

        Args:
            max_events: Log capacity. Must be at least 2 so that evicting
                        half of it frees at least one slot.
        """
        if max_events < 2:
            raise ValueError(f"max_events must be at least 2, got {max_events}")
        self.max_events = max_events
        self._events: list[TrackingEvent] = []
        self._sessions: dict[str, SessionSummary] = {}

    def connect(self) -> None:
        """Nothing to connect to."""

    def append(self, events: list[TrackingEvent]) -> int:
        for event in events:
            if len(self._events) >= self.max_events:
                evicted = self.max_events // 2
                del self._events[:evicted]
                logger.info("Event log at capacity (%d); evicted oldest %d", self.max_events, evicted)
            self._events.append(event)
        return len(events)

    def events(self) -> list[TrackingEvent]:
        # Events are frozen models, so a shallow copy is a safe snapshot
        return list(self._events)

    def event_count(self) -> int:
        return len(self._events)

    def get_session(self, session_id: str) -> SessionSummary | None:
        session = self._sessions.get(session_id)
        return session.model_copy(deep=True) if session is not None else None

    def save_session(self, session: SessionSummary) -> None:
        self._sessions[session.session_id] = session.model_copy(deep=True)

    def sessions(self) -> list[SessionSummary]:
        return [s.model_copy(deep=True) for s in list(self._sessions.values())]

    def session_count(self) -> int:
        return len(self._sessions)

    def clear(self) -> int:
        count = len(self._events)
        self._events = []
        self._sessions = {}
        return count

    def close(self) -> None:
        """Nothing to release."""
