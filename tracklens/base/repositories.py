# ==============================================================================
# Repository Abstract Base Class
# ==============================================================================
"""
Storage boundary for the tracking event log and session table.

This defines the "what" (append events, keep sessions) not the "how"
(in-process list vs. Valkey list). Concrete implementations in
infrastructure/ handle the specifics; aggregation logic in core/ only ever
sees snapshots returned from here, so it is storage-agnostic.

Implementations are NOT required to be thread-safe for writes:
core.store.AnalyticsStore serializes every mutation.
"""

from abc import ABC, abstractmethod

from tracklens.core.models import SessionSummary, TrackingEvent


class EventStore(ABC):
    """Capped, append-only event log plus a session-keyed table."""

    name: str = "abstract"

    @abstractmethod
    def connect(self) -> None:
        """Establish connection to the data store."""
        ...

    @abstractmethod
    def append(self, events: list[TrackingEvent]) -> int:
        """
        Append events to the log, evicting the oldest half when full.

        Args:
            events: Events in arrival order

        Returns:
            Count of events appended
        """
        ...

    @abstractmethod
    def events(self) -> list[TrackingEvent]:
        """
        Snapshot of the whole log in append order.

        The returned list is owned by the caller; mutating it never affects
        the store.
        """
        ...

    @abstractmethod
    def event_count(self) -> int:
        """Number of events currently retained."""
        ...

    @abstractmethod
    def get_session(self, session_id: str) -> SessionSummary | None:
        """
        Fetch one session.

        Returns:
            A copy of the stored session, or None if unknown
        """
        ...

    @abstractmethod
    def save_session(self, session: SessionSummary) -> None:
        """Insert or replace a session row."""
        ...

    @abstractmethod
    def sessions(self) -> list[SessionSummary]:
        """Snapshot of every session (unordered)."""
        ...

    @abstractmethod
    def session_count(self) -> int:
        """Number of known sessions."""
        ...

    @abstractmethod
    def clear(self) -> int:
        """
        Drop all events and sessions.

        Returns:
            Count of events deleted
        """
        ...

    @abstractmethod
    def close(self) -> None:
        """Close connection and release resources."""
        ...
