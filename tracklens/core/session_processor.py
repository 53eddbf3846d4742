# ==============================================================================
# Session Processor - Pure Domain Logic
# ==============================================================================
"""
Pure session reconstruction logic with no external dependencies.

This module contains the domain logic for session aggregation:
- Session creation on the first batch for a session id
- Monotonic updates of timing, counters and visited paths
- Per-event-kind aggregate updates

Sessions are keyed by the client-generated session id, so there is no
inactivity-timeout splitting: a batch either belongs to an existing session
or opens a new one.

All methods work on SessionSummary models - no storage or framework
dependencies. This allows the logic to be:
- Unit tested without mocks
- Reused by every EventStore backend
"""

import logging

from pydantic import ValidationError

from tracklens.core.models import EventKind, SessionSummary, TrackingBatch, TrackingEvent
from tracklens.core.payloads import ScrollData

logger = logging.getLogger(__name__)


class SessionProcessor:
    """
    Pure session aggregation.

    Invariants maintained for every session it touches:
    - ``end_time`` and ``duration`` never decrease
    - ``page_views``, ``total_clicks``, ``rage_clicks`` only increment
    - ``max_scroll_depth`` only increases
    - ``pages_visited`` only grows and holds each path once
    - ``duration == end_time - start_time``
    """

    def create_session(self, batch: TrackingBatch) -> SessionSummary:
        """
        Create a new empty session from the first batch that references it.

        Args:
            batch: Batch carrying the session and device metadata

        Returns:
            New session with zeroed aggregates
        """
        return SessionSummary(
            session_id=batch.session_id,
            user_id=batch.user_id,
            start_time=batch.timestamp,
            end_time=batch.timestamp,
            duration=0,
            user_agent=batch.user_agent,
            screen_resolution=batch.screen_resolution,
        )

    def update_session(self, session: SessionSummary, batch: TrackingBatch) -> SessionSummary:
        """
        Fold a batch into a session.

        Mutates the session in place and returns it. Batches may arrive out
        of order, so the time span widens in both directions rather than
        being overwritten.

        Args:
            session: Session to update
            batch: Batch whose events belong to the session

        Returns:
            The updated session (same object)
        """
        session.start_time = min(session.start_time, batch.timestamp)
        session.end_time = max(session.end_time, batch.timestamp)
        session.duration = session.end_time - session.start_time

        for event in batch.events:
            self.apply_event(session, event)

        return session

    def apply_event(self, session: SessionSummary, event: TrackingEvent) -> None:
        """
        Update running aggregates for one event.

        Payload shape problems are logged and skipped; they never abort the
        batch, and the event is still stored by the caller.
        """
        if event.type == EventKind.CLICK:
            session.total_clicks += 1
        elif event.type == EventKind.RAGE_CLICK:
            session.rage_clicks += 1
        elif event.type == EventKind.PAGE_VIEW:
            session.page_views += 1
            if event.path and event.path not in session.pages_visited:
                session.pages_visited.append(event.path)
        elif event.type == EventKind.SCROLL and "maxDepth" in event.data:
            try:
                scroll = ScrollData.model_validate({"maxDepth": event.data["maxDepth"]})
            except ValidationError as e:
                logger.warning(
                    "Skipping malformed scroll payload in session %s: %s",
                    session.session_id,
                    e,
                )
                return
            if scroll.max_depth > session.max_scroll_depth:
                session.max_scroll_depth = scroll.max_depth

    def process_batch(
        self,
        batch: TrackingBatch,
        existing: SessionSummary | None,
    ) -> SessionSummary:
        """
        Create-or-update the session a batch belongs to.

        Args:
            batch: Validated tracking batch
            existing: Current session for batch.session_id, or None

        Returns:
            The created or updated session
        """
        session = existing if existing is not None else self.create_session(batch)
        return self.update_session(session, batch)
