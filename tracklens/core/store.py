# ==============================================================================
# Analytics Store
# ==============================================================================
"""
The aggregation store: one writer, many readers, any EventStore backend.

``add_events`` is the only mutation. It holds a lock for the whole
read-modify-write of the session row plus the log append, so concurrent
ingestion requests never interleave inside a batch. Queries take a snapshot
of the log at call time and run the pure functions in core.aggregations on
it without locking; they may miss a batch that is being written but never
see half of one's session update.

Usage:
    store = AnalyticsStore(InMemoryEventStore())
    store.add_events(batch)
    store.click_heatmap("/dashboard")
"""

import logging
import threading

from tracklens.base.repositories import EventStore
from tracklens.core import aggregations
from tracklens.core.models import HeatmapPoint, SessionSummary, TrackingBatch, TrackingEvent
from tracklens.core.session_processor import SessionProcessor

logger = logging.getLogger(__name__)


class AnalyticsStore:
    """Session table maintenance plus read-side queries over an EventStore."""

    def __init__(self, backend: EventStore, processor: SessionProcessor | None = None):
        self._backend = backend
        self._processor = processor or SessionProcessor()
        self._write_lock = threading.Lock()

    @property
    def backend(self) -> EventStore:
        return self._backend

    # ------------------------------------------------------------------
    # Write side
    # ------------------------------------------------------------------

    def add_events(self, batch: TrackingBatch) -> SessionSummary:
        """
        Ingest a validated batch.

        Upserts the session row, folds every event into its running
        aggregates, then appends the events to the log. Events without their
        own session or user id inherit the batch's.

        Args:
            batch: Validated tracking batch

        Returns:
            The session as stored after this batch
        """
        events = [self._stamp(event, batch) for event in batch.events]
        batch = batch.model_copy(update={"events": events})

        with self._write_lock:
            existing = self._backend.get_session(batch.session_id)
            session = self._processor.process_batch(batch, existing)
            self._backend.save_session(session)
            self._backend.append(events)

        logger.debug(
            "Session %s: %d events, %d clicks, %d page views",
            session.session_id,
            len(events),
            session.total_clicks,
            session.page_views,
        )
        return session

    @staticmethod
    def _stamp(event: TrackingEvent, batch: TrackingBatch) -> TrackingEvent:
        if event.session_id is not None and event.user_id is not None:
            return event
        return event.model_copy(
            update={
                "session_id": event.session_id if event.session_id is not None else batch.session_id,
                "user_id": event.user_id if event.user_id is not None else batch.user_id,
            }
        )

    def clear(self) -> int:
        with self._write_lock:
            return self._backend.clear()

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    def click_heatmap(self, path: str | None = None) -> list[HeatmapPoint]:
        return aggregations.click_heatmap(self._backend.events(), path)

    def mouse_heatmap(self, path: str | None = None) -> list[HeatmapPoint]:
        return aggregations.mouse_heatmap(self._backend.events(), path)

    def scroll_depth_histogram(self, path: str | None = None) -> list[dict]:
        return aggregations.scroll_depth_histogram(self._backend.events(), path)

    def rage_clicks(self, path: str | None = None) -> list[TrackingEvent]:
        return aggregations.rage_clicks(self._backend.events(), path)

    def session_list(self) -> list[SessionSummary]:
        return aggregations.sort_sessions(self._backend.sessions())

    def session_events(self, session_id: str) -> list[TrackingEvent]:
        return aggregations.session_events(self._backend.events(), session_id)

    def page_stats(self) -> list[dict]:
        return aggregations.page_stats(self._backend.events())

    def performance_data(self) -> list[TrackingEvent]:
        return aggregations.performance_events(self._backend.events())

    def element_interactions(self, path: str | None = None) -> list[dict]:
        return aggregations.element_interactions(self._backend.events(), path)

    def event_count(self) -> int:
        return self._backend.event_count()

    def session_count(self) -> int:
        return self._backend.session_count()

    def unique_user_count(self) -> int:
        return aggregations.unique_users(self._backend.events())
