# ==============================================================================
# Ingestion Service
# ==============================================================================
"""
Framework-free ingestion and query logic behind the HTTP endpoint.

Write side:
    parse_body()  - raw bytes (JSON or a beacon blob) -> dict
    ingest()      - validate a batch and hand it to the AnalyticsStore

Read side:
    query()       - dispatch one named query (overview, heatmap, ...)

Validation is atomic: a batch that fails any check raises before the store
is touched. Errors carry a human-readable reason that the HTTP layer
returns as-is with a client-error status.
"""

import json
import logging
from collections.abc import Callable

from pydantic import ValidationError

from tracklens.core.models import TrackingBatch
from tracklens.core.store import AnalyticsStore

logger = logging.getLogger(__name__)


class InvalidBatchError(ValueError):
    """The posted batch is missing sessionId/events or is malformed."""


class UnknownQueryError(ValueError):
    """The query name is not one of QUERY_NAMES."""


class MissingParameterError(ValueError):
    """A query needs a parameter that was not supplied."""


QUERY_NAMES = (
    "overview",
    "heatmap",
    "rage-clicks",
    "sessions",
    "session-events",
    "performance",
    "elements",
)


def _dump(items) -> list[dict]:
    return [item.model_dump(by_alias=True, mode="json") for item in items]


class IngestionService:
    """Validates batches into the store and answers named queries."""

    def __init__(self, store: AnalyticsStore):
        self._store = store
        self._queries: dict[str, Callable[[str | None, str | None], dict]] = {
            "overview": self._overview,
            "heatmap": self._heatmap,
            "rage-clicks": self._rage_clicks,
            "sessions": self._sessions,
            "session-events": self._session_events,
            "performance": self._performance,
            "elements": self._elements,
        }

    @property
    def store(self) -> AnalyticsStore:
        return self._store

    # ==========================================================================
    # Write side
    # ==========================================================================

    @staticmethod
    def parse_body(raw: bytes | str) -> dict:
        """
        Parse a request body.

        Beacon deliveries arrive as an untyped blob, so the body is always
        parsed as JSON regardless of the declared content type.

        Raises:
            InvalidBatchError: If the body is not a JSON object
        """
        try:
            payload = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise InvalidBatchError(f"Malformed JSON: {e}") from e
        if not isinstance(payload, dict):
            raise InvalidBatchError("Invalid payload: expected a JSON object")
        return payload

    def ingest(self, payload: dict) -> dict:
        """
        Validate a batch and add it to the store.

        Args:
            payload: Decoded batch (camelCase wire form)

        Returns:
            Acknowledgement ``{"ok": True, "received": n}``

        Raises:
            InvalidBatchError: If sessionId or events are missing/malformed,
                               or any event fails validation
        """
        session_id = payload.get("sessionId")
        events = payload.get("events")
        if not session_id or not isinstance(session_id, str):
            raise InvalidBatchError("Invalid payload: sessionId is required")
        if not isinstance(events, list):
            raise InvalidBatchError("Invalid payload: events must be an array")

        try:
            batch = TrackingBatch.model_validate(payload)
        except ValidationError as e:
            first = e.errors()[0]
            location = ".".join(str(part) for part in first["loc"])
            raise InvalidBatchError(f"Invalid payload: {location}: {first['msg']}") from e

        self._store.add_events(batch)
        logger.info("Accepted batch: session=%s events=%d", batch.session_id, len(batch.events))
        return {"ok": True, "received": len(batch.events)}

    # ==========================================================================
    # Read side
    # ==========================================================================

    def query(self, name: str, path: str | None = None, session_id: str | None = None) -> dict:
        """
        Run one named query.

        Args:
            name: One of QUERY_NAMES
            path: Optional page path filter (heatmap, rage-clicks, elements)
            session_id: Required for session-events

        Raises:
            UnknownQueryError: If name is not a known query
            MissingParameterError: If session-events is asked without a session id
        """
        handler = self._queries.get(name)
        if handler is None:
            raise UnknownQueryError(f"Unknown query type: {name}")
        return handler(path or None, session_id or None)

    def _overview(self, path, session_id) -> dict:
        return {
            "totalEvents": self._store.event_count(),
            "totalSessions": self._store.session_count(),
            "uniqueUsers": self._store.unique_user_count(),
            "pages": self._store.page_stats(),
        }

    def _heatmap(self, path, session_id) -> dict:
        return {
            "clicks": _dump(self._store.click_heatmap(path)),
            "mouse": _dump(self._store.mouse_heatmap(path)),
            "scrollDepth": self._store.scroll_depth_histogram(path),
        }

    def _rage_clicks(self, path, session_id) -> dict:
        return {"rageClicks": _dump(self._store.rage_clicks(path))}

    def _sessions(self, path, session_id) -> dict:
        return {"sessions": _dump(self._store.session_list())}

    def _session_events(self, path, session_id) -> dict:
        if not session_id:
            raise MissingParameterError("sessionId required")
        return {"events": _dump(self._store.session_events(session_id))}

    def _performance(self, path, session_id) -> dict:
        return {"metrics": _dump(self._store.performance_data())}

    def _elements(self, path, session_id) -> dict:
        return {"elements": self._store.element_interactions(path)}
