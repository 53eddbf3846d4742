# ==============================================================================
# Valkey Event Store Implementation
# ==============================================================================
"""
Valkey/Redis implementation of the EventStore interface.

Provides a persistent, shareable substitute for the in-memory log:
- Events are JSON strings in one Redis list, capped with LTRIM
- Sessions are JSON strings in one Redis hash keyed by session id

Key layout (prefix from settings, default "tracklens"):
    {prefix}:events     LIST of event JSON, oldest first
    {prefix}:sessions   HASH session_id -> session JSON
"""

import json
import logging

import redis
from redis.backoff import ExponentialBackoff
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError
from redis.retry import Retry

from tracklens.base.repositories import EventStore
from tracklens.core.models import SessionSummary, TrackingEvent
from tracklens.infrastructure.memory import DEFAULT_MAX_EVENTS
from tracklens.utils.config import get_settings
from tracklens.utils.retry import REDIS_RETRY_EXCEPTIONS, VALKEY_RETRIES, retry_light

logger = logging.getLogger(__name__)


def get_valkey_client(url: str | None = None, socket_timeout: int = 10) -> redis.Redis:
    """
    Get a Valkey/Redis client connection.

    Configured with:
    - 10 second socket timeouts for fast failure detection
    - Automatic retries with exponential backoff for transient failures
    - Health check interval to keep connections alive

    Args:
        url: Connection URL. If None, uses settings.

    Returns:
        redis.Redis client instance
    """
    if url is None:
        url = get_settings().valkey.url

    retry = Retry(ExponentialBackoff(cap=8, base=1), retries=VALKEY_RETRIES)

    return redis.from_url(
        url,
        decode_responses=True,
        socket_timeout=socket_timeout,
        socket_connect_timeout=socket_timeout,
        retry=retry,
        retry_on_error=[RedisTimeoutError, RedisConnectionError],
        health_check_interval=30,
    )


class ValkeyEventStore(EventStore):
    """
    Valkey/Redis implementation of EventStore.

    Eviction mirrors the in-memory store: when an append finds the list at
    capacity, the oldest half is trimmed away before the event is pushed.
    """

    name = "valkey"

    def __init__(
        self,
        client: redis.Redis | None = None,
        key_prefix: str | None = None,
        max_events: int = DEFAULT_MAX_EVENTS,
    ):
        """
        Initialize the store.

        Args:
            client: Redis client instance. If None, creates a new connection.
            key_prefix: Key namespace. If None, uses settings.
            max_events: Event list capacity
        """
        if max_events < 2:
            raise ValueError(f"max_events must be at least 2, got {max_events}")
        self._client = client or get_valkey_client()
        prefix = key_prefix if key_prefix is not None else get_settings().valkey.key_prefix
        self._events_key = f"{prefix}:events"
        self._sessions_key = f"{prefix}:sessions"
        self.max_events = max_events

    @property
    def client(self) -> redis.Redis:
        """Get the underlying Redis client."""
        return self._client

    @retry_light(REDIS_RETRY_EXCEPTIONS, logger)
    def connect(self) -> None:
        """Verify the server is reachable."""
        self._client.ping()
        logger.info("Connected to Valkey event store (%s)", self._events_key)

    def append(self, events: list[TrackingEvent]) -> int:
        if not events:
            return 0

        length = self._client.llen(self._events_key)
        pipe = self._client.pipeline()
        for event in events:
            if length >= self.max_events:
                evicted = self.max_events // 2
                pipe.ltrim(self._events_key, evicted, -1)
                length -= evicted
                logger.info("Event log at capacity (%d); evicting oldest %d", self.max_events, evicted)
            pipe.rpush(self._events_key, json.dumps(event.to_wire()))
            length += 1
        pipe.execute()
        return len(events)

    def events(self) -> list[TrackingEvent]:
        raw = self._client.lrange(self._events_key, 0, -1)
        return [TrackingEvent.model_validate_json(item) for item in raw]

    def event_count(self) -> int:
        return self._client.llen(self._events_key)

    def get_session(self, session_id: str) -> SessionSummary | None:
        raw = self._client.hget(self._sessions_key, session_id)
        if raw is None:
            return None
        return SessionSummary.model_validate_json(raw)

    def save_session(self, session: SessionSummary) -> None:
        self._client.hset(self._sessions_key, session.session_id, json.dumps(session.to_wire()))

    def sessions(self) -> list[SessionSummary]:
        return [SessionSummary.model_validate_json(raw) for raw in self._client.hvals(self._sessions_key)]

    def session_count(self) -> int:
        return self._client.hlen(self._sessions_key)

    def clear(self) -> int:
        count = self._client.llen(self._events_key)
        self._client.delete(self._events_key, self._sessions_key)
        return count

    def close(self) -> None:
        """Close the connection."""
        self._client.close()

