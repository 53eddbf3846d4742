# ==============================================================================
# Tests for EventStore Backends
# ==============================================================================
"""
Tests for InMemoryEventStore and ValkeyEventStore (fakeredis).

Both backends share the same contract, so the contract tests run against
each of them through a parametrized fixture.
"""

import pytest

from tracklens.core.models import SessionSummary, TrackingEvent
from tracklens.infrastructure.memory import InMemoryEventStore
from tracklens.infrastructure.valkey import ValkeyEventStore


def _events(n: int, start: int = 0) -> list[TrackingEvent]:
    return [TrackingEvent(type="click", timestamp=start + i, session_id="s1") for i in range(n)]


def _session(session_id: str = "s1", clicks: int = 0) -> SessionSummary:
    return SessionSummary(session_id=session_id, user_id="u1", start_time=1, end_time=2, total_clicks=clicks)


@pytest.fixture(params=["memory", "valkey"])
def event_store(request, fake_redis):
    if request.param == "memory":
        return InMemoryEventStore(max_events=10)
    return ValkeyEventStore(client=fake_redis, key_prefix="test", max_events=10)


# ==============================================================================
# Shared contract
# ==============================================================================


class TestEventStoreContract:
    """Behavior every EventStore backend must share."""

    def test_append_and_read_back(self, event_store):
        assert event_store.append(_events(3)) == 3
        events = event_store.events()
        assert [e.timestamp for e in events] == [0, 1, 2]
        assert event_store.event_count() == 3

    def test_append_nothing(self, event_store):
        assert event_store.append([]) == 0
        assert event_store.event_count() == 0

    def test_oldest_half_evicted_at_capacity(self, event_store):
        event_store.append(_events(10))
        event_store.append(_events(1, start=100))

        timestamps = [e.timestamp for e in event_store.events()]
        assert timestamps == [5, 6, 7, 8, 9, 100]

    def test_never_exceeds_capacity(self, event_store):
        for i in range(7):
            event_store.append(_events(4, start=i * 10))
            assert event_store.event_count() <= 10

    def test_session_round_trip(self, event_store):
        assert event_store.get_session("s1") is None
        event_store.save_session(_session(clicks=3))

        loaded = event_store.get_session("s1")
        assert loaded.total_clicks == 3
        assert event_store.session_count() == 1

    def test_session_reads_are_copies(self, event_store):
        event_store.save_session(_session())
        loaded = event_store.get_session("s1")
        loaded.total_clicks = 99
        loaded.pages_visited.append("/x")

        again = event_store.get_session("s1")
        assert again.total_clicks == 0
        assert again.pages_visited == []

    def test_sessions_lists_all(self, event_store):
        event_store.save_session(_session("a"))
        event_store.save_session(_session("b"))
        assert sorted(s.session_id for s in event_store.sessions()) == ["a", "b"]

    def test_clear(self, event_store):
        event_store.append(_events(4))
        event_store.save_session(_session())

        assert event_store.clear() == 4
        assert event_store.event_count() == 0
        assert event_store.session_count() == 0


# ==============================================================================
# Backend specifics
# ==============================================================================


class TestInMemoryEventStore:
    """Tests specific to the in-memory reference store."""

    def test_capacity_must_allow_eviction(self):
        with pytest.raises(ValueError):
            InMemoryEventStore(max_events=1)

    def test_events_snapshot_is_independent(self):
        store = InMemoryEventStore(max_events=10)
        store.append(_events(2))
        snapshot = store.events()
        store.append(_events(2, start=10))
        assert len(snapshot) == 2


class TestValkeyEventStore:
    """Tests specific to the Valkey backend."""

    def test_keys_use_prefix(self, fake_redis):
        store = ValkeyEventStore(client=fake_redis, key_prefix="tl", max_events=10)
        store.append(_events(1))
        store.save_session(_session())

        assert fake_redis.llen("tl:events") == 1
        assert fake_redis.hexists("tl:sessions", "s1")

    def test_events_stored_as_wire_json(self, fake_redis):
        store = ValkeyEventStore(client=fake_redis, key_prefix="tl", max_events=10)
        store.append(_events(1))
        raw = fake_redis.lindex("tl:events", 0)
        assert '"sessionId": "s1"' in raw

    def test_connect_pings(self, fake_redis):
        store = ValkeyEventStore(client=fake_redis, key_prefix="tl", max_events=10)
        store.connect()
