# ==============================================================================
# Shared Test Fixtures
# ==============================================================================
"""
Pytest fixtures shared across all test modules.

Provides:
- fakeredis client for the Valkey event store
- In-memory AnalyticsStore, IngestionService and FastAPI TestClient
- Event and batch factories (camelCase wire dicts and models)
- Tracker harness: Page, VirtualScheduler and a recording transport
"""

import json

import fakeredis
import pytest
from fastapi.testclient import TestClient

from tracklens.core.models import TrackingBatch, TrackingEvent
from tracklens.core.store import AnalyticsStore
from tracklens.infrastructure.memory import InMemoryEventStore
from tracklens.ingestion.api import create_app
from tracklens.ingestion.service import IngestionService
from tracklens.tracker.page import Page, VirtualScheduler
from tracklens.tracker.transmitter import Transport

T0 = 1_700_000_000_000


@pytest.fixture()
def fake_redis():
    """A clean fakeredis instance for each test.

    Uses decode_responses=True to match the real Valkey client.
    """
    server = fakeredis.FakeServer()
    client = fakeredis.FakeRedis(server=server, decode_responses=True)
    yield client
    client.flushall()
    client.close()


# ==============================================================================
# Server side
# ==============================================================================


@pytest.fixture()
def backend():
    return InMemoryEventStore(max_events=1_000)


@pytest.fixture()
def store(backend):
    return AnalyticsStore(backend)


@pytest.fixture()
def service(store):
    return IngestionService(store)


@pytest.fixture()
def client(store):
    """TestClient over an app wired to the in-memory store fixture."""
    with TestClient(create_app(store)) as test_client:
        yield test_client


@pytest.fixture()
def make_event():
    """Factory for wire-form event dicts."""

    def _make(type_: str, path: str = "/", timestamp: int = T0, data: dict | None = None, **extra) -> dict:
        event = {
            "type": type_,
            "timestamp": timestamp,
            "url": f"https://app.example.com{path}",
            "path": path,
            "data": data or {},
        }
        event.update(extra)
        return event

    return _make


@pytest.fixture()
def make_batch():
    """Factory for validated TrackingBatch models from wire-form events."""

    def _make(
        events: list[dict],
        session_id: str = "s1",
        user_id: str = "u1",
        timestamp: int = T0,
    ) -> TrackingBatch:
        return TrackingBatch.model_validate(
            {
                "sessionId": session_id,
                "userId": user_id,
                "userAgent": "pytest",
                "screenResolution": "1920x1080",
                "timestamp": timestamp,
                "events": events,
            }
        )

    return _make


# ==============================================================================
# Tracker side
# ==============================================================================


class RecordingTransport(Transport):
    """Captures every body it is asked to send."""

    def __init__(self, accept: bool = True):
        self.accept = accept
        self.sent: list[tuple[str, str]] = []

    def send(self, endpoint: str, body: str) -> bool:
        self.sent.append((endpoint, body))
        return self.accept

    @property
    def batches(self) -> list[dict]:
        return [json.loads(body) for _, body in self.sent]

    @property
    def events(self) -> list[TrackingEvent]:
        return [TrackingEvent.model_validate(e) for batch in self.batches for e in batch["events"]]


@pytest.fixture()
def scheduler():
    return VirtualScheduler(start_ms=T0)


@pytest.fixture()
def page():
    return Page(
        "https://app.example.com/dashboard",
        title="Dashboard",
        referrer="https://example.com/",
        doc_height=2_720,
    )


@pytest.fixture()
def transport():
    return RecordingTransport()


@pytest.fixture()
def make_transport():
    """Factory for extra RecordingTransports, e.g. a refusing beacon."""
    return RecordingTransport
