# ==============================================================================
# Infrastructure Adapters
# ==============================================================================
"""
Adapters implementing the EventStore interface from base/repositories.py.

Available implementations:
- InMemoryEventStore: volatile capped list (reference implementation)
- ValkeyEventStore: Valkey/Redis list + hash
"""

from tracklens.base.repositories import EventStore
from tracklens.infrastructure.memory import InMemoryEventStore
from tracklens.utils.config import get_settings


def get_event_store() -> EventStore:
    """
    Build the EventStore selected by STORE_BACKEND.

    Returns:
        An unconnected EventStore instance
    """
    settings = get_settings()
    if settings.store.backend == "valkey":
        from tracklens.infrastructure.valkey import ValkeyEventStore

        return ValkeyEventStore(max_events=settings.store.max_events)
    return InMemoryEventStore(max_events=settings.store.max_events)


__all__ = [
    "InMemoryEventStore",
    "get_event_store",
]
