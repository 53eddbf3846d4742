# ==============================================================================
# Base Abstract Classes
# ==============================================================================
"""
Abstract base classes defining the storage boundary (ports-and-adapters).

Aggregation code depends only on these; adapters live in infrastructure/.
"""

from tracklens.base.repositories import EventStore

__all__ = [
    "EventStore",
]
