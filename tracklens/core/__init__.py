# ==============================================================================
# Core Domain Logic
# ==============================================================================
"""
Pure domain logic with no storage or framework dependencies.

This module contains:
- Domain models (TrackingEvent, TrackingBatch, SessionSummary, HeatmapPoint)
- Typed per-kind event payloads
- Session reconstruction and read-side aggregations

The AnalyticsStore facade lives in core.store and is imported from there,
since it depends on the storage boundary in base/.
"""

from tracklens.core.models import (
    EventKind,
    HeatmapPoint,
    SessionSummary,
    TrackingBatch,
    TrackingEvent,
    Viewport,
)
from tracklens.core.session_processor import SessionProcessor

__all__ = [
    "EventKind",
    "HeatmapPoint",
    "SessionProcessor",
    "SessionSummary",
    "TrackingBatch",
    "TrackingEvent",
    "Viewport",
]
