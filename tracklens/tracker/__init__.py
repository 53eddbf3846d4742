# ==============================================================================
# Client-side Tracker
# ==============================================================================
"""Client-side tracker: page abstraction, detectors, recorder and transmitter."""

from tracklens.tracker.config import TrackerConfig
from tracklens.tracker.page import AsyncioScheduler, DomNode, Page, Scheduler, VirtualScheduler
from tracklens.tracker.tracker import Tracker
from tracklens.tracker.transmitter import BatchTransmitter, BeaconTransport, HttpTransport, Transport

__all__ = [
    "AsyncioScheduler",
    "BatchTransmitter",
    "BeaconTransport",
    "DomNode",
    "HttpTransport",
    "Page",
    "Scheduler",
    "Tracker",
    "TrackerConfig",
    "Transport",
    "VirtualScheduler",
]
