# ==============================================================================
# Tracking Domain Models
# ==============================================================================
"""
Pydantic models for tracking events, batches, sessions and heatmap points.

These models are used for:
- Validating batches posted by the tracker
- Serializing events on the wire (camelCase JSON)
- Type safety throughout the application

Python attribute names are snake_case; the wire format is camelCase via an
alias generator, and both spellings are accepted on input.

This module is part of the core domain layer and has no external dependencies
beyond Pydantic.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

WIRE_CONFIG = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class EventKind(str, Enum):
    """Known event types.

    The set is open: events with any other ``type`` string are accepted and
    stored, they simply do not feed any aggregate.
    """

    SESSION_START = "session_start"
    SESSION_END = "session_end"
    PAGE_VIEW = "page_view"
    PAGE_EXIT = "page_exit"
    CLICK = "click"
    RAGE_CLICK = "rage_click"
    MOUSE_TRAIL = "mouse_trail"
    SCROLL = "scroll"
    FORM_FOCUS = "form_focus"
    FORM_BLUR = "form_blur"
    VISIBILITY = "visibility"
    IDLE_START = "idle_start"
    IDLE_END = "idle_end"
    JS_ERROR = "js_error"
    PERFORMANCE = "performance"
    WEB_VITAL = "web_vital"
    DOM_SNAPSHOT = "dom_snapshot"
    ELEMENT_VISIBLE = "element_visible"
    CUSTOM = "custom"


class Viewport(BaseModel):
    """Viewport snapshot attached to every event for spatial normalization."""

    model_config = WIRE_CONFIG

    width: int = 0
    height: int = 0
    scroll_x: int = 0
    scroll_y: int = 0
    doc_height: int = 0
    doc_width: int = 0


class TrackingEvent(BaseModel):
    """
    A single captured interaction.

    Attributes:
        type: Event kind (see EventKind; unknown kinds are allowed)
        timestamp: Unix timestamp in milliseconds
        session_id: Client-generated session identifier
        user_id: Tracked user identifier
        url: Full page URL at capture time
        path: Page path at capture time
        viewport: Viewport snapshot at capture time
        data: Per-kind payload (see core.payloads for the typed shapes)
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    type: str = Field(..., min_length=1, description="Event kind")
    timestamp: int = Field(..., description="Unix timestamp in milliseconds")
    session_id: str | None = Field(None, description="Session identifier")
    user_id: str | None = Field(None, description="User identifier")
    url: str = ""
    path: str = ""
    viewport: Viewport = Field(default_factory=Viewport)
    data: dict[str, Any] = Field(default_factory=dict)

    def to_wire(self) -> dict:
        """Serialize the event in its camelCase wire form."""
        return self.model_dump(by_alias=True, mode="json")


class TrackingBatch(BaseModel):
    """Unit of network transmission from one tracker instance."""

    model_config = WIRE_CONFIG

    session_id: str = Field(..., min_length=1, description="Session identifier")
    user_id: str = Field(default="anonymous", description="User identifier")
    user_agent: str = ""
    screen_resolution: str = ""
    language: str = ""
    platform: str = ""
    timestamp: int = Field(default=0, description="Send time, ms since epoch")
    events: list[TrackingEvent] = Field(..., description="Captured events")

    def to_wire(self) -> dict:
        """Serialize the batch in its camelCase wire form."""
        return self.model_dump(by_alias=True, mode="json")


class SessionSummary(BaseModel):
    """
    Server-derived aggregate of one tracking session.

    Counters only increase, ``pages_visited`` only grows, and
    ``duration`` always equals ``end_time - start_time``.
    """

    model_config = WIRE_CONFIG

    session_id: str
    user_id: str
    start_time: int
    end_time: int
    duration: int = 0
    page_views: int = 0
    total_clicks: int = 0
    rage_clicks: int = 0
    max_scroll_depth: int = 0
    pages_visited: list[str] = Field(default_factory=list)
    user_agent: str = ""
    screen_resolution: str = ""

    def to_wire(self) -> dict:
        """Serialize the session in its camelCase wire form."""
        return self.model_dump(by_alias=True, mode="json")


class HeatmapPoint(BaseModel):
    """One grid bucket of a heatmap, recomputed on every query."""

    model_config = WIRE_CONFIG

    x: float
    y: float
    page_x: int
    page_y: int
    value: int
    path: str
    element_selector: str | None = None
