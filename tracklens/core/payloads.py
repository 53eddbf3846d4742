# ==============================================================================
# Typed Event Payloads
# ==============================================================================
"""
One Pydantic model per EventKind describing the shape of ``TrackingEvent.data``.

The tracker builds payloads through these models and dumps them to camelCase
dicts; the server parses them back with ``parse_payload()`` when an aggregate
needs a typed view. ``PAYLOAD_MODELS`` must cover every EventKind, which the
test suite checks.

Payload models ignore unknown keys so newer trackers can add fields without
breaking older servers.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from tracklens.core.models import EventKind, TrackingEvent, Viewport


class Payload(BaseModel):
    """Base for all payload models."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    def to_data(self) -> dict[str, Any]:
        """Dump to the camelCase dict stored in ``TrackingEvent.data``."""
        return self.model_dump(by_alias=True, mode="json")


class Rect(Payload):
    x: int = 0
    y: int = 0
    w: int = 0
    h: int = 0


class ElementDescriptor(Payload):
    """Snapshot of the element an interaction targeted."""

    tag: str | None = None
    id: str | None = None
    classes: list[str] = Field(default_factory=list)
    text: str = ""
    href: str | None = None
    selector: str = ""
    rect: Rect | None = None


class PointSample(Payload):
    x: float
    y: float
    page_x: float
    page_y: float
    t: int = 0


# ------------------------------------------------------------------------------
# Session and navigation
# ------------------------------------------------------------------------------


class SessionStartData(Payload):
    url: str = ""
    referrer: str = ""
    user_agent: str = ""
    screen: str = ""
    viewport: Viewport | None = None
    timezone: str | None = None


class SessionEndData(Payload):
    duration: int = 0
    page_view_count: int = 0
    max_scroll_depth: int = 0
    final_url: str = ""


class PageViewData(Payload):
    url: str = ""
    path: str = ""
    title: str = ""
    referrer: str = ""
    page_view_number: int = 0


class PageExitData(Payload):
    url: str = ""
    time_on_page: int = 0
    max_scroll_depth: int = 0


# ------------------------------------------------------------------------------
# Pointer and scroll
# ------------------------------------------------------------------------------


class ClickData(Payload):
    x: float | None = None
    y: float | None = None
    page_x: float | None = None
    page_y: float | None = None
    button: int = 0
    element: ElementDescriptor | None = None
    timestamp: int | None = None


class RageClickData(Payload):
    x: int
    y: int
    click_count: int
    element: ElementDescriptor | None = None


class MouseTrailData(Payload):
    points: list[PointSample] = Field(default_factory=list)


class ScrollData(Payload):
    scroll_y: int = 0
    scroll_percent: int = Field(0, ge=0, le=100)
    max_depth: int = Field(0, ge=0, le=100)


# ------------------------------------------------------------------------------
# Forms, visibility, idle
# ------------------------------------------------------------------------------


class FormFocusData(Payload):
    element: ElementDescriptor | None = None
    field_type: str = ""
    field_name: str | None = None


class FormBlurData(FormFocusData):
    # Whether the field had a value; raw values are never captured
    has_value: bool = False


class VisibilityData(Payload):
    hidden: bool
    state: str


class IdleStartData(Payload):
    idle_after: int


class IdleEndData(Payload):
    idle_duration: int


class ElementVisibleData(Payload):
    element: ElementDescriptor | None = None
    visible_percent: int = Field(0, ge=0, le=100)


# ------------------------------------------------------------------------------
# Errors, performance, snapshots, custom
# ------------------------------------------------------------------------------


class JsErrorData(Payload):
    message: str = "Unknown error"
    filename: str | None = None
    line: int | None = None
    col: int | None = None
    stack: str | None = None


class PerformanceData(Payload):
    dns: int = 0
    tcp: int = 0
    ttfb: int = 0
    dom_load: int = 0
    full_load: int = 0
    dom_interactive: int = 0
    transfer_size: int = 0


class WebVitalData(Payload):
    name: str
    value: float


class DomSnapshotData(Payload):
    snapshot: str = ""
    url: str = ""
    title: str = ""


class CustomData(Payload):
    name: str
    data: Any = None


PAYLOAD_MODELS: dict[EventKind, type[Payload]] = {
    EventKind.SESSION_START: SessionStartData,
    EventKind.SESSION_END: SessionEndData,
    EventKind.PAGE_VIEW: PageViewData,
    EventKind.PAGE_EXIT: PageExitData,
    EventKind.CLICK: ClickData,
    EventKind.RAGE_CLICK: RageClickData,
    EventKind.MOUSE_TRAIL: MouseTrailData,
    EventKind.SCROLL: ScrollData,
    EventKind.FORM_FOCUS: FormFocusData,
    EventKind.FORM_BLUR: FormBlurData,
    EventKind.VISIBILITY: VisibilityData,
    EventKind.IDLE_START: IdleStartData,
    EventKind.IDLE_END: IdleEndData,
    EventKind.JS_ERROR: JsErrorData,
    EventKind.PERFORMANCE: PerformanceData,
    EventKind.WEB_VITAL: WebVitalData,
    EventKind.DOM_SNAPSHOT: DomSnapshotData,
    EventKind.ELEMENT_VISIBLE: ElementVisibleData,
    EventKind.CUSTOM: CustomData,
}


def parse_payload(event: TrackingEvent) -> Payload | None:
    """
    Parse an event's data into its typed payload model.

    Args:
        event: Stored tracking event

    Returns:
        Typed payload, or None for event kinds outside EventKind

    Raises:
        pydantic.ValidationError: If the data does not match the kind's shape
    """
    try:
        kind = EventKind(event.type)
    except ValueError:
        return None
    return PAYLOAD_MODELS[kind].model_validate(event.data)
