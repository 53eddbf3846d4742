# ==============================================================================
# Aggregation Queries - Pure Domain Logic
# ==============================================================================
"""
Read-side aggregations over the tracking event log.

Every function here takes an iterable of TrackingEvent (a snapshot of the
log) and returns freshly built results. None of them mutate the events they
read, and calling one twice over the same snapshot gives identical output.

Heatmaps are approximate: points are snapped onto a fixed grid in page
coordinates, and each bucket keeps the viewport x/y of the first point that
landed in it.
"""

import logging
import math
from collections.abc import Iterable

from pydantic import ValidationError

from tracklens.core.models import EventKind, HeatmapPoint, SessionSummary, TrackingEvent
from tracklens.core.payloads import ClickData, MouseTrailData, ScrollData

logger = logging.getLogger(__name__)

CLICK_GRID = 10
MOUSE_GRID = 20
SCROLL_BIN = 10
TOP_ELEMENTS = 50


def _matches(event: TrackingEvent, kind: EventKind, path: str | None) -> bool:
    return event.type == kind and (not path or event.path == path)


def _snap(value: float, grid: int) -> int:
    # Half-up rounding to the nearest grid line (round() would bank to even)
    return _half_up(value / grid) * grid


def _parse(model, event: TrackingEvent, *fields: str):
    # With field names, only those fields are validated; the rest take defaults
    data = {k: event.data[k] for k in fields if k in event.data} if fields else event.data
    try:
        return model.model_validate(data)
    except ValidationError as e:
        logger.warning("Skipping malformed %s payload: %s", event.type, e)
        return None


# ==============================================================================
# Spatial Aggregations
# ==============================================================================


def click_heatmap(events: Iterable[TrackingEvent], path: str | None = None) -> list[HeatmapPoint]:
    """
    Bucket click events onto a 10px page-coordinate grid.

    Args:
        events: Event log snapshot
        path: Optional page path filter

    Returns:
        Heatmap points sorted by descending count
    """
    grid: dict[tuple[int, int, str], HeatmapPoint] = {}
    for event in events:
        if not _matches(event, EventKind.CLICK, path):
            continue
        click = _parse(ClickData, event)
        if click is None or click.page_x is None or click.page_y is None:
            continue

        gx = _snap(click.page_x, CLICK_GRID)
        gy = _snap(click.page_y, CLICK_GRID)
        key = (gx, gy, event.path)
        if key in grid:
            grid[key].value += 1
        else:
            grid[key] = HeatmapPoint(
                x=click.x if click.x is not None else gx,
                y=click.y if click.y is not None else gy,
                page_x=gx,
                page_y=gy,
                value=1,
                path=event.path,
                element_selector=click.element.selector if click.element else None,
            )

    return sorted(grid.values(), key=lambda p: p.value, reverse=True)


def mouse_heatmap(events: Iterable[TrackingEvent], path: str | None = None) -> list[HeatmapPoint]:
    """
    Bucket every point of every mouse trail onto a 20px grid.

    Args:
        events: Event log snapshot
        path: Optional page path filter

    Returns:
        Heatmap points sorted by descending count
    """
    grid: dict[tuple[int, int, str], HeatmapPoint] = {}
    for event in events:
        if not _matches(event, EventKind.MOUSE_TRAIL, path):
            continue
        trail = _parse(MouseTrailData, event)
        if trail is None:
            continue

        for point in trail.points:
            gx = _snap(point.page_x, MOUSE_GRID)
            gy = _snap(point.page_y, MOUSE_GRID)
            key = (gx, gy, event.path)
            if key in grid:
                grid[key].value += 1
            else:
                grid[key] = HeatmapPoint(
                    x=point.x, y=point.y, page_x=gx, page_y=gy, value=1, path=event.path
                )

    return sorted(grid.values(), key=lambda p: p.value, reverse=True)


def scroll_depth_histogram(
    events: Iterable[TrackingEvent], path: str | None = None
) -> list[dict]:
    """
    Count scroll samples per 10-point depth bin (0-9 -> 0, 10-19 -> 10, ...).

    Returns:
        ``[{"depth": bin, "count": n}, ...]`` sorted by ascending bin
    """
    bins: dict[int, int] = {}
    for event in events:
        if not _matches(event, EventKind.SCROLL, path) or "scrollPercent" not in event.data:
            continue
        scroll = _parse(ScrollData, event, "scrollPercent")
        if scroll is None:
            continue
        depth = (scroll.scroll_percent // SCROLL_BIN) * SCROLL_BIN
        bins[depth] = bins.get(depth, 0) + 1

    return [{"depth": depth, "count": count} for depth, count in sorted(bins.items())]


# ==============================================================================
# Event Selections
# ==============================================================================


def rage_clicks(events: Iterable[TrackingEvent], path: str | None = None) -> list[TrackingEvent]:
    """Raw rage-click events, optionally restricted to one path."""
    return [e for e in events if _matches(e, EventKind.RAGE_CLICK, path)]


def session_events(events: Iterable[TrackingEvent], session_id: str) -> list[TrackingEvent]:
    """Every event of one session in timestamp order (stable for ties)."""
    return sorted((e for e in events if e.session_id == session_id), key=lambda e: e.timestamp)


def performance_events(events: Iterable[TrackingEvent]) -> list[TrackingEvent]:
    """All load-performance and web-vital events."""
    return [e for e in events if e.type in (EventKind.PERFORMANCE, EventKind.WEB_VITAL)]


def sort_sessions(sessions: Iterable[SessionSummary]) -> list[SessionSummary]:
    """Sessions ordered by most recent start first."""
    return sorted(sessions, key=lambda s: s.start_time, reverse=True)


# ==============================================================================
# Rollups
# ==============================================================================


def page_stats(events: Iterable[TrackingEvent]) -> list[dict]:
    """
    Per-path rollup of views, clicks, rage clicks and average scroll depth.

    The average pools every scroll sample's max-so-far depth for the path,
    not one maximum per session. Paths are listed in first-seen order.

    Returns:
        ``[{"path", "views", "clicks", "avgScrollDepth", "rageClicks"}, ...]``
    """
    pages: dict[str, dict] = {}
    for event in events:
        page = pages.setdefault(
            event.path, {"views": 0, "clicks": 0, "depths": [], "rage_clicks": 0}
        )
        if event.type == EventKind.PAGE_VIEW:
            page["views"] += 1
        elif event.type == EventKind.CLICK:
            page["clicks"] += 1
        elif event.type == EventKind.RAGE_CLICK:
            page["rage_clicks"] += 1
        elif event.type == EventKind.SCROLL and "maxDepth" in event.data:
            scroll = _parse(ScrollData, event, "maxDepth")
            if scroll is not None:
                page["depths"].append(scroll.max_depth)

    return [
        {
            "path": path,
            "views": page["views"],
            "clicks": page["clicks"],
            "avgScrollDepth": _half_up(sum(page["depths"]) / len(page["depths"]))
            if page["depths"]
            else 0,
            "rageClicks": page["rage_clicks"],
        }
        for path, page in pages.items()
    ]


def element_interactions(events: Iterable[TrackingEvent], path: str | None = None) -> list[dict]:
    """
    Click counts per element selector, most clicked first, top 50.

    The text reported for a selector is the one seen on its first click.
    """
    elements: dict[str, dict] = {}
    for event in events:
        if not _matches(event, EventKind.CLICK, path):
            continue
        click = _parse(ClickData, event)
        if click is None or click.element is None or not click.element.selector:
            continue
        entry = elements.setdefault(
            click.element.selector, {"clicks": 0, "text": click.element.text or ""}
        )
        entry["clicks"] += 1

    ranked = sorted(elements.items(), key=lambda item: item[1]["clicks"], reverse=True)
    return [
        {"selector": selector, "clicks": data["clicks"], "text": data["text"]}
        for selector, data in ranked[:TOP_ELEMENTS]
    ]


def unique_users(events: Iterable[TrackingEvent]) -> int:
    """Distinct user ids across the whole log."""
    return len({e.user_id for e in events})


def _half_up(value: float) -> int:
    return math.floor(value + 0.5)
