# ==============================================================================
# Host Page Abstraction
# ==============================================================================
"""
The slice of a browser page the tracker observes, expressed in Python.

The tracker never touches a real DOM. It talks to a ``Page`` (document and
window state, listener registry, optional platform capabilities) and a
``Scheduler`` (clock and timers). A host embeds the tracker by keeping a
Page in sync with the real page and dispatching input events to it; the
replay command does the same from a recorded interaction log.

Capabilities that browsers may lack are modelled as returning None or
raising NotImplementedError, and the tracker degrades per signal:
- send_beacon()                  -> None when unsupported
- navigation_timing()            -> None when unsupported
- observe_performance()          -> NotImplementedError when unsupported
- create_intersection_observer() -> None when unsupported
"""

import asyncio
import heapq
import itertools
import re
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urljoin, urlsplit

Listener = Callable[[Any], None]


# ==============================================================================
# DOM
# ==============================================================================


_SELECTOR_PATTERN = re.compile(
    r"^(?P<tag>[a-zA-Z][a-zA-Z0-9-]*)?"
    r"(?P<cls>(?:\.[\w-]+)*)"
    r"(?:\[(?P<attr>[\w-]+)(?:=['\"](?P<value>[^'\"]*)['\"])?\])?$"
)


@dataclass(eq=False)
class DomNode:
    """A DOM element with just the properties the tracker reads."""

    tag_name: str
    id: str = ""
    class_name: str = ""
    text_content: str = ""
    href: str | None = None
    value: str = ""
    input_type: str | None = None
    name: str = ""
    rect: tuple[float, float, float, float] | None = None
    attributes: dict[str, str] = field(default_factory=dict)
    parent: "DomNode | None" = field(default=None, repr=False)
    children: list["DomNode"] = field(default_factory=list, repr=False)

    def append(self, child: "DomNode") -> "DomNode":
        """Attach a child and return it."""
        child.parent = self
        self.children.append(child)
        return child

    @property
    def classes(self) -> list[str]:
        return self.class_name.split()

    def closest(self, tag: str) -> "DomNode | None":
        """Nearest ancestor-or-self with the given tag."""
        node: DomNode | None = self
        while node is not None:
            if node.tag_name.lower() == tag.lower():
                return node
            node = node.parent
        return None

    def matches(self, selector: str) -> bool:
        """
        Match a simple selector: ``tag``, ``.class``, ``tag.class``,
        ``[attr]`` or ``[attr='value']``.

        Raises:
            ValueError: For selectors outside that grammar
        """
        match = _SELECTOR_PATTERN.match(selector.strip())
        if not match or not selector.strip():
            raise ValueError(f"Unsupported selector: {selector!r}")

        tag = match.group("tag")
        if tag and tag.lower() != self.tag_name.lower():
            return False
        wanted = [c for c in match.group("cls").split(".") if c]
        if any(c not in self.classes for c in wanted):
            return False
        attr = match.group("attr")
        if attr:
            if attr not in self.attributes:
                return False
            value = match.group("value")
            if value is not None and self.attributes[attr] != value:
                return False
        return True

    def iter_tree(self):
        """Depth-first, document-order walk of self and descendants."""
        yield self
        for child in self.children:
            yield from child.iter_tree()

    def outer_html(self) -> str:
        attrs = ""
        if self.id:
            attrs += f' id="{self.id}"'
        if self.class_name:
            attrs += f' class="{self.class_name}"'
        for key, value in self.attributes.items():
            attrs += f' {key}="{value}"'
        tag = self.tag_name.lower()
        inner = "".join(child.outer_html() for child in self.children) or self.text_content
        return f"<{tag}{attrs}>{inner}</{tag}>"


# ==============================================================================
# Input events and platform entries
# ==============================================================================


@dataclass
class PointerEvent:
    client_x: float
    client_y: float
    page_x: float
    page_y: float
    button: int = 0
    target: DomNode | None = None


@dataclass
class FocusEvent:
    target: DomNode


@dataclass
class ErrorEvent:
    message: str = ""
    filename: str | None = None
    lineno: int | None = None
    colno: int | None = None
    stack: str | None = None


@dataclass
class NavigationTiming:
    """Navigation timing entry, all values in ms relative to time origin."""

    fetch_start: float = 0.0
    domain_lookup_start: float = 0.0
    domain_lookup_end: float = 0.0
    connect_start: float = 0.0
    connect_end: float = 0.0
    request_start: float = 0.0
    response_start: float = 0.0
    dom_interactive: float = 0.0
    dom_content_loaded_event_end: float = 0.0
    load_event_end: float = 0.0
    transfer_size: int = 0


@dataclass
class PerformanceEntry:
    """An entry delivered to a performance observer."""

    start_time: float = 0.0
    processing_start: float = 0.0
    value: float = 0.0
    had_recent_input: bool = False


@dataclass
class IntersectionEntry:
    target: DomNode
    is_intersecting: bool
    intersection_ratio: float


class IntersectionObserver:
    """
    Reports threshold crossings for observed elements.

    Callers feed visibility changes through ``update()``; the callback fires
    only when an element's ratio crosses one of the thresholds.
    """

    def __init__(self, callback: Callable[[list[IntersectionEntry]], None], thresholds: list[float]):
        self._callback = callback
        self._thresholds = sorted(thresholds)
        self._ratios: dict[int, float] = {}
        self._targets: list[DomNode] = []

    @property
    def targets(self) -> list[DomNode]:
        return list(self._targets)

    def observe(self, target: DomNode) -> None:
        if any(t is target for t in self._targets):
            return
        self._targets.append(target)
        self._ratios[id(target)] = 0.0

    def update(self, target: DomNode, ratio: float) -> None:
        if id(target) not in self._ratios:
            return
        previous = self._ratios[id(target)]
        self._ratios[id(target)] = ratio
        crossed = any((previous < t <= ratio) or (ratio < t <= previous) for t in self._thresholds)
        if crossed:
            self._callback([IntersectionEntry(target, ratio > 0, ratio)])


# ==============================================================================
# Page
# ==============================================================================


@dataclass
class Location:
    href: str = "http://localhost/"
    pathname: str = "/"
    hash: str = ""
    hostname: str = "localhost"


class Page:
    """
    Document and window state of one page load.

    Subclass to bridge a real browser; the base class is a complete,
    self-contained page used by replay and tests.
    """

    def __init__(
        self,
        url: str = "http://localhost/",
        *,
        title: str = "",
        referrer: str = "",
        inner_width: int = 1280,
        inner_height: int = 720,
        doc_height: int = 720,
        doc_width: int = 1280,
        user_agent: str = "tracklens",
        language: str = "en-US",
        platform: str = "",
        screen_width: int = 1920,
        screen_height: int = 1080,
        timezone: str = "UTC",
        ready_state: str = "complete",
    ):
        self.location = Location()
        self.set_url(url)
        self.title = title
        self.referrer = referrer
        self.inner_width = inner_width
        self.inner_height = inner_height
        self.scroll_x = 0.0
        self.scroll_y = 0.0
        self.doc_height = doc_height
        self.doc_width = doc_width
        self.user_agent = user_agent
        self.language = language
        self.platform = platform
        self.screen_width = screen_width
        self.screen_height = screen_height
        self.timezone = timezone
        self.ready_state = ready_state
        self.visibility_state = "visible"

        self.document_element = DomNode("HTML")
        self.body = self.document_element.append(DomNode("BODY"))

        self._listeners: dict[str, list[Listener]] = {}
        self._performance_observers: dict[str, list[Callable[[list[PerformanceEntry]], None]]] = {}
        self._intersection_observers: list[IntersectionObserver] = []
        self.nav_timing: NavigationTiming | None = None

    # ------------------------------------------------------------------
    # Location
    # ------------------------------------------------------------------

    def set_url(self, url: str) -> None:
        """Point the location at a new URL, resolved against the current one."""
        href = urljoin(self.location.href, url)
        parts = urlsplit(href)
        self.location = Location(
            href=href,
            pathname=parts.path or "/",
            hash=f"#{parts.fragment}" if parts.fragment else "",
            hostname=parts.hostname or "",
        )

    def push_state(self, url: str) -> None:
        """Native history.pushState: change the URL without a page load."""
        self.set_url(url)

    def replace_state(self, url: str) -> None:
        """Native history.replaceState."""
        self.set_url(url)

    @property
    def hidden(self) -> bool:
        return self.visibility_state == "hidden"

    # ------------------------------------------------------------------
    # Event listeners
    # ------------------------------------------------------------------

    def add_event_listener(self, name: str, listener: Listener) -> None:
        self._listeners.setdefault(name, []).append(listener)

    def remove_event_listener(self, name: str, listener: Listener) -> None:
        if listener in self._listeners.get(name, []):
            self._listeners[name].remove(listener)

    def dispatch(self, name: str, event: Any = None) -> None:
        """Deliver an event to every listener registered for ``name``."""
        for listener in list(self._listeners.get(name, [])):
            listener(event)

    # ------------------------------------------------------------------
    # Document queries
    # ------------------------------------------------------------------

    def query_selector_all(self, selector: str) -> list[DomNode]:
        return [node for node in self.document_element.iter_tree() if node.matches(selector)]

    def outer_html(self) -> str:
        return self.document_element.outer_html()

    # ------------------------------------------------------------------
    # Optional platform capabilities
    # ------------------------------------------------------------------

    def send_beacon(self, url: str, data: str) -> bool | None:
        """Queue data for delivery that survives unload. None: unsupported."""
        return None

    def navigation_timing(self) -> NavigationTiming | None:
        return self.nav_timing

    def observe_performance(
        self, entry_type: str, callback: Callable[[list[PerformanceEntry]], None]
    ) -> None:
        self._performance_observers.setdefault(entry_type, []).append(callback)

    def emit_performance_entries(self, entry_type: str, entries: list[PerformanceEntry]) -> None:
        for callback in list(self._performance_observers.get(entry_type, [])):
            callback(entries)

    def create_intersection_observer(
        self, callback: Callable[[list[IntersectionEntry]], None], thresholds: list[float]
    ) -> IntersectionObserver | None:
        observer = IntersectionObserver(callback, thresholds)
        self._intersection_observers.append(observer)
        return observer

    def set_intersection(self, target: DomNode, ratio: float) -> None:
        """Report that ``ratio`` of ``target`` is now in view."""
        for observer in self._intersection_observers:
            observer.update(target, ratio)


# ==============================================================================
# Schedulers
# ==============================================================================


class Scheduler:
    """Clock plus timers. All callbacks run on the caller's single thread."""

    def now(self) -> int:
        """Current time, ms since epoch."""
        raise NotImplementedError

    def set_timeout(self, callback: Callable[[], None], delay_ms: int) -> Any:
        raise NotImplementedError

    def set_interval(self, callback: Callable[[], None], interval_ms: int) -> Any:
        raise NotImplementedError

    def cancel(self, handle: Any) -> None:
        raise NotImplementedError


class VirtualScheduler(Scheduler):
    """
    Deterministic scheduler on a virtual clock.

    Time only moves through ``advance()``/``advance_to()``, which run due
    timers in (due time, registration) order.
    """

    def __init__(self, start_ms: int = 0):
        self._now = start_ms
        self._seq = itertools.count()
        self._queue: list[tuple[int, int, int]] = []
        self._timers: dict[int, tuple[Callable[[], None], int | None]] = {}

    def now(self) -> int:
        return self._now

    def set_timeout(self, callback: Callable[[], None], delay_ms: int) -> int:
        return self._schedule(callback, delay_ms, None)

    def set_interval(self, callback: Callable[[], None], interval_ms: int) -> int:
        if interval_ms <= 0:
            raise ValueError(f"interval must be positive, got {interval_ms}")
        return self._schedule(callback, interval_ms, interval_ms)

    def cancel(self, handle: int) -> None:
        self._timers.pop(handle, None)

    def _schedule(self, callback, delay_ms, interval_ms) -> int:
        handle = next(self._seq)
        self._timers[handle] = (callback, interval_ms)
        heapq.heappush(self._queue, (self._now + max(delay_ms, 0), handle, handle))
        return handle

    def advance(self, ms: int) -> None:
        self.advance_to(self._now + ms)

    def advance_to(self, target_ms: int) -> None:
        while self._queue and self._queue[0][0] <= target_ms:
            due, _, handle = heapq.heappop(self._queue)
            timer = self._timers.get(handle)
            if timer is None:
                continue
            callback, interval_ms = timer
            self._now = max(self._now, due)
            if interval_ms is None:
                del self._timers[handle]
            else:
                heapq.heappush(self._queue, (due + interval_ms, next(self._seq), handle))
            callback()
        self._now = max(self._now, target_ms)

    @property
    def pending(self) -> int:
        return len(self._timers)


class AsyncioScheduler(Scheduler):
    """Wall-clock scheduler on an asyncio event loop."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None):
        self._loop = loop or asyncio.get_running_loop()

    def now(self) -> int:
        return int(time.time() * 1000)

    def set_timeout(self, callback: Callable[[], None], delay_ms: int) -> asyncio.TimerHandle:
        return self._loop.call_later(max(delay_ms, 0) / 1000.0, callback)

    def set_interval(self, callback: Callable[[], None], interval_ms: int) -> dict:
        handle: dict = {}

        def tick() -> None:
            handle["timer"] = self._loop.call_later(interval_ms / 1000.0, tick)
            callback()

        handle["timer"] = self._loop.call_later(interval_ms / 1000.0, tick)
        return handle

    def cancel(self, handle: Any) -> None:
        timer = handle.get("timer") if isinstance(handle, dict) else handle
        if timer is not None:
            timer.cancel()
