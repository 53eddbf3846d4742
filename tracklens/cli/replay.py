# ==============================================================================
# Replay Command
# ==============================================================================
"""
Drives a Tracker over a recorded interaction log.

The log is JSON Lines, one interaction per line, each with a ``t`` offset in
milliseconds from the start of the recording:

    {"t": 0, "type": "page", "url": "https://erp.example.com/dashboard", "title": "Dashboard"}
    {"t": 150, "type": "mousemove", "x": 200, "y": 120}
    {"t": 400, "type": "click", "x": 100, "y": 100, "target": {"tag": "button", "id": "submit"}}
    {"t": 900, "type": "scroll", "scrollY": 800}
    {"t": 1200, "type": "navigate", "url": "/reports"}
    {"t": 9000, "type": "hide"}

Supported types: page, click, mousemove, scroll, focus, blur, visibility,
navigate, error, custom, hide. The virtual clock advances to each ``t``
before the interaction is dispatched, so periodic flushes, idle checks and
snapshots fire exactly as they would have in the browser.
"""

import json
import logging
import time
from collections.abc import Iterable
from pathlib import Path
from typing import Annotated, Optional

import typer

from tracklens.cli.shared import C, I, configure_logging
from tracklens.tracker.config import TrackerConfig
from tracklens.tracker.page import DomNode, ErrorEvent, FocusEvent, Page, PointerEvent, VirtualScheduler
from tracklens.tracker.tracker import Tracker
from tracklens.tracker.transmitter import HttpTransport, Transport
from tracklens.utils.config import get_settings

logger = logging.getLogger(__name__)


class ReplayError(ValueError):
    """A line in the interaction log could not be replayed."""


# ==============================================================================
# Replay Engine
# ==============================================================================


class InteractionReplayer:
    """Feeds recorded interactions to a Page driven by a VirtualScheduler."""

    def __init__(
        self,
        config: TrackerConfig,
        transport: Transport,
        start_ms: int,
        page_options: dict | None = None,
    ):
        self.config = config
        self.transport = transport
        self.start_ms = start_ms
        self.page_options = page_options or {}
        self.scheduler = VirtualScheduler(start_ms=start_ms)
        self.page: Page | None = None
        self.tracker: Tracker | None = None
        self._nodes: dict[tuple, DomNode] = {}
        self.replayed = 0

    def _ensure_started(self, record: dict | None = None) -> Tracker:
        if self.tracker is not None:
            return self.tracker

        record = record or {}
        options = dict(self.page_options)
        for key, option in (
            ("title", "title"),
            ("referrer", "referrer"),
            ("innerWidth", "inner_width"),
            ("innerHeight", "inner_height"),
            ("docHeight", "doc_height"),
            ("docWidth", "doc_width"),
            ("userAgent", "user_agent"),
            ("language", "language"),
            ("platform", "platform"),
        ):
            if key in record:
                options[option] = record[key]

        self.page = Page(record.get("url", "http://localhost/"), **options)
        self.tracker = Tracker(self.page, self.scheduler, self.config, fallback=self.transport)
        self.tracker.start()
        return self.tracker

    def _node(self, target: dict | None) -> DomNode | None:
        """Find or create the body-level node a recorded target describes."""
        if not target:
            return None
        key = (target.get("tag", "div").upper(), target.get("id", ""), target.get("class", ""), target.get("name", ""))
        node = self._nodes.get(key)
        if node is None:
            node = self.page.body.append(
                DomNode(
                    tag_name=key[0],
                    id=key[1],
                    class_name=key[2],
                    name=key[3],
                    text_content=target.get("text", ""),
                    href=target.get("href"),
                    input_type=target.get("type"),
                )
            )
            self._nodes[key] = node
        if "value" in target:
            node.value = target["value"]
        return node

    def _pointer(self, record: dict) -> PointerEvent:
        x, y = record.get("x", 0), record.get("y", 0)
        return PointerEvent(
            client_x=x,
            client_y=y,
            page_x=record.get("pageX", x),
            page_y=record.get("pageY", y + self.page.scroll_y),
            button=record.get("button", 0),
            target=self._node(record.get("target")),
        )

    def replay(self, records: Iterable[dict]) -> Tracker:
        """Replay every record, then run the page-hide path if the log did not."""
        hidden = False
        for record in records:
            kind = record.get("type")
            if kind is None:
                raise ReplayError(f"Record without a type: {record}")

            self.scheduler.advance_to(self.start_ms + int(record.get("t", 0)))
            if kind == "page":
                self._ensure_started(record)
                self.replayed += 1
                continue

            tracker = self._ensure_started()
            page = self.page
            if kind == "click":
                page.dispatch("click", self._pointer(record))
            elif kind == "mousemove":
                page.dispatch("mousemove", self._pointer(record))
            elif kind == "scroll":
                page.scroll_y = float(record.get("scrollY", 0))
                page.dispatch("scroll")
            elif kind in ("focus", "blur"):
                target = self._node(record.get("target"))
                page.dispatch("focusin" if kind == "focus" else "focusout", FocusEvent(target))
            elif kind == "visibility":
                page.visibility_state = record.get("state", "visible")
                page.dispatch("visibilitychange")
            elif kind == "navigate":
                tracker.push_state(record["url"])
            elif kind == "error":
                page.dispatch(
                    "error",
                    ErrorEvent(
                        message=record.get("message", ""),
                        filename=record.get("filename"),
                        lineno=record.get("line"),
                        colno=record.get("col"),
                        stack=record.get("stack"),
                    ),
                )
            elif kind == "custom":
                tracker.track_event(record.get("name", "custom"), record.get("data"))
            elif kind == "hide":
                page.dispatch("pagehide")
                hidden = True
            else:
                raise ReplayError(f"Unsupported interaction type: {kind}")
            self.replayed += 1

            # Let zero-delay navigation checks run before the next record
            self.scheduler.advance(0)

        tracker = self._ensure_started()
        if not hidden:
            tracker.page_hide()
        return tracker


def read_records(path: Path) -> list[dict]:
    """Load a JSON Lines interaction log, skipping blank lines.

    Raises:
        ReplayError: If a line is not a JSON object
    """
    records = []
    with open(path, encoding="utf-8") as f:
        for line_no, line in enumerate(f, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                record = json.loads(line)
            except json.JSONDecodeError as e:
                raise ReplayError(f"Line {line_no}: {e}") from e
            if not isinstance(record, dict):
                raise ReplayError(f"Line {line_no}: expected a JSON object")
            records.append(record)
    return records


# ==============================================================================
# Commands
# ==============================================================================


def replay(
    file: Annotated[Path, typer.Argument(help="Interaction log (JSON Lines)", exists=True, dir_okay=False)],
    endpoint: Annotated[
        Optional[str], typer.Option("--endpoint", "-e", help="Ingestion endpoint URL")
    ] = None,
    user_id: Annotated[Optional[str], typer.Option("--user-id", "-u", help="Tracked user id")] = None,
    no_snapshots: Annotated[
        bool, typer.Option("--no-snapshots", help="Disable DOM snapshots")
    ] = False,
) -> None:
    """Replay a recorded interaction log through the tracker.

    Examples:
        tracklens replay session.jsonl
        tracklens replay session.jsonl -e http://localhost:8000/api/tracking -u employee-123
    """
    settings = get_settings()
    configure_logging()

    try:
        records = read_records(file)
    except ReplayError as e:
        print(f"\n  {C.BRIGHT_RED}{I.CROSS} {e}{C.RESET}\n")
        raise typer.Exit(1)

    config = TrackerConfig(
        endpoint=endpoint or settings.tracker.endpoint,
        user_id=user_id or settings.tracker.user_id,
        capture_screenshots=not no_snapshots,
    )
    transport = HttpTransport(timeout=settings.tracker.http_timeout_seconds)
    replayer = InteractionReplayer(config, transport, start_ms=int(time.time() * 1000))

    try:
        tracker = replayer.replay(records)
    except ReplayError as e:
        print(f"\n  {C.BRIGHT_RED}{I.CROSS} {e}{C.RESET}\n")
        raise typer.Exit(1)
    finally:
        transport.close(wait=True)

    print()
    print(f"  {C.BRIGHT_GREEN}{I.CHECK}{C.RESET} Replayed {replayer.replayed:,} interactions")
    print(f"  {C.BOLD}Session:{C.RESET}  {tracker.session_id}")
    print(f"  {C.BOLD}Batches:{C.RESET}  {tracker.transmitter.batches_sent:,} {I.ARROW} {config.endpoint}")
    print()
