# ==============================================================================
# Query Command
# ==============================================================================
"""
Reads aggregates from a running ingestion endpoint.

The endpoint exposes one GET route with a ``q`` parameter; this command is
a thin client for it that renders results as rich tables (or raw JSON).
"""

import json as _json
from typing import Annotated, Any, Optional

import requests
import typer
from rich.console import Console
from rich.table import Table

from tracklens.cli.shared import C, I
from tracklens.ingestion.service import QUERY_NAMES
from tracklens.utils.config import get_settings

# Which key of each response holds the row list rendered as a table
_ROW_KEYS = {
    "overview": "pages",
    "heatmap": "clicks",
    "rage-clicks": "rageClicks",
    "sessions": "sessions",
    "session-events": "events",
    "performance": "metrics",
    "elements": "elements",
}

MAX_ROWS = 50


# ==============================================================================
# Helper Functions
# ==============================================================================


def fetch_query(
    endpoint: str,
    name: str,
    path: str | None = None,
    session_id: str | None = None,
    timeout: float = 5.0,
) -> dict:
    """Call the query surface and return the decoded JSON body.

    Raises:
        requests.HTTPError: On a non-2xx response
    """
    params = {"q": name}
    if path:
        params["path"] = path
    if session_id:
        params["sessionId"] = session_id

    response = requests.get(endpoint, params=params, timeout=timeout)
    response.raise_for_status()
    return response.json()


def _cell(value: Any) -> str:
    if isinstance(value, float):
        return f"{value:,.2f}"
    if isinstance(value, int) and not isinstance(value, bool):
        return f"{value:,}"
    if isinstance(value, (dict, list)):
        text = _json.dumps(value, separators=(",", ":"))
        return text if len(text) <= 60 else text[:57] + "..."
    return "" if value is None else str(value)


def render_rows(title: str, rows: list[dict]) -> Table:
    """Build a table whose columns are the keys of the first row."""
    table = Table(title=title, show_header=True, header_style="bold")
    columns = list(rows[0].keys()) if rows else []
    for column in columns:
        table.add_column(column)
    for row in rows[:MAX_ROWS]:
        table.add_row(*(_cell(row.get(column)) for column in columns))
    return table


# ==============================================================================
# Commands
# ==============================================================================


def query(
    name: Annotated[str, typer.Argument(help=f"Query name: {', '.join(QUERY_NAMES)}")],
    path: Annotated[Optional[str], typer.Option("--path", help="Filter by page path")] = None,
    session_id: Annotated[
        Optional[str], typer.Option("--session-id", "-s", help="Session id (session-events)")
    ] = None,
    endpoint: Annotated[
        Optional[str], typer.Option("--endpoint", "-e", help="Ingestion endpoint URL")
    ] = None,
    json_output: Annotated[bool, typer.Option("--json", "-j", help="Output as JSON")] = False,
) -> None:
    """Query aggregates from a running ingestion endpoint.

    Examples:
        tracklens query overview
        tracklens query heatmap --path /dashboard
        tracklens query session-events -s sess_abc --json
    """
    settings = get_settings()
    if name not in QUERY_NAMES:
        raise typer.BadParameter(f"Unknown query '{name}'. Use one of: {', '.join(QUERY_NAMES)}")

    url = endpoint or settings.tracker.endpoint
    try:
        result = fetch_query(url, name, path, session_id, timeout=settings.tracker.http_timeout_seconds)
    except requests.exceptions.RequestException as e:
        if json_output:
            print(_json.dumps({"error": str(e), "endpoint": url}))
        else:
            print(f"\n  {C.BRIGHT_RED}{I.CROSS} Query failed: {e}{C.RESET}\n")
        raise typer.Exit(1)

    if json_output:
        print(_json.dumps(result, indent=2))
        return

    console = Console()
    print()
    if name == "overview":
        print(f"  {C.BOLD}Events:{C.RESET}    {result.get('totalEvents', 0):,}")
        print(f"  {C.BOLD}Sessions:{C.RESET}  {result.get('totalSessions', 0):,}")
        print(f"  {C.BOLD}Users:{C.RESET}     {result.get('uniqueUsers', 0):,}")
        print()

    rows = result.get(_ROW_KEYS[name], [])
    if not rows:
        print(f"  {C.BRIGHT_YELLOW}{I.WARN} No {name} data{C.RESET}")
        print()
        return

    title = f"{name}" + (f" ({path})" if path else "")
    console.print(render_rows(title, rows))
    if len(rows) > MAX_ROWS:
        print(f"  {C.DIM}Showing {MAX_ROWS} of {len(rows):,} rows (use --json for all){C.RESET}")
    print()
