# ==============================================================================
# Tracklens CLI
# ==============================================================================
"""
Command-line interface for the tracklens behavioral-analytics pipeline.

Usage:
    tracklens --help
    tracklens serve
    tracklens config show
    tracklens query overview
    tracklens query heatmap --path /dashboard
    tracklens replay session.jsonl
"""

# ==============================================================================
# App Configuration
# ==============================================================================
# Set consistent terminal width for help output formatting
import os

import typer

if "COLUMNS" not in os.environ:
    os.environ["COLUMNS"] = "115"

app = typer.Typer(
    name="tracklens",
    help="Behavioral-analytics tracker and ingestion pipeline CLI",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

config_app = typer.Typer(
    help="Configuration management",
    no_args_is_help=True,
)
app.add_typer(config_app, name="config")

# Register config commands from cli.config module
from tracklens.cli.config import config_show

config_app.command("show")(config_show)

# Serve command is imported from tracklens.cli.serve
from tracklens.cli.serve import serve

app.command("serve")(serve)

# Query command is imported from tracklens.cli.query
from tracklens.cli.query import query

app.command("query")(query)

# Replay command is imported from tracklens.cli.replay
from tracklens.cli.replay import replay

app.command("replay")(replay)


# ==============================================================================
# Entry Point
# ==============================================================================


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
