# ==============================================================================
# CLI Commands Module
# ==============================================================================
"""
CLI commands for tracklens.

Commands are organized into separate modules:
- shared.py: Colors, icons and logging setup
- serve.py: Run the ingestion API
- config.py: Show configuration
- query.py: Read aggregates from a running endpoint
- replay.py: Drive a tracker over a recorded interaction log
"""

from tracklens.cli.shared import LOG_FORMAT, C, Colors, I, Icons, configure_logging

__all__ = [
    "LOG_FORMAT",
    "C",
    "Colors",
    "I",
    "Icons",
    "configure_logging",
]
