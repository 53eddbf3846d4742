# ==============================================================================
# Serve Command
# ==============================================================================
"""
Runs the ingestion API under uvicorn.

The store backend comes from STORE_BACKEND (memory by default); bind address
and route come from the API_* settings unless overridden on the command line.
"""

from typing import Annotated, Optional

import typer
import uvicorn

from tracklens.cli.shared import C, I, configure_logging
from tracklens.ingestion.api import create_app
from tracklens.utils.config import get_settings


def serve(
    host: Annotated[Optional[str], typer.Option("--host", help="Bind address")] = None,
    port: Annotated[Optional[int], typer.Option("--port", "-p", help="Bind port")] = None,
) -> None:
    """Start the ingestion endpoint.

    Examples:
        tracklens serve
        tracklens serve --host 0.0.0.0 --port 9000
    """
    settings = get_settings()
    configure_logging()

    host = host or settings.api.host
    port = port or settings.api.port
    app = create_app()

    print(
        f"  {C.BRIGHT_GREEN}{I.CHECK}{C.RESET} Ingestion endpoint "
        f"{C.WHITE}http://{host}:{port}{settings.api.route}{C.RESET} "
        f"{C.DIM}(store: {settings.store.backend}){C.RESET}"
    )
    uvicorn.run(app, host=host, port=port, log_level=settings.log_level.lower())
