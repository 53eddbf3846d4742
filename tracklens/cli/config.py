# ==============================================================================
# Config Commands
# ==============================================================================
"""
Configuration commands for the tracklens CLI.
"""

import json
from typing import Annotated

import typer

from tracklens.cli.shared import C
from tracklens.tracker.config import TrackerConfig
from tracklens.utils.config import get_settings


# ==============================================================================
# Commands
# ==============================================================================


def config_show(
    json_output: Annotated[
        bool, typer.Option("--json", "-j", help="Output configuration as JSON")
    ] = False,
) -> None:
    """Display current configuration (includes secrets in JSON mode)."""
    settings = get_settings()
    tracker_defaults = TrackerConfig()

    if json_output:
        config = {
            "store": {
                "backend": settings.store.backend,
                "max_events": settings.store.max_events,
            },
            "valkey": {
                "host": settings.valkey.host,
                "port": settings.valkey.port,
                "db": settings.valkey.db,
                "ssl_enabled": settings.valkey.ssl,
                "password": settings.valkey.password,
                "key_prefix": settings.valkey.key_prefix,
            },
            "api": {
                "host": settings.api.host,
                "port": settings.api.port,
                "route": settings.api.route,
                "cors_origins": settings.api.cors_origins,
            },
            "tracker": {
                "endpoint": settings.tracker.endpoint,
                "user_id": settings.tracker.user_id,
                "http_timeout_seconds": settings.tracker.http_timeout_seconds,
                "defaults": tracker_defaults.model_dump(mode="json"),
            },
            "log_level": settings.log_level,
            "debug": settings.debug,
        }
        print(json.dumps(config, indent=2))
        return

    # Human-readable output
    print()
    print(f"{C.BOLD}Configuration{C.RESET}")
    print()

    print(f"{C.CYAN}Store{C.RESET}")
    print(f"  Backend:    {C.WHITE}{settings.store.backend}{C.RESET}")
    print(f"  Capacity:   {C.WHITE}{settings.store.max_events:,} events{C.RESET}")
    print()

    if settings.store.backend == "valkey":
        print(f"{C.CYAN}Valkey{C.RESET}")
        print(f"  Host:       {C.WHITE}{settings.valkey.host}:{settings.valkey.port}{C.RESET}")
        print(f"  SSL:        {C.WHITE}{'enabled' if settings.valkey.ssl else 'disabled'}{C.RESET}")
        print(f"  Prefix:     {C.WHITE}{settings.valkey.key_prefix}{C.RESET}")
        print()

    print(f"{C.CYAN}API{C.RESET}")
    print(
        f"  Endpoint:   {C.WHITE}http://{settings.api.host}:{settings.api.port}"
        f"{settings.api.route}{C.RESET}"
    )
    print(f"  CORS:       {C.WHITE}{', '.join(settings.api.cors_origins)}{C.RESET}")
    print()

    print(f"{C.CYAN}Tracker{C.RESET}")
    print(f"  Endpoint:   {C.WHITE}{settings.tracker.endpoint}{C.RESET}")
    print(f"  User:       {C.WHITE}{settings.tracker.user_id}{C.RESET}")
    print(
        f"  Sampling:   {C.WHITE}mouse {tracker_defaults.mouse_sample_rate} ms, "
        f"scroll {tracker_defaults.scroll_sample_rate} ms{C.RESET}"
    )
    print(
        f"  Batching:   {C.WHITE}every {tracker_defaults.flush_interval} ms, "
        f"max {tracker_defaults.max_batch_size} events{C.RESET}"
    )
    print()
