# ==============================================================================
# Shared Utilities
# ==============================================================================
"""
Shared utilities: configuration and retry policies.
"""

from tracklens.utils.config import (
    ApiSettings,
    Settings,
    StoreSettings,
    TrackerSettings,
    ValkeySettings,
    get_settings,
)

__all__ = [
    "ApiSettings",
    "Settings",
    "StoreSettings",
    "TrackerSettings",
    "ValkeySettings",
    "get_settings",
]
