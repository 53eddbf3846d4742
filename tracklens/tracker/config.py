# ==============================================================================
# Tracker Embedding Configuration
# ==============================================================================
"""
Tracker configuration, read once per page load and immutable afterwards.

The embedding contract is a handful of attributes on the tracker's script
tag; everything else is a fixed default:

    <script src=".../tracker.js"
            data-endpoint="https://example.com/api/tracking"
            data-user-id="employee-123"
            data-session-capture="true"
            data-screenshot-interval="30000"
            data-screenshots="true"></script>
"""

from collections.abc import Mapping

from pydantic import BaseModel, ConfigDict, Field

# Structural and semantic elements watched for element_visible events
VISIBILITY_SELECTORS = (
    "main",
    "section",
    "aside",
    "nav",
    "header",
    "footer",
    "[role='main']",
    "[role='navigation']",
    "[role='complementary']",
    ".panel",
    ".dashboard",
    ".card",
    ".widget",
    ".sidebar",
    "[data-track]",
)


class TrackerConfig(BaseModel):
    """Immutable tracker settings. All durations are milliseconds."""

    model_config = ConfigDict(frozen=True)

    # Embedding attributes
    endpoint: str = "/api/tracking"
    user_id: str = "anonymous"
    session_capture: bool = True
    screenshot_interval: int = Field(30_000, ge=0)
    capture_screenshots: bool = True

    # Fixed defaults
    flush_interval: int = Field(5_000, gt=0)
    mouse_sample_rate: int = Field(100, ge=0)
    scroll_sample_rate: int = Field(250, ge=0)
    rage_click_threshold: int = Field(3, ge=2)
    rage_click_window: int = Field(1_000, gt=0)
    rage_click_tolerance: float = Field(50.0, gt=0)
    idle_timeout: int = Field(60_000, gt=0)
    idle_check_interval: int = Field(10_000, gt=0)
    mouse_trail_size: int = Field(50, gt=0)
    max_batch_size: int = Field(500, gt=0)
    http_timeout: int = Field(5_000, gt=0)
    snapshot_max_chars: int = Field(50_000, gt=0)
    stack_max_chars: int = Field(500, gt=0)
    performance_delay: int = Field(1_000, ge=0)
    visibility_thresholds: tuple[float, ...] = (0.25, 0.5, 0.75, 1.0)
    visibility_selectors: tuple[str, ...] = VISIBILITY_SELECTORS

    @classmethod
    def from_attributes(cls, attributes: Mapping[str, str | None], **overrides) -> "TrackerConfig":
        """
        Build a config from script-tag attributes.

        Flags are on unless the attribute is literally "false". A malformed
        screenshot interval falls back to the default.

        Args:
            attributes: Attribute mapping, e.g. {"data-endpoint": "..."}
            overrides: Explicit field values that win over attributes

        Returns:
            Frozen TrackerConfig
        """
        values: dict = {}
        if attributes.get("data-endpoint"):
            values["endpoint"] = attributes["data-endpoint"]
        if attributes.get("data-user-id"):
            values["user_id"] = attributes["data-user-id"]
        values["session_capture"] = attributes.get("data-session-capture") != "false"
        values["capture_screenshots"] = attributes.get("data-screenshots") != "false"

        interval = attributes.get("data-screenshot-interval")
        if interval:
            try:
                values["screenshot_interval"] = max(int(interval), 0)
            except ValueError:
                pass

        values.update(overrides)
        return cls(**values)
