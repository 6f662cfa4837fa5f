"""Screenshot capture for failed and debugged scenarios."""

from petspot_e2e.diagnostics.screenshots import (
    DebugScreenshotter,
    capture_screenshot,
    cleanup_screenshots,
    sanitize_filename,
)

__all__ = ["DebugScreenshotter", "capture_screenshot", "cleanup_screenshots", "sanitize_filename"]
