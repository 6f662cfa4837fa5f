"""Failure and debug screenshots."""

import logging
import re
import threading
from datetime import datetime
from pathlib import Path
from typing import Any

from selenium.common.exceptions import WebDriverException

from petspot_e2e.constants import (
    DEBUG_SCREENSHOT_TIMESTAMP_FORMAT,
    SCREENSHOT_TIMESTAMP_FORMAT,
)

logger = logging.getLogger(__name__)

UNKNOWN_SCENARIO = "unknown-scenario"


def sanitize_filename(name: str | None) -> str:
    """Make a scenario name safe for use as a file name.

    Characters outside ``[A-Za-z0-9_-]`` become underscores, runs of
    underscores collapse to one and the result is lowercased.
    """
    if not name:
        return UNKNOWN_SCENARIO
    sanitized = re.sub(r"[^a-zA-Z0-9_-]", "_", name)
    return re.sub(r"_{2,}", "_", sanitized).lower()


def screenshot_filename(
    scenario_name: str | None, platform: str | None = None, now: datetime | None = None
) -> str:
    prefix = f"{platform}_" if platform else ""
    timestamp = (now or datetime.now()).strftime(SCREENSHOT_TIMESTAMP_FORMAT)
    return f"{sanitize_filename(prefix + (scenario_name or ''))}_{timestamp}.png"


def capture_screenshot(
    driver: Any, scenario_name: str | None, directory: Path, platform: str | None = None
) -> Path:
    """Save a PNG of the driver's current screen.

    Parameters
    ----------
    driver : Any
        Selenium or Appium driver
    scenario_name : str | None
        Scenario the screenshot belongs to
    directory : Path
        Destination directory, created if missing
    platform : str | None
        Platform prefix for mobile screenshots

    Returns
    -------
    Path
        Written file

    Raises
    ------
    WebDriverException
        If the driver cannot take a screenshot
    OSError
        If the file cannot be written
    """
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    destination = directory / screenshot_filename(scenario_name, platform)
    destination.write_bytes(driver.get_screenshot_as_png())
    logger.info(f"Screenshot saved: {destination}")
    return destination


def cleanup_screenshots(directory: Path) -> int:
    """Delete ``.png`` files from a screenshot directory; returns the count."""
    directory = Path(directory)
    if not directory.exists():
        return 0

    deleted = 0
    for screenshot in directory.glob("*.png"):
        try:
            screenshot.unlink()
            deleted += 1
        except OSError as e:
            logger.warning(f"Failed to delete {screenshot}: {e}")

    logger.info(f"Cleaned up {deleted} old screenshot(s)")
    return deleted


class DebugScreenshotter:
    """Numbered screenshots taken before UI actions while debugging.

    Disabled instances do nothing. Failures are logged, never raised.

    Parameters
    ----------
    directory : Path
        Destination directory
    enabled : bool
        Whether screenshots are taken at all
    """

    def __init__(self, directory: Path, enabled: bool = False) -> None:
        self.directory = Path(directory)
        self.enabled = enabled
        self.counter = 0
        self._lock = threading.Lock()

    def capture(self, driver: Any, action: str) -> Path | None:
        if not self.enabled or driver is None:
            return None

        with self._lock:
            self.counter += 1
            number = self.counter

        timestamp = datetime.now().strftime(DEBUG_SCREENSHOT_TIMESTAMP_FORMAT)[:-3]
        action_name = re.sub(r"[^a-zA-Z0-9._-]", "_", action)
        filename = f"{number:03d}_{timestamp}_{action_name}.png"
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            path = self.directory / filename
            path.write_bytes(driver.get_screenshot_as_png())
        except (WebDriverException, OSError) as e:
            logger.warning(f"Failed to take debug screenshot: {e}")
            return None

        logger.debug(f"Debug screenshot: {filename}")
        return path

    def reset(self) -> None:
        with self._lock:
            self.counter = 0
