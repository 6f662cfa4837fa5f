"""Global constants for the PetSpot E2E harness.

Values here are shared by the session, environment and fixture layers.
Anything a developer may want to override per machine lives in
``petspot_e2e.config`` instead.
"""

from enum import Enum


class PlatformKind(str, Enum):
    """Automation target of a session."""

    WEB = "web"
    ANDROID = "android"
    IOS = "ios"

    @property
    def is_mobile(self) -> bool:
        return self in (PlatformKind.ANDROID, PlatformKind.IOS)


class LocationMode(str, Enum):
    """How a mobile session treats the location permission."""

    DEFAULT = "default"
    GRANT = "grant"
    DIALOG = "dialog"


ANDROID_APP_PACKAGE = "com.intive.aifirst.petspot"
"""Android application id used for activate/terminate/remove commands."""

IOS_BUNDLE_ID = "com.intive.aifirst.petspot.PetSpot"
"""iOS bundle identifier used for app commands and simulator privacy grants."""

WEB_IMPLICIT_WAIT_SECONDS = 3
"""Implicit wait applied to browser sessions.

Kept short because page objects rely on explicit waits.
"""

MOBILE_IMPLICIT_WAIT_SECONDS = 10
"""Implicit wait applied to Appium sessions.

Native screens render slower than web pages, especially on first launch.
"""

HEALTH_CHECK_TIMEOUT_SECONDS = 2
"""Per-request timeout for dependency health probes."""

STARTUP_TIMEOUT_SECONDS = 30
"""Time a dependency has to become healthy after its start command."""

HEALTH_CHECK_INTERVAL_SECONDS = 1
"""Delay between health probes while waiting for startup."""

START_COMMAND_TIMEOUT_SECONDS = 300
"""Upper bound for a blocking start command such as ``docker compose up -d``.

Image pulls on a cold machine dominate this budget.
"""

STOP_COMMAND_TIMEOUT_SECONDS = 10
"""Upper bound for stop commands before the process is killed."""

STARTUP_FAILURE_LOG_LINES = 30
"""Log tail attached when the start command itself exits non-zero."""

HEALTH_FAILURE_LOG_LINES = 50
"""Log tail attached when a dependency never reports healthy."""

CONTAINER_HEALTH_TIMEOUT_SECONDS = 30
"""Wait budget for each QA container to report a healthy state."""

REQUEST_TIMEOUT_SECONDS = 10
"""Timeout for fixture API requests."""

SCENARIO_TIMEOUT_SECONDS = 600
"""Default per-scenario timeout budget, overridable with ``@timeout_<n>``."""

APP_OPERATION_SETTLE_SECONDS = 2
"""Pause after install/uninstall so the device finishes the operation."""

APP_RESTART_PAUSE_SECONDS = 0.5
"""Pause between terminating and re-activating the app."""

API_HEALTH_PATH = "/api/health"
ANNOUNCEMENTS_PATH = "/api/v1/announcements"
ADMIN_ANNOUNCEMENTS_PATH = "/api/admin/v1/announcements"

QA_COMPOSE_FILE = "docker-compose.qa-env.yml"
QA_CONTAINERS = ("qa-backend", "qa-frontend", "qa-selenium-router")
SELENIUM_GRID_STATUS_URL = "http://localhost:4444/status"

SCREENSHOT_TIMESTAMP_FORMAT = "%Y-%m-%d_%H-%M-%S"
DEBUG_SCREENSHOT_TIMESTAMP_FORMAT = "%Y%m%d-%H%M%S-%f"
