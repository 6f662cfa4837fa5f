"""App lifecycle and device operations on the current mobile session."""

import logging
import subprocess
import time

from petspot_e2e.config import HarnessConfig
from petspot_e2e.constants import (
    ANDROID_APP_PACKAGE,
    APP_OPERATION_SETTLE_SECONDS,
    APP_RESTART_PAUSE_SECONDS,
    IOS_BUNDLE_ID,
    LocationMode,
    PlatformKind,
)
from petspot_e2e.sessions.registry import Session, SessionRegistry

logger = logging.getLogger(__name__)

SIMCTL_TIMEOUT_SECONDS = 30


def _simctl_privacy(action: str) -> bool:
    cmd = ["xcrun", "simctl", "privacy", "booted", action, "location", IOS_BUNDLE_ID]
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, timeout=SIMCTL_TIMEOUT_SECONDS)
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.warning(f"iOS: simctl not available: {e}")
        return False

    if result.returncode != 0:
        logger.warning(
            f"iOS: simctl {action} failed (exit code: {result.returncode}): "
            f"{result.stderr.strip()}"
        )
        return False

    logger.info(f"iOS: location permission {action} via simctl")
    return True


def grant_ios_location_permission() -> bool:
    """Grant location permission to the app on the booted simulator."""
    return _simctl_privacy("grant")


def reset_ios_location_permission() -> bool:
    """Reset location permission so the system dialog shows again."""
    return _simctl_privacy("reset")


def app_id_for(platform: PlatformKind) -> str:
    return ANDROID_APP_PACKAGE if platform == PlatformKind.ANDROID else IOS_BUNDLE_ID


class MobileAppController:
    """Lifecycle operations on the calling thread's mobile session.

    Parameters
    ----------
    registry : SessionRegistry
        Registry holding the session
    config : HarnessConfig
        Resolved harness settings, used for app binary paths
    location_mode : LocationMode
        Scenario's location permission mode
    settle_seconds : float
        Pause after install and uninstall
    """

    def __init__(
        self,
        registry: SessionRegistry,
        config: HarnessConfig,
        location_mode: LocationMode = LocationMode.DEFAULT,
        settle_seconds: float = APP_OPERATION_SETTLE_SECONDS,
    ) -> None:
        self.registry = registry
        self.config = config
        self.location_mode = location_mode
        self.settle_seconds = settle_seconds

    def _session(self, action: str) -> Session:
        for platform in (PlatformKind.ANDROID, PlatformKind.IOS):
            session = self.registry.get(platform)
            if session is not None:
                return session
        raise RuntimeError(f"No active mobile session - cannot {action}")

    def restart_app(self) -> None:
        session = self._session("restart app")
        app_id = app_id_for(session.platform)
        logger.info(f"Restarting app: {app_id}")
        session.driver.terminate_app(app_id)
        time.sleep(APP_RESTART_PAUSE_SECONDS)
        session.driver.activate_app(app_id)

    def uninstall_app(self) -> None:
        """Remove the app from the device.

        In dialog mode on iOS the location permission is reset as well, so
        the next install shows the system prompt.
        """
        session = self._session("uninstall app")
        app_id = app_id_for(session.platform)
        logger.info(f"Uninstalling app: {app_id}")
        session.driver.remove_app(app_id)
        if session.platform == PlatformKind.IOS and self.location_mode == LocationMode.DIALOG:
            reset_ios_location_permission()
        time.sleep(self.settle_seconds)

    def install_app(self) -> None:
        """Install the app binary and launch it."""
        session = self._session("install app")
        app_id = app_id_for(session.platform)
        app_path = self.config.app_path(session.platform)
        logger.info(f"Installing app from: {app_path}")
        session.driver.install_app(app_path)
        time.sleep(self.settle_seconds)
        session.driver.activate_app(app_id)
        time.sleep(self.settle_seconds)

    def reinstall_app(self) -> None:
        self.uninstall_app()
        self.install_app()

    def set_device_location(self, latitude: float, longitude: float) -> None:
        session = self._session("set location")
        session.driver.set_location(latitude, longitude, 0)
        logger.info(f"Device location set to: {latitude}, {longitude}")
