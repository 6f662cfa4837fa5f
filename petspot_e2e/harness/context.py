"""Per-scenario state shared between the coordinator and step code."""

import logging
import threading
from dataclasses import dataclass, field
from typing import Any

from petspot_e2e.config import HarnessConfig
from petspot_e2e.constants import LocationMode, PlatformKind
from petspot_e2e.diagnostics.screenshots import DebugScreenshotter
from petspot_e2e.exceptions import SessionInitError
from petspot_e2e.fixtures.gateway import TestDataGateway
from petspot_e2e.harness.soft_assert import SoftAssertions
from petspot_e2e.sessions.mobile import MobileAppController
from petspot_e2e.sessions.registry import Session, SessionOptions, SessionRegistry
from petspot_e2e.sessions.web import open_page

logger = logging.getLogger(__name__)


@dataclass
class ScenarioContext:
    """Bag of scenario-scoped state.

    Sessions are created lazily on first use, never at scenario entry.

    Attributes
    ----------
    scenario_name : str
        Name of the running scenario
    config : HarnessConfig
        Resolved settings
    registry : SessionRegistry
        Suite-wide session registry
    gateway : TestDataGateway
        This scenario's fixture gateway and tracker
    platform : PlatformKind | None
        Detected target platform
    location_mode : LocationMode
        Location permission mode from tags
    """

    scenario_name: str
    config: HarnessConfig
    registry: SessionRegistry
    gateway: TestDataGateway
    platform: PlatformKind | None = None
    location_mode: LocationMode = LocationMode.DEFAULT
    soft_asserts: SoftAssertions = field(default_factory=SoftAssertions)
    debug_screenshots: DebugScreenshotter | None = None
    pending_geolocation: tuple[float, float] | None = None
    thread_id: int = field(default_factory=threading.get_ident)

    def session(self, platform: PlatformKind | None = None) -> Session:
        """Return the session for ``platform`` (default: the scenario's), creating it once.

        Raises
        ------
        SessionInitError
            If no platform can be determined or the driver fails to start
        """
        target = platform or self.platform
        if target is None:
            raise SessionInitError(
                f"Cannot determine platform for scenario '{self.scenario_name}'; "
                "tag it @web, @android or @ios, or set PLATFORM"
            )
        return self.registry.acquire(
            target, self.config, SessionOptions(location_mode=self.location_mode)
        )

    @property
    def driver(self) -> Any:
        return self.session().driver

    def mobile_app(self) -> MobileAppController:
        return MobileAppController(self.registry, self.config, self.location_mode)

    def set_mock_geolocation(self, latitude: float, longitude: float) -> None:
        self.pending_geolocation = (latitude, longitude)
        logger.info(f"Set pending mock geolocation: {latitude}, {longitude}")

    def clear_mock_geolocation(self) -> None:
        self.pending_geolocation = None

    def open(self, path: str = "/") -> Any:
        """Navigate the web session to ``path`` and apply any pending geolocation."""
        driver = self.session(PlatformKind.WEB).driver
        open_page(driver, self.config.web_base_url, path, self.pending_geolocation)
        return driver

    def debug_screenshot(self, action: str) -> None:
        if self.debug_screenshots is None:
            return
        sessions = self.registry.active_sessions(self.thread_id)
        if sessions:
            self.debug_screenshots.capture(sessions[-1].driver, action)
