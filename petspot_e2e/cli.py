"""Command line entry point for environment and app chores."""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Callable
from typing import Any

import fire

from petspot_e2e.config import HarnessConfig, load_harness_config
from petspot_e2e.constants import PlatformKind
from petspot_e2e.diagnostics.screenshots import cleanup_screenshots
from petspot_e2e.exceptions import HarnessError
from petspot_e2e.harness.coordinator import SuiteResources
from petspot_e2e.logging import configure_logging

logger = logging.getLogger(__name__)


class PetSpotE2E:
    """Manage the PetSpot E2E environment outside a behave run.

    Parameters
    ----------
    config : HarnessConfig | None
        Resolved settings; loaded from file and environment when omitted
    suite_factory : Callable[[HarnessConfig], SuiteResources] | None
        Builds the shared environment objects
    """

    def __init__(
        self,
        config: HarnessConfig | None = None,
        suite_factory: Callable[[HarnessConfig], SuiteResources] | None = None,
    ) -> None:
        self._config = config
        self._suite_factory = suite_factory or SuiteResources.create
        self._suite: SuiteResources | None = None

    @property
    def config(self) -> HarnessConfig:
        if self._config is None:
            self._config = load_harness_config()
        return self._config

    @property
    def suite(self) -> SuiteResources:
        if self._suite is None:
            self._suite = self._suite_factory(self.config)
        return self._suite

    def env_up(self, web: bool = False) -> str:
        """Start the backend, and with --web the full QA stack, if not running."""
        if web:
            self.suite.docker.ensure_qa_environment()
            return "QA environment ready"
        self.suite.readiness.ensure_running(self.suite.backend)
        return "Backend ready"

    def env_down(self) -> str:
        """Stop the QA compose stack."""
        stopped = self.suite.docker.stop_qa_environment(force=True)
        return "QA environment stopped" if stopped else "QA environment could not be stopped"

    def env_status(self) -> dict[str, Any]:
        status: dict[str, Any] = {
            "backend_healthy": self.suite.readiness.is_healthy(self.suite.backend)
        }
        status.update(self.suite.docker.status())
        return status

    def build_apps(self, platform: str | None = None) -> list[str]:
        """Build mobile apps (android, ios, or both when omitted)."""
        platforms = None if platform is None else PlatformKind(str(platform).lower())
        built = self.suite.app_builder.ensure_built(platforms)
        return [p.value for p in built]

    def clean_screenshots(self) -> int:
        return cleanup_screenshots(self.config.screenshots_dir)

    def show_config(self) -> str:
        return self.config.describe()


def main() -> None:
    """Run the ``petspot-e2e`` command.

    Harness and configuration errors exit with status 1 and a one-line
    message; set ``PETSPOT_E2E_DEBUG=1`` to see the traceback instead.
    """
    debug_mode = os.environ.get("PETSPOT_E2E_DEBUG") == "1"
    configure_logging(debug=debug_mode)

    try:
        fire.Fire(PetSpotE2E)
    except (HarnessError, ValueError) as e:
        if debug_mode:
            raise
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
