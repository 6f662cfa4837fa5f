"""Scenario artifact directories."""

import logging
import shutil
from datetime import UTC, datetime
from pathlib import Path

from petspot_e2e.diagnostics.screenshots import sanitize_filename

logger = logging.getLogger(__name__)


class ArtifactManager:
    """Create a directory per scenario run and remove it when not needed.

    Attributes
    ----------
    base_dir : Path
        Root for all scenario artifacts
    scenario_dir : Path | None
        Current scenario's directory
    scenario_slug : str | None
        File-system safe scenario name
    run_id : str
        UTC timestamp identifying this run
    """

    def __init__(self, base_dir: Path | None = None) -> None:
        if base_dir is None:
            base_dir = Path.cwd() / "tmp" / "e2e"
        self.base_dir = Path(base_dir)
        self.scenario_dir: Path | None = None
        self.scenario_slug: str | None = None
        self.run_id = datetime.now(UTC).strftime("%Y%m%dT%H%M%S.%fZ")

    def create_scenario_dir(self, scenario_name: str) -> Path:
        self.scenario_slug = sanitize_filename(scenario_name).replace("_", "-")
        self.scenario_dir = self.base_dir / "scenarios" / self.scenario_slug / self.run_id
        self.scenario_dir.mkdir(parents=True, exist_ok=True)
        logger.debug(f"Created artifact directory: {self.scenario_dir}")
        return self.scenario_dir

    def cleanup(self, preserve: bool) -> bool:
        """Delete the scenario directory unless it should be preserved.

        Returns
        -------
        bool
            True if the directory was removed
        """
        if self.scenario_dir is None:
            return False

        if preserve:
            logger.info(f"Preserving artifacts: {self.scenario_dir}")
            return False

        if self.scenario_dir.exists():
            shutil.rmtree(self.scenario_dir)
            logger.debug(f"Cleaned up artifacts: {self.scenario_dir}")
        return True
