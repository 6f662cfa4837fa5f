"""Pytest configuration and fixtures for petspot_e2e tests."""

import dataclasses
import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from petspot_e2e.config import ConfigLoader, HarnessConfig  # noqa: E402


@pytest.fixture
def make_config(tmp_path: Path) -> Callable[..., HarnessConfig]:
    """Build a HarnessConfig from built-in defaults plus overrides.

    Parameters
    ----------
    tmp_path : Path
        Pytest temporary directory, used for artifacts and the project root

    Returns
    -------
    Callable[..., HarnessConfig]
        Factory accepting field overrides as keyword arguments
    """

    def _make(**overrides: Any) -> HarnessConfig:
        yaml_config = {
            "defaults": {
                "artifacts_dir": str(tmp_path / "artifacts"),
                "project_root": str(tmp_path),
            }
        }
        config = ConfigLoader().get_harness_config(yaml_config, environ={})
        return dataclasses.replace(config, **overrides)

    return _make


@pytest.fixture
def harness_config(make_config: Callable[..., HarnessConfig]) -> HarnessConfig:
    return make_config()
