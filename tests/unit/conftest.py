"""Pytest configuration and fixtures for unit tests."""

import os
from collections.abc import Generator

import pytest

from petspot_e2e.config import CONFIG_PATH_ENV, ENV_OVERRIDES
from petspot_e2e.logging import clear_scenario_context


@pytest.fixture(autouse=True)
def clean_harness_env() -> Generator[None, None, None]:
    """Remove harness environment variables for the duration of a test.

    Yields
    ------
    None
        Control back to test after clearing the environment

    Notes
    -----
    A developer shell with PLATFORM or CI set would otherwise change
    platform detection and headless defaults under test.
    """
    names = [*ENV_OVERRIDES.values(), CONFIG_PATH_ENV, "CI"]
    saved = {name: os.environ.pop(name) for name in names if name in os.environ}

    yield

    for name in names:
        os.environ.pop(name, None)
    os.environ.update(saved)
    clear_scenario_context()
