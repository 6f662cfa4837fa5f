"""Scenario lifecycle harness for behave."""

from petspot_e2e.harness.base import ScenarioHarness
from petspot_e2e.harness.context import ScenarioContext
from petspot_e2e.harness.coordinator import (
    CleanupSummary,
    PetSpotHarness,
    SuiteResources,
    abort_run,
)
from petspot_e2e.harness.state import ScenarioLifecycle, ScenarioState

__all__ = [
    "CleanupSummary",
    "PetSpotHarness",
    "ScenarioContext",
    "ScenarioHarness",
    "ScenarioLifecycle",
    "ScenarioState",
    "SuiteResources",
    "abort_run",
]
