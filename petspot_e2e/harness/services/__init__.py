"""Service components for the scenario harness."""

from petspot_e2e.harness.services.artifacts import ArtifactManager
from petspot_e2e.harness.services.diagnostics import DiagnosticsCollector
from petspot_e2e.harness.services.timeout_manager import TimeoutManager

__all__ = ["ArtifactManager", "DiagnosticsCollector", "TimeoutManager"]
