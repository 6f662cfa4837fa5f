"""External environment: dependency readiness, QA containers, app builds."""

from __future__ import annotations

from petspot_e2e.environment.app_builder import AppBuilder
from petspot_e2e.environment.docker import DockerEnvironment
from petspot_e2e.environment.readiness import (
    Dependency,
    EnvironmentReadinessChecker,
    default_backend_dependency,
)

__all__ = [
    "AppBuilder",
    "Dependency",
    "DockerEnvironment",
    "EnvironmentReadinessChecker",
    "default_backend_dependency",
]
