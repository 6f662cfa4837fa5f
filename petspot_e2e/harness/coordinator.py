"""Scenario lifecycle coordinator for PetSpot E2E scenarios."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from behave.model import Scenario
from behave.runner import Context

from petspot_e2e.config import HarnessConfig
from petspot_e2e.constants import PlatformKind
from petspot_e2e.diagnostics.screenshots import DebugScreenshotter, capture_screenshot
from petspot_e2e.environment.app_builder import BUILD_TIMEOUT_SECONDS, AppBuilder
from petspot_e2e.environment.docker import QA_STARTUP_TIMEOUT_SECONDS, DockerEnvironment
from petspot_e2e.environment.readiness import (
    Dependency,
    EnvironmentReadinessChecker,
    default_backend_dependency,
)
from petspot_e2e.exceptions import AppBuildError, DependencyStartupError, HarnessError
from petspot_e2e.fixtures.gateway import TestDataGateway
from petspot_e2e.harness.base import ScenarioHarness
from petspot_e2e.harness.context import ScenarioContext
from petspot_e2e.harness.services import ArtifactManager, DiagnosticsCollector, TimeoutManager
from petspot_e2e.harness.state import ScenarioLifecycle, ScenarioState
from petspot_e2e.harness.tags import (
    detect_location_mode,
    detect_platform,
    has_mobile_tags,
    has_tag,
    timeout_from_tags,
)
from petspot_e2e.logging import clear_scenario_context, set_scenario_context
from petspot_e2e.sessions.registry import SessionRegistry

logger = logging.getLogger(__name__)

FAILED_STATUSES = frozenset({"failed", "error", "hook_error", "cleanup_error"})


@dataclass
class SuiteResources:
    """Objects shared by every scenario of a run.

    Attributes
    ----------
    config : HarnessConfig
        Resolved settings
    registry : SessionRegistry
        Session registry keyed by thread
    readiness : EnvironmentReadinessChecker
        Dependency health checker
    backend : Dependency
        Backend service used by mobile and API scenarios
    docker : DockerEnvironment
        QA compose stack used by web scenarios
    app_builder : AppBuilder
        Build-once mobile app preparation
    startup_error : HarnessError | None
        First dependency or app build failure; later scenarios re-raise it
        instead of retrying
    """

    config: HarnessConfig
    registry: SessionRegistry
    readiness: EnvironmentReadinessChecker
    backend: Dependency
    docker: DockerEnvironment
    app_builder: AppBuilder
    startup_error: HarnessError | None = None

    @classmethod
    def create(cls, config: HarnessConfig) -> SuiteResources:
        return cls(
            config=config,
            registry=SessionRegistry(),
            readiness=EnvironmentReadinessChecker(),
            backend=default_backend_dependency(config),
            docker=DockerEnvironment.from_config(config),
            app_builder=AppBuilder(config),
        )

    def record_startup_failure(self, error: HarnessError) -> None:
        if self.startup_error is None:
            logger.error(f"Environment startup failed; remaining scenarios will not retry: {error}")
            self.startup_error = error

    def shutdown(self) -> None:
        """Release leftover sessions and stop dependencies started by this run."""
        released = self.registry.release_all()
        if released:
            logger.warning(f"Released {released} session(s) left open after the run")
        self.readiness.stop_if_started_by_us(self.backend)
        self.docker.stop_qa_environment()


def abort_run(context: Context, reason: str) -> None:
    """Ask behave to stop scheduling further features and scenarios."""
    logger.error(f"Aborting test run: {reason}")
    abort = getattr(context, "abort", None)
    if callable(abort):
        abort(reason)
    else:
        context._runner.aborted = True  # pylint: disable=protected-access


@dataclass
class CleanupSummary:
    """Aggregated cleanup results and captured errors.

    Attributes
    ----------
    errors : list[str]
        Error messages produced during cleanup.
    step_results : list[dict[str, Any]]
        Per-step teardown diagnostics including status and duration.
    """

    errors: list[str] = field(default_factory=list)
    step_results: list[dict[str, Any]] = field(default_factory=list)

    def add_error(self, message: str) -> None:
        self.errors.append(message)

    def add_step_result(self, result: dict[str, Any]) -> None:
        self.step_results.append(result)

    def step(self, name: str) -> dict[str, Any] | None:
        return next((r for r in self.step_results if r["step"] == name), None)

    def success(self) -> bool:
        """Determine whether cleanup completed without errors."""
        return not self.errors


@dataclass
class HarnessServices:
    """Scenario-scoped harness services.

    Attributes
    ----------
    timeout_manager : TimeoutManager
        Scenario timeout budget
    diagnostics : DiagnosticsCollector
        Diagnostics event collector
    artifacts : ArtifactManager
        Artifact directory manager
    """

    timeout_manager: TimeoutManager
    diagnostics: DiagnosticsCollector
    artifacts: ArtifactManager


class PetSpotHarness(ScenarioHarness):
    """Coordinate environment, sessions and fixtures around one scenario.

    Parameters
    ----------
    context : Context
        Behave context; the scenario context is published as ``context.petspot``
    scenario : Scenario
        Behave scenario
    suite : SuiteResources | None
        Shared resources; read from ``context.suite`` when omitted
    gateway_factory : Callable[[HarnessConfig], TestDataGateway] | None
        Builds this scenario's fixture gateway
    """

    def __init__(
        self,
        context: Context,
        scenario: Scenario,
        suite: SuiteResources | None = None,
        gateway_factory: Callable[[HarnessConfig], TestDataGateway] | None = None,
    ) -> None:
        super().__init__(context, scenario)
        self.suite = suite if suite is not None else context.suite
        self.config = self.suite.config
        self.services: HarnessServices | None = None
        self.scenario_context: ScenarioContext | None = None
        self.lifecycle = ScenarioLifecycle()
        self._gateway_factory = gateway_factory or (
            lambda config: TestDataGateway(
                config.api_base_url, config.admin_token, timeout=config.request_timeout
            )
        )
        self._summary: CleanupSummary | None = None

    @property
    def state(self) -> ScenarioState:
        return self.lifecycle.state

    def setup(self) -> None:
        """Detect platform and prepare the environment the scenario needs.

        Sessions are not created here; the first step that needs one
        acquires it through the scenario context.
        """
        self.lifecycle.transition(ScenarioState.RUNNING)
        tags = self.tags

        platform = detect_platform(tags, self.config.platform_override)
        location_mode = detect_location_mode(tags)
        set_scenario_context(self.scenario.name, platform.value if platform else None)

        budget = timeout_from_tags(tags, self.config.scenario_timeout)
        artifacts = ArtifactManager(base_dir=Path(self.config.artifacts_dir))
        scenario_dir = artifacts.create_scenario_dir(self.scenario.name)
        diagnostics = DiagnosticsCollector(log_path=scenario_dir / "diagnostics.log")
        self.services = HarnessServices(
            timeout_manager=TimeoutManager(budget_seconds=budget),
            diagnostics=diagnostics,
            artifacts=artifacts,
        )

        debug = DebugScreenshotter(
            self.config.debug_screenshots_dir, enabled=self.config.debug_screenshots
        )
        self.scenario_context = ScenarioContext(
            scenario_name=self.scenario.name,
            config=self.config,
            registry=self.suite.registry,
            gateway=self._gateway_factory(self.config),
            platform=platform,
            location_mode=location_mode,
            debug_screenshots=debug,
        )
        self.context.petspot = self.scenario_context

        diagnostics.record(
            "scenario",
            "setup",
            {
                "scenario": self.scenario.name,
                "platform": platform.value if platform else None,
                "location_mode": location_mode.value,
                "timeout_budget_sec": budget,
            },
        )

        self._prepare_environment(tags, platform)
        diagnostics.record(
            "scenario", "budget", {"allocations": self.services.timeout_manager.allocations}
        )

        logger.info(f"Scenario started: {self.scenario.name}")

    def _prepare_environment(self, tags: list[str], platform: PlatformKind | None) -> None:
        if self.suite.startup_error is not None:
            logger.error(f"Skipping environment preparation: {self.suite.startup_error}")
            raise self.suite.startup_error

        try:
            self._start_dependencies(tags, platform)
        except (DependencyStartupError, AppBuildError) as exc:
            self.suite.record_startup_failure(exc)
            raise

    def _start_dependencies(self, tags: list[str], platform: PlatformKind | None) -> None:
        diagnostics = self.services.diagnostics
        budget = self.services.timeout_manager

        if platform == PlatformKind.WEB:
            with budget.sub_budget("qa-environment", QA_STARTUP_TIMEOUT_SECONDS) as allocated:
                started = self.suite.docker.ensure_qa_environment(timeout=allocated)
            diagnostics.record("environment", "qa-environment", {"started": started})
            return

        if platform is not None or has_mobile_tags(tags) or has_tag(tags, "api"):
            with budget.sub_budget("backend", self.suite.backend.startup_timeout) as allocated:
                self.suite.readiness.ensure_running(self.suite.backend, timeout=allocated)
            diagnostics.record("environment", "backend", {"healthy": True})

        if (platform is not None and platform.is_mobile) or (platform is None and has_mobile_tags(tags)):
            with budget.sub_budget("app-build", BUILD_TIMEOUT_SECONDS) as allocated:
                built = self.suite.app_builder.ensure_built(platform, timeout=allocated)
            diagnostics.record("environment", "apps", {"built": [p.value for p in built]})

    def scenario_failed(self) -> bool:
        """Whether behave reported the scenario as failed or errored.

        Setup that never completed, or a lifecycle already marked failed,
        also counts as failure.
        """
        status = getattr(self.scenario, "status", None)
        has_failed = getattr(status, "has_failed", None)
        if callable(has_failed):
            if has_failed():
                return True
        elif getattr(status, "name", status) in FAILED_STATUSES:
            return True
        return self.state in (ScenarioState.NOT_STARTED, ScenarioState.FAILED)

    def cleanup(self) -> CleanupSummary:
        """Tear the scenario down, best effort, in a fixed order.

        Steps: failure screenshot, fixture cleanup, session release, artifact
        cleanup, diagnostics export, final status. Each step's exception is
        logged and recorded; later steps still run. Calling this again after
        teardown returns the first summary.

        Raises
        ------
        AssertionError
            After teardown, if soft assertions recorded failures
        """
        if self.state == ScenarioState.TORN_DOWN:
            return self._summary or CleanupSummary()

        soft_failures = ""
        if self.scenario_context is not None and self.scenario_context.soft_asserts.has_failures():
            soft_failures = self.scenario_context.soft_asserts.summary()
            logger.error(soft_failures)

        failed = self.scenario_failed() or bool(soft_failures)
        if self.state == ScenarioState.RUNNING or self.state == ScenarioState.NOT_STARTED:
            self.lifecycle.transition(ScenarioState.FAILED if failed else ScenarioState.PASSED)

        summary = CleanupSummary()
        teardown_steps: list[tuple[str, Callable[[], Any]]] = [
            ("failure-screenshot", lambda: self._teardown_failure_screenshot(failed)),
            ("fixture-cleanup", self._teardown_fixture_cleanup),
            ("session-release", self._teardown_release_sessions),
            ("artifact-cleanup", lambda: self._teardown_cleanup_artifacts(failed)),
            ("diagnostics-export", lambda: self._teardown_export_diagnostics(summary, failed)),
            ("final-status", lambda: self._teardown_final_status(summary, failed)),
        ]
        for step_name, step_fn in teardown_steps:
            self._run_teardown_step(summary, step_name, step_fn)

        self.lifecycle.transition(ScenarioState.TORN_DOWN)
        self._summary = summary
        if self.scenario_context is not None:
            self.scenario_context.clear_mock_geolocation()
        clear_scenario_context()

        if soft_failures:
            raise AssertionError(f"Soft assertion failures:\n{soft_failures}")

        return summary

    def _run_teardown_step(
        self,
        summary: CleanupSummary,
        step_name: str,
        func: Callable[[], Any],
    ) -> None:
        """Execute a teardown step with diagnostics and error handling."""
        start = time.perf_counter()
        status = "success"
        details: dict[str, Any] = {}

        try:
            result = func()
            if isinstance(result, tuple) and len(result) == 2:
                status_candidate, payload = result
                if status_candidate:
                    status = status_candidate
                if isinstance(payload, dict):
                    details = payload
            elif isinstance(result, dict):
                details = result
            elif result is not None:
                details = {"result": result}
        except Exception as exc:  # pylint: disable=broad-except
            status = "error"
            details = {"error": str(exc)}
            summary.add_error(f"{step_name} failed: {exc}")
            logger.warning("Teardown step '%s' failed", step_name, exc_info=True)

        if status == "warning" and "error" in details:
            summary.add_error(f"{step_name} warning: {details['error']}")

        duration = time.perf_counter() - start
        summary.add_step_result(
            {"step": step_name, "status": status, "duration_sec": duration, "details": details}
        )

        if self.services is not None:
            self.services.diagnostics.record(
                "teardown", step_name, {"status": status, "duration_sec": duration, **details}
            )

    def _teardown_failure_screenshot(self, failed: bool) -> tuple[str, dict[str, Any]]:
        if not failed:
            return "skip", {"reason": "scenario-passed"}

        sessions = self.suite.registry.active_sessions(self._thread_id())
        if not sessions:
            return "skip", {"reason": "no-active-session"}

        web = [s for s in sessions if s.platform == PlatformKind.WEB]
        session = web[0] if web else sessions[0]
        platform = None if session.platform == PlatformKind.WEB else session.platform.value
        path = capture_screenshot(
            session.driver, self.scenario.name, self.config.screenshots_dir, platform=platform
        )
        return "success", {"path": str(path), "platform": session.platform.value}

    def _teardown_fixture_cleanup(self) -> tuple[str, dict[str, Any]]:
        if self.scenario_context is None:
            return "skip", {"reason": "setup-not-completed"}

        result = self.scenario_context.gateway.cleanup_all()
        if result["failed"]:
            return "warning", {
                **result,
                "error": f"{len(result['failed'])} fixture(s) could not be deleted",
            }
        return "success", result

    def _teardown_release_sessions(self) -> dict[str, Any]:
        released = self.suite.registry.release(self._thread_id())
        return {"released": released}

    def _teardown_cleanup_artifacts(self, failed: bool) -> tuple[str, dict[str, Any]]:
        if self.services is None:
            return "skip", {"reason": "setup-not-completed"}
        if not failed:
            self.services.diagnostics.set_log_path(None)
        removed = self.services.artifacts.cleanup(preserve=failed)
        return "success", {"preserved": failed, "removed": removed}

    def _teardown_export_diagnostics(
        self, summary: CleanupSummary, failed: bool
    ) -> tuple[str, dict[str, Any]]:
        if self.services is None:
            return "skip", {"reason": "setup-not-completed"}

        artifacts = self.services.artifacts
        slug = artifacts.scenario_slug or "unknown-scenario"
        path = artifacts.base_dir / "_diagnostics" / slug / f"{artifacts.run_id}.json"

        extra: dict[str, Any] = {
            "scenario": self.scenario.name,
            "status": "failed" if failed else "passed",
            "errors": summary.errors,
            "steps": summary.step_results,
        }
        log_path = self.services.diagnostics.log_path
        if log_path is not None and log_path.exists():
            extra["event_log_path"] = str(log_path)

        self.services.diagnostics.export(path, **extra)
        return "success", {"path": str(path)}

    def _teardown_final_status(self, summary: CleanupSummary, failed: bool) -> dict[str, Any]:
        status = "FAILED" if failed else "PASSED"
        if summary.errors:
            logger.warning(
                f"Scenario {status}: {self.scenario.name} "
                f"({len(summary.errors)} teardown error(s))"
            )
        elif failed:
            logger.error(f"Scenario {status}: {self.scenario.name}")
        else:
            logger.info(f"Scenario {status}: {self.scenario.name}")
        return {"status": status.lower(), "teardown_errors": len(summary.errors)}

    def _thread_id(self) -> int | None:
        if self.scenario_context is not None:
            return self.scenario_context.thread_id
        return None
