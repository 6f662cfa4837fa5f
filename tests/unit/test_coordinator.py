"""Unit tests for the scenario lifecycle coordinator."""

import json
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from behave.model_core import Status
from selenium.common.exceptions import WebDriverException

from petspot_e2e.constants import LocationMode, PlatformKind
from petspot_e2e.environment.readiness import Dependency
from petspot_e2e.exceptions import AppBuildError, DependencyStartupError, SessionInitError
from petspot_e2e.fixtures.gateway import TestDataGateway
from petspot_e2e.harness import PetSpotHarness, ScenarioState, SuiteResources, abort_run
from petspot_e2e.sessions.registry import SessionRegistry
from tests.unit.fakes.fake_announcement_api import FakeAnnouncementApi


def _scenario(name: str = "Lost dog is listed", tags=(), status="passed") -> SimpleNamespace:
    return SimpleNamespace(name=name, tags=list(tags), effective_tags=list(tags), status=status)


@pytest.fixture
def api() -> FakeAnnouncementApi:
    return FakeAnnouncementApi()


@pytest.fixture
def suite(harness_config) -> SuiteResources:
    def factory(config, options):
        driver = MagicMock()
        driver.get_screenshot_as_png.return_value = b"\x89PNG"
        return driver

    return SuiteResources(
        config=harness_config,
        registry=SessionRegistry(factories={kind: factory for kind in PlatformKind}),
        readiness=MagicMock(),
        backend=Dependency(name="backend", health_url="http://localhost:3000/api/health", start_command=[]),
        docker=MagicMock(),
        app_builder=MagicMock(),
    )


@pytest.fixture
def make_harness(suite, api):
    def _make(scenario) -> PetSpotHarness:
        context = SimpleNamespace()
        return PetSpotHarness(
            context,
            scenario,
            suite=suite,
            gateway_factory=lambda config: TestDataGateway(
                config.api_base_url, config.admin_token, session=api
            ),
        )

    return _make


class TestSetup:
    def test_api_scenario_checks_backend_only(self, make_harness, suite) -> None:
        harness = make_harness(_scenario(tags=["api"]))

        harness.setup()

        suite.readiness.ensure_running.assert_called_once()
        assert suite.readiness.ensure_running.call_args.args[0] is suite.backend
        suite.docker.ensure_qa_environment.assert_not_called()
        suite.app_builder.ensure_built.assert_not_called()
        assert harness.state == ScenarioState.RUNNING
        assert harness.context.petspot.platform is None

    def test_web_scenario_starts_qa_environment(self, make_harness, suite) -> None:
        harness = make_harness(_scenario(tags=["web"]))

        harness.setup()

        suite.docker.ensure_qa_environment.assert_called_once()
        assert suite.docker.ensure_qa_environment.call_args.kwargs["timeout"] <= 600
        suite.readiness.ensure_running.assert_not_called()
        assert harness.context.petspot.platform == PlatformKind.WEB

    def test_android_scenario_builds_app(self, make_harness, suite) -> None:
        suite.app_builder.ensure_built.return_value = [PlatformKind.ANDROID]
        harness = make_harness(_scenario(tags=["android", "location"]))

        harness.setup()

        suite.readiness.ensure_running.assert_called_once()
        suite.app_builder.ensure_built.assert_called_once()
        assert suite.app_builder.ensure_built.call_args.args == (PlatformKind.ANDROID,)
        assert harness.context.petspot.location_mode == LocationMode.GRANT

    def test_setup_does_not_create_sessions(self, make_harness, suite) -> None:
        harness = make_harness(_scenario(tags=["web"]))

        harness.setup()

        assert not suite.registry.has_session()

    def test_session_created_lazily_on_first_use(self, make_harness, suite) -> None:
        harness = make_harness(_scenario(tags=["web"]))
        harness.setup()

        session = harness.context.petspot.session()

        assert session.platform == PlatformKind.WEB
        assert harness.context.petspot.session() is session

    def test_ambiguous_platform_rejects_session(self, make_harness) -> None:
        harness = make_harness(_scenario(tags=["android", "ios"]))
        harness.setup()

        with pytest.raises(SessionInitError, match="Cannot determine platform"):
            harness.context.petspot.session()

    def test_platform_override_wins(self, make_config, api) -> None:
        config = make_config(platform="ios")
        suite = SuiteResources(
            config=config,
            registry=SessionRegistry(factories={}),
            readiness=MagicMock(),
            backend=Dependency(name="backend", health_url="http://localhost:3000/api/health", start_command=[]),
            docker=MagicMock(),
            app_builder=MagicMock(),
        )
        harness = PetSpotHarness(SimpleNamespace(), _scenario(tags=["android"]), suite=suite)

        harness.setup()

        assert harness.context.petspot.platform == PlatformKind.IOS
        assert suite.app_builder.ensure_built.call_args.args == (PlatformKind.IOS,)

    def test_setup_failure_propagates(self, make_harness, suite) -> None:
        suite.readiness.ensure_running.side_effect = DependencyStartupError(
            "backend failed", dependency="backend"
        )
        harness = make_harness(_scenario(tags=["api"]))

        with pytest.raises(DependencyStartupError):
            harness.setup()

    def test_environment_waits_bounded_by_scenario_budget(self, make_harness, suite) -> None:
        harness = make_harness(_scenario(tags=["web", "timeout_45"]))

        harness.setup()

        timeout = suite.docker.ensure_qa_environment.call_args.kwargs["timeout"]
        assert 0 < timeout <= 45
        assert [a["name"] for a in harness.services.timeout_manager.allocations] == [
            "qa-environment"
        ]

    def test_mobile_build_bounded_by_scenario_budget(self, make_harness, suite) -> None:
        suite.app_builder.ensure_built.return_value = [PlatformKind.ANDROID]
        harness = make_harness(_scenario(tags=["android", "timeout_90"]))

        harness.setup()

        assert 0 < suite.readiness.ensure_running.call_args.kwargs["timeout"] <= 90
        assert 0 < suite.app_builder.ensure_built.call_args.kwargs["timeout"] <= 90
        assert [a["name"] for a in harness.services.timeout_manager.allocations] == [
            "backend",
            "app-build",
        ]

    def test_scenario_timeout_tag_beats_feature_tag(self, make_harness) -> None:
        scenario = _scenario(tags=["timeout_30"])
        scenario.effective_tags = {"timeout_120", "timeout_30", "api"}
        harness = make_harness(scenario)

        harness.setup()

        assert harness.tags == ["timeout_30", "api", "timeout_120"]
        assert harness.services.timeout_manager.budget_seconds == 30.0

    def test_startup_failure_is_not_retried(self, make_harness, suite) -> None:
        error = DependencyStartupError("backend failed", dependency="backend")
        suite.readiness.ensure_running.side_effect = error

        with pytest.raises(DependencyStartupError):
            make_harness(_scenario(name="First", tags=["api"])).setup()
        with pytest.raises(DependencyStartupError) as raised:
            make_harness(_scenario(name="Second", tags=["api"])).setup()

        assert raised.value is error
        assert suite.startup_error is error
        assert suite.readiness.ensure_running.call_count == 1

    def test_app_build_failure_is_not_retried(self, make_harness, suite) -> None:
        suite.app_builder.ensure_built.side_effect = AppBuildError("gradle failed")

        with pytest.raises(AppBuildError):
            make_harness(_scenario(tags=["android"])).setup()
        with pytest.raises(AppBuildError):
            make_harness(_scenario(tags=["ios"])).setup()

        assert suite.app_builder.ensure_built.call_count == 1
        assert suite.readiness.ensure_running.call_count == 1


class TestAbortRun:
    def test_uses_context_abort(self) -> None:
        context = SimpleNamespace(abort=MagicMock())

        abort_run(context, "backend failed")

        context.abort.assert_called_once_with("backend failed")

    def test_marks_runner_aborted_without_abort_method(self) -> None:
        context = SimpleNamespace(_runner=SimpleNamespace(aborted=False))

        abort_run(context, "backend failed")

        assert context._runner.aborted is True


class TestCleanup:
    def test_passing_scenario_cleans_everything(self, make_harness, suite, api, harness_config) -> None:
        harness = make_harness(_scenario(tags=["web"]))
        harness.setup()
        harness.context.petspot.gateway.create_fixture({"petName": "Burek"})
        session = harness.context.petspot.session()
        scenario_dir = harness.services.artifacts.scenario_dir

        summary = harness.cleanup()

        assert summary.success()
        assert api.announcements == {}
        session.driver.quit.assert_called_once()
        assert not suite.registry.has_session()
        assert not scenario_dir.exists()
        assert harness.state == ScenarioState.TORN_DOWN
        assert harness.lifecycle.history == [
            ScenarioState.NOT_STARTED,
            ScenarioState.RUNNING,
            ScenarioState.PASSED,
            ScenarioState.TORN_DOWN,
        ]
        assert summary.step("failure-screenshot")["status"] == "skip"
        assert not harness_config.screenshots_dir.exists()

    def test_teardown_steps_run_in_order(self, make_harness) -> None:
        harness = make_harness(_scenario(tags=["api"]))
        harness.setup()

        summary = harness.cleanup()

        assert [r["step"] for r in summary.step_results] == [
            "failure-screenshot",
            "fixture-cleanup",
            "session-release",
            "artifact-cleanup",
            "diagnostics-export",
            "final-status",
        ]

    def test_failed_scenario_takes_screenshot_and_keeps_artifacts(
        self, make_harness, harness_config
    ) -> None:
        scenario = _scenario(tags=["web"])
        harness = make_harness(scenario)
        harness.setup()
        harness.context.petspot.session()
        scenario.status = "failed"

        summary = harness.cleanup()

        shot = Path(summary.step("failure-screenshot")["details"]["path"])
        assert shot.parent == harness_config.screenshots_dir
        assert shot.read_bytes() == b"\x89PNG"
        assert harness.services.artifacts.scenario_dir.exists()
        assert harness.lifecycle.history[2] == ScenarioState.FAILED

    @pytest.mark.parametrize("status", [Status.error, Status.hook_error])
    def test_errored_scenario_counts_as_failed(self, make_harness, harness_config, status) -> None:
        scenario = _scenario(tags=["web"])
        harness = make_harness(scenario)
        harness.setup()
        harness.context.petspot.session()
        scenario.status = status

        summary = harness.cleanup()

        assert summary.step("failure-screenshot")["status"] == "success"
        assert harness.services.artifacts.scenario_dir.exists()
        assert harness.lifecycle.history[2] == ScenarioState.FAILED

    def test_passed_status_enum_counts_as_passed(self, make_harness) -> None:
        scenario = _scenario(tags=["api"], status=Status.passed)
        harness = make_harness(scenario)
        harness.setup()

        harness.cleanup()

        assert harness.lifecycle.history[2] == ScenarioState.PASSED

    def test_screenshot_error_does_not_stop_teardown(self, make_harness, suite, api) -> None:
        scenario = _scenario(tags=["web"])
        harness = make_harness(scenario)
        harness.setup()
        harness.context.petspot.gateway.create_fixture({"petName": "Burek"})
        session = harness.context.petspot.session()
        session.driver.get_screenshot_as_png.side_effect = WebDriverException("tab crashed")
        scenario.status = "failed"

        summary = harness.cleanup()

        assert not summary.success()
        assert summary.step("failure-screenshot")["status"] == "error"
        assert any("tab crashed" in e for e in summary.errors)
        assert api.announcements == {}
        session.driver.quit.assert_called_once()
        assert harness.state == ScenarioState.TORN_DOWN

    def test_fixture_delete_failure_is_a_warning(self, make_harness, api) -> None:
        harness = make_harness(_scenario(tags=["api"]))
        harness.setup()
        fixture = harness.context.petspot.gateway.create_fixture({"petName": "Burek"})
        api.fail_deletes.add(fixture.id)

        summary = harness.cleanup()

        step = summary.step("fixture-cleanup")
        assert step["status"] == "warning"
        assert step["details"]["failed"] == [fixture.id]
        assert summary.step("session-release")["status"] == "success"

    def test_cleanup_is_idempotent(self, make_harness, suite) -> None:
        harness = make_harness(_scenario(tags=["web"]))
        harness.setup()
        harness.context.petspot.session()

        first = harness.cleanup()
        second = harness.cleanup()

        assert first is second

    def test_soft_failures_raise_after_teardown(self, make_harness, api) -> None:
        harness = make_harness(_scenario(tags=["api"]))
        harness.setup()
        harness.context.petspot.gateway.create_fixture({"petName": "Burek"})
        harness.context.petspot.soft_asserts.add_failure("the pet is listed", "Burek missing")

        with pytest.raises(AssertionError, match="Burek missing"):
            harness.cleanup()

        assert api.announcements == {}
        assert harness.state == ScenarioState.TORN_DOWN
        assert harness.lifecycle.history[2] == ScenarioState.FAILED

    def test_diagnostics_exported(self, make_harness, harness_config) -> None:
        harness = make_harness(_scenario(name="Export me", tags=["api"]))
        harness.setup()

        summary = harness.cleanup()

        path = Path(summary.step("diagnostics-export")["details"]["path"])
        assert path.parent == Path(harness_config.artifacts_dir) / "_diagnostics" / "export-me"
        payload = json.loads(path.read_text())
        assert payload["scenario"] == "Export me"
        assert payload["status"] == "passed"
        assert any(e["event_type"] == "environment" for e in payload["events"])

    def test_cleanup_after_failed_setup(self, make_harness, suite) -> None:
        suite.readiness.ensure_running.side_effect = DependencyStartupError("down")
        scenario = _scenario(tags=["api"])
        harness = make_harness(scenario)
        with pytest.raises(DependencyStartupError):
            harness.setup()
        scenario.status = "failed"

        summary = harness.cleanup()

        assert summary.success()
        assert harness.state == ScenarioState.TORN_DOWN

    def test_geolocation_cleared(self, make_harness) -> None:
        harness = make_harness(_scenario(tags=["web"]))
        harness.setup()
        harness.context.petspot.set_mock_geolocation(51.1, 17.0)

        harness.cleanup()

        assert harness.context.petspot.pending_geolocation is None


class TestSuiteResources:
    def test_shutdown_releases_sessions_and_stops_backend(self, suite, harness_config) -> None:
        suite.registry.acquire(PlatformKind.WEB, harness_config)

        suite.shutdown()

        assert not suite.registry.has_session()
        suite.readiness.stop_if_started_by_us.assert_called_once_with(suite.backend)
        suite.docker.stop_qa_environment.assert_called_once()
