from pathlib import Path

import pytest
import yaml
from omegaconf.errors import InterpolationResolutionError

from petspot_e2e.config import ConfigLoader, HarnessConfig, load_harness_config, parse_bool
from petspot_e2e.constants import PlatformKind


class TestConfigLoader:
    def test_load_config_missing_file_uses_built_in_defaults(self) -> None:
        loader = ConfigLoader()
        config = loader.load_config("/nonexistent/path/petspot-e2e.yaml")

        assert config == {"defaults": {}}

    def test_load_config_reads_defaults(self, tmp_path: Path) -> None:
        config_file = tmp_path / "petspot-e2e.yaml"
        config_file.write_text(
            yaml.dump({"defaults": {"api_base_url": "http://api:8080", "headless": True}})
        )

        config = ConfigLoader().load_config(str(config_file))

        assert config["defaults"]["api_base_url"] == "http://api:8080"
        assert config["defaults"]["headless"] is True

    def test_load_config_resolves_interpolation(self, tmp_path: Path) -> None:
        config_file = tmp_path / "petspot-e2e.yaml"
        config_file.write_text(
            "host: http://qa.local\n"
            "defaults:\n"
            "  web_base_url: ${host}:3000\n"
            "  api_base_url: ${host}:8080\n"
        )

        config = ConfigLoader().load_config(str(config_file))

        assert config["defaults"]["web_base_url"] == "http://qa.local:3000"
        assert config["defaults"]["api_base_url"] == "http://qa.local:8080"

    def test_load_config_undefined_variable_raises(self, tmp_path: Path) -> None:
        config_file = tmp_path / "petspot-e2e.yaml"
        config_file.write_text("defaults:\n  api_base_url: ${missing}\n")

        with pytest.raises(InterpolationResolutionError):
            ConfigLoader().load_config(str(config_file))

    def test_load_config_invalid_yaml_raises(self, tmp_path: Path) -> None:
        config_file = tmp_path / "petspot-e2e.yaml"
        config_file.write_text("defaults: [unclosed\n")

        with pytest.raises(ValueError, match="Invalid YAML"):
            ConfigLoader().load_config(str(config_file))

    def test_load_config_path_from_env(self, tmp_path: Path, monkeypatch) -> None:
        config_file = tmp_path / "custom.yaml"
        config_file.write_text(yaml.dump({"defaults": {"platform": "web"}}))
        monkeypatch.setenv("PETSPOT_E2E_CONFIG", str(config_file))

        config = ConfigLoader().load_config()

        assert config["defaults"]["platform"] == "web"


class TestMerge:
    def test_environment_overrides_yaml(self) -> None:
        merged = ConfigLoader().merge(
            {"defaults": {"api_base_url": "http://yaml:8080"}},
            environ={"API_BASE_URL": "http://env:8080"},
        )

        assert merged["api_base_url"] == "http://env:8080"

    def test_yaml_overrides_built_in(self) -> None:
        merged = ConfigLoader().merge({"defaults": {"ios_device_name": "iPhone 16"}}, environ={})

        assert merged["ios_device_name"] == "iPhone 16"

    def test_unknown_yaml_key_ignored(self, caplog) -> None:
        merged = ConfigLoader().merge({"defaults": {"region": "us-east-1"}}, environ={})

        assert "region" not in merged
        assert "Ignoring unknown configuration key: region" in caplog.text

    def test_empty_env_value_ignored(self) -> None:
        merged = ConfigLoader().merge({"defaults": {}}, environ={"PLATFORM": ""})

        assert merged["platform"] is None

    def test_ci_forces_headless(self) -> None:
        merged = ConfigLoader().merge({"defaults": {}}, environ={"CI": "true"})

        assert merged["headless"] is True


class TestHarnessConfig:
    def test_built_in_defaults(self) -> None:
        config = load_harness_config("/nonexistent.yaml", environ={})

        assert config.appium_server_url == "http://127.0.0.1:4723"
        assert config.web_base_url == "http://localhost:3000"
        assert config.selenium_url is None
        assert config.skip_app_build is False
        assert config.platform_override is None
        assert config.scenario_timeout == 600.0

    def test_env_strings_are_coerced(self) -> None:
        config = load_harness_config(
            "/nonexistent.yaml",
            environ={"SKIP_APP_BUILD": "yes", "PLATFORM": "Android", "DEBUG_SCREENSHOTS": "0"},
        )

        assert config.skip_app_build is True
        assert config.debug_screenshots is False
        assert config.platform_override == PlatformKind.ANDROID

    def test_invalid_platform_rejected(self) -> None:
        with pytest.raises(ValueError, match="platform must be one of"):
            load_harness_config("/nonexistent.yaml", environ={"PLATFORM": "symbian"})

    def test_invalid_url_rejected(self) -> None:
        with pytest.raises(ValueError, match="api_base_url must be an http"):
            load_harness_config("/nonexistent.yaml", environ={"API_BASE_URL": "localhost"})

    def test_non_positive_timeout_rejected(self, tmp_path: Path) -> None:
        config_file = tmp_path / "petspot-e2e.yaml"
        config_file.write_text(yaml.dump({"defaults": {"startup_timeout": 0}}))

        with pytest.raises(ValueError, match="startup_timeout must be positive"):
            load_harness_config(str(config_file), environ={})

    def test_app_path_per_platform(self, harness_config: HarnessConfig) -> None:
        assert harness_config.app_path(PlatformKind.ANDROID) == "apps/petspot-android.apk"
        assert harness_config.app_path(PlatformKind.IOS) == "apps/petspot-ios.app"
        with pytest.raises(ValueError):
            harness_config.app_path(PlatformKind.WEB)

    def test_describe_masks_admin_token(self, harness_config: HarnessConfig) -> None:
        text = harness_config.describe()

        assert "tajnehasloadmina" not in text
        assert "admin_token" in text
        assert "****" in text

    def test_artifact_subdirectories(self, harness_config: HarnessConfig) -> None:
        base = Path(harness_config.artifacts_dir)

        assert harness_config.screenshots_dir == base / "screenshots"
        assert harness_config.debug_screenshots_dir == base / "debug-screenshots"


@pytest.mark.parametrize(
    "value,expected",
    [("1", True), ("TRUE", True), ("on", True), ("0", False), ("", False), (None, False), (True, True)],
)
def test_parse_bool(value, expected) -> None:
    assert parse_bool(value) is expected
