"""Configuration loading for the E2E harness.

Settings are layered: built-in defaults, then the ``defaults`` section of an
optional YAML file, then environment variables. The YAML file is read through
OmegaConf so values may reference each other with ``${...}`` interpolation.
"""

import copy
import logging
import os
from collections.abc import Mapping
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

import yaml
from omegaconf import OmegaConf
from omegaconf.errors import InterpolationResolutionError

from petspot_e2e.constants import (
    HEALTH_CHECK_INTERVAL_SECONDS,
    HEALTH_CHECK_TIMEOUT_SECONDS,
    REQUEST_TIMEOUT_SECONDS,
    SCENARIO_TIMEOUT_SECONDS,
    STARTUP_TIMEOUT_SECONDS,
    WEB_IMPLICIT_WAIT_SECONDS,
    PlatformKind,
)

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "petspot-e2e.yaml"
CONFIG_PATH_ENV = "PETSPOT_E2E_CONFIG"

ENV_OVERRIDES: dict[str, str] = {
    "appium_server_url": "APPIUM_SERVER_URL",
    "selenium_url": "SELENIUM_URL",
    "web_base_url": "WEB_BASE_URL",
    "api_base_url": "API_BASE_URL",
    "admin_token": "ADMIN_TOKEN",
    "android_platform_version": "ANDROID_PLATFORM_VERSION",
    "android_device_name": "ANDROID_DEVICE_NAME",
    "android_app_path": "ANDROID_APP_PATH",
    "ios_platform_version": "IOS_PLATFORM_VERSION",
    "ios_device_name": "IOS_DEVICE_NAME",
    "ios_app_path": "IOS_APP_PATH",
    "platform": "PLATFORM",
    "skip_app_build": "SKIP_APP_BUILD",
    "debug_screenshots": "DEBUG_SCREENSHOTS",
    "headless": "HEADLESS",
    "artifacts_dir": "PETSPOT_E2E_ARTIFACTS",
    "project_root": "PETSPOT_PROJECT_ROOT",
    "qa_env_dir": "PETSPOT_QA_ENV_DIR",
}

BOOL_KEYS = ("skip_app_build", "debug_screenshots", "headless")
TIMEOUT_KEYS = (
    "implicit_wait",
    "explicit_wait",
    "request_timeout",
    "health_timeout",
    "startup_timeout",
    "health_interval",
    "scenario_timeout",
)
URL_KEYS = ("appium_server_url", "selenium_url", "web_base_url", "api_base_url")
TRUTHY = {"1", "true", "yes", "on"}


def parse_bool(value: Any) -> bool:
    """Interpret a config or environment value as a boolean.

    Parameters
    ----------
    value : Any
        Raw value; strings are matched case-insensitively

    Returns
    -------
    bool
        True for ``1``, ``true``, ``yes`` or ``on``
    """
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in TRUTHY


@dataclass(frozen=True)
class HarnessConfig:
    """Resolved harness settings.

    Attributes
    ----------
    appium_server_url : str
        Appium server endpoint for mobile sessions
    selenium_url : str | None
        Selenium grid endpoint; local Chrome is used when unset
    web_base_url : str
        Base URL of the web frontend under test
    api_base_url : str
        Base URL of the backend REST API
    admin_token : str
        Credential sent on admin fixture deletes
    platform : str | None
        Explicit platform override; tags decide when unset
    """

    appium_server_url: str
    selenium_url: str | None
    web_base_url: str
    api_base_url: str
    admin_token: str
    android_platform_version: str
    android_device_name: str
    android_app_path: str
    ios_platform_version: str
    ios_device_name: str
    ios_app_path: str
    platform: str | None
    skip_app_build: bool
    debug_screenshots: bool
    headless: bool
    artifacts_dir: str
    project_root: str
    qa_env_dir: str
    implicit_wait: float
    explicit_wait: float
    request_timeout: float
    health_timeout: float
    startup_timeout: float
    health_interval: float
    scenario_timeout: float

    @property
    def platform_override(self) -> PlatformKind | None:
        if not self.platform:
            return None
        return PlatformKind(self.platform.lower())

    @property
    def screenshots_dir(self) -> Path:
        return Path(self.artifacts_dir) / "screenshots"

    @property
    def debug_screenshots_dir(self) -> Path:
        return Path(self.artifacts_dir) / "debug-screenshots"

    def app_path(self, platform: PlatformKind) -> str:
        """Return the installable app binary path for a mobile platform."""
        if platform == PlatformKind.ANDROID:
            return self.android_app_path
        if platform == PlatformKind.IOS:
            return self.ios_app_path
        raise ValueError(f"No app binary for platform: {platform.value}")

    def describe(self) -> str:
        """Render the configuration as an aligned, printable block.

        The admin token is masked.
        """
        values = asdict(self)
        if values.get("admin_token"):
            values["admin_token"] = "****"
        width = max(len(key) for key in values)
        lines = ["PetSpot E2E configuration"]
        lines.extend(f"  {key.ljust(width)} : {value}" for key, value in values.items())
        return "\n".join(lines)


class ConfigLoader:
    """Load and merge YAML configuration with defaults and environment."""

    def __init__(self) -> None:
        """Initialize ConfigLoader with built-in defaults."""
        self.BUILT_IN_DEFAULTS: dict[str, Any] = {
            "appium_server_url": "http://127.0.0.1:4723",
            "selenium_url": None,
            "web_base_url": "http://localhost:3000",
            "api_base_url": "http://localhost:3000",
            "admin_token": "tajnehasloadmina",
            "android_platform_version": "14",
            "android_device_name": "Android Emulator",
            "android_app_path": "apps/petspot-android.apk",
            "ios_platform_version": "18.1",
            "ios_device_name": "iPhone 15",
            "ios_app_path": "apps/petspot-ios.app",
            "platform": None,
            "skip_app_build": False,
            "debug_screenshots": False,
            "headless": False,
            "artifacts_dir": "tmp/e2e",
            "project_root": ".",
            "qa_env_dir": "e2e-tests",
            "implicit_wait": WEB_IMPLICIT_WAIT_SECONDS,
            "explicit_wait": 10,
            "request_timeout": REQUEST_TIMEOUT_SECONDS,
            "health_timeout": HEALTH_CHECK_TIMEOUT_SECONDS,
            "startup_timeout": STARTUP_TIMEOUT_SECONDS,
            "health_interval": HEALTH_CHECK_INTERVAL_SECONDS,
            "scenario_timeout": SCENARIO_TIMEOUT_SECONDS,
        }

    def load_config(self, config_path: str | None = None) -> dict[str, Any]:
        """Load configuration from YAML file.

        Parameters
        ----------
        config_path : str | None
            Path to YAML config file. If None, checks PETSPOT_E2E_CONFIG env
            var, then falls back to petspot-e2e.yaml

        Returns
        -------
        dict[str, Any]
            Parsed configuration with all variable interpolations resolved

        Raises
        ------
        ValueError
            If the file is not valid YAML
        omegaconf.errors.InterpolationResolutionError
            If undefined variables are referenced
        """
        if config_path is None:
            config_path = os.environ.get(CONFIG_PATH_ENV, DEFAULT_CONFIG_FILE)

        config_file = Path(config_path)

        if not config_file.exists():
            logger.debug(f"{config_file} not found, using default configuration")
            return {"defaults": {}}

        try:
            cfg = OmegaConf.load(config_file)
        except yaml.YAMLError as e:
            logger.error("Failed to parse YAML config file %s: %s", config_file, e)
            raise ValueError(f"Invalid YAML in {config_file}: {e}") from e
        except OSError as e:
            logger.error("Failed to read config file %s: %s", config_file, e)
            raise RuntimeError(f"Failed to read config file {config_file}: {e}") from e

        if cfg is None:
            return {"defaults": {}}

        try:
            config = OmegaConf.to_container(cfg, resolve=True, throw_on_missing=True)
        except InterpolationResolutionError as e:
            logger.error("Failed to resolve configuration variables: %s", e)
            raise

        logger.info(f"Loaded test configuration from {config_file}")
        return config or {"defaults": {}}

    def merge(
        self, config: dict[str, Any], environ: Mapping[str, str] | None = None
    ) -> dict[str, Any]:
        """Merge built-in defaults, YAML defaults and environment overrides.

        Parameters
        ----------
        config : dict[str, Any]
            Full configuration from YAML
        environ : Mapping[str, str] | None
            Environment to read overrides from (default: os.environ)

        Returns
        -------
        dict[str, Any]
            Flat merged settings
        """
        if environ is None:
            environ = os.environ

        merged = copy.deepcopy(self.BUILT_IN_DEFAULTS)

        yaml_defaults = config.get("defaults") or {}
        for key, value in yaml_defaults.items():
            if key not in merged:
                logger.warning(f"Ignoring unknown configuration key: {key}")
                continue
            merged[key] = value

        for key, env_var in ENV_OVERRIDES.items():
            value = environ.get(env_var)
            if value is not None and value != "":
                merged[key] = value

        if not parse_bool(merged["headless"]) and environ.get("CI"):
            merged["headless"] = True

        return merged

    def validate_config(self, config: dict[str, Any]) -> None:
        """Validate merged settings.

        Parameters
        ----------
        config : dict[str, Any]
            Merged settings to validate

        Raises
        ------
        ValueError
            If a URL, timeout or platform value is invalid
        """
        for key in URL_KEYS:
            value = config.get(key)
            if value is None and key == "selenium_url":
                continue
            parsed = urlparse(str(value))
            if parsed.scheme not in ("http", "https") or not parsed.netloc:
                raise ValueError(f"{key} must be an http(s) URL, got '{value}'")

        for key in TIMEOUT_KEYS:
            try:
                value = float(config[key])
            except (TypeError, ValueError) as e:
                raise ValueError(f"{key} must be a number, got '{config[key]}'") from e
            if value <= 0:
                raise ValueError(f"{key} must be positive, got {value}")

        platform = config.get("platform")
        if platform:
            allowed = [kind.value for kind in PlatformKind]
            if str(platform).lower() not in allowed:
                raise ValueError(f"platform must be one of {allowed}, got '{platform}'")

    def get_harness_config(
        self, config: dict[str, Any], environ: Mapping[str, str] | None = None
    ) -> HarnessConfig:
        """Build a validated HarnessConfig from loaded YAML.

        Parameters
        ----------
        config : dict[str, Any]
            Full configuration from YAML
        environ : Mapping[str, str] | None
            Environment to read overrides from (default: os.environ)

        Returns
        -------
        HarnessConfig
            Immutable resolved settings
        """
        merged = self.merge(config, environ)
        self.validate_config(merged)

        for key in BOOL_KEYS:
            merged[key] = parse_bool(merged[key])
        for key in TIMEOUT_KEYS:
            merged[key] = float(merged[key])
        for key in ("android_platform_version", "ios_platform_version"):
            merged[key] = str(merged[key])
        if merged["platform"]:
            merged["platform"] = str(merged["platform"]).lower()

        return HarnessConfig(**merged)


def load_harness_config(
    config_path: str | None = None, environ: Mapping[str, str] | None = None
) -> HarnessConfig:
    """Load, merge and validate configuration in one call."""
    loader = ConfigLoader()
    return loader.get_harness_config(loader.load_config(config_path), environ)
