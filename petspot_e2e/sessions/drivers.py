"""Driver factories for web and mobile automation sessions."""

import json
import logging
from pathlib import Path
from typing import Any

from appium import webdriver as appium_webdriver
from appium.options.android import UiAutomator2Options
from appium.options.ios import XCUITestOptions
from selenium import webdriver
from selenium.webdriver.chrome.options import Options as ChromeOptions

from petspot_e2e.config import HarnessConfig
from petspot_e2e.constants import (
    IOS_BUNDLE_ID,
    MOBILE_IMPLICIT_WAIT_SECONDS,
    LocationMode,
    PlatformKind,
)
from petspot_e2e.sessions.mobile import grant_ios_location_permission
from petspot_e2e.sessions.registry import DriverFactory, SessionOptions

logger = logging.getLogger(__name__)

CHROME_ARGUMENTS = (
    "--window-size=1920,1080",
    "--disable-notifications",
    "--disable-popup-blocking",
    "--disable-dev-shm-usage",
    "--remote-allow-origins=*",
    "--no-sandbox",
)
GEOLOCATION_BLOCKED = 2


def chrome_options(config: HarnessConfig) -> ChromeOptions:
    """Build Chrome options for a stable, location-agnostic browser session.

    Geolocation is blocked at the browser level; scenarios that need a
    position inject a JavaScript mock instead.
    """
    options = ChromeOptions()
    if config.headless:
        options.add_argument("--headless=new")
        logger.info("Running Chrome in headless mode")
    for argument in CHROME_ARGUMENTS:
        options.add_argument(argument)
    options.add_experimental_option(
        "prefs", {"profile.default_content_setting_values.geolocation": GEOLOCATION_BLOCKED}
    )
    return options


def android_options(config: HarnessConfig) -> UiAutomator2Options:
    options = UiAutomator2Options()
    options.platform_version = config.android_platform_version
    options.device_name = config.android_device_name
    options.app = str(Path(config.android_app_path).resolve())
    # The app cannot start without its runtime permissions; location
    # filtering is driven by the mocked device position.
    options.auto_grant_permissions = True
    return options


def ios_options(config: HarnessConfig, session_options: SessionOptions) -> XCUITestOptions:
    """Build XCUITest options honouring the scenario's location mode.

    Parameters
    ----------
    config : HarnessConfig
        Resolved harness settings
    session_options : SessionOptions
        Per-scenario session options

    Returns
    -------
    XCUITestOptions
        Options for an iOS simulator session
    """
    options = XCUITestOptions()
    options.platform_version = config.ios_platform_version
    options.device_name = config.ios_device_name
    options.app = str(Path(config.ios_app_path).resolve())
    options.no_reset = True
    options.set_capability("appium:waitForQuiescence", False)

    if session_options.location_mode == LocationMode.DIALOG:
        options.auto_accept_alerts = False
        logger.info("iOS: configured to show the real location permission dialog")
    else:
        options.auto_accept_alerts = True
        options.set_capability(
            "appium:permissions", json.dumps({IOS_BUNDLE_ID: {"location": "yes"}})
        )
    return options


def create_web_driver(config: HarnessConfig, session_options: SessionOptions) -> Any:
    """Start a Chrome session, remotely when a Selenium grid URL is configured."""
    options = chrome_options(config)
    if config.selenium_url:
        logger.info(f"Connecting to Selenium grid at {config.selenium_url}")
        driver = webdriver.Remote(command_executor=config.selenium_url, options=options)
    else:
        driver = webdriver.Chrome(options=options)
    driver.implicitly_wait(config.implicit_wait)
    return driver


def create_android_driver(config: HarnessConfig, session_options: SessionOptions) -> Any:
    options = android_options(config)
    logger.info(f"Starting Android session on {config.appium_server_url}")
    driver = appium_webdriver.Remote(config.appium_server_url, options=options)
    driver.implicitly_wait(MOBILE_IMPLICIT_WAIT_SECONDS)
    return driver


def create_ios_driver(config: HarnessConfig, session_options: SessionOptions) -> Any:
    options = ios_options(config, session_options)
    if session_options.location_mode != LocationMode.DIALOG:
        grant_ios_location_permission()
    logger.info(f"Starting iOS session on {config.appium_server_url}")
    driver = appium_webdriver.Remote(config.appium_server_url, options=options)
    driver.implicitly_wait(MOBILE_IMPLICIT_WAIT_SECONDS)
    return driver


DEFAULT_FACTORIES: dict[PlatformKind, DriverFactory] = {
    PlatformKind.WEB: create_web_driver,
    PlatformKind.ANDROID: create_android_driver,
    PlatformKind.IOS: create_ios_driver,
}
