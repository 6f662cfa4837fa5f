"""Bounded explicit waits and boolean UI queries.

Waits that must succeed raise ``ElementWaitTimeout``; queries that are
legitimately allowed to be false return a boolean instead of raising.
"""

import logging
from collections.abc import Callable
from typing import Any, TypeVar

from selenium.common.exceptions import TimeoutException, WebDriverException
from selenium.webdriver.support import expected_conditions as EC
from selenium.webdriver.support.ui import WebDriverWait

from petspot_e2e.exceptions import ElementWaitTimeout

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10
QUERY_TIMEOUT_SECONDS = 2

Locator = tuple[str, str]
T = TypeVar("T")


def _until(driver: Any, condition: Callable[[Any], T], timeout: float, description: str) -> T:
    try:
        return WebDriverWait(driver, timeout).until(condition)
    except TimeoutException as e:
        raise ElementWaitTimeout(f"Timed out after {timeout}s waiting for {description}") from e


def wait_for_visible(driver: Any, locator: Locator, timeout: float = DEFAULT_TIMEOUT_SECONDS) -> Any:
    return _until(driver, EC.visibility_of_element_located(locator), timeout, f"{locator} to be visible")


def wait_for_clickable(driver: Any, locator: Locator, timeout: float = DEFAULT_TIMEOUT_SECONDS) -> Any:
    return _until(driver, EC.element_to_be_clickable(locator), timeout, f"{locator} to be clickable")


def wait_for_invisible(driver: Any, locator: Locator, timeout: float = DEFAULT_TIMEOUT_SECONDS) -> bool:
    return bool(
        _until(driver, EC.invisibility_of_element_located(locator), timeout, f"{locator} to disappear")
    )


def wait_for_text(
    driver: Any, locator: Locator, text: str, timeout: float = DEFAULT_TIMEOUT_SECONDS
) -> bool:
    return bool(
        _until(
            driver,
            EC.text_to_be_present_in_element(locator, text),
            timeout,
            f"text '{text}' in {locator}",
        )
    )


def wait_until(
    driver: Any,
    condition: Callable[[Any], T],
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    description: str = "condition",
) -> T:
    """Wait for an arbitrary driver condition to return a truthy value."""
    return _until(driver, condition, timeout, description)


def is_visible(driver: Any, locator: Locator, timeout: float = QUERY_TIMEOUT_SECONDS) -> bool:
    """Report whether an element becomes visible within a short timeout."""
    try:
        WebDriverWait(driver, timeout).until(EC.visibility_of_element_located(locator))
    except TimeoutException:
        return False
    return True


def wait_for_count(
    driver: Any, locator: Locator, expected: int, timeout: float = DEFAULT_TIMEOUT_SECONDS
) -> bool:
    try:
        WebDriverWait(driver, timeout).until(lambda d: len(d.find_elements(*locator)) == expected)
    except TimeoutException:
        return False
    return True


def wait_for_count_at_least(
    driver: Any, locator: Locator, minimum: int, timeout: float = DEFAULT_TIMEOUT_SECONDS
) -> bool:
    try:
        WebDriverWait(driver, timeout).until(lambda d: len(d.find_elements(*locator)) >= minimum)
    except TimeoutException:
        return False
    return True


def _keyboard_hidden(driver: Any) -> bool:
    is_shown = getattr(driver, "is_keyboard_shown", None)
    if is_shown is None:
        return True
    try:
        return not is_shown()
    except WebDriverException as e:
        logger.debug(f"Keyboard state unavailable, assuming hidden: {e}")
        return True


def is_keyboard_hidden(driver: Any, timeout: float = DEFAULT_TIMEOUT_SECONDS) -> bool:
    """Wait for the on-screen keyboard to close on a mobile session."""
    try:
        WebDriverWait(driver, timeout).until(_keyboard_hidden)
    except TimeoutException:
        return False
    return True
