"""Harness-specific exceptions."""

from selenium.common.exceptions import TimeoutException


class HarnessError(Exception):
    """Base class for all harness failures."""

    pass


class SessionInitError(HarnessError):
    """Raised when an automation session cannot be created.

    Covers an unreachable Appium/Selenium server as well as an invalid
    platform or configuration. Fatal to the scenario, never retried.
    """

    pass


class DependencyStartupError(HarnessError):
    """Raised when an external dependency does not become healthy.

    Parameters
    ----------
    message : str
        Human-readable description of the failure
    dependency : str
        Name of the dependency that failed
    log_tail : str
        Last lines of the captured startup output
    """

    def __init__(self, message: str, dependency: str = "", log_tail: str = "") -> None:
        self.dependency = dependency
        self.log_tail = log_tail
        if log_tail:
            message = f"{message}\n\nLast log lines:\n{log_tail}"
        super().__init__(message)


class FixtureError(HarnessError):
    """Base class for fixture API contract violations.

    Parameters
    ----------
    message : str
        Human-readable description of the failure
    status_code : int | None
        HTTP status returned by the API, if a response was received
    body : str
        Raw response body for diagnosis
    """

    def __init__(self, message: str, status_code: int | None = None, body: str = "") -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(message)


class FixtureCreationError(FixtureError):
    """Raised when the API rejects or fails a fixture creation."""

    pass


class FixtureDeletionError(FixtureError):
    """Raised when a fixture delete returns an unexpected status."""

    pass


class FixtureNotFoundError(FixtureError):
    """Raised when a fixture lookup returns 404."""

    pass


class AppBuildError(HarnessError):
    """Raised when a mobile app cannot be built or copied."""

    pass


class HarnessTimeoutError(HarnessError):
    """Raised when harness timeout budget is exhausted."""

    pass


class ElementWaitTimeout(TimeoutException, HarnessError):
    """Raised when an explicit element wait expires.

    Subclasses Selenium's ``TimeoutException`` so existing handlers for the
    driver's own timeout keep working.
    """

    pass
