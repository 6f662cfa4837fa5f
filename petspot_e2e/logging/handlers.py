"""Logging filter and handlers for parallel scenario runs."""

import logging
import threading

_scenario_state = threading.local()


def set_scenario_context(scenario: str | None, platform: str | None = None) -> None:
    """Bind a scenario name and platform to the calling thread's log records."""
    _scenario_state.scenario = scenario
    _scenario_state.platform = platform


def clear_scenario_context() -> None:
    set_scenario_context(None, None)


class ScenarioContextFilter(logging.Filter):
    """Inject the calling thread's scenario name and platform into records.

    Records that already carry a ``scenario`` attribute (passed through
    ``extra``) are left untouched.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "scenario"):
            record.scenario = getattr(_scenario_state, "scenario", None)
        if not hasattr(record, "platform"):
            record.platform = getattr(_scenario_state, "platform", None)
        return True


class LogCapture(logging.Handler):
    """Logging handler that keeps records in memory."""

    def __init__(self, level: int = logging.NOTSET) -> None:
        super().__init__(level)
        self.records: list[logging.LogRecord] = []
        self._records_lock = threading.Lock()

    def emit(self, record: logging.LogRecord) -> None:
        with self._records_lock:
            self.records.append(record)

    def messages(self, level: int | None = None) -> list[str]:
        """Return captured messages, optionally only those at ``level`` or above."""
        with self._records_lock:
            records = list(self.records)
        return [
            r.getMessage() for r in records if level is None or r.levelno >= level
        ]

    def clear(self) -> None:
        with self._records_lock:
            self.records.clear()
