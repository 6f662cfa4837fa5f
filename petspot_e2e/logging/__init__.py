"""Logging setup for the E2E harness."""

import logging
import sys

from petspot_e2e.logging.formatters import ScenarioFormatter
from petspot_e2e.logging.handlers import (
    LogCapture,
    ScenarioContextFilter,
    clear_scenario_context,
    set_scenario_context,
)

NOISY_LOGGERS = ("urllib3", "selenium", "docker")

__all__ = [
    "LogCapture",
    "ScenarioContextFilter",
    "ScenarioFormatter",
    "clear_scenario_context",
    "configure_logging",
    "set_scenario_context",
]


def configure_logging(level: int = logging.INFO, debug: bool = False) -> logging.Handler:
    """Install the scenario-aware stream handler on the root logger.

    Parameters
    ----------
    level : int
        Root log level when ``debug`` is False
    debug : bool
        Log at DEBUG and include logger names

    Returns
    -------
    logging.Handler
        The installed handler
    """
    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, "_petspot_e2e", False):
            root.removeHandler(handler)

    fmt = "%(asctime)s %(levelname)s %(message)s"
    if debug:
        fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(ScenarioFormatter(fmt))
    handler.addFilter(ScenarioContextFilter())
    handler._petspot_e2e = True

    root.addHandler(handler)
    root.setLevel(logging.DEBUG if debug else level)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return handler
