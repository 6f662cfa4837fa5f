"""Behave hooks wiring the PetSpot scenario harness."""

import logging

from behave.model import Scenario
from behave.runner import Context

from petspot_e2e.config import load_harness_config
from petspot_e2e.exceptions import AppBuildError, DependencyStartupError
from petspot_e2e.harness import PetSpotHarness, SuiteResources, abort_run
from petspot_e2e.logging import configure_logging

logger = logging.getLogger(__name__)


def before_all(context: Context) -> None:
    """Load configuration and create the resources shared by all scenarios."""
    userdata = context.config.userdata
    debug = userdata.getbool("debug", False)
    configure_logging(debug=debug)

    config = load_harness_config(userdata.get("config"))
    context.suite = SuiteResources.create(config)
    logger.info(config.describe())


def before_scenario(context: Context, scenario: Scenario) -> None:
    context.harness = PetSpotHarness(context, scenario)
    try:
        context.harness.setup()
    except (DependencyStartupError, AppBuildError) as e:
        abort_run(context, str(e))
        raise


def after_scenario(context: Context, scenario: Scenario) -> None:
    harness = getattr(context, "harness", None)
    if harness is None:
        return

    try:
        summary = harness.cleanup()
        if not summary.success():
            logger.warning(f"Teardown errors for '{scenario.name}': {summary.errors}")
    finally:
        context.harness = None


def after_all(context: Context) -> None:
    suite = getattr(context, "suite", None)
    if suite is not None:
        suite.shutdown()
