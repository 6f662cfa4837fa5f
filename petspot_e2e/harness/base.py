"""Abstract base class for scenario harness implementations."""

from abc import ABC, abstractmethod
from typing import Any

from behave.model import Scenario
from behave.runner import Context


class ScenarioHarness(ABC):
    """Lifecycle hooks wrapped around one behave scenario.

    Implementations hold all scenario-scoped state, so nothing leaks
    between scenarios or between concurrently running scenario threads.

    Parameters
    ----------
    context : Context
        Behave context object for the current scenario
    scenario : Scenario
        Behave scenario object containing metadata and tags
    """

    def __init__(self, context: Context, scenario: Scenario) -> None:
        self.context = context
        self.scenario = scenario
        self.services = None

    @property
    def tags(self) -> list[str]:
        """Scenario tags first, then inherited feature tags in sorted order."""
        ordered = list(dict.fromkeys(self.scenario.tags))
        inherited = getattr(self.scenario, "effective_tags", None) or ()
        return ordered + sorted(tag for tag in set(inherited) if tag not in ordered)

    @abstractmethod
    def setup(self) -> None:
        """Prepare scenario-scoped services. Called from ``before_scenario``."""
        pass

    @abstractmethod
    def cleanup(self) -> Any:
        """Release scenario resources. Called from ``after_scenario``.

        Must run every teardown step even when earlier ones fail.
        """
        pass
