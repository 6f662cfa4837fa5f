"""Per-scenario timeout budget."""

import logging
import time
from contextlib import contextmanager
from typing import Iterator

from petspot_e2e.exceptions import HarnessTimeoutError

logger = logging.getLogger(__name__)


class TimeoutManager:
    """Track a scenario deadline and hand out bounded sub-budgets.

    Parameters
    ----------
    budget_seconds : float
        Total timeout budget in seconds
    clock : Callable[[], float]
        Monotonic clock
    """

    def __init__(self, budget_seconds: float, clock=time.monotonic) -> None:
        self.budget_seconds = budget_seconds
        self._clock = clock
        self.start_time = clock()
        self.deadline = self.start_time + budget_seconds
        self.allocations: list[dict[str, float | str]] = []

    def elapsed_seconds(self) -> float:
        return self._clock() - self.start_time

    def remaining_seconds(self) -> float:
        """Remaining seconds until the deadline; negative once it has passed."""
        return self.deadline - self._clock()

    def expired(self) -> bool:
        return self.remaining_seconds() <= 0

    def checkpoint(self, description: str) -> dict[str, float]:
        """Log and return elapsed and remaining time at a named point."""
        elapsed = self.elapsed_seconds()
        remaining = self.remaining_seconds()
        logger.debug(
            f"Timeout checkpoint '{description}': "
            f"elapsed={elapsed:.2f}s, remaining={remaining:.2f}s"
        )
        return {"elapsed_sec": elapsed, "remaining_sec": remaining}

    @contextmanager
    def sub_budget(self, name: str, max_seconds: float) -> Iterator[float]:
        """Allocate time for a nested operation.

        Parameters
        ----------
        name : str
            Name of the operation (for logging)
        max_seconds : float
            Maximum time for this operation

        Yields
        ------
        float
            The smaller of the remaining scenario budget and ``max_seconds``

        Raises
        ------
        HarnessTimeoutError
            If the scenario budget is already exhausted
        """
        remaining = self.remaining_seconds()
        if remaining <= 0:
            raise HarnessTimeoutError(
                f"Scenario timeout budget exhausted before '{name}' "
                f"(elapsed={self.elapsed_seconds():.2f}s)"
            )

        allocated = min(remaining, max_seconds)
        logger.debug(f"Sub-budget '{name}': requested={max_seconds}s, allocated={allocated:.2f}s")

        started = self._clock()
        try:
            yield allocated
        finally:
            self.allocations.append(
                {"name": name, "allocated_sec": allocated, "used_sec": self._clock() - started}
            )
            self.checkpoint(f"End sub-budget '{name}'")
