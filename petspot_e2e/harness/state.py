"""Scenario lifecycle states."""

import threading
from enum import Enum


class ScenarioState(str, Enum):
    NOT_STARTED = "not_started"
    RUNNING = "running"
    PASSED = "passed"
    FAILED = "failed"
    TORN_DOWN = "torn_down"


ALLOWED_TRANSITIONS: dict[ScenarioState, frozenset[ScenarioState]] = {
    # A scenario whose setup never completed is still torn down.
    ScenarioState.NOT_STARTED: frozenset({ScenarioState.RUNNING, ScenarioState.FAILED}),
    ScenarioState.RUNNING: frozenset({ScenarioState.PASSED, ScenarioState.FAILED}),
    ScenarioState.PASSED: frozenset({ScenarioState.TORN_DOWN}),
    ScenarioState.FAILED: frozenset({ScenarioState.TORN_DOWN}),
    ScenarioState.TORN_DOWN: frozenset(),
}


class ScenarioLifecycle:
    """Enforce ``NOT_STARTED -> RUNNING -> (PASSED | FAILED) -> TORN_DOWN``."""

    def __init__(self) -> None:
        self._state = ScenarioState.NOT_STARTED
        self._lock = threading.Lock()
        self.history: list[ScenarioState] = [ScenarioState.NOT_STARTED]

    @property
    def state(self) -> ScenarioState:
        return self._state

    def transition(self, target: ScenarioState) -> None:
        """Move to ``target``.

        Raises
        ------
        RuntimeError
            If the transition is not allowed from the current state
        """
        with self._lock:
            if target not in ALLOWED_TRANSITIONS[self._state]:
                raise RuntimeError(
                    f"Invalid scenario transition: {self._state.value} -> {target.value}"
                )
            self._state = target
            self.history.append(target)
