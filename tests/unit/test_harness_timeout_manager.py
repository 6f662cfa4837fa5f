"""Unit tests for TimeoutManager service."""

import pytest

from petspot_e2e.exceptions import HarnessTimeoutError
from petspot_e2e.harness.services.timeout_manager import TimeoutManager


class FakeClock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


class TestTimeoutManagerBasic:
    """Test basic timeout tracking."""

    def test_elapsed_and_remaining(self) -> None:
        clock = FakeClock()
        manager = TimeoutManager(budget_seconds=10.0, clock=clock)
        clock.now += 4

        assert manager.elapsed_seconds() == 4.0
        assert manager.remaining_seconds() == 6.0
        assert not manager.expired()

    def test_expired(self) -> None:
        clock = FakeClock()
        manager = TimeoutManager(budget_seconds=1.0, clock=clock)
        clock.now += 2

        assert manager.expired()
        assert manager.remaining_seconds() == -1.0

    def test_checkpoint_returns_timings(self) -> None:
        clock = FakeClock()
        manager = TimeoutManager(budget_seconds=10.0, clock=clock)
        clock.now += 3

        assert manager.checkpoint("after login") == {"elapsed_sec": 3.0, "remaining_sec": 7.0}


class TestTimeoutManagerSubBudget:
    """Test sub-budget context manager."""

    def test_sub_budget_capped_by_request(self) -> None:
        manager = TimeoutManager(budget_seconds=10.0, clock=FakeClock())

        with manager.sub_budget("operation", 5.0) as budget:
            assert budget == 5.0

    def test_sub_budget_capped_by_remaining(self) -> None:
        clock = FakeClock()
        manager = TimeoutManager(budget_seconds=10.0, clock=clock)
        clock.now += 8

        with manager.sub_budget("operation", 15.0) as budget:
            assert budget == 2.0

    def test_sub_budget_on_exhausted_budget_raises(self) -> None:
        clock = FakeClock()
        manager = TimeoutManager(budget_seconds=0.1, clock=clock)
        clock.now += 1

        with pytest.raises(HarnessTimeoutError, match="before 'operation'"), manager.sub_budget(
            "operation", 5.0
        ):
            pass

    def test_sub_budget_records_allocation(self) -> None:
        clock = FakeClock()
        manager = TimeoutManager(budget_seconds=10.0, clock=clock)

        with manager.sub_budget("backend", 4.0):
            clock.now += 3

        with manager.sub_budget("app-build", 30.0) as budget:
            assert budget == 7.0

        assert manager.allocations == [
            {"name": "backend", "allocated_sec": 4.0, "used_sec": 3.0},
            {"name": "app-build", "allocated_sec": 7.0, "used_sec": 0.0},
        ]
