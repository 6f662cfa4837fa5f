"""Non-fatal checks collected during a scenario."""

from dataclasses import dataclass


@dataclass(frozen=True)
class SoftFailure:
    step: str
    message: str

    def __str__(self) -> str:
        return f"[{self.step}] {self.message}"


class SoftAssertions:
    """Scenario-scoped collector of failed checks that do not stop the steps.

    The coordinator raises ``AssertionError`` with ``summary()`` once the
    scenario has been torn down.
    """

    def __init__(self) -> None:
        self.failures: list[SoftFailure] = []

    def check(self, condition: bool, step: str, message: str) -> bool:
        if not condition:
            self.add_failure(step, message)
        return bool(condition)

    def add_failure(self, step: str, message: str) -> None:
        self.failures.append(SoftFailure(step, message))

    def has_failures(self) -> bool:
        return bool(self.failures)

    def clear(self) -> None:
        self.failures.clear()

    def summary(self) -> str:
        if not self.failures:
            return "No soft assertion failures"
        lines = [f"SOFT ASSERTION FAILURES ({len(self.failures)}):"]
        for number, failure in enumerate(self.failures, start=1):
            lines.append(f'  {number}. STEP: "{failure.step}"')
            lines.append(f"     {failure.message}")
        return "\n".join(lines)
