"""Logging formatters for scenario-tagged output."""

import logging


class ScenarioFormatter(logging.Formatter):
    """Logging formatter that prepends the scenario and platform of a record."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record with a scenario prefix if present.

        Parameters
        ----------
        record : logging.LogRecord
            Log record to format

        Returns
        -------
        str
            Formatted log message with optional ``[platform] scenario`` prefix
        """
        msg = super().format(record)
        scenario = getattr(record, "scenario", None)
        platform = getattr(record, "platform", None)

        if scenario and platform:
            return f"[{platform}] {scenario} | {msg}"
        elif scenario:
            return f"{scenario} | {msg}"

        return msg
