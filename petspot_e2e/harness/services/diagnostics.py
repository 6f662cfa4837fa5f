"""Structured diagnostics events for post-scenario analysis."""

import json
import logging
import threading
import time
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


@dataclass
class DiagnosticEvent:
    """Single diagnostic event.

    Attributes
    ----------
    event_type : str
        Type of event (e.g., "teardown", "environment")
    description : str
        Event description
    details : dict
        Additional event details
    timestamp : float
        Time when event was recorded
    """

    event_type: str
    description: str
    details: dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)


class DiagnosticsCollector:
    """Collect events in memory and stream them to a JSON-lines file.

    Streaming keeps the trail on disk even if the run dies mid-scenario.

    Attributes
    ----------
    events : list[DiagnosticEvent]
        Recorded events, oldest first
    """

    def __init__(self, log_path: Path | None = None) -> None:
        self.events: list[DiagnosticEvent] = []
        self._log_path = Path(log_path) if log_path else None
        self._lock = threading.Lock()

    @property
    def log_path(self) -> Path | None:
        return self._log_path

    def set_log_path(self, log_path: Path | None) -> None:
        self._log_path = Path(log_path) if log_path else None

    def record(
        self, event_type: str, description: str, details: dict[str, Any] | None = None
    ) -> DiagnosticEvent:
        event = DiagnosticEvent(event_type=event_type, description=description, details=details or {})
        with self._lock:
            self.events.append(event)
            if self._log_path is not None:
                line = json.dumps(asdict(event), default=str)
                self._log_path.parent.mkdir(parents=True, exist_ok=True)
                with self._log_path.open("a", encoding="utf-8") as log_file:
                    log_file.write(line + "\n")

        logger.debug(f"[{event_type}] {description} | details: {event.details}")
        return event

    def get_events_by_type(self, event_type: str) -> list[DiagnosticEvent]:
        return [e for e in self.events if e.event_type == event_type]

    def export(self, path: Path, **extra: Any) -> Path:
        """Write all events plus ``extra`` fields as one JSON document."""
        payload = dict(extra)
        payload["events"] = [asdict(e) for e in self.events]
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(payload, indent=2, default=str))
        return path
