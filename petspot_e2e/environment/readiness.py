"""Readiness checks and on-demand startup of external dependencies."""

import logging
import subprocess
import threading
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import requests

from petspot_e2e.config import HarnessConfig
from petspot_e2e.constants import (
    API_HEALTH_PATH,
    HEALTH_CHECK_INTERVAL_SECONDS,
    HEALTH_CHECK_TIMEOUT_SECONDS,
    HEALTH_FAILURE_LOG_LINES,
    QA_COMPOSE_FILE,
    START_COMMAND_TIMEOUT_SECONDS,
    STARTUP_FAILURE_LOG_LINES,
    STARTUP_TIMEOUT_SECONDS,
    STOP_COMMAND_TIMEOUT_SECONDS,
)
from petspot_e2e.exceptions import DependencyStartupError

logger = logging.getLogger(__name__)


@dataclass
class Dependency:
    """An external service the suite needs to be healthy.

    Attributes
    ----------
    name : str
        Short identifier, e.g. ``backend``
    health_url : str
        URL answering 2xx when the service is usable
    start_command : list[str]
        Command that starts the service
    stop_command : list[str] | None
        Command that stops the service; None means terminate the process
    cwd : Path | None
        Working directory for both commands
    log_path : Path | None
        File receiving the start command's output
    long_running : bool
        Whether the start command is the service process itself rather
        than a launcher that exits once the service is up
    startup_timeout : float
        Seconds to wait for health after starting
    interval : float
        Seconds between health polls
    """

    name: str
    health_url: str
    start_command: list[str]
    stop_command: list[str] | None = None
    cwd: Path | None = None
    log_path: Path | None = None
    long_running: bool = False
    startup_timeout: float = STARTUP_TIMEOUT_SECONDS
    interval: float = HEALTH_CHECK_INTERVAL_SECONDS
    health_timeout: float = HEALTH_CHECK_TIMEOUT_SECONDS


def read_log_tail(log_path: Path | None, lines: int) -> str:
    """Return the last ``lines`` lines of a log file, or an explanation."""
    if log_path is None:
        return ""
    try:
        with open(log_path, encoding="utf-8", errors="replace") as log_file:
            return "".join(deque(log_file, maxlen=lines))
    except OSError as e:
        return f"Failed to read log file {log_path}: {e}"


@dataclass
class _StartRecord:
    process: subprocess.Popen | None = None
    started_at: float = field(default_factory=time.time)


class EnvironmentReadinessChecker:
    """Probe dependencies and start them when they are down.

    Startup is serialized by one lock so concurrent scenarios never start the
    same dependency twice. Only dependencies started by this instance are
    stopped again.

    Parameters
    ----------
    http : requests.Session | None
        HTTP session used for health probes
    runner : Callable
        ``subprocess.run`` compatible callable for launcher commands
    popen : Callable
        ``subprocess.Popen`` compatible callable for long-running commands
    sleep : Callable[[float], None]
        Sleep function used between polls
    """

    def __init__(
        self,
        http: requests.Session | None = None,
        runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
        popen: Callable[..., subprocess.Popen] = subprocess.Popen,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._http = http or requests.Session()
        self._runner = runner
        self._popen = popen
        self._sleep = sleep
        self._lock = threading.Lock()
        self._started: dict[str, _StartRecord] = {}
        self._dependencies: dict[str, Dependency] = {}

    def is_healthy(self, dependency: Dependency) -> bool:
        """Probe the health endpoint; never raises for reachability failures."""
        try:
            response = self._http.get(dependency.health_url, timeout=dependency.health_timeout)
        except requests.RequestException as e:
            logger.debug(f"{dependency.name} health check failed: {e}")
            return False
        return 200 <= response.status_code < 300

    def started_by_us(self, dependency: Dependency) -> bool:
        with self._lock:
            return dependency.name in self._started

    def ensure_running(self, dependency: Dependency, timeout: float | None = None) -> None:
        """Start a dependency if needed and wait until it is healthy.

        Parameters
        ----------
        dependency : Dependency
            Dependency to check
        timeout : float | None
            Overrides ``dependency.startup_timeout``

        Raises
        ------
        DependencyStartupError
            If the start command fails or health is not reached in time
        """
        with self._lock:
            if self.is_healthy(dependency):
                logger.info(f"{dependency.name} already running at {dependency.health_url}")
                return

            logger.info(f"{dependency.name} not running, starting it")
            self._start(dependency)
            self._dependencies[dependency.name] = dependency

            budget = dependency.startup_timeout if timeout is None else timeout
            deadline = time.monotonic() + budget
            start = time.monotonic()
            while True:
                if self.is_healthy(dependency):
                    logger.info(
                        f"{dependency.name} healthy after {time.monotonic() - start:.1f}s"
                    )
                    return
                if time.monotonic() >= deadline:
                    break
                self._sleep(dependency.interval)

            raise DependencyStartupError(
                f"{dependency.name} failed to become healthy within {budget}s. "
                f"Check logs at: {dependency.log_path}",
                dependency=dependency.name,
                log_tail=read_log_tail(dependency.log_path, HEALTH_FAILURE_LOG_LINES),
            )

    def _start(self, dependency: Dependency) -> None:
        log_file = None
        if dependency.log_path is not None:
            dependency.log_path.parent.mkdir(parents=True, exist_ok=True)
            log_file = open(dependency.log_path, "a", encoding="utf-8")

        output: Any = log_file if log_file is not None else subprocess.DEVNULL
        try:
            if dependency.long_running:
                process = self._popen(
                    dependency.start_command,
                    cwd=dependency.cwd,
                    stdout=output,
                    stderr=subprocess.STDOUT,
                )
                self._started[dependency.name] = _StartRecord(process=process)
                return

            result = self._runner(
                dependency.start_command,
                cwd=dependency.cwd,
                stdout=output,
                stderr=subprocess.STDOUT,
                timeout=START_COMMAND_TIMEOUT_SECONDS,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            raise DependencyStartupError(
                f"Failed to start {dependency.name}: {e}", dependency=dependency.name
            ) from e
        finally:
            if log_file is not None:
                log_file.close()

        if result.returncode != 0:
            raise DependencyStartupError(
                f"{dependency.name} failed to start (exit code: {result.returncode})",
                dependency=dependency.name,
                log_tail=read_log_tail(dependency.log_path, STARTUP_FAILURE_LOG_LINES),
            )
        self._started[dependency.name] = _StartRecord()

    def stop_if_started_by_us(self, dependency: Dependency) -> bool:
        """Stop a dependency only if this instance started it.

        Returns
        -------
        bool
            True if a stop was performed
        """
        with self._lock:
            record = self._started.pop(dependency.name, None)
            self._dependencies.pop(dependency.name, None)

        if record is None:
            logger.info(f"{dependency.name} was running before tests, leaving it running")
            return False

        logger.info(f"Stopping {dependency.name} (started by tests)")
        try:
            if dependency.stop_command:
                self._runner(
                    dependency.stop_command,
                    cwd=dependency.cwd,
                    capture_output=True,
                    text=True,
                    timeout=STOP_COMMAND_TIMEOUT_SECONDS,
                )
            if record.process is not None and record.process.poll() is None:
                record.process.terminate()
                try:
                    record.process.wait(timeout=STOP_COMMAND_TIMEOUT_SECONDS)
                except subprocess.TimeoutExpired:
                    record.process.kill()
                    record.process.wait(timeout=STOP_COMMAND_TIMEOUT_SECONDS)
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.warning(f"Failed to stop {dependency.name}: {e}")
        return True

    def stop_all(self) -> list[str]:
        """Stop every dependency this instance started; returns their names."""
        with self._lock:
            dependencies = list(self._dependencies.values())
        return [d.name for d in dependencies if self.stop_if_started_by_us(d)]


def default_backend_dependency(config: HarnessConfig) -> Dependency:
    """Describe the docker-compose backend service of the QA environment."""
    qa_dir = Path(config.project_root) / config.qa_env_dir
    compose = ["docker-compose", "-f", QA_COMPOSE_FILE]
    return Dependency(
        name="backend",
        health_url=config.api_base_url.rstrip("/") + API_HEALTH_PATH,
        start_command=compose + ["up", "-d", "backend"],
        stop_command=compose + ["stop", "backend"],
        cwd=qa_dir,
        log_path=Path(config.artifacts_dir) / "backend.log",
        startup_timeout=config.startup_timeout,
        interval=config.health_interval,
        health_timeout=config.health_timeout,
    )
