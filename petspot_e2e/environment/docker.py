"""Docker daemon and QA environment container checks."""

import logging
import platform
import subprocess
import threading
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any

import docker
import requests
from docker.errors import DockerException, NotFound

from petspot_e2e.config import HarnessConfig
from petspot_e2e.constants import (
    CONTAINER_HEALTH_TIMEOUT_SECONDS,
    HEALTH_CHECK_INTERVAL_SECONDS,
    HEALTH_CHECK_TIMEOUT_SECONDS,
    QA_COMPOSE_FILE,
    QA_CONTAINERS,
    SELENIUM_GRID_STATUS_URL,
    START_COMMAND_TIMEOUT_SECONDS,
    STARTUP_FAILURE_LOG_LINES,
)
from petspot_e2e.exceptions import DependencyStartupError

logger = logging.getLogger(__name__)

HEALTH_CHECKED_CONTAINERS = ("qa-backend", "qa-frontend")
QA_STARTUP_TIMEOUT_SECONDS = START_COMMAND_TIMEOUT_SECONDS + CONTAINER_HEALTH_TIMEOUT_SECONDS * (
    len(HEALTH_CHECKED_CONTAINERS) + 1
)


def docker_start_hint(system: str | None = None) -> str:
    """Return the OS-specific instruction for starting the Docker daemon."""
    system = (system or platform.system()).lower()
    if system == "darwin":
        return "Open Docker Desktop app from Applications"
    if system == "linux":
        return "sudo systemctl start docker"
    if system == "windows":
        return "Start Docker Desktop from Start Menu"
    return "Start Docker Desktop"


class DockerEnvironment:
    """Manage the docker-compose QA environment used by web scenarios.

    Attributes
    ----------
    compose_dir : Path
        Directory holding the QA compose file
    client_factory : Callable[[], Any]
        Returns a Docker client, ``docker.from_env`` by default
    """

    _environment_started: bool = False

    def __init__(
        self,
        compose_dir: Path,
        client_factory: Callable[[], Any] = docker.from_env,
        runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
        http: requests.Session | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.compose_dir = Path(compose_dir)
        self.client_factory = client_factory
        self._runner = runner
        self._http = http or requests.Session()
        self._sleep = sleep
        self._client: Any = None
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, config: HarnessConfig) -> "DockerEnvironment":
        return cls(Path(config.project_root) / config.qa_env_dir)

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = self.client_factory()
        return self._client

    def ensure_daemon_running(self) -> None:
        """Verify the Docker daemon answers.

        Raises
        ------
        DependencyStartupError
            If the daemon is unreachable, with a hint for starting it
        """
        try:
            self.client.ping()
        except DockerException as e:
            self._client = None
            raise DependencyStartupError(
                "Docker is not running!\n\n"
                "Web E2E tests require Docker to run backend and frontend services.\n\n"
                f"Please start Docker:\n  {docker_start_hint()}\n\n"
                "Then re-run the tests.",
                dependency="docker",
            ) from e
        logger.info("Docker is running")

    def is_container_running(self, name: str) -> bool:
        try:
            container = self.client.containers.get(name)
            container.reload()
        except NotFound:
            return False
        except DockerException as e:
            logger.debug(f"Failed to inspect container {name}: {e}")
            return False
        return container.status == "running"

    def container_health(self, name: str) -> str | None:
        try:
            container = self.client.containers.get(name)
            container.reload()
        except DockerException:
            return None
        health = container.attrs.get("State", {}).get("Health") or {}
        return health.get("Status")

    def wait_for_container_health(
        self, name: str, timeout: float = CONTAINER_HEALTH_TIMEOUT_SECONDS
    ) -> bool:
        """Poll a container's health status until it reports ``healthy``."""
        logger.info(f"Waiting for {name} to become healthy...")
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if self.container_health(name) == "healthy":
                logger.info(f"{name} is healthy")
                return True
            self._sleep(HEALTH_CHECK_INTERVAL_SECONDS)
        logger.warning(f"{name} did not become healthy within {timeout}s (may still be starting)")
        return False

    def wait_for_selenium_grid(
        self, url: str = SELENIUM_GRID_STATUS_URL, timeout: float = CONTAINER_HEALTH_TIMEOUT_SECONDS
    ) -> bool:
        logger.info("Waiting for Selenium Grid to become ready...")
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            try:
                response = self._http.get(url, timeout=HEALTH_CHECK_TIMEOUT_SECONDS)
                if response.status_code == 200:
                    logger.info(f"Selenium Grid is ready at {url}")
                    return True
            except requests.RequestException as e:
                logger.debug(f"Selenium Grid not ready: {e}")
            self._sleep(HEALTH_CHECK_INTERVAL_SECONDS)
        logger.warning(f"Selenium Grid did not become ready within {timeout}s")
        return False

    def compose_command(self) -> list[str]:
        """Prefer the ``docker compose`` plugin, fall back to ``docker-compose``."""
        try:
            result = self._runner(
                ["docker", "compose", "version"], capture_output=True, text=True, timeout=30
            )
            if result.returncode == 0:
                return ["docker", "compose"]
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.debug(f"docker compose plugin unavailable: {e}")
        return ["docker-compose"]

    def status(self) -> dict[str, bool]:
        return {name: self.is_container_running(name) for name in QA_CONTAINERS}

    def ensure_qa_environment(self, timeout: float | None = None) -> bool:
        """Start the QA compose stack once if any of its containers is down.

        Parameters
        ----------
        timeout : float | None
            Overall bound for ``compose up`` and the health waits. Each wait
            gets the smaller of its own default and the time left.

        Returns
        -------
        bool
            True if this call started the stack

        Raises
        ------
        DependencyStartupError
            If the daemon is down, ``compose up`` fails or no time is left for it
        """
        deadline = None if timeout is None else time.monotonic() + timeout

        def time_left(default: float) -> float:
            if deadline is None:
                return default
            return max(0.0, min(default, deadline - time.monotonic()))

        with self._lock:
            self.ensure_daemon_running()

            status = self.status()
            if all(status.values()):
                logger.info("QA environment already running (backend + frontend + Selenium Grid)")
                return False

            down = ", ".join(name for name, running in status.items() if not running)
            logger.info(f"Starting QA environment, not running: {down}")

            up_timeout = time_left(START_COMMAND_TIMEOUT_SECONDS)
            if up_timeout <= 0:
                raise DependencyStartupError(
                    f"No time left to start QA environment (budget {timeout}s)",
                    dependency="qa-environment",
                )

            cmd = self.compose_command() + ["-f", QA_COMPOSE_FILE, "up", "-d"]
            try:
                result = self._runner(
                    cmd,
                    cwd=self.compose_dir,
                    capture_output=True,
                    text=True,
                    timeout=up_timeout,
                )
            except (OSError, subprocess.TimeoutExpired) as e:
                raise DependencyStartupError(
                    f"Error starting QA environment: {e}", dependency="qa-environment"
                ) from e

            if result.returncode != 0:
                output = (result.stdout or "") + (result.stderr or "")
                tail = "\n".join(output.splitlines()[-STARTUP_FAILURE_LOG_LINES:])
                raise DependencyStartupError(
                    f"Failed to start QA environment (exit code: {result.returncode})",
                    dependency="qa-environment",
                    log_tail=tail,
                )

            DockerEnvironment._environment_started = True
            for name in HEALTH_CHECKED_CONTAINERS:
                self.wait_for_container_health(
                    name, timeout=time_left(CONTAINER_HEALTH_TIMEOUT_SECONDS)
                )
            self.wait_for_selenium_grid(timeout=time_left(CONTAINER_HEALTH_TIMEOUT_SECONDS))
            return True

    def stop_qa_environment(self, force: bool = False) -> bool:
        """Stop the QA stack if this process started it (or when forced)."""
        if not (force or DockerEnvironment._environment_started):
            logger.debug("QA environment stop skipped; not started by harness")
            return False

        cmd = self.compose_command() + ["-f", QA_COMPOSE_FILE, "stop"]
        try:
            self._runner(
                cmd,
                cwd=self.compose_dir,
                capture_output=True,
                text=True,
                timeout=START_COMMAND_TIMEOUT_SECONDS,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.warning(f"Failed to stop QA environment: {e}")
            return False
        DockerEnvironment._environment_started = False
        return True
