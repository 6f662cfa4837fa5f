"""Build-once preparation of the mobile app binaries."""

import logging
import shutil
import subprocess
import threading
import time
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from petspot_e2e.config import HarnessConfig
from petspot_e2e.constants import ANDROID_APP_PACKAGE, IOS_BUNDLE_ID, PlatformKind
from petspot_e2e.exceptions import AppBuildError

logger = logging.getLogger(__name__)

BUILD_TIMEOUT_SECONDS = 1800
UNINSTALL_TIMEOUT_SECONDS = 60
BUILD_OUTPUT_TAIL_LINES = 40
MAX_PARALLEL_BUILDS = 2

IOS_BUILD_OUTPUT = Path("iosApp/build/Build/Products/Debug-iphonesimulator/PetSpot.app")
ANDROID_BUILD_OUTPUT = Path("composeApp/build/outputs/apk/debug/composeApp-debug.apk")


class AppBuilder:
    """Build, and copy into place, each mobile app at most once per process.

    A single lock makes the one-time semantics explicit: the first caller
    for a platform builds it while later callers wait and then return
    immediately. A failed build is not recorded, so the next call retries.

    Parameters
    ----------
    config : HarnessConfig
        Resolved settings (project root, app destinations, skip flag)
    runner : Callable
        ``subprocess.run`` compatible callable
    """

    def __init__(
        self,
        config: HarnessConfig,
        runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
    ) -> None:
        self.config = config
        self.project_root = Path(config.project_root).resolve()
        self._runner = runner
        self._lock = threading.Lock()
        self._built: set[PlatformKind] = set()

    @property
    def built(self) -> frozenset[PlatformKind]:
        with self._lock:
            return frozenset(self._built)

    def ensure_built(
        self,
        platforms: PlatformKind | Iterable[PlatformKind] | None = None,
        timeout: float | None = None,
    ) -> list[PlatformKind]:
        """Build the requested mobile platforms that are not built yet.

        Parameters
        ----------
        platforms : PlatformKind | Iterable[PlatformKind] | None
            Platforms to prepare; None means both Android and iOS
        timeout : float | None
            Overall bound for the build commands; each command gets the
            smaller of its own limit and the time left

        Returns
        -------
        list[PlatformKind]
            Platforms built by this call

        Raises
        ------
        AppBuildError
            If any build or copy step fails
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        if self.config.skip_app_build:
            logger.info("App build skipped (skip_app_build set)")
            return []

        if platforms is None:
            requested = [PlatformKind.ANDROID, PlatformKind.IOS]
        elif isinstance(platforms, PlatformKind):
            requested = [platforms]
        else:
            requested = list(platforms)

        for platform in requested:
            if not platform.is_mobile:
                raise ValueError(f"Cannot build an app for platform: {platform.value}")

        with self._lock:
            pending = [p for p in requested if p not in self._built]
            if not pending:
                return []

            logger.info(f"Building apps: {', '.join(p.value for p in pending)}")
            with ThreadPoolExecutor(max_workers=MAX_PARALLEL_BUILDS) as executor:
                futures = {p: executor.submit(self._prepare, p, deadline) for p in pending}

            errors = []
            for platform, future in futures.items():
                error = future.exception()
                if error is None:
                    self._built.add(platform)
                else:
                    errors.append(error)

            if errors:
                first = errors[0]
                if isinstance(first, AppBuildError):
                    raise first
                raise AppBuildError(f"Failed to prepare apps: {first}") from first

            logger.info("Apps ready")
            return pending

    def _prepare(self, platform: PlatformKind, deadline: float | None = None) -> None:
        if platform == PlatformKind.ANDROID:
            self._run(["adb", "uninstall", ANDROID_APP_PACKAGE], "Android uninstall", deadline, check=False)
            self._run(
                [str(self.project_root / "gradlew"), ":composeApp:assembleDebug", "--quiet"],
                "Android build",
                deadline,
            )
            self._copy(self.project_root / ANDROID_BUILD_OUTPUT, Path(self.config.android_app_path))
        else:
            self._run(["xcrun", "simctl", "uninstall", "booted", IOS_BUNDLE_ID], "iOS uninstall", deadline, check=False)
            self._run(
                [
                    "xcodebuild",
                    "-project", str(self.project_root / "iosApp/iosApp.xcodeproj"),
                    "-scheme", "iosApp",
                    "-sdk", "iphonesimulator",
                    "-configuration", "Debug",
                    "-derivedDataPath", str(self.project_root / "iosApp/build"),
                    "clean", "build",
                ],
                "iOS build",
                deadline,
            )
            self._copy(self.project_root / IOS_BUILD_OUTPUT, Path(self.config.ios_app_path))

    def _run(
        self, cmd: list[str], label: str, deadline: float | None = None, check: bool = True
    ) -> None:
        timeout = BUILD_TIMEOUT_SECONDS if check else UNINSTALL_TIMEOUT_SECONDS
        if deadline is not None:
            timeout = min(timeout, deadline - time.monotonic())
            if timeout <= 0:
                if not check:
                    logger.debug(f"{label} skipped: build budget exhausted")
                    return
                raise AppBuildError(f"{label} not started: build budget exhausted")
        try:
            result = self._runner(
                cmd,
                cwd=self.project_root,
                capture_output=True,
                text=True,
                timeout=timeout,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            if not check:
                logger.debug(f"{label} skipped: {e}")
                return
            raise AppBuildError(f"{label} failed: {e}") from e

        if result.returncode == 0:
            logger.debug(f"{label} succeeded")
            return
        if not check:
            logger.debug(f"{label} exited with {result.returncode} (app may not be installed)")
            return

        output = (result.stdout or "") + (result.stderr or "")
        tail = "\n".join(output.splitlines()[-BUILD_OUTPUT_TAIL_LINES:])
        raise AppBuildError(
            f"{label} failed with exit code {result.returncode}\n\nLast output lines:\n{tail}"
        )

    def _copy(self, source: Path, destination: Path) -> None:
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            if source.is_dir():
                if destination.exists():
                    shutil.rmtree(destination)
                shutil.copytree(source, destination)
            else:
                shutil.copy2(source, destination)
        except OSError as e:
            raise AppBuildError(f"Failed to copy {source} to {destination}: {e}") from e
        logger.info(f"Copied app to {destination}")
