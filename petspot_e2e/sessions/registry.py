"""Per-thread registry of live automation sessions."""

import logging
import threading
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

import requests
import urllib3.exceptions
from selenium.common.exceptions import WebDriverException

from petspot_e2e.config import HarnessConfig
from petspot_e2e.constants import LocationMode, PlatformKind
from petspot_e2e.exceptions import SessionInitError

logger = logging.getLogger(__name__)

SESSION_INIT_ERRORS = (
    WebDriverException,
    urllib3.exceptions.HTTPError,
    requests.RequestException,
    ConnectionError,
    ValueError,
)
"""Driver construction failures that mean the server is unreachable or the
configuration is invalid."""


@dataclass(frozen=True)
class SessionOptions:
    """Scenario-specific options passed to a driver factory.

    Attributes
    ----------
    location_mode : LocationMode
        How location permission is presented to the app under test
    """

    location_mode: LocationMode = LocationMode.DEFAULT


@dataclass
class Session:
    """A live handle to a browser or device automation connection.

    Attributes
    ----------
    platform : PlatformKind
        Platform the session was acquired for
    driver : Any
        Selenium or Appium driver instance
    thread_id : int
        Identifier of the owning thread
    created_at : float
        Epoch time at creation
    owner : threading.Thread | None
        Thread that created the session; identifiers can be reused once it exits
    """

    platform: PlatformKind
    driver: Any
    thread_id: int
    created_at: float = field(default_factory=time.time)
    owner: threading.Thread | None = field(default=None, repr=False, compare=False)


DriverFactory = Callable[[HarnessConfig, SessionOptions], Any]


def _current_ident() -> int:
    return threading.get_ident()


def _owned_by_current_thread(session: Session) -> bool:
    return session.owner is None or session.owner is threading.current_thread()


def _platform_from_capabilities(driver: Any) -> PlatformKind:
    capabilities = getattr(driver, "capabilities", None) or {}
    name = str(capabilities.get("platformName", "")).lower()
    if name == PlatformKind.ANDROID.value:
        return PlatformKind.ANDROID
    if name == PlatformKind.IOS.value:
        return PlatformKind.IOS
    return PlatformKind.WEB


class SessionRegistry:
    """Mutex-guarded map from thread identifier to that thread's sessions.

    Each thread owns at most one session per platform. Sessions created by
    one thread are never visible to, or released by, another thread unless
    its identifier is passed explicitly. A session left behind by an exited
    thread is not handed to a new thread that reuses the same identifier;
    it is quit and replaced on the next ``acquire``.

    Parameters
    ----------
    factories : Mapping[PlatformKind, DriverFactory] | None
        Driver factories per platform; defaults to the Selenium and Appium
        factories
    """

    def __init__(self, factories: Mapping[PlatformKind, DriverFactory] | None = None) -> None:
        if factories is None:
            from petspot_e2e.sessions.drivers import DEFAULT_FACTORIES

            factories = DEFAULT_FACTORIES
        self._factories = dict(factories)
        self._sessions: dict[int, dict[PlatformKind, Session]] = {}
        self._lock = threading.Lock()

    def acquire(
        self,
        platform: PlatformKind | str,
        config: HarnessConfig,
        options: SessionOptions | None = None,
    ) -> Session:
        """Return the calling thread's session for a platform, creating it once.

        Parameters
        ----------
        platform : PlatformKind | str
            Target platform
        config : HarnessConfig
            Resolved harness settings
        options : SessionOptions | None
            Scenario-specific session options

        Returns
        -------
        Session
            Existing or newly created session

        Raises
        ------
        SessionInitError
            If the platform is unknown or the driver cannot be created
        """
        try:
            kind = PlatformKind(platform.lower() if isinstance(platform, str) else platform)
        except ValueError as e:
            raise SessionInitError(
                f"Unsupported platform: {platform}. Expected one of "
                f"{[k.value for k in PlatformKind]}"
            ) from e

        factory = self._factories.get(kind)
        if factory is None:
            raise SessionInitError(f"No driver factory registered for {kind.value}")

        thread_id = _current_ident()
        with self._lock:
            owned = self._sessions.get(thread_id, {})
            stale = [s for s in owned.values() if not _owned_by_current_thread(s)]
            for session in stale:
                del owned[session.platform]
            existing = owned.get(kind)
        if stale:
            logger.warning(
                f"Discarding {len(stale)} session(s) left by an exited thread with the same id"
            )
            self._quit(stale)
        if existing is not None:
            return existing

        # Only the owning thread creates sessions under its own key, so the
        # slow driver start runs outside the lock.
        try:
            driver = factory(config, options or SessionOptions())
        except SESSION_INIT_ERRORS as e:
            raise SessionInitError(f"Failed to start {kind.value} session: {e}") from e

        session = Session(
            platform=kind, driver=driver, thread_id=thread_id, owner=threading.current_thread()
        )
        with self._lock:
            self._sessions.setdefault(thread_id, {})[kind] = session

        logger.info(f"Started {kind.value} session")
        return session

    def get(self, platform: PlatformKind, thread_id: int | None = None) -> Session | None:
        sessions = self.active_sessions(thread_id, platform)
        return sessions[0] if sessions else None

    def has_session(self, platform: PlatformKind | None = None, thread_id: int | None = None) -> bool:
        """Report whether a thread holds a session, optionally for one platform."""
        return bool(self.active_sessions(thread_id, platform))

    def active_sessions(
        self, thread_id: int | None = None, platform: PlatformKind | None = None
    ) -> list[Session]:
        current = thread_id is None
        if current:
            thread_id = _current_ident()
        with self._lock:
            sessions = list(self._sessions.get(thread_id, {}).values())
        if current:
            sessions = [s for s in sessions if _owned_by_current_thread(s)]
        if platform is not None:
            sessions = [s for s in sessions if s.platform == platform]
        return sessions

    def release(self, thread_id: int | None = None, platform: PlatformKind | None = None) -> int:
        """Quit and forget a thread's sessions.

        Safe to call repeatedly and when no session exists. Errors from the
        driver's ``quit`` are logged, never raised.

        Parameters
        ----------
        thread_id : int | None
            Owning thread (default: calling thread)
        platform : PlatformKind | None
            Release only this platform's session (default: all)

        Returns
        -------
        int
            Number of sessions released
        """
        if thread_id is None:
            thread_id = _current_ident()

        with self._lock:
            owned = self._sessions.get(thread_id)
            if not owned:
                return 0
            if platform is None:
                released = list(owned.values())
                owned.clear()
            else:
                session = owned.pop(platform, None)
                released = [session] if session is not None else []
            if not owned:
                self._sessions.pop(thread_id, None)

        self._quit(released)
        return len(released)

    def _quit(self, sessions: list[Session]) -> None:
        for session in sessions:
            try:
                session.driver.quit()
                logger.info(f"Released {session.platform.value} session")
            except Exception as e:
                logger.warning(
                    f"Error quitting {session.platform.value} session: {e}", exc_info=True
                )

    def release_all(self) -> int:
        """Release the sessions of every thread."""
        with self._lock:
            thread_ids = list(self._sessions)
        return sum(self.release(thread_id) for thread_id in thread_ids)

    def current_platform(self, thread_id: int | None = None) -> PlatformKind | None:
        """Inspect the active session's capabilities to name its platform.

        When a thread holds more than one session, the most recently
        created one wins.

        Returns
        -------
        PlatformKind | None
            Platform reported by the driver, or None without a session
        """
        sessions = self.active_sessions(thread_id)
        if not sessions:
            return None
        latest = max(sessions, key=lambda s: s.created_at)
        return _platform_from_capabilities(latest.driver)
