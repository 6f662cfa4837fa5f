"""Unit tests for the per-thread session registry."""

import threading
from unittest.mock import MagicMock, patch

import pytest
from selenium.common.exceptions import WebDriverException

from petspot_e2e.constants import LocationMode, PlatformKind
from petspot_e2e.exceptions import SessionInitError
from petspot_e2e.sessions import registry as registry_module
from petspot_e2e.sessions.registry import SessionOptions, SessionRegistry


def _driver(platform_name: str = "") -> MagicMock:
    driver = MagicMock()
    driver.capabilities = {"platformName": platform_name} if platform_name else {}
    return driver


@pytest.fixture
def factories() -> dict[PlatformKind, MagicMock]:
    return {
        PlatformKind.WEB: MagicMock(side_effect=lambda c, o: _driver()),
        PlatformKind.ANDROID: MagicMock(side_effect=lambda c, o: _driver("Android")),
        PlatformKind.IOS: MagicMock(side_effect=lambda c, o: _driver("iOS")),
    }


@pytest.fixture
def registry(factories) -> SessionRegistry:
    return SessionRegistry(factories=factories)


class TestAcquire:
    def test_creates_session_once_per_thread(self, registry, factories, harness_config) -> None:
        first = registry.acquire(PlatformKind.WEB, harness_config)
        second = registry.acquire(PlatformKind.WEB, harness_config)

        assert first is second
        assert factories[PlatformKind.WEB].call_count == 1
        assert first.thread_id == threading.get_ident()

    def test_accepts_platform_name_string(self, registry, harness_config) -> None:
        session = registry.acquire("Android", harness_config)

        assert session.platform == PlatformKind.ANDROID

    def test_passes_session_options_to_factory(self, registry, factories, harness_config) -> None:
        options = SessionOptions(location_mode=LocationMode.DIALOG)

        registry.acquire(PlatformKind.IOS, harness_config, options)

        factories[PlatformKind.IOS].assert_called_once_with(harness_config, options)

    def test_unknown_platform_raises_session_init_error(self, registry, harness_config) -> None:
        with pytest.raises(SessionInitError, match="Unsupported platform"):
            registry.acquire("windows-phone", harness_config)

    def test_factory_failure_wrapped(self, harness_config) -> None:
        failing = MagicMock(side_effect=WebDriverException("connection refused"))
        registry = SessionRegistry(factories={PlatformKind.ANDROID: failing})

        with pytest.raises(SessionInitError, match="connection refused"):
            registry.acquire(PlatformKind.ANDROID, harness_config)

        assert not registry.has_session()

    def test_missing_factory_raises(self, harness_config) -> None:
        registry = SessionRegistry(factories={PlatformKind.WEB: MagicMock()})

        with pytest.raises(SessionInitError, match="No driver factory"):
            registry.acquire(PlatformKind.IOS, harness_config)


class TestThreadIsolation:
    def test_threads_get_distinct_sessions(self, registry, factories, harness_config) -> None:
        results = {}

        def worker(name: str) -> None:
            results[name] = registry.acquire(PlatformKind.WEB, harness_config)

        threads = [threading.Thread(target=worker, args=(n,)) for n in ("a", "b")]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results["a"] is not results["b"]
        assert results["a"].thread_id != results["b"].thread_id
        assert factories[PlatformKind.WEB].call_count == 2

    def test_release_only_affects_own_thread(self, registry, harness_config) -> None:
        other = {}

        def worker() -> None:
            other["session"] = registry.acquire(PlatformKind.WEB, harness_config)

        t = threading.Thread(target=worker)
        t.start()
        t.join()
        mine = registry.acquire(PlatformKind.WEB, harness_config)

        assert registry.release() == 1

        mine.driver.quit.assert_called_once()
        other["session"].driver.quit.assert_not_called()
        assert registry.has_session(thread_id=other["session"].thread_id)

    def test_release_all_covers_every_thread(self, registry, harness_config) -> None:
        def worker() -> None:
            registry.acquire(PlatformKind.WEB, harness_config)

        t = threading.Thread(target=worker)
        t.start()
        t.join()
        registry.acquire(PlatformKind.ANDROID, harness_config)

        assert registry.release_all() == 2
        assert registry.release_all() == 0

    def test_reused_thread_id_gets_fresh_session(self, registry, factories, harness_config) -> None:
        left_behind = {}
        worker = threading.Thread(
            target=lambda: left_behind.update(session=registry.acquire(PlatformKind.WEB, harness_config))
        )
        worker.start()
        worker.join()
        stale = left_behind["session"]

        with patch.object(registry_module, "_current_ident", return_value=stale.thread_id):
            assert registry.get(PlatformKind.WEB) is None
            assert not registry.has_session()
            fresh = registry.acquire(PlatformKind.WEB, harness_config)

        assert fresh is not stale
        assert fresh.owner is threading.current_thread()
        stale.driver.quit.assert_called_once()
        fresh.driver.quit.assert_not_called()
        assert factories[PlatformKind.WEB].call_count == 2
        assert registry.active_sessions(stale.thread_id) == [fresh]


class TestRelease:
    def test_double_release_is_safe(self, registry, harness_config) -> None:
        session = registry.acquire(PlatformKind.WEB, harness_config)

        assert registry.release() == 1
        assert registry.release() == 0
        session.driver.quit.assert_called_once()

    def test_release_without_session(self, registry) -> None:
        assert registry.release() == 0

    def test_release_single_platform(self, registry, harness_config) -> None:
        registry.acquire(PlatformKind.WEB, harness_config)
        registry.acquire(PlatformKind.ANDROID, harness_config)

        assert registry.release(platform=PlatformKind.WEB) == 1
        assert registry.has_session(PlatformKind.ANDROID)
        assert not registry.has_session(PlatformKind.WEB)

    def test_quit_error_is_logged_not_raised(self, registry, harness_config, caplog) -> None:
        session = registry.acquire(PlatformKind.WEB, harness_config)
        session.driver.quit.side_effect = WebDriverException("session gone")

        assert registry.release() == 1
        assert "Error quitting web session" in caplog.text
        assert not registry.has_session()

    def test_new_session_after_release(self, registry, factories, harness_config) -> None:
        first = registry.acquire(PlatformKind.WEB, harness_config)
        registry.release()
        second = registry.acquire(PlatformKind.WEB, harness_config)

        assert first is not second
        assert factories[PlatformKind.WEB].call_count == 2


class TestCurrentPlatform:
    def test_none_without_session(self, registry) -> None:
        assert registry.current_platform() is None

    @pytest.mark.parametrize(
        "platform,expected",
        [
            (PlatformKind.ANDROID, PlatformKind.ANDROID),
            (PlatformKind.IOS, PlatformKind.IOS),
            (PlatformKind.WEB, PlatformKind.WEB),
        ],
    )
    def test_reads_capabilities(self, registry, harness_config, platform, expected) -> None:
        registry.acquire(platform, harness_config)

        assert registry.current_platform() == expected
