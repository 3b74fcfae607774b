"""Tests for browser launch, session reuse and the launcher child process."""

import sys
from unittest.mock import MagicMock, Mock

import pytest
from playwright.sync_api import Error as PlaywrightError

from playwriter import common, launcher
from playwriter.common import LaunchTimeoutError, load_config
from playwriter.launcher import (
    build_launcher_command, cdp_ready, launch, pick_free_port, spawn_launcher, wait_for_cdp,
)
from playwriter.profiles import profile_path


FREE_PORT = 45678


@pytest.fixture
def spawned(monkeypatch):
    """Capture launcher commands instead of starting processes."""
    commands = []

    def fake_spawn(cmd):
        commands.append(cmd)
        return Mock(pid=4242)

    monkeypatch.setattr(launcher, "spawn_launcher", fake_spawn)
    monkeypatch.setattr(launcher, "pick_free_port", lambda: FREE_PORT)
    return commands


@pytest.fixture
def cdp_answers(monkeypatch):
    monkeypatch.setattr(launcher, "cdp_ready", lambda port, timeout=0.4: True)


class TestPorts:

    def test_pick_free_port(self):
        port = pick_free_port()
        assert 0 < port < 65536

    def test_cdp_ready_false_on_closed_port(self):
        assert cdp_ready(pick_free_port(), timeout=0.2) is False

    def test_wait_for_cdp_stops_at_first_answer(self, monkeypatch, no_sleep):
        answers = iter([False, False, True])
        monkeypatch.setattr(launcher, "cdp_ready", lambda port, timeout=0.4: next(answers))

        assert wait_for_cdp(9000, attempts=30, interval=0.5) is True
        assert no_sleep == [0.5, 0.5, 0.5]

    def test_wait_for_cdp_gives_up(self, monkeypatch, no_sleep):
        monkeypatch.setattr(launcher, "cdp_ready", lambda port, timeout=0.4: False)

        assert wait_for_cdp(9000, attempts=4, interval=0.25) is False
        assert len(no_sleep) == 4


class TestLauncherCommand:

    def test_headless_without_profile(self):
        cmd = build_launcher_command(9100, "https://example.com", False, None, load_config())

        assert cmd[:3] == [sys.executable, "-m", "playwriter.launcher"]
        assert cmd[cmd.index("--port") + 1] == "9100"
        assert cmd[cmd.index("--url") + 1] == "https://example.com"
        assert cmd[cmd.index("--width") + 1] == "1366"
        assert "--headed" not in cmd
        assert "--storage-state" not in cmd

    def test_headed_with_profile(self, tmp_path):
        state = tmp_path / "example.com.json"
        cmd = build_launcher_command(9100, "https://example.com", True, state, load_config())

        assert "--headed" in cmd
        assert cmd[cmd.index("--storage-state") + 1] == str(state)

    def test_spawn_is_detached(self, monkeypatch):
        popen = MagicMock()
        monkeypatch.setattr(launcher.subprocess, "Popen", popen)

        spawn_launcher(["python", "-m", "playwriter.launcher"])

        kwargs = popen.call_args.kwargs
        assert kwargs["start_new_session"] is True
        assert kwargs["stdout"] is launcher.subprocess.DEVNULL
        assert "PYTHONPATH" in kwargs["env"]


class TestLaunch:

    def test_reuses_live_session(self, monkeypatch, store, live_record, spawned, capsys,
                                 page_factory, browser_factory, playwright_factory):
        old, newest = page_factory(url="https://a.com/"), page_factory(url="https://b.com/")
        browser = browser_factory([old, newest])
        monkeypatch.setattr(launcher, "sync_playwright", playwright_factory(browser))

        launch("example.com", False, "default", store=store)

        newest.goto.assert_called_once_with("https://example.com")
        old.goto.assert_not_called()
        assert spawned == []
        assert "Navigated to: https://example.com" in capsys.readouterr().out
        browser.close.assert_called_once()
        assert store.read("default").port == 9333

    def test_fresh_launch_records_session(self, monkeypatch, store, spawned, cdp_answers,
                                          no_sleep, capsys, playwright_factory):
        monkeypatch.setattr(launcher, "sync_playwright", playwright_factory())

        launch("https://example.com", False, "dev-server", store=store)

        record = store.read("dev-server")
        assert record.port == FREE_PORT
        assert record.external is False
        assert len(spawned) == 1
        out = capsys.readouterr().out
        assert "Launching headless browser (session: dev-server)..." in out
        assert "Browser open (headless): https://example.com" in out
        assert no_sleep == [0.5, 2.0]

    def test_stale_record_is_replaced(self, monkeypatch, store, live_record, spawned,
                                      cdp_answers, no_sleep, playwright_factory):
        factory = playwright_factory(side_effect=PlaywrightError("ECONNREFUSED"))
        monkeypatch.setattr(launcher, "sync_playwright", factory)

        launch("example.com", True, "default", store=store)

        assert store.read("default").port == FREE_PORT
        assert "--headed" in spawned[0]

    def test_timeout_leaves_no_record(self, monkeypatch, store, spawned, no_sleep,
                                      playwright_factory):
        monkeypatch.setattr(launcher, "sync_playwright", playwright_factory())
        monkeypatch.setattr(launcher, "cdp_ready", lambda port, timeout=0.4: False)

        with pytest.raises(LaunchTimeoutError, match="Failed to connect to browser"):
            launch("example.com", False, "default", store=store)

        assert store.read("default") is None
        assert len(no_sleep) == 30

    def test_saved_profile_is_loaded(self, monkeypatch, store, spawned, cdp_answers,
                                     no_sleep, capsys, playwright_factory):
        path = profile_path("example.com")
        path.parent.mkdir(parents=True)
        path.write_text('{"cookies": [], "origins": []}')
        monkeypatch.setattr(launcher, "sync_playwright", playwright_factory())

        launch("https://www.example.com/login", False, "default", store=store)

        cmd = spawned[0]
        assert cmd[cmd.index("--storage-state") + 1] == str(path)
        assert "Loading saved profile for example.com" in capsys.readouterr().out


class TestLauncherProcess:

    def _playwright(self, monkeypatch):
        factory = MagicMock(name="sync_playwright")
        monkeypatch.setattr(launcher, "sync_playwright", factory)
        p = factory.return_value.__enter__.return_value
        return p

    def test_owns_browser_until_page_closes(self, monkeypatch):
        p = self._playwright(monkeypatch)

        assert launcher.main(["--port", "9555", "--url", "https://example.com"]) == 0

        launch_kwargs = p.chromium.launch.call_args.kwargs
        assert launch_kwargs["headless"] is True
        assert "--remote-debugging-port=9555" in launch_kwargs["args"]
        browser = p.chromium.launch.return_value
        context_kwargs = browser.new_context.call_args.kwargs
        assert context_kwargs["storage_state"] is None
        assert context_kwargs["viewport"] == {"width": 1366, "height": 768}
        page = browser.new_context.return_value.new_page.return_value
        page.goto.assert_called_once_with("https://example.com")
        page.wait_for_event.assert_called_once_with("close", timeout=0)
        browser.close.assert_called_once()

    def test_failed_navigation_keeps_browser_up(self, monkeypatch):
        p = self._playwright(monkeypatch)
        browser = p.chromium.launch.return_value
        page = browser.new_context.return_value.new_page.return_value
        page.goto.side_effect = PlaywrightError("net::ERR_NAME_NOT_RESOLVED")

        launcher.main(["--port", "9555", "--url", "https://nope.invalid", "--headed",
                       "--storage-state", "/tmp/state.json"])

        assert p.chromium.launch.call_args.kwargs["headless"] is False
        assert browser.new_context.call_args.kwargs["storage_state"] == "/tmp/state.json"
        page.wait_for_event.assert_called_once_with("close", timeout=0)

    def test_launch_failure_is_logged(self, monkeypatch, tmp_path):
        p = self._playwright(monkeypatch)
        p.chromium.launch.side_effect = PlaywrightError("Executable doesn't exist")

        assert launcher.main(["--port", "9555", "--url", "https://example.com"]) == 1

        common.reset_debug_logger()
        log = (tmp_path / "cache" / "debug.log").read_text()
        assert "[launcher] launcher on port 9555 failed" in log
        assert "Executable doesn't exist" in log
