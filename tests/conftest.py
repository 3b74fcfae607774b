"""Pytest fixtures for playwriter tests.

No test launches a real browser: Playwright objects are replaced with
unittest.mock doubles and sync_playwright() is patched per module.
"""

from typing import List, Optional
from unittest.mock import MagicMock, Mock

import pytest

from playwriter import colors, common
from playwriter.models import SessionRecord
from playwriter.store import SessionStore


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """Run every test in its own cwd with its own cache dir and default config."""
    work = tmp_path / "work"
    work.mkdir()
    monkeypatch.chdir(work)
    monkeypatch.setenv("PLAYWRITER_CACHE_DIR", str(tmp_path / "cache"))
    monkeypatch.setenv("PLAYWRITER_CONFIG", str(tmp_path / "config.yaml"))
    monkeypatch.setenv("NO_COLOR", "1")
    monkeypatch.delenv("FORCE_COLOR", raising=False)
    common.reset_config()
    common.reset_debug_logger()
    colors.set_formatter(None)
    yield work
    common.reset_config()
    common.reset_debug_logger()
    colors.set_formatter(None)


@pytest.fixture
def no_sleep(monkeypatch):
    """Make settle/poll delays instant; returns the list of requested delays."""
    delays = []
    monkeypatch.setattr("time.sleep", lambda s: delays.append(s))
    return delays


@pytest.fixture
def store():
    return SessionStore()


@pytest.fixture
def live_record(store):
    """A recorded session named 'default' on port 9333."""
    record = SessionRecord(port=9333, session="default")
    store.write(record)
    return record


def make_page(url: str = "https://example.com/", title: str = "Example",
              aria: str = "", scroll_y: float = 0, doc_height: float = 768,
              viewport_height: float = 768, headings: Optional[list] = None,
              collapsed: Optional[list] = None):
    """A fake Page whose evaluate() answers by script content."""
    page = MagicMock(name=f"page<{url}>")
    page.url = url
    page.title.return_value = title
    page.content.return_value = f"<html><title>{title}</title></html>"
    page.locator.return_value.aria_snapshot.return_value = aria

    def evaluate(script, arg=None):
        if "scrollY" in script:
            return scroll_y
        if "scrollHeight" in script:
            return doc_height
        if "innerHeight" in script:
            return viewport_height
        if "querySelectorAll(\"h1" in script:
            return headings or []
        if "aria-expanded" in script:
            return collapsed or []
        if "localStorage" in script:
            return []
        raise AssertionError(f"unexpected script: {script}")

    page.evaluate.side_effect = evaluate
    return page


def make_browser(*page_groups: List):
    """A fake Browser with one context per group of pages."""
    browser = MagicMock(name="browser")
    contexts = []
    for pages in page_groups:
        context = MagicMock(name="context")
        context.pages = list(pages)
        for page in pages:
            page.context = context
        contexts.append(context)
    browser.contexts = contexts
    return browser


def fake_sync_playwright(browser=None, side_effect=None):
    """Stand-in for sync_playwright().

    chromium.connect_over_cdp returns `browser`, or applies `side_effect`
    (an exception, or a function of the endpoint) when given.
    """
    pw = Mock(name="playwright")
    pw.chromium.connect_over_cdp = Mock(return_value=browser, side_effect=side_effect)
    factory = MagicMock(name="sync_playwright")
    factory.return_value.__enter__.return_value = pw
    factory.return_value.__exit__.return_value = False
    factory.pw = pw
    return factory


@pytest.fixture
def page_factory():
    return make_page


@pytest.fixture
def browser_factory():
    return make_browser


@pytest.fixture
def playwright_factory():
    return fake_sync_playwright
