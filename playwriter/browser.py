"""CDP connection management.

Attaches to a session's browser over the Chrome DevTools Protocol and picks
the page commands act on. An attachment is a CDP connection, not ownership:
releasing it disconnects without terminating the browser process.

Usage:
    with attached("default") as att:
        print(att.page.title())
"""

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, List, Optional

from playwright.sync_api import Browser, BrowserContext, Page, sync_playwright
from playwright.sync_api import Error as PlaywrightError

from .common import SessionConnectionError, debug_log, load_config
from .store import SessionStore


DEVTOOLS_PREFIX = "devtools://"


@dataclass
class Attachment:
    """Handles for one attached command."""
    browser: Browser
    context: BrowserContext
    page: Page


def cdp_endpoint(port: int) -> str:
    return f"http://127.0.0.1:{port}"


def try_connect_port(pw, port: int, timeout: float) -> Optional[Browser]:
    """Attach to a CDP port, or None if it does not answer within `timeout` seconds.

    A timeout and a refused connection are treated the same way; neither raises.
    """
    try:
        return pw.chromium.connect_over_cdp(cdp_endpoint(port), timeout=timeout * 1000)
    except PlaywrightError as e:
        debug_log(f"attach to port {port} failed: {e}", caller="connect")
        return None


def try_connect(pw, session: str, store: SessionStore, timeout: float) -> Optional[Browser]:
    """Attach to the browser recorded for `session`.

    A record whose port no longer answers is evicted so the next `open`
    starts a fresh browser instead of retrying a dead port.
    """
    record = store.read(session)
    if record is None:
        return None
    browser = try_connect_port(pw, record.port, timeout)
    if browser is None:
        debug_log(f"evicting stale session {session!r} (port {record.port})", caller="connect")
        store.clear(session)
    return browser


def content_pages(browser: Browser) -> List[Page]:
    """All pages across all contexts, minus devtools-internal ones, in creation order."""
    return [
        page
        for context in browser.contexts
        for page in context.pages
        if not page.url.startswith(DEVTOOLS_PREFIX)
    ]


def active_page(browser: Browser) -> Page:
    """The most recently created non-devtools page."""
    if not browser.contexts:
        raise SessionConnectionError("No browser context found.")
    pages = content_pages(browser)
    if not pages:
        raise SessionConnectionError("No pages found.")
    return pages[-1]


def release(browser: Browser):
    """Drop the CDP connection. The browser process keeps running."""
    try:
        browser.close()
    except PlaywrightError as e:
        debug_log(f"release failed: {e}", caller="connect")


def missing_session_message(session: str) -> str:
    return (
        f'No browser running for session "{session}". '
        f"Run 'playwriter open <url> --session {session}' or "
        f"'playwriter connect <cdp-url> --session {session}' first."
    )


@contextmanager
def attached(session: str, timeout: Optional[float] = None,
             store: Optional[SessionStore] = None) -> Iterator[Attachment]:
    """Attach to `session` for the duration of the block; always releases."""
    if timeout is None:
        timeout = load_config()["connect_timeout"]
    store = store or SessionStore()

    with sync_playwright() as pw:
        browser = try_connect(pw, session, store, timeout)
        if browser is None:
            raise SessionConnectionError(missing_session_message(session))
        try:
            page = active_page(browser)
            debug_log(f"attached session {session!r} page={page.url}", caller="connect")
            yield Attachment(browser=browser, context=page.context, page=page)
        finally:
            release(browser)
