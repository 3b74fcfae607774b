"""Command handlers.

Every handler takes the parsed argparse namespace (with `session` filled in)
and is wrapped in @cli_safe, so it returns 0 on success and 1 after printing
the error of anything it raised.
"""

import re
import time
from datetime import datetime
from pathlib import Path
from typing import Optional, Tuple
from urllib.parse import urlsplit

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import sync_playwright

from .browser import attached, content_pages, release, try_connect, try_connect_port
from .colors import check_icon, dim, success, warning
from .common import (
    SessionConnectionError, UsageError, cli_safe, config_path, debug_log, load_config,
)
from .launcher import launch
from .models import SessionRecord, utc_timestamp
from .profiles import save_profile
from .scripting import format_result, run_snippet
from .snapshot import build_snapshot, filter_snapshot
from .store import SessionStore


TITLE_MAX = 50


def sanitize_title(title: str) -> str:
    """Filesystem-safe slug of a page title (alnum, spaces, dashes; max 50 chars)."""
    slug = re.sub(r"[^a-zA-Z0-9\s-]", "", title)
    slug = re.sub(r"\s+", "-", slug)
    return slug.lower()[:TITLE_MAX]


def file_timestamp(moment: Optional[datetime] = None) -> str:
    return re.sub(r"[:.]", "-", utc_timestamp(moment))


def screenshot_paths(title: str, moment: Optional[datetime] = None) -> Tuple[Path, Path]:
    out_dir = config_path("screenshots_dir")
    base = f"{sanitize_title(title)}-{file_timestamp(moment)}"
    return out_dir / f"{base}.png", out_dir / f"{base}.html"


def parse_cdp_port(cdp_url: str) -> int:
    try:
        port = urlsplit(cdp_url).port
    except ValueError:
        port = None
    if not port:
        raise UsageError(f"Invalid CDP URL: {cdp_url}. Expected format: http://localhost:9222")
    return port


@cli_safe
def cmd_open(args):
    """Reuse or launch the session's browser and point it at a URL."""
    if not args.url:
        raise UsageError("Usage: playwriter open <url> [--headed] [--session <name>]")
    launch(args.url, args.headed, args.session)


@cli_safe
def cmd_connect(args):
    """Register an operator-launched browser (e.g. an Electron app) as a session."""
    if not args.cdp_url:
        raise UsageError("Usage: playwriter connect <cdp-url> [--session <name>]")
    port = parse_cdp_port(args.cdp_url)
    session = args.session
    timeout = load_config()["probe_timeout"]
    store = SessionStore()

    with sync_playwright() as pw:
        existing = store.read(session)
        if existing:
            previous = try_connect_port(pw, existing.port, timeout)
            if previous:
                release(previous)
                print(warning(f'Session "{session}" already connected. Reconnecting...'))

        browser = try_connect_port(pw, port, timeout)
        if browser is None:
            raise SessionConnectionError(
                f"Could not connect to CDP endpoint at {args.cdp_url}. "
                "Is the browser running with --remote-debugging-port?"
            )
        try:
            pages = content_pages(browser)
        finally:
            release(browser)

    store.write(SessionRecord(port=port, session=session, external=True))

    print(f"{check_icon()} Connected to CDP at {args.cdp_url}")
    print(f"   Session: {session}")
    print(f"   Pages: {len(pages)}")
    print(f"\nUse --session {session} with other commands:")
    print(dim(f'   playwriter exec "return page.title()" --session {session}'))
    print(dim(f"   playwriter screenshot --session {session}"))


@cli_safe
def cmd_save(args):
    """Save cookies and local storage for a domain."""
    if not args.target:
        raise UsageError("Usage: playwriter save <url|domain> [--session <name>]")
    save_profile(args.target, args.session)


@cli_safe
def cmd_exec(args):
    """Run a Python snippet against the active page."""
    code = " ".join(a for a in args.code if not a.startswith("--"))
    if not code:
        raise UsageError("Usage: playwriter exec <code> [--session <name>]")
    with attached(args.session) as att:
        result = run_snippet(code, att.browser, att.context, att.page)
        if result is not None:
            print(format_result(result))


@cli_safe
def cmd_snapshot(args):
    """Print the enriched accessibility snapshot of the active page."""
    with attached(args.session) as att:
        text = build_snapshot(att.page, max_depth=args.depth)
    print(filter_snapshot(text, args.search))


@cli_safe
def cmd_screenshot(args):
    """Write a full-page PNG and the page HTML side by side."""
    with attached(args.session) as att:
        png_path, html_path = screenshot_paths(att.page.title())
        png_path.parent.mkdir(parents=True, exist_ok=True)

        att.page.screenshot(path=str(png_path), full_page=True)
        html_path.write_text(att.page.content(), encoding="utf-8")
        debug_log(f"screenshot {png_path}", caller="screenshot")

    print("Screenshot saved:")
    print(f"  PNG:  {png_path}")
    print(f"  HTML: {html_path}")


@cli_safe
def cmd_close(args):
    """Shut down an owned browser, or just forget an external one."""
    session = args.session
    config = load_config()
    store = SessionStore()
    record = store.read(session)

    with sync_playwright() as pw:
        browser = try_connect(pw, session, store, config["probe_timeout"])
        if browser is None:
            print(f'No browser running for session "{session}".')
            store.clear(session)
            return
        try:
            if not record.external:
                # the launcher exits once its page closes
                for context in browser.contexts:
                    for page in context.pages:
                        try:
                            page.close()
                        except PlaywrightError as e:
                            debug_log(f"page close failed: {e}", caller="close")
        finally:
            release(browser)

    if record.external:
        store.clear(session)
        print(success(f"Disconnected from external browser (session: {session})."))
        return

    time.sleep(config["close_grace"])
    store.clear(session)
    print(success(f"Browser closed (session: {session})."))
