"""Browser launch and the detached launcher process.

Two halves live here:

- The CLI side (`launch`) reuses a live session or picks a free port,
  spawns this module as a detached process, and polls the CDP version
  endpoint until the browser answers.
- The child side (`main`, run as ``python3 -m playwriter.launcher``) owns
  the Chromium process. It outlives the CLI invocation and exits once its
  page is closed, taking the browser down with it.

Usage (child side, normally spawned by `playwriter open`):
    python3 -m playwriter.launcher --port 53412 --url https://example.com [--headed]
        [--storage-state .playwriter/profiles/example.com.json]
"""

import argparse
import logging
import os
import socket
import subprocess
import sys
import time
import traceback
from pathlib import Path
from typing import List, Optional
from urllib.error import URLError
from urllib.request import urlopen

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import sync_playwright

from .browser import content_pages, release, try_connect
from .common import LaunchTimeoutError, debug_log, load_config, DEFAULT_USER_AGENT
from .colors import folder_icon, success
from .models import SessionRecord
from .profiles import has_profile, normalize_domain, normalize_url, profile_path
from .store import SessionStore


DEFAULT_TIMEOUT_MS = 30000
NAVIGATION_TIMEOUT_MS = 45000


def pick_free_port() -> int:
    """Ask the OS for a free loopback port. The listener is closed before returning."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        sock.listen(1)
        return sock.getsockname()[1]


def cdp_ready(port: int, timeout: float = 0.4) -> bool:
    endpoint = f"http://127.0.0.1:{port}/json/version"
    try:
        with urlopen(endpoint, timeout=timeout) as resp:
            return resp.status == 200
    except (OSError, TimeoutError, URLError):
        return False


def wait_for_cdp(port: int, attempts: int, interval: float) -> bool:
    """Poll the CDP endpoint; True as soon as it answers, False once attempts run out."""
    for _ in range(attempts):
        time.sleep(interval)
        if cdp_ready(port):
            return True
    return False


def build_launcher_command(port: int, url: str, headed: bool,
                           storage_state: Optional[Path], config: dict) -> List[str]:
    viewport = config["viewport"]
    cmd = [
        sys.executable, "-m", "playwriter.launcher",
        "--port", str(port),
        "--url", url,
        "--user-agent", config["user_agent"],
        "--width", str(viewport["width"]),
        "--height", str(viewport["height"]),
    ]
    if headed:
        cmd.append("--headed")
    if storage_state:
        cmd.extend(["--storage-state", str(storage_state)])
    return cmd


def spawn_launcher(cmd: List[str]) -> subprocess.Popen:
    """Start the launcher in its own session so it survives this process."""
    env = dict(os.environ)
    package_root = str(Path(__file__).resolve().parent.parent)
    env["PYTHONPATH"] = os.pathsep.join(p for p in (package_root, env.get("PYTHONPATH")) if p)
    return subprocess.Popen(
        cmd,
        stdin=subprocess.DEVNULL,
        stdout=subprocess.DEVNULL,
        stderr=subprocess.DEVNULL,
        start_new_session=True,
        env=env,
    )


def _reuse_existing(url: str, session: str, store: SessionStore, timeout: float) -> bool:
    """Navigate a live session's active page to `url`. False if there is none."""
    with sync_playwright() as pw:
        browser = try_connect(pw, session, store, timeout)
        if browser is None:
            return False
        try:
            pages = content_pages(browser)
            if not pages:
                return False
            pages[-1].goto(url)
            debug_log(f"reused session {session!r} -> {url}", caller="launch")
            print(f"Navigated to: {url}")
            return True
        finally:
            release(browser)


def launch(raw_url: str, headed: bool, session: str, store: Optional[SessionStore] = None):
    """Open `raw_url` in the session's browser, starting one if needed."""
    config = load_config()
    store = store or SessionStore()
    url = normalize_url(raw_url)

    if _reuse_existing(url, session, store, config["probe_timeout"]):
        return

    port = pick_free_port()
    mode = "headed" if headed else "headless"
    domain = normalize_domain(url)
    storage_state = profile_path(domain) if has_profile(domain) else None

    if storage_state:
        print(f"{folder_icon()} Loading saved profile for {domain}")
    print(f"Launching {mode} browser (session: {session})...")

    cmd = build_launcher_command(port, url, headed, storage_state, config)
    proc = spawn_launcher(cmd)
    debug_log(f"spawned launcher pid={proc.pid} port={port} session={session!r}", caller="launch")

    if not wait_for_cdp(port, config["launch_attempts"], config["launch_interval"]):
        budget = config["launch_attempts"] * config["launch_interval"]
        raise LaunchTimeoutError(
            f"Failed to connect to browser: CDP on port {port} did not answer within {budget:g}s."
        )

    store.write(SessionRecord(port=port, session=session))
    print(success(f"Browser open ({mode}): {url}"))

    # let the first paint happen before the next command snapshots it
    time.sleep(config["launch_settle"])


# ---------------------------------------------------------------------------
# Child process
# ---------------------------------------------------------------------------

def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="playwriter-launcher",
        description="Own one Chromium instance until its page closes",
    )
    parser.add_argument("--port", type=int, required=True)
    parser.add_argument("--url", required=True)
    parser.add_argument("--headed", action="store_true")
    parser.add_argument("--storage-state", default=None)
    parser.add_argument("--user-agent", default=DEFAULT_USER_AGENT)
    parser.add_argument("--width", type=int, default=1366)
    parser.add_argument("--height", type=int, default=768)
    args = parser.parse_args(argv)

    try:
        _own_browser(args)
    except Exception:
        debug_log(f"launcher on port {args.port} failed:\n{traceback.format_exc()}",
                  level=logging.ERROR, caller="launcher")
        return 1
    return 0


def _own_browser(args):
    """Run Chromium for `args.url` until its page closes."""
    with sync_playwright() as p:
        browser = p.chromium.launch(
            headless=not args.headed,
            args=[
                f"--remote-debugging-port={args.port}",
                "--remote-debugging-address=127.0.0.1",
                "--no-focus-on-check",
            ],
        )
        context = browser.new_context(
            storage_state=args.storage_state,
            viewport={"width": args.width, "height": args.height},
            user_agent=args.user_agent,
        )
        page = context.new_page()
        page.set_default_timeout(DEFAULT_TIMEOUT_MS)
        page.set_default_navigation_timeout(NAVIGATION_TIMEOUT_MS)

        try:
            page.goto(args.url)
        except PlaywrightError as e:
            # keep the browser up; the page is still usable for a later `open`
            debug_log(f"launcher initial navigation failed: {e}", caller="launcher")

        # closing the page is how `close` (or the user) shuts this browser down
        page.wait_for_event("close", timeout=0)
        browser.close()


if __name__ == "__main__":
    sys.exit(main())
