"""playwriter: named, long-lived browser sessions driven over CDP.

Usage:
    playwriter <command> [args] [--session <name>]
    python3 -m playwriter.main <command> [args] [--session <name>]
"""

import argparse
import sys
from typing import List, Optional

from .colors import disable_colors, error
from .common import UsageError, _err
from .commands import (
    cmd_close, cmd_connect, cmd_exec, cmd_open, cmd_save, cmd_screenshot, cmd_snapshot,
)
from .models import SESSION_BROWSER_AGENT, SESSION_DEFAULT, SESSION_DEV_SERVER


USAGE = f"""Usage: playwriter <command> [--session <name>]

Commands:
  open <url> [--headed]   Launch browser and open URL (headless by default)
                          Automatically loads saved profile if available
  connect <cdp-url>       Connect to an existing browser via CDP endpoint
                          (e.g., http://localhost:9222 for Electron apps)
  save <url|domain>       Save current browser session (cookies, localStorage)
  exec <code>             Execute Python code against the active page
  snapshot [--search RE] [--depth N]
                          Print the enriched accessibility snapshot
  screenshot              Save PNG screenshot and HTML to tmp/playwriter-screenshots/
  close                   Close the browser (or disconnect from external browser)

Options:
  --session <name>        Use a named session (default: "{SESSION_DEFAULT}")
                          Built-in sessions: {SESSION_DEFAULT}, {SESSION_DEV_SERVER}, {SESSION_BROWSER_AGENT}
  --no-color              Disable ANSI colors

Examples:
  playwriter open https://linkedin.com --headed
  # ... manually log in ...
  playwriter save linkedin.com
  # Next time you open linkedin.com, you'll be logged in automatically

  # Connect to an Electron app with --remote-debugging-port=9222
  playwriter connect http://localhost:9222 --session electron
  playwriter exec "return page.title()" --session electron

  playwriter exec "page.get_by_role('button', name='Sign in').click()"
  playwriter exec "page.fill('input[name=email]', 'test@example.com')"
  playwriter exec "return snapshot(search='button')"
  playwriter screenshot
  playwriter close

Available in exec:
  page, context, browser, state, snapshot(page=None, search=None), sleep, json, re

Profiles:
  Profiles are saved to .playwriter/profiles/<domain>.json (git-ignored)
  They persist cookies and localStorage across browser launches.

Sessions:
  Session state is stored in tmp/playwriter/<session>.json
  Each session runs an isolated browser instance on a dynamic port.

Config:
  ~/.config/playwriter/config.yaml (or $PLAYWRITER_CONFIG)
"""

HELP_TOKENS = ("help", "--help", "-h")


def parse_session(args: List[str]) -> str:
    """Value of --session, or the default session name."""
    if "--session" in args:
        idx = args.index("--session")
        if idx + 1 < len(args) and args[idx + 1]:
            return args[idx + 1]
    return SESSION_DEFAULT


def filter_session_args(args: List[str]) -> List[str]:
    """Drop --session and its value so positional parsing never sees them."""
    result = []
    skip = False
    for arg in args:
        if skip:
            skip = False
        elif arg == "--session":
            skip = True
        else:
            result.append(arg)
    return result


class CommandParser(argparse.ArgumentParser):
    """Reports bad arguments as UsageError instead of exiting with status 2."""

    def error(self, message):
        raise UsageError(f"{self.prog}: {message}")


def build_parser() -> argparse.ArgumentParser:
    parser = CommandParser(prog="playwriter", add_help=False)
    subparsers = parser.add_subparsers(dest="command")

    p = subparsers.add_parser("open", add_help=False)
    p.add_argument("url", nargs="?")
    p.add_argument("--headed", action="store_true")
    p.set_defaults(func=cmd_open)

    p = subparsers.add_parser("connect", add_help=False)
    p.add_argument("cdp_url", nargs="?")
    p.set_defaults(func=cmd_connect)

    p = subparsers.add_parser("save", add_help=False)
    p.add_argument("target", nargs="?")
    p.set_defaults(func=cmd_save)

    p = subparsers.add_parser("exec", add_help=False)
    p.add_argument("code", nargs=argparse.REMAINDER)
    p.set_defaults(func=cmd_exec)

    p = subparsers.add_parser("snapshot", add_help=False)
    p.add_argument("--search", default=None)
    p.add_argument("--depth", type=int, default=None)
    p.set_defaults(func=cmd_snapshot)

    p = subparsers.add_parser("screenshot", add_help=False)
    p.set_defaults(func=cmd_screenshot)

    p = subparsers.add_parser("close", add_help=False)
    p.set_defaults(func=cmd_close)

    return parser


COMMANDS = ("open", "connect", "save", "exec", "snapshot", "screenshot", "close")


def main(args: Optional[List[str]] = None) -> int:
    """Main entry point. Returns the process exit status."""
    raw = sys.argv[1:] if args is None else list(args)
    session = parse_session(raw)
    rest = filter_session_args(raw)

    if "--no-color" in rest:
        disable_colors()
        rest = [a for a in rest if a != "--no-color"]

    command = rest[0] if rest else None

    if command in HELP_TOKENS:
        print(USAGE)
        return 0

    if command not in COMMANDS:
        if command:
            _err(error(f"Unknown command: {command}\n"))
        print(USAGE)
        return 1 if command else 0

    try:
        parsed, _unknown = build_parser().parse_known_args(rest)
    except UsageError as e:
        _err(error(str(e)))
        return 1
    parsed.session = session
    return parsed.func(parsed)


if __name__ == "__main__":
    sys.exit(main())
