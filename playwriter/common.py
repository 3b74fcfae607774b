"""Shared utilities for playwriter commands.

Provides stderr helpers, cache directory management, JSON state file I/O,
the exception hierarchy, a @cli_safe decorator for consistent error
handling, debug logging, and config file loading.
"""

import functools
import json
import logging
import logging.handlers
import os
import sys
import traceback
from pathlib import Path


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class PlaywriterError(Exception):
    """Base class for errors reported to the user without a traceback."""


class UsageError(PlaywriterError):
    """A required argument is missing or malformed."""


class SessionConnectionError(PlaywriterError):
    """No live browser could be attached for a session."""


class LaunchTimeoutError(PlaywriterError):
    """A launched browser never exposed its CDP endpoint."""


def _err(msg):
    """Print diagnostic message to stderr."""
    print(msg, file=sys.stderr)


# ---------------------------------------------------------------------------
# Debug log  (~/.cache/playwriter/debug.log, rotating, 2 MB × 3 backups)
# ---------------------------------------------------------------------------

_debug_logger: logging.Logger | None = None


def _get_debug_logger() -> logging.Logger:
    """Lazily initialise and return the rotating debug logger."""
    global _debug_logger
    if _debug_logger is not None:
        return _debug_logger

    log_path = os.path.join(get_cache_dir(), "debug.log")

    logger = logging.getLogger("playwriter.debug")
    logger.setLevel(logging.DEBUG)
    logger.propagate = False          # don't leak to root / stderr

    handler = logging.handlers.RotatingFileHandler(
        log_path, maxBytes=2 * 1024 * 1024, backupCount=3,
        encoding="utf-8",
    )
    handler.setFormatter(logging.Formatter(
        "%(asctime)s %(levelname)-5s [%(caller)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    ))
    logger.addHandler(handler)

    _debug_logger = logger
    return logger


def reset_debug_logger():
    """Close the debug log handlers so the next call re-opens them."""
    global _debug_logger
    if _debug_logger is None:
        return
    for handler in list(_debug_logger.handlers):
        handler.close()
        _debug_logger.removeHandler(handler)
    _debug_logger = None


def debug_log(msg: str, *, level: int = logging.DEBUG, caller: str = ""):
    """Append a message to the rotating debug log.

    Parameters
    ----------
    msg : str
        Free-form message.
    level : int
        Logging level (default DEBUG).
    caller : str
        Short label for the calling module (e.g. "launch", "profile").
        Shown in the ``[caller]`` field of each log line.
    """
    logger = _get_debug_logger()
    logger.log(level, msg, extra={"caller": caller or "playwriter"})


def get_cache_dir():
    """Return ~/.cache/playwriter/ (or $PLAYWRITER_CACHE_DIR), creating with 0o700 if needed."""
    cache_dir = os.environ.get("PLAYWRITER_CACHE_DIR") or os.path.expanduser("~/.cache/playwriter")
    if not os.path.exists(cache_dir):
        os.makedirs(cache_dir, mode=0o700, exist_ok=True)
    return cache_dir


# ---------------------------------------------------------------------------
# State files
# ---------------------------------------------------------------------------

def load_state(path):
    """Load JSON state from file. Returns None on missing/corrupt file."""
    if os.path.exists(path):
        try:
            with open(path) as f:
                return json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError, IOError):
            pass
    return None


def save_state(path, data):
    """Save JSON state to file, creating the parent directory if needed."""
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w') as f:
        json.dump(data, f, indent=2)


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

_config: dict | None = None

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/143.0.0.0 Safari/537.36"
)

_CONFIG_DEFAULTS = {
    "state_dir": "tmp/playwriter",
    "profiles_dir": ".playwriter/profiles",
    "screenshots_dir": "tmp/playwriter-screenshots",
    "viewport": {"width": 1366, "height": 768},
    "user_agent": DEFAULT_USER_AGENT,
    "connect_timeout": 10,
    "probe_timeout": 5,
    "launch_attempts": 30,
    "launch_interval": 0.5,
    "launch_settle": 2.0,
    "save_settle": 0.5,
    "close_grace": 1.0,
}


def load_config() -> dict:
    """Load config from ~/.config/playwriter/config.yaml (or PLAYWRITER_CONFIG env var).

    Returns a dict holding every key of _CONFIG_DEFAULTS.
    Missing file or keys fall back to defaults.
    """
    global _config
    if _config is not None:
        return _config

    config_path = os.environ.get("PLAYWRITER_CONFIG",
                                 os.path.expanduser("~/.config/playwriter/config.yaml"))
    _config = dict(_CONFIG_DEFAULTS)

    if os.path.exists(config_path):
        try:
            import yaml
            with open(config_path) as f:
                user = yaml.safe_load(f)
            if isinstance(user, dict):
                for key, value in user.items():
                    default = _CONFIG_DEFAULTS.get(key)
                    if isinstance(default, dict) and isinstance(value, dict):
                        value = {**default, **value}
                    _config[key] = value
        except Exception as e:
            _err(f"Warning: failed to parse {config_path}: {e}")

    return _config


def reset_config():
    """Drop the cached config so the next load_config() re-reads the file."""
    global _config
    _config = None


def config_path(key: str) -> Path:
    """Resolve a directory setting against the current working directory."""
    return Path.cwd() / os.path.expanduser(str(load_config()[key]))


# ---------------------------------------------------------------------------
# Top-level error handling
# ---------------------------------------------------------------------------

def cli_safe(func):
    """Decorator: catch unhandled exceptions, print the message, return exit status.

    The handler's own return value is ignored; a clean return maps to 0 and
    any Exception to 1. The traceback goes to the debug log, never the terminal.
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        from .colors import error
        try:
            func(*args, **kwargs)
            return 0
        except SystemExit:
            raise
        except Exception as e:
            debug_log(f"{func.__name__} failed:\n{traceback.format_exc()}",
                      level=logging.ERROR, caller="cli")
            _err(error(str(e) or e.__class__.__name__))
            return 1
    return wrapper
