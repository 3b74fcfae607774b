"""Colorized terminal output utilities.

Provides ANSI escape code support for terminal output with:
- Auto-detection of TTY
- Respect for NO_COLOR environment variable
- Semantic color methods (success, error, warning, info)
"""

import os
import sys
from typing import Optional


class ColorFormatter:
    """Terminal color formatter with ANSI escape codes."""

    RESET = "\033[0m"
    DIM = "\033[2m"

    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    CYAN = "\033[36m"

    def __init__(self, force_color: Optional[bool] = None):
        """
        Initialize color formatter.

        Args:
            force_color: If True, force colors on. If False, force colors off.
                        If None, auto-detect based on TTY and NO_COLOR.
        """
        self._force_color = force_color
        self._enabled = self._should_enable_colors()

    def _should_enable_colors(self) -> bool:
        """Determine if colors should be enabled."""
        if self._force_color is not None:
            return self._force_color

        # https://no-color.org/
        if os.environ.get("NO_COLOR"):
            return False

        if os.environ.get("FORCE_COLOR"):
            return True

        if not hasattr(sys.stdout, "isatty"):
            return False

        return sys.stdout.isatty()

    @property
    def enabled(self) -> bool:
        """Check if colors are enabled."""
        return self._enabled

    def disable(self):
        self._enabled = False

    def _wrap(self, text: str, *codes: str) -> str:
        """Wrap text with ANSI codes if enabled."""
        if not self._enabled:
            return text
        code_str = "".join(codes)
        return f"{code_str}{text}{self.RESET}"

    def success(self, text: str) -> str:
        """Format text as success (green)."""
        return self._wrap(text, self.GREEN)

    def error(self, text: str) -> str:
        """Format text as error (red)."""
        return self._wrap(text, self.RED)

    def warning(self, text: str) -> str:
        """Format text as warning (yellow)."""
        return self._wrap(text, self.YELLOW)

    def info(self, text: str) -> str:
        """Format text as info (cyan)."""
        return self._wrap(text, self.CYAN)

    def dim(self, text: str) -> str:
        return self._wrap(text, self.DIM)

    def check_icon(self) -> str:
        """Return a green checkmark."""
        return self.success("✓")

    def folder_icon(self) -> str:
        return self.info("📂")


# Global formatter instance
_formatter: Optional[ColorFormatter] = None


def get_formatter() -> ColorFormatter:
    """Get the global color formatter instance."""
    global _formatter
    if _formatter is None:
        _formatter = ColorFormatter()
    return _formatter


def set_formatter(formatter: Optional[ColorFormatter]):
    """Set the global color formatter instance."""
    global _formatter
    _formatter = formatter


def disable_colors():
    """Disable colors globally."""
    get_formatter().disable()


def success(text: str) -> str:
    return get_formatter().success(text)


def error(text: str) -> str:
    return get_formatter().error(text)


def warning(text: str) -> str:
    return get_formatter().warning(text)


def dim(text: str) -> str:
    return get_formatter().dim(text)


def check_icon() -> str:
    return get_formatter().check_icon()


def folder_icon() -> str:
    return get_formatter().folder_icon()
