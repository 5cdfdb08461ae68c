"""ANSI color helpers for compiler diagnostics.

Code frames and error headers are colored when the output stream is a TTY.
Honors the NO_COLOR (https://no-color.org/) and FORCE_COLOR conventions.
"""

from __future__ import annotations

import os
import re
import sys
from typing import Literal

_COLORS = {
    "reset": "\033[0m",
    "bold": "\033[1m",
    "dim": "\033[2m",
    "red": "\033[31m",
    "green": "\033[32m",
    "yellow": "\033[33m",
    "cyan": "\033[36m",
    "bright_red": "\033[91m",
    "bright_yellow": "\033[93m",
}

ColorName = Literal[
    "reset", "bold", "dim",
    "red", "green", "yellow", "cyan",
    "bright_red", "bright_yellow",
]

_ANSI_ESCAPE = re.compile(r"\x1B(?:[@-Z\\-_]|\[[0-?]*[ -/]*[@-~])")


def _should_use_colors() -> bool:
    """Decide once whether diagnostics are colored.

    FORCE_COLOR wins over NO_COLOR; otherwise colors follow stderr's TTY status,
    since diagnostics are logged rather than printed.
    """
    if os.environ.get("FORCE_COLOR"):
        return True
    if os.environ.get("NO_COLOR"):
        return False
    stream = sys.stderr
    return stream is not None and stream.isatty()


_USE_COLORS = _should_use_colors()


def supports_color() -> bool:
    """Return True if diagnostics are colored."""
    return _USE_COLORS


def colorize(text: str, *colors: ColorName) -> str:
    """Wrap text in the given ANSI codes when colors are enabled.

    Example:
        >>> colorize("error", "red", "bold")  # with colors enabled
        '\\033[31m\\033[1merror\\033[0m'
    """
    if not _USE_COLORS or not colors:
        return text
    prefix = "".join(_COLORS.get(color, "") for color in colors)
    if not prefix:
        return text
    return f"{prefix}{text}{_COLORS['reset']}"


def strip_colors(text: str) -> str:
    """Remove ANSI escape sequences from text."""
    return _ANSI_ESCAPE.sub("", text)


def error_code(text: str) -> str:
    """Color text as an error code (bright red + bold)."""
    return colorize(text, "bright_red", "bold")


def warning_code(text: str) -> str:
    """Color text as a warning code (bright yellow + bold)."""
    return colorize(text, "bright_yellow", "bold")


def location(text: str) -> str:
    """Color text as a source location (cyan)."""
    return colorize(text, "cyan")


def line_number(text: str) -> str:
    return colorize(text, "yellow")


def underline(text: str) -> str:
    """Color a caret underline (bright red)."""
    return colorize(text, "bright_red")


def dim_text(text: str) -> str:
    return colorize(text, "dim")


def format_error_header(code: str | None, message: str, *, warning: bool = False) -> str:
    """Format ``CODE: message`` with the code colored by severity.

    Example:
        >>> format_error_header("KL-OPT-003", "cache_handlers needs prefixing")
        'KL-OPT-003: cache_handlers needs prefixing'  # without colors
    """
    if not code:
        return message
    painted = warning_code(code) if warning else error_code(code)
    return f"{painted}: {message}"


def format_source_line(lineno: int, content: str, *, highlighted: bool = False) -> str:
    """Format one code-frame line: ``  3 | content``.

    Highlighted lines (those the reported span touches) get a ``>`` marker.
    """
    marker = ">" if highlighted else " "
    number = line_number(f"{marker}{lineno:>3}")
    return f"{number} | {content if highlighted else dim_text(content)}"


def format_underline(column: int, width: int) -> str:
    """Format the caret row under a highlighted line."""
    carets = underline("^" * max(1, width))
    return f"{dim_text('     |')} {' ' * column}{carets}"
