"""Logging utilities for the belief engine and agent memory store.

Provides color-coded output to distinguish belief math, memory bookkeeping,
and soft failures (unknown beliefs, missing rules).
"""

import os
from enum import Enum

from .config import Config


class Color(Enum):
    """ANSI color codes for terminal output."""

    # Colors for operation types
    BLUE = "\033[94m"      # Deterministic operations (belief updates, chunking)
    YELLOW = "\033[93m"    # Soft failures (unknown keys, missing rules)
    RED = "\033[91m"       # Errors
    GREEN = "\033[92m"     # Success/completion (new patterns learned)
    CYAN = "\033[96m"      # Info/metadata

    # Formatting
    BOLD = "\033[1m"
    RESET = "\033[0m"


_LEVELS = {"DEBUG": 10, "INFO": 20, "WARNING": 30, "ERROR": 40}


def colored(text: str, color: Color, bold: bool = False) -> str:
    """Wrap text in ANSI color codes if colors are enabled.

    Args:
        text: Text to colorize
        color: Color to apply
        bold: Whether to make text bold

    Returns:
        Colorized text if CREDENCE_NO_COLOR is not set, otherwise plain text
    """
    if os.getenv("CREDENCE_NO_COLOR"):
        return text

    prefix = color.value
    if bold:
        prefix = Color.BOLD.value + prefix

    return f"{prefix}{text}{Color.RESET.value}"


def _enabled(level: str) -> bool:
    # Looked up per call so Config.LOG_LEVEL can be changed at runtime.
    threshold = _LEVELS.get(Config.LOG_LEVEL.upper(), 20)
    return _LEVELS[level] >= threshold


def log_deterministic(message: str) -> None:
    """Log a deterministic operation (blue)."""
    if _enabled("INFO"):
        print(colored(f"{EMOJI_DETERMINISTIC} {message}", Color.BLUE))


def log_warning(message: str) -> None:
    """Log a soft failure that was skipped (yellow)."""
    if _enabled("WARNING"):
        print(colored(f"{EMOJI_WARNING} {message}", Color.YELLOW))


def log_error(message: str) -> None:
    """Log an error (red)."""
    if _enabled("ERROR"):
        print(colored(f"{EMOJI_ERROR} {message}", Color.RED))


def log_success(message: str) -> None:
    """Log a success (green)."""
    if _enabled("INFO"):
        print(colored(f"{EMOJI_SUCCESS} {message}", Color.GREEN))


def log_info(message: str) -> None:
    """Log metadata/info (cyan)."""
    if _enabled("INFO"):
        print(colored(f"{EMOJI_INFO} {message}", Color.CYAN))


# Markers for operation types (color-blind accessible)
EMOJI_DETERMINISTIC = "[•]"  # Deterministic operation
EMOJI_WARNING = "[?]"        # Skipped / soft failure
EMOJI_ERROR = "[!]"          # Error
EMOJI_SUCCESS = "[✓]"        # Success
EMOJI_INFO = "[i]"           # Information
