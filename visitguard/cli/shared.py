# ==============================================================================
# Shared Utilities for CLI Commands
# ==============================================================================
"""
Shared utilities, constants, and helper functions used across CLI command modules.

This module provides:
- ANSI color codes and box-drawing characters
- Engine construction for commands
- Formatting helpers for ids, timestamps and risk levels
- Box drawing helpers for formatted output
"""

import json
import re
from datetime import datetime
from typing import Any, Optional

from visitguard.core.models import AlertStatus, RiskLevel
from visitguard.engine import Engine, build_engine

# ==============================================================================
# Constants
# ==============================================================================

# Box drawing width (unified for all commands)
BOX_WIDTH = 68

# Visitor ids are long hashes; tables show a prefix
SHORT_ID_LENGTH = 12


# ==============================================================================
# ANSI Colors and Box Drawing
# ==============================================================================


class Colors:
    """ANSI color codes for terminal output."""

    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"

    # Colors
    YELLOW = "\033[33m"
    CYAN = "\033[36m"
    WHITE = "\033[37m"

    # Bright colors
    BRIGHT_RED = "\033[91m"
    BRIGHT_GREEN = "\033[92m"
    BRIGHT_YELLOW = "\033[93m"


class Box:
    """Unicode box-drawing characters."""

    H = "─"  # horizontal
    V = "│"  # vertical
    TL = "┌"  # top-left
    TR = "┐"  # top-right
    BL = "└"  # bottom-left
    BR = "┘"  # bottom-right
    LT = "├"  # left-tee
    RT = "┤"  # right-tee


class Icons:
    """Status icons using Unicode symbols."""

    CHECK = "✓"
    CROSS = "✗"
    BULLET = "•"
    STOP = "□"


# Module-level aliases for convenience
C, B, I = Colors, Box, Icons

RISK_COLORS = {
    RiskLevel.LOW: C.BRIGHT_GREEN,
    RiskLevel.MEDIUM: C.BRIGHT_YELLOW,
    RiskLevel.HIGH: C.YELLOW,
    RiskLevel.CRITICAL: C.BRIGHT_RED,
}

STATUS_COLORS = {
    AlertStatus.NEW: C.BRIGHT_RED,
    AlertStatus.REVIEWED: C.BRIGHT_YELLOW,
    AlertStatus.DISMISSED: C.DIM,
}


# ==============================================================================
# Engine Helpers
# ==============================================================================


def get_engine() -> Engine:
    """Build the engine for a CLI command from the current settings."""
    return build_engine()


def print_json(data: Any) -> None:
    """Print data as indented JSON (datetimes rendered as ISO strings)."""
    print(json.dumps(data, indent=2, default=str))


# ==============================================================================
# Formatting Helpers
# ==============================================================================


def _short(value: Optional[str], length: int = SHORT_ID_LENGTH) -> str:
    """Shorten an identifier for table output."""
    if not value:
        return "-"
    return value if len(value) <= length else f"{value[:length]}…"


def _fmt_time(value: Optional[datetime]) -> str:
    if value is None:
        return "-"
    return value.strftime("%Y-%m-%d %H:%M:%S")


def _risk_badge(level: RiskLevel, score: Optional[int] = None) -> str:
    """Colored risk level, optionally prefixed with the score."""
    text = level.value.upper() if score is None else f"{score:>3} {level.value.upper()}"
    return f"{RISK_COLORS.get(level, C.WHITE)}{text}{C.RESET}"


def _status_text(status: AlertStatus) -> str:
    return f"{STATUS_COLORS.get(status, C.WHITE)}{status.value}{C.RESET}"


# ==============================================================================
# Box Drawing Helpers
# ==============================================================================

# Regex pattern for stripping ANSI escape codes
_ANSI_ESCAPE_PATTERN = re.compile(r"\x1b\[[0-9;]*m")


def _visible_len(s: str) -> int:
    """Calculate visible length of string, ignoring ANSI escape codes."""
    return len(_ANSI_ESCAPE_PATTERN.sub("", s))


def _box_header(title: str, width: int = BOX_WIDTH) -> str:
    """Create a single-line box header."""
    inner_width = width - 2
    title_padded = f" {title} "
    left_bar = (inner_width - len(title_padded)) // 2
    right_bar = inner_width - left_bar - len(title_padded)
    return (
        f"{C.CYAN}{B.TL}{B.H * left_bar}{C.BOLD}{C.WHITE}{title_padded}"
        f"{C.RESET}{C.CYAN}{B.H * right_bar}{B.TR}{C.RESET}"
    )


def _section_header(title: str, width: int = BOX_WIDTH) -> str:
    """Create a section header inside a box."""
    inner_width = width - 2
    title_padded = f" {title} "
    bar_len = inner_width - len(title_padded) - 1  # -1 for the first H after LT
    return (
        f"{C.CYAN}{B.LT}{B.H}{C.BOLD}{title_padded}{C.RESET}{C.CYAN}{B.H * bar_len}{B.RT}{C.RESET}"
    )


def _box_line(content: str, width: int = BOX_WIDTH) -> str:
    """Create a line inside the box with proper padding to right border."""
    inner_width = width - 2
    padding = max(inner_width - _visible_len(content), 0)
    return f"{C.CYAN}{B.V}{C.RESET}{content}{' ' * padding}{C.CYAN}{B.V}{C.RESET}"


def _empty_line(width: int = BOX_WIDTH) -> str:
    """Create an empty line inside the box."""
    return f"{C.CYAN}{B.V}{' ' * (width - 2)}{B.V}{C.RESET}"


def _box_bottom(width: int = BOX_WIDTH) -> str:
    """Create a box bottom border."""
    return f"{C.CYAN}{B.BL}{B.H * (width - 2)}{B.BR}{C.RESET}"


def _status_badge(status: str, is_ok: bool, is_stopped: bool = False) -> str:
    """Create a colored status badge."""
    if is_ok:
        return f"{C.BRIGHT_GREEN}{I.CHECK} {status}{C.RESET}"
    elif is_stopped:
        return f"{C.BRIGHT_YELLOW}{I.STOP} {status}{C.RESET}"
    else:
        return f"{C.BRIGHT_RED}{I.CROSS} {status}{C.RESET}"


def _error(message: str) -> None:
    print(f"\n{C.BRIGHT_RED}{I.CROSS} {message}{C.RESET}\n")
