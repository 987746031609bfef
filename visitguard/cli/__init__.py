# ==============================================================================
# CLI Commands Module
# ==============================================================================
"""
CLI commands for visitguard.

Commands are organized into separate modules for maintainability:
- shared.py: Common utilities, constants, and helpers
- status.py: Backend and provider health
- config.py: Configuration display
- ingest.py: JSON-lines replay through the ingest path
- dashboard.py: Dashboard, visitor and activity views
- alerts.py: Alert listing and triage
- data.py: Data reset
"""

from visitguard.cli.shared import (
    # Constants
    BOX_WIDTH,
    # Classes
    Box,
    Colors,
    Icons,
    # Aliases
    B,
    C,
    I,
    # Box drawing helpers (private)
    _box_bottom,
    _box_header,
    _box_line,
    _empty_line,
    _section_header,
    _status_badge,
    _visible_len,
    # Engine helpers
    get_engine,
    print_json,
)

__all__ = [
    "BOX_WIDTH",
    "Box",
    "Colors",
    "Icons",
    "B",
    "C",
    "I",
    "_box_bottom",
    "_box_header",
    "_box_line",
    "_empty_line",
    "_section_header",
    "_status_badge",
    "_visible_len",
    "get_engine",
    "print_json",
]
