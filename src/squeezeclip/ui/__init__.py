"""
User interface components for squeezeclip.

Provides both Rich-based and legacy text-based status displays.
"""

import importlib.util

from squeezeclip.ui.legacy_ui import LegacyStatusUI

# Check if Rich is available using importlib
RICH_AVAILABLE = importlib.util.find_spec("rich") is not None

__all__ = [
    "RICH_AVAILABLE",
    "LegacyStatusUI",
]

# Conditionally export Rich UI classes
if RICH_AVAILABLE:
    from squeezeclip.ui.rich_ui import RichStatusUI  # noqa: F401

    __all__.append("RichStatusUI")
