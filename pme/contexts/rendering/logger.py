"""
Rendering context logger.

Provides logging interface for rendering context with automatic [render] prefix.
All rendering modules should import from this module, not from loguru directly.
"""

from typing import Optional

from loguru import logger

CONTEXT_PREFIX = "[render]"


def _log_debug(message: str) -> None:
    """Log debug message with [render] prefix."""
    logger.debug(f"{CONTEXT_PREFIX} {message}")


def log_browser_launch(launch_options: dict, elapsed_time: float) -> None:
    """Log a finished browser launch with the options it was given."""
    _log_debug(f"Browser launched ({elapsed_time:.2f}s)")
    if launch_options:
        _log_debug(f"  Launch options: {launch_options}")


def log_browser_close() -> None:
    _log_debug("Browser closed")


def log_pdf_export(num_bytes: int, elapsed_time: float, path: Optional[str] = None) -> None:
    """Log a finished PDF export."""
    target = f" -> {path}" if path else ""
    _log_debug(f"Exported PDF: {num_bytes} bytes{target} ({elapsed_time:.2f}s)")
