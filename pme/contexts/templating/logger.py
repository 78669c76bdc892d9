"""
Templating context logger.

Provides logging interface for templating context with automatic [template] prefix.
All templating modules should import from this module, not from loguru directly.
"""

from loguru import logger

CONTEXT_PREFIX = "[template]"


def _log_debug(message: str) -> None:
    """Log debug message with [template] prefix."""
    logger.debug(f"{CONTEXT_PREFIX} {message}")


def log_data_loaded(path: str, fmt: str, num_keys: int) -> None:
    _log_debug(f"Loaded {fmt} data: {path} ({num_keys} top-level keys)")


def log_template_rendered(num_chars: int, elapsed_time: float) -> None:
    _log_debug(f"Rendered markup: {num_chars} characters ({elapsed_time:.3f}s)")
