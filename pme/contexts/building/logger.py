"""
Building context logger.

Provides logging interface for the build/watch engine with automatic [build] prefix.
All building modules should import from this module, not from loguru directly.
"""

from typing import Iterable, Optional

from loguru import logger

CONTEXT_PREFIX = "[build]"


# Wrapper functions with automatic [build] prefix


def _log_info(message: str) -> None:
    """Log info message with [build] prefix."""
    logger.info(f"{CONTEXT_PREFIX} {message}")


def _log_success(message: str) -> None:
    """Log success message with [build] prefix."""
    logger.success(f"{CONTEXT_PREFIX} {message}")


def _log_error(message: str) -> None:
    """Log error message with [build] prefix."""
    logger.error(f"{CONTEXT_PREFIX} {message}")


def _log_warning(message: str) -> None:
    """Log warning message with [build] prefix."""
    logger.warning(f"{CONTEXT_PREFIX} {message}")


def _log_debug(message: str) -> None:
    """Log debug message with [build] prefix."""
    logger.debug(f"{CONTEXT_PREFIX} {message}")


# High-level build/watch logging helpers


def log_build_start(template_file: str, data_file: str, output_file: str) -> None:
    """Log start of a build with its resolved paths."""
    _log_debug(f"Building {output_file}")
    _log_debug(f"  Template: {template_file}")
    _log_debug(f"  Data: {data_file}")


def log_build_result(
    output_file: str, num_bytes: int, elapsed_time: float, num_pages: Optional[int] = None
) -> None:
    """Log a successful build."""
    pages = f", {num_pages} page{'s' if num_pages != 1 else ''}" if num_pages is not None else ""
    _log_success(f"Built {output_file} ({num_bytes} bytes{pages}, {elapsed_time:.2f}s)")


def log_watch_start(root_dir: str, watched_paths: Iterable[str]) -> None:
    """Log the start of a watch session."""
    _log_info(f"Watching {root_dir} for changes. Press Ctrl+C to stop.")
    for path in watched_paths:
        _log_debug(f"  Watched: {path}")


def log_rebuild_trigger(paths: Iterable[str]) -> None:
    _log_info(f"Change detected in {', '.join(sorted(paths))}, rebuilding...")


def log_session_error(error: BaseException, origin: str) -> None:
    """
    Report an error that ends a watch session.

    Watch-mode rebuilds run inside a background task with no caller to raise
    into, so this is the process-level error report for them.
    """
    _log_error(f"{origin}: {error}")
    logger.opt(exception=error).debug(f"{CONTEXT_PREFIX} Traceback for {origin}")
