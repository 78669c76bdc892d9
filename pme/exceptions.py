"""
Exceptions raised by the build/watch engine.

Every error derives from PMEError so callers (the CLI, the watch session) can
report them uniformly. Most also derive from the closest builtin so ordinary
`except FileNotFoundError` / `except TypeError` handlers keep working.
"""

from pathlib import Path
from typing import Optional, Union


class PMEError(Exception):
    """Base class for all pdf-made-easy errors."""


class InvalidArgumentError(PMEError, TypeError):
    """A parameter of the wrong type was passed (usage error, never retried)."""


class NotFoundError(PMEError, FileNotFoundError):
    """
    A referenced file or directory does not exist.

    Attributes:
        message: Error description
        path: The path that was looked up
    """

    def __init__(self, message: str, path: Optional[Union[str, Path]] = None):
        self.message = message
        self.path = path
        super().__init__(message)

    def __str__(self) -> str:
        return self.message


class DataNotFoundError(NotFoundError):
    """The data file does not exist."""


class TemplateNotFoundError(NotFoundError):
    """The template file does not exist."""


class WatchTargetMissingError(NotFoundError):
    """A file that watch mode was asked to watch does not exist."""


class UnsupportedFormatError(PMEError, ValueError):
    """The data file extension is not one of the accepted formats."""


class DataLoadError(PMEError):
    """
    Base for errors raised while turning a data file into a mapping.

    Attributes:
        message: Error description
        path: Data file the content came from (None for in-memory parsing)
        empty_source: True when the source text was empty or blank. In watch
            mode this usually means the file was read while a writer had just
            truncated it.
    """

    def __init__(
        self,
        message: str,
        path: Optional[Union[str, Path]] = None,
        empty_source: bool = False,
    ):
        self.message = message
        self.path = path
        self.empty_source = empty_source
        super().__init__(message)

    def __str__(self) -> str:
        return self.message


class DataParseError(DataLoadError, ValueError):
    """The data file is not valid YAML/JSON."""


class InvalidDataShapeError(DataLoadError, TypeError):
    """The data file parsed to something other than a mapping."""


class TemplateRenderError(PMEError):
    """
    Exception raised when the template engine fails to parse or evaluate.

    Attributes:
        message: Error description
        template_path: Path to the template file (if known)
        original_error: The original Jinja2 error
    """

    def __init__(
        self,
        message: str,
        template_path: Optional[Path] = None,
        original_error: Optional[Exception] = None,
    ):
        self.message = message
        self.template_path = template_path
        self.original_error = original_error

        parts = [message]

        if template_path:
            parts.append(f"Template: {template_path}")

        if original_error:
            parts.append(f"Original error: {original_error}")

        super().__init__("\n".join(parts))


class DocumentRenderError(PMEError):
    """
    Exception raised when the browser fails to load markup or export the PDF.

    Attributes:
        message: Error description
        original_error: The underlying Playwright error
    """

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        self.message = message
        self.original_error = original_error

        if original_error:
            super().__init__(f"{message}\nOriginal error: {original_error}")
        else:
            super().__init__(message)


class ConfigError(PMEError, ValueError):
    """The config file or config mapping is invalid."""


class SubscriptionError(PMEError):
    """The filesystem watcher stopped delivering events."""


def is_transient(error: BaseException) -> bool:
    """Whether `error` looks like a data file read mid-write (empty content)."""
    return isinstance(error, DataLoadError) and error.empty_source
