"""
Data file loading and validation.

Reads a YAML, JSON or JSON5 data file from disk and returns its top-level
mapping. Nothing is cached: watch mode relies on every call seeing the current
on-disk content.
"""

import json
import os
from typing import Any, Dict, Mapping, Optional

import json5
import yaml

from pme.contexts.templating.logger import log_data_loaded
from pme.exceptions import (
    DataNotFoundError,
    DataParseError,
    InvalidArgumentError,
    InvalidDataShapeError,
    UnsupportedFormatError,
)

# Accepted data file extensions and the parser each one uses
DATA_FORMATS = {
    ".yml": "yaml",
    ".yaml": "yaml",
    ".json": "json",
    ".jsonc": "json5",
    ".json5": "json5",
}


def _describe(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, (list, tuple)):
        return "list"
    return type(value).__name__


def parse_data(text: str, fmt: str = "yaml", path: Optional[str] = None) -> Any:
    """
    Parse a YAML, JSON or JSON5 string into a Python value.

    Args:
        text: Source text
        fmt: "yaml", "json" or "json5" (JSON with comments, trailing commas,
            unquoted keys)
        path: Originating file, used in error messages only

    Returns:
        Parsed value (not shape-checked, see validate_data)

    Raises:
        InvalidArgumentError: If `text` is not a string or `fmt` is unknown
        DataParseError: If the text is not valid for the format
    """
    if not isinstance(text, str):
        raise InvalidArgumentError(f"'data' must be a string, given '{type(text).__name__}'")

    if fmt not in ("yaml", "json", "json5"):
        raise InvalidArgumentError(
            f"'fmt' must be one of 'yaml', 'json' or 'json5', given '{fmt}'"
        )

    empty_source = not text.strip()
    source = f" in '{path}'" if path else ""

    try:
        if fmt == "yaml":
            return yaml.safe_load(text)
        if fmt == "json5":
            return json5.loads(text)
        return json.loads(text)
    except yaml.YAMLError as e:
        raise DataParseError(f"Invalid YAML{source}: {e}", path, empty_source) from e
    except json.JSONDecodeError as e:
        raise DataParseError(f"Invalid JSON{source}: {e}", path, empty_source) from e
    except ValueError as e:
        raise DataParseError(f"Invalid JSON5{source}: {e}", path, empty_source) from e


def validate_data(data: Any, path: Optional[str] = None, empty_source: bool = False) -> Dict:
    """
    Check that parsed data is a mapping and return it as a plain dict.

    Raises:
        InvalidDataShapeError: If `data` is a scalar, a list or null
    """
    if isinstance(data, Mapping):
        return dict(data)

    raise InvalidDataShapeError(
        f"'data' must be a mapping, given '{_describe(data)}'", path, empty_source
    )


def load_data(path: str) -> Dict:
    """
    Load and validate a data file.

    The format is picked from the file extension (see DATA_FORMATS).

    Args:
        path: Path to the data file

    Returns:
        Top-level mapping of the data file

    Raises:
        InvalidArgumentError: If `path` is not a string
        DataNotFoundError: If the file does not exist
        UnsupportedFormatError: If the extension is not accepted
        DataParseError: If the content is malformed or not valid UTF-8
        InvalidDataShapeError: If the content is not a mapping
    """
    if isinstance(path, os.PathLike):
        path = os.fspath(path)
    if not isinstance(path, str):
        raise InvalidArgumentError(f"'path' must be a string, given '{type(path).__name__}'")

    ext = os.path.splitext(path)[1].lower()
    fmt = DATA_FORMATS.get(ext)
    if fmt is None:
        accepted = ", ".join(sorted(DATA_FORMATS))
        raise UnsupportedFormatError(
            f"Only YAML, JSON, JSONC and JSON5 data files are accepted ({accepted}), "
            f"given '{ext or path}'"
        )

    if not os.path.isfile(path):
        raise DataNotFoundError(f"Data file '{path}' does not exist", path)

    try:
        with open(path, encoding="utf-8") as f:
            text = f.read()
    except UnicodeDecodeError as e:
        raise DataParseError(f"Data file '{path}' is not valid UTF-8: {e}", path) from e

    data = validate_data(parse_data(text, fmt, path), path, empty_source=not text.strip())
    log_data_loaded(path, fmt, len(data))
    return data
