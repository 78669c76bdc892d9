"""Path helpers shared by the build and watch code."""

import os
from typing import Optional, Union

from pme.exceptions import InvalidArgumentError

PathArg = Union[str, "os.PathLike[str]"]


def _as_str(value: PathArg, name: str) -> str:
    if isinstance(value, os.PathLike):
        value = os.fspath(value)
    if not isinstance(value, str):
        raise InvalidArgumentError(f"'{name}' must be a string, given '{type(value).__name__}'")
    return value


def absolutize_path(path: PathArg, root_dir: Optional[PathArg] = None) -> str:
    """
    Absolutize `path` against `root_dir` and normalize the result.

    Absolute paths are only normalized; `root_dir` is ignored for them.
    Relative paths are joined to `root_dir` (default: current working
    directory) before normalization. No filesystem access happens here.

    Args:
        path: Path to absolutize
        root_dir: Directory relative paths are resolved against

    Returns:
        Absolute, normalized path string

    Raises:
        InvalidArgumentError: If `path` or `root_dir` is not a string/PathLike

    Examples:
        >>> absolutize_path("data.yml", "/home/user/doc")
        '/home/user/doc/data.yml'
        >>> absolutize_path("/tmp/../srv/out.pdf", "/ignored")
        '/srv/out.pdf'
    """
    path = _as_str(path, "path")
    root_dir = os.getcwd() if root_dir is None else _as_str(root_dir, "root_dir")

    if os.path.isabs(path):
        return os.path.normpath(path)

    return os.path.normpath(os.path.join(root_dir, path))
