"""
Shared utilities for pdf-made-easy.

Common functionality used across contexts:
- Path resolution
- Logger setup
- PDF inspection
"""

from pme.utils.paths import absolutize_path

__all__ = ["absolutize_path"]
