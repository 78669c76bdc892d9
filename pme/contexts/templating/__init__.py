"""
Templating Context

Responsibilities:
- Loads and validates data files (YAML, JSON)
- Renders template source with data into HTML markup

Owns: Data file formats, the Jinja2 environment
Never: Touches the browser or writes output files
"""

from pme.contexts.templating.data_loader import (
    DATA_FORMATS,
    load_data,
    parse_data,
    validate_data,
)
from pme.contexts.templating.template_renderer import TemplateRenderer

__all__ = [
    "DATA_FORMATS",
    "load_data",
    "parse_data",
    "validate_data",
    "TemplateRenderer",
]
