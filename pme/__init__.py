"""
pdf-made-easy - develop and create PDF documents from a template and a data file

Renders a Jinja2 HTML template with YAML/JSON data in headless Chromium and
writes the result as a PDF, once (build) or on every change (develop).

Architecture:
- Templating Context: Data file loading and Jinja2 rendering
- Rendering Context: Browser session and PDF export
- Building Context: Builder lifecycle and watch sessions
"""

__version__ = "0.3.0"

from pme.config import PMEConfig, define_config, load_config
from pme.contexts.building import (
    Builder,
    BuildRequest,
    build,
    develop,
    get_builder,
)
from pme.contexts.rendering import encode_html
from pme.contexts.templating import load_data, parse_data
from pme.exceptions import (
    ConfigError,
    DataNotFoundError,
    DataParseError,
    DocumentRenderError,
    InvalidArgumentError,
    InvalidDataShapeError,
    NotFoundError,
    PMEError,
    SubscriptionError,
    TemplateNotFoundError,
    TemplateRenderError,
    UnsupportedFormatError,
    WatchTargetMissingError,
)
from pme.utils.paths import absolutize_path

__all__ = [
    "__version__",
    # Entry points
    "build",
    "develop",
    "get_builder",
    "Builder",
    "BuildRequest",
    # Configuration
    "PMEConfig",
    "define_config",
    "load_config",
    # Helpers
    "absolutize_path",
    "encode_html",
    "load_data",
    "parse_data",
    # Errors
    "PMEError",
    "InvalidArgumentError",
    "NotFoundError",
    "DataNotFoundError",
    "TemplateNotFoundError",
    "WatchTargetMissingError",
    "UnsupportedFormatError",
    "DataParseError",
    "InvalidDataShapeError",
    "TemplateRenderError",
    "DocumentRenderError",
    "ConfigError",
    "SubscriptionError",
]
