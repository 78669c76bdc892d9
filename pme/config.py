"""
Configuration for builds.

A config is a mapping with up to three namespaces, each forwarded untouched:

    template_options:   # keyword arguments for jinja2.Environment
      trim_blocks: true
    pdf_options:        # keyword arguments for Playwright's Page.pdf
      format: A4
      print_background: true
    launch_options:     # keyword arguments for Playwright's chromium.launch
      args: ["--font-render-hinting=none"]

Config files are YAML, loaded with OmegaConf so interpolations such as
`${oc.env:PAPER_FORMAT,A4}` are resolved.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

from dotenv import load_dotenv
from omegaconf import DictConfig, OmegaConf
from omegaconf.errors import OmegaConfBaseException
from yaml import YAMLError

from pme.contexts.templating.template_renderer import RendererFactory
from pme.exceptions import ConfigError, NotFoundError
from pme.utils.paths import absolutize_path

load_dotenv()

DEFAULT_CONFIG_FILENAME = os.getenv("PME_CONFIG", "pme.config.yaml")
CONFIG_EXTENSIONS = (".yaml", ".yml")
CONFIG_KEYS = ("template_options", "pdf_options", "launch_options")


@dataclass(frozen=True)
class PMEConfig:
    """
    Options forwarded to the template engine and the browser.

    Attributes:
        template_options: Keyword arguments for jinja2.Environment
        pdf_options: Keyword arguments for Playwright's Page.pdf
        launch_options: Keyword arguments for Playwright's chromium.launch
        template_renderer: Optional factory replacing Jinja2; called with
            template_options, returns a (source, data) -> markup function
    """

    template_options: Dict[str, Any] = field(default_factory=dict)
    pdf_options: Dict[str, Any] = field(default_factory=dict)
    launch_options: Dict[str, Any] = field(default_factory=dict)
    template_renderer: Optional[RendererFactory] = None


def define_config(config: Union[Mapping[str, Any], PMEConfig]) -> PMEConfig:
    """
    Validate a config mapping and turn it into a PMEConfig.

    Args:
        config: Mapping with any of the keys in CONFIG_KEYS (a PMEConfig is
            returned unchanged)

    Returns:
        PMEConfig

    Raises:
        ConfigError: If `config` is not a mapping, has unknown keys, or a
            namespace is not a mapping
    """
    if isinstance(config, PMEConfig):
        return config

    if not isinstance(config, Mapping):
        raise ConfigError("invalid config provided")

    unknown = [key for key in config if key not in CONFIG_KEYS]
    if unknown:
        raise ConfigError(f"invalid config keys provided: {', '.join(map(str, unknown))}")

    namespaces = {}
    for key in CONFIG_KEYS:
        value = config.get(key)
        if value is None:
            value = {}
        if not isinstance(value, Mapping):
            raise ConfigError(
                f"'{key}' must be a mapping, given '{type(value).__name__}'"
            )
        namespaces[key] = dict(value)

    return PMEConfig(**namespaces)


def find_config(filename: str = DEFAULT_CONFIG_FILENAME, start_dir: Optional[str] = None) -> Path:
    """
    Look for `filename` in `start_dir` and its parents, then in the home directory.

    Returns:
        The first existing match, or the (possibly missing) home directory path
    """
    current = Path(start_dir or os.getcwd()).resolve()

    for directory in (current, *current.parents):
        candidate = directory / filename
        if candidate.is_file():
            return candidate

    return Path.home() / filename


def read_config_file(path: Path) -> PMEConfig:
    """Load and validate one YAML config file."""
    try:
        conf = OmegaConf.load(path)
        if not isinstance(conf, DictConfig):
            raise ConfigError(f"Config file '{path}' must contain a mapping")
        data = OmegaConf.to_container(conf, resolve=True)
    except (OmegaConfBaseException, YAMLError) as e:
        raise ConfigError(f"Failed to load config file '{path}': {e}") from e

    try:
        return define_config(data)
    except ConfigError as e:
        raise ConfigError(f"Config file '{path}': {e}") from e


def load_config(
    config: str = DEFAULT_CONFIG_FILENAME, root_dir: Optional[str] = None
) -> PMEConfig:
    """
    Resolve and load the config file for a CLI invocation.

    The default config name is optional: it is looked up from `root_dir`
    upward, then in the home directory, and an empty config is used when
    none exists. Any other name must point at an existing file.

    Args:
        config: Config file name or path
        root_dir: Directory relative paths are resolved against (default: cwd)

    Returns:
        PMEConfig

    Raises:
        ConfigError: If the extension is not YAML or the content is invalid
        NotFoundError: If an explicitly named config file does not exist
    """
    if os.path.splitext(config)[1] not in CONFIG_EXTENSIONS:
        raise ConfigError(
            f"Config file must be a YAML file, '{os.path.basename(config)}' given"
        )

    if config == DEFAULT_CONFIG_FILENAME:
        path = find_config(config, root_dir)
        return read_config_file(path) if path.is_file() else PMEConfig()

    path = Path(absolutize_path(config, root_dir))
    if not path.is_file():
        raise NotFoundError(f"Config file '{path}' does not exist", path)

    return read_config_file(path)
