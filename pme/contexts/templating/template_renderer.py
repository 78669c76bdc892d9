"""
Template rendering adapter around a long-lived Jinja2 environment.

One TemplateRenderer lives for the lifetime of a Builder. It keeps no state
between calls beyond whatever Jinja2 caches internally.
"""

import inspect
import time
from pathlib import Path
from typing import Any, Awaitable, Callable, Mapping, Optional, Union

from jinja2 import Environment

from pme.contexts.templating.logger import log_template_rendered
from pme.exceptions import InvalidArgumentError, TemplateRenderError

# A custom renderer: (template source, data) -> markup, sync or async
RenderFunction = Callable[[str, Mapping[str, Any]], Union[str, Awaitable[str]]]
RendererFactory = Callable[[Optional[Mapping[str, Any]]], RenderFunction]


class TemplateRenderer:
    """
    Renders template source text with a data mapping.

    By default templates are Jinja2 with the standard `{{ }}` / `{% %}`
    delimiters. `template_options` are passed straight to
    `jinja2.Environment`; async rendering is always enabled.

    A `renderer_factory` replaces Jinja2 entirely: it is called once with
    `template_options` and must return a function taking (source, data) and
    returning markup (or an awaitable of markup).
    """

    def __init__(
        self,
        template_options: Optional[Mapping[str, Any]] = None,
        renderer_factory: Optional[RendererFactory] = None,
    ):
        self.template_options = dict(template_options or {})

        if renderer_factory is not None:
            self.env = None
            self._render = renderer_factory(template_options)
            if not callable(self._render):
                raise InvalidArgumentError(
                    f"'template_renderer' must return a function, "
                    f"returned '{type(self._render).__name__}'"
                )
        else:
            try:
                self.env = Environment(**{**self.template_options, "enable_async": True})
            except TypeError as e:
                raise InvalidArgumentError(f"Invalid template_options: {e}") from e
            self._render = None

    async def render(
        self,
        source: str,
        data: Optional[Mapping[str, Any]] = None,
        template_path: Optional[Path] = None,
    ) -> str:
        """
        Render `source` with `data`.

        Args:
            source: Template source text
            data: Template context (None renders with an empty context)
            template_path: Template file, used in error messages only

        Returns:
            Rendered markup

        Raises:
            InvalidArgumentError: If `source` is not a string
            TemplateRenderError: If the template fails to parse or evaluate
        """
        if not isinstance(source, str):
            raise InvalidArgumentError(
                f"'template' must be a string, given '{type(source).__name__}'"
            )

        context = dict(data or {})
        start_time = time.perf_counter()

        try:
            if self._render is not None:
                markup = self._render(source, context)
                if inspect.isawaitable(markup):
                    markup = await markup
            else:
                template = self.env.from_string(source)
                markup = await template.render_async(context)
        except TemplateRenderError:
            raise
        except Exception as e:
            raise TemplateRenderError(
                "Failed to render template", template_path=template_path, original_error=e
            ) from e

        if not isinstance(markup, str):
            raise TemplateRenderError(
                f"Template renderer must produce a string, produced '{type(markup).__name__}'",
                template_path=template_path,
            )

        log_template_rendered(len(markup), time.perf_counter() - start_time)
        return markup
