"""
Builder: renders a template and a data file into a PDF.

A Builder owns one TemplateRenderer and one DocumentRenderer (and through it
a Chromium process). It is either open, and build() does real work, or
closed, and both build() and close() do nothing. The only transition is
open -> closed.

Callers must await each build() before starting the next one; the Builder
does no locking of its own.
"""

import asyncio
import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from pme.config import PMEConfig, define_config
from pme.contexts.building.logger import log_build_result, log_build_start
from pme.contexts.rendering.document_renderer import DocumentRenderer
from pme.contexts.templating.data_loader import load_data
from pme.contexts.templating.template_renderer import TemplateRenderer
from pme.exceptions import (
    InvalidArgumentError,
    NotFoundError,
    TemplateNotFoundError,
    TemplateRenderError,
)
from pme.utils.paths import absolutize_path
from pme.utils.pdf_processing import page_count


@dataclass(frozen=True)
class BuildRequest:
    """
    Parameters of one render.

    Attributes:
        data: Path to the YAML/JSON data file
        template: Path to the template file
        output: Path to the PDF output file
        options: Options forwarded to Jinja2 and Playwright (template_options
            are only read when the Builder is created)
    """

    data: str
    template: str
    output: str
    options: Optional[PMEConfig] = None


class Builder:
    """
    Owns per-session rendering resources and exposes build()/close().

    Create with `await Builder.create(...)` (or `get_builder`), never
    directly, so both renderers are ready before the first build.

    Example:
        builder = await Builder.create(options)
        try:
            await builder.build(BuildRequest("data.yml", "template.html", "out.pdf"))
        finally:
            await builder.close()
    """

    def __init__(
        self,
        template_renderer: TemplateRenderer,
        document_renderer: DocumentRenderer,
        options: Optional[PMEConfig] = None,
        root_dir: Optional[str] = None,
    ):
        self.options = options or PMEConfig()
        self.root_dir = os.getcwd() if root_dir is None else root_dir
        self._template_renderer: Optional[TemplateRenderer] = template_renderer
        self._document_renderer: Optional[DocumentRenderer] = document_renderer
        self._closed = False
        self._closing: Optional["asyncio.Future[None]"] = None

    @classmethod
    async def create(
        cls, options: Optional[PMEConfig] = None, root_dir: Optional[str] = None
    ) -> "Builder":
        """
        Initialize both renderers and return an open Builder.

        The template renderer is created before the browser is launched.
        """
        options = define_config(options) if options is not None else PMEConfig()

        template_renderer = TemplateRenderer(
            options.template_options, renderer_factory=options.template_renderer
        )
        document_renderer = await DocumentRenderer.launch(options.launch_options)

        return cls(template_renderer, document_renderer, options=options, root_dir=root_dir)

    @property
    def is_closed(self) -> bool:
        return self._closed

    async def build(self, request: BuildRequest) -> None:
        """
        Render `request` to its output path. Does nothing once closed.

        Steps run strictly in order and the first failure aborts the rest:
        resolve paths, read the template, load the data, render markup,
        create the output directory, export the PDF. The export is forced to
        the output path, and Playwright only writes the file once the PDF has
        been produced, so a failed build never clobbers a previous output.

        Raises:
            InvalidArgumentError: If the root directory or a path is not a string
            NotFoundError: If the root directory does not exist
            TemplateNotFoundError: If the template file does not exist
            DataNotFoundError, UnsupportedFormatError, DataParseError,
                InvalidDataShapeError: From loading the data file
            TemplateRenderError: If the template is not valid UTF-8 or fails
                to render
            DocumentRenderError: If the PDF export fails
        """
        if self._closed:
            return

        if not isinstance(self.root_dir, str):
            raise InvalidArgumentError(
                f"'root_dir' must be a string, given '{type(self.root_dir).__name__}'"
            )
        if not os.path.isdir(self.root_dir):
            raise NotFoundError(f"Root directory '{self.root_dir}' does not exist", self.root_dir)

        template_file = absolutize_path(request.template, self.root_dir)
        data_file = absolutize_path(request.data, self.root_dir)
        output_file = absolutize_path(request.output, self.root_dir)

        log_build_start(template_file, data_file, output_file)
        start_time = time.perf_counter()

        if not os.path.isfile(template_file):
            raise TemplateNotFoundError(
                f"Template file '{template_file}' does not exist", template_file
            )
        try:
            with open(template_file, encoding="utf-8") as f:
                template_source = f.read()
        except UnicodeDecodeError as e:
            raise TemplateRenderError(
                "Template file is not valid UTF-8",
                template_path=Path(template_file),
                original_error=e,
            ) from e

        data = load_data(data_file)

        markup = await self._template_renderer.render(
            template_source, data, template_path=Path(template_file)
        )

        output_dir = os.path.dirname(output_file)
        os.makedirs(output_dir, exist_ok=True)

        options = define_config(request.options) if request.options is not None else self.options
        pdf = await self._document_renderer.render_to_bytes(
            markup, options.pdf_options, path=output_file
        )

        log_build_result(output_file, len(pdf), time.perf_counter() - start_time, page_count(pdf))

    async def close(self) -> None:
        """
        Release the browser and drop both renderers. Idempotent.

        Every call waits for the same teardown, so a second caller does not
        return while the browser is still shutting down. The Builder is
        closed afterwards even if shutting the browser down raises.
        """
        if self._closing is None:
            document_renderer = self._document_renderer
            self._template_renderer = None
            self._document_renderer = None
            self._closed = True
            self._closing = asyncio.ensure_future(document_renderer.close())

        await asyncio.shield(self._closing)


async def get_builder(options: Optional[PMEConfig] = None, root_dir: Optional[str] = None) -> Builder:
    """Create an open Builder (see Builder.create)."""
    return await Builder.create(options, root_dir=root_dir)


async def build(request: BuildRequest, root_dir: Optional[str] = None) -> None:
    """
    Launch the rendering resources, build once, then release them.

    The Builder is closed on every exit path, including a failed build.
    """
    builder = None

    try:
        builder = await get_builder(request.options, root_dir=root_dir)
        await builder.build(request)
    finally:
        if builder is not None:
            await builder.close()
