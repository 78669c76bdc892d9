"""
PDF export through a long-lived headless Chromium session.

A DocumentRenderer owns one Playwright driver, one browser process and one
page. Launching is the expensive part (process spawn, IPC handshake), so a
Builder launches one renderer and reuses it for every build.
"""

import time
from typing import Any, Mapping, Optional
from urllib.parse import quote

from playwright.async_api import Browser, Page, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError

from pme.contexts.rendering.logger import (
    _log_debug,
    log_browser_close,
    log_browser_launch,
    log_pdf_export,
)
from pme.exceptions import DocumentRenderError, InvalidArgumentError

# The parent process owns SIGINT/SIGTERM/SIGHUP so it can order teardown itself
SIGNAL_HANDLING_DISABLED = {
    "handle_sigint": False,
    "handle_sigterm": False,
    "handle_sighup": False,
}

# Chromium refuses to navigate to URLs longer than this
MAX_DATA_URL_LENGTH = 2 * 1024 * 1024


def encode_html(html: str) -> str:
    """
    Encode HTML markup as a `data:text/html` URL.

    Percent-encodes everything except the characters JavaScript's
    encodeURIComponent leaves alone, so the URL survives navigation intact.
    """
    if not isinstance(html, str):
        raise InvalidArgumentError(f"'html' must be a string, given '{type(html).__name__}'")

    return "data:text/html," + quote(html, safe="!~*'()")


async def _release(playwright: Playwright, browser: Optional[Browser]) -> None:
    """Shut down a partially launched session: browser first, then the driver."""
    try:
        if browser is not None:
            await browser.close()
    finally:
        await playwright.stop()


class DocumentRenderer:
    """
    Renders HTML markup to PDF bytes with a dedicated browser page.

    Create with `await DocumentRenderer.launch(...)`; release with
    `await renderer.close()`. After closing, `render_to_bytes` raises.
    """

    def __init__(self, playwright: Playwright, browser: Browser, page: Page):
        self.playwright: Optional[Playwright] = playwright
        self.browser: Optional[Browser] = browser
        self.page: Optional[Page] = page
        self.is_closed = False

    @classmethod
    async def launch(
        cls, launch_options: Optional[Mapping[str, Any]] = None
    ) -> "DocumentRenderer":
        """
        Start Playwright, launch Chromium and open one page.

        Args:
            launch_options: Keyword arguments for `chromium.launch` (e.g.,
                {"executable_path": ..., "args": [...]}). Signal handling
                options are always forced off.

        Returns:
            An open DocumentRenderer

        Raises:
            DocumentRenderError: If the browser or page cannot be created
            InvalidArgumentError: If `launch_options` are not accepted by
                `chromium.launch`

        Anything already started is shut down before an error propagates.
        """
        options = {**(launch_options or {}), **SIGNAL_HANDLING_DISABLED}
        start_time = time.perf_counter()

        playwright = await async_playwright().start()
        browser = None

        try:
            browser = await playwright.chromium.launch(**options)
            page = await browser.new_page()
        except PlaywrightError as e:
            await _release(playwright, browser)
            raise DocumentRenderError("Failed to launch browser", original_error=e) from e
        except TypeError as e:
            await _release(playwright, browser)
            raise InvalidArgumentError(f"Invalid launch_options: {e}") from e
        except BaseException:
            await _release(playwright, browser)
            raise

        log_browser_launch(dict(launch_options or {}), time.perf_counter() - start_time)
        return cls(playwright, browser, page)

    async def _load(self, markup: str) -> None:
        url = encode_html(markup)

        if len(url) <= MAX_DATA_URL_LENGTH:
            await self.page.goto(url, wait_until="load")
        else:
            _log_debug(f"Markup too large for a data URL ({len(url)} chars), loading in place")
            await self.page.set_content(markup, wait_until="load")

    async def render_to_bytes(
        self,
        markup: str,
        pdf_options: Optional[Mapping[str, Any]] = None,
        path: Optional[str] = None,
    ) -> bytes:
        """
        Load `markup` into the page and export it as PDF.

        Args:
            markup: HTML to render
            pdf_options: Keyword arguments for `Page.pdf` (e.g.,
                {"format": "A4", "print_background": True})
            path: When given, Chromium also writes the PDF to this path.
                A "path" inside `pdf_options` is always ignored so the
                destination stays under the caller's control.

        Returns:
            PDF bytes

        Raises:
            DocumentRenderError: If the renderer is closed, or loading or
                exporting fails
            InvalidArgumentError: If `pdf_options` are not accepted by `Page.pdf`
        """
        if self.is_closed:
            raise DocumentRenderError("Document renderer is closed")

        options = dict(pdf_options or {})
        options.pop("path", None)
        if path is not None:
            options["path"] = path

        start_time = time.perf_counter()

        try:
            await self._load(markup)
            pdf = await self.page.pdf(**options)
        except PlaywrightError as e:
            raise DocumentRenderError("Failed to render PDF", original_error=e) from e
        except TypeError as e:
            raise InvalidArgumentError(f"Invalid pdf_options: {e}") from e

        log_pdf_export(len(pdf), time.perf_counter() - start_time, path)
        return pdf

    async def close(self) -> None:
        """Close the page, then the browser, then the driver. Idempotent."""
        if self.is_closed:
            return

        page, browser, playwright = self.page, self.browser, self.playwright
        self.page = self.browser = self.playwright = None
        self.is_closed = True

        try:
            await page.close()
        finally:
            try:
                await browser.close()
            finally:
                await playwright.stop()

        log_browser_close()
