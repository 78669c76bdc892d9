"""
Shared fixtures: stand-ins for the browser and the filesystem observer.

Unit tests never launch Chromium or watch the real filesystem. The fakes here
record what the engine asked of them so tests can assert on it.
"""

import asyncio
from typing import Callable, List

import pytest

import pme.contexts.building.builder as builder_module
import pme.contexts.building.watcher as watcher_module

FAKE_PDF_HEADER = b"%PDF-fake\n"


class FakeDocumentRenderer:
    """
    Records markup instead of exporting it; 'PDF' bytes embed the markup.

    Like Playwright, the bytes are written to `path` when one is given.
    """

    def __init__(self, launch_options=None):
        self.launch_options = dict(launch_options or {})
        self.rendered: List[str] = []
        self.pdf_options: List[dict] = []
        self.paths: List[str] = []
        self.close_calls = 0
        self.is_closed = False
        self.fail_with = None

    async def render_to_bytes(self, markup, pdf_options=None, path=None):
        if self.fail_with is not None:
            raise self.fail_with
        self.rendered.append(markup)
        self.pdf_options.append(dict(pdf_options or {}))
        pdf = FAKE_PDF_HEADER + markup.encode("utf-8")
        if path is not None:
            self.paths.append(path)
            with open(path, "wb") as f:
                f.write(pdf)
        return pdf

    async def close(self):
        self.close_calls += 1
        self.is_closed = True


class FakeObserver:
    """watchdog Observer double; tests push events with emit()."""

    def __init__(self):
        self.handler = None
        self.path = None
        self.recursive = None
        self.started = False
        self.stopped = False
        self.joined = False

    def schedule(self, handler, path, recursive=False):
        self.handler = handler
        self.path = path
        self.recursive = recursive

    def start(self):
        self.started = True

    def stop(self):
        self.stopped = True

    def join(self, timeout=None):
        self.joined = True

    def is_alive(self):
        return self.started and not self.stopped

    def emit(self, event):
        self.handler.dispatch(event)


@pytest.fixture
def renderers(monkeypatch) -> List[FakeDocumentRenderer]:
    """Replace the Playwright renderer; returns the list of launched fakes."""
    launched: List[FakeDocumentRenderer] = []

    class _LaunchingFake(FakeDocumentRenderer):
        @classmethod
        async def launch(cls, launch_options=None):
            renderer = cls(launch_options)
            launched.append(renderer)
            return renderer

    monkeypatch.setattr(builder_module, "DocumentRenderer", _LaunchingFake)
    return launched


@pytest.fixture
def observers(monkeypatch) -> List[FakeObserver]:
    """Replace the watchdog Observer; returns the list of created fakes."""
    created: List[FakeObserver] = []

    def _make_observer():
        observer = FakeObserver()
        created.append(observer)
        return observer

    monkeypatch.setattr(watcher_module, "Observer", _make_observer)
    return created


@pytest.fixture
def project(tmp_path):
    """A project directory with a one-line template and matching data."""
    (tmp_path / "template.html").write_text("<h1>{{ title }}</h1>", encoding="utf-8")
    (tmp_path / "data.yml").write_text("title: Hello\n", encoding="utf-8")
    return tmp_path


async def _wait_until(condition: Callable[[], bool], timeout: float = 2.0) -> bool:
    """Poll `condition` on the running loop until it holds or `timeout` passes."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not condition():
        if loop.time() > deadline:
            return False
        await asyncio.sleep(0.01)
    return True


@pytest.fixture
def wait_until():
    return _wait_until
