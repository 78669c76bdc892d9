"""Unit tests for watch mode: event filtering, rebuild containment and cleanup."""

import asyncio
import os

import pytest
from watchdog.events import (
    DirCreatedEvent,
    FileClosedEvent,
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
)

from pme.contexts.building.builder import BuildRequest
from pme.contexts.building.watcher import (
    CREATE,
    DELETE,
    UPDATE,
    ChangeEvent,
    WatchSession,
    develop,
    filter_events,
    to_change_events,
)
from pme.exceptions import (
    DataParseError,
    InvalidDataShapeError,
    SubscriptionError,
    TemplateRenderError,
    WatchTargetMissingError,
)

DATA = "/project/data.yml"
TEMPLATE = "/project/template.html"
WATCHED = (DATA, TEMPLATE)
REQUEST = BuildRequest(data="data.yml", template="template.html", output="doc.pdf")


class SpyBuilder:
    """Counts builds; raises queued errors in order."""

    def __init__(self, errors=()):
        self.errors = list(errors)
        self.build_calls = 0
        self.close_calls = 0

    @property
    def is_closed(self):
        return self.close_calls > 0

    async def build(self, request):
        self.build_calls += 1
        if self.errors:
            raise self.errors.pop(0)

    async def close(self):
        self.close_calls += 1


class ListSubscription:
    """Yields the given batches, then waits until cancelled."""

    def __init__(self, batches=(), error=None):
        self._batches = list(batches)
        self.error = error
        self.unsubscribe_calls = 0

    async def batches(self):
        for batch in self._batches:
            yield batch
        if self.error is not None:
            raise self.error
        await asyncio.Event().wait()

    async def unsubscribe(self):
        self.unsubscribe_calls += 1


def make_session(builder=None, subscription=None, **kwargs):
    return WatchSession(
        builder or SpyBuilder(),
        subscription or ListSubscription(),
        REQUEST,
        WATCHED,
        retry_delay=0,
        **kwargs,
    )


@pytest.mark.unit
class TestToChangeEvents:
    def test_modified_is_update(self):
        assert to_change_events(FileModifiedEvent(DATA)) == [ChangeEvent(UPDATE, DATA)]

    def test_created_and_deleted(self):
        assert to_change_events(FileCreatedEvent(DATA)) == [ChangeEvent(CREATE, DATA)]
        assert to_change_events(FileDeletedEvent(DATA)) == [ChangeEvent(DELETE, DATA)]

    def test_move_is_delete_plus_create(self):
        events = to_change_events(FileMovedEvent("/project/.data.yml.swp", DATA))
        assert events == [
            ChangeEvent(DELETE, "/project/.data.yml.swp"),
            ChangeEvent(CREATE, DATA),
        ]

    def test_directory_and_close_events_are_dropped(self):
        assert to_change_events(DirCreatedEvent("/project/out")) == []
        assert to_change_events(FileClosedEvent(DATA)) == []

    def test_paths_are_normalized(self):
        assert to_change_events(FileModifiedEvent("/project/./sub/../data.yml")) == [
            ChangeEvent(UPDATE, DATA)
        ]


@pytest.mark.unit
class TestFilterEvents:
    def test_only_updates_of_watched_paths(self):
        events = [
            ChangeEvent(CREATE, DATA),
            ChangeEvent(UPDATE, DATA),
            ChangeEvent(UPDATE, "/project/doc.pdf"),
            ChangeEvent(DELETE, TEMPLATE),
        ]
        assert filter_events(events, WATCHED) == {DATA}

    def test_unrelated_changes(self):
        events = [ChangeEvent(UPDATE, "/project/notes.txt"), ChangeEvent(UPDATE, "/other/data.yml")]
        assert filter_events(events, WATCHED) == set()

    def test_exact_match_only(self):
        assert filter_events([ChangeEvent(UPDATE, DATA + ".bak")], WATCHED) == set()


@pytest.mark.unit
class TestHandleBatch:
    def test_create_and_update_in_one_batch_rebuild_once(self):
        builder = SpyBuilder()
        session = make_session(builder)
        batch = [ChangeEvent(CREATE, DATA), ChangeEvent(UPDATE, DATA)]

        assert asyncio.run(session.handle_batch(batch)) is True
        assert builder.build_calls == 1

    def test_both_files_updated_rebuild_once(self):
        builder = SpyBuilder()
        session = make_session(builder)
        batch = [ChangeEvent(UPDATE, DATA), ChangeEvent(UPDATE, TEMPLATE)]

        asyncio.run(session.handle_batch(batch))
        assert builder.build_calls == 1

    def test_create_only_does_not_rebuild(self):
        builder = SpyBuilder()
        session = make_session(builder)

        assert asyncio.run(session.handle_batch([ChangeEvent(CREATE, DATA)])) is False
        assert builder.build_calls == 0

    def test_unrelated_change_does_not_rebuild(self):
        builder = SpyBuilder()
        session = make_session(builder)

        asyncio.run(session.handle_batch([ChangeEvent(UPDATE, "/project/doc.pdf")]))
        assert builder.build_calls == 0


@pytest.mark.unit
class TestTransientErrors:
    def test_retried_once_after_empty_read(self):
        builder = SpyBuilder(errors=[InvalidDataShapeError("empty", DATA, empty_source=True)])
        session = make_session(builder)

        asyncio.run(session.handle_batch([ChangeEvent(UPDATE, DATA)]))

        assert builder.build_calls == 2

    def test_repeated_empty_read_is_tolerated(self):
        builder = SpyBuilder(
            errors=[
                DataParseError("empty", DATA, empty_source=True),
                DataParseError("empty", DATA, empty_source=True),
            ]
        )
        session = make_session(builder)

        asyncio.run(session.handle_batch([ChangeEvent(UPDATE, DATA)]))

        assert builder.build_calls == 2
        assert not builder.is_closed

    def test_non_transient_error_after_retry_propagates(self):
        builder = SpyBuilder(
            errors=[
                DataParseError("empty", DATA, empty_source=True),
                TemplateRenderError("Failed to render template"),
            ]
        )
        session = make_session(builder)

        with pytest.raises(TemplateRenderError):
            asyncio.run(session.handle_batch([ChangeEvent(UPDATE, DATA)]))

    def test_explicit_null_is_not_retried(self):
        builder = SpyBuilder(errors=[InvalidDataShapeError("given 'null'", DATA)])
        session = make_session(builder)

        with pytest.raises(InvalidDataShapeError):
            asyncio.run(session.handle_batch([ChangeEvent(UPDATE, DATA)]))

        assert builder.build_calls == 1


@pytest.mark.unit
class TestSessionLifecycle:
    def test_fatal_rebuild_error_tears_down_and_reports(self, wait_until):
        reported = []
        builder = SpyBuilder(errors=[TemplateRenderError("Failed to render template")])
        subscription = ListSubscription([[ChangeEvent(UPDATE, TEMPLATE)]])

        async def scenario():
            session = make_session(builder, subscription, on_error=reported.append)
            session.start()
            assert await wait_until(lambda: reported)
            return session

        session = asyncio.run(scenario())

        assert isinstance(reported[0], TemplateRenderError)
        assert session.is_closed
        assert builder.is_closed
        assert subscription.unsubscribe_calls == 1

    def test_subscription_error_tears_down_and_reports(self, wait_until):
        reported = []
        builder = SpyBuilder()
        subscription = ListSubscription(error=SubscriptionError("observer died"))

        async def scenario():
            session = make_session(builder, subscription, on_error=reported.append)
            session.start()
            assert await wait_until(lambda: reported)

        asyncio.run(scenario())

        assert isinstance(reported[0], SubscriptionError)
        assert builder.is_closed

    def test_close_waits_for_teardown_already_in_progress(self, wait_until):
        events = []

        class SlowClosingBuilder(SpyBuilder):
            async def close(self):
                events.append("builder.close started")
                await asyncio.sleep(0.1)
                await super().close()
                events.append("builder.close finished")

        builder = SlowClosingBuilder(errors=[TemplateRenderError("Failed to render template")])
        subscription = ListSubscription([[ChangeEvent(UPDATE, TEMPLATE)]])
        reported = []

        async def scenario():
            session = make_session(builder, subscription, on_error=reported.append)
            session.start()
            assert await wait_until(lambda: "builder.close started" in events)
            await session.close()
            events.append("cleanup returned")

        asyncio.run(scenario())

        assert events == [
            "builder.close started",
            "builder.close finished",
            "cleanup returned",
        ]
        assert builder.close_calls == 1
        assert subscription.unsubscribe_calls == 1

    def test_failing_error_reporter_is_contained(self, wait_until):
        builder = SpyBuilder(errors=[TemplateRenderError("Failed to render template")])
        subscription = ListSubscription([[ChangeEvent(UPDATE, TEMPLATE)]])

        def broken_reporter(error):
            raise RuntimeError("reporter broke")

        async def scenario():
            session = make_session(builder, subscription, on_error=broken_reporter)
            session.start()
            assert await wait_until(lambda: session._task.done())
            return session._task

        task = asyncio.run(scenario())

        assert task.exception() is None
        assert builder.is_closed

    def test_close_is_idempotent(self):
        builder = SpyBuilder()
        subscription = ListSubscription()

        async def scenario():
            session = make_session(builder, subscription)
            session.start()
            await asyncio.sleep(0)
            await session.close()
            await session.close()

        asyncio.run(scenario())

        assert builder.close_calls == 1
        assert subscription.unsubscribe_calls == 1

    def test_close_waits_for_in_flight_rebuild(self):
        events = []

        class SlowBuilder(SpyBuilder):
            async def build(self, request):
                events.append("build started")
                await asyncio.sleep(0.05)
                events.append("build finished")

            async def close(self):
                events.append("closed")
                await super().close()

        subscription = ListSubscription([[ChangeEvent(UPDATE, DATA)]])

        async def scenario():
            session = make_session(SlowBuilder(), subscription)
            session.start()
            while "build started" not in events:
                await asyncio.sleep(0)
            await session.close()

        asyncio.run(scenario())

        assert events == ["build started", "build finished", "closed"]


@pytest.mark.unit
class TestDevelop:
    def test_missing_template_fails_before_launching_browser(
        self, project, renderers, observers
    ):
        (project / "template.html").unlink()

        with pytest.raises(WatchTargetMissingError) as excinfo:
            asyncio.run(develop(REQUEST, str(project)))

        assert renderers == []
        assert observers == []
        assert excinfo.value.path == os.path.join(str(project), "template.html")

    def test_missing_data_fails_before_launching_browser(self, project, renderers, observers):
        (project / "data.yml").unlink()

        with pytest.raises(WatchTargetMissingError):
            asyncio.run(develop(REQUEST, str(project)))

        assert renderers == []

    def test_failed_initial_build_releases_browser(self, project, renderers, observers):
        (project / "template.html").write_text("{% if %}")

        with pytest.raises(TemplateRenderError):
            asyncio.run(develop(REQUEST, str(project)))

        assert renderers[0].is_closed
        assert observers == []

    def test_failed_subscription_unwinds(self, project, renderers, observers, monkeypatch):
        import pme.contexts.building.watcher as watcher_module

        class BrokenObserver:
            def schedule(self, handler, path, recursive=False):
                raise OSError("inotify watch limit reached")

        monkeypatch.setattr(watcher_module, "Observer", BrokenObserver)

        with pytest.raises(OSError):
            asyncio.run(develop(REQUEST, str(project)))

        assert renderers[0].is_closed

    def test_builds_eagerly_then_rebuilds_on_update(
        self, project, renderers, observers, wait_until
    ):
        data_path = os.path.join(str(project), "data.yml")

        async def scenario():
            cleanup = await develop(REQUEST, str(project), latency=0)
            renderer = renderers[0]
            observer = observers[0]
            assert renderer.rendered == ["<h1>Hello</h1>"]
            assert observer.path == str(project) and observer.recursive

            (project / "data.yml").write_text("title: Changed\n")
            observer.emit(FileCreatedEvent(data_path))
            observer.emit(FileModifiedEvent(data_path))
            assert await wait_until(lambda: len(renderer.rendered) == 2)

            observer.emit(FileModifiedEvent(os.path.join(str(project), "doc.pdf")))
            await asyncio.sleep(0.05)

            await cleanup()
            return cleanup.__self__

        session = asyncio.run(scenario())

        assert renderers[0].rendered == ["<h1>Hello</h1>", "<h1>Changed</h1>"]
        assert session.rebuild_count == 1
        assert observers[0].stopped and observers[0].joined

    def test_cleanup_leaves_builder_closed(self, project, renderers, observers):
        async def scenario():
            cleanup = await develop(REQUEST, str(project), latency=0)
            await cleanup()
            await cleanup()

            session = cleanup.__self__
            # Forced rebuild past the public API must see a closed Builder
            await session.builder.build(REQUEST)
            return session

        session = asyncio.run(scenario())

        assert session.builder.is_closed
        assert renderers[0].rendered == ["<h1>Hello</h1>"]
        assert renderers[0].close_calls == 1
