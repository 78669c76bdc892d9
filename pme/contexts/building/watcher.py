"""
Watch mode: rebuild whenever the data or template file is updated in place.

The filesystem subscription is an async iterator of event batches. watchdog's
Observer runs in its own thread and only ever hands events to the event loop;
everything that touches the Builder runs on the loop, one batch at a time.
"""

import asyncio
import os
from dataclasses import dataclass
from typing import AsyncIterator, Awaitable, Callable, Iterable, List, Optional, Set

from dotenv import load_dotenv
from watchdog.events import (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from pme.contexts.building.builder import Builder, BuildRequest, get_builder
from pme.contexts.building.logger import (
    _log_debug,
    _log_warning,
    log_rebuild_trigger,
    log_session_error,
    log_watch_start,
)
from pme.exceptions import SubscriptionError, WatchTargetMissingError, is_transient
from pme.utils.paths import absolutize_path

load_dotenv()

# Seconds to wait after the first event of a batch so related events land together
WATCH_LATENCY = float(os.getenv("PME_WATCH_LATENCY", "0.05"))
# Seconds to wait before retrying a build that read a half-written data file
RETRY_DELAY = float(os.getenv("PME_RETRY_DELAY", "0.1"))
# Seconds between observer liveness checks while no events arrive
HEALTH_CHECK_INTERVAL = 1.0

CREATE = "create"
UPDATE = "update"
DELETE = "delete"

ErrorReporter = Callable[[BaseException], None]
Cleanup = Callable[[], Awaitable[None]]


@dataclass(frozen=True)
class ChangeEvent:
    """One filesystem change: `type` is "create", "update" or "delete"."""

    type: str
    path: str


def to_change_events(event: FileSystemEvent) -> List[ChangeEvent]:
    """
    Translate a watchdog event into change events.

    A move is reported as a delete of the source and a create of the
    destination. Directory events and open/close notifications are dropped.
    """
    if event.is_directory:
        return []

    src_path = os.path.normpath(os.fsdecode(event.src_path))

    if event.event_type == EVENT_TYPE_MODIFIED:
        return [ChangeEvent(UPDATE, src_path)]
    if event.event_type == EVENT_TYPE_CREATED:
        return [ChangeEvent(CREATE, src_path)]
    if event.event_type == EVENT_TYPE_DELETED:
        return [ChangeEvent(DELETE, src_path)]
    if event.event_type == EVENT_TYPE_MOVED:
        dest_path = os.path.normpath(os.fsdecode(event.dest_path))
        return [ChangeEvent(DELETE, src_path), ChangeEvent(CREATE, dest_path)]

    return []


def filter_events(events: Iterable[ChangeEvent], watched_paths: Iterable[str]) -> Set[str]:
    """
    Return the watched paths that were updated in place in `events`.

    Only "update" events count: creating or deleting a watched file never
    triggers a rebuild.
    """
    watched = set(watched_paths)
    return {event.path for event in events if event.type == UPDATE and event.path in watched}


class _EventForwarder(FileSystemEventHandler):
    """Runs in the observer thread; hands every change to the event loop."""

    def __init__(self, loop: asyncio.AbstractEventLoop, queue: "asyncio.Queue[ChangeEvent]"):
        self.loop = loop
        self.queue = queue

    def on_any_event(self, event):
        if self.loop.is_closed():
            return
        for change in to_change_events(event):
            self.loop.call_soon_threadsafe(self.queue.put_nowait, change)


class Subscription:
    """
    Filesystem change subscription over `root_dir` (recursive).

    Example:
        subscription = Subscription("/path/to/project")
        await subscription.start()
        async for batch in subscription.batches():
            ...
        await subscription.unsubscribe()
    """

    def __init__(self, root_dir: str, latency: float = WATCH_LATENCY):
        self.root_dir = root_dir
        self.latency = latency
        self._observer = None
        self._queue: Optional["asyncio.Queue[ChangeEvent]"] = None

    @property
    def is_active(self) -> bool:
        return self._observer is not None

    async def start(self) -> None:
        """Schedule the observer on `root_dir` and start its thread."""
        loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue()

        observer = Observer()
        observer.schedule(_EventForwarder(loop, self._queue), self.root_dir, recursive=True)
        observer.start()
        self._observer = observer

    async def batches(self) -> AsyncIterator[List[ChangeEvent]]:
        """
        Yield batches of change events until unsubscribed.

        A batch starts with the first pending event and collects everything
        that arrives within `latency` seconds after it.

        Raises:
            SubscriptionError: If the observer thread dies
        """
        while self._observer is not None:
            try:
                first = await asyncio.wait_for(self._queue.get(), HEALTH_CHECK_INTERVAL)
            except asyncio.TimeoutError:
                if self._observer is not None and not self._observer.is_alive():
                    raise SubscriptionError(f"Stopped watching '{self.root_dir}' unexpectedly")
                continue

            await asyncio.sleep(self.latency)

            batch = [first]
            while not self._queue.empty():
                batch.append(self._queue.get_nowait())

            yield batch

    async def unsubscribe(self) -> None:
        """Stop the observer and wait for its thread. Safe to call twice."""
        if self._observer is None:
            return

        observer, self._observer = self._observer, None
        observer.stop()
        await asyncio.to_thread(observer.join)


class WatchSession:
    """
    A Builder plus a Subscription, rebuilding on qualifying changes.

    The session owns its subscription and closes the Builder when it ends,
    either through close() or after an unrecoverable error. Batches are
    handled one at a time, so rebuilds never overlap.
    """

    def __init__(
        self,
        builder: Builder,
        subscription: Subscription,
        request: BuildRequest,
        watched_paths: Iterable[str],
        on_error: Optional[ErrorReporter] = None,
        retry_delay: float = RETRY_DELAY,
    ):
        self.builder = builder
        self.subscription = subscription
        self.request = request
        self.watched_paths = tuple(watched_paths)
        self.on_error = on_error
        self.retry_delay = retry_delay
        self.rebuild_count = 0
        self._build_lock = asyncio.Lock()
        self._task: Optional[asyncio.Task] = None
        self._closed = False
        self._closing: Optional["asyncio.Future[None]"] = None

    @property
    def is_closed(self) -> bool:
        return self._closed

    def start(self) -> None:
        """Start consuming event batches in a background task."""
        self._task = asyncio.create_task(self._consume())

    async def _consume(self) -> None:
        try:
            async for batch in self.subscription.batches():
                await self.handle_batch(batch)
        except Exception as e:
            await self.close()
            self._report(e)

    def _report(self, error: Exception) -> None:
        if self.on_error is None:
            log_session_error(error, "Watch session stopped")
            return

        try:
            self.on_error(error)
        except Exception as reporter_error:
            log_session_error(error, "Watch session stopped")
            log_session_error(reporter_error, "Error reporter failed")

    async def handle_batch(self, batch: Iterable[ChangeEvent]) -> bool:
        """
        Rebuild once if `batch` updated a watched file.

        Returns:
            True if a rebuild ran
        """
        changed = filter_events(batch, self.watched_paths)
        if not changed:
            return False

        log_rebuild_trigger(changed)

        async with self._build_lock:
            await self._rebuild()

        self.rebuild_count += 1
        return True

    async def _rebuild(self) -> None:
        # A writer that truncates before writing can make the data file read
        # as empty right after the change notification.
        try:
            await self.builder.build(self.request)
            return
        except Exception as e:
            if not is_transient(e):
                raise
            _log_debug(f"Data file read mid-write, retrying in {self.retry_delay}s: {e}")

        await asyncio.sleep(self.retry_delay)

        try:
            await self.builder.build(self.request)
        except Exception as e:
            if not is_transient(e):
                raise
            _log_warning(f"Skipped rebuild, data file is still incomplete: {e}")

    async def close(self) -> None:
        """
        Stop watching and close the Builder. Idempotent.

        A rebuild already in flight is allowed to finish first. Every call
        waits for the same teardown, including one the session started
        itself after a fatal rebuild error.
        """
        if self._closing is None:
            self._closed = True
            from_consumer = self._task is not None and self._task is asyncio.current_task()
            self._closing = asyncio.ensure_future(self._teardown(stop_consumer=not from_consumer))

        await asyncio.shield(self._closing)

    async def _teardown(self, stop_consumer: bool) -> None:
        try:
            task = self._task
            if stop_consumer and task is not None:
                async with self._build_lock:
                    task.cancel()
                await asyncio.wait([task])
        finally:
            try:
                await self.subscription.unsubscribe()
            finally:
                await self.builder.close()


async def develop(
    request: BuildRequest,
    root_dir: Optional[str] = None,
    on_error: Optional[ErrorReporter] = None,
    latency: float = WATCH_LATENCY,
    retry_delay: float = RETRY_DELAY,
) -> Cleanup:
    """
    Build once, then rebuild whenever the data or template file is updated.

    Args:
        request: Paths and options for every build
        root_dir: Directory watched and used to resolve relative paths
            (default: current working directory)
        on_error: Called with the error that ended the session, after the
            session has been torn down (default: log it)
        latency: Event batching window in seconds
        retry_delay: Delay before retrying a build that read a half-written
            data file

    Returns:
        Async cleanup function that stops watching and closes the Builder

    Raises:
        WatchTargetMissingError: If the data or template file does not exist
            (checked before any browser is launched)
        Any error from the initial build. Resources acquired before the
        failure are released first.
    """
    root_dir = os.getcwd() if root_dir is None else root_dir
    builder = None
    subscription = None

    try:
        watched_paths = (
            absolutize_path(request.data, root_dir),
            absolutize_path(request.template, root_dir),
        )

        for path in watched_paths:
            if not os.path.exists(path):
                raise WatchTargetMissingError(f"'{path}' does not exist", path)

        builder = await get_builder(request.options, root_dir=root_dir)
        await builder.build(request)

        subscription = Subscription(root_dir, latency=latency)
        await subscription.start()
    except BaseException:
        try:
            if subscription is not None:
                await subscription.unsubscribe()
        finally:
            if builder is not None:
                await builder.close()
        raise

    session = WatchSession(
        builder, subscription, request, watched_paths, on_error=on_error, retry_delay=retry_delay
    )
    session.start()
    log_watch_start(root_dir, watched_paths)

    return session.close
