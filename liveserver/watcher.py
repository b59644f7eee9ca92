"""Filesystem change watcher.

watchdog observes the roots on its own threads; events that survive the
ignore chain are handed to the asyncio loop and read back with
``get()``, ``async for`` or ``batches()``.
"""
import asyncio
import enum
import logging
import os
from dataclasses import dataclass
from typing import AsyncIterator, Iterable, Iterator, List, Optional

from watchdog.events import (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer
from watchdog.observers.polling import PollingObserver

from .matchers import DEFAULT_IGNORE, as_matcher, is_ignored

logger = logging.getLogger(__name__)


class ChangeKind(enum.Enum):
    ADDED = "add"
    MODIFIED = "change"
    REMOVED = "unlink"
    DIR_ADDED = "addDir"
    DIR_REMOVED = "unlinkDir"


@dataclass(frozen=True)
class ChangeEvent:
    path: str
    kind: ChangeKind


def changes_from(event: FileSystemEvent) -> Iterator[ChangeEvent]:
    """Translate one watchdog event into zero or more ChangeEvents.

    Directory "modified" events only mean a child changed and are dropped,
    as are open/close notifications.
    """
    is_dir = event.is_directory
    src = os.fsdecode(event.src_path)
    added = ChangeKind.DIR_ADDED if is_dir else ChangeKind.ADDED
    removed = ChangeKind.DIR_REMOVED if is_dir else ChangeKind.REMOVED

    if event.event_type == EVENT_TYPE_CREATED:
        yield ChangeEvent(src, added)
    elif event.event_type == EVENT_TYPE_MODIFIED:
        if not is_dir:
            yield ChangeEvent(src, ChangeKind.MODIFIED)
    elif event.event_type == EVENT_TYPE_DELETED:
        yield ChangeEvent(src, removed)
    elif event.event_type == EVENT_TYPE_MOVED:
        yield ChangeEvent(src, removed)
        yield ChangeEvent(os.fsdecode(event.dest_path), added)


class _RootHandler(FileSystemEventHandler):
    def __init__(self, watcher: "ChangeWatcher", root: str):
        super().__init__()
        self.watcher = watcher
        self.root = root

    def on_any_event(self, event):
        try:
            for change in changes_from(event):
                self.watcher.emit(change, self.root)
        except Exception:
            # Keep the observer thread alive for the other events.
            logger.exception("Watcher error while handling %s", event)


class ChangeWatcher:
    def __init__(
        self,
        roots: Iterable[str],
        ignore: Iterable = (),
        poll: bool = False,
        poll_interval: float = 1.0,
    ):
        self.roots = [os.path.abspath(r) for r in roots]
        self.matchers = [DEFAULT_IGNORE] + [as_matcher(m) for m in ignore]
        self.poll = poll
        self.poll_interval = poll_interval
        self._observer = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._queue: Optional[asyncio.Queue] = None

    @property
    def running(self) -> bool:
        return self._observer is not None

    def is_ignored(self, path: str, root: str) -> bool:
        return is_ignored(path, root, self.matchers)

    def emit(self, change: ChangeEvent, root: str) -> None:
        """Queue ``change`` unless ignored. Safe to call from any thread."""
        if self.is_ignored(change.path, root):
            return
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(self._queue.put_nowait, change)

    def _make_observer(self):
        if self.poll:
            return PollingObserver(timeout=self.poll_interval)
        return Observer()

    def _start_observer(self):
        observer = self._make_observer()
        observer.start()
        for root in self.roots:
            if not os.path.exists(root):
                logger.error("Cannot watch %s: no such file or directory", root)
                continue
            try:
                observer.schedule(_RootHandler(self, root), root, recursive=True)
            except OSError as e:
                logger.error("Cannot watch %s: %s", root, e)
        return observer

    async def start(self) -> None:
        """Start observing. The initial scan reports nothing."""
        if self._observer is not None:
            return
        self._loop = asyncio.get_running_loop()
        if self._queue is None:
            self._queue = asyncio.Queue()
        future = self._loop.run_in_executor(None, self._start_observer)
        try:
            self._observer = await asyncio.shield(future)
        except asyncio.CancelledError:
            # Don't leak the observer threads when cancelled mid-start.
            observer = await future
            observer.stop()
            raise

    async def stop(self) -> None:
        observer, self._observer = self._observer, None
        if observer is None:
            return
        observer.stop()
        await asyncio.get_running_loop().run_in_executor(None, observer.join)

    async def get(self) -> ChangeEvent:
        if self._queue is None:
            self._queue = asyncio.Queue()
        return await self._queue.get()

    def __aiter__(self):
        return self

    async def __anext__(self) -> ChangeEvent:
        return await self.get()

    async def batches(self, window: float = 0.0) -> AsyncIterator[List[ChangeEvent]]:
        """Yield lists of events.

        With a positive ``window`` every event arriving within ``window``
        seconds of the first one of a batch joins that batch; otherwise
        each event is a batch of its own.
        """
        loop = asyncio.get_running_loop()
        while True:
            batch = [await self.get()]
            if window > 0:
                deadline = loop.time() + window
                while True:
                    remaining = deadline - loop.time()
                    if remaining <= 0:
                        break
                    try:
                        batch.append(await asyncio.wait_for(self.get(), remaining))
                    except asyncio.TimeoutError:
                        break
            yield batch
