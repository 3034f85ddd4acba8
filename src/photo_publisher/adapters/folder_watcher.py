"""Folder watcher that forwards new files onto an asyncio queue."""

import asyncio
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from watchdog.events import (
    DirCreatedEvent,
    DirMovedEvent,
    FileCreatedEvent,
    FileMovedEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer
from watchdog.observers.api import BaseObserver

_logger = logging.getLogger(__name__)


class _QueueingHandler(FileSystemEventHandler):
    """Pushes created and moved-in file paths onto the event queue."""

    def __init__(
        self, events: "asyncio.Queue[str]", loop: asyncio.AbstractEventLoop
    ) -> None:
        self._events = events
        self._loop = loop

    def on_created(self, event: DirCreatedEvent | FileCreatedEvent) -> None:
        if event.is_directory:
            return
        self._push(event.src_path)

    def on_moved(self, event: DirMovedEvent | FileMovedEvent) -> None:
        if event.is_directory:
            return
        self._push(event.dest_path)

    def _push(self, path: str | bytes) -> None:
        resolved = os.path.abspath(os.fsdecode(path))
        _logger.info("File added in watched folder: %s", resolved)
        self._loop.call_soon_threadsafe(self._events.put_nowait, resolved)


@dataclass
class WatchdogFolderWatcher:
    """Recursive watchdog observer over the watched root."""

    root: Path
    events: "asyncio.Queue[str]"
    _observer: BaseObserver | None = field(default=None, init=False)

    def start(self, loop: asyncio.AbstractEventLoop) -> None:
        """Start watching; events are delivered on the given loop."""
        if self._observer is not None:
            return
        self.root.mkdir(parents=True, exist_ok=True)
        observer = Observer()
        handler = _QueueingHandler(self.events, loop)
        observer.schedule(handler, str(self.root), recursive=True)
        observer.start()
        self._observer = observer
        _logger.info("Watching folder: %s", self.root)

    def stop(self) -> None:
        """Stop the observer thread."""
        if self._observer is None:
            return
        self._observer.stop()
        self._observer.join()
        self._observer = None
