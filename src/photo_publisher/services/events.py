"""Feeds watcher events into the photo session."""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

_logger = logging.getLogger(__name__)


class FileEventSink(Protocol):
    """Receiver of file-appeared events."""

    async def on_file_appeared(self, path: str | Path) -> bool:
        """Handle a file that appeared in the watched folder."""


@dataclass
class FileEventPump:
    """Consumes queued file paths and hands them to the session one at a time."""

    events: "asyncio.Queue[str]"
    sink: FileEventSink

    async def run(self) -> None:
        """Process events until cancelled."""
        while True:
            path = await self.events.get()
            try:
                await self._handle(path)
            finally:
                self.events.task_done()

    async def drain(self) -> int:
        """Process every event already queued and return how many were handled."""
        handled = 0
        while not self.events.empty():
            path = self.events.get_nowait()
            try:
                await self._handle(path)
            finally:
                self.events.task_done()
            handled += 1
        return handled

    async def _handle(self, path: str) -> None:
        try:
            await self.sink.on_file_appeared(path)
        except Exception:
            _logger.exception("Failed to handle new file %s", path)
