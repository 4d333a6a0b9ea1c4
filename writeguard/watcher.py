"""
Copyright 2024, Zep Software, Inc.

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at

    http://www.apache.org/licenses/LICENSE-2.0

Unless required by applicable law or agreed to in writing, software
distributed under the License is distributed on an "AS IS" BASIS,
WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
See the License for the specific language governing permissions and
limitations under the License.
"""

import asyncio
import fnmatch
import inspect
import logging
from collections.abc import Awaitable, Callable
from pathlib import Path

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .config import WatcherConfig
from .tracker import SelfWriteTracker

logger = logging.getLogger(__name__)

UserEditCallback = Callable[[str, bytes], Awaitable[None] | None]


def path_key(path: str | Path, resolve: bool = True) -> str:
    """Return the key a watcher uses for ``path``.

    Generators should register writes under the same key, e.g.
    ``tracker.begin_suppression(path_key(target), content)``.
    """
    path = Path(path)
    return str(path.resolve() if resolve else path)


class GeneratedFileHandler(FileSystemEventHandler):
    """Handles file system events for a generated tree.

    Runs on the watchdog observer thread: re-reads each changed file,
    classifies it, and hands user edits to the parent watcher.
    """

    def __init__(self, watcher: 'GeneratedTreeWatcher'):
        """Initialize file handler.

        Args:
            watcher: Parent GeneratedTreeWatcher instance
        """
        self.watcher = watcher

    def on_created(self, event: FileSystemEvent):
        if not event.is_directory:
            self.watcher._on_changed(Path(event.src_path))

    def on_modified(self, event: FileSystemEvent):
        if not event.is_directory:
            self.watcher._on_changed(Path(event.src_path))

    def on_moved(self, event: FileSystemEvent):
        # Editors that save atomically move a temp file over the target
        if not event.is_directory:
            self.watcher._on_changed(Path(event.dest_path))


class GeneratedTreeWatcher:
    """Watches a directory and reports only changes made by users."""

    def __init__(
        self,
        tracker: SelfWriteTracker,
        root: str | Path,
        on_user_edit: UserEditCallback,
        config: WatcherConfig | None = None,
    ):
        """Initialize the watcher.

        Args:
            tracker: Tracker shared with the generator
            root: Directory to watch
            on_user_edit: Called on the event loop with (path, content) for every
                user edit. May be a coroutine function.
            config: Watcher configuration
        """
        self.tracker = tracker
        self.root = Path(root)
        self.on_user_edit = on_user_edit
        self.config = config or WatcherConfig()
        self.observer = Observer()
        self.loop: asyncio.AbstractEventLoop | None = None
        self._pending: set[asyncio.Task] = set()
        self._running = False

    def start(self, loop: asyncio.AbstractEventLoop):
        """Start the observer thread.

        Args:
            loop: Event loop user-edit callbacks are delivered on
        """
        if self._running:
            logger.warning('Generated tree watcher already running')
            return

        self.loop = loop
        self._running = True

        self.observer.schedule(
            GeneratedFileHandler(self),
            str(self.root),
            recursive=self.config.recursive,
        )
        self.observer.start()
        logger.info(f'Watching {self.root} for user edits')

    async def stop(self):
        """Stop the observer and wait for in-flight callbacks."""
        if not self._running:
            return

        self._running = False

        self.observer.stop()
        await asyncio.to_thread(self.observer.join)

        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)

    def matches(self, file_path: Path) -> bool:
        name = file_path.name
        if any(fnmatch.fnmatch(name, pattern) for pattern in self.config.ignore_patterns):
            return False
        return any(fnmatch.fnmatch(name, pattern) for pattern in self.config.patterns)

    def _on_changed(self, file_path: Path):
        """Classify one change notification.

        Called from the watchdog thread.

        Args:
            file_path: Path reported by the event
        """
        if not self.matches(file_path):
            return

        try:
            content = file_path.read_bytes()
        except FileNotFoundError:
            logger.debug(f'Skipping {file_path}: removed before it could be read')
            return
        except OSError as e:
            logger.debug(f'Skipping {file_path}: {e}')
            return

        key = path_key(file_path, resolve=self.config.resolve_paths)
        try:
            verdict = self.tracker.explain(key, content)
        except Exception as e:
            logger.error(f'Error classifying change to {key}, assuming user edit: {e}')
            verdict = None

        if verdict is not None and not verdict.is_user_edit:
            return

        logger.info(
            f'User edit detected: {key}',
            extra={
                'extra_data': {
                    'path': key,
                    'size': len(content),
                    'reason': verdict.reason.value if verdict else 'unclassified',
                    'fingerprint': verdict.observed_fingerprint if verdict else None,
                }
            },
        )

        if self.loop is None or self.loop.is_closed():
            logger.warning(f'Dropping user edit for {key}: event loop unavailable')
            return

        self.loop.call_soon_threadsafe(self._dispatch, key, content)

    def _dispatch(self, key: str, content: bytes):
        """Deliver a user edit on the event loop."""
        try:
            result = self.on_user_edit(key, content)
        except Exception as e:
            logger.error(f'User edit handler failed for {key}: {e}')
            return

        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._pending.add(task)
            task.add_done_callback(self._on_dispatch_done)

    def _on_dispatch_done(self, task: asyncio.Task):
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f'User edit handler failed: {exc}')
