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
import itertools
import logging
import threading
from dataclasses import dataclass, field

from .config import TrackerConfig
from .digest import Fingerprint, compute_fingerprint, short_fingerprint
from .errors import InvalidContentError, InvalidPathError, LoopUnavailableError
from .models import TrackerState
from .registry import GenerationRegistry

logger = logging.getLogger(__name__)

CONTENT_TYPES = (bytes, bytearray, memoryview, str)


@dataclass
class ReleaseToken:
    """One scheduled auto-release for a path."""

    token_id: int
    path: str
    loop: asyncio.AbstractEventLoop
    handle: asyncio.TimerHandle | None = field(default=None, repr=False)
    cancelled: bool = False


def validate_path(operation: str, path: object) -> str:
    if not isinstance(path, str) or not path:
        raise InvalidPathError(operation)
    return path


def validate_content(operation: str, content: object) -> None:
    if content is None:
        raise InvalidContentError(operation)
    if not isinstance(content, CONTENT_TYPES):
        raise InvalidContentError(
            operation, f'content must be bytes or str, got {type(content).__name__}'
        )


def _running_loop() -> asyncio.AbstractEventLoop | None:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


class SuppressionCoordinator:
    """Owns the begin/end lifecycle of every tracked path.

    Tables:
        - GenerationRegistry: path -> expected fingerprint
        - suppressed set: paths with a generation in flight
        - timer table: path -> live ReleaseToken

    Thread Safety:
        - begin/end normally run on the asyncio loop of the generation pipeline
        - lookups run on whatever thread delivers watcher events (watchdog)
        - all three tables are guarded by a single threading.Lock

    Timers:
        Auto-release timers are asyncio TimerHandles. Each arm gets a fresh
        ReleaseToken; a firing timer only releases its path if the timer table
        still holds that exact token, so a replaced timer never releases the
        newer generation.
    """

    def __init__(
        self,
        config: TrackerConfig | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
    ):
        """Initialize the coordinator.

        Args:
            config: Timing configuration (defaults to TrackerConfig())
            loop: Event loop to schedule auto-release timers on. When omitted,
                the loop running in the calling thread is used.
        """
        self.config = config or TrackerConfig()
        self._loop = loop
        self._lock = threading.Lock()
        self._registry = GenerationRegistry()
        self._suppressed: set[str] = set()
        self._timers: dict[str, ReleaseToken] = {}
        self._token_ids = itertools.count(1)

    def begin(self, path: str, content: bytes | str) -> Fingerprint:
        """Register an upcoming write and suppress the path.

        Must be called before the file is written, with exactly the content
        that will be written.

        Args:
            path: Tracked path key
            content: Content about to be written

        Returns:
            Fingerprint now expected for the path

        Raises:
            InvalidPathError: If path is empty or not a string
            InvalidContentError: If content is None or not bytes/str
            LoopUnavailableError: If there is no event loop for the release timer
            DigestError: If the content cannot be hashed
        """
        validate_path('begin_suppression', path)
        validate_content('begin_suppression', content)
        loop = self._resolve_loop(path)

        fingerprint = compute_fingerprint(content)

        with self._lock:
            self._registry.record(path, fingerprint)
            self._suppressed.add(path)
            token = ReleaseToken(token_id=next(self._token_ids), path=path, loop=loop)
            previous = self._timers.get(path)
            self._timers[path] = token
            if previous is not None:
                previous.cancelled = True

        if previous is not None:
            self._cancel_handle(previous)
        self._arm(token)

        if self.config.debug_logging:
            logger.debug(
                f'begin_suppression: {path} fingerprint={short_fingerprint(fingerprint)} '
                f'timeout={self.config.auto_release_timeout_ms}ms '
                f'rearmed={previous is not None}'
            )

        return fingerprint

    async def end(self, path: str) -> None:
        """Release the path once the settle delay has elapsed.

        The path is released even if the wait fails or the calling task is
        cancelled; cancellation is re-raised afterwards.

        Args:
            path: Tracked path key

        Raises:
            InvalidPathError: If path is empty or not a string
        """
        validate_path('end_suppression', path)

        try:
            await asyncio.sleep(self.config.settle_delay)
        except asyncio.CancelledError:
            logger.warning(f'end_suppression cancelled during settle delay for {path}; releasing now')
            raise
        except Exception as e:
            logger.warning(f'end_suppression cleanup warning for {path}: {e}')
        finally:
            self.release(path)

    def release(self, path: str) -> bool:
        """Immediately clear suppression for a path and cancel its timer.

        Returns:
            True if the path was suppressed
        """
        with self._lock:
            was_suppressed = path in self._suppressed
            self._suppressed.discard(path)
            token = self._timers.pop(path, None)
            if token is not None:
                token.cancelled = True

        if token is not None:
            self._cancel_handle(token)

        if not was_suppressed:
            logger.warning(
                f'end_suppression cleanup warning for {path}: no generation in flight '
                '(already auto-released or never begun)'
            )
        elif self.config.debug_logging:
            logger.debug(f'end_suppression: {path} released, timer cleared={token is not None}')

        return was_suppressed

    def lookup(self, path: str) -> tuple[bool, Fingerprint | None]:
        """Read the suppression flag and expected fingerprint for a path atomically."""
        with self._lock:
            return path in self._suppressed, self._registry.expected(path)

    def is_suppressed(self, path: str) -> bool:
        with self._lock:
            return path in self._suppressed

    def expected_fingerprint(self, path: str) -> Fingerprint | None:
        with self._lock:
            return self._registry.expected(path)

    def snapshot(self) -> TrackerState:
        with self._lock:
            return TrackerState(
                fingerprints=self._registry.snapshot(),
                suppressed=frozenset(self._suppressed),
                pending_releases=frozenset(self._timers),
            )

    def release_all(self) -> list[str]:
        """Release every suppressed path, keeping expected fingerprints.

        Returns:
            Paths that were suppressed
        """
        with self._lock:
            released = sorted(self._suppressed)
            tokens = list(self._timers.values())
            self._suppressed.clear()
            self._timers.clear()
            for token in tokens:
                token.cancelled = True

        for token in tokens:
            self._cancel_handle(token)

        return released

    def clear(self) -> None:
        """Drop all state, including expected fingerprints."""
        self.release_all()
        with self._lock:
            self._registry.clear()

        if self.config.debug_logging:
            logger.debug('Suppression state cleared')

    def _resolve_loop(self, path: str) -> asyncio.AbstractEventLoop:
        loop = self._loop or _running_loop()
        if loop is None or loop.is_closed():
            raise LoopUnavailableError(path)
        return loop

    def _arm(self, token: ReleaseToken) -> None:
        if _running_loop() is token.loop:
            self._arm_in_loop(token)
        else:
            token.loop.call_soon_threadsafe(self._arm_in_loop, token)

    def _arm_in_loop(self, token: ReleaseToken) -> None:
        with self._lock:
            if token.cancelled:
                return
            token.handle = token.loop.call_later(
                self.config.auto_release_timeout, self._on_auto_release, token
            )

    def _cancel_handle(self, token: ReleaseToken) -> None:
        handle = token.handle
        if handle is None:
            return
        if _running_loop() is token.loop:
            handle.cancel()
        elif not token.loop.is_closed():
            token.loop.call_soon_threadsafe(handle.cancel)

    def _on_auto_release(self, token: ReleaseToken) -> None:
        with self._lock:
            if self._timers.get(token.path) is not token:
                return
            del self._timers[token.path]
            self._suppressed.discard(token.path)

        # The expected fingerprint stays registered after a timeout
        logger.warning(
            f'Auto-released {token.path} after {self.config.auto_release_timeout_ms}ms. '
            'end_suppression was never called - this may indicate a bug in the generator.'
        )
