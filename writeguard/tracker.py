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
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from .classifier import classify_change, coerce_path_key
from .config import TrackerConfig
from .coordinator import SuppressionCoordinator
from .digest import Fingerprint, short_fingerprint
from .errors import InvalidInputError, SuppressionError
from .models import ChangeVerdict, TrackerState

logger = logging.getLogger(__name__)


class SelfWriteTracker:
    """Distinguishes a generator's own writes from user edits.

    Without this, a generate -> write -> watch -> regenerate cycle never ends:
    every write the generator makes is reported back by the file watcher as
    a change. The tracker records the fingerprint of content about to be
    written and suppresses the path while the write is in flight; the
    watcher then asks ``classify`` whether each change it sees is a user edit.

    Example:
        >>> tracker = SelfWriteTracker()
        >>> async with tracker.generating('/project/src/Button.tsx', code):
        ...     Path('/project/src/Button.tsx').write_text(code)
        >>> # In the watcher callback, with the freshly read content
        >>> if tracker.classify(path, content):
        ...     handle_user_edit(path, content)

    Each tracker is independent; create one per watched tree.
    """

    def __init__(
        self,
        config: TrackerConfig | None = None,
        *,
        loop: asyncio.AbstractEventLoop | None = None,
    ):
        """Initialize the tracker.

        Args:
            config: Timing and tracing configuration
            loop: Event loop for auto-release timers. Defaults to the loop
                running when begin_suppression is called.
        """
        self.config = config or TrackerConfig()
        self._coordinator = SuppressionCoordinator(self.config, loop=loop)

        if self.config.debug_logging:
            logger.debug(f'SelfWriteTracker initialized with {self.config.model_dump()}')

    def begin_suppression(self, path: str, content: bytes | str) -> Fingerprint:
        """Prepare for a write the generator is about to make.

        Call immediately before writing, with content byte-identical to what
        will be persisted. Calling again before ``end_suppression`` replaces
        the expected content and restarts the auto-release timer.

        Args:
            path: Path of the file that will be written
            content: Exact content that will be written

        Returns:
            Fingerprint now expected for the path

        Raises:
            InvalidInputError: If path or content is invalid
            SuppressionError: If the generation could not be registered
        """
        try:
            return self._coordinator.begin(path, content)
        except (InvalidInputError, SuppressionError):
            raise
        except Exception as e:
            raise SuppressionError(path, str(e)) from e

    async def end_suppression(self, path: str) -> None:
        """Resume watching a path after the generator's write completes.

        Waits for the settle delay so pending filesystem notifications for the
        write are absorbed, then releases the path. Call this in a ``finally``
        block so it also runs when the write fails.

        Args:
            path: Path of the file that was written

        Raises:
            InvalidInputError: If path is invalid
        """
        await self._coordinator.end(path)

    def classify(self, path: str, content: bytes | str) -> bool:
        """Return True if the change observed at ``path`` was made by a user.

        Never raises: if the change cannot be classified it is treated as a
        user edit.

        Args:
            path: Path of the file that changed. ``os.PathLike`` values are
                looked up by their string form.
            content: Current full content of the file

        Returns:
            True for a user edit, False for the generator's own write
        """
        try:
            return self.explain(path, content).is_user_edit
        except Exception as e:
            logger.error(f'Error classifying change to {path!r}, assuming user edit: {e}')
            return True

    def explain(self, path: str, content: bytes | str) -> ChangeVerdict:
        """Classify a change and report why."""
        path = coerce_path_key(path)
        suppressed, expected = self._coordinator.lookup(path)
        verdict = classify_change(path, content, suppressed=suppressed, expected=expected)

        if self.config.debug_logging:
            logger.debug(
                f'classify: {path} reason={verdict.reason.value} '
                f'expected={short_fingerprint(verdict.expected_fingerprint)} '
                f'actual={short_fingerprint(verdict.observed_fingerprint)} '
                f'result={"USER EDIT" if verdict.is_user_edit else "TOOL EDIT"}'
            )

        return verdict

    @asynccontextmanager
    async def generating(self, path: str, content: bytes | str) -> AsyncIterator[Fingerprint]:
        """Bracket a write with begin_suppression/end_suppression.

        The path is released even when the body raises.
        """
        fingerprint = self.begin_suppression(path, content)
        try:
            yield fingerprint
        finally:
            await self.end_suppression(path)

    def is_suppressed(self, path: str) -> bool:
        return self._coordinator.is_suppressed(path)

    def expected_fingerprint(self, path: str) -> Fingerprint | None:
        return self._coordinator.expected_fingerprint(path)

    def get_state(self) -> TrackerState:
        """Return a copy of the internal tables for debugging and tests."""
        return self._coordinator.snapshot()

    def clear(self) -> None:
        """Cancel all timers and forget every path."""
        self._coordinator.clear()

    async def aclose(self) -> None:
        """Release all suppressed paths and cancel pending timers.

        Expected fingerprints are kept, so late watcher events for files the
        generator wrote are still recognised.
        """
        released = self._coordinator.release_all()
        if released:
            logger.info(f'Released {len(released)} suppressed path(s) on close')
