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

import pytest

from writeguard import SelfWriteTracker, TrackerConfig

SETTLE_DELAY_MS = 10
AUTO_RELEASE_TIMEOUT_MS = 150


@pytest.fixture
def fast_config() -> TrackerConfig:
    """Tracker config with timings short enough to exercise timers in tests."""
    return TrackerConfig(
        settle_delay_ms=SETTLE_DELAY_MS,
        auto_release_timeout_ms=AUTO_RELEASE_TIMEOUT_MS,
        debug_logging=True,
    )


@pytest.fixture
def tracker(fast_config: TrackerConfig):
    tracker = SelfWriteTracker(fast_config)
    yield tracker
    tracker.clear()
