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
from unittest.mock import patch

import pytest

from writeguard.config import TrackerConfig
from writeguard.coordinator import SuppressionCoordinator
from writeguard.digest import compute_fingerprint
from writeguard.errors import (
    InvalidContentError,
    InvalidPathError,
    LoopUnavailableError,
    SuppressionError,
)

pytest_plugins = ('pytest_asyncio',)

TIMEOUT = 0.15


@pytest.fixture
def coordinator(fast_config: TrackerConfig):
    coordinator = SuppressionCoordinator(fast_config)
    yield coordinator
    coordinator.clear()


@pytest.mark.asyncio
async def test_begin_registers_fingerprint_and_suppresses(coordinator: SuppressionCoordinator):
    fingerprint = coordinator.begin('/a.txt', 'hello')

    assert fingerprint == compute_fingerprint('hello')
    assert coordinator.lookup('/a.txt') == (True, fingerprint)

    state = coordinator.snapshot()
    assert state.suppressed == frozenset({'/a.txt'})
    assert state.pending_releases == frozenset({'/a.txt'})
    assert state.fingerprints == {'/a.txt': fingerprint}


@pytest.mark.asyncio
async def test_begin_accepts_empty_content(coordinator: SuppressionCoordinator):
    assert coordinator.begin('/empty.txt', b'') == compute_fingerprint(b'')


@pytest.mark.asyncio
@pytest.mark.parametrize('path', ['', None, 42])
async def test_begin_rejects_invalid_path(coordinator: SuppressionCoordinator, path):
    with pytest.raises(InvalidPathError):
        coordinator.begin(path, 'content')

    assert coordinator.snapshot().suppressed == frozenset()


@pytest.mark.asyncio
async def test_begin_rejects_invalid_content(coordinator: SuppressionCoordinator):
    with pytest.raises(InvalidContentError):
        coordinator.begin('/a.txt', None)  # type: ignore[arg-type]

    with pytest.raises(InvalidContentError, match='got int'):
        coordinator.begin('/a.txt', 12)  # type: ignore[arg-type]


def test_begin_without_event_loop_raises(fast_config: TrackerConfig):
    coordinator = SuppressionCoordinator(fast_config)

    with pytest.raises(LoopUnavailableError) as exc_info:
        coordinator.begin('/a.txt', 'hello')

    assert isinstance(exc_info.value, SuppressionError)
    assert coordinator.snapshot().fingerprints == {}


@pytest.mark.asyncio
async def test_digest_failure_leaves_state_untouched(coordinator: SuppressionCoordinator):
    with patch('writeguard.coordinator.compute_fingerprint', side_effect=RuntimeError('boom')):
        with pytest.raises(RuntimeError):
            coordinator.begin('/a.txt', 'hello')

    assert coordinator.lookup('/a.txt') == (False, None)


@pytest.mark.asyncio
async def test_end_releases_after_settle_delay():
    coordinator = SuppressionCoordinator(
        TrackerConfig(settle_delay_ms=50, auto_release_timeout_ms=5000)
    )
    coordinator.begin('/a.txt', 'hello')

    end_task = asyncio.create_task(coordinator.end('/a.txt'))
    await asyncio.sleep(0.01)
    assert coordinator.is_suppressed('/a.txt')

    await end_task
    assert not coordinator.is_suppressed('/a.txt')
    assert coordinator.snapshot().pending_releases == frozenset()
    # Fingerprint survives release
    assert coordinator.expected_fingerprint('/a.txt') == compute_fingerprint('hello')


@pytest.mark.asyncio
async def test_end_on_one_path_does_not_block_another():
    coordinator = SuppressionCoordinator(
        TrackerConfig(settle_delay_ms=200, auto_release_timeout_ms=5000)
    )
    coordinator.begin('/slow.txt', 'a')
    coordinator.begin('/other.txt', 'b')

    slow_end = asyncio.create_task(coordinator.end('/slow.txt'))
    await asyncio.sleep(0)

    # Releasing another path completes while the first is still settling
    coordinator.release('/other.txt')
    assert not coordinator.is_suppressed('/other.txt')
    assert coordinator.is_suppressed('/slow.txt')

    await slow_end
    assert not coordinator.is_suppressed('/slow.txt')


@pytest.mark.asyncio
async def test_end_without_begin_logs_warning(coordinator: SuppressionCoordinator, caplog):
    await coordinator.end('/never.txt')

    assert not coordinator.is_suppressed('/never.txt')
    assert 'no generation in flight' in caplog.text


@pytest.mark.asyncio
async def test_end_rejects_invalid_path(coordinator: SuppressionCoordinator):
    with pytest.raises(InvalidPathError):
        await coordinator.end('')


@pytest.mark.asyncio
async def test_end_releases_when_settle_wait_fails(coordinator: SuppressionCoordinator, caplog):
    coordinator.begin('/a.txt', 'hello')

    with patch('writeguard.coordinator.asyncio.sleep', side_effect=RuntimeError('timer failure')):
        await coordinator.end('/a.txt')

    assert not coordinator.is_suppressed('/a.txt')
    assert coordinator.snapshot().pending_releases == frozenset()
    assert 'cleanup warning' in caplog.text
    assert 'timer failure' in caplog.text


@pytest.mark.asyncio
async def test_end_releases_when_cancelled(caplog):
    coordinator = SuppressionCoordinator(
        TrackerConfig(settle_delay_ms=1000, auto_release_timeout_ms=5000)
    )
    coordinator.begin('/a.txt', 'hello')

    end_task = asyncio.create_task(coordinator.end('/a.txt'))
    await asyncio.sleep(0.01)
    end_task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await end_task

    assert not coordinator.is_suppressed('/a.txt')
    assert 'cancelled during settle delay' in caplog.text


@pytest.mark.asyncio
async def test_auto_release_after_timeout(coordinator: SuppressionCoordinator, caplog):
    coordinator.begin('/a.txt', 'hello')
    assert coordinator.is_suppressed('/a.txt')

    await asyncio.sleep(TIMEOUT + 0.1)

    assert not coordinator.is_suppressed('/a.txt')
    assert coordinator.snapshot().pending_releases == frozenset()
    assert coordinator.expected_fingerprint('/a.txt') == compute_fingerprint('hello')
    assert 'end_suppression was never called' in caplog.text


@pytest.mark.asyncio
async def test_end_prevents_auto_release_warning(coordinator: SuppressionCoordinator, caplog):
    coordinator.begin('/a.txt', 'hello')
    await coordinator.end('/a.txt')

    await asyncio.sleep(TIMEOUT + 0.1)

    assert 'Auto-released' not in caplog.text


@pytest.mark.asyncio
async def test_rearm_restarts_timer(coordinator: SuppressionCoordinator):
    coordinator.begin('/a.txt', 'v1')
    await asyncio.sleep(TIMEOUT * 0.6)

    coordinator.begin('/a.txt', 'v2')
    await asyncio.sleep(TIMEOUT * 0.6)

    # The first timer would have fired by now
    assert coordinator.is_suppressed('/a.txt')
    assert coordinator.expected_fingerprint('/a.txt') == compute_fingerprint('v2')

    await asyncio.sleep(TIMEOUT)
    assert not coordinator.is_suppressed('/a.txt')


@pytest.mark.asyncio
async def test_superseded_token_never_releases(coordinator: SuppressionCoordinator):
    """Test that a replaced timer firing late cannot release the newer generation."""
    coordinator.begin('/a.txt', 'v1')
    stale_token = coordinator._timers['/a.txt']

    coordinator.begin('/a.txt', 'v2')
    assert stale_token.cancelled

    coordinator._on_auto_release(stale_token)

    assert coordinator.is_suppressed('/a.txt')
    assert coordinator._timers['/a.txt'] is not stale_token


@pytest.mark.asyncio
async def test_begin_from_worker_thread_arms_timer_on_bound_loop(fast_config: TrackerConfig):
    coordinator = SuppressionCoordinator(fast_config, loop=asyncio.get_running_loop())

    await asyncio.to_thread(coordinator.begin, '/threaded.txt', 'hello')
    assert coordinator.is_suppressed('/threaded.txt')

    await asyncio.sleep(TIMEOUT + 0.1)
    assert not coordinator.is_suppressed('/threaded.txt')


@pytest.mark.asyncio
async def test_release_all_keeps_fingerprints(coordinator: SuppressionCoordinator):
    coordinator.begin('/a.txt', 'a')
    coordinator.begin('/b.txt', 'b')

    assert coordinator.release_all() == ['/a.txt', '/b.txt']

    state = coordinator.snapshot()
    assert state.suppressed == frozenset()
    assert state.pending_releases == frozenset()
    assert set(state.fingerprints) == {'/a.txt', '/b.txt'}


@pytest.mark.asyncio
async def test_clear_drops_everything(coordinator: SuppressionCoordinator, caplog):
    caplog.set_level(logging.DEBUG, logger='writeguard')
    coordinator.begin('/a.txt', 'a')

    coordinator.clear()

    state = coordinator.snapshot()
    assert state.fingerprints == {}
    assert state.suppressed == frozenset()

    await asyncio.sleep(TIMEOUT + 0.1)
    assert 'Auto-released' not in caplog.text
    assert 'Suppression state cleared' in caplog.text
