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

from .classifier import classify_change
from .config import TrackerConfig, WatcherConfig, WriteGuardConfig
from .digest import compute_fingerprint
from .errors import (
    DigestError,
    InvalidContentError,
    InvalidInputError,
    InvalidPathError,
    LoopUnavailableError,
    SuppressionError,
    WriteGuardError,
)
from .models import ChangeVerdict, TrackerState, VerdictReason
from .tracker import SelfWriteTracker
from .watcher import GeneratedTreeWatcher, path_key

__all__ = [
    'ChangeVerdict',
    'DigestError',
    'GeneratedTreeWatcher',
    'InvalidContentError',
    'InvalidInputError',
    'InvalidPathError',
    'LoopUnavailableError',
    'SelfWriteTracker',
    'SuppressionError',
    'TrackerConfig',
    'TrackerState',
    'VerdictReason',
    'WatcherConfig',
    'WriteGuardConfig',
    'WriteGuardError',
    'classify_change',
    'compute_fingerprint',
    'path_key',
]
