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

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class VerdictReason(str, Enum):
    """Why a change was attributed to the generator or to a user."""

    SUPPRESSED = 'suppressed'  # generation in flight
    UNREGISTERED = 'unregistered'
    FINGERPRINT_MATCH = 'fingerprint_match'
    FINGERPRINT_MISMATCH = 'fingerprint_mismatch'
    DIGEST_FAILED = 'digest_failed'


class ChangeVerdict(BaseModel):
    """Outcome of classifying one observed change."""

    model_config = ConfigDict(frozen=True)

    path: str
    is_user_edit: bool
    reason: VerdictReason
    expected_fingerprint: str | None = None
    observed_fingerprint: str | None = None


class TrackerState(BaseModel):
    """Point-in-time copy of a tracker's internal tables.

    Intended for debugging and tests. Mutating it has no effect on the tracker.
    """

    fingerprints: dict[str, str] = Field(default_factory=dict)
    suppressed: frozenset[str] = Field(default_factory=frozenset)
    pending_releases: frozenset[str] = Field(default_factory=frozenset)
