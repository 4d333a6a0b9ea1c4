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

import logging
import os

from .digest import Fingerprint, compute_fingerprint, fingerprints_match
from .models import ChangeVerdict, VerdictReason

logger = logging.getLogger(__name__)


def coerce_path_key(path: object) -> str:
    """Turn a watcher-supplied path into the string key used for lookups.

    ``os.PathLike`` values map to their filesystem path, so ``Path('/a.txt')``
    and ``'/a.txt'`` share a key. Anything else is converted with ``str``,
    falling back to the default object repr when that fails.
    """
    if isinstance(path, str):
        return path
    try:
        if isinstance(path, os.PathLike):
            return str(os.fspath(path))
        return str(path)
    except Exception:
        return object.__repr__(path)


def classify_change(
    path: str,
    observed_content: bytes | str,
    *,
    suppressed: bool,
    expected: Fingerprint | None,
) -> ChangeVerdict:
    """Decide whether an observed change to ``path`` came from a user.

    The suppression check runs before hashing so that events arriving while
    a generation is in flight never pay for a digest. Any failure resolves
    to a user edit: a spurious dispatch is preferable to a missed edit.

    Args:
        path: Tracked path key
        observed_content: Content the watcher just read from disk
        suppressed: Whether a generation is currently in flight for the path
        expected: Fingerprint registered by the last generation, if any

    Returns:
        ChangeVerdict describing the decision
    """
    path = coerce_path_key(path)
    try:
        if suppressed:
            return ChangeVerdict(path=path, is_user_edit=False, reason=VerdictReason.SUPPRESSED)

        observed = compute_fingerprint(observed_content)

        if expected is None:
            return ChangeVerdict(
                path=path,
                is_user_edit=True,
                reason=VerdictReason.UNREGISTERED,
                observed_fingerprint=observed,
            )

        if fingerprints_match(observed, expected):
            reason = VerdictReason.FINGERPRINT_MATCH
        else:
            reason = VerdictReason.FINGERPRINT_MISMATCH

        return ChangeVerdict(
            path=path,
            is_user_edit=reason == VerdictReason.FINGERPRINT_MISMATCH,
            reason=reason,
            expected_fingerprint=expected,
            observed_fingerprint=observed,
        )
    except Exception as e:
        logger.error(f'Error classifying change to {path}, assuming user edit: {e}')
        return ChangeVerdict(
            path=path,
            is_user_edit=True,
            reason=VerdictReason.DIGEST_FAILED,
            expected_fingerprint=expected,
        )
