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

import hashlib
import hmac

from .errors import DigestError

FINGERPRINT_PREFIX = 'sha256:'

Fingerprint = str


def compute_fingerprint(content: bytes | str) -> Fingerprint:
    """Generate SHA256 fingerprint of content with 'sha256:' prefix.

    Text content is encoded as UTF-8 before hashing, so a string and its
    UTF-8 encoding share a fingerprint.

    Args:
        content: The content to hash

    Returns:
        Fingerprint string in format 'sha256:hexdigest'

    Raises:
        DigestError: If the content cannot be hashed
    """
    try:
        if isinstance(content, str):
            content = content.encode('utf-8')
        hash_obj = hashlib.sha256(content)
    except Exception as e:
        raise DigestError(str(e)) from e

    return f'{FINGERPRINT_PREFIX}{hash_obj.hexdigest()}'


def fingerprints_match(left: Fingerprint, right: Fingerprint) -> bool:
    """Compare two fingerprints in constant time."""
    return hmac.compare_digest(left, right)


def short_fingerprint(fingerprint: Fingerprint | None, length: int = 16) -> str:
    """Truncate a fingerprint for log output."""
    if fingerprint is None:
        return '<none>'
    return f'{fingerprint[len(FINGERPRINT_PREFIX) :][:length]}...'
