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

from .digest import Fingerprint


class GenerationRegistry:
    """Maps each generated path to the fingerprint expected after its last write.

    Entries are overwritten on every registration and never evicted, so the
    registry is bounded by the number of distinct files ever generated.
    The registry does no locking of its own; its owner guards access.
    """

    def __init__(self):
        self._expected: dict[str, Fingerprint] = {}

    def record(self, path: str, fingerprint: Fingerprint) -> Fingerprint | None:
        """Store the expected fingerprint for a path.

        Args:
            path: Tracked path key
            fingerprint: Fingerprint of the content about to be written

        Returns:
            The fingerprint that was replaced, or None on first registration
        """
        previous = self._expected.get(path)
        self._expected[path] = fingerprint
        return previous

    def expected(self, path: str) -> Fingerprint | None:
        return self._expected.get(path)

    def snapshot(self) -> dict[str, Fingerprint]:
        return dict(self._expected)

    def clear(self) -> None:
        self._expected.clear()

    def __contains__(self, path: object) -> bool:
        return path in self._expected

    def __len__(self) -> int:
        return len(self._expected)
