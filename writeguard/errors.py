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


class WriteGuardError(Exception):
    """Base exception class for writeguard."""


class InvalidInputError(WriteGuardError):
    """Raised when a caller passes malformed arguments."""

    def __init__(self, operation: str, reason: str):
        self.operation = operation
        self.message = f'{operation}: {reason}'
        super().__init__(self.message)


class InvalidPathError(InvalidInputError):
    """Raised when a path is empty or not a string."""

    def __init__(self, operation: str):
        super().__init__(operation, 'path must be a non-empty string')


class InvalidContentError(InvalidInputError):
    """Raised when content is missing or of an unsupported type."""

    def __init__(self, operation: str, reason: str = 'content cannot be None'):
        super().__init__(operation, reason)


class DigestError(WriteGuardError):
    """Raised when a content fingerprint cannot be computed."""

    def __init__(self, text: str):
        self.message = f'failed to compute fingerprint: {text}'
        super().__init__(self.message)


class SuppressionError(WriteGuardError):
    """Raised when a generation cannot be registered for a path."""

    def __init__(self, path: str, text: str):
        self.path = path
        self.message = f'begin_suppression failed for {path}: {text}'
        super().__init__(self.message)


class LoopUnavailableError(SuppressionError):
    """Raised when no event loop is available to schedule the auto-release timer."""

    def __init__(self, path: str):
        super().__init__(
            path,
            'no running event loop; pass loop= to the tracker or call from within a coroutine',
        )
