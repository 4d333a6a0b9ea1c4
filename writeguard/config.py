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

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

DEFAULT_SETTLE_DELAY_MS = 100
DEFAULT_AUTO_RELEASE_TIMEOUT_MS = 5000

CONFIG_PATH_ENV = 'WRITEGUARD_CONFIG_PATH'
DEFAULT_CONFIG_FILES = ['.writeguard.yaml', '.writeguard.yml', 'writeguard.yaml', 'writeguard.yml']

# Environment overrides applied on top of whatever file was loaded
ENV_OVERRIDES = {
    'WRITEGUARD_SETTLE_DELAY_MS': 'settle_delay_ms',
    'WRITEGUARD_AUTO_RELEASE_TIMEOUT_MS': 'auto_release_timeout_ms',
    'WRITEGUARD_DEBUG': 'debug_logging',
}


class TrackerConfig(BaseModel):
    """Timing and tracing options for a SelfWriteTracker.

    Examples:
        >>> # Longer settle time for a network drive
        >>> config = TrackerConfig(settle_delay_ms=200, auto_release_timeout_ms=10000)
    """

    settle_delay_ms: int = Field(
        default=DEFAULT_SETTLE_DELAY_MS,
        ge=0,
        description='Delay after a write before watcher notifications are trusted again',
    )
    auto_release_timeout_ms: int = Field(
        default=DEFAULT_AUTO_RELEASE_TIMEOUT_MS,
        gt=0,
        description='Time after which a path is released if end_suppression is never called',
    )
    debug_logging: bool = Field(
        default=False,
        description='Emit per-call tracing of suppression and fingerprint decisions at DEBUG level',
    )

    @property
    def settle_delay(self) -> float:
        """Settle delay in seconds."""
        return self.settle_delay_ms / 1000

    @property
    def auto_release_timeout(self) -> float:
        """Auto-release timeout in seconds."""
        return self.auto_release_timeout_ms / 1000


class WatcherConfig(BaseModel):
    """Options for the watchdog-backed GeneratedTreeWatcher."""

    patterns: list[str] = Field(
        default_factory=lambda: ['*'],
        description='Glob patterns (matched against the file name) of files to watch',
    )
    ignore_patterns: list[str] = Field(
        default_factory=lambda: ['*.swp', '*~', '.#*'],
        description='Glob patterns of files to ignore, e.g. editor swap files',
    )
    recursive: bool = Field(default=True, description='Watch subdirectories')
    resolve_paths: bool = Field(
        default=True,
        description='Key tracked paths by their resolved absolute form',
    )


class WriteGuardConfig(BaseModel):
    """Top-level writeguard configuration.

    Examples:
        >>> # Load from YAML file
        >>> config = WriteGuardConfig.from_yaml('writeguard.yaml')

        >>> # Load from environment (looks for WRITEGUARD_CONFIG_PATH)
        >>> config = WriteGuardConfig.from_env()
    """

    tracker: TrackerConfig = Field(
        default_factory=TrackerConfig,
        description='Suppression timing configuration',
    )
    watcher: WatcherConfig = Field(
        default_factory=WatcherConfig,
        description='Filesystem watcher configuration',
    )

    @classmethod
    def from_yaml(cls, path: str | Path) -> 'WriteGuardConfig':
        """Load configuration from a YAML file.

        Args:
            path: Path to the YAML configuration file

        Returns:
            WriteGuardConfig instance loaded from the file

        Raises:
            FileNotFoundError: If the configuration file doesn't exist
            ValueError: If the YAML file is invalid
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f'Configuration file not found: {path}')

        with open(path) as f:
            config_dict = yaml.safe_load(f)

        if config_dict is None:
            config_dict = {}
        if not isinstance(config_dict, dict):
            raise ValueError(f'Configuration file must contain a mapping: {path}')

        return cls(**config_dict)

    @classmethod
    def from_env(cls, env_var: str = CONFIG_PATH_ENV) -> 'WriteGuardConfig':
        """Load configuration from the environment.

        Reads the YAML file named by ``env_var``, falling back to default config
        files in the current directory, then applies individual
        ``WRITEGUARD_*`` overrides to the tracker section.

        Args:
            env_var: Name of the environment variable containing the config file path

        Returns:
            WriteGuardConfig instance

        Raises:
            FileNotFoundError: If the specified config file doesn't exist
        """
        config = cls._load_base(env_var)

        overrides: dict[str, Any] = {}
        for env_name, field_name in ENV_OVERRIDES.items():
            value = os.getenv(env_name)
            if value is not None and value != '':
                overrides[field_name] = value

        if overrides:
            tracker_dict = config.tracker.model_dump()
            tracker_dict.update(overrides)
            config.tracker = TrackerConfig(**tracker_dict)

        return config

    @classmethod
    def _load_base(cls, env_var: str) -> 'WriteGuardConfig':
        config_path = os.getenv(env_var)
        if config_path:
            return cls.from_yaml(config_path)

        for default_file in DEFAULT_CONFIG_FILES:
            if Path(default_file).exists():
                return cls.from_yaml(default_file)

        return cls()

    def to_yaml(self, path: str | Path) -> None:
        """Save configuration to a YAML file.

        Args:
            path: Path where the configuration file should be saved
        """
        path = Path(path)
        with open(path, 'w') as f:
            yaml.dump(self.model_dump(mode='json'), f, default_flow_style=False, sort_keys=False)
