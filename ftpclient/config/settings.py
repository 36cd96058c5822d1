"""Client settings management for ftpclient.

Provides ClientSettings dataclass and SettingsManager for persistence
of connection defaults between command-line runs.
"""

import json
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Optional

from ftpclient.config.paths import get_settings_path
from ftpclient.ftp.session import DeadlineMode, SessionConfig


@dataclass
class ClientSettings:
    """Connection defaults that persist between sessions."""

    last_host: str = ""
    last_port: int = 21
    last_username: str = "anonymous"
    initial_directory: str = ""
    timeout: int = 10
    verbose: bool = False
    deadline_mode: str = DeadlineMode.TOTAL.value

    def to_dict(self) -> dict:
        """Convert settings to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "ClientSettings":
        """Create settings from dictionary, ignoring unknown keys."""
        valid_fields = {f.name for f in cls.__dataclass_fields__.values()}
        filtered = {k: v for k, v in data.items() if k in valid_fields}
        return cls(**filtered)

    def to_session_config(self, password: str = "") -> SessionConfig:
        """
        Build a SessionConfig from these settings.

        Args:
            password: FTP password (never persisted here)

        Raises:
            ValueError: If the stored values are invalid
        """
        return SessionConfig(
            host=self.last_host,
            port=self.last_port,
            username=self.last_username,
            password=password,
            initial_directory=self.initial_directory or None,
            timeout=self.timeout,
            verbose=self.verbose,
            deadline_mode=DeadlineMode(self.deadline_mode)
        )


class SettingsManager:
    """Manages client settings persistence."""

    def __init__(self, config_path: Optional[Path] = None):
        """
        Initialize settings manager.

        Args:
            config_path: Optional custom path, defaults to platform standard
        """
        self._config_path = config_path or get_settings_path()
        self._settings: Optional[ClientSettings] = None

    @property
    def config_path(self) -> Path:
        """Path to settings file."""
        return self._config_path

    def load(self) -> ClientSettings:
        """
        Load settings from disk.

        Returns:
            ClientSettings instance (defaults if file not found)
        """
        if self._config_path.exists():
            try:
                with open(self._config_path, "r", encoding="utf-8") as f:
                    data = json.load(f)
                self._settings = ClientSettings.from_dict(data)
            except (json.JSONDecodeError, IOError, TypeError):
                # Invalid or unreadable file, use defaults
                self._settings = ClientSettings()
        else:
            self._settings = ClientSettings()

        return self._settings

    def save(self, settings: ClientSettings) -> None:
        """
        Persist settings to disk.

        Args:
            settings: Settings to save
        """
        self._settings = settings
        self._config_path.parent.mkdir(parents=True, exist_ok=True)

        with open(self._config_path, "w", encoding="utf-8") as f:
            json.dump(settings.to_dict(), f, indent=2)

    def reset(self) -> ClientSettings:
        """
        Reset to default settings.

        Returns:
            Default ClientSettings instance
        """
        self._settings = ClientSettings()

        if self._config_path.exists():
            self._config_path.unlink()

        return self._settings

    def update(self, **kwargs) -> ClientSettings:
        """
        Update specific settings fields.

        Args:
            **kwargs: Field names and new values

        Returns:
            Updated ClientSettings instance
        """
        if self._settings is None:
            self.load()

        for key, value in kwargs.items():
            if hasattr(self._settings, key):
                setattr(self._settings, key, value)

        self.save(self._settings)
        return self._settings
