"""Persisted user settings for PDF Freezer."""

from __future__ import annotations

import dataclasses
import json
import logging
import os
import sys
import threading
from pathlib import Path
from typing import Any, Mapping

from .exceptions import ConfigError
from .settings import CompressionTier, normalize_tier

LOGGER = logging.getLogger("pdffreezer.config")

APP_DIRNAME = "pdf-freezer"
CONFIG_FILENAME = "config.json"
HOME_ENV_VAR = "PDF_FREEZER_HOME"


def user_config_dir() -> Path:
    """Return the per-user directory holding config, counter and log files.

    ``PDF_FREEZER_HOME`` takes precedence over the platform default.
    """

    override = os.environ.get(HOME_ENV_VAR)
    if override:
        return Path(override).expanduser().resolve()

    if sys.platform.startswith("win"):
        base = os.environ.get("APPDATA")
        if not base:
            raise ConfigError("%APPDATA% is not defined")
        root = Path(base)
    elif sys.platform == "darwin":
        root = Path.home() / "Library" / "Application Support"
    else:
        xdg = os.environ.get("XDG_CONFIG_HOME")
        root = Path(xdg) if xdg and os.path.isabs(xdg) else Path.home() / ".config"
    return root / APP_DIRNAME


@dataclasses.dataclass(slots=True)
class AppConfig:
    """Settings record shared with the surrounding application.

    Attributes:
        prefix: Serial label prefix, e.g. ``"AR"``
        overlay: Whether the serial label is stamped on page one
        overlay_color: Stored for the settings UI; labels are always red
        overlay_position: One of the four corner names
        file_suffix: Appended to the input stem when not overwriting
        overwrite_mode: Replace the input file instead of writing a sibling
        compression_level: One of ``none``, ``low``, ``medium``, ``high``
    """

    prefix: str = "AR"
    overlay: bool = True
    overlay_color: str = "#FF0000"
    overlay_position: str = "bottom-right"
    file_suffix: str = "_frozen"
    overwrite_mode: bool = False
    compression_level: str = CompressionTier.NONE.value

    def to_dict(self) -> dict[str, Any]:
        return dataclasses.asdict(self)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "AppConfig":
        """Build a config from *payload*; unknown keys are ignored."""

        config = cls()
        config.update(payload)
        return config

    def update(self, payload: Mapping[str, Any]) -> None:
        for field in dataclasses.fields(self):
            if field.name not in payload:
                continue
            value = payload[field.name]
            expected = bool if field.type in (bool, "bool") else str
            if not isinstance(value, expected):
                LOGGER.warning("Ignoring config key %s with value %r", field.name, value)
                continue
            setattr(self, field.name, value)


class ConfigManager:
    """Loads and saves :class:`AppConfig` as JSON.

    Every ``update_*`` method persists immediately.
    """

    def __init__(self, config_dir: str | os.PathLike[str] | None = None) -> None:
        directory = Path(config_dir).expanduser().resolve() if config_dir is not None else user_config_dir()
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise ConfigError(f"Failed to create config dir {directory}: {exc}") from exc
        self.config_dir = directory
        self.config_path = directory / CONFIG_FILENAME
        self.current = AppConfig()
        self._lock = threading.RLock()

    @classmethod
    def create(cls, config_dir: str | os.PathLike[str] | None = None) -> "ConfigManager":
        """Return a manager with settings loaded, or defaults written back."""

        manager = cls(config_dir)
        try:
            manager.load()
        except ConfigError as exc:
            LOGGER.info("Using default configuration: %s", exc)
            try:
                manager.save()
            except ConfigError as save_exc:
                LOGGER.warning("Could not write default configuration: %s", save_exc)
        return manager

    def snapshot(self) -> AppConfig:
        """Return a copy of the current settings."""

        with self._lock:
            return dataclasses.replace(self.current)

    def load(self) -> AppConfig:
        try:
            raw = self.config_path.read_text(encoding="utf-8")
            payload = json.loads(raw)
        except (OSError, ValueError) as exc:
            raise ConfigError(f"Failed to load config {self.config_path}: {exc}") from exc
        if not isinstance(payload, dict):
            raise ConfigError(f"Config {self.config_path} must contain a JSON object")

        with self._lock:
            self.current = AppConfig.from_dict(payload)
            return self.current

    def save(self) -> None:
        with self._lock:
            payload = json.dumps(self.current.to_dict(), indent=2)
        try:
            self.config_path.write_text(payload, encoding="utf-8")
        except OSError as exc:
            raise ConfigError(f"Failed to save config {self.config_path}: {exc}") from exc

    def _set(self, **values: Any) -> None:
        with self._lock:
            for key, value in values.items():
                setattr(self.current, key, value)
        self.save()

    def update_prefix(self, prefix: str) -> None:
        self._set(prefix=prefix)

    def update_overlay(self, enabled: bool) -> None:
        self._set(overlay=bool(enabled))

    def update_overlay_position(self, position: str) -> None:
        self._set(overlay_position=position)

    def update_compression_level(self, level: str) -> None:
        # Unknown levels are stored as "none".
        self._set(compression_level=normalize_tier(level).value)

    def update_file_suffix(self, suffix: str) -> None:
        self._set(file_suffix=suffix)

    def update_overwrite_mode(self, enabled: bool) -> None:
        self._set(overwrite_mode=bool(enabled))


__all__ = ["APP_DIRNAME", "AppConfig", "CONFIG_FILENAME", "ConfigManager", "HOME_ENV_VAR", "user_config_dir"]
