"""Configuration and paths for workspace isolation."""

from __future__ import annotations

import itertools
import json
import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any, Protocol

import cattrs
from attrs import Factory, define, field
from attrs.validators import ge
from cattrs.errors import BaseValidationError, ForbiddenExtraKeysError

logger = logging.getLogger(__name__)

CONFIG_DIR = Path.home() / ".config" / "wsisolate"


class ConfigError(Exception):
    """Configuration is missing or malformed."""


def get_config_path() -> Path:
    """Return path to the configuration JSON."""
    return CONFIG_DIR / "config.json"


@define
class Settings:
    """Matcher list and behaviour flags."""

    apps: list[str] = Factory(list)
    dynamic_slots: bool = False
    focus_new_slot: bool = True
    slots_only_on_primary: bool = False
    scope_to_output: bool = True
    settle_delay_ms: int = field(default=200, validator=ge(0))
    retry_delay_ms: int = field(default=100, validator=ge(0))
    max_app_retries: int = field(default=20, validator=ge(0))
    focus_grace_ms: int = field(default=300, validator=ge(0))


_converter = cattrs.Converter(forbid_extra_keys=True)


def parse_settings(data: Any) -> Settings:  # noqa: ANN401
    """Structure raw JSON data into Settings, raising ConfigError if invalid."""
    if not isinstance(data, dict):
        raise ConfigError("configuration must be a JSON object")
    apps = data.get("apps", [])
    if not isinstance(apps, list) or not all(isinstance(a, str) for a in apps):
        raise ConfigError("'apps' must be a list of strings")
    try:
        return _converter.structure(data, Settings)
    except (BaseValidationError, ForbiddenExtraKeysError, ValueError, TypeError) as e:
        raise ConfigError(f"invalid configuration: {e}") from e


class ConfigSource(Protocol):
    def load(self) -> Settings: ...

    def connect(self, callback: Callable[[], None]) -> int: ...

    def disconnect(self, handler_id: int) -> None: ...


class _Listeners:
    """Change listeners shared by the config sources."""

    def __init__(self) -> None:
        self._callbacks: dict[int, Callable[[], None]] = {}
        self._ids = itertools.count(1)

    def connect(self, callback: Callable[[], None]) -> int:
        handler_id = next(self._ids)
        self._callbacks[handler_id] = callback
        return handler_id

    def disconnect(self, handler_id: int) -> None:
        self._callbacks.pop(handler_id, None)

    def notify(self) -> None:
        for callback in list(self._callbacks.values()):
            try:
                callback()
            except Exception:
                logger.exception("configuration listener failed")


class FileConfigSource(_Listeners):
    """Settings read from a JSON file, polled for changes."""

    def __init__(self, path: Path | None = None) -> None:
        super().__init__()
        self.path = path if path is not None else get_config_path()
        self._mtime: int | None = None

    def _stat_mtime(self) -> int | None:
        try:
            return self.path.stat().st_mtime_ns
        except OSError:
            return None

    def load(self) -> Settings:
        """Load settings from disk."""
        self._mtime = self._stat_mtime()
        try:
            data = json.loads(self.path.read_text())
        except FileNotFoundError as e:
            raise ConfigError(f"configuration not found: {self.path}") from e
        except (OSError, ValueError) as e:
            raise ConfigError(f"cannot read {self.path}: {e}") from e
        return parse_settings(data)

    def check(self) -> bool:
        """Notify listeners if the file changed since the last load.

        Returns True if a change was detected.
        """
        mtime = self._stat_mtime()
        if mtime == self._mtime:
            return False
        logger.info("configuration %s changed", self.path)
        self._mtime = mtime
        self.notify()
        return True


class StaticConfigSource(_Listeners):
    """In-memory settings, replaced wholesale by update()."""

    def __init__(self, settings: Settings | None = None) -> None:
        super().__init__()
        self.settings = settings

    def load(self) -> Settings:
        if self.settings is None:
            raise ConfigError("no configuration set")
        return self.settings

    def update(self, settings: Settings | None) -> None:
        self.settings = settings
        self.notify()
