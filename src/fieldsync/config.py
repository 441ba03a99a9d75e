"""Configuration management for fieldsync.

Handles:
- .fieldsync/config.yaml parsing
- Environment variable overrides
- .fieldsync/ directory discovery
- Sync root resolution (theme, parent theme or custom path)
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any

import yaml

logger = logging.getLogger(__name__)

CONFIG_YAML = "config.yaml"
FIELDSYNC_DIR = ".fieldsync"
DEFAULT_DB_NAME = "fieldsync.db"
SYNC_SUBDIR = "fields"
THEME_YML = "theme.yml"

PATH_THEME = "theme"
PATH_PARENT = "parent"
PATH_CUSTOM = "custom"
PATH_TYPES = (PATH_THEME, PATH_PARENT, PATH_CUSTOM)

# Store metadata key for the last whole-store sync (epoch seconds)
LAST_SYNC_KEY = "sync_last_update"

# yaml key -> attribute
_KEYS = {
    "sync-enabled": "sync_enabled",
    "auto-sync-enabled": "auto_sync_enabled",
    "auto-sync-on-save": "auto_sync_on_save",
    "sync-path-type": "sync_path_type",
    "sync-custom-path": "sync_custom_path",
    "themes-dir": "themes_dir",
    "theme": "theme",
    "db": "db",
}
_BOOL_KEYS = {"sync-enabled", "auto-sync-enabled", "auto-sync-on-save"}


def _truthy(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class FieldSyncConfig:
    """User-facing config from config.yaml."""
    sync_enabled: bool = True
    auto_sync_enabled: bool = False
    auto_sync_on_save: bool = False
    sync_path_type: str = PATH_THEME
    sync_custom_path: str = ""
    themes_dir: str = "themes"
    theme: str = "classic"
    db: str = ""

    @classmethod
    def load(cls, fieldsync_dir: str) -> FieldSyncConfig:
        """Load config.yaml from the .fieldsync directory."""
        config_path = os.path.join(fieldsync_dir, CONFIG_YAML)
        cfg = cls()
        if os.path.exists(config_path):
            with open(config_path) as f:
                data = yaml.safe_load(f) or {}
            cfg.sync_enabled = bool(data.get("sync-enabled", True))
            cfg.auto_sync_enabled = bool(data.get("auto-sync-enabled", False))
            cfg.auto_sync_on_save = bool(data.get("auto-sync-on-save", False))
            cfg.sync_path_type = data.get("sync-path-type", PATH_THEME) or PATH_THEME
            cfg.sync_custom_path = data.get("sync-custom-path", "") or ""
            cfg.themes_dir = data.get("themes-dir", "themes") or "themes"
            cfg.theme = data.get("theme", "classic") or "classic"
            cfg.db = data.get("db", "") or ""

        # Environment variable overrides
        if os.environ.get("FIELDSYNC_DB"):
            cfg.db = os.environ["FIELDSYNC_DB"]
        if os.environ.get("FIELDSYNC_SYNC_ENABLED"):
            cfg.sync_enabled = _truthy(os.environ["FIELDSYNC_SYNC_ENABLED"])
        if os.environ.get("FIELDSYNC_AUTO_SYNC"):
            cfg.auto_sync_enabled = _truthy(os.environ["FIELDSYNC_AUTO_SYNC"])
        if os.environ.get("FIELDSYNC_SYNC_PATH"):
            cfg.sync_path_type = PATH_CUSTOM
            cfg.sync_custom_path = os.environ["FIELDSYNC_SYNC_PATH"]

        return cfg

    def save(self, fieldsync_dir: str) -> None:
        """Save config to config.yaml."""
        config_path = os.path.join(fieldsync_dir, CONFIG_YAML)
        data: dict[str, Any] = {
            "sync-enabled": self.sync_enabled,
            "auto-sync-enabled": self.auto_sync_enabled,
            "auto-sync-on-save": self.auto_sync_on_save,
            "sync-path-type": self.sync_path_type,
            "themes-dir": self.themes_dir,
            "theme": self.theme,
        }
        if self.sync_custom_path:
            data["sync-custom-path"] = self.sync_custom_path
        if self.db:
            data["db"] = self.db

        with open(config_path, "w") as f:
            yaml.dump(data, f, default_flow_style=False)

    # --- key access for `fieldsync config` ---

    @staticmethod
    def keys() -> list[str]:
        return list(_KEYS)

    def get(self, key: str) -> Any:
        if key not in _KEYS:
            raise KeyError(key)
        return getattr(self, _KEYS[key])

    def set(self, key: str, value: str) -> None:
        """Set a key from its string form, validating where the key is constrained."""
        if key not in _KEYS:
            raise KeyError(key)
        if key in _BOOL_KEYS:
            setattr(self, _KEYS[key], _truthy(value))
            return
        if key == "sync-path-type" and value not in PATH_TYPES:
            raise ValueError(
                f"invalid sync-path-type {value!r} (expected one of: {', '.join(PATH_TYPES)})"
            )
        setattr(self, _KEYS[key], value)

    def to_dict(self) -> dict[str, Any]:
        return {key: self.get(key) for key in _KEYS}


def find_fieldsync_dir(start: str | None = None) -> str | None:
    """Walk up from start directory to find .fieldsync/ directory.

    Returns absolute path to .fieldsync/ directory, or None if not found.
    """
    if start is None:
        start = os.getcwd()
    current = os.path.abspath(start)
    while True:
        candidate = os.path.join(current, FIELDSYNC_DIR)
        if os.path.isdir(candidate):
            return candidate
        parent = os.path.dirname(current)
        if parent == current:
            return None
        current = parent


def project_root(fieldsync_dir: str) -> str:
    return os.path.dirname(os.path.abspath(fieldsync_dir))


def get_db_path(fieldsync_dir: str, config: FieldSyncConfig | None = None) -> str:
    """Get the full path to the SQLite database."""
    env_db = os.environ.get("FIELDSYNC_DB")
    if env_db:
        return env_db
    if config and config.db:
        if os.path.isabs(config.db):
            return config.db
        return os.path.join(fieldsync_dir, config.db)
    return os.path.join(fieldsync_dir, DEFAULT_DB_NAME)


def _themes_dir(root: str, config: FieldSyncConfig) -> str:
    if os.path.isabs(config.themes_dir):
        return config.themes_dir
    return os.path.join(root, config.themes_dir)


def _with_slash(path: str) -> str:
    return path.rstrip("/") + "/"


def _active_theme_path(root: str, config: FieldSyncConfig) -> str:
    return _with_slash(os.path.join(_themes_dir(root, config), config.theme, SYNC_SUBDIR))


def _parent_theme_path(root: str, config: FieldSyncConfig) -> str:
    theme_yml = os.path.join(_themes_dir(root, config), config.theme, THEME_YML)
    if os.path.exists(theme_yml):
        try:
            with open(theme_yml) as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            logger.warning("Cannot parse %s: %s", theme_yml, e)
            data = {}
        parent = data.get("parent") if isinstance(data, dict) else None
        if parent:
            return _with_slash(os.path.join(_themes_dir(root, config), parent, SYNC_SUBDIR))
    return _active_theme_path(root, config)


def resolve_sync_root(root: str, config: FieldSyncConfig) -> str:
    """Directory holding the sync files, always with a trailing slash.

    ``root`` is the project directory relative paths are resolved against.
    """
    if config.sync_path_type == PATH_PARENT:
        return _parent_theme_path(root, config)
    if config.sync_path_type == PATH_CUSTOM:
        if not config.sync_custom_path:
            return _active_theme_path(root, config)
        path = config.sync_custom_path
        if not os.path.isabs(path):
            path = os.path.join(root, path)
        return _with_slash(path)
    return _active_theme_path(root, config)
