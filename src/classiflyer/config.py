"""Configuration management for Classiflyer.

The root directory lives in a small JSON config file in the platform
application-data directory, outside the index, so the storage root can be
relocated without rewriting ``db.json``.
"""

import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field

from .errors import ConfigError

logger = logging.getLogger(__name__)

APP_NAME = "Classiflyer"
CONFIG_FILENAME = "config.json"


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "y", "on"}


def user_data_dir() -> Path:
    """Platform-specific application-data directory.

    ``CLASSIFLYER_CONFIG_DIR`` overrides the platform default.
    """
    override = os.environ.get("CLASSIFLYER_CONFIG_DIR")
    if override:
        return Path(override).expanduser()

    home = Path.home()
    if sys.platform == "win32":
        appdata = os.environ.get("APPDATA")
        base = Path(appdata) if appdata else home / "AppData" / "Roaming"
        return base / APP_NAME
    if sys.platform == "darwin":
        return home / "Library" / "Application Support" / APP_NAME
    xdg = os.environ.get("XDG_CONFIG_HOME")
    base = Path(xdg) if xdg else home / ".config"
    return base / APP_NAME


def default_root_path() -> Path:
    """Root used when nothing has been configured yet."""
    home = Path.home()
    if sys.platform == "win32":
        return home / "AppData" / "Roaming" / APP_NAME / "config"
    return home / ".classiflyer" / "config"


class ConfigStore:
    """Reads and writes the application config file.

    Only ``rootPath`` is interpreted; any other keys are preserved on write.
    """

    def __init__(self, config_dir: Optional[Path] = None):
        self.config_dir = config_dir or user_data_dir()
        self.config_file = self.config_dir / CONFIG_FILENAME

    def read(self) -> dict[str, Any]:
        """Load the config file; a missing or malformed file reads as empty."""
        if not self.config_file.exists():
            return {}
        try:
            with open(self.config_file, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable config file {self.config_file}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def write(self, data: dict[str, Any]) -> None:
        self.config_dir.mkdir(parents=True, exist_ok=True)
        with open(self.config_file, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
        logger.debug(f"Saved config to {self.config_file}")

    def get_root(self) -> Path:
        root = self.read().get("rootPath")
        if isinstance(root, str) and root.strip():
            return Path(root)
        return default_root_path()

    def set_root(self, root_path: str | Path) -> Path:
        """Persist a new root directory.

        The caller is expected to have bootstrapped the new root first.
        """
        if root_path is None or not str(root_path).strip():
            raise ConfigError("Invalid path: the root directory cannot be empty")
        new_root = Path(str(root_path).strip()).expanduser().resolve()
        data = self.read()
        data["rootPath"] = str(new_root)
        self.write(data)
        logger.info(f"Root directory set to {new_root}")
        return new_root


class ClassiflyerConfig(BaseModel):
    """Resolved runtime configuration for one store."""

    root_path: Path = Field(default_factory=default_root_path)
    config_dir: Path = Field(default_factory=user_data_dir)
    journal_enabled: bool = Field(default=True)

    model_config = {"frozen": False}

    @classmethod
    def from_env(cls, cli_root: Optional[str] = None) -> "ClassiflyerConfig":
        """Resolve the configuration with the following precedence:

        1. CLI --root option (if provided)
        2. CLASSIFLYER_ROOT environment variable
        3. rootPath from the config file
        4. Platform default root
        """
        store = ConfigStore()
        if cli_root:
            root = Path(cli_root)
        elif os.environ.get("CLASSIFLYER_ROOT"):
            root = Path(os.environ["CLASSIFLYER_ROOT"])
        else:
            root = store.get_root()

        return cls(
            root_path=root.expanduser().resolve(),
            config_dir=store.config_dir,
            journal_enabled=_env_bool("CLASSIFLYER_JOURNAL_ENABLED", True),
        )

    def config_store(self) -> ConfigStore:
        return ConfigStore(self.config_dir)
