"""Config store: env, optional config file (master over env), runtime overrides."""
import json
import logging
import threading
from pathlib import Path
from typing import Any, Optional

import yaml

logger = logging.getLogger(__name__)


def _read_config_file(path: Path) -> dict[str, Any]:
    """Read a YAML or JSON config file into a flat dict. Returns {} when missing or invalid."""
    if not path.exists():
        logger.debug("Config file not found: %s (optional; using env/defaults)", path)
        return {}
    try:
        raw = path.read_text()
    except OSError as e:
        logger.warning("Could not read config file %s: %s", path, e)
        return {}
    suffix = path.suffix.lower()
    try:
        if suffix in (".yaml", ".yml"):
            data = yaml.safe_load(raw)
        elif suffix == ".json":
            data = json.loads(raw)
        else:
            logger.warning("Config file must be .yaml, .yml, or .json: %s", path)
            return {}
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        logger.warning("Invalid config file %s: %s", path, e)
        return {}
    if not isinstance(data, dict):
        logger.warning("Config file must contain a mapping; got %s", type(data).__name__)
        return {}
    return data


class ConfigStore:
    """
    Current Settings snapshot built from env, an optional config file and pushed overrides.
    Precedence: overrides > config file > env > defaults.
    """

    def __init__(self, settings_cls: type, config_file_path: Optional[str] = None):
        self._settings_cls = settings_cls
        self._file_path: Optional[Path] = None
        if config_file_path:
            self._file_path = Path(config_file_path).expanduser().resolve()
        self._overrides: dict[str, Any] = {}
        self._current: Optional[Any] = None
        self._lock = threading.RLock()

    def _build(self) -> Any:
        env_dict = self._settings_cls().model_dump()
        file_dict = _read_config_file(self._file_path) if self._file_path else {}
        if file_dict:
            logger.info("Loaded config file (master over env): %s", self._file_path)
        return self._settings_cls(**{**env_dict, **file_dict, **self._overrides})

    def load_initial(self) -> None:
        """Build the first snapshot. Call once at startup."""
        with self._lock:
            self._current = self._build()

    def get_settings(self) -> Any:
        """Return the current Settings instance."""
        with self._lock:
            if self._current is None:
                self._current = self._build()
            return self._current

    def update(self, overrides: dict[str, Any]) -> None:
        """Merge overrides and rebuild. Keeps the previous snapshot on validation error."""
        with self._lock:
            current = self.get_settings()
            try:
                self._current = self._settings_cls(**{**current.model_dump(), **overrides})
                self._overrides.update(overrides)
            except Exception as e:
                logger.warning("Config update validation failed; keeping previous config: %s", e)

    def reload_from_file(self) -> None:
        """Re-read the config file, keeping pushed overrides."""
        with self._lock:
            try:
                self._current = self._build()
            except Exception as e:
                logger.warning("Config reload validation failed; keeping previous config: %s", e)

    def clear_overrides(self) -> None:
        """Drop pushed overrides and rebuild from file + env."""
        with self._lock:
            self._overrides.clear()
            self._current = self._build()
