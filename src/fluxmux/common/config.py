"""Layered TOML configuration.

Layers, lowest priority first:

1. defaults file (explicit ``--config`` path, else ``./config/defaults.toml``
   or ``~/.config/<app>/defaults.toml``)
2. system config (``/etc/<app>/config.toml``, ``%PROGRAMDATA%`` on Windows)
3. user config (``platformdirs`` user config dir)
4. ``<APP>_<SECTION>_<KEY>`` environment variables

The merged mapping is validated by a pydantic model.
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Type, TypeVar

import platformdirs
import toml
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from .errors import ConfigurationError

T = TypeVar('T', bound=BaseModel)

logger = logging.getLogger(__name__)


def deep_merge(base: Dict[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    """Merge ``override`` into a copy of ``base``, recursing into tables."""
    result = dict(base)
    for key, value in override.items():
        if isinstance(result.get(key), dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def convert_env_value(value: str) -> Any:
    """Best-effort typing of an environment value.

    ``true``/``false`` (and yes/no) become booleans, numbers become int or
    float, comma separated text becomes a list, anything else stays a string.
    """
    lowered = value.strip().lower()
    if lowered in ("true", "yes"):
        return True
    if lowered in ("false", "no"):
        return False
    try:
        return float(value) if "." in value else int(value)
    except ValueError:
        pass
    if "," in value:
        return [v.strip() for v in value.split(",")]
    return value


def env_overrides(prefix: str, sections: Iterable[str], environ: Mapping[str, str]) -> Dict[str, Dict[str, Any]]:
    """Collect ``<PREFIX><SECTION>_<KEY>`` variables into nested tables.

    Known section names are matched longest first, so a section or key may
    itself contain underscores. Variables naming no known section are ignored.
    """
    known = sorted((s.lower() for s in sections), key=len, reverse=True)
    overrides: Dict[str, Dict[str, Any]] = {}
    for env_key, env_value in environ.items():
        if not env_key.startswith(prefix):
            continue
        remainder = env_key[len(prefix):].lower()
        for section in known:
            if remainder.startswith(section + "_") and len(remainder) > len(section) + 1:
                key = remainder[len(section) + 1:]
                overrides.setdefault(section, {})[key] = convert_env_value(env_value)
                break
        else:
            logger.debug(f"Ignoring environment variable: {{'name': {env_key!r}}}")
    return overrides


class ConfigLoader:
    """Builds a validated config object from files and environment."""

    def __init__(self, app_name: str = "fluxmux", config_class: Optional[Type[T]] = None) -> None:
        if config_class is None:
            raise ValueError("config_class is required")
        self.app_name = app_name
        self.config_class = config_class
        self.env_prefix = f"{app_name.upper().replace('-', '_')}_"

    @property
    def user_config_path(self) -> Path:
        return Path(platformdirs.user_config_dir(appname=self.app_name, appauthor=False)) / "config.toml"

    @property
    def system_config_path(self) -> Path:
        if os.name == "nt":
            root = Path(os.environ.get("PROGRAMDATA", "C:\\ProgramData"))
            return root / self.app_name / "config.toml"
        return Path("/etc") / self.app_name / "config.toml"

    def load(self, defaults_path: Optional[Path] = None) -> T:
        """Load and validate configuration from every layer.

        Args:
            defaults_path: TOML file used as the base layer; must exist if given

        Raises:
            ConfigurationError: If a file is missing or unparsable, or
                validation fails
        """
        merged: Dict[str, Any] = {}
        applied: List[str] = []
        for name, layer in self._layers(defaults_path):
            if layer:
                merged = deep_merge(merged, layer)
                applied.append(name)

        env = env_overrides(self.env_prefix, self.config_class.model_fields, os.environ)
        if env:
            merged = deep_merge(merged, env)
            applied.append("env")

        logger.debug(f"Configuration layers applied: {{'layers': {applied!r}}}")

        try:
            return self.config_class(**merged)
        except PydanticValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}", layers=applied) from e

    def _layers(self, defaults_path: Optional[Path]) -> List[Tuple[str, Dict[str, Any]]]:
        return [
            ("defaults", self._load_defaults(defaults_path)),
            ("system", self._read_optional(self.system_config_path)),
            ("user", self._read_optional(self.user_config_path)),
        ]

    def _read_toml(self, path: Path) -> Dict[str, Any]:
        try:
            return toml.load(path)
        except (toml.TomlDecodeError, OSError) as e:
            raise ConfigurationError(f"Cannot read config file {path}: {e}", path=str(path)) from e

    def _read_optional(self, path: Path) -> Dict[str, Any]:
        return self._read_toml(path) if path.exists() else {}

    def _load_defaults(self, defaults_path: Optional[Path]) -> Dict[str, Any]:
        if defaults_path is not None:
            if not defaults_path.exists():
                raise ConfigurationError(
                    f"Config file not found: {defaults_path}", path=str(defaults_path)
                )
            return self._read_toml(defaults_path)

        for path in (
            Path.cwd() / "config" / "defaults.toml",
            Path.home() / ".config" / self.app_name / "defaults.toml",
        ):
            if path.exists():
                return self._read_toml(path)
        return {}

    def save_user_config(self, config: BaseModel) -> Path:
        """Write ``config`` as the user config file and return its path."""
        path = self.user_config_path
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            toml.dump(config.model_dump(mode="json", exclude_none=True), f)
        logger.info(f"User config saved: {{'path': {str(path)!r}}}")
        return path
