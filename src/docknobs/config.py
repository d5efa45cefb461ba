"""Connection options and settings loading.

Settings can be loaded from a YAML or JSON file (or a dictionary) with
environment variable substitution:

- ``${VAR}`` - replaced with environment variable VAR, error if not set
- ``${VAR:default}`` / ``${VAR:-default}`` - VAR, or the default when unset

Example settings file:

    ```yaml
    address: ${MONGO_URI:-memory://local}
    options:
      connect_timeout_ms: 30000
      keep_alive: true
    schemas:
      User:
        fields:
          name: string
          age: number
          active: boolean
          date: {type: timestamp}
    ```
"""

from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml  # type: ignore[import-untyped]

from docknobs.exceptions import ConfigurationError

if TYPE_CHECKING:
    from docknobs.schema import SchemaRegistry

logger = logging.getLogger(__name__)

DEFAULT_ADDRESS = "memory://localhost"

# Matches ${VAR}, ${VAR:default} and ${VAR:-default}
VAR_PATTERN = re.compile(r"\$\{([^}:]+)(?::-?([^}]*))?\}")


@dataclass
class ConnectionOptions:
    """Options passed to the store factory when a connection is opened."""

    connect_timeout_ms: int = 30000
    keep_alive: bool = True
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, config: dict[str, Any] | None) -> ConnectionOptions:
        """Create options from a configuration dictionary.

        Unknown keys are kept in ``extra`` for store-specific use.
        """
        config = dict(config or {})
        known = {f.name for f in fields(cls)} - {"extra"}
        extra = dict(config.pop("extra", {}) or {})
        kwargs = {}
        for key, value in config.items():
            if key in known:
                kwargs[key] = value
            else:
                extra[key] = value
        try:
            options = cls(**kwargs, extra=extra)
            options.connect_timeout_ms = int(options.connect_timeout_ms)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(
                f"Invalid connection options: {e}", context={"options": config}
            ) from e
        return options


@dataclass
class Settings:
    """Top-level docknobs settings."""

    address: str = DEFAULT_ADDRESS
    options: ConnectionOptions = field(default_factory=ConnectionOptions)
    schemas: dict[str, dict[str, Any]] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Settings:
        data = substitute(data)
        return cls(
            address=str(data.get("address") or DEFAULT_ADDRESS),
            options=ConnectionOptions.from_dict(data.get("options")),
            schemas=dict(data.get("schemas") or {}),
        )

    def apply(self, registry: SchemaRegistry) -> list[str]:
        """Register every configured schema and return the kinds registered."""
        for kind, definition in self.schemas.items():
            registry.register_from_dict(kind, definition)
        return list(self.schemas)


def load_settings(source: str | Path | dict[str, Any]) -> Settings:
    """Load settings from a YAML/JSON file path or a dictionary.

    Raises:
        ConfigurationError: If the file cannot be read or parsed, or a
            referenced environment variable is missing
    """
    if isinstance(source, dict):
        return Settings.from_dict(source)

    path = Path(source)
    if not path.exists():
        raise ConfigurationError(f"Settings file not found: {path}", context={"path": str(path)})

    try:
        with open(path, encoding="utf-8") as f:
            if path.suffix in (".yaml", ".yml"):
                data = yaml.safe_load(f) or {}
            elif path.suffix == ".json":
                data = json.load(f)
            else:
                raise ConfigurationError(
                    f"Unsupported settings format: {path.suffix}", context={"path": str(path)}
                )
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise ConfigurationError(
            f"Cannot parse settings file {path}: {e}", context={"path": str(path)}
        ) from e

    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Settings file {path} must contain a mapping", context={"path": str(path)}
        )
    logger.debug("Loaded settings from %s", path)
    return Settings.from_dict(data)


def substitute(value: Any) -> Any:
    """Recursively substitute environment variables in a value."""
    if isinstance(value, str):
        return _substitute_string(value)
    elif isinstance(value, dict):
        return {k: substitute(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [substitute(item) for item in value]
    return value


def _substitute_string(text: str) -> Any:
    match = VAR_PATTERN.fullmatch(text)
    if match:
        # Whole-string references keep the converted type
        return _convert_type(_resolve(match))
    return VAR_PATTERN.sub(lambda m: _resolve(m), text)


def _resolve(match: re.Match) -> str:
    var_name, default = match.group(1), match.group(2)
    if var_name in os.environ:
        return os.environ[var_name]
    if default is not None:
        return default
    raise ConfigurationError(
        f"Environment variable '{var_name}' not found", context={"variable": var_name}
    )


def _convert_type(value: str) -> Any:
    lowered = value.lower()
    if lowered in ("true", "false"):
        return lowered == "true"
    try:
        return int(value)
    except ValueError:
        pass
    try:
        return float(value)
    except ValueError:
        return value
