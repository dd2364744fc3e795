"""Configuration loader with 3-tier parameter precedence."""

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml
from dotenv import load_dotenv

from ..errors import ConfigurationError
from .defaults import RelayConfig, get_default_config
from .validation import ConfigValidator

# Environment variable -> (section, key, converter). Later entries win, so
# RELAY_PORT overrides the bare PORT honoured for hosting platforms.
ENV_OVERRIDES: dict[str, tuple[str, str, Any]] = {
    "PORT": ("gateway", "port", int),
    "RELAY_HOST": ("gateway", "host", str),
    "RELAY_PORT": ("gateway", "port", int),
    "RELAY_WS_PATH": ("gateway", "ws_path", str),
    "RELAY_UPSTREAM_MODE": ("upstream", "mode", str),
    "RELAY_UPSTREAM_HOST": ("upstream", "host", str),
    "RELAY_UPSTREAM_PORT": ("upstream", "port", int),
    "RELAY_BACKOFF_BASE_MS": ("backoff", "base_ms", int),
    "RELAY_BACKOFF_CAP_MS": ("backoff", "cap_ms", int),
    "RELAY_QUEUE_CAPACITY": ("sessions", "queue_capacity", int),
    "RELAY_OVERFLOW_POLICY": ("sessions", "overflow_policy", str),
    "RELAY_HISTORY_SOURCE": ("history", "source", str),
    "RELAY_HISTORY_DB": ("history", "db_path", str),
    "RELAY_SHUTDOWN_GRACE": ("shutdown", "grace_seconds", float),
    "RELAY_LOG_LEVEL": ("logging", "level", str),
    "RELAY_LOG_JSON": ("logging", "format_json", "bool"),
}

_TRUE_VALUES = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class ConfigLoader:
    """Manages configuration loading with 3-tier precedence."""

    config_path: Optional[Path]
    defaults: RelayConfig

    @classmethod
    def create(cls, config_path: Optional[Path] = None) -> "ConfigLoader":
        """Create a ConfigLoader instance."""
        if config_path is not None:
            config_path = Path(config_path)

        return cls(
            config_path=config_path,
            defaults=get_default_config(),
        )

    def load_file_config(self) -> dict[str, Any]:
        """Load overrides from the YAML config file, if one was given."""
        if self.config_path is None:
            return {}

        if not self.config_path.exists():
            raise ConfigurationError(f"Config file not found: {self.config_path}")

        with open(self.config_path) as f:
            try:
                file_config = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ConfigurationError(f"Invalid YAML in {self.config_path}: {e}") from e

        if file_config is None:
            return {}
        if not isinstance(file_config, dict):
            raise ConfigurationError(f"Config file {self.config_path} must contain a mapping")

        return file_config

    def load_env_config(self, environ: Optional[Mapping[str, str]] = None) -> dict[str, Any]:
        """Collect overrides from environment variables."""
        environ = os.environ if environ is None else environ
        config: dict[str, Any] = {}

        for name, (section, key, converter) in ENV_OVERRIDES.items():
            raw = environ.get(name)
            if raw is None or raw == "":
                continue
            config.setdefault(section, {})[key] = self._convert(raw, converter)

        return config

    def merge_config(
        self,
        overrides: Optional[dict[str, Any]] = None,
        environ: Optional[Mapping[str, str]] = None
    ) -> dict[str, Any]:
        """
        Merge configuration with 3-tier precedence.

        Priority order:
        1. Explicit overrides and environment variables (highest priority)
        2. YAML config file
        3. Global defaults (lowest priority)
        """
        config = self._dataclass_to_dict(self.defaults)

        config = self._deep_merge(config, self.load_file_config())
        config = self._deep_merge(config, self.load_env_config(environ))

        if overrides:
            config = self._deep_merge(config, overrides)

        return config

    def load(
        self,
        overrides: Optional[dict[str, Any]] = None,
        environ: Optional[Mapping[str, str]] = None
    ) -> RelayConfig:
        """
        Merge, validate and build the relay configuration.

        Raises:
            ConfigurationError: If any setting fails validation
        """
        merged = self.merge_config(overrides, environ)

        errors = ConfigValidator.validate_config(merged)
        if errors:
            details = "; ".join(f"{err.field}: {err.message} (got: {err.value!r})" for err in errors)
            raise ConfigurationError(f"Invalid configuration: {details}", errors=errors)

        return self.build(merged)

    def build(self, config: dict[str, Any]) -> RelayConfig:
        """Build the frozen config dataclasses from a merged dictionary."""
        sections = {}
        for section_field in fields(RelayConfig):
            params_cls = type(getattr(self.defaults, section_field.name))
            values = dict(config.get(section_field.name, {}))
            for param in fields(params_cls):
                if isinstance(values.get(param.name), list):
                    values[param.name] = tuple(values[param.name])
            sections[section_field.name] = params_cls(**values)
        return RelayConfig(**sections)

    def _convert(self, raw: str, converter: Any) -> Any:
        if converter == "bool":
            return raw.strip().lower() in _TRUE_VALUES
        try:
            return converter(raw)
        except ValueError:
            # Left as text so validation reports it against the setting
            return raw

    def _dataclass_to_dict(self, obj: Any) -> dict[str, Any]:
        """Convert nested dataclasses to dictionary."""
        if hasattr(obj, '__dataclass_fields__'):
            result = {}
            for field_name, _field in obj.__dataclass_fields__.items():
                value = getattr(obj, field_name)
                if hasattr(value, '__dataclass_fields__'):
                    result[field_name] = self._dataclass_to_dict(value)
                else:
                    result[field_name] = value
            return result
        return obj  # type: ignore[no-any-return]

    def _deep_merge(self, base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
        """Deep merge two dictionaries."""
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value

        return result


def load_config(
    config_path: Optional[Path] = None,
    overrides: Optional[dict[str, Any]] = None,
    use_dotenv: bool = True,
) -> RelayConfig:
    """
    Load the relay configuration for process startup.

    Args:
        config_path: Optional YAML file
        overrides: Highest-priority settings, e.g. from the command line
        use_dotenv: Read a ``.env`` file into the environment first

    Returns:
        Validated RelayConfig
    """
    if use_dotenv:
        load_dotenv()
    return ConfigLoader.create(config_path).load(overrides)
