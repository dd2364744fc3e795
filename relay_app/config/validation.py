"""Configuration validation utilities."""

from dataclasses import dataclass, fields
from typing import Any

from .defaults import RelayConfig

UPSTREAM_MODES = ("zmq", "simulated")
OVERFLOW_POLICIES = ("drop_oldest", "disconnect")
HISTORY_SOURCES = ("static", "sqlite")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class ValidationError:
    """Represents a configuration validation error."""
    field: str
    message: str
    value: Any


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


class ConfigValidator:
    """Validates configuration parameters."""

    @staticmethod
    def validate_gateway_params(params: dict[str, Any]) -> list[ValidationError]:
        """Validate gateway listener parameters."""
        errors = []

        if "port" in params:
            value = params["port"]
            if not _is_int(value) or not 0 < value < 65536:
                errors.append(ValidationError(
                    field="gateway.port",
                    message="Must be an integer between 1 and 65535",
                    value=value
                ))

        if "ws_path" in params:
            value = params["ws_path"]
            if not isinstance(value, str) or not value.startswith("/"):
                errors.append(ValidationError(
                    field="gateway.ws_path",
                    message="Must be a path starting with '/'",
                    value=value
                ))

        if "cors_origins" in params:
            value = params["cors_origins"]
            if not isinstance(value, (list, tuple)) or not all(isinstance(o, str) for o in value):
                errors.append(ValidationError(
                    field="gateway.cors_origins",
                    message="Must be a list of origin strings",
                    value=value
                ))

        return errors

    @staticmethod
    def validate_upstream_params(params: dict[str, Any]) -> list[ValidationError]:
        """Validate upstream connection parameters."""
        errors = []

        if "mode" in params and params["mode"] not in UPSTREAM_MODES:
            errors.append(ValidationError(
                field="upstream.mode",
                message=f"Must be one of {', '.join(UPSTREAM_MODES)}",
                value=params["mode"]
            ))

        if "host" in params:
            value = params["host"]
            if not isinstance(value, str) or not value.strip():
                errors.append(ValidationError(
                    field="upstream.host",
                    message="Must be a non-empty host name",
                    value=value
                ))

        if "port" in params:
            value = params["port"]
            if not _is_int(value) or not 0 < value < 65536:
                errors.append(ValidationError(
                    field="upstream.port",
                    message="Must be an integer between 1 and 65535",
                    value=value
                ))

        for key in ("connect_timeout_s", "send_timeout_s"):
            if key in params:
                value = params[key]
                if not _is_number(value) or value <= 0:
                    errors.append(ValidationError(
                        field=f"upstream.{key}",
                        message="Must be a positive number",
                        value=value
                    ))

        if "inbound_queue_size" in params:
            value = params["inbound_queue_size"]
            if not _is_int(value) or value <= 0:
                errors.append(ValidationError(
                    field="upstream.inbound_queue_size",
                    message="Must be a positive integer",
                    value=value
                ))

        return errors

    @staticmethod
    def validate_backoff_params(params: dict[str, Any]) -> list[ValidationError]:
        """Validate reconnect backoff parameters."""
        errors = []

        for key in ("base_ms", "cap_ms"):
            if key in params:
                value = params[key]
                if not _is_int(value) or value <= 0:
                    errors.append(ValidationError(
                        field=f"backoff.{key}",
                        message="Must be a positive integer",
                        value=value
                    ))

        base, cap = params.get("base_ms"), params.get("cap_ms")
        if _is_int(base) and _is_int(cap) and cap < base:
            errors.append(ValidationError(
                field="backoff.cap_ms",
                message="Must not be smaller than backoff.base_ms",
                value=cap
            ))

        if "factor" in params:
            value = params["factor"]
            if not _is_number(value) or value < 1:
                errors.append(ValidationError(
                    field="backoff.factor",
                    message="Must be a number >= 1",
                    value=value
                ))

        if "jitter" in params:
            value = params["jitter"]
            if not _is_number(value) or not 0 <= value <= 1:
                errors.append(ValidationError(
                    field="backoff.jitter",
                    message="Must be a number between 0 and 1",
                    value=value
                ))

        return errors

    @staticmethod
    def validate_session_params(params: dict[str, Any]) -> list[ValidationError]:
        """Validate client session parameters."""
        errors = []

        if "queue_capacity" in params:
            value = params["queue_capacity"]
            if not _is_int(value) or value <= 0:
                errors.append(ValidationError(
                    field="sessions.queue_capacity",
                    message="Must be a positive integer",
                    value=value
                ))

        if "overflow_policy" in params and params["overflow_policy"] not in OVERFLOW_POLICIES:
            errors.append(ValidationError(
                field="sessions.overflow_policy",
                message=f"Must be one of {', '.join(OVERFLOW_POLICIES)}",
                value=params["overflow_policy"]
            ))

        return errors

    @staticmethod
    def validate_command_params(params: dict[str, Any]) -> list[ValidationError]:
        """Validate command routing parameters."""
        errors = []

        if "allowed" in params:
            value = params["allowed"]
            if (not isinstance(value, (list, tuple))
                    or not all(isinstance(name, str) and name.strip() for name in value)):
                errors.append(ValidationError(
                    field="commands.allowed",
                    message="Must be a list of non-empty command names",
                    value=value
                ))

        return errors

    @staticmethod
    def validate_history_params(params: dict[str, Any]) -> list[ValidationError]:
        """Validate trade history parameters."""
        errors = []

        if "source" in params and params["source"] not in HISTORY_SOURCES:
            errors.append(ValidationError(
                field="history.source",
                message=f"Must be one of {', '.join(HISTORY_SOURCES)}",
                value=params["source"]
            ))

        if "limit" in params:
            value = params["limit"]
            if not _is_int(value) or value <= 0:
                errors.append(ValidationError(
                    field="history.limit",
                    message="Must be a positive integer",
                    value=value
                ))

        return errors

    @staticmethod
    def validate_simulation_params(params: dict[str, Any]) -> list[ValidationError]:
        """Validate simulated feed parameters."""
        errors = []

        for key in ("base_price", "interval_s"):
            if key in params:
                value = params[key]
                if not _is_number(value) or value <= 0:
                    errors.append(ValidationError(
                        field=f"simulation.{key}",
                        message="Must be a positive number",
                        value=value
                    ))

        if "spread" in params:
            value = params["spread"]
            if not _is_number(value) or value < 0:
                errors.append(ValidationError(
                    field="simulation.spread",
                    message="Must be a non-negative number",
                    value=value
                ))

        return errors

    @staticmethod
    def validate_shutdown_params(params: dict[str, Any]) -> list[ValidationError]:
        """Validate shutdown parameters."""
        errors = []

        if "grace_seconds" in params:
            value = params["grace_seconds"]
            if not _is_number(value) or value < 0:
                errors.append(ValidationError(
                    field="shutdown.grace_seconds",
                    message="Must be a non-negative number",
                    value=value
                ))

        return errors

    @staticmethod
    def validate_logging_params(params: dict[str, Any]) -> list[ValidationError]:
        """Validate logging parameters."""
        errors = []

        if "level" in params:
            value = params["level"]
            if not isinstance(value, str) or value.upper() not in LOG_LEVELS:
                errors.append(ValidationError(
                    field="logging.level",
                    message=f"Must be one of {', '.join(LOG_LEVELS)}",
                    value=value
                ))

        if "format_json" in params and not isinstance(params["format_json"], bool):
            errors.append(ValidationError(
                field="logging.format_json",
                message="Must be a boolean",
                value=params["format_json"]
            ))

        return errors

    @staticmethod
    def validate_known_keys(config: dict[str, Any]) -> list[ValidationError]:
        """Reject sections and settings the relay does not know."""
        errors = []
        defaults = RelayConfig()

        for section, values in config.items():
            if not hasattr(defaults, section):
                errors.append(ValidationError(
                    field=section,
                    message="Unknown configuration section",
                    value=values
                ))
                continue

            if not isinstance(values, dict):
                errors.append(ValidationError(
                    field=section,
                    message="Must be a mapping",
                    value=values
                ))
                continue

            known = {f.name for f in fields(getattr(defaults, section))}
            for key in values:
                if key not in known:
                    errors.append(ValidationError(
                        field=f"{section}.{key}",
                        message="Unknown setting",
                        value=values[key]
                    ))

        return errors

    @staticmethod
    def validate_config(config: dict[str, Any]) -> list[ValidationError]:
        """Validate complete configuration."""
        errors = ConfigValidator.validate_known_keys(config)
        if errors:
            return errors

        section_validators = {
            "gateway": ConfigValidator.validate_gateway_params,
            "upstream": ConfigValidator.validate_upstream_params,
            "backoff": ConfigValidator.validate_backoff_params,
            "sessions": ConfigValidator.validate_session_params,
            "commands": ConfigValidator.validate_command_params,
            "history": ConfigValidator.validate_history_params,
            "simulation": ConfigValidator.validate_simulation_params,
            "shutdown": ConfigValidator.validate_shutdown_params,
            "logging": ConfigValidator.validate_logging_params,
        }

        for section, validator in section_validators.items():
            if section in config:
                errors.extend(validator(config[section]))

        return errors
