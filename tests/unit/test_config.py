"""Unit tests for configuration management."""

from pathlib import Path

import pytest

from relay_app.config.defaults import get_default_config
from relay_app.config.loader import ConfigLoader, load_config
from relay_app.config.validation import ConfigValidator
from relay_app.errors import ConfigurationError


class TestDefaultConfig:
    """Test suite for default configuration."""

    def test_default_config_creation(self) -> None:
        """Test that default configuration can be created."""
        config = get_default_config()
        assert config.gateway.port == 3000
        assert config.gateway.ws_path == "/"
        assert config.upstream.endpoint == "tcp://127.0.0.1:5555"
        assert config.sessions.queue_capacity == 256
        assert config.sessions.overflow_policy == "drop_oldest"
        assert config.backoff.base_ms == 500
        assert config.backoff.cap_ms == 30000

    def test_defaults_pass_validation(self) -> None:
        """Default settings must validate cleanly."""
        loader = ConfigLoader.create()
        assert ConfigValidator.validate_config(loader.merge_config(environ={})) == []


class TestConfigLoader:
    """Test suite for configuration loader."""

    def test_merge_config_defaults_only(self) -> None:
        """Test config merging with defaults only."""
        loader = ConfigLoader.create()
        config = loader.merge_config(environ={})

        assert config["gateway"]["port"] == 3000
        assert config["upstream"]["mode"] == "zmq"

    def test_file_overrides_defaults(self, tmp_path: Path) -> None:
        """YAML settings replace defaults key by key."""
        path = tmp_path / "relay.yaml"
        path.write_text("gateway:\n  port: 8080\nsessions:\n  queue_capacity: 16\n")

        config = ConfigLoader.create(path).load(environ={})

        assert config.gateway.port == 8080
        assert config.gateway.host == "0.0.0.0"
        assert config.sessions.queue_capacity == 16

    def test_env_overrides_file(self, tmp_path: Path) -> None:
        """Environment variables take precedence over the file."""
        path = tmp_path / "relay.yaml"
        path.write_text("gateway:\n  port: 8080\n")

        config = ConfigLoader.create(path).load(environ={"RELAY_PORT": "9090"})

        assert config.gateway.port == 9090

    def test_bare_port_variable(self) -> None:
        """PORT is honoured, RELAY_PORT wins over it."""
        loader = ConfigLoader.create()

        assert loader.load(environ={"PORT": "4000"}).gateway.port == 4000
        assert loader.load(environ={"PORT": "4000", "RELAY_PORT": "5000"}).gateway.port == 5000

    def test_overrides_win_over_env(self) -> None:
        """Explicit overrides have the highest priority."""
        loader = ConfigLoader.create()
        config = loader.load(
            overrides={"upstream": {"mode": "simulated"}},
            environ={"RELAY_UPSTREAM_MODE": "zmq"},
        )

        assert config.upstream.mode == "simulated"

    def test_bool_env_conversion(self) -> None:
        """Boolean variables accept common truthy spellings."""
        loader = ConfigLoader.create()

        assert loader.load(environ={"RELAY_LOG_JSON": "yes"}).logging.format_json is True
        assert loader.load(environ={"RELAY_LOG_JSON": "0"}).logging.format_json is False

    def test_invalid_env_value_reported(self) -> None:
        """Unparseable numbers surface as validation errors."""
        loader = ConfigLoader.create()

        with pytest.raises(ConfigurationError) as exc_info:
            loader.load(environ={"RELAY_QUEUE_CAPACITY": "lots"})

        assert exc_info.value.errors[0].field == "sessions.queue_capacity"

    def test_lists_become_tuples(self, tmp_path: Path) -> None:
        """List settings are frozen into tuples."""
        path = tmp_path / "relay.yaml"
        path.write_text("commands:\n  allowed: [buy, sell]\n")

        config = ConfigLoader.create(path).load(environ={})

        assert config.commands.allowed == ("buy", "sell")

    def test_missing_file(self, tmp_path: Path) -> None:
        """A missing config file is a configuration error."""
        loader = ConfigLoader.create(tmp_path / "missing.yaml")

        with pytest.raises(ConfigurationError, match="not found"):
            loader.load(environ={})

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        """Unparseable YAML is a configuration error."""
        path = tmp_path / "relay.yaml"
        path.write_text("gateway: [unclosed\n")

        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            ConfigLoader.create(path).load(environ={})

    def test_non_mapping_file(self, tmp_path: Path) -> None:
        """The top level of the file must be a mapping."""
        path = tmp_path / "relay.yaml"
        path.write_text("- just\n- a list\n")

        with pytest.raises(ConfigurationError, match="mapping"):
            ConfigLoader.create(path).load(environ={})

    def test_sample_config_is_valid(self) -> None:
        """The shipped sample configuration loads."""
        path = Path(__file__).resolve().parents[2] / "config" / "relay.yaml"

        config = ConfigLoader.create(path).load(environ={})

        assert config.gateway.port == 3000

    def test_load_config_without_dotenv(self, monkeypatch) -> None:
        """load_config reads the process environment."""
        monkeypatch.setenv("RELAY_WS_PATH", "/ws")

        config = load_config(overrides={"gateway": {"port": 3100}}, use_dotenv=False)

        assert config.gateway.ws_path == "/ws"
        assert config.gateway.port == 3100


class TestConfigValidator:
    """Test suite for configuration validation."""

    def test_invalid_port(self) -> None:
        """Ports must be within 1..65535."""
        errors = ConfigValidator.validate_gateway_params({"port": 70000})
        assert len(errors) == 1
        assert errors[0].field == "gateway.port"

    def test_ws_path_must_be_absolute(self) -> None:
        """The WebSocket path must start with a slash."""
        errors = ConfigValidator.validate_gateway_params({"ws_path": "ws"})
        assert errors[0].field == "gateway.ws_path"

    def test_unknown_upstream_mode(self) -> None:
        """Only known upstream modes are accepted."""
        errors = ConfigValidator.validate_upstream_params({"mode": "carrier-pigeon"})
        assert errors[0].field == "upstream.mode"

    def test_backoff_cap_below_base(self) -> None:
        """The cap may not be smaller than the base delay."""
        errors = ConfigValidator.validate_backoff_params({"base_ms": 1000, "cap_ms": 500})
        assert [e.field for e in errors] == ["backoff.cap_ms"]

    def test_queue_capacity_positive(self) -> None:
        """Queue capacity must be a positive integer."""
        assert ConfigValidator.validate_session_params({"queue_capacity": 0})
        assert ConfigValidator.validate_session_params({"queue_capacity": True})
        assert not ConfigValidator.validate_session_params({"queue_capacity": 1})

    def test_unknown_overflow_policy(self) -> None:
        """Only drop_oldest and disconnect are recognised."""
        errors = ConfigValidator.validate_session_params({"overflow_policy": "block"})
        assert errors[0].field == "sessions.overflow_policy"

    def test_empty_command_name(self) -> None:
        """Allowed command names must be non-empty."""
        errors = ConfigValidator.validate_command_params({"allowed": ["buy", " "]})
        assert errors[0].field == "commands.allowed"

    def test_log_level(self) -> None:
        """Log level names are case-insensitive."""
        assert not ConfigValidator.validate_logging_params({"level": "debug"})
        assert ConfigValidator.validate_logging_params({"level": "LOUD"})

    def test_unknown_keys(self) -> None:
        """Unknown sections and settings are rejected before anything else."""
        errors = ConfigValidator.validate_config({
            "gateway": {"prot": 3000},
            "extras": {},
        })

        fields = {e.field for e in errors}
        assert fields == {"gateway.prot", "extras"}

    def test_collects_errors_across_sections(self) -> None:
        """All invalid settings are reported together."""
        errors = ConfigValidator.validate_config({
            "gateway": {"port": -1},
            "history": {"source": "ftp", "limit": 0},
            "shutdown": {"grace_seconds": -5},
        })

        assert {e.field for e in errors} == {
            "gateway.port", "history.source", "history.limit", "shutdown.grace_seconds"
        }
