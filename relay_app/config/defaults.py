"""Default configuration parameters for the market data relay."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class GatewayParams:
    """HTTP and WebSocket listener parameters."""
    host: str = "0.0.0.0"
    port: int = 3000
    ws_path: str = "/"                               # Browser UI connects to the root
    cors_origins: tuple[str, ...] = ("*",)


@dataclass(frozen=True)
class UpstreamParams:
    """Trading backend connection parameters."""
    mode: str = "zmq"                                # "zmq" or "simulated"
    host: str = "127.0.0.1"
    port: int = 5555
    connect_timeout_s: float = 5.0                   # Wait for the peer per attempt
    send_timeout_s: float = 1.0                      # Fail fast on a stuck socket
    inbound_queue_size: int = 1024                   # Decoded messages awaiting dispatch

    @property
    def endpoint(self) -> str:
        return f"tcp://{self.host}:{self.port}"


@dataclass(frozen=True)
class BackoffParams:
    """Reconnect backoff parameters."""
    base_ms: int = 500
    cap_ms: int = 30_000
    factor: float = 2.0
    jitter: float = 0.2                              # Fraction of the delay randomised


@dataclass(frozen=True)
class SessionParams:
    """Per-client session parameters."""
    queue_capacity: int = 256
    overflow_policy: str = "drop_oldest"             # "drop_oldest" or "disconnect"


@dataclass(frozen=True)
class CommandParams:
    """Command routing parameters; an empty allow-list accepts any name."""
    allowed: tuple[str, ...] = (
        "buy",
        "sell",
        "close",
        "close_all",
        "modify",
    )


@dataclass(frozen=True)
class HistoryParams:
    """Trade history provider parameters."""
    source: str = "static"                           # "static" or "sqlite"
    db_path: str = "history.db"
    limit: int = 100


@dataclass(frozen=True)
class SimulationParams:
    """Simulated upstream feed parameters."""
    symbol: str = "EURUSD"
    base_price: float = 1.0750
    interval_s: float = 2.0
    spread: float = 0.0002


@dataclass(frozen=True)
class ShutdownParams:
    """Graceful shutdown parameters."""
    grace_seconds: float = 5.0


@dataclass(frozen=True)
class LoggingParams:
    """Logging output parameters."""
    level: str = "INFO"
    format_json: bool = False


@dataclass(frozen=True)
class RelayConfig:
    """Complete relay configuration."""
    gateway: GatewayParams = field(default_factory=GatewayParams)
    upstream: UpstreamParams = field(default_factory=UpstreamParams)
    backoff: BackoffParams = field(default_factory=BackoffParams)
    sessions: SessionParams = field(default_factory=SessionParams)
    commands: CommandParams = field(default_factory=CommandParams)
    history: HistoryParams = field(default_factory=HistoryParams)
    simulation: SimulationParams = field(default_factory=SimulationParams)
    shutdown: ShutdownParams = field(default_factory=ShutdownParams)
    logging: LoggingParams = field(default_factory=LoggingParams)


def get_default_config() -> RelayConfig:
    """Get the default configuration instance."""
    return RelayConfig()
