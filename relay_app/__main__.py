"""
Command line entry point.

    python -m relay_app [--config relay.yaml] [--port 3000] [--simulate] [--log-level DEBUG]
"""

import argparse
import sys
from pathlib import Path
from typing import Any, Optional

from .config.loader import load_config
from .errors import ConfigurationError
from .gateway.server import run
from .logging import configure_logging, get_logger


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="relay_app",
        description="Relay MetaTrader market data to WebSocket clients",
    )
    parser.add_argument("--config", type=Path, help="YAML configuration file")
    parser.add_argument("--host", help="Interface to listen on")
    parser.add_argument("--port", type=int, help="Port to listen on")
    parser.add_argument(
        "--simulate",
        action="store_true",
        help="Use the simulated upstream feed instead of ZeroMQ",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level",
    )
    parser.add_argument("--log-json", action="store_true", help="Emit JSON log lines")
    return parser.parse_args(argv)


def build_overrides(args: argparse.Namespace) -> dict[str, Any]:
    """Turn command line flags into the highest-priority config overrides."""
    overrides: dict[str, Any] = {}
    if args.host:
        overrides.setdefault("gateway", {})["host"] = args.host
    if args.port is not None:
        overrides.setdefault("gateway", {})["port"] = args.port
    if args.simulate:
        overrides.setdefault("upstream", {})["mode"] = "simulated"
    if args.log_level:
        overrides.setdefault("logging", {})["level"] = args.log_level
    if args.log_json:
        overrides.setdefault("logging", {})["format_json"] = True
    return overrides


def main(argv: Optional[list[str]] = None) -> int:
    args = parse_args(argv)

    try:
        config = load_config(args.config, overrides=build_overrides(args))
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    configure_logging(level=config.logging.level, format_json=config.logging.format_json)
    logger = get_logger(__name__)

    try:
        run(config)
    except KeyboardInterrupt:
        logger.info("Interrupted")
    return 0


if __name__ == "__main__":
    sys.exit(main())
