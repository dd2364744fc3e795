"""
Simulated backend feed for running the relay without MetaTrader.

Produces a random walk around a base price in the same document shape the
expert advisor sends, and records the commands it is sent. Selected at
startup with ``upstream.mode: simulated``.
"""

import asyncio
import random
from typing import Any, Optional

import structlog

from ..config.defaults import SimulationParams
from ..errors import TransportError
from ..models.codec import decode_message, encode_message
from ..utils.time import format_timestamp, utc_now
from .transport import UpstreamTransport

logger = structlog.get_logger(__name__)


class SimulatedTransport(UpstreamTransport):
    """Transport that fabricates market snapshots at a fixed interval."""

    endpoint = "simulated://"

    def __init__(self, params: Optional[SimulationParams] = None,
                 rng: Optional[random.Random] = None) -> None:
        self.params = params or SimulationParams()
        self.sent_commands: list[dict[str, Any]] = []
        self._rng = rng or random.Random()
        self._connected = False

    async def connect(self) -> None:
        self._connected = True
        logger.info("Simulated upstream feed started", symbol=self.params.symbol,
                    interval_s=self.params.interval_s)

    async def recv(self) -> bytes:
        if not self._connected:
            raise TransportError("Not connected", endpoint=self.endpoint, operation="recv")
        await asyncio.sleep(self.params.interval_s)
        return encode_message(self.generate_snapshot()).encode("utf-8")

    async def send(self, payload: bytes) -> None:
        if not self._connected:
            raise TransportError("Not connected", endpoint=self.endpoint, operation="send")
        command = decode_message(payload)
        self.sent_commands.append(command)
        logger.info("Simulated upstream received command", command=command.get("command"))

    async def close(self) -> None:
        self._connected = False

    def generate_snapshot(self) -> dict[str, Any]:
        """One snapshot document: quote, account figures and two zones."""
        base = self.params.base_price
        bid = base + (self._rng.random() - 0.5) * 0.0020
        now = format_timestamp(utc_now())

        return {
            "symbol": self.params.symbol,
            "bid": round(bid, 5),
            "ask": round(bid + self.params.spread, 5),
            "time": now,
            "balance": round(10000 + (self._rng.random() - 0.3) * 500, 2),
            "equity": round(10000 + (self._rng.random() - 0.3) * 500, 2),
            "margin": round(self._rng.random() * 200, 2),
            "positions": self._rng.randint(0, 1),
            "zones": [
                {"price": round(base + 0.0050, 5), "isSupply": True, "strength": 0.85, "time": now},
                {"price": round(base - 0.0060, 5), "isSupply": False, "strength": 0.78, "time": now},
            ],
        }
