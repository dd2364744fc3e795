"""Pytest configuration and shared fixtures."""

import asyncio
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List

import pytest

from relay_app.errors import TransportError
from relay_app.models.codec import decode_message, encode_message
from relay_app.models.history import TradeRecord, TradeSide
from relay_app.models.market import MarketSnapshot, Zone
from relay_app.upstream.transport import UpstreamTransport


class FakeTransport(UpstreamTransport):
    """In-memory transport driven by the test."""

    endpoint = "fake://upstream"

    def __init__(self, connect_failures: int = 0):
        self.connect_failures = connect_failures
        self.connect_calls = 0
        self.close_calls = 0
        self.connected = False
        self.refuse = False
        self.fail_send = False
        self.hang_send = False
        self.sent: List[Dict[str, Any]] = []
        self._frames: asyncio.Queue = asyncio.Queue()

    async def connect(self) -> None:
        self.connect_calls += 1
        if self.refuse or self.connect_calls <= self.connect_failures:
            raise TransportError("Connection refused", endpoint=self.endpoint, operation="connect")
        self.connected = True

    async def recv(self) -> bytes:
        item = await self._frames.get()
        if isinstance(item, Exception):
            raise item
        return item

    async def send(self, payload: bytes) -> None:
        if self.fail_send:
            raise TransportError("Send failed", endpoint=self.endpoint, operation="send")
        if self.hang_send:
            await asyncio.Event().wait()
        self.sent.append(decode_message(payload))

    async def close(self) -> None:
        self.connected = False
        self.close_calls += 1

    def push(self, document: Any) -> None:
        """Queue an inbound frame; dicts are encoded, bytes are sent as-is."""
        if isinstance(document, dict):
            document = encode_message(document).encode("utf-8")
        self._frames.put_nowait(document)

    def drop(self) -> None:
        """Make the next recv fail as if the connection was lost."""
        self._frames.put_nowait(
            TransportError("Connection reset", endpoint=self.endpoint, operation="recv")
        )


async def wait_until(predicate, timeout: float = 2.0, interval: float = 0.005) -> None:
    """Poll until predicate() is true or fail the test."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() >= deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(interval)


@pytest.fixture
def snapshot_document() -> Dict[str, Any]:
    """Snapshot document as sent by the expert advisor."""
    return {
        "symbol": "EURUSD",
        "bid": 1.07512,
        "ask": 1.07532,
        "time": "2025-04-16T10:30:00Z",
        "balance": 10000.0,
        "equity": 10150.25,
        "margin": 120.5,
        "positions": 1,
        "zones": [
            {"price": 1.08, "isSupply": True, "strength": 0.85, "time": "2025-04-16T10:00:00Z"},
            {"price": 1.069, "isSupply": False, "strength": 0.78, "time": "2025-04-16T10:00:00Z"},
        ],
    }


@pytest.fixture
def sample_snapshot() -> MarketSnapshot:
    """Parsed snapshot with one supply zone."""
    return MarketSnapshot(
        symbol="EURUSD",
        bid=Decimal("1.07512"),
        ask=Decimal("1.07532"),
        timestamp=datetime(2025, 4, 16, 10, 30, tzinfo=timezone.utc),
        balance=Decimal("10000.0"),
        equity=Decimal("10150.25"),
        margin=Decimal("120.5"),
        positions=1,
        zones=(Zone(price=Decimal("1.08"), is_supply=True, strength=0.85),),
    )


@pytest.fixture
def sample_trade() -> TradeRecord:
    """A closed GBPUSD buy."""
    return TradeRecord(
        ticket=777,
        symbol="GBPUSD",
        side=TradeSide.BUY,
        open_time=datetime(2025, 4, 17, 9, 0, tzinfo=timezone.utc),
        close_time=datetime(2025, 4, 17, 11, 0, tzinfo=timezone.utc),
        lots=Decimal("0.2"),
        open_price=Decimal("1.2500"),
        close_price=Decimal("1.2530"),
        profit=Decimal("60.0"),
        pips=30,
    )
