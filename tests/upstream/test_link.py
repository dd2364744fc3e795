"""
Tests for the reconnecting upstream link.

The link is driven against an in-memory transport with a millisecond
backoff so reconnect scenarios run quickly.
"""

import asyncio
from decimal import Decimal

import pytest

from relay_app.errors import LinkDisconnectedError
from relay_app.models.commands import Command
from relay_app.upstream.backoff import ExponentialBackoff
from relay_app.upstream.link import LinkState, UpstreamLink
from tests.conftest import FakeTransport, wait_until


def fast_backoff() -> ExponentialBackoff:
    return ExponentialBackoff(base_ms=1, cap_ms=5, jitter=0)


def make_link(transport: FakeTransport, **kwargs) -> UpstreamLink:
    return UpstreamLink(transport, backoff=fast_backoff(), **kwargs)


class TestConnect:
    """Test connecting and reconnecting."""

    def test_connects_and_reports_state(self):
        async def scenario():
            transport = FakeTransport()
            link = make_link(transport)
            link.start()

            assert await link.wait_connected(timeout=1.0)
            assert link.state is LinkState.CONNECTED
            assert link.is_connected

            await link.close(timeout=1.0)
            return link, transport

        link, transport = asyncio.run(scenario())

        assert link.state is LinkState.CLOSED
        assert transport.close_calls >= 1

    def test_retries_failed_connects_with_backoff(self):
        async def scenario():
            transport = FakeTransport(connect_failures=3)
            link = make_link(transport)
            link.start()

            assert await link.wait_connected(timeout=2.0)
            attempts = link.connect_attempts
            backoff_attempts = link.backoff.attempts
            await link.close(timeout=1.0)
            return attempts, backoff_attempts

        attempts, backoff_attempts = asyncio.run(scenario())

        assert attempts == 4
        assert backoff_attempts == 0

    def test_keeps_retrying_after_many_failed_connects(self):
        """The connect loop survives past a thousand failed attempts."""
        async def scenario():
            transport = FakeTransport(connect_failures=40)
            link = make_link(transport)
            link.backoff.attempts = 1020
            link.start()

            connected = await link.wait_connected(timeout=5.0)
            attempts = link.connect_attempts
            await link.close(timeout=1.0)
            return connected, attempts

        connected, attempts = asyncio.run(scenario())

        assert connected
        assert attempts == 41

    def test_reconnects_after_connection_lost(self):
        async def scenario():
            transport = FakeTransport()
            link = make_link(transport)
            link.start()
            await link.wait_connected(timeout=1.0)

            transport.drop()
            await wait_until(lambda: transport.connect_calls == 2)
            assert await link.wait_connected(timeout=1.0)

            transport.push({"symbol": "EURUSD", "bid": 1.1, "ask": 1.2})
            document = await asyncio.wait_for(link.get_message(), timeout=1.0)
            await link.close(timeout=1.0)
            return document

        document = asyncio.run(scenario())

        assert document["symbol"] == "EURUSD"

    def test_close_before_start(self):
        async def scenario():
            transport = FakeTransport()
            link = make_link(transport)
            await link.close()
            return link, transport

        link, transport = asyncio.run(scenario())

        assert link.state is LinkState.CLOSED
        assert transport.close_calls == 1

    def test_close_while_retrying(self):
        async def scenario():
            transport = FakeTransport(connect_failures=10_000)
            link = UpstreamLink(transport, backoff=ExponentialBackoff(base_ms=10_000, cap_ms=10_000, jitter=0))
            link.start()
            await wait_until(lambda: transport.connect_calls >= 1)
            await link.close(timeout=1.0)
            return link

        assert asyncio.run(scenario()).state is LinkState.CLOSED


class TestReceive:
    """Test inbound message handling."""

    def test_messages_arrive_in_order(self):
        async def scenario():
            transport = FakeTransport()
            link = make_link(transport)
            link.start()
            await link.wait_connected(timeout=1.0)

            for i in range(5):
                transport.push({"symbol": "EURUSD", "bid": i, "ask": i})

            received = []
            async for document in link.messages():
                received.append(document["bid"])
                if len(received) == 5:
                    break

            await link.close(timeout=1.0)
            return received, link.received_count

        received, count = asyncio.run(scenario())

        assert received == [0, 1, 2, 3, 4]
        assert count == 5

    def test_malformed_frames_are_dropped(self):
        async def scenario():
            transport = FakeTransport()
            link = make_link(transport)
            link.start()
            await link.wait_connected(timeout=1.0)

            transport.push(b"{not json")
            transport.push(b"[1, 2, 3]")
            transport.push({"symbol": "EURUSD", "bid": 1, "ask": 2})

            document = await asyncio.wait_for(link.get_message(), timeout=1.0)
            stats = link.stats()
            await link.close(timeout=1.0)
            return document, stats

        document, stats = asyncio.run(scenario())

        assert document["symbol"] == "EURUSD"
        assert stats["malformed"] == 2
        assert stats["received"] == 1
        assert stats["state"] == "connected"


class TestSendCommand:
    """Test outbound commands."""

    def test_send_while_connected(self):
        async def scenario():
            transport = FakeTransport()
            link = make_link(transport)
            link.start()
            await link.wait_connected(timeout=1.0)

            await link.send_command(Command(name="buy", params={"lots": 0.1}))
            await link.close(timeout=1.0)
            return transport.sent

        sent = asyncio.run(scenario())

        assert len(sent) == 1
        assert sent[0]["command"] == "buy"
        assert sent[0]["params"] == {"lots": Decimal("0.1")}

    def test_send_while_disconnected_fails_fast(self):
        async def scenario():
            transport = FakeTransport()
            link = make_link(transport)
            with pytest.raises(LinkDisconnectedError) as exc_info:
                await link.send_command(Command(name="buy"))
            return exc_info.value, transport

        error, transport = asyncio.run(scenario())

        assert error.state == "disconnected"
        assert transport.sent == []

    def test_send_failure_triggers_reconnect(self):
        async def scenario():
            transport = FakeTransport()
            link = make_link(transport)
            link.start()
            await link.wait_connected(timeout=1.0)

            transport.fail_send = True
            with pytest.raises(LinkDisconnectedError):
                await link.send_command(Command(name="sell"))

            transport.fail_send = False
            await wait_until(lambda: transport.connect_calls == 2)
            assert await link.wait_connected(timeout=1.0)
            await link.send_command(Command(name="sell"))
            await link.close(timeout=1.0)
            return transport.sent

        sent = asyncio.run(scenario())

        assert [doc["command"] for doc in sent] == ["sell"]

    def test_send_timeout(self):
        async def scenario():
            transport = FakeTransport()
            link = make_link(transport, send_timeout=0.05)
            link.start()
            await link.wait_connected(timeout=1.0)

            transport.hang_send = True
            with pytest.raises(LinkDisconnectedError):
                await link.send_command(Command(name="close_all"))
            await link.close(timeout=1.0)

        asyncio.run(scenario())
