"""Tests for command validation and routing."""

import asyncio

import pytest

from relay_app.commands.router import CommandRouter
from relay_app.errors import InvalidCommandError, UpstreamUnavailableError
from relay_app.models.commands import Command
from relay_app.upstream.backoff import ExponentialBackoff
from relay_app.upstream.link import UpstreamLink
from tests.conftest import FakeTransport


def connected_router(allowed=("buy", "sell", "close")):
    """Router over a started, connected link (call inside a running loop)."""
    transport = FakeTransport()
    link = UpstreamLink(transport, backoff=ExponentialBackoff(base_ms=1, cap_ms=5, jitter=0))
    link.start()
    return CommandRouter(link, allowed=allowed), link, transport


class TestValidation:
    """Test command validation."""

    def test_known_command_passes(self):
        router = CommandRouter(link=None, allowed=["buy"])
        router.validate(Command(name="buy"))

    def test_names_are_case_insensitive(self):
        router = CommandRouter(link=None, allowed=["Buy"])
        router.validate(Command(name="BUY"))

    @pytest.mark.parametrize("name", ["", "   "])
    def test_missing_command(self, name):
        router = CommandRouter(link=None, allowed=["buy"])

        with pytest.raises(InvalidCommandError, match="Command is required") as exc_info:
            router.validate(Command(name=name))

        assert exc_info.value.reason == "InvalidCommand"

    def test_unknown_command(self):
        router = CommandRouter(link=None, allowed=["buy"])

        with pytest.raises(InvalidCommandError, match="Unknown command 'hedge'"):
            router.validate(Command(name="hedge"))

    def test_empty_allow_list_accepts_any_name(self):
        router = CommandRouter(link=None, allowed=())
        router.validate(Command(name="anything_goes"))


class TestHandle:
    """Test forwarding commands to the link."""

    def test_forwards_exactly_once(self):
        async def scenario():
            router, link, transport = connected_router()
            await link.wait_connected(timeout=1.0)
            ack = await router.handle(Command(name="close", params={"ticket": 12345}))
            await link.close(timeout=1.0)
            return ack, transport.sent

        ack, sent = asyncio.run(scenario())

        assert ack.command == "close"
        assert ack.message == "Command sent"
        assert sent == [{"command": "close", "params": {"ticket": 12345}}]

    def test_invalid_command_is_not_forwarded(self):
        async def scenario():
            router, link, transport = connected_router()
            await link.wait_connected(timeout=1.0)
            with pytest.raises(InvalidCommandError):
                await router.handle(Command(name="hedge"))
            await link.close(timeout=1.0)
            return transport.sent

        assert asyncio.run(scenario()) == []

    def test_upstream_down(self):
        async def scenario():
            transport = FakeTransport()
            link = UpstreamLink(transport)
            router = CommandRouter(link, allowed=["buy"])
            with pytest.raises(UpstreamUnavailableError) as exc_info:
                await router.handle(Command(name="buy"))
            return exc_info.value

        error = asyncio.run(scenario())

        assert error.reason == "UpstreamUnavailable"
        assert error.link_state == "disconnected"
        assert error.command == "buy"
