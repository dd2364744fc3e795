"""Tests for market, command and history models."""

from dataclasses import FrozenInstanceError
from decimal import Decimal

import pytest

from relay_app.models.commands import Command
from relay_app.models.market import ZERO, MarketSnapshot, Zone
from relay_app.utils.time import EPOCH


class TestMarketSnapshot:
    """Test MarketSnapshot dataclass."""

    def test_empty_snapshot_is_zero_state(self):
        snapshot = MarketSnapshot.empty("GBPUSD")

        assert snapshot.symbol == "GBPUSD"
        assert snapshot.bid == ZERO
        assert snapshot.ask == ZERO
        assert snapshot.balance == ZERO
        assert snapshot.positions == 0
        assert snapshot.zones == ()
        assert snapshot.timestamp == EPOCH
        assert snapshot.is_empty

    def test_live_snapshot_is_not_empty(self, sample_snapshot):
        assert not sample_snapshot.is_empty
        assert sample_snapshot.spread == Decimal("0.00020")

    def test_snapshot_is_immutable(self, sample_snapshot):
        with pytest.raises(FrozenInstanceError):
            sample_snapshot.bid = Decimal("2")


class TestZone:
    """Test Zone dataclass."""

    @pytest.mark.parametrize("strength", [0.0, 0.5, 1.0])
    def test_strength_bounds_accepted(self, strength):
        zone = Zone(price=Decimal("1.08"), is_supply=True, strength=strength)
        assert zone.strength == strength

    @pytest.mark.parametrize("strength", [-0.1, 1.01])
    def test_strength_out_of_range(self, strength):
        with pytest.raises(ValueError, match="strength"):
            Zone(price=Decimal("1.08"), is_supply=False, strength=strength)


class TestCommand:
    """Test Command dataclass."""

    def test_params_are_copied(self):
        params = {"lots": 0.1}
        command = Command(name="buy", params=params)
        params["lots"] = 5

        assert command.params["lots"] == 0.1

    def test_params_are_read_only(self):
        command = Command(name="buy", params={"lots": 0.1})

        with pytest.raises(TypeError):
            command.params["lots"] = 1

    def test_to_wire(self):
        command = Command(name="close", params={"ticket": 12345}, session_id="abc")

        assert command.to_wire() == {"command": "close", "params": {"ticket": 12345}}

    def test_missing_params_default_to_empty(self):
        assert Command(name="close_all", params=None).to_wire() == {"command": "close_all", "params": {}}
