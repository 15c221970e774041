"""
Tests for the pre-trade risk gate in hlmm/risk.py.

Tests cover:
- Resulting position arithmetic for both sides
- Approval exactly at, below and above the cap
- Flat (absent) positions
- The non-blocking 80% advisory
"""
from decimal import Decimal

import pytest

from hlmm.risk import RiskGate
from hlmm.types import Position, Side
from tests.conftest import D

MAX = D("1.0")


def pos(size) -> Position:
    return Position(instrument="ETH", size=D(size))


class TestRiskGate:
    """Test RiskGate.approve."""

    @pytest.fixture
    def gate(self, mock_logger):
        return RiskGate(mock_logger)

    @pytest.mark.unit
    def test_buy_that_breaches_cap_is_rejected(self, gate, mock_logger):
        # 0.9 + 0.2 = 1.1 > 1.0
        assert gate.approve(Side.BUY, D("0.2"), pos("0.9"), MAX) is False
        event, payload = mock_logger.warning.call_args[0]
        assert event == "risk_reject"
        assert payload["resulting"] == Decimal("1.1")

    @pytest.mark.unit
    def test_sell_reduces_long_position(self, gate):
        assert gate.approve(Side.SELL, D("0.2"), pos("0.9"), MAX) is True

    @pytest.mark.unit
    def test_short_side_is_symmetric(self, gate):
        assert gate.approve(Side.SELL, D("0.2"), pos("-0.9"), MAX) is False
        assert gate.approve(Side.BUY, D("0.2"), pos("-0.9"), MAX) is True

    @pytest.mark.unit
    def test_exactly_at_cap_is_approved(self, gate):
        assert gate.approve(Side.BUY, D("0.2"), pos("0.8"), MAX) is True
        assert gate.approve(Side.SELL, D("0.2"), pos("-0.8"), MAX) is True

    @pytest.mark.unit
    def test_absent_position_counts_as_flat(self, gate):
        assert gate.approve(Side.BUY, D("1.0"), None, MAX) is True
        assert gate.approve(Side.SELL, D("1.0"), None, MAX) is True
        assert gate.approve(Side.BUY, D("1.01"), None, MAX) is False

    @pytest.mark.unit
    @pytest.mark.parametrize("position,side,size", [
        ("0", Side.BUY, "0.5"),
        ("0.95", Side.BUY, "0.2"),
        ("0.95", Side.SELL, "0.2"),
        ("-0.5", Side.SELL, "0.6"),
        ("-1.5", Side.BUY, "0.2"),
        ("2", Side.SELL, "0.5"),
    ])
    def test_rule_matches_resulting_size(self, gate, position, side, size):
        signed = D(size) if side == Side.BUY else -D(size)
        expected = abs(D(position) + signed) <= MAX
        assert gate.approve(side, D(size), pos(position), MAX) is expected

    @pytest.mark.unit
    def test_resulting_size(self):
        assert RiskGate.resulting_size(Side.BUY, D("0.2"), pos("0.9")) == D("1.1")
        assert RiskGate.resulting_size(Side.SELL, D("0.2"), None) == D("-0.2")


class TestAdvisory:
    """Test the 80% position advisory."""

    @pytest.fixture
    def gate(self, mock_logger):
        return RiskGate(mock_logger)

    @pytest.mark.unit
    def test_flags_above_80_percent(self, gate, mock_logger):
        assert gate.check_advisory(pos("-0.85"), MAX) is True
        assert mock_logger.warning.call_args[0][0] == "position_near_limit"

    @pytest.mark.unit
    def test_quiet_at_or_below_80_percent(self, gate, mock_logger):
        assert gate.check_advisory(pos("0.8"), MAX) is False
        assert gate.check_advisory(None, MAX) is False
        mock_logger.warning.assert_not_called()
