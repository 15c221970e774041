"""
Pre-trade position limits for the HLMM market maker.
"""
from decimal import Decimal
from typing import Optional

from .logging import DebugLogger
from .types import Position, Side

# Fraction of max_position_size above which the advisory check warns
ADVISORY_FRACTION = Decimal("0.8")


class RiskGate:
    """Vetoes orders that would take the position past its cap.

    The check uses the last polled position, so it can lag fills that
    happened within the current polling interval.
    """

    def __init__(self, logger: DebugLogger):
        self.logger = logger

    @staticmethod
    def resulting_size(side: Side, size: Decimal, position: Optional[Position]) -> Decimal:
        """Signed position after a full fill of ``size`` on ``side``."""
        current = position.size if position is not None else Decimal("0")
        return current + size if side == Side.BUY else current - size

    def approve(self, side: Side, size: Decimal, position: Optional[Position],
                max_position_size: Decimal) -> bool:
        """Approve iff ``abs(resulting position) <= max_position_size``.

        Args:
            side: Proposed order side
            size: Proposed order size (positive)
            position: Last known position, None when flat
            max_position_size: Absolute position cap

        Returns:
            True when the order may be submitted
        """
        resulting = self.resulting_size(side, size, position)
        if abs(resulting) <= max_position_size:
            return True
        self.logger.warning("risk_reject", {
            "side": side,
            "size": size,
            "position": position.size if position is not None else Decimal("0"),
            "resulting": resulting,
            "max_position": max_position_size,
        })
        return False

    def check_advisory(self, position: Optional[Position], max_position_size: Decimal) -> bool:
        """Warn when the position is above 80% of the cap. Never blocks.

        Returns:
            True when the advisory threshold is exceeded
        """
        if position is None:
            return False
        magnitude = abs(position.size)
        if magnitude > max_position_size * ADVISORY_FRACTION:
            self.logger.warning("position_near_limit", {
                "position": position.size,
                "max_position": max_position_size,
                "utilization": float(magnitude / max_position_size),
            })
            return True
        return False
