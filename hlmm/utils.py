"""
Utility functions for HLMM market maker.
"""
import time
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Union


def now_ms() -> int:
    """Get current timestamp in milliseconds."""
    return int(time.time() * 1000)


def to_decimal(x: Any) -> Decimal:
    """Convert an API number (str, int or float) to Decimal.

    Floats go through ``str`` so 0.1 becomes Decimal("0.1") rather than its
    binary expansion.

    Raises:
        ValueError: If the value is not a finite number
    """
    if isinstance(x, Decimal):
        d = x
    elif isinstance(x, bool) or x is None:
        raise ValueError(f"Not a number: {x!r}")
    else:
        try:
            d = Decimal(str(x))
        except InvalidOperation as e:
            raise ValueError(f"Not a number: {x!r}") from e
    if not d.is_finite():
        raise ValueError(f"Not a finite number: {x!r}")
    return d


def round_to_tick(p: Decimal, tick: Decimal) -> Decimal:
    """Round price to the nearest tick, halves rounded up."""
    if tick <= 0:
        raise ValueError(f"Tick size must be positive, got {tick}")
    steps = (p / tick).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return steps * tick


def fmt(x: Union[int, float, Decimal], nd: int = 4) -> str:
    """Format number with specified decimal places."""
    return f"{x:.{nd}f}"
