from __future__ import annotations

from decimal import Decimal


def money(value: Decimal | None) -> float | None:
    """JSON representation of a Numeric(12, 2) column."""
    if value is None:
        return None
    return float(value)
