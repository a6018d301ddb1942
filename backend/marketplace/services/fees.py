# marketplace/services/fees.py
from decimal import ROUND_FLOOR, Decimal
from typing import Optional, Union

from marketplace.config import settings

Number = Union[Decimal, int, float, str]


def calculate_platform_fee(
    subtotal: Number,
    rate: Optional[Number] = None,
    offset: Optional[Number] = None,
) -> int:
    """
    Platform fee in whole currency units: floor(subtotal * rate + offset).
    Pure; rate/offset default to the configured PLATFORM_FEE_RATE / PLATFORM_FEE_OFFSET.
    """
    amount = Decimal(str(subtotal))
    if amount < 0:
        raise ValueError(f"subtotal cannot be negative: {subtotal}")
    rate = settings.platform_fee_rate if rate is None else Decimal(str(rate))
    offset = settings.platform_fee_offset if offset is None else Decimal(str(offset))
    return int((amount * rate + offset).to_integral_value(rounding=ROUND_FLOOR))


def platform_fee_cents(subtotal_cents: int) -> int:
    """Same formula on integer cents (the subtotal is converted exactly, no float)."""
    return calculate_platform_fee(Decimal(int(subtotal_cents)) / 100) * 100
