from decimal import Decimal

CENTS = Decimal(100)


def cents_to_decimal(cents: int) -> Decimal:
    return (Decimal(int(cents)) / CENTS).quantize(Decimal("0.01"))


def cents_to_amount(cents: int) -> float:
    """JSON output: 1050 → 10.5 (rendered from the exact Decimal)."""
    return float(cents_to_decimal(cents))
