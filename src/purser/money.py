"""Cap conversion helpers for token base units."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_FLOOR


USDC_DECIMALS = 6


def usd_to_base_units(value: Decimal | float | int | str, decimals: int = USDC_DECIMALS) -> int:
    """Convert a USD cap to token base units, rounding down (conservative)."""
    try:
        dec = Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"Invalid amount: {value}") from None
    if not dec.is_finite() or dec < 0:
        raise ValueError(f"Invalid amount: {value}")
    quant = Decimal(1).scaleb(-decimals)
    return int(dec.quantize(quant, rounding=ROUND_FLOOR).scaleb(decimals))


def format_cap(value: Decimal | float | int | str, decimals: int = USDC_DECIMALS) -> str:
    """Render a USD cap as the decimal base-unit string used in permit keys."""
    return str(usd_to_base_units(value, decimals))
