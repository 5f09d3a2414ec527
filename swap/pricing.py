"""
Amount conversion, minimum-output math and the price impact estimate.

All on-chain amounts are integers in the token's smallest unit. Conversions
from user text go through Decimal and always round down so an amount is
never larger than what the user typed.
"""
from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_DOWN, localcontext
from typing import Optional, Union

from core.config import EXECUTION_BUFFER_BPS, PROTOCOL_FEE_BPS

BPS = 10_000
PRICE_IMPACT_WARN_PCT = Decimal("5")

# (upper bound of human amountIn, base pct, slope, lower offset, floor, ceiling)
_IMPACT_BRACKETS = (
    (Decimal("100"), Decimal("0.05"), Decimal("0.002"), Decimal("0"), Decimal("0.05"), Decimal("0.25")),
    (Decimal("1000"), Decimal("0.25"), Decimal("0.001"), Decimal("100"), Decimal("0.25"), Decimal("1.00")),
    (Decimal("10000"), Decimal("1.00"), Decimal("0.0005"), Decimal("1000"), Decimal("1.00"), Decimal("5.00")),
    (None, Decimal("5.00"), Decimal("0.0001"), Decimal("10000"), Decimal("5.00"), Decimal("15.00")),
)


def parse_amount(text: Union[str, Decimal, float, None], decimals: int) -> Optional[int]:
    """
    Parse a human amount into base units, rounding down.

    Returns None for empty, unparseable or non-positive input, including
    amounts that round down to zero at the token's precision.
    """
    if text is None:
        return None
    raw = str(text).strip().replace(",", "")
    if not raw:
        return None
    try:
        value = Decimal(raw)
    except InvalidOperation:
        return None
    if not value.is_finite() or value <= 0:
        return None
    with localcontext() as ctx:
        ctx.prec = 80
        scaled = (value * (Decimal(10) ** int(decimals))).to_integral_value(rounding=ROUND_DOWN)
    amount = int(scaled)
    return amount if amount > 0 else None


def to_decimal(amount: int, decimals: int) -> Decimal:
    with localcontext() as ctx:
        ctx.prec = 80
        return Decimal(int(amount)) / (Decimal(10) ** int(decimals))


def format_amount(amount: int, decimals: int, places: int = 6) -> str:
    """Human string for a base-unit amount, truncated to `places` and without trailing zeros."""
    value = to_decimal(amount, decimals)
    quantum = Decimal(1).scaleb(-places)
    text = format(value.quantize(quantum, rounding=ROUND_DOWN), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text or "0"


def protocol_fee_amount(amount_out: int, fee_bps: int = PROTOCOL_FEE_BPS) -> int:
    return int(amount_out) - int(amount_out) * (BPS - int(fee_bps)) // BPS


def compute_min_amount_out(
    amount_out: int,
    slippage_bps: int,
    fee_bps: int = PROTOCOL_FEE_BPS,
    buffer_bps: int = EXECUTION_BUFFER_BPS,
) -> int:
    """
    Minimum acceptable output for a swap.

    The router fee comes off first; slippage plus the execution buffer are
    then applied to the post-fee amount. Integer floor division keeps the
    result rounded down at the output token's precision.
    """
    if slippage_bps < 0:
        raise ValueError("slippage_bps must be non-negative")
    net = int(amount_out) * (BPS - int(fee_bps)) // BPS
    total = int(slippage_bps) + int(buffer_bps)
    if total >= BPS:
        return 0
    return max(0, net * (BPS - total) // BPS)


def estimate_price_impact(amount_in_human: Union[Decimal, int, str]) -> Decimal:
    """
    Size-only price impact estimate, in percent.

    No pool depth is read; impact grows linearly with the input size inside
    fixed brackets and is clamped to each bracket's floor and ceiling. This is
    an approximation for display and warnings, not a guarantee.
    """
    a = Decimal(str(amount_in_human))
    if a <= 0:
        return Decimal("0")
    for upper, base, slope, offset, floor, ceiling in _IMPACT_BRACKETS:
        if upper is None or a < upper:
            impact = base + slope * (a - offset)
            return min(max(impact, floor), ceiling)
    raise AssertionError("unreachable")


def is_high_impact(impact_pct: Decimal) -> bool:
    return impact_pct > PRICE_IMPACT_WARN_PCT


def exchange_rate(amount_in: int, decimals_in: int, amount_out: int, decimals_out: int) -> Optional[Decimal]:
    """Output units per one input unit, or None when the input is zero."""
    din = to_decimal(amount_in, decimals_in)
    if din == 0:
        return None
    return to_decimal(amount_out, decimals_out) / din
