"""Decimal wire serialization utilities for line-item money fields

Row fields travel as text (what the user typed or what an import produced);
the engine does its arithmetic on Decimal and writes back fixed 2dp strings.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP, getcontext, localcontext
from typing import Any, Optional
import logging

logger = logging.getLogger(__name__)

TWO_PLACES = Decimal("0.01")
ZERO = Decimal("0")


def round2(d: Decimal) -> Decimal:
    """Round half-up to 2 decimal places"""
    with localcontext() as ctx:
        # Integer digits plus two places must fit the working precision
        ctx.prec = max(ctx.prec, d.adjusted() + 3)
        return d.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def exact_context(*values: Decimal):
    """
    Local decimal context wide enough to multiply or add the given values
    without rounding.

    Quantities are unbounded digit strings, so products can outgrow the
    default 28 digits.
    """
    ctx = getcontext().copy()
    digits = 0
    for value in values:
        _, coefficient, exponent = value.as_tuple()
        digits += len(coefficient) + abs(exponent)
    ctx.prec = max(ctx.prec, digits + 2)
    return localcontext(ctx)


def amount_to_wire(d: Optional[Decimal]) -> Optional[str]:
    """
    Convert a money Decimal to its fixed-point wire string.

    Args:
        d: Decimal value or None

    Returns:
        Half-up rounded string with exactly two decimals, or None

    Examples:
        >>> amount_to_wire(Decimal("20"))
        "20.00"
        >>> amount_to_wire(Decimal("2.345"))
        "2.35"
        >>> amount_to_wire(None)
        None
    """
    if d is None:
        return None
    return format(round2(d), 'f')


def wire_to_decimal(x: Any) -> Optional[Decimal]:
    """
    Parse wire value to Decimal safely.

    Args:
        x: Wire value (None, str, int, float, or Decimal)

    Returns:
        Decimal value or None for blank/unparseable input
    """
    if x is None:
        return None

    if isinstance(x, Decimal):
        return x if x.is_finite() else None

    text = str(x).strip()
    if text == "":
        return None

    try:
        # Always convert via string to avoid float precision issues
        value = Decimal(text)
    except (InvalidOperation, ValueError, TypeError):
        logger.debug(f"Value is not a decimal: {x!r}")
        return None

    # NaN/Infinity are not amounts
    return value if value.is_finite() else None


def is_quantity_text(value: str) -> bool:
    """Quantity entry accepts blank or digits only"""
    return value == "" or (value.isascii() and value.isdigit())


def parse_quantity(value: Any) -> Decimal:
    """Quantity as a whole number; blank or invalid counts as 0"""
    if value is None:
        return ZERO
    text = str(value).strip()
    if not is_quantity_text(text):
        # Imported quantities may carry a decimal part ("10.0")
        parsed = wire_to_decimal(text)
        if parsed is None:
            return ZERO
        return Decimal(int(parsed))
    return Decimal(int(text)) if text else ZERO


def parse_rate(value: Any) -> Decimal:
    """Unit rate; blank or invalid counts as 0"""
    parsed = wire_to_decimal(value)
    return parsed if parsed is not None else ZERO


def quantity_from_import(value: Any) -> str:
    """Imported quantity as entry text ("10.0" -> "10"); unparseable -> "" """
    parsed = wire_to_decimal(value)
    if parsed is None:
        return ""
    if parsed == parsed.to_integral_value():
        return str(int(parsed))
    return format(parsed.normalize(), 'f')
