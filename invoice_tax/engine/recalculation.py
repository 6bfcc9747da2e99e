"""Derivation of TDS and GST amounts for a line item

Every derived amount is round2(quantity * rate * percentage / 100). Results
only carry the fields whose stored value is off by more than the epsilon
guard, so applying a result and recomputing again yields nothing.
"""

from decimal import Decimal, DecimalException
from typing import Dict, Optional
import logging

from invoice_tax.config import settings
from invoice_tax.engine.code_cache import CodeCache
from invoice_tax.models.decimal_wire import (
    amount_to_wire,
    exact_context,
    parse_quantity,
    parse_rate,
    round2,
    wire_to_decimal,
)
from invoice_tax.models.line_item import (
    GSTCodeRecord,
    GST_COMPONENTS,
    LineItemRow,
    RowField,
    TDSCodeRecord,
)

logger = logging.getLogger(__name__)

HUNDRED = Decimal("100")

FieldUpdates = Dict[RowField, str]


def default_epsilon() -> Decimal:
    return Decimal(settings.AMOUNT_EPSILON)


def base_amount(row: LineItemRow) -> Optional[Decimal]:
    """
    quantity x rate, with blank/invalid parts counted as 0.

    None when the product leaves the decimal exponent range.
    """
    quantity = parse_quantity(row.quantity)
    rate = parse_rate(row.rate)
    try:
        with exact_context(quantity, rate):
            return quantity * rate
    except DecimalException as e:
        logger.warning(f"Row {row.id}: base amount out of range ({row.quantity!r} x {row.rate!r}): {e!r}")
        return None


def derive_amount(base: Optional[Decimal], percentage: Decimal) -> Optional[Decimal]:
    """round2(base * percentage / 100), or None when it cannot be represented"""
    if base is None:
        return None
    try:
        with exact_context(base, percentage):
            return round2(base * percentage / HUNDRED)
    except DecimalException as e:
        logger.warning(f"Amount out of range for base {base} at {percentage}%: {e!r}")
        return None


def needs_write(current: str, new: Decimal, epsilon: Decimal) -> bool:
    """
    Idempotence guard.

    A parseable current value is only replaced when it differs from the new
    amount by more than epsilon. A blank or non-numeric current value is
    replaced unless it already reads as the same wire string.
    """
    parsed = wire_to_decimal(current)
    if parsed is not None:
        try:
            with exact_context(new, parsed):
                return abs(new - parsed) > epsilon
        except DecimalException:
            pass
    return (current or "").strip() != amount_to_wire(new)


def derive_tds(row: LineItemRow, record: TDSCodeRecord) -> Dict[RowField, Decimal]:
    amount = derive_amount(base_amount(row), record.percentage)
    return {} if amount is None else {RowField.TDS_AMOUNT: amount}


def derive_gst(row: LineItemRow, record: GSTCodeRecord) -> Dict[RowField, Decimal]:
    base = base_amount(row)
    derived = {
        field: derive_amount(base, getattr(record, attribute))
        for field, attribute in GST_COMPONENTS
    }
    # Unrepresentable amounts are left as stored
    return {field: amount for field, amount in derived.items() if amount is not None}


def _guarded(row: LineItemRow, derived: Dict[RowField, Decimal], epsilon: Decimal) -> FieldUpdates:
    return {
        field: amount_to_wire(value)
        for field, value in derived.items()
        if needs_write(row.get(field), value, epsilon)
    }


def apply_selected_tds(
    row: LineItemRow,
    record: TDSCodeRecord,
    epsilon: Optional[Decimal] = None,
) -> FieldUpdates:
    """Updates for a TDS code picked from search results (no cache involved)"""
    eps = epsilon if epsilon is not None else default_epsilon()
    return _guarded(row, derive_tds(row, record), eps)


def apply_selected_gst(
    row: LineItemRow,
    record: GSTCodeRecord,
    epsilon: Optional[Decimal] = None,
) -> FieldUpdates:
    """Updates for a GST code picked from search results (no cache involved)"""
    eps = epsilon if epsilon is not None else default_epsilon()
    return _guarded(row, derive_gst(row, record), eps)


def recompute(
    row: LineItemRow,
    tds_cache: CodeCache,
    gst_cache: CodeCache,
    epsilon: Optional[Decimal] = None,
) -> FieldUpdates:
    """
    Re-derive amounts for whichever of the row's codes are cached.

    A code without a cache entry leaves its amounts untouched; it may simply
    not have come back from search yet.

    Returns:
        Only the fields that need to change, as wire strings
    """
    eps = epsilon if epsilon is not None else default_epsilon()
    updates: FieldUpdates = {}

    tds_record = tds_cache.get(row.tds_code.strip())
    if tds_record is not None:
        updates.update(_guarded(row, derive_tds(row, tds_record), eps))

    gst_record = gst_cache.get(row.gst_code.strip())
    if gst_record is not None:
        updates.update(_guarded(row, derive_gst(row, gst_record), eps))

    return updates
