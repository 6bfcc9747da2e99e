"""Consistency validation of derived line-item amounts

Checks that each derived amount matches round2(quantity * rate * pct / 100)
for the row's cached codes. Rows whose codes are not cached are skipped.
"""

from decimal import Decimal
from typing import Dict, List, Tuple
import logging

from invoice_tax.engine.code_cache import CodeCache
from invoice_tax.engine.recalculation import derive_gst, derive_tds
from invoice_tax.models.decimal_wire import wire_to_decimal, ZERO
from invoice_tax.models.line_item import LineItemRow

logger = logging.getLogger(__name__)


class ConsistencyValidator:
    """Validates derived TDS/GST amounts against the resolved codes"""
    
    TOLERANCE = Decimal("0.01")  # Allow 1 paisa rounding differences
    
    @staticmethod
    def _mismatches(row: LineItemRow, expected: Dict) -> List[str]:
        errors = []
        for field, amount in expected.items():
            stored = wire_to_decimal(row.get(field))
            difference = abs(amount - (stored if stored is not None else ZERO))
            if stored is None or difference > ConsistencyValidator.TOLERANCE:
                errors.append(
                    f"Row {row.id} {field.value} mismatch: stored={row.get(field)!r} != "
                    f"derived={amount}, difference={difference}"
                )
        return errors
    
    @staticmethod
    def validate_row(
        row: LineItemRow,
        tds_cache: CodeCache,
        gst_cache: CodeCache,
    ) -> Tuple[bool, List[str]]:
        """
        Validate one row's derived amounts.
        
        Returns:
            (is_valid, error_messages)
        """
        errors: List[str] = []
        
        tds_record = tds_cache.get(row.tds_code.strip())
        if tds_record is not None:
            errors.extend(ConsistencyValidator._mismatches(row, derive_tds(row, tds_record)))
        
        gst_record = gst_cache.get(row.gst_code.strip())
        if gst_record is not None:
            errors.extend(ConsistencyValidator._mismatches(row, derive_gst(row, gst_record)))
        
        return not errors, errors
    
    @staticmethod
    def validate_table(table) -> Dict[int, Tuple[bool, List[str]]]:
        """
        Validate every row of a LineItemTable.
        
        Returns:
            Dictionary mapping row id to (is_valid, error_messages)
        """
        results = {}
        for row in table.rows:
            results[row.id] = ConsistencyValidator.validate_row(row, table.tds_cache, table.gst_cache)
        
        failed = [row_id for row_id, (ok, _) in results.items() if not ok]
        if failed:
            logger.warning(f"Derived amounts inconsistent for rows: {failed}")
        return results
