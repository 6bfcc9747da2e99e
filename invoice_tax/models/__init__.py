"""Line-item and tax code models"""

from .line_item import (
    LineItemRow,
    TDSCodeRecord,
    GSTCodeRecord,
    ItemCatalogEntry,
    RowField,
    TaxType,
    DEPENDENCY_FIELDS,
    GST_COMPONENTS,
    row_from_imported,
)

__all__ = [
    "LineItemRow",
    "TDSCodeRecord",
    "GSTCodeRecord",
    "ItemCatalogEntry",
    "RowField",
    "TaxType",
    "DEPENDENCY_FIELDS",
    "GST_COMPONENTS",
    "row_from_imported",
]
