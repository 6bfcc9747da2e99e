"""Line-item row and tax code data models"""

from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional
from pydantic import BaseModel, ConfigDict, Field

from invoice_tax.models.decimal_wire import quantity_from_import, wire_to_decimal, ZERO


class TaxType(str, Enum):
    """Tax code families resolved by search"""
    TDS = "tds"
    GST = "gst"


class RowField(str, Enum):
    """Editable line-item fields (wire names)"""
    ITEM_DESCRIPTION = "itemDescription"
    QUANTITY = "quantity"
    RATE = "rate"
    TDS_CODE = "tdsCode"
    TDS_AMOUNT = "tdsAmount"
    GST_CODE = "gstCode"
    IGST = "igst"
    CGST = "cgst"
    SGST = "sgst"
    UTGST = "utgst"
    NET_AMOUNT = "netAmount"


# Fields whose change requires a recompute pass
DEPENDENCY_FIELDS = frozenset({
    RowField.QUANTITY,
    RowField.RATE,
    RowField.TDS_CODE,
    RowField.GST_CODE,
})

# Amounts derived from a GST code, keyed by the record's percentage attribute
GST_COMPONENTS = (
    (RowField.IGST, "igst_percentage"),
    (RowField.CGST, "cgst_percentage"),
    (RowField.SGST, "sgst_percentage"),
    (RowField.UTGST, "utgst_percentage"),
)


def _percentage(raw: Any) -> Decimal:
    value = wire_to_decimal(raw)
    return value if value is not None else ZERO


class LineItemRow(BaseModel):
    """One invoice line item; all values are kept as entered text"""
    model_config = ConfigDict(populate_by_name=True, validate_assignment=True)

    id: int
    item_description: str = Field(default="", alias="itemDescription")
    quantity: str = ""
    rate: str = ""
    tds_code: str = Field(default="", alias="tdsCode")
    tds_amount: str = Field(default="", alias="tdsAmount")
    gst_code: str = Field(default="", alias="gstCode")
    igst: str = ""
    cgst: str = ""
    sgst: str = ""
    utgst: str = ""
    net_amount: str = Field(default="", alias="netAmount")

    def get(self, field: RowField) -> str:
        return getattr(self, ATTRIBUTE_FOR_FIELD[field])

    def set(self, field: RowField, value: str) -> None:
        setattr(self, ATTRIBUTE_FOR_FIELD[field], value)

    def to_wire(self) -> Dict[str, Any]:
        """Row as the table UI sees it (camelCase keys)"""
        return self.model_dump(by_alias=True)


ATTRIBUTE_FOR_FIELD: Dict[RowField, str] = {
    RowField.ITEM_DESCRIPTION: "item_description",
    RowField.QUANTITY: "quantity",
    RowField.RATE: "rate",
    RowField.TDS_CODE: "tds_code",
    RowField.TDS_AMOUNT: "tds_amount",
    RowField.GST_CODE: "gst_code",
    RowField.IGST: "igst",
    RowField.CGST: "cgst",
    RowField.SGST: "sgst",
    RowField.UTGST: "utgst",
    RowField.NET_AMOUNT: "net_amount",
}


class TDSCodeRecord(BaseModel):
    """Resolved TDS code"""
    code: str
    percentage: Decimal = ZERO
    description: str = ""

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "TDSCodeRecord":
        return cls(
            code=str(data.get("tds_code") or ""),
            percentage=_percentage(data.get("tds_percentage")),
            description=data.get("description") or "",
        )


class GSTCodeRecord(BaseModel):
    """Resolved GST (tax) code with its four component percentages"""
    code: str
    igst_percentage: Decimal = ZERO
    cgst_percentage: Decimal = ZERO
    sgst_percentage: Decimal = ZERO
    utgst_percentage: Decimal = ZERO
    description: str = ""

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "GSTCodeRecord":
        return cls(
            code=str(data.get("tax_code") or ""),
            igst_percentage=_percentage(data.get("igst_percentage")),
            cgst_percentage=_percentage(data.get("cgst_percentage")),
            sgst_percentage=_percentage(data.get("sgst_percentage")),
            utgst_percentage=_percentage(data.get("utgst_percentage")),
            description=data.get("description") or "",
        )


class ItemCatalogEntry(BaseModel):
    """Catalog item with optional default tax codes"""
    code: str
    description: str = ""
    default_gst_code: Optional[str] = None
    default_tds_code: Optional[str] = None
    hsn_sac_code: Optional[str] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "ItemCatalogEntry":
        return cls(
            code=str(data.get("item_code") or ""),
            description=data.get("description") or "",
            default_gst_code=data.get("tax_code") or None,
            default_tds_code=data.get("tds_code") or None,
            hsn_sac_code=data.get("hsn_sac_code") or None,
        )


def row_from_imported(row_id: int, item: Dict[str, Any]) -> LineItemRow:
    """
    Build a row from an imported (OCR-extracted) invoice line item.

    Codes and TDS are never part of the extracted document, so they start
    blank; GST components and totals are carried over as extracted.
    """
    return LineItemRow(
        id=row_id,
        item_description=item.get("description") or "",
        quantity=quantity_from_import(item.get("quantity")),
        rate=str(item.get("unit_price") or ""),
        igst=str(item.get("igst_amount") or ""),
        cgst=str(item.get("cgst_amount") or ""),
        sgst=str(item.get("sgst_amount") or ""),
        utgst=str(item.get("utgst_amount") or ""),
        net_amount=str(item.get("total") or ""),
    )
