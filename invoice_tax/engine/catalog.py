"""Item catalog lookup and default tax code resolution"""

import logging
from decimal import Decimal
from typing import Awaitable, Callable, Dict, List, Optional

import requests
from pydantic import ValidationError

from invoice_tax.engine.code_cache import CodeCache
from invoice_tax.engine.recalculation import FieldUpdates, apply_selected_gst, apply_selected_tds
from invoice_tax.models.line_item import ItemCatalogEntry, LineItemRow, RowField
from invoice_tax.services.code_api_client import CodeApiError

logger = logging.getLogger(__name__)


class ItemCatalogResolver:
    """Catalog loaded once per session; selection fills empty code fields"""

    def __init__(self, fetch_items: Callable[[], Awaitable[List[ItemCatalogEntry]]]):
        self.fetch_items = fetch_items
        self._entries: Dict[str, ItemCatalogEntry] = {}
        self._loaded = False

    @property
    def loaded(self) -> bool:
        return self._loaded

    @property
    def entries(self) -> List[ItemCatalogEntry]:
        return list(self._entries.values())

    async def load(self) -> int:
        """
        Fetch the catalog (first call only).

        Returns:
            Number of catalog entries available
        """
        if self._loaded:
            return len(self._entries)

        try:
            items = await self.fetch_items()
        except (CodeApiError, requests.exceptions.RequestException, ValidationError) as e:
            logger.error(f"Failed to load item catalog: {e}")
            items = []

        for item in items:
            if item.code:
                self._entries[item.code] = item
        self._loaded = True
        logger.info(f"Item catalog loaded: {len(self._entries)} items")
        return len(self._entries)

    def find(self, code: str) -> Optional[ItemCatalogEntry]:
        return self._entries.get(code)

    def search(self, text: str) -> List[ItemCatalogEntry]:
        needle = text.strip().lower()
        if not needle:
            return self.entries
        return [
            entry for entry in self._entries.values()
            if needle in entry.code.lower() or needle in entry.description.lower()
        ]

    def resolve(
        self,
        row: LineItemRow,
        entry: ItemCatalogEntry,
        tds_cache: CodeCache,
        gst_cache: CodeCache,
        epsilon: Optional[Decimal] = None,
    ) -> FieldUpdates:
        """
        Field updates for selecting `entry` on `row`.

        Default codes only fill empty code fields. When a default is applied
        and its record is cached, the derived amounts come in the same update,
        guarded by `epsilon` like any other recompute.
        """
        updates: FieldUpdates = {RowField.ITEM_DESCRIPTION: entry.description}

        if not row.gst_code.strip() and entry.default_gst_code:
            updates[RowField.GST_CODE] = entry.default_gst_code
            record = gst_cache.get(entry.default_gst_code)
            if record is not None:
                updates.update(apply_selected_gst(row, record, epsilon))
            else:
                logger.debug(f"GST code {entry.default_gst_code} for item {entry.code} not cached")

        if not row.tds_code.strip() and entry.default_tds_code:
            updates[RowField.TDS_CODE] = entry.default_tds_code
            record = tds_cache.get(entry.default_tds_code)
            if record is not None:
                updates.update(apply_selected_tds(row, record, epsilon))
            else:
                logger.debug(f"TDS code {entry.default_tds_code} for item {entry.code} not cached")

        return updates
