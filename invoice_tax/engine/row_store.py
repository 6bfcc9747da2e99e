"""Line-item table controller

Single owner of the rows of one invoice table session. All mutation goes
through update_field / select_* so that derived TDS and GST amounts stay
consistent with quantity, rate and the resolved codes.
"""

from collections import OrderedDict
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Set, Union
import logging

from invoice_tax.config import settings
from invoice_tax.engine.catalog import ItemCatalogResolver
from invoice_tax.engine.code_cache import CodeCache
from invoice_tax.engine.code_search import CodeSearchService
from invoice_tax.engine.recalculation import (
    FieldUpdates,
    apply_selected_gst,
    apply_selected_tds,
    recompute,
)
from invoice_tax.engine.scheduler import DebounceScheduler
from invoice_tax.models.decimal_wire import ZERO, amount_to_wire, is_quantity_text, wire_to_decimal
from invoice_tax.models.line_item import (
    DEPENDENCY_FIELDS,
    GSTCodeRecord,
    ItemCatalogEntry,
    LineItemRow,
    RowField,
    TDSCodeRecord,
    TaxType,
    row_from_imported,
)

logger = logging.getLogger(__name__)

RowListener = Callable[[int, RowField, str], None]

TOTAL_FIELDS = (
    RowField.TDS_AMOUNT,
    RowField.IGST,
    RowField.CGST,
    RowField.SGST,
    RowField.UTGST,
)


class RowState(str, Enum):
    """Informational per-row lifecycle"""
    DRAFT = "draft"
    CODE_PENDING = "code_pending"
    CODE_RESOLVED = "code_resolved"
    CONSISTENT = "consistent"


class LineItemTable:
    """Rows, code caches, searches and catalog for one table session"""

    def __init__(
        self,
        client: Any,
        debounce_ms: Optional[int] = None,
        min_chars: Optional[int] = None,
        cache_max_entries: Optional[int] = None,
        epsilon: Optional[Decimal] = None,
    ):
        """
        Initialize table session

        Args:
            client: Backend collaborator exposing async search_tds_codes,
                search_tax_codes and get_items (see CodeApiClient)
            debounce_ms: Quiet period before a typed code is searched
            min_chars: Shortest trimmed term that is searched
            cache_max_entries: LRU bound of each code cache
            epsilon: Idempotence guard for derived amounts
        """
        self.client = client
        self.epsilon = epsilon if epsilon is not None else Decimal(settings.AMOUNT_EPSILON)
        self.scheduler = DebounceScheduler()

        self.tds_cache: CodeCache = CodeCache("TDS", cache_max_entries)
        self.gst_cache: CodeCache = CodeCache("GST", cache_max_entries)
        self.tds_search: CodeSearchService = CodeSearchService(
            client.search_tds_codes, self.tds_cache, TaxType.TDS,
            scheduler=self.scheduler, debounce_ms=debounce_ms, min_chars=min_chars,
        )
        self.gst_search: CodeSearchService = CodeSearchService(
            client.search_tax_codes, self.gst_cache, TaxType.GST,
            scheduler=self.scheduler, debounce_ms=debounce_ms, min_chars=min_chars,
        )
        self.catalog = ItemCatalogResolver(client.get_items)

        self._rows: "OrderedDict[int, LineItemRow]" = OrderedDict()
        self._baseline: Dict[int, Dict[RowField, str]] = {}
        # row id -> fields whose change schedules a recompute pass
        self._dependencies: Dict[int, Set[RowField]] = {}
        self._listeners: List[RowListener] = []
        self._next_id = 1
        self._in_pass = False
        self._pass_requested = False
        self._closed = False

    # ------------------------------------------------------------------ #
    # Session lifecycle
    # ------------------------------------------------------------------ #

    async def start(self) -> None:
        """Load the item catalog and resolve the codes it refers to"""
        await self.catalog.load()
        await self.warm_catalog_codes()

    async def warm_catalog_codes(self) -> None:
        """Look up every catalog default code not already cached"""
        gst_codes = sorted({e.default_gst_code for e in self.catalog.entries if e.default_gst_code})
        tds_codes = sorted({e.default_tds_code for e in self.catalog.entries if e.default_tds_code})
        for code in gst_codes:
            if code not in self.gst_cache:
                await self.gst_search.search(code)
        for code in tds_codes:
            if code not in self.tds_cache:
                await self.tds_search.search(code)

    async def aclose(self) -> None:
        self._closed = True
        self.scheduler.close()
        await self.scheduler.drain()
        self.tds_cache.clear()
        self.gst_cache.clear()
        self._listeners.clear()

    async def __aenter__(self) -> "LineItemTable":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    # ------------------------------------------------------------------ #
    # Read access
    # ------------------------------------------------------------------ #

    @property
    def rows(self) -> List[LineItemRow]:
        return list(self._rows.values())

    def get_row(self, row_id: int) -> LineItemRow:
        return self._rows[row_id]

    def totals(self) -> Dict[str, str]:
        """Invoice footer sums of the derived amounts"""
        sums = {field: ZERO for field in TOTAL_FIELDS}
        for row in self._rows.values():
            for field in TOTAL_FIELDS:
                sums[field] += wire_to_decimal(row.get(field)) or ZERO
        return {field.value: amount_to_wire(total) for field, total in sums.items()}

    def row_state(self, row_id: int) -> RowState:
        row = self._rows[row_id]
        tds_code = row.tds_code.strip()
        gst_code = row.gst_code.strip()
        if not tds_code and not gst_code:
            return RowState.DRAFT
        if self.tds_search.pending(row_id) or self.gst_search.pending(row_id):
            return RowState.CODE_PENDING
        if tds_code not in self.tds_cache and gst_code not in self.gst_cache:
            return RowState.DRAFT
        if recompute(row, self.tds_cache, self.gst_cache, self.epsilon):
            return RowState.CODE_RESOLVED
        return RowState.CONSISTENT

    # ------------------------------------------------------------------ #
    # Row lifecycle
    # ------------------------------------------------------------------ #

    def add_row(self) -> LineItemRow:
        row = LineItemRow(id=self._next_id)
        self._next_id += 1
        self._register(row)
        return row

    def load_rows(
        self,
        imported: Iterable[Union[Mapping[str, Any], LineItemRow]],
        baseline: Optional[Mapping[int, Mapping[str, str]]] = None,
    ) -> List[LineItemRow]:
        """
        Replace the table with imported line items.

        Rows get ids 1..n. Unless an explicit baseline is supplied, the
        imported values become the baseline for is_changed_from_baseline.
        """
        for row_id in list(self._rows):
            self._forget(row_id)
        self._baseline.clear()
        self._next_id = 1

        for item in imported:
            if isinstance(item, LineItemRow):
                row = item.model_copy(update={"id": self._next_id})
            else:
                row = row_from_imported(self._next_id, dict(item))
            self._next_id += 1
            self._register(row)

        if baseline is None:
            self._baseline = {
                row.id: {field: row.get(field) for field in RowField}
                for row in self._rows.values()
            }
        else:
            self.set_baseline(baseline)

        self.recompute_all()
        return self.rows

    def set_baseline(self, baseline: Mapping[int, Mapping[str, str]]) -> None:
        self._baseline = {
            row_id: {RowField(field): value for field, value in values.items()}
            for row_id, values in baseline.items()
        }

    def delete_row(self, row_id: int) -> None:
        if row_id not in self._rows:
            raise KeyError(row_id)
        self._forget(row_id)
        self._baseline.pop(row_id, None)

    def subscribe(self, listener: RowListener) -> Callable[[], None]:
        """Call listener(row_id, field, value) after every field write"""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ------------------------------------------------------------------ #
    # Mutation
    # ------------------------------------------------------------------ #

    def update_field(self, row_id: int, field: Union[RowField, str], value: str) -> bool:
        """
        Set one field of a row.

        Quantity only accepts digits (or blank); anything else is rejected and
        False is returned. Typing into a code field starts a debounced search
        for that row while the session is open and an event loop is running;
        otherwise only the typed text is stored.
        """
        field = RowField(field)
        row = self._rows[row_id]
        value = "" if value is None else str(value)

        if field == RowField.QUANTITY and not is_quantity_text(value):
            logger.debug(f"Rejected quantity {value!r} for row {row_id}")
            return False

        self._write(row, field, value)

        if field == RowField.TDS_CODE:
            self._request_search(self.tds_search, row_id, value)
        elif field == RowField.GST_CODE:
            self._request_search(self.gst_search, row_id, value)
        return True

    def select_tds_code(self, row_id: int, record: TDSCodeRecord) -> FieldUpdates:
        """TDS code picked from search results: cache it and compute right away"""
        row = self._rows[row_id]
        self.tds_cache.put(record)
        self.tds_search.cancel_row(row_id)
        updates = apply_selected_tds(row, record, self.epsilon)
        updates[RowField.TDS_CODE] = record.code
        return self._apply(row, updates)

    def select_gst_code(self, row_id: int, record: GSTCodeRecord) -> FieldUpdates:
        """GST code picked from search results: cache it and compute right away"""
        row = self._rows[row_id]
        self.gst_cache.put(record)
        self.gst_search.cancel_row(row_id)
        updates = apply_selected_gst(row, record, self.epsilon)
        updates[RowField.GST_CODE] = record.code
        return self._apply(row, updates)

    def select_catalog_item(
        self,
        row_id: int,
        entry: Union[ItemCatalogEntry, str],
    ) -> FieldUpdates:
        row = self._rows[row_id]
        if isinstance(entry, str):
            found = self.catalog.find(entry)
            if found is None:
                raise KeyError(entry)
            entry = found
        updates = self.catalog.resolve(row, entry, self.tds_cache, self.gst_cache, self.epsilon)
        return self._apply(row, updates)

    def is_changed_from_baseline(
        self,
        row_id: int,
        field: Union[RowField, str],
        value: Optional[str],
    ) -> bool:
        """Presentation-only comparison against the imported values"""
        original = self._baseline.get(row_id, {}).get(RowField(field))
        if original is None:
            return False
        normalized_original = str(original).strip()
        normalized_current = str(value or "").strip()
        if not normalized_original and not normalized_current:
            return False
        return normalized_original != normalized_current

    def recompute_all(self) -> int:
        """
        Reactive pass over every row in table order.

        A pass requested while one is running is folded into the running
        pass (it loops once more) instead of nesting.

        Returns:
            Number of field writes performed
        """
        if self._in_pass:
            self._pass_requested = True
            return 0

        writes = 0
        self._in_pass = True
        try:
            while True:
                self._pass_requested = False
                for row in list(self._rows.values()):
                    if row.id not in self._rows:
                        continue
                    updates = recompute(row, self.tds_cache, self.gst_cache, self.epsilon)
                    writes += sum(
                        1 for field, value in updates.items() if self._write(row, field, value)
                    )
                if not self._pass_requested:
                    break
        finally:
            self._in_pass = False
        return writes

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #

    def _register(self, row: LineItemRow) -> None:
        self._rows[row.id] = row
        self._dependencies[row.id] = set(DEPENDENCY_FIELDS)

    def _forget(self, row_id: int) -> None:
        self.tds_search.cancel_row(row_id)
        self.gst_search.cancel_row(row_id)
        self._dependencies.pop(row_id, None)
        del self._rows[row_id]

    def _apply(self, row: LineItemRow, updates: FieldUpdates) -> FieldUpdates:
        # Derived amounts first so the code write's pass finds them settled
        ordered = sorted(updates.items(), key=lambda item: item[0] in DEPENDENCY_FIELDS)
        return {field: value for field, value in ordered if self._write(row, field, value)}

    def _write(self, row: LineItemRow, field: RowField, value: str) -> bool:
        if row.get(field) == value:
            return False
        row.set(field, value)
        for listener in list(self._listeners):
            listener(row.id, field, value)
        if field in self._dependencies.get(row.id, ()):
            self.recompute_all()
        return True

    def _request_search(self, search: CodeSearchService, row_id: int, term: str) -> None:
        if self._closed or not self.scheduler.accepting:
            logger.debug(f"No {search.tax_type.value} search for row {row_id}: no live session loop")
            search.cancel_row(row_id)
            return
        search.request(row_id, term, self._on_search_results)

    def _on_search_results(self, row_id: int, records: List[Any]) -> None:
        if self._closed:
            return
        logger.debug(f"{len(records)} code records arrived for row {row_id}")
        # New cache entries may resolve codes typed on any row
        self.recompute_all()
