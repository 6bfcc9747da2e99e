"""Line-item tax computation engine"""

from .code_cache import CodeCache
from .scheduler import DebounceScheduler
from .code_search import CodeSearchService
from .catalog import ItemCatalogResolver
from .recalculation import recompute, apply_selected_tds, apply_selected_gst, base_amount
from .row_store import LineItemTable, RowState

__all__ = [
    "CodeCache",
    "DebounceScheduler",
    "CodeSearchService",
    "ItemCatalogResolver",
    "recompute",
    "apply_selected_tds",
    "apply_selected_gst",
    "base_amount",
    "LineItemTable",
    "RowState",
]
