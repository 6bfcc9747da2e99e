"""In-memory store of resolved tax code records

Entries are never invalidated while a table session is open; a code
resolved once stays usable for recompute. The store is bounded, dropping
the least recently used code when full.
"""

from collections import OrderedDict
from typing import Generic, Iterable, Iterator, Optional, TypeVar
import logging

from invoice_tax.config import settings

logger = logging.getLogger(__name__)

R = TypeVar("R")


class CodeCache(Generic[R]):
    """LRU-bounded code -> record mapping"""

    def __init__(self, name: str, max_entries: Optional[int] = None):
        self.name = name
        self.max_entries = max_entries if max_entries is not None else settings.CODE_CACHE_MAX_ENTRIES
        if self.max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        self._entries: "OrderedDict[str, R]" = OrderedDict()

    def put(self, record: R) -> None:
        code = getattr(record, "code", "")
        if not code:
            return
        self._entries[code] = record
        self._entries.move_to_end(code)
        while len(self._entries) > self.max_entries:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug(f"{self.name} cache full, evicted {evicted}")

    def put_many(self, records: Iterable[R]) -> None:
        for record in records:
            self.put(record)

    def get(self, code: Optional[str]) -> Optional[R]:
        if not code:
            return None
        record = self._entries.get(code)
        if record is not None:
            self._entries.move_to_end(code)
        return record

    def __contains__(self, code: object) -> bool:
        return code in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._entries))

    def clear(self) -> None:
        """Drop everything; only used when the owning session closes"""
        self._entries.clear()
