"""Debounced per-row code search with shared result caching"""

import logging
from typing import Any, Awaitable, Callable, Dict, Generic, Hashable, List, Optional, Tuple, TypeVar

import requests
from pydantic import ValidationError

from invoice_tax.config import settings
from invoice_tax.engine.code_cache import CodeCache
from invoice_tax.engine.scheduler import DebounceScheduler
from invoice_tax.models.line_item import TaxType
from invoice_tax.services.code_api_client import CodeApiError

logger = logging.getLogger(__name__)

R = TypeVar("R")

SearchFn = Callable[[str], Awaitable[List[Any]]]
ResultsCallback = Callable[[Hashable, List[Any]], None]


class CodeSearchService(Generic[R]):
    """
    Lookup of one tax code family (TDS or GST) by partial code text.

    Every record returned by the backend is cached, whichever row asked.
    Debounced requests are numbered per (row, tax type) key; a response that
    arrives after a newer request for the same key was issued is dropped
    without touching the cache, so out-of-order responses cannot overwrite
    fresher ones.
    """

    def __init__(
        self,
        fetch: SearchFn,
        cache: CodeCache,
        tax_type: TaxType,
        scheduler: Optional[DebounceScheduler] = None,
        debounce_ms: Optional[int] = None,
        min_chars: Optional[int] = None,
    ):
        self.fetch = fetch
        self.cache = cache
        self.tax_type = tax_type
        self.scheduler = scheduler or DebounceScheduler()
        self.debounce_ms = debounce_ms if debounce_ms is not None else settings.SEARCH_DEBOUNCE_MS
        self.min_chars = min_chars if min_chars is not None else settings.SEARCH_MIN_CHARS
        self._issued: Dict[Hashable, int] = {}
        self._sequence = 0

    def key_for(self, row_id: Hashable) -> Tuple[Hashable, TaxType]:
        return (row_id, self.tax_type)

    def accepts(self, term: Optional[str]) -> bool:
        return term is not None and len(term.strip()) >= self.min_chars

    async def search(self, term: str) -> List[R]:
        """Immediate lookup; short terms return [] without calling the backend"""
        if not self.accepts(term):
            return []
        records = await self._fetch(term.strip())
        self.cache.put_many(records)
        return records

    def request(
        self,
        row_id: Hashable,
        term: str,
        on_results: Optional[ResultsCallback] = None,
    ) -> bool:
        """
        Debounced lookup for one row's code field.

        Returns False (and cancels any pending lookup for the row) when the
        term is too short to search.
        """
        key = self.key_for(row_id)
        if not self.accepts(term):
            self.cancel_row(row_id)
            return False

        async def run() -> None:
            self._sequence += 1
            ticket = self._sequence
            self._issued[key] = ticket
            try:
                records = await self._fetch(term.strip())
            finally:
                current = self._issued.get(key) == ticket
                if current:
                    del self._issued[key]
            if not current:
                logger.debug(
                    f"Discarding stale {self.tax_type.value} results for {key} (ticket {ticket})"
                )
                return
            self.cache.put_many(records)
            if on_results is not None:
                on_results(row_id, records)

        self.scheduler.schedule(key, self.debounce_ms, run)
        return True

    def cancel_row(self, row_id: Hashable) -> None:
        key = self.key_for(row_id)
        self.scheduler.cancel(key)
        # Any response still in flight for this row is now stale
        self._issued.pop(key, None)

    def pending(self, row_id: Hashable) -> bool:
        """Debounce timer waiting or lookup in flight for the row"""
        key = self.key_for(row_id)
        return self.scheduler.pending(key) or key in self._issued

    async def _fetch(self, term: str) -> List[R]:
        try:
            return list(await self.fetch(term))
        except (CodeApiError, requests.exceptions.RequestException) as e:
            logger.error(f"{self.tax_type.value.upper()} code search failed for '{term}': {e}")
            return []
        except ValidationError as e:
            logger.error(
                f"{self.tax_type.value.upper()} code search for '{term}' returned malformed records: "
                f"{e.error_count()} validation error(s)"
            )
            return []
