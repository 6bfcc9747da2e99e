"""REST client for tax code, TDS code and item catalog lookups

The backend exposes PostgREST-style filters, so code searches are
`ilike.%term%` matches returning `{"count", "data", "offset"}` envelopes.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Type, TypeVar
from urllib.parse import quote

import requests
from pydantic import BaseModel, ValidationError

from invoice_tax.config import settings
from invoice_tax.models.line_item import TDSCodeRecord, GSTCodeRecord, ItemCatalogEntry
from invoice_tax.utils.retry import async_retry_with_backoff, RetryableError, RateLimitError

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

TDS_CODES_PATH = "/api/v1/tax/tds"
TAX_CODES_PATH = "/api/v1/tax"
ITEMS_PATH = "/api/v1/items"


class CodeApiError(Exception):
    """Backend lookup failed (after retries)"""
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class CodeApiClient:
    """Async facade over the blocking requests session"""

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize API client

        Args:
            base_url: Backend base URL (defaults to settings.API_BASE_URL)
            token: Bearer token; no Authorization header when absent
            timeout: Per-request timeout in seconds
            max_retries: Retry attempts for transient failures
            session: Optional pre-built requests session
        """
        self.base_url = (base_url or settings.API_BASE_URL).rstrip("/")
        self.token = token if token is not None else settings.API_TOKEN
        self.timeout = timeout if timeout is not None else settings.API_TIMEOUT_SECONDS
        self.session = session or requests.Session()
        if self.token:
            self.session.headers["Authorization"] = f"Bearer {self.token}"
        self.session.headers["Accept"] = "application/json"

        retries = max_retries if max_retries is not None else settings.SEARCH_MAX_RETRIES
        self._get_with_retry = async_retry_with_backoff(max_retries=retries)(self._get_once)

    async def search_tds_codes(self, term: str) -> List[TDSCodeRecord]:
        """Find TDS codes whose code contains `term` (case-insensitive)"""
        payload = await self._get(f"{TDS_CODES_PATH}?tds_code={self._ilike(term)}")
        return self._records(TDSCodeRecord, payload)

    async def search_tax_codes(self, term: str) -> List[GSTCodeRecord]:
        """Find GST tax codes whose code contains `term` (case-insensitive)"""
        payload = await self._get(f"{TAX_CODES_PATH}?tax_code={self._ilike(term)}")
        return self._records(GSTCodeRecord, payload)

    async def get_items(self) -> List[ItemCatalogEntry]:
        """Fetch the item catalog"""
        payload = await self._get(ITEMS_PATH)
        return self._records(ItemCatalogEntry, payload)

    def close(self) -> None:
        self.session.close()

    @staticmethod
    def _ilike(term: str) -> str:
        return f"ilike.%25{quote(term, safe='')}%25"

    @staticmethod
    def _data(payload: Any) -> List[Dict[str, Any]]:
        if isinstance(payload, dict):
            data = payload.get("data") or []
        elif isinstance(payload, list):
            data = payload
        else:
            data = []
        return [item for item in data if isinstance(item, dict)]

    @classmethod
    def _records(cls, model: Type[M], payload: Any) -> List[M]:
        """Map envelope items through model.from_api, skipping malformed ones"""
        records = []
        for item in cls._data(payload):
            try:
                records.append(model.from_api(item))
            except ValidationError as e:
                logger.warning(
                    f"Skipping malformed {model.__name__} record: {e.error_count()} validation error(s)"
                )
        return records

    async def _get(self, path: str) -> Any:
        try:
            return await self._get_with_retry(path)
        except RetryableError as e:
            raise CodeApiError(f"GET {path} failed: {e}", getattr(e, "status_code", None)) from e

    async def _get_once(self, path: str) -> Any:
        url = f"{self.base_url}{path}"
        try:
            response = await asyncio.to_thread(self.session.get, url, timeout=self.timeout)
        except (requests.exceptions.ConnectionError, requests.exceptions.Timeout) as e:
            raise RetryableError(f"{type(e).__name__}: {e}") from e
        except requests.exceptions.RequestException as e:
            raise CodeApiError(f"GET {path} failed: {e}") from e

        if response.status_code == 429:
            retry_after = response.headers.get("Retry-After")
            error = RateLimitError(
                retry_after=float(retry_after) if retry_after and retry_after.isdigit() else None
            )
            error.status_code = 429
            raise error
        if response.status_code >= 500:
            error = RetryableError(f"HTTP {response.status_code}")
            error.status_code = response.status_code
            raise error
        if response.status_code >= 400:
            raise CodeApiError(f"GET {path} returned HTTP {response.status_code}", response.status_code)

        try:
            return response.json()
        except ValueError as e:
            raise CodeApiError(f"GET {path} returned invalid JSON: {e}", response.status_code) from e
