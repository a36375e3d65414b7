"""
Airtable record store.

HTTP client for the Airtable REST API with retry on transient failures.
"""

import time
from typing import Any
from urllib.parse import quote

import httpx
from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from stockledger.config import get_logger, get_settings
from stockledger.core.exceptions import (
    ConfigurationError,
    RecordNotFoundError,
    StoreRequestError,
    StoreUnavailableError,
)
from stockledger.core.filters import Expr, SortSpec
from stockledger.core.interfaces import IRecordStore, Record

logger = get_logger(__name__)


class _RetryableResponse(Exception):
    """Rate limited or server-side failure; worth another attempt."""

    def __init__(self, status_code: int, text: str):
        super().__init__(f"HTTP {status_code}: {text}")
        self.status_code = status_code
        self.text = text


class AirtableRecordStore(IRecordStore):
    """
    Airtable REST API implementation of IRecordStore.

    Transport errors, timeouts, 429 and 5xx are retried with exponential
    backoff, then surface as StoreUnavailableError. Auth failures are not
    retried.
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_id: str | None = None,
        endpoint_url: str | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        settings = get_settings().store
        self.api_key = api_key if api_key is not None else settings.airtable_api_key
        self.base_id = base_id if base_id is not None else settings.airtable_base_id
        self.endpoint_url = (endpoint_url or settings.airtable_endpoint_url).rstrip("/")
        self.timeout = settings.timeout
        self.page_size = settings.page_size
        self.max_retries = settings.max_retries
        self.retry_delay = settings.retry_delay
        self.retry_multiplier = settings.retry_multiplier

        if not self.base_id:
            raise ConfigurationError("STORE_AIRTABLE_BASE_ID is not set")

        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.endpoint_url,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
                timeout=self.timeout,
            )
        return self._client

    def _path(self, collection: str, record_id: str | None = None) -> str:
        path = f"/v0/{self.base_id}/{quote(collection, safe='')}"
        if record_id:
            path += f"/{record_id}"
        return path

    async def find(
        self,
        collection: str,
        filter: Expr | None = None,
        sort: list[SortSpec] | None = None,
    ) -> list[Record]:
        """List records, following pagination offsets to the end."""
        params: list[tuple[str, str | int]] = [("pageSize", self.page_size)]
        if filter is not None:
            params.append(("filterByFormula", filter.to_formula()))
        for i, key in enumerate(sort or []):
            params.append((f"sort[{i}][field]", key.field))
            params.append((f"sort[{i}][direction]", key.direction))

        records: list[Record] = []
        offset: str | None = None
        start_time = time.time()
        while True:
            page_params = params + ([("offset", offset)] if offset else [])
            data = await self._request(
                f"find {collection}", "GET", self._path(collection), params=page_params
            )
            records.extend(self._to_record(r) for r in data.get("records", []))
            offset = data.get("offset")
            if not offset:
                break

        logger.debug(
            "airtable_find",
            collection=collection,
            count=len(records),
            elapsed_ms=int((time.time() - start_time) * 1000),
        )
        return records

    async def create(self, collection: str, fields: dict[str, Any]) -> Record:
        data = await self._request(
            f"create {collection}",
            "POST",
            self._path(collection),
            json={"records": [{"fields": fields}], "typecast": True},
        )
        return self._to_record(data["records"][0])

    async def update(
        self, collection: str, record_id: str, fields: dict[str, Any]
    ) -> Record:
        data = await self._request(
            f"update {collection}",
            "PATCH",
            self._path(collection, record_id),
            json={"fields": fields, "typecast": True},
            record=(collection, record_id),
        )
        return self._to_record(data)

    async def delete(self, collection: str, record_id: str) -> None:
        await self._request(
            f"delete {collection}",
            "DELETE",
            self._path(collection, record_id),
            record=(collection, record_id),
        )

    async def find_by_id(self, collection: str, record_id: str) -> Record:
        data = await self._request(
            f"find_by_id {collection}",
            "GET",
            self._path(collection, record_id),
            record=(collection, record_id),
        )
        return self._to_record(data)

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def _request(
        self,
        operation: str,
        method: str,
        path: str,
        record: tuple[str, str] | None = None,
        **kwargs: Any,
    ) -> dict:
        """Send with retry and map failures onto the store error taxonomy."""
        retry_decorator = self._get_retry_decorator()
        try:
            response = await retry_decorator(self._send)(method, path, **kwargs)
        except httpx.TimeoutException as e:
            raise StoreUnavailableError(operation, f"timed out after {self.timeout}s") from e
        except httpx.TransportError as e:
            raise StoreUnavailableError(operation, str(e) or type(e).__name__) from e
        except _RetryableResponse as e:
            raise StoreUnavailableError(operation, str(e)) from e

        status = response.status_code
        if status in (401, 403):
            raise StoreUnavailableError(operation, f"HTTP {status}: {response.text[:200]}")
        if status == 404 and record is not None:
            raise RecordNotFoundError(*record)
        if status >= 400:
            raise StoreRequestError(operation, status, response.text[:200])
        return response.json()

    async def _send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        response = await self._get_client().request(method, path, **kwargs)
        if response.status_code == 429 or response.status_code >= 500:
            raise _RetryableResponse(response.status_code, response.text[:200])
        return response

    def _get_retry_decorator(self) -> Any:
        """Get tenacity retry decorator with current settings."""
        return retry(
            stop=stop_after_attempt(max(1, self.max_retries)),
            wait=wait_exponential(
                multiplier=self.retry_delay,
                min=self.retry_delay,
                max=self.retry_delay * (self.retry_multiplier**3),
            ),
            retry=retry_if_exception_type((httpx.TransportError, _RetryableResponse)),
            before_sleep=self._log_retry,
            reraise=True,
        )

    @staticmethod
    def _log_retry(retry_state: RetryCallState) -> None:
        logger.warning(
            "airtable_retry",
            attempt=retry_state.attempt_number,
            error=str(retry_state.outcome.exception()) if retry_state.outcome else None,
        )

    @staticmethod
    def _to_record(raw: dict[str, Any]) -> Record:
        return {"id": raw["id"], **raw.get("fields", {})}
