from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Protocol

import httpx

from core.config import Settings

logger = logging.getLogger(__name__)


class RecordApiError(RuntimeError):
    """Transport-level failure talking to the record API (network, non-2xx, bad body)."""

    def __init__(self, message: str, *, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RecordClient(Protocol):
    def fetch_records(self, table: str, query: Dict[str, Any]) -> Dict[str, Any]: ...

    def get_record_by_id(self, table: str, record_id: int, query: Dict[str, Any]) -> Dict[str, Any]: ...

    def create_record(self, table: str, params: Dict[str, Any]) -> Dict[str, Any]: ...

    def update_record(self, table: str, params: Dict[str, Any]) -> Dict[str, Any]: ...

    def delete_record(self, table: str, params: Dict[str, Any]) -> Dict[str, Any]: ...


class HttpRecordClient:
    """
    Record API client over HTTP.
    Every call returns the API's envelope ``{success, message, data | results}``; only
    transport problems raise.
    """

    def __init__(
        self,
        base_url: str,
        *,
        api_key: Optional[str] = None,
        timeout: float = 20.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["X-API-Key"] = api_key
        self._client = httpx.Client(base_url=base_url.rstrip("/"), headers=headers, timeout=timeout, transport=transport)

    @classmethod
    def from_settings(cls, settings: Settings) -> "HttpRecordClient":
        return cls(settings.record_api_url, api_key=settings.record_api_key, timeout=settings.timeout)

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "HttpRecordClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _request(self, method: str, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = self._client.request(method, path, json=payload)
        except httpx.HTTPError as exc:
            logger.error("Record API %s %s failed: %s", method, path, exc)
            raise RecordApiError(f"Record API unreachable: {exc}") from exc

        if response.status_code >= 300:
            logger.error("Record API %s %s returned %s - %s", method, path, response.status_code, response.text)
            raise RecordApiError(
                f"Record API error ({response.status_code}): {response.text}",
                status_code=response.status_code,
            )
        try:
            data = response.json()
        except ValueError as exc:
            raise RecordApiError("Record API returned a non-JSON body", status_code=response.status_code) from exc
        if not isinstance(data, dict):
            raise RecordApiError("Record API returned an unexpected body", status_code=response.status_code)
        return data

    def fetch_records(self, table: str, query: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("POST", f"/tables/{table}/records/query", query)

    def get_record_by_id(self, table: str, record_id: int, query: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("POST", f"/tables/{table}/records/{record_id}", query)

    def create_record(self, table: str, params: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("POST", f"/tables/{table}/records", params)

    def update_record(self, table: str, params: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("PUT", f"/tables/{table}/records", params)

    def delete_record(self, table: str, params: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("DELETE", f"/tables/{table}/records", params)
