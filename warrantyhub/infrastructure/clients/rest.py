"""HTTP client for the remote relational backend (PostgREST-compatible REST API)"""

from typing import Any, Dict, List, Optional

import httpx

from warrantyhub.config import settings
from warrantyhub.domain.exceptions import AlreadyExists, BackendError, BackendUnavailable
from warrantyhub.infrastructure.observability.metrics import backend_failure_counter, backend_latency_histogram

UNIQUE_VIOLATION = "23505"


def _backend_error(response: httpx.Response) -> Exception:
    """Wrap the backend's own error message in a domain exception"""
    code = None
    message = f"Backend error: {response.status_code}"
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        code = body.get("code")
        message = body.get("message") or message

    if response.status_code == 409 or code == UNIQUE_VIOLATION:
        return AlreadyExists(message)
    return BackendError(message, status_code=response.status_code, code=code)


class RestClient:
    """Client for table-scoped REST calls against the remote backend"""

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = (base_url or settings.remote_api_base or "").rstrip("/")
        self.api_key = api_key or settings.remote_api_key or ""
        self.timeout = timeout or settings.http_timeout_seconds
        self.transport = transport

    def _headers(self) -> Dict[str, str]:
        return {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.api_key}",
            "Prefer": "return=representation",
        }

    async def _request(
        self,
        method: str,
        table: str,
        params: Optional[Dict[str, str]] = None,
        json: Any = None,
    ) -> Any:
        """
        Issue one call against /rest/v1/{table}.

        Raises:
            BackendUnavailable: Not configured, timeout or transport failure
            AlreadyExists: Unique constraint violated
            BackendError: Any other error response, message kept verbatim
        """
        if not self.base_url or not self.api_key:
            raise BackendUnavailable("Remote backend is not configured")

        async with httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self.transport,
            headers=self._headers(),
        ) as client:
            try:
                with backend_latency_histogram.labels(table=table, method=method).time():
                    response = await client.request(method, f"/rest/v1/{table}", params=params, json=json)
                response.raise_for_status()
                return response.json() if response.content else None

            except httpx.TimeoutException as e:
                backend_failure_counter.labels(table=table).inc()
                raise BackendUnavailable(f"Remote backend timeout after {self.timeout}s") from e
            except httpx.HTTPStatusError as e:
                backend_failure_counter.labels(table=table).inc()
                raise _backend_error(e.response) from e
            except httpx.RequestError as e:
                backend_failure_counter.labels(table=table).inc()
                raise BackendUnavailable(f"Remote backend unreachable: {e}") from e
            except ValueError as e:
                backend_failure_counter.labels(table=table).inc()
                raise BackendError(f"Invalid response from backend: {e}") from e

    async def select(self, table: str, order: str | None = "created_at.desc") -> List[Dict[str, Any]]:
        params = {"select": "*"}
        if order:
            params["order"] = order
        rows = await self._request("GET", table, params=params)
        return rows or []

    async def select_one(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        rows = await self._request("GET", table, params={"select": "*", "id": f"eq.{record_id}"})
        return rows[0] if rows else None

    async def insert(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        rows = await self._request("POST", table, json=row)
        if not rows:
            raise BackendError(f"Insert into {table} returned no row")
        return rows[0]

    async def update(self, table: str, record_id: str, row: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        rows = await self._request("PATCH", table, params={"id": f"eq.{record_id}"}, json=row)
        return rows[0] if rows else None
