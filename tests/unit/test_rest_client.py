"""Unit tests for remote backend error mapping"""

import httpx
import pytest

from warrantyhub.domain.exceptions import AlreadyExists, BackendError, BackendUnavailable
from warrantyhub.infrastructure.clients.rest import RestClient


def client_for(handler) -> RestClient:
    return RestClient(base_url="http://backend.test/", api_key="key-1", transport=httpx.MockTransport(handler))


async def test_unconfigured_client_is_unavailable():
    client = RestClient(base_url="", api_key="", transport=httpx.MockTransport(lambda r: httpx.Response(200)))
    with pytest.raises(BackendUnavailable, match="not configured"):
        await client.select("contracts")


async def test_select_sends_auth_headers_and_order():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = request.url
        seen["headers"] = request.headers
        return httpx.Response(200, json=[{"id": "c-1"}])

    rows = await client_for(handler).select("contracts")

    assert rows == [{"id": "c-1"}]
    assert seen["url"].path == "/rest/v1/contracts"
    assert seen["url"].params["order"] == "created_at.desc"
    assert seen["headers"]["apikey"] == "key-1"
    assert seen["headers"]["authorization"] == "Bearer key-1"
    assert seen["headers"]["prefer"] == "return=representation"


async def test_select_one_filters_by_id():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["id"] == "eq.c-9"
        return httpx.Response(200, json=[])

    assert await client_for(handler).select_one("contracts", "c-9") is None


async def test_unique_violation_is_already_exists():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(409, json={"code": "23505", "message": "duplicate key value"})

    with pytest.raises(AlreadyExists, match="duplicate key value"):
        await client_for(handler).insert("contracts", {"contract_number": "C-1"})


async def test_backend_message_is_kept_verbatim():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"code": "PGRST204", "message": "Could not find the 'status' column"})

    with pytest.raises(BackendError) as exc_info:
        await client_for(handler).update("contracts", "c-1", {"status": "SOLD"})

    assert str(exc_info.value) == "Could not find the 'status' column"
    assert exc_info.value.status_code == 400
    assert exc_info.value.code == "PGRST204"


async def test_non_json_error_body():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, text="bad gateway")

    with pytest.raises(BackendError, match="Backend error: 502"):
        await client_for(handler).select("batches")


async def test_timeout_is_unavailable():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(BackendUnavailable, match="timeout"):
        await client_for(handler).select("contracts")


async def test_transport_failure_is_unavailable():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(BackendUnavailable, match="unreachable"):
        await client_for(handler).select("remittances")


async def test_empty_insert_response_is_an_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(201, json=[])

    with pytest.raises(BackendError, match="returned no row"):
        await client_for(handler).insert("remittances", {"remittance_number": "R-1"})
