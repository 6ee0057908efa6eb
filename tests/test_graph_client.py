# tests/test_graph_client.py
from http import HTTPStatus
from typing import Any, Dict, Optional

import pytest

from meetslot.services.graph_client import GraphClient, GraphClientError, get_graph_client


class _FakeResponse:
    def __init__(self, status_code: int, json_data: Dict[str, Any]):
        self.status_code = status_code
        self._json_data = json_data
        # For debugging / error messages
        self.text = str(json_data)

    def json(self) -> Dict[str, Any]:
        return self._json_data


class _FakeAsyncClient:
    """
    Minimal stand-in for httpx.AsyncClient used in tests.

    Captures the last request and returns predictable responses without
    real I/O.
    """

    last_request: Dict[str, Any] = {}
    token_call_count: int = 0
    graph_call_count: int = 0

    def __init__(self, timeout: float | None = None):
        self._timeout = timeout

    async def __aenter__(self) -> "_FakeAsyncClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        return None

    async def post(self, url: str, data: Optional[Dict[str, Any]] = None, **kwargs) -> _FakeResponse:
        _FakeAsyncClient.last_request = {"method": "POST", "url": url, "data": data}
        _FakeAsyncClient.token_call_count += 1
        return _FakeResponse(
            status_code=HTTPStatus.OK,
            json_data={"access_token": "fake-token-123", "expires_in": 300, "token_type": "Bearer"},
        )

    async def request(
        self,
        method: str,
        url: str,
        headers: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
    ) -> _FakeResponse:
        _FakeAsyncClient.last_request = {
            "method": method,
            "url": url,
            "headers": headers,
            "params": params,
        }
        _FakeAsyncClient.graph_call_count += 1
        return _FakeResponse(
            status_code=HTTPStatus.OK,
            json_data={"value": [], "echo": {"url": url, "params": params}},
        )


def _client(**kwargs) -> GraphClient:
    return GraphClient(tenant_id="tenant-123", client_id="client-123", client_secret="secret-xyz", **kwargs)


@pytest.mark.asyncio
async def test_graph_client_fetches_and_caches_token(monkeypatch):
    """
    The token endpoint is only hit once while the cached token is valid.
    """
    import httpx

    monkeypatch.setattr(httpx, "AsyncClient", _FakeAsyncClient)
    _FakeAsyncClient.token_call_count = 0

    client = _client()
    token1 = await client.get_access_token()
    token2 = await client.get_access_token()

    assert token1 == token2 == "fake-token-123"
    assert _FakeAsyncClient.token_call_count == 1


@pytest.mark.asyncio
async def test_get_json_builds_url_and_merges_headers(monkeypatch):
    import httpx

    monkeypatch.setattr(httpx, "AsyncClient", _FakeAsyncClient)

    client = _client(base_url="https://graph.microsoft.com/")
    data = await client.get_json(
        "/v1.0/users/a@example.com/calendarView",
        params={"$top": 5},
        headers={"Prefer": 'outlook.timezone="UTC"'},
    )

    assert data["value"] == []
    last = _FakeAsyncClient.last_request
    assert last["method"] == "GET"
    assert last["url"] == "https://graph.microsoft.com/v1.0/users/a@example.com/calendarView"
    assert last["headers"]["Authorization"] == "Bearer fake-token-123"
    assert last["headers"]["Prefer"] == 'outlook.timezone="UTC"'


@pytest.mark.asyncio
async def test_get_json_accepts_absolute_next_link(monkeypatch):
    import httpx

    monkeypatch.setattr(httpx, "AsyncClient", _FakeAsyncClient)

    next_link = "https://graph.microsoft.com/v1.0/users/a/calendarView?$skiptoken=abc"
    await _client().get_json(next_link)

    assert _FakeAsyncClient.last_request["url"] == next_link


@pytest.mark.asyncio
async def test_graph_client_raises_on_bad_token_response(monkeypatch):
    import httpx

    class _BadTokenClient(_FakeAsyncClient):
        async def post(self, url: str, data=None, **kwargs) -> _FakeResponse:
            return _FakeResponse(status_code=HTTPStatus.BAD_REQUEST, json_data={"error": "invalid_client"})

    monkeypatch.setattr(httpx, "AsyncClient", _BadTokenClient)

    with pytest.raises(GraphClientError):
        await _client().get_access_token()


@pytest.mark.asyncio
async def test_get_json_raises_on_error_status(monkeypatch):
    import httpx

    class _ForbiddenClient(_FakeAsyncClient):
        async def request(self, method, url, headers=None, params=None, json=None) -> _FakeResponse:
            return _FakeResponse(status_code=HTTPStatus.FORBIDDEN, json_data={"error": "denied"})

    monkeypatch.setattr(httpx, "AsyncClient", _ForbiddenClient)

    with pytest.raises(GraphClientError):
        await _client().get_json("/v1.0/me/calendarView")


def test_shared_client_requires_credentials(monkeypatch):
    import meetslot.services.graph_client as graph_module

    monkeypatch.setattr(graph_module, "_shared_client", None)
    for name in ("GRAPH_TENANT_ID", "GRAPH_CLIENT_ID", "GRAPH_CLIENT_SECRET"):
        monkeypatch.delenv(name, raising=False)

    with pytest.raises(GraphClientError):
        get_graph_client()


@pytest.mark.asyncio
async def test_get_json_wraps_transport_errors(monkeypatch):
    import httpx

    class _UnreachableClient(_FakeAsyncClient):
        async def request(self, method, url, headers=None, params=None, json=None) -> _FakeResponse:
            raise httpx.ConnectError("connection refused")

    monkeypatch.setattr(httpx, "AsyncClient", _UnreachableClient)

    with pytest.raises(GraphClientError) as excinfo:
        await _client().get_json("/v1.0/me/calendarView")

    assert isinstance(excinfo.value.__cause__, httpx.ConnectError)


@pytest.mark.asyncio
async def test_token_fetch_wraps_timeouts(monkeypatch):
    import httpx

    class _SlowTokenClient(_FakeAsyncClient):
        async def post(self, url: str, data=None, **kwargs) -> _FakeResponse:
            raise httpx.ReadTimeout("token endpoint timed out")

    monkeypatch.setattr(httpx, "AsyncClient", _SlowTokenClient)

    with pytest.raises(GraphClientError):
        await _client().get_access_token()
