import asyncio

import pytest
from aiohttp import ClientConnectionError
from unittest.mock import AsyncMock, MagicMock

from bulkadd.clients import DoofApiClient
from bulkadd.config import ClientConfig
from bulkadd.errors import ConfigurationError, PermanentAPIError, TransientAPIError


class FakeResponse:
    def __init__(self, status, body):
        self.status = status
        self._body = body

    async def json(self, content_type=None):
        return self._body

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return False


def client_with_response(status=200, body=None, error=None, **config):
    client = DoofApiClient(ClientConfig(base_url="http://doof.test/api", token="t0ken", **config))
    session = MagicMock()
    if error is not None:
        session.request = MagicMock(side_effect=error)
    else:
        session.request = MagicMock(return_value=FakeResponse(status, body))
    client._get_session = AsyncMock(return_value=session)
    return client, session


@pytest.mark.asyncio
async def test_get_json_sends_bearer_token():
    client, session = client_with_response(body={"success": True, "predictions": []})

    data = await client.get_json("/places/autocomplete", params={"input": "Lucali"})

    assert data == {"success": True, "predictions": []}
    method, url = session.request.call_args.args
    assert (method, url) == ("GET", "http://doof.test/api/places/autocomplete")
    assert session.request.call_args.kwargs["headers"]["Authorization"] == "Bearer t0ken"


@pytest.mark.asyncio
async def test_dev_mode_adds_places_bypass_headers():
    client, session = client_with_response(body=[], dev_mode=True)

    await client.get_json("/places/autocomplete", params={"input": "Lucali"}, places=True)

    headers = session.request.call_args.kwargs["headers"]
    assert headers["X-Bypass-Auth"] == "true"
    assert headers["X-Places-Api-Request"] == "true"


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [500, 502, 503, 429])
async def test_server_errors_are_transient(status):
    client, _ = client_with_response(status=status, body={"message": "upstream"})

    with pytest.raises(TransientAPIError) as exc_info:
        await client.get_json("/places/details/ChIJkatz")
    assert exc_info.value.status == status


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [400, 401, 403, 404])
async def test_client_errors_are_permanent(status):
    client, _ = client_with_response(status=status, body={"message": "nope"})

    with pytest.raises(PermanentAPIError) as exc_info:
        await client.get_json("/places/details/ChIJkatz")
    assert exc_info.value.status == status


@pytest.mark.asyncio
async def test_allowed_404_returns_none():
    client, _ = client_with_response(status=404, body={"message": "not found"})

    assert await client.get_json("/neighborhoods/zip/99999", allow_404=True) is None


@pytest.mark.asyncio
@pytest.mark.parametrize("error", [asyncio.TimeoutError(), ClientConnectionError("reset")])
async def test_network_failures_are_transient(error):
    client, _ = client_with_response(error=error)

    with pytest.raises(TransientAPIError):
        await client.get_json("/places/autocomplete", params={"input": "Lucali"})


@pytest.mark.asyncio
async def test_offline_mode_refuses_requests():
    client, session = client_with_response(body=[], offline_mode=True)

    with pytest.raises(PermanentAPIError):
        await client.get_json("/places/autocomplete", params={"input": "Lucali"})
    session.request.assert_not_called()


@pytest.mark.asyncio
async def test_login_stores_token():
    client, session = client_with_response(body={"success": True, "data": {"token": "fresh", "user": {"id": 1}}})

    token = await client.login("admin@example.com", "doof123")

    assert token == "fresh"
    assert client.token == "fresh"
    assert session.request.call_args.kwargs["json"] == {"email": "admin@example.com", "password": "doof123"}


def test_ensure_configured():
    DoofApiClient(ClientConfig(base_url="http://doof.test/api", token="t0ken")).ensure_configured()

    with pytest.raises(ConfigurationError):
        DoofApiClient(ClientConfig(base_url="http://doof.test/api", token=None)).ensure_configured()
    with pytest.raises(ConfigurationError):
        DoofApiClient(ClientConfig(base_url="", token="t0ken")).ensure_configured()
