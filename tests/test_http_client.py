"""Test HTTP orchestration: URLs, auth headers, body parsing, error mapping."""
import asyncio
import base64
import logging

import httpx
import pytest

from possync.errors import ErrorCode, POSAdapterError, extract_error_code, extract_error_message
from possync.integrations import (
    APIKeyCredentials,
    BasicCredentials,
    ConnectionConfig,
    HttpOrchestrator,
    OAuth2Credentials,
    RequestDescriptor,
    TokenCache,
)


def make_config(**kwargs):
    return ConnectionConfig(host="pos.example.com", **kwargs)


def orchestrator_for(handler):
    transport = httpx.MockTransport(handler)
    return HttpOrchestrator(token_cache=TokenCache(transport=transport), transport=transport)


def test_base_url_scheme_and_port():
    assert make_config().resolved_base_url == "https://pos.example.com"
    assert make_config(use_ssl=False, port=80).resolved_base_url == "http://pos.example.com"
    assert make_config(port=8443).resolved_base_url == "https://pos.example.com:8443"
    assert make_config(base_url="https://api.vendor.io/v2/").resolved_base_url == "https://api.vendor.io/v2"


def test_build_url_normalizes_path_and_drops_none():
    url = HttpOrchestrator.build_url(make_config(), "items", {"a": 1, "b": None, "c": True})
    assert url == "https://pos.example.com/items?a=1&c=true"


@pytest.mark.asyncio
async def test_api_key_header_with_prefix():
    orch = HttpOrchestrator()
    config = make_config(credentials=APIKeyCredentials(api_key="k-123", header_name="Authorization", prefix="Bearer"))
    assert await orch.auth_headers(config) == {"Authorization": "Bearer k-123"}


@pytest.mark.asyncio
async def test_api_key_default_header():
    orch = HttpOrchestrator()
    config = make_config(credentials=APIKeyCredentials(api_key="k-123"))
    assert await orch.auth_headers(config) == {"X-API-Key": "k-123"}


@pytest.mark.asyncio
async def test_basic_auth_header():
    orch = HttpOrchestrator()
    config = make_config(credentials=BasicCredentials(username="user", password="pass"))
    headers = await orch.auth_headers(config)
    assert headers["Authorization"] == "Basic " + base64.b64encode(b"user:pass").decode()


@pytest.mark.asyncio
async def test_no_credentials_no_header():
    assert await HttpOrchestrator().auth_headers(make_config()) == {}


@pytest.mark.asyncio
async def test_execute_parses_json_and_sends_user_agent():
    seen = {}

    def handler(request):
        seen["ua"] = request.headers["user-agent"]
        seen["url"] = str(request.url)
        return httpx.Response(200, json={"ok": True})

    resp = await orchestrator_for(handler).execute(
        make_config(pos_type="acme"), RequestDescriptor(path="/status", params={"x": None, "y": 2})
    )
    assert resp.ok
    assert resp.data == {"ok": True}
    assert seen["ua"] == "POSSync-Adapter/acme/1.0"
    assert seen["url"] == "https://pos.example.com/status?y=2"


@pytest.mark.asyncio
async def test_request_log_masks_secret_query_params(caplog):
    def handler(request):
        return httpx.Response(200, json={"ok": True})

    credentials = APIKeyCredentials(api_key="HEADERSECRET")
    with caplog.at_level(logging.DEBUG, logger="possync.integrations.http_client"):
        await orchestrator_for(handler).execute(
            make_config(credentials=credentials),
            RequestDescriptor(path="/items", params={"api_key": "SUPERSECRET", "page": 1}),
        )

    assert "params=" in caplog.text
    assert "SUPERSECRET" not in caplog.text
    assert "HEADERSECRET" not in caplog.text
    assert "'page': 1" in caplog.text


@pytest.mark.asyncio
async def test_execute_wraps_non_json_body():
    def handler(request):
        return httpx.Response(200, text="<Ping/>", headers={"content-type": "application/xml"})

    resp = await orchestrator_for(handler).execute(make_config(), RequestDescriptor(path="/ping"))
    assert resp.data == {"text": "<Ping/>"}
    assert resp.text == "<Ping/>"


@pytest.mark.asyncio
async def test_error_body_message_and_code():
    def handler(request):
        return httpx.Response(400, json={"errors": [{"message": "bad filter"}], "code": "E_FILTER"})

    with pytest.raises(POSAdapterError, match="bad filter") as info:
        await orchestrator_for(handler).execute(make_config(), RequestDescriptor(path="/items"))
    assert info.value.status_code == 400
    assert info.value.error_code == "E_FILTER"
    assert not info.value.retryable


@pytest.mark.asyncio
async def test_429_captures_retry_after():
    def handler(request):
        return httpx.Response(429, json={}, headers={"retry-after": "7"})

    with pytest.raises(POSAdapterError) as info:
        await orchestrator_for(handler).execute(make_config(), RequestDescriptor(path="/items"))
    err = info.value
    assert err.is_rate_limited
    assert err.retryable
    assert err.retry_after_seconds == 7.0
    assert err.error_code == "HTTP_429"


@pytest.mark.asyncio
async def test_5xx_is_retryable():
    def handler(request):
        return httpx.Response(503, text="down")

    with pytest.raises(POSAdapterError) as info:
        await orchestrator_for(handler).execute(make_config(), RequestDescriptor(path="/items"))
    assert info.value.retryable
    assert info.value.message == "Service Unavailable"


@pytest.mark.asyncio
async def test_timeout_maps_to_timeout_code():
    def handler(request):
        raise httpx.ReadTimeout("slow", request=request)

    with pytest.raises(POSAdapterError) as info:
        await orchestrator_for(handler).execute(make_config(), RequestDescriptor(path="/slow"))
    assert info.value.error_code == ErrorCode.TIMEOUT.value
    assert info.value.status_code == 408
    assert info.value.retryable


@pytest.mark.asyncio
async def test_wall_clock_timeout():
    async def handler(request):
        await asyncio.sleep(1)
        return httpx.Response(200, json={})

    orch = orchestrator_for(handler)
    with pytest.raises(POSAdapterError) as info:
        await orch.execute(make_config(), RequestDescriptor(path="/slow", timeout=0.05))
    assert info.value.error_code == ErrorCode.TIMEOUT.value


@pytest.mark.asyncio
async def test_connection_refused_and_dns_failure():
    def refused(request):
        raise httpx.ConnectError("[Errno 111] Connection refused", request=request)

    def dns(request):
        raise httpx.ConnectError("[Errno -2] Name or service not known", request=request)

    with pytest.raises(POSAdapterError) as info:
        await orchestrator_for(refused).execute(make_config(), RequestDescriptor(path="/"))
    assert info.value.error_code == ErrorCode.CONNECTION_REFUSED.value
    assert info.value.retryable

    with pytest.raises(POSAdapterError) as info:
        await orchestrator_for(dns).execute(make_config(), RequestDescriptor(path="/"))
    assert info.value.error_code == ErrorCode.HOST_NOT_FOUND.value
    assert not info.value.retryable


@pytest.mark.asyncio
async def test_oauth_401_invalidates_token():
    def handler(request):
        if request.url.path == "/oauth/token":
            return httpx.Response(200, json={"access_token": "tok", "expires_in": 3600})
        return httpx.Response(401, json={"error": "invalid_token"})

    orch = orchestrator_for(handler)
    creds = OAuth2Credentials(client_id="c", client_secret="s", token_url="https://pos.example.com/oauth/token")
    config = make_config(credentials=creds)

    with pytest.raises(POSAdapterError) as info:
        await orch.execute(config, RequestDescriptor(path="/items"))
    assert info.value.status_code == 401
    assert info.value.error_code == "invalid_token"
    assert orch.token_cache.peek(creds) is None


def test_extract_error_helpers():
    assert extract_error_message({"error_description": "expired"}, "Unauthorized") == "expired"
    assert extract_error_message({"errors": ["first", "second"]}, "x") == "first"
    assert extract_error_message("not a dict", "Bad Gateway") == "Bad Gateway"
    assert extract_error_code({"error_code": 42}, 400) == "42"
    assert extract_error_code({"error": "has spaces in it"}, 500) == "HTTP_500"
