"""
Tests for the Ecobee token manager.
Ecobee HTTP calls are stubbed with pytest-httpx.
"""

import pytest
from pytest_httpx import HTTPXMock

from app.devices.ecobee_auth import AuthState, EcobeeTokenManager
from app.devices.errors import (
    AuthorizationPending,
    ConfigurationMissing,
    TokenExchangeFailed,
)
from app.utils.settings_store import MemorySettingsStore


@pytest.mark.asyncio
async def test_request_pin_stores_code_and_alerts(httpx_mock: HTTPXMock, alerts):
    """The pin is shown to the user and the code is kept for the exchange."""
    store = MemorySettingsStore({"client_id": "client-abc"})
    httpx_mock.add_response(
        method="GET",
        json={"ecobeePin": "BXKT-4821", "code": "auth-code-1", "expires_in": 900},
    )
    manager = EcobeeTokenManager(store, alerts)

    pin = await manager.request_pin()

    assert pin == "BXKT-4821"
    assert await store.get("ecobee_code") == "auth-code-1"
    assert manager.state == AuthState.AWAITING_USER_PIN
    assert len(alerts.list()) == 1
    assert "BXKT-4821" in alerts.list()[0].message

    request = httpx_mock.get_requests()[0]
    assert request.url.host == "api.ecobee.com"
    assert request.url.path == "/authorize"
    assert request.url.params["response_type"] == "ecobeePin"
    assert request.url.params["scope"] == "smartWrite"
    assert request.url.params["client_id"] == "client-abc"


@pytest.mark.asyncio
async def test_request_pin_uses_configured_api_base(httpx_mock: HTTPXMock, alerts):
    store = MemorySettingsStore({"client_id": "client-abc", "api_base": "ecobee.example.test"})
    httpx_mock.add_response(method="GET", json={"ecobeePin": "AAAA-0000", "code": "c"})

    await EcobeeTokenManager(store, alerts).request_pin()

    assert httpx_mock.get_requests()[0].url.host == "ecobee.example.test"


@pytest.mark.asyncio
async def test_request_pin_without_client_id(alerts):
    """No client id is a configuration error, no request is made."""
    manager = EcobeeTokenManager(MemorySettingsStore(), alerts)

    with pytest.raises(ConfigurationMissing):
        await manager.request_pin()

    assert manager.state == AuthState.UNAUTHENTICATED


@pytest.mark.asyncio
async def test_acquire_token_exchanges_code(httpx_mock: HTTPXMock, alerts):
    store = MemorySettingsStore({"client_id": "client-abc", "ecobee_code": "auth-code-1"})
    httpx_mock.add_response(
        method="POST",
        json={"access_token": "access-new", "refresh_token": "refresh-new", "expires_in": 3599},
    )
    manager = EcobeeTokenManager(store, alerts)

    token = await manager.acquire_token()

    assert token == "access-new"
    assert manager.access_token == "access-new"
    assert await store.get("refresh_token") == "refresh-new"
    assert manager.state == AuthState.AUTHENTICATED

    request = httpx_mock.get_requests()[0]
    assert request.url.path == "/token"
    assert request.url.params["grant_type"] == "ecobeePin"
    assert request.url.params["code"] == "auth-code-1"
    assert request.url.params["client_id"] == "client-abc"
    assert request.url.params["ecobee_type"] == "jwt"


@pytest.mark.asyncio
async def test_acquire_token_without_code(alerts):
    manager = EcobeeTokenManager(MemorySettingsStore({"client_id": "client-abc"}), alerts)

    with pytest.raises(AuthorizationPending):
        await manager.acquire_token()


@pytest.mark.asyncio
async def test_acquire_token_before_pin_registered(httpx_mock: HTTPXMock, alerts):
    """Ecobee rejects an unregistered code; nothing is stored."""
    store = MemorySettingsStore({"client_id": "client-abc", "ecobee_code": "auth-code-1"})
    httpx_mock.add_response(
        method="POST",
        status_code=401,
        json={"error": "authorization_pending"},
    )
    manager = EcobeeTokenManager(store, alerts)

    with pytest.raises(AuthorizationPending):
        await manager.acquire_token()

    assert manager.access_token is None
    assert await store.get("refresh_token") is None
    assert manager.state == AuthState.AWAITING_USER_PIN


@pytest.mark.asyncio
async def test_refresh_token_rotates_credential(httpx_mock: HTTPXMock, store, tokens):
    httpx_mock.add_response(
        method="POST",
        json={"access_token": "access-2", "refresh_token": "refresh-2"},
    )

    token = await tokens.refresh_token()

    assert token == "access-2"
    assert tokens.access_token == "access-2"
    assert await store.get("refresh_token") == "refresh-2"
    assert tokens.refresh_count == 1

    request = httpx_mock.get_requests()[0]
    assert request.method == "POST"
    assert request.url.params["grant_type"] == "refresh_token"
    assert request.url.params["refresh_token"] == "refresh-1"
    assert request.url.params["client_id"] == "client-abc"
    assert request.url.params["ecobee_type"] == "jwt"


@pytest.mark.asyncio
async def test_failed_refresh_leaves_credential_untouched(httpx_mock: HTTPXMock, store, tokens):
    httpx_mock.add_response(method="POST", status_code=500)

    with pytest.raises(TokenExchangeFailed):
        await tokens.refresh_token()

    assert tokens.access_token == "access-1"
    assert await store.get("refresh_token") == "refresh-1"
    assert tokens.refresh_count == 0
    assert tokens.state == AuthState.UNAUTHENTICATED


@pytest.mark.asyncio
async def test_incomplete_refresh_response_is_not_applied(httpx_mock: HTTPXMock, store, tokens):
    """A response without a refresh token must not replace only half the credential."""
    httpx_mock.add_response(method="POST", json={"access_token": "access-2"})

    with pytest.raises(TokenExchangeFailed):
        await tokens.refresh_token()

    assert tokens.access_token == "access-1"
    assert await store.get("refresh_token") == "refresh-1"


@pytest.mark.asyncio
async def test_refresh_without_refresh_token(alerts):
    manager = EcobeeTokenManager(MemorySettingsStore({"client_id": "client-abc"}), alerts)

    with pytest.raises(AuthorizationPending):
        await manager.refresh_token()


@pytest.mark.asyncio
async def test_ensure_access_token_uses_memory(tokens):
    """A held access token is returned without any request."""
    assert await tokens.ensure_access_token() == "access-1"


@pytest.mark.asyncio
async def test_ensure_access_token_refreshes(httpx_mock: HTTPXMock, store, alerts):
    httpx_mock.add_response(
        method="POST",
        json={"access_token": "access-2", "refresh_token": "refresh-2"},
    )
    manager = EcobeeTokenManager(store, alerts)

    assert await manager.ensure_access_token() == "access-2"
    assert httpx_mock.get_requests()[0].url.params["grant_type"] == "refresh_token"


@pytest.mark.asyncio
async def test_ensure_access_token_exchanges_code(httpx_mock: HTTPXMock, alerts):
    store = MemorySettingsStore({"client_id": "client-abc", "ecobee_code": "auth-code-1"})
    httpx_mock.add_response(
        method="POST",
        json={"access_token": "access-2", "refresh_token": "refresh-2"},
    )
    manager = EcobeeTokenManager(store, alerts)

    assert await manager.ensure_access_token() == "access-2"
    assert httpx_mock.get_requests()[0].url.params["grant_type"] == "ecobeePin"
