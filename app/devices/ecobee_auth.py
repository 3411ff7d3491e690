"""
Ecobee credential lifecycle: pin handshake, code exchange and token refresh.

The access token lives in memory only; the refresh token is persisted in the
settings store. Tokens are never expired proactively: the API gateway asks for
a refresh when a request fails.
"""

from enum import Enum
from typing import Any, Dict, Optional

import httpx

from app.devices.errors import (
    AuthorizationPending,
    ConfigurationMissing,
    TokenExchangeFailed,
)
from app.models.settings import (
    API_BASE,
    CLIENT_ID,
    DEFAULT_API_BASE,
    ECOBEE_CODE,
    REFRESH_TOKEN,
)
from app.services.alerts import AlertChannel
from app.utils.logging import get_logger
from app.utils.settings_store import SettingsStore

logger = get_logger(__name__)


class AuthState(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    AWAITING_USER_PIN = "awaiting_user_pin"
    AUTHENTICATED = "authenticated"
    REFRESHING = "refreshing"


class EcobeeTokenManager:
    """
    Owns the Ecobee credential.

    Features:
    - Pin authorization (GET /authorize, response_type=ecobeePin)
    - Code -> token exchange (grant_type=ecobeePin)
    - Refresh token rotation (grant_type=refresh_token)
    - Whole-credential replacement: a failed exchange changes nothing
    """

    SCOPE = "smartWrite"
    TIMEOUT_SECONDS = 10.0

    def __init__(self, store: SettingsStore, alerts: AlertChannel):
        """
        Initialize token manager.

        Args:
            store: Settings store holding client_id, ecobee_code and refresh_token
            alerts: User-facing alert channel for the pin handshake
        """
        self.store = store
        self.alerts = alerts
        self.access_token: Optional[str] = None
        self.state = AuthState.UNAUTHENTICATED
        self.refresh_count = 0

    async def _base_url(self) -> str:
        return f"https://{await self.store.get(API_BASE) or DEFAULT_API_BASE}"

    async def _client_id(self) -> str:
        client_id = await self.store.get(CLIENT_ID)
        if not client_id:
            raise ConfigurationMissing("You must specify a client ID.")
        return client_id

    async def request_pin(self) -> str:
        """
        Start the pin handshake.

        Stores the authorization code and alerts the user with the pin to
        enter under 'My Apps' in the Ecobee portal. Activation is not polled:
        the user restarts the controller once the pin is registered.

        Returns:
            The pin shown to the user

        Raises:
            ConfigurationMissing: If no client id is stored
            httpx.HTTPError: On API error
        """
        client_id = await self._client_id()

        async with httpx.AsyncClient(timeout=self.TIMEOUT_SECONDS) as client:
            response = await client.get(
                f"{await self._base_url()}/authorize",
                params={
                    "response_type": "ecobeePin",
                    "scope": self.SCOPE,
                    "client_id": client_id,
                }
            )
            response.raise_for_status()
            data = response.json()

        pin = data["ecobeePin"]
        await self.store.set(ECOBEE_CODE, data["code"])
        self.state = AuthState.AWAITING_USER_PIN

        self.alerts.clear_alerts()
        self.alerts.alert(
            f"Got code {pin}. Enter this in 'My Apps' Ecobee portal. Then restart this app."
        )
        logger.info("ecobee_pin_requested")
        return pin

    async def acquire_token(self) -> str:
        """
        Trade the registered authorization code for tokens.

        Returns:
            New access token

        Raises:
            ConfigurationMissing: If no client id is stored
            AuthorizationPending: If no code is stored or it is not registered yet
        """
        code = await self.store.get(ECOBEE_CODE)
        if not code:
            raise AuthorizationPending("No authorization code; request a pin first")

        try:
            token = await self._exchange(grant_type="ecobeePin", code=code)
        except TokenExchangeFailed as e:
            self.state = AuthState.AWAITING_USER_PIN
            raise AuthorizationPending(
                "Ecobee did not accept the authorization code; "
                "register the pin in 'My Apps' and restart"
            ) from e

        logger.info("ecobee_tokens_acquired")
        return token

    async def refresh_token(self) -> str:
        """
        Replace the credential using the stored refresh token.

        Returns:
            New access token

        Raises:
            AuthorizationPending: If no refresh token is stored
            TokenExchangeFailed: If Ecobee rejects the refresh
        """
        refresh_token = await self.store.get(REFRESH_TOKEN)
        if not refresh_token:
            raise AuthorizationPending("No refresh token stored")

        previous = self.state
        self.state = AuthState.REFRESHING
        try:
            token = await self._exchange(
                grant_type="refresh_token",
                refresh_token=refresh_token,
            )
        except Exception:
            self.state = previous
            raise

        self.refresh_count += 1
        logger.info("ecobee_tokens_refreshed", refresh_count=self.refresh_count)
        return token

    async def ensure_access_token(self) -> str:
        """
        Get an access token, acquiring one if none is held.

        Order: in-memory token, refresh token, authorization code.

        Returns:
            Access token
        """
        if self.access_token:
            return self.access_token
        if await self.store.get(REFRESH_TOKEN):
            return await self.refresh_token()
        return await self.acquire_token()

    async def _exchange(self, grant_type: str, **credential: str) -> str:
        """
        POST /token and install the returned credential.

        The response is fully validated before anything is written, so a
        failed exchange leaves the previous credential in place.
        """
        params: Dict[str, Any] = {
            "grant_type": grant_type,
            **credential,
            "client_id": await self._client_id(),
            "ecobee_type": "jwt",
        }

        try:
            async with httpx.AsyncClient(timeout=self.TIMEOUT_SECONDS) as client:
                response = await client.post(f"{await self._base_url()}/token", params=params)
                response.raise_for_status()
                data = response.json()
            access_token = data["access_token"]
            refresh_token = data["refresh_token"]
        except (httpx.HTTPError, ValueError, KeyError, TypeError) as e:
            logger.error("ecobee_token_exchange_failed", grant_type=grant_type, error=str(e))
            raise TokenExchangeFailed(f"{grant_type} exchange failed: {e}") from e

        await self.store.set(REFRESH_TOKEN, refresh_token)
        self.access_token = access_token
        self.state = AuthState.AUTHENTICATED
        return access_token
