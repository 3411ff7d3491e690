"""
Authenticated access to the Ecobee /1/ API with retry-after-refresh.
"""

import json
from typing import Any, Dict, Optional

import httpx

from app.devices.ecobee_auth import EcobeeTokenManager
from app.devices.errors import RequestFailed
from app.models.settings import API_BASE, DEFAULT_API_BASE
from app.utils.logging import get_logger
from app.utils.settings_store import SettingsStore

logger = get_logger(__name__)

API_RETRY = 2


class EcobeeGateway:
    """
    Sends requests to the Ecobee API on behalf of the controller and thermostats.

    Retry logic:
    - Any request error (transport, HTTP status or undecodable body): refresh token, retry immediately
    - At most API_RETRY retries, then RequestFailed
    - A failing refresh propagates without further retries
    """

    TIMEOUT_SECONDS = 10.0

    def __init__(self, store: SettingsStore, tokens: EcobeeTokenManager):
        """
        Initialize gateway.

        Args:
            store: Settings store (for api_base)
            tokens: Token manager owning the credential
        """
        self.store = store
        self.tokens = tokens

    async def request(
        self,
        method: str,
        endpoint: str,
        query: Optional[Dict[str, Any]] = None,
        body: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Make authenticated request to the Ecobee API.

        Args:
            method: HTTP method ('get' or 'post')
            endpoint: Path below /1/ (e.g., 'thermostatSummary')
            query: Selection object, sent JSON-encoded as the 'json' parameter
            body: JSON request body

        Returns:
            Decoded response body

        Raises:
            RequestFailed: When every attempt failed
        """
        attempt = 0
        while True:
            attempt += 1
            try:
                return await self._send(method, endpoint, query, body)
            except (httpx.HTTPError, ValueError) as e:
                logger.warning(
                    "ecobee_request_failed",
                    method=method,
                    endpoint=endpoint,
                    attempt=attempt,
                    error=str(e),
                )
                if attempt > API_RETRY:
                    raise RequestFailed(method, endpoint, attempt) from e
                await self.tokens.refresh_token()

    async def _send(
        self,
        method: str,
        endpoint: str,
        query: Optional[Dict[str, Any]],
        body: Optional[Dict[str, Any]],
    ) -> Dict[str, Any]:
        token = await self.tokens.ensure_access_token()
        api_base = await self.store.get(API_BASE) or DEFAULT_API_BASE

        kwargs: Dict[str, Any] = {
            "headers": {"Authorization": f"Bearer {token}"},
        }
        if query is not None:
            kwargs["params"] = {"json": json.dumps(query)}
        if body is not None:
            kwargs["json"] = body

        async with httpx.AsyncClient(timeout=self.TIMEOUT_SECONDS) as client:
            response = await client.request(
                method.upper(),
                f"https://{api_base}/1/{endpoint}",
                **kwargs
            )
            response.raise_for_status()
            return response.json()
