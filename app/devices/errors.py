"""
Error taxonomy for the Ecobee adapter.

ConfigurationMissing and AuthorizationPending need a human and are surfaced on
the alert channel. RequestFailed propagates to refresh/reload callers.
CommandRejected never leaves a command method; it is logged there.
"""

from typing import Optional


class EcobeeError(Exception):
    """Base class for all Ecobee adapter errors."""


class ConfigurationMissing(EcobeeError):
    """A required setting (the API client id) has not been stored."""


class AuthorizationPending(EcobeeError):
    """The user has not finished registering the pin with Ecobee."""


class TokenExchangeFailed(EcobeeError):
    """A code->token or refresh_token->token exchange failed."""


class RequestFailed(EcobeeError):
    """An API request still failed after the retry budget was spent."""

    def __init__(self, method: str, endpoint: str, attempts: int):
        self.method = method
        self.endpoint = endpoint
        self.attempts = attempts
        super().__init__(
            f"request to {method}:{endpoint} failed after {attempts} attempts"
        )


class CommandRejected(EcobeeError):
    """Ecobee answered a command with a non-zero status code."""

    def __init__(self, status_code: Optional[int], message: Optional[str] = None):
        self.status_code = status_code
        self.message = message
        super().__init__(f"command rejected with status {status_code}: {message}")


class UnexpectedResponse(EcobeeError):
    """A successful response did not have the expected shape."""

    def __init__(self, endpoint: str, detail: str):
        self.endpoint = endpoint
        self.detail = detail
        super().__init__(f"unexpected {endpoint} response: {detail}")
