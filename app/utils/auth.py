"""
API key check for the bridge's HTTP surface.
"""

import os
import secrets
from typing import Optional

from fastapi import Header, HTTPException, status


def verify_api_key(x_api_key: Optional[str] = Header(None)) -> str:
    """
    Verify the x-api-key header against the API_KEY environment variable.

    Args:
        x_api_key: API key from header

    Returns:
        Validated API key

    Raises:
        HTTPException: 500 if the server has no key configured,
            401 if the header is missing or wrong
    """
    expected_key = os.getenv("API_KEY")

    if not expected_key:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="API_KEY not configured on server"
        )

    if not x_api_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing x-api-key header"
        )

    if not secrets.compare_digest(x_api_key, expected_key):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key"
        )

    return x_api_key
