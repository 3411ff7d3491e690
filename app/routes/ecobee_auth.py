"""
Ecobee pin authorization endpoints.
"""

import httpx
from fastapi import APIRouter, Depends, HTTPException

from app.dependencies import get_runtime
from app.devices.errors import ConfigurationMissing
from app.runtime import EcobeeRuntime
from app.utils.auth import verify_api_key
from app.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()


@router.post("/ecobee/pin")
async def request_ecobee_pin(
    runtime: EcobeeRuntime = Depends(get_runtime),
    _: str = Depends(verify_api_key)
):
    """
    Request a pin for the Ecobee pin handshake.

    The user registers the pin under 'My Apps' in the Ecobee portal and then
    calls /ecobee/initialize. Completion is not polled.

    Returns:
        {
            "pin": "ABCD-1234",
            "message": "Enter ABCD-1234 in 'My Apps' ..."
        }
    """
    try:
        pin = await runtime.controller.request_pin()
    except ConfigurationMissing as e:
        raise HTTPException(status_code=412, detail=str(e))
    except httpx.HTTPError as e:
        logger.error("ecobee_pin_request_failed", error=str(e))
        raise HTTPException(status_code=502, detail=str(e))

    return {
        "pin": pin,
        "message": f"Enter {pin} in 'My Apps' in the Ecobee portal, then call /ecobee/initialize"
    }


@router.post("/ecobee/initialize")
async def initialize_ecobee(
    runtime: EcobeeRuntime = Depends(get_runtime),
    _: str = Depends(verify_api_key)
) -> dict:
    """
    Re-run controller initialization (authenticate, then discover).

    Discovered thermostats are refreshed right away instead of waiting for
    the next poll.

    Returns:
        {"ok": bool, "devices": int, "alerts": [...]}
    """
    ok = await runtime.initialize()
    if ok:
        await runtime.refresh_all("initialize")
    return {
        "ok": ok,
        "devices": len(runtime.controller.devices),
        "alerts": [a.to_dict() for a in runtime.alerts.list()],
    }
