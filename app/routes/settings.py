"""
Controller settings endpoints.
"""

import httpx
from fastapi import APIRouter, Depends, HTTPException, status

from app.dependencies import get_controller
from app.devices.ecobee_controller import EcobeeController
from app.devices.errors import ConfigurationMissing
from app.models.settings import USER_SETTING_KEYS, SettingUpdate
from app.utils.auth import verify_api_key
from app.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()


@router.get("/settings")
async def get_settings(
    controller: EcobeeController = Depends(get_controller),
    _: str = Depends(verify_api_key)
):
    """
    Settings form: sensors_only, api_base and client_id with current values.
    """
    descriptors = await controller.get_settings()
    return {"settings": [d.model_dump() for d in descriptors]}


@router.put("/settings/{key}")
async def put_setting(
    key: str,
    update: SettingUpdate,
    controller: EcobeeController = Depends(get_controller),
    _: str = Depends(verify_api_key)
):
    """
    Save one setting. Saving client_id also requests a pin.

    Returns:
        {"ok": true, "key": "...", "alerts": [...]}
    """
    if key not in USER_SETTING_KEYS:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown setting: {key}"
        )

    try:
        await controller.put_setting(key, update.value)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except ConfigurationMissing as e:
        raise HTTPException(status_code=412, detail=str(e))
    except httpx.HTTPError as e:
        logger.error("ecobee_pin_request_failed", key=key, error=str(e))
        raise HTTPException(status_code=502, detail=f"Saved {key}, but pin request failed: {e}")

    return {"ok": True, "key": key}
