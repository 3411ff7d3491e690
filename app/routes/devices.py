"""
Device endpoints.

This is a thin HTTP adapter: every call goes through the runtime so refreshes
and commands on one thermostat never overlap.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from app.dependencies import get_runtime
from app.devices.errors import (
    AuthorizationPending,
    RequestFailed,
    TokenExchangeFailed,
    UnexpectedResponse,
)
from app.models.device import Capability, HumidityCommand, TemperatureCommand, TemperatureUnit
from app.runtime import DeviceNotFound, EcobeeRuntime
from app.utils.auth import verify_api_key
from app.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()


class FanRequest(BaseModel):
    """Request model for /devices/{id}/fan."""
    on: bool


class UnitRequest(BaseModel):
    unit: TemperatureUnit


def _not_found(native_id: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Unknown device: {native_id}"
    )


def _require(runtime: EcobeeRuntime, native_id: str, capability: Capability) -> None:
    device = runtime.registry.get_device(native_id)
    if device is None:
        raise _not_found(native_id)
    if not device.has(capability):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Device {native_id} does not support {capability.value}"
        )


@router.get("/devices")
async def list_devices(
    runtime: EcobeeRuntime = Depends(get_runtime),
    _: str = Depends(verify_api_key)
):
    """
    List published devices.

    Returns:
        dict: {"devices": [{"nativeId": ..., "type": ..., "capabilities": [...]}]}
    """
    return {"devices": [d.to_dict() for d in runtime.registry.list_devices()]}


@router.get("/devices/{native_id}")
async def get_device(
    native_id: str,
    runtime: EcobeeRuntime = Depends(get_runtime),
    _: str = Depends(verify_api_key)
):
    """Device record plus its normalized state."""
    try:
        return runtime.get_thermostat(native_id).snapshot()
    except DeviceNotFound:
        raise _not_found(native_id)


@router.post("/devices/{native_id}/refresh")
async def refresh_device(
    native_id: str,
    runtime: EcobeeRuntime = Depends(get_runtime),
    _: str = Depends(verify_api_key)
):
    """User-initiated refresh."""
    try:
        await runtime.run_serialized(native_id, lambda t: t.refresh("api", True))
    except DeviceNotFound:
        raise _not_found(native_id)
    except AuthorizationPending as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except (RequestFailed, TokenExchangeFailed, UnexpectedResponse) as e:
        logger.error("device_refresh_failed", native_id=native_id, error=str(e))
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))

    return runtime.get_thermostat(native_id).snapshot()


@router.post("/devices/{native_id}/temperature")
async def set_temperature(
    native_id: str,
    command: TemperatureCommand,
    runtime: EcobeeRuntime = Depends(get_runtime),
    _: str = Depends(verify_api_key)
):
    """
    Send a setpoint and/or mode change.

    The returned state reflects the reload after the vendor accepted the
    command; a rejected command leaves it untouched.
    """
    _require(runtime, native_id, Capability.TEMPERATURE_SETTING)
    result = await runtime.run_serialized(native_id, lambda t: t.set_temperature(command))
    return {
        "result": result.to_dict(),
        "device": runtime.get_thermostat(native_id).snapshot(),
    }


@router.post("/devices/{native_id}/fan")
async def set_fan(
    native_id: str,
    request: FanRequest,
    runtime: EcobeeRuntime = Depends(get_runtime),
    _: str = Depends(verify_api_key)
):
    """Fan on (continuous) or auto."""
    _require(runtime, native_id, Capability.ON_OFF)
    if request.on:
        result = await runtime.run_serialized(native_id, lambda t: t.turn_on())
    else:
        result = await runtime.run_serialized(native_id, lambda t: t.turn_off())
    return {
        "result": result.to_dict(),
        "device": runtime.get_thermostat(native_id).snapshot(),
    }


@router.post("/devices/{native_id}/humidity")
async def set_humidity(
    native_id: str,
    command: HumidityCommand,
    runtime: EcobeeRuntime = Depends(get_runtime),
    _: str = Depends(verify_api_key)
):
    """Accepted for compatibility; humidity setting is not supported yet."""
    _require(runtime, native_id, Capability.HUMIDITY_SETTING)
    result = await runtime.run_serialized(native_id, lambda t: t.set_humidity(command))
    return {"result": result.to_dict()}


@router.put("/devices/{native_id}/unit")
async def set_temperature_unit(
    native_id: str,
    request: UnitRequest,
    runtime: EcobeeRuntime = Depends(get_runtime),
    _: str = Depends(verify_api_key)
):
    try:
        await runtime.run_serialized(native_id, lambda t: t.set_temperature_unit(request.unit))
    except DeviceNotFound:
        raise _not_found(native_id)
    return {"ok": True, "unit": request.unit.value}


@router.delete("/devices/{native_id}")
async def release_device(
    native_id: str,
    runtime: EcobeeRuntime = Depends(get_runtime),
    _: str = Depends(verify_api_key)
):
    """Hand a device back to the controller; the controller currently keeps it."""
    await runtime.controller.release_device(native_id)
    return {"ok": True}
