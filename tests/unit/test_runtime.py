"""
Tests for the hosting runtime: initialization, polling and per-device locking.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from app.devices.ecobee_api import EcobeeGateway
from app.devices.errors import RequestFailed
from app.runtime import DeviceNotFound, EcobeeRuntime
from tests.conftest import (
    THERMOSTAT_ID,
    summary_response,
    thermostat_payload,
    thermostat_response,
)

SECOND_ID = "411019854322"


@pytest.fixture
def runtime(store):
    runtime = EcobeeRuntime(store)
    runtime.controller.tokens.access_token = "access-1"
    runtime.controller.gateway = AsyncMock(spec=EcobeeGateway)
    return runtime


async def _discover(runtime, *payloads):
    runtime.controller.gateway.request.return_value = thermostat_response(*payloads)
    assert await runtime.initialize() is True
    runtime.controller.gateway.request.reset_mock(return_value=True)


@pytest.mark.asyncio
async def test_initialize_publishes_devices(runtime):
    await _discover(runtime, thermostat_payload())

    assert runtime.registry.get_device(THERMOSTAT_ID) is not None
    assert runtime.get_thermostat(THERMOSTAT_ID).native_id == THERMOSTAT_ID


@pytest.mark.asyncio
async def test_initialize_failure_is_logged_not_raised(runtime):
    runtime.controller.gateway.request.side_effect = RequestFailed("get", "thermostat", 3)

    assert await runtime.initialize() is False
    assert runtime.registry.list_devices() == []


@pytest.mark.asyncio
async def test_unknown_device(runtime):
    with pytest.raises(DeviceNotFound):
        runtime.get_thermostat("missing")

    with pytest.raises(DeviceNotFound):
        await runtime.run_serialized("missing", lambda t: t.refresh())


@pytest.mark.asyncio
async def test_refresh_all_continues_after_failure(runtime):
    await _discover(runtime, thermostat_payload(), thermostat_payload(identifier=SECOND_ID))
    gateway = runtime.controller.gateway
    gateway.request.side_effect = [
        RequestFailed("get", "thermostatSummary", 3),
        summary_response(identifier=SECOND_ID),
        thermostat_response(thermostat_payload(identifier=SECOND_ID)),
    ]

    refreshed = await runtime.refresh_all()

    assert refreshed == 1
    assert runtime.get_thermostat(SECOND_ID).reload_count == 1
    assert runtime.get_thermostat(THERMOSTAT_ID).reload_count == 0


@pytest.mark.asyncio
async def test_run_serialized_never_overlaps(runtime):
    """Two actions on the same device run one after the other."""
    await _discover(runtime, thermostat_payload())
    active = 0
    overlapped = False

    async def action(thermostat):
        nonlocal active, overlapped
        active += 1
        overlapped = overlapped or active > 1
        await asyncio.sleep(0.01)
        active -= 1
        return thermostat.native_id

    results = await asyncio.gather(
        runtime.run_serialized(THERMOSTAT_ID, action),
        runtime.run_serialized(THERMOSTAT_ID, action),
    )

    assert results == [THERMOSTAT_ID, THERMOSTAT_ID]
    assert overlapped is False


@pytest.mark.asyncio
async def test_poll_interval(runtime):
    assert await runtime._poll_interval() == 15

    await _discover(runtime, thermostat_payload())
    assert await runtime._poll_interval() == 15


@pytest.mark.asyncio
async def test_start_and_stop_polling(runtime):
    runtime.controller.gateway.request.side_effect = [
        thermostat_response(),
        summary_response(),
        thermostat_response(),
    ]

    await runtime.start(poll=True)
    thermostat = runtime.get_thermostat(THERMOSTAT_ID)
    for _ in range(100):
        if thermostat.reload_count:
            break
        await asyncio.sleep(0.01)

    assert runtime._scheduler is not None
    assert runtime._scheduler.get_job("ecobee_refresh") is not None
    assert thermostat.reload_count == 1

    await runtime.stop()
    assert runtime._scheduler is None


@pytest.mark.asyncio
async def test_start_without_polling(runtime):
    runtime.controller.gateway.request.return_value = thermostat_response()

    await runtime.start(poll=False)

    assert runtime._scheduler is None
    await runtime.stop()
