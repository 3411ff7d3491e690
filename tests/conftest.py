"""
Pytest fixtures for testing.
Provides in-memory collaborators and sample Ecobee payloads.
"""

import copy
from typing import Any, Dict, Optional

import pytest
from unittest.mock import AsyncMock, MagicMock
from sqlalchemy.ext.asyncio import AsyncSession

from app.devices.ecobee_auth import EcobeeTokenManager
from app.services.alerts import AlertLog
from app.services.device_registry import MemoryDeviceRegistry
from app.utils.settings_store import MemorySettingsStore

THERMOSTAT_ID = "311019854321"

SAMPLE_THERMOSTAT: Dict[str, Any] = {
    "identifier": THERMOSTAT_ID,
    "name": "Hallway",
    "brand": "ecobee",
    "modelNumber": "nikeSmart",
    "equipmentStatus": "heatPump,fan",
    "settings": {
        "hvacMode": "heat",
        "humidifierMode": "manual",
        "humidity": "40",
        "hasHumidifier": True,
    },
    "runtime": {
        "actualTemperature": 715,
        "actualHumidity": 45,
        "desiredHeat": 700,
        "desiredCool": 760,
        "actualAQScore": 120,
        "actualVOC": 5000,
        "actualCO2": 6500,
    },
}


def thermostat_payload(
    hvac_mode: str = "heat",
    equipment_status: str = "heatPump,fan",
    identifier: str = THERMOSTAT_ID,
    **runtime: Any,
) -> Dict[str, Any]:
    """Build a /thermostat entry based on SAMPLE_THERMOSTAT."""
    data = copy.deepcopy(SAMPLE_THERMOSTAT)
    data["identifier"] = identifier
    data["settings"]["hvacMode"] = hvac_mode
    data["equipmentStatus"] = equipment_status
    data["runtime"].update(runtime)
    return data


def thermostat_response(*thermostats: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "thermostatList": list(thermostats) or [thermostat_payload()],
        "status": {"code": 0, "message": ""},
    }


def summary_response(
    revisions: Optional[str] = None,
    equipment: str = "fan,compCool1",
    identifier: str = THERMOSTAT_ID,
) -> Dict[str, Any]:
    """Build a /thermostatSummary response for one thermostat."""
    if revisions is None:
        revisions = "true:170101000000:170101000000:170101000000:170101000000"
    return {
        "thermostatCount": 1,
        "revisionList": [f"{identifier}:Hallway:{revisions}"],
        "statusList": [f"{identifier}:{equipment}"],
        "status": {"code": 0, "message": ""},
    }


def status_response(code: int = 0, message: str = "") -> Dict[str, Any]:
    return {"status": {"code": code, "message": message}}


@pytest.fixture
def mock_db_session():
    """
    Provides a mock async database session for testing.
    Usable directly and as `async with session_factory() as db`.
    """
    session = AsyncMock(spec=AsyncSession)
    session.execute = AsyncMock()
    session.commit = AsyncMock()
    session.close = AsyncMock()
    session.__aenter__.return_value = session
    return session


@pytest.fixture
def session_factory(mock_db_session):
    return MagicMock(return_value=mock_db_session)


@pytest.fixture
def store():
    """Settings store for an authorized controller."""
    return MemorySettingsStore({
        "client_id": "client-abc",
        "api_base": "api.ecobee.com",
        "refresh_token": "refresh-1",
    })


@pytest.fixture
def alerts():
    return AlertLog()


@pytest.fixture
def registry():
    return MemoryDeviceRegistry()


@pytest.fixture
def tokens(store, alerts):
    manager = EcobeeTokenManager(store, alerts)
    manager.access_token = "access-1"
    return manager
