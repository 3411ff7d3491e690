"""
Ecobee controller: authentication bootstrap, device discovery and settings.

Owns the credential (through the token manager) and the map of native id ->
EcobeeThermostat. Thermostats are created on discovery and never removed here;
removal belongs to the hosting runtime.
"""

from typing import Any, Dict, FrozenSet, List, Optional, Set, Union

from app.config import SettingsManager
from app.devices.ecobee_api import EcobeeGateway
from app.devices.ecobee_auth import EcobeeTokenManager
from app.devices.ecobee_thermostat import EcobeeThermostat
from app.devices.errors import AuthorizationPending, ConfigurationMissing
from app.models.device import Capability, Device, DeviceInfo, DeviceType
from app.models.settings import (
    CLIENT_ID,
    ECOBEE_CODE,
    REFRESH_TOKEN,
    ControllerSettings,
    SettingDescriptor,
)
from app.services.alerts import AlertChannel
from app.services.device_registry import DeviceRegistry
from app.utils.logging import get_logger
from app.utils.settings_store import SettingsStore

logger = get_logger(__name__)

BASE_CAPABILITIES = (
    Capability.THERMOMETER,
    Capability.HUMIDITY_SENSOR,
    Capability.REFRESH,
)

# runtime field -> capability, added when the reading is present and >= 0
SENSOR_CAPABILITIES = (
    ("actualAQScore", Capability.AIR_QUALITY),
    ("actualVOC", Capability.VOC),
    ("actualCO2", Capability.CO2),
)


def _reading_available(value: Any) -> bool:
    if value is None:
        return False
    try:
        return float(value) >= 0
    except (TypeError, ValueError):
        return False


def derive_capabilities(api_device: Dict[str, Any], sensors_only: bool) -> FrozenSet[Capability]:
    """
    Compute the capability set of one thermostat from its discovery payload.

    Args:
        api_device: Entry of thermostatList (settings and runtime included)
        sensors_only: Expose sensors only, without thermostat controls

    Returns:
        Immutable capability set
    """
    capabilities: Set[Capability] = set(BASE_CAPABILITIES)
    settings = api_device.get("settings") or {}
    runtime = api_device.get("runtime") or {}

    if not sensors_only:
        capabilities.update((Capability.TEMPERATURE_SETTING, Capability.ON_OFF))
        if settings.get("hasHumidifier"):
            capabilities.add(Capability.HUMIDITY_SETTING)

    for field_name, capability in SENSOR_CAPABILITIES:
        if _reading_available(runtime.get(field_name)):
            capabilities.add(capability)

    return frozenset(capabilities)


def build_device(api_device: Dict[str, Any], sensors_only: bool) -> Device:
    """
    Build the registry record for one thermostat.

    Args:
        api_device: Entry of thermostatList
        sensors_only: Expose sensors only, without thermostat controls

    Returns:
        Device record
    """
    identifier = str(api_device["identifier"])
    return Device(
        native_id=identifier,
        name=f"{api_device.get('name', identifier)} thermostat",
        type=DeviceType.SENSOR if sensors_only else DeviceType.THERMOSTAT,
        capabilities=derive_capabilities(api_device, sensors_only),
        info=DeviceInfo(
            manufacturer=api_device.get("brand"),
            model=api_device.get("modelNumber"),
            serial_number=identifier,
        ),
    )


class EcobeeController:
    """
    Entry point the hosting runtime instantiates.

    Features:
    - Authentication bootstrap (client id -> pin -> tokens)
    - Discovery with per-device capability sets
    - Full-set publication to the device registry
    - Settings form (sensors_only, api_base, client_id)
    """

    def __init__(
        self,
        store: SettingsStore,
        registry: DeviceRegistry,
        alerts: AlertChannel,
        tokens: Optional[EcobeeTokenManager] = None,
        gateway: Optional[EcobeeGateway] = None,
    ):
        """
        Initialize controller.

        Args:
            store: Settings store for settings and the refresh token
            registry: Hosting runtime device registry
            alerts: User-facing alert channel
            tokens: Token manager (built from store/alerts if omitted)
            gateway: API gateway (built from store/tokens if omitted)
        """
        self.store = store
        self.settings = SettingsManager(store)
        self.registry = registry
        self.alerts = alerts
        self.tokens = tokens or EcobeeTokenManager(store, alerts)
        self.gateway = gateway or EcobeeGateway(store, self.tokens)
        self.devices: Dict[str, EcobeeThermostat] = {}

    async def initialize(self) -> bool:
        """
        Authenticate and discover devices.

        Stops (returning False) when a human has to act first: no client id
        or an unregistered pin. Both are reported on the alert channel.

        Returns:
            True if discovery ran
        """
        self.alerts.clear_alerts()
        await self.settings.ensure_defaults()

        if not await self.store.get(CLIENT_ID):
            self.alerts.alert("You must specify a client ID.")
            logger.warning(
                "ecobee_client_id_missing",
                hint="Enter a client ID for this app from the Ecobee developer portal. "
                     "Then, collect the PIN and enter in Ecobee 'My Apps'. Restart this app to complete.",
            )
            return False

        try:
            if not await self.store.get(REFRESH_TOKEN):
                await self._acquire_token()
            elif not self.tokens.access_token:
                await self.tokens.refresh_token()
        except AuthorizationPending as e:
            self.alerts.alert(f"Ecobee authorization pending: {e}")
            logger.warning("ecobee_authorization_pending", error=str(e))
            return False

        await self.discover()
        return True

    async def _acquire_token(self) -> None:
        if not await self.store.get(ECOBEE_CODE):
            await self.tokens.request_pin()
            raise AuthorizationPending("Pin requested; register it in 'My Apps' and restart")
        await self.tokens.acquire_token()

    async def discover(self) -> List[Device]:
        """
        List all registered thermostats and sync them to the registry.

        Returns:
            Published device list

        Raises:
            RequestFailed: If the gateway gave up
        """
        settings = await self.settings.load_settings()
        query = {
            "selection": {
                "selectionType": "registered",
                "selectionMatch": "",
                "includeSettings": True,
                "includeRuntime": True,
            }
        }
        api_devices = (await self.gateway.request("get", "thermostat", query))["thermostatList"]
        logger.info("ecobee_devices_discovered", count=len(api_devices))

        if settings.sensors_only:
            logger.info("ecobee_sensors_only", message="Devices will be exposed as sensors only.")

        devices: List[Device] = []
        for api_device in api_devices:
            device = build_device(api_device, settings.sensors_only)
            logger.info(
                "ecobee_device_discovered",
                brand=device.info.manufacturer,
                model=device.info.model,
                name=api_device.get("name"),
                native_id=device.native_id,
            )
            devices.append(device)

        await self.registry.publish_devices(devices)

        for device in devices:
            if device.native_id not in self.devices:
                self.devices[device.native_id] = EcobeeThermostat(device, self.gateway)

        return devices

    def get_device(self, native_id: str) -> Optional[EcobeeThermostat]:
        return self.devices.get(native_id)

    async def release_device(self, native_id: str) -> None:
        """Device removal is left to the hosting runtime."""
        logger.info("ecobee_release_device", native_id=native_id)

    async def get_settings(self) -> List[SettingDescriptor]:
        return await self.settings.describe()

    async def load_settings(self) -> ControllerSettings:
        return await self.settings.load_settings()

    async def put_setting(self, key: str, value: Union[bool, str]) -> None:
        """
        Store a setting. Saving a client id starts the pin handshake.

        Raises:
            httpx.HTTPError: If the pin request fails
        """
        await self.settings.put(key, value)
        logger.info("ecobee_setting_saved", key=key)

        if key == CLIENT_ID:
            await self.tokens.request_pin()

    async def request_pin(self) -> str:
        """
        Request a new pin explicitly.

        Raises:
            ConfigurationMissing: If no client id is stored
        """
        try:
            return await self.tokens.request_pin()
        except ConfigurationMissing:
            self.alerts.alert("You must specify a client ID.")
            raise
