"""
Per-thermostat reconciliation against the Ecobee API.

refresh() polls the cheap /thermostatSummary endpoint and only escalates to a
full /thermostat reload when the revision fingerprint moved. Commands are
sent as holds and confirmed by reloading afterwards.
"""

from typing import Any, Dict, List, Optional, Tuple

from app.devices.base import ThermostatDevice
from app.devices.ecobee_api import EcobeeGateway
from app.devices.ecobee_codec import (
    FAN_HOLD_COOL_TEMP,
    FAN_HOLD_HEAT_TEMP,
    EquipmentStatus,
    air_quality_from_score,
    celsius_to_ecobee_int,
    ecobee_int_to_celsius,
    ecobee_to_thermostat_mode,
    humidity_mode_from_ecobee,
    parse_equipment_status,
    thermostat_mode_to_ecobee,
)
from app.devices.errors import CommandRejected, EcobeeError, UnexpectedResponse
from app.models.device import (
    Capability,
    CommandResult,
    Device,
    HumidityCommand,
    TemperatureCommand,
)
from app.utils.logging import get_logger

logger = get_logger(__name__)

# Fields of a thermostatSummary revision entry, in order
REVISION_FIELDS = ("tId", "tName", "connected", "thermostat", "alerts", "runtime", "interval")
# Index 0-2 are identity and connectivity; changes there do not need a reload
FIRST_REVISION_INDEX = 3


def revision_changed(
    previous: Optional[List[str]],
    current: List[str],
) -> Optional[str]:
    """
    Compare two revision fingerprints.

    Args:
        previous: Last stored fingerprint, None if there is none yet
        current: Fingerprint just received

    Returns:
        Name of the first changed field, "initial" if there was no previous
        fingerprint, None if nothing relevant changed
    """
    if previous is None:
        return "initial"

    for i in range(FIRST_REVISION_INDEX, len(REVISION_FIELDS)):
        old = previous[i] if i < len(previous) else None
        new = current[i] if i < len(current) else None
        if old != new:
            return REVISION_FIELDS[i]
    return None


class EcobeeThermostat(ThermostatDevice):
    """
    One Ecobee thermostat.

    State machine: Idle -> Polling(summary) -> Idle, or -> Reloading -> Idle.
    """

    def __init__(self, device: Device, gateway: EcobeeGateway):
        """
        Initialize thermostat.

        Args:
            device: Registry record with the capability set from discovery
            gateway: Shared API gateway
        """
        super().__init__(device.native_id, device.name)
        self.device = device
        self.gateway = gateway
        self.revision_list: Optional[List[str]] = None
        self.reload_count = 0
        self.log = logger.bind(device=device.name, native_id=device.native_id)

    def _selection(self, selection_type: str, **includes: bool) -> Dict[str, Any]:
        return {
            "selection": {
                "selectionType": selection_type,
                "selectionMatch": self.native_id,
                **includes,
            }
        }

    async def refresh(self, source: str = "scheduler", user_initiated: bool = False) -> None:
        """
        Poll the summary endpoint and reload if anything changed.

        Equipment status is applied on every poll, reload or not.

        Raises:
            RequestFailed: If the gateway gave up
            UnexpectedResponse: If the summary is missing fields
        """
        self.log.info("refresh_requested", source=source, user_initiated=user_initiated)

        data = await self.gateway.request(
            "get",
            "thermostatSummary",
            self._selection("thermostats", includeEquipmentStatus=True),
        )

        try:
            # statusList entries look like "<id>:<equipment,...>"
            _, _, equipment = data["statusList"][0].partition(":")
            revision = data["revisionList"][0]
        except (LookupError, TypeError, AttributeError) as e:
            self.log.error("unexpected_summary", error=repr(e))
            raise UnexpectedResponse("thermostatSummary", repr(e)) from e

        self._apply_equipment_status(parse_equipment_status(equipment))

        if self._update_revision_list(revision):
            await self.reload()

    def _update_revision_list(self, revision: str) -> bool:
        """Store the new fingerprint; True if a reload is needed."""
        current = revision.split(":")
        changed = revision_changed(self.revision_list, current)
        self.revision_list = current

        if changed:
            self.log.info("revision_changed", field=changed)
            return True
        return False

    def _apply_equipment_status(self, status: EquipmentStatus) -> None:
        self.log.debug(
            "equipment_status",
            active_mode=status.active_mode.value,
            fan_on=status.fan_on,
            humidifying=status.humidifying,
        )
        self.state.temperature_setting.active_mode = status.active_mode
        self.state.on = status.fan_on
        self.state.humidity_setting.active_mode = status.active_humidity_mode

    async def reload(self) -> None:
        """
        Fetch settings, runtime and equipment status and overwrite normalized state.

        Raises:
            RequestFailed: If the gateway gave up
            UnexpectedResponse: If the thermostat payload is missing fields
        """
        response = await self.gateway.request(
            "get",
            "thermostat",
            self._selection(
                "thermostats",
                includeSettings=True,
                includeRuntime=True,
                includeEquipmentStatus=True,
            ),
        )
        try:
            self._apply_thermostat(response["thermostatList"][0])
        except (LookupError, TypeError, ValueError) as e:
            self.log.error("unexpected_thermostat", error=repr(e))
            raise UnexpectedResponse("thermostat", repr(e)) from e
        self.reload_count += 1

    def _apply_thermostat(self, data: Dict[str, Any]) -> None:
        self.log.debug("reload_data", data=data)
        runtime = data["runtime"]
        settings = data["settings"]

        self.state.temperature = ecobee_int_to_celsius(runtime["actualTemperature"])
        self.state.humidity = float(runtime["actualHumidity"])

        self._apply_equipment_status(parse_equipment_status(data.get("equipmentStatus")))

        temperature_setting = self.state.temperature_setting
        hvac_mode = settings.get("hvacMode")
        temperature_setting.mode = ecobee_to_thermostat_mode(hvac_mode)
        if hvac_mode == "cool":
            temperature_setting.setpoint = ecobee_int_to_celsius(runtime["desiredCool"])
        elif hvac_mode == "heat":
            temperature_setting.setpoint = ecobee_int_to_celsius(runtime["desiredHeat"])
        else:
            temperature_setting.setpoint = (
                ecobee_int_to_celsius(runtime["desiredHeat"]),
                ecobee_int_to_celsius(runtime["desiredCool"]),
            )

        humidity_setting = self.state.humidity_setting
        humidity_setting.mode = humidity_mode_from_ecobee(settings.get("humidifierMode"))
        if settings.get("humidity") is not None:
            humidity_setting.humidifier_setpoint = float(settings["humidity"])

        if self.device.has(Capability.AIR_QUALITY):
            self.state.air_quality = air_quality_from_score(float(runtime["actualAQScore"]))
        if self.device.has(Capability.VOC):
            self.state.voc_density = float(runtime["actualVOC"]) / 10
        if self.device.has(Capability.CO2):
            self.state.co2_ppm = float(runtime["actualCO2"]) / 10

    async def set_temperature(self, command: TemperatureCommand) -> CommandResult:
        """
        Send a setpoint and/or mode change.

        A [heat, cool] pair sets both hold temperatures; a single value is
        sent as both. The hold lasts until the next program transition.
        """
        self.log.info("set_temperature", mode=command.mode, setpoint=command.setpoint)

        payload: Dict[str, Any] = self._selection("registered")

        if command.setpoint is not None:
            if isinstance(command.setpoint, tuple):
                heat, cool = command.setpoint
            else:
                heat = cool = command.setpoint
            payload["functions"] = [
                {
                    "type": "setHold",
                    "params": {
                        "holdType": "nextTransition",
                        "heatHoldTemp": celsius_to_ecobee_int(heat),
                        "coolHoldTemp": celsius_to_ecobee_int(cool),
                    },
                }
            ]

        if command.mode:
            payload["thermostat"] = {
                "settings": {
                    "hvacMode": thermostat_mode_to_ecobee(command.mode),
                }
            }

        if "functions" not in payload and "thermostat" not in payload:
            self.log.warning("set_temperature_empty_command")
            return CommandResult(accepted=False, message="nothing to change")

        return await self._send_command("set_temperature", payload)

    async def turn_on(self) -> CommandResult:
        """Run the fan continuously."""
        return await self._set_fan("on")

    async def turn_off(self) -> CommandResult:
        """Return the fan to automatic."""
        return await self._set_fan("auto")

    async def _set_fan(self, fan: str) -> CommandResult:
        # Fan holds carry placeholder temperatures, which also replace the
        # current setpoints until the next transition.
        self.log.info("set_fan", fan=fan)
        payload = self._selection("registered")
        payload["functions"] = [
            {
                "type": "setHold",
                "params": {
                    "coolHoldTemp": FAN_HOLD_COOL_TEMP,
                    "heatHoldTemp": FAN_HOLD_HEAT_TEMP,
                    "holdType": "nextTransition",
                    "fan": fan,
                    "isTemperatureAbsolute": "false",
                    "isTemperatureRelative": "false",
                },
            }
        ]
        return await self._send_command(f"fan_{fan}", payload)

    async def set_humidity(self, command: HumidityCommand) -> CommandResult:
        self.log.info(
            "set_humidity_unsupported",
            mode=command.mode,
            humidifier_setpoint=command.humidifier_setpoint,
        )
        return CommandResult(accepted=False, message="humidity setting not yet supported")

    async def _send_command(self, name: str, payload: Dict[str, Any]) -> CommandResult:
        """
        POST a command and reload on success.

        Failures are logged, never raised; the next scheduled refresh
        picks up whatever the thermostat actually did.
        """
        try:
            response = await self.gateway.request("post", "thermostat", body=payload)
            code, message = _status_of(response)
            if code != 0:
                raise CommandRejected(code, message)
        except CommandRejected as e:
            self.log.error("command_rejected", command=name, status_code=e.status_code, error=e.message)
            return CommandResult(accepted=False, status_code=e.status_code, message=e.message)
        except EcobeeError as e:
            self.log.error("command_failed", command=name, error=str(e))
            return CommandResult(accepted=False, message=str(e))

        self.log.info("command_accepted", command=name)
        try:
            await self.reload()
        except EcobeeError as e:
            self.log.error("command_reload_failed", command=name, error=str(e))
        return CommandResult(accepted=True, status_code=code, message=message)

    def snapshot(self) -> Dict[str, Any]:
        """Current normalized state with the device record, for API responses."""
        return {
            **self.device.to_dict(),
            "state": self.state.to_dict(),
            "revisionList": self.revision_list,
        }


def _status_of(response: Dict[str, Any]) -> Tuple[Optional[int], Optional[str]]:
    status = (response.get("status") if isinstance(response, dict) else None) or {}
    return status.get("code"), status.get("message")
