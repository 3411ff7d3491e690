"""
Normalized device model shared by the Ecobee adapter and the hosting runtime.

Vendor payloads are translated into these types before anything outside
app/devices sees them.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Tuple, Union

from pydantic import BaseModel, field_validator


class ThermostatMode(str, Enum):
    """Normalized thermostat operating modes."""
    OFF = "Off"
    COOL = "Cool"
    HEAT = "Heat"
    HEAT_COOL = "HeatCool"


class HumidityMode(str, Enum):
    """Normalized humidifier modes."""
    OFF = "Off"
    AUTO = "Auto"
    HUMIDIFY = "Humidify"


class AirQuality(str, Enum):
    """Ordinal air quality scale."""
    UNKNOWN = "Unknown"
    EXCELLENT = "Excellent"
    GOOD = "Good"
    FAIR = "Fair"
    POOR = "Poor"
    INFERIOR = "Inferior"


class TemperatureUnit(str, Enum):
    C = "C"
    F = "F"


class DeviceType(str, Enum):
    THERMOSTAT = "thermostat"
    SENSOR = "sensor"


class Capability(str, Enum):
    """Normalized interfaces a device can expose."""
    THERMOMETER = "thermometer"
    HUMIDITY_SENSOR = "humidity_sensor"
    REFRESH = "refresh"
    TEMPERATURE_SETTING = "temperature_setting"
    ON_OFF = "on_off"
    HUMIDITY_SETTING = "humidity_setting"
    AIR_QUALITY = "air_quality"
    VOC = "voc"
    CO2 = "co2"


Setpoint = Union[float, Tuple[float, float]]


@dataclass(frozen=True)
class DeviceInfo:
    manufacturer: Optional[str] = None
    model: Optional[str] = None
    serial_number: Optional[str] = None


@dataclass(frozen=True)
class Device:
    """
    Device record published to the device registry.

    Capabilities are computed once per discovery pass and never mutated.
    """
    native_id: str
    name: str
    type: DeviceType
    capabilities: FrozenSet[Capability]
    info: DeviceInfo = field(default_factory=DeviceInfo)

    def has(self, capability: Capability) -> bool:
        return capability in self.capabilities

    def to_dict(self) -> Dict[str, Any]:
        """Convert to API response format."""
        return {
            "nativeId": self.native_id,
            "name": self.name,
            "type": self.type.value,
            "capabilities": sorted(c.value for c in self.capabilities),
            "info": {
                "manufacturer": self.info.manufacturer,
                "model": self.info.model,
                "serialNumber": self.info.serial_number,
            },
        }


@dataclass
class TemperatureSettingStatus:
    """Thermostat setting as last reported by the vendor."""
    available_modes: List[ThermostatMode] = field(
        default_factory=lambda: [
            ThermostatMode.COOL,
            ThermostatMode.HEAT,
            ThermostatMode.HEAT_COOL,
            ThermostatMode.OFF,
        ]
    )
    mode: Optional[ThermostatMode] = None
    active_mode: Optional[ThermostatMode] = None
    setpoint: Optional[Setpoint] = None


@dataclass
class HumiditySettingStatus:
    available_modes: List[HumidityMode] = field(
        default_factory=lambda: [HumidityMode.AUTO, HumidityMode.HUMIDIFY, HumidityMode.OFF]
    )
    mode: HumidityMode = HumidityMode.OFF
    active_mode: Optional[HumidityMode] = None
    humidifier_setpoint: Optional[float] = None


@dataclass
class NormalizedDeviceState:
    """
    Normalized state of one remote thermostat.

    Setpoint shape follows the mode: a single value for Heat or Cool,
    a (heat, cool) pair otherwise.
    """
    temperature: Optional[float] = None
    humidity: Optional[float] = None
    temperature_unit: TemperatureUnit = TemperatureUnit.F
    temperature_setting: TemperatureSettingStatus = field(default_factory=TemperatureSettingStatus)
    humidity_setting: HumiditySettingStatus = field(default_factory=HumiditySettingStatus)
    on: bool = False
    air_quality: Optional[AirQuality] = None
    voc_density: Optional[float] = None
    co2_ppm: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to API response format."""
        setpoint = self.temperature_setting.setpoint
        if isinstance(setpoint, tuple):
            setpoint = list(setpoint)

        def _value(enum_value):
            return enum_value.value if enum_value is not None else None

        return {
            "temperature": self.temperature,
            "humidity": self.humidity,
            "temperatureUnit": self.temperature_unit.value,
            "temperatureSetting": {
                "availableModes": [m.value for m in self.temperature_setting.available_modes],
                "mode": _value(self.temperature_setting.mode),
                "activeMode": _value(self.temperature_setting.active_mode),
                "setpoint": setpoint,
            },
            "humiditySetting": {
                "availableModes": [m.value for m in self.humidity_setting.available_modes],
                "mode": _value(self.humidity_setting.mode),
                "activeMode": _value(self.humidity_setting.active_mode),
                "humidifierSetpoint": self.humidity_setting.humidifier_setpoint,
            },
            "on": self.on,
            "airQuality": _value(self.air_quality),
            "vocDensity": self.voc_density,
            "co2ppm": self.co2_ppm,
        }


@dataclass(frozen=True)
class CommandResult:
    """
    Vendor acknowledgment of a command.

    An accepted command only means the vendor took it; the device state is
    trustworthy again after the follow-up reload.
    """
    accepted: bool
    status_code: Optional[int] = None
    message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "accepted": self.accepted,
            "statusCode": self.status_code,
            "message": self.message,
        }


class TemperatureCommand(BaseModel):
    """Temperature/mode change requested by the user."""
    mode: Optional[ThermostatMode] = None
    setpoint: Optional[Union[float, Tuple[float, float]]] = None

    @field_validator("setpoint")
    @classmethod
    def _ordered_pair(cls, value):
        if isinstance(value, tuple) and value[0] > value[1]:
            raise ValueError("setpoint pair must be ordered as [heat, cool]")
        return value


class HumidityCommand(BaseModel):
    mode: Optional[HumidityMode] = None
    humidifier_setpoint: Optional[float] = None
