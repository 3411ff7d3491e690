"""
Conversions between Ecobee encodings and the normalized device model.

Ecobee reports temperatures as integers in tenths of a degree Fahrenheit
(e.g. 715 = 71.5°F) and modes as lower-case strings.
"""

from dataclasses import dataclass
from typing import Optional, Union

from app.models.device import AirQuality, HumidityMode, ThermostatMode

# Placeholder hold temperatures sent with fan holds (55.0°F / 90.0°F)
FAN_HOLD_HEAT_TEMP = 550
FAN_HOLD_COOL_TEMP = 900

_MODE_FROM_ECOBEE = {
    "cool": ThermostatMode.COOL,
    "heat": ThermostatMode.HEAT,
    "auto": ThermostatMode.HEAT_COOL,
}
_MODE_TO_ECOBEE = {value: key for key, value in _MODE_FROM_ECOBEE.items()}

_HUMIDITY_MODE_FROM_ECOBEE = {
    "auto": HumidityMode.AUTO,
    "manual": HumidityMode.HUMIDIFY,
}

# (exclusive upper bound, bucket), Ecobee scores run 0-500
_AIR_QUALITY_BUCKETS = (
    (51, AirQuality.EXCELLENT),
    (101, AirQuality.GOOD),
    (151, AirQuality.FAIR),
    (201, AirQuality.POOR),
    (301, AirQuality.POOR),
    (501, AirQuality.INFERIOR),
)


def ecobee_int_to_celsius(raw: Union[int, float, str]) -> float:
    """
    Convert an Ecobee temperature (tenths of °F) to °C.

    Args:
        raw: Ecobee integer temperature, as a number or numeric string

    Returns:
        Temperature in Celsius rounded to 2 decimals
    """
    fahrenheit = float(raw) / 10
    return round((fahrenheit - 32) * 5 / 9, 2)


def celsius_to_ecobee_int(celsius: float) -> str:
    """
    Convert °C to an Ecobee temperature (tenths of °F).

    Args:
        celsius: Temperature in Celsius

    Returns:
        Integer string with no fractional digits (e.g. "698")
    """
    fahrenheit = celsius * 1.8 + 32
    return str(round(fahrenheit * 10))


def ecobee_to_thermostat_mode(mode: Optional[str]) -> ThermostatMode:
    """Map an Ecobee hvacMode to a ThermostatMode. auxHeatOnly and unknown values map to Off."""
    return _MODE_FROM_ECOBEE.get(mode, ThermostatMode.OFF)


def thermostat_mode_to_ecobee(mode: Optional[ThermostatMode]) -> str:
    """Map a ThermostatMode to an Ecobee hvacMode."""
    return _MODE_TO_ECOBEE.get(mode, "off")


def humidity_mode_from_ecobee(mode: Optional[str]) -> HumidityMode:
    return _HUMIDITY_MODE_FROM_ECOBEE.get(mode, HumidityMode.OFF)


def air_quality_from_score(score: float) -> AirQuality:
    """
    Bucket an Ecobee air quality score (0-500).

    Unhealthy and very unhealthy bands both map to Poor.
    """
    for upper, bucket in _AIR_QUALITY_BUCKETS:
        if score < upper:
            return bucket
    return AirQuality.UNKNOWN


@dataclass(frozen=True)
class EquipmentStatus:
    """What the equipment is doing right now, derived from equipmentStatus."""
    active_mode: ThermostatMode
    fan_on: bool
    humidifying: bool

    @property
    def active_humidity_mode(self) -> HumidityMode:
        return HumidityMode.HUMIDIFY if self.humidifying else HumidityMode.OFF


def parse_equipment_status(status: Optional[str]) -> EquipmentStatus:
    """
    Parse Ecobee's comma-separated equipmentStatus.

    Vocabulary: heatPump, heatPump2, heatPump3, compCool1, compCool2,
    auxHeat1, auxHeat2, auxHeat3, fan, humidifier, dehumidifier,
    ventilator, economizer, compHotWater, auxHotWater. An empty string
    means nothing is running.

    Args:
        status: Raw equipmentStatus value

    Returns:
        EquipmentStatus (heating wins over cooling if both are reported)
    """
    tokens = [t.strip().lower() for t in (status or "").split(",") if t.strip()]

    if any(t.startswith("heatpump") or t.startswith("auxheat") for t in tokens):
        active_mode = ThermostatMode.HEAT
    elif any(t.startswith("compcool") for t in tokens):
        active_mode = ThermostatMode.COOL
    else:
        active_mode = ThermostatMode.OFF

    return EquipmentStatus(
        active_mode=active_mode,
        fan_on="fan" in tokens,
        humidifying="humidifier" in tokens,
    )
