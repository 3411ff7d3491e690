"""
Base device interface the hosting runtime drives.
Every provider device implements refresh plus the command methods.
"""

from abc import ABC, abstractmethod

from app.models.device import (
    CommandResult,
    HumidityCommand,
    NormalizedDeviceState,
    TemperatureCommand,
    TemperatureUnit,
)


class ThermostatDevice(ABC):
    """
    Abstract base class for provider thermostats.

    The runtime schedules refresh() at get_refresh_frequency() and serializes
    calls per device; implementations hold no timers or locks of their own.
    """

    def __init__(self, native_id: str, name: str):
        """
        Initialize device.

        Args:
            native_id: Provider identifier of the device
            name: Display name
        """
        self.native_id = native_id
        self.name = name
        self.state = NormalizedDeviceState()

    async def get_refresh_frequency(self) -> int:
        """Recommended poll interval in seconds."""
        return 15

    @abstractmethod
    async def refresh(self, source: str = "scheduler", user_initiated: bool = False) -> None:
        """
        Bring normalized state up to date with the provider.

        Args:
            source: What asked for the refresh (for logs)
            user_initiated: True when a user explicitly asked
        """
        pass

    @abstractmethod
    async def set_temperature(self, command: TemperatureCommand) -> CommandResult:
        pass

    @abstractmethod
    async def turn_on(self) -> CommandResult:
        pass

    @abstractmethod
    async def turn_off(self) -> CommandResult:
        pass

    @abstractmethod
    async def set_humidity(self, command: HumidityCommand) -> CommandResult:
        pass

    async def set_temperature_unit(self, unit: TemperatureUnit) -> None:
        """Change the display unit. Stored values stay in Celsius."""
        self.state.temperature_unit = unit
