"""
Configuration management for the Ecobee bridge.
Loads controller settings from the settings store.
"""

from typing import List, Union

from app.models.settings import (
    API_BASE,
    CLIENT_ID,
    DEFAULT_API_BASE,
    SENSORS_ONLY,
    ControllerSettings,
    SettingDescriptor,
    describe_settings,
)
from app.utils.settings_store import SettingsStore


class SettingsManager:
    """Manages loading and saving controller settings."""

    def __init__(self, store: SettingsStore):
        self.store = store

    async def load_settings(self) -> ControllerSettings:
        """
        Load settings from the store.

        Missing keys fall back to the ControllerSettings defaults.

        Returns:
            Validated ControllerSettings instance
        """
        api_base = await self.store.get(API_BASE)
        return ControllerSettings(
            sensors_only=await self.store.get(SENSORS_ONLY) == "true",
            api_base=api_base or DEFAULT_API_BASE,
            client_id=await self.store.get(CLIENT_ID) or None,
        )

    async def ensure_defaults(self) -> None:
        """Persist the default API base if none has been stored yet."""
        if not await self.store.get(API_BASE):
            await self.store.set(API_BASE, DEFAULT_API_BASE)

    async def describe(self) -> List[SettingDescriptor]:
        return describe_settings(await self.load_settings())

    async def put(self, key: str, value: Union[bool, str]) -> None:
        """
        Store a setting value as a string.

        Args:
            key: Setting key
            value: New value (booleans become 'true'/'false')

        Raises:
            ValueError: If a boolean setting gets a string other than true/false
        """
        if key == SENSORS_ONLY and isinstance(value, str):
            normalized = value.strip().lower()
            if normalized not in ("true", "false"):
                raise ValueError(f"{key} must be true or false, got {value!r}")
            value = normalized
        if isinstance(value, bool):
            value = "true" if value else "false"
        await self.store.set(key, str(value))
