"""
Pydantic models for controller settings.

ControllerSettings is the typed view over the settings store; the store itself
only holds strings.
"""

from typing import List, Literal, Optional, Union

from pydantic import BaseModel, Field

DEFAULT_API_BASE = "api.ecobee.com"

# Settings store keys
SENSORS_ONLY = "sensors_only"
API_BASE = "api_base"
CLIENT_ID = "client_id"
ECOBEE_CODE = "ecobee_code"
REFRESH_TOKEN = "refresh_token"

USER_SETTING_KEYS = (SENSORS_ONLY, API_BASE, CLIENT_ID)


class ControllerSettings(BaseModel):
    """User-editable controller settings."""
    sensors_only: bool = False
    api_base: str = DEFAULT_API_BASE
    client_id: Optional[str] = None

    @property
    def base_url(self) -> str:
        return f"https://{self.api_base}"


class SettingDescriptor(BaseModel):
    """One entry of the settings form shown to the user."""
    title: str
    key: str
    type: Literal["string", "boolean"] = "string"
    description: str
    value: Optional[Union[bool, str]] = None


class SettingUpdate(BaseModel):
    """Request model for PUT /settings/{key}."""
    value: Union[bool, str] = Field(..., description="New value; booleans are stored as 'true'/'false'")


def describe_settings(settings: ControllerSettings) -> List[SettingDescriptor]:
    """
    Build the settings form for the current values.

    Args:
        settings: Current controller settings

    Returns:
        Descriptors for sensors_only, api_base and client_id
    """
    return [
        SettingDescriptor(
            title="Sensors Only",
            key=SENSORS_ONLY,
            type="boolean",
            description="Expose only sensors, and not thermostat",
            value=settings.sensors_only,
        ),
        SettingDescriptor(
            title="API Base URL",
            key=API_BASE,
            description="Customize the API base URL",
            value=settings.api_base,
        ),
        SettingDescriptor(
            title="API Client ID",
            key=CLIENT_ID,
            description="Your Client ID from the Ecobee developer portal",
            value=settings.client_id,
        ),
    ]
