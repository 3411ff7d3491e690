"""
Device registry owned by the hosting runtime.

The controller publishes its complete device list on every discovery pass;
the registry works out what was added, removed or changed.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Protocol

from app.models.device import Device
from app.utils.logging import get_logger

logger = get_logger(__name__)


class DeviceRegistry(Protocol):
    async def publish_devices(self, devices: List[Device]) -> None:
        ...

    def get_device(self, native_id: str) -> Optional[Device]:
        ...


@dataclass
class RegistryDiff:
    """Outcome of replacing the registry contents."""
    added: List[str] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)
    changed: List[str] = field(default_factory=list)


class MemoryDeviceRegistry:
    """Registry keeping the last published device set in memory."""

    def __init__(self):
        self._devices: Dict[str, Device] = {}
        self.last_diff = RegistryDiff()

    async def publish_devices(self, devices: List[Device]) -> None:
        """
        Replace the full device set.

        Args:
            devices: Complete device list from a discovery pass
        """
        incoming = {d.native_id: d for d in devices}
        diff = RegistryDiff(
            added=[i for i in incoming if i not in self._devices],
            removed=[i for i in self._devices if i not in incoming],
            changed=[
                i for i, d in incoming.items()
                if i in self._devices and self._devices[i] != d
            ],
        )
        self._devices = incoming
        self.last_diff = diff

        logger.info(
            "devices_published",
            total=len(incoming),
            added=diff.added,
            removed=diff.removed,
            changed=diff.changed,
        )

    def get_device(self, native_id: str) -> Optional[Device]:
        return self._devices.get(native_id)

    def list_devices(self) -> List[Device]:
        return list(self._devices.values())
