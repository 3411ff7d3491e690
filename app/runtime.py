"""
Hosting runtime for the Ecobee controller.

Plays the role of the device-management host: owns the settings store, device
registry and alert channel, schedules refresh() for every thermostat, and
serializes refreshes and commands per device.
"""

import asyncio
from collections import defaultdict
from datetime import datetime, timezone
from typing import Awaitable, Callable, Dict, Optional, TypeVar

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from app.devices.ecobee_controller import EcobeeController
from app.devices.ecobee_thermostat import EcobeeThermostat
from app.services.alerts import AlertLog
from app.services.device_registry import MemoryDeviceRegistry
from app.utils.logging import get_logger
from app.utils.settings_store import SettingsStore

logger = get_logger(__name__)

T = TypeVar("T")


class DeviceNotFound(LookupError):
    """No thermostat with that native id has been discovered."""


class EcobeeRuntime:
    """
    Runs one EcobeeController.

    Handles:
    - Controller construction with injected store, registry and alerts
    - Startup initialization (errors are logged, not raised)
    - An AsyncIOScheduler job refreshing every device at the recommended interval
    - One asyncio.Lock per device so at most one mutation is in flight
    """

    def __init__(self, store: SettingsStore):
        """
        Initialize runtime.

        Args:
            store: Settings store shared with the controller
        """
        self.store = store
        self.registry = MemoryDeviceRegistry()
        self.alerts = AlertLog()
        self.controller = EcobeeController(store, self.registry, self.alerts)
        self._locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._scheduler: Optional[AsyncIOScheduler] = None

    async def start(self, poll: bool = True) -> None:
        """
        Initialize the controller and start polling.

        Args:
            poll: If False, devices are only refreshed on request
        """
        await self.initialize()
        if poll and self._scheduler is None:
            interval = await self._poll_interval()
            scheduler = AsyncIOScheduler()
            scheduler.add_job(
                self.refresh_all,
                trigger=IntervalTrigger(seconds=interval),
                id="ecobee_refresh",
                coalesce=True,
                max_instances=1,
                next_run_time=datetime.now(timezone.utc),
            )
            scheduler.start()
            self._scheduler = scheduler
            logger.info("polling_started", interval=interval)

    async def stop(self) -> None:
        if self._scheduler is not None:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None
            logger.info("polling_stopped")

    async def initialize(self) -> bool:
        """
        (Re)run controller initialization; the manual "restart".

        Returns:
            True if devices were discovered
        """
        try:
            return await self.controller.initialize()
        except Exception as e:
            logger.error("controller_initialize_failed", error=str(e))
            return False

    def get_thermostat(self, native_id: str) -> EcobeeThermostat:
        thermostat = self.controller.get_device(native_id)
        if thermostat is None:
            raise DeviceNotFound(native_id)
        return thermostat

    async def run_serialized(
        self,
        native_id: str,
        action: Callable[[EcobeeThermostat], Awaitable[T]],
    ) -> T:
        """
        Run an action against one thermostat while holding its lock.

        Args:
            native_id: Thermostat id
            action: Coroutine function receiving the thermostat

        Returns:
            Whatever the action returns

        Raises:
            DeviceNotFound: If the thermostat is unknown
        """
        thermostat = self.get_thermostat(native_id)
        async with self._locks[native_id]:
            return await action(thermostat)

    async def refresh_all(self, source: str = "scheduler") -> int:
        """
        Refresh every known thermostat sequentially.

        Failures are logged per device; the next pass retries.

        Returns:
            Number of thermostats refreshed successfully
        """
        refreshed = 0
        for native_id in list(self.controller.devices):
            try:
                await self.run_serialized(
                    native_id,
                    lambda t: t.refresh(source, False),
                )
                refreshed += 1
            except Exception as e:
                logger.error("device_refresh_failed", native_id=native_id, error=str(e))
        return refreshed

    async def _poll_interval(self) -> int:
        intervals = [
            await t.get_refresh_frequency() for t in self.controller.devices.values()
        ]
        return min(intervals) if intervals else 15
