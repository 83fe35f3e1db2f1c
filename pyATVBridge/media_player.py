"""Media player accessory.

A :class:`MediaPlayerAccessory` binds one device handle to one
:class:`~pyATVBridge.accessory.Accessory`.  Construction runs the whole
initialisation sequence:

1. Rebuild ``context["device"]["generic_sensors"]`` from the
   configured sensor lists (replacing any previous value).
2. Reconcile the accessory's services against that topology.
3. Register :meth:`set_on` as the power switch's set handler.
4. Subscribe the :class:`~pyATVBridge.router.EventRouter` to the
   device's event streams.

The context is read once, here.  Changes made to it afterwards take
effect on the next initialisation.  Call :meth:`close` before creating
a second handler for the same accessory in-process.

Usage::

    handler = MediaPlayerAccessory(accessory, device)
    ...
    handler.close()
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from pyATVBridge.accessory import Accessory, Service
from pyATVBridge.debounce import Scheduler
from pyATVBridge.device import DeviceHandle
from pyATVBridge.enums import CharacteristicType
from pyATVBridge.reconciler import ReconciledServices, ServiceReconciler
from pyATVBridge.router import EventRouter
from pyATVBridge.topology import SensorGroup, build_topology, topology_to_context

logger = logging.getLogger(__name__)

#: Key under which the device configuration lives in the accessory context.
CONTEXT_KEY: str = "device"


class MediaPlayerAccessory:
    """Keeps one accessory in sync with one media player.

    Parameters
    ----------
    accessory:
        The accessory to expose; its ``context["device"]`` holds the
        device configuration.
    device:
        Handle of the media player.
    scheduler:
        Timer factory for the power-state debounce gate.
    """

    def __init__(
        self,
        accessory: Accessory,
        device: DeviceHandle,
        *,
        scheduler: Optional[Scheduler] = None,
    ) -> None:
        self._accessory = accessory
        self._device = device

        config: Dict[str, Any] = accessory.context.setdefault(CONTEXT_KEY, {})
        self._debounce_delay = config.get("debouncePowerStateDelay")
        logger.debug(
            "Debounce power state delay: %s ms (%s)",
            self._debounce_delay, type(self._debounce_delay).__name__,
        )

        self._topology: List[SensorGroup] = build_topology(
            config.get("device_state_sensors"),
            config.get("app_sensors"),
        )
        config["generic_sensors"] = topology_to_context(self._topology)

        self._services: ReconciledServices = ServiceReconciler(
            accessory
        ).reconcile(self._topology, serial_number=device.identifier)

        self._services.power.get_characteristic(
            CharacteristicType.ON
        ).on_set(self.set_on)

        self._router = EventRouter(
            device,
            self._services.power,
            self._services.sensors,
            debounce_delay=self._debounce_delay,
            scheduler=scheduler,
        )
        self._router.start()
        self._closed = False

    # ---- read-only accessors -----------------------------------------

    @property
    def accessory(self) -> Accessory:
        return self._accessory

    @property
    def device(self) -> DeviceHandle:
        return self._device

    @property
    def topology(self) -> List[SensorGroup]:
        return list(self._topology)

    @property
    def power_service(self) -> Service:
        return self._services.power

    @property
    def information_service(self) -> Service:
        return self._services.information

    @property
    def router(self) -> EventRouter:
        return self._router

    def sensor_service(self, prop: str, value: str) -> Optional[Service]:
        """Return the motion sensor for ``(prop, value)``, if exposed."""
        return self._services.sensors.get(prop, {}).get(value)

    # ---- commands ----------------------------------------------------

    async def set_on(self, value: Any) -> None:
        """Handle a power write from the controller.

        Only forwards the command; the ``On`` characteristic follows
        once the device confirms via ``update:powerState``.
        """
        if value:
            await self._device.turn_on()
        else:
            await self._device.turn_off()
        logger.debug("Set Characteristic On -> %s", value)

    def update_power_state(self, power_state: Any) -> None:
        """Apply a power state immediately, bypassing the debounce gate."""
        self._router.apply_power_state(power_state)

    # ---- teardown ----------------------------------------------------

    def close(self) -> None:
        """Unsubscribe from the device and detach the set handler."""
        if self._closed:
            return
        self._closed = True
        self._router.close()
        on = self._services.power.get_characteristic(CharacteristicType.ON)
        if on.set_handler == self.set_on:
            on.on_set(None)
        logger.debug("Closed handler for accessory %s", self._accessory.uuid)

    def __repr__(self) -> str:
        return (
            f"MediaPlayerAccessory(uuid={self._accessory.uuid!r}, "
            f"sensors={sum(len(g.values) for g in self._topology)})"
        )
