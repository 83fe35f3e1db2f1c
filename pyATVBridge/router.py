"""Event routing from device streams to characteristics.

An :class:`EventRouter` subscribes one handler per tracked property:

* ``update:powerState`` → the power switch's ``On`` characteristic,
  through a :class:`~pyATVBridge.debounce.DebounceGate`;
* ``update:<property>`` for every sensor group → the ``MotionDetected``
  characteristic of **every** sensor in that group, so that exactly one
  sensor (the one matching the new value) is detected and the rest are
  not.

Failure payloads never touch a characteristic.  Power failures are
logged at debug level; sensor failures are dropped silently.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from pyATVBridge.accessory import Service
from pyATVBridge.debounce import DebounceGate, Scheduler
from pyATVBridge.device import (
    POWER_STATE_EVENT,
    DeviceEvent,
    DeviceHandle,
    EventHandler,
    event_name,
)
from pyATVBridge.enums import CharacteristicType, PowerState

logger = logging.getLogger(__name__)


class EventRouter:
    """Fans device events out to accessory characteristics.

    Parameters
    ----------
    device:
        Source of the ``update:*`` event streams.
    power_service:
        The switch whose ``On`` characteristic mirrors the power state.
    sensor_services:
        property → value → motion sensor service.
    debounce_delay:
        Power-state debounce window in milliseconds; ``None`` or a
        non-number applies every power event immediately.
    scheduler:
        Timer factory passed to the :class:`DebounceGate`.
    """

    def __init__(
        self,
        device: DeviceHandle,
        power_service: Service,
        sensor_services: Mapping[str, Mapping[str, Service]],
        *,
        debounce_delay: Any = None,
        scheduler: Optional[Scheduler] = None,
    ) -> None:
        self._device = device
        self._power_service = power_service
        self._sensor_services: Dict[str, Dict[str, Service]] = {
            prop: dict(by_value) for prop, by_value in sensor_services.items()
        }
        self._power_gate = DebounceGate(
            debounce_delay, self.apply_power_state, scheduler=scheduler
        )
        self._subscriptions: List[Tuple[str, EventHandler]] = []

    @property
    def power_gate(self) -> DebounceGate:
        return self._power_gate

    @property
    def subscriptions(self) -> List[str]:
        """Event names currently subscribed, in subscription order."""
        return [name for name, _ in self._subscriptions]

    # ---- lifecycle ---------------------------------------------------

    def start(self) -> None:
        """Subscribe all handlers.  Calling twice is a no-op."""
        if self._subscriptions:
            return
        logger.debug("Register to %s", POWER_STATE_EVENT)
        self._subscribe(POWER_STATE_EVENT, self.handle_power_state)
        for prop in self._sensor_services:
            self._subscribe(event_name(prop), self._sensor_handler(prop))

    def close(self) -> None:
        """Unsubscribe every handler and drop pending debounce state."""
        for name, handler in self._subscriptions:
            self._device.off(name, handler)
        self._subscriptions.clear()
        self._power_gate.cancel()

    def _subscribe(self, name: str, handler: EventHandler) -> None:
        self._device.on(name, handler)
        self._subscriptions.append((name, handler))

    # ---- power state -------------------------------------------------

    def handle_power_state(self, event: Union[DeviceEvent, Exception]) -> None:
        if isinstance(event, Exception):
            logger.debug(
                "Error updating power state: %s: %s",
                type(event).__name__, event,
            )
            return
        self._power_gate(event.new_value)

    def apply_power_state(self, power_state: Any) -> None:
        """Set ``On`` to whether *power_state* is the on sentinel."""
        logger.debug("%s %s", POWER_STATE_EVENT, power_state)
        self._power_service.get_characteristic(
            CharacteristicType.ON
        ).update_value(power_state == PowerState.ON)

    # ---- generic sensors ---------------------------------------------

    def _sensor_handler(self, prop: str) -> EventHandler:
        def handler(event: Union[DeviceEvent, Exception]) -> None:
            self.handle_sensor_event(prop, event)
        return handler

    def handle_sensor_event(
        self, prop: str, event: Union[DeviceEvent, Exception]
    ) -> None:
        if isinstance(event, Exception):
            return
        for value, service in self._sensor_services.get(prop, {}).items():
            service.set_characteristic(
                CharacteristicType.MOTION_DETECTED, event.new_value == value
            )
