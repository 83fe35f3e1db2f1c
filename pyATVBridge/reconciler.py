"""Service reconciliation.

Brings an accessory's service list in line with the sensor topology:

* the information service carries manufacturer, model and serial,
* exactly one power switch exists,
* exactly one motion sensor exists per ``(property, value)`` pair,
  keyed ``"<property>.<value>"``,
* every other service (left over from an earlier configuration) is
  removed.

Services are retrieved with get-or-create, so reconciling twice with
the same topology creates and removes nothing the second time.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from pyATVBridge.accessory import Accessory, Service
from pyATVBridge.enums import CharacteristicType, ServiceType
from pyATVBridge.topology import SensorGroup

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

MANUFACTURER: str = "Apple Inc."
MODEL: str = "AppleTV"

#: Serial number used when the device does not report an identifier.
DEFAULT_SERIAL_NUMBER: str = "Serial"

#: Display name of the power switch service.
POWER_SERVICE_NAME: str = "Power State"


@dataclass
class ReconciledServices:
    """Result of :meth:`ServiceReconciler.reconcile`.

    ``sensors`` maps property → value → service, in topology order.
    """

    information: Service
    power: Service
    sensors: Dict[str, Dict[str, Service]] = field(default_factory=dict)
    removed: List[Service] = field(default_factory=list)

    @property
    def wanted(self) -> List[Service]:
        services = [self.information, self.power]
        for by_value in self.sensors.values():
            services.extend(by_value.values())
        return services


class ServiceReconciler:
    """Reconciles the services of one :class:`Accessory`."""

    def __init__(self, accessory: Accessory) -> None:
        self._accessory = accessory

    def reconcile(
        self,
        topology: Sequence[SensorGroup],
        *,
        serial_number: Optional[str] = None,
    ) -> ReconciledServices:
        """Create missing services, remove unused ones.

        Parameters
        ----------
        topology:
            Sensor groups to expose.
        serial_number:
            Identifier reported by the device; falls back to
            :data:`DEFAULT_SERIAL_NUMBER`.
        """
        result = ReconciledServices(
            information=self._information_service(serial_number),
            power=self._power_service(),
        )

        for group in topology:
            by_value = result.sensors.setdefault(group.property, {})
            for value in group.values:
                by_value[value] = self._sensor_service(group, value)

        wanted = {id(s) for s in result.wanted}
        for service in self._accessory.services:
            if id(service) in wanted:
                continue
            logger.info("Removing unused service: %s", service.display_name)
            self._accessory.remove_service(service)
            result.removed.append(service)

        return result

    # ---- get-or-create helpers ---------------------------------------

    def _information_service(self, serial_number: Optional[str]) -> Service:
        acc = self._accessory
        service = acc.get_service(ServiceType.ACCESSORY_INFORMATION)
        if service is None:
            service = acc.add_service(ServiceType.ACCESSORY_INFORMATION)
        return (
            service
            .set_characteristic(CharacteristicType.MANUFACTURER, MANUFACTURER)
            .set_characteristic(CharacteristicType.MODEL, MODEL)
            .set_characteristic(
                CharacteristicType.SERIAL_NUMBER,
                serial_number or DEFAULT_SERIAL_NUMBER,
            )
        )

    def _power_service(self) -> Service:
        acc = self._accessory
        service = acc.get_service(ServiceType.SWITCH)
        if service is None:
            service = acc.add_service(ServiceType.SWITCH, POWER_SERVICE_NAME)
        return service.set_characteristic(
            CharacteristicType.NAME, POWER_SERVICE_NAME
        )

    def _sensor_service(self, group: SensorGroup, value: str) -> Service:
        acc = self._accessory
        key = group.service_key(value)
        service = acc.get_service(key)
        if service is None or service.service_type is not ServiceType.MOTION_SENSOR:
            service = acc.add_service(ServiceType.MOTION_SENSOR, key, key)
        return service.set_characteristic(CharacteristicType.NAME, value)
