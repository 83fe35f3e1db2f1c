"""Host accessory registry model.

An :class:`Accessory` is the unit a smart-home controller recognises as
one device.  It carries

* a stable ``uuid`` and a display name,
* a mutable ``context`` dict that is persisted with the accessory and
  holds the device configuration between restarts,
* an ordered list of :class:`Service` objects, each holding typed
  :class:`Characteristic` values.

Every accessory owns an *AccessoryInformation* service from the moment
it is created.

Persistence
~~~~~~~~~~~

Identity, context and the service structure (type, display name,
subtype) are persisted via :meth:`Accessory.get_property_tree`.
Characteristic values are runtime state and are **not** persisted.
Adding or removing a service schedules a debounced auto-save through
the owning :class:`~pyATVBridge.bridge.AccessoryBridge`.

Usage::

    from pyATVBridge.accessory import Accessory
    from pyATVBridge.enums import CharacteristicType, ServiceType

    acc = Accessory(uuid=my_uuid, display_name="Living Room")
    switch = acc.add_service(ServiceType.SWITCH, "Power State")
    switch.get_characteristic(CharacteristicType.ON).on_set(handler)

    # Later, when the device confirms the state:
    switch.get_characteristic(CharacteristicType.ON).update_value(True)
"""

from __future__ import annotations

import logging
from typing import (
    TYPE_CHECKING,
    Any,
    Awaitable,
    Callable,
    Dict,
    List,
    Optional,
    Union,
)

from pyATVBridge.enums import CharacteristicType, ServiceType

if TYPE_CHECKING:
    from pyATVBridge.bridge import AccessoryBridge

logger = logging.getLogger(__name__)

#: ``async def handler(value) -> None`` invoked on controller writes.
SetHandler = Callable[[Any], Awaitable[None]]


# ---------------------------------------------------------------------------
# Characteristic
# ---------------------------------------------------------------------------


class Characteristic:
    """A single typed value on a :class:`Service`."""

    def __init__(
        self,
        service: Service,
        characteristic_type: CharacteristicType,
        value: Any = None,
    ) -> None:
        self._service = service
        self._type = characteristic_type
        self._value = value
        self._on_set: Optional[SetHandler] = None

    @property
    def characteristic_type(self) -> CharacteristicType:
        return self._type

    @property
    def service(self) -> Service:
        return self._service

    @property
    def value(self) -> Any:
        """Last value written by the bridge or the controller."""
        return self._value

    @property
    def set_handler(self) -> Optional[SetHandler]:
        return self._on_set

    def on_set(self, handler: Optional[SetHandler]) -> Characteristic:
        """Register the coroutine called when the controller writes."""
        self._on_set = handler
        return self

    def update_value(self, value: Any) -> Characteristic:
        """Store *value* without invoking the set handler."""
        if value != self._value:
            logger.debug(
                "%s.%s → %r", self._service.display_name,
                self._type.value, value,
            )
        self._value = value
        return self

    async def handle_set(self, value: Any) -> None:
        """Process a write coming from the controller.

        The set handler is awaited first; its exceptions propagate and
        leave the stored value unchanged.
        """
        if self._on_set is not None:
            await self._on_set(value)
        self._value = value

    def __repr__(self) -> str:
        return f"Characteristic({self._type.value}={self._value!r})"


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class Service:
    """A group of characteristics on an :class:`Accessory`.

    Parameters
    ----------
    accessory:
        The owning accessory.
    service_type:
        Well-known type of the service.
    display_name:
        Name shown by the controller (also a lookup key).
    subtype:
        Stable key distinguishing several services of the same type.
    """

    def __init__(
        self,
        accessory: Accessory,
        service_type: ServiceType,
        display_name: str,
        subtype: Optional[str] = None,
    ) -> None:
        self._accessory = accessory
        self._type = service_type
        self._display_name = display_name
        self._subtype = subtype
        self._characteristics: Dict[CharacteristicType, Characteristic] = {}

    # ---- read-only accessors -----------------------------------------

    @property
    def service_type(self) -> ServiceType:
        return self._type

    @property
    def display_name(self) -> str:
        return self._display_name

    @property
    def subtype(self) -> Optional[str]:
        return self._subtype

    @property
    def accessory(self) -> Accessory:
        return self._accessory

    # ---- characteristics ---------------------------------------------

    def get_characteristic(
        self, characteristic_type: CharacteristicType
    ) -> Characteristic:
        """Return the characteristic of *characteristic_type*, creating
        it on first access."""
        char = self._characteristics.get(characteristic_type)
        if char is None:
            char = Characteristic(self, characteristic_type)
            self._characteristics[characteristic_type] = char
        return char

    def set_characteristic(
        self, characteristic_type: CharacteristicType, value: Any
    ) -> Service:
        """Update a characteristic value; returns ``self`` for chaining."""
        self.get_characteristic(characteristic_type).update_value(value)
        return self

    # ---- persistence -------------------------------------------------

    def get_property_tree(self) -> Dict[str, Any]:
        return {
            "type": self._type.value,
            "displayName": self._display_name,
            "subtype": self._subtype,
        }

    def __repr__(self) -> str:
        return (
            f"Service(type={self._type.value}, "
            f"name={self._display_name!r}, subtype={self._subtype!r})"
        )


# ---------------------------------------------------------------------------
# Accessory
# ---------------------------------------------------------------------------


class Accessory:
    """One exposed smart-home device with a stable identity.

    Parameters
    ----------
    uuid:
        Stable identifier, unchanged across restarts.
    display_name:
        Name shown by the controller.
    context:
        Persisted configuration blob.  A fresh dict when omitted.
    """

    def __init__(
        self,
        *,
        uuid: str,
        display_name: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._auto_save_enabled: bool = False
        self._bridge: Optional[AccessoryBridge] = None

        self._uuid = uuid
        self.display_name = display_name
        self.context: Dict[str, Any] = context if context is not None else {}
        self._services: List[Service] = [
            Service(self, ServiceType.ACCESSORY_INFORMATION, display_name)
        ]

        self._auto_save_enabled = True

    @property
    def uuid(self) -> str:
        return self._uuid

    @property
    def services(self) -> List[Service]:
        """Attached services in insertion order (read-only view)."""
        return list(self._services)

    @property
    def bridge(self) -> Optional[AccessoryBridge]:
        """The bridge this accessory is registered with, if any."""
        return self._bridge

    # ---- service management ------------------------------------------

    def get_service(self, key: Union[ServiceType, str]) -> Optional[Service]:
        """Look up a service by type, or by subtype / display name.

        A :class:`ServiceType` key returns the first service of that
        type.  A string key prefers a subtype match over a display-name
        match.
        """
        if isinstance(key, ServiceType):
            return next((s for s in self._services if s.service_type is key), None)
        for service in self._services:
            if service.subtype == key:
                return service
        for service in self._services:
            if service.display_name == key:
                return service
        return None

    def add_service(
        self,
        service_type: ServiceType,
        display_name: Optional[str] = None,
        subtype: Optional[str] = None,
    ) -> Service:
        """Create and attach a new service.

        Raises
        ------
        ValueError
            If a service with the same type and subtype already exists.
        """
        for existing in self._services:
            if existing.service_type is service_type and existing.subtype == subtype:
                raise ValueError(
                    f"Accessory {self.display_name!r} already has a "
                    f"{service_type.value} service with subtype {subtype!r}"
                )
        service = Service(
            self, service_type, display_name or self.display_name, subtype
        )
        self._services.append(service)
        logger.debug("Added %r to accessory %s", service, self._uuid)
        self._schedule_auto_save_if_enabled()
        return service

    def remove_service(self, service: Service) -> bool:
        """Detach *service*.  Returns ``False`` if it was not attached."""
        try:
            self._services.remove(service)
        except ValueError:
            return False
        logger.debug("Removed %r from accessory %s", service, self._uuid)
        self._schedule_auto_save_if_enabled()
        return True

    def _schedule_auto_save_if_enabled(self) -> None:
        if self._auto_save_enabled and self._bridge is not None:
            self._bridge._schedule_auto_save()

    # ---- property tree (for YAML persistence) ------------------------

    def get_property_tree(self) -> Dict[str, Any]:
        """Return the persisted representation of this accessory.

        The structure is::

            uuid: "..."
            displayName: "Living Room"
            context:
              device: {...}
            services:
              - type: AccessoryInformation
                displayName: Living Room
                subtype: null
              - ...
        """
        return {
            "uuid": self._uuid,
            "displayName": self.display_name,
            "context": self.context,
            "services": [s.get_property_tree() for s in self._services],
        }

    @classmethod
    def from_property_tree(cls, state: Dict[str, Any]) -> Accessory:
        """Restore an accessory from :meth:`get_property_tree` output."""
        acc = cls(
            uuid=str(state["uuid"]),
            display_name=str(state.get("displayName") or state["uuid"]),
            context=dict(state.get("context") or {}),
        )
        acc._apply_state(state)
        return acc

    def _apply_state(self, state: Dict[str, Any]) -> None:
        prev = self._auto_save_enabled
        self._auto_save_enabled = False
        try:
            if "services" in state:
                self._services = []
                for svc_state in state["services"] or ():
                    try:
                        service_type = ServiceType(svc_state["type"])
                    except (KeyError, ValueError):
                        logger.warning(
                            "Skipping cached service with unknown type "
                            "%r on accessory %s",
                            svc_state.get("type"), self._uuid,
                        )
                        continue
                    self._services.append(Service(
                        self,
                        service_type,
                        svc_state.get("displayName") or self.display_name,
                        svc_state.get("subtype"),
                    ))
        finally:
            self._auto_save_enabled = prev

    def __repr__(self) -> str:
        return (
            f"Accessory(uuid={self._uuid!r}, "
            f"name={self.display_name!r}, services={len(self._services)})"
        )
