"""Device handle boundary.

The bridge never talks to a media player directly.  A transport
adapter (outside this library) connects to the device and is handed to
the bridge as a *device handle*: an object offering power commands and
a subscribable stream of property-change events.

Event streams
~~~~~~~~~~~~~

Events are named ``update:<property>`` (for example
``update:powerState`` or ``update:deviceState``).  Each subscribed
handler is called with either

* a :class:`DeviceEvent` carrying the old and new value, or
* an :class:`Exception` instance when the transport failed to obtain
  the value.

Handlers are called synchronously, in subscription order, in the order
the transport emits events.

Usage::

    from pyATVBridge.device import MediaPlayerDevice

    class MyTransport(MediaPlayerDevice):
        async def turn_on(self) -> None:
            await self._client.power_on()

        async def turn_off(self) -> None:
            await self._client.power_off()

    dev = MyTransport(settings)
    # Later, when the device reports a change:
    dev.emit("deviceState", "playing", old_value="paused")
"""

from __future__ import annotations

import abc
import logging
from dataclasses import dataclass
from typing import (
    Any,
    Callable,
    Dict,
    List,
    Optional,
    Protocol,
    Union,
    runtime_checkable,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

#: Prefix of every property-change event name.
EVENT_PREFIX: str = "update:"

#: Event name of the power state stream.
POWER_STATE_EVENT: str = EVENT_PREFIX + "powerState"


def event_name(prop: str) -> str:
    """Return the event name carrying changes of *prop*."""
    return f"{EVENT_PREFIX}{prop}"


# ---------------------------------------------------------------------------
# Payloads
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DeviceEvent:
    """A single property change reported by the device."""

    property: str
    new_value: Any
    old_value: Any = None


#: ``def handler(event) -> None`` where *event* is a :class:`DeviceEvent`
#: or the :class:`Exception` raised while reading the property.
EventHandler = Callable[[Union[DeviceEvent, Exception]], None]


@dataclass(frozen=True)
class DeviceSettings:
    """Construction parameters handed to a device factory."""

    name: str
    host: str
    credentials: Optional[str] = None


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------


@runtime_checkable
class DeviceHandle(Protocol):
    """What the bridge requires from a device transport."""

    @property
    def identifier(self) -> Optional[str]:
        ...

    async def turn_on(self) -> None:
        ...

    async def turn_off(self) -> None:
        ...

    def on(self, name: str, handler: EventHandler) -> None:
        ...

    def off(self, name: str, handler: EventHandler) -> None:
        ...


# ---------------------------------------------------------------------------
# MediaPlayerDevice: event-emitter base for transport adapters
# ---------------------------------------------------------------------------


class MediaPlayerDevice(abc.ABC):
    """Base class for transport adapters.

    Implements the subscription half of :class:`DeviceHandle`.
    Subclasses provide :meth:`turn_on` / :meth:`turn_off` and call
    :meth:`emit` or :meth:`emit_error` whenever the device reports.

    Parameters
    ----------
    settings:
        Name, host and credentials of the device.
    identifier:
        Unique identifier reported by the device (used as the serial
        number).  ``None`` when the device does not report one.
    """

    def __init__(
        self,
        settings: DeviceSettings,
        *,
        identifier: Optional[str] = None,
    ) -> None:
        self._settings = settings
        self._identifier = identifier
        self._handlers: Dict[str, List[EventHandler]] = {}

    @property
    def settings(self) -> DeviceSettings:
        """Construction parameters of this device."""
        return self._settings

    @property
    def identifier(self) -> Optional[str]:
        """Unique identifier reported by the device, if any."""
        return self._identifier

    # ---- power commands ----------------------------------------------

    @abc.abstractmethod
    async def turn_on(self) -> None:
        """Power the device on."""

    @abc.abstractmethod
    async def turn_off(self) -> None:
        """Power the device off."""

    # ---- subscriptions -----------------------------------------------

    def on(self, name: str, handler: EventHandler) -> None:
        """Subscribe *handler* to the event stream *name*."""
        self._handlers.setdefault(name, []).append(handler)
        logger.debug("Subscribed handler to %s on %s", name, self._settings.name)

    def off(self, name: str, handler: EventHandler) -> None:
        """Unsubscribe *handler* from *name* (no-op if not subscribed)."""
        handlers = self._handlers.get(name)
        if not handlers:
            return
        try:
            handlers.remove(handler)
        except ValueError:
            return
        if not handlers:
            del self._handlers[name]

    def listener_count(self, name: str) -> int:
        """Number of handlers currently subscribed to *name*."""
        return len(self._handlers.get(name, ()))

    # ---- emitting ----------------------------------------------------

    def emit(self, prop: str, new_value: Any, old_value: Any = None) -> None:
        """Deliver a value change of *prop* to all subscribers."""
        self._dispatch(
            event_name(prop),
            DeviceEvent(property=prop, new_value=new_value, old_value=old_value),
        )

    def emit_error(self, prop: str, error: Exception) -> None:
        """Deliver a failure reading *prop* to all subscribers."""
        self._dispatch(event_name(prop), error)

    def _dispatch(
        self, name: str, payload: Union[DeviceEvent, Exception]
    ) -> None:
        # Copy so handlers may unsubscribe while being called.
        for handler in list(self._handlers.get(name, ())):
            try:
                handler(payload)
            except Exception:
                logger.exception(
                    "Handler for %s on %s raised", name, self._settings.name
                )

    # ---- dunder ------------------------------------------------------

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(name={self._settings.name!r}, "
            f"host={self._settings.host!r})"
        )
