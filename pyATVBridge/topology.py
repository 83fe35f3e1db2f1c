"""Generic sensor topology.

The topology is the ordered list of :class:`SensorGroup` objects that
decides which motion-style sensor services an accessory exposes.  It is
derived from two configuration lists:

* ``device_state_sensors`` → group ``deviceState``
* ``app_sensors`` → group ``app``

Groups come out in that order with values in configuration order, and a
group is only present when its list is non-empty.  The builder is a
pure function, so the same configuration always yields the same
topology and the same set of services.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple

from pyATVBridge.enums import DeviceState, SensorProperty

logger = logging.getLogger(__name__)

_KNOWN_DEVICE_STATES = frozenset(s.value for s in DeviceState)


@dataclass(frozen=True)
class SensorGroup:
    """One tracked property and the values it may take."""

    property: str
    values: Tuple[str, ...]

    def service_key(self, value: str) -> str:
        """Return the stable service key ``"<property>.<value>"``."""
        return f"{self.property}.{value}"

    def to_dict(self) -> Dict[str, Any]:
        return {"property": self.property, "values": list(self.values)}


def _unique(values: Optional[Iterable[str]]) -> Tuple[str, ...]:
    seen: Dict[str, None] = {}
    for value in values or ():
        seen.setdefault(value, None)
    return tuple(seen)


def build_topology(
    device_state_sensors: Optional[Iterable[str]] = None,
    app_sensors: Optional[Iterable[str]] = None,
) -> List[SensorGroup]:
    """Build the sensor topology from the two configuration lists.

    ``None`` is treated as an empty list.  Duplicate values are
    collapsed, keeping the first occurrence.
    """
    groups: List[SensorGroup] = []

    states = _unique(device_state_sensors)
    if states:
        unknown = [s for s in states if s not in _KNOWN_DEVICE_STATES]
        if unknown:
            logger.warning(
                "Unknown device state sensor value(s) %s; they will "
                "never be detected", ", ".join(unknown),
            )
        groups.append(SensorGroup(SensorProperty.DEVICE_STATE.value, states))

    apps = _unique(app_sensors)
    if apps:
        groups.append(SensorGroup(SensorProperty.APP.value, apps))

    logger.debug("generic_sensors: %s", topology_to_context(groups))
    return groups


def topology_to_context(groups: Iterable[SensorGroup]) -> List[Dict[str, Any]]:
    """Serialise *groups* into the ``generic_sensors`` context list."""
    return [g.to_dict() for g in groups]
