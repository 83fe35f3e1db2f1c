"""Bridge configuration.

Configuration is a YAML document with one entry per media player::

    state_path: /var/lib/atvbridge/accessories.yaml
    devices:
      - name: Living Room
        host: 192.168.1.20
        credentials: "..."
        debouncePowerStateDelay: 3000
        device_state_sensors: [playing, paused]
        app_sensors: [com.netflix.Netflix]

Malformed entries raise :class:`ValueError` when loaded.  Missing
sensor lists are treated as empty.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

logger = logging.getLogger(__name__)


def _string_list(data: Dict[str, Any], key: str, device: str) -> List[str]:
    raw = data.get(key)
    if raw is None:
        return []
    if not isinstance(raw, list) or not all(isinstance(v, str) for v in raw):
        raise ValueError(f"Device {device!r}: {key} must be a list of strings")
    return list(raw)


@dataclass
class DeviceConfig:
    """Configuration of one media player."""

    name: str
    host: str
    credentials: Optional[str] = None
    debounce_power_state_delay: Optional[int] = None
    device_state_sensors: List[str] = field(default_factory=list)
    app_sensors: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> DeviceConfig:
        """Validate and build a :class:`DeviceConfig` from a mapping.

        Raises
        ------
        ValueError
            On a missing name or host, a negative or non-integer
            ``debouncePowerStateDelay``, or non-string sensor values.
        """
        if not isinstance(data, dict):
            raise ValueError(f"Device entry must be a mapping, got {data!r}")

        name = data.get("name")
        host = data.get("host")
        if not isinstance(name, str) or not name:
            raise ValueError(f"Device entry {data!r} has no name")
        if not isinstance(host, str) or not host:
            raise ValueError(f"Device {name!r} has no host")

        delay = data.get("debouncePowerStateDelay")
        if delay is not None and (
            isinstance(delay, bool) or not isinstance(delay, int) or delay < 0
        ):
            raise ValueError(
                f"Device {name!r}: debouncePowerStateDelay must be a "
                f"non-negative integer (milliseconds), got {delay!r}"
            )

        credentials = data.get("credentials")
        if credentials is not None:
            credentials = str(credentials)

        return cls(
            name=name,
            host=host,
            credentials=credentials,
            debounce_power_state_delay=delay,
            device_state_sensors=_string_list(data, "device_state_sensors", name),
            app_sensors=_string_list(data, "app_sensors", name),
        )

    def to_context(self) -> Dict[str, Any]:
        """Return the accessory-context representation."""
        return {
            "name": self.name,
            "host": self.host,
            "credentials": self.credentials,
            "debouncePowerStateDelay": self.debounce_power_state_delay,
            "device_state_sensors": list(self.device_state_sensors),
            "app_sensors": list(self.app_sensors),
        }


@dataclass
class BridgeConfig:
    """All configured devices plus where accessories are cached."""

    devices: List[DeviceConfig] = field(default_factory=list)
    state_path: Optional[Path] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> BridgeConfig:
        """Validate and build a :class:`BridgeConfig`.

        Raises
        ------
        ValueError
            On malformed device entries or duplicate hosts.
        """
        data = data or {}
        if not isinstance(data, dict):
            raise ValueError("Configuration must be a mapping at top level")

        raw_devices = data.get("devices") or []
        if not isinstance(raw_devices, list):
            raise ValueError("devices must be a list")

        devices = [DeviceConfig.from_dict(d) for d in raw_devices]
        seen: Dict[str, str] = {}
        for dev in devices:
            if dev.host in seen:
                raise ValueError(
                    f"Devices {seen[dev.host]!r} and {dev.name!r} share "
                    f"host {dev.host}"
                )
            seen[dev.host] = dev.name

        state_path = data.get("state_path")
        return cls(
            devices=devices,
            state_path=Path(state_path) if state_path else None,
        )


def load_config(path: Union[str, Path]) -> BridgeConfig:
    """Load and validate a YAML configuration file.

    Raises
    ------
    OSError
        If the file cannot be read.
    ValueError
        If the YAML is invalid or the configuration malformed.
    """
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in {path}: {exc}") from exc

    config = BridgeConfig.from_dict(data)
    logger.info("Loaded %d device(s) from %s", len(config.devices), path)
    return config
