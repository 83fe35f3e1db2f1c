"""Accessory bridge: the host side of the media player bridge.

An :class:`AccessoryBridge` owns every accessory exposed to the
controller.  It

* restores cached accessories from an :class:`AccessoryStore` so each
  device keeps its identity (and its services) across restarts,
* creates or re-uses one accessory per configured device and binds it
  to a device handle through a :class:`MediaPlayerAccessory`,
* drops cached accessories that are no longer configured,
* persists changes with a debounced auto-save.

The device transport is injected: ``device_factory`` receives the
:class:`~pyATVBridge.device.DeviceSettings` of each device and returns
a :class:`~pyATVBridge.device.DeviceHandle`.

Usage example::

    from pyATVBridge import AccessoryBridge, load_config

    config = load_config("bridge.yaml")
    bridge = AccessoryBridge(
        device_factory=my_transport_factory,
        state_path=config.state_path,
    )
    bridge.configure(config)
    ...
    bridge.close()
"""

from __future__ import annotations

import logging
import threading
import uuid as _uuid
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

from pyATVBridge.accessory import Accessory
from pyATVBridge.config import BridgeConfig, DeviceConfig
from pyATVBridge.debounce import Scheduler
from pyATVBridge.device import DeviceHandle, DeviceSettings
from pyATVBridge.media_player import CONTEXT_KEY, MediaPlayerAccessory
from pyATVBridge.persistence import AccessoryStore

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

#: Debounce delay for auto-save in seconds.  Changes within the window
#: restart the timer so that a burst results in a single write.
AUTO_SAVE_DELAY: float = 1.0

#: Namespace for deriving accessory UUIDs from device hosts.
ACCESSORY_NAMESPACE: _uuid.UUID = _uuid.UUID("7b0f4c1e-5a36-4c8e-9d51-2f3a8e6d9b40")

DeviceFactory = Callable[[DeviceSettings], DeviceHandle]


def accessory_uuid(host: str) -> str:
    """Derive the stable accessory UUID of the device at *host*."""
    return str(_uuid.uuid5(ACCESSORY_NAMESPACE, host.lower()))


class AccessoryBridge:
    """Registry of exposed accessories and their device handlers.

    Parameters
    ----------
    device_factory:
        Builds a device handle from :class:`DeviceSettings`.
    state_path:
        YAML file caching the accessories.  Persistence is disabled
        when omitted.
    scheduler:
        Timer factory for the power-state debounce gates.
    """

    def __init__(
        self,
        *,
        device_factory: DeviceFactory,
        state_path: Optional[Union[str, Path]] = None,
        scheduler: Optional[Scheduler] = None,
    ) -> None:
        self._device_factory = device_factory
        self._scheduler = scheduler
        self._store: Optional[AccessoryStore] = (
            AccessoryStore(state_path) if state_path else None
        )

        self._accessories: Dict[str, Accessory] = {}
        self._handlers: Dict[str, MediaPlayerAccessory] = {}

        self._save_timer: Optional[threading.Timer] = None
        self._auto_save_enabled: bool = False

        cached = self._store.load() if self._store else None
        for tree in cached or ():
            acc = Accessory.from_property_tree(tree)
            self._attach(acc)
            logger.info(
                "Loading accessory from cache: %s (%s)",
                acc.display_name, acc.uuid,
            )

        self._auto_save_enabled = self._store is not None

    # ---- read-only accessors -----------------------------------------

    @property
    def accessories(self) -> Dict[str, Accessory]:
        """Registered accessories keyed by UUID (read-only view)."""
        return dict(self._accessories)

    @property
    def handlers(self) -> Dict[str, MediaPlayerAccessory]:
        """Active device handlers keyed by accessory UUID."""
        return dict(self._handlers)

    def get_accessory(self, accessory_id: str) -> Optional[Accessory]:
        return self._accessories.get(accessory_id)

    # ---- registration ------------------------------------------------

    def register_accessory(self, accessory: Accessory) -> None:
        """Add *accessory* to the bridge.

        Raises
        ------
        ValueError
            If an accessory with the same UUID is already registered.
        """
        if accessory.uuid in self._accessories:
            raise ValueError(f"Accessory {accessory.uuid} is already registered")
        self._attach(accessory)
        logger.info("Registering new accessory: %s", accessory.display_name)
        self._schedule_auto_save()

    def unregister_accessory(self, accessory_id: str) -> Optional[Accessory]:
        """Remove an accessory (closing its handler).  Returns it or ``None``."""
        handler = self._handlers.pop(accessory_id, None)
        if handler is not None:
            handler.close()
        acc = self._accessories.pop(accessory_id, None)
        if acc is not None:
            acc._bridge = None
            logger.info("Removing accessory: %s", acc.display_name)
            self._schedule_auto_save()
        return acc

    def _attach(self, accessory: Accessory) -> None:
        accessory._bridge = self
        self._accessories[accessory.uuid] = accessory

    # ---- configuration -----------------------------------------------

    def configure(self, config: BridgeConfig) -> List[MediaPlayerAccessory]:
        """Expose exactly the devices in *config*.

        Cached accessories are re-used by UUID; accessories that are no
        longer configured are unregistered.
        """
        wanted = set()
        handlers = []
        for device_config in config.devices:
            handler = self.configure_device(device_config)
            wanted.add(handler.accessory.uuid)
            handlers.append(handler)

        for accessory_id in list(self._accessories):
            if accessory_id not in wanted:
                self.unregister_accessory(accessory_id)

        return handlers

    def configure_device(self, device_config: DeviceConfig) -> MediaPlayerAccessory:
        """Create or refresh the accessory for one device.

        An existing handler for the same accessory is closed before the
        new one subscribes.
        """
        accessory_id = accessory_uuid(device_config.host)
        acc = self._accessories.get(accessory_id)
        if acc is None:
            acc = Accessory(uuid=accessory_id, display_name=device_config.name)
            self.register_accessory(acc)
        else:
            logger.info("Restoring existing accessory: %s", acc.display_name)
            acc.display_name = device_config.name

        previous = self._handlers.pop(accessory_id, None)
        if previous is not None:
            previous.close()

        acc.context[CONTEXT_KEY] = device_config.to_context()
        device = self._device_factory(DeviceSettings(
            name=device_config.name,
            host=device_config.host,
            credentials=device_config.credentials,
        ))
        handler = MediaPlayerAccessory(acc, device, scheduler=self._scheduler)
        self._handlers[accessory_id] = handler
        self._schedule_auto_save()
        return handler

    # ---- persistence -------------------------------------------------

    def get_property_tree(self) -> List[Dict]:
        return [acc.get_property_tree() for acc in self._accessories.values()]

    def save(self) -> None:
        """Write the accessory cache now, cancelling a pending auto-save."""
        self._cancel_auto_save()
        if self._store is None:
            logger.debug("No state_path configured, skipping save")
            return
        self._store.save(self.get_property_tree())

    def flush(self) -> None:
        """Save immediately if an auto-save is pending."""
        if self._save_timer is not None:
            self.save()

    def close(self) -> None:
        """Close every device handler and flush pending changes."""
        for handler in self._handlers.values():
            handler.close()
        self._handlers.clear()
        self.flush()

    def _schedule_auto_save(self) -> None:
        """(Re-)start the auto-save timer."""
        if not self._auto_save_enabled:
            return
        if self._save_timer is not None:
            self._save_timer.cancel()
        timer = threading.Timer(AUTO_SAVE_DELAY, self._do_auto_save)
        timer.daemon = True
        timer.start()
        self._save_timer = timer

    def _cancel_auto_save(self) -> None:
        if self._save_timer is not None:
            self._save_timer.cancel()
            self._save_timer = None

    def _do_auto_save(self) -> None:
        self._save_timer = None
        logger.debug("Auto-saving accessory cache")
        if self._store is not None:
            self._store.save(self.get_property_tree())

    def __repr__(self) -> str:
        return f"AccessoryBridge(accessories={len(self._accessories)})"
