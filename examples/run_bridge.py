#!/usr/bin/env python3
"""Demo: bridge a simulated media player into an accessory.

This script runs the full bridge lifecycle against a **simulated**
media player so that state syncing, power-state debouncing and
persistence can be observed in the log output without real hardware.

  **Phase 1: Fresh start**

  1. Build a configuration with one device exposing two device-state
     sensors and one app sensor.
  2. Configure an :class:`AccessoryBridge`; the accessory and its
     services are created.
  3. Run a background task that cycles the simulated player through
     playing / paused / idle and switches apps.  Each state change
     flips exactly one motion sensor per property.
  4. Flap the power state quickly to show the leading-edge debounce.
  5. Write ``On`` from the controller side and watch the command reach
     the device, and the switch follow once the device confirms.
  6. Close the bridge (flushes the auto-save).

  **Phase 2: Restart from persistence**

  1. Spin up a new bridge from the saved YAML.
  2. Reconfigure with the ``paused`` sensor dropped; the cached
     service is removed.

  **Phase 3: Cleanup**

  1. Close the bridge and delete all persistence artefacts.

Run from the project root::

    python examples/run_bridge.py
"""

from __future__ import annotations

import asyncio
import logging
import random
import sys
from pathlib import Path

# ---------------------------------------------------------------------------
# Ensure the package is importable when running from the repo root.
# ---------------------------------------------------------------------------
_project_root = Path(__file__).resolve().parent.parent
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

from pyATVBridge import (  # noqa: E402
    AccessoryBridge,
    AccessoryStore,
    BridgeConfig,
    CharacteristicType,
    DeviceConfig,
    DeviceSettings,
    DeviceState,
    MediaPlayerDevice,
    PowerState,
    accessory_uuid,
)

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

#: Persistence file for the demo.
STATE_FILE = Path("/tmp/pyATVBridge_demo_state.yaml")

#: Simulated device.
DEVICE_NAME = "Living Room"
DEVICE_HOST = "192.168.1.20"
DEVICE_IDENTIFIER = "DEMO-ATV-0001"

#: Power state debounce window in milliseconds.
DEBOUNCE_MS = 1500

#: Interval (seconds) between simulated state changes.
MOCK_STATE_INTERVAL = 0.5

#: Number of simulated state changes per run.
MOCK_STATE_CYCLES = 8

# ---------------------------------------------------------------------------
# Logging: bridge records in cyan, demo records in magenta
# ---------------------------------------------------------------------------

BOLD = "\033[1m"
CYAN = "\033[36m"
YELLOW = "\033[33m"
RED = "\033[31m"
MAGENTA = "\033[35m"
RESET = "\033[0m"


class BridgeLogFormatter(logging.Formatter):
    """Colour by source: library loggers vs. the demo's own loggers.

    Warnings and errors are shown in yellow / red regardless of source.
    """

    def __init__(self) -> None:
        super().__init__("%(asctime)s %(levelname)-7s %(name)s: %(message)s",
                         datefmt="%H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        if record.levelno >= logging.ERROR:
            colour = RED
        elif record.levelno >= logging.WARNING:
            colour = YELLOW
        elif record.name.startswith("pyATVBridge"):
            colour = CYAN
        else:
            colour = MAGENTA
        return f"{colour}{line}{RESET}"


def setup_logging() -> None:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(BridgeLogFormatter())
    logging.basicConfig(level=logging.DEBUG, handlers=[handler], force=True)
    # Router and gate debug output is the point of the demo; the
    # accessory model's per-characteristic chatter is not.
    logging.getLogger("pyATVBridge.accessory").setLevel(logging.INFO)


def banner(text: str) -> None:
    """Print a prominent banner to the console."""
    width = 60
    print()
    print(f"{BOLD}{CYAN}{'=' * width}{RESET}")
    print(f"{BOLD}{CYAN} {text.center(width - 2)} {RESET}")
    print(f"{BOLD}{CYAN}{'=' * width}{RESET}")
    print()


# ---------------------------------------------------------------------------
# Simulated media player
# ---------------------------------------------------------------------------

class SimulatedMediaPlayer(MediaPlayerDevice):
    """A media player that lives entirely in memory.

    Power commands take a short while to "reach" the device and are
    then confirmed with an ``update:powerState`` event, like a real
    device would.
    """

    def __init__(self, settings: DeviceSettings) -> None:
        super().__init__(settings, identifier=DEVICE_IDENTIFIER)
        self._power = PowerState.OFF
        self._state = DeviceState.IDLE
        self._app = None
        self._log = logging.getLogger("demo.device")

    async def turn_on(self) -> None:
        await self._set_power(PowerState.ON)

    async def turn_off(self) -> None:
        await self._set_power(PowerState.OFF)

    async def _set_power(self, power: PowerState) -> None:
        self._log.info("Power command -> %s", power.value)
        await asyncio.sleep(0.2)
        old, self._power = self._power, power
        self.emit("powerState", power, old)

    def set_device_state(self, state: DeviceState) -> None:
        old, self._state = self._state, state
        self._log.info("deviceState -> %s", state.value)
        self.emit("deviceState", state.value, old.value)

    def set_app(self, app: str) -> None:
        old, self._app = self._app, app
        self._log.info("app -> %s", app)
        self.emit("app", app, old)


class MockStateChanger:
    """Cycle a :class:`SimulatedMediaPlayer` through random states."""

    STATES = (DeviceState.PLAYING, DeviceState.PAUSED, DeviceState.IDLE)
    APPS = ("com.netflix.Netflix", "com.apple.TVMusic")

    def __init__(self, device: SimulatedMediaPlayer, interval: float) -> None:
        self._device = device
        self._interval = interval

    async def run(self, cycles: int) -> None:
        for _ in range(cycles):
            self._device.set_device_state(random.choice(self.STATES))
            if random.random() < 0.3:
                self._device.set_app(random.choice(self.APPS))
            await asyncio.sleep(self._interval)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def make_config(device_state_sensors: list[str]) -> BridgeConfig:
    return BridgeConfig(
        devices=[
            DeviceConfig(
                name=DEVICE_NAME,
                host=DEVICE_HOST,
                debounce_power_state_delay=DEBOUNCE_MS,
                device_state_sensors=device_state_sensors,
                app_sensors=["com.netflix.Netflix"],
            )
        ],
        state_path=STATE_FILE,
    )


def log_sensors(bridge: AccessoryBridge) -> None:
    log = logging.getLogger("demo")
    acc = bridge.get_accessory(accessory_uuid(DEVICE_HOST))
    for service in acc.services:
        if service.subtype is None:
            continue
        detected = service.get_characteristic(CharacteristicType.MOTION_DETECTED).value
        log.info("  %-28s detected=%s", service.subtype, detected)


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

async def main() -> None:
    setup_logging()
    logger = logging.getLogger("demo")
    devices: list[SimulatedMediaPlayer] = []

    def factory(settings: DeviceSettings) -> SimulatedMediaPlayer:
        dev = SimulatedMediaPlayer(settings)
        devices.append(dev)
        return dev

    # ==================================================================
    # PHASE 1: Fresh start
    # ==================================================================
    banner("PHASE 1: Fresh bridge + simulated player")

    store = AccessoryStore(STATE_FILE)
    store.delete()

    bridge = AccessoryBridge(device_factory=factory, state_path=STATE_FILE)
    (handler,) = bridge.configure(make_config(["playing", "paused"]))
    device = devices[-1]
    logger.info("Accessory %s has %d service(s)", handler.accessory.uuid,
                len(handler.accessory.services))

    await MockStateChanger(device, MOCK_STATE_INTERVAL).run(MOCK_STATE_CYCLES)
    log_sensors(bridge)

    banner("Power state debounce")
    for power in (PowerState.ON, PowerState.OFF, PowerState.ON, PowerState.OFF):
        device.emit("powerState", power)
    on = handler.power_service.get_characteristic(CharacteristicType.ON)
    logger.info("After a burst of 4 events, On=%s (first of the burst)", on.value)
    await asyncio.sleep(DEBOUNCE_MS / 1000.0 + 0.2)
    device.emit("powerState", PowerState.OFF)
    logger.info("After the window elapsed, On=%s", on.value)

    banner("Controller writes On")
    await asyncio.sleep(DEBOUNCE_MS / 1000.0 + 0.2)
    await on.handle_set(True)
    logger.info("Switch On=%s after device confirmation", on.value)

    bridge.close()
    logger.info("Bridge closed, cache at %s", STATE_FILE)

    # ==================================================================
    # PHASE 2: Restart from persistence
    # ==================================================================
    banner("PHASE 2: Restart with 'paused' sensor dropped")

    bridge2 = AccessoryBridge(device_factory=factory, state_path=STATE_FILE)
    bridge2.configure(make_config(["playing"]))
    await MockStateChanger(devices[-1], MOCK_STATE_INTERVAL).run(4)
    log_sensors(bridge2)

    # ==================================================================
    # PHASE 3: Cleanup
    # ==================================================================
    banner("PHASE 3: Cleanup")

    bridge2.close()
    store.delete()
    logger.info("Persistence files deleted: %s", STATE_FILE)

    assert not STATE_FILE.exists(), f"{STATE_FILE} still exists!"
    banner("DEMO COMPLETE")


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print(f"\n{YELLOW}Interrupted by user.{RESET}")
