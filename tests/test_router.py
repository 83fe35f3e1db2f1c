"""Tests for the EventRouter."""

from __future__ import annotations

import logging
from typing import Any, Callable, List
from unittest.mock import AsyncMock

import pytest

from pyATVBridge.accessory import Accessory
from pyATVBridge.debounce import GateState
from pyATVBridge.device import DeviceSettings, MediaPlayerDevice
from pyATVBridge.enums import CharacteristicType, PowerState
from pyATVBridge.reconciler import ReconciledServices, ServiceReconciler
from pyATVBridge.router import EventRouter
from pyATVBridge.topology import build_topology


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class _FakeDevice(MediaPlayerDevice):
    def __init__(self) -> None:
        super().__init__(DeviceSettings(name="Living Room", host="10.0.0.2"))
        self.turn_on_mock = AsyncMock()
        self.turn_off_mock = AsyncMock()

    async def turn_on(self) -> None:
        await self.turn_on_mock()

    async def turn_off(self) -> None:
        await self.turn_off_mock()


class _ManualTimer:
    def __init__(self, callback: Callable[[], None]) -> None:
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class _ManualScheduler:
    def __init__(self) -> None:
        self.timers: List[_ManualTimer] = []

    def __call__(self, delay: float, callback: Callable[[], None]) -> _ManualTimer:
        timer = _ManualTimer(callback)
        self.timers.append(timer)
        return timer

    def fire(self) -> None:
        for timer in self.timers:
            if not timer.cancelled:
                timer.callback()
        self.timers.clear()


def _reconcile(states=("playing", "paused", "idle"), apps=()) -> ReconciledServices:
    acc = Accessory(uuid="acc-1", display_name="Living Room")
    return ServiceReconciler(acc).reconcile(build_topology(list(states), list(apps)))


def _make_router(
    services: ReconciledServices, device: _FakeDevice, **kwargs: Any
) -> EventRouter:
    router = EventRouter(device, services.power, services.sensors, **kwargs)
    router.start()
    return router


def _on(services: ReconciledServices) -> Any:
    return services.power.get_characteristic(CharacteristicType.ON).value


def _detected(services: ReconciledServices, prop: str) -> dict:
    return {
        value: svc.get_characteristic(CharacteristicType.MOTION_DETECTED).value
        for value, svc in services.sensors[prop].items()
    }


# ===========================================================================
# Subscriptions
# ===========================================================================


class TestSubscriptions:

    def test_one_handler_per_property(self):
        dev = _FakeDevice()
        router = _make_router(_reconcile(apps=["com.x", "com.y"]), dev)

        assert router.subscriptions == [
            "update:powerState", "update:deviceState", "update:app",
        ]
        assert dev.listener_count("update:deviceState") == 1
        assert dev.listener_count("update:app") == 1

    def test_power_only_without_sensors(self):
        dev = _FakeDevice()
        router = _make_router(_reconcile(states=()), dev)
        assert router.subscriptions == ["update:powerState"]

    def test_start_twice_does_not_duplicate(self):
        dev = _FakeDevice()
        router = _make_router(_reconcile(), dev)
        router.start()
        assert dev.listener_count("update:powerState") == 1

    def test_close_unsubscribes_everything(self):
        dev = _FakeDevice()
        services = _reconcile(apps=["com.x"])
        router = _make_router(services, dev)

        router.close()

        assert router.subscriptions == []
        for name in ("update:powerState", "update:deviceState", "update:app"):
            assert dev.listener_count(name) == 0
        dev.emit("powerState", PowerState.ON)
        assert _on(services) is None


# ===========================================================================
# Power state
# ===========================================================================


class TestPowerState:

    @pytest.mark.parametrize(
        "value, expected",
        [
            (PowerState.ON, True),
            ("on", True),
            (PowerState.OFF, False),
            ("off", False),
            (PowerState.UNKNOWN, False),
            (None, False),
        ],
    )
    def test_power_mapping(self, value, expected):
        dev = _FakeDevice()
        services = _reconcile()
        _make_router(services, dev)

        dev.emit("powerState", value)

        assert _on(services) is expected

    def test_failure_does_not_mutate(self, caplog):
        dev = _FakeDevice()
        services = _reconcile()
        _make_router(services, dev)
        dev.emit("powerState", PowerState.ON)

        with caplog.at_level(logging.DEBUG, logger="pyATVBridge.router"):
            dev.emit_error("powerState", TimeoutError("no reply"))

        assert _on(services) is True
        assert "Error updating power state" in caplog.text
        assert "no reply" in caplog.text

    def test_without_delay_every_event_applies(self):
        dev = _FakeDevice()
        services = _reconcile()
        router = _make_router(services, dev)
        on = services.power.get_characteristic(CharacteristicType.ON)

        seen: List[Any] = []
        for value in (PowerState.ON, PowerState.OFF, PowerState.ON):
            dev.emit("powerState", value)
            seen.append(on.value)

        assert router.power_gate.bypassed
        assert seen == [True, False, True]

    def test_debounced_power_keeps_leading_value(self):
        dev = _FakeDevice()
        services = _reconcile()
        sched = _ManualScheduler()
        router = _make_router(services, dev, debounce_delay=3000, scheduler=sched)

        dev.emit("powerState", PowerState.ON)
        dev.emit("powerState", PowerState.OFF)
        dev.emit("powerState", PowerState.OFF)

        assert _on(services) is True
        assert router.power_gate.state is GateState.PENDING

        sched.fire()
        assert _on(services) is True
        assert router.power_gate.state is GateState.IDLE

        dev.emit("powerState", PowerState.OFF)
        assert _on(services) is False

    def test_string_delay_is_bypassed(self):
        dev = _FakeDevice()
        services = _reconcile()
        router = _make_router(services, dev, debounce_delay="3000")

        dev.emit("powerState", PowerState.ON)
        dev.emit("powerState", PowerState.OFF)

        assert router.power_gate.bypassed
        assert _on(services) is False

    def test_close_cancels_pending_debounce(self):
        dev = _FakeDevice()
        services = _reconcile()
        sched = _ManualScheduler()
        router = _make_router(services, dev, debounce_delay=50, scheduler=sched)

        dev.emit("powerState", PowerState.ON)
        router.close()

        assert router.power_gate.state is GateState.IDLE
        assert all(t.cancelled for t in sched.timers)


# ===========================================================================
# Generic sensors
# ===========================================================================


class TestGenericSensors:

    def test_exactly_one_detected(self):
        dev = _FakeDevice()
        services = _reconcile(states=("A", "B", "C"))
        _make_router(services, dev)

        dev.emit("deviceState", "B")

        assert _detected(services, "deviceState") == {"A": False, "B": True, "C": False}

    def test_prior_state_is_overwritten(self):
        dev = _FakeDevice()
        services = _reconcile(states=("A", "B", "C"))
        _make_router(services, dev)
        for svc in services.sensors["deviceState"].values():
            svc.set_characteristic(CharacteristicType.MOTION_DETECTED, True)

        dev.emit("deviceState", "B")

        assert _detected(services, "deviceState") == {"A": False, "B": True, "C": False}

    def test_paused_scenario(self):
        dev = _FakeDevice()
        services = _reconcile(states=("playing", "paused"))
        _make_router(services, dev)

        dev.emit("deviceState", "playing")
        dev.emit("deviceState", "paused", old_value="playing")

        assert _detected(services, "deviceState") == {"playing": False, "paused": True}

    def test_value_outside_enumeration_clears_all(self):
        dev = _FakeDevice()
        services = _reconcile(states=("playing", "paused"))
        _make_router(services, dev)

        dev.emit("deviceState", "playing")
        dev.emit("deviceState", "seeking")

        assert _detected(services, "deviceState") == {"playing": False, "paused": False}

    def test_failure_does_not_mutate(self, caplog):
        dev = _FakeDevice()
        services = _reconcile(states=("playing", "paused"))
        _make_router(services, dev)
        dev.emit("deviceState", "playing")

        with caplog.at_level(logging.DEBUG, logger="pyATVBridge.router"):
            dev.emit_error("deviceState", ConnectionError("lost"))

        assert _detected(services, "deviceState") == {"playing": True, "paused": False}
        assert not [r for r in caplog.records if r.name == "pyATVBridge.router"]

    def test_groups_are_independent(self):
        dev = _FakeDevice()
        services = _reconcile(states=("playing",), apps=("com.x", "com.y"))
        _make_router(services, dev)

        dev.emit("deviceState", "playing")
        dev.emit("app", "com.y")

        assert _detected(services, "deviceState") == {"playing": True}
        assert _detected(services, "app") == {"com.x": False, "com.y": True}

    def test_sensor_events_do_not_touch_power(self):
        dev = _FakeDevice()
        services = _reconcile()
        _make_router(services, dev)
        dev.emit("deviceState", "playing")
        assert _on(services) is None
