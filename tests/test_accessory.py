"""Tests for the Accessory / Service / Characteristic model."""

from __future__ import annotations

from typing import Any, List
from unittest.mock import AsyncMock, MagicMock

import pytest

from pyATVBridge.accessory import Accessory, Characteristic, Service
from pyATVBridge.enums import CharacteristicType, ServiceType


def _make_accessory(**kwargs: Any) -> Accessory:
    defaults: dict[str, Any] = {"uuid": "acc-1", "display_name": "Living Room"}
    defaults.update(kwargs)
    return Accessory(**defaults)


# ===========================================================================
# Accessory
# ===========================================================================


class TestAccessoryConstruction:

    def test_has_information_service(self):
        acc = _make_accessory()
        assert len(acc.services) == 1
        info = acc.services[0]
        assert info.service_type is ServiceType.ACCESSORY_INFORMATION
        assert info.display_name == "Living Room"

    def test_context_defaults_to_empty_dict(self):
        assert _make_accessory().context == {}

    def test_context_is_kept(self):
        ctx = {"device": {"name": "x"}}
        assert _make_accessory(context=ctx).context is ctx

    def test_services_is_copy(self):
        acc = _make_accessory()
        acc.services.clear()
        assert len(acc.services) == 1


class TestServiceManagement:

    def test_add_service(self):
        acc = _make_accessory()
        svc = acc.add_service(ServiceType.SWITCH, "Power State")
        assert svc in acc.services
        assert svc.accessory is acc
        assert svc.subtype is None

    def test_add_service_defaults_display_name(self):
        acc = _make_accessory()
        svc = acc.add_service(ServiceType.SWITCH)
        assert svc.display_name == "Living Room"

    def test_add_duplicate_raises(self):
        acc = _make_accessory()
        acc.add_service(ServiceType.MOTION_SENSOR, "app.x", "app.x")
        with pytest.raises(ValueError):
            acc.add_service(ServiceType.MOTION_SENSOR, "other", "app.x")

    def test_same_type_different_subtype_allowed(self):
        acc = _make_accessory()
        acc.add_service(ServiceType.MOTION_SENSOR, "a", "deviceState.playing")
        acc.add_service(ServiceType.MOTION_SENSOR, "b", "deviceState.paused")
        assert len(acc.services) == 3

    def test_get_service_by_type(self):
        acc = _make_accessory()
        svc = acc.add_service(ServiceType.SWITCH, "Power State")
        assert acc.get_service(ServiceType.SWITCH) is svc
        assert acc.get_service(ServiceType.MOTION_SENSOR) is None

    def test_get_service_by_subtype_or_name(self):
        acc = _make_accessory()
        svc = acc.add_service(ServiceType.MOTION_SENSOR, "Sensor", "app.tv")
        assert acc.get_service("app.tv") is svc
        assert acc.get_service("Sensor") is svc
        assert acc.get_service("missing") is None

    def test_get_service_prefers_subtype(self):
        acc = _make_accessory()
        by_name = acc.add_service(ServiceType.MOTION_SENSOR, "key", "a")
        by_subtype = acc.add_service(ServiceType.MOTION_SENSOR, "b", "key")
        assert acc.get_service("key") is by_subtype
        assert acc.get_service("key") is not by_name

    def test_remove_service(self):
        acc = _make_accessory()
        svc = acc.add_service(ServiceType.SWITCH)
        assert acc.remove_service(svc) is True
        assert svc not in acc.services
        assert acc.remove_service(svc) is False

    def test_structure_change_schedules_save(self):
        acc = _make_accessory()
        bridge = MagicMock()
        acc._bridge = bridge

        svc = acc.add_service(ServiceType.SWITCH)
        acc.remove_service(svc)

        assert bridge._schedule_auto_save.call_count == 2


# ===========================================================================
# Service / Characteristic
# ===========================================================================


class TestCharacteristics:

    def test_get_characteristic_creates_once(self):
        svc = _make_accessory().add_service(ServiceType.SWITCH)
        on = svc.get_characteristic(CharacteristicType.ON)
        assert isinstance(on, Characteristic)
        assert on.value is None
        assert svc.get_characteristic(CharacteristicType.ON) is on
        assert on.service is svc

    def test_set_characteristic_chains(self):
        svc = _make_accessory().add_service(ServiceType.ACCESSORY_INFORMATION, subtype="x")
        result = (
            svc.set_characteristic(CharacteristicType.MANUFACTURER, "Apple Inc.")
            .set_characteristic(CharacteristicType.MODEL, "AppleTV")
        )
        assert result is svc
        assert svc.get_characteristic(CharacteristicType.MODEL).value == "AppleTV"

    def test_update_value_does_not_call_handler(self):
        svc = _make_accessory().add_service(ServiceType.SWITCH)
        handler = AsyncMock()
        on = svc.get_characteristic(CharacteristicType.ON).on_set(handler)

        on.update_value(True)

        assert on.value is True
        handler.assert_not_called()

    @pytest.mark.asyncio
    async def test_handle_set_awaits_handler_then_stores(self):
        svc = _make_accessory().add_service(ServiceType.SWITCH)
        seen: List[Any] = []

        async def handler(value: Any) -> None:
            seen.append((value, on.value))

        on = svc.get_characteristic(CharacteristicType.ON).on_set(handler)
        await on.handle_set(True)

        assert seen == [(True, None)]
        assert on.value is True

    @pytest.mark.asyncio
    async def test_handle_set_failure_propagates(self):
        svc = _make_accessory().add_service(ServiceType.SWITCH)
        handler = AsyncMock(side_effect=ConnectionError("unreachable"))
        on = svc.get_characteristic(CharacteristicType.ON).on_set(handler)
        on.update_value(False)

        with pytest.raises(ConnectionError):
            await on.handle_set(True)

        assert on.value is False

    @pytest.mark.asyncio
    async def test_handle_set_without_handler(self):
        svc = _make_accessory().add_service(ServiceType.SWITCH)
        on = svc.get_characteristic(CharacteristicType.ON)
        await on.handle_set(True)
        assert on.value is True


# ===========================================================================
# Persistence
# ===========================================================================


class TestAccessoryPersistence:

    def test_property_tree(self):
        acc = _make_accessory(context={"device": {"host": "10.0.0.2"}})
        acc.add_service(ServiceType.SWITCH, "Power State")
        acc.add_service(ServiceType.MOTION_SENSOR, "app.tv", "app.tv")

        tree = acc.get_property_tree()

        assert tree["uuid"] == "acc-1"
        assert tree["displayName"] == "Living Room"
        assert tree["context"] == {"device": {"host": "10.0.0.2"}}
        assert tree["services"] == [
            {"type": "AccessoryInformation", "displayName": "Living Room", "subtype": None},
            {"type": "Switch", "displayName": "Power State", "subtype": None},
            {"type": "MotionSensor", "displayName": "app.tv", "subtype": "app.tv"},
        ]

    def test_restore_keeps_structure_not_values(self):
        acc = _make_accessory()
        acc.add_service(ServiceType.SWITCH, "Power State").set_characteristic(
            CharacteristicType.ON, True
        )

        restored = Accessory.from_property_tree(acc.get_property_tree())

        assert [s.service_type for s in restored.services] == [
            ServiceType.ACCESSORY_INFORMATION, ServiceType.SWITCH,
        ]
        switch = restored.get_service(ServiceType.SWITCH)
        assert isinstance(switch, Service)
        assert switch.get_characteristic(CharacteristicType.ON).value is None

    def test_restore_skips_unknown_service_type(self):
        tree = {
            "uuid": "acc-2",
            "displayName": "Bedroom",
            "services": [
                {"type": "AccessoryInformation", "displayName": "Bedroom"},
                {"type": "Television", "displayName": "TV"},
            ],
        }
        restored = Accessory.from_property_tree(tree)
        assert len(restored.services) == 1

    def test_restore_does_not_schedule_save(self):
        acc = _make_accessory()
        acc._bridge = MagicMock()
        acc._apply_state({"services": [{"type": "Switch", "displayName": "P"}]})
        acc._bridge._schedule_auto_save.assert_not_called()
