"""
Tests for the Home Assistant hub, coordinator and vacuum entity

Needs the homeassistant extra installed.
"""

from types import SimpleNamespace

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

pytest.importorskip("homeassistant.helpers.update_coordinator")

from homeassistant.exceptions import HomeAssistantError
from homeassistant.helpers.update_coordinator import UpdateFailed

from custom_components.botvac_connected.api import NeatoConnectionError
from custom_components.botvac_connected.const import EVENT_BOTVAC
from custom_components.botvac_connected.coordinator import BotvacDataUpdateCoordinator
from custom_components.botvac_connected.hub import HomeAssistantHub
from custom_components.botvac_connected.models import SemanticState
from custom_components.botvac_connected.vacuum import BotvacVacuum

from conftest import make_status

SERIAL = "OPS01234-ABCDEF"


def make_coordinator():
    coordinator = MagicMock()
    coordinator.serial = SERIAL
    coordinator.capabilities = {}
    coordinator.unavailable_reason = None
    return coordinator


class TestHubTrigger:

    def test_fires_event_with_device_id_and_tokens(self):
        hass = MagicMock()
        registry = MagicMock()
        registry.async_get_device.return_value = SimpleNamespace(id="device-1")
        hub = HomeAssistantHub(hass)

        with patch("custom_components.botvac_connected.hub.dr.async_get", return_value=registry):
            hub.trigger(SERIAL, "starts_charging", {"charge": 55})

        registry.async_get_device.assert_called_once_with(
            identifiers={("botvac_connected", SERIAL)}
        )
        hass.bus.async_fire.assert_called_once_with(
            EVENT_BOTVAC,
            {"device_id": "device-1", "type": "starts_charging", "serial": SERIAL, "charge": 55},
        )

    def test_unregistered_device_fires_nothing(self):
        hass = MagicMock()
        registry = MagicMock()
        registry.async_get_device.return_value = None
        hub = HomeAssistantHub(hass)

        with patch("custom_components.botvac_connected.hub.dr.async_get", return_value=registry):
            hub.trigger(SERIAL, "enters_dock")

        hass.bus.async_fire.assert_not_called()


class TestHubRouting:

    def test_capability_and_availability_go_to_coordinator(self):
        hub = HomeAssistantHub(MagicMock())
        coordinator = make_coordinator()
        hub.coordinators[SERIAL] = coordinator

        hub.realtime(SERIAL, "measure_battery", 42)
        hub.set_unavailable(SERIAL, "Robot not available at the moment")
        hub.set_available(SERIAL)

        coordinator.async_set_capability.assert_called_once_with("measure_battery", 42)
        assert [call.args for call in coordinator.async_set_unavailable_reason.call_args_list] == [
            ("Robot not available at the moment",),
            (None,),
        ]

    def test_polling_start_and_stop(self):
        hub = HomeAssistantHub(MagicMock())
        coordinator = make_coordinator()
        hub.coordinators[SERIAL] = coordinator
        poll = AsyncMock()

        hub.start_polling(SERIAL, 60.05, poll, make_status())
        hub.stop_polling(SERIAL)
        hub.stop_polling("unknown")

        coordinator.async_start_polling.assert_called_once_with(60.05, poll, make_status())
        coordinator.async_stop_polling.assert_called_once_with()


class TestCoordinator:

    @pytest.fixture
    def coordinator(self):
        return BotvacDataUpdateCoordinator(MagicMock(), MagicMock(), SERIAL)

    async def test_update_runs_poll(self, coordinator):
        poll = AsyncMock(return_value=make_status(charge=50))
        coordinator.async_start_polling(60, poll, make_status())

        assert coordinator.update_interval.total_seconds() == 60
        assert await coordinator._async_update_data() == make_status(charge=50)

    async def test_vendor_error_is_update_failed(self, coordinator):
        poll = AsyncMock(side_effect=NeatoConnectionError("timeout"))
        coordinator.async_start_polling(60, poll, make_status())

        with pytest.raises(UpdateFailed):
            await coordinator._async_update_data()

    async def test_stopped_polling_keeps_last_status(self, coordinator):
        poll = AsyncMock()
        coordinator.async_start_polling(60, poll, make_status(charge=30))
        coordinator.async_stop_polling()

        assert coordinator.update_interval is None
        assert await coordinator._async_update_data() == make_status(charge=30)
        poll.assert_not_awaited()

    async def test_replaced_robot_keeps_last_status(self, coordinator):
        poll = AsyncMock(return_value=None)
        coordinator.async_start_polling(60, poll, make_status(charge=30))

        assert await coordinator._async_update_data() == make_status(charge=30)


class TestVacuumEntity:

    def test_set_state_shows_requested_state(self):
        coordinator = make_coordinator()
        driver = MagicMock()
        driver.set_state.return_value = True
        vacuum = BotvacVacuum(coordinator, driver, "Kitchen")

        vacuum._set_state(SemanticState.CLEANING)

        driver.set_state.assert_called_once_with(SERIAL, SemanticState.CLEANING)
        coordinator.async_set_capability.assert_called_once_with("vacuumcleaner_state", "cleaning")

    def test_set_state_before_initialisation_fails(self):
        coordinator = make_coordinator()
        driver = MagicMock()
        driver.set_state.return_value = False
        vacuum = BotvacVacuum(coordinator, driver, "Kitchen")

        with pytest.raises(HomeAssistantError):
            vacuum._set_state(SemanticState.DOCKED)

        coordinator.async_set_capability.assert_not_called()

    def test_activity_and_availability_follow_coordinator(self):
        coordinator = make_coordinator()
        vacuum = BotvacVacuum(coordinator, MagicMock(), "Kitchen")
        assert vacuum.activity is None

        coordinator.capabilities["vacuumcleaner_state"] = "charging"
        assert vacuum.activity == "docked"
        assert vacuum.available is True

        coordinator.unavailable_reason = "Model BotVacD7Connected is unknown"
        assert vacuum.available is False
        assert vacuum.extra_state_attributes["unavailable_reason"] == (
            "Model BotVacD7Connected is unknown"
        )
