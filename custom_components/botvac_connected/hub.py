"""Home Assistant side of the driver's hub facade."""
from __future__ import annotations

import logging
from typing import Any, Optional

from homeassistant.const import CONF_DEVICE_ID, CONF_TYPE
from homeassistant.core import HomeAssistant, callback
from homeassistant.helpers import device_registry as dr

from .const import DOMAIN, EVENT_BOTVAC
from .coordinator import BotvacDataUpdateCoordinator
from .driver import PollCallback
from .models import RobotStatus

_LOGGER = logging.getLogger(__name__)


class HomeAssistantHub:
    """Routes driver updates to each robot's coordinator and fires trigger events."""

    def __init__(self, hass: HomeAssistant, entry=None):
        self._hass = hass
        self._entry = entry
        self.coordinators: dict[str, BotvacDataUpdateCoordinator] = {}

    def coordinator(self, device_id: str) -> BotvacDataUpdateCoordinator:
        """Return the robot's coordinator, creating it on first use."""
        coordinator = self.coordinators.get(device_id)
        if coordinator is None:
            coordinator = BotvacDataUpdateCoordinator(self._hass, self._entry, device_id)
            self.coordinators[device_id] = coordinator
        return coordinator

    @callback
    def set_available(self, device_id: str) -> None:
        self.coordinator(device_id).async_set_unavailable_reason(None)

    @callback
    def set_unavailable(self, device_id: str, reason: str) -> None:
        _LOGGER.debug("Device %s unavailable: %s", device_id, reason)
        self.coordinator(device_id).async_set_unavailable_reason(reason)

    @callback
    def realtime(self, device_id: str, capability: str, value: Any) -> None:
        self.coordinator(device_id).async_set_capability(capability, value)

    @callback
    def start_polling(
        self, device_id: str, interval: float, poll: PollCallback, status: RobotStatus
    ) -> None:
        _LOGGER.debug("Polling %s every %.1f seconds", device_id, interval)
        self.coordinator(device_id).async_start_polling(interval, poll, status)

    @callback
    def stop_polling(self, device_id: str) -> None:
        coordinator = self.coordinators.get(device_id)
        if coordinator is not None:
            coordinator.async_stop_polling()

    @callback
    def trigger(self, device_id: str, event: str, tokens: Optional[dict] = None) -> None:
        device = dr.async_get(self._hass).async_get_device(identifiers={(DOMAIN, device_id)})
        if device is None:
            _LOGGER.debug("No registered device for %s, dropping trigger %s", device_id, event)
            return

        _LOGGER.info("Trigger flow card '%s' for robot %s", event, device_id)
        data = {CONF_DEVICE_ID: device.id, CONF_TYPE: event, "serial": device_id}
        if tokens:
            data.update(tokens)
        self._hass.bus.async_fire(EVENT_BOTVAC, data)


def serial_for_device(hass: HomeAssistant, device_id: str) -> Optional[str]:
    """Return the robot serial behind a device registry id."""
    device = dr.async_get(hass).async_get(device_id)
    if device is None:
        return None
    for domain, identifier in device.identifiers:
        if domain == DOMAIN:
            return identifier
    return None


def driver_for_serial(hass: HomeAssistant, serial: str):
    """Find the driver that owns a robot, across config entries."""
    for data in hass.data.get(DOMAIN, {}).values():
        driver = data["driver"]
        if driver.get_robot(serial) is not None:
            return driver
    return None
