"""Sensor platform for BotvacConnected integration."""

from homeassistant.components.sensor import SensorDeviceClass, SensorEntity, SensorStateClass
from homeassistant.const import PERCENTAGE
from homeassistant.helpers.update_coordinator import CoordinatorEntity

from .const import CAPABILITY_BATTERY, DOMAIN
from .coordinator import BotvacDataUpdateCoordinator


async def async_setup_entry(hass, entry, async_add_entities):
    """Set up one battery sensor per robot."""
    hub = hass.data[DOMAIN][entry.entry_id]["hub"]

    entities = [
        BotvacBatterySensor(hub.coordinator(robot["serial"]), robot["name"])
        for robot in entry.data.get("robots", [])
    ]
    async_add_entities(entities)


class BotvacBatterySensor(CoordinatorEntity[BotvacDataUpdateCoordinator], SensorEntity):
    """Battery level pushed by the driver whenever the charge changes."""

    _attr_device_class = SensorDeviceClass.BATTERY
    _attr_state_class = SensorStateClass.MEASUREMENT
    _attr_native_unit_of_measurement = PERCENTAGE
    _attr_icon = "mdi:battery"
    _attr_has_entity_name = True
    _attr_translation_key = "battery_level"

    def __init__(self, coordinator: BotvacDataUpdateCoordinator, device_name):
        super().__init__(coordinator)
        serial_number = coordinator.serial
        self._attr_unique_id = f"{serial_number}_battery_level"
        self._attr_device_info = {
            "identifiers": {(DOMAIN, serial_number)},
            "name": device_name,
            "manufacturer": "Neato Robotics",
            "model": "Botvac Connected",
        }

    @property
    def native_value(self):
        return self.coordinator.capabilities.get(CAPABILITY_BATTERY)

    @property
    def available(self):
        # a failed poll keeps the last charge; only the driver marks a robot unavailable
        return self.coordinator.unavailable_reason is None
