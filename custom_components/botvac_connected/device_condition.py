"""Device conditions (flow condition cards) for BotvacConnected."""
from __future__ import annotations

import voluptuous as vol

from homeassistant.const import CONF_CONDITION, CONF_DEVICE_ID, CONF_DOMAIN, CONF_TYPE
from homeassistant.core import HomeAssistant, callback
from homeassistant.helpers import config_validation as cv
from homeassistant.helpers.condition import ConditionCheckerType
from homeassistant.helpers.typing import ConfigType, TemplateVarsType

from .const import CONDITION_IS_CLEANING, CONDITION_TYPES, DOMAIN
from .hub import driver_for_serial, serial_for_device

CONDITION_SCHEMA = cv.DEVICE_CONDITION_BASE_SCHEMA.extend(
    {vol.Required(CONF_TYPE): vol.In(CONDITION_TYPES)}
)


async def async_get_conditions(hass: HomeAssistant, device_id: str) -> list[dict]:
    return [
        {
            CONF_CONDITION: "device",
            CONF_DEVICE_ID: device_id,
            CONF_DOMAIN: DOMAIN,
            CONF_TYPE: condition_type,
        }
        for condition_type in CONDITION_TYPES
    ]


@callback
def async_condition_from_config(hass: HomeAssistant, config: ConfigType) -> ConditionCheckerType:
    device_id = config[CONF_DEVICE_ID]
    condition_type = config[CONF_TYPE]

    @callback
    def test_robot(hass: HomeAssistant, variables: TemplateVarsType = None) -> bool:
        serial = serial_for_device(hass, device_id)
        driver = driver_for_serial(hass, serial) if serial else None
        if driver is None:
            return False
        if condition_type == CONDITION_IS_CLEANING:
            return driver.is_cleaning(serial)
        return driver.is_docked(serial)

    return test_robot
