"""Neato Botvac Connected integration for Home Assistant."""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .const import (
    CONF_CHARGING_TRIGGERS,
    CONF_POLLING_INTERVAL,
    CONF_ROBOTS,
    DEFAULT_POLLING_INTERVAL,
    DOMAIN,
    PLATFORMS,
    STARTUP,
)

if TYPE_CHECKING:
    from homeassistant.config_entries import ConfigEntry
    from homeassistant.core import HomeAssistant
    from homeassistant.helpers.device_registry import DeviceEntry

_LOGGER = logging.getLogger(__name__)


def robot_settings_from_entry(entry: ConfigEntry) -> list:
    """Build RobotSettings for every robot stored on the entry."""
    from .models import RobotSettings

    interval = entry.options.get(CONF_POLLING_INTERVAL, DEFAULT_POLLING_INTERVAL)
    return [
        RobotSettings.from_dict({**robot, CONF_POLLING_INTERVAL: interval})
        for robot in entry.data.get(CONF_ROBOTS, [])
    ]


async def async_setup(hass: HomeAssistant, config) -> bool:
    return True


async def async_setup_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    from homeassistant.const import CONF_EMAIL, CONF_PASSWORD
    from homeassistant.exceptions import ConfigEntryAuthFailed, ConfigEntryNotReady
    from homeassistant.helpers.aiohttp_client import async_get_clientsession

    from .api import NeatoAccount, NeatoAuthError, NeatoError, NeatoRobot
    from .driver import BotvacDriver
    from .hub import HomeAssistantHub

    _LOGGER.info(STARTUP)
    session = async_get_clientsession(hass)

    account = NeatoAccount(entry.data[CONF_EMAIL], entry.data[CONF_PASSWORD], session)
    try:
        await account.login()
    except NeatoAuthError as err:
        raise ConfigEntryAuthFailed(str(err)) from err
    except NeatoError as err:
        raise ConfigEntryNotReady(str(err)) from err

    hub = HomeAssistantHub(hass, entry)
    driver = BotvacDriver(
        hub,
        lambda settings: NeatoRobot(settings.serial, settings.secret_key, session),
        charging_triggers=entry.options.get(CONF_CHARGING_TRIGGERS, False),
    )
    await driver.async_init(robot_settings_from_entry(entry))

    hass.data.setdefault(DOMAIN, {})[entry.entry_id] = {
        "account": account,
        "driver": driver,
        "hub": hub,
        "options": dict(entry.options),
    }

    await hass.config_entries.async_forward_entry_setups(entry, PLATFORMS)

    # Entities are listening now, so the first status push reaches them
    driver.set_authorized(True)

    entry.async_on_unload(entry.add_update_listener(_options_update_listener))
    return True


async def _options_update_listener(hass: HomeAssistant, entry: ConfigEntry) -> None:
    """Re-create robots when their settings change."""
    data = hass.data[DOMAIN][entry.entry_id]
    if data["options"] == dict(entry.options):
        return
    data["options"] = dict(entry.options)

    driver = data["driver"]
    driver.charging_triggers = entry.options.get(CONF_CHARGING_TRIGGERS, False)
    for settings in robot_settings_from_entry(entry):
        driver.settings_changed(settings.serial, settings)


async def async_unload_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    unload_ok = await hass.config_entries.async_unload_platforms(entry, PLATFORMS)
    if unload_ok:
        data = hass.data[DOMAIN].pop(entry.entry_id)
        await data["driver"].async_shutdown()
    return unload_ok


async def async_remove_config_entry_device(
    hass: HomeAssistant, entry: ConfigEntry, device_entry: DeviceEntry
) -> bool:
    """Forget a robot the user deleted from the device registry."""
    serials = {ident for dom, ident in device_entry.identifiers if dom == DOMAIN}
    if not serials:
        return True

    hass.data[DOMAIN][entry.entry_id]["driver"].device_deleted(next(iter(serials)))

    robots = [r for r in entry.data.get(CONF_ROBOTS, []) if r.get("serial") not in serials]
    hass.config_entries.async_update_entry(entry, data={**entry.data, CONF_ROBOTS: robots})
    return True
