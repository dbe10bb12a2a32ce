import logging
from homeassistant import config_entries
from homeassistant.const import CONF_EMAIL, CONF_PASSWORD
from homeassistant.core import callback
from homeassistant.helpers import config_validation as cv
from homeassistant.helpers.aiohttp_client import async_get_clientsession
import voluptuous as vol

from .api import NeatoAccount, NeatoAuthError, NeatoError
from .const import (
    CONF_CHARGING_TRIGGERS,
    CONF_POLLING_INTERVAL,
    CONF_ROBOTS,
    DEFAULT_POLLING_INTERVAL,
    DOMAIN,
    MIN_POLLING_INTERVAL,
)

_LOGGER = logging.getLogger(__name__)


class BotvacConnectedConfigFlow(config_entries.ConfigFlow, domain=DOMAIN):
    VERSION = 1
    CONNECTION_CLASS = config_entries.CONN_CLASS_CLOUD_POLL

    def __init__(self):
        """Initialize the config flow."""
        self._email = None
        self._password = None
        self._robots = []

    @staticmethod
    @callback
    def async_get_options_flow(config_entry):
        return BotvacConnectedOptionsFlow()

    def _create_entry(self, robots):
        return self.async_create_entry(
            title=self._email,
            data={
                CONF_EMAIL: self._email,
                CONF_PASSWORD: self._password,
                CONF_ROBOTS: [
                    {"name": r["name"], "serial": r["serial"], "secret_key": r["secret_key"]}
                    for r in robots
                ],
            },
            options={CONF_POLLING_INTERVAL: DEFAULT_POLLING_INTERVAL},
        )

    async def async_step_user(self, user_input=None):
        """Log in and list the robots on the account."""
        errors = {}

        if user_input is not None:
            self._email = user_input[CONF_EMAIL]
            self._password = user_input[CONF_PASSWORD]

            await self.async_set_unique_id(self._email.lower())
            self._abort_if_unique_id_configured()

            try:
                self._robots = await NeatoAccount.discover_robots(
                    self._email, self._password, async_get_clientsession(self.hass)
                )
            except NeatoAuthError:
                errors["base"] = "invalid_auth"
            except NeatoError as e:
                _LOGGER.error("Error listing robots: %s", e)
                errors["base"] = "cannot_connect"
            else:
                _LOGGER.info("Found devices: %s", [r["serial"] for r in self._robots])
                if not self._robots:
                    errors["base"] = "no_devices"
                elif len(self._robots) == 1:
                    # If only one robot is found, skip the selection step
                    return self._create_entry(self._robots)
                else:
                    return await self.async_step_select_devices()

        data_schema = vol.Schema({
            vol.Required(CONF_EMAIL): str,
            vol.Required(CONF_PASSWORD): str,
        })

        return self.async_show_form(step_id="user", data_schema=data_schema, errors=errors)

    async def async_step_select_devices(self, user_input=None):
        """Pick which of the account's robots to add."""
        errors = {}

        if user_input is not None:
            selected = set(user_input["devices"])
            robots = [r for r in self._robots if r["serial"] in selected]
            if robots:
                return self._create_entry(robots)
            errors["base"] = "no_devices_selected"

        device_options = {r["serial"]: f"{r['name']} ({r['serial']})" for r in self._robots}
        data_schema = vol.Schema({
            vol.Required("devices", default=list(device_options)): cv.multi_select(device_options),
        })

        return self.async_show_form(step_id="select_devices", data_schema=data_schema, errors=errors)

    async def async_step_reauth(self, entry_data):
        self._email = entry_data[CONF_EMAIL]
        return await self.async_step_reauth_confirm()

    async def async_step_reauth_confirm(self, user_input=None):
        errors = {}

        if user_input is not None:
            account = NeatoAccount(
                self._email, user_input[CONF_PASSWORD], async_get_clientsession(self.hass)
            )
            try:
                await account.login()
            except NeatoAuthError:
                errors["base"] = "invalid_auth"
            except NeatoError:
                errors["base"] = "cannot_connect"
            else:
                return self.async_update_reload_and_abort(
                    self._get_reauth_entry(),
                    data_updates={CONF_PASSWORD: user_input[CONF_PASSWORD]},
                )

        return self.async_show_form(
            step_id="reauth_confirm",
            data_schema=vol.Schema({vol.Required(CONF_PASSWORD): str}),
            errors=errors,
            description_placeholders={"email": self._email},
        )


class BotvacConnectedOptionsFlow(config_entries.OptionsFlow):
    """Per-entry robot settings."""

    async def async_step_init(self, user_input=None):
        if user_input is not None:
            return self.async_create_entry(title="", data=user_input)

        options = self.config_entry.options
        data_schema = vol.Schema({
            vol.Required(
                CONF_POLLING_INTERVAL,
                default=options.get(CONF_POLLING_INTERVAL, DEFAULT_POLLING_INTERVAL),
            ): vol.All(vol.Coerce(int), vol.Range(min=MIN_POLLING_INTERVAL)),
            vol.Required(
                CONF_CHARGING_TRIGGERS,
                default=options.get(CONF_CHARGING_TRIGGERS, False),
            ): bool,
        })
        return self.async_show_form(step_id="init", data_schema=data_schema)
