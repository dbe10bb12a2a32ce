import logging
from typing import Any, Dict, Optional

import voluptuous as vol

_LOGGER = logging.getLogger(__name__)

from homeassistant.components.vacuum import (
    StateVacuumEntity,
    VacuumEntityFeature,
    VacuumActivity,  # Note: This requires Home Assistant 2025.1 or later
)
from homeassistant.exceptions import HomeAssistantError
from homeassistant.helpers import config_validation as cv
from homeassistant.helpers import entity_platform
from homeassistant.helpers.update_coordinator import CoordinatorEntity

from .api import NeatoError
from .const import (
    CAPABILITY_VACUUM_STATE,
    DEFAULT_SPOT_HEIGHT,
    DEFAULT_SPOT_WIDTH,
    DOMAIN,
    VERSION,
)
from .coordinator import BotvacDataUpdateCoordinator
from .driver import BotvacDriver, RobotNotInitialized
from .models import SemanticState

SUPPORTED_FEATURES = (
    VacuumEntityFeature.START
    | VacuumEntityFeature.STOP
    | VacuumEntityFeature.PAUSE
    | VacuumEntityFeature.RETURN_HOME
    | VacuumEntityFeature.CLEAN_SPOT
    | VacuumEntityFeature.STATE
)

ACTIVITY_MAP = {
    SemanticState.STOPPED: VacuumActivity.IDLE,
    SemanticState.CLEANING: VacuumActivity.CLEANING,
    SemanticState.SPOT_CLEANING: VacuumActivity.CLEANING,
    SemanticState.DOCKED: VacuumActivity.DOCKED,
    SemanticState.CHARGING: VacuumActivity.DOCKED,
}

ATTR_ECO = "eco"
ATTR_SPOT_WIDTH = "spot_width"
ATTR_SPOT_HEIGHT = "spot_height"
ATTR_TWO_PASS = "two_pass"

SERVICE_START_HOUSE_CLEANING = "start_house_cleaning"
SERVICE_STOP_HOUSE_CLEANING = "stop_house_cleaning"
SERVICE_PAUSE_HOUSE_CLEANING = "pause_house_cleaning"
SERVICE_RESUME_HOUSE_CLEANING = "resume_house_cleaning"
SERVICE_SEND_TO_BASE = "send_to_base"
SERVICE_START_SPOT_CLEANING = "start_spot_cleaning"


async def async_setup_entry(hass, entry, async_add_entities):
    """Set up the vacuum platform."""
    data = hass.data[DOMAIN][entry.entry_id]
    driver: BotvacDriver = data["driver"]
    hub = data["hub"]

    entities = [
        BotvacVacuum(hub.coordinator(robot["serial"]), driver, robot["name"])
        for robot in entry.data.get("robots", [])
    ]
    async_add_entities(entities)

    platform = entity_platform.async_get_current_platform()
    platform.async_register_entity_service(
        SERVICE_START_HOUSE_CLEANING,
        {vol.Optional(ATTR_ECO, default=True): cv.boolean},
        "async_start_house_cleaning",
    )
    platform.async_register_entity_service(SERVICE_STOP_HOUSE_CLEANING, {}, "async_stop_house_cleaning")
    platform.async_register_entity_service(SERVICE_PAUSE_HOUSE_CLEANING, {}, "async_pause_house_cleaning")
    platform.async_register_entity_service(SERVICE_RESUME_HOUSE_CLEANING, {}, "async_resume_house_cleaning")
    platform.async_register_entity_service(SERVICE_SEND_TO_BASE, {}, "async_send_to_base")
    platform.async_register_entity_service(
        SERVICE_START_SPOT_CLEANING,
        {
            vol.Optional(ATTR_ECO, default=True): cv.boolean,
            vol.Optional(ATTR_SPOT_WIDTH, default=DEFAULT_SPOT_WIDTH): vol.All(
                vol.Coerce(int), vol.Range(min=100, max=400)
            ),
            vol.Optional(ATTR_SPOT_HEIGHT, default=DEFAULT_SPOT_HEIGHT): vol.All(
                vol.Coerce(int), vol.Range(min=100, max=400)
            ),
            vol.Optional(ATTR_TWO_PASS, default=True): cv.boolean,
        },
        "async_start_spot_cleaning",
    )


class BotvacVacuum(CoordinatorEntity[BotvacDataUpdateCoordinator], StateVacuumEntity):
    """The vacuum-state capability of a Botvac."""

    _attr_supported_features = SUPPORTED_FEATURES

    def __init__(self, coordinator: BotvacDataUpdateCoordinator, driver: BotvacDriver, device_name: str):
        """Initialize the vacuum."""
        super().__init__(coordinator)
        self._driver = driver
        self._serial_number = coordinator.serial
        self._name = device_name

    @property
    def _state(self) -> Optional[str]:
        return self.coordinator.capabilities.get(CAPABILITY_VACUUM_STATE)

    @property
    def unique_id(self) -> str:
        """Return a unique ID for this entity."""
        return f"{DOMAIN}_{self._serial_number}"

    @property
    def device_info(self) -> Dict[str, Any]:
        """Return device information about this entity."""
        return {
            "identifiers": {(DOMAIN, self._serial_number)},
            "name": self._name,
            "manufacturer": "Neato Robotics",
            "model": "Botvac Connected",
            "sw_version": VERSION,
        }

    @property
    def name(self) -> str:
        return self._name

    @property
    def available(self) -> bool:
        return self.coordinator.unavailable_reason is None

    @property
    def activity(self) -> Optional[VacuumActivity]:
        """Return the current activity of the vacuum."""
        if self._state is None:
            return None
        return ACTIVITY_MAP.get(SemanticState(self._state), VacuumActivity.IDLE)

    @property
    def extra_state_attributes(self) -> Dict[str, Any]:
        attributes: Dict[str, Any] = {"vacuum_state": self._state}
        reason = self.coordinator.unavailable_reason
        if reason:
            attributes["unavailable_reason"] = reason
        return attributes

    def _set_state(self, command: SemanticState) -> None:
        """Show the requested state now; the driver reverts it on failure."""
        if not self._driver.set_state(self._serial_number, command):
            raise HomeAssistantError(f"{self._name} is not initialised yet")
        self.coordinator.async_set_capability(CAPABILITY_VACUUM_STATE, command.value)

    async def async_start(self) -> None:
        self._set_state(SemanticState.CLEANING)

    async def async_pause(self) -> None:
        self._set_state(SemanticState.STOPPED)

    async def async_stop(self, **kwargs) -> None:
        self._set_state(SemanticState.STOPPED)

    async def async_return_to_base(self, **kwargs) -> None:
        self._set_state(SemanticState.DOCKED)

    async def async_clean_spot(self, **kwargs) -> None:
        self._set_state(SemanticState.SPOT_CLEANING)

    async def _run_action(self, action, *args, **kwargs) -> None:
        try:
            await action(self._serial_number, *args, **kwargs)
        except (NeatoError, RobotNotInitialized) as err:
            _LOGGER.error("Action for %s failed: %s", self._name, err)
            raise HomeAssistantError(f"{self._name}: {err}") from err

    async def async_start_house_cleaning(self, eco: bool = True) -> None:
        await self._run_action(self._driver.start_house_cleaning, eco=eco)

    async def async_stop_house_cleaning(self) -> None:
        await self._run_action(self._driver.stop_house_cleaning)

    async def async_pause_house_cleaning(self) -> None:
        await self._run_action(self._driver.pause_house_cleaning)

    async def async_resume_house_cleaning(self) -> None:
        await self._run_action(self._driver.resume_house_cleaning)

    async def async_send_to_base(self) -> None:
        await self._run_action(self._driver.send_to_base)

    async def async_start_spot_cleaning(
        self,
        eco: bool = True,
        spot_width: int = DEFAULT_SPOT_WIDTH,
        spot_height: int = DEFAULT_SPOT_HEIGHT,
        two_pass: bool = True,
    ) -> None:
        await self._run_action(
            self._driver.start_spot_cleaning,
            eco=eco,
            width=spot_width,
            height=spot_height,
            two_pass=two_pass,
        )
