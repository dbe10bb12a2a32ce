"""Per-robot polling for BotvacConnected."""
from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Optional

from homeassistant.core import callback
from homeassistant.helpers.update_coordinator import DataUpdateCoordinator, UpdateFailed

from .api import NeatoError
from .driver import PollCallback
from .models import RobotStatus

_LOGGER = logging.getLogger(__name__)


class BotvacDataUpdateCoordinator(DataUpdateCoordinator[RobotStatus]):
    """Polls one robot while the driver has it running.

    Besides the last fetched status it holds the capability values the driver
    pushed, which may differ from the status while a command is pending, and
    the reason the robot is unavailable.
    """

    def __init__(self, hass, entry, serial: str):
        super().__init__(
            hass,
            _LOGGER,
            config_entry=entry,
            name=serial,
            update_interval=None,
        )
        self.serial = serial
        self.capabilities: dict[str, Any] = {}
        self.unavailable_reason: Optional[str] = None
        self._poll: Optional[PollCallback] = None

    @callback
    def async_start_polling(self, interval: float, poll: PollCallback, status: RobotStatus) -> None:
        self._poll = poll
        self.update_interval = timedelta(seconds=interval)
        # schedules the next tick one interval from now
        self.async_set_updated_data(status)

    @callback
    def async_stop_polling(self) -> None:
        self._poll = None
        self.update_interval = None

    @callback
    def async_set_capability(self, capability: str, value: Any) -> None:
        self.capabilities[capability] = value
        self.async_update_listeners()

    @callback
    def async_set_unavailable_reason(self, reason: Optional[str]) -> None:
        self.unavailable_reason = reason
        self.async_update_listeners()

    async def _async_update_data(self) -> RobotStatus:
        if self._poll is None:
            return self.data
        try:
            status = await self._poll()
        except NeatoError as err:
            raise UpdateFailed(f"Failed to poll status of {self.serial}: {err}") from err
        # None means the robot was replaced while fetching
        return status if status is not None else self.data
