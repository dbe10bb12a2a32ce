"""Robot registry, status polling and command handling for BotvacConnected.

Nothing in this module imports Home Assistant. The driver talks to the hub
through a HubFacade and creates one vendor client per robot through the
client factory it is given.
"""
from __future__ import annotations

import asyncio
import logging
import random
from functools import partial
from typing import Any, Awaitable, Callable, Dict, Iterable, Optional, Protocol

from .api import NeatoError, NeatoRobot
from .const import (
    CAPABILITY_BATTERY,
    CAPABILITY_VACUUM_STATE,
    COMMAND_DELAY,
    DEFAULT_SPOT_HEIGHT,
    DEFAULT_SPOT_WIDTH,
    STATE_BUSY,
    STATE_TRIGGERS,
    SUPPORTED_MODELS,
    TRIGGER_ENTERS_DOCK,
    TRIGGER_LEAVES_DOCK,
    TRIGGER_STARTS_CHARGING,
    TRIGGER_STOPS_CHARGING,
    UNAVAILABLE_REASON,
)
from .models import RobotSettings, RobotStatus, SemanticState, translate

_LOGGER = logging.getLogger(__name__)

# Seconds of random offset added to each robot's polling interval
POLL_JITTER = 0.1


class RobotNotInitialized(Exception):
    """The device has no live robot (unknown id or still initialising)."""


# Fetches and dispatches one status; returns None when the robot was replaced
PollCallback = Callable[[], Awaitable[Optional[RobotStatus]]]


class HubFacade(Protocol):
    """What the driver needs from the home automation hub."""

    def set_available(self, device_id: str) -> None: ...

    def set_unavailable(self, device_id: str, reason: str) -> None: ...

    def realtime(self, device_id: str, capability: str, value: Any) -> None: ...

    def trigger(self, device_id: str, event: str, tokens: Optional[dict] = None) -> None: ...

    def start_polling(
        self, device_id: str, interval: float, poll: PollCallback, status: RobotStatus
    ) -> None: ...

    def stop_polling(self, device_id: str) -> None: ...


ClientFactory = Callable[[RobotSettings], NeatoRobot]


class Robot:
    """A live robot: settings, vendor client, pending command and last status."""

    def __init__(self, settings: RobotSettings, client: NeatoRobot):
        self.settings = settings
        self.client = client
        self.cached_status: Optional[RobotStatus] = None
        self.poll_interval: Optional[float] = None
        self.pending_command: Optional[asyncio.TimerHandle] = None

    @property
    def name(self) -> str:
        return self.settings.name

    def cancel_command(self) -> None:
        if self.pending_command is not None:
            self.pending_command.cancel()
            self.pending_command = None


class BotvacDriver:
    """Keeps one Robot per device id and translates its status for the hub."""

    def __init__(
        self,
        hub: HubFacade,
        client_factory: ClientFactory,
        command_delay: float = COMMAND_DELAY,
        charging_triggers: bool = False,
    ):
        self._hub = hub
        self._client_factory = client_factory
        self._command_delay = command_delay
        self._charging_triggers = charging_triggers
        self._devices: Dict[str, RobotSettings] = {}
        self._robots: Dict[str, Robot] = {}
        self._retry_handles: Dict[str, asyncio.TimerHandle] = {}
        self._tasks: set = set()

    @property
    def charging_triggers(self) -> bool:
        return self._charging_triggers

    @charging_triggers.setter
    def charging_triggers(self, enabled: bool) -> None:
        self._charging_triggers = bool(enabled)

    # Lifecycle

    async def async_init(self, devices: Iterable[RobotSettings]) -> None:
        """Remember the devices the hub knows about; robots start on authorization."""
        self._devices = {settings.serial: settings for settings in devices}
        _LOGGER.info("Devices: %s", list(self._devices))

    def set_authorized(self, authorized: bool) -> None:
        if authorized:
            if not self._robots:
                self.init_devices()
            else:
                _LOGGER.info("Devices already initialised")
        else:
            self.deinit_devices()

    def device_added(self, settings: RobotSettings) -> None:
        _LOGGER.info("Added device %s", settings.serial)
        self._devices[settings.serial] = settings
        self._create_task(self.async_init_robot(settings.serial))

    def device_deleted(self, device_id: str) -> None:
        _LOGGER.info("Removed device %s", device_id)
        self.deinit_robot(device_id)
        self._devices.pop(device_id, None)
        _LOGGER.info("Devices left: %s", list(self._devices))

    def settings_changed(self, device_id: str, settings: RobotSettings) -> None:
        """Re-create the robot with its new settings."""
        _LOGGER.info("Settings changed for %s, reinitialising device", device_id)
        self._devices[device_id] = settings
        self._create_task(self.async_init_robot(device_id))

    async def async_shutdown(self) -> None:
        for device_id in list(self._robots):
            self._teardown(device_id)
        for handle in self._retry_handles.values():
            handle.cancel()
        self._retry_handles.clear()
        tasks = [task for task in self._tasks if not task.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    # Robot management

    @property
    def robots(self) -> Dict[str, Robot]:
        return dict(self._robots)

    def get_robot(self, device_id: str) -> Optional[Robot]:
        return self._robots.get(device_id)

    def pending_retry(self, device_id: str) -> Optional[asyncio.TimerHandle]:
        return self._retry_handles.get(device_id)

    def init_devices(self) -> None:
        if not self._devices:
            _LOGGER.warning("No devices to initialise")
            return
        _LOGGER.info("Initialise devices")
        for device_id in self._devices:
            self._create_task(self.async_init_robot(device_id))

    def deinit_devices(self) -> None:
        if not self._devices:
            _LOGGER.warning("No devices to de-initialise")
            return
        _LOGGER.info("De-initialise all devices")
        for device_id in list(self._devices):
            self.deinit_robot(device_id)

    def deinit_robot(self, device_id: str) -> None:
        self._hub.set_unavailable(device_id, UNAVAILABLE_REASON)
        retry = self._retry_handles.pop(device_id, None)
        if retry is not None:
            retry.cancel()
        self._teardown(device_id)

    def _teardown(self, device_id: str) -> None:
        robot = self._robots.pop(device_id, None)
        if robot is not None:
            _LOGGER.info("Removing robot %s", robot.name)
            robot.cancel_command()
            self._hub.stop_polling(device_id)

    async def async_init_robot(self, device_id: str) -> None:
        """Create the robot, fetch its first status and start polling."""
        self.deinit_robot(device_id)

        settings = self._devices.get(device_id)
        if settings is None:
            _LOGGER.error("Cannot initialise unknown device %s", device_id)
            return

        _LOGGER.info("Initialising robot %s", settings.name)
        robot = Robot(settings, self._client_factory(settings))
        self._robots[device_id] = robot

        try:
            status = await robot.client.get_state()
        except NeatoError as err:
            if self._robots.get(device_id) is not robot:
                return
            _LOGGER.error(
                "Encountered an error when fetching the initial status of %s. "
                "Retrying in %s seconds. Error: %s",
                settings.name, settings.polling_interval, err,
            )
            self.deinit_robot(device_id)
            self._hub.set_unavailable(device_id, str(err))
            self._schedule_retry(device_id, settings.polling_interval)
            return

        if self._robots.get(device_id) is not robot:
            _LOGGER.debug("Robot %s was replaced while initialising", settings.name)
            return

        if status.model_name not in SUPPORTED_MODELS:
            _LOGGER.error("Cannot set robot available because model is unknown: %s", status.model_name)
            self.deinit_robot(device_id)
            self._hub.set_unavailable(device_id, f"Model {status.model_name} is unknown")
            return

        self._hub.set_available(device_id)
        robot.poll_interval = settings.polling_interval + random.uniform(0, POLL_JITTER)
        self._hub.start_polling(
            device_id, robot.poll_interval, partial(self.async_poll_status, device_id, robot), status
        )

        self.robot_status_update(device_id, None, status)
        robot.cached_status = status

    def _schedule_retry(self, device_id: str, delay: float) -> None:
        loop = asyncio.get_running_loop()

        def _retry() -> None:
            self._retry_handles.pop(device_id, None)
            self._create_task(self.async_init_robot(device_id))

        self._retry_handles[device_id] = loop.call_later(delay, _retry)

    async def async_poll_status(self, device_id: str, robot: Robot) -> Optional[RobotStatus]:
        """Fetch one status and dispatch what changed.

        Called by the hub on every polling tick. A failed fetch raises and
        leaves the cached status alone; the hub keeps polling.
        """
        if self._robots.get(device_id) is not robot:
            return None

        _LOGGER.debug("Polling Neato server for updates for robot %s", robot.name)
        try:
            status = await robot.client.get_state()
        except NeatoError as err:
            _LOGGER.error("Failed to poll status of %s: %s", robot.name, err)
            raise

        if self._robots.get(device_id) is not robot:
            _LOGGER.debug("Discarding status for replaced robot %s", robot.name)
            return None
        self.robot_status_update(device_id, robot.cached_status, status)
        robot.cached_status = status
        return status

    # Status change dispatch

    def robot_status_update(
        self, device_id: str, cached: Optional[RobotStatus], fresh: RobotStatus
    ) -> None:
        """Emit hub events for every field that changed between two statuses."""
        _LOGGER.debug("Updated data from Neato server for %s", device_id)

        if cached is None or cached.state != fresh.state:
            self._state_changed(device_id, cached, fresh)
        if cached is None or cached.is_docked != fresh.is_docked:
            self._docking_changed(device_id, cached, fresh)
        if cached is None or cached.is_charging != fresh.is_charging:
            self._charging_changed(device_id, cached, fresh)
        if cached is None or cached.charge != fresh.charge:
            self._charge_changed(device_id, fresh)

    def _state_changed(self, device_id, cached, fresh) -> None:
        parsed = translate(fresh)
        _LOGGER.info("State changed to %s for %s", parsed.value, device_id)

        # no triggers on the first observation
        if cached is not None:
            if 1 <= fresh.state <= len(STATE_TRIGGERS):
                self._hub.trigger(device_id, STATE_TRIGGERS[fresh.state - 1])
            else:
                _LOGGER.debug("No trigger for vendor state %s", fresh.state)

        self._hub.realtime(device_id, CAPABILITY_VACUUM_STATE, parsed.value)

    def _docking_changed(self, device_id, cached, fresh) -> None:
        _LOGGER.info("Dock status changed to %s for %s", fresh.is_docked, device_id)
        if cached is not None:
            self._hub.trigger(
                device_id, TRIGGER_ENTERS_DOCK if fresh.is_docked else TRIGGER_LEAVES_DOCK
            )
        self._hub.realtime(device_id, CAPABILITY_VACUUM_STATE, translate(fresh).value)

    def _charging_changed(self, device_id, cached, fresh) -> None:
        _LOGGER.info("Charging status changed to %s for %s", fresh.is_charging, device_id)
        if cached is not None and self._charging_triggers:
            self._hub.trigger(
                device_id,
                TRIGGER_STARTS_CHARGING if fresh.is_charging else TRIGGER_STOPS_CHARGING,
                {"charge": fresh.charge},
            )
        self._hub.realtime(device_id, CAPABILITY_VACUUM_STATE, translate(fresh).value)

    def _charge_changed(self, device_id, fresh) -> None:
        _LOGGER.info("Charge changed to %s for %s", fresh.charge, device_id)
        self._hub.realtime(device_id, CAPABILITY_BATTERY, fresh.charge)

    # Capabilities

    def get_capability(self, device_id: str, capability: str) -> None:
        # Real values are pushed through HubFacade.realtime once polled
        _LOGGER.debug("Ignoring capability get of %s for %s", capability, device_id)
        return None

    def set_state(self, device_id: str, command: SemanticState) -> bool:
        """Schedule a debounced state change, last request wins.

        Returns False without side effects when the robot has no status yet.
        """
        robot = self._robots.get(device_id)
        if robot is None or robot.cached_status is None:
            _LOGGER.error("Vacuum state set but device %s not initialised yet", device_id)
            return False

        command = SemanticState(command)
        previous = translate(robot.cached_status)
        _LOGGER.info("Set vacuum state of %s to %s", robot.name, command.value)

        robot.cancel_command()
        loop = asyncio.get_running_loop()
        robot.pending_command = loop.call_later(
            self._command_delay, self._fire_command, device_id, robot, command, previous
        )
        return True

    def _fire_command(
        self, device_id: str, robot: Robot, command: SemanticState, previous: SemanticState
    ) -> None:
        robot.pending_command = None
        self._create_task(self._execute_command(device_id, robot, command, previous))

    async def _execute_command(
        self, device_id: str, robot: Robot, command: SemanticState, previous: SemanticState
    ) -> None:
        client = robot.client
        if command is SemanticState.CLEANING:
            call = client.start_cleaning(eco=True)
        elif command is SemanticState.SPOT_CLEANING:
            call = client.start_spot_cleaning(
                eco=True, width=DEFAULT_SPOT_WIDTH, height=DEFAULT_SPOT_HEIGHT, two_pass=True
            )
        elif command is SemanticState.STOPPED:
            call = client.pause_cleaning()
        else:
            # docked, charging and anything unexpected
            call = client.send_to_base()

        try:
            await call
        except NeatoError as err:
            _LOGGER.error(
                "%s failed for %s, reverting to %s: %s",
                command.value, robot.name, previous.value, err,
            )
            self._hub.realtime(device_id, CAPABILITY_VACUUM_STATE, previous.value)

    # Flow conditions

    def is_cleaning(self, device_id: str) -> bool:
        robot = self._robots.get(device_id)
        if robot is None or robot.cached_status is None:
            return False
        cleaning = robot.cached_status.state == STATE_BUSY
        _LOGGER.debug("'is cleaning' for %s is %s", robot.name, cleaning)
        return cleaning

    def is_docked(self, device_id: str) -> bool:
        robot = self._robots.get(device_id)
        if robot is None or robot.cached_status is None:
            return False
        _LOGGER.debug("'is docked' for %s is %s", robot.name, robot.cached_status.is_docked)
        return robot.cached_status.is_docked

    # Flow actions

    def _require_robot(self, device_id: str) -> Robot:
        robot = self._robots.get(device_id)
        if robot is None or robot.cached_status is None:
            raise RobotNotInitialized(f"Robot {device_id} is not initialised")
        return robot

    async def _run_action(
        self, device_id: str, description: str, action: Callable[[NeatoRobot], Awaitable[dict]]
    ) -> dict:
        robot = self._require_robot(device_id)
        _LOGGER.info("Attempting to %s: %s", description, robot.name)
        try:
            result = await action(robot.client)
        except NeatoError as err:
            _LOGGER.error("Attempting to %s: %s", description, err)
            raise
        _LOGGER.info("Attempting to %s succeeded: %s", description, result)
        return result

    async def start_house_cleaning(self, device_id: str, eco: bool = True) -> dict:
        return await self._run_action(
            device_id, "start house cleaning", lambda client: client.start_cleaning(eco=eco)
        )

    async def stop_house_cleaning(self, device_id: str) -> dict:
        return await self._run_action(
            device_id, "stop cleaning", lambda client: client.stop_cleaning()
        )

    async def pause_house_cleaning(self, device_id: str) -> dict:
        return await self._run_action(
            device_id, "pause cleaning", lambda client: client.pause_cleaning()
        )

    async def resume_house_cleaning(self, device_id: str) -> dict:
        return await self._run_action(
            device_id, "resume cleaning", lambda client: client.resume_cleaning()
        )

    async def send_to_base(self, device_id: str) -> dict:
        return await self._run_action(
            device_id, "send to base", lambda client: client.send_to_base()
        )

    async def start_spot_cleaning(
        self,
        device_id: str,
        eco: bool = True,
        width: int = DEFAULT_SPOT_WIDTH,
        height: int = DEFAULT_SPOT_HEIGHT,
        two_pass: bool = True,
    ) -> dict:
        return await self._run_action(
            device_id,
            "start spot cleaning",
            lambda client: client.start_spot_cleaning(
                eco=eco, width=width, height=height, two_pass=two_pass
            ),
        )

    # Helpers

    def _create_task(self, coro) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task
