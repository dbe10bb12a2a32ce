"""
Shared pytest fixtures for Botvac Connected tests
"""

import pytest
from unittest.mock import AsyncMock, MagicMock

from custom_components.botvac_connected import driver as driver_module
from custom_components.botvac_connected.driver import BotvacDriver
from custom_components.botvac_connected.models import RobotSettings, RobotStatus


class FakeHub:
    """Records every call the driver makes on the hub"""

    def __init__(self):
        self.available = []
        self.unavailable = []
        self.pushes = []
        self.triggers = []
        self.polling = {}
        self.stopped = []

    def set_available(self, device_id):
        self.available.append(device_id)

    def set_unavailable(self, device_id, reason):
        self.unavailable.append((device_id, reason))

    def realtime(self, device_id, capability, value):
        self.pushes.append((device_id, capability, value))

    def trigger(self, device_id, event, tokens=None):
        self.triggers.append((device_id, event, tokens))

    def start_polling(self, device_id, interval, poll, status):
        self.polling[device_id] = (interval, poll)

    def stop_polling(self, device_id):
        self.polling.pop(device_id, None)
        self.stopped.append(device_id)

    def values(self, capability):
        return [value for _, cap, value in self.pushes if cap == capability]


def make_status(state=1, action=0, docked=False, charging=False, charge=80, model="BotVacConnected"):
    return RobotStatus(
        state=state,
        action=action,
        is_docked=docked,
        is_charging=charging,
        charge=charge,
        model_name=model,
    )


def make_client(status=None):
    """Robot client double with every vendor call as an AsyncMock"""
    client = MagicMock()
    client.get_state = AsyncMock(return_value=status or make_status())
    for name in (
        "start_cleaning",
        "start_spot_cleaning",
        "stop_cleaning",
        "pause_cleaning",
        "resume_cleaning",
        "send_to_base",
    ):
        setattr(client, name, AsyncMock(return_value={"result": "ok"}))
    return client


@pytest.fixture
def hub():
    return FakeHub()


@pytest.fixture
def settings():
    return RobotSettings(name="Kitchen", serial="OPS01234-ABCDEF", secret_key="secret", polling_interval=60)


@pytest.fixture
def client():
    return make_client()


@pytest.fixture
def no_jitter(monkeypatch):
    monkeypatch.setattr(driver_module, "POLL_JITTER", 0)


@pytest.fixture
async def driver(hub, client, settings):
    """Driver with one known device and a short command delay"""
    drv = BotvacDriver(hub, lambda _settings: client, command_delay=0.05)
    await drv.async_init([settings])
    yield drv
    await drv.async_shutdown()
