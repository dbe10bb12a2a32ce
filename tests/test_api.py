"""
Tests for the Neato cloud clients
"""

import hashlib
import hmac
import json

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from custom_components.botvac_connected.api import (
    NeatoAccount,
    NeatoAuthError,
    NeatoCommandError,
    NeatoConnectionError,
    NeatoRobot,
    sign_request,
)
from custom_components.botvac_connected.models import RobotStatus

SERIAL = "OPS01234-ABCDEF"


def make_session(payload, status=200, method="post"):
    """aiohttp session double whose request context yields one response"""
    response = MagicMock()
    response.status = status
    response.reason = "Forbidden" if status == 403 else "OK"
    response.json = AsyncMock(return_value=payload)
    response.text = AsyncMock(return_value=json.dumps(payload))

    session = MagicMock()
    getattr(session, method).return_value.__aenter__.return_value = response
    getattr(session, method).return_value.__aexit__.return_value = False
    return session


def sent_body(session):
    return json.loads(session.post.call_args.kwargs["data"])


class TestSigning:

    def test_hmac_over_serial_date_and_body(self):
        date = "Sat, 18 Oct 2026 10:00:00 GMT"
        body = '{"reqId": "1", "cmd": "getRobotState"}'
        expected = hmac.new(
            b"secret", f"ops01234-abcdef\n{date}\n{body}".encode(), hashlib.sha256
        ).hexdigest()

        assert sign_request(SERIAL, "secret", date, body) == f"NEATOAPP {expected}"

    def test_depends_on_secret(self):
        date = "Sat, 18 Oct 2026 10:00:00 GMT"
        assert sign_request(SERIAL, "a", date, "{}") != sign_request(SERIAL, "b", date, "{}")


class TestNeatoRobot:

    async def test_get_state(self):
        payload = {
            "result": "ok",
            "state": 2,
            "action": 1,
            "details": {"isDocked": False, "isCharging": False, "charge": 80},
            "meta": {"modelName": "BotVacConnected"},
        }
        session = make_session(payload)
        robot = NeatoRobot(SERIAL, "secret", session)

        status = await robot.get_state()

        assert status == RobotStatus(2, 1, False, False, 80, "BotVacConnected")
        url = session.post.call_args.args[0]
        assert url == f"https://nucleo.neatocloud.com/vendors/neato/robots/{SERIAL}/messages"
        headers = session.post.call_args.kwargs["headers"]
        assert headers["Authorization"].startswith("NEATOAPP ")
        assert headers["Accept"] == "application/vnd.neato.nucleo.v1"
        assert sent_body(session) == {"reqId": "1", "cmd": "getRobotState"}

    async def test_start_cleaning_modes(self):
        session = make_session({"result": "ok"})
        robot = NeatoRobot(SERIAL, "secret", session)

        await robot.start_cleaning(eco=False)

        assert sent_body(session)["params"] == {"category": 2, "mode": 2, "modifier": 1}

    async def test_start_spot_cleaning(self):
        session = make_session({"result": "ok"})
        robot = NeatoRobot(SERIAL, "secret", session)

        await robot.start_spot_cleaning(eco=True, width=150, height=200, two_pass=True)

        assert sent_body(session) == {
            "reqId": "1",
            "cmd": "startCleaning",
            "params": {
                "category": 3,
                "mode": 1,
                "modifier": 2,
                "spotWidth": 150,
                "spotHeight": 200,
            },
        }

    @pytest.mark.parametrize(
        "method,cmd",
        [
            ("stop_cleaning", "stopCleaning"),
            ("pause_cleaning", "pauseCleaning"),
            ("resume_cleaning", "resumeCleaning"),
            ("send_to_base", "sendToBase"),
        ],
    )
    async def test_simple_commands(self, method, cmd):
        session = make_session({"result": "ok"})
        robot = NeatoRobot(SERIAL, "secret", session)

        await getattr(robot, method)()

        assert sent_body(session) == {"reqId": "1", "cmd": cmd}

    async def test_rejected_command(self):
        session = make_session({"result": "not_on_charge_base"})
        robot = NeatoRobot(SERIAL, "secret", session)

        with pytest.raises(NeatoCommandError) as excinfo:
            await robot.send_to_base()

        assert excinfo.value.result == "not_on_charge_base"
        assert excinfo.value.command == "sendToBase"

    async def test_forbidden_is_auth_error(self):
        session = make_session({"message": "Invalid signature"}, status=403)
        robot = NeatoRobot(SERIAL, "wrong", session)

        with pytest.raises(NeatoAuthError):
            await robot.get_state()

    async def test_server_error(self):
        session = make_session({"message": "boom"}, status=500)
        robot = NeatoRobot(SERIAL, "secret", session)

        with pytest.raises(NeatoConnectionError):
            await robot.get_state()

    @pytest.mark.parametrize(
        "payload",
        [
            {"result": "ok", "state": "busy"},
            {"result": "ok", "state": 1, "details": "docked"},
            {"result": "ok", "state": 1, "details": {"charge": [80]}},
        ],
    )
    async def test_malformed_state_is_connection_error(self, payload):
        robot = NeatoRobot(SERIAL, "secret", make_session(payload))

        with pytest.raises(NeatoConnectionError):
            await robot.get_state()


class TestNeatoAccount:

    async def test_login_stores_token(self):
        session = make_session({"access_token": "abc"}, method="request")
        account = NeatoAccount("me@example.com", "pw", session)

        await account.login()

        assert account.is_logged_in
        method, url = session.request.call_args.args
        assert (method, url) == ("POST", "https://beehive.neatocloud.com/sessions")
        assert session.request.call_args.kwargs["json"]["email"] == "me@example.com"

    async def test_login_without_token(self):
        session = make_session({}, method="request")
        account = NeatoAccount("me@example.com", "pw", session)

        with pytest.raises(NeatoAuthError):
            await account.login()

    async def test_discover_keeps_supported_models(self):
        robots = [
            {"name": "Kitchen", "serial": "A", "secret_key": "ka", "model": "BotVacConnected"},
            {"name": "Attic", "serial": "B", "secret_key": "kb", "model": "BotVacD7Connected"},
        ]
        with patch.object(NeatoAccount, "login", AsyncMock()), patch.object(
            NeatoAccount, "get_robots", AsyncMock(return_value=robots)
        ):
            found = await NeatoAccount.discover_robots("me@example.com", "pw")

        assert found == [
            {"name": "Kitchen", "serial": "A", "secret_key": "ka", "model": "BotVacConnected"}
        ]
