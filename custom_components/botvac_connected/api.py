"""Clients for the Neato cloud used by BotvacConnected."""
from __future__ import annotations

import asyncio
import hashlib
import hmac
import json
import logging
import secrets
from datetime import datetime, timezone
from typing import Any, Optional

import aiohttp

from .const import (
    BEEHIVE_ACCEPT,
    CATEGORY_HOUSE,
    CATEGORY_SPOT,
    MODE_ECO,
    MODE_TURBO,
    MODIFIER_DOUBLE,
    MODIFIER_NORMAL,
    NUCLEO_ACCEPT,
    REQUEST_TIMEOUT,
    SUPPORTED_MODELS,
    URL_NUCLEO,
    URL_ROBOTS,
    URL_SESSIONS,
)
from .models import RobotStatus

_LOGGER = logging.getLogger(__name__)


class NeatoError(Exception):
    """Base class for errors talking to the Neato cloud."""


class NeatoAuthError(NeatoError):
    """Credentials or robot secret were rejected."""


class NeatoConnectionError(NeatoError):
    """The cloud could not be reached or answered with an HTTP error."""


class NeatoCommandError(NeatoError):
    """The robot answered, but did not accept the command."""

    def __init__(self, command: str, result: Any):
        super().__init__(f"{command} failed: {result}")
        self.command = command
        self.result = result


def sign_request(serial: str, secret_key: str, date: str, body: str) -> str:
    """Return the Authorization header value for a nucleo message."""
    message = "\n".join([serial.lower(), date, body])
    digest = hmac.new(
        secret_key.encode("utf-8"), message.encode("utf-8"), hashlib.sha256
    ).hexdigest()
    return f"NEATOAPP {digest}"


def _http_date() -> str:
    return datetime.now(timezone.utc).strftime("%a, %d %b %Y %H:%M:%S GMT")


async def _read_json(response: aiohttp.ClientResponse) -> Any:
    """Decode a response, mapping HTTP failures to NeatoError subclasses."""
    if response.status in (401, 403):
        raise NeatoAuthError(f"Authentication failed: {response.status} {response.reason}")
    if response.status >= 400:
        text = await response.text()
        raise NeatoConnectionError(f"HTTP {response.status}: {text[:200]}")
    try:
        return await response.json(content_type=None)
    except (ValueError, aiohttp.ContentTypeError) as err:
        raise NeatoConnectionError(f"Invalid response: {err}") from err


class NeatoRobot:
    """Client for a single robot, signed with the robot's secret key."""

    def __init__(self, serial: str, secret_key: str, session: Optional[aiohttp.ClientSession] = None):
        self._serial = serial
        self._secret_key = secret_key
        self._session = session
        self._url = URL_NUCLEO.format(serial=serial)

    @property
    def serial(self) -> str:
        return self._serial

    async def _post(self, session: aiohttp.ClientSession, body: str, headers: dict) -> Any:
        async with session.post(self._url, data=body, headers=headers) as response:
            return await _read_json(response)

    async def send_command(self, cmd: str, params: Optional[dict] = None) -> dict:
        """Send one nucleo message and return the decoded answer.

        Raises NeatoCommandError when the robot reports a result other than
        "ok".
        """
        message: dict = {"reqId": "1", "cmd": cmd}
        if params:
            message["params"] = params
        body = json.dumps(message)
        date = _http_date()
        headers = {
            "Accept": NUCLEO_ACCEPT,
            "Content-Type": "application/json",
            "Date": date,
            "Authorization": sign_request(self._serial, self._secret_key, date, body),
        }

        try:
            if self._session is not None:
                payload = await asyncio.wait_for(
                    self._post(self._session, body, headers), timeout=REQUEST_TIMEOUT
                )
            else:
                async with aiohttp.ClientSession() as session:
                    payload = await asyncio.wait_for(
                        self._post(session, body, headers), timeout=REQUEST_TIMEOUT
                    )
        except asyncio.CancelledError:
            _LOGGER.debug("%s request for %s cancelled", cmd, self._serial)
            raise
        except asyncio.TimeoutError as err:
            raise NeatoConnectionError(f"{cmd} timed out after {REQUEST_TIMEOUT}s") from err
        except aiohttp.ClientError as err:
            raise NeatoConnectionError(f"{cmd} failed: {err}") from err

        result = payload.get("result", "ok") if isinstance(payload, dict) else None
        if result != "ok":
            raise NeatoCommandError(cmd, result)
        return payload

    async def get_state(self) -> RobotStatus:
        payload = await self.send_command("getRobotState")
        try:
            return RobotStatus.from_dict(payload)
        except (AttributeError, TypeError, ValueError) as err:
            raise NeatoConnectionError(f"Malformed robot state from {self.serial}: {err}") from err

    async def start_cleaning(self, eco: bool = True) -> dict:
        params = {
            "category": CATEGORY_HOUSE,
            "mode": MODE_ECO if eco else MODE_TURBO,
            "modifier": MODIFIER_NORMAL,
        }
        return await self.send_command("startCleaning", params)

    async def start_spot_cleaning(
        self, eco: bool = True, width: int = 100, height: int = 100, two_pass: bool = True
    ) -> dict:
        params = {
            "category": CATEGORY_SPOT,
            "mode": MODE_ECO if eco else MODE_TURBO,
            "modifier": MODIFIER_DOUBLE if two_pass else MODIFIER_NORMAL,
            "spotWidth": int(width),
            "spotHeight": int(height),
        }
        return await self.send_command("startCleaning", params)

    async def stop_cleaning(self) -> dict:
        return await self.send_command("stopCleaning")

    async def pause_cleaning(self) -> dict:
        return await self.send_command("pauseCleaning")

    async def resume_cleaning(self) -> dict:
        return await self.send_command("resumeCleaning")

    async def send_to_base(self) -> dict:
        return await self.send_command("sendToBase")


class NeatoAccount:
    """Account session, only needed to list robots while pairing."""

    def __init__(self, email: str, password: str, session: Optional[aiohttp.ClientSession] = None):
        self._email = email
        self._password = password
        self._session = session
        self._access_token: Optional[str] = None
        self._headers = {"Accept": BEEHIVE_ACCEPT}

    @property
    def email(self) -> str:
        return self._email

    @property
    def is_logged_in(self) -> bool:
        return self._access_token is not None

    async def _call(self, session: aiohttp.ClientSession, method: str, url: str, **kwargs) -> Any:
        async with session.request(method, url, headers=self._headers, **kwargs) as response:
            return await _read_json(response)

    async def _request(self, method: str, url: str, **kwargs) -> Any:
        try:
            if self._session is not None:
                return await asyncio.wait_for(
                    self._call(self._session, method, url, **kwargs), timeout=REQUEST_TIMEOUT
                )
            async with aiohttp.ClientSession() as session:
                return await asyncio.wait_for(
                    self._call(session, method, url, **kwargs), timeout=REQUEST_TIMEOUT
                )
        except asyncio.TimeoutError as err:
            raise NeatoConnectionError(f"Request to {url} timed out") from err
        except aiohttp.ClientError as err:
            raise NeatoConnectionError(f"Request to {url} failed: {err}") from err

    async def login(self) -> None:
        """Open a session and keep its access token."""
        data = {
            "email": self._email,
            "password": self._password,
            "platform": "ios",
            "token": secrets.token_hex(32),
        }
        auth = await self._request("POST", URL_SESSIONS, json=data)
        token = auth.get("access_token") if isinstance(auth, dict) else None
        if not token:
            raise NeatoAuthError("No access token in login response")
        self._access_token = token
        self._headers["Authorization"] = f"Token token={token}"
        _LOGGER.debug("Logged in to Neato cloud as %s", self._email)

    async def get_robots(self) -> list[dict]:
        if not self.is_logged_in:
            await self.login()
        robots = await self._request("GET", URL_ROBOTS)
        return robots if isinstance(robots, list) else []

    @classmethod
    async def discover_robots(
        cls, email: str, password: str, session: Optional[aiohttp.ClientSession] = None
    ) -> list[dict]:
        """Log in and return the supported robots on the account."""
        account = cls(email, password, session)
        await account.login()

        found = []
        for robot in await account.get_robots():
            _LOGGER.debug("Found robot: %s", robot.get("name"))
            if robot.get("model") in SUPPORTED_MODELS:
                found.append({
                    "name": robot.get("name") or robot["serial"],
                    "serial": robot["serial"],
                    "secret_key": robot["secret_key"],
                    "model": robot["model"],
                })
            else:
                _LOGGER.info("Model %s is not supported by this integration", robot.get("model"))
        return found
