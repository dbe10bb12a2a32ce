"""Status snapshots, robot settings and state translation for BotvacConnected."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping

import voluptuous as vol

from .const import (
    ACTION_HOUSE_CLEANING,
    ACTION_SPOT_CLEANING,
    CONF_POLLING_INTERVAL,
    CONF_SECRET_KEY,
    CONF_SERIAL,
    DEFAULT_POLLING_INTERVAL,
    MIN_POLLING_INTERVAL,
    STATE_BUSY,
)

_LOGGER = logging.getLogger(__name__)


class SemanticState(str, Enum):
    """States the hub understands for the vacuum-state capability."""

    STOPPED = "stopped"
    CLEANING = "cleaning"
    SPOT_CLEANING = "spot_cleaning"
    DOCKED = "docked"
    CHARGING = "charging"


@dataclass(frozen=True)
class RobotStatus:
    """One getRobotState answer from the vendor cloud."""

    state: int = 0
    action: int = 0
    is_docked: bool = False
    is_charging: bool = False
    charge: int = 0
    model_name: str = ""

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "RobotStatus":
        details = payload.get("details") or {}
        meta = payload.get("meta") or {}
        return cls(
            state=int(payload.get("state") or 0),
            action=int(payload.get("action") or 0),
            is_docked=bool(details.get("isDocked", False)),
            is_charging=bool(details.get("isCharging", False)),
            charge=int(details.get("charge") or 0),
            model_name=str(meta.get("modelName") or ""),
        )


SETTINGS_SCHEMA = vol.Schema(
    {
        vol.Required("name"): str,
        vol.Required(CONF_SERIAL): str,
        vol.Required(CONF_SECRET_KEY): str,
        vol.Optional(CONF_POLLING_INTERVAL, default=DEFAULT_POLLING_INTERVAL): vol.All(
            vol.Coerce(float), vol.Range(min=MIN_POLLING_INTERVAL)
        ),
    },
    extra=vol.REMOVE_EXTRA,
)


@dataclass(frozen=True)
class RobotSettings:
    """Per-device settings persisted by the hub."""

    name: str
    serial: str
    secret_key: str
    polling_interval: float = DEFAULT_POLLING_INTERVAL

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RobotSettings":
        """Validate hub settings and build a RobotSettings.

        Raises vol.Invalid when a required key is missing or the polling
        interval is below MIN_POLLING_INTERVAL seconds.
        """
        valid = SETTINGS_SCHEMA(dict(data))
        return cls(
            name=valid["name"],
            serial=valid[CONF_SERIAL],
            secret_key=valid[CONF_SECRET_KEY],
            polling_interval=valid[CONF_POLLING_INTERVAL],
        )

    def as_dict(self) -> dict:
        return {
            "name": self.name,
            CONF_SERIAL: self.serial,
            CONF_SECRET_KEY: self.secret_key,
            CONF_POLLING_INTERVAL: self.polling_interval,
        }


def translate(status: RobotStatus) -> SemanticState:
    """Map a vendor status to the state shown on the device card.

    Later checks win: charging beats docked, docked beats a busy code. A
    robot sitting on its base may still report a stale busy state.
    """
    state = SemanticState.STOPPED

    if status.state == STATE_BUSY:
        if status.action == ACTION_HOUSE_CLEANING:
            state = SemanticState.CLEANING
        elif status.action == ACTION_SPOT_CLEANING:
            state = SemanticState.SPOT_CLEANING
    if status.is_docked:
        state = SemanticState.DOCKED
    if status.is_charging:
        state = SemanticState.CHARGING

    _LOGGER.debug("Translated %s to %s", status, state.value)
    return state
