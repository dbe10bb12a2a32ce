"""Constants used by BotvacConnected."""
import json
from pathlib import Path
from typing import Final

# Plain strings so the core modules import without Home Assistant installed
PLATFORMS: Final = ["vacuum", "sensor"]

# Vendor endpoints
URL_NUCLEO: Final = "https://nucleo.neatocloud.com/vendors/neato/robots/{serial}/messages"
URL_BEEHIVE: Final = "https://beehive.neatocloud.com"
URL_SESSIONS: Final = URL_BEEHIVE + "/sessions"
URL_ROBOTS: Final = URL_BEEHIVE + "/users/me/robots"

NUCLEO_ACCEPT: Final = "application/vnd.neato.nucleo.v1"
BEEHIVE_ACCEPT: Final = "application/vnd.neato.beehive.v1+json"

REQUEST_TIMEOUT: Final = 30

SUPPORTED_MODELS: Final = ("BotVacConnected",)

# Vendor state / action codes
STATE_IDLE: Final = 1
STATE_BUSY: Final = 2
STATE_PAUSED: Final = 3
STATE_ERROR: Final = 4

ACTION_HOUSE_CLEANING: Final = 1
ACTION_SPOT_CLEANING: Final = 2

# startCleaning parameters
CATEGORY_HOUSE: Final = 2
CATEGORY_SPOT: Final = 3
MODE_ECO: Final = 1
MODE_TURBO: Final = 2
MODIFIER_NORMAL: Final = 1
MODIFIER_DOUBLE: Final = 2

# Debounced capability commands
COMMAND_DELAY: Final = 5
DEFAULT_SPOT_WIDTH: Final = 100
DEFAULT_SPOT_HEIGHT: Final = 100

# Polling
DEFAULT_POLLING_INTERVAL: Final = 60
MIN_POLLING_INTERVAL: Final = 10

# Config entry keys
CONF_ROBOTS: Final = "robots"
CONF_SERIAL: Final = "serial"
CONF_SECRET_KEY: Final = "secret_key"
CONF_POLLING_INTERVAL: Final = "polling_interval"
CONF_CHARGING_TRIGGERS: Final = "charging_triggers"

# Capabilities pushed to the hub
CAPABILITY_VACUUM_STATE: Final = "vacuumcleaner_state"
CAPABILITY_BATTERY: Final = "measure_battery"

# Flow triggers, state triggers are indexed by vendor state - 1
STATE_TRIGGERS: Final = (
    "state_stops_cleaning",
    "state_starts_cleaning",
    "state_paused",
    "state_error",
)
TRIGGER_ENTERS_DOCK: Final = "enters_dock"
TRIGGER_LEAVES_DOCK: Final = "leaves_dock"
TRIGGER_STARTS_CHARGING: Final = "starts_charging"
TRIGGER_STOPS_CHARGING: Final = "stops_charging"

TRIGGER_TYPES: Final = STATE_TRIGGERS + (
    TRIGGER_ENTERS_DOCK,
    TRIGGER_LEAVES_DOCK,
    TRIGGER_STARTS_CHARGING,
    TRIGGER_STOPS_CHARGING,
)

CONDITION_IS_CLEANING: Final = "is_cleaning"
CONDITION_IS_DOCKED: Final = "is_docked"
CONDITION_TYPES: Final = (CONDITION_IS_CLEANING, CONDITION_IS_DOCKED)

UNAVAILABLE_REASON: Final = "Robot not available at the moment"


# Load manifest data efficiently
def _load_manifest_data():
    """Load manifest data once and cache it."""
    manifestfile = Path(__file__).parent / "manifest.json"
    with open(manifestfile, encoding="utf-8") as json_file:
        return json.load(json_file)

_MANIFEST_DATA = _load_manifest_data()

DOMAIN: Final = _MANIFEST_DATA.get("domain")
NAME: Final = _MANIFEST_DATA.get("name")
VERSION: Final = _MANIFEST_DATA.get("version")

EVENT_BOTVAC: Final = f"{DOMAIN}_event"

STARTUP: Final = f"""
-------------------------------------------------------------------
{NAME}
Version: {VERSION}
This is a custom component
-------------------------------------------------------------------
"""
