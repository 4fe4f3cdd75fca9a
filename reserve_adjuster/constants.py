"""Constants for the Powerwall reserve adjuster."""

from datetime import timedelta

# Settings store keys (shared with existing settings files, keep the casing)
KEY_REFRESH_TOKEN = 'refreshToken'
KEY_AUTH_TOKEN = 'authToken'
KEY_TOKEN_EXPIRES = 'tokenExpires'
KEY_HOLIDAYS = 'holidays'
KEY_PEAK_RESERVE = 'peakReserve'
KEY_SUBSCRIPTIONS = 'subscriptions'

# Reserve bounds (percent)
DEFAULT_PEAK_RESERVE = 20
MIN_RESERVE = 5
MAX_RESERVE = 100

# Reserve is lowered this long before the scheduled peak start
PEAK_START_BUFFER = timedelta(hours=1)

# Powerwall reports this mode when time-based control is active
TOU_REAL_MODE = 'autonomous'

SETTINGS_FILE = '/data/reserve-settings.json'

# MQTT Discovery device identity
ADDON_NAME = 'Powerwall Reserve Adjuster'
ADDON_ID = 'reserve_adjuster'

NOTIFY_TITLE = 'Powerwall Reserve Adjuster'
