"""Constants for Gmail Filer."""

from pathlib import Path

# --- Config paths ---
CONFIG_DIR = Path.home() / ".gmail-filer"
CREDENTIALS_PATH = CONFIG_DIR / "credentials.json"
TOKEN_PATH = CONFIG_DIR / "token.json"
SETTINGS_PATH = CONFIG_DIR / "general_settings.json"
DAEMON_CONFIG_PATH = CONFIG_DIR / "daemon_config.json"
DB_PATH = CONFIG_DIR / "filer.db"
LOG_PATH = CONFIG_DIR / "filer.log"

# --- Gmail API ---
SCOPES = ["https://www.googleapis.com/auth/gmail.modify"]
BATCH_SIZE = 50  # messages per BatchHttpRequest
PAGE_SIZE = 500  # messages per list page
MODIFY_BATCH_SIZE = 1000  # messages per batchModify call
INBOX_QUERY = "in:inbox is:unread"
SENT_QUERY = "in:sent newer_than:1d"

# --- Filename templates ---
DEFAULT_FILENAME_PATTERN = "{date}_{time}_{subject}"
DEFAULT_FILENAME_PATTERN_SENT = "SENT_{date}_{time}_{subject}"
SUBJECT_MAX_LENGTH = 50
SUBJECT_SHORT_MAX_LENGTH = 20
MESSAGE_ID_LENGTH = 8
EMPTY_SUBJECT = "no_subject"
UNKNOWN_VALUE = "unknown"
FALLBACK_STEM = "message"

WEEK_DAYS = ["lundi", "mardi", "mercredi", "jeudi", "vendredi", "samedi", "dimanche"]
MONTH_NAMES = [
    "janvier",
    "février",
    "mars",
    "avril",
    "mai",
    "juin",
    "juillet",
    "août",
    "septembre",
    "octobre",
    "novembre",
    "décembre",
]

# --- Character cleaning ---
DEFAULT_REPLACEMENT = "_"
RESERVED_CHARACTERS = '<>:"/\\|?*'
DEFAULT_CHARACTERS_TO_CLEAN = {
    "<": True,
    ">": True,
    ":": True,
    '"': True,
    "/": True,
    "\\": True,
    "|": True,
    "?": True,
    "*": True,
    "@": False,
    "#": False,
    "%": False,
    "&": False,
    "+": False,
    "=": False,
    "[": False,
    "]": False,
    "{": False,
    "}": False,
    ";": False,
    ",": False,
    "!": False,
    "~": False,
    "`": False,
    "$": False,
    "^": False,
}

# --- Suggestion reasons ---
REASON_KNOWN = "known correspondent"
REASON_SIMILAR = "similar existing client"
REASON_NO_MATCH = "no match found, user must choose or create"
REASON_NO_CONTACT = "no contact email on message"

# --- Daemon ---
DEFAULT_SYNC_INTERVAL_MINUTES = 5
DEFAULT_SYNC_MAX_MESSAGES = 100
