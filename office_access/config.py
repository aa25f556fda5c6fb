"""
Centralised configuration constants and environment helpers.
"""

import os
import sys

from dotenv import load_dotenv

load_dotenv()

# ── Identifier prefixes ──────────────────────────────────────────────
OFFICE_PREFIX = "O-"
USER_PREFIX = "U-"
PGID_PREFIX = "P-"

# Display placeholder when an office id cannot be resolved to a name.
UNKNOWN_OFFICE_NAME = "Unknown Office"

# ── Login restrictions ───────────────────────────────────────────────
WEEKDAY_CODES = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")

# Used only when a restriction payload omits a value.
DEFAULT_ALLOWED_DAYS = ("Mon", "Tue", "Wed", "Thu", "Fri")
DEFAULT_ALLOWED_FROM = "08:00"
DEFAULT_ALLOWED_UNTIL = "18:00"

# Time zone for day/time checks when the home office has none configured.
DEFAULT_TIMEZONE = os.getenv("ACCESS_DEFAULT_TIMEZONE", "UTC")

# ── Access report ────────────────────────────────────────────────────
MAX_REPORT_ROWS = 500


def get_env(name: str) -> str:
    """Return an environment variable or exit with an error message."""
    value = os.getenv(name)
    if not value:
        print(f"ERROR: env var {name} is not set", file=sys.stderr)
        sys.exit(1)
    return value
