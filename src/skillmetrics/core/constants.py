"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

MAX_ALLOCATION = 100
MIN_ALLOCATION = 0

DEFAULT_LIST_LIMIT = 200
DEFAULT_NOTIFICATION_WORKERS = 4

APPROVED_UPDATE_REASON = "approved update"
