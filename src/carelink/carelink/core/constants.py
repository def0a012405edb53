"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

MIN_REQUEST_MINUTES = 30

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100

DEFAULT_HOURLY_RATE_CENTS = 6500
DEFAULT_KM_RATE_CENTS = 85

BILLING_SOURCE_SHIFT_REQUEST = "ShiftRequest"

RECENT_ITEMS_LIMIT = 5
