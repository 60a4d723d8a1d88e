"""UTC timezone enforcement.

Sets the TZ environment variable to UTC and provides the single clock helper
used for every persisted timestamp. Timestamps are timezone-aware UTC.
"""

import os
from datetime import datetime, timezone

# Set UTC timezone for the entire application
os.environ["TZ"] = "UTC"


def utcnow() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)
