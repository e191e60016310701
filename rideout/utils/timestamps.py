"""
UTC timestamp helpers.

Timestamps are stored as fixed-width ISO-8601 strings so that string order
matches chronological order.
"""

from datetime import datetime, timezone
from typing import Optional

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def utc_timestamp(moment: Optional[datetime] = None) -> str:
    """Format `moment` (default: now) as a sortable UTC timestamp."""
    moment = moment or datetime.now(timezone.utc)
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return moment.strftime(TIMESTAMP_FORMAT)

