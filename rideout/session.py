"""
Viewer session.

Explicitly passed, scoped identity of the viewer performing an action.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import config.settings as settings
from rideout.errors import SessionExpiredError, ValidationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ViewerSession:
    """
    A viewer identity valid until `expires_at`.
    """
    viewer_id: str
    issued_at: datetime
    expires_at: datetime

    @classmethod
    def acquire(
        cls,
        viewer_id: str,
        ttl_seconds: int = settings.SESSION_TTL_SECONDS,
        now: Optional[datetime] = None
    ) -> "ViewerSession":
        """
        Issue a session for a viewer.

        Raises:
            ValidationError: If viewer_id is empty or ttl is not positive
        """
        if not viewer_id:
            raise ValidationError("Viewer id is required")
        if ttl_seconds <= 0:
            raise ValidationError(f"Invalid session ttl: {ttl_seconds}")

        issued_at = now or datetime.now(timezone.utc)
        session = cls(
            viewer_id=viewer_id,
            issued_at=issued_at,
            expires_at=issued_at + timedelta(seconds=ttl_seconds)
        )
        logger.debug(f"Acquired session for {viewer_id} until {session.expires_at.isoformat()}")
        return session

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return (now or datetime.now(timezone.utc)) >= self.expires_at

    def require_active(self, now: Optional[datetime] = None) -> str:
        """
        Return the viewer id of a live session.

        Raises:
            SessionExpiredError: If the session has expired
        """
        if self.is_expired(now):
            raise SessionExpiredError(f"Session for {self.viewer_id} expired at {self.expires_at.isoformat()}")
        return self.viewer_id
