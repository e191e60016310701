"""
Error kinds raised by the rating subsystem.
"""


class RideOutError(Exception):
    """Base class for all RideOut errors."""


class ValidationError(RideOutError, ValueError):
    """Malformed input (unknown category, score out of range, bad cursor)."""


class NotFoundError(RideOutError, LookupError):
    """Referenced item or rating does not exist."""


class StoreUnavailableError(RideOutError):
    """Underlying persistence could not be read or written."""


class PermissionDeniedError(RideOutError):
    """Viewer is not allowed to perform the operation."""


class SessionExpiredError(RideOutError):
    """Viewer session is past its expiry."""


class CascadeIncompleteError(RideOutError):
    """
    Item deletion stopped part-way.

    Attributes:
        item_id: Item being deleted
        deleted: Number of rating rows removed before the failure
        remaining: Number of rating rows still referencing the item
        item_deleted: Whether the item record itself is gone
    """

    def __init__(self, item_id: str, deleted: int, remaining: int, item_deleted: bool = False):
        self.item_id = item_id
        self.deleted = deleted
        self.remaining = remaining
        self.item_deleted = item_deleted
        super().__init__(
            f"Cascade delete of item {item_id} incomplete: "
            f"{deleted} ratings deleted, {remaining} remaining, "
            f"item {'deleted' if item_deleted else 'still present'}"
        )
