"""
Domain-specific exception hierarchy for the slotboard application.
"""


class SlotboardError(Exception):
    """Base class for all application-level errors."""


class InvalidRangeError(SlotboardError, ValueError):
    """Raised when a requested interval is empty, inverted or malformed."""


class SlotOverlapError(InvalidRangeError):
    """Raised when a requested interval collides with a slot of the same owner and day."""


class OutOfBoundsError(SlotboardError):
    """Raised when a delete or resize target is not contained in its parent slot."""


class NotFoundError(SlotboardError, KeyError):
    """Raised when an operation references an unknown slot, person or note."""

    def __str__(self) -> str:
        # KeyError would otherwise repr() the message
        return str(self.args[0]) if self.args else ""


class PersistenceError(SlotboardError):
    """Raised when the backing store cannot be read or written."""


class RateLimitError(PersistenceError):
    """Raised when the backing store rejects a call because of rate limiting."""


class SlotParseError(SlotboardError):
    """Raised when free text cannot be turned into proposed slots."""
