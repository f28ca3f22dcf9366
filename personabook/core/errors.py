"""Error taxonomy for PersonaBook.

Read paths fail open (they log and return a safe default); write paths raise
one of these errors. Every error carries a stable ``kind`` used in log lines
so operators can grep for a category without parsing messages.
"""


class PersonaBookError(Exception):
    """Base class for all PersonaBook errors."""

    kind: str = "internal"


class StoreError(PersonaBookError):
    """Persistent store I/O, connectivity or timeout failure."""

    kind = "store"


class SerializationError(PersonaBookError):
    """Persisted JSON could not be encoded or decoded."""

    kind = "serialization"


class DataTooLarge(PersonaBookError):
    """A serialized field exceeds its configured size ceiling.

    Attributes:
        field: Name of the offending field.
        size: Serialized size in bytes.
        limit: Configured ceiling in bytes.
    """

    kind = "data_too_large"

    def __init__(self, field: str, size: int, limit: int):
        self.field = field
        self.size = size
        self.limit = limit
        super().__init__(f"{field} is {size} bytes (limit {limit})")


class SlotTaken(PersonaBookError):
    """Another live booking already holds this persona's time slot."""

    kind = "slot_taken"


class NotFound(PersonaBookError):
    """Booking or session lookup miss."""

    kind = "not_found"


class CannotCancel(PersonaBookError):
    """Booking is past the point where cancellation is allowed."""

    kind = "cannot_cancel"


_USER_MESSAGES: dict[type[PersonaBookError], str] = {
    DataTooLarge: "Sorry, this conversation got too long to save. Please try a shorter message.",
    SlotTaken: "Sorry, that time slot was just taken. Please pick another one.",
    NotFound: "Sorry, we could not find that reservation. Please contact support.",
    CannotCancel: "Sorry, this reservation can no longer be cancelled.",
}


def error_kind(exc: BaseException) -> str:
    """Return the structured kind of an exception for logging."""
    if isinstance(exc, PersonaBookError):
        return exc.kind
    if isinstance(exc, TimeoutError):
        return "timeout"
    return type(exc).__name__


def user_message(exc: BaseException) -> str:
    """Translate any exception into a short apologetic user-facing message.

    Raw exception text is never included.
    """
    for error_type, message in _USER_MESSAGES.items():
        if isinstance(exc, error_type):
            return message
    if isinstance(exc, TimeoutError):
        return "Sorry, the request timed out. Please try again."
    if isinstance(exc, (ConnectionError, StoreError)):
        return "Sorry, we are having trouble reaching our storage. Please try again shortly."
    return "Sorry, something went wrong. Please try again later."
