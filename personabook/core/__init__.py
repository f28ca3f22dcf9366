"""Core infrastructure for PersonaBook: configuration, logging, errors, time."""

from personabook.core.errors import (
    CannotCancel,
    DataTooLarge,
    NotFound,
    PersonaBookError,
    SerializationError,
    SlotTaken,
    StoreError,
)

__all__ = [
    "CannotCancel",
    "DataTooLarge",
    "NotFound",
    "PersonaBookError",
    "SerializationError",
    "SlotTaken",
    "StoreError",
]
