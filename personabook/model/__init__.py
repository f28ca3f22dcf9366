"""PersonaBook domain models - pure business entities.

This package contains stable dataclasses and enums representing core business
concepts. These models have no dependencies on infrastructure or application
logic.
"""

from personabook.model.booking import Booking, BookingStatus, MarkPaidResult
from personabook.model.events import (
    CallbackSelection,
    Message,
    Option,
    PaymentNotification,
    PaymentOutcome,
    PreCheckoutDecision,
    PreCheckoutRequest,
)
from personabook.model.persona import Persona, PersonaResolution, TimeSlot
from personabook.model.user_state import ChatMessage, UserSession, UserState

__all__ = [
    # Booking
    "Booking",
    "BookingStatus",
    "MarkPaidResult",
    # Events
    "CallbackSelection",
    "Message",
    "Option",
    "PaymentNotification",
    "PaymentOutcome",
    "PreCheckoutDecision",
    "PreCheckoutRequest",
    # Catalog
    "Persona",
    "PersonaResolution",
    "TimeSlot",
    # User state
    "ChatMessage",
    "UserSession",
    "UserState",
]
