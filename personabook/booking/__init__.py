"""Booking lifecycle, persona catalog and payment reconciliation."""

from personabook.booking.catalog import PersonaCatalog
from personabook.booking.lifecycle import BookingService
from personabook.booking.payments import PaymentReconciler

__all__ = ["BookingService", "PaymentReconciler", "PersonaCatalog"]
