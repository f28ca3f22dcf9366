"""Repository package for database operations."""

from personabook.db.repositories.base import BaseRepository
from personabook.db.repositories.booking_repo import BookingRepository
from personabook.db.repositories.catalog_repo import CatalogRepository
from personabook.db.repositories.user_state_repo import UserStateRepository

__all__ = [
    "BaseRepository",
    "BookingRepository",
    "CatalogRepository",
    "UserStateRepository",
]
