"""Database package for PersonaBook persistence."""

from personabook.db.database import DatabaseManager

__all__ = ["DatabaseManager"]
