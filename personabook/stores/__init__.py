"""Cached state access for PersonaBook."""

from personabook.stores.cache import TTLCache
from personabook.stores.state import UserStateStore

__all__ = ["TTLCache", "UserStateStore"]
