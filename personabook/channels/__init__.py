"""Chat transports for PersonaBook."""

from personabook.channels.base import ChannelAdapter

__all__ = ["ChannelAdapter"]
