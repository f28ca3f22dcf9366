"""Chat model backend."""

from personabook.llm.client import ChatClient

__all__ = ["ChatClient"]
