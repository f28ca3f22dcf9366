"""Chat model client for persona conversations."""

import logging
from typing import Any

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage

from personabook.core.config import LLMConfig
from personabook.model.user_state import ChatMessage

logger = logging.getLogger(__name__)


def to_langchain_messages(history: list[ChatMessage]) -> list[BaseMessage]:
    """Convert role-tagged history into LangChain message objects."""
    converted: list[BaseMessage] = []
    for message in history:
        if message.role == "system":
            converted.append(SystemMessage(content=message.content))
        elif message.role == "assistant":
            converted.append(AIMessage(content=message.content))
        else:
            converted.append(HumanMessage(content=message.content))
    return converted


class ChatClient:
    """Sends a persona conversation to an OpenAI-compatible endpoint.

    Models are created per (model, temperature) pair and reused.
    """

    def __init__(self, config: LLMConfig | None = None):
        self.config = config or LLMConfig()
        self._models: dict[tuple[str, float], BaseChatModel] = {}

    def _create_model(self, model: str, temperature: float) -> BaseChatModel:
        from langchain_openai import ChatOpenAI

        kwargs: dict[str, Any] = {
            "model": model,
            "temperature": temperature,
            "timeout": self.config.timeout_seconds,
            "max_retries": 1,
        }
        if self.config.base_url:
            kwargs["base_url"] = self.config.base_url
        if self.config.api_key:
            kwargs["api_key"] = self.config.api_key
        logger.info(f"Creating ChatOpenAI: model={model}, temperature={temperature}")
        return ChatOpenAI(**kwargs)

    def _get_model(self, model: str, temperature: float) -> BaseChatModel:
        key = (model, temperature)
        if key not in self._models:
            self._models[key] = self._create_model(model, temperature)
        return self._models[key]

    async def chat(self, history: list[ChatMessage], model: str, temperature: float | None = None) -> str:
        """Return the model's reply to ``history``."""
        temp = self.config.default_temperature if temperature is None else temperature
        response = await self._get_model(model, temp).ainvoke(to_langchain_messages(history))
        content = response.content
        if isinstance(content, list):
            content = "".join(
                part.get("text", "") if isinstance(part, dict) else str(part) for part in content
            )
        return str(content).strip()
