from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

import openai
from openai import AsyncOpenAI

from .errors import ReasoningUnavailable

logger = logging.getLogger(__name__)

_NEW_STYLE_MODEL_PREFIXES = (
    "gpt-4o",
    "gpt-4.1",
    "gpt-5",
    "o1",
    "o3",
    "o4",
    "o-",
)


def _token_param(model: str | None) -> str:
    name = (model or "").lower()
    for prefix in _NEW_STYLE_MODEL_PREFIXES:
        if name.startswith(prefix):
            return "max_completion_tokens"
    return "max_tokens"


@dataclass(frozen=True, slots=True)
class ToolCall:
    id: str
    name: str
    arguments: str


@dataclass(slots=True)
class ReasoningTurn:
    content: str | None = None
    tool_calls: list[ToolCall] = field(default_factory=list)

    def to_message(self) -> dict[str, Any]:
        message: dict[str, Any] = {"role": "assistant", "content": self.content}
        if self.tool_calls:
            message["tool_calls"] = [
                {
                    "id": call.id,
                    "type": "function",
                    "function": {"name": call.name, "arguments": call.arguments},
                }
                for call in self.tool_calls
            ]
        return message


class Reasoner(Protocol):
    async def complete(
        self, messages: list[dict[str, Any]], tools: list[dict[str, Any]] | None
    ) -> ReasoningTurn: ...

    async def aclose(self) -> None: ...


class OpenAIReasoner:
    """Chat-completions backed reasoning collaborator with function tools."""

    def __init__(
        self,
        api_key: str,
        *,
        model: str = "gpt-4o",
        base_url: str | None = None,
        timeout: float = 60.0,
        max_tokens: int = 2048,
        temperature: float = 0.7,
        client: AsyncOpenAI | None = None,
    ) -> None:
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self._client = client or AsyncOpenAI(
            api_key=api_key, base_url=base_url, timeout=timeout, max_retries=1
        )

    async def complete(
        self, messages: list[dict[str, Any]], tools: list[dict[str, Any]] | None
    ) -> ReasoningTurn:
        kwargs: dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": self.temperature,
            _token_param(self.model): self.max_tokens,
        }
        if tools:
            kwargs["tools"] = tools
            kwargs["tool_choice"] = "auto"

        try:
            response = await self._client.chat.completions.create(**kwargs)
        except openai.OpenAIError as exc:
            logger.warning("Reasoning call failed: %s", exc)
            raise ReasoningUnavailable("Reasoning service call failed") from exc

        if not response.choices:
            raise ReasoningUnavailable("Reasoning service returned no choices")
        message = response.choices[0].message
        calls = [
            ToolCall(
                id=call.id,
                name=call.function.name,
                arguments=call.function.arguments or "{}",
            )
            for call in message.tool_calls or []
            if call.type == "function"
        ]
        return ReasoningTurn(content=message.content, tool_calls=calls)

    async def aclose(self) -> None:
        await self._client.close()


__all__ = ["OpenAIReasoner", "Reasoner", "ReasoningTurn", "ToolCall"]
