"""
Provider-agnostic chat-completion client for the portfolio assistant.

Supports OpenAI and Anthropic with a shared message + tool-calling interface.
Messages are role-tagged dicts ({"role": ..., "content": ...}); tools are
provider-neutral declarations ({"name", "description", "parameters"}).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .errors import CompletionFailure
from .llm_utils import parse_tool_arguments

logger = logging.getLogger("assistant.common.llm_client")


@dataclass
class ToolCall:
    """A structured tool invocation requested by the model"""
    name: str
    args: Dict[str, Any] = field(default_factory=dict)
    id: Optional[str] = None


@dataclass
class ChatReply:
    """Role-tagged model reply with zero or more tool-call requests"""
    content: str
    role: str = "assistant"
    tool_calls: List[ToolCall] = field(default_factory=list)

    @property
    def wants_tools(self) -> bool:
        return bool(self.tool_calls)


class LLMClient:
    """Unified async chat client across LLM providers."""

    def __init__(
        self,
        provider: str = "openai",
        model: str = "",
        openai_api_key: Optional[str] = None,
        anthropic_api_key: Optional[str] = None,
        temperature: float = 0.2,
        max_tokens: int = 900,
        timeout: float = 30.0,
    ) -> None:
        self.provider = (provider or "openai").lower()
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout
        self._client = None

        if self.provider == "openai":
            if not openai_api_key:
                logger.info("%s API key not provided, LLM client unavailable", self.provider)
                return
            try:
                from openai import AsyncOpenAI

                self._client = AsyncOpenAI(api_key=openai_api_key)
            except ImportError:
                logger.warning("openai package not installed")
            except Exception as e:
                logger.warning("Failed to initialize OpenAI client: %s", e)
            return

        if self.provider == "anthropic":
            if not anthropic_api_key:
                logger.info("%s API key not provided, LLM client unavailable", self.provider)
                return
            try:
                import anthropic

                self._client = anthropic.AsyncAnthropic(api_key=anthropic_api_key)
            except ImportError:
                logger.warning("anthropic package not installed")
            except Exception as e:
                logger.warning("Failed to initialize Anthropic client: %s", e)
            return

        logger.warning("Unsupported LLM provider: %s", self.provider)

    @classmethod
    def from_config(cls, llm_config) -> "LLMClient":
        """Build a client from an LLMConfig section."""
        model = (
            llm_config.anthropic_model
            if (llm_config.provider or "").lower() == "anthropic"
            else llm_config.openai_model
        )
        return cls(
            provider=llm_config.provider,
            model=model,
            openai_api_key=llm_config.openai_api_key or None,
            anthropic_api_key=llm_config.anthropic_api_key or None,
            temperature=llm_config.temperature,
            max_tokens=llm_config.max_tokens,
            timeout=llm_config.timeout,
        )

    @property
    def is_available(self) -> bool:
        return self._client is not None

    async def chat(
        self,
        messages: List[Dict[str, str]],
        *,
        tools: Optional[List[Dict[str, Any]]] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> ChatReply:
        """
        Send role-tagged messages (and optional tool declarations) to the model.

        Raises:
            CompletionFailure: client unavailable or the provider call failed
        """
        if not self.is_available:
            raise CompletionFailure("LLM client is not available")

        temperature = self.temperature if temperature is None else temperature
        max_tokens = max_tokens or self.max_tokens

        try:
            if self.provider == "openai":
                return await self._chat_openai(messages, tools, temperature, max_tokens)
            if self.provider == "anthropic":
                return await self._chat_anthropic(messages, tools, temperature, max_tokens)
        except CompletionFailure:
            raise
        except Exception as e:
            raise CompletionFailure(f"{self.provider} chat call failed: {e}") from e

        raise CompletionFailure(f"Unsupported LLM provider: {self.provider}")

    async def generate(
        self,
        prompt: str,
        *,
        system: Optional[str] = None,
        max_tokens: Optional[int] = None,
    ) -> str:
        """Single-prompt convenience wrapper over chat() without tools."""
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})
        reply = await self.chat(messages, max_tokens=max_tokens)
        return reply.content.strip()

    async def _chat_openai(self, messages, tools, temperature, max_tokens) -> ChatReply:
        params = {
            "model": self.model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
            "timeout": self.timeout,
        }
        if tools:
            params["tools"] = [
                {
                    "type": "function",
                    "function": {
                        "name": t["name"],
                        "description": t["description"],
                        "parameters": t["parameters"],
                    },
                }
                for t in tools
            ]

        response = await self._client.chat.completions.create(**params)
        if not response.choices:
            raise CompletionFailure("OpenAI returned no choices")

        message = response.choices[0].message
        tool_calls = [
            ToolCall(
                name=tc.function.name,
                args=parse_tool_arguments(tc.function.arguments),
                id=tc.id,
            )
            for tc in (message.tool_calls or [])
        ]
        return ChatReply(
            content=message.content or "",
            role=message.role or "assistant",
            tool_calls=tool_calls,
        )

    async def _chat_anthropic(self, messages, tools, temperature, max_tokens) -> ChatReply:
        # Anthropic takes system text separately and rejects empty turns
        system_parts = [m["content"] for m in messages if m["role"] == "system" and m["content"]]
        turns = [
            {"role": m["role"], "content": m["content"]}
            for m in messages
            if m["role"] != "system" and m["content"]
        ]

        params = {
            "model": self.model,
            "messages": turns,
            "temperature": temperature,
            "max_tokens": max_tokens,
            "timeout": self.timeout,
        }
        if system_parts:
            params["system"] = "\n\n".join(system_parts)
        if tools:
            params["tools"] = [
                {
                    "name": t["name"],
                    "description": t["description"],
                    "input_schema": t["parameters"],
                }
                for t in tools
            ]

        response = await self._client.messages.create(**params)

        text_parts = []
        tool_calls = []
        for block in response.content:
            if block.type == "text":
                text_parts.append(block.text)
            elif block.type == "tool_use":
                tool_calls.append(
                    ToolCall(name=block.name, args=parse_tool_arguments(block.input), id=block.id)
                )
        return ChatReply(content="".join(text_parts), tool_calls=tool_calls)
