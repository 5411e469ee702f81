"""Summary: Chat model provider abstraction and implementations.

Importance: Centralizes LLM access so the agent can run on mock, local, or cloud models.
Alternatives: Call provider SDKs directly inside the agent.
"""

from __future__ import annotations

import json
import logging
import time
import urllib.error
import urllib.request
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from financeai.config import AppConfig


logger = logging.getLogger(__name__)

OPENAI_CHAT_URL = "https://api.openai.com/v1/chat/completions"
RETRYABLE_STATUS = {429, 500, 502, 503, 504}


@dataclass(frozen=True)
class ToolSpec:
    """Summary: A function the model may call, described by a JSON schema.

    Importance: Providers translate this into their own tool formats.
    Alternatives: Hand-write provider-specific tool payloads.
    """

    name: str
    description: str
    parameters: dict[str, Any]

    def to_openai(self) -> dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


@dataclass(frozen=True)
class ToolCall:
    id: str
    name: str
    arguments: dict[str, Any]


@dataclass(frozen=True)
class ChatResult:
    """Summary: Normalized chat completion output.

    Importance: Keeps the agent loop independent of provider response shapes.
    Alternatives: Pass raw provider JSON to the agent.
    """

    text: str
    tool_calls: list[ToolCall] = field(default_factory=list)
    latency_ms: int = 0


class ChatProvider(ABC):
    """Summary: Abstract interface for tool-capable chat models.

    Importance: Allows switching between local and cloud LLMs without refactors.
    Alternatives: Use a single vendor SDK and accept lock-in risk.
    """

    @abstractmethod
    def chat(self, messages: list[dict[str, Any]], tools: list[ToolSpec]) -> ChatResult:
        """Summary: Run one chat completion over OpenAI-style messages.

        Importance: Standardizes AI outputs for the agent loop.
        Alternatives: Return provider-specific response objects directly.
        """


class MockChatProvider(ChatProvider):
    """Summary: Deterministic provider for local testing.

    Importance: Enables offline runs of the bot without API keys.
    Alternatives: Use a small local LLM for all development tasks.
    """

    def chat(self, messages: list[dict[str, Any]], tools: list[ToolSpec]) -> ChatResult:
        started = time.time()
        last_user = next(
            (message["content"] for message in reversed(messages) if message["role"] == "user"),
            "",
        )
        latency_ms = int((time.time() - started) * 1000)
        return ChatResult(text=f"[mock] {last_user[:240]}", latency_ms=latency_ms)


class OpenAiChatProvider(ChatProvider):
    """Summary: Provider using OpenAI chat completions with function calling.

    Importance: Gives the agent cloud-grade reasoning when configured.
    Alternatives: Use the responses API or a different provider.
    """

    def __init__(
        self,
        api_key: str,
        model: str,
        temperature: float = 0.1,
        max_retries: int = 5,
        url: str = OPENAI_CHAT_URL,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._temperature = temperature
        self._max_retries = max_retries
        self._url = url

    def chat(self, messages: list[dict[str, Any]], tools: list[ToolSpec]) -> ChatResult:
        payload: dict[str, Any] = {
            "model": self._model,
            "messages": messages,
            "temperature": self._temperature,
        }
        if tools:
            payload["tools"] = [tool.to_openai() for tool in tools]
        started = time.time()
        raw = _post_json(
            self._url,
            payload,
            headers={"Authorization": f"Bearer {self._api_key}"},
            max_retries=self._max_retries,
            service="OpenAI",
        )
        latency_ms = int((time.time() - started) * 1000)
        message = raw["choices"][0]["message"]
        calls = [
            ToolCall(
                id=call["id"],
                name=call["function"]["name"],
                arguments=_decode_arguments(call["function"].get("arguments")),
            )
            for call in message.get("tool_calls") or []
        ]
        return ChatResult(text=message.get("content") or "", tool_calls=calls, latency_ms=latency_ms)


class OllamaChatProvider(ChatProvider):
    """Summary: Provider that targets a local Ollama server's chat endpoint.

    Importance: Supports privacy-sensitive deployments on local hardware.
    Alternatives: Use llama.cpp directly with a Python binding.
    """

    def __init__(self, base_url: str, model: str, temperature: float = 0.1) -> None:
        self._base_url = base_url.rstrip("/")
        self._model = model
        self._temperature = temperature

    def chat(self, messages: list[dict[str, Any]], tools: list[ToolSpec]) -> ChatResult:
        payload: dict[str, Any] = {
            "model": self._model,
            "messages": [_to_ollama_message(message) for message in messages],
            "stream": False,
            "options": {"temperature": self._temperature},
        }
        if tools:
            payload["tools"] = [tool.to_openai() for tool in tools]
        started = time.time()
        raw = _post_json(f"{self._base_url}/api/chat", payload, service="Ollama")
        latency_ms = int((time.time() - started) * 1000)
        message = raw.get("message", {})
        calls = [
            ToolCall(
                id=f"call_{index}",
                name=call["function"]["name"],
                arguments=_decode_arguments(call["function"].get("arguments")),
            )
            for index, call in enumerate(message.get("tool_calls") or [])
        ]
        return ChatResult(text=message.get("content") or "", tool_calls=calls, latency_ms=latency_ms)


@dataclass(frozen=True)
class AiProviderFactory:
    """Summary: Factory for selecting chat providers from configuration.

    Importance: Keeps provider selection logic centralized.
    Alternatives: Wire providers manually at the application entrypoint.
    """

    config: AppConfig

    def build(self) -> ChatProvider:
        if self.config.ai_provider == "ollama":
            return OllamaChatProvider(self.config.ollama_url, self.config.ollama_model)
        if self.config.ai_provider == "openai":
            if not self.config.openai_api_key:
                raise ValueError("OPENAI_API_KEY is required for openai provider")
            return OpenAiChatProvider(self.config.openai_api_key, self.config.openai_model)
        return MockChatProvider()


def _post_json(
    url: str,
    payload: dict[str, Any],
    headers: dict[str, str] | None = None,
    max_retries: int = 0,
    service: str = "AI",
) -> dict[str, Any]:
    """Summary: POST a JSON payload and decode the JSON response.

    Importance: Retries rate limits and transient server errors with backoff.
    Alternatives: Use requests with a urllib3 Retry adapter.
    """

    data = json.dumps(payload).encode("utf-8")
    attempt = 0
    while True:
        request = urllib.request.Request(
            url=url,
            data=data,
            headers={"Content-Type": "application/json", **(headers or {})},
            method="POST",
        )
        try:
            with urllib.request.urlopen(request, timeout=60) as response:
                return json.loads(response.read().decode("utf-8"))
        except urllib.error.HTTPError as exc:
            if exc.code not in RETRYABLE_STATUS or attempt >= max_retries:
                body = exc.read().decode("utf-8", errors="replace")
                raise RuntimeError(f"{service} request failed ({exc.code}): {body}") from exc
        except urllib.error.URLError as exc:
            if attempt >= max_retries:
                raise RuntimeError(f"{service} request failed: {exc}") from exc
        attempt += 1
        delay = min(2 ** attempt, 30)
        logger.warning("%s request failed; retry %s/%s in %ss.", service, attempt, max_retries, delay)
        time.sleep(delay)


def _decode_arguments(arguments: str | dict[str, Any] | None) -> dict[str, Any]:
    if not arguments:
        return {}
    if isinstance(arguments, dict):
        return arguments
    try:
        decoded = json.loads(arguments)
    except json.JSONDecodeError:
        logger.warning("Model returned malformed tool arguments: %s", arguments[:200])
        return {}
    return decoded if isinstance(decoded, dict) else {}


def _to_ollama_message(message: dict[str, Any]) -> dict[str, Any]:
    converted = {"role": message["role"], "content": message.get("content") or ""}
    if message.get("tool_calls"):
        converted["tool_calls"] = [
            {
                "function": {
                    "name": call["function"]["name"],
                    "arguments": _decode_arguments(call["function"]["arguments"]),
                }
            }
            for call in message["tool_calls"]
        ]
    return converted
