"""LLM provider abstraction and implementations."""

import json
import os
import re
from abc import ABC, abstractmethod
from typing import Any

import httpx

from ..config import Config, LLMConfig


class LLMError(Exception):
    """Error from an LLM provider call."""

    pass


def parse_json_response(response: str) -> dict[str, Any]:
    """Parse a JSON object out of an LLM response.

    Handles responses wrapped in markdown code blocks or surrounded by prose.

    Raises:
        LLMError: If no JSON object can be parsed.
    """
    text = response.strip()

    json_block_pattern = r"```(?:json)?\s*([\s\S]*?)```"
    matches = re.findall(json_block_pattern, text)
    if matches:
        text = matches[0].strip()

    json_match = re.search(r"(\{[\s\S]*\})", text)
    if json_match:
        text = json_match.group(1)

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise LLMError(f"Failed to parse JSON response: {e}\nResponse: {response[:500]}")
    if not isinstance(data, dict):
        raise LLMError(f"Expected a JSON object, got {type(data).__name__}")
    return data


class LLMProvider(ABC):
    """Abstract base class for LLM providers."""

    def __init__(self, config: LLMConfig):
        self.config = config

    @abstractmethod
    async def generate(self, prompt: str, system_prompt: str | None = None) -> str:
        """Generate a response from the LLM.

        Args:
            prompt: The user prompt
            system_prompt: Optional system prompt

        Returns:
            The generated text response
        """
        pass

    @abstractmethod
    async def generate_json(
        self, prompt: str, system_prompt: str | None = None
    ) -> dict[str, Any]:
        """Generate a JSON response from the LLM.

        Args:
            prompt: The user prompt
            system_prompt: Optional system prompt

        Returns:
            Parsed JSON response as a dictionary
        """
        pass


class GeminiLLMProvider(LLMProvider):
    """Google Gemini text generation over the REST ``generateContent`` endpoint."""

    BASE_URL = "https://generativelanguage.googleapis.com/v1beta"

    def __init__(
        self,
        config: LLMConfig | None = None,
        api_key: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(config or LLMConfig())
        self.api_key = api_key or os.environ.get(self.config.api_key_env)
        if not self.api_key:
            raise ValueError(
                f"Gemini API key required. Set {self.config.api_key_env} "
                "environment variable or pass api_key parameter."
            )
        self._transport = transport

    async def _call(self, prompt: str, system_prompt: str | None, json_mode: bool) -> str:
        generation_config: dict[str, Any] = {
            "temperature": self.config.temperature,
            "maxOutputTokens": self.config.max_tokens,
        }
        if json_mode:
            generation_config["responseMimeType"] = "application/json"

        body: dict[str, Any] = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": generation_config,
        }
        if system_prompt:
            body["systemInstruction"] = {"parts": [{"text": system_prompt}]}

        async with httpx.AsyncClient(timeout=120.0, transport=self._transport) as client:
            response = await client.post(
                f"{self.BASE_URL}/models/{self.config.model}:generateContent",
                headers={"x-goog-api-key": self.api_key, "Content-Type": "application/json"},
                json=body,
            )
            if response.status_code >= 400:
                raise LLMError(f"Gemini API error: {response.status_code} {response.text}")
            data = response.json()

        block_reason = data.get("promptFeedback", {}).get("blockReason")
        if block_reason:
            raise LLMError(f"Gemini blocked the prompt by content filters ({block_reason})")

        candidates = data.get("candidates") or []
        if not candidates:
            raise LLMError("Gemini API returned no candidates")
        parts = candidates[0].get("content", {}).get("parts", [])
        text = "".join(part.get("text", "") for part in parts)
        if not text:
            reason = candidates[0].get("finishReason", "unknown")
            raise LLMError(f"Gemini API returned an empty response (finish reason: {reason})")
        return text

    async def generate(self, prompt: str, system_prompt: str | None = None) -> str:
        return await self._call(prompt, system_prompt, json_mode=False)

    async def generate_json(
        self, prompt: str, system_prompt: str | None = None
    ) -> dict[str, Any]:
        return parse_json_response(await self._call(prompt, system_prompt, json_mode=True))


def get_llm_provider(config: Config) -> LLMProvider:
    """Get the LLM provider named in configuration.

    Raises:
        ValueError: If provider name is not recognized.
    """
    provider_name = config.llm.provider.lower()

    if provider_name == "gemini":
        return GeminiLLMProvider(config.llm)
    else:
        raise ValueError(f"Unknown LLM provider: {provider_name}")
