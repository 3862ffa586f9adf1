"""
LLM Provider Abstraction.

Provides a unified interface for LLM calls that can be swapped between:
- OpenAIProvider: OpenAI chat completions (default)
- AnthropicProvider: Claude messages API
- NullLLMProvider: Stub used when no API key is configured
"""

import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from .config import Settings
from .errors import LLMProviderError

logger = logging.getLogger(__name__)

DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 2000

JSON_SYSTEM_PROMPT = (
    "You are a recipe assistant. Respond with ONLY valid JSON matching the requested schema; "
    "no prose, no comments, no markdown."
)


def _schema_instructions(schema: Dict[str, Any]) -> str:
    return "Respond with a JSON object that conforms to this JSON schema:\n" + json.dumps(schema, indent=2)


class LLMProvider(ABC):
    """Abstract base class for LLM providers."""

    model: str = ""

    @abstractmethod
    def complete(
        self,
        prompt: str,
        system: Optional[str] = None,
        temperature: float = DEFAULT_TEMPERATURE,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ) -> str:
        """Generate a free-text completion."""
        pass

    @abstractmethod
    def generate_object(
        self,
        prompt: str,
        schema: Dict[str, Any],
        system: Optional[str] = None,
        temperature: float = DEFAULT_TEMPERATURE,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ) -> str:
        """Generate raw JSON text for an object matching schema.

        The caller is responsible for parsing and validating the text.
        """
        pass

    @property
    @abstractmethod
    def is_null(self) -> bool:
        """Return True if this is a null/mock provider."""
        pass


class OpenAIProvider(LLMProvider):
    """OpenAI (or OpenAI-compatible) chat completions provider."""

    def __init__(self, api_key: str, model: str, timeout: float = 60.0, base_url: Optional[str] = None):
        from openai import OpenAI
        if not api_key:
            raise ValueError("OPENAI_API_KEY required for OpenAIProvider")
        self.model = model
        self.client = OpenAI(api_key=api_key, timeout=timeout, base_url=base_url)

    def _chat(self, messages, temperature: float, max_tokens: int, **kwargs) -> str:
        from openai import OpenAIError
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
                **kwargs,
            )
        except OpenAIError as e:
            raise LLMProviderError(f"OpenAI API error: {e}") from e

        if not response.choices:
            raise LLMProviderError("OpenAI API returned no choices")
        content = response.choices[0].message.content
        if content is None:
            raise LLMProviderError("OpenAI API returned an empty message")
        return content

    def complete(self, prompt, system=None, temperature=DEFAULT_TEMPERATURE, max_tokens=DEFAULT_MAX_TOKENS) -> str:
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})
        return self._chat(messages, temperature, max_tokens)

    def generate_object(self, prompt, schema, system=None, temperature=DEFAULT_TEMPERATURE, max_tokens=DEFAULT_MAX_TOKENS) -> str:
        messages = [
            {"role": "system", "content": f"{system or JSON_SYSTEM_PROMPT}\n\n{_schema_instructions(schema)}"},
            {"role": "user", "content": prompt},
        ]
        return self._chat(messages, temperature, max_tokens, response_format={"type": "json_object"})

    @property
    def is_null(self) -> bool:
        return False


class AnthropicProvider(LLMProvider):
    """Anthropic Claude messages provider."""

    def __init__(self, api_key: str, model: str, timeout: float = 60.0):
        from anthropic import Anthropic
        if not api_key:
            raise ValueError("ANTHROPIC_API_KEY required for AnthropicProvider")
        self.model = model
        self.client = Anthropic(api_key=api_key, timeout=timeout)

    def _message(self, prompt: str, system: Optional[str], temperature: float, max_tokens: int) -> str:
        from anthropic import AnthropicError
        params = {
            "model": self.model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system:
            params["system"] = system
        try:
            response = self.client.messages.create(**params)
        except AnthropicError as e:
            raise LLMProviderError(f"Anthropic API error: {e}") from e

        for block in response.content:
            if getattr(block, "type", None) == "text":
                return block.text
        raise LLMProviderError("Anthropic API returned no text content")

    def complete(self, prompt, system=None, temperature=DEFAULT_TEMPERATURE, max_tokens=DEFAULT_MAX_TOKENS) -> str:
        return self._message(prompt, system, temperature, max_tokens)

    def generate_object(self, prompt, schema, system=None, temperature=DEFAULT_TEMPERATURE, max_tokens=DEFAULT_MAX_TOKENS) -> str:
        system_prompt = f"{system or JSON_SYSTEM_PROMPT}\n\n{_schema_instructions(schema)}"
        return self._message(prompt, system_prompt, temperature, max_tokens)

    @property
    def is_null(self) -> bool:
        return False


class NullLLMProvider(LLMProvider):
    """
    NullLLMProvider is NOT a mock of provider behavior.
    It exists to:
    - let the app run without an API key
    - verify control flow
    - assert call boundaries

    Callers check is_null and skip LLM work; do NOT make this "smart".
    """

    model = "null-llm"

    def __init__(self):
        self.call_count = 0
        self.last_prompt = None
        logger.info("NullLLMProvider initialized - LLM calls will return canned responses")

    def _record(self, prompt: str) -> str:
        self.call_count += 1
        self.last_prompt = prompt
        logger.debug(f"NullLLM call #{self.call_count}")
        return "[NullLLM: No real LLM call made]"

    def complete(self, prompt, system=None, temperature=DEFAULT_TEMPERATURE, max_tokens=DEFAULT_MAX_TOKENS) -> str:
        return self._record(prompt)

    def generate_object(self, prompt, schema, system=None, temperature=DEFAULT_TEMPERATURE, max_tokens=DEFAULT_MAX_TOKENS) -> str:
        return self._record(prompt)

    @property
    def is_null(self) -> bool:
        return True


def get_llm_provider(settings: Settings) -> LLMProvider:
    """
    Get an LLM provider instance.

    Args:
        settings: Resolved configuration

    Returns:
        LLMProvider instance; NullLLMProvider when USE_NULL_LLM is set or the
        configured provider has no API key
    """
    if settings.use_null_llm:
        return NullLLMProvider()

    api_key = settings.llm_api_key
    if not api_key:
        logger.warning(f"No API key found for LLM provider '{settings.llm_provider}', using NullLLMProvider")
        return NullLLMProvider()

    if settings.llm_provider == "anthropic":
        return AnthropicProvider(api_key=api_key, model=settings.model, timeout=settings.llm_timeout)
    return OpenAIProvider(api_key=api_key, model=settings.model, timeout=settings.llm_timeout)
