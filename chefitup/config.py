"""
Process configuration for ChefItUp.

All configuration comes from environment variables (optionally loaded from a
.env file with python-dotenv). There is no custom flag parser.

Environment Variables:
    OPENAI_API_KEY / ANTHROPIC_API_KEY: LLM credentials
    LLM_PROVIDER: "openai" (default) or "anthropic"
    LLM_MODEL: Model id override
    LLM_TIMEOUT: HTTP timeout in seconds for LLM calls
    USE_NULL_LLM: Force the null provider (tests, offline)
    AI_SEARCH_ENABLED: Allow the LLM tiers of recipe search
    INSTACART_API_KEY / INSTACART_MOCK_MODE / INSTACART_BASE_URL: Export settings
    SUPABASE_URL / SUPABASE_ANON_KEY: Hosted backend (absent = preview mode)
    PREVIEW_SAMPLE_DATA: Seed meal plans with the sample dataset
    DEBUG: Verbose logging
    PORT: API server port
"""

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from dotenv import load_dotenv

DEFAULT_OPENAI_MODEL = "gpt-4o"
DEFAULT_ANTHROPIC_MODEL = "claude-sonnet-4-20250514"
DEFAULT_INSTACART_BASE_URL = "https://connect.dev.instacart.tools/idp/v1/products"

_TRUE_VALUES = ("true", "1", "yes")


def _flag(env: Mapping[str, str], name: str, default: bool) -> bool:
    value = env.get(name)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in _TRUE_VALUES


def _optional(env: Mapping[str, str], name: str) -> Optional[str]:
    value = env.get(name, "").strip()
    return value or None


@dataclass
class Settings:
    """Resolved configuration values."""

    openai_api_key: Optional[str] = None
    anthropic_api_key: Optional[str] = None
    llm_provider: str = "openai"
    llm_model: Optional[str] = None
    llm_timeout: float = 60.0
    use_null_llm: bool = False
    ai_search_enabled: bool = True

    instacart_api_key: Optional[str] = None
    instacart_mock_mode: bool = False
    instacart_base_url: str = DEFAULT_INSTACART_BASE_URL

    supabase_url: Optional[str] = None
    supabase_anon_key: Optional[str] = None
    preview_sample_data: bool = True

    debug: bool = False
    port: int = 5000

    @property
    def model(self) -> str:
        """Model id for the configured provider."""
        if self.llm_model:
            return self.llm_model
        if self.llm_provider == "anthropic":
            return DEFAULT_ANTHROPIC_MODEL
        return DEFAULT_OPENAI_MODEL

    @property
    def llm_api_key(self) -> Optional[str]:
        """Credential for the configured provider, if any."""
        if self.llm_provider == "anthropic":
            return self.anthropic_api_key
        return self.openai_api_key

    @property
    def has_hosted_backend(self) -> bool:
        return bool(self.supabase_url and self.supabase_anon_key)

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None, dotenv: bool = True) -> "Settings":
        """
        Build settings from environment variables.

        Args:
            env: Mapping to read instead of os.environ (tests)
            dotenv: Load a .env file into os.environ first

        Returns:
            Settings instance
        """
        if env is None:
            if dotenv:
                load_dotenv()
            env = os.environ

        provider = env.get("LLM_PROVIDER", "openai").strip().lower() or "openai"
        if provider not in ("openai", "anthropic"):
            raise ValueError(f"Unsupported LLM_PROVIDER: {provider}")

        return cls(
            openai_api_key=_optional(env, "OPENAI_API_KEY"),
            anthropic_api_key=_optional(env, "ANTHROPIC_API_KEY"),
            llm_provider=provider,
            llm_model=_optional(env, "LLM_MODEL"),
            llm_timeout=float(env.get("LLM_TIMEOUT", "60")),
            use_null_llm=_flag(env, "USE_NULL_LLM", False),
            ai_search_enabled=_flag(env, "AI_SEARCH_ENABLED", True),
            instacart_api_key=_optional(env, "INSTACART_API_KEY"),
            instacart_mock_mode=_flag(env, "INSTACART_MOCK_MODE", False),
            instacart_base_url=env.get("INSTACART_BASE_URL", DEFAULT_INSTACART_BASE_URL).rstrip("/"),
            supabase_url=_optional(env, "SUPABASE_URL"),
            supabase_anon_key=_optional(env, "SUPABASE_ANON_KEY"),
            preview_sample_data=_flag(env, "PREVIEW_SAMPLE_DATA", True),
            debug=_flag(env, "DEBUG", False),
            port=int(env.get("PORT", "5000")),
        )
