"""
Configuration for the itinerary planner.

Values come from environment variables (a local .env file is loaded first).
Never commit API keys to version control!
"""
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

# Default model per provider (litellm "provider/model" naming)
_LLM_DEFAULTS = {
    "openai": "gpt-4o-mini",
    "gemini": "gemini-2.0-flash",
    "anthropic": "claude-sonnet-4-20250514",
    "groq": "llama-3.1-8b-instant",
}

_LLM_KEY_VARS = {
    "openai": "OPENAI_API_KEY",
    "gemini": "GEMINI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "groq": "GROQ_API_KEY",
}


def _env_bool(key: str, default: bool) -> bool:
    raw = os.getenv(key)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    llm_provider: str = "openai"
    llm_model: str = _LLM_DEFAULTS["openai"]
    llm_api_key: Optional[str] = None
    llm_timeout_seconds: float = 30.0
    generation_attempts: int = 3
    retry_backoff_seconds: float = 1.0
    database_url: str = "sqlite:///./itineraries.db"
    weather_enabled: bool = True
    log_level: str = "INFO"

    @property
    def llm_configured(self) -> bool:
        return bool(self.llm_api_key)

    @property
    def model_name(self) -> str:
        """Return the litellm model string (provider/model format)."""
        if self.llm_provider == "openai":
            return self.llm_model  # litellm uses bare model name for OpenAI
        return f"{self.llm_provider}/{self.llm_model}"

    @classmethod
    def from_env(cls) -> "Settings":
        provider = os.getenv("LLM_PROVIDER", "openai").lower().strip()
        if provider not in _LLM_DEFAULTS:
            provider = "openai"
        return cls(
            llm_provider=provider,
            llm_model=os.getenv("LLM_MODEL", _LLM_DEFAULTS[provider]),
            llm_api_key=os.getenv(_LLM_KEY_VARS[provider]) or None,
            llm_timeout_seconds=float(os.getenv("LLM_TIMEOUT_SECONDS", "30")),
            generation_attempts=int(os.getenv("GENERATION_ATTEMPTS", "3")),
            retry_backoff_seconds=float(os.getenv("RETRY_BACKOFF_SECONDS", "1.0")),
            database_url=os.getenv("DATABASE_URL", "sqlite:///./itineraries.db"),
            weather_enabled=_env_bool("WEATHER_ENABLED", True),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )
