"""
Thin litellm wrapper used by every LLM caller in the planner.

One call = one chat-completion round-trip. Provider failures are mapped onto
the planner's own error taxonomy so callers can tell retryable transport
problems (timeouts, rate limits) from fatal ones (bad API key).
"""
from __future__ import annotations

import logging
from typing import Optional

import litellm

from config import Settings
from agents.errors import (
    AuthError,
    CompletionTimeout,
    MalformedResponse,
    RateLimited,
    UpstreamUnavailable,
)

logger = logging.getLogger(__name__)

# Silence litellm's own verbose logging
litellm.suppress_debug_info = True
# Drop params unsupported by the active model (e.g. temperature on gpt-5)
litellm.drop_params = True


class CompletionClient:
    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or Settings.from_env()

    @property
    def is_configured(self) -> bool:
        return self.settings.llm_configured

    @property
    def model(self) -> str:
        return self.settings.model_name

    def complete(self, messages: list[dict], max_tokens: int = 2000,
                 temperature: float = 0.7) -> str:
        """Send *messages* and return the assistant's text content."""
        if not self.is_configured:
            raise AuthError(f"No API key configured for provider {self.settings.llm_provider!r}")

        try:
            response = litellm.completion(
                model=self.model,
                messages=messages,
                max_tokens=max_tokens,
                temperature=temperature,
                timeout=self.settings.llm_timeout_seconds,
                api_key=self.settings.llm_api_key,
            )
        # Timeout subclasses APIConnectionError, so it is checked first
        except litellm.Timeout as exc:
            raise CompletionTimeout(str(exc)) from exc
        except litellm.AuthenticationError as exc:
            raise AuthError(str(exc)) from exc
        except litellm.RateLimitError as exc:
            raise RateLimited(str(exc)) from exc
        except (litellm.APIConnectionError, litellm.ServiceUnavailableError,
                litellm.BadGatewayError, litellm.InternalServerError,
                litellm.BadRequestError, litellm.NotFoundError,
                litellm.APIError) as exc:
            raise UpstreamUnavailable(str(exc)) from exc

        try:
            content = response.choices[0].message.content
        except (AttributeError, IndexError) as exc:
            raise MalformedResponse(f"Completion had no message content: {exc}") from exc
        if not content:
            raise MalformedResponse("Completion returned empty content")
        logger.debug("Completion from %s: %d chars", self.model, len(content))
        return content
