from dataclasses import dataclass, field
from typing import Optional, Dict, Any
import logging
import json

from openai import OpenAI, APIStatusError, OpenAIError

from .config import LLMSettings
from .exceptions import (
    LLMError,
    ProviderError,
    EmptyResponseError,
    MalformedResponseError,
    LLMCallFailed,
)

logger = logging.getLogger(__name__)


@dataclass
class LLMResult:
    """Content and usage returned by a structured completion"""
    content: str
    parsed: Dict[str, Any] = field(default_factory=dict)
    model: Optional[str] = None
    prompt_tokens: int = 0
    completion_tokens: int = 0


class LLMClient:
    """Gateway to an OpenAI-compatible chat-completion endpoint (Groq by default)"""

    def __init__(self, settings: LLMSettings, client: Optional[OpenAI] = None):
        self.settings = settings
        self.model = settings.model
        self.endpoint = f"{settings.api_base.rstrip('/')}/chat/completions"

        if not settings.is_configured:
            logger.warning("GROQ_API_KEY not found in environment variables")
        else:
            logger.info("LLM API key configured successfully")
            logger.info(f"Using model: {self.model}")
            logger.info(f"API endpoint: {self.endpoint}")

        if client is None:
            client_kwargs: Dict[str, Any] = {
                "api_key": settings.api_key,
                "base_url": settings.api_base,
                # A single attempt per call; callers decide on fallbacks
                "max_retries": 0,
            }
            if settings.timeout is not None:
                client_kwargs["timeout"] = settings.timeout
            client = OpenAI(**client_kwargs)
        self.client = client

    @property
    def is_configured(self) -> bool:
        return self.settings.is_configured

    def _complete(self, system_prompt: str, user_prompt: str, temperature: float,
                  max_tokens: Optional[int] = None):
        logger.info("Making LLM API call:")
        logger.info(f"  Endpoint: {self.endpoint}")
        logger.info(f"  Model: {self.model}")
        logger.info("  API key: present" if self.settings.api_key else "  API key: not set")

        request_kwargs: Dict[str, Any] = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt}
            ],
            "temperature": temperature,
        }
        if max_tokens is not None:
            request_kwargs["max_tokens"] = max_tokens

        try:
            response = self.client.chat.completions.create(**request_kwargs)
        except APIStatusError as e:
            reason = getattr(e.response, "reason_phrase", "") or ""
            logger.error(f"LLM API returned {e.status_code} {reason}")
            raise ProviderError(e.status_code, reason) from e
        except OpenAIError as e:
            logger.error(f"LLM API request failed: {type(e).__name__}")
            raise ProviderError(0, type(e).__name__) from e

        logger.info("Success response received")

        content = None
        if response.choices:
            content = response.choices[0].message.content
        if not content:
            raise EmptyResponseError()

        return response, content

    @staticmethod
    def _extract_json_from_response(response: str) -> str:
        """Strip markdown code fences some models wrap around JSON"""
        response = response.strip()
        if response.startswith('```json'):
            response = response[7:]
        elif response.startswith('```'):
            response = response[3:]
        if response.endswith('```'):
            response = response[:-3]
        return response.strip()

    def generate_structured(self, system_prompt: str, user_prompt: str) -> LLMResult:
        """
        Generate a JSON object response.

        Raises:
            LLMCallFailed: for any provider, empty-content or JSON parsing failure.
                The specific cause is chained and logged, never returned to callers.
        """
        try:
            response, content = self._complete(
                system_prompt, user_prompt, temperature=self.settings.structured_temperature
            )

            try:
                parsed = json.loads(self._extract_json_from_response(content))
            except json.JSONDecodeError as e:
                raise MalformedResponseError(f"Invalid JSON response from LLM API: {e.msg}") from e
            if not isinstance(parsed, dict):
                raise MalformedResponseError("LLM API returned JSON that is not an object")

            usage = getattr(response, "usage", None)
            return LLMResult(
                content=content,
                parsed=parsed,
                model=getattr(response, "model", None),
                prompt_tokens=(getattr(usage, "prompt_tokens", 0) or 0) if usage else 0,
                completion_tokens=(getattr(usage, "completion_tokens", 0) or 0) if usage else 0
            )
        except LLMError as e:
            logger.error(f"Error calling LLM API: {e.message}")
            raise LLMCallFailed() from e

    def generate_raw(self, system_prompt: str, user_prompt: str) -> str:
        """Generate free-form text (used for mock data)"""
        try:
            _, content = self._complete(
                system_prompt,
                user_prompt,
                temperature=self.settings.raw_temperature,
                max_tokens=self.settings.raw_max_tokens
            )
            return content
        except LLMError as e:
            logger.error(f"Error calling LLM API (raw): {e.message}")
            raise LLMCallFailed() from e
