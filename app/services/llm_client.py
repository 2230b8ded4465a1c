"""
LLM Gateway

The provider exposes an OpenAI-compatible API, so we use the openai library
with a configurable base URL (Groq by default).

The gateway is an untrusted, rate-limited dependency:
- It may be slow (hundreds of ms to seconds)
- It may return malformed JSON even in JSON mode
- It may throttle us with HTTP 429

Callers never assume success. Output is raw text; coercion into a
typed object happens in app.utils.json_coercion.
"""
import logging
from typing import Optional

import openai
from openai import OpenAI

from app.core.config import get_settings
from app.core.errors import LLMRateLimited, LLMTransportFailed

settings = get_settings()
logger = logging.getLogger(__name__)


class LLMClient:
    """
    Thin wrapper around the chat completions endpoint that translates
    provider errors into the pipeline's error taxonomy.
    """

    def __init__(self, client: OpenAI = None):
        self.client = client or OpenAI(
            api_key=settings.llm_api_key or "missing-key",
            base_url=settings.llm_base_url,
            timeout=settings.llm_timeout_seconds,
            max_retries=0,  # a 429 must surface, not be retried
        )
        self.model = settings.llm_model

    def complete(
        self,
        system_prompt: Optional[str],
        user_text: str,
        model: str = None,
        temperature: float = 0.1,
        json_mode: bool = True,
        max_tokens: int = None,
    ) -> str:
        """
        Send one prompt and return the raw text of the first choice.

        Raises:
            LLMRateLimited: provider throttling
            LLMTransportFailed: network, timeout or any other API failure
        """
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": user_text})

        kwargs = {
            "model": model or self.model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens or settings.llm_max_tokens,
        }
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        try:
            response = self.client.chat.completions.create(**kwargs)
        except openai.RateLimitError as e:
            raise LLMRateLimited(str(e)) from e
        except openai.APIStatusError as e:
            if e.status_code == 429 or "rate limit" in str(e).lower():
                raise LLMRateLimited(str(e)) from e
            raise LLMTransportFailed(f"LLM request failed ({e.status_code}): {e}") from e
        except openai.APIError as e:
            # APIConnectionError / APITimeoutError and anything else from the SDK
            if "rate limit" in str(e).lower():
                raise LLMRateLimited(str(e)) from e
            raise LLMTransportFailed(f"LLM request failed: {e}") from e

        return response.choices[0].message.content or ""

    def test_connection(self) -> bool:
        """Test if the LLM endpoint is reachable"""
        try:
            response = self.complete(
                "You are a test assistant.",
                "Reply with exactly: OK",
                json_mode=False,
                max_tokens=10,
            )
            return "OK" in response.upper()
        except (LLMRateLimited, LLMTransportFailed) as e:
            logger.warning("LLM connection failed: %s", e)
            return False


# Singleton instance
_llm_client: LLMClient = None


def get_llm_client() -> LLMClient:
    """Get or create LLM client (singleton pattern)"""
    global _llm_client
    if _llm_client is None:
        _llm_client = LLMClient()
    return _llm_client
