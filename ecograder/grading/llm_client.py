"""
LLM client for the grading oracle.

Provides a wrapper around the OpenAI SDK pointed at an OpenAI-compatible
endpoint (Gemini by default). Every attempt passes through a token bucket;
HTTP 429 and connection failures are retried with exponential backoff,
any other error status fails the call immediately.
"""

import logging
import time
from typing import Callable

from openai import APIConnectionError, APIStatusError, OpenAI, RateLimitError

from ecograder.config import Settings, get_settings
from ecograder.grading.rate_limiter import TokenBucket

logger = logging.getLogger(__name__)

# (backoff log reason, exhaustion message) keyed by "is a 429"
_RETRYABLE = {
    True: ("Rate limited (429)", "Rate limit exceeded"),
    False: ("Connection error", "Connection failed"),
}


class LLMError(Exception):
    """Raised when an oracle call fails."""

    def __init__(self, message: str, cause: Exception | None = None, retryable: bool = False):
        self.cause = cause
        self.retryable = retryable
        super().__init__(message)


class LLMClient:
    """
    Client for the grading oracle.

    Uses the OpenAI SDK with a custom base URL. The SDK's own retries are
    disabled so that the backoff policy here is the only one in effect.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        rate_limiter: TokenBucket | None = None,
        api_key: str | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize the LLM client.

        Args:
            settings: Configuration settings. Uses global settings if not provided.
            rate_limiter: Shared token bucket. A private one is built from settings if omitted.
            api_key: Key override (e.g. the quiz key); defaults to the grading key.
            sleep: Sleep function used for backoff, injectable for tests.
        """
        self._settings = settings or get_settings()
        self._client = OpenAI(
            api_key=api_key or self._settings.gemini_api_key,
            base_url=self._settings.gemini_base_url,
            max_retries=0,
        )
        self._rate_limiter = rate_limiter or TokenBucket(
            rate=self._settings.oracle_requests_per_second,
            capacity=self._settings.oracle_burst,
        )
        self._sleep = sleep

        self._max_retries = self._settings.llm_max_retries
        self._base_delay = self._settings.llm_retry_base_delay
        self._max_delay = self._settings.llm_retry_max_delay

    @property
    def model(self) -> str:
        return self._settings.gemini_model

    def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> str:
        """
        Generate a response from the oracle.

        Args:
            system_prompt: System message defining the oracle's role.
            user_prompt: User message with the actual request.
            temperature: Override temperature (uses config default if None).
            max_tokens: Override maximum reply tokens.

        Returns:
            The generated text, or an empty string if the oracle returned none.

        Raises:
            LLMError: If the call fails or retries are exhausted.
        """
        messages: list[dict[str, str]] = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ]
        temp = temperature if temperature is not None else self._settings.llm_temperature
        tokens = max_tokens or self._settings.llm_max_tokens

        return self._call_with_retry(messages, temp, tokens)

    def _call_with_retry(
        self,
        messages: list[dict[str, str]],
        temperature: float,
        max_tokens: int,
    ) -> str:
        for attempt in range(self._max_retries + 1):
            self._rate_limiter.acquire()
            try:
                response = self._client.chat.completions.create(
                    model=self._settings.gemini_model,
                    messages=messages,  # type: ignore[arg-type]
                    temperature=temperature,
                    max_tokens=max_tokens,
                )

            except (RateLimitError, APIConnectionError) as e:
                reason, exhausted = _RETRYABLE[isinstance(e, RateLimitError)]
                if attempt < self._max_retries:
                    self._backoff(attempt, reason)
                    continue
                raise LLMError(
                    f"{exhausted} after {self._max_retries} retries", cause=e, retryable=True
                ) from e

            except APIStatusError as e:
                logger.error("Oracle returned HTTP %s: %s", e.status_code, e.message)
                raise LLMError(
                    f"API error {e.status_code}: {e.message}",
                    cause=e,
                    retryable=False,
                ) from e

            except Exception as e:
                raise LLMError(f"Unexpected error: {e}", cause=e, retryable=False) from e

            if response.choices and response.choices[0].message.content:
                return response.choices[0].message.content

            logger.warning("Oracle returned an empty completion")
            return ""

        # Unreachable: the final attempt either returns or raises.
        raise LLMError(f"Failed after {self._max_retries} retries")

    def _backoff(self, attempt: int, reason: str) -> None:
        delay = self._calculate_delay(attempt)
        logger.warning(
            "%s. Retrying in %.1fs (attempt %d/%d)",
            reason,
            delay,
            attempt + 1,
            self._max_retries,
        )
        self._sleep(delay)

    def _calculate_delay(self, attempt: int) -> float:
        """
        Calculate delay for exponential backoff.

        Args:
            attempt: Current attempt number (0-indexed).

        Returns:
            Delay in seconds.
        """
        delay = self._base_delay * (2**attempt)
        return min(delay, self._max_delay)

    def health_check(self) -> bool:
        """
        Check if the oracle is reachable.

        Returns:
            True if the API answered, False otherwise.
        """
        try:
            response = self._client.chat.completions.create(
                model=self._settings.gemini_model,
                messages=[{"role": "user", "content": "ping"}],
                max_tokens=5,
            )
            return bool(response.choices)
        except Exception as e:
            logger.warning("Oracle health check failed: %s", e)
            return False
