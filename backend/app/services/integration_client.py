"""Adapter to the external generation API.

Deep module: callers pass the document, the anchored excerpt and the
feedback in, and get the rewritten document back or an
``UpstreamFailureError``. Retries, timeouts and response validation are
handled internally.

Retry policy: ``max_attempts`` calls in total with a fixed delay between
them. Timeouts, connection errors, 408, 429 and 5xx responses are retried.
Other client errors (bad key, bad request) and responses that fail
validation are returned to the caller as an error straight away.
"""

import logging
import re
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

from ..core.config import Settings, settings as default_settings
from ..exceptions import UpstreamFailureError
from .prompts import SYSTEM_PROMPT, build_integration_prompt

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"^```[\w-]*\n(?P<body>.*)\n```\s*$", re.DOTALL)

RETRYABLE_STATUS_CODES = frozenset({408, 429})


@dataclass(frozen=True)
class IntegrationResult:
    """Validated output of one successful integration call."""
    text: str
    model: str
    prompt_tokens: Optional[int] = None
    completion_tokens: Optional[int] = None


def _litellm_completion(**kwargs: Any) -> Any:
    import litellm

    return litellm.completion(**kwargs)


def is_retryable(exc: Exception) -> bool:
    """Whether a failed call is worth repeating.

    LiteLLM exceptions carry the provider's HTTP status as ``status_code``.
    """
    if isinstance(exc, (TimeoutError, ConnectionError)):
        return True
    status = getattr(exc, "status_code", None)
    if not isinstance(status, int):
        return False
    return status in RETRYABLE_STATUS_CODES or status >= 500


def strip_code_fence(text: str) -> str:
    """Remove a single code fence wrapping the whole response, if present."""
    match = _FENCE_RE.match(text.strip())
    return match.group("body") if match else text


def validate_output(original: str, output: str, ratio: float = 3.0) -> None:
    """Reject empty, runaway or truncated rewrites.

    Raises:
        UpstreamFailureError: the output is empty, longer than ``ratio`` times
            the input, or shorter than ``1/ratio`` of it.
    """
    if not output.strip():
        raise UpstreamFailureError("Generation API returned an empty document")
    if len(output) > ratio * len(original):
        raise UpstreamFailureError(
            f"Generation API output is too long ({len(output)} chars for a "
            f"{len(original)}-char document)"
        )
    if len(output) < len(original) / ratio:
        raise UpstreamFailureError(
            f"Generation API output is too short ({len(output)} chars for a "
            f"{len(original)}-char document)"
        )


class IntegrationClient:
    """Calls the generation API through LiteLLM with retry and validation.

    Args:
        config: Settings to read model, credentials and policy from.
        completion_fn: Replacement for ``litellm.completion`` (tests).
        sleep: Replacement for ``time.sleep`` between attempts (tests).
    """

    def __init__(
        self,
        config: Optional[Settings] = None,
        completion_fn: Optional[Callable[..., Any]] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.config = config or default_settings
        self.completion_fn = completion_fn or _litellm_completion
        self.sleep = sleep
        self.max_attempts = self.config.integration_max_attempts
        self.retry_delay = self.config.integration_retry_delay_seconds
        self.timeout = self.config.integration_timeout_seconds

    def is_configured(self) -> bool:
        return bool(self.config.integration_model)

    def integrate(
        self,
        document_text: str,
        excerpt: str,
        feedback: str,
        start_line: int = 1,
        end_line: Optional[int] = None,
    ) -> IntegrationResult:
        """Ask the model to rewrite *document_text* according to *feedback*.

        Returns:
            IntegrationResult with the full replacement document.

        Raises:
            UpstreamFailureError: attempts exhausted or the output failed validation.
        """
        if not self.is_configured():
            raise UpstreamFailureError("Integration model is not configured")

        if end_line is None:
            end_line = start_line + max(len(excerpt.splitlines()), 1) - 1

        prompt = build_integration_prompt(document_text, excerpt, start_line, end_line, feedback)
        response = self._call_with_retry(prompt)

        text = strip_code_fence(self._extract_text(response))
        validate_output(document_text, text, self.config.integration_length_ratio)

        usage = getattr(response, "usage", None)
        return IntegrationResult(
            text=text,
            model=getattr(response, "model", None) or self.config.integration_model,
            prompt_tokens=getattr(usage, "prompt_tokens", None),
            completion_tokens=getattr(usage, "completion_tokens", None),
        )

    def _call_with_retry(self, prompt: str) -> Any:
        kwargs: dict = {
            "model": self.config.integration_model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "max_tokens": self.config.integration_max_tokens,
            "temperature": 0.2,
            "timeout": self.timeout,
        }
        if self.config.integration_api_key:
            kwargs["api_key"] = self.config.integration_api_key
        if self.config.integration_api_base:
            kwargs["api_base"] = self.config.integration_api_base

        last_error: Optional[Exception] = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                logger.info(
                    "Calling generation API (attempt %d/%d)", attempt, self.max_attempts,
                    extra={"model": kwargs["model"]},
                )
                return self.completion_fn(**kwargs)
            except Exception as exc:
                last_error = exc
                logger.warning("Generation API call failed: %s: %s", type(exc).__name__, exc)
                if not is_retryable(exc):
                    logger.error("Generation API rejected the request, not retrying")
                    raise UpstreamFailureError(
                        f"Generation API rejected the request: {exc}", attempts=attempt
                    ) from exc
                if attempt < self.max_attempts:
                    logger.info("Retrying in %.1fs", self.retry_delay)
                    self.sleep(self.retry_delay)

        logger.error("All %d generation attempts failed", self.max_attempts)
        raise UpstreamFailureError(
            f"Generation API failed after {self.max_attempts} attempts: {last_error}",
            attempts=self.max_attempts,
        ) from last_error

    @staticmethod
    def _extract_text(response: Any) -> str:
        try:
            content = response.choices[0].message.content
        except (AttributeError, IndexError, KeyError, TypeError) as exc:
            raise UpstreamFailureError(f"Malformed generation API response: {exc}") from exc
        return content or ""
