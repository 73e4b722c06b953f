"""Answer generation with bounded retries and a fallback model.

Provides:
- Action / next_action: pure decision function for the retry state machine
  (model-selection state x attempt-counter state).
- status_of / is_retriable: failure classification by HTTP status.
- retry_delay: fixed delay schedule indexed by attempt.
- GenerationOrchestrator: calls an OpenAI-compatible chat completions endpoint,
  retrying the same model on transient failures and falling back to the next
  candidate model otherwise.
- build_orchestrator: construct the orchestrator from settings.

Configuration is read from newsrag.config.settings / RagConfig.
"""
import enum
import logging
import time
from typing import Callable, Optional, Sequence

import openai
from openai import OpenAI

from newsrag.config import RagConfig, Settings
from newsrag.errors import ConfigurationError, GenerationError

logger = logging.getLogger(__name__)

RETRIABLE_STATUSES = frozenset({429, 500, 502, 503, 504})


class Action(enum.Enum):
    RETRY_SAME = "retry-same"
    NEXT_MODEL = "retry-next-model"
    FAIL = "fail"


def status_of(err: BaseException) -> Optional[int]:
    """Return the HTTP status carried by a failed call, if any.

    Timeouts have no response; they are reported as 504 so they are retried
    like a gateway timeout.
    """
    if isinstance(err, openai.APITimeoutError):
        return 504
    status = getattr(err, "status_code", None)
    if status is None:
        response = getattr(err, "response", None)
        status = getattr(response, "status_code", None)
    return status if isinstance(status, int) else None


def is_retriable(status: Optional[int]) -> bool:
    return status in RETRIABLE_STATUSES


def next_action(
    status: Optional[int],
    attempt: int,
    max_attempts: int,
    model_index: int,
    model_count: int,
) -> Action:
    """Decide what to do after a failed attempt.

    Args:
        status: HTTP status of the failure (None when there was no response).
        attempt: 0-based attempt number that just failed on the current model.
        max_attempts: Attempts allowed per model.
        model_index: 0-based index of the current model.
        model_count: Number of candidate models.

    Returns:
        Action: RETRY_SAME for a retriable failure with attempts left, otherwise
        NEXT_MODEL while another candidate remains, otherwise FAIL.
    """
    if is_retriable(status) and attempt + 1 < max_attempts:
        return Action.RETRY_SAME
    if model_index + 1 < model_count:
        return Action.NEXT_MODEL
    return Action.FAIL


def retry_delay(attempt: int, delays_ms: Sequence[int]) -> float:
    """Seconds to wait after failed attempt ``attempt`` (last entry reused)."""
    return delays_ms[min(attempt, len(delays_ms) - 1)] / 1000.0


class GenerationOrchestrator:
    """Generates plain text from a prompt with retry-within-model, then fallback.

    Args:
        client: OpenAI-compatible client (SDK retries must be disabled).
        models: Candidate models in order (primary, fallback).
        max_attempts: Attempts per model.
        retry_delays_ms: Wait schedule indexed by attempt.
        temperature: Sampling temperature.
        max_output_tokens: Output length cap.
        sleep: Blocking wait function (injectable for tests).
    """

    def __init__(
        self,
        client: OpenAI,
        models: Sequence[str],
        max_attempts: int = 4,
        retry_delays_ms: Sequence[int] = (400, 800, 1600, 3200),
        temperature: float = 0.2,
        max_output_tokens: int = 512,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if not models:
            raise ConfigurationError("at least one generation model is required")
        if max_attempts <= 0:
            raise ConfigurationError(f"max_attempts must be positive, got {max_attempts}")
        if not retry_delays_ms:
            raise ConfigurationError("retry_delays_ms must not be empty")
        self._client = client
        self.models = list(models)
        self.max_attempts = max_attempts
        self.retry_delays_ms = tuple(retry_delays_ms)
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens
        self._sleep = sleep
        self.last_model: Optional[str] = None

    def _call(self, model: str, prompt: str) -> str:
        resp = self._client.chat.completions.create(
            model=model,
            messages=[{"role": "user", "content": prompt}],
            temperature=self.temperature,
            max_tokens=self.max_output_tokens,
        )
        if not resp.choices:
            return ""
        content = resp.choices[0].message.content or ""
        return content.strip()

    def generate(self, prompt: str) -> str:
        """Generate an answer for ``prompt``.

        Returns:
            str: The generated text from the first successful attempt.
            The model that produced it is kept in ``last_model``.

        Raises:
            GenerationError: After every candidate model exhausted its attempts;
                the last observed error is chained.
        """
        self.last_model = None
        last_err: Optional[BaseException] = None
        last_status: Optional[int] = None
        model_index = 0
        attempt = 0

        while True:
            model = self.models[model_index]
            try:
                text = self._call(model, prompt)
                self.last_model = model
                if model_index or attempt:
                    logger.info("Generation succeeded on %s (attempt %d)", model, attempt + 1)
                return text
            except openai.APIError as e:
                last_err, last_status = e, status_of(e)

            action = next_action(last_status, attempt, self.max_attempts, model_index, len(self.models))
            logger.warning(
                "Generation failed on %s attempt %d/%d (status=%s): %s -> %s",
                model, attempt + 1, self.max_attempts, last_status, last_err, action.value,
            )
            if action is Action.RETRY_SAME:
                self._sleep(retry_delay(attempt, self.retry_delays_ms))
                attempt += 1
            elif action is Action.NEXT_MODEL:
                model_index += 1
                attempt = 0
            else:
                raise GenerationError(
                    f"generation failed on all models ({', '.join(self.models)}): {last_err}",
                    status_code=last_status,
                    model=model,
                ) from last_err


def build_orchestrator(s: Settings, config: RagConfig, client: Optional[OpenAI] = None) -> GenerationOrchestrator:
    """Create the orchestrator for (primary, fallback) models from settings.

    Raises:
        ConfigurationError: If GEMINI_API_KEY is not configured.
    """
    if client is None:
        if not s.GEMINI_API_KEY:
            raise ConfigurationError("Missing GEMINI_API_KEY")
        client = OpenAI(
            api_key=s.GEMINI_API_KEY,
            base_url=s.GENERATION_BASE_URL,
            timeout=s.GENERATION_TIMEOUT_SECONDS,
            max_retries=0,
        )
    return GenerationOrchestrator(
        client,
        models=[s.GEMINI_MODEL, s.GEMINI_FALLBACK_MODEL],
        max_attempts=config.max_attempts,
        retry_delays_ms=config.retry_delays_ms,
        temperature=s.TEMPERATURE,
        max_output_tokens=s.MAX_OUTPUT_TOKENS,
    )
