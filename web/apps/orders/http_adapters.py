"""HTTP adapter for the text generation provider.

``HttpGenerationClient`` implements ``GenerationPort`` against an
OpenAI-compatible ``/chat/completions`` endpoint using ``httpx``. It adds:

- Request correlation: propagates ``X-Request-ID`` from the gateway
  ContextVar.
- A circuit breaker so a failing provider is not hammered while orders keep
  arriving; an open circuit surfaces as ``GenerationError("CIRCUIT_OPEN")``.
- A hard timeout per call. There are no retries here: the controller owns
  the retry policy.

Cost is computed from the ``usage`` block the provider reports, never from
elapsed time or text length.
"""

import logging
import threading
import time
from typing import Optional

import httpx
from django.conf import settings

from gateway.context import REQUEST_ID_CTX

from .domain import GenerationPort, GenerationResult, cost_from_usage
from .errors import GenerationError
from .settings_store import SettingsStore

logger = logging.getLogger("orders.generation")

SYSTEM_PROMPT = (
    "You are an SEO copywriter. Generate content based on the user's topic and word count. "
    "Create well-structured, engaging content that is optimized for search engines while still "
    "being valuable to readers. Use headings, paragraphs, and bullet points where appropriate. "
    "The content should be approximately {word_count} words in length."
)
USER_PROMPT = (
    "Topic: {topic}\n"
    "Target word count: {word_count} words\n"
    "Please create SEO-optimized content on this topic. Include a compelling title, introduction, "
    "several sections with subheadings, and a conclusion."
)


# ---------------- Circuit Breaker ---------------- #

class CircuitBreaker:
    """Thread-safe CLOSED/OPEN/HALF_OPEN breaker.

    ``fail_threshold`` consecutive failures open the circuit; after
    ``reset_timeout`` seconds one probe call is let through (HALF_OPEN).
    A successful probe closes the circuit, a failed one reopens it.
    """

    CLOSED, OPEN, HALF_OPEN = "CLOSED", "OPEN", "HALF_OPEN"

    def __init__(self, name: str, fail_threshold: int, reset_timeout: float):
        self.name = name
        self.fail_threshold = fail_threshold
        self.reset_timeout = reset_timeout
        self._lock = threading.RLock()
        self._failures = 0
        self._state = self.CLOSED
        self._opened_at = 0.0
        self._probing = False

    @property
    def state(self) -> str:
        with self._lock:
            if self._state == self.OPEN and time.monotonic() - self._opened_at >= self.reset_timeout:
                self._state = self.HALF_OPEN
                self._probing = False
            return self._state

    def acquire(self) -> str:
        """Admit a call or raise ``GenerationError("CIRCUIT_OPEN")``."""
        with self._lock:
            st = self.state
            if st == self.OPEN or (st == self.HALF_OPEN and self._probing):
                raise GenerationError("CIRCUIT_OPEN", detail=f"{self.name} circuit is {st}")
            if st == self.HALF_OPEN:
                self._probing = True
            return st

    def record_success(self):
        with self._lock:
            self._failures = 0
            self._state = self.CLOSED
            self._probing = False

    def record_failure(self):
        with self._lock:
            self._failures += 1
            self._probing = False
            if self._state == self.HALF_OPEN or self._failures >= self.fail_threshold:
                if self._state != self.OPEN:
                    logger.warning("circuit opened", extra={"circuit": self.name, "failures": self._failures})
                self._state = self.OPEN
                self._opened_at = time.monotonic()

    def reset(self):
        self.record_success()


_generation_cb = CircuitBreaker(
    "generation",
    getattr(settings, "HTTP_CIRCUIT_FAIL_THRESHOLD", 5),
    getattr(settings, "HTTP_CIRCUIT_RESET_TIMEOUT", 30.0),
)


# ---------------- Helpers ---------------- #

def _request_headers(api_key: str) -> dict:
    """Authorization plus ``X-Request-ID`` when a request id is bound."""
    headers = {"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"}
    rid = REQUEST_ID_CTX.get()
    if rid and rid != "-":
        headers["X-Request-ID"] = rid
    return headers


def _parse_completion(data: dict) -> tuple[str, int, int]:
    """Extract ``(text, prompt_tokens, completion_tokens)`` from a completion body.

    Raises:
        GenerationError: ``INVALID_RESPONSE`` when the shape is wrong,
            ``EMPTY_RESPONSE`` when the text is blank.
    """
    try:
        text = data["choices"][0]["message"]["content"] or ""
        usage = data.get("usage") or {}
        prompt_tokens = int(usage.get("prompt_tokens") or 0)
        completion_tokens = int(usage.get("completion_tokens") or 0)
    except (AttributeError, KeyError, IndexError, TypeError, ValueError) as e:
        raise GenerationError("INVALID_RESPONSE", detail=repr(e))
    if not isinstance(text, str):
        raise GenerationError("INVALID_RESPONSE", detail=f"content is {type(text).__name__}")
    if not text.strip():
        raise GenerationError("EMPTY_RESPONSE")
    return text, prompt_tokens, completion_tokens


# ---------------- Generation Adapter ---------------- #

class HttpGenerationClient(GenerationPort):
    """HTTP client for the generation provider with timeout and circuit breaker."""

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        model: str | None = None,
        settings_store: Optional[SettingsStore] = None,
    ):
        self.base_url = (base_url or settings.OPENAI_BASE_URL).rstrip("/")
        self.timeout = timeout or settings.GENERATION_TIMEOUT_SECS
        self.model = model or settings.GENERATION_MODEL
        self.settings_store = settings_store or SettingsStore()

    def _api_key(self) -> str:
        return self.settings_store.snapshot().api_keys.openai_api_key or settings.OPENAI_API_KEY

    def generate(self, topic: str, word_count: int) -> GenerationResult:
        """Request a completion and price it from the reported usage.

        Business mappings:
        - 200 with non-empty text → ``GenerationResult``
        - 4xx → ``GenerationError("PROVIDER_HTTP_<code>")``, not a circuit failure
        - 5xx, transport errors, timeouts → ``GenerationError`` and a circuit failure

        Args:
            topic: Subject of the text.
            word_count: Target length in words.

        Returns:
            GenerationResult: Text and cost in cents.

        Raises:
            GenerationError: On any failure; ``reason`` is a short code and
                ``detail`` the raw provider message for operator logs.
        """
        api_key = self._api_key()
        if not api_key:
            raise GenerationError("NOT_CONFIGURED")

        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT.format(word_count=word_count)},
                {"role": "user", "content": USER_PROMPT.format(topic=topic, word_count=word_count)},
            ],
            "temperature": 0.7,
            "max_tokens": word_count * 2,
        }

        _generation_cb.acquire()
        started = time.monotonic()
        try:
            with httpx.Client(timeout=self.timeout) as client:
                resp = client.post(f"{self.base_url}/chat/completions", json=payload, headers=_request_headers(api_key))
        except httpx.TimeoutException as e:
            _generation_cb.record_failure()
            raise GenerationError("TIMEOUT", detail=str(e))
        except httpx.RequestError as e:
            _generation_cb.record_failure()
            raise GenerationError("PROVIDER_UNREACHABLE", detail=str(e))

        if resp.status_code >= 500:
            _generation_cb.record_failure()
            raise GenerationError(f"PROVIDER_HTTP_{resp.status_code}", detail=resp.text[:500])
        # 4xx is a request/account problem, the provider itself is healthy
        _generation_cb.record_success()
        if resp.status_code != 200:
            raise GenerationError(f"PROVIDER_HTTP_{resp.status_code}", detail=resp.text[:500])

        try:
            data = resp.json()
        except ValueError as e:
            raise GenerationError("INVALID_RESPONSE", detail=str(e))
        text, prompt_tokens, completion_tokens = _parse_completion(data)
        cost = cost_from_usage(
            prompt_tokens,
            completion_tokens,
            settings.GENERATION_INPUT_CENTS_PER_1K,
            settings.GENERATION_OUTPUT_CENTS_PER_1K,
        )
        logger.info(
            "generation succeeded",
            extra={
                "prompt_tokens": prompt_tokens,
                "completion_tokens": completion_tokens,
                "cost_cents": cost,
                "elapsed_ms": int((time.monotonic() - started) * 1000),
            },
        )
        return GenerationResult(text=text, cost_units=cost)
