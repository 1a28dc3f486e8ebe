"""In-process stub adapters for the orders domain ports.

These stubs implement the generation and notification ports without any
network calls. They are used by tests and local development where
deterministic behavior is useful and no provider account is available.
"""

import logging
from typing import List, Tuple

from django.conf import settings

from .domain import GenerationPort, GenerationResult, NotifierPort, cost_from_usage

logger = logging.getLogger("orders.adapters")


class GenerationStub(GenerationPort):
    """Stub implementation of ``GenerationPort``.

    Produces a text of exactly ``word_count`` words and reports a simulated
    usage (prompt tokens from the topic, roughly 4 tokens per 3 words of
    output) that is priced with the configured per-1K rates, the same way
    the HTTP client prices real usage.
    """

    def generate(self, topic: str, word_count: int) -> GenerationResult:
        head = topic.split()[0].lower()
        words = [head if i % 10 == 0 else "lorem" for i in range(word_count)]
        text = f"# {topic}\n\n" + " ".join(words)
        prompt_tokens = 60 + len(topic.split())
        completion_tokens = (word_count * 4 + 2) // 3
        cost = cost_from_usage(
            prompt_tokens,
            completion_tokens,
            settings.GENERATION_INPUT_CENTS_PER_1K,
            settings.GENERATION_OUTPUT_CENTS_PER_1K,
        )
        return GenerationResult(text=text, cost_units=cost)


class RecordingNotifier(NotifierPort):
    """Notifier that only records and logs what it would send.

    Attributes:
        sent: ``(to, kind, data)`` tuples in call order.
    """

    def __init__(self):
        self.sent: List[Tuple[str, object, dict]] = []

    def notify(self, to: str, kind, data: dict) -> None:
        self.sent.append((to, kind, dict(data)))
        logger.info("notification recorded", extra={"kind": getattr(kind, "value", kind), "to": to})

    def kinds(self) -> list:
        return [kind for _, kind, _ in self.sent]
