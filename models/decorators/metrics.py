"""
Prometheus metrics decorator.

Counts requests, failures and tokens, records latency and estimated cost,
all labelled by provider and the requested model (per-call override or the
adapter default).
"""

import time
from collections.abc import AsyncIterator, Sequence
from contextlib import aclosing
from functools import lru_cache

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Histogram

from models.base import BaseLLM
from models.decorators.base import DelegatingLLM
from models.errors import GatewayError
from models.types import ChatOptions, LLMResponse, Message


class GatewayMetrics:
    """
    Collectors for LLM calls, bound to one CollectorRegistry.

    Build one instance per registry; collectors cannot be registered twice.
    """

    def __init__(self, registry: CollectorRegistry | None = None):
        self.registry = registry if registry is not None else REGISTRY
        self.requests = Counter(
            "llm_requests",
            "LLM calls started",
            ["provider", "model", "operation"],
            registry=self.registry,
        )
        self.failures = Counter(
            "llm_request_failures",
            "LLM calls that raised",
            ["provider", "model", "operation", "error"],
            registry=self.registry,
        )
        self.tokens = Counter(
            "llm_tokens",
            "Tokens consumed by LLM calls",
            ["provider", "model", "direction"],
            registry=self.registry,
        )
        self.latency = Histogram(
            "llm_request_latency_seconds",
            "LLM call latency",
            ["provider", "model", "operation"],
            buckets=(0.1, 0.25, 0.5, 1, 2.5, 5, 10, 30, 60, 120),
            registry=self.registry,
        )
        self.cost = Counter(
            "llm_estimated_cost_usd",
            "Estimated spend from catalogue pricing",
            ["provider", "model"],
            registry=self.registry,
        )


@lru_cache(maxsize=1)
def get_default_metrics() -> GatewayMetrics:
    """Process-wide metrics bound to the default Prometheus registry."""
    return GatewayMetrics()


def _error_label(error: Exception) -> str:
    return error.kind if isinstance(error, GatewayError) else type(error).__name__


class MetricsLLM(DelegatingLLM):
    """Emits Prometheus metrics around every call."""

    def __init__(self, inner: BaseLLM, metrics: GatewayMetrics | None = None):
        super().__init__(inner)
        self.metrics = metrics or get_default_metrics()

    def _started(self, operation: str, model: str) -> float:
        self.metrics.requests.labels(self.provider_name, model, operation).inc()
        return time.perf_counter()

    def _observe(self, operation: str, model: str, started: float) -> None:
        self.metrics.latency.labels(self.provider_name, model, operation).observe(
            time.perf_counter() - started
        )

    def _failed(self, operation: str, model: str, started: float, error: Exception) -> None:
        self.metrics.failures.labels(
            self.provider_name, model, operation, _error_label(error)
        ).inc()
        self._observe(operation, model, started)

    def _record_usage(self, model: str, response: LLMResponse) -> None:
        labels = (self.provider_name, model)
        self.metrics.tokens.labels(*labels, "input").inc(response.input_tokens)
        self.metrics.tokens.labels(*labels, "output").inc(response.output_tokens)

        pricing = self.describe_for(model)
        cost = pricing.estimate_cost(response.input_tokens, response.output_tokens)
        if cost:
            self.metrics.cost.labels(*labels).inc(cost)

    async def chat(
        self, messages: Sequence[Message], options: ChatOptions | None = None
    ) -> LLMResponse:
        model = (options.model if options else None) or self.model
        started = self._started("chat", model)
        try:
            response = await self.inner.chat(messages, options)
        except Exception as e:
            self._failed("chat", model, started, e)
            raise
        self._observe("chat", model, started)
        self._record_usage(model, response)
        return response

    async def stream(
        self, messages: Sequence[Message], options: ChatOptions | None = None
    ) -> AsyncIterator[str]:
        model = (options.model if options else None) or self.model
        started = self._started("stream", model)
        try:
            async with aclosing(self.inner.stream(messages, options)) as fragments:
                async for fragment in fragments:
                    yield fragment
        except Exception as e:
            self._failed("stream", model, started, e)
            raise
        self._observe("stream", model, started)

    async def embed(self, text: str) -> list[float]:
        started = self._started("embed", self.model)
        try:
            vector = await self.inner.embed(text)
        except Exception as e:
            self._failed("embed", self.model, started, e)
            raise
        self._observe("embed", self.model, started)
        return vector
