"""
Error taxonomy for the LLM gateway.

Every error carries a machine-readable ``kind`` so callers (and the HTTP layer)
can tell fatal misconfiguration apart from transient backend unavailability.
"""

from typing import Any


class GatewayError(Exception):
    """Base class for all gateway errors."""

    kind = "gateway_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        """Serialize to an error payload (kind + message)."""
        return {"error": self.kind, "message": self.message}


class ConfigurationError(GatewayError):
    """Invalid or incomplete configuration. Fatal, raised at construction."""

    kind = "configuration_error"


class ProviderError(GatewayError):
    """
    Transport or authentication failure reported by an LLM backend.

    Attributes:
        provider: Provider name ('openai', 'anthropic', 'google')
        status_code: HTTP status returned by the backend, if any
        retryable: Whether the failure is transient and worth retrying
    """

    kind = "provider_error"

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        status_code: int | None = None,
        retryable: bool = False,
    ):
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code
        self.retryable = retryable

    def to_dict(self) -> dict[str, Any]:
        payload = super().to_dict()
        payload.update(
            {
                "provider": self.provider,
                "status_code": self.status_code,
                "retryable": self.retryable,
            }
        )
        return payload


class ProviderTimeoutError(ProviderError):
    """The transport call exceeded the adapter's timeout."""

    kind = "provider_timeout"

    def __init__(self, message: str, provider: str | None = None):
        super().__init__(message, provider=provider, status_code=None, retryable=True)


class UnsupportedOperationError(GatewayError):
    """The provider does not offer the requested capability."""

    kind = "unsupported_operation"

    def __init__(self, provider: str, operation: str):
        super().__init__(f"Provider '{provider}' does not support '{operation}'")
        self.provider = provider
        self.operation = operation


class RateLimitExceededError(GatewayError):
    """The caller exceeded its request budget for the current window."""

    kind = "rate_limit_exceeded"

    def __init__(self, retry_after_seconds: float, identity: str = "global"):
        super().__init__(
            f"Rate limit exceeded for '{identity}', retry after {retry_after_seconds:.1f}s"
        )
        self.retry_after_seconds = retry_after_seconds
        self.identity = identity

    def to_dict(self) -> dict[str, Any]:
        payload = super().to_dict()
        payload["retry_after_seconds"] = self.retry_after_seconds
        return payload


class ToolError(GatewayError):
    """
    A tool failed while handling a call.

    Recoverable by default: the agent loop reports it back to the model.
    Set ``fatal=True`` to abort the loop instead.
    """

    kind = "tool_error"

    def __init__(self, message: str, tool_name: str | None = None, fatal: bool = False):
        super().__init__(message)
        self.tool_name = tool_name
        self.fatal = fatal


class UnknownToolError(ToolError):
    """No tool is registered under the requested name."""

    kind = "unknown_tool"

    def __init__(self, tool_name: str):
        super().__init__(f"Tool '{tool_name}' not found in registry", tool_name=tool_name)


class MaxIterationsExceededError(GatewayError):
    """The agent loop used its whole iteration budget without a final answer."""

    kind = "max_iterations_exceeded"

    def __init__(self, max_iterations: int):
        super().__init__(
            f"Agent did not produce a final answer within {max_iterations} iterations"
        )
        self.max_iterations = max_iterations
