"""
Exception classes for the model gateway.

Provider failures are classified once, at the gateway, into a small set of
error codes so the pipeline can report them to callers verbatim:

- config: provider not configured (missing API key, unknown provider)
- auth: credentials rejected (HTTP 401/403)
- quota: rate limit or billing problem (HTTP 429/402)
- network: timeouts, connection resets, upstream 5xx
- bad_request: the provider refused the request (HTTP 400, context too long)
- unknown: anything else raised by the SDK

Calls are never retried automatically.
"""

from typing import Optional


class LLMError(Exception):
    """
    Base exception for all LLM-related errors.

    Allows catch-all handling of gateway failures when needed.
    """

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        model: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        """
        Initialize LLM error.

        Args:
            message: Human-readable error message
            provider: LLM provider name (openai, anthropic, google)
            model: Model name that failed
            original_error: Original exception that was wrapped
        """
        super().__init__(message)
        self.message = message
        self.provider = provider
        self.model = model
        self.original_error = original_error

    def __str__(self) -> str:
        """Return formatted error message with context."""
        parts = [super().__str__()]
        if self.provider:
            parts.append(f"provider={self.provider}")
        if self.model:
            parts.append(f"model={self.model}")
        return " | ".join(parts)


class ProviderError(LLMError):
    """
    A model provider call failed.

    Carries a stable ``code`` (see module docstring) alongside the
    provider's own message.
    """

    CONFIG = "config"
    AUTH = "auth"
    QUOTA = "quota"
    NETWORK = "network"
    BAD_REQUEST = "bad_request"
    UNKNOWN = "unknown"

    def __init__(
        self,
        code: str,
        message: str,
        provider: Optional[str] = None,
        model: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message, provider, model, original_error)
        self.code = code

    def __str__(self) -> str:
        return f"[{self.code}] {super().__str__()}"

    def to_dict(self) -> dict:
        """Serialize for API responses."""
        return {
            "code": self.code,
            "message": self.message,
            "provider": self.provider,
            "model": self.model,
        }
