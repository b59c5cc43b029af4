"""
Error taxonomy for the answering pipeline.

Only ProviderError ever reaches the caller of an answer. The other errors are
raised at component boundaries and absorbed by the component that owns the
degradation policy.
"""

from typing import Optional


class TieredAnswersError(Exception):
    """Base class for all pipeline errors."""


class UpstreamDataUnavailable(TieredAnswersError):
    """Raised when a raw-context domain fetch fails."""

    def __init__(self, domain: str, message: str = ""):
        super().__init__(message or f"{domain} unavailable")
        self.domain = domain


class StoreUnavailable(TieredAnswersError):
    """Raised when the snapshot, cache or usage store cannot be reached."""


class ProviderError(TieredAnswersError):
    """Raised when the LLM provider call fails or times out.

    The orchestrator never retries on a different tier; the caller decides
    what to do with a retryable failure.
    """

    def __init__(self, message: str, retryable: bool = False, tier: Optional[str] = None):
        super().__init__(message)
        self.retryable = retryable
        self.tier = tier

    @property
    def user_message(self) -> str:
        """Short, honest message suitable for the end user."""
        if self.retryable:
            return "The assistant is temporarily degraded. Please try again in a moment."
        return "The assistant is unavailable right now."
