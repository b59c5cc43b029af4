"""
Token counting and usage tracking.

Holds the token counts a provider reports for one model call.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class TokenUsage:
    """Token usage reported by the model provider.

    Contains exact token counts without estimation or model-specific logic.
    """
    input_tokens: int = 0
    output_tokens: int = 0

    def __post_init__(self):
        if self.input_tokens < 0 or self.output_tokens < 0:
            raise ValueError("token counts cannot be negative")

    @property
    def total_tokens(self) -> int:
        """Total tokens used (input + output)."""
        return self.input_tokens + self.output_tokens

    def weighted(self, weight: float) -> float:
        """Total tokens scaled by a tier cost weight."""
        return self.total_tokens * weight
