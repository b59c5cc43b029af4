"""
OpenAI model provider.

Sends one system context plus one user question to the model configured for
a tier and reports the answer text with its token usage.
"""

from dataclasses import dataclass
from typing import Optional

from openai import (
    APIConnectionError,
    APIError,
    InternalServerError,
    OpenAI,
    RateLimitError,
)

from ..config.loader import ProviderConfig
from ..core.errors import ProviderError
from ..core.log_config import get_logger
from ..core.tiers import DEFAULT_TIER_TABLE, ModelTier, TierTable
from ..core.token_counter import TokenUsage

logger = get_logger(__name__)


@dataclass(frozen=True)
class ModelResponse:
    """Text and usage returned by one model call."""
    text: str
    usage: TokenUsage
    model_id: str = ""


class OpenAIModelProvider:
    """Calls the OpenAI chat completions API on behalf of the pipeline.

    Provider failures surface as ProviderError. Timeouts, connection
    failures, rate limits and server errors are marked retryable; the
    pipeline never retries them itself.
    """

    def __init__(
        self,
        tiers: TierTable = DEFAULT_TIER_TABLE,
        config: Optional[ProviderConfig] = None
    ):
        """Initialize the provider.

        Args:
            tiers: Model id and max_tokens per tier
            config: Request timeout settings
        """
        self.tiers = tiers
        self.config = config or ProviderConfig()
        self.client = OpenAI(timeout=self.config.timeout_seconds, max_retries=0)

    def invoke_model(self, tier: ModelTier, system_context: str, user_question: str) -> ModelResponse:
        """Ask ``user_question`` on ``tier`` with ``system_context`` as the system prompt.

        Args:
            tier: Tier whose model answers
            system_context: Full system prompt including compressed context
            user_question: The user's question

        Returns:
            ModelResponse with the reply text and exact token counts

        Raises:
            ValueError: If the question is empty
            ProviderError: If the API call fails
        """
        if not user_question or not user_question.strip():
            raise ValueError("user_question is required and cannot be empty")

        spec = self.tiers.get_spec(tier)
        messages = [
            {"role": "system", "content": system_context},
            {"role": "user", "content": user_question},
        ]

        try:
            response = self.client.chat.completions.create(
                model=spec.model,
                messages=messages,
                max_tokens=spec.max_tokens,
            )
        except (APIConnectionError, RateLimitError, InternalServerError) as e:
            # APITimeoutError is a subclass of APIConnectionError
            logger.warning("Retryable provider failure on tier=%s: %s", tier.value, e)
            raise ProviderError(str(e), retryable=True, tier=tier.value) from e
        except APIError as e:
            logger.error("Provider call failed on tier=%s: %s", tier.value, e)
            raise ProviderError(str(e), retryable=False, tier=tier.value) from e

        usage = response.usage
        if not usage:
            raise ProviderError("OpenAI response missing usage information", tier=tier.value)

        text = ""
        if response.choices:
            text = response.choices[0].message.content or ""

        return ModelResponse(
            text=text,
            usage=TokenUsage(
                input_tokens=usage.prompt_tokens,
                output_tokens=usage.completion_tokens,
            ),
            model_id=spec.model,
        )
