"""
Answer pipeline.

Sequences the cost-saving steps for one question, cheapest first:

1. local answer from today's snapshot (zero cost)
2. response cache (zero cost)
3. budget ceiling, which may lower the tier but never refuses
4. context compressed to the tier's level
5. provider call, then cache write and usage log

Every path writes exactly one usage entry. Only ProviderError reaches the
caller; snapshot, cache and usage-store failures degrade silently.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional

from tiered_answers.config.loader import AssistantConfig
from tiered_answers.storage.repository import UsageRepository

from .budget import TokenBudgetTracker
from .context_compressor import assemble_context, describe_page
from .errors import ProviderError
from .local_answers import try_local_answer
from .log_config import get_logger
from .prompts import parse_reply, system_prompt
from .raw_context import RawContextData
from .response_cache import ResponseCache
from .router import classify_question
from .snapshot import MetricSnapshot, RawContextProvider, SnapshotService
from .tiers import DEFAULT_TIER_TABLE, LOCAL_LABEL, ModelTier, TierTable, context_level_for_tier
from .usage import usage_entry

logger = get_logger(__name__)

SERVED_LOCAL = "local"
SERVED_CACHE = "cache"

# Local answers are attributed to the cheapest tier for reporting
LOCAL_TIER = ModelTier.CHEAP


@dataclass(frozen=True)
class Answer:
    """Result of one answered question.

    ``served_by`` is "local", "cache", or the value of the tier that
    generated the answer.
    """
    text: str
    served_by: str
    tier: ModelTier
    tier_label: str
    suggestions: List[str] = field(default_factory=list)
    actions: List[Dict[str, str]] = field(default_factory=list)
    query_type: Optional[str] = None
    input_tokens: int = 0
    output_tokens: int = 0
    budget_warning: Optional[str] = None

    @property
    def local(self) -> bool:
        return self.served_by == SERVED_LOCAL

    @property
    def cached(self) -> bool:
        return self.served_by == SERVED_CACHE


class AnswerPipeline:
    """Answers questions at the lowest cost the budget and question allow.

    ``provider`` is any object with
    ``invoke_model(tier, system_context, user_question) -> ModelResponse``.
    """

    def __init__(
        self,
        snapshots: SnapshotService,
        raw_provider: RawContextProvider,
        budget: TokenBudgetTracker,
        cache: ResponseCache,
        provider,
        tiers: TierTable = DEFAULT_TIER_TABLE,
        clock: Callable[[], datetime] = datetime.now
    ):
        self.snapshots = snapshots
        self.raw_provider = raw_provider
        self.budget = budget
        self.cache = cache
        self.provider = provider
        self.tiers = tiers
        self.clock = clock

    def _today_snapshot(self) -> Optional[MetricSnapshot]:
        try:
            return self.snapshots.get_or_build(self.clock().date())
        except Exception:
            logger.warning("Snapshot unavailable, skipping local answers", exc_info=True)
            return None

    def _context(self, current_page: str, tier: ModelTier) -> str:
        try:
            raw: RawContextData = self.raw_provider()
        except Exception:
            logger.error("Context assembly failed for page=%s", current_page, exc_info=True)
            return (
                "=== SYSTEM DATA PARTIALLY UNAVAILABLE ===\n"
                "Context assembly encountered errors. No data is available for this answer.\n"
                f"User is on: {current_page}"
            )
        return assemble_context(raw, current_page, context_level_for_tier(tier))

    def _log(self, tier: ModelTier, current_page: str, session_id: str, **kwargs) -> None:
        self.budget.log_usage(usage_entry(
            tier=tier,
            timestamp=self.clock(),
            current_page=current_page,
            session_id=session_id,
            **kwargs
        ))

    def answer(
        self,
        question: str,
        current_page: str = "/",
        requested_tier: Optional[ModelTier] = None,
        session_id: str = "anonymous"
    ) -> Answer:
        """Answer ``question`` for a user viewing ``current_page``.

        Args:
            question: The user's question
            current_page: Route the user is on
            requested_tier: Explicit tier; lowered to the budget ceiling, never raised
            session_id: Caller identifier recorded in the usage log

        Returns:
            Answer

        Raises:
            ValueError: If the question is empty
            ProviderError: If the model call fails
        """
        if not question or not question.strip():
            raise ValueError("question is required and cannot be empty")

        local = try_local_answer(question, self._today_snapshot())
        if local is not None:
            self._log(
                LOCAL_TIER, current_page, session_id,
                local_answer=True, model_id="local", query_type="local_answer"
            )
            logger.info("Served local answer rule=%s", local.rule)
            return Answer(
                text=local.text,
                served_by=SERVED_LOCAL,
                tier=LOCAL_TIER,
                tier_label=LOCAL_LABEL,
                suggestions=list(local.suggestions),
                query_type="local_answer",
            )

        classified, query_type = classify_question(question)
        tentative = requested_tier or classified

        # Also the write key, so an answer stored after a budget clamp is found again
        cache_key = self.cache.key_for(question, current_page, tentative)
        hit = self.cache.get(cache_key)
        if hit is not None:
            self._log(
                hit.model_tier, current_page, session_id,
                cached=True, model_id="cached", query_type="cached"
            )
            return Answer(
                text=hit.response_text,
                served_by=SERVED_CACHE,
                tier=hit.model_tier,
                tier_label=hit.model_tier.label,
                suggestions=list(hit.suggestions),
                actions=list(hit.actions),
                query_type="cached",
            )

        status = self.budget.status()
        tier = tentative.clamp(status.tier_cap)
        if tier != tentative:
            logger.info("Tier lowered from %s to %s at %d%% of budget", tentative.value, tier.value, status.pct)

        now = self.clock()
        prompt = system_prompt(
            tier,
            date=f"{now:%A, %B} {now.day}, {now.year}",
            page=describe_page(current_page),
            context=self._context(current_page, tier),
        )

        try:
            response = self.provider.invoke_model(tier, prompt, question)
        except ProviderError:
            logger.error("Provider failed on tier=%s", tier.value, exc_info=True)
            raise

        text, suggestions, actions = parse_reply(response.text)

        self.cache.put(
            cache_key,
            text,
            tier,
            question=question,
            current_page=current_page,
            suggestions=suggestions,
            actions=actions,
            usage=response.usage,
        )
        self._log(
            tier, current_page, session_id,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            model_id=response.model_id or self.tiers.get_spec(tier).model,
            query_type=query_type,
        )

        return Answer(
            text=text,
            served_by=tier.value,
            tier=tier,
            tier_label=tier.label,
            suggestions=suggestions,
            actions=actions,
            query_type=query_type,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            budget_warning=status.warning,
        )


def build_pipeline(config: AssistantConfig, raw_provider: RawContextProvider, provider) -> AnswerPipeline:
    """Wire every component against one configuration."""
    db_path = config.storage.db_path
    clock = config.budget.local_now
    return AnswerPipeline(
        snapshots=SnapshotService(raw_provider, db_path=db_path, clock=clock),
        raw_provider=raw_provider,
        budget=TokenBudgetTracker(UsageRepository(db_path), config.budget, config.tiers, clock=clock),
        cache=ResponseCache(db_path, config.tiers, clock=clock),
        provider=provider,
        tiers=config.tiers,
        clock=clock,
    )
