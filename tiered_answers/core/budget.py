"""
Token budget tracking and tier ceilings.

Usage across tiers is charged against one daily budget in premium-equivalent
tokens. As the day's spend rises the highest permitted tier steps down:

1. pct >= 100 - cheap only, budget exhausted
2. pct >= 95  - cheap only
3. pct >= 80  - mid and below
4. otherwise  - every tier

Exhaustion is never a refusal; the assistant keeps answering on the cheap
tier. When the usage ledger cannot be read the tracker fails open and
permits every tier.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Iterable, List, Optional, Tuple

from tiered_answers.config.loader import BudgetConfig
from tiered_answers.storage.models import UsageLogEntry
from tiered_answers.storage.repository import UsageRepository

from .log_config import get_logger
from .tiers import DEFAULT_TIER_TABLE, ModelTier, TierTable
from .token_counter import TokenUsage
from .usage import UsageLogger, UsageSummary

logger = get_logger(__name__)

WARN_EXHAUSTED = "Daily AI budget exhausted. Using Quick mode only."
WARN_95 = "AI budget nearly exhausted (95%), downgraded to cheapest tier (Quick mode)."
WARN_80 = "AI budget at 80%, premium tier temporarily disabled."

# Evaluated in order, first match wins
_CEILING_STEPS: List[Tuple[float, ModelTier, str]] = [
    (100.0, ModelTier.CHEAP, WARN_EXHAUSTED),
    (95.0, ModelTier.CHEAP, WARN_95),
    (80.0, ModelTier.MID, WARN_80),
]


@dataclass(frozen=True)
class TokenBudgetStatus:
    """Derived view of today's spend; never stored."""
    used_today: int
    daily_limit: float
    pct: int
    tier_cap: ModelTier
    warning: Optional[str] = None


def tier_ceiling_for_pct(pct: float) -> Tuple[ModelTier, Optional[str]]:
    """Highest permitted tier and warning for a budget percentage."""
    for threshold, ceiling, warning in _CEILING_STEPS:
        if pct >= threshold:
            return ceiling, warning
    return ModelTier.PREMIUM, None


def weighted_total(entries: Iterable[UsageLogEntry], tiers: TierTable = DEFAULT_TIER_TABLE) -> float:
    """Sum of each entry's tokens scaled by its tier weight."""
    return sum(
        TokenUsage(entry.input_tokens, entry.output_tokens).weighted(tiers.weight(entry.tier))
        for entry in entries
    )


class TokenBudgetTracker:
    """Computes today's budget status from the usage ledger."""

    def __init__(
        self,
        repository: UsageRepository,
        budget: Optional[BudgetConfig] = None,
        tiers: TierTable = DEFAULT_TIER_TABLE,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.repository = repository
        self.budget = budget or BudgetConfig()
        self.tiers = tiers
        self.clock = clock or self.budget.local_now
        self.usage_logger = UsageLogger(repository, clock=self.clock)

    def _today_bounds(self) -> Tuple[datetime, datetime]:
        start = self.clock().replace(hour=0, minute=0, second=0, microsecond=0)
        return start, start + timedelta(days=1)

    def status(self) -> TokenBudgetStatus:
        """Current budget status.

        Returns:
            TokenBudgetStatus; on a store failure, pct 0 with every tier allowed
        """
        try:
            start, end = self._today_bounds()
            entries = self.repository.get_entries_since(start, end)
        except Exception:
            logger.error("Budget read failed, failing open", exc_info=True)
            return TokenBudgetStatus(
                used_today=0,
                daily_limit=self.budget.daily_limit,
                pct=0,
                tier_cap=ModelTier.PREMIUM,
                warning=None,
            )

        total = weighted_total(entries, self.tiers)
        pct = min(100.0, total / self.budget.daily_limit * 100)
        ceiling, warning = tier_ceiling_for_pct(pct)

        return TokenBudgetStatus(
            used_today=round(total),
            daily_limit=self.budget.daily_limit,
            pct=round(pct),
            tier_cap=ceiling,
            warning=warning,
        )

    def log_usage(self, entry: UsageLogEntry) -> bool:
        """Append one usage entry; failures never reach the caller."""
        return self.usage_logger.log(entry)

    def usage_summary(self, days: int = 7) -> UsageSummary:
        return self.usage_logger.summary(days)
