"""
Usage logging and reporting.

Writes one append-only entry per answered question and aggregates the
ledger into per-day, per-tier totals for administrative reporting.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Callable, Dict, List, Optional

from tiered_answers.storage.models import UsageLogEntry
from tiered_answers.storage.repository import UsageRepository

from .log_config import get_logger
from .tiers import ModelTier

logger = get_logger(__name__)


def _empty_tier_totals() -> Dict[ModelTier, int]:
    return {tier: 0 for tier in ModelTier}


@dataclass
class DailyUsage:
    """Usage for one calendar day."""
    day: date
    tokens_by_tier: Dict[ModelTier, int] = field(default_factory=_empty_tier_totals)
    cached_count: int = 0
    local_count: int = 0
    total_requests: int = 0


@dataclass
class UsageSummary:
    """Aggregated usage over a recent window."""
    daily: List[DailyUsage] = field(default_factory=list)
    total_tokens: int = 0
    total_requests: int = 0
    cached_pct: int = 0
    local_pct: int = 0
    by_tier: Dict[ModelTier, int] = field(default_factory=_empty_tier_totals)


def summarize_usage(entries: List[UsageLogEntry]) -> UsageSummary:
    """Group entries by day and tier.

    Args:
        entries: Usage entries, any order

    Returns:
        UsageSummary with days in ascending order
    """
    summary = UsageSummary()
    by_day: Dict[date, DailyUsage] = {}
    cached = 0
    local = 0

    for entry in entries:
        day = entry.timestamp.date()
        daily = by_day.setdefault(day, DailyUsage(day=day))
        tokens = entry.total_tokens

        daily.tokens_by_tier[entry.tier] += tokens
        daily.total_requests += 1
        if entry.cached:
            daily.cached_count += 1
            cached += 1
        if entry.local_answer:
            daily.local_count += 1
            local += 1

        summary.total_tokens += tokens
        summary.by_tier[entry.tier] += tokens

    summary.daily = [by_day[d] for d in sorted(by_day)]
    summary.total_requests = len(entries)
    if entries:
        summary.cached_pct = round(cached / len(entries) * 100)
        summary.local_pct = round(local / len(entries) * 100)
    return summary


class UsageLogger:
    """Fire-and-forget writer over the usage ledger."""

    def __init__(self, repository: UsageRepository, clock: Callable[[], datetime] = datetime.now):
        self.repository = repository
        self.clock = clock

    def log(self, entry: UsageLogEntry) -> bool:
        """Append ``entry``; a failed write is logged and never raised.

        Returns:
            True if the entry was written
        """
        try:
            self.repository.record(entry)
            return True
        except Exception:
            logger.error(
                "Usage log write failed for tier=%s page=%s",
                entry.tier.value, entry.current_page, exc_info=True
            )
            return False

    def summary(self, days: int = 7) -> UsageSummary:
        """Usage for today and the ``days`` calendar days before it.

        A store outage yields an empty summary.
        """
        if days < 0:
            raise ValueError("days cannot be negative")
        start_of_today = self.clock().replace(hour=0, minute=0, second=0, microsecond=0)
        since = start_of_today - timedelta(days=days)
        try:
            entries = self.repository.get_entries_since(since)
        except Exception:
            logger.error("Usage summary read failed", exc_info=True)
            return UsageSummary()
        return summarize_usage(entries)


def usage_entry(
    tier: ModelTier,
    timestamp: datetime,
    input_tokens: int = 0,
    output_tokens: int = 0,
    cached: bool = False,
    local_answer: bool = False,
    current_page: str = "/",
    session_id: str = "anonymous",
    model_id: str = "",
    query_type: Optional[str] = None,
) -> UsageLogEntry:
    return UsageLogEntry(
        timestamp=timestamp,
        tier=tier,
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        cached=cached,
        local_answer=local_answer,
        current_page=current_page,
        session_id=session_id,
        model_id=model_id,
        query_type=query_type,
    )
