"""
Data models for storage layer.

Defines the persisted records: usage log entries, cached responses and
daily snapshot rows.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from tiered_answers.core.tiers import ModelTier


@dataclass(frozen=True)
class UsageLogEntry:
    """Immutable record of one answered question.

    Append-only rows that the budget tracker aggregates. Local and cached
    answers are logged with zero tokens so they never add weighted cost.
    """
    timestamp: datetime
    tier: ModelTier
    input_tokens: int = 0
    output_tokens: int = 0
    cached: bool = False
    local_answer: bool = False
    current_page: str = "/"
    session_id: str = "anonymous"
    model_id: str = ""
    query_type: Optional[str] = None

    def __post_init__(self):
        if self.input_tokens < 0 or self.output_tokens < 0:
            raise ValueError("token counts cannot be negative")
        if (self.cached or self.local_answer) and (self.input_tokens or self.output_tokens):
            raise ValueError("cached and local answers carry zero tokens")

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


@dataclass(frozen=True)
class CachedResponse:
    """A previously generated model answer."""
    query_hash: str
    response_text: str
    model_tier: ModelTier
    created_at: datetime
    expires_at: datetime
    suggestions: List[str] = field(default_factory=list)
    actions: List[Dict[str, str]] = field(default_factory=list)

    def __post_init__(self):
        if self.expires_at < self.created_at:
            raise ValueError("expires_at must not be before created_at")


@dataclass(frozen=True)
class SnapshotRecord:
    """One persisted snapshot row, keyed by calendar day."""
    snapshot_date: date
    snapshot_data: Dict[str, Any]
    updated_at: datetime
