"""
Model tiers and their cost weights.

A tier is a capability/cost class. Weights approximate each tier's price
relative to the premium tier so spend across tiers can share one budget.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional


class ModelTier(Enum):
    """Closed set of model tiers, ordered by capability and cost."""
    CHEAP = "cheap"
    MID = "mid"
    PREMIUM = "premium"

    @property
    def rank(self) -> int:
        return _TIER_ORDER.index(self)

    @property
    def label(self) -> str:
        return TIER_LABELS[self]

    def clamp(self, ceiling: "ModelTier") -> "ModelTier":
        """Return this tier, lowered to ``ceiling`` if it sits above it."""
        return ceiling if self.rank > ceiling.rank else self

    @classmethod
    def parse(cls, value: str) -> "ModelTier":
        try:
            return cls(value.strip().lower())
        except ValueError:
            valid = [tier.value for tier in cls]
            raise ValueError(f"Unknown tier '{value}', must be one of: {valid}")


class ContextLevel(Enum):
    """Context payload sizes, each a superset of the previous."""
    MINIMAL = "minimal"
    FOCUSED = "focused"
    FULL = "full"


_TIER_ORDER = [ModelTier.CHEAP, ModelTier.MID, ModelTier.PREMIUM]

TIER_LABELS: Dict[ModelTier, str] = {
    ModelTier.CHEAP: "Quick",
    ModelTier.MID: "Standard",
    ModelTier.PREMIUM: "Deep",
}

LOCAL_LABEL = "Instant"

_CONTEXT_LEVELS: Dict[ModelTier, ContextLevel] = {
    ModelTier.CHEAP: ContextLevel.MINIMAL,
    ModelTier.MID: ContextLevel.FOCUSED,
    ModelTier.PREMIUM: ContextLevel.FULL,
}


def context_level_for_tier(tier: ModelTier) -> ContextLevel:
    """Fixed tier to context-level mapping."""
    return _CONTEXT_LEVELS[tier]


@dataclass(frozen=True)
class TierSpec:
    """Per-tier model settings."""
    model: str
    weight: float
    max_tokens: int
    cache_ttl_hours: float

    def __post_init__(self):
        if not self.model or not self.model.strip():
            raise ValueError("model is required and cannot be empty")
        if self.weight <= 0 or self.weight > 1.0:
            raise ValueError("weight must be in (0, 1.0]")
        if self.max_tokens <= 0:
            raise ValueError("max_tokens must be > 0")
        if self.cache_ttl_hours < 0:
            raise ValueError("cache_ttl_hours cannot be negative")


@dataclass(frozen=True)
class TierTable:
    """Fixed table of settings for every tier."""
    tiers: Dict[ModelTier, TierSpec]

    def __post_init__(self):
        missing = [tier.value for tier in ModelTier if tier not in self.tiers]
        if missing:
            raise ValueError(f"Missing tier settings for: {missing}")
        weights = [self.tiers[tier].weight for tier in _TIER_ORDER]
        if weights != sorted(weights):
            raise ValueError("tier weights must not decrease with tier capability")

    def get_spec(self, tier: ModelTier) -> TierSpec:
        return self.tiers[tier]

    def weight(self, tier: Optional[ModelTier]) -> float:
        """Cost weight for a tier; unknown tiers are charged at full price."""
        if tier is None or tier not in self.tiers:
            return 1.0
        return self.tiers[tier].weight


# Premium ~$75/M in, $150/M out -> 1.0; mid ~0.1; cheap ~0.03
DEFAULT_TIER_TABLE = TierTable({
    ModelTier.CHEAP: TierSpec(
        model="gpt-4o-mini",
        weight=0.03,
        max_tokens=1024,
        cache_ttl_hours=24,
    ),
    ModelTier.MID: TierSpec(
        model="gpt-4o",
        weight=0.1,
        max_tokens=2048,
        cache_ttl_hours=12,
    ),
    ModelTier.PREMIUM: TierSpec(
        model="gpt-4.1",
        weight=1.0,
        max_tokens=4096,
        cache_ttl_hours=0,
    ),
})
