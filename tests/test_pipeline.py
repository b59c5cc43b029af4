"""
Tests for the answer pipeline.
"""

from datetime import datetime
from typing import List, Tuple

import pytest

from tiered_answers.config.loader import BudgetConfig
from tiered_answers.core.budget import WARN_80, WARN_EXHAUSTED, TokenBudgetTracker
from tiered_answers.core.errors import ProviderError, UpstreamDataUnavailable
from tiered_answers.core.pipeline import AnswerPipeline
from tiered_answers.core.response_cache import ResponseCache
from tiered_answers.core.snapshot import SnapshotService
from tiered_answers.core.tiers import ModelTier
from tiered_answers.core.token_counter import TokenUsage
from tiered_answers.sdk.openai_client import ModelResponse
from tiered_answers.storage.models import UsageLogEntry
from tiered_answers.storage.repository import UsageRepository

NOW = datetime(2026, 3, 10, 15, 0, 0)

REPLY = (
    "GWI collections are **$800M** against $850M billed.\n"
    '<!-- suggestions: ["How does that compare to last month?"] -->\n'
    '<!-- action: {"label": "Open GWI", "route": "/intel/gwi"} -->'
)


class FakeProvider:
    """Records every call and returns a canned reply."""

    def __init__(self, text: str = REPLY, error: Exception = None):
        self.text = text
        self.error = error
        self.calls: List[Tuple[ModelTier, str, str]] = []

    def invoke_model(self, tier, system_context, user_question):
        self.calls.append((tier, system_context, user_question))
        if self.error is not None:
            raise self.error
        return ModelResponse(text=self.text, usage=TokenUsage(400, 100), model_id=f"model-{tier.value}")


def _pipeline(db_path, raw_provider, provider, daily_limit=33000):
    clock = lambda: NOW  # noqa: E731
    return AnswerPipeline(
        snapshots=SnapshotService(raw_provider, db_path, clock=clock),
        raw_provider=raw_provider,
        budget=TokenBudgetTracker(UsageRepository(db_path), BudgetConfig(daily_limit=daily_limit), clock=clock),
        cache=ResponseCache(db_path, clock=clock),
        provider=provider,
        clock=clock,
    )


def _entries(db_path) -> List[UsageLogEntry]:
    return UsageRepository(db_path).get_entries_since(datetime(2026, 3, 10))


class TestLocalPath:
    """Test answers served from the snapshot."""

    def test_local_answer_skips_provider(self, db_path, raw):
        provider = FakeProvider()
        pipeline = _pipeline(db_path, lambda: raw, provider)

        answer = pipeline.answer("What's the GPL health score", "/")

        assert answer.served_by == "local"
        assert answer.local
        assert answer.tier_label == "Instant"
        assert "10/10" in answer.text
        assert answer.suggestions
        assert provider.calls == []

        entries = _entries(db_path)
        assert len(entries) == 1
        assert entries[0].local_answer is True
        assert entries[0].total_tokens == 0


class TestModelPath:
    """Test answers generated by the provider."""

    def test_generates_caches_and_logs(self, db_path, raw):
        provider = FakeProvider()
        pipeline = _pipeline(db_path, lambda: raw, provider)

        answer = pipeline.answer("Summarize the GWI collections", "/intel/gwi", session_id="dg")

        assert answer.served_by == "mid"
        assert answer.tier == ModelTier.MID
        assert answer.tier_label == "Standard"
        assert answer.text == "GWI collections are **$800M** against $850M billed."
        assert answer.suggestions == ["How does that compare to last month?"]
        assert answer.actions == [{"label": "Open GWI", "route": "/intel/gwi"}]
        assert (answer.input_tokens, answer.output_tokens) == (400, 100)

        tier, system_context, question = provider.calls[0]
        assert tier == ModelTier.MID
        assert "== GWI DETAIL ==" in system_context
        assert question == "Summarize the GWI collections"

        entries = _entries(db_path)
        assert len(entries) == 1
        assert entries[0].tier == ModelTier.MID
        assert entries[0].total_tokens == 500
        assert entries[0].session_id == "dg"
        assert entries[0].model_id == "model-mid"

    def test_repeat_question_served_from_cache(self, db_path, raw):
        provider = FakeProvider()
        pipeline = _pipeline(db_path, lambda: raw, provider)
        pipeline.answer("Summarize the GWI collections", "/intel/gwi")

        again = pipeline.answer("summarize the  GWI collections", "/intel/gwi")

        assert again.served_by == "cache"
        assert again.cached
        assert again.tier_label == "Standard"
        assert again.suggestions == ["How does that compare to last month?"]
        assert len(provider.calls) == 1

        entries = _entries(db_path)
        assert entries[-1].cached is True
        assert entries[-1].total_tokens == 0

    def test_premium_answers_not_cached(self, db_path, raw):
        provider = FakeProvider()
        pipeline = _pipeline(db_path, lambda: raw, provider)

        pipeline.answer("Compare all agencies on delivery", "/")
        second = pipeline.answer("Compare all agencies on delivery", "/")

        assert second.served_by == "premium"
        assert len(provider.calls) == 2

    def test_premium_gets_full_context(self, db_path, raw):
        provider = FakeProvider()
        _pipeline(db_path, lambda: raw, provider).answer("Compare all agencies on delivery", "/")

        assert "== CALENDAR ==" in provider.calls[0][1]
        assert "DELAYED PROJECTS" in provider.calls[0][1]


class TestBudgetClamp:
    """Test tier lowering as the budget fills."""

    def test_requested_tier_clamped_to_ceiling(self, db_path, raw):
        provider = FakeProvider()
        pipeline = _pipeline(db_path, lambda: raw, provider, daily_limit=1000)
        pipeline.budget.log_usage(UsageLogEntry(timestamp=NOW, tier=ModelTier.PREMIUM, input_tokens=800, output_tokens=50))

        answer = pipeline.answer("Summarize the GWI collections", "/", requested_tier=ModelTier.PREMIUM)

        assert provider.calls[0][0] == ModelTier.MID
        assert answer.tier == ModelTier.MID
        assert answer.budget_warning == WARN_80

    def test_clamped_answer_served_from_cache_on_repeat(self, db_path, raw):
        provider = FakeProvider()
        pipeline = _pipeline(db_path, lambda: raw, provider, daily_limit=1000)
        pipeline.budget.log_usage(UsageLogEntry(timestamp=NOW, tier=ModelTier.PREMIUM, input_tokens=800, output_tokens=50))

        first = pipeline.answer("Compare all agencies on revenue collection", "/")
        second = pipeline.answer("Compare all agencies on revenue collection", "/")

        assert first.tier == ModelTier.MID
        assert second.served_by == "cache"
        assert second.tier == ModelTier.MID
        assert len(provider.calls) == 1

    def test_requested_tier_never_raised(self, db_path, raw):
        provider = FakeProvider()
        pipeline = _pipeline(db_path, lambda: raw, provider)

        answer = pipeline.answer("Compare all agencies on delivery", "/", requested_tier=ModelTier.CHEAP)

        assert answer.tier == ModelTier.CHEAP

    def test_exhausted_budget_still_answers(self, db_path, raw):
        provider = FakeProvider()
        pipeline = _pipeline(db_path, lambda: raw, provider, daily_limit=1000)
        pipeline.budget.log_usage(UsageLogEntry(timestamp=NOW, tier=ModelTier.PREMIUM, input_tokens=1000, output_tokens=500))

        answer = pipeline.answer("Compare all agencies on delivery", "/")

        assert answer.tier == ModelTier.CHEAP
        assert answer.budget_warning == WARN_EXHAUSTED
        assert "DATA:" in provider.calls[0][1]


class TestFailures:
    """Test degradation and error propagation."""

    def test_provider_error_propagates(self, db_path, raw):
        provider = FakeProvider(error=ProviderError("timed out", retryable=True, tier="mid"))
        pipeline = _pipeline(db_path, lambda: raw, provider)

        with pytest.raises(ProviderError) as exc_info:
            pipeline.answer("Summarize the GWI collections", "/")

        assert exc_info.value.retryable
        assert "temporarily degraded" in exc_info.value.user_message
        assert len(provider.calls) == 1
        assert _entries(db_path) == []

    def test_upstream_outage_still_answers(self, db_path):
        def unavailable():
            raise UpstreamDataUnavailable("context")

        provider = FakeProvider()
        pipeline = _pipeline(db_path, unavailable, provider)

        answer = pipeline.answer("What's the GPL health score", "/")

        assert answer.served_by == "cheap"
        assert "PARTIALLY UNAVAILABLE" in provider.calls[0][1]

    def test_empty_question_rejected(self, db_path, raw):
        with pytest.raises(ValueError, match="question is required"):
            _pipeline(db_path, lambda: raw, FakeProvider()).answer("   ")
