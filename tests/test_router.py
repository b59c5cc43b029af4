"""
Tests for question classification and prompt handling.
"""

import pytest

from tiered_answers.core.prompts import parse_actions, parse_reply, parse_suggestions, system_prompt
from tiered_answers.core.router import classify_question
from tiered_answers.core.tiers import ModelTier


class TestClassifyQuestion:
    """Test tier routing by question pattern."""

    @pytest.mark.parametrize("question,tier,query_type", [
        ("What is the GPL health score?", ModelTier.CHEAP, "health_lookup"),
        ("How many projects are delayed?", ModelTier.CHEAP, "count_lookup"),
        ("Show me the overdue tasks", ModelTier.CHEAP, "list_lookup"),
        ("When is my next meeting?", ModelTier.CHEAP, "schedule_lookup"),
        ("Compare all agencies on delivery", ModelTier.PREMIUM, "cross_agency_analysis"),
        ("What should I prioritize this week?", ModelTier.PREMIUM, "strategic_advice"),
        ("Forecast GPL demand for next quarter", ModelTier.PREMIUM, "forecasting"),
        ("What if Kingston goes offline?", ModelTier.PREMIUM, "scenario_analysis"),
        ("Summarize the GWI report", ModelTier.MID, "general"),
    ])
    def test_routes(self, question, tier, query_type):
        assert classify_question(question) == (tier, query_type)

    def test_premium_wins_over_cheap(self):
        # Matches a health lookup and a risk analysis
        assert classify_question("Risk assessment of the GPL health score")[0] == ModelTier.PREMIUM


class TestSystemPrompt:
    """Test tier-sized prompts."""

    def test_cheaper_tiers_get_shorter_prompts(self):
        sizes = [len(system_prompt(tier, "Tuesday", "/", "CTX")) for tier in ModelTier]
        assert sizes == sorted(sizes)
        assert len(set(sizes)) == 3

    def test_context_included(self):
        for tier in ModelTier:
            assert "CTX-MARKER" in system_prompt(tier, "Tuesday", "/", "CTX-MARKER")


class TestReplyParsing:
    """Test extraction of suggestion and action tags."""

    def test_suggestions_stripped(self):
        text, suggestions = parse_suggestions('Reserve is fine.\n<!-- suggestions: ["Why?", "Trend?"] -->')

        assert text == "Reserve is fine."
        assert suggestions == ["Why?", "Trend?"]

    def test_malformed_suggestions_left_alone(self):
        raw = "Answer <!-- suggestions: [not json] -->"
        assert parse_suggestions(raw) == (raw, [])

    def test_actions_stripped(self):
        text, actions = parse_actions(
            'See GWI. <!-- action: {"label": "Open GWI", "route": "/intel/gwi"} -->'
        )

        assert text == "See GWI."
        assert actions == [{"label": "Open GWI", "route": "/intel/gwi"}]

    def test_parse_reply(self):
        reply = (
            "Two stations are down.\n"
            '<!-- suggestions: ["Which ones?"] -->\n'
            '<!-- action: {"label": "GPL", "route": "/intel/gpl"} -->'
        )

        text, suggestions, actions = parse_reply(reply)

        assert text == "Two stations are down."
        assert suggestions == ["Which ones?"]
        assert actions == [{"label": "GPL", "route": "/intel/gpl"}]
