"""
Question classification.

Picks the cheapest tier expected to handle a question well. Premium
patterns are checked first and win even when a cheap pattern also matches;
anything unmatched goes to the mid tier.
"""

import re
from typing import List, Pattern, Tuple

from .tiers import ModelTier

_AGENCY = r"(gpl|gwi|cjia|gcaa)"
_WHAT = r"^(what|what's|whats)\s+(is|are)\s+"

PREMIUM_PATTERNS: List[Tuple[Pattern, str]] = [
    (re.compile(r"compare\s+(all\s+)?(agency|agencies)", re.I), "cross_agency_analysis"),
    (re.compile(r"across\s+(all\s+)?(agencies|sectors)", re.I), "cross_agency_analysis"),
    (re.compile(r"strategic|strategy|recommend|advise|prioriti[sz]e", re.I), "strategic_advice"),
    (re.compile(r"root\s+cause|why\s+(is|are|did|has|have).*\b(drop|decline|fall|increase|spike|surge)", re.I), "causal_analysis"),
    (re.compile(r"forecast|predict|project(ion)?s?\s+(for|over|next)", re.I), "forecasting"),
    (re.compile(r"trend\s+analysis|long.?term", re.I), "trend_analysis"),
    (re.compile(r"what\s+should\s+(i|we|the dg)\s+(do|focus|prioriti[sz]e)", re.I), "strategic_advice"),
    (re.compile(r"brief\s+(me|the dg)\s+on\s+(everything|all|the full)", re.I), "comprehensive_briefing"),
    (re.compile(r"comprehensive|in.?depth|detailed\s+analysis", re.I), "deep_analysis"),
    (re.compile(r"risk\s+(assessment|analysis|profile)", re.I), "risk_analysis"),
    (re.compile(r"scenario|what\s+if", re.I), "scenario_analysis"),
]

CHEAP_PATTERNS: List[Tuple[Pattern, str]] = [
    (re.compile(_WHAT + r"(the\s+)?" + _AGENCY + r"\s+health", re.I), "health_lookup"),
    (re.compile(_WHAT + r"(the\s+)?health\s+score", re.I), "health_lookup"),
    (re.compile(r"health\s+score", re.I), "health_lookup"),
    (re.compile(r"^how\s+(many|much)\s+(projects?|tasks?|delayed|overdue)", re.I), "count_lookup"),
    (re.compile(_WHAT + r"(the\s+)?(current\s+)?(reserve|capacity|peak|demand)", re.I), "metric_lookup"),
    (re.compile(_WHAT + r"(the\s+)?(total\s+)?(portfolio|project)\s+(value|count)", re.I), "metric_lookup"),
    (re.compile(_WHAT + r"(the\s+)?collection\s+rate", re.I), "metric_lookup"),
    (re.compile(_WHAT + r"(the\s+)?suppressed\s+(demand|mw)", re.I), "metric_lookup"),
    (re.compile(_WHAT + r"(the\s+)?compliance\s+rate", re.I), "metric_lookup"),
    (re.compile(r"how\s+many\s+units?\s+(are\s+)?(online|available)", re.I), "metric_lookup"),
    (re.compile(r"^(show|list|give)\s+(me\s+)?(the\s+)?(overdue|delayed)\s+(tasks?|projects?)", re.I), "list_lookup"),
    (re.compile(_WHAT + r"(my\s+)?overdue\s+tasks?", re.I), "list_lookup"),
    (re.compile(_WHAT + r"(the\s+)?" + _AGENCY + r"\s+(revenue|profit|passengers|inspections)", re.I), "metric_lookup"),
    (re.compile(_WHAT + r"(the\s+)?on.?time\s+performance", re.I), "metric_lookup"),
    (re.compile(_WHAT + r"(the\s+)?resolution\s+rate", re.I), "metric_lookup"),
    (re.compile(r"^when\s+(is|are)\s+(my\s+)?(next|today)", re.I), "schedule_lookup"),
    (re.compile(_WHAT + r"(on\s+)?(my|the)\s+(calendar|schedule)\s+(today|this week)", re.I), "schedule_lookup"),
]

DEFAULT_QUERY_TYPE = "general"


def classify_question(question: str) -> Tuple[ModelTier, str]:
    """Tentative tier and query type for a question.

    Args:
        question: The user's question

    Returns:
        (tier, query_type)
    """
    trimmed = question.strip()

    for pattern, query_type in PREMIUM_PATTERNS:
        if pattern.search(trimmed):
            return ModelTier.PREMIUM, query_type

    for pattern, query_type in CHEAP_PATTERNS:
        if pattern.search(trimmed):
            return ModelTier.CHEAP, query_type

    return ModelTier.MID, DEFAULT_QUERY_TYPE
