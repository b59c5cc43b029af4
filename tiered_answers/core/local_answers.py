"""
Local answer engine.

Answers common metric lookups straight from the daily snapshot at zero
model cost. Rules are evaluated top to bottom and the first rule whose
handler produces an answer wins, so more specific rules must come first.
A handler returns None when the snapshot lacks the value it needs; matching
then continues with the next rule.
"""

import re
from dataclasses import dataclass, field, replace
from typing import Callable, List, Optional, Pattern

from .snapshot import MetricSnapshot


@dataclass(frozen=True)
class LocalAnswer:
    """Answer produced without calling a model."""
    text: str
    suggestions: List[str] = field(default_factory=list)
    rule: str = ""

    def __post_init__(self):
        """Every local answer must offer at least one follow-up."""
        if not any(s and s.strip() for s in self.suggestions):
            raise ValueError("local answers require at least one suggestion")


PatternHandler = Callable[[MetricSnapshot], Optional[LocalAnswer]]


@dataclass(frozen=True)
class MatchRule:
    """One tagged entry of the ordered rule table."""
    name: str
    pattern: Pattern
    handler: PatternHandler

    def matches(self, question: str) -> bool:
        return self.pattern.search(question) is not None


def _fmt_count(value: Optional[int]) -> str:
    return "N/A" if value is None else f"{value}"


def _fmt_mw(value: Optional[float]) -> str:
    return "N/A" if value is None else f"{value:.1f}"


def _health_rule(agency: str, suggestions: List[str]) -> MatchRule:
    def handler(s: MetricSnapshot) -> Optional[LocalAnswer]:
        health = getattr(s, agency).health
        if health.score is None:
            return None
        return LocalAnswer(
            text=f"**{agency.upper()} health score: {health.score:g}/10** ({health.label})\n\n{health.breakdown}",
            suggestions=suggestions,
        )

    return MatchRule(
        name=f"{agency}_health",
        pattern=re.compile(rf"^(what('s|s| is)|how('s|s| is))\s+(the\s+)?{agency}\s+health\s+score", re.I),
        handler=handler,
    )


def _all_health(s: MetricSnapshot) -> Optional[LocalAnswer]:
    healths = [(agency, getattr(s, agency).health) for agency in ("gpl", "gwi", "cjia", "gcaa")]
    if any(health.score is None for _, health in healths):
        return None
    lines = ["## Agency Health Scores", ""]
    for agency, health in healths:
        lines.append(f"- **{agency.upper()}:** {health.score:g}/10 ({health.label}): {health.breakdown}")
    return LocalAnswer(
        text="\n".join(lines),
        suggestions=["Which agency needs the most attention?", "Show GPL station details", "Show delayed projects"],
    )


def _reserve(s: MetricSnapshot) -> Optional[LocalAnswer]:
    if s.gpl.reserve_mw is None:
        return None
    return LocalAnswer(
        text=(
            f"**GPL reserve capacity: {s.gpl.reserve_mw:.1f} MW**\n\n"
            f"Capacity: {_fmt_mw(s.gpl.capacity_mw)} MW | Peak demand: {_fmt_mw(s.gpl.peak_demand_mw)} MW"
        ),
        suggestions=["Is this reserve adequate?", "Which stations are offline?", "What is suppressed demand?"],
    )


def _peak_demand(s: MetricSnapshot) -> Optional[LocalAnswer]:
    if s.gpl.peak_demand_mw is None:
        return None
    return LocalAnswer(
        text=(
            f"**Expected peak demand: {s.gpl.peak_demand_mw:.1f} MW**\n\n"
            f"Capacity: {_fmt_mw(s.gpl.capacity_mw)} MW | Reserve: {_fmt_mw(s.gpl.reserve_mw)} MW"
        ),
        suggestions=["What is the reserve margin?", "How much suppressed demand?", "GPL station status"],
    )


def _suppressed(s: MetricSnapshot) -> Optional[LocalAnswer]:
    if s.gpl.suppressed_mw is None:
        return None
    if s.gpl.suppressed_mw == 0:
        text = "**No suppressed demand currently.** All load is being served."
    else:
        text = (
            f"**Suppressed demand: {s.gpl.suppressed_mw:.1f} MW**\n\n"
            "Some areas may be experiencing load shedding."
        )
    return LocalAnswer(
        text=text,
        suggestions=["What is causing load shedding?", "Which stations are offline?", "GPL health score"],
    )


def _units_online(s: MetricSnapshot) -> Optional[LocalAnswer]:
    if s.gpl.units_online is None or s.gpl.units_total is None:
        return None
    return LocalAnswer(
        text=f"**{s.gpl.units_online} of {s.gpl.units_total} generation units online**",
        suggestions=["Which stations have units offline?", "What is total capacity?", "GPL health score"],
    )


def _project_count(s: MetricSnapshot) -> Optional[LocalAnswer]:
    p = s.projects
    if p.total is None:
        return None
    value = "N/A" if p.total_value is None else f"${p.total_value / 1e6:.0f}M"
    return LocalAnswer(
        text=(
            f"**{p.total} total projects**: {_fmt_count(p.in_progress)} in progress, {_fmt_count(p.delayed)} delayed, "
            f"{_fmt_count(p.complete)} complete, {_fmt_count(p.not_started)} not started\n\n"
            f"Total portfolio value: **{value}**"
        ),
        suggestions=["Which delayed projects are most critical?", "Summarize projects by agency", "What is total delayed project value?"],
    )


def _delayed_count(s: MetricSnapshot) -> Optional[LocalAnswer]:
    if s.projects.delayed is None:
        return None
    return LocalAnswer(
        text=f"**{s.projects.delayed} projects are delayed** out of {_fmt_count(s.projects.total)} total projects.",
        suggestions=["Which delayed projects are most critical?", "Show projects by region", "Compare agency project execution"],
    )


def _overdue_tasks(s: MetricSnapshot) -> Optional[LocalAnswer]:
    t = s.tasks
    if t.overdue is None:
        return None
    return LocalAnswer(
        text=f"**{t.overdue} overdue tasks** out of {_fmt_count(t.active)} active tasks. {_fmt_count(t.due_today)} due today.",
        suggestions=["Show me my overdue tasks", "What needs my attention today?", "Tasks by agency"],
    )


def _calendar_count(s: MetricSnapshot) -> Optional[LocalAnswer]:
    # Snapshot carries no calendar detail; defer to the model
    return None


def _resolution_rate(s: MetricSnapshot) -> Optional[LocalAnswer]:
    if s.gwi.resolution_rate_pct is None:
        return None
    return LocalAnswer(
        text=f"**GWI complaint resolution rate: {s.gwi.resolution_rate_pct:.1f}%**",
        suggestions=["Is GWI resolution improving?", "How many GWI complaints?", "GWI health score"],
    )


def _compliance_rate(s: MetricSnapshot) -> Optional[LocalAnswer]:
    if s.gcaa.compliance_rate_pct is None:
        return None
    return LocalAnswer(
        text=f"**GCAA compliance rate: {s.gcaa.compliance_rate_pct:.1f}%**",
        suggestions=["How many inspections completed?", "Any aviation incidents?", "GCAA health score"],
    )


def _on_time(s: MetricSnapshot) -> Optional[LocalAnswer]:
    if s.cjia.on_time_pct is None:
        return None
    return LocalAnswer(
        text=f"**CJIA on-time performance: {s.cjia.on_time_pct:.1f}%**",
        suggestions=["How many passengers this month?", "CJIA health score", "Compare all agency health scores"],
    )


RULES: List[MatchRule] = [
    _health_rule("gpl", ["Which GPL stations need attention?", "What is the reserve margin?", "Compare all agency health scores"]),
    _health_rule("gwi", ["What is GWI resolution rate?", "Show GWI financial summary", "Compare all agency health scores"]),
    _health_rule("cjia", ["How many passengers this month?", "What is CJIA on-time performance?", "Compare all agency health scores"]),
    _health_rule("gcaa", ["What is the compliance rate?", "How many incidents this month?", "Compare all agency health scores"]),
    MatchRule("all_health", re.compile(r"(all|every)\s+(agency\s+)?health\s+score", re.I), _all_health),
    MatchRule("reserve", re.compile(r"(what('s|s| is)|how much)\s+(the\s+)?(current\s+)?(reserve|reserve margin|spare capacity)", re.I), _reserve),
    MatchRule("peak_demand", re.compile(r"(what('s|s| is))\s+(the\s+)?(current\s+)?(peak\s+demand|expected\s+peak)", re.I), _peak_demand),
    MatchRule("suppressed", re.compile(r"(what('s|s| is))\s+(the\s+)?(current\s+)?suppressed\s+(demand|mw|load)", re.I), _suppressed),
    MatchRule("units_online", re.compile(r"how\s+many\s+(generation\s+)?units?\s+(are\s+)?(online|available|running)", re.I), _units_online),
    MatchRule("project_count", re.compile(r"how\s+many\s+(total\s+)?projects", re.I), _project_count),
    MatchRule("delayed_count", re.compile(r"how\s+many\s+(projects?\s+)?(are\s+)?delayed", re.I), _delayed_count),
    MatchRule("overdue_tasks", re.compile(r"how\s+many\s+(tasks?\s+)?(are\s+)?overdue", re.I), _overdue_tasks),
    MatchRule("calendar_count", re.compile(r"how\s+many\s+(events?|meetings?)\s+(do i have\s+)?(today|on the calendar)", re.I), _calendar_count),
    MatchRule("resolution_rate", re.compile(r"(what('s|s| is))\s+(the\s+)?(gwi\s+)?resolution\s+rate", re.I), _resolution_rate),
    MatchRule("compliance_rate", re.compile(r"(what('s|s| is))\s+(the\s+)?(gcaa\s+)?compliance\s+rate", re.I), _compliance_rate),
    MatchRule("on_time", re.compile(r"(what('s|s| is))\s+(the\s+)?(cjia\s+)?on.?time\s+performance", re.I), _on_time),
]


def try_local_answer(
    question: str,
    snapshot: Optional[MetricSnapshot],
    rules: Optional[List[MatchRule]] = None
) -> Optional[LocalAnswer]:
    """Answer ``question`` from the snapshot, or return None.

    Args:
        question: The user's question
        snapshot: Today's snapshot; None always yields None
        rules: Ordered rule table, defaults to RULES

    Returns:
        The first answer produced by a matching rule, or None
    """
    if snapshot is None:
        return None

    trimmed = question.strip()
    for rule in (RULES if rules is None else rules):
        if rule.matches(trimmed):
            answer = rule.handler(snapshot)
            if answer is not None:
                return replace(answer, rule=rule.name)
    return None

