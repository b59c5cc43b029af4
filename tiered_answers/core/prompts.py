"""
Tier-sized system prompts and reply tag parsing.

Cheaper tiers get shorter instructions so fewer input tokens are spent
before the context. Models are asked to append follow-up suggestions and
dashboard links as HTML comment tags, which are stripped from the reply.
"""

import json
import re
from typing import Dict, List, Tuple

from .tiers import ModelTier

_SUGGESTIONS_TAG = re.compile(r"<!--\s*suggestions:\s*(\[[\s\S]*?\])\s*-->")
_ACTION_TAG = re.compile(r"<!--\s*action:\s*(\{[^}]*?\})\s*-->")

_TAG_INSTRUCTIONS = """After your response, on a new line, add follow-up questions in exactly this format:
<!-- suggestions: ["question 1", "question 2"] -->

When referencing dashboards, use this format:
<!-- action: {"label": "View Details", "route": "/intel/gwi"} -->"""

_CHEAP = """You are the DG's AI analyst for Guyana's Ministry of Public Utilities. Answer concisely with specific numbers. Date: {date}. Page: {page}.

{context}"""

_MID = """You are the Director General's AI intelligence analyst for the Ministry of Public Utilities and Aviation in Guyana. You have access to data from GPL (power), GWI (water), CJIA (airport), and GCAA (aviation).

Answer questions with specific numbers. Use **bold** for key metrics, bullet points for lists. Be concise but thorough. Where the context says "No data", say the figure is unavailable; never treat it as zero.

Current date: {date}
The DG is viewing: {page}

{tags}

{context}"""

_PREMIUM = """You are the Director General's personal AI intelligence analyst for the Ministry of Public Utilities and Aviation in Guyana. You have access to data from every agency under the DG's oversight: GPL (power), GWI (water), CJIA (airport) and GCAA (civil aviation).

Your role:
- Answer any question about the data directly and specifically with numbers
- Identify patterns, anomalies, and risks the DG should know about
- Compare performance across agencies when relevant
- Provide actionable recommendations, not vague advice
- When referencing data, always cite the specific numbers
- If asked about something not in the data, say so clearly; "No data" means unavailable, not zero
- Format responses with clear structure: use **bold** for key numbers, bullet points for lists
- If the question is about a specific agency, focus there but mention cross-cutting implications

The DG's priorities: infrastructure delivery, revenue collection, service quality, project execution on time and budget.

Current date: {date}
The DG is currently viewing: {page}

{tags}

{context}"""

_TEMPLATES: Dict[ModelTier, str] = {
    ModelTier.CHEAP: _CHEAP,
    ModelTier.MID: _MID,
    ModelTier.PREMIUM: _PREMIUM,
}


def system_prompt(tier: ModelTier, date: str, page: str, context: str) -> str:
    """Wrap compressed context in the tier's instructions."""
    return _TEMPLATES[tier].format(date=date, page=page, context=context, tags=_TAG_INSTRUCTIONS)


def parse_suggestions(text: str) -> Tuple[str, List[str]]:
    """Strip the suggestions tag from ``text``.

    Returns:
        (cleaned text, suggestions); a malformed tag is left in place
    """
    match = _SUGGESTIONS_TAG.search(text)
    if not match:
        return text, []
    try:
        parsed = json.loads(match.group(1))
    except json.JSONDecodeError:
        return text, []
    suggestions = [str(s) for s in parsed if isinstance(s, str) and s.strip()]
    return text.replace(match.group(0), "").strip(), suggestions


def parse_actions(text: str) -> Tuple[str, List[Dict[str, str]]]:
    """Strip every well-formed action tag from ``text``."""
    actions = []
    clean = text
    for match in _ACTION_TAG.finditer(text):
        try:
            action = json.loads(match.group(1))
        except json.JSONDecodeError:
            continue
        if isinstance(action, dict):
            actions.append({str(k): str(v) for k, v in action.items()})
            clean = clean.replace(match.group(0), "")
    return clean.strip(), actions


def parse_reply(text: str) -> Tuple[str, List[str], List[Dict[str, str]]]:
    clean, suggestions = parse_suggestions(text)
    clean, actions = parse_actions(clean)
    return clean, suggestions, actions
