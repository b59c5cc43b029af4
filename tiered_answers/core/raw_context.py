"""
Raw operational context.

The bundle of current-state data the assistant reasons over. It is rebuilt
per request from upstream fetchers and never persisted as-is. Every field may
be absent; absence is recorded explicitly (None or a gap entry), never as a
zero.
"""

import json
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from .errors import UpstreamDataUnavailable
from .log_config import get_logger

logger = get_logger(__name__)

AGENCIES = ("gpl", "gwi", "cjia", "gcaa")


@dataclass(frozen=True)
class AgencyHealth:
    """Health score for one agency."""
    score: Optional[float]  # 0-10, None when the agency has no data
    label: str
    breakdown: str


def no_data_health(agency: str) -> AgencyHealth:
    return AgencyHealth(score=None, label="No Data", breakdown=f"No {agency.upper()} data uploaded")


@dataclass
class GplContext:
    summary: Optional[Dict[str, Any]] = None
    stations: List[Dict[str, Any]] = field(default_factory=list)
    report_date: Optional[str] = None
    kpis: Dict[str, float] = field(default_factory=dict)
    kpi_month: Optional[str] = None


@dataclass
class GwiContext:
    report: Optional[Dict[str, Any]] = None
    insights: Optional[Dict[str, Any]] = None
    complaints: Optional[Dict[str, Any]] = None


@dataclass
class PortfolioSummary:
    total_projects: Optional[int] = None
    total_value: Optional[float] = None
    in_progress: Optional[int] = None
    delayed: Optional[int] = None
    complete: Optional[int] = None
    not_started: Optional[int] = None
    agencies: List[Dict[str, Any]] = field(default_factory=list)


@dataclass
class TaskItem:
    title: str
    status: str
    due_date: Optional[date] = None
    agency: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.status != "Done"


@dataclass
class CalendarEvent:
    title: str
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    location: Optional[str] = None
    all_day: bool = False


@dataclass
class RawContextData:
    """Current-state bundle from every upstream domain.

    ``tasks``, ``today_events`` and ``week_events`` are None when their source
    was unreachable, and an empty list when the source answered with nothing.
    """
    as_of: datetime
    gpl: GplContext = field(default_factory=GplContext)
    gwi: GwiContext = field(default_factory=GwiContext)
    cjia: Optional[Dict[str, Any]] = None
    gcaa: Optional[Dict[str, Any]] = None
    portfolio: Optional[PortfolioSummary] = None
    delayed: List[Dict[str, Any]] = field(default_factory=list)
    tasks: Optional[List[TaskItem]] = None
    today_events: Optional[List[CalendarEvent]] = None
    week_events: Optional[List[CalendarEvent]] = None
    health: Dict[str, AgencyHealth] = field(default_factory=dict)
    gaps: List[str] = field(default_factory=list)

    def health_for(self, agency: str) -> AgencyHealth:
        return self.health.get(agency) or no_data_health(agency)

    @property
    def today(self) -> date:
        return self.as_of.date()

    def active_tasks(self) -> List[TaskItem]:
        return [t for t in (self.tasks or []) if t.is_active]

    def overdue_tasks(self) -> List[TaskItem]:
        return [t for t in self.active_tasks() if t.due_date is not None and t.due_date < self.today]

    def tasks_due_today(self) -> List[TaskItem]:
        return [t for t in self.active_tasks() if t.due_date == self.today]


# ── Parsing ──────────────────────────────────────────────────────────────────

def parse_date(value: Any) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.fromisoformat(str(value)).date()
    except ValueError:
        return None


def parse_datetime(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value))
    except ValueError:
        return None


def _number(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _integer(value: Any) -> Optional[int]:
    n = _number(value)
    return None if n is None else int(n)


def _mapping(value: Any) -> Optional[Dict[str, Any]]:
    return value if isinstance(value, dict) else None


def _mapping_list(value: Any) -> List[Dict[str, Any]]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


def _parse_tasks(value: Any) -> Optional[List[TaskItem]]:
    if value is None:
        return None
    return [
        TaskItem(
            title=str(item.get("title", "Untitled")),
            status=str(item.get("status", "")),
            due_date=parse_date(item.get("due_date")),
            agency=item.get("agency"),
        )
        for item in _mapping_list(value)
    ]


def _parse_events(value: Any) -> Optional[List[CalendarEvent]]:
    if value is None:
        return None
    return [
        CalendarEvent(
            title=str(item.get("title", "Untitled")),
            start_time=parse_datetime(item.get("start_time")),
            end_time=parse_datetime(item.get("end_time")),
            location=item.get("location"),
            all_day=bool(item.get("all_day", False)),
        )
        for item in _mapping_list(value)
    ]


def _parse_portfolio(value: Any) -> Optional[PortfolioSummary]:
    data = _mapping(value)
    if data is None:
        return None
    return PortfolioSummary(
        total_projects=_integer(data.get("total_projects")),
        total_value=_number(data.get("total_value")),
        in_progress=_integer(data.get("in_progress")),
        delayed=_integer(data.get("delayed")),
        complete=_integer(data.get("complete")),
        not_started=_integer(data.get("not_started")),
        agencies=_mapping_list(data.get("agencies")),
    )


def _parse_health(value: Any) -> Dict[str, AgencyHealth]:
    health = {}
    for agency, item in (_mapping(value) or {}).items():
        if not isinstance(item, dict) or item.get("score") is None:
            continue
        health[agency] = AgencyHealth(
            score=float(item["score"]),
            label=str(item.get("label", "")),
            breakdown=str(item.get("breakdown", "")),
        )
    return health


def raw_context_from_dict(data: Dict[str, Any], as_of: Optional[datetime] = None) -> RawContextData:
    """Build RawContextData from a JSON-like mapping where every key is optional.

    Health scores present in the mapping are kept; missing ones are computed
    from the agency data.
    """
    from .health import compute_health

    as_of = as_of or parse_datetime(data.get("as_of")) or datetime.now()
    gpl = _mapping(data.get("gpl")) or {}
    gwi = _mapping(data.get("gwi")) or {}
    kpis = {}
    for name, val in (_mapping(gpl.get("kpis")) or {}).items():
        try:
            kpis[str(name)] = float(val)
        except (TypeError, ValueError):
            continue

    raw = RawContextData(
        as_of=as_of,
        gpl=GplContext(
            summary=_mapping(gpl.get("summary")),
            stations=_mapping_list(gpl.get("stations")),
            report_date=gpl.get("report_date"),
            kpis=kpis,
            kpi_month=gpl.get("kpi_month"),
        ),
        gwi=GwiContext(
            report=_mapping(gwi.get("report")),
            insights=_mapping(gwi.get("insights")),
            complaints=_mapping(gwi.get("complaints")),
        ),
        cjia=_mapping(data.get("cjia")),
        gcaa=_mapping(data.get("gcaa")),
        portfolio=_parse_portfolio(data.get("portfolio")),
        delayed=_mapping_list(data.get("delayed")),
        tasks=_parse_tasks(data.get("tasks")),
        today_events=_parse_events(data.get("today_events")),
        week_events=_parse_events(data.get("week_events")),
        gaps=[str(g) for g in data.get("gaps") or []],
    )
    computed = compute_health(raw)
    computed.update(_parse_health(data.get("health")))
    raw.health = computed
    return raw


# ── Collection ───────────────────────────────────────────────────────────────

Fetcher = Callable[[], Any]

_GAP_LABELS = {
    "tasks": "Tasks unavailable",
    "today_events": "Calendar unavailable",
    "week_events": "Calendar unavailable",
}


def collect_raw_context(fetchers: Dict[str, Fetcher], as_of: Optional[datetime] = None) -> RawContextData:
    """Run one fetcher per domain and assemble the results.

    Keys are the top-level fields understood by ``raw_context_from_dict``
    (``gpl``, ``gwi``, ``cjia``, ``gcaa``, ``portfolio``, ``delayed``,
    ``tasks``, ``today_events``, ``week_events``). A failing fetcher never
    aborts the collection: its field degrades to absent and a gap is noted.

    Args:
        fetchers: Mapping of domain name to zero-argument callable
        as_of: Collection time; defaults to now

    Returns:
        RawContextData with health scores computed
    """
    data: Dict[str, Any] = {}
    gaps: List[str] = []
    for domain, fetch in fetchers.items():
        try:
            data[domain] = fetch()
        except UpstreamDataUnavailable as e:
            logger.warning("Upstream domain unavailable: %s", e.domain)
            _note_gap(gaps, domain)
        except Exception:
            logger.exception("Fetcher for %s failed", domain)
            _note_gap(gaps, domain)
    data["gaps"] = gaps
    return raw_context_from_dict(data, as_of=as_of or datetime.now())


def _note_gap(gaps: List[str], domain: str) -> None:
    label = _GAP_LABELS.get(domain, f"{domain.upper()} unavailable")
    if label not in gaps:
        gaps.append(label)


class JsonFileContextProvider:
    """Raw context provider backed by an exported JSON file.

    Lets the batch snapshot job run where live integrations are not wired up.
    """

    def __init__(self, path: str):
        self.path = Path(path)

    def __call__(self) -> RawContextData:
        if not self.path.exists():
            raise UpstreamDataUnavailable("context", f"Context file not found: {self.path}")
        with open(self.path, 'r', encoding='utf-8') as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError as e:
                raise UpstreamDataUnavailable("context", f"Invalid JSON in {self.path}: {e}")
        if not isinstance(data, dict):
            raise UpstreamDataUnavailable("context", "Context file must hold a JSON object")
        return raw_context_from_dict(data)
