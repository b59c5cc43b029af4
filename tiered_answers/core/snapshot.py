"""
Daily metric snapshot.

Reduces RawContextData to a flat, numeric summary that the local answer
matcher reads. A snapshot is built once per calendar day, either by the
scheduled pre-warm or lazily on the first read of the day, and upserted by
day so repeated builds overwrite rather than duplicate.
"""

from dataclasses import asdict, dataclass
from datetime import date, datetime
from typing import Any, Callable, Dict, Optional

from tiered_answers.storage.db import DEFAULT_DB_PATH
from tiered_answers.storage.models import SnapshotRecord
from tiered_answers.storage.repository import fetch_snapshot, upsert_snapshot

from .errors import StoreUnavailable
from .log_config import get_logger
from .raw_context import AgencyHealth, RawContextData

logger = get_logger(__name__)


@dataclass(frozen=True)
class GplMetrics:
    health: AgencyHealth
    capacity_mw: Optional[float] = None
    peak_demand_mw: Optional[float] = None
    reserve_mw: Optional[float] = None
    units_online: Optional[int] = None
    units_total: Optional[int] = None
    suppressed_mw: Optional[float] = None
    report_date: Optional[str] = None


@dataclass(frozen=True)
class GwiMetrics:
    health: AgencyHealth
    net_profit: Optional[float] = None
    total_revenue: Optional[float] = None
    collections: Optional[float] = None
    resolution_rate_pct: Optional[float] = None
    active_accounts: Optional[int] = None
    report_month: Optional[str] = None


@dataclass(frozen=True)
class CjiaMetrics:
    health: AgencyHealth
    total_passengers: Optional[int] = None
    on_time_pct: Optional[float] = None
    report_month: Optional[str] = None


@dataclass(frozen=True)
class GcaaMetrics:
    health: AgencyHealth
    compliance_rate_pct: Optional[float] = None
    total_inspections: Optional[int] = None
    incidents: Optional[int] = None
    report_month: Optional[str] = None


@dataclass(frozen=True)
class ProjectMetrics:
    total: Optional[int] = None
    delayed: Optional[int] = None
    in_progress: Optional[int] = None
    complete: Optional[int] = None
    not_started: Optional[int] = None
    total_value: Optional[float] = None


@dataclass(frozen=True)
class TaskMetrics:
    active: Optional[int] = None
    overdue: Optional[int] = None
    due_today: Optional[int] = None


@dataclass(frozen=True)
class MetricSnapshot:
    """Numeric-only summary of one day's operational state.

    None always means "unknown", never zero.
    """
    timestamp: datetime
    gpl: GplMetrics
    gwi: GwiMetrics
    cjia: CjiaMetrics
    gcaa: GcaaMetrics
    projects: ProjectMetrics
    tasks: TaskMetrics


def _number(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _integer(value: Any) -> Optional[int]:
    number = _number(value)
    return None if number is None else int(number)


def _get(mapping: Optional[Dict[str, Any]], *path: str) -> Any:
    current: Any = mapping
    for key in path:
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current


def _sum_stations(raw: RawContextData, key: str) -> Optional[int]:
    values = [_integer(st.get(key)) for st in raw.gpl.stations]
    known = [v for v in values if v is not None]
    return sum(known) if known else None


def build_snapshot(raw: RawContextData) -> MetricSnapshot:
    """Derive a MetricSnapshot from raw context.

    Total and pure: any missing input degrades to None, and equal inputs
    always give equal snapshots (the timestamp is taken from ``raw.as_of``).
    """
    summary = raw.gpl.summary
    gwi = raw.gwi.report
    portfolio = raw.portfolio

    if portfolio is None:
        projects = ProjectMetrics()
    else:
        projects = ProjectMetrics(
            total=portfolio.total_projects,
            delayed=portfolio.delayed,
            in_progress=portfolio.in_progress,
            complete=portfolio.complete,
            not_started=portfolio.not_started,
            total_value=portfolio.total_value,
        )

    if raw.tasks is None:
        tasks = TaskMetrics()
    else:
        tasks = TaskMetrics(
            active=len(raw.active_tasks()),
            overdue=len(raw.overdue_tasks()),
            due_today=len(raw.tasks_due_today()),
        )

    passengers = _get(raw.cjia, "passenger_data", "total_passengers")
    if passengers is None:
        passengers = _get(raw.cjia, "passenger_data", "departures")

    return MetricSnapshot(
        timestamp=raw.as_of,
        gpl=GplMetrics(
            health=raw.health_for("gpl"),
            capacity_mw=_number(_get(summary, "total_fossil_capacity_mw")),
            peak_demand_mw=_number(_get(summary, "expected_peak_demand_mw")),
            reserve_mw=_number(_get(summary, "reserve_capacity_mw")),
            units_online=_sum_stations(raw, "units_online"),
            units_total=_sum_stations(raw, "total_units"),
            suppressed_mw=_number(_get(summary, "evening_peak_suppressed_mw")),
            report_date=raw.gpl.report_date,
        ),
        gwi=GwiMetrics(
            health=raw.health_for("gwi"),
            net_profit=_number(_get(gwi, "financial_data", "net_profit")),
            total_revenue=_number(_get(gwi, "financial_data", "total_revenue")),
            collections=_number(_get(gwi, "collections_data", "total_collections")),
            resolution_rate_pct=_number(_get(gwi, "customer_service_data", "resolution_rate_pct")),
            active_accounts=_integer(_get(gwi, "collections_data", "active_accounts")),
            report_month=_get(gwi, "report_month"),
        ),
        cjia=CjiaMetrics(
            health=raw.health_for("cjia"),
            total_passengers=_integer(passengers),
            on_time_pct=_number(_get(raw.cjia, "operations_data", "on_time_performance_pct")),
            report_month=_get(raw.cjia, "report_month"),
        ),
        gcaa=GcaaMetrics(
            health=raw.health_for("gcaa"),
            compliance_rate_pct=_number(_get(raw.gcaa, "compliance_data", "compliance_rate_pct")),
            total_inspections=_integer(_get(raw.gcaa, "inspection_data", "total_inspections")),
            incidents=_integer(_get(raw.gcaa, "incident_data", "total_incidents")),
            report_month=_get(raw.gcaa, "report_month"),
        ),
        projects=projects,
        tasks=tasks,
    )


def snapshot_to_dict(snapshot: MetricSnapshot) -> Dict[str, Any]:
    data = asdict(snapshot)
    data["timestamp"] = snapshot.timestamp.isoformat()
    return data


def snapshot_from_dict(data: Dict[str, Any]) -> MetricSnapshot:
    def agency(cls, key):
        fields = dict(data.get(key) or {})
        fields["health"] = AgencyHealth(**fields["health"])
        return cls(**fields)

    return MetricSnapshot(
        timestamp=datetime.fromisoformat(data["timestamp"]),
        gpl=agency(GplMetrics, "gpl"),
        gwi=agency(GwiMetrics, "gwi"),
        cjia=agency(CjiaMetrics, "cjia"),
        gcaa=agency(GcaaMetrics, "gcaa"),
        projects=ProjectMetrics(**(data.get("projects") or {})),
        tasks=TaskMetrics(**(data.get("tasks") or {})),
    )


RawContextProvider = Callable[[], RawContextData]


class SnapshotService:
    """Persists and serves the per-day snapshot.

    ``get_or_build`` is the lazy path; ``prewarm`` is the scheduled batch.
    Both upsert by day, so a race between them is harmless.
    """

    def __init__(
        self,
        provider: RawContextProvider,
        db_path: str = DEFAULT_DB_PATH,
        clock: Callable[[], datetime] = datetime.now
    ):
        self.provider = provider
        self.db_path = db_path
        self.clock = clock

    def upsert(self, day: date, snapshot: MetricSnapshot) -> None:
        record = SnapshotRecord(
            snapshot_date=day,
            snapshot_data=snapshot_to_dict(snapshot),
            updated_at=self.clock(),
        )
        upsert_snapshot(record, self.db_path)

    def read(self, day: date) -> Optional[MetricSnapshot]:
        """Read the stored snapshot for ``day``.

        Raises:
            StoreUnavailable: If the snapshot store cannot be read
        """
        try:
            record = fetch_snapshot(day, self.db_path)
        except Exception as e:
            raise StoreUnavailable(f"Snapshot store unavailable: {e}") from e
        if record is None:
            return None
        try:
            return snapshot_from_dict(record.snapshot_data)
        except (KeyError, TypeError, ValueError):
            logger.warning("Discarding unreadable snapshot for %s", day.isoformat())
            return None

    def get_or_build(self, day: Optional[date] = None) -> MetricSnapshot:
        """Return the snapshot for ``day``, building and storing it on a miss.

        A store outage on the read or the write does not stop a fresh
        snapshot from being returned.
        """
        day = day or self.clock().date()
        try:
            stored = self.read(day)
        except StoreUnavailable:
            logger.warning("Snapshot read failed for %s, rebuilding", day.isoformat(), exc_info=True)
            stored = None
        if stored is not None:
            return stored

        snapshot = build_snapshot(self.provider())
        try:
            self.upsert(day, snapshot)
        except Exception:
            logger.error("Snapshot upsert failed for %s", day.isoformat(), exc_info=True)
        return snapshot

    def prewarm(self, day: Optional[date] = None) -> MetricSnapshot:
        """Build and store the snapshot for ``day`` unconditionally.

        Failures propagate to the scheduler; the lazy path stays available.
        """
        day = day or self.clock().date()
        snapshot = build_snapshot(self.provider())
        self.upsert(day, snapshot)
        logger.info("Snapshot pre-warmed for %s", day.isoformat())
        return snapshot
