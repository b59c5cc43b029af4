"""
Context compression.

Renders raw context at one of three sizes, chosen by the permitted tier:

- minimal: one flat line of key facts per domain
- focused: health for every agency, a full detail block for the agency the
  user is looking at, one-liners for the rest, and the top few items of the
  list the page relates to
- full: every field in readable sections, no caps

Each level contains every fact of the level below it. Output is a pure
function of the inputs; the only time shown is ``raw.as_of``. Missing data
is always written as "No data" so a model never reads absence as zero.
"""

import json
from collections import OrderedDict
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from .raw_context import AGENCIES, CalendarEvent, RawContextData, TaskItem
from .tiers import ContextLevel

NO_DATA = "No data"
TOP_N = 5

PAGE_DESCRIPTIONS: Dict[str, str] = {
    "/": "Daily Briefing: overview of tasks, calendar, and alerts",
    "/intel": "Agency Intel Overview: comparison of all agencies",
    "/intel/gpl": "GPL Deep Dive: power generation, stations, KPIs, forecasts",
    "/intel/gwi": "GWI Deep Dive: water utility metrics and financials",
    "/intel/cjia": "CJIA Deep Dive: airport passenger analytics",
    "/intel/gcaa": "GCAA Deep Dive: civil aviation compliance",
    "/projects": "PSIP Project Tracker: infrastructure project oversight",
    "/documents": "Document Vault: uploaded documents and AI analysis",
    "/admin": "Admin Portal: user management and data entry",
    "/calendar": "Calendar: schedule and meetings",
}

_TASK_PAGES = ("/", "/briefing", "/tasks")


# ── Formatting helpers ───────────────────────────────────────────────────────

def _num(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def fmt_num(value: Any, decimals: int = 1) -> str:
    n = _num(value)
    return NO_DATA if n is None else f"{n:.{decimals}f}"


def fmt_money(value: Any) -> str:
    n = _num(value)
    if n is None:
        return NO_DATA
    if abs(n) >= 1e9:
        return f"${n / 1e9:.1f}B"
    if abs(n) >= 1e6:
        return f"${n / 1e6:.0f}M"
    if abs(n) >= 1e3:
        return f"${n / 1e3:.0f}K"
    return f"${n:.0f}"


def fmt_pct(value: Any) -> str:
    n = _num(value)
    return NO_DATA if n is None else f"{n:.1f}%"


def fmt_count(value: Any) -> str:
    n = _num(value)
    return NO_DATA if n is None else f"{int(n)}"


def fmt_score(score: Optional[float]) -> str:
    return NO_DATA if score is None else f"{score:g}/10"


def fmt_time(value: Optional[datetime]) -> str:
    if value is None:
        return "time unknown"
    return value.strftime("%I:%M %p").lstrip("0")


def _kv(mapping: Optional[Dict[str, Any]]) -> str:
    if not mapping:
        return NO_DATA
    parts = []
    for key in sorted(mapping):
        value = mapping[key]
        if isinstance(value, (dict, list)):
            value = json.dumps(value, sort_keys=True)
        parts.append(f"{key} {NO_DATA if value is None else value}")
    return ", ".join(parts)


def _get(mapping: Optional[Dict[str, Any]], *path: str) -> Any:
    current: Any = mapping
    for key in path:
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current


def detect_focus_agency(page: str) -> Optional[str]:
    """Agency whose route appears in ``page``, or None."""
    for agency in AGENCIES:
        if f"/{agency}" in page:
            return agency
    return None


def describe_page(page: str) -> str:
    return PAGE_DESCRIPTIONS.get(page, f"Page: {page}")


def _as_of_line(raw: RawContextData, prefix: str) -> str:
    return f"{prefix} {raw.as_of:%Y-%m-%d %H:%M}"


# ── Facts shared by every level ──────────────────────────────────────────────

def _units(raw: RawContextData) -> str:
    if not raw.gpl.stations:
        return f"{NO_DATA} units"
    online = sum(int(_num(st.get("units_online")) or 0) for st in raw.gpl.stations)
    total = sum(int(_num(st.get("total_units")) or 0) for st in raw.gpl.stations)
    return f"{online}/{total} units"


def gpl_facts(raw: RawContextData) -> str:
    s = raw.gpl.summary
    if s is None:
        return NO_DATA
    return (
        f"Cap {fmt_num(s.get('total_fossil_capacity_mw'))}MW, "
        f"Peak {fmt_num(s.get('expected_peak_demand_mw'))}MW, "
        f"Reserve {fmt_num(s.get('reserve_capacity_mw'))}MW, "
        f"{_units(raw)}, "
        f"Suppressed {fmt_num(s.get('evening_peak_suppressed_mw'))}MW"
    )


def gwi_facts(raw: RawContextData) -> str:
    r = raw.gwi.report
    if r is None:
        return NO_DATA
    return (
        f"Profit {fmt_money(_get(r, 'financial_data', 'net_profit'))}, "
        f"Revenue {fmt_money(_get(r, 'financial_data', 'total_revenue'))}, "
        f"Collections {fmt_money(_get(r, 'collections_data', 'total_collections'))}, "
        f"Resolution {fmt_pct(_get(r, 'customer_service_data', 'resolution_rate_pct'))}, "
        f"Accounts {fmt_count(_get(r, 'collections_data', 'active_accounts'))}"
    )


def _passengers(cjia: Dict[str, Any]) -> Any:
    pax = _get(cjia, "passenger_data", "total_passengers")
    return pax if pax is not None else _get(cjia, "passenger_data", "departures")


def cjia_facts(raw: RawContextData) -> str:
    if raw.cjia is None:
        return NO_DATA
    return (
        f"Pax {fmt_count(_passengers(raw.cjia))}, "
        f"OnTime {fmt_pct(_get(raw.cjia, 'operations_data', 'on_time_performance_pct'))}"
    )


def gcaa_facts(raw: RawContextData) -> str:
    if raw.gcaa is None:
        return NO_DATA
    return (
        f"Compliance {fmt_pct(_get(raw.gcaa, 'compliance_data', 'compliance_rate_pct'))}, "
        f"Inspections {fmt_count(_get(raw.gcaa, 'inspection_data', 'total_inspections'))}, "
        f"Incidents {fmt_count(_get(raw.gcaa, 'incident_data', 'total_incidents'))}"
    )


_AGENCY_FACTS = {
    "gpl": gpl_facts,
    "gwi": gwi_facts,
    "cjia": cjia_facts,
    "gcaa": gcaa_facts,
}


def project_facts(raw: RawContextData) -> str:
    p = raw.portfolio
    if p is None:
        return NO_DATA
    return (
        f"{fmt_count(p.total_projects)} total, {fmt_count(p.delayed)} delayed, {fmt_count(p.in_progress)} in progress, "
        f"{fmt_count(p.complete)} complete, {fmt_count(p.not_started)} not started, {fmt_money(p.total_value)} value"
    )


def task_facts(raw: RawContextData) -> str:
    if raw.tasks is None:
        return NO_DATA
    return (
        f"{len(raw.active_tasks())} active, {len(raw.overdue_tasks())} overdue, "
        f"{len(raw.tasks_due_today())} due today"
    )


def calendar_facts(raw: RawContextData) -> str:
    if raw.today_events is None:
        return NO_DATA
    return f"{len(raw.today_events)} events today"


def _health_line(raw: RawContextData, agency: str) -> str:
    h = raw.health_for(agency)
    return f"{agency.upper()}: {fmt_score(h.score)} ({h.label}): {h.breakdown}"


def _gaps_line(raw: RawContextData) -> Optional[str]:
    return f"GAPS: {'; '.join(raw.gaps)}" if raw.gaps else None


def _event_line(ev: CalendarEvent, with_end: bool = False) -> str:
    time = "All day" if ev.all_day else fmt_time(ev.start_time)
    end = ""
    if with_end and ev.end_time is not None and not ev.all_day:
        end = f" to {fmt_time(ev.end_time)}"
    loc = f" [{ev.location}]" if ev.location else ""
    return f"- {time}{end}: {ev.title}{loc}"


def _delayed_line(i: int, d: Dict[str, Any], detailed: bool = False) -> str:
    name = d.get("project_name") or d.get("project_id") or "Unnamed project"
    overdue = fmt_count(d.get("days_overdue"))
    completion = fmt_pct(d.get("completion_pct"))
    if not detailed:
        return f"{i}. {name}: {overdue}d overdue, {completion} complete"
    return (
        f"{i}. {name}: {d.get('sub_agency') or 'Unknown'}, {overdue} days overdue, "
        f"{fmt_money(d.get('contract_value'))}, {completion} complete"
    )


def _task_line(i: int, t: TaskItem, today) -> str:
    agency = t.agency or "General"
    if t.due_date is None:
        return f"{i}. {t.title}: {agency}: {t.status}"
    days = (today - t.due_date).days
    suffix = f", {days} days overdue" if days > 0 else ""
    return f"{i}. {t.title}: {agency}: due {t.due_date.isoformat()}{suffix}: {t.status}"


# ── Level 1: minimal ─────────────────────────────────────────────────────────

def assemble_minimal(raw: RawContextData) -> str:
    lines = [_as_of_line(raw, "DATA:")]
    gaps = _gaps_line(raw)
    if gaps:
        lines.append(gaps)
    lines.append("HEALTH: " + ", ".join(
        f"{agency.upper()}={fmt_score(raw.health_for(agency).score)}" for agency in AGENCIES
    ))
    for agency in AGENCIES:
        lines.append(f"{agency.upper()}: {_AGENCY_FACTS[agency](raw)}")
    lines.append(f"PROJECTS: {project_facts(raw)}")
    lines.append(f"TASKS: {task_facts(raw)}")
    lines.append(f"CALENDAR: {calendar_facts(raw)}")
    return "\n".join(lines)


# ── Level 2: focused ─────────────────────────────────────────────────────────

def _gpl_detail(raw: RawContextData) -> List[str]:
    s = raw.gpl.summary or {}
    lines = ["", "== GPL DETAIL ==", f"Key facts: {gpl_facts(raw)}"]
    lines.append(
        f"Evening Peak: On-bars {fmt_num(s.get('evening_peak_on_bars_mw'))}MW, "
        f"Suppressed {fmt_num(s.get('evening_peak_suppressed_mw'))}MW"
    )
    if raw.gpl.stations:
        lines.append("Stations:")
        for st in raw.gpl.stations:
            lines.append(
                f"  {st.get('station', 'Unknown')}: {fmt_count(st.get('units_online'))}/{fmt_count(st.get('total_units'))} online, "
                f"{fmt_num(st.get('total_available_mw'))}/{fmt_num(st.get('total_derated_capacity_mw'))}MW"
            )
    else:
        lines.append(f"Stations: {NO_DATA}")
    if raw.gpl.kpis:
        lines.append(f"KPIs ({raw.gpl.kpi_month or 'month unknown'}):")
        for name in sorted(raw.gpl.kpis):
            lines.append(f"  {name}: {raw.gpl.kpis[name]:.2f}")
    else:
        lines.append(f"KPIs: {NO_DATA}")
    return lines


def _gwi_detail(raw: RawContextData) -> List[str]:
    r = raw.gwi.report or {}
    fin = r.get("financial_data") or {}
    coll = r.get("collections_data") or {}
    cs = r.get("customer_service_data") or {}
    return [
        "",
        "== GWI DETAIL ==",
        f"Key facts: {gwi_facts(raw)}",
        f"Financial: Profit {fmt_money(fin.get('net_profit'))}, Revenue {fmt_money(fin.get('total_revenue'))}, "
        f"OpCost {fmt_money(fin.get('operating_cost'))}, Cash {fmt_money(fin.get('cash_at_bank'))}",
        f"Collections: Total {fmt_money(coll.get('total_collections'))}, On-time {fmt_pct(coll.get('on_time_payment_pct'))}, "
        f"Receivable {fmt_money(coll.get('accounts_receivable'))}",
        f"Service: Complaints {fmt_count(cs.get('total_complaints'))}, Resolved {fmt_count(cs.get('resolved_complaints'))} "
        f"({fmt_pct(cs.get('resolution_rate_pct'))}), Timeline {fmt_pct(cs.get('within_timeline_pct'))}",
    ]


def _cjia_detail(raw: RawContextData) -> List[str]:
    r = raw.cjia or {}
    return [
        "",
        "== CJIA DETAIL ==",
        f"Key facts: {cjia_facts(raw)}",
        f"Passengers: {_kv(r.get('passenger_data'))}",
        f"Operations: {_kv(r.get('operations_data'))}",
        f"Revenue: {_kv(r.get('revenue_data'))}",
    ]


def _gcaa_detail(raw: RawContextData) -> List[str]:
    r = raw.gcaa or {}
    return [
        "",
        "== GCAA DETAIL ==",
        f"Key facts: {gcaa_facts(raw)}",
        f"Compliance: {_kv(r.get('compliance_data'))}",
        f"Inspections: {_kv(r.get('inspection_data'))}",
        f"Incidents: {_kv(r.get('incident_data'))}",
    ]


_AGENCY_DETAIL = {
    "gpl": _gpl_detail,
    "gwi": _gwi_detail,
    "cjia": _cjia_detail,
    "gcaa": _gcaa_detail,
}


def assemble_focused(raw: RawContextData, current_page: str) -> str:
    lines = [_as_of_line(raw, "=== DATA AS OF") + " ==="]
    gaps = _gaps_line(raw)
    if gaps:
        lines.append(gaps)

    lines.extend(["", "== HEALTH =="])
    lines.extend(_health_line(raw, agency) for agency in AGENCIES)

    focus = detect_focus_agency(current_page)
    for agency in AGENCIES:
        if agency == focus:
            lines.extend(_AGENCY_DETAIL[agency](raw))
        else:
            lines.extend(["", f"{agency.upper()}: {_AGENCY_FACTS[agency](raw)}"])

    lines.extend(["", "== PROJECTS ==", project_facts(raw)])
    if raw.delayed and (current_page.startswith("/projects") or focus is None):
        for i, d in enumerate(raw.delayed[:TOP_N], 1):
            lines.append(_delayed_line(i, d))

    lines.extend(["", f"== TASKS: {task_facts(raw)} =="])
    if current_page in _TASK_PAGES:
        for i, t in enumerate(raw.overdue_tasks()[:TOP_N], 1):
            lines.append(_task_line(i, t, raw.today))

    lines.extend(["", f"== CALENDAR: {calendar_facts(raw)} =="])
    for ev in (raw.today_events or [])[:TOP_N]:
        lines.append(_event_line(ev))

    lines.extend(["", f"CONTEXT: {current_page}: {describe_page(current_page)}"])
    return "\n".join(lines)


# ── Level 3: full ────────────────────────────────────────────────────────────

def _full_gwi(raw: RawContextData) -> List[str]:
    r = raw.gwi.report
    if r is None:
        return ["", f"== GWI: {NO_DATA} =="]

    fin = r.get("financial_data") or {}
    coll = r.get("collections_data") or {}
    cs = r.get("customer_service_data") or {}
    proc = r.get("procurement_data") or {}
    lines = [
        "",
        f"== GWI: LATEST REPORT ({r.get('report_month') or 'month unknown'}) ==",
        f"Key facts: {gwi_facts(raw)}",
        f"Financial: Net Profit {fmt_money(fin.get('net_profit'))} (budget {fmt_money(fin.get('net_profit_budget'))}), "
        f"Total Revenue {fmt_money(fin.get('total_revenue'))} (budget {fmt_money(fin.get('total_revenue_budget'))}), "
        f"Govt Subvention {fmt_money(fin.get('govt_subvention'))}, "
        f"Operating Cost {fmt_money(fin.get('operating_cost'))} (budget {fmt_money(fin.get('operating_cost_budget'))}), "
        f"Cash at Bank {fmt_money(fin.get('cash_at_bank'))}, Net Assets {fmt_money(fin.get('net_assets'))}",
        f"Collections: Total {fmt_money(coll.get('total_collections'))}, YTD {fmt_money(coll.get('ytd_collections'))}, "
        f"Billings {fmt_money(coll.get('total_billings'))}, On-time {fmt_pct(coll.get('on_time_payment_pct'))}, "
        f"Active Accounts {fmt_count(coll.get('active_accounts'))}, Receivable {fmt_money(coll.get('accounts_receivable'))}",
        "  Regional: " + ", ".join(
            f"R{n} {fmt_money(coll.get(f'region_{n}_collections'))}" for n in range(1, 6)
        ),
        f"  Arrears: 30-day {fmt_money(coll.get('arrears_30_days'))}, 60-day {fmt_money(coll.get('arrears_60_days'))}, "
        f"90+ {fmt_money(coll.get('arrears_90_plus_days'))}",
        f"Customer Service: Complaints {fmt_count(cs.get('total_complaints'))}, Resolved {fmt_count(cs.get('resolved_complaints'))} "
        f"({fmt_pct(cs.get('resolution_rate_pct'))}), Within timeline {fmt_pct(cs.get('within_timeline_pct'))}, "
        f"Unresolved {fmt_count(cs.get('unresolved_complaints'))}, Disconnections {fmt_count(cs.get('disconnections'))}, "
        f"Reconnections {fmt_count(cs.get('reconnections'))}",
        f"Procurement: Total {fmt_money(proc.get('total_purchases'))}, GOG {fmt_money(proc.get('gog_funded'))} "
        f"({fmt_pct(proc.get('gog_funded_pct'))}), GWI {fmt_money(proc.get('gwi_funded'))} ({fmt_pct(proc.get('gwi_funded_pct'))}), "
        f"Major contracts {fmt_count(proc.get('major_contracts_count'))} @ {fmt_money(proc.get('major_contracts_value'))}, "
        f"Minor {fmt_count(proc.get('minor_contracts_count'))} @ {fmt_money(proc.get('minor_contracts_value'))}, "
        f"Inventory {fmt_money(proc.get('inventory_value'))}",
    ]
    summary = _get(raw.gwi.insights, "insight_json", "executive_summary")
    lines.append(f"GWI AI ANALYSIS: {summary or NO_DATA}")

    complaints = raw.gwi.complaints
    if complaints is None:
        lines.append(f"GWI Weekly Complaints: {NO_DATA}")
    else:
        cd = complaints.get("complaints_data") or {}
        lines.append(
            f"GWI Weekly Complaints ({complaints.get('report_week') or 'week unknown'}): "
            f"Total {fmt_count(cd.get('total_complaints'))}, New {fmt_count(cd.get('new_complaints'))}, "
            f"Resolved {fmt_count(cd.get('resolved'))}"
        )
    return lines


def _full_gpl(raw: RawContextData) -> List[str]:
    s = raw.gpl.summary
    if s is None:
        return ["", f"== GPL: {NO_DATA} =="]

    lines = [
        "",
        f"== GPL: LATEST DATA ({raw.gpl.report_date or 'date unknown'}) ==",
        f"Key facts: {gpl_facts(raw)}",
        f"System: Fossil Capacity {fmt_num(s.get('total_fossil_capacity_mw'))}MW, "
        f"Peak Demand {fmt_num(s.get('expected_peak_demand_mw'))}MW, Reserve {fmt_num(s.get('reserve_capacity_mw'))}MW",
        f"Evening Peak: On-bars {fmt_num(s.get('evening_peak_on_bars_mw'))}MW, "
        f"Suppressed {fmt_num(s.get('evening_peak_suppressed_mw'))}MW",
        f"Renewables: Hampshire {fmt_num(s.get('solar_hampshire_mwp'))}MWp, Prospect {fmt_num(s.get('solar_prospect_mwp'))}MWp, "
        f"Trafalgar {fmt_num(s.get('solar_trafalgar_mwp'))}MWp, Total {fmt_num(s.get('total_renewable_mwp'))}MWp",
    ]
    if raw.gpl.stations:
        lines.append("Stations:")
        for st in raw.gpl.stations:
            lines.append(
                f"  {st.get('station', 'Unknown')}: {fmt_count(st.get('units_online'))}/{fmt_count(st.get('total_units'))} online, "
                f"{fmt_num(st.get('total_available_mw'))}/{fmt_num(st.get('total_derated_capacity_mw'))}MW"
            )
    else:
        lines.append(f"Stations: {NO_DATA}")
    if raw.gpl.kpis:
        lines.append(f"Monthly KPIs ({raw.gpl.kpi_month or 'month unknown'}):")
        for name in sorted(raw.gpl.kpis):
            lines.append(f"  {name}: {raw.gpl.kpis[name]:.2f}")
    else:
        lines.append(f"Monthly KPIs: {NO_DATA}")
    return lines


def _full_monthly(raw_report: Optional[Dict[str, Any]], agency: str, facts: str, sections: List[tuple]) -> List[str]:
    if raw_report is None:
        return ["", f"== {agency}: {NO_DATA} =="]
    lines = [
        "",
        f"== {agency}: LATEST REPORT ({raw_report.get('report_month') or 'month unknown'}) ==",
        f"Key facts: {facts}",
    ]
    for label, key in sections:
        lines.append(f"{label}: {_kv(raw_report.get(key))}")
    return lines


def _full_projects(raw: RawContextData) -> List[str]:
    p = raw.portfolio
    if p is None:
        lines = ["", f"== PROJECTS: {NO_DATA} =="]
    else:
        lines = [
            "",
            "== PROJECTS OVERVIEW ==",
            f"Key facts: {project_facts(raw)}",
            f"Total: {fmt_count(p.total_projects)} projects, {fmt_money(p.total_value)} portfolio value",
            (
                f"By Status: {fmt_count(p.in_progress)} In Progress, {fmt_count(p.delayed)} Delayed, "
                f"{fmt_count(p.complete)} Complete, {fmt_count(p.not_started)} Not Started"
            ),
        ]
        if p.agencies:
            lines.append("By Agency: " + ", ".join(
                f"{a.get('agency', 'Unknown')} {fmt_count(a.get('total'))} ({fmt_money(a.get('total_value'))}, "
                f"{fmt_count(a.get('delayed'))} delayed)"
                for a in p.agencies
            ))
        else:
            lines.append(f"By Agency: {NO_DATA}")
    if raw.delayed:
        lines.extend(["", "DELAYED PROJECTS (most overdue first):"])
        for i, d in enumerate(raw.delayed, 1):
            lines.append(_delayed_line(i, d, detailed=True))
    return lines


def _full_tasks(raw: RawContextData) -> List[str]:
    lines = ["", "== TASKS =="]
    if raw.tasks is None:
        lines.append(f"Tasks: {NO_DATA}")
        return lines

    active = raw.active_tasks()
    overdue = raw.overdue_tasks()
    due_today = raw.tasks_due_today()
    week_end = raw.today + timedelta(days=7)
    due_week = [t for t in active if t.due_date is not None and raw.today < t.due_date <= week_end]

    lines.append(f"Key facts: {task_facts(raw)}, {len(due_week)} due this week")

    by_agency: "OrderedDict[str, List[int]]" = OrderedDict()
    for t in active:
        counts = by_agency.setdefault(t.agency or "General", [0, 0])
        counts[0] += 1
        if t in overdue:
            counts[1] += 1
    if by_agency:
        lines.append("By Agency: " + ", ".join(
            f"{agency} {total}" + (f" ({late} overdue)" if late else "")
            for agency, (total, late) in by_agency.items()
        ))

    for title, items in (("OVERDUE TASKS", overdue), ("DUE TODAY", due_today), ("DUE THIS WEEK", due_week)):
        if items:
            lines.extend(["", f"{title}:"])
            lines.extend(_task_line(i, t, raw.today) for i, t in enumerate(items, 1))
    return lines


def _full_calendar(raw: RawContextData) -> List[str]:
    lines = ["", "== CALENDAR =="]
    today = f"{raw.as_of:%A, %B} {raw.as_of.day}, {raw.as_of.year}"
    if raw.today_events is None:
        lines.append(f"Today ({today}): {NO_DATA}")
    elif not raw.today_events:
        lines.append(f"Today ({today}): No events")
    else:
        lines.append(f"Today ({today}): {calendar_facts(raw)}")
        lines.extend(_event_line(ev, with_end=True) for ev in raw.today_events)

    if raw.week_events is None:
        lines.append(f"This Week: {NO_DATA}")
    elif raw.week_events:
        by_day: "OrderedDict[str, List[str]]" = OrderedDict()
        for ev in raw.week_events:
            if ev.start_time is None:
                continue
            key = f"{ev.start_time:%A, %b} {ev.start_time.day}"
            by_day.setdefault(key, []).append(ev.title)
        lines.append("This Week:")
        for day, titles in by_day.items():
            lines.append(f"- {day}: {len(titles)} events: {', '.join(titles)}")
    return lines


def format_full_context(raw: RawContextData, current_page: str) -> str:
    lines = [_as_of_line(raw, "=== SYSTEM DATA AS OF") + " ==="]
    if raw.gaps:
        lines.extend(["", f"DATA GAPS: {'; '.join(raw.gaps)}"])

    lines.extend(["", "== AGENCY HEALTH SCORES =="])
    lines.extend(_health_line(raw, agency) for agency in AGENCIES)

    lines.extend(_full_gwi(raw))
    lines.extend(_full_gpl(raw))
    lines.extend(_full_monthly(raw.cjia, "CJIA", cjia_facts(raw), [
        ("Passengers", "passenger_data"),
        ("Operations", "operations_data"),
        ("Revenue", "revenue_data"),
    ]))
    lines.extend(_full_monthly(raw.gcaa, "GCAA", gcaa_facts(raw), [
        ("Compliance", "compliance_data"),
        ("Inspections", "inspection_data"),
        ("Incidents", "incident_data"),
    ]))
    lines.extend(_full_projects(raw))
    lines.extend(_full_tasks(raw))
    lines.extend(_full_calendar(raw))

    lines.extend(["", "== CURRENT CONTEXT ==", f"User is on: {current_page}: {describe_page(current_page)}"])
    return "\n".join(lines)


# ── Entry point ──────────────────────────────────────────────────────────────

def assemble_context(raw: RawContextData, current_page: str, level: ContextLevel) -> str:
    """Render ``raw`` at the requested level.

    Args:
        raw: Raw context bundle
        current_page: Route the user is viewing
        level: Payload size

    Returns:
        Context string for the model prompt
    """
    if level == ContextLevel.MINIMAL:
        return assemble_minimal(raw)
    if level == ContextLevel.FOCUSED:
        return assemble_focused(raw, current_page)
    return format_full_context(raw, current_page)
