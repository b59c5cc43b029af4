"""
Agency health scoring.

Each score starts from a baseline of 5, is nudged up or down by a handful of
operational thresholds, and is clamped to 0-10.
"""

from typing import Any, Dict, List, Optional

from .raw_context import AgencyHealth, RawContextData, no_data_health


def health_label(score: float) -> str:
    if score >= 8:
        return "Strong"
    if score >= 6:
        return "Adequate"
    if score >= 4:
        return "Concerning"
    if score >= 2:
        return "Poor"
    return "Critical"


def _num(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _result(score: float, parts: List[str], fallback: str = "") -> AgencyHealth:
    clamped = max(0, min(10, score))
    return AgencyHealth(
        score=clamped,
        label=health_label(clamped),
        breakdown=", ".join(parts) if parts else fallback,
    )


def compute_gpl_health(
    summary: Optional[Dict[str, Any]],
    stations: List[Dict[str, Any]],
    kpis: Dict[str, float],
) -> AgencyHealth:
    if not summary:
        return no_data_health("gpl")

    score = 5
    parts = []

    # Reserve margin: 15%+ is healthy
    reserve_mw = _num(summary.get("reserve_capacity_mw"))
    peak_mw = _num(summary.get("expected_peak_demand_mw")) or 1.0
    reserve_pct = reserve_mw / peak_mw * 100
    if reserve_pct >= 20:
        score += 2
    elif reserve_pct >= 10:
        score += 1
    elif reserve_pct < 5:
        score -= 2
    else:
        score -= 1
    parts.append(f"Reserve Margin {reserve_pct:.1f}%")

    total_units = sum(int(_num(st.get("total_units"))) for st in stations)
    online_units = sum(int(_num(st.get("units_online"))) for st in stations)
    avail_pct = online_units / total_units * 100 if total_units > 0 else 0
    if avail_pct >= 70:
        score += 1
    elif avail_pct < 50:
        score -= 2
    else:
        score -= 1
    parts.append(f"{online_units}/{total_units} units online")

    suppressed = _num(summary.get("evening_peak_suppressed_mw"))
    if suppressed == 0:
        score += 1
    elif suppressed > 20:
        score -= 1
    if suppressed > 0:
        parts.append(f"{suppressed:.1f}MW suppressed")

    collection_rate = kpis.get("Collection Rate %")
    if collection_rate is not None:
        if collection_rate >= 95:
            score += 1
        elif collection_rate < 85:
            score -= 1
        parts.append(f"Collection {collection_rate:.1f}%")

    return _result(score, parts)


def compute_gwi_health(report: Optional[Dict[str, Any]]) -> AgencyHealth:
    if not report:
        return no_data_health("gwi")

    score = 5
    parts = []
    cs = report.get("customer_service_data") or {}
    coll = report.get("collections_data") or {}
    fin = report.get("financial_data") or {}

    resolution = _num(cs.get("resolution_rate_pct"))
    if resolution >= 90:
        score += 2
    elif resolution >= 75:
        score += 1
    elif resolution < 60:
        score -= 2
    else:
        score -= 1
    parts.append(f"Resolution {resolution:g}%")

    timeline = _num(cs.get("within_timeline_pct"))
    if timeline >= 80:
        score += 1
    elif timeline < 50:
        score -= 1
    parts.append(f"Within Timeline {timeline:g}%")

    collections = _num(coll.get("total_collections"))
    billings = _num(coll.get("total_billings")) or 1.0
    ratio = collections / billings * 100
    if ratio >= 100:
        score += 1
    elif ratio < 80:
        score -= 1
    parts.append(f"Collections ${collections / 1e6:.0f}M")

    profit = _num(fin.get("net_profit"))
    profit_budget = _num(fin.get("net_profit_budget")) or 1.0
    if profit >= profit_budget:
        score += 1
    elif profit < 0:
        score -= 2

    return _result(score, parts)


def compute_cjia_health(report: Optional[Dict[str, Any]]) -> AgencyHealth:
    if not report:
        return no_data_health("cjia")

    score = 5
    parts = []
    ops = report.get("operations_data") or {}
    pax = report.get("passenger_data") or {}

    total_pax = _num(pax.get("total_passengers")) or _num(pax.get("departures"))
    if total_pax > 0:
        parts.append(f"{total_pax / 1000:.1f}K passengers")

    on_time = _num(ops.get("on_time_performance_pct"))
    if on_time > 0:
        if on_time >= 85:
            score += 2
        elif on_time >= 70:
            score += 1
        else:
            score -= 1
        parts.append(f"On-time {on_time:g}%")

    return _result(score, parts, "Limited data available")


def compute_gcaa_health(report: Optional[Dict[str, Any]]) -> AgencyHealth:
    if not report:
        return no_data_health("gcaa")

    score = 5
    parts = []
    compliance = report.get("compliance_data") or {}
    inspections = report.get("inspection_data") or {}

    rate = _num(compliance.get("compliance_rate_pct"))
    if rate > 0:
        if rate >= 90:
            score += 2
        elif rate >= 75:
            score += 1
        else:
            score -= 1
        parts.append(f"Compliance {rate:g}%")

    total = int(_num(inspections.get("total_inspections")))
    if total > 0:
        parts.append(f"{total} inspections")

    incidents = int(_num((report.get("incident_data") or {}).get("total_incidents")))
    if incidents == 0:
        score += 1
    elif incidents > 5:
        score -= 1
    if incidents > 0:
        parts.append(f"{incidents} incidents")

    return _result(score, parts, "Limited data available")


def compute_health(raw: RawContextData) -> Dict[str, AgencyHealth]:
    """Score every agency from the data in ``raw``."""
    return {
        "gpl": compute_gpl_health(raw.gpl.summary, raw.gpl.stations, raw.gpl.kpis),
        "gwi": compute_gwi_health(raw.gwi.report),
        "cjia": compute_cjia_health(raw.cjia),
        "gcaa": compute_gcaa_health(raw.gcaa),
    }
