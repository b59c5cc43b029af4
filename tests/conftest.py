"""
Shared fixtures for tiered answers tests.
"""

import os
import tempfile
from datetime import datetime

import pytest

from tiered_answers.core.raw_context import raw_context_from_dict
from tiered_answers.storage.repository import initialize_schema

AS_OF = datetime(2026, 3, 10, 9, 30, 0)


def sample_context_data() -> dict:
    """A complete raw context export for 2026-03-10."""
    return {
        "as_of": AS_OF.isoformat(),
        "gpl": {
            "summary": {
                "total_fossil_capacity_mw": 250.0,
                "expected_peak_demand_mw": 200.0,
                "reserve_capacity_mw": 50.0,
                "evening_peak_on_bars_mw": 190.0,
                "evening_peak_suppressed_mw": 0.0,
                "solar_hampshire_mwp": 3.0,
                "solar_prospect_mwp": 1.5,
                "solar_trafalgar_mwp": 0.5,
                "total_renewable_mwp": 5.0,
            },
            "stations": [
                {"station": "Garden of Eden", "units_online": 10, "total_units": 12,
                 "total_available_mw": 80.0, "total_derated_capacity_mw": 95.0},
                {"station": "Kingston", "units_online": 20, "total_units": 28,
                 "total_available_mw": 150.0, "total_derated_capacity_mw": 170.0},
            ],
            "report_date": "2026-03-09",
            "kpis": {"Collection Rate %": 96.0},
            "kpi_month": "2026-02",
        },
        "gwi": {
            "report": {
                "report_month": "2026-02",
                "financial_data": {"net_profit": 120e6, "net_profit_budget": 100e6, "total_revenue": 900e6},
                "collections_data": {"total_collections": 800e6, "total_billings": 850e6, "active_accounts": 190000},
                "customer_service_data": {"resolution_rate_pct": 92.0, "within_timeline_pct": 85.0},
            },
        },
        "cjia": {
            "report_month": "2026-02",
            "passenger_data": {"total_passengers": 45000},
            "operations_data": {"on_time_performance_pct": 88.0},
        },
        "gcaa": {
            "report_month": "2026-02",
            "compliance_data": {"compliance_rate_pct": 94.0},
            "inspection_data": {"total_inspections": 12},
            "incident_data": {"total_incidents": 0},
        },
        "portfolio": {
            "total_projects": 40,
            "total_value": 2.5e9,
            "in_progress": 20,
            "delayed": 6,
            "complete": 10,
            "not_started": 4,
            "agencies": [{"agency": "GPL", "total": 10, "total_value": 1e9, "delayed": 2}],
        },
        "delayed": [
            {"project_name": f"Project {i}", "sub_agency": "GPL", "days_overdue": 100 - i,
             "contract_value": 5e6, "completion_pct": 40.0}
            for i in range(1, 8)
        ],
        "tasks": [
            {"title": "Approve budget", "status": "In Progress", "due_date": "2026-03-05", "agency": "GPL"},
            {"title": "Review report", "status": "To Do", "due_date": "2026-03-10"},
            {"title": "Closed item", "status": "Done", "due_date": "2026-03-01"},
            {"title": "Plan site visit", "status": "To Do", "due_date": "2026-03-14", "agency": "GWI"},
        ],
        "today_events": [
            {"title": "Board meeting", "start_time": "2026-03-10T10:00:00",
             "end_time": "2026-03-10T11:00:00", "location": "Ministry"},
        ],
        "week_events": [
            {"title": "Board meeting", "start_time": "2026-03-10T10:00:00"},
            {"title": "Site visit", "start_time": "2026-03-12T14:00:00"},
        ],
    }


@pytest.fixture
def context_data():
    return sample_context_data()


@pytest.fixture
def raw(context_data):
    return raw_context_from_dict(context_data)


@pytest.fixture
def db_path():
    """Path to a freshly initialized SQLite database."""
    with tempfile.TemporaryDirectory() as temp_dir:
        path = os.path.join(temp_dir, "test.db")
        initialize_schema(path)
        yield path
