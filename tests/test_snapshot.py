"""
Tests for the daily metric snapshot.
"""

from datetime import date, datetime
from unittest.mock import Mock, patch

import pytest

from tiered_answers.core.errors import UpstreamDataUnavailable
from tiered_answers.core.raw_context import raw_context_from_dict
from tiered_answers.core.snapshot import (
    SnapshotService,
    build_snapshot,
    snapshot_from_dict,
    snapshot_to_dict,
)

NOW = datetime(2026, 3, 10, 6, 0, 0)
DAY = date(2026, 3, 10)


class TestBuildSnapshot:
    """Test the pure raw-to-snapshot reduction."""

    def test_flattens_metrics(self, raw):
        snap = build_snapshot(raw)

        assert snap.timestamp == raw.as_of
        assert snap.gpl.reserve_mw == 50.0
        assert snap.gpl.units_online == 30
        assert snap.gpl.units_total == 40
        assert snap.gpl.suppressed_mw == 0.0
        assert snap.gwi.resolution_rate_pct == 92.0
        assert snap.cjia.total_passengers == 45000
        assert snap.gcaa.incidents == 0
        assert snap.projects.delayed == 6
        assert snap.tasks.overdue == 1
        assert snap.tasks.due_today == 1

    def test_equal_inputs_give_equal_snapshots(self, context_data):
        first = build_snapshot(raw_context_from_dict(context_data))
        second = build_snapshot(raw_context_from_dict(context_data))

        assert first == second

    def test_empty_input_degrades_to_none(self):
        snap = build_snapshot(raw_context_from_dict({}, as_of=NOW))

        assert snap.gpl.reserve_mw is None
        assert snap.gpl.units_online is None
        assert snap.cjia.on_time_pct is None
        assert snap.projects.total is None
        assert snap.tasks.active is None
        assert snap.gpl.health.label == "No Data"

    def test_dict_round_trip(self, raw):
        snap = build_snapshot(raw)
        assert snapshot_from_dict(snapshot_to_dict(snap)) == snap


class TestSnapshotService:
    """Test lazy and scheduled snapshot builds."""

    def test_get_or_build_builds_once(self, db_path, raw):
        provider = Mock(return_value=raw)
        service = SnapshotService(provider, db_path, clock=lambda: NOW)

        first = service.get_or_build(DAY)
        second = service.get_or_build(DAY)

        assert first == second
        provider.assert_called_once()

    def test_prewarm_overwrites_same_day(self, db_path, context_data):
        service = SnapshotService(Mock(return_value=raw_context_from_dict(context_data)), db_path, clock=lambda: NOW)
        service.prewarm(DAY)

        context_data["gpl"]["summary"]["reserve_capacity_mw"] = 12.0
        service.provider = Mock(return_value=raw_context_from_dict(context_data))
        service.prewarm(DAY)

        assert service.read(DAY).gpl.reserve_mw == 12.0

    def test_failed_prewarm_leaves_lazy_path_available(self, db_path, raw):
        service = SnapshotService(Mock(side_effect=UpstreamDataUnavailable("context")), db_path, clock=lambda: NOW)
        with pytest.raises(UpstreamDataUnavailable):
            service.prewarm(DAY)

        service.provider = Mock(return_value=raw)
        assert service.get_or_build(DAY).gpl.reserve_mw == 50.0

    def test_store_outage_still_returns_snapshot(self, db_path, raw):
        service = SnapshotService(Mock(return_value=raw), db_path, clock=lambda: NOW)
        with patch("tiered_answers.core.snapshot.fetch_snapshot", side_effect=Exception("locked")), \
                patch("tiered_answers.core.snapshot.upsert_snapshot", side_effect=Exception("locked")):
            snap = service.get_or_build(DAY)

        assert snap.gpl.reserve_mw == 50.0

    def test_defaults_to_clock_day(self, db_path, raw):
        service = SnapshotService(Mock(return_value=raw), db_path, clock=lambda: NOW)
        service.prewarm()

        assert service.read(DAY) is not None
