# ==============================================================================
# Tests for QueryService
# ==============================================================================
"""
Tests for the dashboard query surface.

Visits are ingested through the real pipeline so the queries see the same
state a live store would.
"""

from datetime import datetime, timedelta, timezone

import pytest

from visitguard.core.errors import VisitorNotFound
from visitguard.core.models import AlertStatus, SignalBundle
from visitguard.core.queries import TOP_N

T0 = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture()
def populated(engine, provider, make_payload):
    """Four visitors with scores 10, 35, 50 and 75, one minute apart."""
    for i, score in enumerate([10, 35, 50, 75]):
        key = f"req-{i}"
        provider.add(key, SignalBundle(suspect_score=score))
        engine.pipeline.ingest(
            make_payload(
                visitor_id=f"visitor-{i}",
                session_key=key,
                path=f"/p{i}",
                timestamp=T0 + timedelta(minutes=i),
            )
        )
    return engine


# ==============================================================================
# dashboard_summary
# ==============================================================================


class TestDashboardSummary:
    def test_counts(self, populated):
        summary = populated.queries.dashboard_summary("shop-1", now=T0 + timedelta(hours=1))
        assert summary.total_visitors == 4
        assert summary.visits_today == 4
        assert summary.critical_threats == 1
        assert summary.high_risk_visitors == 1
        assert summary.new_alerts == 2

    def test_top_threats_ranked_by_score(self, populated):
        summary = populated.queries.dashboard_summary("shop-1", now=T0)
        assert [p.highest_risk_score for p in summary.top_threats] == [75, 50]

    def test_recent_visitors_newest_first(self, populated):
        summary = populated.queries.dashboard_summary("shop-1", now=T0)
        assert [p.visitor_id for p in summary.recent_visitors] == [
            "visitor-3",
            "visitor-2",
            "visitor-1",
            "visitor-0",
        ]

    def test_visits_today_excludes_yesterday(self, populated):
        summary = populated.queries.dashboard_summary("shop-1", now=T0 + timedelta(days=1))
        assert summary.visits_today == 0

    def test_naive_now_treated_as_utc(self, populated):
        summary = populated.queries.dashboard_summary("shop-1", now=datetime(2024, 5, 1, 23, 0))
        assert summary.visits_today == 4

    def test_reviewed_alerts_not_counted_as_new(self, populated):
        alert = populated.queries.list_alerts("shop-1")[0]
        populated.alerts.update_status(alert.alert_id, AlertStatus.REVIEWED)
        summary = populated.queries.dashboard_summary("shop-1", now=T0)
        assert summary.new_alerts == 1

    def test_top_lists_capped(self, engine, provider, make_payload):
        for i in range(TOP_N + 3):
            provider.add(f"r{i}", SignalBundle(suspect_score=90))
            engine.pipeline.ingest(make_payload(visitor_id=f"v{i}", session_key=f"r{i}"))
        summary = engine.queries.dashboard_summary("shop-1", now=T0)
        assert len(summary.top_threats) == TOP_N
        assert len(summary.recent_visitors) == TOP_N

    def test_empty_store(self, engine):
        summary = engine.queries.dashboard_summary("nowhere", now=T0)
        assert summary.total_visitors == 0
        assert summary.top_threats == []


# ==============================================================================
# Visitors
# ==============================================================================


class TestVisitors:
    def test_list_sorted_by_risk(self, populated):
        visitors = populated.queries.list_visitors("shop-1")
        assert [p.highest_risk_score for p in visitors] == [75, 50, 35, 10]

    def test_pagination(self, populated):
        page = populated.queries.list_visitors("shop-1", limit=2, offset=1)
        assert [p.highest_risk_score for p in page] == [50, 35]

    def test_invalid_paging(self, populated):
        with pytest.raises(ValueError):
            populated.queries.list_visitors("shop-1", limit=0)
        with pytest.raises(ValueError):
            populated.queries.list_visitors("shop-1", offset=-1)

    def test_detail(self, populated):
        detail = populated.queries.visitor_detail("shop-1", "visitor-2")
        assert detail.profile.highest_risk_score == 50
        assert [v.path for v in detail.visits] == ["/p2"]

    def test_detail_unknown_visitor(self, populated):
        with pytest.raises(VisitorNotFound):
            populated.queries.visitor_detail("shop-1", "ghost")

    def test_detail_visit_limit(self, engine, make_payload):
        for i in range(5):
            engine.pipeline.ingest(make_payload(path=f"/p{i}", timestamp=T0 + timedelta(seconds=i)))
        detail = engine.queries.visitor_detail("shop-1", "visitor-1", visit_limit=2)
        assert [v.path for v in detail.visits] == ["/p4", "/p3"]


# ==============================================================================
# Alerts and activity
# ==============================================================================


class TestAlertsAndActivity:
    def test_alerts_newest_first(self, populated):
        alerts = populated.queries.list_alerts("shop-1")
        assert [a.risk_score for a in alerts] == [75, 50]

    def test_alerts_status_filter(self, populated):
        newest = populated.queries.list_alerts("shop-1")[0]
        populated.alerts.update_status(newest.alert_id, AlertStatus.DISMISSED)
        assert [a.risk_score for a in populated.queries.list_alerts("shop-1", "new")] == [50]
        dismissed = populated.queries.list_alerts("shop-1", AlertStatus.DISMISSED)
        assert [a.alert_id for a in dismissed] == [newest.alert_id]

    def test_recent_activity(self, populated):
        visits = populated.queries.recent_activity("shop-1", limit=2)
        assert [v.visitor_id for v in visits] == ["visitor-3", "visitor-2"]

    def test_queries_do_not_mutate(self, populated, stores):
        before = stores.visitors.list_for_store("shop-1")
        populated.queries.dashboard_summary("shop-1")
        populated.queries.list_visitors("shop-1")
        populated.queries.recent_activity("shop-1")
        after = stores.visitors.list_for_store("shop-1")
        assert sorted(p.visitor_id for p in before) == sorted(p.visitor_id for p in after)
        assert len(populated.queries.list_alerts("shop-1")) == 2
