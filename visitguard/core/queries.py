# ==============================================================================
# Query Surface
# ==============================================================================
"""
Read-only projections consumed by the dashboard.

All views are derived from the state owned by the session tracker, visitor
aggregator and alert manager. Nothing here mutates state; each call reads a
snapshot of whatever has been committed.
"""

from datetime import datetime, timezone

from pydantic import BaseModel, Field

from visitguard.base.stores import StateStores
from visitguard.core.errors import VisitorNotFound
from visitguard.core.models import (
    Alert,
    AlertStatus,
    RiskLevel,
    VisitEvent,
    VisitorProfile,
    utc_now,
)

TOP_N = 5
DEFAULT_PAGE_SIZE = 50
DEFAULT_VISITOR_VISITS = 50
DEFAULT_ACTIVITY_LIMIT = 20

# Lowest score shown in the top threats list (the "high" tier)
TOP_THREAT_MIN_SCORE = 40


class DashboardSummary(BaseModel):
    """Headline numbers and short lists for one store."""

    store_id: str
    total_visitors: int = 0
    visits_today: int = 0
    critical_threats: int = 0
    high_risk_visitors: int = 0
    new_alerts: int = 0
    top_threats: list[VisitorProfile] = Field(default_factory=list)
    recent_visitors: list[VisitorProfile] = Field(default_factory=list)


class VisitorDetail(BaseModel):
    """A visitor profile together with its recent visits (newest first)."""

    profile: VisitorProfile
    visits: list[VisitEvent] = Field(default_factory=list)


def _by_risk(profile: VisitorProfile) -> tuple:
    return (-profile.highest_risk_score, -profile.last_seen.timestamp(), profile.visitor_id)


def _by_recency(profile: VisitorProfile) -> tuple:
    return (-profile.last_seen.timestamp(), profile.visitor_id)


class QueryService:
    """Dashboard queries over a set of state stores."""

    def __init__(self, stores: StateStores):
        self._stores = stores

    def dashboard_summary(self, store_id: str, now: datetime | None = None) -> DashboardSummary:
        """
        Build the dashboard summary for a store.

        "Visits today" counts retained visits since midnight UTC of ``now``.
        """
        now = now or utc_now()
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        start_of_day = now.astimezone(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)

        visitors = self._stores.visitors.list_for_store(store_id)
        visits = self._stores.visits.recent(store_id)
        alerts = self._stores.alerts.list_for_store(store_id)

        threats = [p for p in visitors if p.highest_risk_score >= TOP_THREAT_MIN_SCORE]

        return DashboardSummary(
            store_id=store_id,
            total_visitors=len(visitors),
            visits_today=sum(1 for v in visits if v.timestamp >= start_of_day),
            critical_threats=sum(1 for p in visitors if p.risk_level == RiskLevel.CRITICAL),
            high_risk_visitors=sum(1 for p in visitors if p.risk_level == RiskLevel.HIGH),
            new_alerts=sum(1 for a in alerts if a.status == AlertStatus.NEW),
            top_threats=sorted(threats, key=_by_risk)[:TOP_N],
            recent_visitors=sorted(visitors, key=_by_recency)[:TOP_N],
        )

    def list_visitors(
        self, store_id: str, limit: int = DEFAULT_PAGE_SIZE, offset: int = 0
    ) -> list[VisitorProfile]:
        """One page of a store's visitors, highest risk first."""
        if limit < 1:
            raise ValueError(f"limit must be positive, got {limit}")
        if offset < 0:
            raise ValueError(f"offset must not be negative, got {offset}")
        visitors = sorted(self._stores.visitors.list_for_store(store_id), key=_by_risk)
        return visitors[offset : offset + limit]

    def visitor_detail(
        self, store_id: str, visitor_id: str, visit_limit: int = DEFAULT_VISITOR_VISITS
    ) -> VisitorDetail:
        """
        Get a visitor's profile and recent visits.

        Raises:
            VisitorNotFound: If the store has no profile for the visitor
        """
        profile = self._stores.visitors.get(store_id, visitor_id)
        if profile is None:
            raise VisitorNotFound(store_id, visitor_id)
        visits = [v for v in self._stores.visits.recent(store_id) if v.visitor_id == visitor_id]
        return VisitorDetail(profile=profile, visits=visits[:visit_limit])

    def list_alerts(self, store_id: str, status: AlertStatus | str | None = None) -> list[Alert]:
        """A store's alerts, newest first, optionally filtered by status."""
        alerts = self._stores.alerts.list_for_store(store_id)
        if status is None:
            return alerts
        wanted = AlertStatus(status)
        return [a for a in alerts if a.status == wanted]

    def recent_activity(self, store_id: str, limit: int = DEFAULT_ACTIVITY_LIMIT) -> list[VisitEvent]:
        """Most recent visits for the live feed, newest first."""
        if limit < 1:
            raise ValueError(f"limit must be positive, got {limit}")
        return self._stores.visits.recent(store_id, limit)
