# ==============================================================================
# Alert Manager
# ==============================================================================
"""
Raises alerts for risky visits and handles operator triage.

Every visit scoring at or above ALERT_THRESHOLD produces its own alert; there
is no suppression of repeat alerts for the same visitor. The alert id is
derived from the visit id, so reprocessing the same visit is a no-op.

Triage state machine (operator actions only, nothing automatic):

    new ──► reviewed ──► dismissed
     └───────────────────────▲

Nothing leaves ``dismissed``. Re-applying the current status is a no-op.
"""

import logging

from visitguard.base.stores import AlertStore
from visitguard.core.errors import AlertNotFound, InvalidAlertTransition
from visitguard.core.models import Alert, AlertStatus, VisitEvent, utc_now

logger = logging.getLogger(__name__)

ALERT_THRESHOLD = 50

ALLOWED_TRANSITIONS: dict[AlertStatus, frozenset[AlertStatus]] = {
    AlertStatus.NEW: frozenset({AlertStatus.REVIEWED, AlertStatus.DISMISSED}),
    AlertStatus.REVIEWED: frozenset({AlertStatus.DISMISSED}),
    AlertStatus.DISMISSED: frozenset(),
}


def can_transition(current: AlertStatus, requested: AlertStatus) -> bool:
    """Whether an operator may move an alert from ``current`` to ``requested``."""
    return requested == current or requested in ALLOWED_TRANSITIONS[current]


class AlertManager:
    """Creates alerts and applies status transitions in an AlertStore."""

    def __init__(self, store: AlertStore, threshold: int = ALERT_THRESHOLD):
        self._store = store
        self.threshold = threshold

    def should_alert(self, visit: VisitEvent) -> bool:
        return visit.risk_analysis.score >= self.threshold

    def maybe_alert(self, visit: VisitEvent) -> Alert | None:
        """
        Create an alert if the visit crosses the threshold.

        Args:
            visit: Scored visit

        Returns:
            The alert for this visit (newly created or already existing from
            an earlier delivery), or None if the visit is below the threshold
        """
        if not self.should_alert(visit):
            return None

        alert = Alert(
            alert_id=Alert.make_id(visit.visit_id),
            store_id=visit.store_id,
            visitor_id=visit.visitor_id,
            visit_id=visit.visit_id,
            risk_score=visit.risk_analysis.score,
            risk_factors=list(visit.risk_analysis.factors),
            created_at=utc_now(),
        )
        if self._store.add(alert):
            logger.warning(
                "Alert %s created for visitor %s on store %s (risk: %d)",
                alert.alert_id,
                visit.visitor_id,
                visit.store_id,
                alert.risk_score,
            )
            return alert

        logger.debug("Alert %s already exists, skipping", alert.alert_id)
        return self._store.get(alert.alert_id) or alert

    def update_status(self, alert_id: str, status: AlertStatus | str) -> Alert:
        """
        Apply an operator status change.

        Args:
            alert_id: Alert identifier
            status: Requested status

        Returns:
            The updated alert

        Raises:
            ValueError: If status is not a known status value
            AlertNotFound: If the alert does not exist
            InvalidAlertTransition: If the transition is not permitted
        """
        requested = AlertStatus(status)

        def mutate(alert: Alert) -> Alert:
            if not can_transition(alert.status, requested):
                raise InvalidAlertTransition(alert_id, alert.status.value, requested.value)
            if alert.status == requested:
                return alert
            return alert.model_copy(update={"status": requested, "updated_at": utc_now()})

        updated = self._store.update(alert_id, mutate)
        if updated is None:
            raise AlertNotFound(alert_id)
        logger.info("Alert %s status is now %s", alert_id, updated.status.value)
        return updated

    def get_alert(self, alert_id: str) -> Alert:
        alert = self._store.get(alert_id)
        if alert is None:
            raise AlertNotFound(alert_id)
        return alert
