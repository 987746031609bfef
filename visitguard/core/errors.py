# ==============================================================================
# Error Taxonomy
# ==============================================================================
"""
Exceptions raised by the engine.

- VisitValidationError: payload rejected before any state is touched
- EnrichmentUnavailable: no server signals for a visit (recovered locally)
- NotFoundError: query for an unknown visitor or alert
- InvalidAlertTransition: operator asked for a forbidden status change
- StorageError: state backend failed; reprocessing the same visit is safe
"""


class VisitGuardError(Exception):
    """Base class for all engine errors."""


class VisitValidationError(VisitGuardError):
    """Ingestion payload is missing required fields or is malformed."""

    def __init__(self, message: str, fields: list[str] | None = None):
        super().__init__(message)
        self.fields = fields or []


class EnrichmentUnavailable(VisitGuardError):
    """Server-side signals could not be obtained for a request."""


class ProviderNotConfigured(EnrichmentUnavailable):
    """The signal provider has no credentials configured."""


class SignalLookupError(EnrichmentUnavailable):
    """The signal provider lookup failed (HTTP error, timeout, bad response)."""


class NotFoundError(VisitGuardError):
    """Requested record does not exist."""


class VisitorNotFound(NotFoundError):
    def __init__(self, store_id: str, visitor_id: str):
        super().__init__(f"Visitor {visitor_id} not found for store {store_id}")
        self.store_id = store_id
        self.visitor_id = visitor_id


class AlertNotFound(NotFoundError):
    def __init__(self, alert_id: str):
        super().__init__(f"Alert {alert_id} not found")
        self.alert_id = alert_id


class InvalidAlertTransition(VisitGuardError):
    """Alert status change not permitted by the triage state machine."""

    def __init__(self, alert_id: str, current: str, requested: str):
        super().__init__(f"Alert {alert_id} cannot move from '{current}' to '{requested}'")
        self.alert_id = alert_id
        self.current = current
        self.requested = requested


class StorageError(VisitGuardError):
    """Persistence backend failure."""
