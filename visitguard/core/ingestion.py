# ==============================================================================
# Visit Ingestion Pipeline
# ==============================================================================
"""
End-to-end processing of one visit posted by the tracking snippet.

    payload ─► validate ─► enrich ─► score ─► visit log ─► session tracker
            ─► visitor aggregator ─► alert manager

Enrichment is the only blocking external call and happens before any
per-key section is entered. When the provider is not configured or the
lookup fails, the visit continues with no server signals and the scorer's
fallback applies.

Reprocessing the same payload is safe:
- the visit id is derived from the payload, so the visit log and alert store
  ignore the second copy
- session and profile merges are idempotent or monotonic
"""

import logging
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

from pydantic import ValidationError as PydanticValidationError

from visitguard.base.signals import SignalProvider
from visitguard.base.stores import VisitStore
from visitguard.core.alert_manager import AlertManager
from visitguard.core.errors import (
    EnrichmentUnavailable,
    StorageError,
    VisitGuardError,
    VisitValidationError,
)
from visitguard.core.models import (
    Alert,
    SignalBundle,
    VisitEvent,
    VisitorProfile,
    VisitPayload,
    utc_now,
)
from visitguard.core.risk_scoring import RiskScorer
from visitguard.core.session_tracker import SessionOutcome, SessionTracker
from visitguard.core.visitor_aggregator import VisitorAggregator

logger = logging.getLogger(__name__)

DEFAULT_PATH = "/"


@dataclass(frozen=True)
class IngestOutcome:
    """Everything produced by processing one visit."""

    visit: VisitEvent
    session: SessionOutcome
    profile: VisitorProfile
    alert: Alert | None
    duplicate: bool = False


@dataclass(frozen=True)
class IngestResult:
    """
    Success/failure answer returned to the tracking snippet.

    ``retryable`` is True for storage failures, which the caller may resend.
    """

    success: bool
    visit_id: str | None = None
    is_new_session: bool | None = None
    alert_id: str | None = None
    error: str | None = None
    retryable: bool = False

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "visit_id": self.visit_id,
            "is_new_session": self.is_new_session,
            "alert_id": self.alert_id,
            "error": self.error,
            "retryable": self.retryable,
        }


def parse_payload(data: dict | VisitPayload) -> VisitPayload:
    """
    Validate a raw payload.

    Raises:
        VisitValidationError: If the payload is malformed or a required
            identifier (store id, visitor id, session key) is missing
    """
    if isinstance(data, VisitPayload):
        payload = data
    else:
        if not isinstance(data, dict):
            raise VisitValidationError("Payload must be a JSON object")
        try:
            payload = VisitPayload.model_validate(data)
        except PydanticValidationError as e:
            fields = [".".join(str(p) for p in err["loc"]) for err in e.errors()]
            raise VisitValidationError(f"Invalid payload: {', '.join(fields)}", fields) from e

    missing = payload.missing_fields()
    if missing:
        raise VisitValidationError(f"Missing required fields: {', '.join(missing)}", missing)
    return payload


class IngestionPipeline:
    """Wires the engine components into the ingest path."""

    def __init__(
        self,
        provider: SignalProvider,
        scorer: RiskScorer,
        visits: VisitStore,
        sessions: SessionTracker,
        visitors: VisitorAggregator,
        alerts: AlertManager,
    ):
        self._provider = provider
        self._scorer = scorer
        self._visits = visits
        self._sessions = sessions
        self._visitors = visitors
        self._alerts = alerts

    def enrich(self, request_id: str) -> SignalBundle | None:
        """Fetch server signals, degrading to None when unavailable."""
        try:
            return self._provider.fetch(request_id)
        except EnrichmentUnavailable as e:
            logger.warning("Signal enrichment unavailable for request %s: %s", request_id, e)
            return None

    def process(self, data: dict | VisitPayload) -> IngestOutcome:
        """
        Run one visit through the whole pipeline.

        Raises:
            VisitValidationError: Payload rejected, no state mutated
            StorageError: State backend failed; the payload may be resent
        """
        payload = parse_payload(data)
        store_id = payload.store_id
        visitor_id = payload.visitor_id
        session_key = payload.session_key
        path = payload.path or DEFAULT_PATH
        timestamp = payload.timestamp or utc_now()

        server_signals = self.enrich(session_key)
        analysis = self._scorer.analyze(server_signals, payload.client_signals)

        visit = VisitEvent(
            visit_id=VisitEvent.make_id(store_id, visitor_id, session_key, path, timestamp),
            store_id=store_id,
            visitor_id=visitor_id,
            session_key=session_key,
            path=path,
            timestamp=timestamp,
            client_signals=payload.client_signals,
            server_signals=server_signals,
            risk_analysis=analysis,
        )
        logger.debug(
            "Visit %s visitor=%s store=%s path=%s score=%d",
            visit.visit_id,
            visitor_id,
            store_id,
            path,
            analysis.score,
        )

        stored = self._visits.append(visit)
        session = self._sessions.record_session(session_key, store_id, visitor_id, path, visit.timestamp)
        profile = self._visitors.apply_visit(store_id, visitor_id, visit, session.is_new_session)
        alert = self._alerts.maybe_alert(visit)

        return IngestOutcome(
            visit=visit,
            session=session,
            profile=profile,
            alert=alert,
            duplicate=not stored,
        )

    def ingest(self, data: dict | VisitPayload) -> IngestResult:
        """
        Ingestion boundary: process a visit and answer success or failure.

        Validation problems and storage failures become failed results; they
        never raise to the caller.
        """
        try:
            outcome = self.process(data)
        except VisitValidationError as e:
            logger.info("Rejected visit: %s", e)
            return IngestResult(success=False, error=str(e))
        except StorageError as e:
            logger.error("Storage failure while ingesting visit: %s", e)
            return IngestResult(success=False, error=str(e), retryable=True)
        except VisitGuardError as e:
            logger.error("Visit ingestion failed: %s", e)
            return IngestResult(success=False, error=str(e))

        return IngestResult(
            success=True,
            visit_id=outcome.visit.visit_id,
            is_new_session=outcome.session.is_new_session,
            alert_id=outcome.alert.alert_id if outcome.alert else None,
        )

    def ingest_many(self, payloads: Iterable[dict], workers: int = 4) -> list[IngestResult]:
        """
        Ingest many visits concurrently.

        Results are returned in input order. Visits for different visitors
        run fully in parallel; visits sharing a key serialize in the stores.
        """
        if workers < 1:
            raise ValueError(f"workers must be positive, got {workers}")
        items = list(payloads)
        if workers == 1:
            return [self.ingest(p) for p in items]
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="ingest") as pool:
            return list(pool.map(self.ingest, items))
