# ==============================================================================
# Core Domain Logic
# ==============================================================================
"""
Pure domain logic with no external service dependencies.

This module contains:
- Domain models (VisitEvent, Session, VisitorProfile, Alert)
- Risk scoring
- Session tracking, visitor aggregation and alert triage
- The ingest pipeline and dashboard queries

All code here talks to storage through the base/ interfaces and is easily
unit-testable with the in-memory stores. Only the models are re-exported
here; base/ imports them, so the services that import base/ are reached
through their own modules (e.g. visitguard.core.ingestion).
"""

from visitguard.core.models import (
    Alert,
    AlertStatus,
    RiskAnalysis,
    RiskLevel,
    Session,
    SignalBundle,
    VisitEvent,
    VisitorProfile,
)

__all__ = [
    "Alert",
    "AlertStatus",
    "RiskAnalysis",
    "RiskLevel",
    "Session",
    "SignalBundle",
    "VisitEvent",
    "VisitorProfile",
]
