# ==============================================================================
# Visit Guard Domain Models
# ==============================================================================
"""
Pydantic models for visits, sessions, visitor profiles and alerts.

These models are used for:
- Validating payloads received from the tracking snippet
- Serializing/deserializing records kept in the state stores
- Type safety throughout the application

This module is part of the core domain layer and has no external dependencies
beyond Pydantic.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

# Namespace for deterministic visit/alert identifiers
VISIT_ID_NAMESPACE = uuid.UUID("5b6f7c1e-2a40-4c55-9d3e-7f0c1b9a8e21")


class RiskLevel(str, Enum):
    """Risk tiers, also used as the severity tag of a risk factor."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class AlertStatus(str, Enum):
    """Triage state of an alert."""

    NEW = "new"
    REVIEWED = "reviewed"
    DISMISSED = "dismissed"


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class ClientSignals(BaseModel):
    """Flags observed by the tracking snippet in the browser."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    dev_tools_open: bool = Field(
        False, alias="devToolsOpen", description="Developer tools were open on the page"
    )


class SignalBundle(BaseModel):
    """
    Risk signals returned by the signal provider for one request.

    Every slot is optional: the provider only fills in the detectors that are
    enabled for the account. Absent slots are ignored by the scorer. Scores
    must be finite numbers.
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    suspect_score: float | None = Field(None, allow_inf_nan=False)
    bot_result: str | None = None
    bot_type: str | None = None
    vpn: bool | None = None
    vpn_confidence: str | None = None
    proxy: bool | None = None
    tor: bool | None = None
    datacenter: bool | None = None
    datacenter_name: str | None = None
    incognito: bool | None = None
    virtual_machine: bool | None = None
    tampering: bool | None = None
    anti_detect_browser: bool | None = None
    tampering_anomaly_score: float | None = Field(None, allow_inf_nan=False)
    cloned_app: bool | None = None
    emulator: bool | None = None
    rooted: bool | None = None
    high_activity: bool | None = None
    daily_requests: int | None = None
    velocity_events_5m: int | None = None

    @property
    def bot_detected(self) -> bool:
        return self.bot_result == "bad"


class RiskFactor(BaseModel):
    """One contributing signal shown to operators."""

    model_config = ConfigDict(frozen=True)

    signal: str
    severity: RiskLevel
    detail: str


class RiskAnalysis(BaseModel):
    """Result of scoring one visit."""

    model_config = ConfigDict(frozen=True)

    score: int = Field(..., ge=0, le=100)
    level: RiskLevel
    factors: list[RiskFactor] = Field(default_factory=list)
    recommendation: str = ""


class VisitPayload(BaseModel):
    """
    Raw visit as posted by the tracking snippet.

    Accepts both the snippet's camelCase field names and snake_case.
    Required identifiers are checked by the ingestion pipeline so that a
    missing field produces a validation error naming every missing field.
    """

    model_config = ConfigDict(extra="ignore")

    store_id: str | None = Field(None, validation_alias=AliasChoices("store_id", "storeId"))
    visitor_id: str | None = Field(
        None, validation_alias=AliasChoices("visitor_id", "visitorId")
    )
    session_key: str | None = Field(
        None, validation_alias=AliasChoices("session_key", "sessionKey", "requestId")
    )
    path: str | None = Field(None, validation_alias=AliasChoices("path", "page"))
    timestamp: datetime | None = None
    client_signals: ClientSignals | None = Field(
        None, validation_alias=AliasChoices("client_signals", "clientSignals")
    )

    @field_validator("store_id", "visitor_id", "session_key", "path", mode="before")
    @classmethod
    def _strip(cls, value):
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value

    def missing_fields(self) -> list[str]:
        """Names of the required identifiers that are absent."""
        return [
            name
            for name in ("store_id", "visitor_id", "session_key")
            if not getattr(self, name)
        ]


class VisitEvent(BaseModel):
    """
    One observed page view, enriched and scored.

    Immutable once created. ``visit_id`` is derived from the event content so
    a redelivered event keeps the same identity.
    """

    model_config = ConfigDict(frozen=True)

    visit_id: str
    store_id: str
    visitor_id: str
    session_key: str
    path: str = "/"
    timestamp: datetime
    client_signals: ClientSignals | None = None
    server_signals: SignalBundle | None = None
    risk_analysis: RiskAnalysis

    @field_validator("timestamp")
    @classmethod
    def _utc(cls, value: datetime) -> datetime:
        return _as_utc(value)

    @staticmethod
    def make_id(
        store_id: str, visitor_id: str, session_key: str, path: str, timestamp: datetime
    ) -> str:
        """Deterministic identifier for a visit."""
        name = "|".join(
            [store_id, visitor_id, session_key, path, _as_utc(timestamp).isoformat()]
        )
        return str(uuid.uuid5(VISIT_ID_NAMESPACE, name))

    @property
    def score(self) -> int:
        return self.risk_analysis.score


class Session(BaseModel):
    """
    One browsing session, keyed by the session correlation key.

    Attributes:
        session_key: Correlation key shared by every page view of the session
        store_id: Store the session belongs to
        visitor_id: Visitor that owns the session
        paths: Distinct page paths in first-visit order
        first_activity: Timestamp of the first page view
        last_activity: Timestamp of the latest page view
    """

    session_key: str
    store_id: str
    visitor_id: str
    paths: list[str] = Field(default_factory=list)
    first_activity: datetime
    last_activity: datetime

    @property
    def page_count(self) -> int:
        return len(self.paths)

    @property
    def duration_seconds(self) -> int:
        return int((self.last_activity - self.first_activity).total_seconds())


class VisitorProfile(BaseModel):
    """
    Long-lived risk and activity summary for one visitor at one store.

    ``risk_level`` and ``risk_factors`` are the snapshot taken from the visit
    that produced ``highest_risk_score``. ``session_count`` is the number of
    distinct ``session_keys`` merged into the profile.
    """

    store_id: str
    visitor_id: str
    first_seen: datetime
    last_seen: datetime
    session_count: int = 0
    session_keys: list[str] = Field(default_factory=list)
    pages_visited: list[str] = Field(default_factory=list)
    highest_risk_score: int = 0
    risk_level: RiskLevel = RiskLevel.LOW
    risk_factors: list[RiskFactor] = Field(default_factory=list)
    server_signals: SignalBundle | None = None


class Alert(BaseModel):
    """A risky visit awaiting operator triage."""

    alert_id: str
    store_id: str
    visitor_id: str
    visit_id: str
    risk_score: int
    risk_factors: list[RiskFactor] = Field(default_factory=list)
    created_at: datetime
    status: AlertStatus = AlertStatus.NEW
    updated_at: datetime | None = None

    @staticmethod
    def make_id(visit_id: str) -> str:
        """Alert identifier derived from the triggering visit."""
        return f"alert-{uuid.uuid5(VISIT_ID_NAMESPACE, 'alert:' + visit_id)}"
