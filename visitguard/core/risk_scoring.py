# ==============================================================================
# Risk Scorer - Pure Domain Logic
# ==============================================================================
"""
Pure risk scoring logic with no external dependencies.

The score comes from a single authoritative number, the provider's aggregate
suspect score, rescaled onto 0-100. When no suspect score is available the
score falls back to a fixed contribution from client-observed signals.

Boolean detectors (bot, VPN, Tor, tampering, ...) never move the score. They
are reported as contextual factors so operators can see why a visitor was
flagged, while the magnitude stays with the provider.

The scorer is deterministic: the same inputs always produce the same
analysis, which keeps the visitor "highest score" merge reproducible when a
visit is reprocessed.
"""

from visitguard.core.models import ClientSignals, RiskAnalysis, RiskFactor, RiskLevel, SignalBundle

# ==============================================================================
# Scoring Constants
# ==============================================================================

# Upper end of the provider's suspect score scale
SUSPECT_SCORE_MAX = 100.0

# Fallback contribution when the provider score is missing
DEV_TOOLS_POINTS = 20

# Lower bound (inclusive) of each tier, checked highest first
LEVEL_THRESHOLDS: tuple[tuple[int, RiskLevel], ...] = (
    (60, RiskLevel.CRITICAL),
    (40, RiskLevel.HIGH),
    (20, RiskLevel.MEDIUM),
)

# Page views in five minutes above which browsing is flagged
RAPID_BROWSING_EVENTS = 10
FAST_BROWSING_EVENTS = 5

RECOMMENDATIONS = {
    RiskLevel.CRITICAL: "Likely scraper or copycat. Consider blocking this visitor.",
    RiskLevel.HIGH: "Suspicious behavior detected. Monitor closely.",
    RiskLevel.MEDIUM: "Some risk signals present. Keep on watchlist.",
    RiskLevel.LOW: "Normal visitor behavior.",
}


def clamp_score(value: float) -> int:
    """Round and clamp a raw value onto the 0-100 integer range."""
    return max(0, min(100, int(round(value))))


def level_for_score(score: int) -> RiskLevel:
    """Map a 0-100 score to its risk tier."""
    for threshold, level in LEVEL_THRESHOLDS:
        if score >= threshold:
            return level
    return RiskLevel.LOW


class RiskScorer:
    """
    Pure risk scoring logic.

    Works only with the known slots of a SignalBundle and ClientSignals;
    anything the provider did not report is skipped.
    """

    def __init__(self, suspect_score_max: float = SUSPECT_SCORE_MAX):
        """
        Initialize the scorer.

        Args:
            suspect_score_max: Value of the provider suspect score that maps
                to 100. Scores above it are clamped.
        """
        if suspect_score_max <= 0:
            raise ValueError(f"suspect_score_max must be positive, got {suspect_score_max}")
        self.suspect_score_max = suspect_score_max

    def analyze(
        self,
        server_signals: SignalBundle | None = None,
        client_signals: ClientSignals | None = None,
    ) -> RiskAnalysis:
        """
        Score a visit.

        Args:
            server_signals: Provider signal bundle, or None when enrichment failed
            client_signals: Flags reported by the snippet, or None

        Returns:
            RiskAnalysis with score, level, ordered factors and recommendation
        """
        score = self.score(server_signals, client_signals)
        level = level_for_score(score)
        factors = self.factors(server_signals, client_signals, score, level)
        return RiskAnalysis(
            score=score,
            level=level,
            factors=factors,
            recommendation=RECOMMENDATIONS[level],
        )

    def score(
        self,
        server_signals: SignalBundle | None,
        client_signals: ClientSignals | None,
    ) -> int:
        """Compute the 0-100 score from the primary signal or the client fallback."""
        if server_signals is not None and server_signals.suspect_score is not None:
            return clamp_score(server_signals.suspect_score * 100.0 / self.suspect_score_max)
        if client_signals is not None and client_signals.dev_tools_open:
            return clamp_score(DEV_TOOLS_POINTS)
        return 0

    def factors(
        self,
        server_signals: SignalBundle | None,
        client_signals: ClientSignals | None,
        score: int,
        level: RiskLevel,
    ) -> list[RiskFactor]:
        """Build the ordered list of contributing factors."""
        factors: list[RiskFactor] = []
        if server_signals is not None:
            if server_signals.suspect_score is not None:
                factors.append(
                    RiskFactor(
                        signal="Suspect Score",
                        severity=level,
                        detail=f"Provider suspect score {_fmt(server_signals.suspect_score)} "
                        f"(scaled {score}/100)",
                    )
                )
            factors.extend(_server_factors(server_signals))
        if client_signals is not None and client_signals.dev_tools_open:
            factors.append(
                RiskFactor(
                    signal="Developer Tools Open",
                    severity=RiskLevel.HIGH,
                    detail="Visitor inspecting page source/code",
                )
            )
        return factors


def _fmt(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else f"{value:.2f}"


def _server_factors(signals: SignalBundle) -> list[RiskFactor]:
    """Contextual factors from the provider's boolean detectors, in fixed order."""
    factors: list[RiskFactor] = []

    def add(signal: str, severity: RiskLevel, detail: str) -> None:
        factors.append(RiskFactor(signal=signal, severity=severity, detail=detail))

    if signals.bot_detected:
        add("Bot Detected", RiskLevel.CRITICAL, f"Type: {signals.bot_type or 'unknown'}")
    if signals.tor:
        add("Tor Network", RiskLevel.CRITICAL, "Visitor using Tor anonymization")
    if signals.tampering:
        if signals.anti_detect_browser:
            detail = "Anti-detect browser detected"
        elif signals.tampering_anomaly_score is not None:
            detail = f"Anomaly score: {_fmt(signals.tampering_anomaly_score)}"
        else:
            detail = "Browser tampering detected"
        add("Browser Tampering", RiskLevel.CRITICAL, detail)
    if signals.vpn:
        add("VPN Detected", RiskLevel.HIGH, f"Confidence: {signals.vpn_confidence or 'unknown'}")
    if signals.proxy:
        add("Proxy Detected", RiskLevel.HIGH, "Traffic routed through proxy")
    if signals.datacenter:
        add("Datacenter IP", RiskLevel.HIGH, signals.datacenter_name or "Unknown datacenter")
    if signals.virtual_machine:
        add("Virtual Machine", RiskLevel.HIGH, "Running in VM environment")
    if signals.cloned_app:
        add("Cloned App", RiskLevel.HIGH, "Application runs from a cloned package")
    if signals.emulator:
        add("Emulator", RiskLevel.HIGH, "Device is an emulator")
    if signals.rooted:
        add("Rooted Device", RiskLevel.MEDIUM, "Device is rooted or jailbroken")
    if signals.incognito:
        add("Incognito Mode", RiskLevel.MEDIUM, "Private browsing enabled")

    events_5m = signals.velocity_events_5m or 0
    if events_5m > RAPID_BROWSING_EVENTS:
        add("Rapid Browsing", RiskLevel.HIGH, f"{events_5m} page visits in 5 minutes")
    elif events_5m > FAST_BROWSING_EVENTS:
        add("Fast Browsing", RiskLevel.MEDIUM, f"{events_5m} page visits in 5 minutes")

    if signals.high_activity:
        requests_today = signals.daily_requests
        detail = f"{requests_today} requests today" if requests_today is not None else "High daily activity"
        add("High Activity", RiskLevel.MEDIUM, detail)

    return factors
