# ==============================================================================
# Visitor Aggregator
# ==============================================================================
"""
Maintains one long-lived profile per (store, visitor).

Every visit updates the activity fields unconditionally:
- last_seen (widened, never moved backwards)
- latest server signal bundle
- distinct set of pages ever visited

Session counting and risk are merged with stricter rules:
- session_count is the number of distinct session keys merged into the
  profile, so it counts sessions rather than page views. The keys are kept
  on the profile, which makes the count idempotent: a visit resent after a
  failed profile write still counts its session exactly once, even though
  the session tracker reports it as an existing session on the resend
- the risk snapshot (highest_risk_score, risk_level, risk_factors) is
  replaced only when a visit scores strictly higher than the current
  maximum; ties keep the earlier snapshot

The risk merge is a max-by-score reduction over the visit stream. Scores are
never summed, so reprocessing a visit leaves the profile unchanged.
"""

import logging

from visitguard.base.stores import VisitorStore
from visitguard.core.models import VisitEvent, VisitorProfile

logger = logging.getLogger(__name__)


def new_profile(store_id: str, visitor_id: str, visit: VisitEvent) -> VisitorProfile:
    """Create an empty profile whose risk snapshot comes from its first visit."""
    return VisitorProfile(
        store_id=store_id,
        visitor_id=visitor_id,
        first_seen=visit.timestamp,
        last_seen=visit.timestamp,
        highest_risk_score=visit.risk_analysis.score,
        risk_level=visit.risk_analysis.level,
        risk_factors=list(visit.risk_analysis.factors),
    )


def merge_visit(profile: VisitorProfile, visit: VisitEvent) -> VisitorProfile:
    """
    Return a copy of the profile with one visit merged in.

    Args:
        profile: Current profile (left untouched)
        visit: Scored visit to merge

    Returns:
        Updated profile copy
    """
    merged = profile.model_copy(deep=True)

    merged.last_seen = max(merged.last_seen, visit.timestamp)
    merged.first_seen = min(merged.first_seen, visit.timestamp)
    merged.server_signals = visit.server_signals
    if visit.path not in merged.pages_visited:
        merged.pages_visited.append(visit.path)

    if visit.session_key not in merged.session_keys:
        merged.session_keys.append(visit.session_key)
    merged.session_count = len(merged.session_keys)

    analysis = visit.risk_analysis
    if analysis.score > merged.highest_risk_score:
        merged.highest_risk_score = analysis.score
        merged.risk_level = analysis.level
        merged.risk_factors = list(analysis.factors)

    return merged


class VisitorAggregator:
    """Applies visits to visitor profiles in a VisitorStore."""

    def __init__(self, store: VisitorStore):
        self._store = store

    def apply_visit(
        self,
        store_id: str,
        visitor_id: str,
        visit: VisitEvent,
        is_new_session: bool,
    ) -> VisitorProfile:
        """
        Merge a visit into the visitor's profile, creating it if needed.

        The load-merge-save cycle runs as one atomic update on the profile's
        key, so concurrent visits by the same visitor never lose an update.

        Args:
            store_id: Store the visit belongs to
            visitor_id: Visitor the profile is kept for
            visit: Scored visit to merge
            is_new_session: Whether the session tracker created the visit's
                session. The profile's own session keys decide the count.
                They disagree when visits of one session race, or when an
                earlier profile write for the session failed.

        Returns:
            The profile after the merge
        """

        def mutate(existing: VisitorProfile | None) -> VisitorProfile:
            base = existing if existing is not None else new_profile(store_id, visitor_id, visit)
            return merge_visit(base, visit)

        before, after = self._store.update(store_id, visitor_id, mutate)

        counted = before is None or after.session_count > before.session_count
        if counted and not is_new_session:
            logger.debug(
                "Session %s of visitor %s on store %s counted on a non-creating visit",
                visit.session_key,
                visitor_id,
                store_id,
            )

        if before is None:
            logger.info("New visitor %s on store %s", visitor_id, store_id)
        elif after.highest_risk_score > before.highest_risk_score:
            logger.info(
                "Visitor %s on store %s risk raised %d -> %d (%s)",
                visitor_id,
                store_id,
                before.highest_risk_score,
                after.highest_risk_score,
                after.risk_level.value,
            )
        return after

    def get_profile(self, store_id: str, visitor_id: str) -> VisitorProfile | None:
        return self._store.get(store_id, visitor_id)
