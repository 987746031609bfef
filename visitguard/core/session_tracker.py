# ==============================================================================
# Session Tracker
# ==============================================================================
"""
Deduplicates page views that belong to one browsing session.

A session is identified by the correlation key the tracking snippet reuses
for every page of the session. The first event for a key creates the
session; later events only add their path (if new) and advance the last
activity time.

Creation is a single atomic check-and-create on the session store, so two
near-simultaneous first-page events (e.g. a network retry) still produce one
session, and exactly one of them observes ``is_new_session=True``.
"""

import logging
from dataclasses import dataclass
from datetime import datetime

from visitguard.base.stores import SessionStore
from visitguard.core.models import Session

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionOutcome:
    """Result of recording one page view against its session."""

    is_new_session: bool
    session: Session


def create_session(
    session_key: str, store_id: str, visitor_id: str, path: str, timestamp: datetime
) -> Session:
    """Build a new session seeded with its first page view."""
    return Session(
        session_key=session_key,
        store_id=store_id,
        visitor_id=visitor_id,
        paths=[path],
        first_activity=timestamp,
        last_activity=timestamp,
    )


def update_session(session: Session, path: str, timestamp: datetime) -> Session:
    """
    Return a copy of the session with one more page view applied.

    The path is appended only if not already present. Activity bounds widen
    to include the timestamp, so out-of-order delivery never moves
    ``last_activity`` backwards.
    """
    updated = session.model_copy(deep=True)
    if path not in updated.paths:
        updated.paths.append(path)
    updated.first_activity = min(updated.first_activity, timestamp)
    updated.last_activity = max(updated.last_activity, timestamp)
    return updated


class SessionTracker:
    """Records page views against sessions in a SessionStore."""

    def __init__(self, store: SessionStore):
        self._store = store

    def record_session(
        self,
        session_key: str,
        store_id: str,
        visitor_id: str,
        path: str,
        timestamp: datetime,
    ) -> SessionOutcome:
        """
        Record a page view.

        Args:
            session_key: Session correlation key
            store_id: Store the page belongs to
            visitor_id: Visitor identifier
            path: Page path
            timestamp: When the page was viewed

        Returns:
            SessionOutcome with ``is_new_session`` True only for the call that
            created the session
        """

        def mutate(existing: Session | None) -> Session:
            if existing is None:
                return create_session(session_key, store_id, visitor_id, path, timestamp)
            return update_session(existing, path, timestamp)

        before, after = self._store.update(session_key, mutate)
        is_new = before is None
        if is_new:
            logger.debug("New session %s for visitor %s on store %s", session_key, visitor_id, store_id)
        elif before.visitor_id != visitor_id:
            logger.warning(
                "Session %s reported by visitor %s but owned by %s",
                session_key,
                visitor_id,
                before.visitor_id,
            )
        return SessionOutcome(is_new_session=is_new, session=after)

    def get_session(self, session_key: str) -> Session | None:
        return self._store.get(session_key)
