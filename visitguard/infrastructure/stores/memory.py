# ==============================================================================
# In-Memory State Stores
# ==============================================================================
"""
Process-local implementations of the store interfaces.

Records are kept as Pydantic models and copied on the way in and out, so
callers never share mutable state with the store. Atomic updates hold a
per-key lock from KeyedLocks; different keys proceed in parallel.

Suitable for single-process deployments, replays and tests. State is lost
when the process exits.
"""

import threading
from collections import deque

from visitguard.base.stores import (
    AlertMutator,
    AlertStore,
    SessionMutator,
    SessionStore,
    StateStores,
    VisitorMutator,
    VisitorStore,
    VisitStore,
)
from visitguard.core.models import Alert, Session, VisitEvent, VisitorProfile
from visitguard.infrastructure.locks import KeyedLocks

DEFAULT_MAX_VISITS_PER_STORE = 1000


class InMemoryVisitStore(VisitStore):
    """Capped per-store visit log, newest first."""

    def __init__(self, max_per_store: int = DEFAULT_MAX_VISITS_PER_STORE):
        if max_per_store < 1:
            raise ValueError(f"max_per_store must be positive, got {max_per_store}")
        self.max_per_store = max_per_store
        self._locks = KeyedLocks()
        self._visits: dict[str, deque[VisitEvent]] = {}
        self._ids: dict[str, set[str]] = {}

    def append(self, visit: VisitEvent) -> bool:
        with self._locks.hold(visit.store_id):
            log = self._visits.setdefault(visit.store_id, deque())
            ids = self._ids.setdefault(visit.store_id, set())
            if visit.visit_id in ids:
                return False
            log.appendleft(visit)
            ids.add(visit.visit_id)
            while len(log) > self.max_per_store:
                evicted = log.pop()
                ids.discard(evicted.visit_id)
            return True

    def recent(self, store_id: str, limit: int | None = None) -> list[VisitEvent]:
        with self._locks.hold(store_id):
            log = list(self._visits.get(store_id, ()))
        return log if limit is None else log[:limit]

    def clear_all(self) -> int:
        count = sum(len(log) for log in self._visits.values())
        self._visits.clear()
        self._ids.clear()
        return count


class InMemorySessionStore(SessionStore):
    def __init__(self) -> None:
        self._locks = KeyedLocks()
        self._sessions: dict[str, Session] = {}

    def get(self, session_key: str) -> Session | None:
        session = self._sessions.get(session_key)
        return session.model_copy(deep=True) if session else None

    def update(self, session_key: str, mutate: SessionMutator) -> tuple[Session | None, Session]:
        with self._locks.hold(session_key):
            before = self.get(session_key)
            after = mutate(before.model_copy(deep=True) if before else None)
            self._sessions[session_key] = after.model_copy(deep=True)
        return before, after

    def clear_all(self) -> int:
        count = len(self._sessions)
        self._sessions.clear()
        return count


class InMemoryVisitorStore(VisitorStore):
    def __init__(self) -> None:
        self._locks = KeyedLocks()
        self._index_lock = threading.Lock()
        self._profiles: dict[tuple[str, str], VisitorProfile] = {}
        self._by_store: dict[str, set[str]] = {}

    def get(self, store_id: str, visitor_id: str) -> VisitorProfile | None:
        profile = self._profiles.get((store_id, visitor_id))
        return profile.model_copy(deep=True) if profile else None

    def update(
        self, store_id: str, visitor_id: str, mutate: VisitorMutator
    ) -> tuple[VisitorProfile | None, VisitorProfile]:
        key = (store_id, visitor_id)
        with self._locks.hold(key):
            before = self.get(store_id, visitor_id)
            after = mutate(before.model_copy(deep=True) if before else None)
            self._profiles[key] = after.model_copy(deep=True)
            if before is None:
                with self._index_lock:
                    self._by_store.setdefault(store_id, set()).add(visitor_id)
        return before, after

    def list_for_store(self, store_id: str) -> list[VisitorProfile]:
        with self._index_lock:
            visitor_ids = list(self._by_store.get(store_id, ()))
        profiles = (self.get(store_id, vid) for vid in visitor_ids)
        return [p for p in profiles if p is not None]

    def clear_all(self) -> int:
        count = len(self._profiles)
        with self._index_lock:
            self._profiles.clear()
            self._by_store.clear()
        return count


class InMemoryAlertStore(AlertStore):
    def __init__(self) -> None:
        self._locks = KeyedLocks()
        self._index_lock = threading.Lock()
        self._alerts: dict[str, Alert] = {}
        self._by_store: dict[str, list[str]] = {}

    def add(self, alert: Alert) -> bool:
        with self._locks.hold(alert.alert_id):
            if alert.alert_id in self._alerts:
                return False
            self._alerts[alert.alert_id] = alert.model_copy(deep=True)
            with self._index_lock:
                self._by_store.setdefault(alert.store_id, []).insert(0, alert.alert_id)
        return True

    def get(self, alert_id: str) -> Alert | None:
        alert = self._alerts.get(alert_id)
        return alert.model_copy(deep=True) if alert else None

    def update(self, alert_id: str, mutate: AlertMutator) -> Alert | None:
        with self._locks.hold(alert_id):
            current = self.get(alert_id)
            if current is None:
                return None
            updated = mutate(current)
            self._alerts[alert_id] = updated.model_copy(deep=True)
        return updated

    def list_for_store(self, store_id: str) -> list[Alert]:
        with self._index_lock:
            alert_ids = list(self._by_store.get(store_id, ()))
        alerts = (self.get(aid) for aid in alert_ids)
        return [a for a in alerts if a is not None]

    def clear_all(self) -> int:
        count = len(self._alerts)
        with self._index_lock:
            self._alerts.clear()
            self._by_store.clear()
        return count


def create_memory_stores(max_visits_per_store: int = DEFAULT_MAX_VISITS_PER_STORE) -> StateStores:
    """Build a complete set of in-memory stores."""
    return StateStores(
        visits=InMemoryVisitStore(max_visits_per_store),
        sessions=InMemorySessionStore(),
        visitors=InMemoryVisitorStore(),
        alerts=InMemoryAlertStore(),
    )
