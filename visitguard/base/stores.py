# ==============================================================================
# State Store Abstract Base Classes
# ==============================================================================
"""
Store ABCs for the engine's live operational state.

Four independent collections, each addressable by its own key:
- VisitStore: bounded, append-only log of recent visits per store
- SessionStore: sessions keyed by session correlation key
- VisitorStore: visitor profiles keyed by (store_id, visitor_id)
- AlertStore: alerts keyed by alert id

Mutable collections expose a single atomic read-modify-write primitive,
``update(key, mutate)``. The mutator receives the current record (or None)
and returns the replacement; implementations guarantee that concurrent
updates of the same key are serialized while different keys proceed in
parallel. Mutators must return a new object and must not have side effects,
since optimistic backends may call them more than once.

Concrete implementations live in infrastructure/stores/.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass

from visitguard.core.models import Alert, Session, VisitEvent, VisitorProfile

SessionMutator = Callable[[Session | None], Session]
VisitorMutator = Callable[[VisitorProfile | None], VisitorProfile]
AlertMutator = Callable[[Alert], Alert]


class VisitStore(ABC):
    """Recent visit log, capped per store."""

    @abstractmethod
    def append(self, visit: VisitEvent) -> bool:
        """
        Record a visit, evicting the oldest ones beyond the per-store cap.

        Args:
            visit: Visit to record

        Returns:
            True if stored, False if a visit with the same id was already recorded
        """
        ...

    @abstractmethod
    def recent(self, store_id: str, limit: int | None = None) -> list[VisitEvent]:
        """
        Get the most recent visits for a store, newest first.

        Args:
            store_id: Store identifier
            limit: Maximum number of visits (None for the whole window)
        """
        ...

    @abstractmethod
    def clear_all(self) -> int:
        """Delete all visits. Returns count of records deleted."""
        ...


class SessionStore(ABC):
    """Sessions keyed by session correlation key."""

    @abstractmethod
    def get(self, session_key: str) -> Session | None:
        ...

    @abstractmethod
    def update(self, session_key: str, mutate: SessionMutator) -> tuple[Session | None, Session]:
        """
        Atomically read, transform and write one session.

        Returns:
            Tuple of (record before the update or None, record after)
        """
        ...

    @abstractmethod
    def clear_all(self) -> int:
        ...


class VisitorStore(ABC):
    """Visitor profiles keyed by (store_id, visitor_id)."""

    @abstractmethod
    def get(self, store_id: str, visitor_id: str) -> VisitorProfile | None:
        ...

    @abstractmethod
    def update(
        self, store_id: str, visitor_id: str, mutate: VisitorMutator
    ) -> tuple[VisitorProfile | None, VisitorProfile]:
        """
        Atomically read, transform and write one visitor profile.

        Returns:
            Tuple of (record before the update or None, record after)
        """
        ...

    @abstractmethod
    def list_for_store(self, store_id: str) -> list[VisitorProfile]:
        """All profiles of a store, in no particular order."""
        ...

    @abstractmethod
    def clear_all(self) -> int:
        ...


class AlertStore(ABC):
    """Alerts keyed by alert id."""

    @abstractmethod
    def add(self, alert: Alert) -> bool:
        """
        Persist a new alert.

        Returns:
            True if created, False if an alert with the same id already exists
        """
        ...

    @abstractmethod
    def get(self, alert_id: str) -> Alert | None:
        ...

    @abstractmethod
    def update(self, alert_id: str, mutate: AlertMutator) -> Alert | None:
        """
        Atomically transform an existing alert.

        Returns:
            The updated alert, or None if the alert does not exist
        """
        ...

    @abstractmethod
    def list_for_store(self, store_id: str) -> list[Alert]:
        """All alerts of a store, newest first."""
        ...

    @abstractmethod
    def clear_all(self) -> int:
        ...


@dataclass
class StateStores:
    """The four collections backing one engine instance."""

    visits: VisitStore
    sessions: SessionStore
    visitors: VisitorStore
    alerts: AlertStore

    def clear_all(self) -> int:
        """Clear every collection. Returns total count of records deleted."""
        return (
            self.visits.clear_all()
            + self.sessions.clear_all()
            + self.visitors.clear_all()
            + self.alerts.clear_all()
        )
