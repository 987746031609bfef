# ==============================================================================
# Valkey State Stores
# ==============================================================================
"""
Valkey/Redis implementations of the store interfaces.

Key layout:
- visitguard:visits:{store_id}            list of visit JSON, newest first, capped
- visitguard:visit:seen:{visit_id}        dedup marker for the visit log
- visitguard:session:{session_key}        session JSON
- visitguard:visitor:{store_id}:{visitor} visitor profile JSON (parts percent-encoded)
- visitguard:visitors:{store_id}          set of visitor ids for a store
- visitguard:alert:{alert_id}             alert JSON
- visitguard:alerts:{store_id}            list of alert ids, newest first

Atomic per-key updates use optimistic transactions: the record key is
WATCHed, the mutator runs on the current value, and the write is committed
with MULTI/EXEC. A concurrent writer on the same key aborts the EXEC and the
cycle is retried. Writers on different keys never block each other.

Redis errors that survive the client's own retries are raised as
StorageError.
"""

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import TypeVar
from urllib.parse import quote

import redis
from pydantic import BaseModel
from redis.client import Pipeline

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
from visitguard.core.errors import StorageError
from visitguard.core.models import Alert, Session, VisitEvent, VisitorProfile
from visitguard.infrastructure.cache.valkey import ValkeyCache

logger = logging.getLogger(__name__)

KEY_PREFIX = "visitguard:"
VISITS_KEY_PREFIX = f"{KEY_PREFIX}visits:"
VISIT_SEEN_KEY_PREFIX = f"{KEY_PREFIX}visit:seen:"
SESSION_KEY_PREFIX = f"{KEY_PREFIX}session:"
VISITOR_KEY_PREFIX = f"{KEY_PREFIX}visitor:"
VISITOR_INDEX_KEY_PREFIX = f"{KEY_PREFIX}visitors:"
ALERT_KEY_PREFIX = f"{KEY_PREFIX}alert:"
ALERT_INDEX_KEY_PREFIX = f"{KEY_PREFIX}alerts:"

# Dedup markers outlive any realistic redelivery window
VISIT_SEEN_TTL_SECONDS = 7 * 24 * 3600

DEFAULT_MAX_VISITS_PER_STORE = 1000

M = TypeVar("M", bound=BaseModel)


def key_part(value: str) -> str:
    """Percent-encode one component of a composite key so ":" cannot split it."""
    return quote(value, safe="")


@contextmanager
def _storage_errors(operation: str) -> Iterator[None]:
    """Translate redis failures into StorageError."""
    try:
        yield
    except redis.exceptions.RedisError as e:
        logger.error("Valkey %s failed: %s", operation, e)
        raise StorageError(f"{operation} failed: {e}") from e


def _load(model: type[M], raw: str | None) -> M | None:
    if raw is None:
        return None
    return model.model_validate_json(raw)


def _atomic_update(
    client: redis.Redis,
    key: str,
    model: type[M],
    mutate: Callable[[M | None], M],
    on_create: Callable[[Pipeline, M], None] | None = None,
) -> tuple[M | None, M]:
    """
    WATCH/MULTI/EXEC read-modify-write of one JSON record.

    Args:
        client: Redis client
        key: Record key (watched)
        model: Pydantic model of the record
        mutate: Receives the current record (or None), returns the new one
        on_create: Extra commands queued in the same transaction when the
            record did not exist yet

    Returns:
        Tuple of (record before, record after)
    """

    def txn(pipe: Pipeline) -> tuple[M | None, M]:
        before = _load(model, pipe.get(key))
        after = mutate(before.model_copy(deep=True) if before is not None else None)
        pipe.multi()
        pipe.set(key, after.model_dump_json())
        if before is None and on_create is not None:
            on_create(pipe, after)
        return before, after

    return client.transaction(txn, key, value_from_callable=True)


class ValkeyVisitStore(VisitStore):
    """Capped per-store visit log kept in a Valkey list."""

    def __init__(self, cache: ValkeyCache, max_per_store: int = DEFAULT_MAX_VISITS_PER_STORE):
        if max_per_store < 1:
            raise ValueError(f"max_per_store must be positive, got {max_per_store}")
        self._cache = cache
        self.max_per_store = max_per_store

    @property
    def client(self) -> redis.Redis:
        return self._cache.client

    def append(self, visit: VisitEvent) -> bool:
        seen_key = f"{VISIT_SEEN_KEY_PREFIX}{visit.visit_id}"
        list_key = f"{VISITS_KEY_PREFIX}{visit.store_id}"
        with _storage_errors("visit append"):
            if not self.client.set(seen_key, visit.store_id, nx=True, ex=VISIT_SEEN_TTL_SECONDS):
                return False
            try:
                pipe = self.client.pipeline(transaction=True)
                pipe.lpush(list_key, visit.model_dump_json())
                pipe.ltrim(list_key, 0, self.max_per_store - 1)
                pipe.execute()
            except redis.exceptions.RedisError:
                # Release the marker so a retry of this visit is not skipped
                self.client.delete(seen_key)
                raise
        return True

    def recent(self, store_id: str, limit: int | None = None) -> list[VisitEvent]:
        end = -1 if limit is None else limit - 1
        with _storage_errors("visit read"):
            raw = self.client.lrange(f"{VISITS_KEY_PREFIX}{store_id}", 0, end)
        return [VisitEvent.model_validate_json(item) for item in raw]

    def clear_all(self) -> int:
        with _storage_errors("visit clear"):
            count = 0
            for key in self.client.scan_iter(f"{VISITS_KEY_PREFIX}*"):
                count += self.client.llen(key)
            self._cache.delete_pattern(f"{VISITS_KEY_PREFIX}*")
            self._cache.delete_pattern(f"{VISIT_SEEN_KEY_PREFIX}*")
        return count


class ValkeySessionStore(SessionStore):
    def __init__(self, cache: ValkeyCache):
        self._cache = cache

    def _key(self, session_key: str) -> str:
        return f"{SESSION_KEY_PREFIX}{session_key}"

    def get(self, session_key: str) -> Session | None:
        with _storage_errors("session read"):
            data = self._cache.get(self._key(session_key))
        return Session.model_validate(data) if data else None

    def update(self, session_key: str, mutate: SessionMutator) -> tuple[Session | None, Session]:
        with _storage_errors("session update"):
            return _atomic_update(self._cache.client, self._key(session_key), Session, mutate)

    def clear_all(self) -> int:
        with _storage_errors("session clear"):
            return self._cache.delete_pattern(f"{SESSION_KEY_PREFIX}*")


class ValkeyVisitorStore(VisitorStore):
    def __init__(self, cache: ValkeyCache):
        self._cache = cache

    def _key(self, store_id: str, visitor_id: str) -> str:
        return f"{VISITOR_KEY_PREFIX}{key_part(store_id)}:{key_part(visitor_id)}"

    def _index_key(self, store_id: str) -> str:
        return f"{VISITOR_INDEX_KEY_PREFIX}{store_id}"

    def get(self, store_id: str, visitor_id: str) -> VisitorProfile | None:
        with _storage_errors("visitor read"):
            data = self._cache.get(self._key(store_id, visitor_id))
        return VisitorProfile.model_validate(data) if data else None

    def update(
        self, store_id: str, visitor_id: str, mutate: VisitorMutator
    ) -> tuple[VisitorProfile | None, VisitorProfile]:
        def index(pipe: Pipeline, profile: VisitorProfile) -> None:
            pipe.sadd(self._index_key(store_id), visitor_id)

        with _storage_errors("visitor update"):
            return _atomic_update(
                self._cache.client,
                self._key(store_id, visitor_id),
                VisitorProfile,
                mutate,
                on_create=index,
            )

    def list_for_store(self, store_id: str) -> list[VisitorProfile]:
        with _storage_errors("visitor list"):
            visitor_ids = sorted(self._cache.client.smembers(self._index_key(store_id)))
            data = self._cache.get_many([self._key(store_id, vid) for vid in visitor_ids])
        return [VisitorProfile.model_validate(d) for d in data.values()]

    def clear_all(self) -> int:
        with _storage_errors("visitor clear"):
            self._cache.delete_pattern(f"{VISITOR_INDEX_KEY_PREFIX}*")
            return self._cache.delete_pattern(f"{VISITOR_KEY_PREFIX}*")


class ValkeyAlertStore(AlertStore):
    def __init__(self, cache: ValkeyCache):
        self._cache = cache

    def _key(self, alert_id: str) -> str:
        return f"{ALERT_KEY_PREFIX}{alert_id}"

    def _index_key(self, store_id: str) -> str:
        return f"{ALERT_INDEX_KEY_PREFIX}{store_id}"

    def add(self, alert: Alert) -> bool:
        key = self._key(alert.alert_id)

        def txn(pipe: Pipeline) -> bool:
            if pipe.exists(key):
                pipe.unwatch()
                return False
            pipe.multi()
            pipe.set(key, alert.model_dump_json())
            pipe.lpush(self._index_key(alert.store_id), alert.alert_id)
            return True

        with _storage_errors("alert add"):
            return self._cache.client.transaction(txn, key, value_from_callable=True)

    def get(self, alert_id: str) -> Alert | None:
        with _storage_errors("alert read"):
            data = self._cache.get(self._key(alert_id))
        return Alert.model_validate(data) if data else None

    def update(self, alert_id: str, mutate: AlertMutator) -> Alert | None:
        key = self._key(alert_id)

        def txn(pipe: Pipeline) -> Alert | None:
            current = _load(Alert, pipe.get(key))
            if current is None:
                pipe.unwatch()
                return None
            updated = mutate(current)
            pipe.multi()
            pipe.set(key, updated.model_dump_json())
            return updated

        with _storage_errors("alert update"):
            return self._cache.client.transaction(txn, key, value_from_callable=True)

    def list_for_store(self, store_id: str) -> list[Alert]:
        with _storage_errors("alert list"):
            alert_ids = self._cache.client.lrange(self._index_key(store_id), 0, -1)
            keys = [self._key(aid) for aid in alert_ids]
            data = self._cache.get_many(keys)
        return [Alert.model_validate(data[k]) for k in keys if k in data]

    def clear_all(self) -> int:
        with _storage_errors("alert clear"):
            self._cache.delete_pattern(f"{ALERT_INDEX_KEY_PREFIX}*")
            return self._cache.delete_pattern(f"{ALERT_KEY_PREFIX}*")


def create_valkey_stores(
    cache: ValkeyCache | None = None,
    max_visits_per_store: int = DEFAULT_MAX_VISITS_PER_STORE,
) -> StateStores:
    """Build a complete set of Valkey-backed stores sharing one client."""
    cache = cache or ValkeyCache()
    return StateStores(
        visits=ValkeyVisitStore(cache, max_visits_per_store),
        sessions=ValkeySessionStore(cache),
        visitors=ValkeyVisitorStore(cache),
        alerts=ValkeyAlertStore(cache),
    )
