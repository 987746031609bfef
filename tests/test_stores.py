# ==============================================================================
# Tests for State Stores
# ==============================================================================
"""
Contract tests for the store implementations plus backend-specific checks.

Tests cover:
- Visit log ordering, de-duplication and the per-store cap
- Atomic update semantics (before/after, copies)
- Visitor and alert indexes per store
- clear_all
- Valkey key layout (with encoded key parts), WATCH retries and error wrapping
- KeyedLocks bookkeeping
"""

import threading
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest
import redis

from visitguard.core.errors import StorageError
from visitguard.core.models import Alert, RiskAnalysis, RiskLevel, Session, VisitEvent, VisitorProfile
from visitguard.infrastructure.locks import KeyedLocks
from visitguard.infrastructure.stores.memory import InMemoryVisitStore
from visitguard.infrastructure.stores.valkey import (
    ALERT_INDEX_KEY_PREFIX,
    SESSION_KEY_PREFIX,
    VISIT_SEEN_KEY_PREFIX,
    VISITOR_INDEX_KEY_PREFIX,
    VISITOR_KEY_PREFIX,
    VISITS_KEY_PREFIX,
    ValkeySessionStore,
    ValkeyVisitStore,
)

T0 = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


def make_visit(n: int, store_id: str = "shop") -> VisitEvent:
    at = T0 + timedelta(seconds=n)
    return VisitEvent(
        visit_id=VisitEvent.make_id(store_id, "v1", "s1", f"/p{n}", at),
        store_id=store_id,
        visitor_id="v1",
        session_key="s1",
        path=f"/p{n}",
        timestamp=at,
        risk_analysis=RiskAnalysis(score=0, level=RiskLevel.LOW),
    )


def make_alert(alert_id: str, store_id: str = "shop") -> Alert:
    return Alert(
        alert_id=alert_id,
        store_id=store_id,
        visitor_id="v1",
        visit_id=f"visit-{alert_id}",
        risk_score=80,
        created_at=T0,
    )


def make_session(paths=("/",)) -> Session:
    return Session(
        session_key="s1",
        store_id="shop",
        visitor_id="v1",
        paths=list(paths),
        first_activity=T0,
        last_activity=T0,
    )


# ==============================================================================
# Visit log
# ==============================================================================


class TestVisitStore:
    def test_newest_first(self, stores):
        for n in range(3):
            stores.visits.append(make_visit(n))
        assert [v.path for v in stores.visits.recent("shop")] == ["/p2", "/p1", "/p0"]

    def test_limit(self, stores):
        for n in range(3):
            stores.visits.append(make_visit(n))
        assert [v.path for v in stores.visits.recent("shop", limit=1)] == ["/p2"]

    def test_duplicate_ignored(self, stores):
        assert stores.visits.append(make_visit(0)) is True
        assert stores.visits.append(make_visit(0)) is False
        assert len(stores.visits.recent("shop")) == 1

    def test_per_store(self, stores):
        stores.visits.append(make_visit(0, store_id="a"))
        assert stores.visits.recent("b") == []

    def test_roundtrip_preserves_visit(self, stores):
        visit = make_visit(0)
        stores.visits.append(visit)
        assert stores.visits.recent("shop")[0] == visit


class TestVisitCap:
    def test_memory_evicts_oldest(self):
        store = InMemoryVisitStore(max_per_store=3)
        for n in range(5):
            store.append(make_visit(n))
        assert [v.path for v in store.recent("shop")] == ["/p4", "/p3", "/p2"]

    def test_valkey_evicts_oldest(self, fake_cache):
        store = ValkeyVisitStore(fake_cache, max_per_store=3)
        for n in range(5):
            store.append(make_visit(n))
        assert [v.path for v in store.recent("shop")] == ["/p4", "/p3", "/p2"]

    @pytest.mark.parametrize("cap", [0, -1])
    def test_invalid_cap(self, cap, fake_cache):
        with pytest.raises(ValueError):
            InMemoryVisitStore(max_per_store=cap)
        with pytest.raises(ValueError):
            ValkeyVisitStore(fake_cache, max_per_store=cap)


# ==============================================================================
# Atomic updates
# ==============================================================================


class TestAtomicUpdate:
    def test_update_returns_before_and_after(self, stores):
        before, after = stores.sessions.update("s1", lambda s: make_session())
        assert before is None
        assert after.paths == ["/"]

        before, after = stores.sessions.update("s1", lambda s: make_session(s.paths + ["/b"]))
        assert before.paths == ["/"]
        assert after.paths == ["/", "/b"]

    def test_mutator_cannot_corrupt_store(self, stores):
        stores.sessions.update("s1", lambda s: make_session())

        def mutate(session):
            session.paths.append("/leaked")
            raise RuntimeError("mutator failed")

        with pytest.raises(RuntimeError):
            stores.sessions.update("s1", mutate)
        assert stores.sessions.get("s1").paths == ["/"]

    def test_alert_update_missing(self, stores):
        assert stores.alerts.update("nope", lambda a: a) is None


# ==============================================================================
# Indexes
# ==============================================================================


class TestIndexes:
    def test_visitors_listed_per_store(self, stores):
        def seed(store_id, visitor_id):
            return lambda existing: VisitorProfile(
                store_id=store_id, visitor_id=visitor_id, first_seen=T0, last_seen=T0
            )

        stores.visitors.update("a", "v1", seed("a", "v1"))
        stores.visitors.update("a", "v2", seed("a", "v2"))
        stores.visitors.update("b", "v3", seed("b", "v3"))
        stores.visitors.update("a", "v1", seed("a", "v1"))

        assert sorted(p.visitor_id for p in stores.visitors.list_for_store("a")) == ["v1", "v2"]
        assert [p.visitor_id for p in stores.visitors.list_for_store("b")] == ["v3"]

    def test_colon_in_ids_keeps_visitors_apart(self, stores):
        def seed(store_id, visitor_id):
            return lambda existing: VisitorProfile(
                store_id=store_id, visitor_id=visitor_id, first_seen=T0, last_seen=T0
            )

        stores.visitors.update("a:b", "c", seed("a:b", "c"))
        stores.visitors.update("a", "b:c", seed("a", "b:c"))

        assert stores.visitors.get("a:b", "c").store_id == "a:b"
        assert stores.visitors.get("a", "b:c").store_id == "a"
        assert [p.visitor_id for p in stores.visitors.list_for_store("a:b")] == ["c"]
        assert [p.visitor_id for p in stores.visitors.list_for_store("a")] == ["b:c"]

    def test_alert_add_is_idempotent(self, stores):
        assert stores.alerts.add(make_alert("a1")) is True
        assert stores.alerts.add(make_alert("a1")) is False
        assert [a.alert_id for a in stores.alerts.list_for_store("shop")] == ["a1"]

    def test_alerts_newest_first(self, stores):
        for alert_id in ("a1", "a2", "a3"):
            stores.alerts.add(make_alert(alert_id))
        assert [a.alert_id for a in stores.alerts.list_for_store("shop")] == ["a3", "a2", "a1"]


# ==============================================================================
# clear_all
# ==============================================================================


class TestClearAll:
    def test_clears_everything(self, stores):
        stores.visits.append(make_visit(0))
        stores.sessions.update("s1", lambda s: make_session())
        stores.visitors.update(
            "shop",
            "v1",
            lambda p: VisitorProfile(store_id="shop", visitor_id="v1", first_seen=T0, last_seen=T0),
        )
        stores.alerts.add(make_alert("a1"))

        assert stores.clear_all() == 4
        assert stores.visits.recent("shop") == []
        assert stores.sessions.get("s1") is None
        assert stores.visitors.list_for_store("shop") == []
        assert stores.alerts.list_for_store("shop") == []

    def test_visit_can_be_stored_again_after_clear(self, stores):
        stores.visits.append(make_visit(0))
        stores.clear_all()
        assert stores.visits.append(make_visit(0)) is True


# ==============================================================================
# Valkey specifics
# ==============================================================================


class TestValkeyLayout:
    """Key layout and error handling of the Valkey stores."""

    def test_key_layout(self, valkey_stores, fake_redis):
        visit = make_visit(0)
        valkey_stores.visits.append(visit)
        valkey_stores.sessions.update("s1", lambda s: make_session())
        valkey_stores.visitors.update(
            "shop",
            "v1",
            lambda p: VisitorProfile(store_id="shop", visitor_id="v1", first_seen=T0, last_seen=T0),
        )
        valkey_stores.alerts.add(make_alert("a1"))

        assert fake_redis.llen(f"{VISITS_KEY_PREFIX}shop") == 1
        assert fake_redis.exists(f"{VISIT_SEEN_KEY_PREFIX}{visit.visit_id}")
        assert fake_redis.ttl(f"{VISIT_SEEN_KEY_PREFIX}{visit.visit_id}") > 0
        assert fake_redis.exists(f"{SESSION_KEY_PREFIX}s1")
        assert fake_redis.smembers(f"{VISITOR_INDEX_KEY_PREFIX}shop") == {"v1"}
        assert fake_redis.lrange(f"{ALERT_INDEX_KEY_PREFIX}shop", 0, -1) == ["a1"]

    def test_visitor_key_parts_are_encoded(self, valkey_stores, fake_redis):
        valkey_stores.visitors.update(
            "a:b",
            "c/d",
            lambda p: VisitorProfile(store_id="a:b", visitor_id="c/d", first_seen=T0, last_seen=T0),
        )
        assert fake_redis.exists(f"{VISITOR_KEY_PREFIX}a%3Ab:c%2Fd")
        assert fake_redis.smembers(f"{VISITOR_INDEX_KEY_PREFIX}a:b") == {"c/d"}

    def test_clear_leaves_foreign_keys(self, valkey_stores, fake_redis):
        fake_redis.set("other:app:key", "1")
        valkey_stores.visits.append(make_visit(0))
        valkey_stores.clear_all()
        assert fake_redis.get("other:app:key") == "1"

    def test_retries_after_concurrent_write(self, fake_cache, fake_redis):
        """A write to the watched key between read and EXEC forces a retry."""
        store = ValkeySessionStore(fake_cache)
        store.update("s1", lambda s: make_session())
        calls = []

        def mutate(session):
            calls.append(list(session.paths))
            if len(calls) == 1:
                # Simulate another writer committing first
                fake_redis.set(
                    f"{SESSION_KEY_PREFIX}s1", make_session(["/", "/other"]).model_dump_json()
                )
            return make_session(session.paths + ["/mine"])

        _, after = store.update("s1", mutate)
        assert calls == [["/"], ["/", "/other"]]
        assert after.paths == ["/", "/other", "/mine"]

    def test_redis_errors_become_storage_errors(self, valkey_stores, fake_redis):
        with patch.object(fake_redis, "lrange", side_effect=redis.exceptions.ConnectionError("down")):
            with pytest.raises(StorageError):
                valkey_stores.visits.recent("shop")

    def test_failed_append_releases_marker(self, fake_cache, fake_redis):
        store = ValkeyVisitStore(fake_cache)
        visit = make_visit(0)
        with patch.object(fake_redis, "pipeline", side_effect=redis.exceptions.ConnectionError("down")):
            with pytest.raises(StorageError):
                store.append(visit)
        assert not fake_redis.exists(f"{VISIT_SEEN_KEY_PREFIX}{visit.visit_id}")
        assert store.append(visit) is True


# ==============================================================================
# KeyedLocks
# ==============================================================================


class TestKeyedLocks:
    def test_entries_dropped_after_use(self):
        locks = KeyedLocks()
        with locks.hold("a"):
            assert len(locks) == 1
        assert len(locks) == 0

    def test_same_key_serializes(self):
        locks = KeyedLocks()
        inside = threading.Event()
        release = threading.Event()
        order = []

        def first():
            with locks.hold("k"):
                inside.set()
                release.wait(timeout=5)
                order.append("first")

        def second():
            inside.wait(timeout=5)
            with locks.hold("k"):
                order.append("second")

        threads = [threading.Thread(target=first), threading.Thread(target=second)]
        for t in threads:
            t.start()
        inside.wait(timeout=5)
        release.set()
        for t in threads:
            t.join(timeout=5)
        assert order == ["first", "second"]

    def test_different_keys_do_not_block(self):
        locks = KeyedLocks()
        with locks.hold("a"):
            acquired = threading.Event()

            def other():
                with locks.hold("b"):
                    acquired.set()

            t = threading.Thread(target=other)
            t.start()
            assert acquired.wait(timeout=5)
            t.join(timeout=5)
