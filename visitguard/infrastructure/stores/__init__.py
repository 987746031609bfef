# ==============================================================================
# State Store Infrastructure
# ==============================================================================
"""
State store implementations.

Available implementations:
- In-memory stores guarded by per-key locks (single process)
- Valkey stores using optimistic WATCH/MULTI transactions (shared state)
"""

from visitguard.infrastructure.stores.memory import (
    InMemoryAlertStore,
    InMemorySessionStore,
    InMemoryVisitorStore,
    InMemoryVisitStore,
    create_memory_stores,
)
from visitguard.infrastructure.stores.valkey import (
    ValkeyAlertStore,
    ValkeySessionStore,
    ValkeyVisitorStore,
    ValkeyVisitStore,
    create_valkey_stores,
)

__all__ = [
    "InMemoryAlertStore",
    "InMemorySessionStore",
    "InMemoryVisitorStore",
    "InMemoryVisitStore",
    "create_memory_stores",
    "ValkeyAlertStore",
    "ValkeySessionStore",
    "ValkeyVisitorStore",
    "ValkeyVisitStore",
    "create_valkey_stores",
]
