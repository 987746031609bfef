# ==============================================================================
# Infrastructure Adapters
# ==============================================================================
"""
Adapters for external services (ports-and-adapters architecture).

This module contains concrete implementations of the base/ interfaces:
- cache/ - Cache adapters (Valkey/Redis)
- signals/ - Signal provider adapters (FingerprintJS)
- stores/ - State stores (in-memory, Valkey)
- locks.py - Per-key locks for the in-memory stores
"""

from visitguard.infrastructure.cache import ValkeyCache, check_valkey_connection
from visitguard.infrastructure.locks import KeyedLocks
from visitguard.infrastructure.signals import FingerprintSignalProvider
from visitguard.infrastructure.stores import create_memory_stores, create_valkey_stores

__all__ = [
    "FingerprintSignalProvider",
    "KeyedLocks",
    "ValkeyCache",
    "check_valkey_connection",
    "create_memory_stores",
    "create_valkey_stores",
]
