# ==============================================================================
# Base Abstract Classes
# ==============================================================================
"""
Abstract base classes defining the contracts for the ports-and-adapters architecture.

Core logic depends only on these interfaces; concrete adapters live in
infrastructure/.
"""

from visitguard.base.cache import Cache
from visitguard.base.signals import NullSignalProvider, SignalProvider, StaticSignalProvider
from visitguard.base.stores import (
    AlertStore,
    SessionStore,
    StateStores,
    VisitorStore,
    VisitStore,
)

__all__ = [
    "AlertStore",
    "Cache",
    "NullSignalProvider",
    "SessionStore",
    "SignalProvider",
    "StateStores",
    "StaticSignalProvider",
    "VisitorStore",
    "VisitStore",
]
