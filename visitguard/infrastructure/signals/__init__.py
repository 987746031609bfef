# ==============================================================================
# Signal Provider Infrastructure
# ==============================================================================
"""
Signal provider implementations.

Available implementations:
- FingerprintSignalProvider: FingerprintJS Pro Server API lookups
"""

from visitguard.infrastructure.signals.fingerprint import (
    FingerprintSignalProvider,
    parse_products,
)

__all__ = [
    "FingerprintSignalProvider",
    "parse_products",
]
