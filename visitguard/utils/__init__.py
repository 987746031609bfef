# ==============================================================================
# VisitGuard Utilities
# ==============================================================================
"""
Shared utilities: configuration and retry policies.
"""

from visitguard.utils.config import (
    EngineSettings,
    FingerprintSettings,
    Settings,
    ValkeySettings,
    get_settings,
)
from visitguard.utils.retry import (
    HTTP_RETRY_EXCEPTIONS,
    REDIS_RETRY_EXCEPTIONS,
    retry_light,
)

__all__ = [
    # Config
    "EngineSettings",
    "FingerprintSettings",
    "Settings",
    "ValkeySettings",
    "get_settings",
    # Retry
    "HTTP_RETRY_EXCEPTIONS",
    "REDIS_RETRY_EXCEPTIONS",
    "retry_light",
]
