# ==============================================================================
# Engine Assembly
# ==============================================================================
"""
Factory functions that wire the engine from configuration.

The state backend is selected by ENGINE_STORE_BACKEND ("memory" or "valkey"),
the signal provider by whether FINGERPRINT_SECRET_API_KEY is set.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from visitguard.base.signals import NullSignalProvider, SignalProvider
from visitguard.base.stores import StateStores
from visitguard.core.alert_manager import AlertManager
from visitguard.core.ingestion import IngestionPipeline
from visitguard.core.queries import QueryService
from visitguard.core.risk_scoring import RiskScorer
from visitguard.core.session_tracker import SessionTracker
from visitguard.core.visitor_aggregator import VisitorAggregator
from visitguard.utils.config import Settings, get_settings

logger = logging.getLogger(__name__)


@dataclass
class Engine:
    """A fully wired engine: ingest path plus dashboard surface."""

    stores: StateStores
    provider: SignalProvider
    pipeline: IngestionPipeline
    alerts: AlertManager
    queries: QueryService

    def close(self) -> None:
        self.provider.close()


def get_stores(settings: Optional[Settings] = None) -> StateStores:
    """
    Build the state stores for the configured backend.

    Raises:
        ValueError: If an unknown backend is configured
    """
    settings = settings or get_settings()
    backend = settings.engine.store_backend
    max_visits = settings.engine.max_visits_per_store

    match backend:
        case "memory":
            from visitguard.infrastructure.stores.memory import create_memory_stores

            return create_memory_stores(max_visits)
        case "valkey":
            from visitguard.infrastructure.cache.valkey import ValkeyCache
            from visitguard.infrastructure.stores.valkey import create_valkey_stores

            return create_valkey_stores(ValkeyCache(url=settings.valkey.url), max_visits)
        case _:
            raise ValueError(
                f"Unknown store backend: '{backend}'.\nValid options are: memory, valkey"
            )


def get_signal_provider(settings: Optional[Settings] = None) -> SignalProvider:
    """Build the signal provider, or a null provider when none is configured."""
    settings = settings or get_settings()
    if not settings.fingerprint.is_configured:
        logger.info("No signal provider configured, visits will be scored from client signals")
        return NullSignalProvider()

    from visitguard.infrastructure.signals.fingerprint import FingerprintSignalProvider

    return FingerprintSignalProvider(settings.fingerprint)


def build_engine(
    settings: Optional[Settings] = None,
    stores: Optional[StateStores] = None,
    provider: Optional[SignalProvider] = None,
) -> Engine:
    """
    Assemble an Engine.

    Args:
        settings: Settings to build from (default: cached settings)
        stores: Pre-built stores, overriding the configured backend
        provider: Pre-built signal provider, overriding the configured one

    Returns:
        Engine sharing one set of stores between ingest and queries
    """
    settings = settings or get_settings()
    stores = stores if stores is not None else get_stores(settings)
    provider = provider if provider is not None else get_signal_provider(settings)

    alerts = AlertManager(stores.alerts)
    pipeline = IngestionPipeline(
        provider=provider,
        scorer=RiskScorer(),
        visits=stores.visits,
        sessions=SessionTracker(stores.sessions),
        visitors=VisitorAggregator(stores.visitors),
        alerts=alerts,
    )
    return Engine(
        stores=stores,
        provider=provider,
        pipeline=pipeline,
        alerts=alerts,
        queries=QueryService(stores),
    )
