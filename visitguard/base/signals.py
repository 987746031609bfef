# ==============================================================================
# Signal Provider Abstract Base Class
# ==============================================================================
"""
Abstract interface for the device/network risk signal provider.

A provider is a pure lookup: given the request correlation key sent by the
tracking snippet, it returns the signals the provider already computed for
that request. It keeps no state of its own.

Implementations: FingerprintSignalProvider, StaticSignalProvider,
NullSignalProvider
"""

from abc import ABC, abstractmethod

from visitguard.core.errors import ProviderNotConfigured, SignalLookupError
from visitguard.core.models import SignalBundle


class SignalProvider(ABC):
    """Lookup of precomputed risk signals by request id."""

    name: str = "provider"

    @abstractmethod
    def fetch(self, request_id: str) -> SignalBundle:
        """
        Fetch the signal bundle for a request.

        Args:
            request_id: Correlation key issued by the provider's browser agent

        Returns:
            SignalBundle with the slots the provider reported

        Raises:
            ProviderNotConfigured: If the provider has no credentials
            SignalLookupError: If the lookup failed
        """
        ...

    def close(self) -> None:
        """Release any held resources."""


class NullSignalProvider(SignalProvider):
    """Provider used when no signal source is configured."""

    name = "none"

    def fetch(self, request_id: str) -> SignalBundle:
        raise ProviderNotConfigured("No signal provider configured")


class StaticSignalProvider(SignalProvider):
    """
    Provider backed by an in-memory mapping.

    Used for replaying recorded traffic and in tests. Unknown request ids
    yield ``default`` when given, otherwise a lookup error.
    """

    name = "static"

    def __init__(
        self,
        bundles: dict[str, SignalBundle] | None = None,
        default: SignalBundle | None = None,
    ):
        self._bundles = dict(bundles or {})
        self._default = default

    def add(self, request_id: str, bundle: SignalBundle) -> None:
        self._bundles[request_id] = bundle

    def fetch(self, request_id: str) -> SignalBundle:
        bundle = self._bundles.get(request_id, self._default)
        if bundle is None:
            raise SignalLookupError(f"No signals recorded for request {request_id}")
        return bundle
