# ==============================================================================
# FingerprintJS Signal Provider
# ==============================================================================
"""
FingerprintJS Pro Server API client.

Looks up the Smart Signals computed for one identification request and maps
the ``products`` section of the event onto a SignalBundle.

Includes light retry logic (3 attempts, ~7 seconds) for connection errors and
timeouts. Every other failure surfaces as SignalLookupError so the ingest path
can carry on without server signals.

API Documentation: https://dev.fingerprint.com/reference/getevent
"""

import logging
from typing import Any, Optional

import requests

from visitguard.base.signals import SignalProvider
from visitguard.core.errors import ProviderNotConfigured, SignalLookupError
from visitguard.core.models import SignalBundle
from visitguard.utils.config import FingerprintSettings, get_settings
from visitguard.utils.retry import HTTP_RETRY_EXCEPTIONS, retry_light

logger = logging.getLogger(__name__)

AUTH_HEADER = "Auth-API-Key"


# ==============================================================================
# Response Parsing
# ==============================================================================


def _dig(data: Any, *path: str) -> Any:
    """Follow a chain of dict keys, returning None at the first gap."""
    for key in path:
        if not isinstance(data, dict):
            return None
        data = data.get(key)
    return data


def _result(products: dict, product: str) -> Any:
    return _dig(products, product, "data", "result")


def parse_products(products: Optional[dict]) -> SignalBundle:
    """
    Map the ``products`` section of a Server API event to a SignalBundle.

    Products the account has not enabled are simply absent and leave the
    matching slots empty.
    """
    products = products or {}
    return SignalBundle(
        suspect_score=_result(products, "suspectScore"),
        bot_result=_dig(products, "botd", "data", "bot", "result"),
        bot_type=_dig(products, "botd", "data", "bot", "type"),
        vpn=_result(products, "vpn"),
        vpn_confidence=_dig(products, "vpn", "data", "confidence"),
        proxy=_result(products, "proxy"),
        tor=_result(products, "tor"),
        datacenter=_dig(products, "ipInfo", "data", "v4", "datacenter", "result"),
        datacenter_name=_dig(products, "ipInfo", "data", "v4", "datacenter", "name"),
        incognito=_result(products, "incognito"),
        virtual_machine=_result(products, "virtualMachine"),
        tampering=_result(products, "tampering"),
        anti_detect_browser=_dig(products, "tampering", "data", "antiDetectBrowser"),
        tampering_anomaly_score=_dig(products, "tampering", "data", "anomalyScore"),
        cloned_app=_result(products, "clonedApp"),
        emulator=_result(products, "emulator"),
        rooted=_result(products, "rootApps"),
        high_activity=_result(products, "highActivity"),
        daily_requests=_dig(products, "highActivity", "data", "dailyRequests"),
        velocity_events_5m=_dig(products, "velocity", "data", "events", "intervals", "5m"),
    )


# ==============================================================================
# Provider
# ==============================================================================


class FingerprintSignalProvider(SignalProvider):
    """Signal provider backed by the FingerprintJS Server API."""

    name = "fingerprint"

    def __init__(
        self,
        settings: Optional[FingerprintSettings] = None,
        session: Optional[requests.Session] = None,
    ):
        self.settings = settings or get_settings().fingerprint
        self._session = session or requests.Session()

    @property
    def is_configured(self) -> bool:
        return self.settings.is_configured

    def _get_event(self, request_id: str) -> dict:
        """
        Make the HTTP request for one event.

        Raises:
            requests.exceptions.ConnectionError: On connection errors (retryable)
            requests.exceptions.Timeout: On timeout (retryable)
            requests.exceptions.HTTPError: On non-2xx responses
        """
        url = f"{self.settings.api_base}/events/{request_id}"
        headers = {AUTH_HEADER: self.settings.secret_api_key}
        response = self._session.get(url, headers=headers, timeout=self.settings.timeout_seconds)
        response.raise_for_status()
        return response.json()

    @retry_light(HTTP_RETRY_EXCEPTIONS, logger)
    def _get_event_with_retry(self, request_id: str) -> dict:
        return self._get_event(request_id)

    def fetch(self, request_id: str) -> SignalBundle:
        if not self.is_configured:
            raise ProviderNotConfigured("FingerprintJS secret API key not configured")

        try:
            event = self._get_event_with_retry(request_id)
        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            if status in (401, 403):
                raise SignalLookupError(f"FingerprintJS rejected the API key (HTTP {status})") from e
            if status == 404:
                raise SignalLookupError(f"Unknown request id {request_id}") from e
            raise SignalLookupError(f"FingerprintJS lookup failed (HTTP {status})") from e
        except requests.exceptions.Timeout as e:
            raise SignalLookupError(f"FingerprintJS lookup timed out for {request_id}") from e
        except requests.exceptions.RequestException as e:
            raise SignalLookupError(f"FingerprintJS lookup failed: {e}") from e
        except ValueError as e:
            raise SignalLookupError("FingerprintJS returned a malformed response") from e

        if not isinstance(event, dict):
            raise SignalLookupError("FingerprintJS returned a malformed response")

        try:
            bundle = parse_products(event.get("products"))
        except ValueError as e:
            raise SignalLookupError(f"FingerprintJS signals could not be parsed: {e}") from e

        logger.debug(
            "Signals for %s: suspect_score=%s tampering=%s bot=%s",
            request_id,
            bundle.suspect_score,
            bundle.tampering,
            bundle.bot_result,
        )
        return bundle

    def close(self) -> None:
        self._session.close()
