# ==============================================================================
# Status Command
# ==============================================================================
"""
Status command for the visitguard CLI.

Displays the state backend and signal provider health in either formatted
box output or JSON format for programmatic consumption.

Includes light retry logic (3 attempts, ~7 seconds) for network resilience
when checking Valkey.
"""

import logging
from typing import Annotated, Any

import redis
import typer

from visitguard.cli.shared import (
    BOX_WIDTH,
    C,
    _box_bottom,
    _box_header,
    _box_line,
    _empty_line,
    _section_header,
    _status_badge,
    print_json,
)
from visitguard.infrastructure.cache.valkey import check_valkey_connection, get_valkey_client
from visitguard.infrastructure.stores.valkey import (
    ALERT_KEY_PREFIX,
    SESSION_KEY_PREFIX,
    VISITOR_KEY_PREFIX,
)
from visitguard.utils.config import Settings, get_settings
from visitguard.utils.retry import REDIS_RETRY_EXCEPTIONS, retry_light

logger = logging.getLogger(__name__)

# Count keys server-side in a single round trip
COUNT_KEYS_SCRIPT = """
local count = 0
local cursor = "0"
repeat
    local result = redis.call("SCAN", cursor, "MATCH", KEYS[1], "COUNT", 10000)
    cursor = result[1]
    count = count + #result[2]
until cursor == "0"
return count
"""


# ==============================================================================
# Data Collection
# ==============================================================================


def _collect_valkey_data(settings: Settings) -> dict[str, Any]:
    """Collect Valkey status data (only meaningful for the valkey backend)."""
    if settings.engine.store_backend != "valkey":
        return {"status": "not_used", "visitors": None, "sessions": None, "alerts": None}

    try:
        return {"status": "connected", **_valkey_stats_with_retry(settings.valkey.url)}
    except (redis.exceptions.RedisError, ConnectionError) as e:
        logger.debug("Valkey status check failed: %s", e)
        return {"status": "unreachable", "visitors": None, "sessions": None, "alerts": None}


@retry_light(REDIS_RETRY_EXCEPTIONS + (ConnectionError,), logger)
def _valkey_stats_with_retry(url: str) -> dict[str, Any]:
    """Connect to Valkey and count engine records."""
    if not check_valkey_connection(url):
        raise ConnectionError("Valkey connection check failed")

    client = get_valkey_client(url)
    try:
        info = client.info("memory")
        memory = info.get("used_memory_human")
        # Normalize memory format
        if memory and memory[-1] in ("K", "M", "G"):
            memory = memory[:-1] + " " + memory[-1] + "B"
        return {
            "visitors": client.eval(COUNT_KEYS_SCRIPT, 1, f"{VISITOR_KEY_PREFIX}*"),
            "sessions": client.eval(COUNT_KEYS_SCRIPT, 1, f"{SESSION_KEY_PREFIX}*"),
            "alerts": client.eval(COUNT_KEYS_SCRIPT, 1, f"{ALERT_KEY_PREFIX}*"),
            "memory": memory,
        }
    finally:
        client.close()


def _collect_provider_data(settings: Settings) -> dict[str, Any]:
    fingerprint = settings.fingerprint
    return {
        "name": "fingerprint" if fingerprint.is_configured else "none",
        "configured": fingerprint.is_configured,
        "region": fingerprint.region,
        "api_base": fingerprint.api_base,
    }


def collect_status(settings: Settings | None = None) -> dict[str, Any]:
    """Collect all status data as a plain dict."""
    settings = settings or get_settings()
    return {
        "backend": settings.engine.store_backend,
        "valkey": _collect_valkey_data(settings),
        "provider": _collect_provider_data(settings),
    }


# ==============================================================================
# Commands
# ==============================================================================


def show_status(
    json_output: Annotated[
        bool, typer.Option("--json", "-j", help="Output as JSON for scripting")
    ] = False,
) -> None:
    """Show state backend and signal provider status.

    Examples:
        visitguard status          # Formatted output
        visitguard status --json   # JSON output for scripting
    """
    status = collect_status()

    if json_output:
        print_json(status)
        return

    W = BOX_WIDTH
    valkey = status["valkey"]
    provider = status["provider"]

    print()
    print(_box_header("VISITGUARD STATUS", W))
    print(_empty_line(W))
    print(_box_line(f"  Backend:    {C.WHITE}{status['backend']}{C.RESET}", W))
    print(_empty_line(W))

    print(_section_header("Valkey", W))
    if valkey["status"] == "not_used":
        print(_box_line(f"  {_status_badge('not used (memory backend)', False, True)}", W))
    elif valkey["status"] == "connected":
        print(_box_line(f"  {_status_badge('connected', True)}", W))
        print(_box_line(f"  Visitors:   {C.WHITE}{valkey['visitors']:,}{C.RESET}", W))
        print(_box_line(f"  Sessions:   {C.WHITE}{valkey['sessions']:,}{C.RESET}", W))
        print(_box_line(f"  Alerts:     {C.WHITE}{valkey['alerts']:,}{C.RESET}", W))
        if valkey.get("memory"):
            print(_box_line(f"  Memory:     {C.WHITE}{valkey['memory']}{C.RESET}", W))
    else:
        print(_box_line(f"  {_status_badge('unreachable', False)}", W))
    print(_empty_line(W))

    print(_section_header("Signal Provider", W))
    if provider["configured"]:
        print(_box_line(f"  {_status_badge('FingerprintJS configured', True)}", W))
        print(_box_line(f"  Region:     {C.WHITE}{provider['region']}{C.RESET}", W))
        print(_box_line(f"  API:        {C.WHITE}{provider['api_base']}{C.RESET}", W))
    else:
        print(_box_line(f"  {_status_badge('not configured (client signals only)', False, True)}", W))
    print(_empty_line(W))
    print(_box_bottom(W))
    print()
