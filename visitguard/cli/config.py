# ==============================================================================
# Config Commands
# ==============================================================================
"""
Configuration commands for the visitguard CLI.
"""

from typing import Annotated

import typer

from visitguard.cli.shared import C, print_json
from visitguard.utils.config import get_settings


def _mask(secret: str | None) -> str:
    if not secret:
        return "(not set)"
    return f"{secret[:4]}{'*' * 8}"


# ==============================================================================
# Commands
# ==============================================================================


def config_show(
    json_output: Annotated[
        bool, typer.Option("--json", "-j", help="Output configuration as JSON")
    ] = False,
) -> None:
    """Display current configuration (includes secrets in JSON mode)."""
    settings = get_settings()

    # JSON output mode
    if json_output:
        config = {
            "engine": settings.engine.model_dump(),
            "valkey": {
                "host": settings.valkey.host,
                "port": settings.valkey.port,
                "db": settings.valkey.db,
                "ssl_enabled": settings.valkey.ssl,
                "password": settings.valkey.password,
            },
            "fingerprint": {
                "configured": settings.fingerprint.is_configured,
                "region": settings.fingerprint.region,
                "api_base": settings.fingerprint.api_base,
                "secret_api_key": settings.fingerprint.secret_api_key,
                "timeout_seconds": settings.fingerprint.timeout_seconds,
            },
            "log_level": settings.log_level,
            "debug": settings.debug,
        }
        print_json(config)
        return

    # Human-readable output
    engine = settings.engine
    print()
    print(f"{C.BOLD}Configuration{C.RESET}")
    print()

    print(f"{C.CYAN}Engine{C.RESET}")
    print(f"  Backend:    {C.WHITE}{engine.store_backend}{C.RESET}")
    print(f"  Visit log:  {C.WHITE}{engine.max_visits_per_store} per store{C.RESET}")
    print(f"  Workers:    {C.WHITE}{engine.ingest_workers}{C.RESET}")
    print(f"  Detail:     {C.WHITE}{engine.visitor_detail_visits} visits{C.RESET}")
    print(f"  Activity:   {C.WHITE}{engine.activity_limit} visits{C.RESET}")
    print()

    print(f"{C.CYAN}Valkey{C.RESET}")
    print(f"  Host:       {C.WHITE}{settings.valkey.host}{C.RESET}")
    print(f"  Port:       {C.WHITE}{settings.valkey.port}{C.RESET}")
    print(f"  Database:   {C.WHITE}{settings.valkey.db}{C.RESET}")
    valkey_ssl = "enabled" if settings.valkey.ssl else "disabled"
    print(f"  SSL:        {C.WHITE}{valkey_ssl}{C.RESET}")
    print()

    print(f"{C.CYAN}FingerprintJS{C.RESET}")
    print(f"  Region:     {C.WHITE}{settings.fingerprint.region}{C.RESET}")
    print(f"  API:        {C.WHITE}{settings.fingerprint.api_base}{C.RESET}")
    print(f"  Secret key: {C.WHITE}{_mask(settings.fingerprint.secret_api_key)}{C.RESET}")
    print(f"  Timeout:    {C.WHITE}{settings.fingerprint.timeout_seconds}s{C.RESET}")
    print()

    print(f"{C.CYAN}Logging{C.RESET}")
    print(f"  Level:      {C.WHITE}{settings.log_level}{C.RESET}")
    print()
