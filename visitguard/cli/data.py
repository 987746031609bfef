# ==============================================================================
# Data Commands
# ==============================================================================
"""
Data management commands for the visitguard CLI.
"""

from typing import Annotated

import typer

from visitguard.cli.shared import C, I, _error, get_engine
from visitguard.core.errors import StorageError
from visitguard.utils.config import get_settings


# ==============================================================================
# Commands
# ==============================================================================


def data_reset(
    confirm: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation prompt")] = False,
) -> None:
    """Delete all visits, sessions, visitor profiles and alerts.

    Only engine keys are removed; other data in the same Valkey database is
    left alone.

    Examples:
        visitguard data reset       # With confirmation prompt
        visitguard data reset -y    # Skip confirmation
    """
    backend = get_settings().engine.store_backend

    if not confirm:
        print()
        typer.confirm(
            f"This will DELETE all engine data from the {backend} backend. Are you sure?",
            abort=True,
        )

    print()
    print(f"  Clearing {C.WHITE}{backend}{C.RESET} state...")
    engine = get_engine()
    try:
        deleted = engine.stores.clear_all()
    except StorageError as e:
        _error(f"Failed to reset data: {e}")
        raise typer.Exit(1)
    finally:
        engine.close()

    print(f"{C.BRIGHT_GREEN}{I.CHECK} Deleted {C.WHITE}{deleted:,}{C.BRIGHT_GREEN} records{C.RESET}")
    print()
