# ==============================================================================
# VisitGuard CLI
# ==============================================================================
"""
Command-line interface for the visitguard visit ingestion engine.

Usage:
    visitguard --help
    visitguard status
    visitguard config show
    visitguard ingest visits.jsonl --workers 8
    visitguard dashboard shop-1
    visitguard visitors list shop-1
    visitguard visitors show shop-1 <visitor-id>
    visitguard alerts list shop-1 --status new
    visitguard alerts update <alert-id> reviewed
    visitguard activity shop-1
    visitguard data reset -y
"""

import logging
import os

import typer

from visitguard.utils.config import get_settings

# ==============================================================================
# App Configuration
# ==============================================================================
# Set consistent terminal width for help output formatting
if "COLUMNS" not in os.environ:
    os.environ["COLUMNS"] = "115"

app = typer.Typer(
    name="visitguard",
    help="Storefront visit ingestion and risk triage CLI",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


@app.callback()
def configure_logging(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Storefront visit ingestion and risk triage CLI."""
    settings = get_settings()
    level = logging.DEBUG if verbose or settings.debug else settings.log_level.upper()
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    logging.getLogger("urllib3").setLevel(logging.WARNING)


config_app = typer.Typer(
    help="Configuration management",
    no_args_is_help=True,
)
app.add_typer(config_app, name="config")

# Register config commands from cli.config module
from visitguard.cli.config import config_show

config_app.command("show")(config_show)

# Status command is imported from visitguard.cli.status
from visitguard.cli.status import show_status

app.command("status")(show_status)

# Ingest command is imported from visitguard.cli.ingest
from visitguard.cli.ingest import ingest_file

app.command("ingest")(ingest_file)

# Dashboard views are imported from visitguard.cli.dashboard
from visitguard.cli.dashboard import activity_show, dashboard_show, visitors_list, visitors_show

app.command("dashboard")(dashboard_show)
app.command("activity")(activity_show)

visitors_app = typer.Typer(
    help="Visitor profiles",
    no_args_is_help=True,
)
app.add_typer(visitors_app, name="visitors")

visitors_app.command("list")(visitors_list)
visitors_app.command("show")(visitors_show)

alerts_app = typer.Typer(
    help="Alert triage",
    no_args_is_help=True,
)
app.add_typer(alerts_app, name="alerts")

# Register alert commands from cli.alerts module
from visitguard.cli.alerts import alerts_list, alerts_update

alerts_app.command("list")(alerts_list)
alerts_app.command("update")(alerts_update)

data_app = typer.Typer(
    help="Data management operations",
    no_args_is_help=True,
)
app.add_typer(data_app, name="data")

# Register data commands from cli.data module
from visitguard.cli.data import data_reset

data_app.command("reset")(data_reset)


# ==============================================================================
# Entry Point
# ==============================================================================


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
