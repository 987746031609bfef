# ==============================================================================
# Alert Commands
# ==============================================================================
"""
Alert triage commands for the visitguard CLI.

Alerts move new -> reviewed -> dismissed (or straight from new to dismissed).
"""

from typing import Annotated, Optional

import typer

from visitguard.cli.shared import (
    BOX_WIDTH,
    C,
    I,
    _box_bottom,
    _box_header,
    _box_line,
    _empty_line,
    _error,
    _fmt_time,
    _risk_badge,
    _short,
    _status_text,
    get_engine,
    print_json,
)
from visitguard.core.errors import AlertNotFound, InvalidAlertTransition
from visitguard.core.models import Alert, AlertStatus
from visitguard.core.risk_scoring import level_for_score


def _alert_row(alert: Alert) -> str:
    return (
        f"  {C.WHITE}{_short(alert.alert_id, 18):<20}{C.RESET}"
        f"{_short(alert.visitor_id):<14}"
        f"{_risk_badge(level_for_score(alert.risk_score), alert.risk_score)}  "
        f"{_status_text(alert.status)}"
    )


def _fail(message: str, json_output: bool) -> None:
    if json_output:
        print_json({"error": message})
    else:
        _error(message)
    raise typer.Exit(1)


# ==============================================================================
# Commands
# ==============================================================================


def alerts_list(
    store_id: Annotated[str, typer.Argument(help="Store identifier")],
    status: Annotated[
        Optional[AlertStatus], typer.Option("--status", "-s", help="Only alerts in this status")
    ] = None,
    json_output: Annotated[
        bool, typer.Option("--json", "-j", help="Output as JSON for scripting")
    ] = False,
) -> None:
    """List a store's alerts, newest first.

    Examples:
        visitguard alerts list shop-1
        visitguard alerts list shop-1 --status new
    """
    engine = get_engine()
    try:
        alerts = engine.queries.list_alerts(store_id, status=status)
    finally:
        engine.close()

    if json_output:
        print_json([a.model_dump(mode="json") for a in alerts])
        return

    W = BOX_WIDTH
    print()
    print(_box_header(f"ALERTS {store_id}", W))
    print(_empty_line(W))
    if not alerts:
        print(_box_line(f"  {C.DIM}No alerts{C.RESET}", W))
    for alert in alerts:
        print(_box_line(_alert_row(alert), W))
        print(_box_line(f"    {C.DIM}{_fmt_time(alert.created_at)}{C.RESET}", W))
    print(_empty_line(W))
    print(_box_bottom(W))
    print()


def alerts_update(
    alert_id: Annotated[str, typer.Argument(help="Alert identifier")],
    status: Annotated[AlertStatus, typer.Argument(help="New status (reviewed, dismissed)")],
    json_output: Annotated[
        bool, typer.Option("--json", "-j", help="Output as JSON for scripting")
    ] = False,
) -> None:
    """Change an alert's triage status.

    Examples:
        visitguard alerts update alert-1234 reviewed
        visitguard alerts update alert-1234 dismissed
    """
    engine = get_engine()
    try:
        alert = engine.alerts.update_status(alert_id, status)
    except (AlertNotFound, InvalidAlertTransition) as e:
        _fail(str(e), json_output)
    finally:
        engine.close()

    if json_output:
        print_json(alert.model_dump(mode="json"))
        return

    print(
        f"\n{C.BRIGHT_GREEN}{I.CHECK} Alert {C.WHITE}{alert.alert_id}{C.BRIGHT_GREEN} "
        f"is now {alert.status.value}{C.RESET}\n"
    )
