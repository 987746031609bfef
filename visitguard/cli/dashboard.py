# ==============================================================================
# Dashboard Commands
# ==============================================================================
"""
Read-only dashboard views for the visitguard CLI.

Commands:
- dashboard STORE: headline numbers, top threats and recent visitors
- visitors list STORE: visitors ranked by highest risk score
- visitors show STORE VISITOR: one visitor's profile and recent visits
- activity STORE: the most recent visits
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
    _section_header,
    _short,
    get_engine,
    print_json,
)
from visitguard.core.errors import VisitorNotFound
from visitguard.core.models import RiskFactor, VisitEvent, VisitorProfile
from visitguard.core.queries import DEFAULT_PAGE_SIZE
from visitguard.utils.config import get_settings

StoreArg = Annotated[str, typer.Argument(help="Store identifier")]
JsonOpt = Annotated[bool, typer.Option("--json", "-j", help="Output as JSON for scripting")]


# ==============================================================================
# Row Formatting
# ==============================================================================


def _visitor_row(profile: VisitorProfile) -> str:
    return (
        f"  {C.WHITE}{_short(profile.visitor_id):<14}{C.RESET}"
        f"{_risk_badge(profile.risk_level, profile.highest_risk_score):<10}  "
        f"{profile.session_count:>3} sess  {len(profile.pages_visited):>3} pages  "
        f"{C.DIM}{_fmt_time(profile.last_seen)}{C.RESET}"
    )


def _visit_row(visit: VisitEvent) -> str:
    analysis = visit.risk_analysis
    return (
        f"  {C.DIM}{_fmt_time(visit.timestamp)}{C.RESET}  "
        f"{C.WHITE}{_short(visit.visitor_id):<14}{C.RESET}"
        f"{_risk_badge(analysis.level, analysis.score)}  {_short(visit.path, 16)}"
    )


def _factor_row(factor: RiskFactor) -> str:
    return f"  {I.BULLET} {_risk_badge(factor.severity)} {factor.signal}: {factor.detail}"


def _print_rows(rows: list[str], empty: str, width: int) -> None:
    if not rows:
        print(_box_line(f"  {C.DIM}{empty}{C.RESET}", width))
    for row in rows:
        print(_box_line(row, width))


# ==============================================================================
# Commands
# ==============================================================================


def dashboard_show(store_id: StoreArg, json_output: JsonOpt = False) -> None:
    """Show the dashboard summary for a store.

    Examples:
        visitguard dashboard shop-1
        visitguard dashboard shop-1 --json
    """
    engine = get_engine()
    try:
        summary = engine.queries.dashboard_summary(store_id)
    finally:
        engine.close()

    if json_output:
        print_json(summary.model_dump(mode="json"))
        return

    W = BOX_WIDTH
    print()
    print(_box_header(f"DASHBOARD {store_id}", W))
    print(_empty_line(W))
    print(_box_line(f"  Visitors:          {C.WHITE}{summary.total_visitors:,}{C.RESET}", W))
    print(_box_line(f"  Visits today:      {C.WHITE}{summary.visits_today:,}{C.RESET}", W))
    critical_color = C.BRIGHT_RED if summary.critical_threats else C.WHITE
    print(_box_line(f"  Critical threats:  {critical_color}{summary.critical_threats:,}{C.RESET}", W))
    print(_box_line(f"  High-risk:         {C.WHITE}{summary.high_risk_visitors:,}{C.RESET}", W))
    alert_color = C.BRIGHT_RED if summary.new_alerts else C.WHITE
    print(_box_line(f"  New alerts:        {alert_color}{summary.new_alerts:,}{C.RESET}", W))
    print(_empty_line(W))

    print(_section_header("Top Threats", W))
    _print_rows([_visitor_row(p) for p in summary.top_threats], "No threats detected", W)
    print(_empty_line(W))

    print(_section_header("Recent Visitors", W))
    _print_rows([_visitor_row(p) for p in summary.recent_visitors], "No visitors yet", W)
    print(_empty_line(W))
    print(_box_bottom(W))
    print()


def visitors_list(
    store_id: StoreArg,
    limit: Annotated[int, typer.Option("--limit", "-n", min=1, help="Page size")] = DEFAULT_PAGE_SIZE,
    offset: Annotated[int, typer.Option("--offset", min=0, help="Visitors to skip")] = 0,
    json_output: JsonOpt = False,
) -> None:
    """List a store's visitors, highest risk first."""
    engine = get_engine()
    try:
        visitors = engine.queries.list_visitors(store_id, limit=limit, offset=offset)
    finally:
        engine.close()

    if json_output:
        print_json([p.model_dump(mode="json") for p in visitors])
        return

    W = BOX_WIDTH
    print()
    print(_box_header(f"VISITORS {store_id}", W))
    print(_empty_line(W))
    _print_rows([_visitor_row(p) for p in visitors], "No visitors", W)
    print(_empty_line(W))
    print(_box_bottom(W))
    print()


def visitors_show(
    store_id: StoreArg,
    visitor_id: Annotated[str, typer.Argument(help="Visitor identifier")],
    visits: Annotated[
        Optional[int],
        typer.Option("--visits", min=1, help="Recent visits to show (default: ENGINE_VISITOR_DETAIL_VISITS)"),
    ] = None,
    json_output: JsonOpt = False,
) -> None:
    """Show one visitor's profile and recent visits."""
    visit_limit = visits or get_settings().engine.visitor_detail_visits
    engine = get_engine()
    try:
        detail = engine.queries.visitor_detail(store_id, visitor_id, visit_limit=visit_limit)
    except VisitorNotFound as e:
        if json_output:
            print_json({"error": str(e)})
        else:
            _error(str(e))
        raise typer.Exit(1)
    finally:
        engine.close()

    if json_output:
        print_json(detail.model_dump(mode="json"))
        return

    profile = detail.profile
    W = BOX_WIDTH
    print()
    print(_box_header(f"VISITOR {_short(visitor_id)}", W))
    print(_empty_line(W))
    print(_box_line(f"  Risk:        {_risk_badge(profile.risk_level, profile.highest_risk_score)}", W))
    print(_box_line(f"  Sessions:    {C.WHITE}{profile.session_count}{C.RESET}", W))
    print(_box_line(f"  Pages:       {C.WHITE}{len(profile.pages_visited)}{C.RESET}", W))
    print(_box_line(f"  First seen:  {C.WHITE}{_fmt_time(profile.first_seen)}{C.RESET}", W))
    print(_box_line(f"  Last seen:   {C.WHITE}{_fmt_time(profile.last_seen)}{C.RESET}", W))
    print(_empty_line(W))

    print(_section_header("Risk Factors", W))
    _print_rows([_factor_row(f) for f in profile.risk_factors], "No risk factors", W)
    print(_empty_line(W))

    print(_section_header("Recent Visits", W))
    _print_rows([_visit_row(v) for v in detail.visits], "No visits in the recent window", W)
    print(_empty_line(W))
    print(_box_bottom(W))
    print()


def activity_show(
    store_id: StoreArg,
    limit: Annotated[
        Optional[int],
        typer.Option("--limit", "-n", min=1, help="Visits to show (default: ENGINE_ACTIVITY_LIMIT)"),
    ] = None,
    json_output: JsonOpt = False,
) -> None:
    """Show the most recent visits for a store."""
    limit = limit or get_settings().engine.activity_limit
    engine = get_engine()
    try:
        visits = engine.queries.recent_activity(store_id, limit=limit)
    finally:
        engine.close()

    if json_output:
        print_json([v.model_dump(mode="json") for v in visits])
        return

    W = BOX_WIDTH
    print()
    print(_box_header(f"ACTIVITY {store_id}", W))
    print(_empty_line(W))
    _print_rows([_visit_row(v) for v in visits], "No recent activity", W)
    print(_empty_line(W))
    print(_box_bottom(W))
    print()
