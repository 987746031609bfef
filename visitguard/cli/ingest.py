# ==============================================================================
# Ingest Command
# ==============================================================================
"""
Replay tracking payloads from a JSON-lines file through the ingest path.

Each non-blank line is one payload as the tracking snippet sends it, e.g.:

    {"storeId": "shop-1", "visitorId": "v-1", "requestId": "r-1", "page": "/cart"}
"""

import json
import logging
from pathlib import Path
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
    get_engine,
    print_json,
)
from visitguard.core.ingestion import IngestResult
from visitguard.utils.config import get_settings

logger = logging.getLogger(__name__)


def read_payloads(path: Path) -> list[dict | IngestResult]:
    """
    Read payloads from a JSON-lines file.

    Lines that are not JSON objects are returned as failed IngestResults
    so they keep their position in the output.
    """
    items: list[dict | IngestResult] = []
    with path.open(encoding="utf-8") as f:
        for line_no, line in enumerate(f, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                data = json.loads(line)
            except json.JSONDecodeError as e:
                logger.warning("Line %d is not valid JSON: %s", line_no, e)
                items.append(IngestResult(success=False, error=f"line {line_no}: invalid JSON"))
                continue
            if not isinstance(data, dict):
                items.append(IngestResult(success=False, error=f"line {line_no}: not an object"))
                continue
            items.append(data)
    return items


def summarize(results: list[IngestResult]) -> dict:
    """Aggregate counts over a batch of ingest results."""
    succeeded = [r for r in results if r.success]
    return {
        "total": len(results),
        "succeeded": len(succeeded),
        "failed": len(results) - len(succeeded),
        "new_sessions": sum(1 for r in succeeded if r.is_new_session),
        "alerts": sum(1 for r in succeeded if r.alert_id),
    }


# ==============================================================================
# Commands
# ==============================================================================


def ingest_file(
    file: Annotated[
        Path,
        typer.Argument(exists=True, dir_okay=False, readable=True, help="JSON-lines payload file"),
    ],
    workers: Annotated[
        Optional[int],
        typer.Option("--workers", "-w", min=1, help="Worker threads (default: ENGINE_INGEST_WORKERS)"),
    ] = None,
    json_output: Annotated[
        bool, typer.Option("--json", "-j", help="Output per-visit results as JSON")
    ] = False,
) -> None:
    """Ingest tracking payloads from a JSON-lines file.

    Examples:
        visitguard ingest visits.jsonl
        visitguard ingest visits.jsonl --workers 8 --json
    """
    workers = workers or get_settings().engine.ingest_workers
    items = read_payloads(file)
    payloads = [item for item in items if isinstance(item, dict)]

    engine = get_engine()
    try:
        processed = iter(engine.pipeline.ingest_many(payloads, workers=workers))
    finally:
        engine.close()
    results = [item if isinstance(item, IngestResult) else next(processed) for item in items]
    summary = summarize(results)

    if json_output:
        print_json({"summary": summary, "results": [r.to_dict() for r in results]})
    else:
        W = BOX_WIDTH
        print()
        print(_box_header("INGEST", W))
        print(_empty_line(W))
        print(_box_line(f"  File:         {C.WHITE}{file.name}{C.RESET}", W))
        print(_box_line(f"  Visits:       {C.WHITE}{summary['total']:,}{C.RESET}", W))
        print(_box_line(f"  {C.BRIGHT_GREEN}{I.CHECK}{C.RESET} Ingested:   {summary['succeeded']:,}", W))
        failed_color = C.BRIGHT_RED if summary["failed"] else C.DIM
        print(_box_line(f"  {failed_color}{I.CROSS}{C.RESET} Failed:     {summary['failed']:,}", W))
        print(_box_line(f"  New sessions: {C.WHITE}{summary['new_sessions']:,}{C.RESET}", W))
        alert_color = C.BRIGHT_RED if summary["alerts"] else C.WHITE
        print(_box_line(f"  Alerts:       {alert_color}{summary['alerts']:,}{C.RESET}", W))
        print(_empty_line(W))
        print(_box_bottom(W))
        for result in results:
            if not result.success:
                print(f"  {C.BRIGHT_RED}{I.CROSS}{C.RESET} {result.error}")
        print()

    if summary["total"] and summary["succeeded"] == 0:
        if not json_output:
            _error("No visits were ingested")
        raise typer.Exit(1)
