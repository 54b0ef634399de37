#!/usr/bin/env python3
"""Command-line interface for the event discovery pipeline.

Commands:
  - discover : Run a discovery job across locations and sources
  - validate : Validate a JSON file of canonical events (no writes)
  - plan     : Show sources, locations and chunking without fetching

Typical usage:
  python -m src.cli discover --locations "New York" Chicago --max-events 50
  python -m src.cli validate --input events.json
  python -m src.cli plan
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from datetime import date
from pathlib import Path
from typing import Any

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from src.configs.config import load_ingestion_config
from src.configs.settings import get_settings
from src.ingestion.errors import ConfigurationError
from src.ingestion.monitoring import LoggingOptions, setup_logging
from src.ingestion.orchestrator import load_orchestrator_from_config
from src.ingestion.quality import QualityGate
from src.ingestion.utils import chunk_list
from src.schemas.event import CanonicalEvent


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="discover", description="Event Discovery CLI")
    sub = p.add_subparsers(dest="cmd")

    # discover
    pd = sub.add_parser("discover", help="Run a discovery job")
    pd.add_argument("--config", "-c", default=None, help="Path to ingestion YAML")
    pd.add_argument("--sources", nargs="*", default=None, help="Use only these source_ids")
    pd.add_argument("--locations", nargs="*", default=None, help="City names to process")
    pd.add_argument("--categories", nargs="*", default=None, help="Category filter")
    pd.add_argument("--start-date", type=date.fromisoformat, default=None)
    pd.add_argument("--end-date", type=date.fromisoformat, default=None)
    pd.add_argument("--max-events", type=int, default=None, help="Max events per source")
    pd.add_argument("--job-id", default=None, help="Override job id (useful for reruns)")
    pd.add_argument("--json-logs", action="store_true", help="Emit JSON logs")
    pd.add_argument("--log-level", default=None, help="Override LOG_LEVEL")

    # validate
    pv = sub.add_parser("validate", help="Validate a JSON array of canonical events")
    pv.add_argument("--input", "-i", required=True, help="Path to events JSON")

    # plan
    pp = sub.add_parser("plan", help="Show the discovery plan without running")
    pp.add_argument("--config", "-c", default=None, help="Path to ingestion YAML")

    return p.parse_args(argv)


def _read_json(path: str) -> Any:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"File not found: {path}")
    return json.loads(p.read_text(encoding="utf-8"))


def main(argv: list[str] | None = None) -> int:
    """Run the CLI with the given arguments."""
    try:
        return _main_impl(argv)
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except json.JSONDecodeError as e:
        print(f"Error: Invalid JSON input: {e}", file=sys.stderr)
        return 1
    except ConfigurationError as e:
        print(f"Configuration error: {e.message}", file=sys.stderr)
        return 1


def _main_impl(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    if not args.cmd:
        print("Error: Command required. Use --help for usage info.", file=sys.stderr)
        return 1

    if args.cmd == "plan":
        return _cmd_plan(args)
    if args.cmd == "validate":
        return _cmd_validate(args)
    if args.cmd == "discover":
        return _cmd_discover(args)

    print(f"Error: Unknown command {args.cmd}", file=sys.stderr)
    return 1


def _cmd_plan(args: argparse.Namespace) -> int:
    cfg = load_ingestion_config(args.config)
    chunks = chunk_list(cfg.active_locations, cfg.orchestrator.location_concurrency)

    print(f"{'SOURCE ID':<20} {'ADAPTER':<10} {'ENABLED'}")
    print("-" * 40)
    for source in cfg.sources:
        print(f"{source.source_id:<20} {source.adapter:<10} {source.enabled}")

    print()
    print(
        f"{len(cfg.active_locations)} locations, "
        f"{cfg.orchestrator.location_concurrency} at a time:"
    )
    for index, chunk in enumerate(chunks, start=1):
        print(f"  chunk {index}: {', '.join(loc.name for loc in chunk)}")
    print(f"target events: {cfg.orchestrator.target_events}")
    return 0


def _cmd_validate(args: argparse.Namespace) -> int:
    raw = _read_json(args.input)
    if not isinstance(raw, list):
        raw = [raw]

    try:
        events = TypeAdapter(list[CanonicalEvent]).validate_python(raw)
    except PydanticValidationError as e:
        print(f"Error: Input is not a list of events: {e}", file=sys.stderr)
        return 1

    report = QualityGate().validate_batch(events)
    print(json.dumps(report.model_dump(mode="json"), indent=2, ensure_ascii=False))
    return 0 if report.valid_events == report.total_events else 2


def _cmd_discover(args: argparse.Namespace) -> int:
    settings = get_settings()
    setup_logging(
        LoggingOptions(
            level=args.log_level or settings.LOG_LEVEL,
            json_logs=args.json_logs or settings.JSON_LOGS,
        )
    )

    date_range = None
    if args.start_date or args.end_date:
        if not (args.start_date and args.end_date):
            print("Error: --start-date and --end-date go together", file=sys.stderr)
            return 1
        date_range = (args.start_date, args.end_date)

    orchestrator = load_orchestrator_from_config(args.config, settings=settings)

    async def _run():
        try:
            return await orchestrator.run_discovery(
                sources=args.sources,
                locations=args.locations,
                categories=args.categories,
                date_range=date_range,
                max_events_per_source=args.max_events,
                job_id=args.job_id,
            )
        finally:
            await orchestrator.close()

    report = asyncio.run(_run())

    summary = report.summary
    print(f"Job {report.job_id}: {summary.total_events} events")
    print(
        f"  locations: {summary.successful_locations} ok, "
        f"{summary.failed_locations} failed"
    )
    print(f"  events/minute: {report.performance.events_per_minute}")
    print(f"  target achieved: {summary.target_achieved}")
    for error in report.errors:
        print(f"  error: {error}")
    for warning in report.quality_warnings:
        print(f"  warning: {warning}")

    return 0 if summary.failed_locations == 0 else 2


if __name__ == "__main__":
    sys.exit(main())
