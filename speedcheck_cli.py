#!/usr/bin/env python3
"""
speedcheck CLI -- measure download, upload, ping and jitter.

Usage::

    speedcheck                         # rich output, single connection
    speedcheck --multi                 # 4 parallel connections
    speedcheck --simple                # plain text
    speedcheck --json                  # JSON to stdout
    speedcheck -o result.json          # save to file
    speedcheck --csv log.csv           # append CSV row
    speedcheck --history               # show stored results
    speedcheck --delete ID             # remove a stored result
    speedcheck --repeat 5 --interval 60
"""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import random
import sys
import time
from typing import Any, Dict, Optional

from speedcheck.api import IpMetadata, lookup_ip_metadata
from speedcheck.config import endpoints_from_config, load_config, resolve_log_level
from speedcheck.errors import ResultNotFound, StorageError
from speedcheck.history import ResultStore
from speedcheck.logging_config import configure_logging
from speedcheck.models import MeasurementResult
from speedcheck.service import MeasurementService
from ui.dashboard import console, print_client_info, print_header, print_history, print_result
from ui.output import append_csv, create_result_json, format_text_result, save_json

logger = logging.getLogger("speedcheck.cli")


# ---------------------------------------------------------------------------
# Parameter validation
# ---------------------------------------------------------------------------

def _validate(repeat: int, interval: float) -> None:
    """Raise ``ValueError`` if any parameter is out of range."""
    if repeat < 1:
        raise ValueError("--repeat must be >= 1")
    if interval < 0:
        raise ValueError("--interval must be >= 0")


# ---------------------------------------------------------------------------
# Core runner
# ---------------------------------------------------------------------------

def build_service(config: Dict[str, Any], seed: Optional[int] = None) -> MeasurementService:
    store = ResultStore(config.get("history_file") or None)
    return MeasurementService(
        store,
        endpoints=endpoints_from_config(config),
        rng=random.Random(seed),
    )


async def run_once(
    service: MeasurementService,
    *,
    owner: str,
    multi_connection: bool = False,
    ip_lookup: bool = True,
    json_output: bool = False,
    simple: bool = False,
    output_file: Optional[str] = None,
    csv_file: Optional[str] = None,
) -> MeasurementResult:
    """Measure once, persist, and render in the requested format."""
    show_ui = not json_output and not simple

    if show_ui:
        print_header()

    meta = await lookup_ip_metadata() if ip_lookup else IpMetadata()
    if show_ui and ip_lookup:
        print_client_info(meta)

    if show_ui:
        mode = "multi-connection" if multi_connection else "single-connection"
        with console.status(f"[bold]Measuring ({mode})...[/bold]"):
            result = await service.run_measurement(owner, meta, multi_connection)
        print_result(result)
    else:
        result = await service.run_measurement(owner, meta, multi_connection)

    if json_output:
        print(json.dumps(create_result_json(result), indent=2))
    elif simple:
        print(format_text_result(result))

    if output_file:
        save_json(create_result_json(result), output_file)
        if show_ui:
            console.print(f"[green]Results saved to:[/green] {output_file}")

    if csv_file:
        append_csv(csv_file, result)
        if show_ui:
            console.print(f"[green]CSV row appended to:[/green] {csv_file}")

    return result


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="speedcheck -- network speed measurement with fallback strategies",
    )
    # Output modes
    parser.add_argument("--json", "-j", action="store_true", help="Output results as JSON")
    parser.add_argument("--output", "-o", type=str, metavar="FILE", help="Save results to JSON file")
    parser.add_argument("--csv", type=str, metavar="FILE", help="Append results as CSV row")
    parser.add_argument("--simple", "-s", action="store_true", help="Plain text output")

    # Measurement
    parser.add_argument("--multi", action="store_true", default=None, help="Use 4 parallel connections")
    parser.add_argument("--owner", type=str, metavar="ID", help="Owner id stamped on the result")
    parser.add_argument("--seed", type=int, metavar="N", help="Seed for synthesized fallback values")
    parser.add_argument("--no-lookup", action="store_true", help="Skip the ISP / IP lookup")

    # Repeat mode
    parser.add_argument("--repeat", type=int, default=1, metavar="N", help="Run the test N times (default: 1)")
    parser.add_argument("--interval", type=float, default=60.0, metavar="SECS", help="Seconds between repeated tests (default: 60)")

    # History
    parser.add_argument("--history", action="store_true", help="Show stored results and exit")
    parser.add_argument("--delete", type=str, metavar="ID", help="Delete a stored result and exit")

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        type=str.upper,
        help="Log verbosity (default: $SPEEDCHECK_LOG_LEVEL or config)",
    )
    return parser


def main(argv: Optional[list] = None) -> int:
    args = build_parser().parse_args(argv)
    config = load_config()
    configure_logging(resolve_log_level(args.log_level, config))

    owner = args.owner or config.get("owner") or "local"
    multi = args.multi if args.multi is not None else bool(config.get("multi_connection"))
    csv_file = args.csv or config.get("csv_file") or None

    try:
        _validate(args.repeat, args.interval)
    except ValueError as exc:
        console.print(f"[red]Error: {exc}[/red]")
        return 1

    service = build_service(config, seed=args.seed)

    try:
        if args.history:
            print_history(service.history(owner))
            return 0

        if args.delete:
            service.delete(args.delete, owner)
            console.print(f"[green]Deleted result[/green] {args.delete}")
            return 0

        for run_idx in range(args.repeat):
            if args.repeat > 1 and not args.json:
                console.print(f"\n[bold cyan]--- Run {run_idx + 1}/{args.repeat} ---[/bold cyan]")

            asyncio.run(
                run_once(
                    service,
                    owner=owner,
                    multi_connection=multi,
                    ip_lookup=not args.no_lookup and bool(config.get("ip_lookup", True)),
                    json_output=args.json,
                    simple=args.simple,
                    output_file=args.output,
                    csv_file=csv_file,
                )
            )

            # Wait between runs (but not after the last one)
            if run_idx < args.repeat - 1:
                if not args.json:
                    console.print(f"[dim]Next run in {args.interval:.0f}s...[/dim]")
                time.sleep(args.interval)

    except ResultNotFound as exc:
        console.print(f"[red]Error: no result {exc} for owner {owner}[/red]")
        return 1
    except (StorageError, IOError) as exc:
        logger.error("Storage failure: %s", exc)
        console.print(f"[red]Error: {exc}[/red]")
        return 1
    except KeyboardInterrupt:
        console.print("\n[yellow]Test cancelled by user[/yellow]")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
