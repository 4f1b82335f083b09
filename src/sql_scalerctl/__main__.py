#!/usr/bin/env python3
"""
sql-scalerctl: Scaling decision engine for Cloud SQL instances

CLI interface for processing scaling requests produced by a metric poller and
inspecting the persisted scaling state.
"""

import argparse
import json
import sys

from .counters import ScalerCounters
from .db import DatabaseRegistry
from .log import setup_logging
from .models import ScalingState, StateKey
from .orchestrator import build_orchestrator, build_state_store, handle_scaling_request
from .settings import Settings


def _read_requests(path: str | None) -> list[dict]:
    if path and path != "-":
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    else:
        data = json.load(sys.stdin)
    return data if isinstance(data, list) else [data]


def _print_state(key: StateKey, state: ScalingState) -> None:
    print(f"State for {key.doc_path} (stored in {key.state_project_id}):")
    print("-" * 40)
    for name, value in state.to_dict().items():
        print(f"  {name}: {value}")


def main():
    parser = argparse.ArgumentParser(
        prog="sql-scalerctl",
        description="Scaling decision engine for Cloud SQL instances",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Common arguments
    common_parser = argparse.ArgumentParser(add_help=False)
    common_parser.add_argument(
        "--verbose",
        "-v",
        action="count",
        default=0,
        help="Enable verbose logging (-v for debug, -vv for trace)",
    )
    common_parser.add_argument(
        "--state-database-url",
        type=str,
        help="PostgreSQL connection URL for scaling state "
        "(defaults to STATE_DATABASE_URL env var)",
    )

    # scale command
    scale_parser = subparsers.add_parser(
        "scale",
        parents=[common_parser],
        help="Process scaling requests from a JSON file or stdin",
    )
    scale_parser.add_argument(
        "payload",
        nargs="?",
        help="JSON file with one request object or a list of them (default: stdin)",
    )

    # show-state command
    show_parser = subparsers.add_parser(
        "show-state",
        parents=[common_parser],
        help="Print the scaling state of an instance",
    )
    show_parser.add_argument("--project-id", required=True)
    show_parser.add_argument("--instance-id", required=True)
    show_parser.add_argument(
        "--state-project-id",
        help="Project holding the state (defaults to --project-id)",
    )

    # ensure-tables command
    ensure_parser = subparsers.add_parser(
        "ensure-tables",
        parents=[common_parser],
        help="Create the scaling state table if it doesn't exist",
    )
    ensure_parser.add_argument(
        "--state-project-id",
        required=True,
        help="Storage account whose database should hold the table",
    )

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    setup_logging(verbose=args.verbose)

    settings = Settings.from_env()
    if args.state_database_url:
        settings.state_database_url = args.state_database_url
    if not settings.state_database_url:
        print(
            "Error: STATE_DATABASE_URL environment variable or --state-database-url "
            "required",
            file=sys.stderr,
        )
        sys.exit(1)

    registry = DatabaseRegistry(settings.database_url_for)
    store = build_state_store(settings, registry)

    try:
        if args.command == "scale":
            counters = ScalerCounters(settings.pushgateway_url, settings.counters_job)
            orchestrator = build_orchestrator(settings, counters)
            results = [
                handle_scaling_request(
                    payload, orchestrator, lambda _config: store, counters
                )
                for payload in _read_requests(args.payload)
            ]
            if not all(results):
                sys.exit(1)
        elif args.command == "show-state":
            key = StateKey(
                state_project_id=args.state_project_id or args.project_id,
                project_id=args.project_id,
                instance_id=args.instance_id,
            )
            _print_state(key, store.get(key))
        elif args.command == "ensure-tables":
            registry.get(args.state_project_id).ensure_state_table(settings.state_table)
            print(f"Table {settings.state_table} ensured.")
    except KeyboardInterrupt:
        print("\nInterrupted by user", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    finally:
        registry.close_all()


if __name__ == "__main__":
    main()
