"""Command-line host for the activity roster cache."""

import argparse
import asyncio
import json
import sys

from pydantic import ValidationError

from activity_roster.adapters.config import AppConfig
from activity_roster.adapters.recovery import TIMEOUT_COUNTER, JsonFileCounterStore
from activity_roster.domain.models import ErrorKind


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="activity-roster",
        description="Optimistic activity roster cache",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Join and leave an activity against the in-memory service
  activity-roster demo

  # Watch a rollback: every join attempt is rejected
  activity-roster demo --fail-join validation

  # Watch a forced reload: every join attempt times out
  activity-roster demo --fail-join timeout

  # Join and leave an activity on a running resource service
  activity-roster session futsal-night --url http://localhost:8080/api

  # Inspect or reset the durable timeout counter
  activity-roster counter show --file .roster-counters.json
  activity-roster counter reset --file .roster-counters.json
        """,
    )
    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    demo_parser = subparsers.add_parser("demo", help="Run a join/leave session in memory")
    demo_parser.add_argument("--actor", default="alice", help="Actor to sign in as")
    demo_parser.add_argument(
        "--latency", type=float, default=0.05, help="Simulated latency per remote call (seconds)"
    )
    demo_parser.add_argument(
        "--fail-join",
        choices=[kind.value for kind in ErrorKind],
        help="Make every join attempt fail with this error kind",
    )

    session_parser = subparsers.add_parser(
        "session", help="Run a join/leave session against the HTTP resource service"
    )
    session_parser.add_argument("resource", help="Resource to join and leave")
    session_parser.add_argument("--actor", default="alice", help="Actor to sign in as")
    session_parser.add_argument("--url", help="Service base URL (defaults to API_BASE_URL)")

    counter_parser = subparsers.add_parser("counter", help="Durable timeout counter")
    counter_subparsers = counter_parser.add_subparsers(dest="counter_command")
    for name, help_text in (("show", "Show the counter"), ("reset", "Reset the counter")):
        sub = counter_subparsers.add_parser(name, help=help_text)
        sub.add_argument("--file", help="Counter file (defaults to COUNTER_FILE)")
        if name == "show":
            sub.add_argument("--json", action="store_true", help="Output as JSON")

    return parser


def _counter_store(config: AppConfig, path: str | None) -> JsonFileCounterStore:
    path = path or config.counter_file
    if not path:
        print(
            "No counter file configured. Pass --file or set COUNTER_FILE.", file=sys.stderr
        )
        sys.exit(1)
    return JsonFileCounterStore(path)


def show_counter(config: AppConfig, path: str | None, as_json: bool = False) -> None:
    """Print the durable timeout counter."""
    store = _counter_store(config, path)
    count = store.get(TIMEOUT_COUNTER)
    if as_json:
        payload = {
            "file": str(store.path),
            "consecutive_timeouts": count,
            "threshold": config.corruption_threshold,
        }
        print(json.dumps(payload, indent=2))
        return
    print(f"Counter file: {store.path}")
    print(f"Consecutive timeouts: {count}/{config.corruption_threshold}")


def reset_counter(config: AppConfig, path: str | None) -> None:
    """Clear the durable timeout counter."""
    store = _counter_store(config, path)
    store.clear()
    print(f"Reset counters in {store.path}")


def main(argv: list[str] | None = None) -> None:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    try:
        overrides = {"api_base_url": args.url} if getattr(args, "url", None) else {}
        config = AppConfig(**overrides)
    except (ValidationError, FileNotFoundError) as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        sys.exit(1)

    try:
        if args.command == "demo":
            from activity_roster.main import run_demo

            fail_join = ErrorKind(args.fail_join) if args.fail_join else None
            exit_code = asyncio.run(
                run_demo(
                    config,
                    actor_id=args.actor,
                    latency_seconds=args.latency,
                    fail_join=fail_join,
                )
            )
            if exit_code:
                sys.exit(exit_code)

        elif args.command == "session":
            from activity_roster.main import run_remote_session

            exit_code = asyncio.run(run_remote_session(config, args.resource, actor_id=args.actor))
            if exit_code:
                sys.exit(exit_code)

        elif args.command == "counter":
            if args.counter_command == "show":
                show_counter(config, args.file, as_json=args.json)
            elif args.counter_command == "reset":
                reset_counter(config, args.file)
            else:
                parser.parse_args(["counter", "--help"])

    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
