"""Command-line interface for orgpipe.

Runs the provider data pipeline locally and exposes its building blocks.

Usage:
    orgpipe run
    orgpipe run --provider provider.json --output-dir out --format json
    orgpipe flatten payload.json --quoting csv
    orgpipe definition --resource-prefix arn:aws:lambda:us-west-2:123456789012:function:
"""

import argparse
import asyncio
import json
import logging
import sys
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Optional

from orgpipe import __version__
from orgpipe.config import load_settings
from orgpipe.events import FanOutEventSink, LoggingEventSink, MemoryEventSink
from orgpipe.flatten import QUOTING_MODES, to_csv
from orgpipe.pipeline.definition import (
    DEFAULT_COMMENT,
    RetryPolicy,
    build_definition,
    function_resources,
)
from orgpipe.pipeline.orchestrator import Orchestrator

logger = logging.getLogger(__name__)

_executor = ThreadPoolExecutor(max_workers=1)

DEFAULT_RESOURCE_PREFIX = "arn:aws:lambda:${AWS::Region}:${AWS::AccountId}:function:"


def create_parser() -> argparse.ArgumentParser:
    """Create the CLI argument parser.

    Returns:
        Configured ArgumentParser with all commands and arguments.
    """
    parser = argparse.ArgumentParser(
        prog="orgpipe",
        description="orgpipe — provider data pipeline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  orgpipe run
  orgpipe run --provider provider.json --format json
  orgpipe flatten payload.json
  orgpipe definition --resource-prefix arn:aws:lambda:us-west-2:123456789012:function:
        """,
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # run command
    run_parser = subparsers.add_parser(
        "run",
        help="Run the whole pipeline locally",
        description="Load the provider, resolve its secret, fetch every org and write the results",
    )
    run_parser.add_argument(
        "--input",
        type=Path,
        default=None,
        help="JSON file used as the execution input (a provider record)",
    )
    run_parser.add_argument(
        "--provider",
        type=Path,
        default=None,
        help="Provider config JSON file (default: PROVIDER_CONFIG_PATH or the sample)",
    )
    run_parser.add_argument(
        "--output-dir",
        type=Path,
        default=None,
        help="Directory for the local object store (default: ./data)",
    )
    run_parser.add_argument(
        "--store",
        type=str,
        choices=["local", "s3"],
        default=None,
        help="Object store backend (default: from settings)",
    )
    run_parser.add_argument(
        "--concurrency",
        type=int,
        default=None,
        help="Max concurrent org fetches (default: 10)",
    )
    run_parser.add_argument(
        "--format",
        type=str,
        choices=["text", "json"],
        default="text",
        help="Output format (default: text)",
    )

    # flatten command
    flatten_parser = subparsers.add_parser(
        "flatten",
        help="Print the one-row CSV form of a JSON payload",
    )
    flatten_parser.add_argument(
        "file",
        type=Path,
        help="JSON file to flatten",
    )
    flatten_parser.add_argument(
        "--quoting",
        type=str,
        choices=list(QUOTING_MODES),
        default="none",
        help="CSV quoting mode (default: none)",
    )

    # definition command
    definition_parser = subparsers.add_parser(
        "definition",
        help="Print the Step Functions state machine definition",
    )
    definition_parser.add_argument(
        "--resource-prefix",
        type=str,
        default=DEFAULT_RESOURCE_PREFIX,
        help="Prefix joined to each function name to form its Resource ARN",
    )

    # version command
    subparsers.add_parser(
        "version",
        help="Show version information",
    )

    return parser


def _run_async(coro):
    """Run an async coroutine from synchronous CLI context.

    Spins up a new event loop in a dedicated thread to avoid conflicts
    with any existing event loop.
    """
    def _target():
        loop = asyncio.new_event_loop()
        try:
            return loop.run_until_complete(coro)
        finally:
            loop.close()

    future = _executor.submit(_target)
    return future.result()


def _read_json(path: Path) -> Any:
    return json.loads(path.read_text(encoding="utf-8"))


def cmd_run(args: argparse.Namespace) -> int:
    """Execute the run command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    try:
        overrides: dict[str, Any] = {}
        if args.provider is not None:
            overrides["provider_config_path"] = str(args.provider)
        if args.output_dir is not None:
            overrides["output_dir"] = str(args.output_dir)
        if args.store is not None:
            overrides["store_backend"] = args.store
        if args.concurrency is not None:
            overrides["fanout_concurrency"] = args.concurrency
        settings = load_settings(**overrides)

        execution_input = _read_json(args.input) if args.input else None

        logger.info(
            "Running pipeline (store=%s, concurrency=%d)",
            settings.store_backend, settings.fanout_concurrency,
        )
        recorded = MemoryEventSink()
        events = FanOutEventSink(LoggingEventSink(), recorded)
        orchestrator = Orchestrator.from_settings(settings, events=events)
        result = _run_async(orchestrator.run(execution_input))

        if args.format == "json":
            print(json.dumps(result.to_dict(), indent=2, default=str))
        elif result.succeeded:
            output = result.output
            print(f"{result.status}: {output['processedCount']} records written to {output['location']}")
            for key in output["keys"]:
                print(f"  {key}")
            failed_attempts = recorded.names().count("stage.failed")
            if failed_attempts:
                print(f"({failed_attempts} failed attempts were retried)")
        else:
            error = result.error or {}
            print(
                f"{result.status} in {result.failed_state}: "
                f"{error.get('errorType')}: {error.get('message')}"
            )

        return 0 if result.succeeded else 1

    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        return 130
    except Exception as e:
        logger.error("Pipeline run failed: %s", e, exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_flatten(args: argparse.Namespace) -> int:
    """Execute the flatten command."""
    try:
        print(to_csv(_read_json(args.file), quoting=args.quoting))
        return 0
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_definition(args: argparse.Namespace) -> int:
    """Execute the definition command."""
    settings = load_settings()
    definition = build_definition(
        function_resources(args.resource_prefix),
        retry=RetryPolicy.from_settings(settings),
        max_concurrency=settings.fanout_concurrency,
        comment=f"{settings.state_machine_name}: {DEFAULT_COMMENT}",
    )
    print(json.dumps(definition, indent=2))
    return 0


def cmd_version(args: argparse.Namespace) -> int:
    """Execute the version command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success)
    """
    print(f"orgpipe v{__version__}")
    print("Provider data pipeline")
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    """Main CLI entry point.

    Args:
        argv: Command-line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    parser = create_parser()
    args = parser.parse_args(argv)

    # Route to command handler
    if args.command == "run":
        return cmd_run(args)
    elif args.command == "flatten":
        return cmd_flatten(args)
    elif args.command == "definition":
        return cmd_definition(args)
    elif args.command == "version":
        return cmd_version(args)
    else:
        # No command specified
        parser.print_help()
        return 0


def cli_entry() -> None:
    """Console script entry point for setuptools."""
    sys.exit(main())


if __name__ == "__main__":
    cli_entry()
