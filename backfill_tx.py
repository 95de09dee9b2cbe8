#!/usr/bin/env python3
"""
Command-line entry point for Arweave Backfill.

Runs the whole recovery for a transaction (``fix``) or any single stage of
it on its own: bundle status lookup, chunk fetch, chunk re-upload and
availability polling.
"""

import sys
import json
import logging
import argparse

from backfill.config import load_config, validate_config
from backfill.errors import (
    BackfillError,
    UsageError,
    NetworkFailure,
    IncompleteAssembly,
)
from backfill.peers import normalize_peer
from backfill.pipeline import BackfillPipeline
from backfill.progress import ProgressLog

EXIT_OK = 0
EXIT_USAGE = 1
EXIT_NETWORK = 2
EXIT_INCOMPLETE = 3
EXIT_ERROR = 4

logger = logging.getLogger(__name__)


def _stdout(message: str) -> None:
    print(message, flush=True)


def _stderr(message: str) -> None:
    print(message, file=sys.stderr, flush=True)


def _peer_list(value: str):
    peers = [p.strip() for p in value.split(',') if p.strip()]
    invalid = [p for p in peers if normalize_peer(p) is None]
    if invalid:
        raise argparse.ArgumentTypeError(f"invalid peer(s): {', '.join(invalid)}")
    return peers


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected an integer, got '{value}'")
    if number <= 0:
        raise argparse.ArgumentTypeError("must be greater than 0")
    return number


def _positive_float(value: str) -> float:
    try:
        number = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected a number, got '{value}'")
    if number < 0:
        raise argparse.ArgumentTypeError("cannot be negative")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Recover Irys-bundled transactions that never reached Arweave",
        epilog="""
Examples:
  python backfill_tx.py fix <txid>                        # Full recovery
  python backfill_tx.py check <txid>                      # Where is the bundle?
  python backfill_tx.py fetch <txid> out.bin --discover   # Rebuild bytes from the chunk store
  python backfill_tx.py reupload <txid> --file out.bin    # Re-post chunks
  python backfill_tx.py poll <txid> --interval 5          # Wait until served
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    parser.add_argument("--config", help="Path to settings.ini (default: repository root)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Show per-peer diagnostics")

    subparsers = parser.add_subparsers(dest="command")
    subparsers.required = True

    fix = subparsers.add_parser("fix", help="Check, fetch, reupload and poll a transaction")
    fix.add_argument("txid", help="Transaction id")

    check = subparsers.add_parser("check", help="Report where a transaction's bundle lives")
    check.add_argument("txid", help="Transaction id")

    fetch = subparsers.add_parser("fetch", help="Assemble a transaction's bytes from peers")
    fetch.add_argument("txid", help="Transaction id")
    fetch.add_argument("outfile", nargs="?", help="Output path (default: <artifact_dir>/<txid>.bin)")
    fetch.add_argument("--peers", type=_peer_list, default=[], help="Comma-separated extra peers")
    fetch.add_argument("--max-peers", type=_positive_int, help="Maximum peers in the pool")
    fetch.add_argument("--timeout", type=_positive_float, help="Per-request timeout in seconds")
    fetch.add_argument("--discover", action="store_true", help="Crawl /peers to widen the pool")

    reupload = subparsers.add_parser("reupload", help="Re-post a fetched transaction's chunks")
    reupload.add_argument("txid", help="Transaction id")
    reupload.add_argument("--file", dest="artifact_path", help="Artifact path (default: <artifact_dir>/<txid>.bin)")

    poll = subparsers.add_parser("poll", help="Wait until a transaction is served by the gateway")
    poll.add_argument("txid", help="Transaction id")
    poll.add_argument("--interval", type=_positive_float, help="Seconds between probes")
    poll.add_argument("--max-attempts", type=_positive_int, help="Number of probes before giving up")

    return parser


def run_command(args, pipeline: BackfillPipeline) -> int:
    """Dispatch one parsed command; returns the process exit code."""
    if args.command == "fix":
        result = pipeline.fix(args.txid)
        _stdout(f"DONE: {json.dumps(result)}")
    elif args.command == "check":
        status = pipeline.check(args.txid)
        _stdout(json.dumps(status.to_dict()))
    elif args.command == "fetch":
        if args.max_peers:
            pipeline.config.max_peers = args.max_peers
        payload = pipeline.fetch(
            args.txid,
            extra_peers=args.peers,
            outfile=args.outfile,
            timeout=args.timeout,
            discover=True if args.discover else None,
        )
        _stdout(f"Saved {payload.size} bytes to {payload.path}")
    elif args.command == "reupload":
        report = pipeline.reupload(args.txid, artifact_path=args.artifact_path)
        _stdout(report.summary())
    elif args.command == "poll":
        pipeline.poll(args.txid, interval=args.interval, max_attempts=args.max_attempts)
        _stdout(f"{args.txid} is available")
    return EXIT_OK


def exit_code_for(error: Exception) -> int:
    if isinstance(error, UsageError):
        return EXIT_USAGE
    if isinstance(error, NetworkFailure):
        return EXIT_NETWORK
    if isinstance(error, IncompleteAssembly):
        return EXIT_INCOMPLETE
    return EXIT_ERROR


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    config = load_config(args.config)
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        stream=sys.stderr,
    )

    problems = validate_config(config)
    if problems:
        for problem in problems:
            _stderr(f"Configuration error: {problem}")
        return EXIT_USAGE

    # Progress already goes to the terminal; keep it out of the root handler.
    progress_logger = logging.getLogger("backfill.cli")
    if not progress_logger.handlers:
        progress_logger.addHandler(logging.NullHandler())
    progress_logger.propagate = False
    progress = ProgressLog(writer=_stdout, error_writer=_stderr, verbose=args.verbose,
                           logger=progress_logger)
    pipeline = BackfillPipeline(config, progress=progress)

    try:
        return run_command(args, pipeline)
    except NetworkFailure as e:
        _stderr(f"Error: {e}")
        for line in e.describe_causes():
            _stderr(f"  {line}")
        return EXIT_NETWORK
    except BackfillError as e:
        _stderr(f"Error: {e}")
        return exit_code_for(e)
    except KeyboardInterrupt:
        _stderr("Interrupted")
        return EXIT_ERROR
    except Exception as e:
        logger.exception(f"Unexpected error running {args.command}")
        _stderr(f"Error: {e}")
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
