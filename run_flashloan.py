#!/usr/bin/env python3
"""
Flash-loan cross-DEX arbitrage bot.

Polls every configured DEX subgraph on a timer, rescans on every price
pushed by a DEX WebSocket feed, and executes profitable gaps with a
flash loan after re-checking prices.

Usage:
  # Scan only (no PRIVATE_KEY set)
  python run_flashloan.py --config configs/flashloan.yaml

  # Estimate gas but never submit
  python run_flashloan.py --config configs/flashloan.yaml --dry-run

  # Single cycle and exit
  python run_flashloan.py --once

Environment Variables:
  RPC_URL / INFURA_OR_NODE_URL: HTTP(S) node endpoint
  PRIVATE_KEY: Signing key (required to execute)
  TOKEN_ADDRESS: Token to watch and borrow
  PAIR_ID: Subgraph pair id (defaults to TOKEN_ADDRESS)
  INFURA_PROJECT_ID: Substituted into ${INFURA_PROJECT_ID} in stream URLs
  <SOURCE>_QUERY_URL / <SOURCE>_STREAM_URL: Per-source endpoint overrides
"""

import argparse
import asyncio
import dataclasses
import signal
import sys

import aiohttp
from dotenv import load_dotenv

import logging_config
from dex.config import load_config
from dex.runner import build_runner
from flash_arbitrage.exceptions import ConfigurationError
from flash_arbitrage.metrics import get_metrics
from flash_arbitrage.utils import get_logger
from flash_arbitrage.version import get_version

logger = get_logger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Flash-loan cross-DEX arbitrage bot",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )

    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {get_version()}"
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to config YAML file (default: environment variables only)",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single scan cycle and exit",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Estimate gas for confirmed trades but never submit",
    )
    parser.add_argument(
        "--no-feeds",
        action="store_true",
        help="Disable WebSocket price feeds (timer-driven scans only)",
    )

    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument("--debug", action="store_true", help="Verbose logging")
    verbosity.add_argument(
        "--quiet", action="store_true", help="Only log warnings and errors"
    )

    return parser.parse_args(argv)


async def run(args: argparse.Namespace) -> int:
    config = load_config(args.config)
    if args.dry_run:
        config = dataclasses.replace(config, dry_run=True)

    metrics = None
    if config.metrics_port is not None:
        metrics = get_metrics()
        await metrics.start_server(port=config.metrics_port)

    try:
        async with aiohttp.ClientSession() as session:
            runner = build_runner(
                config, session, metrics=metrics, enable_feeds=not args.no_feeds
            )

            loop = asyncio.get_running_loop()
            for sig in (signal.SIGINT, signal.SIGTERM):
                try:
                    loop.add_signal_handler(sig, runner.stop)
                except NotImplementedError:
                    # Windows: fall back to KeyboardInterrupt
                    pass

            await runner.run(once=args.once)
    finally:
        if metrics is not None:
            await metrics.stop_server()

    return 0


def main(argv=None) -> int:
    """
    Main entry point.

    Returns:
        Exit code (0 for success, 1 for error)
    """
    args = parse_args(argv)
    load_dotenv()

    if args.debug:
        logging_config.setup_debug()
    elif args.quiet:
        logging_config.setup_minimal()
    else:
        logging_config.setup()

    try:
        return asyncio.run(run(args))
    except ConfigurationError as e:
        print(f"❌ Config error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\n\n⏸ Stopped by user")
        return 0


if __name__ == "__main__":
    sys.exit(main())
