"""Command-line interface for stockbar."""
from __future__ import annotations

import argparse
import asyncio
import dataclasses
import logging
import sys

from .config import ConfigError, load_config
from .holdings import load_holdings
from .logging_setup import configure_logging
from .services import Pipeline

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse CLI parser."""
    parser = argparse.ArgumentParser(
        prog="stockbar",
        description="Print a stock portfolio summary for a menu-bar status plugin",
    )
    parser.add_argument(
        "holdings",
        nargs="?",
        default=None,
        help="Path to a holdings CSV (overrides the config file)",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to config.yaml (default: $STOCKBAR_CONFIG or ~/.stocks/config.yaml)",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level for stderr (default: WARNING)",
    )
    parser.add_argument(
        "--no-cache",
        action="store_true",
        help="Neither read nor write the on-disk quote cache",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    """Entry point. Exits 1 only when configuration cannot be loaded."""
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level)

    try:
        config = load_config(args.config)
        if args.no_cache:
            config = dataclasses.replace(
                config, cache=dataclasses.replace(config.cache, enabled=False)
            )
        holdings = load_holdings(config, args.holdings)
        pipeline = Pipeline(config)
    except ConfigError as e:
        logger.error("Startup failed: %s", e)
        sys.exit(1)

    print(asyncio.run(pipeline.run(holdings)))
