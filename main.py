# main.py

"""Entry point for the shopmate headless product search."""

import argparse
import asyncio
import dataclasses
import logging
import sys

from src.config.logging_config import setup_logging
from src.config.settings import PipelineConfig, Settings

logger = logging.getLogger("shopmate.main")


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the CLI."""
    stores = ", ".join(s["label"] for s in Settings.DIRECT_SOURCES)

    parser = argparse.ArgumentParser(
        prog="shopmate",
        description="Multi-store product search with AI ranking.",
        epilog=f"Direct stores: {stores}",
    )
    parser.add_argument("query", help="Search query.")
    parser.add_argument(
        "-f",
        "--format",
        choices=["json", "table"],
        default="json",
        dest="output_format",
        help="Output format (default: json).",
    )
    parser.add_argument(
        "--no-direct",
        action="store_true",
        default=False,
        dest="no_direct",
        help="Skip the direct store scrapers.",
    )
    parser.add_argument(
        "--no-serpapi",
        action="store_true",
        default=False,
        dest="no_serpapi",
        help="Skip broad-market search through SerpAPI.",
    )
    return parser


def _build_config(args: argparse.Namespace) -> PipelineConfig:
    """Load config from the environment and apply CLI overrides."""
    config = PipelineConfig.from_env()
    overrides: dict[str, bool] = {}
    if args.no_direct:
        overrides["use_direct_scrapers"] = False
    if args.no_serpapi:
        overrides["use_serpapi"] = False
    if overrides:
        config = dataclasses.replace(config, **overrides)

    for warning in config.warnings():
        logger.warning(warning)
    return config


def main() -> None:
    """Parse arguments, run one search, and exit with its status."""
    log_file = setup_logging()
    logger.info("shopmate starting, log file: %s", log_file)

    parser = _build_parser()
    args = parser.parse_args()
    config = _build_config(args)

    from src.cli.runner import cli_search

    try:
        exit_code = asyncio.run(
            cli_search(
                query=args.query,
                output_format=args.output_format,
                config=config,
            )
        )
    except Exception:
        logger.critical("Fatal error during search", exc_info=True)
        raise
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
