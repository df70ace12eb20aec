"""Main entry point with CLI."""
import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

from bcexport.config import config, Config
from bcexport.logging_conf import setup_logging
from bcexport.fetch.bandcamp import BandcampSource
from bcexport.fetch.client import FetchClient
from bcexport.jobs.session import ScrapeSession
from bcexport.parse.models import PurchaseRow, ScrapeProgress
from bcexport.store.cache import RowCache
from bcexport.store.export import write_export

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Bandcamp collection exporter")

    parser.add_argument(
        "--cookie",
        default=None,
        help="Bandcamp cookie (default: SESSION_COOKIE from the environment)",
    )
    parser.add_argument(
        "--format",
        choices=["csv", "json"],
        default="csv",
        help="Export format (default: csv)",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Output file (default: data/exports/bandcamp-purchases-<date>.<format>)",
    )
    parser.add_argument(
        "--no-hidden",
        action="store_true",
        help="Skip hidden items",
    )
    parser.add_argument(
        "--page-size",
        type=int,
        default=None,
        help=f"Items per API page (default: {config.PAGE_SIZE})",
    )
    parser.add_argument(
        "--max-pages",
        type=int,
        default=None,
        help=f"Safety bound on pages per pass (default: {config.MAX_PAGES})",
    )
    parser.add_argument(
        "--no-cache",
        action="store_true",
        help="Don't save rows to the local cache",
    )
    parser.add_argument(
        "--reset",
        action="store_true",
        help="Clear cached rows and exit",
    )
    parser.add_argument(
        "--dev",
        action="store_true",
        help="Verbose logs",
    )
    parser.add_argument(
        "--serve",
        action="store_true",
        help="Run the HTTP API for the browser UI instead of exporting",
    )
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8000)

    return parser.parse_args(argv)


def log_batch(rows: list[PurchaseRow], progress: ScrapeProgress) -> None:
    logger.debug(
        f"{progress.status}: {len(rows)} rows, "
        f"{progress.items_fetched} items, {progress.pages_fetched} pages"
    )


async def run_export(args: argparse.Namespace, cookie: str) -> int:
    """Scrape and write the export. Returns a process exit code."""
    cache = None if args.no_cache else RowCache()
    async with FetchClient() as client:
        session = ScrapeSession(
            BandcampSource(client),
            cache=cache,
            page_size=args.page_size,
            max_pages=args.max_pages,
            include_hidden=not args.no_hidden,
        )
        progress = await session.start_scrape(cookie, on_batch=log_batch)

    if progress.status == "error":
        logger.error(f"Scrape failed: {progress.error}")
        if session.rows:
            logger.warning(f"Exporting {len(session.rows)} rows gathered before the failure")
        else:
            return 1

    path = await write_export(session.rows, args.format, args.output)
    logger.info("=" * 60)
    logger.info(f"Rows: {len(session.rows)}")
    logger.info(f"Items fetched: {progress.items_fetched}")
    logger.info(f"Pages fetched: {progress.pages_fetched}")
    logger.info(f"Export: {path}")
    logger.info("=" * 60)
    return 0 if progress.status == "completed" else 1


def main(argv: Optional[list[str]] = None) -> None:
    """Main entry point."""
    args = parse_args(argv)
    setup_logging("DEBUG" if args.dev else None)

    if args.serve:
        import uvicorn
        from bcexport.api.main import app

        uvicorn.run(app, host=args.host, port=args.port)
        return

    if args.reset:
        asyncio.run(RowCache().clear())
        logger.info("Cache cleared")
        return

    cookie = args.cookie or config.SESSION_COOKIE
    try:
        Config.validate(require_cookie=not cookie)
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)

    try:
        sys.exit(asyncio.run(run_export(args, cookie)))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(1)
    except OSError as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
