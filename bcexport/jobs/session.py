"""Scrape session: owns rows and progress for one interactive user."""
import logging
from typing import Optional

from bcexport.auth.identity import IdentityResolver
from bcexport.errors import ApiError, AuthError
from bcexport.fetch.bandcamp import BandcampSource
from bcexport.jobs.harvester import BatchSink, CollectionHarvester
from bcexport.parse.models import PurchaseRow, ResolvedIdentity, ScrapeProgress
from bcexport.store.cache import RowCache

logger = logging.getLogger(__name__)


class ScrapeSession:
    """
    Session-scoped state behind the UI: latest rows, progress and identity.
    Rows are replaced wholesale by each scrape and cleared by reset().
    """

    def __init__(
        self,
        source: BandcampSource,
        cache: Optional[RowCache] = None,
        page_size: Optional[int] = None,
        max_pages: Optional[int] = None,
        include_hidden: bool = True,
    ):
        self.source = source
        self.cache = cache
        self.resolver = IdentityResolver(source)
        self.harvester = CollectionHarvester(
            source,
            page_size=page_size,
            max_pages=max_pages,
            include_hidden=include_hidden,
        )
        self.rows: list[PurchaseRow] = []
        self.progress = ScrapeProgress()
        self.identity: Optional[ResolvedIdentity] = None

    async def load_cached(self) -> bool:
        """Load cached rows eagerly; a non-empty cache counts as completed."""
        if self.cache is None:
            return False
        rows = await self.cache.load_rows()
        if not rows:
            return False
        self.rows = rows
        self.progress = ScrapeProgress(status="completed", items_fetched=len(rows))
        logger.info(f"Loaded {len(rows)} cached rows")
        return True

    async def start_scrape(
        self, raw_cookie: str, on_batch: Optional[BatchSink] = None
    ) -> ScrapeProgress:
        """Resolve the cookie and harvest; always ends completed or error."""
        self.rows = []
        self.identity = None
        self.progress = ScrapeProgress(status="scraping")

        def publish(rows: list[PurchaseRow], progress: ScrapeProgress) -> None:
            self.rows = rows
            self.progress = progress
            if on_batch is not None:
                on_batch(rows, progress)

        try:
            self.identity = await self.resolver.resolve(raw_cookie)
        except AuthError as e:
            logger.error(f"Authentication failed: {e}")
            return self._fail(e.user_message(), on_batch)
        except ApiError as e:
            logger.error(f"Identity check failed: {e}")
            return self._fail(str(e), on_batch)

        try:
            progress = await self.harvester.harvest(self.identity, on_batch=publish)
        except Exception as e:
            logger.error(f"Scrape aborted: {e}", exc_info=True)
            self.rows = list(self.harvester.rows)
            return self._fail(f"Unexpected error: {e}", on_batch)
        self.rows = list(self.harvester.rows)
        self.progress = progress

        # Rows from a failed scrape are partial; only a full collection is cached
        if self.cache is not None and self.rows and progress.status == "completed":
            await self.cache.save_rows(self.rows)
        return progress

    async def reset(self) -> None:
        """Forget rows, progress and the cache. No network traffic."""
        self.rows = []
        self.identity = None
        self.progress = ScrapeProgress()
        if self.cache is not None:
            await self.cache.clear()
        logger.info("Session reset")

    def _fail(self, message: str, on_batch: Optional[BatchSink]) -> ScrapeProgress:
        self.progress = ScrapeProgress(status="error", error=message)
        if on_batch is not None:
            on_batch(list(self.rows), self.progress.model_copy())
        return self.progress.model_copy()
