"""Collection harvester: paginates the visible and hidden item sources."""
import logging
from typing import Callable, Optional

from bcexport.config import config
from bcexport.errors import ApiError
from bcexport.fetch.bandcamp import BandcampSource
from bcexport.parse.collection import extract_collection_page
from bcexport.parse.models import ItemsPage, PurchaseRow, ResolvedIdentity, ScrapeProgress
from bcexport.parse.normalize import dedupe_rows, normalize_item

logger = logging.getLogger(__name__)

# Upstream tokens look like "<unix ts>:<item id>:<type code>::"; a timestamp
# no purchase can reach asks for the newest page, as Bandcamp's own UI does.
FAR_FUTURE_TIMESTAMP = 9999999999
MOST_RECENT_TOKEN = f"{FAR_FUTURE_TIMESTAMP}::a::"

BatchSink = Callable[[list[PurchaseRow], ScrapeProgress], None]


class CollectionHarvester:
    """
    Runs the visible pass, then the hidden pass, one request at a time.

    Rows are normalized, deduplicated and published to the sink after every
    page. A failure of the visible pass ends the scrape with status "error";
    the hidden pass is best effort.
    """

    def __init__(
        self,
        source: BandcampSource,
        page_size: Optional[int] = None,
        max_pages: Optional[int] = None,
        include_hidden: bool = True,
    ):
        self.source = source
        self.page_size = page_size or config.PAGE_SIZE
        self.max_pages = max_pages or config.MAX_PAGES
        self.include_hidden = include_hidden
        self.rows: list[PurchaseRow] = []
        self.progress = ScrapeProgress()
        self._on_batch: Optional[BatchSink] = None

    async def harvest(
        self, identity: ResolvedIdentity, on_batch: Optional[BatchSink] = None
    ) -> ScrapeProgress:
        """Harvest the fan's collection. Returns the terminal progress."""
        self.rows = []
        self.progress = ScrapeProgress(status="scraping")
        self._on_batch = on_batch
        self._publish()

        logger.info(f"Harvesting collection for fan {identity.fan_id}")
        try:
            await self._visible_pass(identity)
        except ApiError as e:
            logger.error(f"Visible pass failed: {e}")
            self.progress.status = "error"
            self.progress.error = str(e)
            self._publish()
            return self.progress.model_copy()

        if self.include_hidden:
            await self._hidden_pass(identity)

        self.progress.status = "completed"
        self._publish()
        logger.info(
            f"Harvest completed: {len(self.rows)} rows "
            f"({self.progress.items_fetched} items over {self.progress.pages_fetched} pages)"
        )
        return self.progress.model_copy()

    async def _visible_pass(self, identity: ResolvedIdentity) -> None:
        """Token-paginated API first; page extraction if it yields nothing."""
        token: Optional[str] = MOST_RECENT_TOKEN
        pages = 0
        accepted = 0
        first_error: Optional[ApiError] = None

        while True:
            if pages >= self.max_pages:
                logger.warning(f"Visible pass stopped at the {self.max_pages}-page safety bound")
                break

            try:
                page = await self.source.fetch_collection_page(identity, token, self.page_size)
                if not page.items and pages == 0 and token == MOST_RECENT_TOKEN:
                    logger.info("First page empty with most-recent token, retrying from start")
                    token = None
                    page = await self.source.fetch_collection_page(identity, None, self.page_size)
            except ApiError as e:
                if accepted:
                    raise
                logger.warning(f"Collection API failed on first page: {e}")
                first_error = e
                break

            if not page.items:
                logger.debug("Empty page, end of visible collection")
                break

            accepted += self._accept(page, is_hidden=False)
            pages += 1
            if not (page.more_available and page.last_token):
                break
            token = page.last_token

        if accepted:
            return

        page = await self._extract_from_profile(identity)
        if page is not None:
            self._accept(page, is_hidden=False)
            return

        if first_error is not None:
            raise first_error
        raise ApiError("Bandcamp returned no collection items")

    async def _extract_from_profile(self, identity: ResolvedIdentity) -> Optional[ItemsPage]:
        """Blob, then DOM extraction from the profile page. Not paginated."""
        try:
            html_content = await self.source.fetch_profile_html(identity)
        except ApiError as e:
            logger.warning(f"Profile page unavailable: {e}")
            return None
        return extract_collection_page(html_content)

    async def _hidden_pass(self, identity: ResolvedIdentity) -> None:
        """Hidden items; any failure ends the pass without failing the scrape."""
        token: Optional[str] = None
        pages = 0

        while pages < self.max_pages:
            try:
                page = await self.source.fetch_hidden_page(identity, token, self.page_size)
            except ApiError as e:
                logger.warning(f"Hidden items unavailable, keeping visible results: {e}")
                return

            if not page.items:
                return

            self._accept(page, is_hidden=True)
            pages += 1
            if not (page.more_available and page.last_token):
                return
            token = page.last_token

        logger.warning(f"Hidden pass stopped at the {self.max_pages}-page safety bound")

    def _accept(self, page: ItemsPage, is_hidden: bool) -> int:
        """Normalize a page into rows, dedupe, count and publish."""
        new_rows = [normalize_item(item, is_hidden=is_hidden) for item in page.items]
        self.rows = dedupe_rows(self.rows + new_rows)
        self.progress.items_fetched += len(new_rows)
        self.progress.pages_fetched += 1
        logger.info(
            f"Page {self.progress.pages_fetched} ({page.strategy}, "
            f"{'hidden' if is_hidden else 'visible'}): {len(new_rows)} items, "
            f"{len(self.rows)} unique rows"
        )
        self._publish()
        return len(new_rows)

    def _publish(self) -> None:
        if self._on_batch is not None:
            self._on_batch(list(self.rows), self.progress.model_copy())
