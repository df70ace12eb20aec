"""FastAPI backend for the browser UI."""
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import BackgroundTasks, Depends, FastAPI, HTTPException, Request, Response
from fastapi.security import APIKeyHeader
from pydantic import BaseModel, Field

from bcexport.auth.identity import IdentityResolver
from bcexport.config import config
from bcexport.errors import ApiError, AuthError
from bcexport.fetch.bandcamp import BandcampSource
from bcexport.fetch.client import FetchClient
from bcexport.jobs.session import ScrapeSession
from bcexport.parse.models import ResolvedIdentity, ScrapeProgress
from bcexport.parse.redact import redact_json, redact_string
from bcexport.store.cache import RowCache
from bcexport.store.export import default_filename, render

logger = logging.getLogger(__name__)

# API Key security (if configured)
API_KEY_HEADER = APIKeyHeader(name="X-API-KEY", auto_error=False)


def verify_api_key(api_key: Optional[str] = Depends(API_KEY_HEADER)) -> bool:
    """Verify API key if configured."""
    expected_key = config.API_KEY
    if expected_key:
        if not api_key or api_key != expected_key:
            raise HTTPException(status_code=403, detail="Invalid API key")
    return True


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the shared client and load cached rows eagerly."""
    if getattr(app.state, "session", None) is None:
        client = FetchClient()
        app.state.client = client
        app.state.session = ScrapeSession(BandcampSource(client), cache=RowCache())
        await app.state.session.load_cached()
    try:
        yield
    finally:
        client = getattr(app.state, "client", None)
        if client is not None:
            await client.aclose()


app = FastAPI(title="Bandcamp Collection Exporter API", version="0.1.0", lifespan=lifespan)


def get_session(request: Request) -> ScrapeSession:
    return request.app.state.session


class SummaryRequest(BaseModel):
    """Request model for cookie verification."""
    identityCookie: str = Field(..., min_length=1)


class SummaryResponse(BaseModel):
    fanId: str
    username: str
    usernameSlug: str
    name: str
    collectionCount: int
    cookieToUse: str


class ItemsRequest(BaseModel):
    """Request model for one page of items."""
    identityCookie: str = Field(..., min_length=1)
    fanId: str = Field(..., min_length=1)
    olderThanToken: Optional[str] = None
    count: int = Field(default=100, gt=0, le=1000)


def _page_identity(request: ItemsRequest) -> ResolvedIdentity:
    """Identity for page requests from an already-resolved cookie."""
    cookie = request.identityCookie
    if "identity=" not in cookie:
        cookie = f"identity={cookie}"
    try:
        return ResolvedIdentity(fan_id=str(request.fanId), canonical_cookie_header=cookie)
    except ValueError:
        raise HTTPException(status_code=400, detail="fanId must be numeric")


@app.get("/health")
async def health():
    """Health check endpoint (no auth required)."""
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@app.post("/api/bandcamp/collection-summary", response_model=SummaryResponse)
async def collection_summary(
    body: SummaryRequest,
    session: ScrapeSession = Depends(get_session),
    _: bool = Depends(verify_api_key),
):
    """Validate a cookie and return the fan context."""
    resolver: IdentityResolver = session.resolver
    try:
        identity = await resolver.resolve(body.identityCookie)
    except AuthError as e:
        raise HTTPException(status_code=400, detail=e.user_message())
    except ApiError as e:
        logger.error(f"Summary failed: {redact_string(str(e))}")
        raise HTTPException(status_code=502, detail=str(e))

    return SummaryResponse(
        fanId=identity.fan_id,
        username=identity.display_name,
        usernameSlug=identity.username_slug,
        name=identity.display_name,
        collectionCount=identity.reported_collection_count,
        cookieToUse=identity.canonical_cookie_header,
    )


@app.post("/api/bandcamp/collection-items")
async def collection_items(
    body: ItemsRequest,
    session: ScrapeSession = Depends(get_session),
    _: bool = Depends(verify_api_key),
):
    """Proxy one page of visible collection items."""
    identity = _page_identity(body)
    try:
        page = await session.source.fetch_collection_page(identity, body.olderThanToken, body.count)
    except ApiError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return _page_payload(page)


@app.post("/api/bandcamp/hidden-items")
async def hidden_items(
    body: ItemsRequest,
    session: ScrapeSession = Depends(get_session),
    _: bool = Depends(verify_api_key),
):
    """Proxy one page of hidden items; upstream errors come back as data."""
    identity = _page_identity(body)
    try:
        page = await session.source.fetch_hidden_page(identity, body.olderThanToken, body.count)
    except ApiError as e:
        logger.warning(f"Hidden items API error: {e}")
        return redact_json({"error": str(e)})
    return _page_payload(page)


def _page_payload(page) -> dict[str, Any]:
    return {
        "items": page.items,
        "moreAvailable": page.more_available,
        "nextOlderThanToken": page.last_token,
        "tracklists": page.tracklists,
    }


@app.post("/scrape")
async def scrape(
    body: SummaryRequest,
    background_tasks: BackgroundTasks,
    session: ScrapeSession = Depends(get_session),
    _: bool = Depends(verify_api_key),
):
    """Start a full scrape in the background; poll /progress and /rows."""
    if session.progress.status == "scraping":
        raise HTTPException(status_code=409, detail="A scrape is already running")
    # Claim the session before the task runs so a second request sees it busy
    session.progress = ScrapeProgress(status="scraping")
    background_tasks.add_task(session.start_scrape, body.identityCookie)
    return {"status": "scraping"}


@app.get("/progress")
async def progress(
    session: ScrapeSession = Depends(get_session),
    _: bool = Depends(verify_api_key),
):
    return session.progress.model_dump(by_alias=True)


@app.get("/rows")
async def rows(
    unreleased_only: bool = False,
    session: ScrapeSession = Depends(get_session),
    _: bool = Depends(verify_api_key),
):
    """Current rows; optionally only unreleased preorders."""
    selected = session.rows
    if unreleased_only:
        selected = [r for r in selected if r.is_preorder and r.preorder_status == "unreleased"]
    return {
        "count": len(selected),
        "rows": [r.model_dump(mode="json", by_alias=True) for r in selected],
    }


@app.post("/reset")
async def reset(
    session: ScrapeSession = Depends(get_session),
    _: bool = Depends(verify_api_key),
):
    await session.reset()
    return session.progress.model_dump(by_alias=True)


@app.get("/export/{fmt}")
async def export(
    fmt: str,
    session: ScrapeSession = Depends(get_session),
    _: bool = Depends(verify_api_key),
):
    """Download the current rows as CSV or JSON."""
    if fmt not in ("csv", "json"):
        raise HTTPException(status_code=404, detail="Unknown export format")
    if not session.rows:
        raise HTTPException(status_code=404, detail="No rows to export")
    media_type = "text/csv; charset=utf-8" if fmt == "csv" else "application/json"
    return Response(
        content=render(session.rows, fmt),
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{default_filename(fmt)}"'},
    )


if __name__ == "__main__":
    import uvicorn
    from bcexport.logging_conf import setup_logging

    setup_logging()
    config.validate()
    uvicorn.run(app, host="127.0.0.1", port=8000)
