# src/api/app.py

"""HTTP surface for the storefront: realtime search, auctions, import."""

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from src.config.settings import Settings
from src.services.auction_feed import AuctionFeed, AuctionFeedError
from src.services.exceptions import (
    ConfigurationError,
    ScrapeError,
    UpstreamTimeoutError,
)
from src.services.health_checker import HealthChecker
from src.services.mock_catalog import mock_records
from src.services.product_importer import (
    ImportConfigError,
    ImportRequest,
    ImportUpstreamError,
    ProductImporter,
)
from src.services.resilient_fetcher import ResilientFetcher
from src.services.search_aggregator import SearchAggregator, build_scrapers
from src.storage.query_cache import QueryCache

logger = logging.getLogger("realtime_search.api")

_TRUTHY = {"1", "true", "yes", "on"}


class ImportBody(BaseModel):
    """POST body for ``/api/import``."""

    source: str = ""
    id: str | int = ""
    title: str = ""
    url: str = ""
    price: str | float | None = None
    compare_at_price: str | float | None = None
    images: list[str] = Field(default_factory=list)


def _error(status: int, message: str, **extra: Any) -> JSONResponse:
    return JSONResponse(
        status_code=status,
        content={"ok": False, "error": message, **extra},
    )


def _probe_status(exc: ScrapeError) -> int:
    """Map a fetch failure to the diagnostic status code."""
    if isinstance(exc, ConfigurationError):
        return 500
    if isinstance(exc, UpstreamTimeoutError):
        return 504
    return 502


async def _probe(request: Request, source: str, query: str) -> JSONResponse:
    scrapers = request.app.state.scrapers
    if not query:
        return _error(400, "Missing q", probe=source)
    scraper = scrapers.get(source)
    if scraper is None:
        return _error(
            400,
            f"Unknown probe '{source}'",
            available=sorted(scrapers),
        )

    try:
        report = await scraper.probe(query)
    except ScrapeError as exc:
        logger.error(
            "Probe %s failed for '%s': %s", source, query, exc
        )
        return _error(
            _probe_status(exc),
            str(exc),
            probe=source,
            q=query,
            attempts=exc.attempts,
        )
    return JSONResponse({"probe": source, "q": query, **report})


async def _search(request: Request, query: str) -> JSONResponse:
    cache: QueryCache = request.app.state.cache
    aggregator: SearchAggregator = request.app.state.aggregator

    cached = cache.get(query)
    if cached is not None:
        return JSONResponse(cached)

    try:
        result = await aggregator.aggregate(query)
    except Exception:
        # Degrade to empty results, never a 5xx
        logger.exception("Aggregate search crashed for '%s'", query)
        return JSONResponse({"ok": True, "items": []})

    payload = result.to_payload()
    if result.items:
        cache.put(query, payload)
    return JSONResponse(payload)


def create_app(
    settings: Settings | None = None,
    fetcher: ResilientFetcher | None = None,
    cache: QueryCache | None = None,
    auction_feed: AuctionFeed | None = None,
    importer: ProductImporter | None = None,
) -> FastAPI:
    """Build the API with its collaborators, all injectable for tests."""
    settings = settings or Settings()
    fetcher = fetcher or ResilientFetcher(settings=settings)
    scrapers = build_scrapers(fetcher, settings)

    app = FastAPI(title="Realtime Search")
    app.state.settings = settings
    app.state.cache = cache or QueryCache()
    app.state.scrapers = scrapers
    app.state.aggregator = SearchAggregator(scrapers, settings)
    app.state.health = HealthChecker(settings)
    app.state.auction_feed = auction_feed or AuctionFeed(settings)
    app.state.importer = importer or ProductImporter(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
        max_age=86400,
    )

    @app.get("/api/realtime-search")
    async def realtime_search(
        request: Request,
        q: str = "",
        probe: str = "",
        health: str = "",
        mock: str = "",
    ) -> JSONResponse:
        query = q.strip()

        if health:
            return JSONResponse(
                request.app.state.health.check().to_payload()
            )

        if mock.strip().lower() in _TRUTHY:
            items = [r.to_dict() for r in mock_records(query)]
            return JSONResponse(
                {
                    "ok": True,
                    "mock": True,
                    "items": items,
                    "count": len(items),
                }
            )

        if probe:
            return await _probe(request, probe.strip().lower(), query)

        if not query:
            return _error(400, "Missing q")
        return await _search(request, query)

    @app.get("/api/auctions")
    async def auctions(
        request: Request,
        q: str = "",
        category: str = "",
        seller: str = "",
        page: int = 1,
        pageSize: int = 0,  # noqa: N803
    ) -> JSONResponse:
        feed: AuctionFeed = request.app.state.auction_feed
        try:
            result = await feed.page(
                q=q,
                category=category,
                seller=seller,
                page=page,
                page_size=pageSize or None,
            )
        except AuctionFeedError as exc:
            return _error(500, str(exc))
        return JSONResponse(result.to_payload())

    @app.post("/api/import")
    async def import_product(
        request: Request, body: ImportBody,
    ) -> JSONResponse:
        importer: ProductImporter = request.app.state.importer
        if not body.title.strip():
            return _error(400, "Missing title")
        try:
            created = await importer.create_draft(
                ImportRequest(
                    title=body.title,
                    source=body.source,
                    id=str(body.id),
                    url=body.url,
                    price=body.price,
                    compare_at_price=body.compare_at_price,
                    images=list(body.images),
                )
            )
        except ImportConfigError as exc:
            return _error(500, str(exc))
        except ImportUpstreamError as exc:
            return JSONResponse(
                status_code=exc.status,
                content={"ok": False, "error": exc.detail},
            )
        return JSONResponse(created)

    logger.info(
        "API ready: sources=%s, proxy endpoints=%d",
        ",".join(scrapers),
        len(settings.PROXY_BASES),
    )
    return app
