# src/services/auction_feed.py

"""Paginated, filterable auction listing backed by a published CSV."""

import csv
import io
import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from curl_cffi import requests as curl_requests
from curl_cffi.requests.exceptions import RequestException

from src.config.settings import Settings
from src.models.auction import AuctionLot

logger = logging.getLogger("realtime_search.auctions")


class AuctionFeedError(Exception):
    """The CSV feed is not configured or could not be fetched."""


@dataclass
class AuctionPage:
    """One page of filtered, deadline-sorted lots."""

    total: int
    page: int
    page_size: int
    items: list[AuctionLot] = field(
        default_factory=lambda: list[AuctionLot]()
    )

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.page_size)

    def to_payload(self) -> dict[str, Any]:
        return {
            "ok": True,
            "total": self.total,
            "page": self.page,
            "pageSize": self.page_size,
            "pages": self.pages,
            "items": [lot.to_dict() for lot in self.items],
        }


def parse_csv(text: str) -> list[AuctionLot]:
    """Parse the sheet export; quoted fields and blank lines are handled."""
    reader = csv.DictReader(io.StringIO(text.lstrip("\ufeff")))
    if reader.fieldnames:
        reader.fieldnames = [h.strip() for h in reader.fieldnames]
    lots: list[AuctionLot] = []
    for row in reader:
        values = [v for v in row.values() if isinstance(v, str)]
        if any(v.strip() for v in values):
            lots.append(AuctionLot.from_row(row))
    return lots


def _deadline(lot: AuctionLot) -> datetime:
    """Parse ``ends_at``; unparseable values sort after every real date."""
    try:
        parsed = datetime.fromisoformat(lot.ends_at)
    except ValueError:
        return datetime.max.replace(tzinfo=timezone.utc)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def query_lots(
    lots: list[AuctionLot],
    q: str = "",
    category: str = "",
    seller: str = "",
    page: int = 1,
    page_size: int = Settings.AUCTIONS_PAGE_SIZE,
) -> AuctionPage:
    """Filter by substring, sort by nearest deadline, and paginate."""
    q, category, seller = (
        q.strip().lower(),
        category.strip().lower(),
        seller.strip().lower(),
    )
    page = max(1, page)
    page_size = max(1, page_size)

    selected = [
        lot
        for lot in lots
        if (not q or q in lot.title.lower())
        and (not category or category in lot.category.lower())
        and (not seller or seller in lot.seller.lower())
    ]
    selected.sort(key=_deadline)

    start = (page - 1) * page_size
    return AuctionPage(
        total=len(selected),
        page=page,
        page_size=page_size,
        items=selected[start : start + page_size],
    )


class AuctionFeed:
    """Fetches and queries the published auction sheet."""

    def __init__(
        self,
        settings: Settings | None = None,
        session: Any = None,
    ) -> None:
        self.settings = settings or Settings()
        self.session = session

    async def _get(self, url: str) -> Any:
        if self.session is not None:
            return await self.session.get(
                url, timeout=self.settings.REQUEST_TIMEOUT
            )
        async with curl_requests.AsyncSession(
            impersonate=self.settings.IMPERSONATE_BROWSER
        ) as session:
            return await session.get(
                url, timeout=self.settings.REQUEST_TIMEOUT
            )

    async def fetch_lots(self) -> list[AuctionLot]:
        """Download and parse every lot in the sheet."""
        url = self.settings.AUCTIONS_CSV_URL
        if not url:
            msg = "Missing AUCTIONS_CSV_URL env var"
            raise AuctionFeedError(msg)

        try:
            resp = await self._get(url)
        except RequestException as exc:
            logger.error(
                "Auction feed fetch failed: %s", exc, exc_info=True
            )
            raise AuctionFeedError(str(exc)) from exc

        if resp.status_code != 200:
            msg = f"Auction feed HTTP {resp.status_code}"
            logger.error(msg)
            raise AuctionFeedError(msg)

        lots = parse_csv(resp.text)
        logger.info("Loaded %d auction lots", len(lots))
        return lots

    async def page(
        self,
        q: str = "",
        category: str = "",
        seller: str = "",
        page: int = 1,
        page_size: int | None = None,
    ) -> AuctionPage:
        lots = await self.fetch_lots()
        return query_lots(
            lots,
            q=q,
            category=category,
            seller=seller,
            page=page,
            page_size=page_size or self.settings.AUCTIONS_PAGE_SIZE,
        )
