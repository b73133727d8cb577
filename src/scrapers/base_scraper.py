# src/scrapers/base_scraper.py

"""Abstract base class for all source scrapers."""

import json
import logging
import re
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any

from bs4 import BeautifulSoup, Tag

from src.config.settings import Settings
from src.filters.deduplicator import ProductDeduplicator
from src.models.fetch import FetchOptions
from src.models.product import ProductRecord, Source
from src.scrapers import extraction
from src.services.resilient_fetcher import ResilientFetcher


class PageDocument:
    """Document text with lazily parsed markup.

    Strategies that only need the raw text (embedded JSON) never pay
    for an lxml parse.
    """

    def __init__(self, text: str) -> None:
        self.text = text or ""
        self._soup: BeautifulSoup | None = None

    @property
    def soup(self) -> BeautifulSoup:
        if self._soup is None:
            self._soup = BeautifulSoup(self.text, "lxml")
        return self._soup


Strategy = Callable[[PageDocument], list[ProductRecord]]


class BaseScraper(ABC):
    """Abstract base class for all source scrapers.

    A scraper owns two things: a pure extraction waterfall
    (:meth:`extract`) and the fetch plan for its site (:meth:`search`,
    :meth:`probe`).  Only the latter touches the network.
    """

    SOURCE: Source
    ORIGIN: str = ""
    DEFAULT_RENDER: bool = True
    PRODUCT_LINK_RE: re.Pattern[str] = re.compile(r"$^")

    def __init__(
        self,
        fetcher: ResilientFetcher | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.source_name = self.SOURCE.value
        self.logger = logging.getLogger(
            f"realtime_search.{self.source_name}"
        )
        self.settings = settings or Settings()
        self.selectors: dict[str, dict[str, str]] = (
            self._load_selectors()
        )
        self.fetcher = fetcher or ResilientFetcher(
            settings=self.settings
        )

    def _load_selectors(self) -> dict[str, dict[str, str]]:
        """Load CSS selectors for this source from selectors.json."""
        with open(self.settings.SELECTORS_PATH, encoding="utf-8") as f:
            all_selectors: dict[str, Any] = json.load(f)
        result: dict[str, dict[str, str]] = all_selectors.get(
            self.source_name, {}
        )
        return result

    # ------------------------------------------------------------------
    # Waterfall
    # ------------------------------------------------------------------

    @abstractmethod
    def strategies(self) -> list[tuple[str, Strategy]]:
        """Ordered, named extraction strategies for this source."""
        ...

    def _run_waterfall(
        self, text: str,
    ) -> tuple[str, list[ProductRecord]]:
        """Apply strategies in order; return the first non-empty yield."""
        document = PageDocument(text)
        for name, strategy in self.strategies():
            try:
                records = strategy(document)
            except Exception as exc:
                self.logger.debug(
                    "[%s] Strategy '%s' failed: %s",
                    self.source_name,
                    name,
                    exc,
                    exc_info=True,
                )
                continue
            if records:
                self.logger.debug(
                    "[%s] Strategy '%s' yielded %d records",
                    self.source_name,
                    name,
                    len(records),
                )
                return name, records
        return "", []

    def extract(self, text: str) -> list[ProductRecord]:
        """Extract product records from a fetched document.

        Never raises; an unrecognised document yields ``[]``.
        """
        _, records = self._run_waterfall(text)
        records, _ = ProductDeduplicator.deduplicate(records)
        return records[: self.settings.MAX_RESULTS_PER_SOURCE]

    def inspect(self, text: str) -> dict[str, Any]:
        """Diagnostics for probe mode: count, title sample, strategy."""
        strategy, records = self._run_waterfall(text)
        records, _ = ProductDeduplicator.deduplicate(records)
        return {
            "count": len(records),
            "sample": [r.title[:80] for r in records[:3]],
            "strategy": strategy,
        }

    # ------------------------------------------------------------------
    # Record construction
    # ------------------------------------------------------------------

    def _record(
        self,
        title: str,
        href: str,
        image: str = "",
        price: str = "",
        currency: str | None = None,
    ) -> ProductRecord | None:
        """Build a normalised record, or None when the title is empty."""
        title = " ".join((title or "").split())
        if not title:
            return None
        cleaned = extraction.clean_price(price)
        return ProductRecord(
            source=self.SOURCE,
            title=title,
            url=extraction.absolute_url(href, self.ORIGIN),
            image=extraction.absolute_image(image, self.ORIGIN),
            price=cleaned,
            currency=extraction.infer_currency(cleaned, currency),
        )

    # ------------------------------------------------------------------
    # Shared strategies
    # ------------------------------------------------------------------

    def _parse_card(
        self, card: Tag, sel: dict[str, str],
    ) -> ProductRecord | None:
        """Project title, link, image and price out of one card."""
        title_el = card.select_one(sel["title"])
        url_el = card.select_one(sel["url"])
        img_el = card.select_one(sel.get("image", "img"))
        price_el = card.select_one(sel["price"])

        href = extraction.attr_of(url_el, "href")
        if not href:
            return None
        return self._record(
            title=extraction.text_of(title_el),
            href=href,
            image=extraction.image_src(img_el),
            price=extraction.text_of(price_el),
        )

    def _from_markup(
        self, document: PageDocument, tier: str,
    ) -> list[ProductRecord]:
        """Card-based extraction using the *tier* selector set."""
        sel = self.selectors.get(tier)
        if not sel:
            return []
        records: list[ProductRecord] = []
        for card in document.soup.select(sel["product_card"]):
            record = self._parse_card(card, sel)
            if record is not None:
                records.append(record)
        return records

    def _primary_markup(
        self, document: PageDocument,
    ) -> list[ProductRecord]:
        return self._from_markup(document, "primary")

    def _secondary_markup(
        self, document: PageDocument,
    ) -> list[ProductRecord]:
        return self._from_markup(document, "secondary")

    def _linked_data(
        self, document: PageDocument,
    ) -> list[ProductRecord]:
        """schema.org Product blocks (``application/ld+json``)."""
        records: list[ProductRecord] = []
        for product in extraction.iter_ld_products(document.soup):
            price, currency = extraction.ld_offer(
                product.get("offers")
            )
            record = self._record(
                title=str(product.get("name") or ""),
                href=str(product.get("url") or ""),
                image=extraction.ld_image(product.get("image")),
                price=price,
                currency=currency or None,
            )
            if record is not None:
                records.append(record)
        return records

    def _link_fallback(
        self, document: PageDocument,
    ) -> list[ProductRecord]:
        """Last resort: every anchor shaped like a product page."""
        records: list[ProductRecord] = []
        seen: set[str] = set()
        for anchor in document.soup.find_all("a", href=True):
            href = extraction.attr_of(anchor, "href")
            if not self.PRODUCT_LINK_RE.search(href):
                continue
            url = extraction.absolute_url(href, self.ORIGIN)
            if url in seen:
                continue
            img = extraction.nearest_image(anchor)
            title = (
                extraction.text_of(anchor)
                or extraction.attr_of(anchor, "title", "aria-label")
                or extraction.attr_of(img, "alt")
            )
            record = self._record(
                title=title,
                href=url,
                image=extraction.image_src(img),
                price=extraction.find_currency_price(
                    extraction.nearest_container_text(anchor)
                ),
            )
            if record is not None:
                seen.add(url)
                records.append(record)
        return records

    # ------------------------------------------------------------------
    # Fetching
    # ------------------------------------------------------------------

    def fetch_options(self, render: bool | None = None) -> FetchOptions:
        """Proxy options for this source, overriding render if given."""
        return FetchOptions(
            render=self.DEFAULT_RENDER if render is None else render,
            country=self.settings.PROXY_COUNTRY,
            locale=self.settings.PROXY_LOCALE,
        )

    async def _fetch_document(
        self, url: str, render: bool | None = None,
    ) -> str:
        outcome = await self.fetcher.fetch(
            url, self.fetch_options(render)
        )
        return outcome.text

    @abstractmethod
    async def search(self, query: str) -> list[ProductRecord]:
        """Fetch and extract records for *query*.

        Fetch failures propagate as :class:`ScrapeError`.
        """
        ...

    @abstractmethod
    async def probe(self, query: str) -> dict[str, Any]:
        """Run this source alone and return extraction diagnostics."""
        ...
