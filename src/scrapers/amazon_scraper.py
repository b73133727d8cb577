# src/scrapers/amazon_scraper.py

"""Scraper for amazon.com search results via the rendering proxy."""

import re
import urllib.parse
from typing import Any

from bs4 import Tag

from src.models.product import ProductRecord, Source
from src.scrapers import extraction
from src.scrapers.base_scraper import BaseScraper, PageDocument, Strategy


class AmazonScraper(BaseScraper):
    """Scraper for amazon.com (US) search result pages.

    Amazon search pages are server-rendered, so the proxy is asked
    for a plain fetch by default; rendering only adds latency and
    flakiness here.  Amazon exposes no embedded product blob on search
    pages, so the waterfall starts at the result-card markup.
    """

    SOURCE = Source.AMAZON
    ORIGIN = "https://www.amazon.com"
    DEFAULT_RENDER = False
    SEARCH_URL = "https://www.amazon.com/s?k={query}&ref=nb_sb_noss"
    PRODUCT_LINK_RE = re.compile(r"/(?:dp|gp/product)/[A-Z0-9]{10}")

    def strategies(self) -> list[tuple[str, Strategy]]:
        return [
            ("primary_markup", self._primary_markup),
            ("secondary_markup", self._secondary_markup),
            ("linked_data", self._linked_data),
            ("link_fallback", self._link_fallback),
        ]

    def _parse_card(
        self, card: Tag, sel: dict[str, str],
    ) -> ProductRecord | None:
        """Parse a result card, rebuilding split whole/fraction prices."""
        title_el = card.select_one(sel["title"])
        url_el = card.select_one(sel["url"])
        img_el = card.select_one(sel.get("image", "img"))

        href = extraction.attr_of(url_el, "href")
        if not href:
            return None

        price_el = card.select_one(sel["price"])
        price = extraction.text_of(price_el)
        if not price and "price_whole" in sel:
            whole = re.sub(
                r"\D",
                "",
                extraction.text_of(card.select_one(sel["price_whole"])),
            )
            fraction_sel = sel.get("price_fraction")
            fraction = (
                re.sub(
                    r"\D",
                    "",
                    extraction.text_of(card.select_one(fraction_sel)),
                )
                if fraction_sel
                else ""
            )
            if whole:
                price = f"{whole}.{fraction or '00'}"

        return self._record(
            title=extraction.text_of(title_el),
            href=href,
            image=extraction.image_src(img_el),
            price=price,
            currency="USD",
        )

    def _secondary_markup(
        self, document: PageDocument,
    ) -> list[ProductRecord]:
        """Looser layout: any result item carrying a non-empty ASIN."""
        sel = self.selectors.get("secondary")
        if not sel:
            return []
        records: list[ProductRecord] = []
        for card in document.soup.select(sel["product_card"]):
            if not extraction.attr_of(card, "data-asin"):
                continue
            record = self._parse_card(card, sel)
            if record is not None:
                records.append(record)
        return records

    def search_url(self, query: str) -> str:
        """Amazon search URL for *query*."""
        return self.SEARCH_URL.format(
            query=urllib.parse.quote_plus(query)
        )

    async def search(self, query: str) -> list[ProductRecord]:
        """Search Amazon for products matching the query."""
        html = await self._fetch_document(self.search_url(query))
        records = self.extract(html)
        self.logger.info(
            "[amazon] %d records for '%s'", len(records), query
        )
        return records

    async def probe(self, query: str) -> dict[str, Any]:
        """Fetch one Amazon search page and report extraction stats."""
        html = await self._fetch_document(self.search_url(query))
        return self.inspect(html)
