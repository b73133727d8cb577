# src/scrapers/shein_scraper.py

"""Scraper for us.shein.com via the rendering proxy, with a two-tier fetch."""

import re
import urllib.parse
from typing import Any

from src.filters.deduplicator import ProductDeduplicator
from src.models.product import ProductRecord, Source
from src.scrapers import extraction
from src.scrapers.base_scraper import BaseScraper, PageDocument, Strategy
from src.services.exceptions import ScrapeError


class SheinScraper(BaseScraper):
    """Scraper for us.shein.com search pages.

    SHEIN is a client-rendered SPA, so every fetch asks the proxy to
    execute scripts.  The listing is tried on the PSE endpoint first;
    when it yields fewer than ``SHEIN_CLASSIC_THRESHOLD`` records the
    classic search endpoint is fetched as well and both tiers are
    merged.

    Rendered pages usually carry the goods list as an embedded JSON
    array (``"goods": [...]``), which is far more stable than the card
    markup, so the waterfall tries it first.
    """

    SOURCE = Source.SHEIN
    ORIGIN = "https://us.shein.com"
    DEFAULT_RENDER = True
    PSE_URL = "https://us.shein.com/pse?keyword={query}"
    CLASSIC_URL = "https://us.shein.com/search?keyword={query}"
    PRODUCT_LINK_RE = re.compile(r"-p-\d+(?:-cat-\d+)?\.html")
    EMBEDDED_KEYS = ("goods", "goodsList", "products")

    def strategies(self) -> list[tuple[str, Strategy]]:
        return [
            ("embedded_json", self._embedded_json),
            ("primary_markup", self._primary_markup),
            ("secondary_markup", self._secondary_markup),
            ("linked_data", self._linked_data),
            ("link_fallback", self._link_fallback),
        ]

    # ------------------------------------------------------------------
    # Embedded goods JSON (primary)
    # ------------------------------------------------------------------

    @staticmethod
    def _goods_price(item: dict[str, Any]) -> str:
        """Price fallback: salePrice -> retailPrice -> price."""
        for key in (
            "salePrice", "sale_price", "retailPrice",
            "retail_price", "price",
        ):
            value = item.get(key)
            if isinstance(value, dict):
                value = (
                    value.get("amount")
                    or value.get("usdAmount")
                    or value.get("amountWithSymbol")
                )
            if value not in (None, ""):
                return str(value)
        return ""

    @staticmethod
    def _slug(text: str) -> str:
        return re.sub(r"[^A-Za-z0-9]+", "-", text).strip("-")

    def _goods_url(self, item: dict[str, Any], title: str) -> str:
        """Explicit URL, else the ``/<slug>-p-<id>.html`` detail path."""
        explicit = item.get("url") or item.get("goods_url")
        if explicit:
            return str(explicit)
        goods_id = item.get("goods_id") or item.get("goodsId")
        if not goods_id:
            return ""
        slug = self._slug(
            str(item.get("goods_url_name") or title)
        )
        return f"/{slug}-p-{goods_id}.html"

    def _parse_goods(self, item: Any) -> ProductRecord | None:
        if not isinstance(item, dict):
            return None
        title = str(
            item.get("goods_name")
            or item.get("goodsName")
            or item.get("name")
            or item.get("title")
            or ""
        )
        return self._record(
            title=title,
            href=self._goods_url(item, title),
            image=str(
                item.get("goods_img")
                or item.get("goodsImg")
                or item.get("image")
                or ""
            ),
            price=self._goods_price(item),
        )

    def _embedded_json(
        self, document: PageDocument,
    ) -> list[ProductRecord]:
        """Goods arrays embedded in page scripts."""
        for items in extraction.find_json_arrays(
            document.text, self.EMBEDDED_KEYS
        ):
            records = [
                r
                for r in (self._parse_goods(i) for i in items)
                if r is not None
            ]
            if records:
                return records
        return []

    # ------------------------------------------------------------------
    # Two-tier fetch
    # ------------------------------------------------------------------

    def tier_urls(self, query: str) -> tuple[str, str]:
        """``(pse_url, classic_url)`` for *query*."""
        encoded = urllib.parse.quote(query, safe="")
        return (
            self.PSE_URL.format(query=encoded),
            self.CLASSIC_URL.format(query=encoded),
        )

    async def search(self, query: str) -> list[ProductRecord]:
        """Search SHEIN, falling back to the classic listing when thin."""
        pse_url, classic_url = self.tier_urls(query)
        threshold = self.settings.SHEIN_CLASSIC_THRESHOLD
        records: list[ProductRecord] = []
        errors: list[ScrapeError] = []
        tiers = 1

        try:
            records.extend(
                self.extract(await self._fetch_document(pse_url))
            )
        except ScrapeError as exc:
            self.logger.warning("[shein] PSE fetch failed: %s", exc)
            errors.append(exc)

        if len(records) < threshold:
            tiers += 1
            self.logger.info(
                "[shein] PSE yielded %d (< %d), trying classic",
                len(records),
                threshold,
            )
            try:
                records.extend(
                    self.extract(
                        await self._fetch_document(classic_url)
                    )
                )
            except ScrapeError as exc:
                self.logger.warning(
                    "[shein] Classic fetch failed: %s", exc
                )
                errors.append(exc)

        if len(errors) == tiers:
            raise errors[-1]

        records, removed = ProductDeduplicator.deduplicate(records)
        self.logger.info(
            "[shein] %d records for '%s' (%d duplicates dropped)",
            len(records),
            query,
            removed,
        )
        return records[: self.settings.MAX_RESULTS_PER_SOURCE]

    async def _inspect_tier(
        self, url: str,
    ) -> tuple[dict[str, Any], ScrapeError | None]:
        try:
            html = await self._fetch_document(url)
        except ScrapeError as exc:
            return {"error": str(exc), "attempts": exc.attempts}, exc
        return self.inspect(html), None

    async def probe(self, query: str) -> dict[str, Any]:
        """Report PSE and classic extraction stats separately.

        Raises the PSE error when every attempted tier failed.
        """
        pse_url, classic_url = self.tier_urls(query)
        threshold = self.settings.SHEIN_CLASSIC_THRESHOLD

        pse, pse_error = await self._inspect_tier(pse_url)
        classic: dict[str, Any] = {"count": 0, "sample": []}
        classic_error: ScrapeError | None = None
        classic_tried = pse.get("count", 0) < threshold
        if classic_tried:
            classic, classic_error = await self._inspect_tier(
                classic_url
            )

        if pse_error is not None and (
            classic_error is not None or not classic_tried
        ):
            raise pse_error
        return {"pse": pse, "classic": classic}
