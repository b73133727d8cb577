# tests/test_shein_scraper.py

"""Tests for the SHEIN scraper: embedded goods JSON and two-tier fetch."""

import json
import unittest

from helpers import FakeFetcher, load_fixture, make_settings

from src.models.product import Source
from src.scrapers.shein_scraper import SheinScraper
from src.services.exceptions import (
    EmptyDocumentError,
    UpstreamHTTPError,
)


def _goods_page(start: int, count: int) -> str:
    """A rendered page embedding *count* goods with sequential ids."""
    goods = [
        {
            "goods_id": str(1000 + i),
            "goods_name": f"Ribbed Tank Top {i}",
            "goods_img": f"//img.ltwebstatic.com/tank{i}.jpg",
            "salePrice": {"amount": f"{4 + i}.99"},
        }
        for i in range(start, start + count)
    ]
    blob = json.dumps({"results": {"goods": goods}})
    return (
        "<html><body><div id='app'></div>"
        f"<script>window.gbRawData = {blob};</script>"
        "</body></html>"
    )


class TestSheinExtraction(unittest.TestCase):
    """Extraction waterfall over rendered SHEIN pages."""

    def setUp(self) -> None:
        self.scraper = SheinScraper(
            fetcher=FakeFetcher({}), settings=make_settings()
        )

    def test_embedded_goods_parsed(self) -> None:
        """A goods array with three items yields three records."""
        records = self.scraper.extract(load_fixture("shein_embedded.html"))
        self.assertEqual(len(records), 3)
        self.assertTrue(all(r.source == Source.SHEIN for r in records))
        self.assertTrue(
            all(r.url.startswith("https://us.shein.com/") for r in records)
        )

    def test_detail_url_built_from_goods_id(self) -> None:
        """Goods without an explicit URL get a slug-p-id.html path."""
        records = self.scraper.extract(load_fixture("shein_embedded.html"))
        self.assertEqual(
            records[0].url,
            "https://us.shein.com/Floral-Print-Ruffle-Hem-Dress-p-10233401.html",
        )
        self.assertEqual(
            records[1].url,
            "https://us.shein.com/Ditsy-Floral-Plus-Wrap-Dress-p-10233402.html",
        )
        self.assertEqual(
            records[2].url,
            "https://us.shein.com/Puff-Sleeve-Floral-Midi-Dress-p-"
            "10233403-cat-1727.html",
        )

    def test_goods_price_fallbacks(self) -> None:
        """Sale price wins, then retail price, then nested USD amount."""
        records = self.scraper.extract(load_fixture("shein_embedded.html"))
        self.assertEqual(
            [r.price for r in records], ["12.49", "9.99", "7.00"]
        )
        self.assertTrue(all(r.currency == "USD" for r in records))

    def test_protocol_relative_image_resolved(self) -> None:
        """``//host/path`` images become https URLs."""
        records = self.scraper.extract(load_fixture("shein_embedded.html"))
        self.assertEqual(
            records[0].image,
            "https://img.ltwebstatic.com/images3_pi/2024/floral.jpg",
        )

    def test_escaped_embedded_goods_parsed(self) -> None:
        """Goods JSON inside a JS string literal is unescaped and parsed."""
        html = (
            "<html><body><script>var state = "
            r'"{\"goods\":[{\"goods_id\":\"55\",\"goods_name\":'
            r'\"Linen Shirt\",\"salePrice\":{\"amount\":\"15.00\"}}]}";'
            "</script></body></html>"
        )
        records = self.scraper.extract(html)
        self.assertEqual(len(records), 1)
        self.assertEqual(records[0].title, "Linen Shirt")
        self.assertEqual(records[0].price, "15.00")
        self.assertEqual(
            records[0].url, "https://us.shein.com/Linen-Shirt-p-55.html"
        )

    def test_escaped_goods_with_quoted_titles(self) -> None:
        """Inch marks and backslashes in escaped goods names survive."""
        goods = [
            {
                "goods_id": "77",
                "goods_name": '14" Laptop Sleeve',
                "salePrice": {"amount": "11.50"},
            },
            {
                "goods_id": "78",
                "goods_name": "Cable \\ Organizer",
                "salePrice": {"amount": "6.25"},
            },
        ]
        literal = json.dumps(json.dumps({"goods": goods}))
        html = (
            f"<html><body><script>var state = {literal};</script>"
            "</body></html>"
        )
        records = self.scraper.extract(html)
        self.assertEqual(
            [r.title for r in records],
            ['14" Laptop Sleeve', "Cable \\ Organizer"],
        )
        self.assertEqual([r.price for r in records], ["11.50", "6.25"])
        self.assertEqual(
            records[0].url,
            "https://us.shein.com/14-Laptop-Sleeve-p-77.html",
        )

    def test_card_markup_when_no_embedded_json(self) -> None:
        """Product cards are used when the page embeds no goods list."""
        records = self.scraper.extract(load_fixture("shein_cards.html"))
        self.assertEqual(len(records), 2)
        self.assertEqual(records[0].title, "Linen Blend Button Up Shirt")
        self.assertEqual(records[0].price, "15.99")
        self.assertEqual(
            records[0].url,
            "https://us.shein.com/Linen-Blend-Button-Up-Shirt-p-20001-"
            "cat-1733.html",
        )

    def test_lazy_image_skips_placeholder(self) -> None:
        """An inline data: placeholder falls through to data-src."""
        records = self.scraper.extract(load_fixture("shein_cards.html"))
        self.assertEqual(
            records[1].image, "https://img.ltwebstatic.com/linen2.jpg"
        )

    def test_link_fallback(self) -> None:
        """Bare product anchors are found when nothing else matches."""
        html = (
            "<html><body>"
            "<div><a href='/Cargo-Pants-p-777-cat-1740.html'>Cargo Pants</a>"
            "<span>$22.00</span></div>"
            "<div><a href='/Cargo-Pants-p-777-cat-1740.html'>Cargo Pants</a></div>"
            "<a href='/campaign/sale'>Sale</a>"
            "</body></html>"
        )
        records = self.scraper.extract(html)
        self.assertEqual(len(records), 1)
        self.assertEqual(records[0].title, "Cargo Pants")
        self.assertEqual(records[0].price, "22.00")

    def test_records_without_title_dropped(self) -> None:
        """Goods with no name are skipped rather than emitted blank."""
        html = (
            "<script>"
            + json.dumps(
                {"goods": [{"goods_id": "1"}, {"goods_name": "Tote Bag",
                                               "goods_id": "2"}]}
            )
            + "</script>"
        )
        records = self.scraper.extract(html)
        self.assertEqual([r.title for r in records], ["Tote Bag"])


class TestSheinTwoTierSearch(unittest.IsolatedAsyncioTestCase):
    """search() and probe() across the PSE and classic listings."""

    def setUp(self) -> None:
        self.settings = make_settings()
        self.scraper = SheinScraper(
            fetcher=FakeFetcher({}), settings=self.settings
        )
        self.pse_url, self.classic_url = self.scraper.tier_urls(
            "tank top"
        )

    def _scraper(self, pages: dict[str, object]) -> SheinScraper:
        self.fetcher = FakeFetcher(pages)
        return SheinScraper(fetcher=self.fetcher, settings=self.settings)

    def test_tier_urls_percent_encode(self) -> None:
        """Both tiers percent-encode the keyword."""
        self.assertEqual(
            self.pse_url, "https://us.shein.com/pse?keyword=tank%20top"
        )
        self.assertEqual(
            self.classic_url,
            "https://us.shein.com/search?keyword=tank%20top",
        )

    async def test_rich_pse_skips_classic(self) -> None:
        """A PSE page with enough goods is the only fetch."""
        scraper = self._scraper({self.pse_url: _goods_page(0, 9)})
        records = await scraper.search("tank top")

        self.assertEqual(len(records), 9)
        self.assertEqual(
            [url for url, _ in self.fetcher.calls], [self.pse_url]
        )

    async def test_thin_pse_merges_classic(self) -> None:
        """A thin PSE page is topped up from classic, deduplicated."""
        scraper = self._scraper(
            {
                self.pse_url: _goods_page(0, 3),
                self.classic_url: _goods_page(2, 4),
            }
        )
        records = await scraper.search("tank top")

        self.assertEqual(
            [url for url, _ in self.fetcher.calls],
            [self.pse_url, self.classic_url],
        )
        # ids 1000-1002 from PSE plus 1003-1005 from classic
        self.assertEqual(len(records), 6)
        self.assertEqual(records[0].title, "Ribbed Tank Top 0")
        self.assertEqual(records[-1].title, "Ribbed Tank Top 5")

    async def test_merged_tiers_capped(self) -> None:
        """The merged listing respects the per-source cap."""
        scraper = self._scraper(
            {
                self.pse_url: _goods_page(0, 7),
                self.classic_url: _goods_page(7, 12),
            }
        )
        records = await scraper.search("tank top")
        self.assertEqual(len(records), 12)

    async def test_always_renders(self) -> None:
        """SHEIN fetches ask the proxy to execute scripts."""
        scraper = self._scraper({self.pse_url: _goods_page(0, 9)})
        await scraper.search("tank top")
        _, options = self.fetcher.calls[0]
        self.assertTrue(options.render)

    async def test_failed_pse_falls_back_to_classic(self) -> None:
        """A PSE failure alone does not fail the source."""
        scraper = self._scraper(
            {
                self.pse_url: UpstreamHTTPError(503, "busy"),
                self.classic_url: _goods_page(0, 4),
            }
        )
        records = await scraper.search("tank top")
        self.assertEqual(len(records), 4)

    async def test_all_tiers_failed_raises(self) -> None:
        """When every tier fails the last error propagates."""
        scraper = self._scraper(
            {
                self.pse_url: UpstreamHTTPError(503, "busy"),
                self.classic_url: EmptyDocumentError(12),
            }
        )
        with self.assertRaises(EmptyDocumentError):
            await scraper.search("tank top")

    async def test_probe_reports_both_tiers(self) -> None:
        """probe() reports PSE and classic stats separately."""
        scraper = self._scraper(
            {
                self.pse_url: _goods_page(0, 2),
                self.classic_url: _goods_page(0, 5),
            }
        )
        report = await scraper.probe("tank top")

        self.assertEqual(report["pse"]["count"], 2)
        self.assertEqual(report["pse"]["strategy"], "embedded_json")
        self.assertEqual(report["classic"]["count"], 5)

    async def test_probe_skips_classic_when_pse_rich(self) -> None:
        """Classic is not fetched when PSE already meets the threshold."""
        scraper = self._scraper({self.pse_url: _goods_page(0, 8)})
        report = await scraper.probe("tank top")

        self.assertEqual(report["pse"]["count"], 8)
        self.assertEqual(report["classic"], {"count": 0, "sample": []})
        self.assertEqual(len(self.fetcher.calls), 1)

    async def test_probe_reports_partial_failure(self) -> None:
        """A failed PSE tier is reported inline when classic succeeds."""
        error = UpstreamHTTPError(503, "busy")
        error.attempts = 3
        scraper = self._scraper(
            {
                self.pse_url: error,
                self.classic_url: _goods_page(0, 4),
            }
        )
        report = await scraper.probe("tank top")

        self.assertEqual(report["pse"]["attempts"], 3)
        self.assertIn("503", report["pse"]["error"])
        self.assertEqual(report["classic"]["count"], 4)

    async def test_probe_raises_when_all_tiers_fail(self) -> None:
        """probe() raises the PSE error when nothing could be fetched."""
        scraper = self._scraper(
            {
                self.pse_url: UpstreamHTTPError(503, "busy"),
                self.classic_url: UpstreamHTTPError(502, "bad gateway"),
            }
        )
        with self.assertRaises(UpstreamHTTPError) as ctx:
            await scraper.probe("tank top")
        self.assertEqual(ctx.exception.status, 503)


if __name__ == "__main__":
    unittest.main()
