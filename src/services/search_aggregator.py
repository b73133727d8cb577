# src/services/search_aggregator.py

"""Runs every configured source concurrently and merges their records."""

import asyncio
import importlib
import logging
from dataclasses import dataclass, field
from typing import Any

from src.config.settings import Settings
from src.filters.deduplicator import ProductDeduplicator
from src.models.product import ProductRecord
from src.scrapers.base_scraper import BaseScraper
from src.services.resilient_fetcher import ResilientFetcher

logger = logging.getLogger("realtime_search.aggregator")


@dataclass
class AggregateResult:
    """Merged, deduplicated records for one query across all sources."""

    query: str
    items: list[ProductRecord] = field(
        default_factory=lambda: list[ProductRecord]()
    )
    source_counts: dict[str, int] = field(
        default_factory=lambda: dict[str, int]()
    )
    deduplicated_count: int = 0
    errors: list[str] = field(
        default_factory=lambda: list[str]()
    )

    def to_payload(self) -> dict[str, Any]:
        """JSON envelope served by the search endpoint."""
        return {
            "ok": True,
            "items": [r.to_dict() for r in self.items],
            "count": len(self.items),
        }


def _load_scraper_class(dotted_path: str) -> type[Any]:
    """Dynamically import a scraper class from its dotted module path."""
    module_path, class_name = dotted_path.rsplit(".", 1)
    module = importlib.import_module(module_path)
    cls: type[Any] = getattr(module, class_name)
    return cls


def build_scrapers(
    fetcher: ResilientFetcher,
    settings: Settings,
    sources: list[dict[str, str]] | None = None,
) -> dict[str, BaseScraper]:
    """Instantiate registry scrapers, keyed by source id, in order."""
    registry = (
        sources if sources is not None else settings.AVAILABLE_SOURCES
    )
    scrapers: dict[str, BaseScraper] = {}
    for src in registry:
        cls = _load_scraper_class(src["scraper"])
        scrapers[src["id"]] = cls(fetcher=fetcher, settings=settings)
    return scrapers


class SearchAggregator:
    """Coordinates concurrent scraping, merging and deduplication."""

    def __init__(
        self,
        scrapers: dict[str, BaseScraper],
        settings: Settings | None = None,
    ) -> None:
        self.settings = settings or Settings()
        self.scrapers = scrapers

    async def _run_one(
        self, source_id: str, scraper: BaseScraper, query: str,
    ) -> list[ProductRecord]:
        records = await scraper.search(query)
        logger.debug(
            "Source %s returned %d records", source_id, len(records)
        )
        return records

    async def aggregate(self, query: str) -> AggregateResult:
        """Search all sources and merge their records.

        A source that fails outright contributes nothing; its error
        is logged and recorded but never raised.  Records keep source
        registry order, then upstream order within each source.
        """
        result = AggregateResult(query=query)
        source_ids = list(self.scrapers)

        batches = await asyncio.gather(
            *(
                self._run_one(sid, self.scrapers[sid], query)
                for sid in source_ids
            ),
            return_exceptions=True,
        )

        merged: list[ProductRecord] = []
        for source_id, batch in zip(source_ids, batches):
            if isinstance(batch, BaseException):
                result.source_counts[source_id] = 0
                result.errors.append(f"{source_id}: {batch}")
                logger.error(
                    "Source %s failed for query '%s': %s",
                    source_id,
                    query,
                    batch,
                    exc_info=batch,
                )
                continue
            result.source_counts[source_id] = len(batch)
            merged.extend(batch)

        unique, result.deduplicated_count = (
            ProductDeduplicator.deduplicate(merged)
        )
        result.items = unique[: self.settings.MAX_AGGREGATE_RESULTS]

        logger.info(
            "q='%s' -> %s, %d merged",
            query,
            ", ".join(
                f"{sid}:{n}" for sid, n in result.source_counts.items()
            ),
            len(result.items),
        )
        return result
