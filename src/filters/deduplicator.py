# src/filters/deduplicator.py

"""Product deduplication across sources and fallback tiers."""

import logging

from src.models.product import ProductRecord

logger = logging.getLogger("realtime_search.filters")


class ProductDeduplicator:
    """Remove records that share an identity key, keeping the first."""

    @staticmethod
    def deduplicate(
        records: list[ProductRecord],
    ) -> tuple[list[ProductRecord], int]:
        """Drop later records whose identity key was already seen.

        The identity key is the URL when present, else the title.
        Records with neither are dropped too.  Input order is
        preserved, so upstream relevance order survives.

        Returns the deduplicated list and the count of removed records.
        """
        if not records:
            return [], 0

        seen: set[str] = set()
        kept: list[ProductRecord] = []
        removed = 0

        for record in records:
            key = record.identity_key
            if not key or key in seen:
                removed += 1
                continue
            seen.add(key)
            kept.append(record)

        if removed:
            logger.debug(
                "Deduplication removed %d duplicate records",
                removed,
            )

        return kept, removed
