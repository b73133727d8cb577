# src/services/mock_catalog.py

"""Synthetic records for exercising storefront cards without upstreams."""

from src.models.product import ProductRecord, Source

MOCK_COUNT = 12
_MOCK_SOURCES = (Source.AMAZON, Source.SHEIN)
_PLACEHOLDER_IMAGE = "https://via.placeholder.com/400x300?text=Demo"


def mock_records(query: str, count: int = MOCK_COUNT) -> list[ProductRecord]:
    """Fixed-shape records alternating amazon/shein, priced 19.99 upward."""
    label = query.strip() or "demo"
    return [
        ProductRecord(
            source=_MOCK_SOURCES[i % len(_MOCK_SOURCES)],
            title=f"{label.title()} demo product {i + 1}",
            url=f"https://example.com/mock/{i + 1}",
            image=_PLACEHOLDER_IMAGE,
            price=f"{19.99 + i:.2f}",
            currency="USD",
        )
        for i in range(count)
    ]
