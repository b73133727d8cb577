# src/models/product.py

"""Product record model for inter-module data flow."""

from dataclasses import asdict, dataclass
from enum import Enum


class Source(str, Enum):
    """Site families a record can originate from."""

    AMAZON = "amazon"
    SHEIN = "shein"


@dataclass(frozen=True)
class ProductRecord:
    """Represents a single product listing extracted from any source."""

    source: Source
    title: str
    url: str = ""
    image: str = ""
    price: str = ""
    currency: str = ""

    @property
    def identity_key(self) -> str:
        """Deduplication key: the URL when present, else the title."""
        return self.url or self.title

    def to_dict(self) -> dict[str, str]:
        """Serialise to the JSON shape served by the API."""
        data = asdict(self)
        data["source"] = self.source.value
        return data
