# src/models/auction.py

"""Auction lot model for the CSV-backed listing feed."""

from dataclasses import asdict, dataclass, fields


@dataclass(frozen=True)
class AuctionLot:
    """A single auction lot row from the published sheet."""

    id: str = ""
    title: str = ""
    url: str = ""
    image: str = ""
    location: str = ""
    current_bid: str = ""
    msrp: str = ""
    ends_at: str = ""
    quantity: str = ""
    condition: str = ""
    category: str = ""
    seller: str = ""

    @classmethod
    def from_row(cls, row: dict[str, str | None]) -> "AuctionLot":
        """Build a lot from a CSV row, ignoring unknown columns."""
        values = {
            f.name: (row.get(f.name) or "").strip()
            for f in fields(cls)
        }
        return cls(**values)

    def to_dict(self) -> dict[str, str]:
        """Serialise to the JSON shape served by the API."""
        return asdict(self)
