# src/models/fetch.py

"""Request options and outcomes for the upstream rendering proxy."""

from dataclasses import dataclass


@dataclass(frozen=True)
class FetchOptions:
    """Rendering options sent to the proxy alongside a target URL."""

    render: bool = True
    country: str = "US"
    locale: str = "en"
    format: str = "html"

    def to_payload(self, target_url: str) -> dict[str, object]:
        """Build the proxy request body for *target_url*."""
        return {
            "url": target_url,
            "render": self.render,
            "country": self.country,
            "locale": self.locale,
            "format": self.format,
            "parse": False,
        }


@dataclass(frozen=True)
class FetchOutcome:
    """A successfully fetched document and how it was obtained."""

    text: str
    attempts: int
    endpoint: str
    auth_style: str
