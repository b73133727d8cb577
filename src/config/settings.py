# src/config/settings.py

"""Central configuration for the realtime_search engine."""

import os
from pathlib import Path

from curl_cffi.requests import BrowserTypeLiteral
from dotenv import load_dotenv

load_dotenv()


def _env_list(name: str, default: str = "") -> list[str]:
    """Split a comma-separated environment variable into clean items."""
    raw = os.getenv(name, default) or ""
    return [part.strip() for part in raw.split(",") if part.strip()]


class Settings:
    """Central configuration for the realtime_search engine."""

    # --- Upstream rendering proxy ---
    PROXY_BASES: list[str] = _env_list("PROXY_BASE")
    PROXY_AUTH: str = os.getenv("PROXY_AUTH", "")
    PROXY_AUTH_STYLES: list[str] = _env_list(
        "PROXY_AUTH_STYLES", "basic"
    )
    PROXY_TRANSPORT: str = os.getenv("PROXY_TRANSPORT", "post")
    PROXY_COUNTRY: str = os.getenv("PROXY_COUNTRY", "US")
    PROXY_LOCALE: str = os.getenv("PROXY_LOCALE", "en")

    # --- Fetching ---
    REQUEST_TIMEOUT: int = 30           # Seconds before a proxy call is abandoned
    MAX_RETRIES: int = 3                # Rounds over the endpoint x auth space
    BACKOFF_BASE: float = 1.0           # First backoff delay, doubled per round
    MIN_DOCUMENT_LENGTH: int = 400      # Shorter documents are "blocked" shells
    ERROR_EXCERPT_LENGTH: int = 180     # Body excerpt carried by HTTP errors

    # --- Aggregation ---
    MAX_RESULTS_PER_SOURCE: int = 12
    MAX_AGGREGATE_RESULTS: int = 24
    SHEIN_CLASSIC_THRESHOLD: int = 8    # PSE yield below this triggers classic

    # --- Cache ---
    QUERY_CACHE_TTL: float = 300.0      # 5 minutes
    QUERY_CACHE_MAX_ENTRIES: int = 0    # 0 = unbounded

    # --- Browser Impersonation ---
    IMPERSONATE_BROWSER: BrowserTypeLiteral = "chrome131"

    # --- Logging ---
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "WARNING")   # stderr threshold

    # --- API surface ---
    ALLOWED_ORIGINS: list[str] = _env_list(
        "ALLOWED_ORIGINS",
        "https://www.jboxly.com,https://jboxly.com,"
        "https://jboxly.myshopify.com",
    )

    # --- Auction feed ---
    AUCTIONS_CSV_URL: str = os.getenv("AUCTIONS_CSV_URL", "")
    AUCTIONS_PAGE_SIZE: int = 24

    # --- Draft product import ---
    SHOPIFY_STORE: str = os.getenv("SHOPIFY_STORE", "")
    SHOPIFY_ADMIN_API_TOKEN: str = os.getenv(
        "SHOPIFY_ADMIN_API_TOKEN", ""
    )
    SHOPIFY_API_VERSION: str = os.getenv(
        "SHOPIFY_API_VERSION", "2024-10"
    )
    IMPORT_MAX_IMAGES: int = 8

    # --- Paths ---
    BASE_DIR: Path = Path(__file__).resolve().parent.parent.parent
    SELECTORS_PATH: Path = BASE_DIR / "src" / "config" / "selectors.json"
    LOGS_DIR: Path = BASE_DIR / "logs"

    # --- Sources (registry order is result order) ---
    AVAILABLE_SOURCES: list[dict[str, str]] = [
        {
            "id": "amazon",
            "label": "Amazon",
            "scraper": "src.scrapers.amazon_scraper.AmazonScraper",
        },
        {
            "id": "shein",
            "label": "SHEIN",
            "scraper": "src.scrapers.shein_scraper.SheinScraper",
        },
    ]

    @property
    def has_proxy_base(self) -> bool:
        """True when at least one proxy endpoint is configured."""
        return bool(self.PROXY_BASES)

    @property
    def has_proxy_auth(self) -> bool:
        """True when proxy credential material is configured."""
        return bool(self.PROXY_AUTH)
