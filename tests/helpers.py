# tests/helpers.py

"""Builders shared by the test modules."""

from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

from src.config.settings import Settings
from src.models.fetch import FetchOutcome

FIXTURES_DIR = Path(__file__).parent / "fixtures"


def load_fixture(name: str) -> str:
    """Read an HTML fixture file as text."""
    with open(FIXTURES_DIR / name, encoding="utf-8") as f:
        return f.read()


def make_settings(**overrides: Any) -> Settings:
    """A Settings instance with proxy config present and overrides applied."""
    settings = Settings()
    settings.PROXY_BASES = ["https://proxy.test/scrape"]
    settings.PROXY_AUTH = "user:secret"
    settings.PROXY_AUTH_STYLES = ["basic"]
    settings.PROXY_TRANSPORT = "post"
    for key, value in overrides.items():
        setattr(settings, key, value)
    return settings


def make_response(status_code: int = 200, text: str = "") -> MagicMock:
    """A fake curl_cffi response."""
    resp = MagicMock()
    resp.status_code = status_code
    resp.text = text
    return resp


class FakeFetcher:
    """Stands in for ResilientFetcher, mapping URLs to canned outcomes.

    A value that is an exception instance is raised instead of
    returned.  Every call is recorded as ``(url, options)``.
    """

    def __init__(self, pages: dict[str, Any]) -> None:
        self.pages = pages
        self.calls: list[tuple[str, Any]] = []

    async def fetch(self, url: str, options: Any) -> Any:
        self.calls.append((url, options))
        page = self.pages.get(url)
        if page is None:
            for prefix, value in self.pages.items():
                if url.startswith(prefix):
                    page = value
                    break
        if isinstance(page, BaseException):
            raise page
        return FetchOutcome(
            text=page or "",
            attempts=1,
            endpoint="https://proxy.test/scrape",
            auth_style="basic",
        )
