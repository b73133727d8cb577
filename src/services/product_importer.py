# src/services/product_importer.py

"""Creates draft products in the storefront's Shopify admin."""

import html
import logging
import re
from dataclasses import dataclass, field
from typing import Any

from curl_cffi import requests as curl_requests
from curl_cffi.requests.exceptions import RequestException

from src.config.settings import Settings

logger = logging.getLogger("realtime_search.importer")


class ImportConfigError(Exception):
    """Shopify store or admin token is not configured."""


class ImportUpstreamError(Exception):
    """Shopify rejected the product or could not be reached."""

    def __init__(self, status: int, detail: Any) -> None:
        super().__init__(f"Shopify HTTP {status}: {detail}")
        self.status = status
        self.detail = detail


@dataclass
class ImportRequest:
    """A scraped listing the storefront wants to import as a draft."""

    title: str
    source: str = ""
    id: str = ""
    url: str = ""
    price: str | float | None = None
    compare_at_price: str | float | None = None
    images: list[str] = field(default_factory=lambda: list[str]())


def make_handle(title: str) -> str:
    """URL handle from a title: lower-case, dash-separated alphanumerics."""
    return re.sub(r"[^a-z0-9]+", "-", title.lower()).strip("-")


def _price_text(value: str | float | None) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


def build_product_payload(
    request: ImportRequest, max_images: int = Settings.IMPORT_MAX_IMAGES,
) -> dict[str, Any]:
    """Shape an :class:`ImportRequest` into a Shopify product body."""
    body_html = ""
    if request.url:
        origin = html.escape(request.source or "external")
        href = html.escape(request.url, quote=True)
        body_html = (
            f"<p>Imported from {origin}: "
            f'<a href="{href}" target="_blank" '
            f'rel="nofollow noopener">view source</a></p>'
        )

    variant: dict[str, str] = {}
    price = _price_text(request.price)
    compare_at = _price_text(request.compare_at_price)
    if price is not None:
        variant["price"] = price
    if compare_at is not None:
        variant["compare_at_price"] = compare_at

    product: dict[str, Any] = {
        "title": request.title,
        "handle": make_handle(request.title),
        "status": "draft",
        "body_html": body_html,
        "images": [{"src": src} for src in request.images[:max_images]],
    }
    if variant:
        product["variants"] = [variant]
    return {"product": product}


class ProductImporter:
    """Posts draft products to the Shopify Admin REST API."""

    def __init__(
        self,
        settings: Settings | None = None,
        session: Any = None,
    ) -> None:
        self.settings = settings or Settings()
        self.session = session

    def _endpoint(self) -> str:
        return (
            f"https://{self.settings.SHOPIFY_STORE}/admin/api/"
            f"{self.settings.SHOPIFY_API_VERSION}/products.json"
        )

    async def _post(
        self, url: str, headers: dict[str, str], body: dict[str, Any],
    ) -> Any:
        if self.session is not None:
            return await self.session.post(
                url,
                headers=headers,
                json=body,
                timeout=self.settings.REQUEST_TIMEOUT,
            )
        async with curl_requests.AsyncSession() as session:
            return await session.post(
                url,
                headers=headers,
                json=body,
                timeout=self.settings.REQUEST_TIMEOUT,
            )

    async def create_draft(self, request: ImportRequest) -> dict[str, Any]:
        """Create a draft product and return its id and handle.

        Raises:
            ValueError: the request has no title.
            ImportConfigError: store or token missing.
            ImportUpstreamError: Shopify answered non-2xx or was
                unreachable.
        """
        if not request.title.strip():
            msg = "Missing title"
            raise ValueError(msg)
        if not (
            self.settings.SHOPIFY_STORE
            and self.settings.SHOPIFY_ADMIN_API_TOKEN
        ):
            msg = "Missing SHOPIFY_STORE or SHOPIFY_ADMIN_API_TOKEN env vars"
            raise ImportConfigError(msg)

        body = build_product_payload(
            request, self.settings.IMPORT_MAX_IMAGES
        )
        headers = {
            "X-Shopify-Access-Token": self.settings.SHOPIFY_ADMIN_API_TOKEN,
            "Content-Type": "application/json",
        }

        try:
            resp = await self._post(self._endpoint(), headers, body)
        except RequestException as exc:
            logger.error(
                "Shopify import transport error: %s", exc, exc_info=True
            )
            raise ImportUpstreamError(502, str(exc)) from exc

        try:
            data: Any = resp.json()
        except ValueError:
            data = {"errors": resp.text[:300]}

        if not 200 <= resp.status_code < 300:
            detail = data.get("errors", data) if isinstance(data, dict) else data
            logger.warning(
                "Shopify rejected '%s': HTTP %d %s",
                request.title,
                resp.status_code,
                detail,
            )
            raise ImportUpstreamError(resp.status_code, detail)

        product: dict[str, Any] = data.get("product", {}) or {}
        logger.info(
            "Imported draft '%s' as product %s",
            request.title,
            product.get("id"),
        )
        return {
            "ok": True,
            "product_id": product.get("id"),
            "product_handle": product.get("handle"),
        }
