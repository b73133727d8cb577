# src/services/proxy_client.py

"""Single-call client for the upstream rendering proxy."""

import asyncio
import base64
import json
import logging
from collections.abc import Callable
from typing import Any

from curl_cffi import requests as curl_requests
from curl_cffi.requests.exceptions import RequestException, Timeout

from src.config.settings import Settings
from src.models.fetch import FetchOptions
from src.services.exceptions import (
    ConfigurationError,
    EmptyDocumentError,
    UpstreamConnectionError,
    UpstreamHTTPError,
    UpstreamTimeoutError,
)

logger = logging.getLogger("realtime_search.proxy")


# ── Credential styles ────────────────────────────────────


def _bearer_header(credential: str) -> dict[str, str]:
    if credential.lower().startswith("bearer "):
        return {"Authorization": credential}
    return {"Authorization": f"Bearer {credential}"}


def _basic_header(credential: str) -> dict[str, str]:
    """Basic auth; a ``user:pass`` credential is base64-encoded."""
    if credential.lower().startswith("basic "):
        return {"Authorization": credential}
    if ":" in credential:
        credential = base64.b64encode(
            credential.encode("utf-8")
        ).decode("ascii")
    return {"Authorization": f"Basic {credential}"}


def _api_key_header(credential: str) -> dict[str, str]:
    return {"X-API-Key": credential}


AUTH_STYLES: dict[str, Callable[[str], dict[str, str]]] = {
    "bearer": _bearer_header,
    "basic": _basic_header,
    "api-key": _api_key_header,
}


def normalize_document(raw: str) -> str:
    """Reduce the proxy's response shapes to plain document text.

    Tenants answer with ``{"html": ...}``, ``{"content": ...}``,
    ``{"html_content": ...}``, a bare JSON string, or raw HTML.
    """
    try:
        data: Any = json.loads(raw)
    except (json.JSONDecodeError, ValueError):
        return raw

    if isinstance(data, str):
        return data
    if isinstance(data, dict):
        for key in ("html", "content", "html_content"):
            value = data.get(key)
            if isinstance(value, str) and value:
                return value
        return ""
    return raw


class ProxyClient:
    """Issues one scrape request to the rendering proxy.

    The client is stateless apart from an optional injected session,
    so a single instance is safe to share across concurrent tasks.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        session: Any = None,
    ) -> None:
        self.settings = settings or Settings()
        self.session = session

    def _auth_headers(self, auth_style: str) -> dict[str, str]:
        builder = AUTH_STYLES.get(auth_style)
        if builder is None:
            msg = f"Unknown proxy auth style '{auth_style}'"
            raise ConfigurationError(msg)
        return builder(self.settings.PROXY_AUTH)

    async def _request(
        self,
        session: Any,
        endpoint: str,
        headers: dict[str, str],
        payload: dict[str, object],
    ) -> Any:
        timeout = self.settings.REQUEST_TIMEOUT
        if self.settings.PROXY_TRANSPORT.lower() == "get":
            params = {
                k: (str(v).lower() if isinstance(v, bool) else v)
                for k, v in payload.items()
            }
            call = session.get(
                endpoint,
                headers=headers,
                params=params,
                timeout=timeout,
            )
        else:
            call = session.post(
                endpoint,
                headers={
                    **headers,
                    "Content-Type": "application/json",
                },
                json=payload,
                timeout=timeout,
            )
        return await asyncio.wait_for(call, timeout=timeout)

    async def _send(
        self,
        endpoint: str,
        headers: dict[str, str],
        payload: dict[str, object],
    ) -> Any:
        if self.session is not None:
            return await self._request(
                self.session, endpoint, headers, payload
            )
        async with curl_requests.AsyncSession(
            impersonate=self.settings.IMPERSONATE_BROWSER
        ) as session:
            return await self._request(
                session, endpoint, headers, payload
            )

    async def fetch(
        self,
        target_url: str,
        options: FetchOptions,
        endpoint: str | None = None,
        auth_style: str | None = None,
    ) -> str:
        """Fetch *target_url* through the proxy and return its document text.

        Raises:
            ValueError: *target_url* is empty.
            ConfigurationError: no proxy endpoint or credential.
            UpstreamHTTPError: the proxy answered with a non-2xx status.
            EmptyDocumentError: the document is shorter than
                ``MIN_DOCUMENT_LENGTH``.
            UpstreamTimeoutError: the bounded wait elapsed.
            UpstreamConnectionError: any other transport failure.
        """
        if not target_url:
            msg = "target_url must be non-empty"
            raise ValueError(msg)

        base = endpoint if endpoint is not None else (
            self.settings.PROXY_BASES[0]
            if self.settings.PROXY_BASES
            else ""
        )
        if not base:
            msg = "PROXY_BASE is not configured"
            raise ConfigurationError(msg)
        if not self.settings.PROXY_AUTH:
            msg = "PROXY_AUTH is not configured"
            raise ConfigurationError(msg)

        style = auth_style or (
            self.settings.PROXY_AUTH_STYLES[0]
            if self.settings.PROXY_AUTH_STYLES
            else "basic"
        )
        headers = self._auth_headers(style)
        payload = options.to_payload(target_url)

        logger.debug(
            "Proxy %s via %s (auth=%s, render=%s)",
            target_url,
            base,
            style,
            options.render,
        )

        try:
            resp = await self._send(base, headers, payload)
        except (asyncio.TimeoutError, Timeout) as exc:
            raise UpstreamTimeoutError(
                self.settings.REQUEST_TIMEOUT
            ) from exc
        except RequestException as exc:
            msg = f"Proxy transport error: {exc}"
            raise UpstreamConnectionError(msg) from exc

        text: str = resp.text or ""
        status: int = resp.status_code
        if not 200 <= status < 300:
            excerpt = text[: self.settings.ERROR_EXCERPT_LENGTH]
            logger.error(
                "Proxy HTTP %d for %s: %s",
                status,
                target_url,
                text[:300],
            )
            raise UpstreamHTTPError(status, excerpt)

        document = normalize_document(text)
        if len(document) < self.settings.MIN_DOCUMENT_LENGTH:
            logger.warning(
                "Proxy document too short for %s (len=%d, head=%r)",
                target_url,
                len(document),
                text[:120],
            )
            raise EmptyDocumentError(len(document), text[:120])

        logger.info(
            "Fetched %s (len=%d)", target_url, len(document)
        )
        return document
