# src/services/resilient_fetcher.py

"""Retry and endpoint/credential fallback around the proxy client."""

import asyncio
import itertools
import logging
from collections.abc import Awaitable, Callable

from src.config.settings import Settings
from src.models.fetch import FetchOptions, FetchOutcome
from src.services.exceptions import ScrapeError
from src.services.proxy_client import ProxyClient

logger = logging.getLogger("realtime_search.fetcher")


class ResilientFetcher:
    """Wraps :class:`ProxyClient` with timed retries and fallback.

    Each round walks the fixed list of ``(endpoint, auth_style)``
    pairs and returns on the first success.  Rounds are separated by
    exponential backoff (``BACKOFF_BASE * 2**round``).  A
    :class:`ConfigurationError` is raised immediately since config
    cannot change mid-request.
    """

    def __init__(
        self,
        client: ProxyClient | None = None,
        settings: Settings | None = None,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ) -> None:
        self.settings = settings or Settings()
        self.client = client or ProxyClient(self.settings)
        self._sleep = sleep or asyncio.sleep

    def combinations(self) -> list[tuple[str, str]]:
        """Return the ordered endpoint × auth-style trial list.

        With no endpoint configured a single empty endpoint is
        returned so the client raises its ConfigurationError.
        """
        endpoints = self.settings.PROXY_BASES or [""]
        styles = self.settings.PROXY_AUTH_STYLES or ["basic"]
        return list(itertools.product(endpoints, styles))

    async def fetch(
        self,
        target_url: str,
        options: FetchOptions,
    ) -> FetchOutcome:
        """Fetch *target_url*, retrying across rounds and combinations.

        Raises the last :class:`ScrapeError` seen once every round is
        exhausted, with ``attempts`` set to the number of calls made.
        """
        combos = self.combinations()
        rounds = max(1, self.settings.MAX_RETRIES)
        attempts = 0
        last_error: ScrapeError | None = None

        for round_no in range(rounds):
            for endpoint, style in combos:
                attempts += 1
                try:
                    text = await self.client.fetch(
                        target_url,
                        options,
                        endpoint=endpoint,
                        auth_style=style,
                    )
                except ScrapeError as exc:
                    if not exc.retryable:
                        exc.attempts = attempts
                        raise
                    last_error = exc
                    logger.warning(
                        "Attempt %d for %s failed "
                        "(endpoint=%s, auth=%s): %s",
                        attempts,
                        target_url,
                        endpoint,
                        style,
                        exc,
                    )
                    continue

                if attempts > 1:
                    logger.info(
                        "Recovered %s after %d attempts",
                        target_url,
                        attempts,
                    )
                return FetchOutcome(
                    text=text,
                    attempts=attempts,
                    endpoint=endpoint,
                    auth_style=style,
                )

            if round_no < rounds - 1:
                delay = self.settings.BACKOFF_BASE * (2 ** round_no)
                if delay > 0:
                    await self._sleep(delay)

        if last_error is None:
            raise ScrapeError(f"No fetch attempt was made for {target_url}")
        last_error.attempts = attempts
        logger.error(
            "Giving up on %s after %d attempts "
            "(%d combinations): %s",
            target_url,
            attempts,
            len(combos),
            last_error,
        )
        raise last_error
