# tests/test_resilient_fetcher.py

"""Tests for retry, backoff and endpoint/credential fallback."""

import unittest
from unittest.mock import AsyncMock, MagicMock, patch

from helpers import make_settings

from src.models.fetch import FetchOptions
from src.services.exceptions import (
    ConfigurationError,
    EmptyDocumentError,
    ScrapeError,
    UpstreamHTTPError,
)
from src.services.resilient_fetcher import ResilientFetcher

TARGET = "https://us.shein.com/pse?keyword=dress"


def _client(*outcomes: object) -> MagicMock:
    client = MagicMock()
    client.fetch = AsyncMock(side_effect=list(outcomes))
    return client


class TestCombinations(unittest.TestCase):
    """Order of the endpoint x auth-style trial list."""

    def test_endpoint_major_order(self) -> None:
        settings = make_settings(
            PROXY_BASES=["https://a.test", "https://b.test"],
            PROXY_AUTH_STYLES=["basic", "bearer"],
        )
        fetcher = ResilientFetcher(client=MagicMock(), settings=settings)
        self.assertEqual(
            fetcher.combinations(),
            [
                ("https://a.test", "basic"),
                ("https://a.test", "bearer"),
                ("https://b.test", "basic"),
                ("https://b.test", "bearer"),
            ],
        )

    def test_unconfigured_base_still_tried_once(self) -> None:
        """An empty endpoint list leaves one slot for the config error."""
        fetcher = ResilientFetcher(
            client=MagicMock(), settings=make_settings(PROXY_BASES=[])
        )
        self.assertEqual(fetcher.combinations(), [("", "basic")])


class TestResilientFetcher(unittest.IsolatedAsyncioTestCase):
    """ResilientFetcher.fetch retry behaviour."""

    async def test_first_success_is_single_attempt(self) -> None:
        client = _client("<html>ok</html>")
        fetcher = ResilientFetcher(client=client, settings=make_settings())

        outcome = await fetcher.fetch(TARGET, FetchOptions())

        self.assertEqual(outcome.text, "<html>ok</html>")
        self.assertEqual(outcome.attempts, 1)
        self.assertEqual(outcome.endpoint, "https://proxy.test/scrape")
        self.assertEqual(outcome.auth_style, "basic")

    async def test_recovers_after_two_failures_with_backoff(self) -> None:
        """Two transient failures then success: 3 attempts, 1s then 2s."""
        client = _client(
            UpstreamHTTPError(503, "busy"),
            EmptyDocumentError(10),
            "<html>ok</html>",
        )
        sleep = AsyncMock()
        fetcher = ResilientFetcher(
            client=client,
            settings=make_settings(BACKOFF_BASE=1.0),
            sleep=sleep,
        )

        outcome = await fetcher.fetch(TARGET, FetchOptions())

        self.assertEqual(outcome.attempts, 3)
        self.assertEqual(
            [c.args[0] for c in sleep.await_args_list], [1.0, 2.0]
        )

    async def test_fallback_within_round_skips_backoff(self) -> None:
        """The second endpoint is tried before any backoff."""
        client = _client(UpstreamHTTPError(502, "bad"), "<html>ok</html>")
        sleep = AsyncMock()
        fetcher = ResilientFetcher(
            client=client,
            settings=make_settings(
                PROXY_BASES=["https://a.test", "https://b.test"],
                BACKOFF_BASE=1.0,
            ),
            sleep=sleep,
        )

        outcome = await fetcher.fetch(TARGET, FetchOptions())

        self.assertEqual(outcome.attempts, 2)
        self.assertEqual(outcome.endpoint, "https://b.test")
        sleep.assert_not_awaited()
        endpoints = [
            c.kwargs["endpoint"] for c in client.fetch.await_args_list
        ]
        self.assertEqual(endpoints, ["https://a.test", "https://b.test"])

    async def test_configuration_error_is_not_retried(self) -> None:
        client = _client(ConfigurationError("PROXY_AUTH is not configured"))
        fetcher = ResilientFetcher(client=client, settings=make_settings())

        with self.assertRaises(ConfigurationError) as ctx:
            await fetcher.fetch(TARGET, FetchOptions())
        self.assertEqual(ctx.exception.attempts, 1)
        self.assertEqual(client.fetch.await_count, 1)

    async def test_exhaustion_raises_last_error_with_attempts(self) -> None:
        """Every round over every combination is tried before giving up."""
        errors = [UpstreamHTTPError(503, f"busy {i}") for i in range(6)]
        client = _client(*errors)
        sleep = AsyncMock()
        fetcher = ResilientFetcher(
            client=client,
            settings=make_settings(
                PROXY_AUTH_STYLES=["basic", "bearer"], BACKOFF_BASE=0.5
            ),
            sleep=sleep,
        )

        with self.assertRaises(UpstreamHTTPError) as ctx:
            await fetcher.fetch(TARGET, FetchOptions())
        self.assertIs(ctx.exception, errors[-1])
        self.assertEqual(ctx.exception.attempts, 6)
        self.assertEqual(
            [c.args[0] for c in sleep.await_args_list], [0.5, 1.0]
        )

    async def test_zero_backoff_never_sleeps(self) -> None:
        client = _client(
            UpstreamHTTPError(503, "busy"), "<html>ok</html>"
        )
        sleep = AsyncMock()
        fetcher = ResilientFetcher(
            client=client,
            settings=make_settings(BACKOFF_BASE=0.0),
            sleep=sleep,
        )

        outcome = await fetcher.fetch(TARGET, FetchOptions())

        self.assertEqual(outcome.attempts, 2)
        sleep.assert_not_awaited()

    async def test_empty_trial_list_raises_without_calling_proxy(self) -> None:
        client = _client()
        fetcher = ResilientFetcher(client=client, settings=make_settings())

        with patch.object(fetcher, "combinations", return_value=[]):
            with self.assertRaises(ScrapeError) as ctx:
                await fetcher.fetch(TARGET, FetchOptions())
        self.assertEqual(ctx.exception.attempts, 0)
        client.fetch.assert_not_awaited()


if __name__ == "__main__":
    unittest.main()
