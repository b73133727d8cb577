# src/services/health_checker.py

"""Configuration presence health check (no network calls)."""

import logging
from dataclasses import dataclass

from src.config.settings import Settings

logger = logging.getLogger("realtime_search.health")


@dataclass
class HealthResult:
    """Which pieces of upstream configuration are present."""

    has_base: bool
    has_auth: bool
    endpoints: int
    auth_styles: list[str]

    @property
    def ready(self) -> bool:
        return self.has_base and self.has_auth

    def to_payload(self) -> dict[str, object]:
        """JSON envelope served by ``?health=1``."""
        return {
            "ok": True,
            "hasBase": self.has_base,
            "hasAuth": self.has_auth,
        }


class HealthChecker:
    """Reports proxy configuration presence without contacting it."""

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or Settings()

    def check(self) -> HealthResult:
        result = HealthResult(
            has_base=self.settings.has_proxy_base,
            has_auth=self.settings.has_proxy_auth,
            endpoints=len(self.settings.PROXY_BASES),
            auth_styles=list(self.settings.PROXY_AUTH_STYLES),
        )
        logger.info(
            "Health check: base=%s auth=%s endpoints=%d styles=%s",
            result.has_base,
            result.has_auth,
            result.endpoints,
            ",".join(result.auth_styles),
        )
        return result
