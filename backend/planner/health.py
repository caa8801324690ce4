"""Health check module reporting collaborator configuration."""

from __future__ import annotations

from .logging_config import SERVICE_NAME, SERVICE_VERSION
from .schemas import HealthCheck, HealthResponse
from .settings import Settings


def _is_configured(value: str | None) -> bool:
    """Return True when a config string is non-empty after trimming."""
    return bool(value and value.strip())


class HealthChecker:
    """Reports whether the reasoning and retrieval collaborators are configured.

    No network calls are made; a healthy answer means the service could
    attempt a plan, not that the collaborators are up.
    """

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    def check_all(self) -> HealthResponse:
        checks = {
            "reasoning": self._check(self.settings.OPENAI_API_KEY, "OPENAI_API_KEY"),
            "retrieval": self._check(self.settings.RETRIEVAL_API_URL, "RETRIEVAL_API_URL"),
        }
        all_ok = all(check.status == "ok" for check in checks.values())
        return HealthResponse(
            status="healthy" if all_ok else "degraded",
            service=SERVICE_NAME,
            version=SERVICE_VERSION,
            checks=checks,
        )

    @staticmethod
    def _check(value: str | None, name: str) -> HealthCheck:
        if _is_configured(value):
            return HealthCheck(status="ok")
        return HealthCheck(status="missing", detail=f"{name} not configured")


__all__ = ["HealthChecker"]
