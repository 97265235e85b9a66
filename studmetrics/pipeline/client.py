"""Client for the pipeline service that owns scraping, alerts and report email.

The service is optional. Every call fails open: on a transport error (after
retries) or an error status the client logs a warning and returns ``None``, so
callers can fall back to their own data.
"""

from __future__ import annotations

import json
import logging
import os
from typing import Any
from urllib.parse import quote

import httpx

from studmetrics.utils.retry import retry_async

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:5111"
DEFAULT_TIMEOUT = float(os.environ.get("PIPELINE_TIMEOUT", 15))
HEALTH_TIMEOUT = 3.0


def pipeline_base_url() -> str:
    return os.environ.get("PIPELINE_API_URL", DEFAULT_BASE_URL).rstrip("/")


class PipelineClient:
    def __init__(
        self,
        base_url: str | None = None,
        *,
        session: httpx.AsyncClient | None = None,
        retry_delay: float = 1.0,
    ) -> None:
        self.base_url = (base_url or pipeline_base_url()).rstrip("/")
        self.session = session or httpx.AsyncClient(timeout=DEFAULT_TIMEOUT)
        self.retry_delay = retry_delay

    async def close(self) -> None:
        await self.session.aclose()

    async def __aenter__(self) -> "PipelineClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def _send(self, method: str, path: str, **kwargs: Any) -> httpx.Response | None:
        url = f"{self.base_url}{path}"
        try:
            response = await retry_async(self.session.request, delay=self.retry_delay)(method, url, **kwargs)
        except httpx.HTTPError as exc:
            logger.warning("Pipeline API not available at %s: %s", url, exc)
            return None
        if response.is_error:
            logger.warning("Pipeline API %s at %s: %s", response.status_code, url, response.text[:200])
            return None
        return response

    async def _json(self, method: str, path: str, **kwargs: Any) -> Any:
        response = await self._send(method, path, **kwargs)
        if response is None or not response.content:
            return None
        try:
            return response.json()
        except json.JSONDecodeError:
            return {"raw": response.text}

    # Alerts

    async def alert_subscriptions(self, email: str | None = None) -> Any:
        return await self._json("GET", "/api/alerts", params=_params(email=email))

    async def create_alert_subscription(self, subscription: dict[str, Any]) -> Any:
        return await self._json("POST", "/api/alerts", json=subscription)

    async def delete_alert_subscription(self, subscription_id: int | str) -> Any:
        return await self._json("GET", f"/api/alerts/delete/{subscription_id}")

    async def toggle_alert_subscription(self, subscription_id: int | str, enabled: bool = True) -> Any:
        return await self._json(
            "GET",
            f"/api/alerts/toggle/{subscription_id}",
            params={"enabled": "true" if enabled else "false"},
        )

    async def alert_history(self, limit: int = 50, email: str | None = None) -> Any:
        return await self._json("GET", "/api/alerts/history", params=_params(limit=limit, email=email))

    async def alert_stats(self) -> Any:
        return await self._json("GET", "/api/alerts/stats")

    async def evaluate_alerts(self) -> Any:
        return await self._json("GET", "/api/alerts/evaluate")

    # Reports

    async def report_profiles(self, email: str | None = None) -> Any:
        return await self._json("GET", "/api/reports", params=_params(email=email))

    async def create_report_profile(self, profile: dict[str, Any]) -> Any:
        return await self._json("POST", "/api/reports", json=profile)

    async def delete_report_profile(self, profile_id: int | str) -> Any:
        return await self._json("GET", f"/api/reports/delete/{profile_id}")

    async def report_history(self, limit: int = 20) -> Any:
        return await self._json("GET", "/api/reports/history", params={"limit": limit})

    async def report_stats(self) -> Any:
        return await self._json("GET", "/api/reports/stats")

    async def preview_report(self, profile_or_type: int | str = "daily") -> dict[str, str] | None:
        """Report HTML for a profile id or a generic type ("daily", "weekly")."""
        if _is_profile_id(profile_or_type):
            response = await self._send("GET", f"/api/reports/preview/{profile_or_type}")
        else:
            response = await self._send("GET", "/api/reports/preview", params={"type": profile_or_type or "daily"})
        if response is None:
            return None
        return {"html": response.text}

    async def generate_report(self, profile_or_type: int | str = "daily", send_email: bool = False) -> Any:
        if _is_profile_id(profile_or_type):
            return await self._json(
                "GET",
                f"/api/reports/generate/{profile_or_type}",
                params={"send": "true" if send_email else "false"},
            )
        return await self._json("GET", "/api/reports/generate", params={"type": profile_or_type or "daily"})

    async def generate_all_reports(self, frequency: str = "daily") -> Any:
        return await self._json("GET", "/api/reports/generate-all", params={"frequency": frequency})

    # Time series and analytics

    async def market_timeseries(self) -> Any:
        return await self._json("GET", "/api/timeseries/market")

    async def product_timeseries(self, slug: str) -> Any:
        return await self._json("GET", f"/api/timeseries/product/{quote(slug, safe='')}")

    async def retirement_risk(self, limit: int = 50) -> Any:
        return await self._json("GET", "/api/retirement-risk", params={"limit": limit})

    async def deals(self, limit: int = 50) -> Any:
        return await self._json("GET", "/api/deals", params={"limit": limit})

    async def new_deals(self, limit: int = 50) -> Any:
        return await self._json("GET", "/api/new-deals", params={"limit": limit})

    async def theme_health(self) -> Any:
        return await self._json("GET", "/api/theme-health")

    async def weekly_public_report(self) -> Any:
        return await self._json("GET", "/api/reports/weekly-public")

    async def email_stats(self) -> Any:
        return await self._json("GET", "/api/email/stats")

    async def health(self) -> bool:
        """``True`` when ``/status`` answers with a success code."""
        try:
            response = await self.session.get(f"{self.base_url}/status", timeout=HEALTH_TIMEOUT)
        except httpx.HTTPError:
            return False
        return response.is_success


def _params(**values: Any) -> dict[str, Any]:
    return {key: value for key, value in values.items() if value is not None}


def _is_profile_id(value: int | str) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    return isinstance(value, str) and value.isdigit()


def unwrap_list(payload: Any, key: str) -> list[Any]:
    """The service answers with either a bare list or ``{key: [...]}``."""
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        items = payload.get(key)
        if isinstance(items, list):
            return items
    return []
