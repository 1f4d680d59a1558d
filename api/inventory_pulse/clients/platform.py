# inventory_pulse/clients/platform.py
"""
GraphQL client for the commerce platform Admin API.

One client value per shop + offline access token. The caller owns the
credential; nothing here acquires or refreshes it.
"""
from __future__ import annotations
import asyncio
import logging
import random
from typing import Any, Dict, Optional

import httpx

from inventory_pulse.errors import PlatformApiError
from inventory_pulse.settings import settings

logger = logging.getLogger(__name__)

RETRYABLE_STATUS = {429, 500, 502, 503, 504}


def _backoff_delay(attempt: int, base: float, mx: float = 10.0) -> float:
    return min(mx, base * (2 ** (attempt - 1))) + random.uniform(0, base / 2)


def _is_throttled(errors: list) -> bool:
    for e in errors:
        code = ((e or {}).get("extensions") or {}).get("code", "") if isinstance(e, dict) else ""
        if str(code).upper() == "THROTTLED":
            return True
    return False


class PlatformClient:
    """
    Usage:
        async with PlatformClient("demo.myshopify.com", token) as client:
            data = await client.execute(LOCATIONS_QUERY, {"first": 50, "cursor": None})
    """

    def __init__(
        self,
        shop_domain: str,
        access_token: str,
        *,
        api_version: Optional[str] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        retry_base_delay: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.shop_domain = shop_domain
        self.api_version = api_version or settings.PLATFORM_API_VERSION
        self.max_retries = settings.PLATFORM_MAX_RETRIES if max_retries is None else max_retries
        self.retry_base_delay = (
            settings.PLATFORM_RETRY_BASE_DELAY if retry_base_delay is None else retry_base_delay
        )
        self._client = httpx.AsyncClient(
            base_url=f"https://{shop_domain}",
            headers={
                "X-Shopify-Access-Token": access_token,
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
            timeout=timeout or settings.PLATFORM_TIMEOUT,
            transport=transport,
        )

    @property
    def endpoint(self) -> str:
        return f"/admin/api/{self.api_version}/graphql.json"

    async def __aenter__(self) -> "PlatformClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def execute(self, query: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Run one GraphQL operation and return its `data` object.

        Throttling (HTTP 429/5xx or a THROTTLED GraphQL error) is retried with
        backoff up to max_retries; everything else raises PlatformApiError.
        """
        payload = {"query": query, "variables": variables or {}}
        attempts = self.max_retries + 1

        for attempt in range(1, attempts + 1):
            try:
                resp = await self._client.post(self.endpoint, json=payload)
            except httpx.HTTPError as e:
                if attempt < attempts:
                    await self._sleep(attempt, f"transport error: {e}")
                    continue
                raise PlatformApiError(f"[{self.shop_domain}] transport error: {e}") from e

            if resp.status_code in RETRYABLE_STATUS and attempt < attempts:
                await self._sleep(attempt, f"HTTP {resp.status_code}")
                continue
            if resp.status_code != 200:
                raise PlatformApiError(
                    f"[{self.shop_domain}] GraphQL HTTP {resp.status_code}: {resp.text[:500]}",
                    status_code=resp.status_code,
                )

            try:
                body = resp.json()
            except ValueError as e:
                raise PlatformApiError(f"[{self.shop_domain}] invalid JSON response") from e

            errors = body.get("errors") if isinstance(body, dict) else None
            if errors:
                if _is_throttled(errors) and attempt < attempts:
                    await self._sleep(attempt, "THROTTLED")
                    continue
                raise PlatformApiError(f"[{self.shop_domain}] GraphQL errors: {errors}", errors=errors)

            data = body.get("data") if isinstance(body, dict) else None
            return data or {}

        # exhausted retries on a retryable status
        raise PlatformApiError(f"[{self.shop_domain}] GraphQL throttled/5xx repeatedly")

    async def _sleep(self, attempt: int, reason: str) -> None:
        delay = _backoff_delay(attempt, self.retry_base_delay)
        logger.warning("[%s] %s, retry %d/%d in %.2fs", self.shop_domain, reason, attempt, self.max_retries, delay)
        await asyncio.sleep(delay)
