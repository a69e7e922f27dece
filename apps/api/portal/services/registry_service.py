"""Family registry lookup client (identity-document id -> household profile)."""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Any, Awaitable, Callable

import httpx

from portal.core.config import settings

logger = logging.getLogger(__name__)

DEFAULT_RETRY_STATUSES = {429, 500, 502, 503, 504}


class RegistryError(Exception):
    """Registry unreachable or returned an unusable answer."""


async def request_with_retries(
    request_fn: Callable[[], Awaitable[httpx.Response]],
    *,
    max_attempts: int = 3,
    base_delay: float = 0.5,
    max_delay: float = 4.0,
    retry_statuses: set[int] | None = None,
) -> httpx.Response:
    """Execute an HTTP request with exponential backoff retries."""
    statuses = retry_statuses or DEFAULT_RETRY_STATUSES

    for attempt in range(max_attempts):
        try:
            response = await request_fn()
        except httpx.RequestError as exc:
            if attempt >= max_attempts - 1:
                raise
            delay = min(max_delay, base_delay * (2**attempt))
            if delay:
                delay = delay + random.uniform(0, delay / 2)
            logger.warning("Registry request failed, retrying", exc_info=exc)
            if delay:
                await asyncio.sleep(delay)
            continue

        if response.status_code in statuses and attempt < max_attempts - 1:
            delay = min(max_delay, base_delay * (2**attempt))
            if delay:
                delay = delay + random.uniform(0, delay / 2)
            logger.warning("Registry returned %s, retrying", response.status_code)
            if delay:
                await asyncio.sleep(delay)
            continue

        return response

    return response


class FamilyRegistryClient:
    """Thin async client for the household registry."""

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        *,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        max_attempts: int = 3,
        retry_delay: float = 0.5,
    ):
        self.base_url = (base_url if base_url is not None else settings.FAMILY_REGISTRY_URL).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.FAMILY_REGISTRY_API_KEY
        self.timeout = timeout or settings.FAMILY_REGISTRY_TIMEOUT_SECONDS
        self.transport = transport
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay

    @property
    def configured(self) -> bool:
        return bool(self.base_url)

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def fetch_profile(self, identity_document_id: str) -> dict[str, Any]:
        """
        Fetch the household profile for ``identity_document_id``.

        Raises:
            RegistryError: not configured, unreachable, or non-200 answer
        """
        if not self.configured:
            raise RegistryError("Family registry not configured")

        async with httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self.transport,
        ) as client:
            try:
                response = await request_with_retries(
                    lambda: client.get(
                        f"/families/{identity_document_id}", headers=self._headers()
                    ),
                    max_attempts=self.max_attempts,
                    base_delay=self.retry_delay,
                )
            except httpx.RequestError as exc:
                raise RegistryError(f"Family registry unreachable: {exc}") from exc

        if response.status_code != 200:
            raise RegistryError(f"Family registry returned {response.status_code}")
        try:
            payload = response.json()
        except ValueError as exc:
            raise RegistryError("Family registry returned invalid JSON") from exc
        if not isinstance(payload, dict):
            raise RegistryError("Family registry returned unexpected payload")
        return payload


async def lookup_profile(
    client: FamilyRegistryClient,
    identity_document_id: str,
    fallback: dict[str, Any],
) -> dict[str, Any]:
    """
    Registry profile, or ``fallback`` when the registry cannot answer.

    Registry failures are logged and never propagated.
    """
    if not client.configured:
        return {"source": "local", **fallback}
    try:
        profile = await client.fetch_profile(identity_document_id)
        return {"source": "registry", **profile}
    except RegistryError:
        logger.exception("Family registry lookup failed")
        return {"source": "local", **fallback}
