"""Device-management service client (Microsoft Graph, settings catalog).

All requests are awaited one at a time. Paged collections are followed through
``@odata.nextLink`` until exhausted.
"""

from __future__ import annotations

import asyncio
import os
from typing import Optional

import httpx

from ..errors import GraphRequestError
from ..utils.sanitize import sanitize_error

RETRYABLE_STATUS = {429, 500, 502, 503, 504}


class GraphClient:
    """Thin async client with retry and pagination."""

    def __init__(
        self,
        graph_config: dict,
        token: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = graph_config
        self.base_url = str(graph_config.get("base_url", "https://graph.microsoft.com/beta")).rstrip("/")
        self.timeout = graph_config.get("timeout_seconds", 60)
        self.max_attempts = max(1, int(graph_config.get("retry_attempts", 3)))
        self.retry_delay = graph_config.get("retry_delay_seconds", 5)
        self.page_size = graph_config.get("page_size", 100)
        self.token = token if token is not None else self._get_token()
        self._transport = transport

    def _get_token(self) -> Optional[str]:
        env_var = self.config.get("token_env", "FLEETAUDIT_GRAPH_TOKEN")
        return os.environ.get(env_var)

    def _headers(self) -> dict:
        if not self.token:
            env_var = self.config.get("token_env", "FLEETAUDIT_GRAPH_TOKEN")
            raise GraphRequestError(f"Access token not found in environment variable: {env_var}")
        return {
            "Authorization": f"Bearer {self.token}",
            "Accept": "application/json",
        }

    def _url(self, path: str) -> str:
        if path.startswith("http://") or path.startswith("https://"):
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    async def _get_once(self, client: httpx.AsyncClient, url: str, params: Optional[dict]) -> dict:
        try:
            response = await client.get(url, params=params, headers=self._headers())
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            error_body = ""
            try:
                error_body = e.response.text
            except Exception:
                pass
            raise GraphRequestError(
                sanitize_error(f"{e.response.status_code} | {error_body}"),
                status_code=e.response.status_code,
            ) from e
        except httpx.TimeoutException as e:
            raise GraphRequestError(sanitize_error(f"timeout | {e}"), timed_out=True) from e
        except (httpx.HTTPError, ValueError) as e:
            raise GraphRequestError(sanitize_error(str(e))) from e

        if not isinstance(data, dict):
            raise GraphRequestError(f"Unexpected response body from {url}")
        return data

    async def request_with_retry(
        self,
        client: httpx.AsyncClient,
        url: str,
        params: Optional[dict] = None,
    ) -> dict:
        """GET with retry on throttling, server errors and timeouts."""
        rate_limit_max = max(self.max_attempts, 5)

        for attempt in range(1, rate_limit_max + 1):
            try:
                return await self._get_once(client, url, params)
            except GraphRequestError as e:
                is_rate_limit = e.status_code == 429
                is_retryable = e.status_code in RETRYABLE_STATUS or e.timed_out
                effective_max = rate_limit_max if is_rate_limit else self.max_attempts
                if not is_retryable or attempt >= effective_max:
                    raise

                # Throttling: 30s base. Others: standard backoff.
                base_delay = 30 if is_rate_limit else self.retry_delay
                await asyncio.sleep(base_delay * min(attempt, 3))

        raise GraphRequestError("Max retries exceeded")

    async def get_paginated(self, path: str, params: Optional[dict] = None) -> list[dict]:
        """Collect every item of a paged collection."""
        items: list[dict] = []
        url: Optional[str] = self._url(path)
        page_params = dict(params or {})

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            while url:
                data = await self.request_with_retry(client, url, page_params or None)
                value = data.get("value")
                if isinstance(value, list):
                    items.extend(v for v in value if isinstance(v, dict))
                url = data.get("@odata.nextLink")
                # nextLink already carries the query string
                page_params = {}

        return items

    async def list_policies(self) -> list[dict]:
        """List configuration policies; type selection happens client-side."""
        return await self.get_paginated(
            "deviceManagement/configurationPolicies",
            {"$top": self.page_size},
        )

    async def get_policy_settings(self, policy_id: str) -> list[dict]:
        return await self.get_paginated(
            f"deviceManagement/configurationPolicies/{policy_id}/settings",
            {"$top": self.page_size},
        )

    async def fetch_catalog(self) -> list[dict]:
        return await self.get_paginated(
            "deviceManagement/configurationSettings",
            {"$top": max(self.page_size, 500)},
        )
