"""Async HubSpot REST client used by every list pipeline component.

One request is one attempt: retries and pacing are decided by the calling
component, because the reader and the writer react differently to the same
status codes.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from hs_campaigns.config.settings import Settings, get_settings

logger = logging.getLogger(__name__)


class HubSpotError(Exception):
    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        method: Optional[str] = None,
        url: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.method = method
        self.url = url

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404


class LegacyListError(HubSpotError):
    """The list only exists in the legacy format and cannot be read via v3."""

    def __init__(self, list_id: str) -> None:
        super().__init__(
            f"List {list_id} is a legacy list. HubSpot v3 API only supports ILS lists; "
            f"clone it as an ILS list in HubSpot (Contacts > Lists > Actions > Clone) "
            f"and update the segmentation record with the new list id.",
            status_code=404,
        )
        self.list_id = str(list_id)


class HubSpotClient:
    """Thin async wrapper around ``httpx.AsyncClient`` with bearer auth.

    Usage:
        ```python
        async with HubSpotClient() as client:
            data = await client.get(f"crm/v3/lists/{list_id}")
        ```
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _headers(self) -> Dict[str, str]:
        token = self.settings.hubspot_access_token
        if not token:
            raise HubSpotError("HUBSPOT_ACCESS_TOKEN is not set")
        return {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.settings.hubspot_base_url.rstrip("/") + "/",
                headers=self._headers(),
                timeout=self.settings.http_timeout,
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "HubSpotClient":
        self._ensure_client()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json_body: Any = None,
    ) -> Any:
        """Send one request and return the decoded JSON body.

        Raises HubSpotError for HTTP errors, timeouts and transport failures.
        Empty or non-JSON success bodies decode to ``{}``.
        """
        client = self._ensure_client()
        url = path.lstrip("/")
        try:
            r = await client.request(method, url, params=params, json=json_body)
        except httpx.TimeoutException as e:
            raise HubSpotError(f"{method} {url} timed out: {e}", method=method, url=url) from e
        except httpx.HTTPError as e:
            raise HubSpotError(f"{method} {url} failed: {e}", method=method, url=url) from e

        if r.is_success:
            if not r.content:
                return {}
            try:
                return r.json()
            except ValueError:
                return {}

        text = (r.text or "")[:500]
        raise HubSpotError(
            f"{method} {url} failed: {r.status_code} {text}",
            status_code=r.status_code,
            method=method,
            url=url,
        )

    async def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self.request("GET", path, params=params)

    async def post(self, path: str, json_body: Any) -> Any:
        return await self.request("POST", path, json_body=json_body)

    async def put(self, path: str, json_body: Any) -> Any:
        return await self.request("PUT", path, json_body=json_body)

    async def delete(self, path: str) -> Any:
        return await self.request("DELETE", path)
