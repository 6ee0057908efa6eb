# meetslot/services/graph_client.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import httpx

from meetslot.core.config import get_settings

logger = logging.getLogger(__name__)

# Tokens are renewed this long before Azure AD says they expire.
TOKEN_REFRESH_MARGIN = timedelta(seconds=60)


class GraphClientError(RuntimeError):
    """
    Raised when calendar data cannot be read from Microsoft Graph: the app
    token is refused, the network call fails, or Graph answers non-2xx.

    Calendar ingestion treats this as "no busy data for this participant",
    never as a reason to abort a planning run.
    """


@dataclass
class _AppToken:
    value: str
    renew_after: datetime

    def usable(self, now: datetime) -> bool:
        return now < self.renew_after


class GraphClient:
    """
    Read-only Microsoft Graph client for calendar ingestion.

    Responsibilities
    ----------------
    - Obtain an application token through the OAuth2 client-credentials
      grant and reuse it until shortly before it expires.
    - Issue authenticated GETs against ``calendarView`` style endpoints,
      accepting both relative paths and the absolute ``@odata.nextLink``
      URLs Graph returns for paging.
    - Turn every transport failure and non-2xx answer into
      GraphClientError, so callers only ever handle one exception type.

    Notes
    -----
    - Reading other users' calendars needs the ``Calendars.Read``
      application permission on the app registration.
    - The token lives in memory, one per client instance.
    """

    def __init__(
        self,
        tenant_id: str,
        client_id: str,
        client_secret: str,
        base_url: str = "https://graph.microsoft.com",
        scope: str = "https://graph.microsoft.com/.default",
        timeout_seconds: float = 10.0,
    ) -> None:
        if not tenant_id or not client_id or not client_secret:
            raise ValueError("tenant_id, client_id and client_secret are required")

        self._tenant_id = tenant_id
        self._client_id = client_id
        self._client_secret = client_secret
        self._base_url = base_url.rstrip("/")
        self._scope = scope
        self._timeout_seconds = timeout_seconds

        self._token: Optional[_AppToken] = None

    @property
    def token_url(self) -> str:
        return f"https://login.microsoftonline.com/{self._tenant_id}/oauth2/v2.0/token"

    def _url_for(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        return f"{self._base_url}/{path.lstrip('/')}"

    async def _request_app_token(self) -> _AppToken:
        form = {
            "client_id": self._client_id,
            "client_secret": self._client_secret,
            "grant_type": "client_credentials",
            "scope": self._scope,
        }

        try:
            async with httpx.AsyncClient(timeout=self._timeout_seconds) as client:
                resp = await client.post(self.token_url, data=form)
        except httpx.HTTPError as exc:
            raise GraphClientError(f"Graph token request failed: {exc}") from exc

        if resp.status_code != 200:
            raise GraphClientError(
                f"Azure AD refused the app token (status={resp.status_code}): {resp.text}"
            )

        payload = resp.json()
        value = payload.get("access_token")
        lifetime = payload.get("expires_in")
        if not value or not isinstance(lifetime, (int, float)):
            raise GraphClientError(
                "Token response from Azure AD is missing access_token/expires_in"
            )

        renew_after = datetime.now(tz=timezone.utc) + timedelta(seconds=float(lifetime)) - TOKEN_REFRESH_MARGIN
        logger.debug("Obtained Graph app token for tenant %s (valid %ss)", self._tenant_id, lifetime)
        return _AppToken(value=value, renew_after=renew_after)

    async def get_access_token(self) -> str:
        """
        App token for Graph calls; only hits Azure AD when the cached one
        is missing or close to expiry.
        """
        if self._token is None or not self._token.usable(datetime.now(tz=timezone.utc)):
            self._token = await self._request_app_token()
        return self._token.value

    async def get_json(
        self,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        """
        Authenticated GET returning the decoded JSON body.

        Parameters
        ----------
        path:
            Relative Graph path (``/v1.0/users/{id}/calendarView``) or an
            absolute ``@odata.nextLink``.
        params:
            Query string; pass None for nextLinks, which already carry it.
        headers:
            Extra headers merged over the defaults, e.g. the
            ``Prefer: outlook.timezone`` hint.
        """
        url = self._url_for(path)
        token = await self.get_access_token()

        request_headers = {
            "Authorization": f"Bearer {token}",
            "Accept": "application/json",
        }
        if headers:
            request_headers.update(headers)

        try:
            async with httpx.AsyncClient(timeout=self._timeout_seconds) as client:
                resp = await client.request(
                    method="GET",
                    url=url,
                    headers=request_headers,
                    params=params,
                )
        except httpx.HTTPError as exc:
            raise GraphClientError(f"Graph GET {url} failed: {exc}") from exc

        if resp.status_code // 100 != 2:
            raise GraphClientError(
                f"Graph GET {url} answered status={resp.status_code}: {resp.text}"
            )
        try:
            return resp.json()
        except ValueError as exc:
            raise GraphClientError(f"Graph GET {url} did not return JSON") from exc


_shared_client: Optional[GraphClient] = None


def get_graph_client() -> GraphClient:
    """
    Shared GraphClient built from the GRAPH_* settings on first use.

    Raises GraphClientError when the app registration is not configured.
    """
    global _shared_client
    if _shared_client is None:
        settings = get_settings()
        if not settings.GRAPH_TENANT_ID or not settings.GRAPH_CLIENT_ID or not settings.GRAPH_CLIENT_SECRET:
            raise GraphClientError(
                "Calendar ingestion needs GRAPH_TENANT_ID, GRAPH_CLIENT_ID and "
                "GRAPH_CLIENT_SECRET to be configured."
            )
        _shared_client = GraphClient(
            tenant_id=settings.GRAPH_TENANT_ID,
            client_id=settings.GRAPH_CLIENT_ID,
            client_secret=settings.GRAPH_CLIENT_SECRET,
            base_url=str(settings.GRAPH_BASE_URL or "https://graph.microsoft.com"),
        )
        logger.debug("Constructed shared Graph client for tenant %s", settings.GRAPH_TENANT_ID)
    return _shared_client
