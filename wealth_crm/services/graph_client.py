"""Microsoft Graph client for Outlook OAuth, mail and calendar reads.

Every call accepts an optional ``client`` so callers (and tests) can share
one ``httpx.AsyncClient`` or inject a transport.
"""

import logging
import re
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator
from urllib.parse import urlencode
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import httpx

from wealth_crm.core.config import settings


logger = logging.getLogger(__name__)

GRAPH_API_BASE = "https://graph.microsoft.com/v1.0"
GRAPH_SCOPES = [
    "offline_access",
    "User.Read",
    "Mail.Read",
    "Calendars.Read",
]
REQUEST_TIMEOUT = 30.0
PAGE_SIZE = 50
MAX_PAGES = 20

MESSAGE_FIELDS = ",".join([
    "id",
    "conversationId",
    "internetMessageId",
    "subject",
    "bodyPreview",
    "from",
    "toRecipients",
    "ccRecipients",
    "bccRecipients",
    "receivedDateTime",
    "sentDateTime",
    "isRead",
    "isDraft",
    "hasAttachments",
    "importance",
    "parentFolderId",
    "categories",
])

_FRACTION_RE = re.compile(r"(\.\d{6})\d+")


class GraphAPIError(Exception):
    """Graph call failed (HTTP error or transport failure)."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code

    @property
    def is_auth_error(self) -> bool:
        return self.status_code in (400, 401)


def _authority() -> str:
    return f"https://login.microsoftonline.com/{settings.MICROSOFT_TENANT}/oauth2/v2.0"


@asynccontextmanager
async def _client_scope(client: httpx.AsyncClient | None) -> AsyncIterator[httpx.AsyncClient]:
    if client is not None:
        yield client
        return
    async with httpx.AsyncClient(timeout=REQUEST_TIMEOUT) as owned:
        yield owned


async def _send(client: httpx.AsyncClient, method: str, url: str, **kwargs) -> dict[str, Any]:
    try:
        response = await client.request(method, url, **kwargs)
        response.raise_for_status()
    except httpx.HTTPStatusError as e:
        logger.error(f"Graph request failed: {e.response.status_code} {method} {url.split('?')[0]}")
        raise GraphAPIError(
            f"Microsoft Graph returned {e.response.status_code}",
            status_code=e.response.status_code,
        ) from e
    except httpx.HTTPError as e:
        logger.error(f"Graph request error: {e}")
        raise GraphAPIError("Microsoft Graph request failed") from e
    return response.json()


def _get_timezone(name: str | None):
    """IANA zone for a Graph timeZone value; Windows names and unknowns fall back to UTC."""
    if not name or name.upper() == "UTC":
        return timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return timezone.utc


def parse_graph_datetime(value: str | None, tz_name: str | None = "UTC") -> datetime | None:
    """Parse Graph timestamps (``...Z`` or 7-digit fractions with a separate zone)."""
    if not value:
        return None
    cleaned = _FRACTION_RE.sub(r"\1", value.strip())
    if cleaned.endswith("Z"):
        cleaned = cleaned[:-1] + "+00:00"
    parsed = datetime.fromisoformat(cleaned)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=_get_timezone(tz_name)).astimezone(timezone.utc)
    return parsed


# =============================================================================
# OAuth
# =============================================================================


def get_authorize_url(state: str) -> str:
    params = {
        "client_id": settings.MICROSOFT_CLIENT_ID,
        "response_type": "code",
        "redirect_uri": settings.MICROSOFT_REDIRECT_URI,
        "response_mode": "query",
        "scope": " ".join(GRAPH_SCOPES),
        "state": state,
        "prompt": "select_account",
    }
    return f"{_authority()}/authorize?{urlencode(params)}"


async def exchange_code(code: str, client: httpx.AsyncClient | None = None) -> dict[str, Any]:
    """Exchange authorization code for tokens."""
    async with _client_scope(client) as http:
        return await _send(
            http,
            "POST",
            f"{_authority()}/token",
            data={
                "client_id": settings.MICROSOFT_CLIENT_ID,
                "client_secret": settings.MICROSOFT_CLIENT_SECRET,
                "code": code,
                "redirect_uri": settings.MICROSOFT_REDIRECT_URI,
                "grant_type": "authorization_code",
                "scope": " ".join(GRAPH_SCOPES),
            },
        )


async def refresh_access_token(refresh_token: str, client: httpx.AsyncClient | None = None) -> dict[str, Any]:
    async with _client_scope(client) as http:
        return await _send(
            http,
            "POST",
            f"{_authority()}/token",
            data={
                "client_id": settings.MICROSOFT_CLIENT_ID,
                "client_secret": settings.MICROSOFT_CLIENT_SECRET,
                "refresh_token": refresh_token,
                "grant_type": "refresh_token",
                "scope": " ".join(GRAPH_SCOPES),
            },
        )


async def get_me(access_token: str, client: httpx.AsyncClient | None = None) -> dict[str, Any]:
    async with _client_scope(client) as http:
        return await _send(
            http,
            "GET",
            f"{GRAPH_API_BASE}/me",
            headers={"Authorization": f"Bearer {access_token}"},
        )


# =============================================================================
# Mail & calendar
# =============================================================================


async def _paged(
    http: httpx.AsyncClient,
    url: str,
    headers: dict[str, str],
    params: dict[str, Any] | None,
) -> list[dict[str, Any]]:
    items: list[dict[str, Any]] = []
    next_url: str | None = url
    pages = 0
    while next_url and pages < MAX_PAGES:
        # nextLink already carries the query string
        payload = await _send(http, "GET", next_url, headers=headers, params=params if pages == 0 else None)
        items.extend(payload.get("value", []))
        next_url = payload.get("@odata.nextLink")
        pages += 1
    if next_url:
        logger.warning(f"Graph paging stopped after {MAX_PAGES} pages")
    return items


async def list_messages(
    access_token: str,
    since: datetime,
    folder_id: str | None = None,
    client: httpx.AsyncClient | None = None,
) -> list[dict[str, Any]]:
    """Messages received since ``since``, newest first, following @odata.nextLink."""
    path = f"/me/mailFolders/{folder_id}/messages" if folder_id else "/me/messages"
    params = {
        "$select": MESSAGE_FIELDS,
        "$filter": f"receivedDateTime ge {since.astimezone(timezone.utc).strftime('%Y-%m-%dT%H:%M:%SZ')}",
        "$orderby": "receivedDateTime desc",
        "$top": PAGE_SIZE,
    }
    async with _client_scope(client) as http:
        return await _paged(
            http,
            f"{GRAPH_API_BASE}{path}",
            {"Authorization": f"Bearer {access_token}"},
            params,
        )


async def list_calendar_view(
    access_token: str,
    start: datetime,
    end: datetime,
    client: httpx.AsyncClient | None = None,
) -> list[dict[str, Any]]:
    """Event occurrences between ``start`` and ``end`` with times in UTC."""
    params = {
        "startDateTime": start.astimezone(timezone.utc).isoformat(),
        "endDateTime": end.astimezone(timezone.utc).isoformat(),
        "$top": PAGE_SIZE,
    }
    async with _client_scope(client) as http:
        return await _paged(
            http,
            f"{GRAPH_API_BASE}/me/calendarView",
            {
                "Authorization": f"Bearer {access_token}",
                "Prefer": 'outlook.timezone="UTC"',
            },
            params,
        )
