"""PostgREST remote gateway — implements the RemoteGateway interface.

Talks to a Supabase-style REST endpoint (``{remote_url}/rest/v1/{table}``)
using httpx. Records are soft-deleted remotely: every read filters on
``deleted_at=is.null`` and deletes are PATCHes of ``deleted_at``.
"""

import logging
from collections.abc import Iterable
from datetime import datetime
from typing import Any

import httpx

from notesync.application.interfaces import RemoteGateway
from notesync.domain.entities import (
    AuthSession,
    HealthStatus,
    Record,
    format_timestamp,
    utc_now,
)
from notesync.domain.exceptions import (
    RemoteNetworkError,
    RemoteNotAuthenticatedError,
    RemoteNotFoundError,
    RemoteRejectedError,
    RemoteTimeoutError,
    UnsupportedTableError,
)

logger = logging.getLogger(__name__)

_UNAVAILABLE_STATUSES = frozenset({502, 503, 504})


class PostgrestRemoteGateway(RemoteGateway):
    """Infrastructure adapter for the remote store of record.

    The bearer token is read from the shared ``AuthSession`` on every
    call, so signing in or out takes effect without rebuilding the gateway.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        session: AuthSession,
        allowed_tables: Iterable[str] = ("notes", "training_completions"),
        timeout: float = 10.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._session = session
        self._allowed_tables = frozenset(allowed_tables)
        self._timeout = timeout
        self._http_client = http_client

    def _table_url(self, table: str) -> str:
        if table not in self._allowed_tables:
            raise UnsupportedTableError(table)
        return f"{self._base_url}/rest/v1/{table}"

    def _get_headers(self, *, authenticated: bool = True) -> dict[str, str]:
        """Standard PostgREST headers; the session token when one is required."""
        headers = {
            "apikey": self._api_key,
            "Content-Type": "application/json",
            "Prefer": "return=representation",
        }
        if authenticated:
            if not self._session.is_authenticated:
                raise RemoteNotAuthenticatedError()
            headers["Authorization"] = f"Bearer {self._session.access_token}"
        elif self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    async def _get_client(self) -> httpx.AsyncClient:
        """Return the injected client or create a new one."""
        if self._http_client is not None:
            return self._http_client
        return httpx.AsyncClient(timeout=self._timeout)

    async def _request(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str],
        params: dict[str, str] | None = None,
        json: Any = None,
    ) -> httpx.Response:
        client = await self._get_client()
        should_close = self._http_client is None

        try:
            response = await client.request(
                method,
                url,
                headers=headers,
                params=params,
                json=json,
                timeout=self._timeout,
            )
        except httpx.TimeoutException as exc:
            raise RemoteTimeoutError(f"{method} {url} timed out after {self._timeout}s") from exc
        except httpx.TransportError as exc:
            raise RemoteNetworkError(f"{method} {url} failed: {exc}") from exc
        finally:
            if should_close:
                await client.aclose()

        return response

    async def _send(
        self,
        method: str,
        table: str,
        *,
        params: dict[str, str] | None = None,
        json: Any = None,
        record_id: str | None = None,
        prefer: str | None = None,
    ) -> list[dict[str, Any]]:
        url = self._table_url(table)
        headers = self._get_headers()
        if prefer:
            headers["Prefer"] = f"{headers['Prefer']},{prefer}"
        response = await self._request(method, url, headers=headers, params=params, json=json)

        if response.status_code >= 400:
            self._raise_gateway_error(response, table, record_id)
        if not response.content:
            return []
        data = response.json()
        return data if isinstance(data, list) else [data]

    # ── Operations ───────────────────────────────────────────────────

    async def health_check(self) -> HealthStatus:
        """Probe the notes endpoint with a HEAD count request. Never raises."""
        table = next(iter(sorted(self._allowed_tables)), "notes")
        url = f"{self._base_url}/rest/v1/{table}"
        headers = self._get_headers(authenticated=False)
        if self._session.is_authenticated:
            headers["Authorization"] = f"Bearer {self._session.access_token}"
        headers["Prefer"] = "count=exact"

        try:
            response = await self._request(
                "HEAD", url, headers=headers, params={"select": "id"}
            )
        except RemoteNetworkError as exc:
            logger.info("Health check failed: %s", exc)
            return HealthStatus(ok=False)

        if response.status_code in (401, 403):
            # Reachable, just not signed in.
            return HealthStatus(ok=True, count=None)
        if response.status_code >= 500:
            logger.info("Health check got HTTP %d", response.status_code)
            return HealthStatus(ok=False)
        if response.status_code >= 400:
            return HealthStatus(ok=True, count=None)
        return HealthStatus(ok=True, count=_parse_content_range(response.headers.get("content-range")))

    async def create(self, record: Record) -> Record | None:
        rows = await self._send(
            "POST",
            record.table,
            params={"on_conflict": "id"},
            json=record.to_remote(),
            record_id=record.id,
            prefer="resolution=ignore-duplicates",
        )
        if not rows:
            logger.debug("%s/%s already exists remotely, insert ignored", record.table, record.id)
            return None
        logger.debug("Created %s/%s remotely", record.table, record.id)
        return Record.from_remote(record.table, rows[0])

    async def get(self, table: str, record_id: str, include_deleted: bool = False) -> Record:
        rows = await self._send(
            "GET",
            table,
            params=self._row_filter(record_id, include_deleted) | {"select": "*"},
            record_id=record_id,
        )
        if not rows:
            raise RemoteNotFoundError(table, record_id)
        return Record.from_remote(table, rows[0])

    async def fetch_all(self, table: str, owner_id: str) -> list[Record]:
        rows = await self._send(
            "GET",
            table,
            params={
                "user_id": f"eq.{owner_id}",
                "deleted_at": "is.null",
                "order": "created_at.desc",
                "select": "*",
            },
        )
        return [Record.from_remote(table, row) for row in rows]

    async def update(
        self,
        table: str,
        record_id: str,
        fields: dict[str, Any],
        include_deleted: bool = False,
    ) -> Record:
        rows = await self._send(
            "PATCH",
            table,
            params=self._row_filter(record_id, include_deleted),
            json=fields,
            record_id=record_id,
        )
        if not rows:
            raise RemoteNotFoundError(table, record_id)
        return Record.from_remote(table, rows[0])

    async def soft_delete(
        self, table: str, record_id: str, deleted_at: datetime | None = None
    ) -> None:
        stamp = format_timestamp(deleted_at or utc_now())
        rows = await self._send(
            "PATCH",
            table,
            params=self._row_filter(record_id),
            json={"deleted_at": stamp, "updated_at": stamp},
            record_id=record_id,
        )
        if not rows:
            logger.debug("%s/%s already deleted remotely", table, record_id)

    @staticmethod
    def _row_filter(record_id: str, include_deleted: bool = False) -> dict[str, str]:
        params = {"id": f"eq.{record_id}"}
        if not include_deleted:
            params["deleted_at"] = "is.null"
        return params

    # ── Error mapping ────────────────────────────────────────────────

    def _raise_gateway_error(
        self, response: httpx.Response, table: str, record_id: str | None
    ) -> None:
        """Raise the RemoteGatewayError subclass matching an HTTP error response."""
        status = response.status_code
        try:
            data = response.json()
        except ValueError:
            data = None
        if isinstance(data, dict):
            message = data.get("message") or data.get("error") or response.text
        else:
            message = response.text

        if status in (401, 403):
            raise RemoteNotAuthenticatedError(message or "Not authenticated")
        if status == 404:
            raise RemoteNotFoundError(table, record_id or "")
        if status in _UNAVAILABLE_STATUSES:
            raise RemoteNetworkError(f"Remote unavailable ({status}): {message}")
        raise RemoteRejectedError(status, str(message))


def _parse_content_range(value: str | None) -> int | None:
    """Extract the total from a ``Content-Range: 0-24/3573`` header."""
    if not value or "/" not in value:
        return None
    total = value.rsplit("/", 1)[1]
    return int(total) if total.isdigit() else None
