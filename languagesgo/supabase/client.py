"""Supabase REST client for the cards/jobs tables and the sticker bucket."""

import logging
import time
from typing import Any, Optional
from urllib.parse import quote

import requests

logger = logging.getLogger(__name__)


class SupabaseError(Exception):
    """Supabase API error."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def _format_value(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def build_filter_params(filters: Optional[dict[str, Any]]) -> dict[str, str]:
    """Translate ``{column: value}`` filters into PostgREST query params.

    A plain value means equality. A ``(op, value)`` tuple uses the named
    operator, and ``in`` takes a list.
    """
    params: dict[str, str] = {}
    for column, spec in (filters or {}).items():
        if isinstance(spec, tuple):
            op, value = spec
        else:
            op, value = "eq", spec
        if op == "in":
            params[column] = "in.(" + ",".join(_format_value(v) for v in value) + ")"
        else:
            params[column] = f"{op}.{_format_value(value)}"
    return params


class SupabaseClient:
    """Client for the Supabase PostgREST and Storage APIs."""

    def __init__(
        self,
        url: str,
        key: str,
        timeout: float = 60.0,
        retry_count: int = 3,
        session: Optional[requests.Session] = None,
    ):
        """Initialize Supabase client.

        Args:
            url: Project URL, e.g. https://abc.supabase.co
            key: Service-role or anon key
            timeout: Per-request timeout in seconds
            retry_count: Attempts for requests that fail at the network level
            session: Optional preconfigured requests session
        """
        if not url or not key:
            raise SupabaseError(
                "Missing credentials. Set SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY "
                "(or SUPABASE_ANON_KEY) or pass them to constructor."
            )

        self.url = url.rstrip("/")
        self.key = key
        self.timeout = timeout
        self.retry_count = max(1, retry_count)
        self._session = session or requests.Session()
        self._session.headers.update({
            "apikey": key,
            "Authorization": f"Bearer {key}",
        })

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[dict] = None,
        json: Any = None,
        data: Optional[bytes] = None,
        headers: Optional[dict] = None,
    ) -> Any:
        """Make API request, retrying network failures.

        Returns:
            Decoded JSON body, or None for empty responses
        """
        url = f"{self.url}{path}"
        delay = 1
        last_error: Optional[Exception] = None

        for attempt in range(self.retry_count):
            try:
                response = self._session.request(
                    method,
                    url,
                    params=params,
                    json=json,
                    data=data,
                    headers=headers,
                    timeout=self.timeout,
                )
            except requests.RequestException as e:
                last_error = e
                logger.warning(f"Request failed (attempt {attempt + 1}/{self.retry_count}): {e}")
                if attempt < self.retry_count - 1:
                    time.sleep(delay)
                    delay *= 2
                continue

            if not response.ok:
                raise SupabaseError(
                    f"{method} {path} failed with HTTP {response.status_code}: {self._error_message(response)}",
                    status_code=response.status_code,
                )

            if not response.content:
                return None
            try:
                return response.json()
            except ValueError:
                return None

        raise SupabaseError(f"Request failed after {self.retry_count} attempts: {last_error}")

    @staticmethod
    def _error_message(response: requests.Response) -> str:
        try:
            payload = response.json()
        except ValueError:
            return response.text[:500] or response.reason or ""
        if isinstance(payload, dict):
            return str(payload.get("message") or payload.get("error") or payload)
        return str(payload)

    # === Tables ===

    def select(
        self,
        table: str,
        filters: Optional[dict[str, Any]] = None,
        *,
        or_: Optional[str] = None,
        order: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[dict]:
        """Select rows from a table.

        Args:
            table: Table name
            filters: Column filters (see build_filter_params)
            or_: Raw PostgREST ``or`` expression, e.g. "(a.is.null,a.eq.)"
            order: Order expression, e.g. "created_at.desc"
            limit: Maximum rows

        Returns:
            List of row dicts
        """
        params = {"select": "*", **build_filter_params(filters)}
        if or_:
            params["or"] = or_
        if order:
            params["order"] = order
        if limit is not None:
            params["limit"] = str(limit)

        result = self._request("GET", f"/rest/v1/{table}", params=params)
        return result or []

    def fetch_row(self, table: str, row_id: str) -> Optional[dict]:
        """Fetch a single row by id, or None if it does not exist."""
        rows = self.select(table, {"id": row_id}, limit=1)
        return rows[0] if rows else None

    def insert(self, table: str, row: dict) -> None:
        self._request(
            "POST",
            f"/rest/v1/{table}",
            json=row,
            headers={"Prefer": "return=minimal"},
        )
        logger.debug(f"Inserted row into {table}: {row.get('id')}")

    def update(self, table: str, row_id: str, values: dict) -> None:
        self._request(
            "PATCH",
            f"/rest/v1/{table}",
            params=build_filter_params({"id": row_id}),
            json=values,
            headers={"Prefer": "return=minimal"},
        )
        logger.debug(f"Updated {table} row {row_id}: {sorted(values)}")

    # === Storage ===

    def upload(
        self,
        bucket: str,
        path: str,
        data: bytes,
        *,
        content_type: str = "application/octet-stream",
        cache_control: str = "3600",
        upsert: bool = False,
    ) -> str:
        """Upload bytes to a storage bucket.

        Args:
            bucket: Bucket name
            path: Object key inside the bucket
            data: File contents
            content_type: MIME type stored with the object
            cache_control: max-age in seconds
            upsert: Overwrite an existing object instead of failing

        Returns:
            The object key
        """
        self._request(
            "POST",
            f"/storage/v1/object/{bucket}/{quote(path)}",
            data=data,
            headers={
                "Content-Type": content_type,
                "Cache-Control": f"max-age={cache_control}",
                "x-upsert": "true" if upsert else "false",
            },
        )
        logger.info(f"Uploaded '{path}' to bucket '{bucket}' ({len(data) // 1024}KB)")
        return path

    def get_public_url(self, bucket: str, path: str) -> str:
        return f"{self.url}/storage/v1/object/public/{bucket}/{quote(path)}"
