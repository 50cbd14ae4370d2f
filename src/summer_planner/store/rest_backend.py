"""
PostgREST-style HTTP backend
"""
import logging
from collections import defaultdict
from typing import Any, Dict, List, Optional, Sequence, Tuple

import httpx

from ..utils.exceptions import StoreError
from .backend import Filter, InsertCallback, Order, Row, StorageBackend, Unsubscribe

logger = logging.getLogger(__name__)


class RestBackend(StorageBackend):
    """
    Talks to `/rest/v1/{table}` and `/rest/v1/rpc/{name}`.

    Every non-2xx response and every transport exception becomes a
    StoreError carrying the service's code and message. Nothing is retried.

    INSERT events are echoed for inserts made through this client only;
    the service's realtime socket is not consumed.
    """

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        access_token: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        headers = {
            "Content-Type": "application/json",
            "Prefer": "return=representation",
        }
        if api_key:
            headers["apikey"] = api_key
        if access_token or api_key:
            headers["Authorization"] = f"Bearer {access_token or api_key}"

        client_kwargs: Dict[str, Any] = {"base_url": base_url.rstrip("/"), "headers": headers}
        if timeout is not None:
            client_kwargs["timeout"] = timeout
        if transport is not None:
            client_kwargs["transport"] = transport

        self.client = httpx.AsyncClient(**client_kwargs)
        self._listeners: Dict[str, List[Tuple[str, Any, InsertCallback]]] = defaultdict(list)

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[List[Tuple[str, str]]] = None,
        json: Any = None,
    ) -> Any:
        try:
            response = await self.client.request(method, path, params=params, json=json)
        except httpx.TimeoutException as e:
            logger.error(f"Store request timed out: {method} {path}")
            raise StoreError("TIMEOUT", str(e) or "Request timed out") from e
        except httpx.HTTPError as e:
            logger.error(f"Store request failed: {method} {path}: {e}")
            raise StoreError("NETWORK_ERROR", str(e) or type(e).__name__) from e

        if response.is_error:
            raise self._error_from_response(response)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise StoreError("INVALID_RESPONSE", "Store returned a non-JSON body") from e

    @staticmethod
    def _error_from_response(response: httpx.Response) -> StoreError:
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        code = body.get("code") or str(response.status_code)
        message = body.get("message") or response.text or response.reason_phrase
        logger.warning(f"Store error {code} ({response.status_code}): {message}")

        return StoreError(
            code,
            message,
            {
                "status": response.status_code,
                "details": body.get("details"),
                "hint": body.get("hint"),
            },
        )

    @staticmethod
    def _filter_params(filters: Sequence[Filter]) -> List[Tuple[str, str]]:
        return [f.to_query_param() for f in filters]

    async def select(self, table, filters=(), order=(), limit=None):
        params = [("select", "*")] + self._filter_params(filters)
        if order:
            params.append(("order", ",".join(spec.to_query_value() for spec in order)))
        if limit is not None:
            params.append(("limit", str(limit)))

        return await self._request("GET", f"/rest/v1/{table}", params=params) or []

    async def insert(self, table, row):
        rows = await self._request("POST", f"/rest/v1/{table}", json=row)
        if not rows:
            raise StoreError("PGRST116", f"Insert into {table} returned no row")
        stored = rows[0] if isinstance(rows, list) else rows

        for column, value, callback in list(self._listeners[table]):
            if stored.get(column) == value:
                try:
                    callback(dict(stored))
                except Exception:
                    logger.exception(f"Insert listener failed for {table}")

        return stored

    async def update(self, table, filters, changes):
        return await self._request(
            "PATCH", f"/rest/v1/{table}", params=self._filter_params(filters), json=changes
        ) or []

    async def delete(self, table, filters):
        return await self._request("DELETE", f"/rest/v1/{table}", params=self._filter_params(filters)) or []

    async def rpc(self, name, params=None):
        return await self._request("POST", f"/rest/v1/rpc/{name}", json=params or {})

    def subscribe_inserts(self, table, column, value, callback) -> Unsubscribe:
        entry = (column, value, callback)
        self._listeners[table].append(entry)

        def unsubscribe():
            if entry in self._listeners[table]:
                self._listeners[table].remove(entry)

        return unsubscribe

    async def close(self):
        """Close HTTP client."""
        await self.client.aclose()
