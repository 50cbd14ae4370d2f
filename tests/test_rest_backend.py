"""Tests for the PostgREST-style HTTP backend."""

import json

import httpx
import pytest

from summer_planner.store import EntityStore, Filter, Order, RestBackend
from summer_planner.utils.exceptions import NotOwnerError, StoreError

BASE_URL = "https://store.example.com"


class TestRestBackend:

    @pytest.fixture
    def requests(self):
        return []

    def _create_backend(self, requests, handler):
        def record(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return handler(request)

        return RestBackend(BASE_URL, api_key="anon-key", access_token="user-jwt", transport=httpx.MockTransport(record))

    @pytest.mark.asyncio
    async def test_select_builds_query(self, requests):
        backend = self._create_backend(requests, lambda request: httpx.Response(200, json=[{"id": "c1"}]))

        rows = await backend.select(
            "children",
            [Filter.eq("user_id", "user-1"), Filter.is_in("id", ["c1", "c2"])],
            [Order("name")],
            limit=5,
        )

        assert rows == [{"id": "c1"}]
        request = requests[0]
        assert request.method == "GET"
        assert request.url.path == "/rest/v1/children"
        assert request.url.params["select"] == "*"
        assert request.url.params["user_id"] == "eq.user-1"
        assert request.url.params["id"] == "in.(c1,c2)"
        assert request.url.params["order"] == "name.asc.nullslast"
        assert request.url.params["limit"] == "5"
        assert request.headers["apikey"] == "anon-key"
        assert request.headers["authorization"] == "Bearer user-jwt"
        await backend.close()

    @pytest.mark.asyncio
    async def test_insert_returns_first_row(self, requests):
        backend = self._create_backend(
            requests, lambda request: httpx.Response(201, json=[{"id": "new", **json.loads(request.content)}])
        )

        row = await backend.insert("children", {"name": "Emma", "user_id": "user-1"})

        assert row == {"id": "new", "name": "Emma", "user_id": "user-1"}
        assert requests[0].method == "POST"
        assert requests[0].headers["prefer"] == "return=representation"
        await backend.close()

    @pytest.mark.asyncio
    async def test_insert_echoes_to_listeners(self, requests):
        backend = self._create_backend(
            requests, lambda request: httpx.Response(201, json=[{"id": "new", "user_id": "user-1"}])
        )
        received = []
        backend.subscribe_inserts("children", "user_id", "user-1", received.append)

        await backend.insert("children", {"user_id": "user-1"})

        assert received == [{"id": "new", "user_id": "user-1"}]
        await backend.close()

    @pytest.mark.asyncio
    async def test_update_and_delete_use_filters(self, requests):
        backend = self._create_backend(requests, lambda request: httpx.Response(200, json=[]))

        await backend.update("children", [Filter.eq("id", "c1")], {"name": "New"})
        await backend.delete("children", [Filter.eq("id", "c1")])

        assert [request.method for request in requests] == ["PATCH", "DELETE"]
        assert all(request.url.params["id"] == "eq.c1" for request in requests)
        await backend.close()

    @pytest.mark.asyncio
    async def test_rpc(self, requests):
        backend = self._create_backend(
            requests, lambda request: httpx.Response(200, json={"success": True, "deleted_children": 2})
        )

        result = await backend.rpc("clear_sample_data", {"p_user_id": "user-1"})

        assert result["deleted_children"] == 2
        assert requests[0].url.path == "/rest/v1/rpc/clear_sample_data"
        assert json.loads(requests[0].content) == {"p_user_id": "user-1"}
        await backend.close()

    @pytest.mark.asyncio
    async def test_error_body_becomes_store_error(self, requests):
        backend = self._create_backend(
            requests,
            lambda request: httpx.Response(
                404, json={"code": "42883", "message": "function clear_sample_data does not exist", "hint": None}
            ),
        )

        with pytest.raises(StoreError) as exc_info:
            await backend.rpc("clear_sample_data", {"p_user_id": "user-1"})

        assert exc_info.value.code == "42883"
        assert "does not exist" in exc_info.value.message
        assert exc_info.value.details["status"] == 404
        await backend.close()

    @pytest.mark.asyncio
    async def test_error_without_body_uses_status(self, requests):
        backend = self._create_backend(requests, lambda request: httpx.Response(503, text="Service Unavailable"))

        with pytest.raises(StoreError) as exc_info:
            await backend.select("children")

        assert exc_info.value.code == "503"
        await backend.close()

    @pytest.mark.asyncio
    async def test_transport_errors(self, requests):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        backend = self._create_backend(requests, handler)

        with pytest.raises(StoreError) as exc_info:
            await backend.select("children")

        assert exc_info.value.code == "NETWORK_ERROR"
        await backend.close()

    @pytest.mark.asyncio
    async def test_timeouts(self, requests):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        backend = self._create_backend(requests, handler)

        with pytest.raises(StoreError) as exc_info:
            await backend.select("children")

        assert exc_info.value.code == "TIMEOUT"
        await backend.close()

    @pytest.mark.asyncio
    async def test_store_delete_checks_owner_first(self, requests):
        """The adapter reads the row and refuses before issuing a DELETE."""
        backend = self._create_backend(
            requests, lambda request: httpx.Response(200, json=[{"id": "c9", "user_id": "user-2", "name": "Riley"}])
        )
        store = EntityStore(backend)

        with pytest.raises(NotOwnerError):
            await store.delete("children", "user-1", "c9")

        assert [request.method for request in requests] == ["GET"]
        await store.close()
