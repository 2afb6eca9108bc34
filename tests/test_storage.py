"""Tests for the storage API client."""

import json
from datetime import UTC, datetime

import httpx
import pytest

from src.services.storage import StorageClient, StorageDeleteResult


def make_client(handler) -> StorageClient:
    return StorageClient(
        base_url="https://project.supabase.co/storage/v1",
        service_key="service-role-key",
        timeout=5.0,
        transport=httpx.MockTransport(handler),
    )


class TestStorageDeleteResult:
    """Tests for StorageDeleteResult."""

    def test_only_200_is_ok(self):
        assert StorageDeleteResult(status_code=200).ok
        assert not StorageDeleteResult(status_code=204).ok
        assert not StorageDeleteResult(status_code=404).ok
        assert not StorageDeleteResult(status_code=None, error="timeout").ok


class TestDeleteObject:
    """Tests for StorageClient.delete_object."""

    def test_object_url(self):
        client = make_client(lambda request: httpx.Response(200))
        assert (
            client.object_url("avatars", "0.42.png")
            == "https://project.supabase.co/storage/v1/object/avatars/0.42.png"
        )
        assert client.object_url("avatars", "dir/my file.png").endswith(
            "/object/avatars/dir/my%20file.png"
        )

    @pytest.mark.asyncio
    async def test_sends_authorized_delete(self):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={"message": "Successfully deleted"})

        result = await make_client(handler).delete_object("avatars", "a.png")

        assert result.ok
        assert result.status_code == 200
        assert len(requests) == 1
        assert requests[0].method == "DELETE"
        assert str(requests[0].url) == "https://project.supabase.co/storage/v1/object/avatars/a.png"
        assert requests[0].headers["Authorization"] == "Bearer service-role-key"

    @pytest.mark.asyncio
    async def test_non_200_returned_not_raised(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={"error": "not_found", "message": "Object not found"})

        result = await make_client(handler).delete_object("avatars", "missing.png")

        assert not result.ok
        assert result.status_code == 400
        assert "Object not found" in result.body

    @pytest.mark.asyncio
    async def test_transport_error_captured(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        result = await make_client(handler).delete_object("avatars", "a.png")

        assert not result.ok
        assert result.status_code is None
        assert "connection refused" in result.error

    @pytest.mark.asyncio
    async def test_no_key_sends_no_authorization(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.headers.get("Authorization"))
            return httpx.Response(200)

        client = StorageClient(
            base_url="https://project.supabase.co/storage/v1",
            service_key="",
            transport=httpx.MockTransport(handler),
        )
        await client.delete_object("avatars", "a.png")

        assert seen == [None]


class TestListObjects:
    """Tests for StorageClient.list_objects."""

    @pytest.mark.asyncio
    async def test_pages_and_skips_folders(self, monkeypatch):
        monkeypatch.setattr(StorageClient, "LIST_PAGE_SIZE", 2)
        bodies = []
        pages = [
            [
                {"id": "1", "name": "a.png", "created_at": "2026-01-01T00:00:00.000Z"},
                {"id": None, "name": "folder"},
            ],
            [{"id": "3", "name": "b.png", "created_at": "2026-01-02T00:00:00"}],
        ]

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.method == "POST"
            assert request.url.path == "/storage/v1/object/list/avatars"
            body = json.loads(request.content)
            bodies.append(body)
            return httpx.Response(200, json=pages[body["offset"] // 2])

        objects = await make_client(handler).list_objects("avatars")

        assert [o.name for o in objects] == ["a.png", "b.png"]
        assert objects[0].created_at == datetime(2026, 1, 1, tzinfo=UTC)
        assert objects[1].created_at == datetime(2026, 1, 2, tzinfo=UTC)
        assert [b["offset"] for b in bodies] == [0, 2]
        assert bodies[0]["limit"] == 2

    @pytest.mark.asyncio
    async def test_list_error_raises(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(403, json={"error": "unauthorized"})

        with pytest.raises(httpx.HTTPStatusError):
            await make_client(handler).list_objects("avatars")
