"""Client for the Supabase storage HTTP API."""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from urllib.parse import quote

import httpx

from src.config import get_settings

logger = logging.getLogger(__name__)


@dataclass
class StorageDeleteResult:
    """Outcome of a delete request. Transport errors have no status code."""

    status_code: int | None
    body: str = ""
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status_code == 200


@dataclass
class StorageObject:
    """An object listed from a bucket."""

    name: str
    created_at: datetime | None = None


class StorageClient:
    """Service for deleting and listing objects in storage buckets."""

    LIST_PAGE_SIZE = 100

    def __init__(
        self,
        base_url: str | None = None,
        service_key: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        settings = get_settings()
        self.base_url = (base_url or settings.storage_base_url).rstrip("/")
        if service_key is None:
            service_key = settings.supabase_service_role_key
        self.service_key = service_key
        self.timeout = timeout or settings.storage_timeout_seconds
        self.transport = transport

    def _headers(self) -> dict[str, str]:
        headers = {}
        if self.service_key:
            headers["Authorization"] = f"Bearer {self.service_key}"
        return headers

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport)

    def object_url(self, bucket: str, key: str) -> str:
        """URL of an object, e.g. ``<project>/storage/v1/object/avatars/<key>``."""
        return f"{self.base_url}/object/{quote(bucket, safe='')}/{quote(key, safe='/')}"

    async def delete_object(self, bucket: str, key: str) -> StorageDeleteResult:
        """Delete one object.

        Never raises for HTTP or transport failures; the caller decides what a
        non-200 result means.
        """
        url = self.object_url(bucket, key)
        try:
            async with self._client() as client:
                response = await client.delete(url, headers=self._headers())
        except httpx.HTTPError as e:
            logger.error(f"HTTP error deleting {bucket}/{key}: {e}")
            return StorageDeleteResult(status_code=None, error=str(e) or e.__class__.__name__)

        return StorageDeleteResult(status_code=response.status_code, body=response.text)

    async def list_objects(self, bucket: str, prefix: str = "") -> list[StorageObject]:
        """List all objects directly under ``prefix``; folders are skipped."""
        objects: list[StorageObject] = []
        offset = 0

        async with self._client() as client:
            while True:
                response = await client.post(
                    f"{self.base_url}/object/list/{quote(bucket, safe='')}",
                    headers=self._headers(),
                    json={
                        "prefix": prefix,
                        "limit": self.LIST_PAGE_SIZE,
                        "offset": offset,
                        "sortBy": {"column": "name", "order": "asc"},
                    },
                )
                response.raise_for_status()
                page = response.json()

                for entry in page:
                    # Folders come back as placeholder entries without an id
                    if entry.get("id") is None:
                        continue
                    name = f"{prefix.rstrip('/')}/{entry['name']}" if prefix else entry["name"]
                    created_at = _parse_timestamp(entry.get("created_at"))
                    objects.append(StorageObject(name=name, created_at=created_at))

                if len(page) < self.LIST_PAGE_SIZE:
                    return objects
                offset += self.LIST_PAGE_SIZE


def _parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        logger.warning(f"Unparseable storage timestamp: {value}")
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)
