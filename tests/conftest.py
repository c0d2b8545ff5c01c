"""Shared test fixtures."""

import asyncio

import duckdb
import pytest

from virtual_tourist.errors import ApiError, ApiErrorKind
from virtual_tourist.manager.repository import PhotoRepository
from virtual_tourist.manager.schema import ensure_schema
from virtual_tourist.models import PhotoDescriptor


@pytest.fixture
def db_conn():
    """In-memory DuckDB connection with schema initialized."""
    conn = duckdb.connect(":memory:")
    ensure_schema(conn)
    yield conn
    conn.close()


@pytest.fixture
def repo(db_conn) -> PhotoRepository:
    return PhotoRepository(db_conn)


@pytest.fixture
def pin(repo):
    return repo.create_pin(40.0, -74.0)


class FixedRandom:
    """Stand-in for random.Random that always picks the same page."""

    def __init__(self, page: int) -> None:
        self.page = page
        self.calls: list[tuple[int, int]] = []

    def randint(self, a: int, b: int) -> int:
        self.calls.append((a, b))
        return self.page


class FakeSearchClient:
    """Records calls and serves canned search results and image bytes."""

    def __init__(
        self,
        urls: list[str] | None = None,
        error: ApiError | None = None,
        image: bytes = b"\xff\xd8jpeg",
    ) -> None:
        self.urls = urls if urls is not None else ["https://example.com/a.jpg"]
        self.error = error
        self.image = image
        self.search_calls: list[tuple[float, float]] = []
        self.download_calls: list[str] = []
        self.release = asyncio.Event()
        self.release.set()

    async def search_random_photos(self, latitude, longitude):
        self.search_calls.append((latitude, longitude))
        await self.release.wait()
        if self.error is not None:
            raise self.error
        if not self.urls:
            raise ApiError(ApiErrorKind.NO_RESULTS, "No photos found")
        return [PhotoDescriptor(medium_url=u) for u in self.urls]

    async def download_image_bytes(self, url):
        self.download_calls.append(url)
        await self.release.wait()
        if self.error is not None:
            raise self.error
        return self.image


def flickr_response(photos: list[dict], pages: int = 1) -> dict:
    """Build a successful flickr.photos.search response body."""
    return {
        "photos": {
            "page": 1,
            "pages": pages,
            "perpage": 12,
            "total": pages * 12,
            "photo": photos,
        },
        "stat": "ok",
    }


def photo_entry(photo_id: str) -> dict:
    return {
        "id": photo_id,
        "title": f"Photo {photo_id}",
        "url_m": f"https://live.staticflickr.com/65535/{photo_id}_abc_m.jpg",
    }
