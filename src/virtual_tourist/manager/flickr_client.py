"""Flickr REST API client for location-based photo search."""

import json
import logging
import random

import httpx

from virtual_tourist.config import (
    FLICKR_API_BASE,
    FLICKR_API_KEY,
    FLICKR_SEARCH_METHOD,
    HTTP_TIMEOUT,
    MAX_TOTAL_RESULTS,
    PHOTOS_PER_PAGE,
    SEARCH_BBOX_HALF_HEIGHT,
    SEARCH_BBOX_HALF_WIDTH,
    SEARCH_LAT_RANGE,
    SEARCH_LON_RANGE,
)
from virtual_tourist.errors import ApiError, ApiErrorKind
from virtual_tourist.models import BoundingBox, PhotoDescriptor, PhotoPage

logger = logging.getLogger(__name__)


def bounding_box(latitude: float, longitude: float) -> BoundingBox:
    """Build the search box around a point, clamped to the valid lat/lon range."""
    return BoundingBox(
        min_lon=max(longitude - SEARCH_BBOX_HALF_WIDTH, SEARCH_LON_RANGE[0]),
        min_lat=max(latitude - SEARCH_BBOX_HALF_HEIGHT, SEARCH_LAT_RANGE[0]),
        max_lon=min(longitude + SEARCH_BBOX_HALF_WIDTH, SEARCH_LON_RANGE[1]),
        max_lat=min(latitude + SEARCH_BBOX_HALF_HEIGHT, SEARCH_LAT_RANGE[1]),
    )


def page_limit(total_pages: int) -> int:
    """Highest page worth requesting.

    Flickr stops returning new results after roughly MAX_TOTAL_RESULTS photos,
    so pages past that point only repeat earlier images.
    """
    return min(total_pages, MAX_TOTAL_RESULTS // PHOTOS_PER_PAGE)


class ImageSearchClient:
    """Async client for the Flickr photo search API."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: int = HTTP_TIMEOUT,
        rng: random.Random | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key or FLICKR_API_KEY
        if not self.api_key:
            raise ValueError("Flickr API key is required. Set FLICKR_API_KEY in .env file.")
        self.base_url = base_url or FLICKR_API_BASE
        try:
            url = httpx.URL(self.base_url)
        except httpx.InvalidURL as e:
            raise ValueError(f"Invalid Flickr API base URL: {self.base_url!r}") from e
        if url.scheme not in ("http", "https") or not url.host:
            raise ValueError(f"Invalid Flickr API base URL: {self.base_url!r}")
        self.timeout = timeout
        self.rng = rng or random.Random()
        self.transport = transport

    def _http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport)

    async def _call(self, method: str, **params: str) -> dict:
        """Make a Flickr API call and return the parsed JSON object."""
        params.update(
            {
                "method": method,
                "api_key": self.api_key,
                "format": "json",
                "nojsoncallback": "1",
            }
        )
        try:
            async with self._http_client() as client:
                resp = await client.get(self.base_url, params=params)
        except httpx.TransportError as e:
            raise ApiError(ApiErrorKind.TRANSPORT, f"Request to Flickr failed: {e}") from e

        if not resp.is_success:
            raise ApiError(
                ApiErrorKind.BAD_STATUS,
                f"Flickr returned HTTP {resp.status_code}",
                status_code=resp.status_code,
            )
        if not resp.content:
            raise ApiError(ApiErrorKind.EMPTY_BODY, "Flickr returned an empty response")
        try:
            data = json.loads(resp.content)
        except ValueError as e:
            raise ApiError(ApiErrorKind.MALFORMED_JSON, f"Could not parse response: {e}") from e
        if not isinstance(data, dict):
            raise ApiError(ApiErrorKind.MALFORMED_JSON, "Response is not a JSON object")
        if data.get("stat") != "ok":
            raise ApiError(
                ApiErrorKind.REMOTE_ERROR,
                f"Flickr API error {data.get('code')}: {data.get('message')}",
            )
        return data

    async def search_photo_page(
        self, latitude: float, longitude: float, page: int | None = None
    ) -> PhotoPage:
        """Fetch one page of photos around a point.

        Without ``page`` Flickr answers with its first page, which is mostly
        useful for learning the total page count.
        """
        params = {
            "bbox": bounding_box(latitude, longitude).to_param(),
            "safe_search": "1",
            "extras": "url_m",
            "per_page": str(PHOTOS_PER_PAGE),
        }
        if page is not None:
            params["page"] = str(page)

        data = await self._call(FLICKR_SEARCH_METHOD, **params)

        photos = data.get("photos")
        if not isinstance(photos, dict):
            raise ApiError(
                ApiErrorKind.MISSING_FIELD, "Missing 'photos' in response", field="photos"
            )
        total_pages = _parse_int(photos.get("pages"))
        if total_pages is None:
            raise ApiError(ApiErrorKind.MISSING_FIELD, "Missing 'pages' in response", field="pages")
        entries = photos.get("photo")
        if not isinstance(entries, list):
            raise ApiError(ApiErrorKind.MISSING_FIELD, "Missing 'photo' in response", field="photo")

        descriptors = [
            PhotoDescriptor(medium_url=p["url_m"], id=p.get("id"), title=p.get("title"))
            for p in entries
            if isinstance(p, dict) and p.get("url_m")
        ]
        if len(descriptors) < len(entries):
            logger.debug("Skipped %d photos without url_m", len(entries) - len(descriptors))
        return PhotoPage(photos=descriptors, total_pages=total_pages)

    async def search_random_photos(
        self, latitude: float, longitude: float
    ) -> list[PhotoDescriptor]:
        """Return the photos of a randomly chosen result page around a point.

        Flickr has no random-results endpoint, so the first call only learns
        the page count and the second fetches a random page within the limit.
        """
        first = await self.search_photo_page(latitude, longitude)
        limit = page_limit(first.total_pages)
        if limit < 1:
            raise ApiError(ApiErrorKind.NO_RESULTS, "No photos found near this location")

        page = self.rng.randint(1, limit)
        logger.debug("Picked page %d of %d for (%s, %s)", page, limit, latitude, longitude)
        result = await self.search_photo_page(latitude, longitude, page=page)
        if not result.photos:
            raise ApiError(ApiErrorKind.NO_RESULTS, f"No photos found on page {page}")
        return result.photos

    async def download_image_bytes(self, url: str) -> bytes:
        """Fetch the raw bytes of an image."""
        try:
            async with self._http_client() as client:
                resp = await client.get(url)
        except httpx.TransportError as e:
            raise ApiError(ApiErrorKind.TRANSPORT, f"Download of {url} failed: {e}") from e
        if not resp.is_success:
            raise ApiError(
                ApiErrorKind.BAD_STATUS,
                f"Download of {url} returned HTTP {resp.status_code}",
                status_code=resp.status_code,
            )
        if not resp.content:
            raise ApiError(ApiErrorKind.EMPTY_BODY, f"Download of {url} returned no data")
        return resp.content


def _parse_int(value: object) -> int | None:
    """Flickr usually sends counts as ints but occasionally as numeric strings."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None
