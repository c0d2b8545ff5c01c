"""Orchestrates photo search, caching and download for pins."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from virtual_tourist.errors import (
    ApiError,
    ApiErrorKind,
    RepositoryError,
    RepositoryErrorKind,
    ServiceError,
    ServiceErrorKind,
)
from virtual_tourist.manager.flickr_client import ImageSearchClient
from virtual_tourist.manager.repository import PhotoRepository
from virtual_tourist.models import Photo, Pin

logger = logging.getLogger(__name__)


@dataclass
class FetchResult:
    """Outcome of a load or refresh, delivered once the fetch has finished."""

    pin: Pin
    photos: list[Photo] = field(default_factory=list)
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def no_results(self) -> bool:
        """The search worked but found nothing, as opposed to a network failure."""
        return isinstance(self.error, ApiError) and self.error.kind == ApiErrorKind.NO_RESULTS

    @property
    def ignored(self) -> bool:
        """Another fetch for the same pin was already running."""
        return (
            isinstance(self.error, ServiceError)
            and self.error.kind == ServiceErrorKind.ALREADY_IN_FLIGHT
        )


@dataclass
class PhotoLoad:
    """Photos available right away plus the completion of any pending fetch."""

    photos: list[Photo]
    completion: Awaitable[FetchResult]


class PinPhotoService:
    """Loads, refreshes and downloads photos for pins.

    At most one load or refresh runs per pin; a second request for the same
    pin is rejected with ServiceError(ALREADY_IN_FLIGHT). Concurrent
    ``ensure_photo_bytes`` calls for one photo share a single download.

    ``dispatch`` decides where completions and notifications run, e.g.
    ``loop.call_soon_threadsafe`` for a UI loop. By default they are called
    directly.
    """

    def __init__(
        self,
        client: ImageSearchClient,
        repository: PhotoRepository,
        on_pins_changed: Callable[[], None] | None = None,
        on_photos_changed: Callable[[Pin], None] | None = None,
        dispatch: Callable[[Callable[[], None]], None] | None = None,
    ) -> None:
        self.client = client
        self.repository = repository
        self.on_pins_changed = on_pins_changed
        self.on_photos_changed = on_photos_changed
        self.dispatch = dispatch or _call_now
        self._fetching: set[int] = set()
        self._downloads: dict[int, asyncio.Task[bytes]] = {}

    # -- pins ---------------------------------------------------------------

    def create_pin(self, latitude: float, longitude: float) -> Pin:
        pin = self.repository.create_pin(latitude, longitude)
        self._notify_pins()
        return pin

    def delete_pin(self, pin: Pin) -> None:
        self.repository.delete_pin(pin)
        self._notify_pins()

    def is_fetching(self, pin: Pin) -> bool:
        return pin.id in self._fetching

    # -- photo collections --------------------------------------------------

    def load_photos(
        self, pin: Pin, on_complete: Callable[[FetchResult], None] | None = None
    ) -> PhotoLoad:
        """Return the pin's cached photos, fetching a random batch if it has none.

        Must be called from a running event loop.
        """
        if pin.id in self._fetching:
            return self._reject(pin, on_complete)

        photos = self.repository.list_photos(pin)
        if photos:
            result = FetchResult(pin=pin, photos=photos)
            self._complete(result, on_complete)
            return PhotoLoad(photos=photos, completion=_done(result))

        return PhotoLoad(photos=[], completion=self._start_fetch(pin, "load", on_complete))

    def refresh_photos(
        self, pin: Pin, on_complete: Callable[[FetchResult], None] | None = None
    ) -> PhotoLoad:
        """Replace all of the pin's photos with a new random batch.

        The old photos are deleted and committed before the search starts, so
        old and new photos are never visible together.
        """
        if pin.id in self._fetching:
            return self._reject(pin, on_complete)

        self._fetching.add(pin.id)
        try:
            self.repository.delete_all_photos(pin)
        except RepositoryError as e:
            self._fetching.discard(pin.id)
            logger.error("Refresh of pin %d failed while deleting photos: %s", pin.id, e)
            result = FetchResult(pin=pin, error=e)
            self._complete(result, on_complete)
            return PhotoLoad(photos=[], completion=_done(result))
        self._notify_photos(pin)

        return PhotoLoad(photos=[], completion=self._start_fetch(pin, "refresh", on_complete))

    def delete_photo(self, photo: Photo) -> None:
        self.repository.delete_photo(photo)
        pin = self.repository.get_pin(photo.pin_id)
        if pin is not None:
            self._notify_photos(pin)

    def _start_fetch(
        self, pin: Pin, operation: str, on_complete: Callable[[FetchResult], None] | None
    ) -> asyncio.Task[FetchResult]:
        self._fetching.add(pin.id)
        return asyncio.get_running_loop().create_task(self._fetch(pin, operation, on_complete))

    async def _fetch(
        self, pin: Pin, operation: str, on_complete: Callable[[FetchResult], None] | None
    ) -> FetchResult:
        try:
            try:
                descriptors = await self.client.search_random_photos(pin.latitude, pin.longitude)
                photos = self.repository.create_photos(pin, [d.medium_url for d in descriptors])
            except ApiError as e:
                if e.kind == ApiErrorKind.NO_RESULTS:
                    logger.info("%s for pin %d found no photos", operation, pin.id)
                else:
                    logger.warning("%s for pin %d failed: %s", operation, pin.id, e)
                result = FetchResult(pin=pin, error=e)
            except RepositoryError as e:
                if e.kind == RepositoryErrorKind.NOT_FOUND:
                    logger.info(
                        "Pin %d was deleted during %s; discarding results", pin.id, operation
                    )
                else:
                    logger.error("%s for pin %d could not be saved: %s", operation, pin.id, e)
                result = FetchResult(pin=pin, error=e)
            except Exception as e:
                logger.exception("%s for pin %d failed unexpectedly", operation, pin.id)
                result = FetchResult(pin=pin, error=e)
            else:
                result = FetchResult(pin=pin, photos=photos)
                self._notify_photos(pin)
        finally:
            self._fetching.discard(pin.id)
        self._complete(result, on_complete)
        return result

    def _reject(self, pin: Pin, on_complete: Callable[[FetchResult], None] | None) -> PhotoLoad:
        logger.debug("Fetch for pin %d already in flight", pin.id)
        error = ServiceError(
            ServiceErrorKind.ALREADY_IN_FLIGHT, f"Photos for pin {pin.id} are already being fetched"
        )
        result = FetchResult(pin=pin, error=error)
        self._complete(result, on_complete)
        return PhotoLoad(photos=self.repository.list_photos(pin), completion=_done(result))

    # -- photo bytes --------------------------------------------------------

    async def ensure_photo_bytes(self, photo: Photo) -> bytes:
        """Return the photo's image bytes, downloading and caching them once."""
        if photo.image_data is not None:
            return photo.image_data

        task = self._downloads.get(photo.id)
        if task is None:
            stored = self.repository.get_photo(photo.id)
            if stored is not None and stored.image_data is not None:
                photo.image_data = stored.image_data
                return stored.image_data
            task = asyncio.get_running_loop().create_task(self._download(photo))
            self._downloads[photo.id] = task
            task.add_done_callback(lambda t: self._forget_download(photo.id, t))
        data = await asyncio.shield(task)
        photo.image_data = data
        return data

    def _forget_download(self, photo_id: int, task: asyncio.Task[bytes]) -> None:
        self._downloads.pop(photo_id, None)
        if not task.cancelled():
            # Callers may all have been cancelled; mark the outcome as retrieved.
            task.exception()

    async def _download(self, photo: Photo) -> bytes:
        data = await self.client.download_image_bytes(photo.image_url)
        try:
            self.repository.set_photo_data(photo, data)
        except RepositoryError as e:
            if e.kind != RepositoryErrorKind.NOT_FOUND:
                raise
            logger.info("Photo %d was deleted during download; not caching it", photo.id)
            return data
        pin = self.repository.get_pin(photo.pin_id)
        if pin is not None:
            self._notify_photos(pin)
        return data

    # -- notifications ------------------------------------------------------

    def _complete(
        self, result: FetchResult, on_complete: Callable[[FetchResult], None] | None
    ) -> None:
        if on_complete is not None:
            self.dispatch(lambda: on_complete(result))

    def _notify_pins(self) -> None:
        if self.on_pins_changed is not None:
            self.dispatch(self.on_pins_changed)

    def _notify_photos(self, pin: Pin) -> None:
        if self.on_photos_changed is not None:
            callback = self.on_photos_changed
            self.dispatch(lambda: callback(pin))


def _call_now(callback: Callable[[], None]) -> None:
    callback()


def _done(result: FetchResult) -> asyncio.Future[FetchResult]:
    future: asyncio.Future[FetchResult] = asyncio.get_running_loop().create_future()
    future.set_result(result)
    return future
