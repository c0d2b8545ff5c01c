"""CRUD operations for pins and photos in DuckDB."""

import logging
from collections.abc import Iterator, Sequence
from contextlib import contextmanager

import duckdb

from virtual_tourist.errors import RepositoryError, RepositoryErrorKind
from virtual_tourist.models import Photo, Pin

logger = logging.getLogger(__name__)


class PhotoRepository:
    """Owns the pin and photo records of one opened DuckDB connection.

    Every mutating call commits on its own unless it runs inside ``batch()``,
    in which case the whole batch is committed once on exit.
    """

    def __init__(self, conn: duckdb.DuckDBPyConnection) -> None:
        self.conn = conn
        self._in_batch = False

    # -- transactions -------------------------------------------------------

    @contextmanager
    def batch(self) -> Iterator[None]:
        """Group several mutating calls into one transaction."""
        if self._in_batch:
            yield
            return
        self.conn.begin()
        self._in_batch = True
        try:
            yield
        except duckdb.Error as e:
            self._in_batch = False
            self._rollback()
            raise RepositoryError(RepositoryErrorKind.PERSIST_FAILURE, str(e)) from e
        except BaseException:
            self._in_batch = False
            self._rollback()
            raise
        self._in_batch = False
        self._commit_transaction()

    def commit(self) -> None:
        """Flush pending mutations of an open batch.

        Outside a batch every mutation has already been committed, so this is
        a no-op.
        """
        if not self._in_batch:
            return
        self._commit_transaction()
        self.conn.begin()

    @contextmanager
    def _mutation(self) -> Iterator[None]:
        if self._in_batch:
            yield
            return
        self.conn.begin()
        try:
            yield
        except RepositoryError:
            self._rollback()
            raise
        except duckdb.Error as e:
            self._rollback()
            raise RepositoryError(RepositoryErrorKind.PERSIST_FAILURE, str(e)) from e
        self._commit_transaction()

    def _commit_transaction(self) -> None:
        try:
            self.conn.commit()
        except duckdb.Error as e:
            self._rollback()
            raise RepositoryError(RepositoryErrorKind.PERSIST_FAILURE, str(e)) from e

    def _rollback(self) -> None:
        try:
            self.conn.rollback()
        except duckdb.TransactionException:
            # Nothing left to roll back; DuckDB already aborted the transaction.
            logger.debug("rollback without an active transaction")

    # -- pins ---------------------------------------------------------------

    def create_pin(self, latitude: float, longitude: float) -> Pin:
        """Insert a new pin with no photos."""
        with self._mutation():
            row = self.conn.execute(
                "INSERT INTO pins (latitude, longitude) VALUES (?, ?) RETURNING id",
                [latitude, longitude],
            ).fetchone()
        pin = Pin(id=row[0], latitude=latitude, longitude=longitude)
        logger.info("Created pin %d at (%s, %s)", pin.id, latitude, longitude)
        return pin

    def list_pins(self) -> list[Pin]:
        rows = self.conn.execute("SELECT id, latitude, longitude FROM pins ORDER BY id").fetchall()
        return [_row_to_pin(row) for row in rows]

    def find_pin(self, latitude: float, longitude: float) -> Pin | None:
        """Look up a pin by its exact coordinate pair."""
        row = self.conn.execute(
            """
            SELECT id, latitude, longitude FROM pins
            WHERE latitude = ? AND longitude = ?
            ORDER BY id
            LIMIT 1
            """,
            [latitude, longitude],
        ).fetchone()
        if row is None:
            return None
        return _row_to_pin(row)

    def get_pin(self, pin_id: int) -> Pin | None:
        row = self.conn.execute(
            "SELECT id, latitude, longitude FROM pins WHERE id = ?", [pin_id]
        ).fetchone()
        if row is None:
            return None
        return _row_to_pin(row)

    def delete_pin(self, pin: Pin) -> None:
        """Remove the pin and every photo it owns in one commit."""
        with self._mutation():
            self.conn.execute("DELETE FROM photos WHERE pin_id = ?", [pin.id])
            self.conn.execute("DELETE FROM pins WHERE id = ?", [pin.id])
        logger.info("Deleted pin %d", pin.id)

    # -- photos -------------------------------------------------------------

    def list_photos(self, pin: Pin) -> list[Photo]:
        """All photos currently owned by the pin."""
        rows = self.conn.execute(
            """
            SELECT id, pin_id, image_url, image_data FROM photos
            WHERE pin_id = ?
            ORDER BY id
            """,
            [pin.id],
        ).fetchall()
        return [_row_to_photo(row) for row in rows]

    def get_photo(self, photo_id: int) -> Photo | None:
        row = self.conn.execute(
            "SELECT id, pin_id, image_url, image_data FROM photos WHERE id = ?",
            [photo_id],
        ).fetchone()
        if row is None:
            return None
        return _row_to_photo(row)

    def create_photos(self, pin: Pin, urls: Sequence[str]) -> list[Photo]:
        """Create one pending photo per URL for the pin, all or nothing.

        Raises RepositoryError(NOT_FOUND) if the pin has been deleted.
        """
        photos: list[Photo] = []
        with self._mutation():
            if self.get_pin(pin.id) is None:
                raise RepositoryError(RepositoryErrorKind.NOT_FOUND, f"Pin {pin.id} does not exist")
            for url in urls:
                row = self.conn.execute(
                    "INSERT INTO photos (pin_id, image_url) VALUES (?, ?) RETURNING id",
                    [pin.id, url],
                ).fetchone()
                photos.append(Photo(id=row[0], pin_id=pin.id, image_url=url))
        logger.info("Created %d photos for pin %d", len(photos), pin.id)
        return photos

    def set_photo_data(self, photo: Photo, data: bytes) -> None:
        """Store downloaded bytes for a photo.

        Raises RepositoryError(NOT_FOUND) if the photo has been deleted.
        """
        with self._mutation():
            row = self.conn.execute(
                "UPDATE photos SET image_data = ? WHERE id = ? RETURNING id",
                [data, photo.id],
            ).fetchone()
            if row is None:
                raise RepositoryError(
                    RepositoryErrorKind.NOT_FOUND, f"Photo {photo.id} does not exist"
                )
        photo.image_data = data

    def delete_photo(self, photo: Photo) -> None:
        with self._mutation():
            self.conn.execute("DELETE FROM photos WHERE id = ?", [photo.id])

    def delete_all_photos(self, pin: Pin) -> int:
        """Remove every photo owned by the pin in one commit. Returns the count removed."""
        with self._mutation():
            rows = self.conn.execute(
                "DELETE FROM photos WHERE pin_id = ? RETURNING id", [pin.id]
            ).fetchall()
        logger.info("Deleted %d photos for pin %d", len(rows), pin.id)
        return len(rows)


def _row_to_pin(row: tuple) -> Pin:
    """Convert a (id, latitude, longitude) row to a Pin."""
    return Pin(id=row[0], latitude=row[1], longitude=row[2])


def _row_to_photo(row: tuple) -> Photo:
    """Convert an (id, pin_id, image_url, image_data) row to a Photo."""
    data = row[3]
    return Photo(
        id=row[0],
        pin_id=row[1],
        image_url=row[2],
        image_data=bytes(data) if data is not None else None,
    )
