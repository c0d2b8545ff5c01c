"""Tests for pin and photo CRUD operations."""

import duckdb
import pytest

from virtual_tourist.errors import RepositoryError, RepositoryErrorKind

URLS = [f"https://live.staticflickr.com/65535/{i}_abc_m.jpg" for i in range(3)]


def test_create_and_find_pin(repo):
    pin = repo.create_pin(40.0, -74.0)
    assert pin.id is not None
    assert repo.find_pin(40.0, -74.0) == pin
    assert repo.get_pin(pin.id) == pin
    assert repo.find_pin(40.0, -74.5) is None


def test_list_pins(repo):
    a = repo.create_pin(1.0, 2.0)
    b = repo.create_pin(-33.87, 151.21)
    assert repo.list_pins() == [a, b]


def test_create_photos_pending(repo, pin):
    photos = repo.create_photos(pin, URLS)
    assert [p.image_url for p in photos] == URLS
    assert all(p.image_data is None and p.pin_id == pin.id for p in photos)
    assert repo.list_photos(pin) == photos


def test_list_photos_scoped_to_pin(repo, pin):
    other = repo.create_pin(10.0, 10.0)
    repo.create_photos(pin, URLS[:2])
    repo.create_photos(other, URLS[2:])
    assert len(repo.list_photos(pin)) == 2
    assert len(repo.list_photos(other)) == 1


def test_create_photos_for_deleted_pin(repo, pin):
    repo.delete_pin(pin)
    with pytest.raises(RepositoryError) as exc_info:
        repo.create_photos(pin, URLS)
    assert exc_info.value.kind == RepositoryErrorKind.NOT_FOUND
    count = repo.conn.execute("SELECT COUNT(*) FROM photos").fetchone()[0]
    assert count == 0


def test_set_photo_data(repo, pin):
    photo = repo.create_photos(pin, URLS[:1])[0]
    repo.set_photo_data(photo, b"\xff\xd8jpeg")
    assert photo.image_data == b"\xff\xd8jpeg"
    assert repo.get_photo(photo.id).image_data == b"\xff\xd8jpeg"


def test_set_photo_data_on_deleted_photo(repo, pin):
    photo = repo.create_photos(pin, URLS[:1])[0]
    repo.delete_photo(photo)
    with pytest.raises(RepositoryError) as exc_info:
        repo.set_photo_data(photo, b"data")
    assert exc_info.value.kind == RepositoryErrorKind.NOT_FOUND


def test_delete_photo(repo, pin):
    photos = repo.create_photos(pin, URLS)
    repo.delete_photo(photos[1])
    assert repo.list_photos(pin) == [photos[0], photos[2]]
    assert repo.get_photo(photos[1].id) is None


def test_delete_all_photos(repo, pin):
    other = repo.create_pin(10.0, 10.0)
    repo.create_photos(pin, URLS)
    repo.create_photos(other, URLS[:1])
    assert repo.delete_all_photos(pin) == 3
    assert repo.list_photos(pin) == []
    assert len(repo.list_photos(other)) == 1


def test_delete_pin_cascades_to_photos(repo, pin):
    repo.create_photos(pin, URLS)
    repo.delete_pin(pin)
    assert repo.get_pin(pin.id) is None
    count = repo.conn.execute("SELECT COUNT(*) FROM photos").fetchone()[0]
    assert count == 0


def test_batch_commits_once(repo, pin):
    with repo.batch():
        repo.create_photos(pin, URLS[:1])
        repo.create_photos(pin, URLS[1:])
    assert len(repo.list_photos(pin)) == 3


def test_batch_rolls_back_on_error(repo, pin):
    with pytest.raises(RuntimeError):
        with repo.batch():
            repo.create_photos(pin, URLS)
            raise RuntimeError("boom")
    assert repo.list_photos(pin) == []


def test_commit_outside_batch_is_noop(repo, pin):
    repo.create_photos(pin, URLS[:1])
    repo.commit()
    assert len(repo.list_photos(pin)) == 1


def test_commit_inside_batch_keeps_earlier_work(repo, pin):
    with pytest.raises(RuntimeError):
        with repo.batch():
            repo.create_photos(pin, URLS[:1])
            repo.commit()
            repo.create_photos(pin, URLS[1:])
            raise RuntimeError("boom")
    assert [p.image_url for p in repo.list_photos(pin)] == URLS[:1]


def test_storage_failure_is_persist_failure(repo, pin):
    repo.conn.execute("DROP TABLE photos")
    with pytest.raises(RepositoryError) as exc_info:
        repo.delete_all_photos(pin)
    assert exc_info.value.kind == RepositoryErrorKind.PERSIST_FAILURE
    assert isinstance(exc_info.value.__cause__, duckdb.Error)
    # The pin committed earlier is untouched.
    assert repo.get_pin(pin.id) == pin
