"""Tests for pin and photo dataclasses."""

import dataclasses

import pytest

from virtual_tourist.models import BoundingBox, Photo, Pin


def test_pin_is_immutable():
    pin = Pin(id=1, latitude=40.0, longitude=-74.0)
    with pytest.raises(dataclasses.FrozenInstanceError):
        pin.latitude = 41.0


def test_photo_pending_until_data_set():
    photo = Photo(id=1, pin_id=1, image_url="https://example.com/a.jpg")
    assert photo.image_data is None
    assert photo.is_pending
    photo.image_data = b"data"
    assert not photo.is_pending


def test_bounding_box_param_order():
    box = BoundingBox(min_lon=-75.5, min_lat=39.0, max_lon=-73.5, max_lat=41.0)
    assert box.to_param() == "-75.5,39.0,-73.5,41.0"
