"""Data models for pins and their photos."""

from dataclasses import dataclass


@dataclass(frozen=True)
class Pin:
    """A user-placed map marker."""

    id: int
    latitude: float
    longitude: float


@dataclass
class Photo:
    """A single cached photo belonging to exactly one pin."""

    id: int
    pin_id: int
    image_url: str
    image_data: bytes | None = None

    @property
    def is_pending(self) -> bool:
        return self.image_data is None


@dataclass(frozen=True)
class PhotoDescriptor:
    """A photo entry from a search response, before it is persisted."""

    medium_url: str
    id: str | None = None
    title: str | None = None


@dataclass(frozen=True)
class BoundingBox:
    """Rectangular lat/lon search region."""

    min_lon: float
    min_lat: float
    max_lon: float
    max_lat: float

    def to_param(self) -> str:
        """Render as the ``bbox`` query value: ``minLon,minLat,maxLon,maxLat``."""
        return f"{self.min_lon},{self.min_lat},{self.max_lon},{self.max_lat}"


@dataclass(frozen=True)
class PhotoPage:
    """One page of search results."""

    photos: list[PhotoDescriptor]
    total_pages: int
