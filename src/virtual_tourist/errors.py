"""Error types raised by the photo core."""

from enum import StrEnum


class ApiErrorKind(StrEnum):
    TRANSPORT = "transport"
    BAD_STATUS = "bad_status"
    EMPTY_BODY = "empty_body"
    MALFORMED_JSON = "malformed_json"
    REMOTE_ERROR = "remote_error"
    MISSING_FIELD = "missing_field"
    NO_RESULTS = "no_results"


class RepositoryErrorKind(StrEnum):
    NOT_FOUND = "not_found"
    PERSIST_FAILURE = "persist_failure"


class ServiceErrorKind(StrEnum):
    ALREADY_IN_FLIGHT = "already_in_flight"


class VirtualTouristError(Exception):
    """Base class for all photo core errors."""


class ApiError(VirtualTouristError):
    """Failure talking to the Flickr API or downloading an image."""

    def __init__(
        self,
        kind: ApiErrorKind,
        message: str,
        field: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.field = field
        self.status_code = status_code


class RepositoryError(VirtualTouristError):
    """Failure reading or writing the local datastore."""

    def __init__(self, kind: RepositoryErrorKind, message: str) -> None:
        super().__init__(message)
        self.kind = kind


class ServiceError(VirtualTouristError):
    """Request rejected by the pin photo service."""

    def __init__(self, kind: ServiceErrorKind, message: str) -> None:
        super().__init__(message)
        self.kind = kind
