"""Structured errors raised by the photo session services."""


class PhotoSessionError(Exception):
    """Base error carrying a stable, machine-readable kind."""

    kind = "error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidRequestError(PhotoSessionError):
    """Malformed caller input."""

    kind = "invalid_request"


class InvalidStateError(PhotoSessionError):
    """Operation invoked without its required precondition."""

    kind = "invalid_state"


class InvalidPathError(PhotoSessionError):
    """Path traversal or resolution failure."""

    kind = "invalid_path"


class NotFoundError(PhotoSessionError):
    """Referenced queue entry is absent."""

    kind = "not_found"


class UpstreamFailureError(PhotoSessionError):
    """Catalog or network failure."""

    kind = "upstream_failure"


class IOFailureError(PhotoSessionError):
    """Local disk failure."""

    kind = "io_failure"
