"""
Service-level errors.

Routers translate these into HTTP responses; services never build responses.
"""


class ClubAPIError(Exception):
    """Base class for errors raised by the service layer."""


class SourceUnavailableError(ClubAPIError):
    """The backing file, directory or storage listing could not be read."""


class NotFoundError(ClubAPIError):
    """A single-entity lookup matched nothing."""


class ChallengeValidationError(ClubAPIError, ValueError):
    """Challenge generator input was rejected."""


class StorageError(ClubAPIError):
    """An Object Storage call failed."""
