"""Failures raised while linking or removing social accounts.

Every internal failure is a ``LinkingError``. Actions in ``app.accounts``
log these with their context and collapse them into one of the generic
user-facing messages below.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from app.meta_client import GraphError

CONNECT_ERROR_MESSAGE = (
    "Sorry, we ran into an error connecting your Instagram account. Please try again."
)
DELETE_ERROR_MESSAGE = (
    "Sorry, we ran into an error deleting your Instagram account. Please try again."
)
DELETE_CHANNEL_ERROR_MESSAGE = (
    "Sorry, we ran into an error deleting your YouTube channel. Please try again."
)
RATE_LIMIT_ERROR_MESSAGE = (
    "Sorry, we could not fetch the publishing limit for this account. Please try again."
)


class LinkingError(Exception):
    """Base error for account linking flows."""


class GraphAPIError(LinkingError):
    """The Graph API answered with an ``error`` envelope."""

    def __init__(self, message: str, graph_error: "GraphError | None" = None):
        self.graph_error = graph_error
        super().__init__(message)


class GraphTransportError(LinkingError):
    """The Graph API could not be reached or returned an unreadable body."""


class MissingConfigurationError(LinkingError):
    """A required environment variable is not set."""


class MediaDownloadError(LinkingError):
    """A remote media file could not be downloaded."""


class StorageError(LinkingError):
    """An object storage operation failed."""


class PersistenceError(LinkingError):
    """A database write or read failed."""


class AccountNotFoundError(LinkingError):
    """No linked account matches the requested id for this user."""
