from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class DirectoryError(Exception):
    """Base error for the workspace directory provider.

    Fatal errors (configuration, authentication) are never raised past
    `bootstrap_provider`; they are returned as `BootResult.fatal` and the
    process entry point decides how to exit.
    """

    message: str
    cause: Exception | None = None

    def __str__(self) -> str:
        return self.message


@dataclass(slots=True)
class ConfigurationError(DirectoryError):
    """No usable credential, or a credential placed in an unsupported slot."""

    slot: str | None = None


@dataclass(slots=True)
class AuthenticationError(DirectoryError):
    """The identity round trip (auth.test) failed. Not retried."""

    slack_error: str | None = None


@dataclass(slots=True)
class FetchError(DirectoryError):
    """A single enumeration page failed; the current refresh is aborted."""

    method: str | None = None
    slack_error: str | None = None
    status_code: int | None = None
    retryable: bool = False


@dataclass(slots=True)
class FetchCancelled(DirectoryError):
    pass


@dataclass(slots=True)
class SnapshotError(DirectoryError):
    path: str | None = None
