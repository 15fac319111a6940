"""Centralized exception definitions for ftpkit."""

from enum import IntEnum
from typing import Optional


class ErrorKind(IntEnum):
    """Semantic classification attached to every backend failure.

    Backends pick a kind when they raise; call sites only ever compare kinds,
    never backend-specific codes or messages.
    """

    # The request had no effect because the target already is as requested,
    # e.g. creating a directory that exists.
    NEUTRAL = 0
    REQUEST_MKDIR = 1
    FILE_NOT_FOUND = 2
    RECONNECT_AND_RETRY = 3
    RECONNECT_AND_RETRY_ONCE = 4
    CONNECTION_REFUSED = 5
    AUTH_FAILED = 6
    UNCLASSIFIED = -1

    @property
    def needs_reconnect(self) -> bool:
        return self in (ErrorKind.RECONNECT_AND_RETRY, ErrorKind.RECONNECT_AND_RETRY_ONCE)


class FtpkitError(Exception):
    """Base exception for all ftpkit errors."""


# Configuration Exceptions


class ConfigError(FtpkitError):
    """Base exception for configuration errors."""


class RemoteNotFoundError(ConfigError):
    """Exception raised when a server configuration is not found."""


class ValidationError(ConfigError):
    """Exception raised when configuration validation fails."""


# Client/Connection Exceptions


class ClientError(FtpkitError):
    """Base exception for remote operation errors."""


class BackendError(ClientError):
    """Failure raised by a backend primitive, tagged with its ErrorKind."""

    def __init__(self, kind: ErrorKind, message: str = "") -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        return f"BackendError({self.kind.name}, {self.message!r})"


class NotSymlinkError(ClientError):
    """readlink was asked to resolve an entry that is not a symlink."""

    def __init__(self, path: str, message: Optional[str] = None) -> None:
        super().__init__(message or f"{path} is not symlink")
        self.path = path


# Session Exceptions


class SessionError(FtpkitError):
    """Base exception for session setup."""


class UnsupportedProtocolError(SessionError):
    """Raised when an unsupported protocol is specified."""


class MissingDependencyError(SessionError):
    """Raised when required dependencies are not installed."""
