"""Maps failures onto ErrorKind and applies per-call swallow policies."""

from typing import Callable, Optional, TypeVar

from ftpkit.exceptions import BackendError, ErrorKind

T = TypeVar("T")


def classify(err: BaseException) -> ErrorKind:
    """Return the ErrorKind of a failure.

    Backends tag their failures with ``BackendError``; the few OS-level
    exceptions that can still escape (a connection torn down under a running
    transfer, a local file that vanished) map by type. Everything else is
    ``UNCLASSIFIED``.
    """
    if isinstance(err, BackendError):
        return err.kind
    if isinstance(err, FileNotFoundError):
        return ErrorKind.FILE_NOT_FOUND
    if isinstance(err, ConnectionRefusedError):
        return ErrorKind.CONNECTION_REFUSED
    if isinstance(err, (ConnectionResetError, BrokenPipeError)):
        return ErrorKind.RECONNECT_AND_RETRY_ONCE
    return ErrorKind.UNCLASSIFIED


def swallow_on_match(
    err: Exception,
    kind: Optional[ErrorKind],
    default: T,
    on_propagate: Optional[Callable[[], None]] = None,
) -> T:
    """Return ``default`` if ``err`` is of ``kind``, otherwise re-raise ``err``.

    ``on_propagate`` runs right before the re-raise, so the caller can leave
    a log line naming the failed operation.
    """
    if kind is not None and classify(err) == kind:
        return default
    if on_propagate is not None:
        on_propagate()
    raise err
