"""Abstract base class for protocol backends.

A backend speaks one wire protocol. Every path it accepts or returns is a
*wire string*: the raw bytes of the remote name decoded with the connection's
wire codec (see ``ftpkit.charset``). Backends never transcode names
themselves; ``FileInterface`` does that around every call.

Every failure a backend raises must be a ``BackendError`` carrying the
``ErrorKind`` that best describes it.
"""

import logging
from abc import ABCMeta, abstractmethod
from contextlib import AsyncExitStack
from typing import AsyncIterator, Awaitable, Callable, List, Optional, Protocol
from typing_extensions import Self

from ftpkit.exceptions import BackendError
from ftpkit.fileinfo import FileInfo
from ftpkit.localfile import LocalFile

logger = logging.getLogger(__name__)

BLOCK_SIZE = 65536


class ByteStream(Protocol):
    """Async iterator of byte blocks returned by ``Backend.get``."""

    def __aiter__(self) -> AsyncIterator[bytes]:
        ...

    async def aclose(self) -> None:
        ...


class BlockStream:
    """ByteStream over an already opened remote file.

    ``stack`` owns everything that must be released when the transfer ends
    (the remote file, a connection lock). It is closed exactly once: when the
    reader reports end of file, when a read fails, or on ``aclose()``.
    Failures are passed through ``translate`` so they reach the caller as
    ``BackendError``.
    """

    def __init__(
        self,
        stack: AsyncExitStack,
        read: Callable[[int], Awaitable[bytes]],
        translate: Callable[[Exception], BackendError],
        block_size: int = BLOCK_SIZE,
    ) -> None:
        self._stack = stack
        self._read = read
        self._translate = translate
        self._block_size = block_size
        self._closed = False

    def __aiter__(self) -> Self:
        return self

    async def __anext__(self) -> bytes:
        if self._closed:
            raise StopAsyncIteration
        try:
            block = await self._read(self._block_size)
        except Exception as e:
            await self._abort()
            if isinstance(e, BackendError):
                raise
            raise self._translate(e) from e
        if not block:
            await self.aclose()
            raise StopAsyncIteration
        return block

    async def _abort(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            await self._stack.aclose()
        except Exception as e:
            logger.debug("Error while releasing a failed stream: %s", e)

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            await self._stack.aclose()
        except BackendError:
            raise
        except Exception as e:
            raise self._translate(e) from e


class Backend(metaclass=ABCMeta):
    """Primitive operations a protocol driver must provide."""

    @abstractmethod
    def name(self) -> str:
        """
        Name of the endpoint represented by the backend.

        Returns:
            A string representing a human-readable name.
        """

    @abstractmethod
    async def connect(self, password: Optional[str] = None) -> None:
        """
        Open the connection.

        Args:
            password: Password overriding the configured one, if any

        Raises:
            BackendError: ``AUTH_FAILED``, ``CONNECTION_REFUSED`` or another kind
        """

    @abstractmethod
    async def disconnect(self) -> None:
        """Close the connection gracefully."""

    @abstractmethod
    def terminate(self) -> None:
        """Abort the connection at once, without a graceful shutdown.

        Operations still in flight fail with a ``BackendError``.
        """

    @abstractmethod
    def connected(self) -> bool:
        """Whether the connection is open."""

    @abstractmethod
    async def pwd(self) -> str:
        """Current remote directory as a wire string."""

    @abstractmethod
    async def mkdir(self, path: str, recursive: bool) -> None:
        """
        Create a directory.

        Raises:
            BackendError: ``NEUTRAL`` if the directory already exists
        """

    @abstractmethod
    async def rmdir(self, path: str, recursive: bool) -> None:
        """Remove a directory, with its contents if ``recursive``."""

    @abstractmethod
    async def delete(self, path: str) -> None:
        """Remove a file."""

    @abstractmethod
    async def put(self, local: LocalFile, path: str) -> None:
        """
        Upload a local file.

        Raises:
            BackendError: ``REQUEST_MKDIR`` if the parent directory is missing
        """

    @abstractmethod
    async def write(self, data: bytes, path: str) -> None:
        """Store ``data`` as the content of a remote file."""

    @abstractmethod
    async def get(self, path: str) -> ByteStream:
        """
        Open a remote file for reading.

        Failing to open raises here; failures while reading are raised by the
        returned stream.
        """

    @abstractmethod
    async def list(self, path: str) -> List[FileInfo]:
        """
        List a directory, without ``.`` and ``..``.

        Returns:
            FileInfo entries whose names are wire strings
        """

    @abstractmethod
    async def readlink(self, entry: FileInfo, path: str) -> str:
        """Raw target of the symlink at ``path``, as a wire string."""

    @abstractmethod
    async def rename(self, source: str, destination: str) -> None:
        """Rename or move a file or directory."""
