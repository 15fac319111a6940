"""Protocol-agnostic file operations on top of a Backend.

``FileInterface`` is the single entry point callers use for a remote endpoint.
Every operation follows the same shape: announce the command, transcode the
host path to wire form, call the backend primitive, transcode results back,
settle the state bar, and on failure either swallow a benign ErrorKind or log
the failure and re-raise it unchanged.
"""

import asyncio
from contextlib import aclosing, contextmanager
from types import TracebackType
from typing import Awaitable, Callable, Iterator, List, Optional, TypeVar
from typing_extensions import Self

from ftpkit import ftp_path
from ftpkit.backends.base import Backend
from ftpkit.charset import Transcoder
from ftpkit.classifier import swallow_on_match
from ftpkit.config.base import ServerConfig
from ftpkit.exceptions import ErrorKind, NotSymlinkError
from ftpkit.fileinfo import FileInfo, FileType
from ftpkit.localfile import LocalFile
from ftpkit.logger import OutputLogger
from ftpkit.reporter import Logger, OperationReporter, StateBar, StatusBar

T = TypeVar("T")


def _failure_text(prefix: str, err: Exception, detail: Optional[str] = None) -> str:
    message = detail or str(err)
    return f"{prefix}, {message}" if message else prefix


class FileInterface:
    """File operations for one remote endpoint.

    Operations on one instance are not serialized here; a backend that can
    only run one command at a time has to serialize internally (FtpBackend
    does).

    Example:
        fi = FileInterface(FtpBackend("ftp.example.com"), ServerConfig(...))
        await fi.connect()
        for entry in await fi.list("/pub"):
            print(entry.name)
    """

    def __init__(
        self,
        backend: Backend,
        config: ServerConfig,
        *,
        state_bar: Optional[StateBar] = None,
        logger: Optional[Logger] = None,
    ) -> None:
        self.backend = backend
        self.config = config
        self.transcoder = Transcoder(config.host_charset, config.wire_charset)
        self.reporter = OperationReporter(
            state_bar if state_bar is not None else StatusBar(),
            logger if logger is not None else OutputLogger(),
            config.name,
        )
        self.oninvalidencoding: Callable[[List[str]], None] = lambda names: None

    # Session

    async def connect(self, password: Optional[str] = None) -> None:
        await self.backend.connect(password)

    async def disconnect(self) -> None:
        await self.backend.disconnect()

    def terminate(self) -> None:
        self.backend.terminate()

    def connected(self) -> bool:
        return self.backend.connected()

    async def pwd(self) -> str:
        return self.transcoder.to_host(await self.backend.pwd())

    async def __aenter__(self) -> Self:
        """Connect with the configured credentials."""
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        """Disconnect if still connected."""
        if self.connected():
            await self.disconnect()

    # Reporting

    def log(self, text: str) -> None:
        self.reporter.log(text)

    @contextmanager
    def _reporting(self, command: str, failure: str, detail: Optional[str] = None) -> Iterator[None]:
        self.reporter.announce(command)
        try:
            yield
        except asyncio.CancelledError:
            self.reporter.settle()
            raise
        except Exception as e:
            self.reporter.settle()
            self.reporter.log(_failure_text(failure, e, detail))
            raise
        self.reporter.settle()

    async def _call_with_name(
        self,
        name: str,
        remote_path: str,
        ignore: Optional[ErrorKind],
        default: T,
        callback: Callable[[str], Awaitable[T]],
    ) -> T:
        self.reporter.announce(f"{name} {remote_path}")
        try:
            value = await callback(self.transcoder.to_wire(remote_path))
        except asyncio.CancelledError:
            self.reporter.settle()
            raise
        except Exception as e:
            self.reporter.settle()
            return swallow_on_match(
                e,
                ignore,
                default,
                lambda: self.reporter.log(_failure_text(f"{name} fail: {remote_path}", e)),
            )
        self.reporter.settle()
        return value

    # Transfers

    async def upload(
        self,
        remote_path: str,
        local: LocalFile,
        failure_message: Optional[str] = None,
    ) -> None:
        """Upload ``local`` to ``remote_path``.

        ``failure_message`` replaces the backend's message in the failure log.
        """
        with self._reporting(f"upload {remote_path}", f"upload fail: {remote_path}", failure_message):
            await self.backend.put(local, self.transcoder.to_wire(remote_path))

    async def download(self, local: LocalFile, remote_path: str) -> None:
        """Stream ``remote_path`` into ``local``."""
        with self._reporting(f"download {remote_path}", f"download fail: {remote_path}"):
            stream = await self.backend.get(self.transcoder.to_wire(remote_path))
            async with aclosing(stream):
                async with local.open_write_stream() as out:
                    async for block in stream:
                        await out.write(block)

    async def view(self, remote_path: str) -> bytes:
        """Read the whole of ``remote_path`` into memory."""
        blocks: List[bytes] = []
        with self._reporting(f"view {remote_path}", f"view fail: {remote_path}"):
            stream = await self.backend.get(self.transcoder.to_wire(remote_path))
            async with aclosing(stream):
                async for block in stream:
                    blocks.append(block)
        return b"".join(blocks)

    async def write(self, remote_path: str, data: bytes) -> None:
        with self._reporting(f"write {remote_path}", f"write fail: {remote_path}"):
            await self.backend.write(data, self.transcoder.to_wire(remote_path))

    # Directories

    async def list(self, remote_path: str = "") -> List[FileInfo]:
        """List ``remote_path`` (the current directory when empty).

        Entry names come back in the host charset. Names that could not be
        transcoded without loss are passed to ``oninvalidencoding`` on a later
        turn of the event loop, unless the server tolerates wrong encodings.
        """
        if not remote_path:
            remote_path = "."
        with self._reporting(f"list {remote_path}", f"list fail: {remote_path}"):
            entries = await self.backend.list(self.transcoder.to_wire(remote_path))

        suspects: List[str] = []
        for entry in entries:
            wire_name = entry.name
            entry.name = self.transcoder.to_host(wire_name)
            if self.config.tolerate_encoding_errors:
                continue
            if self.transcoder.is_suspect(entry.name, wire_name):
                suspects.append(entry.name)
        if suspects:
            asyncio.get_running_loop().call_soon(self.oninvalidencoding, suspects)
        return entries

    async def mkdir(self, remote_path: str) -> None:
        await self._call_with_name(
            "mkdir", remote_path, ErrorKind.NEUTRAL, None,
            lambda path: self.backend.mkdir(path, True),
        )

    async def rmdir(self, remote_path: str) -> None:
        await self._call_with_name(
            "rmdir", remote_path, ErrorKind.FILE_NOT_FOUND, None,
            lambda path: self.backend.rmdir(path, True),
        )

    async def delete(self, remote_path: str) -> None:
        await self._call_with_name(
            "delete", remote_path, ErrorKind.FILE_NOT_FOUND, None,
            self.backend.delete,
        )

    async def rename(self, source: str, destination: str) -> None:
        with self._reporting(f"rename {source} {destination}", f"rename fail: {source} {destination}"):
            await self.backend.rename(
                self.transcoder.to_wire(source),
                self.transcoder.to_wire(destination),
            )

    async def readlink(self, entry: FileInfo, remote_path: str) -> str:
        """Resolve the symlink ``entry`` found at ``remote_path``.

        The absolute, normalized target is returned and stored in
        ``entry.link``. Relative targets are resolved against the symlink's
        parent directory.

        Raises:
            NotSymlinkError: If ``entry`` is not a symlink; the backend is not
                contacted
        """
        if entry.type != FileType.SYMLINK:
            raise NotSymlinkError(remote_path)
        with self._reporting(f"readlink {entry.name}", f"readlink fail: {entry.name}"):
            raw = await self.backend.readlink(entry, self.transcoder.to_wire(remote_path))
            target = self.transcoder.to_host(raw)
            if target.startswith("/"):
                link = ftp_path.normalize(target)
            else:
                link = ftp_path.normalize(remote_path + "/../" + target)
            entry.link = link
        return link
