"""Backend serving a local directory as the remote root."""

import asyncio
import logging
import os
import posixpath
import shutil
import stat
from contextlib import AsyncExitStack
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Union

import aiofiles
import aiofiles.os

from ftpkit.backends.base import BLOCK_SIZE, Backend, BlockStream, ByteStream
from ftpkit.charset import resolve_charset
from ftpkit.exceptions import BackendError, ErrorKind
from ftpkit.fileinfo import FileInfo, FileType
from ftpkit.localfile import LocalFile

logger = logging.getLogger(__name__)


def _file_type(mode: int) -> FileType:
    if stat.S_ISLNK(mode):
        return FileType.SYMLINK
    if stat.S_ISDIR(mode):
        return FileType.DIRECTORY
    if stat.S_ISREG(mode):
        return FileType.FILE
    return FileType.OTHER


def translate_os_error(err: Exception, missing: ErrorKind = ErrorKind.FILE_NOT_FOUND) -> BackendError:
    """Map a local OS failure onto a BackendError."""
    if isinstance(err, BackendError):
        return err
    if isinstance(err, FileNotFoundError):
        return BackendError(missing, str(err))
    return BackendError(ErrorKind.UNCLASSIFIED, str(err))


class LocalBackend(Backend):
    """Local filesystem backend.

    Remote paths are resolved below ``root``; ``..`` never climbs above it.
    Wire strings are encoded with the wire charset to get the raw byte names
    handed to the OS, so filenames in any encoding round-trip untouched.
    """

    def __init__(
        self,
        root: Union[str, os.PathLike] = "/",
        *,
        wire_charset: str = "binary",
        name: Optional[str] = None,
    ) -> None:
        self.root = Path(root)
        self.wire_charset = resolve_charset(wire_charset)
        self._name = name if name else f"Local:{self.root}"
        self._cwd = b"/"
        self._connected = False

    def name(self) -> str:
        return self._name

    def _resolve(self, path: str) -> bytes:
        raw = path.encode(self.wire_charset, "replace")
        if not raw.startswith(b"/"):
            raw = posixpath.join(self._cwd, raw)
        raw = posixpath.normpath(b"/" + raw.lstrip(b"/"))
        base = os.fsencode(self.root).rstrip(b"/")
        if raw == b"/":
            return base or b"/"
        return base + raw

    def _wire(self, raw: bytes) -> str:
        return raw.decode(self.wire_charset, "replace")

    def _require_connected(self) -> None:
        if not self._connected:
            raise BackendError(ErrorKind.RECONNECT_AND_RETRY, "Not connected")

    async def connect(self, password: Optional[str] = None) -> None:
        if not await aiofiles.os.path.isdir(self.root):
            raise BackendError(ErrorKind.CONNECTION_REFUSED, f"No such directory: {self.root}")
        self._connected = True
        logger.debug("Serving local directory %s", self.root)

    async def disconnect(self) -> None:
        self._connected = False

    def terminate(self) -> None:
        self._connected = False

    def connected(self) -> bool:
        return self._connected

    async def pwd(self) -> str:
        self._require_connected()
        return self._wire(self._cwd)

    async def mkdir(self, path: str, recursive: bool) -> None:
        self._require_connected()
        target = self._resolve(path)
        try:
            if recursive:
                await aiofiles.os.makedirs(target)
            else:
                await aiofiles.os.mkdir(target)
        except FileExistsError as e:
            if await aiofiles.os.path.isdir(target):
                raise BackendError(ErrorKind.NEUTRAL, f"Directory exists: {path}")
            raise BackendError(ErrorKind.UNCLASSIFIED, str(e))
        except FileNotFoundError as e:
            raise BackendError(ErrorKind.REQUEST_MKDIR, str(e))
        except OSError as e:
            raise translate_os_error(e)

    async def rmdir(self, path: str, recursive: bool) -> None:
        self._require_connected()
        target = self._resolve(path)
        try:
            if recursive:
                loop = asyncio.get_running_loop()
                await loop.run_in_executor(None, shutil.rmtree, target)
            else:
                await aiofiles.os.rmdir(target)
        except OSError as e:
            raise translate_os_error(e)

    async def delete(self, path: str) -> None:
        self._require_connected()
        try:
            await aiofiles.os.remove(self._resolve(path))
        except OSError as e:
            raise translate_os_error(e)

    async def put(self, local: LocalFile, path: str) -> None:
        self._require_connected()
        try:
            async with local.open_read_stream() as src:
                async with aiofiles.open(self._resolve(path), "wb") as dst:
                    while True:
                        chunk = await src.read(BLOCK_SIZE)
                        if not chunk:
                            break
                        await dst.write(chunk)
        except OSError as e:
            raise translate_os_error(e, ErrorKind.REQUEST_MKDIR)

    async def write(self, data: bytes, path: str) -> None:
        self._require_connected()
        try:
            async with aiofiles.open(self._resolve(path), "wb") as dst:
                await dst.write(data)
        except OSError as e:
            raise translate_os_error(e, ErrorKind.REQUEST_MKDIR)

    async def get(self, path: str) -> ByteStream:
        self._require_connected()
        stack = AsyncExitStack()
        try:
            src = await stack.enter_async_context(aiofiles.open(self._resolve(path), "rb"))
        except OSError as e:
            await stack.aclose()
            raise translate_os_error(e)
        return BlockStream(stack, src.read, translate_os_error)

    async def list(self, path: str) -> List[FileInfo]:
        self._require_connected()
        loop = asyncio.get_running_loop()
        try:
            entries = await loop.run_in_executor(None, self._scan, self._resolve(path))
        except OSError as e:
            raise translate_os_error(e)
        return entries

    def _scan(self, directory: bytes) -> List[FileInfo]:
        result: List[FileInfo] = []
        with os.scandir(directory) as it:
            for entry in it:
                info = entry.stat(follow_symlinks=False)
                file_type = _file_type(info.st_mode)
                result.append(
                    FileInfo(
                        name=self._wire(entry.name),
                        type=file_type,
                        size=info.st_size if file_type == FileType.FILE else None,
                        date=datetime.fromtimestamp(info.st_mtime),
                    )
                )
        return result

    async def readlink(self, entry: FileInfo, path: str) -> str:
        self._require_connected()
        try:
            target = await aiofiles.os.readlink(self._resolve(path))
        except OSError as e:
            raise translate_os_error(e)
        return self._wire(os.fsencode(target))

    async def rename(self, source: str, destination: str) -> None:
        self._require_connected()
        try:
            await aiofiles.os.rename(self._resolve(source), self._resolve(destination))
        except OSError as e:
            raise translate_os_error(e)
