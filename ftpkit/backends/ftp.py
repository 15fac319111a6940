"""FTP/FTPS backend using aioftp."""

import asyncio
import logging
import ssl
from contextlib import AsyncExitStack
from datetime import datetime
from pathlib import PurePosixPath
from typing import Any, Dict, List, Optional

from ftpkit.backends.base import BLOCK_SIZE, Backend, BlockStream, ByteStream
from ftpkit.charset import resolve_charset
from ftpkit.exceptions import BackendError, ErrorKind, MissingDependencyError
from ftpkit.fileinfo import FileInfo, FileType
from ftpkit.localfile import LocalFile

try:
    import aioftp
    AIOFTP_AVAILABLE = True
except ImportError:
    AIOFTP_AVAILABLE = False

logger = logging.getLogger(__name__)

_RECONNECT_CODES = {"421", "425", "426"}

# aioftp talks to the server in this codec; wire strings are mapped onto it.
CONTROL_ENCODING = "latin-1"


def kind_for_codes(codes: List[str], missing: ErrorKind = ErrorKind.FILE_NOT_FOUND) -> ErrorKind:
    """ErrorKind for a set of FTP reply codes.

    ``missing`` is what a 550 means for the command that got it: a missing
    file for most commands, a missing parent directory for STOR.
    """
    received = set(codes)
    if "530" in received:
        return ErrorKind.AUTH_FAILED
    if "521" in received:
        return ErrorKind.NEUTRAL
    if "553" in received:
        return ErrorKind.REQUEST_MKDIR
    if "550" in received:
        return missing
    if received & _RECONNECT_CODES:
        return ErrorKind.RECONNECT_AND_RETRY
    return ErrorKind.UNCLASSIFIED


def translate_ftp_error(err: Exception, missing: ErrorKind = ErrorKind.FILE_NOT_FOUND) -> BackendError:
    if isinstance(err, BackendError):
        return err
    if AIOFTP_AVAILABLE and isinstance(err, aioftp.StatusCodeError):
        codes = [str(code) for code in err.received_codes]
        return BackendError(kind_for_codes(codes, missing), str(err))
    if isinstance(err, ConnectionRefusedError):
        return BackendError(ErrorKind.CONNECTION_REFUSED, str(err))
    if isinstance(err, (ConnectionResetError, BrokenPipeError, asyncio.IncompleteReadError)):
        return BackendError(ErrorKind.RECONNECT_AND_RETRY_ONCE, str(err) or "Connection lost")
    return BackendError(ErrorKind.UNCLASSIFIED, str(err))


def parse_entry(name: str, info: Dict[str, Any]) -> Optional[FileInfo]:
    """Build a FileInfo from one aioftp listing record, or None for . and .."""
    if name in (".", "..") or info.get("type") in ("cdir", "pdir"):
        return None

    kind = str(info.get("type", ""))
    # aioftp rewrites LIST symlinks to file/dir and keeps the target here.
    target = info.get("link_dst")
    if target or kind.lower().startswith("os.unix=symlink"):
        file_type = FileType.SYMLINK
    elif kind == "file":
        file_type = FileType.FILE
    elif kind == "dir":
        file_type = FileType.DIRECTORY
    elif kind.lower().startswith("os.unix=slink"):
        file_type = FileType.SYMLINK
        _, _, target = kind.partition(":")
    else:
        file_type = FileType.OTHER

    size = None
    if file_type == FileType.FILE and "size" in info:
        try:
            size = int(info["size"])
        except (TypeError, ValueError):
            size = None

    date = None
    modify = info.get("modify")
    if isinstance(modify, datetime):
        date = modify
    elif isinstance(modify, str):
        try:
            date = datetime.strptime(modify[:14], "%Y%m%d%H%M%S")
        except ValueError:
            date = None

    return FileInfo(
        name=name,
        type=file_type,
        size=size,
        date=date,
        target=target or None,
    )


class FtpBackend(Backend):
    """FTP backend on a single aioftp control connection.

    The aioftp client runs in latin-1 and wire strings are mapped onto it
    through their wire-charset bytes, so names reach the server byte for
    byte and undecodable names come back with U+FFFD instead of failing.
    Commands are serialized with a lock because FTP runs one command at a
    time per connection; a stream returned by ``get`` holds the lock until it
    is closed. ``tls`` enables implicit FTPS.

    Symlink targets are known only when the listing reports them (MLSD
    ``OS.unix=slink:<target>`` facts, or ``name -> target`` LIST lines), so
    ``readlink`` fails on servers that report neither.
    """

    def __init__(
        self,
        host: str,
        *,
        port: int = 21,
        tls: bool = False,
        username: str = "anonymous",
        password: str = "anonymous@",
        wire_charset: str = "binary",
        name: Optional[str] = None,
    ) -> None:
        if not AIOFTP_AVAILABLE:
            raise MissingDependencyError(
                "FTP support requires aioftp. Install with: pip install aioftp"
            )

        self.host = host
        self.port = port
        self.tls = tls
        self.username = username or "anonymous"
        self.password = password
        self.wire_charset = resolve_charset(wire_charset)
        self._name = name if name else host

        self._client: Optional["aioftp.Client"] = None
        self._lock = asyncio.Lock()

    def name(self) -> str:
        return self._name

    def _raw(self, path: str) -> str:
        return path.encode(self.wire_charset, "replace").decode(CONTROL_ENCODING)

    def _wire(self, text: str) -> str:
        return text.encode(CONTROL_ENCODING).decode(self.wire_charset, "replace")

    def _require_client(self) -> "aioftp.Client":
        if self._client is None:
            raise BackendError(ErrorKind.RECONNECT_AND_RETRY, "Not connected")
        return self._client

    async def connect(self, password: Optional[str] = None) -> None:
        client = aioftp.Client(
            encoding=CONTROL_ENCODING,
            ssl=ssl.create_default_context() if self.tls else None,
        )
        try:
            await client.connect(self.host, self.port)
            await client.login(self.username, password if password is not None else self.password)
        except Exception as e:
            client.close()
            logger.error("FTP connection to %s:%d failed: %s", self.host, self.port, e)
            raise translate_ftp_error(e)

        self._client = client
        logger.info("Connected to FTP server %s:%d", self.host, self.port)

    async def disconnect(self) -> None:
        client, self._client = self._client, None
        if client is None:
            return
        try:
            await client.quit()
        except Exception as e:
            logger.debug("FTP quit failed, closing anyway: %s", e)
        finally:
            client.close()

    def terminate(self) -> None:
        client, self._client = self._client, None
        if client is not None:
            client.close()

    def connected(self) -> bool:
        return self._client is not None

    async def pwd(self) -> str:
        async with self._lock:
            client = self._require_client()
            try:
                return self._wire(str(await client.get_current_directory()))
            except Exception as e:
                raise translate_ftp_error(e)

    async def mkdir(self, path: str, recursive: bool) -> None:
        async with self._lock:
            client = self._require_client()
            try:
                await client.make_directory(self._raw(path), parents=recursive)
            except Exception as e:
                error = translate_ftp_error(e)
                if error.kind in (ErrorKind.FILE_NOT_FOUND, ErrorKind.NEUTRAL):
                    if await self._is_dir(client, self._raw(path)):
                        raise BackendError(ErrorKind.NEUTRAL, f"Directory exists: {path}")
                raise error

    @staticmethod
    async def _is_dir(client: "aioftp.Client", path: str) -> bool:
        try:
            return await client.is_dir(path)
        except Exception:
            return False

    async def rmdir(self, path: str, recursive: bool) -> None:
        async with self._lock:
            client = self._require_client()
            try:
                if recursive:
                    await client.remove(self._raw(path))
                else:
                    await client.remove_directory(self._raw(path))
            except Exception as e:
                raise translate_ftp_error(e)

    async def delete(self, path: str) -> None:
        async with self._lock:
            client = self._require_client()
            try:
                await client.remove_file(self._raw(path))
            except Exception as e:
                raise translate_ftp_error(e)

    async def put(self, local: LocalFile, path: str) -> None:
        async with self._lock:
            client = self._require_client()
            try:
                async with local.open_read_stream() as src:
                    async with client.upload_stream(self._raw(path)) as stream:
                        while True:
                            chunk = await src.read(BLOCK_SIZE)
                            if not chunk:
                                break
                            await stream.write(chunk)
            except Exception as e:
                raise translate_ftp_error(e, ErrorKind.REQUEST_MKDIR)

    async def write(self, data: bytes, path: str) -> None:
        async with self._lock:
            client = self._require_client()
            try:
                async with client.upload_stream(self._raw(path)) as stream:
                    await stream.write(data)
            except Exception as e:
                raise translate_ftp_error(e, ErrorKind.REQUEST_MKDIR)

    async def get(self, path: str) -> ByteStream:
        stack = AsyncExitStack()
        await stack.enter_async_context(self._lock)
        try:
            client = self._require_client()
            stream = await stack.enter_async_context(client.download_stream(self._raw(path)))
        except Exception as e:
            await stack.aclose()
            raise translate_ftp_error(e)
        return BlockStream(stack, stream.read, translate_ftp_error)

    async def list(self, path: str) -> List[FileInfo]:
        result: List[FileInfo] = []
        async with self._lock:
            client = self._require_client()
            try:
                async for entry_path, info in client.list(self._raw(path)):
                    entry = parse_entry(self._wire(PurePosixPath(entry_path).name), info)
                    if entry is not None:
                        if entry.target is not None:
                            entry.target = self._wire(entry.target)
                        result.append(entry)
            except Exception as e:
                raise translate_ftp_error(e)
        return result

    async def readlink(self, entry: FileInfo, path: str) -> str:
        # FTP has no command for this; only the listing can reveal a target.
        if entry.target is None:
            raise BackendError(
                ErrorKind.UNCLASSIFIED,
                f"Server did not report a link target for {path}",
            )
        return entry.target

    async def rename(self, source: str, destination: str) -> None:
        async with self._lock:
            client = self._require_client()
            try:
                await client.rename(self._raw(source), self._raw(destination))
            except Exception as e:
                raise translate_ftp_error(e)
