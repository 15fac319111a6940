"""SFTP backend using asyncssh."""

import logging
import stat
from contextlib import AsyncExitStack
from datetime import datetime
from typing import Any, List, Optional

from ftpkit.backends.base import BLOCK_SIZE, Backend, BlockStream, ByteStream
from ftpkit.charset import resolve_charset
from ftpkit.exceptions import BackendError, ErrorKind, MissingDependencyError
from ftpkit.fileinfo import FileInfo, FileType
from ftpkit.localfile import LocalFile

try:
    import asyncssh
    from asyncssh.constants import (
        FILEXFER_TYPE_DIRECTORY,
        FILEXFER_TYPE_REGULAR,
        FILEXFER_TYPE_SYMLINK,
    )
    ASYNCSSH_AVAILABLE = True
except ImportError:
    ASYNCSSH_AVAILABLE = False

logger = logging.getLogger(__name__)


def translate_sftp_error(err: Exception, missing: ErrorKind = ErrorKind.FILE_NOT_FOUND) -> BackendError:
    if isinstance(err, BackendError):
        return err
    if ASYNCSSH_AVAILABLE:
        if isinstance(err, asyncssh.PermissionDenied):
            return BackendError(ErrorKind.AUTH_FAILED, str(err))
        if isinstance(err, asyncssh.SFTPNoSuchFile):
            return BackendError(missing, str(err))
        if isinstance(err, (asyncssh.SFTPConnectionLost, asyncssh.SFTPNoConnection)):
            return BackendError(ErrorKind.RECONNECT_AND_RETRY, str(err))
        if isinstance(err, (asyncssh.ConnectionLost, asyncssh.DisconnectError)):
            return BackendError(ErrorKind.RECONNECT_AND_RETRY_ONCE, str(err))
    if isinstance(err, FileNotFoundError):
        return BackendError(missing, str(err))
    if isinstance(err, ConnectionRefusedError):
        return BackendError(ErrorKind.CONNECTION_REFUSED, str(err))
    if isinstance(err, (ConnectionResetError, BrokenPipeError)):
        return BackendError(ErrorKind.RECONNECT_AND_RETRY_ONCE, str(err))
    return BackendError(ErrorKind.UNCLASSIFIED, str(err))


def file_type_from_attrs(attrs: Any) -> FileType:
    """FileType of an SFTPAttrs, from its type field or its permission bits."""
    if ASYNCSSH_AVAILABLE and attrs.type is not None:
        if attrs.type == FILEXFER_TYPE_DIRECTORY:
            return FileType.DIRECTORY
        if attrs.type == FILEXFER_TYPE_SYMLINK:
            return FileType.SYMLINK
        if attrs.type == FILEXFER_TYPE_REGULAR:
            return FileType.FILE

    mode = attrs.permissions
    if mode is None:
        return FileType.OTHER
    if stat.S_ISLNK(mode):
        return FileType.SYMLINK
    if stat.S_ISDIR(mode):
        return FileType.DIRECTORY
    if stat.S_ISREG(mode):
        return FileType.FILE
    return FileType.OTHER


class SftpBackend(Backend):
    """SFTP backend over one asyncssh connection.

    Paths travel as bytes encoded with the wire charset, so asyncssh never
    decodes remote names on its own.
    """

    def __init__(
        self,
        host: str,
        *,
        port: int = 22,
        username: Optional[str] = None,
        password: Optional[str] = None,
        private_key: Optional[str] = None,
        known_hosts: Optional[str] = None,
        wire_charset: str = "binary",
        name: Optional[str] = None,
    ) -> None:
        if not ASYNCSSH_AVAILABLE:
            raise MissingDependencyError(
                "SFTP support requires asyncssh. Install with: pip install asyncssh"
            )

        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.private_key = private_key
        self.known_hosts = known_hosts
        self.wire_charset = resolve_charset(wire_charset)
        self._name = name if name else f"SFTP:{host}"

        self._conn: Any = None  # asyncssh.SSHClientConnection
        self._sftp: Any = None  # asyncssh.SFTPClient

    def name(self) -> str:
        return self._name

    def _raw(self, path: str) -> bytes:
        return path.encode(self.wire_charset, "replace")

    def _wire(self, raw: Any) -> str:
        if isinstance(raw, bytes):
            return raw.decode(self.wire_charset, "replace")
        return str(raw)

    def _require_sftp(self) -> Any:
        if self._sftp is None:
            raise BackendError(ErrorKind.RECONNECT_AND_RETRY, "Not connected")
        return self._sftp

    async def connect(self, password: Optional[str] = None) -> None:
        connect_kwargs: dict[str, Any] = {
            "host": self.host,
            "port": self.port,
            "known_hosts": self.known_hosts,
        }

        if self.username:
            connect_kwargs["username"] = self.username

        secret = password if password is not None else self.password
        if secret:
            connect_kwargs["password"] = secret

        if self.private_key:
            connect_kwargs["client_keys"] = [self.private_key]

        try:
            conn = await asyncssh.connect(**connect_kwargs)
        except Exception as e:
            logger.error("SSH connection to %s:%d failed: %s", self.host, self.port, e)
            raise translate_sftp_error(e)

        try:
            self._sftp = await conn.start_sftp_client()
        except Exception as e:
            conn.abort()
            raise translate_sftp_error(e)

        self._conn = conn
        logger.info("Connected to SFTP server %s:%d", self.host, self.port)

    async def disconnect(self) -> None:
        sftp, self._sftp = self._sftp, None
        conn, self._conn = self._conn, None
        if sftp is not None:
            sftp.exit()
        if conn is not None:
            conn.close()
            await conn.wait_closed()

    def terminate(self) -> None:
        conn, self._conn = self._conn, None
        self._sftp = None
        if conn is not None:
            conn.abort()

    def connected(self) -> bool:
        return self._sftp is not None

    async def pwd(self) -> str:
        sftp = self._require_sftp()
        try:
            return self._wire(await sftp.realpath(b"."))
        except Exception as e:
            raise translate_sftp_error(e)

    async def mkdir(self, path: str, recursive: bool) -> None:
        sftp = self._require_sftp()
        raw = self._raw(path)
        try:
            if recursive:
                await sftp.makedirs(raw, exist_ok=True)
            else:
                await sftp.mkdir(raw)
        except Exception as e:
            if ASYNCSSH_AVAILABLE and isinstance(e, asyncssh.SFTPFailure):
                if await self._is_dir(sftp, raw):
                    raise BackendError(ErrorKind.NEUTRAL, f"Directory exists: {path}")
            raise translate_sftp_error(e, ErrorKind.REQUEST_MKDIR)

    @staticmethod
    async def _is_dir(sftp: Any, raw: bytes) -> bool:
        try:
            return await sftp.isdir(raw)
        except Exception:
            return False

    async def rmdir(self, path: str, recursive: bool) -> None:
        sftp = self._require_sftp()
        try:
            if recursive:
                await sftp.rmtree(self._raw(path))
            else:
                await sftp.rmdir(self._raw(path))
        except Exception as e:
            raise translate_sftp_error(e)

    async def delete(self, path: str) -> None:
        sftp = self._require_sftp()
        try:
            await sftp.remove(self._raw(path))
        except Exception as e:
            raise translate_sftp_error(e)

    async def put(self, local: LocalFile, path: str) -> None:
        sftp = self._require_sftp()
        try:
            async with local.open_read_stream() as src:
                async with sftp.open(self._raw(path), "wb") as dst:
                    while True:
                        chunk = await src.read(BLOCK_SIZE)
                        if not chunk:
                            break
                        await dst.write(chunk)
        except Exception as e:
            raise translate_sftp_error(e, ErrorKind.REQUEST_MKDIR)

    async def write(self, data: bytes, path: str) -> None:
        sftp = self._require_sftp()
        try:
            async with sftp.open(self._raw(path), "wb") as dst:
                await dst.write(data)
        except Exception as e:
            raise translate_sftp_error(e, ErrorKind.REQUEST_MKDIR)

    async def get(self, path: str) -> ByteStream:
        sftp = self._require_sftp()
        stack = AsyncExitStack()
        try:
            src = await stack.enter_async_context(sftp.open(self._raw(path), "rb"))
        except Exception as e:
            await stack.aclose()
            raise translate_sftp_error(e)
        return BlockStream(stack, src.read, translate_sftp_error)

    async def list(self, path: str) -> List[FileInfo]:
        sftp = self._require_sftp()
        result: List[FileInfo] = []
        try:
            entries = await sftp.readdir(self._raw(path))
        except Exception as e:
            raise translate_sftp_error(e)

        for entry in entries:
            name = self._wire(entry.filename)
            if name in (".", ".."):
                continue

            attrs = entry.attrs
            file_type = file_type_from_attrs(attrs)
            result.append(
                FileInfo(
                    name=name,
                    type=file_type,
                    size=attrs.size if file_type == FileType.FILE else None,
                    date=datetime.fromtimestamp(attrs.mtime) if attrs.mtime else None,
                )
            )
        return result

    async def readlink(self, entry: FileInfo, path: str) -> str:
        sftp = self._require_sftp()
        try:
            return self._wire(await sftp.readlink(self._raw(path)))
        except Exception as e:
            raise translate_sftp_error(e)

    async def rename(self, source: str, destination: str) -> None:
        sftp = self._require_sftp()
        try:
            await sftp.rename(self._raw(source), self._raw(destination))
        except Exception as e:
            raise translate_sftp_error(e)
