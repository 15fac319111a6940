"""Test data and fixtures for ftpkit tests."""

import asyncio
import io
import os
import tempfile
from contextlib import AsyncExitStack
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from ftpkit.backends.base import Backend, BlockStream, ByteStream
from ftpkit.config.servers import LocalConfig
from ftpkit.exceptions import BackendError, ErrorKind
from ftpkit.fileinfo import FileInfo, FileType
from ftpkit.interface import FileInterface
from ftpkit.localfile import LocalFile


class RecordingStateBar:
    """StateBar that remembers every call."""

    def __init__(self):
        self.events: List[Tuple[str, Optional[str]]] = []

    def set(self, state: str) -> None:
        self.events.append(("set", state))

    def close(self) -> None:
        self.events.append(("close", None))

    @property
    def states(self) -> List[str]:
        return [text for event, text in self.events if event == "set"]

    @property
    def closes(self) -> int:
        return sum(1 for event, _ in self.events if event == "close")


class RecordingLogger:
    """Logger that keeps messages in memory."""

    def __init__(self):
        self.messages: List[str] = []

    def message(self, text: str) -> None:
        self.messages.append(text)


class FakeBackend(Backend):
    """In-memory backend keyed by wire paths.

    ``errors`` maps a primitive name to the exception it raises (``"read"``
    fails a stream after its first block). When ``gate``
    is set, every primitive waits on it before doing anything, so tests can
    hold operations in flight.
    """

    def __init__(
        self,
        entries: Optional[Dict[str, List[Tuple[str, FileType]]]] = None,
        files: Optional[Dict[str, bytes]] = None,
        links: Optional[Dict[str, str]] = None,
        block_size: int = 4,
    ):
        self.entries = dict(entries or {})
        self.files = dict(files or {})
        self.links = dict(links or {})
        self.block_size = block_size
        self.calls: List[tuple] = []
        self.errors: Dict[str, Exception] = {}
        self.gate: Optional[asyncio.Event] = None
        self.cwd = "/"
        self._connected = False

    async def _enter(self, op: str, *args) -> None:
        self.calls.append((op,) + args)
        if self.gate is not None:
            await self.gate.wait()
        if not self._connected:
            raise BackendError(ErrorKind.RECONNECT_AND_RETRY, "Connection closed")
        if op in self.errors:
            raise self.errors[op]

    def name(self) -> str:
        return "fake"

    async def connect(self, password=None) -> None:
        self.calls.append(("connect", password))
        self._connected = True

    async def disconnect(self) -> None:
        self.calls.append(("disconnect",))
        self._connected = False

    def terminate(self) -> None:
        self.calls.append(("terminate",))
        self._connected = False

    def connected(self) -> bool:
        return self._connected

    async def pwd(self) -> str:
        await self._enter("pwd")
        return self.cwd

    async def mkdir(self, path: str, recursive: bool) -> None:
        await self._enter("mkdir", path, recursive)

    async def rmdir(self, path: str, recursive: bool) -> None:
        await self._enter("rmdir", path, recursive)

    async def delete(self, path: str) -> None:
        await self._enter("delete", path)
        self.files.pop(path, None)

    async def put(self, local: LocalFile, path: str) -> None:
        await self._enter("put", local, path)
        async with local.open_read_stream() as src:
            self.files[path] = await src.read()

    async def write(self, data: bytes, path: str) -> None:
        await self._enter("write", data, path)
        self.files[path] = data

    async def get(self, path: str) -> ByteStream:
        await self._enter("get", path)
        if path not in self.files:
            raise BackendError(ErrorKind.FILE_NOT_FOUND, f"{path}: No such file")
        source = io.BytesIO(self.files[path])

        async def read(size: int) -> bytes:
            await asyncio.sleep(0)
            if "read" in self.errors and source.tell() > 0:
                raise self.errors["read"]
            return source.read(size)

        return BlockStream(AsyncExitStack(), read, _untranslated, self.block_size)

    async def list(self, path: str) -> List[FileInfo]:
        await self._enter("list", path)
        if path not in self.entries:
            raise BackendError(ErrorKind.FILE_NOT_FOUND, f"{path}: No such directory")
        return [FileInfo(name=name, type=file_type) for name, file_type in self.entries[path]]

    async def readlink(self, entry: FileInfo, path: str) -> str:
        await self._enter("readlink", entry.name, path)
        return self.links[path]

    async def rename(self, source: str, destination: str) -> None:
        await self._enter("rename", source, destination)


def _untranslated(err: Exception) -> BackendError:
    return BackendError(ErrorKind.UNCLASSIFIED, str(err))


class TestDataFixtures:
    """Common test data and fixtures for ftpkit tests."""

    @staticmethod
    def create_server_config(**overrides) -> LocalConfig:
        options = {"name": "srv", "type": "local", "root": "/"}
        options.update(overrides)
        return LocalConfig(**options)

    @staticmethod
    def create_interface(backend: Backend, **overrides):
        """Create a FileInterface with recording collaborators.

        Returns:
            (interface, state bar, logger)
        """
        state_bar = RecordingStateBar()
        logger = RecordingLogger()
        fi = FileInterface(
            backend,
            TestDataFixtures.create_server_config(**overrides),
            state_bar=state_bar,
            logger=logger,
        )
        return fi, state_bar, logger

    @staticmethod
    def create_sample_entries() -> List[FileInfo]:
        return [
            FileInfo(
                name="test_file.txt",
                type=FileType.FILE,
                size=1024,
                date=datetime(2023, 1, 15, 10, 30, 0),
            ),
            FileInfo(name="test_directory", type=FileType.DIRECTORY),
            FileInfo(name="link", type=FileType.SYMLINK, target="test_file.txt"),
        ]

    @staticmethod
    def create_temp_directory_with_files():
        """Create a temporary directory with test files."""
        temp_dir = tempfile.mkdtemp()

        test_files = [
            ("test_file.txt", "This is a test file content."),
            ("empty_file.txt", ""),
            ("binary_file.bin", b"\x00\x01\x02\x03\x04\x05"),
        ]

        for filename, content in test_files:
            file_path = Path(temp_dir) / filename
            if isinstance(content, str):
                file_path.write_text(content)
            else:
                file_path.write_bytes(content)

        subdir = Path(temp_dir) / "subdir"
        subdir.mkdir()
        (subdir / "nested_file.txt").write_text("Nested file content")

        os.symlink("test_file.txt", Path(temp_dir) / "link_to_file")

        return temp_dir
