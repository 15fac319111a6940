"""Local file handle used as the source of uploads and the sink of downloads."""

import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Union

import aiofiles
import aiofiles.os


class LocalFile:
    """A local file path that can be opened as an async byte stream.

    Both streams are ``aiofiles`` async context managers::

        async with LocalFile("out.bin").open_write_stream() as stream:
            await stream.write(b"...")
    """

    def __init__(self, path: Union[str, os.PathLike]) -> None:
        self.path = Path(path)

    @property
    def fs_path(self) -> str:
        return os.fspath(self.path)

    def open_read_stream(self):
        return aiofiles.open(self.path, "rb")

    @asynccontextmanager
    async def open_write_stream(self):
        """Open for writing, creating missing parent directories first."""
        await aiofiles.os.makedirs(self.path.parent, exist_ok=True)
        async with aiofiles.open(self.path, "wb") as stream:
            yield stream

    async def exists(self) -> bool:
        return await aiofiles.os.path.exists(self.path)

    async def size(self) -> int:
        return (await aiofiles.os.stat(self.path)).st_size

    def __repr__(self) -> str:
        return f"LocalFile({self.fs_path!r})"
