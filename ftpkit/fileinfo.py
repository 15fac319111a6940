from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class FileType(Enum):
    FILE = "-"
    DIRECTORY = "d"
    SYMLINK = "l"
    OTHER = "?"


@dataclass
class FileInfo:
    """One remote directory entry.

    ``name`` is rewritten in place from wire to host charset by
    ``FileInterface.list``. ``target`` is the raw link target a backend may
    learn while listing; ``link`` is the resolved absolute host path filled in
    by ``FileInterface.readlink``.
    """

    name: str
    type: FileType
    size: Optional[int] = None
    date: Optional[datetime] = None
    link: Optional[str] = None
    target: Optional[str] = None

    @property
    def is_directory(self) -> bool:
        return self.type == FileType.DIRECTORY

    @property
    def is_file(self) -> bool:
        return self.type == FileType.FILE

    @property
    def is_symlink(self) -> bool:
        return self.type == FileType.SYMLINK

    def __str__(self) -> str:
        return f"{self.type.value} {self.name}"
