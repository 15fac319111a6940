"""Remote path helpers. Remote paths are always POSIX style."""

import posixpath
from typing import Tuple


def normalize(path: str) -> str:
    """Collapse ``.``/``..`` segments and duplicate separators."""
    if not path:
        return "."
    result = posixpath.normpath(path)
    # normpath keeps a leading "//" as POSIX allows; remote servers do not.
    if result.startswith("//"):
        result = "/" + result.lstrip("/")
    return result


def split(path: str) -> Tuple[str, str]:
    """Split into (parent directory, last component), both normalized."""
    head, tail = posixpath.split(normalize(path))
    return head or ".", tail
