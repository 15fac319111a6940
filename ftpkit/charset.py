"""Filename transcoding between the wire charset and the host charset.

Wire strings are ``str`` objects whose characters are the raw bytes sent over
the connection, decoded with the wire codec. With the default ``"binary"``
wire charset every character is exactly one byte (latin-1), so a backend can
turn a wire string back into the bytes it received without loss.
"""

import codecs

from ftpkit.exceptions import ValidationError

REPLACEMENT_CHARACTER = "�"

_ALIASES = {
    "binary": "latin-1",
    "utf8": "utf-8",
}


def resolve_charset(name: str) -> str:
    """Return the Python codec name for a configured charset name.

    Raises:
        ValidationError: If no codec is registered under that name
    """
    if not name:
        raise ValidationError("Charset name cannot be empty")
    key = name.strip().lower()
    key = _ALIASES.get(key, key)
    try:
        return codecs.lookup(key).name
    except LookupError:
        raise ValidationError(f"Unknown charset '{name}'")


class Transcoder:
    """Converts filenames between wire form and host form."""

    def __init__(self, host_charset: str = "utf-8", wire_charset: str = "binary") -> None:
        self.host_charset = resolve_charset(host_charset)
        self.wire_charset = resolve_charset(wire_charset)

    def to_wire(self, name: str) -> str:
        """Host name -> wire name. Unencodable characters become ``?``."""
        raw = name.encode(self.host_charset, "replace")
        return raw.decode(self.wire_charset, "replace")

    def to_host(self, name: str) -> str:
        """Wire name -> host name. Undecodable bytes become U+FFFD."""
        raw = name.encode(self.wire_charset, "replace")
        return raw.decode(self.host_charset, "replace")

    @staticmethod
    def is_suspect(host_name: str, wire_name: str) -> bool:
        """True if transcoding ``wire_name`` into ``host_name`` lost information."""
        if REPLACEMENT_CHARACTER in host_name:
            return True
        return host_name.count("?") > wire_name.count("?")
