from dataclasses import dataclass
from typing import Dict, Any, Optional
from urllib.parse import urlparse, unquote

from ftpkit.exceptions import UnsupportedProtocolError

from .base import ServerConfig, ValidationError


def _validate_port(label: str, port: Any) -> None:
    if not isinstance(port, int) or port < 1 or port > 65535:
        raise ValidationError(f"{label} port must be an integer between 1 and 65535")


@dataclass
class LocalConfig(ServerConfig):
    """A local directory served as if it were a remote root."""

    root: str = "/"

    @classmethod
    def from_dict(cls, name: str, data: Dict[str, Any]) -> "LocalConfig":
        return cls(
            name=name,
            type="local",
            root=data.get("root", "/"),
            **cls.common_options(data),
        )

    def validate(self) -> None:
        if self.type != "local":
            raise ValidationError(f"Expected type 'local', got '{self.type}'")

        if not self.root:
            raise ValidationError("Local root cannot be empty")

        super().validate()


@dataclass
class FtpConfig(ServerConfig):
    host: str = ""
    port: int = 21
    username: str = "anonymous"
    password: str = "anonymous@"
    tls: bool = False

    @classmethod
    def from_dict(cls, name: str, data: Dict[str, Any]) -> "FtpConfig":
        if "host" not in data:
            raise ValidationError("FTP configuration requires 'host' field")

        server_type = data.get("type", "ftp")
        return cls(
            name=name,
            type=server_type,
            host=data["host"],
            port=data.get("port", 21),
            username=data.get("username", "anonymous"),
            password=data.get("password", "anonymous@"),
            tls=data.get("tls", server_type == "ftps"),
            **cls.common_options(data),
        )

    def validate(self) -> None:
        if self.type not in ("ftp", "ftps"):
            raise ValidationError(f"Expected type 'ftp' or 'ftps', got '{self.type}'")

        if not self.host:
            raise ValidationError("FTP host cannot be empty")

        _validate_port("FTP", self.port)

        if not isinstance(self.tls, bool):
            raise ValidationError("TLS setting must be a boolean")

        super().validate()


@dataclass
class SftpConfig(ServerConfig):
    host: str = ""
    port: int = 22
    username: Optional[str] = None
    password: Optional[str] = None
    private_key: Optional[str] = None
    known_hosts: Optional[str] = None

    @classmethod
    def from_dict(cls, name: str, data: Dict[str, Any]) -> "SftpConfig":
        if "host" not in data:
            raise ValidationError("SFTP configuration requires 'host' field")

        return cls(
            name=name,
            type="sftp",
            host=data["host"],
            port=data.get("port", 22),
            username=data.get("username"),
            password=data.get("password"),
            private_key=data.get("private_key"),
            known_hosts=data.get("known_hosts"),
            **cls.common_options(data),
        )

    def validate(self) -> None:
        if self.type != "sftp":
            raise ValidationError(f"Expected type 'sftp', got '{self.type}'")

        if not self.host:
            raise ValidationError("SFTP host cannot be empty")

        _validate_port("SFTP", self.port)

        super().validate()


def server_config_from_url(url: str, name: Optional[str] = None) -> ServerConfig:
    """Build a server configuration from a URL.

    Supported URL formats:
        - ftp://[user[:pass]@]host[:port][/path]
        - ftps://[user[:pass]@]host[:port][/path]
        - sftp://[user[:pass]@]host[:port][/path]
        - file:///path or /path (a local directory used as remote root)

    The path of a remote URL becomes ``remote_path``.

    Raises:
        UnsupportedProtocolError: If the URL scheme is not supported
    """
    if url.startswith("/"):
        return LocalConfig(name=name, type="local", root=url)

    parsed = urlparse(url)
    protocol = parsed.scheme.lower()

    username = unquote(parsed.username) if parsed.username else None
    password = unquote(parsed.password) if parsed.password else None
    host = parsed.hostname or ""
    path = parsed.path or None

    if protocol in ("file", ""):
        return LocalConfig(name=name, type="local", root=path or "/")

    elif protocol in ("ftp", "ftps"):
        return FtpConfig(
            name=name,
            type=protocol,
            host=host,
            port=parsed.port or 21,
            username=username or "anonymous",
            password=password or "anonymous@",
            tls=(protocol == "ftps"),
            remote_path=path,
        )

    elif protocol == "sftp":
        return SftpConfig(
            name=name,
            type="sftp",
            host=host,
            port=parsed.port or 22,
            username=username,
            password=password,
            remote_path=path,
        )

    raise UnsupportedProtocolError(
        f"Unsupported protocol: {protocol}. "
        f"Supported protocols: file, ftp, ftps, sftp"
    )
