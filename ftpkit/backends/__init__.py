"""Protocol backends for ftpkit."""

from ftpkit.backends.base import Backend, BlockStream, ByteStream
from ftpkit.backends.local import LocalBackend
from ftpkit.backends.ftp import FtpBackend, AIOFTP_AVAILABLE
from ftpkit.backends.sftp import SftpBackend, ASYNCSSH_AVAILABLE

__all__ = [
    "Backend",
    "BlockStream",
    "ByteStream",
    "LocalBackend",
    "FtpBackend",
    "SftpBackend",
    "AIOFTP_AVAILABLE",
    "ASYNCSSH_AVAILABLE",
]
