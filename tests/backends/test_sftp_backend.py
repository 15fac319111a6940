"""Tests for SftpBackend."""

import asyncio
import stat
import unittest
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, Mock, patch

from ftpkit.backends.sftp import ASYNCSSH_AVAILABLE, SftpBackend, file_type_from_attrs, translate_sftp_error
from ftpkit.exceptions import BackendError, ErrorKind
from ftpkit.fileinfo import FileInfo, FileType
from ftpkit.localfile import LocalFile

if ASYNCSSH_AVAILABLE:
    import asyncssh
    from asyncssh.constants import FILEXFER_TYPE_DIRECTORY, FILEXFER_TYPE_UNKNOWN


def attrs(file_type=None, permissions=None, size=None, mtime=None):
    return SimpleNamespace(type=file_type, permissions=permissions, size=size, mtime=mtime)


class TestFileTypeFromAttrs(unittest.TestCase):
    def test_permission_bits(self):
        self.assertEqual(file_type_from_attrs(attrs(permissions=stat.S_IFDIR | 0o755)), FileType.DIRECTORY)
        self.assertEqual(file_type_from_attrs(attrs(permissions=stat.S_IFREG | 0o644)), FileType.FILE)
        self.assertEqual(file_type_from_attrs(attrs(permissions=stat.S_IFLNK | 0o777)), FileType.SYMLINK)
        self.assertEqual(file_type_from_attrs(attrs(permissions=stat.S_IFIFO)), FileType.OTHER)

    def test_no_information(self):
        self.assertEqual(file_type_from_attrs(attrs()), FileType.OTHER)

    @unittest.skipUnless(ASYNCSSH_AVAILABLE, "asyncssh not installed")
    def test_type_field(self):
        self.assertEqual(file_type_from_attrs(attrs(FILEXFER_TYPE_DIRECTORY)), FileType.DIRECTORY)
        self.assertEqual(
            file_type_from_attrs(attrs(FILEXFER_TYPE_UNKNOWN, stat.S_IFREG)), FileType.FILE
        )


class TestTranslateSftpError(unittest.TestCase):
    def test_os_errors(self):
        self.assertEqual(translate_sftp_error(FileNotFoundError()).kind, ErrorKind.FILE_NOT_FOUND)
        self.assertEqual(
            translate_sftp_error(FileNotFoundError(), ErrorKind.REQUEST_MKDIR).kind,
            ErrorKind.REQUEST_MKDIR,
        )
        self.assertEqual(
            translate_sftp_error(ConnectionRefusedError()).kind, ErrorKind.CONNECTION_REFUSED
        )
        self.assertEqual(translate_sftp_error(BrokenPipeError()).kind, ErrorKind.RECONNECT_AND_RETRY_ONCE)
        self.assertEqual(translate_sftp_error(KeyError("x")).kind, ErrorKind.UNCLASSIFIED)

    @unittest.skipUnless(ASYNCSSH_AVAILABLE, "asyncssh not installed")
    def test_asyncssh_errors(self):
        cases = [
            (asyncssh.PermissionDenied("denied"), ErrorKind.AUTH_FAILED),
            (asyncssh.SFTPNoSuchFile("gone"), ErrorKind.FILE_NOT_FOUND),
            (asyncssh.SFTPConnectionLost("lost"), ErrorKind.RECONNECT_AND_RETRY),
            (asyncssh.ConnectionLost("lost"), ErrorKind.RECONNECT_AND_RETRY_ONCE),
            (asyncssh.SFTPFailure("failed"), ErrorKind.UNCLASSIFIED),
        ]
        for error, kind in cases:
            self.assertEqual(translate_sftp_error(error).kind, kind, repr(error))


@unittest.skipUnless(ASYNCSSH_AVAILABLE, "asyncssh not installed")
class TestSftpBackend(unittest.TestCase):
    """Test cases for SftpBackend with a mocked asyncssh connection."""

    def setUp(self):
        self.sftp = MagicMock()
        self.sftp.exit = Mock()
        self.conn = MagicMock()
        self.conn.start_sftp_client = AsyncMock(return_value=self.sftp)
        self.conn.close = Mock()
        self.conn.abort = Mock()
        self.conn.wait_closed = AsyncMock()
        patcher = patch("asyncssh.connect", new=AsyncMock(return_value=self.conn))
        self.connect = patcher.start()
        self.addCleanup(patcher.stop)
        self.backend = SftpBackend(
            "sftp.example.com", username="user", password="secret", wire_charset="binary"
        )

    def run_connected(self, coro_factory):
        async def run_test():
            await self.backend.connect()
            return await coro_factory()

        return asyncio.run(run_test())

    def assertKind(self, kind, coro_factory):
        with self.assertRaises(BackendError) as ctx:
            self.run_connected(coro_factory)
        self.assertEqual(ctx.exception.kind, kind)

    def test_connect(self):
        asyncio.run(self.backend.connect())

        self.connect.assert_awaited_once_with(
            host="sftp.example.com",
            port=22,
            known_hosts=None,
            username="user",
            password="secret",
        )
        self.assertTrue(self.backend.connected())

    def test_connect_with_key(self):
        backend = SftpBackend("h", username="u", private_key="/keys/id_ed25519")
        asyncio.run(backend.connect())

        kwargs = self.connect.call_args.kwargs
        self.assertEqual(kwargs["client_keys"], ["/keys/id_ed25519"])
        self.assertNotIn("password", kwargs)

    def test_auth_failure(self):
        self.connect.side_effect = asyncssh.PermissionDenied("denied")

        with self.assertRaises(BackendError) as ctx:
            asyncio.run(self.backend.connect())

        self.assertEqual(ctx.exception.kind, ErrorKind.AUTH_FAILED)
        self.assertFalse(self.backend.connected())

    def test_disconnect(self):
        async def run_test():
            await self.backend.connect()
            await self.backend.disconnect()

        asyncio.run(run_test())

        self.sftp.exit.assert_called_once()
        self.conn.close.assert_called_once()
        self.conn.wait_closed.assert_awaited_once()
        self.assertFalse(self.backend.connected())

    def test_terminate(self):
        asyncio.run(self.backend.connect())
        self.backend.terminate()

        self.conn.abort.assert_called_once()
        self.assertFalse(self.backend.connected())

    def test_not_connected(self):
        with self.assertRaises(BackendError) as ctx:
            asyncio.run(self.backend.delete("/x"))

        self.assertEqual(ctx.exception.kind, ErrorKind.RECONNECT_AND_RETRY)

    def test_list_keeps_raw_names(self):
        self.sftp.readdir = AsyncMock(
            return_value=[
                SimpleNamespace(filename=b".", attrs=attrs(permissions=stat.S_IFDIR)),
                SimpleNamespace(filename=b"..", attrs=attrs(permissions=stat.S_IFDIR)),
                SimpleNamespace(
                    filename=b"caf\xe9.txt",
                    attrs=attrs(permissions=stat.S_IFREG | 0o644, size=5, mtime=0),
                ),
            ]
        )

        entries = self.run_connected(lambda: self.backend.list("/home"))

        self.sftp.readdir.assert_awaited_once_with(b"/home")
        self.assertEqual(len(entries), 1)
        self.assertEqual(entries[0].name, "caf\xe9.txt")
        self.assertEqual(entries[0].size, 5)
        self.assertIsNone(entries[0].date)

    def test_list_undecodable_name_with_utf8_wire_charset(self):
        backend = SftpBackend("sftp.example.com", wire_charset="utf-8")
        self.sftp.readdir = AsyncMock(
            return_value=[
                SimpleNamespace(filename=b"bad\xff.txt", attrs=attrs(permissions=stat.S_IFREG)),
                SimpleNamespace(filename=b"ok.txt", attrs=attrs(permissions=stat.S_IFREG)),
            ]
        )

        async def run_test():
            await backend.connect()
            return await backend.list("/home")

        entries = asyncio.run(run_test())

        self.assertEqual([entry.name for entry in entries], ["bad�.txt", "ok.txt"])

    def test_paths_are_wire_bytes(self):
        self.sftp.remove = AsyncMock()
        self.run_connected(lambda: self.backend.delete("/caf\xc3\xa9"))
        self.sftp.remove.assert_awaited_once_with(b"/caf\xc3\xa9")

    def test_mkdir_existing_is_neutral(self):
        self.sftp.mkdir = AsyncMock(side_effect=asyncssh.SFTPFailure("exists"))
        self.sftp.isdir = AsyncMock(return_value=True)

        self.assertKind(ErrorKind.NEUTRAL, lambda: self.backend.mkdir("/home/d", False))

    def test_mkdir_recursive(self):
        self.sftp.makedirs = AsyncMock()
        self.run_connected(lambda: self.backend.mkdir("/a/b", True))
        self.sftp.makedirs.assert_awaited_once_with(b"/a/b", exist_ok=True)

    def test_delete_missing(self):
        self.sftp.remove = AsyncMock(side_effect=asyncssh.SFTPNoSuchFile("gone"))
        self.assertKind(ErrorKind.FILE_NOT_FOUND, lambda: self.backend.delete("/gone"))

    def test_put_into_missing_directory(self):
        self.sftp.open.return_value.__aenter__.side_effect = asyncssh.SFTPNoSuchFile("no dir")

        async def missing_parent():
            return await self.backend.put(LocalFile(__file__), "/no/such/file")

        self.assertKind(ErrorKind.REQUEST_MKDIR, missing_parent)

    def test_readlink(self):
        self.sftp.readlink = AsyncMock(return_value=b"../target")
        entry = FileInfo(name="link", type=FileType.SYMLINK)

        self.assertEqual(
            self.run_connected(lambda: self.backend.readlink(entry, "/a/link")), "../target"
        )

    def test_pwd(self):
        self.sftp.realpath = AsyncMock(return_value=b"/home/user")
        self.assertEqual(self.run_connected(self.backend.pwd), "/home/user")


if __name__ == "__main__":
    unittest.main()
