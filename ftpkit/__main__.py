import argparse
import asyncio
import os
import sys
from typing import IO, List, Optional

from ftpkit import ftp_path
from ftpkit.config import Config, ConfigError, LogConfig, RemoteNotFoundError, ServerConfig, ValidationError
from ftpkit.config.servers import server_config_from_url
from ftpkit.exceptions import FtpkitError
from ftpkit.interface import FileInterface
from ftpkit.localfile import LocalFile
from ftpkit.logger import setup_logging
from ftpkit.session import open_session

DEFAULT_CONFIG_PATH = os.path.expanduser("~/.ftpkit.toml")


class Exit(Exception):
    pass


def config_file_type(path: str) -> Optional[IO[bytes]]:
    """Custom FileType that doesn't error if default file doesn't exist."""
    if path == DEFAULT_CONFIG_PATH and not os.path.exists(path):
        return None
    return open(path, "rb")


def resolve_server(config: Optional[Config], remote: str) -> ServerConfig:
    """A configured server name, or else a URL."""
    if config is not None and remote in config.servers:
        return config.get_server(remote)
    if "://" in remote or remote.startswith("/"):
        return server_config_from_url(remote)
    if config is None:
        raise Exit(
            f"Configuration file not found at {DEFAULT_CONFIG_PATH} "
            f"and '{remote}' is not a URL."
        )
    try:
        return config.get_server(remote)
    except RemoteNotFoundError as e:
        raise Exit(str(e))


def remote_path(server: ServerConfig, path: str) -> str:
    """Resolve a command line path against the server's ``remote_path``."""
    if server.remote_path is None or path.startswith("/"):
        return path
    if not path:
        return server.remote_path
    return ftp_path.normalize(server.remote_path + "/" + path)


def warn_invalid_encoding(names: List[str]) -> None:
    for name in names:
        print(f"Warning: file name may be shown in the wrong encoding: {name}", file=sys.stderr)


async def run_command(fi: FileInterface, args: argparse.Namespace) -> None:
    def remote(path: str) -> str:
        return remote_path(fi.config, path)

    match args.command:
        case "ls":
            for entry in await fi.list(remote(args.path)):
                size = "" if entry.size is None else str(entry.size)
                print(f"{entry.type.value} {size:>12} {entry.name}")
        case "pwd":
            print(await fi.pwd())
        case "cat":
            sys.stdout.buffer.write(await fi.view(remote(args.path)))
            sys.stdout.flush()
        case "get":
            local = LocalFile(args.local or ftp_path.split(args.path)[1])
            await fi.download(local, remote(args.path))
            print(f"{args.path} -> {local.fs_path} ({await local.size()} bytes)")
        case "put":
            local = LocalFile(args.local)
            if not await local.exists():
                raise Exit(f"Local file not found: {local.fs_path}")
            target = remote(args.path or os.path.basename(local.fs_path))
            await fi.upload(target, local)
            print(f"{local.fs_path} -> {target} ({await local.size()} bytes)")
        case "mkdir":
            await fi.mkdir(remote(args.path))
        case "rmdir":
            await fi.rmdir(remote(args.path))
        case "rm":
            await fi.delete(remote(args.path))
        case "mv":
            await fi.rename(remote(args.source), remote(args.destination))
        case "readlink":
            path = remote(args.path)
            parent, name = ftp_path.split(path)
            for entry in await fi.list(parent):
                if entry.name == name:
                    print(await fi.readlink(entry, path))
                    return
            raise Exit(f"No such file: {args.path}")


async def run(server: ServerConfig, args: argparse.Namespace) -> None:
    async with open_session(server, password=args.password) as fi:
        fi.oninvalidencoding = warn_invalid_encoding
        await run_command(fi, args)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ftpkit", description="transfer files over ftp, ftps and sftp"
    )

    parser.add_argument("--config", type=config_file_type, default=DEFAULT_CONFIG_PATH)
    parser.add_argument("--password", default=None)
    parser.add_argument("-v", "--verbose", action="store_true")
    parser.add_argument("remote", help="configured server name or URL")

    commands = parser.add_subparsers(dest="command", required=True)

    ls = commands.add_parser("ls", help="list a directory")
    ls.add_argument("path", nargs="?", default="")

    commands.add_parser("pwd", help="print the remote working directory")

    cat = commands.add_parser("cat", help="print a remote file")
    cat.add_argument("path")

    get = commands.add_parser("get", help="download a file")
    get.add_argument("path")
    get.add_argument("local", nargs="?", default=None)

    put = commands.add_parser("put", help="upload a file")
    put.add_argument("local")
    put.add_argument("path", nargs="?", default=None)

    for command, text in (
        ("mkdir", "create a directory and its parents"),
        ("rmdir", "remove a directory and its contents"),
        ("rm", "remove a file"),
        ("readlink", "resolve a symlink"),
    ):
        sub = commands.add_parser(command, help=text)
        sub.add_argument("path")

    mv = commands.add_parser("mv", help="rename a file or directory")
    mv.add_argument("source")
    mv.add_argument("destination")

    return parser


def main() -> None:
    """Main entry point for the ftpkit command."""
    args = build_parser().parse_args()

    try:
        config = None
        if args.config is not None:
            try:
                config = Config.from_file(args.config)
            except (ConfigError, ValidationError) as e:
                raise Exit(f"Configuration error: {e}")

            for warning in config.get_warnings():
                print(f"Warning: {warning}", file=sys.stderr)

        log_config = config.log if config is not None else LogConfig(level="WARNING")
        if args.verbose:
            log_config = LogConfig(level="DEBUG", file=log_config.file, console=True)
        setup_logging(log_config)

        server = resolve_server(config, args.remote)
        asyncio.run(run(server, args))

    except Exit as e:
        print(e, file=sys.stderr)
        sys.exit(1)
    except FtpkitError as e:
        print(f"error: {e}", file=sys.stderr)
        sys.exit(1)
    finally:
        if args.config is not None:
            args.config.close()


if __name__ == "__main__":
    main()
