import tomllib
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Any, Type, Optional, IO, List

from ftpkit.charset import resolve_charset
from ftpkit.exceptions import ConfigError, RemoteNotFoundError, ValidationError

__all__ = [
    "ConfigError",
    "RemoteNotFoundError",
    "ValidationError",
    "ServerConfig",
    "LogConfig",
    "Config",
]

LOGGING_SECTION = "logging"
_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class ServerConfig(ABC):
    """Settings shared by every server type.

    ``name`` is the display name prefixed to state and log messages; it may be
    None for ad hoc connections. ``wire_charset`` is the charset of names on
    the wire (``"binary"`` keeps raw bytes), ``host_charset`` the one callers
    see names in. ``remote_path`` is the directory relative paths start from;
    None keeps the server's login directory.
    """

    name: Optional[str]
    type: str
    wire_charset: str = "binary"
    host_charset: str = "utf-8"
    tolerate_encoding_errors: bool = False
    remote_path: Optional[str] = None

    @classmethod
    @abstractmethod
    def from_dict(cls, name: str, data: Dict[str, Any]) -> "ServerConfig":
        """Create a server configuration from a dictionary.

        Args:
            name: The name of the server configuration
            data: Dictionary containing configuration data

        Returns:
            Instance of the server configuration class

        Raises:
            ValidationError: If configuration data is invalid
        """

    @staticmethod
    def common_options(data: Dict[str, Any]) -> Dict[str, Any]:
        """Pick the shared options present in ``data``."""
        keys = ("wire_charset", "host_charset", "tolerate_encoding_errors", "remote_path")
        return {key: data[key] for key in keys if key in data}

    def validate(self) -> None:
        """Validate the configuration.

        Raises:
            ValidationError: If configuration is invalid
        """
        resolve_charset(self.wire_charset)
        resolve_charset(self.host_charset)

        if not isinstance(self.tolerate_encoding_errors, bool):
            raise ValidationError("tolerate_encoding_errors must be a boolean")

        if self.remote_path is not None and not self.remote_path:
            raise ValidationError("remote_path cannot be empty")


@dataclass
class LogConfig:
    level: str = "INFO"
    file: Optional[str] = None
    console: bool = True

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LogConfig":
        return cls(
            level=data.get("level", "INFO"),
            file=data.get("file"),
            console=data.get("console", True),
        )

    def validate(self) -> None:
        if not isinstance(self.level, str) or self.level.upper() not in _LOG_LEVELS:
            raise ValidationError(
                f"Log level must be one of {', '.join(_LOG_LEVELS)}, got '{self.level}'"
            )

        if not isinstance(self.console, bool):
            raise ValidationError("Log console setting must be a boolean")


@dataclass
class Config:
    servers: Dict[str, ServerConfig]
    warnings: List[str]
    log: LogConfig = field(default_factory=LogConfig)

    @classmethod
    def from_file(cls, config_file: Optional[IO[bytes]]) -> "Config":
        """Load configuration from a TOML file.

        Every top-level table describes one server, except ``[logging]``.

        Args:
            config_file: Open file handle to TOML configuration file

        Returns:
            Config instance with all server configurations loaded

        Raises:
            ConfigError: If configuration file cannot be loaded or parsed
            ValidationError: If configuration data is invalid
        """
        if config_file is None:
            raise ConfigError("Configuration file not provided")

        try:
            config_data = tomllib.load(config_file)
        except Exception as e:
            raise ConfigError(f"Failed to parse TOML configuration: {e}")

        servers = {}
        warnings = []
        log = LogConfig()

        for server_name, server_data in config_data.items():
            if server_name == LOGGING_SECTION and isinstance(server_data, dict):
                log = LogConfig.from_dict(server_data)
                log.validate()
                continue

            try:
                if not isinstance(server_data, dict):
                    warnings.append(
                        f"Server '{server_name}' configuration must be a dictionary - skipping"
                    )
                    continue

                if "type" not in server_data:
                    warnings.append(
                        f"Server '{server_name}' missing required 'type' field - skipping"
                    )
                    continue

                server_type = server_data["type"]
                config_class = cls._get_config_class(server_type)

                if config_class is None:
                    warnings.append(
                        f"Unknown server type '{server_type}' for server '{server_name}' - skipping"
                    )
                    continue

                server_config = config_class.from_dict(server_name, server_data)
                server_config.validate()
                servers[server_name] = server_config
            except Exception as e:
                warnings.append(
                    f"Invalid configuration for server '{server_name}': {e} - skipping"
                )

        config = cls(servers=servers, warnings=warnings, log=log)
        config.validate()
        return config

    @staticmethod
    def _get_config_class(server_type: str) -> Optional[Type[ServerConfig]]:
        """Get the configuration class for a given server type.

        Args:
            server_type: The type of server (e.g., 'ftp', 'sftp', etc.)

        Returns:
            Configuration class for the server type, or None if unknown
        """
        from .servers import LocalConfig, FtpConfig, SftpConfig

        type_mapping = {
            "local": LocalConfig,
            "ftp": FtpConfig,
            "ftps": FtpConfig,
            "sftp": SftpConfig,
        }

        return type_mapping.get(server_type)  # type: ignore

    def get_server(self, name: str) -> ServerConfig:
        """Get a server configuration by name.

        Raises:
            RemoteNotFoundError: If server configuration is not found
        """
        if name not in self.servers:
            available = ", ".join(self.servers.keys())
            raise RemoteNotFoundError(
                f"Server '{name}' not found in configuration. "
                f"Available servers: {available}"
            )

        return self.servers[name]

    def validate(self) -> None:
        """Validate the entire configuration.

        Raises:
            ValidationError: If configuration is invalid
        """
        if not self.servers:
            raise ValidationError("Configuration must contain at least one server")

        for server_name, server_config in self.servers.items():
            try:
                server_config.validate()
            except ValidationError as e:
                raise ValidationError(f"Server '{server_name}': {e}")

    def list_servers(self) -> Dict[str, str]:
        return {name: config.type for name, config in self.servers.items()}

    def get_warnings(self) -> List[str]:
        """Get list of configuration warnings."""
        return self.warnings.copy()
