"""Configuration management for ftpkit."""

from .base import Config, ServerConfig, LogConfig, ConfigError, RemoteNotFoundError, ValidationError
from .servers import (
    LocalConfig,
    FtpConfig,
    SftpConfig,
    server_config_from_url,
)

__all__ = [
    "Config",
    "ServerConfig",
    "LogConfig",
    "ConfigError",
    "RemoteNotFoundError",
    "ValidationError",
    "LocalConfig",
    "FtpConfig",
    "SftpConfig",
    "server_config_from_url",
]
