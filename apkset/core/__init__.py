"""Core infrastructure components for apkset."""

from .config import AdbConfig, Config, ResolverConfig, StorageConfig, get_config
from .exceptions import (
    ApkSetError,
    DeviceCommandError,
    IncompatibleDeviceError,
    InvalidInputError,
    MalformedCatalogError,
    ProtocolError,
    ServiceError,
    ToolNotFoundError,
)
from .logging import bind_context, clear_context, get_logger, setup_logging
from .types import ALL_MODULES, BASE_MODULE, ServiceResult

__all__ = [
    "AdbConfig",
    "Config",
    "ResolverConfig",
    "StorageConfig",
    "get_config",
    "ApkSetError",
    "DeviceCommandError",
    "IncompatibleDeviceError",
    "InvalidInputError",
    "MalformedCatalogError",
    "ProtocolError",
    "ServiceError",
    "ToolNotFoundError",
    "bind_context",
    "clear_context",
    "get_logger",
    "setup_logging",
    "ALL_MODULES",
    "BASE_MODULE",
    "ServiceResult",
]
