"""Services package for apkset."""

from .catalog import CatalogLoader
from .device_analysis import DeviceAnalyzer
from .device_spec import DeviceSpecLoader
from .extraction import ApkExtractionService
from .install import AdbDevice, InstallSessionService
from .size import ApkSetSizeService

__all__ = [
    "CatalogLoader",
    "DeviceAnalyzer",
    "DeviceSpecLoader",
    "ApkExtractionService",
    "AdbDevice",
    "InstallSessionService",
    "ApkSetSizeService",
]
