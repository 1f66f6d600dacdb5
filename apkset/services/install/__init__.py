from .device import AdbDevice, Device, find_adb
from .service import InstallOutput, InstallSessionService, parse_session_id

__all__ = [
    "AdbDevice",
    "Device",
    "find_adb",
    "InstallOutput",
    "InstallSessionService",
    "parse_session_id",
]
