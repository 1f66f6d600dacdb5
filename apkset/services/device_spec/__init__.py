from .service import DeviceSpecLoader

__all__ = ["DeviceSpecLoader"]
