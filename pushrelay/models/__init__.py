from .device_model import Device

__all__ = [
    "Device",
]
