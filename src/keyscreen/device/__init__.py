"""Keyboard device module for keyscreen.

Finds the keyboard on the USB bus, keeps its raw HID interface open,
reads screen selection reports and writes frames in paced packets.

Public API:
    DeviceManager -- Discovery and connection lifecycle
    ChunkedTransport -- Paced, single-flight frame writer
    InputListener -- Inbound selection reports
    HidHandle -- Async wrapper over a hidapi device
"""

from keyscreen.device.handle import DeviceError, HidHandle
from keyscreen.device.listener import InputListener
from keyscreen.device.manager import DeviceManager, list_devices
from keyscreen.device.transport import ChunkedTransport, SendStep, TransportError, plan_frame

__all__ = [
    "ChunkedTransport",
    "DeviceError",
    "DeviceManager",
    "HidHandle",
    "InputListener",
    "SendStep",
    "TransportError",
    "list_devices",
    "plan_frame",
]
