"""Keyboard discovery and connection lifecycle.

The manager owns the single live HidHandle. It moves through
Disconnected -> Discovering -> Connected, and back to Disconnected
whenever an I/O error is reported. It never reconnects on its own;
the scheduler calls ensure_connected() once per pass, which is what
retries discovery.
"""

from __future__ import annotations

import asyncio
import logging

import hid

from keyscreen.device.handle import DeviceError, HidHandle
from keyscreen.device.reports import connect_report
from keyscreen.domain.models import DeviceDescriptor, DeviceState

logger = logging.getLogger(__name__)


def list_devices() -> list[DeviceDescriptor]:
    """Describe every HID interface currently attached."""
    devices: list[DeviceDescriptor] = []
    for info in hid.enumerate():
        devices.append(
            DeviceDescriptor(
                product=info.get("product_string") or "",
                usage=info.get("usage", 0),
                usage_page=info.get("usage_page", 0),
                path=info.get("path"),
            )
        )
    return devices


class DeviceManager:
    """Finds the configured keyboard and keeps at most one handle open.

    Args:
        target: Descriptor the keyboard must match.
        screen_count: Number of screen slots announced on connect,
                      including the empty slot 0.
    """

    def __init__(self, target: DeviceDescriptor, screen_count: int) -> None:
        self._target = target
        self._screen_count = screen_count
        self._handle: HidHandle | None = None
        self._state = DeviceState.DISCONNECTED

    @property
    def target(self) -> DeviceDescriptor:
        return self._target

    @property
    def state(self) -> DeviceState:
        return self._state

    @property
    def handle(self) -> HidHandle | None:
        """The live handle, or None while disconnected."""
        return self._handle

    @property
    def is_connected(self) -> bool:
        return self._handle is not None

    def discover(self) -> DeviceDescriptor | None:
        """Return the first attached interface matching the target, if any."""
        for device in list_devices():
            if self._target.matches(device):
                return device
        return None

    async def connect(self, descriptor: DeviceDescriptor) -> HidHandle:
        """Open the keyboard and announce the screen count.

        Raises:
            DeviceError: If the device cannot be opened or the
                         connect report cannot be written.
        """
        if descriptor.path is None:
            raise DeviceError(f"No enumeration path for {descriptor.product}")
        handle = HidHandle(descriptor.path)
        await handle.open()
        try:
            await handle.write(connect_report(self._screen_count))
        except DeviceError:
            await handle.close()
            raise
        self._handle = handle
        self._state = DeviceState.CONNECTED
        logger.info("Keyboard connection established: %s", descriptor.product)
        return handle

    async def ensure_connected(self) -> HidHandle | None:
        """Connect if needed.

        Returns:
            The handle if this call opened a new connection, otherwise
            None (already connected, nothing attached, or the open failed).
        """
        if self._handle is not None:
            return None
        self._state = DeviceState.DISCOVERING
        # Enumeration walks the whole USB bus; keep it off the event loop
        loop = asyncio.get_running_loop()
        descriptor = await loop.run_in_executor(None, self.discover)
        if descriptor is None:
            self._state = DeviceState.DISCONNECTED
            return None
        try:
            return await self.connect(descriptor)
        except DeviceError as e:
            logger.warning("Could not connect to %s: %s", descriptor.product, e)
            self._state = DeviceState.DISCONNECTED
            return None

    async def discard(self, reason: str) -> None:
        """Drop the current handle after an I/O error."""
        handle = self._handle
        self._handle = None
        self._state = DeviceState.DISCONNECTED
        if handle is None:
            return
        logger.warning("Keyboard error, resetting. %s", reason)
        await handle.close()

    async def close(self) -> None:
        """Close the handle on shutdown."""
        handle = self._handle
        self._handle = None
        self._state = DeviceState.DISCONNECTED
        if handle is not None:
            await handle.close()
            logger.info("Keyboard connection closed")
