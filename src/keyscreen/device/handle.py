"""Async wrapper around an open hidapi device.

hidapi calls block, so every call for one device runs on a dedicated
single-thread executor. That keeps the event loop free and guarantees
reads, writes and close never run concurrently against the same
native handle.
"""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from functools import partial
from typing import Any, Callable, TypeVar

import hid

logger = logging.getLogger(__name__)

T = TypeVar("T")


class DeviceError(Exception):
    """Raised when the keyboard cannot be opened, written or read."""

    def __init__(self, message: str, path: bytes | None = None) -> None:
        super().__init__(message)
        self.path = path


class HidHandle:
    """An open raw-HID interface on the keyboard.

    Usage::

        handle = HidHandle(path)
        await handle.open()
        await handle.write(b"\\x00\\x01\\x04")
        report = await handle.read(32)
        await handle.close()
    """

    def __init__(self, path: bytes) -> None:
        self._path = path
        self._device: Any | None = None
        self._executor: ThreadPoolExecutor | None = None

    @property
    def path(self) -> bytes:
        return self._path

    @property
    def is_open(self) -> bool:
        return self._device is not None

    async def _call(self, func: Callable[..., T], *args: Any) -> T:
        if self._executor is None:
            raise DeviceError("HID device not open", path=self._path)
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, partial(func, *args))

    async def open(self) -> None:
        """Open the device by path in non-blocking read mode."""
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="hid-io")
        device = hid.device()
        try:
            await self._call(device.open_path, self._path)
            await self._call(device.set_nonblocking, 1)
        except (OSError, ValueError) as e:
            # open_path may have succeeded before set_nonblocking failed
            try:
                await self._call(device.close)
            except (OSError, ValueError) as close_error:
                logger.debug("Ignoring error while closing HID device: %s", close_error)
            self._executor.shutdown(wait=False)
            self._executor = None
            raise DeviceError(f"Cannot open HID device {self._path!r}: {e}", path=self._path) from e
        self._device = device
        logger.debug("Opened HID device: %r", self._path)

    async def write(self, report: bytes) -> int:
        """Write one raw report; the first byte is the report id."""
        if self._device is None:
            raise DeviceError("HID device not open", path=self._path)
        try:
            written = await self._call(self._device.write, report)
        except (OSError, ValueError) as e:
            raise DeviceError(f"Failed to write HID report: {e}", path=self._path) from e
        if written < 0:
            raise DeviceError("Failed to write HID report: device returned an error", path=self._path)
        return written

    async def read(self, size: int) -> bytes:
        """Read one pending report, or b"" if none is waiting."""
        if self._device is None:
            raise DeviceError("HID device not open", path=self._path)
        try:
            data = await self._call(self._device.read, size)
        except (OSError, ValueError) as e:
            raise DeviceError(f"Failed to read HID report: {e}", path=self._path) from e
        return bytes(data)

    async def close(self) -> None:
        """Close the device and release its I/O thread. Safe to call twice."""
        if self._device is None:
            return
        device = self._device
        self._device = None
        try:
            await self._call(device.close)
        except (OSError, ValueError) as e:
            logger.debug("Ignoring error while closing HID device: %s", e)
        if self._executor is not None:
            self._executor.shutdown(wait=False)
            self._executor = None
        logger.debug("Closed HID device: %r", self._path)

    async def __aenter__(self) -> HidHandle:
        await self.open()
        return self

    async def __aexit__(self, exc_type: type | None, exc_val: Exception | None, exc_tb: object) -> None:
        await self.close()
