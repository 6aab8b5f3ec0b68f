"""Inbound report handling.

A background task polls the open handle and posts every report it
reads into the scheduler's event queue. The scheduler hands each one
back to handle_report(), which validates it and replaces the schedule
state. Applying selections on the scheduler's side of the queue keeps
every state change on one path through the loop.
"""

from __future__ import annotations

import asyncio
import logging

from keyscreen.device.handle import DeviceError, HidHandle
from keyscreen.device.reports import READ_SIZE, parse_selection
from keyscreen.domain.models import DeviceFault, DisplayContext, InboundReport

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 0.05


class InputListener:
    """Reads screen selection reports from the keyboard."""

    def __init__(
        self,
        context: DisplayContext,
        events: asyncio.Queue,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ) -> None:
        self._context = context
        self._events = events
        self._poll_interval = poll_interval
        self._task: asyncio.Task | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, handle: HidHandle) -> None:
        """Begin polling a newly connected handle."""
        self.stop()
        self._task = asyncio.create_task(self._poll(handle), name="keyscreen-listener")

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def _poll(self, handle: HidHandle) -> None:
        while True:
            try:
                data = await handle.read(READ_SIZE)
            except DeviceError as e:
                await self._events.put(DeviceFault(reason=str(e)))
                return
            if data:
                await self._events.put(InboundReport(data=data))
            else:
                await asyncio.sleep(self._poll_interval)

    def handle_report(self, data: bytes) -> bool:
        """Apply a selection report to the schedule state.

        Returns:
            True if the report was a valid selection and was applied.
        """
        selection = parse_selection(data, self._context.slot_count)
        if selection is None:
            logger.debug("Ignoring report: %s", data[:4].hex())
            return False
        self._context.schedule = selection
        logger.info(
            "Keyboard requested screen index: %d, w=%d, h=%d",
            selection.index, selection.width, selection.height,
        )
        return True
