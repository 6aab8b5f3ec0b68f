"""The screen scheduling loop.

Ties together data refresh, keyboard connection, inbound selection
reports and frame pushes on a single asyncio loop.

Each pass:
    1. refresh data sources whose slot is due
    2. connect to the keyboard if it is not connected
    3. render the selected screen and push it through the transport

Passes run on a fixed tick, and immediately whenever the keyboard
selects a screen; a selection also restarts the tick from that moment.
Device callbacks never touch state directly: the listener and push
tasks post events into one queue that the loop drains in order.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Coroutine, Sequence

from keyscreen.device.handle import HidHandle
from keyscreen.device.listener import DEFAULT_POLL_INTERVAL, InputListener
from keyscreen.device.manager import DeviceManager
from keyscreen.device.transport import ChunkedTransport
from keyscreen.display.encoder import encode
from keyscreen.domain.models import DeviceFault, DisplayContext, InboundReport
from keyscreen.sources.base import DataSource

logger = logging.getLogger(__name__)

DEFAULT_TICK_INTERVAL = 1.0

# Posted by stop() to wake the loop
_STOP = object()


class ScreenScheduler:
    """Decides what to refresh and what to send, once per tick.

    Args:
        context: Shared schedule state and screen slots.
        devices: Owner of the keyboard handle.
        transport: Paced frame writer.
        sources: Data sources, each bound to one slot of ``context``.
        tick_interval: Seconds between regular passes.
        poll_interval: Seconds between inbound report polls.
        clock: Monotonic time source, shared with the data sources.
    """

    def __init__(
        self,
        context: DisplayContext,
        devices: DeviceManager,
        transport: ChunkedTransport,
        sources: Sequence[DataSource],
        tick_interval: float = DEFAULT_TICK_INTERVAL,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._context = context
        self._devices = devices
        self._transport = transport
        self._sources = list(sources)
        self._tick_interval = tick_interval
        self._clock = clock
        self._events: asyncio.Queue = asyncio.Queue()
        self._listener = InputListener(context, self._events, poll_interval)
        self._tasks: set[asyncio.Task] = set()
        self._refreshing: dict[int, asyncio.Task] = {}
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def events(self) -> asyncio.Queue:
        return self._events

    @property
    def listener(self) -> InputListener:
        return self._listener

    async def run(self) -> None:
        """Run passes until stop() is called, then release the device."""
        self._running = True
        deadline = self._clock()
        logger.info("Screen scheduler started with %d sources", len(self._sources))
        try:
            while self._running:
                timeout = max(0.0, deadline - self._clock())
                try:
                    event = await asyncio.wait_for(self._events.get(), timeout)
                except asyncio.TimeoutError:
                    await self.run_pass()
                    deadline = self._clock() + self._tick_interval
                    continue
                if await self.handle_event(event):
                    deadline = self._clock() + self._tick_interval
        finally:
            await self.close()

    def stop(self) -> None:
        """Signal the loop to stop after the current event."""
        self._running = False
        self._events.put_nowait(_STOP)

    async def handle_event(self, event: object) -> bool:
        """Process one queued event.

        Returns:
            True if the event triggered an immediate pass, meaning the
            tick should be re-anchored to now.
        """
        if isinstance(event, InboundReport):
            if self._listener.handle_report(event.data):
                await self.run_pass()
                return True
        elif isinstance(event, DeviceFault):
            await self._discard(event.reason)
        return False

    async def run_pass(self) -> None:
        """Refresh due sources, connect if needed, and push the current screen."""
        self._refresh_due(self._clock())

        handle = await self._devices.ensure_connected()
        if handle is not None:
            self._transport.reset()
            self._listener.start(handle)

        self._push_current()

    def _refresh_due(self, now: float) -> None:
        selected = self._context.schedule.index
        for source in self._sources:
            slot = source.slot
            pending = self._refreshing.get(slot.index)
            if pending is not None and not pending.done():
                continue
            elapsed = now - slot.last_refresh
            if (slot.index == selected and elapsed >= source.active_interval) or (
                elapsed >= source.background_interval
            ):
                # Stamped here too so a failing source waits a full interval
                slot.last_refresh = now
                self._refreshing[slot.index] = self._spawn(
                    source.refresh(), f"refresh-{slot.name}"
                )

    def _push_current(self) -> None:
        handle = self._devices.handle
        slot = self._context.current_slot
        if handle is None or slot.renderer is None:
            return
        schedule = self._context.schedule
        try:
            text = slot.renderer(schedule.width, schedule.height)
        except Exception as e:
            logger.error("Renderer for screen %s failed: %s", slot.name, e)
            return
        frame = encode(text, schedule.width, schedule.height)
        self._spawn(self._push(handle, frame), "push")

    async def _push(self, handle: HidHandle, frame: bytes) -> None:
        if not await self._transport.push(handle, frame):
            if self._devices.handle is handle:
                await self._events.put(DeviceFault(reason="frame send failed"))

    async def _discard(self, reason: str) -> None:
        self._listener.stop()
        await self._devices.discard(reason)

    def _spawn(self, coro: Coroutine, name: str) -> asyncio.Task:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Task %s failed: %s", task.get_name(), task.exception())

    async def close(self) -> None:
        """Cancel outstanding work and release the keyboard."""
        self._running = False
        self._listener.stop()
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        await self._devices.close()
        logger.info("Screen scheduler stopped")
