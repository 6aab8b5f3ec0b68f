"""Tests for the ScreenScheduler loop."""

from __future__ import annotations

import asyncio
import time
from unittest.mock import AsyncMock, MagicMock

import pytest

from keyscreen.display.scheduler import ScreenScheduler
from keyscreen.domain.models import DeviceFault, DisplayContext, InboundReport, ScheduleState


async def settle(scheduler: ScreenScheduler) -> None:
    """Let spawned refresh and push tasks finish."""
    await asyncio.gather(*list(scheduler._tasks))


@pytest.fixture
def sources(context: DisplayContext, make_source) -> list:
    """Sources for slots 1 and 2: 1s active, 30s background."""
    return [
        make_source(context.slots[1], text="perf", background_multiplier=30),
        make_source(context.slots[2], text="stocks", background_multiplier=30),
    ]


@pytest.fixture
def scheduler(
    context: DisplayContext,
    mock_devices: MagicMock,
    mock_transport: MagicMock,
    sources: list,
    clock,
) -> ScreenScheduler:
    return ScreenScheduler(
        context, mock_devices, mock_transport, sources,
        tick_interval=0.01, poll_interval=0.001, clock=clock,
    )


class TestRefreshPolicy:
    @pytest.mark.asyncio
    async def test_first_pass_refreshes_everything(
        self, scheduler: ScreenScheduler, sources: list
    ) -> None:
        await scheduler.run_pass()
        await settle(scheduler)
        assert [s.fetch_count for s in sources] == [1, 1]
        assert all(s.slot.has_renderer for s in sources)

    @pytest.mark.asyncio
    async def test_selected_screen_uses_active_interval(
        self,
        scheduler: ScreenScheduler,
        sources: list,
        context: DisplayContext,
        clock,
    ) -> None:
        context.schedule = ScheduleState(index=1, width=21, height=4)
        for source in sources:
            source.slot.last_refresh = clock.now
        clock.advance(1.001)

        await scheduler.run_pass()
        await settle(scheduler)

        assert sources[0].fetch_count == 1
        assert sources[1].fetch_count == 0

    @pytest.mark.asyncio
    async def test_background_interval_refreshes_unselected(
        self,
        scheduler: ScreenScheduler,
        sources: list,
        context: DisplayContext,
        clock,
    ) -> None:
        context.schedule = ScheduleState(index=1, width=21, height=4)
        sources[0].slot.last_refresh = clock.now
        sources[1].slot.last_refresh = clock.now - 29.0
        clock.advance(1.001)

        await scheduler.run_pass()
        await settle(scheduler)

        assert [s.fetch_count for s in sources] == [1, 1]

    @pytest.mark.asyncio
    async def test_not_due_yet(
        self,
        scheduler: ScreenScheduler,
        sources: list,
        context: DisplayContext,
        clock,
    ) -> None:
        context.schedule = ScheduleState(index=1, width=21, height=4)
        for source in sources:
            source.slot.last_refresh = clock.now
        clock.advance(0.5)

        await scheduler.run_pass()
        await settle(scheduler)

        assert [s.fetch_count for s in sources] == [0, 0]

    @pytest.mark.asyncio
    async def test_failed_refresh_keeps_previous_renderer_and_waits(
        self,
        scheduler: ScreenScheduler,
        sources: list,
        context: DisplayContext,
        clock,
    ) -> None:
        context.schedule = ScheduleState(index=1, width=21, height=4)
        await scheduler.run_pass()
        await settle(scheduler)
        previous = sources[0].slot.renderer

        sources[0].fail = True
        clock.advance(1.0)
        await scheduler.run_pass()
        await settle(scheduler)
        assert sources[0].fetch_count == 2
        assert sources[0].slot.renderer is previous

        # The dispatch stamp holds the next attempt off for a full interval
        clock.advance(0.5)
        await scheduler.run_pass()
        await settle(scheduler)
        assert sources[0].fetch_count == 2

    @pytest.mark.asyncio
    async def test_running_refresh_is_not_started_twice(
        self,
        scheduler: ScreenScheduler,
        sources: list,
        clock,
    ) -> None:
        gate = asyncio.Event()
        original = sources[0].fetch

        async def slow_fetch():
            await gate.wait()
            return await original()

        sources[0].fetch = slow_fetch  # type: ignore[method-assign]
        await scheduler.run_pass()
        clock.advance(100.0)
        await scheduler.run_pass()
        gate.set()
        await settle(scheduler)
        assert sources[0].fetch_count == 1


class TestPush:
    @pytest.mark.asyncio
    async def test_no_device_no_push(
        self, scheduler: ScreenScheduler, mock_transport: MagicMock, context: DisplayContext
    ) -> None:
        context.schedule = ScheduleState(index=1, width=10, height=2)
        await scheduler.run_pass()
        await settle(scheduler)
        mock_transport.push.assert_not_called()

    @pytest.mark.asyncio
    async def test_pushes_encoded_current_screen(
        self,
        scheduler: ScreenScheduler,
        mock_devices: MagicMock,
        mock_transport: MagicMock,
        mock_handle: AsyncMock,
        context: DisplayContext,
    ) -> None:
        mock_devices.handle = mock_handle
        context.slots[1].renderer = lambda w, h: "AB"
        context.schedule = ScheduleState(index=1, width=10, height=2)

        await scheduler.run_pass()
        await settle(scheduler)

        mock_transport.push.assert_awaited_once_with(mock_handle, b"AB" + b" " * 18)

    @pytest.mark.asyncio
    async def test_renderer_gets_requested_size(
        self,
        scheduler: ScreenScheduler,
        mock_devices: MagicMock,
        mock_handle: AsyncMock,
        context: DisplayContext,
    ) -> None:
        mock_devices.handle = mock_handle
        seen = []
        context.slots[3].renderer = lambda w, h: seen.append((w, h)) or ""
        context.schedule = ScheduleState(index=3, width=21, height=4)
        await scheduler.run_pass()
        await settle(scheduler)
        assert seen == [(21, 4)]

    @pytest.mark.asyncio
    async def test_screen_zero_never_pushes(
        self,
        scheduler: ScreenScheduler,
        mock_devices: MagicMock,
        mock_transport: MagicMock,
        mock_handle: AsyncMock,
    ) -> None:
        mock_devices.handle = mock_handle
        await scheduler.run_pass()
        await settle(scheduler)
        mock_transport.push.assert_not_called()

    @pytest.mark.asyncio
    async def test_failing_renderer_skips_push(
        self,
        scheduler: ScreenScheduler,
        mock_devices: MagicMock,
        mock_transport: MagicMock,
        mock_handle: AsyncMock,
        context: DisplayContext,
    ) -> None:
        mock_devices.handle = mock_handle

        def broken(width: int, height: int) -> str:
            raise ZeroDivisionError("bad layout")

        context.slots[3].renderer = broken
        context.schedule = ScheduleState(index=3, width=21, height=4)
        await scheduler.run_pass()
        await settle(scheduler)
        mock_transport.push.assert_not_called()

    @pytest.mark.asyncio
    async def test_failed_push_posts_device_fault(
        self,
        scheduler: ScreenScheduler,
        mock_devices: MagicMock,
        mock_transport: MagicMock,
        mock_handle: AsyncMock,
        context: DisplayContext,
    ) -> None:
        mock_devices.handle = mock_handle
        mock_transport.push.return_value = False
        context.slots[3].renderer = lambda w, h: "x"
        context.schedule = ScheduleState(index=3, width=2, height=1)

        await scheduler.run_pass()
        await settle(scheduler)

        event = scheduler.events.get_nowait()
        assert isinstance(event, DeviceFault)
        await scheduler.handle_event(event)
        mock_devices.discard.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_new_connection_resets_transport_and_listens(
        self,
        scheduler: ScreenScheduler,
        mock_devices: MagicMock,
        mock_transport: MagicMock,
        mock_handle: AsyncMock,
    ) -> None:
        mock_devices.ensure_connected.return_value = mock_handle
        await scheduler.run_pass()
        mock_transport.reset.assert_called_once()
        assert scheduler.listener.is_running
        await scheduler.close()
        assert not scheduler.listener.is_running
        mock_devices.close.assert_awaited_once()


class TestEvents:
    @pytest.mark.asyncio
    async def test_valid_selection_runs_immediate_pass(
        self,
        scheduler: ScreenScheduler,
        mock_devices: MagicMock,
        context: DisplayContext,
    ) -> None:
        applied = await scheduler.handle_event(InboundReport(data=bytes([1, 2, 21, 4])))
        assert applied is True
        assert context.schedule == ScheduleState(index=2, width=21, height=4)
        mock_devices.ensure_connected.assert_awaited_once()
        await settle(scheduler)

    @pytest.mark.asyncio
    async def test_out_of_range_selection_is_ignored(
        self,
        scheduler: ScreenScheduler,
        mock_devices: MagicMock,
        context: DisplayContext,
    ) -> None:
        applied = await scheduler.handle_event(InboundReport(data=bytes([1, 4, 21, 4])))
        assert applied is False
        assert context.schedule == ScheduleState()
        mock_devices.ensure_connected.assert_not_called()

    @pytest.mark.asyncio
    async def test_device_fault_discards(
        self, scheduler: ScreenScheduler, mock_devices: MagicMock
    ) -> None:
        await scheduler.handle_event(DeviceFault(reason="read failed"))
        mock_devices.discard.assert_awaited_once_with("read failed")


class TestRunLoop:
    @pytest.mark.asyncio
    async def test_ticks_until_stopped(
        self,
        context: DisplayContext,
        mock_devices: MagicMock,
        mock_transport: MagicMock,
    ) -> None:
        scheduler = ScreenScheduler(
            context, mock_devices, mock_transport, [], tick_interval=0.01,
        )
        task = asyncio.create_task(scheduler.run())
        await asyncio.sleep(0.08)
        assert scheduler.is_running
        scheduler.stop()
        await asyncio.wait_for(task, timeout=1.0)

        assert mock_devices.ensure_connected.await_count >= 2
        mock_devices.close.assert_awaited_once()
        assert not scheduler.is_running

    @pytest.mark.asyncio
    async def test_selection_event_is_processed_by_loop(
        self,
        context: DisplayContext,
        mock_devices: MagicMock,
        mock_transport: MagicMock,
    ) -> None:
        scheduler = ScreenScheduler(
            context, mock_devices, mock_transport, [], tick_interval=10.0,
        )
        task = asyncio.create_task(scheduler.run())
        await asyncio.sleep(0.01)
        await scheduler.events.put(InboundReport(data=bytes([1, 1, 21, 4])))
        await asyncio.sleep(0.01)
        scheduler.stop()
        await asyncio.wait_for(task, timeout=1.0)

        assert context.schedule == ScheduleState(index=1, width=21, height=4)
        # Initial tick plus the immediate pass for the selection
        assert mock_devices.ensure_connected.await_count == 2

    @pytest.mark.asyncio
    async def test_selection_restarts_tick_from_now(
        self,
        context: DisplayContext,
        mock_devices: MagicMock,
        mock_transport: MagicMock,
    ) -> None:
        passes: list[float] = []
        mock_devices.ensure_connected.side_effect = lambda: passes.append(time.monotonic())
        scheduler = ScreenScheduler(
            context, mock_devices, mock_transport, [], tick_interval=0.3,
        )
        task = asyncio.create_task(scheduler.run())
        # Select 0.1s before the first regular tick would fire
        await asyncio.sleep(0.2)
        await scheduler.events.put(InboundReport(data=bytes([1, 1, 21, 4])))
        await asyncio.sleep(0.45)
        scheduler.stop()
        await asyncio.wait_for(task, timeout=1.0)

        assert len(passes) >= 3
        start, selected, next_tick = passes[:3]
        assert selected - start < 0.3
        # The pending tick was dropped; the next one waits a full interval
        assert next_tick - selected >= 0.27
