"""Chunked, paced frame writer for the keyboard display.

A frame is larger than one HID report, so it is split into packets of
at most MAX_PAYLOAD bytes. The keyboard buffers packets before handing
them to the other half of the split board; writing too fast overruns
that buffer, so every packet is followed by a short pause.

A send is planned up front as a list of SendStep (packet, delay) pairs
and then driven step by step. While a send is in flight further pushes
are dropped rather than queued, and a frame identical to the last one
delivered is never sent again.
"""

from __future__ import annotations

import asyncio
import logging
import sys

from pydantic import BaseModel, ConfigDict, Field

from keyscreen.device.handle import DeviceError, HidHandle
from keyscreen.device.reports import MAX_PAYLOAD, frame_packet

logger = logging.getLogger(__name__)

# Pause after each packet (seconds). The macOS HID stack needs much
# longer before the keyboard reliably keeps up.
DARWIN_PACKET_DELAY = 0.2
DEFAULT_PACKET_DELAY = 0.02


def default_packet_delay(platform: str | None = None) -> float:
    """Inter-packet delay for the given (or current) platform."""
    platform = platform or sys.platform
    if platform == "darwin":
        return DARWIN_PACKET_DELAY
    return DEFAULT_PACKET_DELAY


class TransportError(DeviceError):
    """Raised when a frame could not be delivered in full."""


class SendStep(BaseModel):
    """One write in a planned frame send."""

    model_config = ConfigDict(frozen=True)

    packet: bytes
    delay: float = Field(gt=0, description="Seconds to wait after writing the packet")


def plan_frame(payload: bytes, delay: float) -> list[SendStep]:
    """Split a frame into header-prefixed packets with their pacing.

    The first packet is marked as a frame start, every later one as a
    continuation. An empty payload yields no steps.
    """
    steps: list[SendStep] = []
    for offset in range(0, len(payload), MAX_PAYLOAD):
        chunk = payload[offset : offset + MAX_PAYLOAD]
        steps.append(SendStep(packet=frame_packet(chunk, first=offset == 0), delay=delay))
    return steps


class ChunkedTransport:
    """Pushes encoded frames to the keyboard one paced packet at a time.

    Owns the transport state: whether a send is in flight and the last
    payload that was delivered completely.
    """

    def __init__(self, packet_delay: float | None = None) -> None:
        delay = default_packet_delay() if packet_delay is None else packet_delay
        if delay <= 0:
            raise ValueError(f"Packet delay must be positive, got {delay}")
        self._packet_delay = delay
        self._in_flight = False
        self._last_payload: bytes | None = None

    @property
    def packet_delay(self) -> float:
        return self._packet_delay

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    @property
    def last_payload(self) -> bytes | None:
        return self._last_payload

    def reset(self) -> None:
        """Forget the last delivered frame so the next push always sends."""
        self._last_payload = None

    async def push(self, handle: HidHandle, payload: bytes) -> bool:
        """Send a frame unless it is unchanged or another send is running.

        Returns:
            False if a write failed part way through, True otherwise
            (including when the push was suppressed).
        """
        if self._last_payload is not None and payload == self._last_payload:
            return True
        if self._in_flight:
            logger.debug("Send already in flight, dropping frame")
            return True

        self._in_flight = True
        try:
            await self._send(handle, plan_frame(payload, self._packet_delay))
        except TransportError as e:
            logger.warning("Frame send aborted: %s", e)
            return False
        finally:
            self._in_flight = False

        self._last_payload = payload
        return True

    async def _send(self, handle: HidHandle, steps: list[SendStep]) -> None:
        for number, step in enumerate(steps, start=1):
            try:
                await handle.write(step.packet)
            except DeviceError as e:
                raise TransportError(
                    f"packet {number} of {len(steps)} failed: {e}", path=e.path
                ) from e
            await asyncio.sleep(step.delay)
        logger.debug("Sent frame in %d packets", len(steps))
