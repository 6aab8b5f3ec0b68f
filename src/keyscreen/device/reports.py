"""Raw HID report layout for the keyboard display protocol.

Outgoing reports always start with a 0x00 byte. hidapi treats the
first byte as the report id and strips it for devices without numbered
reports, so the keyboard sees the report starting at the second byte.

Host -> keyboard:
    [0x00, 0x01, screen_count]          announce a new connection
    [0x00, 0x02, payload...]            first packet of a frame
    [0x00, 0x03, payload...]            continuation packet

Keyboard -> host:
    [0x01, screen_index, width, height, ...]   select a screen
"""

from __future__ import annotations

from keyscreen.domain.models import ScheduleState

# ---------------------------------------------------------------------------
# Packet header bytes
# ---------------------------------------------------------------------------

REPORT_ID: int = 0x00
PACKET_CONNECT: int = 0x01
PACKET_FRAME_START: int = 0x02
PACKET_FRAME_CONTINUE: int = 0x03

HEADER_SIZE: int = 2
# The raw HID endpoint carries 32-byte reports; one byte goes to the
# packet type and one is lost to the report id.
MAX_PAYLOAD: int = 30

# ---------------------------------------------------------------------------
# Inbound reports
# ---------------------------------------------------------------------------

SELECTION_MARKER: int = 0x01
SELECTION_LENGTH: int = 4

# Largest raw report we ask hidapi for on a read
READ_SIZE: int = 32


def connect_report(screen_count: int) -> bytes:
    """Build the report announcing how many screens the keyboard may cycle."""
    if not 0 <= screen_count <= 0xFF:
        raise ValueError(f"Screen count must fit in one byte, got {screen_count}")
    return bytes([REPORT_ID, PACKET_CONNECT, screen_count])


def frame_packet(payload: bytes, first: bool) -> bytes:
    """Prefix one chunk of frame payload with its two header bytes."""
    if len(payload) > MAX_PAYLOAD:
        raise ValueError(f"Packet payload must be at most {MAX_PAYLOAD} bytes, got {len(payload)}")
    packet_type = PACKET_FRAME_START if first else PACKET_FRAME_CONTINUE
    return bytes([REPORT_ID, packet_type]) + payload


def parse_selection(data: bytes, slot_count: int) -> ScheduleState | None:
    """Decode a screen selection report.

    Only the first four bytes are consulted.

    Args:
        data: Raw report as read from the device.
        slot_count: Number of registered slots, including slot 0.

    Returns:
        The requested schedule state, or None if the report is not a
        selection or names a screen outside ``[0, slot_count - 1]``.
    """
    if len(data) < SELECTION_LENGTH or data[0] != SELECTION_MARKER:
        return None
    index, width, height = data[1], data[2], data[3]
    if index > slot_count - 1:
        return None
    return ScheduleState(index=index, width=width, height=height)
