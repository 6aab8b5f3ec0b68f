"""Core domain models for the keyscreen system.

These models represent the state that flows between the device layer
and the scheduler: which keyboard we are looking for, which screen the
keyboard has asked for, the registered screen slots, and the events
delivered into the scheduler's loop.
"""

from __future__ import annotations

import enum
from typing import Callable

from pydantic import BaseModel, ConfigDict, Field

# A renderer turns the requested display size into pre-wrapped text.
Renderer = Callable[[int, int], str]


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class DeviceState(str, enum.Enum):
    """Lifecycle of the keyboard connection."""

    DISCONNECTED = "disconnected"
    DISCOVERING = "discovering"
    CONNECTED = "connected"


# ---------------------------------------------------------------------------
# Device Models
# ---------------------------------------------------------------------------


class DeviceDescriptor(BaseModel):
    """The HID enumeration fields used to pick out the keyboard.

    ``path`` is only known once a device has been enumerated; it is
    not part of the match.
    """

    model_config = ConfigDict(frozen=True)

    product: str = Field(description="USB product string, matched exactly")
    usage: int = Field(ge=0, description="HID usage id of the raw interface")
    usage_page: int = Field(ge=0, description="HID usage page of the raw interface")
    path: bytes | None = Field(default=None, description="Platform path from hid.enumerate()")

    def matches(self, other: DeviceDescriptor) -> bool:
        """True if product, usage and usage page are all equal."""
        return (
            self.product == other.product
            and self.usage == other.usage
            and self.usage_page == other.usage_page
        )


# ---------------------------------------------------------------------------
# Screen Models
# ---------------------------------------------------------------------------


class ScheduleState(BaseModel):
    """The screen the keyboard has selected and the size it can show.

    Frozen: a new selection replaces the whole object, so a render
    always sees index, width and height from the same report.
    """

    model_config = ConfigDict(frozen=True)

    index: int = Field(default=0, ge=0)
    width: int = Field(default=0, ge=0)
    height: int = Field(default=0, ge=0)


class ScreenSlot(BaseModel):
    """A logical screen: its renderer and when its data was last refreshed."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    index: int = Field(ge=0)
    name: str = Field(default="")
    renderer: Renderer | None = Field(
        default=None, description="Absent until the first successful refresh"
    )
    last_refresh: float = Field(
        default=0.0, description="Monotonic timestamp of the last refresh"
    )

    @property
    def has_renderer(self) -> bool:
        return self.renderer is not None


class DisplayContext(BaseModel):
    """Shared display state passed explicitly to each component.

    Slot 0 always exists and never renders; data screens occupy
    indices 1..N.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    schedule: ScheduleState = Field(default_factory=ScheduleState)
    slots: list[ScreenSlot] = Field(default_factory=lambda: [ScreenSlot(index=0, name="none")])

    @property
    def slot_count(self) -> int:
        """Number of slots including the empty slot 0."""
        return len(self.slots)

    @property
    def current_slot(self) -> ScreenSlot:
        return self.slots[self.schedule.index]

    def add_slot(self, name: str) -> ScreenSlot:
        """Register a new data screen at the next free index."""
        slot = ScreenSlot(index=len(self.slots), name=name)
        self.slots.append(slot)
        return slot


# ---------------------------------------------------------------------------
# Scheduler Events
# ---------------------------------------------------------------------------


class InboundReport(BaseModel):
    """A raw report read from the keyboard."""

    model_config = ConfigDict(frozen=True)

    data: bytes


class DeviceFault(BaseModel):
    """The device failed an I/O call and should be discarded."""

    model_config = ConfigDict(frozen=True)

    reason: str
