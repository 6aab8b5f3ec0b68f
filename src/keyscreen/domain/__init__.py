"""Domain models for keyscreen.

This package contains the state objects shared by the device layer
and the scheduler. All models use Pydantic v2.
"""

from keyscreen.domain.models import (
    DeviceDescriptor,
    DeviceFault,
    DeviceState,
    DisplayContext,
    InboundReport,
    Renderer,
    ScheduleState,
    ScreenSlot,
)

__all__ = [
    "DeviceDescriptor",
    "DeviceFault",
    "DeviceState",
    "DisplayContext",
    "InboundReport",
    "Renderer",
    "ScheduleState",
    "ScreenSlot",
]
