"""Abstract base class for screen data sources.

A data source owns one screen slot. The scheduler calls refresh() when
the slot is due; the source fetches fresh data, builds a renderer from
it and installs that renderer in the slot. A failed fetch is logged and
leaves the previous renderer in place, so a source never raises into
the scheduler.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from typing import Callable

from keyscreen.domain.models import Renderer, ScreenSlot

logger = logging.getLogger(__name__)


class DataSource(ABC):
    """Produces the renderer for one screen slot.

    Args:
        slot: The slot this source keeps up to date.
        active_interval: Seconds between refreshes while the slot is
                         on screen.
        background_multiplier: The interval used while the slot is not
                               on screen, as a multiple of the active one.
        clock: Monotonic time source; must match the scheduler's.
    """

    def __init__(
        self,
        slot: ScreenSlot,
        active_interval: float,
        background_multiplier: float = 10.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if active_interval <= 0:
            raise ValueError(f"Active interval must be positive, got {active_interval}")
        if background_multiplier < 1:
            raise ValueError("Background interval cannot be shorter than the active one")
        self._slot = slot
        self._active_interval = active_interval
        self._background_interval = active_interval * background_multiplier
        self._clock = clock

    @property
    def slot(self) -> ScreenSlot:
        return self._slot

    @property
    def name(self) -> str:
        return self._slot.name

    @property
    def active_interval(self) -> float:
        return self._active_interval

    @property
    def background_interval(self) -> float:
        return self._background_interval

    @abstractmethod
    async def fetch(self) -> Renderer:
        """Gather fresh data and return a renderer for it.

        Raises:
            Exception: Any failure; refresh() logs it and keeps the
                       previous renderer.
        """
        ...

    async def refresh(self) -> None:
        """Fetch new data and install its renderer in the slot."""
        logger.info("Updating %s data...", self.name)
        try:
            renderer = await self.fetch()
        except Exception as e:
            logger.error("Error when updating %s data: %s", self.name, e)
            return
        self._slot.renderer = renderer
        self._slot.last_refresh = self._clock()
        logger.info("%s data updated", self.name.capitalize())

    async def close(self) -> None:
        """Release any resources held by the source."""


class SourceError(Exception):
    """Raised when a data source gets an unusable reply."""

    def __init__(self, message: str, source: str = "") -> None:
        super().__init__(message)
        self.source = source
