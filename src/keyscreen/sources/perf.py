"""Local performance screen: CPU, memory and battery as bar graphs."""

from __future__ import annotations

import asyncio
import getpass
import logging
import math
import socket

import psutil

from keyscreen.display.encoder import layout_lines
from keyscreen.domain.models import Renderer
from keyscreen.sources.base import DataSource

logger = logging.getLogger(__name__)

# Solid block in the keyboard's OLED font
BAR_GLYPH = "\x08"
# How long psutil samples CPU load
CPU_SAMPLE_SECONDS = 0.5


def bar_line(header: str, percent: float, title_width: int, width: int) -> str:
    """One stat row: header, a space, then the filled part of the bar."""
    bar_width = max(0, width - title_width - 1)
    filled = math.ceil(bar_width * max(0.0, min(percent, 100.0)) / 100)
    return f"{header.ljust(title_width)} {BAR_GLYPH * filled}"


class PerfSource(DataSource):
    """Samples the local machine with psutil."""

    async def fetch(self) -> Renderer:
        loop = asyncio.get_running_loop()
        cpu = await loop.run_in_executor(None, psutil.cpu_percent, CPU_SAMPLE_SECONDS)
        stats: list[tuple[str, float]] = [
            ("CPU:", cpu),
            ("RAM:", psutil.virtual_memory().percent),
        ]
        battery = self._battery_percent()
        if battery is not None:
            stats.append(("BAT:", battery))

        header = f"{getpass.getuser()} @ {socket.gethostname()}"
        title_width = max(len(name) for name, _ in stats)

        def render(width: int, height: int) -> str:
            lines = [header]
            lines.extend(bar_line(name, pct, title_width, width) for name, pct in stats)
            return layout_lines(lines, width, height)

        return render

    @staticmethod
    def _battery_percent() -> float | None:
        try:
            battery = psutil.sensors_battery()
        except (AttributeError, NotImplementedError, OSError) as e:
            logger.debug("Battery unavailable: %s", e)
            return None
        if battery is None:
            return None
        return float(battery.percent)
