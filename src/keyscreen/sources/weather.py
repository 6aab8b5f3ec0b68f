"""Current weather screen backed by the OpenWeatherMap API.

Long descriptions do not fit beside their label, so the renderer
scrolls them one character per frame while they stay the same.
"""

from __future__ import annotations

import logging
import time
from typing import Callable

import httpx

from keyscreen.display.encoder import layout_lines
from keyscreen.domain.models import Renderer, ScreenSlot
from keyscreen.sources.base import DataSource, SourceError

logger = logging.getLogger(__name__)

OPENWEATHERMAP_URL = "https://api.openweathermap.org/data/2.5/weather"
KELVIN = 273.15


def wind_direction(degrees: float) -> str:
    """Compass direction (N, NE, E, ... NW) for a wind bearing."""
    deg = degrees % 360
    direction = ""
    if deg > 292.5 or deg <= 67.5:
        direction += "N"
    elif 112.5 < deg < 247.5:
        direction += "S"
    if 22.5 < deg < 157.5:
        direction += "E"
    elif 202.5 < deg < 337.5:
        direction += "W"
    return direction


def _precipitation(block: dict) -> str:
    amount = block.get("3h", block.get("1h", 0))
    return f"{amount}mm"


def parse_weather(data: dict) -> list[tuple[str, str]]:
    """Turn a current-weather reply into labelled rows.

    Raises:
        SourceError: If a required field is missing.
    """
    try:
        rows = [
            ("city", f"{data['name']} {data['sys']['country']}"),
            ("desc", data["weather"][0]["description"]),
            ("temp", f"{data['main']['temp'] - KELVIN:.1f}C"),
        ]
    except (KeyError, IndexError, TypeError) as e:
        raise SourceError(f"Malformed weather reply: missing {e}", source="weather") from e

    if data.get("rain"):
        rows.append(("rain", _precipitation(data["rain"])))
    if data.get("snow"):
        rows.append(("snow", _precipitation(data["snow"])))
    wind = data.get("wind")
    if wind:
        rows.append(("wind", f"{wind.get('speed', 0)}m/s {wind_direction(wind.get('deg', 0))}"))
    return rows


class DescriptionScroller:
    """Windows a long description, advancing one step per render."""

    def __init__(self) -> None:
        self._text: str | None = None
        self._offset = 0

    def window(self, text: str, size: int) -> str:
        if size <= 0 or len(text) <= size:
            self._text = text
            self._offset = 0
            return text
        if text != self._text:
            self._text = text
            self._offset = 0
        else:
            self._offset += 1
            if self._offset > len(text) - size:
                self._offset = 0
        return text[self._offset : self._offset + size]


class WeatherSource(DataSource):
    """Fetches the current weather for one city."""

    def __init__(
        self,
        slot: ScreenSlot,
        active_interval: float,
        background_multiplier: float,
        city: str,
        api_key: str,
        client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        super().__init__(slot, active_interval, background_multiplier, clock)
        self._city = city
        self._api_key = api_key
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._scroller = DescriptionScroller()

    async def fetch(self) -> Renderer:
        resp = await self._client.get(
            OPENWEATHERMAP_URL, params={"q": self._city, "appid": self._api_key}
        )
        resp.raise_for_status()
        rows = parse_weather(resp.json())
        scroller = self._scroller

        def render(width: int, height: int) -> str:
            lines = []
            for label, value in rows:
                if label == "desc":
                    value = scroller.window(value, width - len(label) - 2)
                lines.append(f"{label}: {value}")
            return layout_lines(lines, width, height)

        return render

    async def close(self) -> None:
        await self._client.aclose()
