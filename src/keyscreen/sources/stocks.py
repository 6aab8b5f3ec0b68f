"""Stock and currency quote screen backed by the Alpha Vantage API."""

from __future__ import annotations

import asyncio
import logging
import re
import time
from decimal import Decimal
from typing import Callable

import httpx

from keyscreen.config.settings import StockConfig
from keyscreen.display.encoder import layout_lines
from keyscreen.domain.models import Renderer, ScreenSlot
from keyscreen.sources.base import DataSource, SourceError

logger = logging.getLogger(__name__)

ALPHAVANTAGE_URL = "https://www.alphavantage.co/query"

# Direction glyphs in the keyboard's OLED font
ARROW_UP = "\x1e"
ARROW_DOWN = "\x1f"

UNKNOWN_PRICE = "???"
ERROR_VALUE = "Error"

# Reply section and price field for each query function
_QUOTE_FIELDS: dict[str, tuple[str, str]] = {
    "GLOBAL_QUOTE": ("Global Quote", "price"),
    "CURRENCY_EXCHANGE_RATE": ("Realtime Currency Exchange Rate", "Exchange Rate"),
}


def match_field(key: str, name: str) -> bool:
    """Alpha Vantage keys carry a numbered prefix, e.g. ``05. price``."""
    return re.match(rf"^(?:\d*\. )?{re.escape(name)}$", key) is not None


def parse_price(stock: StockConfig, reply: dict) -> float:
    """Pull the current price for ``stock`` out of an API reply.

    Raises:
        SourceError: If the reply has no usable price.
    """
    if "Note" in reply:
        logger.warning("Stock note: %s", reply["Note"])
    section_name, field = _QUOTE_FIELDS[stock.function]
    section = reply.get(section_name)
    if not isinstance(section, dict):
        raise SourceError(f"No '{section_name}' in reply for {stock.key}", source="stocks")
    for key, value in section.items():
        if match_field(key, field):
            try:
                return float(value)
            except (TypeError, ValueError) as e:
                raise SourceError(f"Bad price {value!r} for {stock.key}", source="stocks") from e
    raise SourceError(f"No {field} in reply for {stock.key}", source="stocks")


def format_price(price: float) -> str:
    """Plain decimal form of a price, with no exponent and no rounding."""
    if price.is_integer():
        return str(int(price))
    return format(Decimal(repr(price)), "f")


def format_quote(stock: StockConfig, price: float, previous: float | None) -> str:
    """Direction arrow, unit and price, e.g. ``\\x1e $412.5``."""
    direction = " "
    if previous:
        if price > previous:
            direction = ARROW_UP
        elif price < previous:
            direction = ARROW_DOWN
    return f"{direction} {stock.unit}{format_price(price)}"


class StockSource(DataSource):
    """Fetches every configured quote concurrently on each refresh."""

    def __init__(
        self,
        slot: ScreenSlot,
        active_interval: float,
        background_multiplier: float,
        stocks: list[StockConfig],
        api_key: str,
        client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        super().__init__(slot, active_interval, background_multiplier, clock)
        self._stocks = list(stocks)
        self._api_key = api_key
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._prices: dict[str, float] = {}
        self._values: dict[str, str] = {stock.key: UNKNOWN_PRICE for stock in self._stocks}

    @property
    def values(self) -> dict[str, str]:
        return dict(self._values)

    async def fetch(self) -> Renderer:
        await asyncio.gather(*(self._update(stock) for stock in self._stocks))

        title_width = max((len(key) for key in self._values), default=0)
        lines = [f"{key.ljust(title_width)} {value}" for key, value in self._values.items()]

        def render(width: int, height: int) -> str:
            return layout_lines(lines, width, height)

        return render

    async def _update(self, stock: StockConfig) -> None:
        try:
            reply = await self._query(stock)
            price = parse_price(stock, reply)
        except (httpx.HTTPError, SourceError, ValueError) as e:
            logger.error("Stock parsing error for %s: %s", stock.key, e)
            self._values[stock.key] = ERROR_VALUE
            return
        self._values[stock.key] = format_quote(stock, price, self._prices.get(stock.key))
        self._prices[stock.key] = price
        logger.debug("%s %s", stock.key, self._values[stock.key])

    async def _query(self, stock: StockConfig) -> dict:
        params = stock.query_params()
        params["apikey"] = self._api_key
        resp = await self._client.get(ALPHAVANTAGE_URL, params=params)
        resp.raise_for_status()
        return resp.json()

    async def close(self) -> None:
        await self._client.aclose()
