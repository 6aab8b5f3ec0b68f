"""Screen data sources for keyscreen.

Each source keeps one screen slot supplied with a renderer built from
its latest data.

Public API:
    DataSource -- Abstract base class
    PerfSource -- Local CPU / memory / battery bars
    StockSource -- Alpha Vantage quotes
    WeatherSource -- OpenWeatherMap current weather
"""

from keyscreen.sources.base import DataSource, SourceError

__all__ = ["DataSource", "SourceError", "PerfSource", "StockSource", "WeatherSource"]


def __getattr__(name: str) -> type:
    """Lazy import for concrete implementations that require external deps."""
    if name == "PerfSource":
        from keyscreen.sources.perf import PerfSource
        return PerfSource
    if name == "StockSource":
        from keyscreen.sources.stocks import StockSource
        return StockSource
    if name == "WeatherSource":
        from keyscreen.sources.weather import WeatherSource
        return WeatherSource
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
