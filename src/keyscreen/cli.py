"""Command-line interface for keyscreen.

Provides the main entry point for running the display loop, listing
attached HID devices, and previewing a single screen in the terminal.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path

logger = logging.getLogger(__name__)

# Screen numbers follow the order sources are registered in
SCREEN_NAMES = ("perf", "stocks", "weather")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="keyscreen",
        description="Information screens for a keyboard-mounted display",
    )
    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=None,
        help="Path to YAML configuration file (default: config/keyscreen.yaml)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("run", help="Drive the keyboard display until interrupted")
    subparsers.add_parser("devices", help="List attached HID interfaces")

    preview_parser = subparsers.add_parser("preview", help="Render one screen to the terminal")
    preview_parser.add_argument(
        "--screen", choices=SCREEN_NAMES, default="perf",
        help="Screen to render",
    )
    preview_parser.add_argument("--width", type=int, default=21, help="Display width in characters")
    preview_parser.add_argument("--height", type=int, default=8, help="Display height in rows")

    return parser.parse_args(argv)


def build_sources(settings, context) -> list:
    """Register a slot and create a data source for each enabled screen."""
    from keyscreen.sources.perf import PerfSource
    from keyscreen.sources.stocks import StockSource
    from keyscreen.sources.weather import WeatherSource

    sources = []
    if settings.perf.enabled:
        sources.append(PerfSource(
            context.add_slot("perf"),
            settings.perf.active_interval,
            settings.perf.background_multiplier,
        ))
    if settings.stocks.enabled:
        sources.append(StockSource(
            context.add_slot("stocks"),
            settings.stocks.active_interval,
            settings.stocks.background_multiplier,
            stocks=settings.stocks.quotes,
            api_key=settings.alphavantage_api_key.get_secret_value(),
        ))
    if settings.weather.enabled:
        sources.append(WeatherSource(
            context.add_slot("weather"),
            settings.weather.active_interval,
            settings.weather.background_multiplier,
            city=settings.weather.city,
            api_key=settings.openweathermap_api_key.get_secret_value(),
        ))
    return sources


def build_scheduler(settings):
    """Wire the context, device layer, sources and scheduler together."""
    from keyscreen.device.manager import DeviceManager
    from keyscreen.device.transport import ChunkedTransport
    from keyscreen.display.scheduler import ScreenScheduler
    from keyscreen.domain.models import DeviceDescriptor, DisplayContext

    context = DisplayContext()
    sources = build_sources(settings, context)

    target = DeviceDescriptor(
        product=settings.device.product,
        usage=settings.device.usage,
        usage_page=settings.device.usage_page,
    )
    devices = DeviceManager(target, screen_count=context.slot_count)
    transport = ChunkedTransport(packet_delay=settings.transport.packet_delay)

    scheduler = ScreenScheduler(
        context,
        devices,
        transport,
        sources,
        tick_interval=settings.scheduler.tick_interval,
        poll_interval=settings.scheduler.poll_interval,
    )
    return scheduler, sources


async def _run(settings) -> None:
    """Run the display loop until cancelled."""
    scheduler, sources = build_scheduler(settings)
    try:
        await scheduler.run()
    finally:
        for source in sources:
            await source.close()


def _list_devices(settings) -> None:
    """Print every HID interface, marking the configured keyboard."""
    from keyscreen.device.manager import list_devices
    from keyscreen.domain.models import DeviceDescriptor

    target = DeviceDescriptor(
        product=settings.device.product,
        usage=settings.device.usage,
        usage_page=settings.device.usage_page,
    )
    devices = list_devices()
    if not devices:
        print("No HID devices found")
        return
    for device in devices:
        marker = "*" if target.matches(device) else " "
        print(f"{marker} {device.product or '(unnamed)':32} "
              f"usage=0x{device.usage:02X} usage_page=0x{device.usage_page:04X}")


async def _preview(settings, args) -> None:
    """Refresh one source and print its screen as the keyboard would see it."""
    from keyscreen.display.encoder import encode
    from keyscreen.domain.models import DisplayContext

    context = DisplayContext()
    sources = build_sources(settings, context)
    source = next((s for s in sources if s.name == args.screen), None)
    if source is None:
        print(f"Screen '{args.screen}' is disabled in the configuration")
    else:
        try:
            await source.refresh()
            if source.slot.renderer is None:
                print(f"No data for screen '{args.screen}'")
            else:
                text = source.slot.renderer(args.width, args.height)
                frame = encode(text, args.width, args.height).decode("latin-1")
                border = "+" + "-" * args.width + "+"
                print(border)
                for row in range(args.height):
                    print("|" + frame[row * args.width : (row + 1) * args.width] + "|")
                print(border)
        finally:
            for s in sources:
                await s.close()


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the keyscreen CLI."""
    args = parse_args(argv)

    if args.command is None:
        parse_args(["--help"])
        return

    from keyscreen.config.settings import load_settings
    from keyscreen.utils.logging import setup_logging

    settings = load_settings(args.config)
    setup_logging(settings.logging, verbose=args.verbose)

    if args.command == "run":
        logger.info("Starting keyboard display loop")
        try:
            asyncio.run(_run(settings))
        except KeyboardInterrupt:
            logger.info("Interrupted, shutting down")

    elif args.command == "devices":
        _list_devices(settings)

    elif args.command == "preview":
        asyncio.run(_preview(settings, args))


if __name__ == "__main__":
    main()
