"""keyscreen -- Information screens for a keyboard-mounted display.

This package drives the small character display on a QMK keyboard over
a raw USB HID link. Several information screens (performance stats,
stock prices, weather) share the one channel; the keyboard tells us
which screen it wants and how big it is, and we push rendered frames
back in small paced packets.
"""

__version__ = "0.1.0"
