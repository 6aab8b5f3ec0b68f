"""Display scheduling and frame encoding for keyscreen.

Public API:
    ScreenScheduler -- The refresh and push loop
    encode -- Text to fixed-size frame bytes
    layout_lines -- Line padding helper for renderers
"""

from keyscreen.display.encoder import encode, layout_lines
from keyscreen.display.scheduler import ScreenScheduler

__all__ = ["ScreenScheduler", "encode", "layout_lines"]
