"""Text to frame conversion for the character display.

The keyboard draws a frame as width*height character cells, one byte
each, row after row. Renderers lay out their own lines with
layout_lines(); encode() only enforces the exact frame size.
"""

from __future__ import annotations

# Characters outside Latin-1 have no cell glyph
FRAME_ENCODING = "latin-1"
PAD = " "


def layout_lines(lines: list[str], width: int, height: int) -> str:
    """Pad or cut each line to ``width`` and keep the first ``height``."""
    return "".join(line.ljust(width)[:width] for line in lines[:height])


def encode(text: str, width: int, height: int) -> bytes:
    """Encode rendered text into a frame of exactly width*height bytes.

    Args:
        text: Pre-wrapped text, rows concatenated.
        width: Display width in characters.
        height: Display height in rows.

    Returns:
        The frame bytes, space padded or truncated to size.

    Raises:
        ValueError: If either dimension is negative.
    """
    if width < 0 or height < 0:
        raise ValueError(f"Display size must be non-negative, got {width}x{height}")
    size = width * height
    if size == 0:
        return b""
    cells = text[:size].ljust(size, PAD)
    return cells.encode(FRAME_ENCODING, errors="replace")
