"""
Numba kernels for the PPU.
Background/window scanline rendering and the VRAM tile-sheet decoder.
"""

import numpy as np
from numba import njit


@njit(cache=True)
def render_bg_line(
    row: np.ndarray,
    bg_index: np.ndarray,
    vram: np.ndarray,
    ly: int,
    scy: int,
    scx: int,
    bg_tilemap: int,
    window_tilemap: int,
    tile_data_unsigned: bool,
    window_enabled: bool,
    wy: int,
    wx: int,
    window_line: int,
    bgp: int,
) -> bool:
    """
    Render one line of background and window.

    Writes palette-mapped shades into ``row`` and the raw colour index of
    each pixel into ``bg_index`` (sprite priority needs the latter).
    Returns True if any window pixel was drawn on this line.
    """
    used_window = False
    # WX below 7 wraps past the right edge, so the window stays off
    window_x = (wx - 7) & 0xFF

    for screen_x in range(160):
        if window_enabled and wy <= ly and screen_x >= window_x:
            used_window = True
            y = window_line & 0xFF
            x = (screen_x - window_x) & 0xFF
            tilemap = window_tilemap
        else:
            y = (ly + scy) & 0xFF
            x = (screen_x + scx) & 0xFF
            tilemap = bg_tilemap

        tilemap_offset = (tilemap - 0x8000) + (y >> 3) * 32 + (x >> 3)
        tile_idx = int(vram[tilemap_offset])

        if tile_data_unsigned:
            tile_offset = tile_idx * 16
        else:
            if tile_idx > 127:
                tile_idx = tile_idx - 256
            tile_offset = 0x1000 + tile_idx * 16

        row_offset = tile_offset + (y & 7) * 2
        low_byte = int(vram[row_offset])
        high_byte = int(vram[row_offset + 1])

        bit = 7 - (x & 7)
        color_idx = (((high_byte >> bit) & 1) << 1) | ((low_byte >> bit) & 1)

        bg_index[screen_x] = color_idx
        row[screen_x] = (bgp >> (color_idx * 2)) & 0x03

    return used_window


@njit(cache=True)
def decode_tile_sheet(vram: np.ndarray, image: np.ndarray):
    """Decode all 384 tiles at 0x8000-0x97FF into a 24x16 grid of colour indices."""
    for tile_idx in range(384):
        tx = (tile_idx % 16) * 8
        ty = (tile_idx // 16) * 8
        tile_offset = tile_idx * 16

        for py in range(8):
            low_byte = int(vram[tile_offset + py * 2])
            high_byte = int(vram[tile_offset + py * 2 + 1])
            for px in range(8):
                bit = 7 - px
                image[ty + py, tx + px] = (((high_byte >> bit) & 1) << 1) | ((low_byte >> bit) & 1)
