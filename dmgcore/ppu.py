"""
Game Boy Pixel Processing Unit (PPU)
Mode state machine, scanline rendering of background, window and sprites.
"""

import logging
from typing import Callable, List, NamedTuple, Optional

import numpy as np

from .interrupts import Interrupt
from .lcd import DisplayColour, PPUMode, STATSource, palette_lookup
from .ppu_fast import decode_tile_sheet, render_bg_line

logger = logging.getLogger(__name__)


class Sprite(NamedTuple):
    """One OAM entry. y and x are the raw OAM values (screen position + 16 / + 8)."""
    y: int
    x: int
    tile: int
    attr: int
    index: int

    @property
    def bg_priority(self) -> bool:
        return (self.attr & 0x80) != 0

    @property
    def flip_y(self) -> bool:
        return (self.attr & 0x40) != 0

    @property
    def flip_x(self) -> bool:
        return (self.attr & 0x20) != 0

    @property
    def use_obp1(self) -> bool:
        return (self.attr & 0x10) != 0


class PPU:
    """
    DMG PPU - Renders graphics to a 160x144 pixel display.

    Every scanline takes 456 ticks:
    - Mode 2: OAM Search (ticks 0-79)
    - Mode 3: Pixel Transfer (ticks 80-251)
    - Mode 0: H-Blank (ticks 252-455)
    Lines 144-153 are Mode 1 (V-Blank).

    The whole line is drawn at once on entry to Mode 3; there is no pixel FIFO.
    """

    SCREEN_WIDTH = 160
    SCREEN_HEIGHT = 144

    TICKS_PER_LINE = 456
    OAM_TICKS = 80
    TRANSFER_END = 80 + 172
    LINES_PER_FRAME = 154

    MAX_SPRITES_PER_LINE = 10

    def __init__(self, memory):
        self.memory = memory
        self.lcd = memory.lcd
        self.interrupts = memory.interrupts

        # Display colour index per pixel, row-major
        self.framebuffer = np.zeros((self.SCREEN_HEIGHT, self.SCREEN_WIDTH), dtype=np.uint8)
        # Raw BG/window colour index of the line being drawn
        self.bg_index = np.zeros(self.SCREEN_WIDTH, dtype=np.uint8)

        self.line_ticks = 0
        self.window_line = 0
        self.sprites: List[Sprite] = []
        self.frame_count = 0

        self.lcd.mode = PPUMode.VBLANK

        # Callbacks
        self.on_vblank: Optional[Callable[[], None]] = None
        self.on_save: Optional[Callable[[], None]] = None

    # Mode state machine
    def tick(self):
        """Advance the PPU by one tick (one quarter of an M-cycle)."""
        self.line_ticks += 1
        mode = self.lcd.mode

        if mode == PPUMode.OAM:
            if self.line_ticks >= self.OAM_TICKS:
                self.lcd.mode = PPUMode.TRANSFER
                self._render_scanline()

        elif mode == PPUMode.TRANSFER:
            if self.line_ticks >= self.TRANSFER_END:
                self.lcd.mode = PPUMode.HBLANK
                self._stat_interrupt(STATSource.HBLANK)

        elif mode == PPUMode.HBLANK:
            if self.line_ticks >= self.TICKS_PER_LINE:
                self._increment_ly()
                if self.lcd.ly >= self.SCREEN_HEIGHT:
                    self._enter_vblank()
                else:
                    self._enter_oam()
                self.line_ticks = 0

        else:  # VBLANK
            self.window_line = 0
            if self.line_ticks >= self.TICKS_PER_LINE:
                self._increment_ly()
                if self.lcd.ly >= self.LINES_PER_FRAME:
                    self.lcd.ly = 0
                    self._check_lyc()
                    self._enter_oam()
                self.line_ticks = 0

    def _stat_interrupt(self, source: STATSource):
        if self.lcd.stat_source_enabled(source):
            self.interrupts.request(Interrupt.LCD_STAT)

    def _check_lyc(self):
        """Update the coincidence flag and raise the LYC source on a match."""
        match = self.lcd.ly == self.lcd.lyc
        self.lcd.lyc_match = match
        if match:
            self._stat_interrupt(STATSource.LYC)

    def _increment_ly(self):
        self.lcd.ly = (self.lcd.ly + 1) & 0xFF
        self._check_lyc()

    def _enter_oam(self):
        self.lcd.mode = PPUMode.OAM
        self._stat_interrupt(STATSource.OAM)
        self._scan_oam()

    def _enter_vblank(self):
        self.lcd.mode = PPUMode.VBLANK
        self.interrupts.request(Interrupt.VBLANK)
        self._stat_interrupt(STATSource.VBLANK)

        cart = self.memory.cartridge
        if cart is not None and cart.needs_save and self.on_save:
            self.on_save()

        self.frame_count += 1
        if self.on_vblank:
            self.on_vblank()

    # OAM search
    def _scan_oam(self):
        """Select up to 10 sprites on the current line, ordered back to front."""
        ly = self.lcd.ly
        height = self.lcd.sprite_height
        oam = self.memory.oam

        found = []
        for i in range(40):
            y = int(oam[i * 4])
            top = y - 16
            if top <= ly < top + height:
                found.append(Sprite(y, int(oam[i * 4 + 1]), int(oam[i * 4 + 2]),
                                    int(oam[i * 4 + 3]), i))
                if len(found) >= self.MAX_SPRITES_PER_LINE:
                    break

        # Later OAM entries draw first; a sprite that overlaps one to its
        # left is moved ahead of it so the leftmost ends up on top
        found.reverse()
        for i in range(1, len(found)):
            entry = found[i]
            j = i - 1
            while j >= 0 and found[j].x < entry.x <= found[j].x + 8:
                found[j + 1] = found[j]
                j -= 1
            found[j + 1] = entry

        self.sprites = found

    # Rendering
    def _render_scanline(self):
        ly = self.lcd.ly
        if ly >= self.SCREEN_HEIGHT:
            return

        row = self.framebuffer[ly]
        lcd = self.lcd

        if lcd.bg_enabled:
            used_window = render_bg_line(
                row,
                self.bg_index,
                self.memory.vram,
                ly,
                lcd.scy,
                lcd.scx,
                lcd.bg_tilemap,
                lcd.window_tilemap,
                lcd.tile_data_unsigned,
                lcd.window_enabled,
                lcd.wy,
                lcd.wx,
                self.window_line,
                lcd.bgp,
            )
            if used_window:
                self.window_line += 1
        else:
            row.fill(DisplayColour.WHITE)
            self.bg_index.fill(0)

        if lcd.sprites_enabled:
            self._render_sprites(row)

    def _render_sprites(self, row: np.ndarray):
        ly = self.lcd.ly
        height = self.lcd.sprite_height
        vram = self.memory.vram

        for sprite in self.sprites:
            tile = sprite.tile
            if height == 16:
                tile &= 0xFE

            line = ly - (sprite.y - 16)
            if sprite.flip_y:
                line = height - 1 - line

            addr = tile * 16 + line * 2
            low_byte = int(vram[addr])
            high_byte = int(vram[addr + 1])
            palette = self.lcd.obp1 if sprite.use_obp1 else self.lcd.obp0

            for px in range(8):
                screen_x = sprite.x - 8 + px
                if screen_x < 0 or screen_x >= self.SCREEN_WIDTH:
                    continue

                bit = px if sprite.flip_x else 7 - px
                color_idx = (((high_byte >> bit) & 1) << 1) | ((low_byte >> bit) & 1)
                if color_idx == 0:
                    continue

                if sprite.bg_priority and self.bg_index[screen_x] != 0:
                    continue

                row[screen_x] = palette_lookup(palette, color_idx)

    # Debug views
    def tile_sheet(self) -> np.ndarray:
        """All 384 tiles of VRAM as a 192x128 array of colour indices."""
        image = np.zeros((192, 128), dtype=np.uint8)
        decode_tile_sheet(self.memory.vram, image)
        return image
