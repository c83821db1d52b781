"""
PPU timing, STAT interrupts and scanline rendering tests.

The PPU comes out of reset in V-Blank on line 145, so most tests first
run it to the top of the next frame.
"""

import numpy as np
import pytest

from dmgcore.cartridge import Cartridge
from dmgcore.interrupts import Interrupt
from dmgcore.lcd import LCDRegisters, PPUMode
from dmgcore.memory import Memory
from dmgcore.ppu import PPU

IDENTITY_PALETTE = 0xE4

# LCDC values
LCD_BG = 0x91                 # LCD on, 0x8000 tile data, BG on
LCD_BG_SPRITES = 0x93
LCD_BG_WINDOW = 0xF1          # plus window on, window map at 0x9C00


@pytest.fixture
def memory():
    mem = Memory()
    mem.interrupts.flags = 0
    mem.lcd.bgp = IDENTITY_PALETTE
    mem.lcd.obp0 = IDENTITY_PALETTE
    return mem


@pytest.fixture
def ppu(memory):
    return PPU(memory)


def tick(ppu: PPU, count: int):
    for _ in range(count):
        ppu.tick()


def start_frame(ppu: PPU):
    """Run out the power-on V-Blank so LY is 0 and OAM search has just begun."""
    while not (ppu.lcd.ly == 0 and ppu.lcd.mode == PPUMode.OAM):
        ppu.tick()


def render_first_line(ppu: PPU):
    start_frame(ppu)
    tick(ppu, PPU.OAM_TICKS)


def write_tile(memory: Memory, address: int, low: int, high: int):
    """Fill all eight rows of the tile at ``address`` with the same bit planes."""
    for row in range(8):
        memory.write(address + row * 2, low)
        memory.write(address + row * 2 + 1, high)


def write_sprite(memory: Memory, index: int, y: int, x: int, tile: int, attr: int = 0):
    base = 0xFE00 + index * 4
    for offset, value in enumerate((y, x, tile, attr)):
        memory.write(base + offset, value)


def requested(memory: Memory, interrupt: Interrupt) -> bool:
    return bool(memory.interrupts.flags & interrupt.mask)


class TestTiming:
    def test_starts_in_vblank(self, ppu):
        assert ppu.lcd.mode == PPUMode.VBLANK
        assert ppu.lcd.ly == 0x91

    def test_reset_to_first_line(self, ppu):
        tick(ppu, (PPU.LINES_PER_FRAME - 0x91) * PPU.TICKS_PER_LINE)
        assert ppu.lcd.ly == 0
        assert ppu.lcd.mode == PPUMode.OAM

    def test_modes_within_a_line(self, ppu):
        start_frame(ppu)
        tick(ppu, PPU.OAM_TICKS - 1)
        assert ppu.lcd.mode == PPUMode.OAM
        tick(ppu, 1)
        assert ppu.lcd.mode == PPUMode.TRANSFER
        tick(ppu, PPU.TRANSFER_END - PPU.OAM_TICKS - 1)
        assert ppu.lcd.mode == PPUMode.TRANSFER
        tick(ppu, 1)
        assert ppu.lcd.mode == PPUMode.HBLANK
        tick(ppu, PPU.TICKS_PER_LINE - PPU.TRANSFER_END)
        assert ppu.lcd.mode == PPUMode.OAM
        assert ppu.lcd.ly == 1

    def test_vblank_at_line_144(self, ppu, memory):
        start_frame(ppu)
        memory.interrupts.flags = 0
        tick(ppu, PPU.SCREEN_HEIGHT * PPU.TICKS_PER_LINE)
        assert ppu.lcd.ly == 144
        assert ppu.lcd.mode == PPUMode.VBLANK
        assert requested(memory, Interrupt.VBLANK)

    def test_one_frame_per_70224_ticks(self, ppu):
        start_frame(ppu)
        frames = ppu.frame_count
        tick(ppu, PPU.LINES_PER_FRAME * PPU.TICKS_PER_LINE)
        assert ppu.frame_count == frames + 1
        assert ppu.lcd.ly == 0
        assert ppu.lcd.mode == PPUMode.OAM

    def test_vblank_callback(self, ppu):
        calls = []
        ppu.on_vblank = lambda: calls.append(ppu.lcd.ly)
        start_frame(ppu)
        tick(ppu, 2 * PPU.LINES_PER_FRAME * PPU.TICKS_PER_LINE)
        assert calls == [144, 144]

    def test_save_hook_only_when_dirty(self, memory, make_rom):
        memory.load_cartridge(Cartridge(make_rom(cart_type=0x03, ram_size_code=2)))
        ppu = PPU(memory)
        saves = []
        ppu.on_save = lambda: saves.append(True)

        start_frame(ppu)
        tick(ppu, PPU.LINES_PER_FRAME * PPU.TICKS_PER_LINE)
        assert saves == []

        memory.write(0x0000, 0x0A)
        memory.write(0xA000, 0x01)
        tick(ppu, PPU.LINES_PER_FRAME * PPU.TICKS_PER_LINE)
        assert saves == [True]


class TestSTAT:
    def test_lyc_coincidence(self, ppu, memory):
        memory.write(LCDRegisters.STAT, 0x40)
        memory.write(LCDRegisters.LYC, 5)
        start_frame(ppu)
        memory.interrupts.flags = 0

        tick(ppu, 5 * PPU.TICKS_PER_LINE)
        assert ppu.lcd.ly == 5
        assert ppu.lcd.lyc_match
        assert memory.read(LCDRegisters.STAT) & 0x04
        assert requested(memory, Interrupt.LCD_STAT)

        tick(ppu, PPU.TICKS_PER_LINE)
        assert not ppu.lcd.lyc_match

    def test_coincidence_flag_without_interrupt(self, ppu, memory):
        memory.write(LCDRegisters.LYC, 3)
        start_frame(ppu)
        memory.interrupts.flags = 0
        tick(ppu, 3 * PPU.TICKS_PER_LINE)
        assert ppu.lcd.lyc_match
        assert not requested(memory, Interrupt.LCD_STAT)

    def test_hblank_source(self, ppu, memory):
        memory.write(LCDRegisters.STAT, 0x08)
        start_frame(ppu)
        memory.interrupts.flags = 0
        tick(ppu, PPU.TRANSFER_END)
        assert requested(memory, Interrupt.LCD_STAT)

    def test_oam_source(self, ppu, memory):
        start_frame(ppu)
        memory.write(LCDRegisters.STAT, 0x20)
        memory.interrupts.flags = 0
        tick(ppu, PPU.TRANSFER_END)
        assert not requested(memory, Interrupt.LCD_STAT)
        tick(ppu, PPU.TICKS_PER_LINE - PPU.TRANSFER_END)
        assert requested(memory, Interrupt.LCD_STAT)

    def test_vblank_source(self, ppu, memory):
        memory.write(LCDRegisters.STAT, 0x10)
        start_frame(ppu)
        memory.interrupts.flags = 0
        tick(ppu, PPU.SCREEN_HEIGHT * PPU.TICKS_PER_LINE)
        assert requested(memory, Interrupt.LCD_STAT)


class TestBackground:
    def test_tile_from_map(self, ppu, memory):
        # Tile 1: left half colour 1, right half colour 2
        write_tile(memory, 0x8010, 0xF0, 0x0F)
        memory.write(0x9800, 1)
        render_first_line(ppu)
        assert list(ppu.framebuffer[0, :8]) == [1, 1, 1, 1, 2, 2, 2, 2]
        assert ppu.framebuffer[0, 8] == 0
        assert list(ppu.bg_index[:8]) == [1, 1, 1, 1, 2, 2, 2, 2]

    def test_palette_mapping(self, ppu, memory):
        write_tile(memory, 0x8000, 0xFF, 0x00)
        memory.write(LCDRegisters.BGP, 0b00001100)  # colour 1 -> black
        render_first_line(ppu)
        assert (ppu.framebuffer[0] == 3).all()
        assert (ppu.bg_index == 1).all()

    def test_horizontal_scroll(self, ppu, memory):
        write_tile(memory, 0x8010, 0xF0, 0x0F)
        memory.write(0x9800, 1)
        memory.write(LCDRegisters.SCX, 4)
        render_first_line(ppu)
        assert list(ppu.framebuffer[0, :5]) == [2, 2, 2, 2, 0]

    def test_vertical_scroll(self, ppu, memory):
        write_tile(memory, 0x8010, 0xFF, 0xFF)
        memory.write(0x9800 + 32, 1)  # second row of tiles
        memory.write(LCDRegisters.SCY, 8)
        render_first_line(ppu)
        assert list(ppu.framebuffer[0, :9]) == [3] * 8 + [0]

    def test_signed_tile_data(self, ppu, memory):
        memory.write(LCDRegisters.LCDC, LCD_BG & ~0x10)
        write_tile(memory, 0x9000, 0xFF, 0x00)   # tile 0 in 0x8800 mode
        write_tile(memory, 0x8800, 0x00, 0xFF)   # tile 0x80
        memory.write(0x9801, 0x80)
        render_first_line(ppu)
        assert ppu.framebuffer[0, 0] == 1
        assert ppu.framebuffer[0, 8] == 2

    def test_disabled_background_is_white(self, ppu, memory):
        write_tile(memory, 0x8000, 0xFF, 0xFF)
        memory.write(LCDRegisters.LCDC, LCD_BG & ~0x01)
        render_first_line(ppu)
        assert (ppu.framebuffer[0] == 0).all()
        assert (ppu.bg_index == 0).all()


class TestWindow:
    def test_window_covers_right_side(self, ppu, memory):
        memory.write(LCDRegisters.LCDC, LCD_BG_WINDOW)
        memory.write(LCDRegisters.WY, 0)
        memory.write(LCDRegisters.WX, 7 + 80)
        write_tile(memory, 0x8010, 0xFF, 0xFF)
        memory.write(0x9C00, 1)
        render_first_line(ppu)
        assert (ppu.framebuffer[0, :80] == 0).all()
        assert (ppu.framebuffer[0, 80:88] == 3).all()
        assert ppu.framebuffer[0, 88] == 0
        assert ppu.window_line == 1

    def test_window_below_wy_not_drawn(self, ppu, memory):
        memory.write(LCDRegisters.LCDC, LCD_BG_WINDOW)
        memory.write(LCDRegisters.WY, 10)
        memory.write(LCDRegisters.WX, 7)
        write_tile(memory, 0x8010, 0xFF, 0xFF)
        memory.write(0x9C00, 1)
        render_first_line(ppu)
        assert (ppu.framebuffer[0] == 0).all()
        assert ppu.window_line == 0

    @pytest.mark.parametrize("wx", [0, 3, 6])
    def test_wx_below_seven_hides_window(self, ppu, memory, wx):
        memory.write(LCDRegisters.LCDC, LCD_BG_WINDOW)
        memory.write(LCDRegisters.WY, 0)
        memory.write(LCDRegisters.WX, wx)
        write_tile(memory, 0x8010, 0xFF, 0xFF)
        for i in range(32):
            memory.write(0x9C00 + i, 1)
        render_first_line(ppu)
        assert (ppu.framebuffer[0] == 0).all()
        assert ppu.window_line == 0

    def test_wx_seven_starts_at_left_edge(self, ppu, memory):
        memory.write(LCDRegisters.LCDC, LCD_BG_WINDOW)
        memory.write(LCDRegisters.WX, 7)
        write_tile(memory, 0x8010, 0xFF, 0xFF)
        memory.write(0x9C00, 1)
        render_first_line(ppu)
        assert list(ppu.framebuffer[0, :9]) == [3] * 8 + [0]
        assert ppu.window_line == 1

    def test_window_line_resets_each_frame(self, ppu, memory):
        memory.write(LCDRegisters.LCDC, LCD_BG_WINDOW)
        memory.write(LCDRegisters.WX, 7)
        start_frame(ppu)
        tick(ppu, PPU.SCREEN_HEIGHT * PPU.TICKS_PER_LINE)
        assert ppu.window_line == PPU.SCREEN_HEIGHT
        tick(ppu, 1)
        assert ppu.window_line == 0


class TestSprites:
    @pytest.fixture(autouse=True)
    def sprites_on(self, memory):
        memory.write(LCDRegisters.LCDC, LCD_BG_SPRITES)

    def test_sprite_drawn(self, ppu, memory):
        write_tile(memory, 0x8020, 0xFF, 0xFF)
        write_sprite(memory, 0, y=16, x=8, tile=2)
        render_first_line(ppu)
        assert (ppu.framebuffer[0, :8] == 3).all()
        assert ppu.framebuffer[0, 8] == 0

    def test_colour_zero_is_transparent(self, ppu, memory):
        write_tile(memory, 0x8000, 0x00, 0xFF)   # background colour 2
        write_tile(memory, 0x8020, 0xF0, 0x00)
        write_sprite(memory, 0, y=16, x=8, tile=2)
        render_first_line(ppu)
        assert list(ppu.framebuffer[0, :8]) == [1, 1, 1, 1, 2, 2, 2, 2]

    def test_flip_x(self, ppu, memory):
        write_tile(memory, 0x8020, 0xF0, 0x00)
        write_sprite(memory, 0, y=16, x=8, tile=2, attr=0x20)
        render_first_line(ppu)
        assert list(ppu.framebuffer[0, :8]) == [0, 0, 0, 0, 1, 1, 1, 1]

    def test_flip_y(self, ppu, memory):
        # Only the bottom row of tile 2 is set
        memory.write(0x8020 + 14, 0xFF)
        write_sprite(memory, 0, y=16, x=8, tile=2, attr=0x40)
        render_first_line(ppu)
        assert (ppu.framebuffer[0, :8] == 1).all()

    def test_obp1(self, ppu, memory):
        memory.write(LCDRegisters.OBP1, 0x1B)
        write_tile(memory, 0x8020, 0xFF, 0x00)
        write_sprite(memory, 0, y=16, x=8, tile=2, attr=0x10)
        render_first_line(ppu)
        assert ppu.framebuffer[0, 0] == 2

    def test_behind_non_zero_background(self, ppu, memory):
        write_tile(memory, 0x8000, 0x00, 0xFF)
        write_tile(memory, 0x8020, 0xFF, 0xFF)
        write_sprite(memory, 0, y=16, x=8, tile=2, attr=0x80)
        render_first_line(ppu)
        assert (ppu.framebuffer[0, :8] == 2).all()

    def test_behind_uses_colour_index_not_shade(self, ppu, memory):
        # BG colour 0 mapped to black still lets the sprite through
        memory.write(LCDRegisters.BGP, 0xE7)
        write_tile(memory, 0x8020, 0xFF, 0x00)
        write_sprite(memory, 0, y=16, x=8, tile=2, attr=0x80)
        render_first_line(ppu)
        assert (ppu.framebuffer[0, :8] == 1).all()
        assert ppu.framebuffer[0, 8] == 3

    def test_lower_x_wins_overlap(self, ppu, memory):
        write_tile(memory, 0x8020, 0xFF, 0x00)   # colour 1
        write_tile(memory, 0x8030, 0xFF, 0xFF)   # colour 3
        write_sprite(memory, 0, y=16, x=12, tile=2)
        write_sprite(memory, 1, y=16, x=8, tile=3)
        render_first_line(ppu)
        assert (ppu.framebuffer[0, :8] == 3).all()
        assert (ppu.framebuffer[0, 8:12] == 1).all()

    def test_lower_oam_index_wins_tie(self, ppu, memory):
        write_tile(memory, 0x8020, 0xFF, 0x00)
        write_tile(memory, 0x8030, 0xFF, 0xFF)
        write_sprite(memory, 0, y=16, x=8, tile=2)
        write_sprite(memory, 1, y=16, x=8, tile=3)
        render_first_line(ppu)
        assert (ppu.framebuffer[0, :8] == 1).all()

    def test_ten_per_line(self, ppu, memory):
        write_tile(memory, 0x8020, 0xFF, 0xFF)
        for i in range(11):
            write_sprite(memory, i, y=16, x=8 + i * 12, tile=2)
        render_first_line(ppu)
        assert len(ppu.sprites) == PPU.MAX_SPRITES_PER_LINE
        assert ppu.framebuffer[0, 9 * 12] == 3
        assert ppu.framebuffer[0, 10 * 12] == 0

    def test_tall_sprites(self, ppu, memory):
        memory.write(LCDRegisters.LCDC, LCD_BG_SPRITES | 0x04)
        write_tile(memory, 0x8030, 0xFF, 0xFF)    # lower half (tile 3)
        write_sprite(memory, 0, y=16 - 8, x=8, tile=3)
        render_first_line(ppu)
        assert len(ppu.sprites) == 1
        assert (ppu.framebuffer[0, :8] == 3).all()

    def test_hidden_when_disabled(self, ppu, memory):
        memory.write(LCDRegisters.LCDC, LCD_BG)
        write_tile(memory, 0x8020, 0xFF, 0xFF)
        write_sprite(memory, 0, y=16, x=8, tile=2)
        render_first_line(ppu)
        assert (ppu.framebuffer[0] == 0).all()


class TestTileSheet:
    def test_shape_and_content(self, ppu, memory):
        write_tile(memory, 0x8010, 0xFF, 0x00)
        sheet = ppu.tile_sheet()
        assert sheet.shape == (192, 128)
        assert sheet.dtype == np.uint8
        assert (sheet[0:8, 8:16] == 1).all()
        assert (sheet[0:8, 0:8] == 0).all()
