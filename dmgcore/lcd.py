"""
LCD registers (0xFF40-0xFF4B).
LCDC/STAT bit helpers, scroll and window positions, and the DMG palettes.
"""

from enum import IntEnum


class PPUMode(IntEnum):
    """STAT bits 0-1."""
    HBLANK = 0
    VBLANK = 1
    OAM = 2
    TRANSFER = 3


class STATSource(IntEnum):
    """STAT bit that enables each LCD-STAT interrupt source."""
    HBLANK = 3
    VBLANK = 4
    OAM = 5
    LYC = 6


class DisplayColour(IntEnum):
    """Shade written to the framebuffer."""
    WHITE = 0
    LIGHT = 1
    DARK = 2
    BLACK = 3


# RGB for each shade, used by presentation
SHADES_RGB = (
    (0xFF, 0xFF, 0xFF),
    (0xAA, 0xAA, 0xAA),
    (0x55, 0x55, 0x55),
    (0x00, 0x00, 0x00),
)


def palette_lookup(palette: int, colour_index: int) -> int:
    """Map a 2-bit colour index through a BGP/OBP palette byte."""
    return (palette >> (colour_index * 2)) & 0x03


class LCDRegisters:
    """
    LCD control and status registers.

    LCDC bits:
    - 7: LCD enable
    - 6: window tile map (0x9800 / 0x9C00)
    - 5: window enable
    - 4: BG/window tile data (0x8800 signed / 0x8000 unsigned)
    - 3: BG tile map (0x9800 / 0x9C00)
    - 2: OBJ size (8x8 / 8x16)
    - 1: OBJ enable
    - 0: BG/window enable
    """

    LCDC = 0xFF40
    STAT = 0xFF41
    SCY = 0xFF42
    SCX = 0xFF43
    LY = 0xFF44
    LYC = 0xFF45
    DMA = 0xFF46
    BGP = 0xFF47
    OBP0 = 0xFF48
    OBP1 = 0xFF49
    WY = 0xFF4A
    WX = 0xFF4B

    def __init__(self):
        self.lcdc = 0x91
        self.stat = 0x81
        self.scy = 0x00
        self.scx = 0x00
        self.ly = 0x91
        self.lyc = 0x00
        self.dma = 0xFF
        self.bgp = 0xFC
        self.obp0 = 0xFF
        self.obp1 = 0xFF
        self.wy = 0x00
        self.wx = 0x00

    _NAMES = {
        LCDC: 'lcdc', STAT: 'stat', SCY: 'scy', SCX: 'scx', LY: 'ly',
        LYC: 'lyc', DMA: 'dma', BGP: 'bgp', OBP0: 'obp0', OBP1: 'obp1',
        WY: 'wy', WX: 'wx',
    }

    def read(self, addr: int) -> int:
        value = getattr(self, self._NAMES[addr])
        if addr == self.STAT:
            # Bit 7 is unused and reads as 1
            value |= 0x80
        return value

    def write(self, addr: int, value: int):
        value &= 0xFF
        if addr == self.LY:
            # Read-only
            return
        if addr == self.STAT:
            # Mode and coincidence bits are owned by the PPU
            self.stat = (value & 0x78) | (self.stat & 0x07)
            return
        setattr(self, self._NAMES[addr], value)

    # LCDC
    @property
    def lcd_enabled(self) -> bool:
        return (self.lcdc & 0x80) != 0

    @property
    def window_tilemap(self) -> int:
        return 0x9C00 if (self.lcdc & 0x40) else 0x9800

    @property
    def window_enabled(self) -> bool:
        return (self.lcdc & 0x20) != 0

    @property
    def tile_data_unsigned(self) -> bool:
        """True for 0x8000 addressing, False for signed 0x8800 addressing."""
        return (self.lcdc & 0x10) != 0

    @property
    def bg_tilemap(self) -> int:
        return 0x9C00 if (self.lcdc & 0x08) else 0x9800

    @property
    def sprite_height(self) -> int:
        return 16 if (self.lcdc & 0x04) else 8

    @property
    def sprites_enabled(self) -> bool:
        return (self.lcdc & 0x02) != 0

    @property
    def bg_enabled(self) -> bool:
        return (self.lcdc & 0x01) != 0

    # STAT
    @property
    def mode(self) -> PPUMode:
        return PPUMode(self.stat & 0x03)

    @mode.setter
    def mode(self, mode: PPUMode):
        self.stat = (self.stat & ~0x03 & 0xFF) | int(mode)

    @property
    def lyc_match(self) -> bool:
        return (self.stat & 0x04) != 0

    @lyc_match.setter
    def lyc_match(self, match: bool):
        if match:
            self.stat |= 0x04
        else:
            self.stat &= ~0x04 & 0xFF

    def stat_source_enabled(self, source: STATSource) -> bool:
        return (self.stat >> source) & 1 == 1
