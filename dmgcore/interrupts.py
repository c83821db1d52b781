"""
Interrupt controller.
IF/IE registers, the IME latch and fixed-priority dispatch.
"""

from enum import IntEnum
from typing import Optional


class Interrupt(IntEnum):
    """Interrupt sources, highest priority first. Value is the IF/IE bit."""
    VBLANK = 0
    LCD_STAT = 1
    TIMER = 2
    SERIAL = 3
    JOYPAD = 4

    @property
    def vector(self) -> int:
        return 0x40 + (self.value << 3)

    @property
    def mask(self) -> int:
        return 1 << self.value


class InterruptController:
    """
    Holds IF (0xFF0F) and IE (0xFFFF) plus the master enable latch.

    EI does not take effect straight away: it sets ime_pending and the CPU
    promotes that to ime after the following instruction.
    """

    IF_ADDRESS = 0xFF0F
    IE_ADDRESS = 0xFFFF

    def __init__(self):
        self.flags = 0x01  # IF reads 0xE1 after boot
        self.enable = 0x00
        self.ime = False
        self.ime_pending = False

    def request(self, source: Interrupt):
        self.flags |= source.mask

    def acknowledge(self, source: Interrupt):
        self.flags &= ~source.mask & 0x1F

    def pending(self) -> int:
        return self.flags & self.enable & 0x1F

    def highest_pending(self) -> Optional[Interrupt]:
        pending = self.pending()
        for source in Interrupt:
            if pending & source.mask:
                return source
        return None

    # Bus view
    def read_if(self) -> int:
        # Unused upper bits read back as 1
        return self.flags | 0xE0

    def write_if(self, value: int):
        self.flags = value & 0x1F

    def read_ie(self) -> int:
        return self.enable

    def write_ie(self, value: int):
        self.enable = value & 0xFF

    def dispatch(self, cpu) -> Optional[Interrupt]:
        """
        Service the single highest-priority pending interrupt.
        Pushes PC, jumps to the source's vector, clears its IF bit and IME,
        and takes the CPU out of HALT. Returns the source serviced, if any.
        """
        source = self.highest_pending()
        if source is None:
            return None

        cpu.cycles(2)
        cpu.push16(cpu.regs.pc)
        cpu.regs.pc = source.vector
        cpu.cycles(1)

        self.acknowledge(source)
        self.ime = False
        cpu.halted = False
        return source
