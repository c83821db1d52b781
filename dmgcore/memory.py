"""
Game Boy memory bus.
Routes the 16-bit address space to the cartridge, RAM blocks and I/O peripherals.
"""

import logging
from typing import Optional

import numpy as np

from .cartridge import Cartridge
from .dma import DMA
from .errors import UnsupportedAddressError
from .interrupts import InterruptController
from .joypad import Joypad
from .lcd import LCDRegisters
from .serial import Serial
from .timer import Timer

logger = logging.getLogger(__name__)


class Memory:
    """
    Game Boy Memory Management Unit.

    Memory Map:
    0x0000-0x3FFF: ROM Bank 0 (16KB)
    0x4000-0x7FFF: ROM Bank N (16KB, switchable)
    0x8000-0x9FFF: VRAM (8KB)
    0xA000-0xBFFF: External RAM (8KB, bank switchable)
    0xC000-0xDFFF: WRAM (8KB)
    0xE000-0xFDFF: Echo RAM (mirror of C000-DDFF)
    0xFE00-0xFE9F: OAM (Sprite Attribute Table)
    0xFEA0-0xFEFF: Not usable
    0xFF00-0xFF7F: I/O Registers
    0xFF80-0xFFFE: HRAM (High RAM)
    0xFFFF: Interrupt Enable Register
    """

    def __init__(self, serial_echo: bool = False):
        self.vram = np.zeros(0x2000, dtype=np.uint8)
        self.wram = np.zeros(0x2000, dtype=np.uint8)
        self.oam = np.zeros(0xA0, dtype=np.uint8)
        self.hram = np.zeros(0x7F, dtype=np.uint8)

        self.cartridge: Optional[Cartridge] = None

        # Peripherals
        self.interrupts = InterruptController()
        self.timer = Timer(self.interrupts)
        self.lcd = LCDRegisters()
        self.joypad = Joypad(self.interrupts)
        self.serial = Serial(self.interrupts, echo=serial_echo)
        self.dma = DMA(self)

    def load_cartridge(self, cartridge: Cartridge):
        self.cartridge = cartridge

    def read(self, addr: int) -> int:
        """Read a byte from memory."""
        addr = int(addr) & 0xFFFF

        # ROM
        if addr < 0x8000:
            if self.cartridge is None:
                raise UnsupportedAddressError(addr)
            return self.cartridge.read(addr)

        # VRAM
        if addr < 0xA000:
            return int(self.vram[addr - 0x8000])

        # External RAM
        if addr < 0xC000:
            if self.cartridge is None:
                raise UnsupportedAddressError(addr)
            return self.cartridge.read(addr)

        # WRAM
        if addr < 0xE000:
            return int(self.wram[addr - 0xC000])

        # Echo RAM
        if addr < 0xFE00:
            return int(self.wram[addr - 0xE000])

        # OAM, locked while DMA is running
        if addr < 0xFEA0:
            if self.dma.active:
                return 0xFF
            return int(self.oam[addr - 0xFE00])

        # Not usable
        if addr < 0xFF00:
            return 0xFF

        # I/O Registers
        if addr < 0xFF80:
            return self._read_io(addr)

        # HRAM
        if addr < 0xFFFF:
            return int(self.hram[addr - 0xFF80])

        # IE Register
        return self.interrupts.read_ie()

    def write(self, addr: int, value: int):
        """Write a byte to memory."""
        addr = int(addr) & 0xFFFF
        value = int(value) & 0xFF

        # ROM (MBC control)
        if addr < 0x8000:
            if self.cartridge is None:
                raise UnsupportedAddressError(addr, write=True)
            self.cartridge.write(addr, value)
            return

        # VRAM
        if addr < 0xA000:
            self.vram[addr - 0x8000] = value
            return

        # External RAM
        if addr < 0xC000:
            if self.cartridge is None:
                raise UnsupportedAddressError(addr, write=True)
            self.cartridge.write(addr, value)
            return

        # WRAM
        if addr < 0xE000:
            self.wram[addr - 0xC000] = value
            return

        # Echo RAM
        if addr < 0xFE00:
            self.wram[addr - 0xE000] = value
            return

        # OAM; CPU writes are not blocked by DMA
        if addr < 0xFEA0:
            self.oam[addr - 0xFE00] = value
            return

        # Not usable
        if addr < 0xFF00:
            return

        # I/O Registers
        if addr < 0xFF80:
            self._write_io(addr, value)
            return

        # HRAM
        if addr < 0xFFFF:
            self.hram[addr - 0xFF80] = value
            return

        # IE Register
        self.interrupts.write_ie(value)

    def read16(self, addr: int) -> int:
        lo = self.read(addr)
        hi = self.read((int(addr) + 1) & 0xFFFF)
        return (hi << 8) | lo

    def write16(self, addr: int, value: int):
        self.write(addr, int(value) & 0xFF)
        self.write((int(addr) + 1) & 0xFFFF, (int(value) >> 8) & 0xFF)

    def _read_io(self, addr: int) -> int:
        """Read from I/O registers."""
        if addr == Joypad.ADDRESS:
            return self.joypad.read()
        if addr in (Serial.SB, Serial.SC):
            return self.serial.read(addr)
        if Timer.DIV <= addr <= Timer.TAC:
            return self.timer.read(addr)
        if addr == InterruptController.IF_ADDRESS:
            return self.interrupts.read_if()
        if 0xFF10 <= addr <= 0xFF3F:
            # Sound is not emulated
            return 0xFF
        if LCDRegisters.LCDC <= addr <= LCDRegisters.WX:
            return self.lcd.read(addr)

        logger.debug("Read from unmapped I/O 0x%04X", addr)
        return 0xFF

    def _write_io(self, addr: int, value: int):
        """Write to I/O registers."""
        if addr == Joypad.ADDRESS:
            self.joypad.write(value)
            return
        if addr in (Serial.SB, Serial.SC):
            self.serial.write(addr, value)
            return
        if Timer.DIV <= addr <= Timer.TAC:
            self.timer.write(addr, value)
            return
        if addr == InterruptController.IF_ADDRESS:
            self.interrupts.write_if(value)
            return
        if 0xFF10 <= addr <= 0xFF3F:
            return
        if LCDRegisters.LCDC <= addr <= LCDRegisters.WX:
            self.lcd.write(addr, value)
            if addr == LCDRegisters.DMA:
                self.dma.start(value)
            return

        logger.debug("Write 0x%02X to unmapped I/O 0x%04X", value, addr)
