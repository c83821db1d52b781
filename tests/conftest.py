"""
Shared fixtures: hand-built cartridge images and a headless emulator.
"""

import pytest

from dmgcore.cartridge import Header
from dmgcore.emulator import Emulator

PROGRAM_BASE = 0xC000


def build_rom(cart_type: int = 0x00, rom_size_code: int = 0x00, ram_size_code: int = 0x00,
              title: bytes = b"TESTROM", code: bytes = b"", fill_banks: bool = False) -> bytes:
    """A ROM image with a valid header checksum and code at 0x0100."""
    size = (32 * 1024) << rom_size_code
    rom = bytearray(size)

    if fill_banks:
        # First byte of every 16 KiB bank holds the bank number
        for bank in range(size // 0x4000):
            rom[bank * 0x4000] = bank & 0xFF

    rom[0x100:0x100 + len(code)] = code
    rom[0x134:0x134 + len(title)] = title
    rom[0x147] = cart_type
    rom[0x148] = rom_size_code
    rom[0x149] = ram_size_code
    rom[0x14D] = Header.compute_checksum(rom)
    return bytes(rom)


@pytest.fixture
def make_rom():
    return build_rom


@pytest.fixture
def emu():
    """Emulator with no clock, so nothing sleeps."""
    return Emulator()


def load_program(emulator: Emulator, code: bytes, addr: int = PROGRAM_BASE):
    """Write code into WRAM and point PC at it."""
    for i, byte in enumerate(code):
        emulator.memory.write(addr + i, byte)
    emulator.cpu.regs.pc = addr


@pytest.fixture
def run_code(emu):
    """Load a program into WRAM and execute a number of instructions."""
    def _run(code: bytes, steps: int = 1):
        load_program(emu, code)
        for _ in range(steps):
            emu.step()
        return emu.cpu
    return _run


@pytest.fixture
def program(emu):
    """Load code into WRAM without running it."""
    def _load(code: bytes, addr: int = PROGRAM_BASE):
        load_program(emu, code, addr)
    return _load
