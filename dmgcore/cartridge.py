"""
Game Boy cartridge.
Header parsing, checksum validation, MBC1 banking and battery-backed saves.
"""

import logging
import os
from pathlib import Path
from typing import List, Optional, Union

import numpy as np

from .cartridge_info import cartridge_type_name, licensee_name
from .errors import CartridgeError

logger = logging.getLogger(__name__)


class Header:
    """Decoded cartridge header (0x0134-0x014D)."""

    TITLE = slice(0x134, 0x144)
    NEW_LICENSEE = slice(0x144, 0x146)
    TYPE = 0x147
    ROM_SIZE = 0x148
    RAM_SIZE = 0x149
    OLD_LICENSEE = 0x14B
    VERSION = 0x14C
    CHECKSUM = 0x14D

    # RAM size code -> KiB
    RAM_SIZES = {0: 0, 1: 0, 2: 8, 3: 32, 4: 128, 5: 64}

    def __init__(self, rom: bytes):
        if len(rom) < 0x150:
            raise CartridgeError(f"ROM image too small ({len(rom)} bytes)")

        self.title = ''.join(
            chr(b) for b in rom[self.TITLE]
            if chr(b).isascii() and (chr(b).isalnum() or chr(b) == ' ')
        )
        self.cart_type = rom[self.TYPE]
        self.rom_size_kib = 32 << rom[self.ROM_SIZE]
        self.ram_size_kib = self.RAM_SIZES.get(rom[self.RAM_SIZE], 0)
        self.old_licensee = rom[self.OLD_LICENSEE]
        self.new_licensee = bytes(rom[self.NEW_LICENSEE]).decode('ascii', errors='replace')
        self.licensee = licensee_name(self.old_licensee, self.new_licensee)
        self.version = rom[self.VERSION]
        self.checksum = rom[self.CHECKSUM]
        self.computed_checksum = self.compute_checksum(rom)

    @staticmethod
    def compute_checksum(rom: bytes) -> int:
        checksum = 0
        for addr in range(0x134, 0x14D):
            checksum = checksum - rom[addr] - 1
        return checksum & 0xFF

    @property
    def checksum_ok(self) -> bool:
        return self.checksum == self.computed_checksum

    @property
    def type_name(self) -> str:
        return cartridge_type_name(self.cart_type)

    @property
    def is_mbc1(self) -> bool:
        return 0x01 <= self.cart_type <= 0x03

    @property
    def has_battery(self) -> bool:
        return self.cart_type == 0x03

    def describe(self) -> List[str]:
        return [
            f"Title    : {self.title}",
            f"Type     : {self.type_name} (0x{self.cart_type:02X})",
            f"ROM Size : {self.rom_size_kib} KiB",
            f"RAM Size : {self.ram_size_kib} KiB",
            f"Licensee : {self.licensee}",
            f"Version  : {self.version}",
            f"Checksum : {'Passed' if self.checksum_ok else 'Failed'}",
        ]


class MBC:
    """No MBC - 32KB ROM mapped straight through."""

    def __init__(self, rom: np.ndarray, header: Header):
        self.rom = rom
        self.header = header
        self.ram = np.zeros(header.ram_size_kib * 1024, dtype=np.uint8)
        self.ram_enabled = False
        self.needs_save = False

    def read_rom(self, addr: int) -> int:
        if addr < len(self.rom):
            return int(self.rom[addr])
        return 0xFF

    def write_rom(self, addr: int, value: int):
        """ROM-only carts ignore writes to the ROM area."""
        pass

    def read_ram(self, addr: int) -> int:
        return 0xFF

    def write_ram(self, addr: int, value: int):
        pass


class MBC1(MBC):
    """MBC1 - Up to 2MB ROM, 32KB RAM."""

    def __init__(self, rom: np.ndarray, header: Header):
        super().__init__(rom, header)
        self.rom_bank = 1
        self.ram_bank = 0
        self.mode = 0  # 0 = ROM banking, 1 = RAM banking
        self.rom_bank_mask = self._bank_mask(header.rom_size_kib)

    @staticmethod
    def _bank_mask(rom_size_kib: int) -> int:
        masks = {32: 0b1, 64: 0b11, 128: 0b111, 256: 0b1111}
        return masks.get(rom_size_kib, 0b11111)

    def _upper_bits(self) -> int:
        """Extra bank bits taken from the RAM bank register on large ROMs."""
        size = self.header.rom_size_kib
        if size == 1024:
            return (self.ram_bank & 0b1) << 5
        if size == 2048:
            return self.ram_bank << 5
        return 0

    def write_rom(self, addr: int, value: int):
        if addr < 0x2000:
            # RAM Enable
            self.ram_enabled = (value & 0x0F) == 0x0A
        elif addr < 0x4000:
            # ROM Bank Number, 0 maps to 1
            if (value & 0x1F) == 0:
                self.rom_bank = 1
            else:
                self.rom_bank = value & self.rom_bank_mask
        elif addr < 0x6000:
            # RAM Bank / Upper ROM Bank
            self.ram_bank = value & 0x03
        else:
            # Banking Mode
            self.mode = value & 0x01

    def read_rom(self, addr: int) -> int:
        if addr < 0x4000:
            bank = self._upper_bits() if self.mode else 0
            index = bank * 0x4000 + addr
        else:
            bank = self.rom_bank | self._upper_bits()
            index = bank * 0x4000 + (addr - 0x4000)
        return int(self.rom[index % len(self.rom)])

    def _ram_index(self, addr: int) -> int:
        offset = addr - 0xA000
        if self.header.ram_size_kib == 32 and self.mode:
            return 0x2000 * self.ram_bank + offset
        return offset % len(self.ram)

    def read_ram(self, addr: int) -> int:
        if self.ram_enabled and len(self.ram) > 0:
            return int(self.ram[self._ram_index(addr)])
        return 0xFF

    def write_ram(self, addr: int, value: int):
        if self.ram_enabled and len(self.ram) > 0:
            self.ram[self._ram_index(addr)] = value
            self.needs_save = True


class Cartridge:
    """A loaded cartridge image and its bank controller."""

    def __init__(self, rom_data: bytes, save_path: Optional[Union[str, Path]] = None):
        self.header = Header(rom_data)

        if not self.header.checksum_ok:
            raise CartridgeError(
                f"Header checksum mismatch: expected 0x{self.header.checksum:02X}, "
                f"computed 0x{self.header.computed_checksum:02X}"
            )

        rom = np.frombuffer(bytes(rom_data), dtype=np.uint8).copy()
        if self.header.is_mbc1:
            self.mbc = MBC1(rom, self.header)
        elif self.header.cart_type == 0x00:
            self.mbc = MBC(rom, self.header)
        else:
            raise CartridgeError(f"Unsupported cartridge type: {self.header.type_name} "
                                 f"(0x{self.header.cart_type:02X})")

        self.save_path = Path(save_path) if save_path is not None else None
        if self.header.has_battery:
            self.load_battery()

    @classmethod
    def from_file(cls, path: Union[str, os.PathLike]) -> 'Cartridge':
        path = Path(path)
        try:
            data = path.read_bytes()
        except OSError as e:
            raise CartridgeError(f"Cannot read ROM {path}: {e}") from e
        return cls(data, save_path=path.with_suffix('.sav'))

    @property
    def title(self) -> str:
        return self.header.title

    @property
    def ram(self) -> np.ndarray:
        return self.mbc.ram

    @property
    def needs_save(self) -> bool:
        return self.mbc.needs_save

    @property
    def has_battery(self) -> bool:
        return self.header.has_battery

    def read(self, addr: int) -> int:
        if addr < 0x8000:
            return self.mbc.read_rom(addr)
        return self.mbc.read_ram(addr)

    def write(self, addr: int, value: int):
        if addr < 0x8000:
            self.mbc.write_rom(addr, value)
        else:
            self.mbc.write_ram(addr, value)

    def load_battery(self):
        """Fill cartridge RAM from the save file, if there is one."""
        if self.save_path is None or len(self.mbc.ram) == 0:
            return
        try:
            data = self.save_path.read_bytes()
        except FileNotFoundError:
            return
        except OSError as e:
            logger.warning("Could not read save file %s: %s", self.save_path, e)
            return

        count = min(len(data), len(self.mbc.ram))
        self.mbc.ram[:count] = np.frombuffer(data[:count], dtype=np.uint8)
        logger.info("Loaded save file %s", self.save_path)

    def save_battery(self):
        """Write cartridge RAM out to the save file."""
        self.mbc.needs_save = False
        if self.save_path is None or not self.has_battery:
            return
        try:
            self.save_path.write_bytes(self.mbc.ram.tobytes())
        except OSError as e:
            logger.warning("Could not write save file %s: %s", self.save_path, e)
            return
        logger.debug("Saved cartridge RAM to %s", self.save_path)


def load_cartridge(path: Union[str, os.PathLike]) -> Cartridge:
    cart = Cartridge.from_file(path)
    for line in cart.header.describe():
        logger.info(line)
    return cart
