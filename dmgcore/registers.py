"""
SM83 register file.
Eight 8-bit registers, SP and PC, with AF/BC/DE/HL exposed as pair views.
"""

from enum import Enum
from typing import Dict, Tuple, Union

from .bits import U8, U16


class RegType(Enum):
    NONE = 0
    A = 1
    F = 2
    B = 3
    C = 4
    D = 5
    E = 6
    H = 7
    L = 8
    AF = 9
    BC = 10
    DE = 11
    HL = 12
    SP = 13
    PC = 14


# Tri-state flag arguments for RegisterFile.set_flags
UNCHANGED = -1
CLEAR = 0
SET = 1

REG8 = (RegType.A, RegType.F, RegType.B, RegType.C,
        RegType.D, RegType.E, RegType.H, RegType.L)

PAIRS: Dict[RegType, Tuple[RegType, RegType]] = {
    RegType.AF: (RegType.A, RegType.F),
    RegType.BC: (RegType.B, RegType.C),
    RegType.DE: (RegType.D, RegType.E),
    RegType.HL: (RegType.H, RegType.L),
}

# Operand order used by the CB table and the 0x40-0xBF blocks; HL means (HL)
CB_REGISTERS = (RegType.B, RegType.C, RegType.D, RegType.E,
                RegType.H, RegType.L, RegType.HL, RegType.A)


class Register:
    """A named storage cell. Holds a U8 or U16 rather than being one."""

    __slots__ = ('name', 'cell')

    def __init__(self, name: RegType, cell: Union[U8, U16]):
        self.name = name
        self.cell = cell

    def __repr__(self) -> str:
        return f"Register({self.name.name}={self.cell!r})"


class RegisterFile:
    """
    CPU registers.

    Flags live in the top nibble of F:
    - Bit 7: Z (Zero)
    - Bit 6: N (Subtract)
    - Bit 5: H (Half Carry)
    - Bit 4: C (Carry)
    """

    FLAG_Z = 7
    FLAG_N = 6
    FLAG_H = 5
    FLAG_C = 4

    # State after the boot ROM hands over to the cartridge
    BOOT_VALUES = {
        RegType.A: 0x01, RegType.F: 0xB0,
        RegType.B: 0x00, RegType.C: 0x13,
        RegType.D: 0x00, RegType.E: 0xD8,
        RegType.H: 0x01, RegType.L: 0x4D,
        RegType.SP: 0xFFFE, RegType.PC: 0x0100,
    }

    def __init__(self):
        self._regs: Dict[RegType, Register] = {}
        for reg in REG8:
            self._regs[reg] = Register(reg, U8())
        for reg in (RegType.SP, RegType.PC):
            self._regs[reg] = Register(reg, U16())
        self.reset()

    def reset(self):
        for reg, value in self.BOOT_VALUES.items():
            self.set(reg, value)

    @staticmethod
    def is_8bit(reg: RegType) -> bool:
        return reg in REG8

    @staticmethod
    def cb_register(index: int) -> RegType:
        return CB_REGISTERS[index & 0x07]

    # Access by name
    def get(self, reg: RegType) -> int:
        if reg is RegType.NONE:
            return 0
        pair = PAIRS.get(reg)
        if pair is not None:
            high, low = pair
            return (self._regs[high].cell.value << 8) | self._regs[low].cell.value
        return self._regs[reg].cell.value

    def set(self, reg: RegType, value: int):
        if reg is RegType.NONE:
            return
        value = int(value)
        pair = PAIRS.get(reg)
        if pair is not None:
            high, low = pair
            self._regs[high].cell.set(value >> 8)
            self._regs[low].cell.set(value)
            if reg is RegType.AF:
                self._regs[RegType.F].cell.set(value & 0xF0)
            return
        if reg is RegType.F:
            value &= 0xF0
        self._regs[reg].cell.set(value)

    def increment(self, reg: RegType):
        mask = 0xFF if self.is_8bit(reg) else 0xFFFF
        self.set(reg, (self.get(reg) + 1) & mask)

    def decrement(self, reg: RegType):
        mask = 0xFF if self.is_8bit(reg) else 0xFFFF
        self.set(reg, (self.get(reg) - 1) & mask)

    # Shorthand for the hot registers
    @property
    def a(self) -> int:
        return self._regs[RegType.A].cell.value

    @a.setter
    def a(self, value: int):
        self._regs[RegType.A].cell.set(value)

    @property
    def f(self) -> int:
        return self._regs[RegType.F].cell.value

    @f.setter
    def f(self, value: int):
        self._regs[RegType.F].cell.set(int(value) & 0xF0)

    @property
    def pc(self) -> int:
        return self._regs[RegType.PC].cell.value

    @pc.setter
    def pc(self, value: int):
        self._regs[RegType.PC].cell.set(value)

    @property
    def sp(self) -> int:
        return self._regs[RegType.SP].cell.value

    @sp.setter
    def sp(self, value: int):
        self._regs[RegType.SP].cell.set(value)

    @property
    def hl(self) -> int:
        return self.get(RegType.HL)

    @hl.setter
    def hl(self, value: int):
        self.set(RegType.HL, value)

    # Flags
    def _flag(self, bit: int) -> bool:
        return self._regs[RegType.F].cell.get_bit(bit)

    def _set_flag(self, bit: int, on: bool):
        cell = self._regs[RegType.F].cell
        if on:
            cell.set_bit(bit)
        else:
            cell.clear_bit(bit)

    @property
    def z(self) -> bool:
        return self._flag(self.FLAG_Z)

    @z.setter
    def z(self, on: bool):
        self._set_flag(self.FLAG_Z, on)

    @property
    def n(self) -> bool:
        return self._flag(self.FLAG_N)

    @n.setter
    def n(self, on: bool):
        self._set_flag(self.FLAG_N, on)

    @property
    def h(self) -> bool:
        return self._flag(self.FLAG_H)

    @h.setter
    def h(self, on: bool):
        self._set_flag(self.FLAG_H, on)

    @property
    def c(self) -> bool:
        return self._flag(self.FLAG_C)

    @c.setter
    def c(self, on: bool):
        self._set_flag(self.FLAG_C, on)

    def set_flags(self, z: int = UNCHANGED, n: int = UNCHANGED,
                  h: int = UNCHANGED, c: int = UNCHANGED):
        """
        Update all four flags at once.
        Each argument is UNCHANGED (-1), or anything truthy/falsy to set/clear.
        """
        for bit, state in ((self.FLAG_Z, z), (self.FLAG_N, n),
                           (self.FLAG_H, h), (self.FLAG_C, c)):
            if state == UNCHANGED:
                continue
            self._set_flag(bit, bool(state))

    def snapshot(self) -> Dict[str, int]:
        """All registers by name, for debug views and the state log."""
        names = REG8 + (RegType.SP, RegType.PC)
        return {reg.name: self.get(reg) for reg in names}
