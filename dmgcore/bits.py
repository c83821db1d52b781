"""
Fixed-width unsigned integers.
All arithmetic wraps modulo 2**bits, matching the hardware's registers and buses.
"""

from typing import Union


def to_signed8(value: int) -> int:
    """Reinterpret the low byte of value as two's complement."""
    value &= 0xFF
    return value - 0x100 if value & 0x80 else value


class _Unsigned:
    """Shared behaviour for U8 and U16."""

    __slots__ = ('_value',)

    BITS = 0
    MASK = 0

    def __init__(self, value: Union[int, '_Unsigned'] = 0):
        self._value = int(value) & self.MASK

    # Value access
    @property
    def value(self) -> int:
        return self._value

    def get(self) -> int:
        return self._value

    def set(self, value: Union[int, '_Unsigned']):
        self._value = int(value) & self.MASK

    # Arithmetic
    def add(self, other: Union[int, '_Unsigned']):
        self._value = (self._value + int(other)) & self.MASK
        return self

    def sub(self, other: Union[int, '_Unsigned']):
        self._value = (self._value - int(other)) & self.MASK
        return self

    def increment(self):
        return self.add(1)

    def decrement(self):
        return self.sub(1)

    def add_signed(self, other: Union[int, '_Unsigned']):
        """Add the operand's low byte as a signed 8-bit displacement."""
        self._value = (self._value + to_signed8(int(other))) & self.MASK
        return self

    # Bits
    def get_bit(self, bit: int) -> bool:
        return (self._value >> bit) & 1 == 1

    def set_bit(self, bit: int):
        self._value = (self._value | (1 << bit)) & self.MASK

    def clear_bit(self, bit: int):
        self._value &= ~(1 << bit) & self.MASK

    def copy(self):
        return type(self)(self._value)

    def __int__(self) -> int:
        return self._value

    def __index__(self) -> int:
        return self._value

    def __eq__(self, other) -> bool:
        if isinstance(other, _Unsigned):
            return self.BITS == other.BITS and self._value == other._value
        if isinstance(other, int):
            return self._value == other
        return NotImplemented

    def __hash__(self) -> int:
        return hash((self.BITS, self._value))

    def __repr__(self) -> str:
        digits = self.BITS // 4
        return f"{type(self).__name__}(0x{self._value:0{digits}X})"


class U8(_Unsigned):
    """8-bit unsigned value."""

    __slots__ = ()

    BITS = 8
    MASK = 0xFF

    def signed(self) -> int:
        return to_signed8(self._value)


class U16(_Unsigned):
    """16-bit unsigned value with byte halves."""

    __slots__ = ()

    BITS = 16
    MASK = 0xFFFF

    @property
    def high(self) -> int:
        return self._value >> 8

    @high.setter
    def high(self, value: int):
        self._value = ((int(value) & 0xFF) << 8) | (self._value & 0xFF)

    @property
    def low(self) -> int:
        return self._value & 0xFF

    @low.setter
    def low(self, value: int):
        self._value = (self._value & 0xFF00) | (int(value) & 0xFF)

    @classmethod
    def from_bytes(cls, high: int, low: int) -> 'U16':
        return cls(((int(high) & 0xFF) << 8) | (int(low) & 0xFF))
