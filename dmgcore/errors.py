"""
Emulator error types.
Everything fatal to an emulation session derives from EmulatorError.
"""


class EmulatorError(Exception):
    """Base class for conditions that end an emulation session."""


class CartridgeError(EmulatorError):
    """The cartridge image could not be loaded."""


class InvalidOpcodeError(EmulatorError):
    """An opcode with no hardware meaning was executed."""

    def __init__(self, opcode: int, pc: int):
        super().__init__(f"Invalid opcode 0x{opcode:02X} at PC=0x{pc:04X}")
        self.opcode = opcode
        self.pc = pc


class UnsupportedAddressError(EmulatorError):
    """The bus was asked to route an address nothing is mapped to."""

    def __init__(self, address: int, write: bool = False):
        kind = "write to" if write else "read from"
        super().__init__(f"Unsupported {kind} 0x{address:04X}")
        self.address = address
        self.write = write


class StopError(EmulatorError):
    """STOP was executed; low-power mode is not emulated."""

    def __init__(self, pc: int):
        super().__init__(f"STOP executed at PC=0x{pc:04X}")
        self.pc = pc
