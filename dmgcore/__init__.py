"""
DMG Game Boy emulator core.
"""

from .cartridge import Cartridge, load_cartridge
from .config import EmulatorConfig
from .emulator import Emulator, FrameClock, RealTimeClock
from .errors import (
    CartridgeError, EmulatorError, InvalidOpcodeError, StopError, UnsupportedAddressError,
)
from .joypad import Button

__all__ = [
    'Button',
    'Cartridge',
    'CartridgeError',
    'Emulator',
    'EmulatorConfig',
    'EmulatorError',
    'FrameClock',
    'InvalidOpcodeError',
    'RealTimeClock',
    'StopError',
    'UnsupportedAddressError',
    'load_cartridge',
]
