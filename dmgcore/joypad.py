"""
Joypad register (0xFF00).
Composes eight button states with the select lines written by the game.
"""

from enum import IntEnum
from typing import Mapping, Optional

from .interrupts import Interrupt, InterruptController


class Button(IntEnum):
    """Bit position in the joypad state byte."""
    A = 0
    B = 1
    SELECT = 2
    START = 3
    RIGHT = 4
    LEFT = 5
    UP = 6
    DOWN = 7


class Joypad:
    """
    P1 register. Bit 5 low selects the action buttons, bit 4 low selects the
    d-pad; pressed buttons in a selected group read as 0 in bits 0-3.
    """

    ADDRESS = 0xFF00

    def __init__(self, interrupts: Optional[InterruptController] = None):
        self.interrupts = interrupts
        self.select = 0x30
        self.state = 0xFF  # All buttons released

    def read(self) -> int:
        result = 0xC0 | self.select | 0x0F

        if not (self.select & 0x10):
            # Direction keys
            result &= (self.state >> 4) | 0xF0
        if not (self.select & 0x20):
            # Button keys
            result &= (self.state & 0x0F) | 0xF0

        return result

    def write(self, value: int):
        self.select = value & 0x30

    def is_pressed(self, button: Button) -> bool:
        return not (self.state >> button) & 1

    def set_button(self, button: Button, pressed: bool):
        was_pressed = self.is_pressed(button)
        if pressed:
            self.state &= ~(1 << button) & 0xFF
        else:
            self.state |= (1 << button)

        if pressed and not was_pressed and self.interrupts is not None:
            group_bit = 0x10 if button >= Button.RIGHT else 0x20
            if not (self.select & group_bit):
                self.interrupts.request(Interrupt.JOYPAD)

    def press(self, button: Button):
        self.set_button(button, True)

    def release(self, button: Button):
        self.set_button(button, False)

    def set_state(self, buttons: Mapping[Button, bool]):
        """Apply a full snapshot of button states from the input collaborator."""
        for button, pressed in buttons.items():
            self.set_button(button, pressed)
