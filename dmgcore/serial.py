"""
Serial port registers (SB 0xFF01, SC 0xFF02).
No link partner: a transfer started with the internal clock completes at
once and the outgoing byte is captured, which is how test ROMs print text.
"""

import logging

from .interrupts import Interrupt, InterruptController

logger = logging.getLogger(__name__)


class Serial:
    SB = 0xFF01
    SC = 0xFF02

    def __init__(self, interrupts: InterruptController, echo: bool = False):
        self.interrupts = interrupts
        self.echo = echo
        self.data = 0x00
        self.control = 0x7E
        self.output = bytearray()

    @property
    def text(self) -> str:
        return self.output.decode('ascii', errors='replace')

    def read(self, addr: int) -> int:
        if addr == self.SB:
            return self.data
        return self.control | 0x7E

    def write(self, addr: int, value: int):
        value &= 0xFF
        if addr == self.SB:
            self.data = value
            return

        self.control = value
        if value & 0x81 == 0x81:
            self._transfer()

    def _transfer(self):
        self.output.append(self.data)
        if self.echo and self.data == 0x0A:
            lines = self.text.splitlines()
            logger.info("serial: %s", lines[-1] if lines else "")
        # Nothing is connected, so the byte shifted in is all ones
        self.data = 0xFF
        self.control &= 0x7F
        self.interrupts.request(Interrupt.SERIAL)
