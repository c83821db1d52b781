"""
Game Boy timer.
DIV, TIMA, TMA and TAC, including the delayed TIMA reload after overflow.
"""

from .interrupts import Interrupt, InterruptController


class Timer:
    """
    DIV is the high byte of a 16-bit counter that advances every tick.
    TIMA counts at the TAC-selected rate; when it wraps it reads 0 for a
    few ticks before being reloaded from TMA and raising the timer interrupt.
    """

    DIV = 0xFF04
    TIMA = 0xFF05
    TMA = 0xFF06
    TAC = 0xFF07

    # Ticks per TIMA increment, indexed by TAC bits 0-1
    RATES = (1024, 16, 64, 256)

    # Ticks between the wrap and the TMA reload
    OVERFLOW_DELAY = 4

    def __init__(self, interrupts: InterruptController):
        self.interrupts = interrupts
        self.div = 0xABCC
        self.tima = 0x00
        self.tma = 0x00
        self.tac = 0xF8

        # Overflow window state
        self.overflow = False
        self.overflow_ticks = 0
        self.reload = False

    @property
    def enabled(self) -> bool:
        return (self.tac & 0x04) != 0

    @property
    def rate(self) -> int:
        return self.RATES[self.tac & 0x03]

    def tick(self):
        """Advance one tick."""
        self.div = (self.div + 1) & 0xFFFF

        if not self.enabled:
            self._cancel_overflow()
            return

        if self.overflow:
            self.overflow_ticks += 1
            if self.overflow_ticks == self.OVERFLOW_DELAY - 1 and self.tima == 0:
                self.reload = True
            if self.overflow_ticks >= self.OVERFLOW_DELAY:
                if self.reload:
                    self.tima = self.tma
                    self.interrupts.request(Interrupt.TIMER)
                self._cancel_overflow()
            return

        if self.div % self.rate == 0:
            self.tima = (self.tima + 1) & 0xFF
            if self.tima == 0:
                self.overflow = True
                self.overflow_ticks = 0

    def _cancel_overflow(self):
        self.overflow = False
        self.overflow_ticks = 0
        self.reload = False

    def read(self, addr: int) -> int:
        if addr == self.DIV:
            return self.div >> 8
        if addr == self.TIMA:
            return self.tima
        if addr == self.TMA:
            return self.tma
        # Unused TAC bits read as 1
        return self.tac | 0xF8

    def write(self, addr: int, value: int):
        value &= 0xFF
        if addr == self.DIV:
            self.div = 0
        elif addr == self.TIMA:
            # A write lands before the reload unless we are on the reload tick
            if not (self.overflow and self.overflow_ticks >= self.OVERFLOW_DELAY - 1):
                self._cancel_overflow()
            self.tima = value
        elif addr == self.TMA:
            self.tma = value
        elif addr == self.TAC:
            self.tac = value
            if not self.enabled:
                self._cancel_overflow()
