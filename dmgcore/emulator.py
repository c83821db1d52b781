"""
Game Boy Emulator Core
Wires the bus, CPU and PPU together and drives them tick by tick.
"""

import logging
import os
import time
from typing import Callable, Optional, Protocol, Union

import numpy as np

from .cartridge import Cartridge, load_cartridge
from .cpu import CPU
from .debug import StateLogger
from .errors import EmulatorError, UnsupportedAddressError
from .instructions import decode, mnemonic
from .joypad import Button
from .memory import Memory
from .ppu import PPU

logger = logging.getLogger(__name__)


class FrameClock(Protocol):
    """Time source used for frame pacing."""

    def now(self) -> float:
        ...

    def sleep(self, seconds: float) -> None:
        ...


class RealTimeClock:
    """Wall-clock pacing."""

    def now(self) -> float:
        return time.perf_counter()

    def sleep(self, seconds: float) -> None:
        time.sleep(seconds)


class Emulator:
    """
    DMG Emulator - tick orchestration and component integration.

    Clock speed: 4.194304 MHz (one M-cycle = 4 ticks)
    Ticks per frame: 70224 (at 59.73 FPS)

    The CPU reports every M-cycle it spends through cycles(); each one
    advances the timer and PPU by four ticks and the DMA engine by one byte.
    With no clock the emulator runs as fast as it can.
    """

    CLOCK_SPEED = 4194304  # Hz
    TICKS_PER_FRAME = 70224
    TARGET_FPS = CLOCK_SPEED / TICKS_PER_FRAME  # ~59.73

    BUTTON_MAP = {
        'a': Button.A, 'b': Button.B, 'select': Button.SELECT, 'start': Button.START,
        'right': Button.RIGHT, 'left': Button.LEFT, 'up': Button.UP, 'down': Button.DOWN,
    }

    def __init__(self, clock: Optional[FrameClock] = None,
                 state_log: Optional[StateLogger] = None,
                 serial_echo: bool = False):
        self.memory = Memory(serial_echo=serial_echo)
        self.cpu = CPU(self.memory, self.cycles)
        self.ppu = PPU(self.memory)

        # Connect components
        self.ppu.on_save = self.save_battery

        self.clock = clock
        self.state_log = state_log
        self.throttle = True

        # State
        self.running = False
        self.fault: Optional[EmulatorError] = None

        # Timing
        self.ticks = 0
        self.frame_ticks = 0
        self.total_frames = 0
        self._last_frame_time: Optional[float] = None

        # Callbacks
        self.on_frame: Optional[Callable[[np.ndarray], None]] = None

    # Shortcuts to bus-owned peripherals
    @property
    def interrupts(self):
        return self.memory.interrupts

    @property
    def timer(self):
        return self.memory.timer

    @property
    def dma(self):
        return self.memory.dma

    @property
    def joypad(self):
        return self.memory.joypad

    @property
    def serial(self):
        return self.memory.serial

    @property
    def cartridge(self) -> Optional[Cartridge]:
        return self.memory.cartridge

    # ROM loading
    def load_rom(self, filepath: Union[str, os.PathLike]) -> Cartridge:
        """Load a ROM file. Raises CartridgeError if it cannot be used."""
        cart = load_cartridge(filepath)
        self.load_cartridge(cart)
        return cart

    def load_cartridge(self, cart: Cartridge):
        self.memory.load_cartridge(cart)

    # Timing
    def cycles(self, m_cycles: int):
        """Advance everything but the CPU by m_cycles M-cycles."""
        timer = self.memory.timer
        ppu = self.ppu
        dma = self.memory.dma

        for _ in range(m_cycles):
            for _ in range(4):
                timer.tick()
                ppu.tick()
            dma.tick()

            self.ticks += 4
            self.frame_ticks += 4
            if self.frame_ticks >= self.TICKS_PER_FRAME:
                self.frame_ticks -= self.TICKS_PER_FRAME
                self._pace()

    def _pace(self):
        """Sleep until one frame period after the previous frame boundary."""
        if self.clock is None or not self.throttle:
            self._last_frame_time = None
            return

        now = self.clock.now()
        if self._last_frame_time is None:
            self._last_frame_time = now
            return

        target = self._last_frame_time + 1.0 / self.TARGET_FPS
        if now < target:
            self.clock.sleep(target - now)
            self._last_frame_time = target
        else:
            # Running behind; don't try to catch up
            self._last_frame_time = now

    # Execution
    def step(self):
        """Execute one CPU instruction."""
        if self.state_log is not None and not self.cpu.halted:
            self.state_log.log(self.cpu, self.memory)
        self.cpu.step()

    def run_frame(self) -> np.ndarray:
        """Run until the next V-Blank. Returns a copy of the framebuffer."""
        start = self.ppu.frame_count
        while self.ppu.frame_count == start:
            self.step()
        self.total_frames += 1
        return self.ppu.framebuffer.copy()

    def run(self, max_frames: Optional[int] = None) -> Optional[EmulatorError]:
        """
        Main emulation loop.
        Runs until stop() is called, max_frames frames have completed, or an
        EmulatorError ends the session. Returns that error, if any.
        """
        self.running = True
        self.fault = None
        frames = 0

        try:
            while self.running:
                if max_frames is not None and frames >= max_frames:
                    break
                frame = self.run_frame()
                frames += 1
                if self.on_frame:
                    self.on_frame(frame)
        except EmulatorError as e:
            self.fault = e
            logger.error("Emulation stopped: %s", e)
        finally:
            self.running = False
            self.save_battery()

        return self.fault

    def stop(self):
        self.running = False

    def save_battery(self):
        cart = self.memory.cartridge
        if cart is not None and cart.needs_save:
            cart.save_battery()

    # Input handling
    def _button(self, button: Union[Button, str]) -> Button:
        if isinstance(button, Button):
            return button
        return self.BUTTON_MAP[button.lower()]

    def press_button(self, button: Union[Button, str]):
        """Press a button. Buttons: a, b, start, select, up, down, left, right"""
        self.memory.joypad.press(self._button(button))

    def release_button(self, button: Union[Button, str]):
        """Release a button."""
        self.memory.joypad.release(self._button(button))

    # Debug methods
    def get_cpu_state(self) -> dict:
        """Get current CPU state for debugging."""
        regs = self.cpu.regs
        state = regs.snapshot()
        state.update({
            'IME': self.interrupts.ime,
            'Halted': self.cpu.halted,
            'Flags': {'Z': regs.z, 'N': regs.n, 'H': regs.h, 'C': regs.c},
            'Instruction': self.disassemble(regs.pc),
        })
        return state

    def disassemble(self, addr: int) -> str:
        """Mnemonic of the instruction at addr, or '--' where nothing is mapped."""
        try:
            code = [self.memory.read((addr + i) & 0xFFFF) for i in range(3)]
        except UnsupportedAddressError:
            return '--'
        return mnemonic(decode(code[0]), bytes(code[1:]))

    def get_ppu_state(self) -> dict:
        """Get current PPU state for debugging."""
        lcd = self.memory.lcd
        return {
            'LY': lcd.ly,
            'LYC': lcd.lyc,
            'Mode': lcd.mode.name,
            'LCD': lcd.lcd_enabled,
            'LCDC': lcd.lcdc,
            'STAT': lcd.read(lcd.STAT),
            'SCX': lcd.scx,
            'SCY': lcd.scy,
            'WX': lcd.wx,
            'WY': lcd.wy,
            'Frames': self.ppu.frame_count,
        }

    def get_tiles(self) -> np.ndarray:
        """Get all tiles as colour indices."""
        return self.ppu.tile_sheet()
