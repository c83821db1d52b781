"""
DMG Game Boy Emulator
Runs a cartridge in a pygame window, or headless for test ROMs.

Usage:
    python -m dmgcore <rom_file>
    python -m dmgcore <rom_file> --headless --serial --frames 3000
    python -m dmgcore <rom_file> --state-log trace.txt
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from rich.logging import RichHandler

from .config import EmulatorConfig
from .debug import StateLogger
from .emulator import Emulator, RealTimeClock
from .errors import CartridgeError

logger = logging.getLogger("dmgcore")


def parse_args(argv: Optional[List[str]] = None) -> EmulatorConfig:
    parser = argparse.ArgumentParser(prog="dmgcore", description="DMG Game Boy emulator")
    parser.add_argument("rom", type=Path, help="cartridge image (.gb)")
    parser.add_argument("--scale", type=int, default=3, help="window scale factor")
    parser.add_argument("--no-throttle", action="store_true",
                        help="run as fast as possible instead of at 59.73 FPS")
    parser.add_argument("--tiles", action="store_true", help="show the tile viewer")
    parser.add_argument("--state-log", type=Path, default=None,
                        help="write a per-instruction CPU state log to this file")
    parser.add_argument("--state-log-lines", type=int, default=10_000_000,
                        help="stop the state log after this many lines")
    parser.add_argument("--serial", action="store_true",
                        help="echo serial port output to the log")
    parser.add_argument("--frames", type=int, default=None,
                        help="stop after this many frames")
    parser.add_argument("--headless", action="store_true", help="run without a window")
    parser.add_argument("--log-level", default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    args = parser.parse_args(argv)

    return EmulatorConfig(
        rom_path=args.rom,
        scale=args.scale,
        throttle=not args.no_throttle,
        show_tiles=args.tiles,
        state_log=args.state_log,
        state_log_lines=args.state_log_lines,
        serial_echo=args.serial,
        max_frames=args.frames,
        headless=args.headless,
        log_level=args.log_level,
    )


def setup_logging(level: str):
    logging.basicConfig(
        level=level,
        format="%(name)s: %(message)s",
        datefmt="%H:%M:%S",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )


def main(argv: Optional[List[str]] = None) -> int:
    config = parse_args(argv)
    setup_logging(config.log_level)

    state_log = None
    if config.state_log is not None:
        state_log = StateLogger(config.state_log, max_lines=config.state_log_lines)

    clock = None if config.headless else RealTimeClock()
    emulator = Emulator(clock=clock, state_log=state_log, serial_echo=config.serial_echo)
    emulator.throttle = config.throttle

    try:
        emulator.load_rom(config.rom_path)
    except CartridgeError as e:
        logger.error("Failed to load ROM: %s", e)
        return 1

    try:
        if config.headless:
            fault = emulator.run(config.max_frames)
        else:
            from .gui import EmulatorGUI

            logger.info("Controls: Arrow=D-Pad, Z=A, X=B, Enter=Start, RShift=Select")
            logger.info("TAB=Turbo, Space=Pause, ESC=Quit")
            gui = EmulatorGUI(emulator, scale=config.scale, show_tiles=config.show_tiles)
            fault = gui.run(config.max_frames)
    finally:
        if state_log is not None:
            state_log.close()

    if emulator.serial.output:
        logger.info("Serial output:\n%s", emulator.serial.text)

    logger.info("Ran %d frames", emulator.total_frames)
    return 1 if fault is not None else 0


if __name__ == "__main__":
    sys.exit(main())
