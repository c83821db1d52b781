"""
Runtime configuration for a session, filled in from the command line.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional


@dataclass
class EmulatorConfig:
    rom_path: Path
    scale: int = 3
    throttle: bool = True
    show_tiles: bool = False
    state_log: Optional[Path] = None
    state_log_lines: int = 10_000_000
    serial_echo: bool = False
    max_frames: Optional[int] = None
    headless: bool = False
    log_level: str = "INFO"
