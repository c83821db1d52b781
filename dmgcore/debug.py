"""
CPU state log.
One line per instruction in the format used by Gameboy Doctor, for diffing
against a known-good trace.
"""

import logging
from pathlib import Path
from typing import Optional, TextIO, Union

logger = logging.getLogger(__name__)


class StateLogger:
    """Writes register state before each instruction, up to max_lines lines."""

    LINE_FORMAT = ("A:{A:02X} F:{F:02X} B:{B:02X} C:{C:02X} D:{D:02X} E:{E:02X} "
                   "H:{H:02X} L:{L:02X} SP:{SP:04X} PC:{PC:04X} "
                   "PCMEM:{m0:02X},{m1:02X},{m2:02X},{m3:02X}\n")

    def __init__(self, path: Union[str, Path], max_lines: int = 10_000_000):
        self.path = Path(path)
        self.max_lines = max_lines
        self.lines = 0
        self._file: Optional[TextIO] = open(self.path, 'w', encoding='ascii')
        logger.info("Logging CPU state to %s", self.path)

    @property
    def active(self) -> bool:
        return self._file is not None

    def format_line(self, cpu, memory) -> str:
        state = cpu.regs.snapshot()
        pc = state['PC']
        pcmem = [memory.read((pc + i) & 0xFFFF) for i in range(4)]
        return self.LINE_FORMAT.format(
            m0=pcmem[0], m1=pcmem[1], m2=pcmem[2], m3=pcmem[3], **state
        )

    def log(self, cpu, memory):
        if self._file is None:
            return
        self._file.write(self.format_line(cpu, memory))
        self.lines += 1
        if self.lines >= self.max_lines:
            logger.info("State log reached %d lines, closing", self.lines)
            self.close()

    def close(self):
        if self._file is not None:
            self._file.close()
            self._file = None
