"""
OAM DMA controller.
Copies 160 bytes from XX00-XX9F into OAM, one byte per tick after a short start delay.
"""


class DMA:
    """OAM DMA engine. Started by a write to 0xFF46."""

    LENGTH = 0xA0
    START_DELAY = 2
    OAM_BASE = 0xFE00

    def __init__(self, memory):
        self.memory = memory
        self.active = False
        self.source = 0
        self.counter = 0
        self.delay = 0

    def start(self, source_high: int):
        self.source = source_high & 0xFF
        self.active = True
        self.counter = 0
        self.delay = self.START_DELAY

    def tick(self):
        if not self.active:
            return

        if self.delay > 0:
            self.delay -= 1
            return

        value = self.memory.read((self.source << 8) + self.counter)
        self.memory.write(self.OAM_BASE + self.counter, value)
        self.counter += 1

        if self.counter >= self.LENGTH:
            self.active = False
