"""
Serial port tests.
"""

import logging

import pytest

from dmgcore.interrupts import Interrupt, InterruptController
from dmgcore.serial import Serial


@pytest.fixture
def serial():
    interrupts = InterruptController()
    interrupts.flags = 0
    return Serial(interrupts)


def send(serial: Serial, text: bytes):
    for byte in text:
        serial.write(Serial.SB, byte)
        serial.write(Serial.SC, 0x81)


class TestSerial:
    def test_initial_registers(self, serial):
        assert serial.read(Serial.SB) == 0x00
        assert serial.read(Serial.SC) == 0x7E

    def test_transfer(self, serial):
        serial.write(Serial.SB, 0x41)
        serial.write(Serial.SC, 0x81)
        assert serial.output == bytearray(b"A")
        assert serial.read(Serial.SB) == 0xFF
        assert serial.read(Serial.SC) & 0x80 == 0
        assert serial.interrupts.flags & Interrupt.SERIAL.mask

    def test_external_clock_does_not_transfer(self, serial):
        serial.write(Serial.SB, 0x41)
        serial.write(Serial.SC, 0x80)
        assert serial.output == bytearray()
        assert serial.read(Serial.SB) == 0x41
        assert serial.read(Serial.SC) == 0xFE

    def test_text(self, serial):
        send(serial, b"Passed\n")
        assert serial.text == "Passed\n"

    def test_echo_logs_lines(self, caplog):
        serial = Serial(InterruptController(), echo=True)
        with caplog.at_level(logging.INFO, logger="dmgcore.serial"):
            send(serial, b"cpu_instrs\n")
        assert any("cpu_instrs" in r.getMessage() for r in caplog.records)

    def test_through_the_bus(self, emu):
        emu.memory.write(0xFF01, ord("Z"))
        emu.memory.write(0xFF02, 0x81)
        assert emu.serial.text == "Z"
