"""
Orchestration tests: frame loop, pacing, fault handling and the public API.
"""

import pytest

from dmgcore import Button, Cartridge, Emulator
from dmgcore.errors import CartridgeError, InvalidOpcodeError, StopError

SPIN = bytes([0x18, 0xFE])  # JR -2


class FakeClock:
    """Manual clock that records every requested sleep."""

    def __init__(self):
        self.time = 0.0
        self.sleeps = []

    def now(self) -> float:
        return self.time

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.time += seconds


@pytest.fixture
def rom_file(tmp_path, make_rom):
    def _write(code: bytes = SPIN, cart_type: int = 0x00, ram_size_code: int = 0x00):
        path = tmp_path / "game.gb"
        path.write_bytes(make_rom(cart_type=cart_type, ram_size_code=ram_size_code, code=code))
        return path
    return _write


class TestLoading:
    def test_load_rom(self, emu, rom_file):
        cart = emu.load_rom(rom_file())
        assert emu.cartridge is cart
        assert cart.title == "TESTROM"
        assert emu.memory.read(0x0100) == 0x18

    def test_load_bad_rom(self, emu, tmp_path):
        path = tmp_path / "bad.gb"
        path.write_bytes(bytes(0x40))
        with pytest.raises(CartridgeError):
            emu.load_rom(path)
        assert emu.cartridge is None


class TestCycles:
    def test_four_ticks_per_m_cycle(self, emu):
        emu.cycles(10)
        assert emu.ticks == 40
        assert emu.ppu.line_ticks == 40

    def test_instruction_cost_reaches_peripherals(self, emu, program):
        program(bytes([0xC5]))  # PUSH BC: 4 M-cycles
        emu.step()
        assert emu.ticks == 16
        assert emu.cpu.total_cycles == 4

    def test_frame_ticks_wrap(self, emu):
        emu.cycles(Emulator.TICKS_PER_FRAME // 4 + 1)
        assert emu.frame_ticks == 4


class TestRun:
    def test_runs_frames(self, emu, make_rom):
        emu.load_cartridge(Cartridge(make_rom(code=SPIN)))
        assert emu.run(max_frames=2) is None
        assert emu.total_frames == 2
        assert emu.cpu.regs.pc == 0x0100
        assert not emu.running

    def test_run_frame_returns_copy(self, emu, program):
        program(SPIN)
        frame = emu.run_frame()
        assert frame.shape == (144, 160)
        assert frame is not emu.ppu.framebuffer
        frame[0, 0] = 3
        assert emu.ppu.framebuffer[0, 0] == 0

    def test_on_frame_and_stop(self, emu, program):
        program(SPIN)
        frames = []

        def on_frame(frame):
            frames.append(frame)
            emu.stop()

        emu.on_frame = on_frame
        emu.run()
        assert len(frames) == 1

    def test_invalid_opcode_recorded(self, emu, rom_file):
        emu.load_rom(rom_file(code=bytes([0xD3])))
        fault = emu.run(max_frames=1)
        assert isinstance(fault, InvalidOpcodeError)
        assert fault.opcode == 0xD3
        assert fault.pc == 0x0100
        assert emu.fault is fault
        assert not emu.running

    def test_stop_instruction_recorded(self, emu, program):
        program(bytes([0x10, 0x00]))
        assert isinstance(emu.run(max_frames=1), StopError)

    def test_battery_flushed_on_exit(self, emu, rom_file, tmp_path):
        code = bytes([
            0x3E, 0x0A,        # LD A,$0A
            0xEA, 0x00, 0x00,  # LD ($0000),A   enable RAM
            0x3E, 0x5A,        # LD A,$5A
            0xEA, 0x00, 0xA0,  # LD ($A000),A
            0x18, 0xFE,        # JR -2
        ])
        emu.load_rom(rom_file(code=code, cart_type=0x03, ram_size_code=0x02))
        emu.run(max_frames=1)
        assert (tmp_path / "game.sav").read_bytes()[0] == 0x5A
        assert not emu.cartridge.needs_save


class TestPacing:
    FRAME_CYCLES = Emulator.TICKS_PER_FRAME // 4

    def test_sleeps_out_each_frame(self):
        clock = FakeClock()
        emu = Emulator(clock=clock)
        emu.cycles(self.FRAME_CYCLES * 3)
        assert len(clock.sleeps) == 2
        for seconds in clock.sleeps:
            assert seconds == pytest.approx(1.0 / Emulator.TARGET_FPS)

    def test_no_sleep_when_behind(self):
        clock = FakeClock()
        emu = Emulator(clock=clock)
        emu.cycles(self.FRAME_CYCLES)
        clock.time += 1.0
        emu.cycles(self.FRAME_CYCLES)
        assert clock.sleeps == []

    def test_throttle_off(self):
        clock = FakeClock()
        emu = Emulator(clock=clock)
        emu.throttle = False
        emu.cycles(self.FRAME_CYCLES * 3)
        assert clock.sleeps == []

    def test_no_clock_never_sleeps(self, emu):
        emu.cycles(self.FRAME_CYCLES * 2)
        assert emu.clock is None


class TestInput:
    def test_press_by_name(self, emu):
        emu.press_button("Start")
        assert emu.joypad.is_pressed(Button.START)
        emu.release_button("start")
        assert not emu.joypad.is_pressed(Button.START)

    def test_press_by_enum(self, emu):
        emu.press_button(Button.LEFT)
        emu.memory.write(0xFF00, 0x20)
        assert emu.memory.read(0xFF00) & 0x0F == 0b1101

    def test_unknown_button(self, emu):
        with pytest.raises(KeyError):
            emu.press_button("turbo")


class TestDebugViews:
    def test_cpu_state(self, emu):
        state = emu.get_cpu_state()
        assert state['PC'] == 0x0100
        assert state['SP'] == 0xFFFE
        assert state['A'] == 0x01
        assert state['Flags'] == {'Z': True, 'N': False, 'H': True, 'C': True}
        assert state['Halted'] is False

    def test_ppu_state(self, emu):
        state = emu.get_ppu_state()
        assert state['Mode'] == 'VBLANK'
        assert state['LY'] == 0x91
        assert state['Frames'] == 0

    def test_tiles(self, emu):
        assert emu.get_tiles().shape == (192, 128)

    def test_current_instruction(self, emu, program):
        program(bytes([0x3E, 0x42]))
        assert emu.get_cpu_state()['Instruction'] == "LD A,$42"

    def test_instruction_with_nothing_mapped(self, emu):
        assert emu.get_cpu_state()['Instruction'] == "--"

    def test_lcd_flag(self, emu):
        assert emu.get_ppu_state()['LCD'] is True
        emu.memory.write(0xFF40, 0x11)
        assert emu.get_ppu_state()['LCD'] is False

    def test_frame_rate_from_clock(self):
        assert Emulator.TARGET_FPS == pytest.approx(59.73, abs=0.01)
