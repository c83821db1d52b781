"""
Game Boy CPU Emulator - Sharp SM83
Fetch/decode/execute with per-access M-cycle timing.
"""

import logging
from typing import Callable, Dict, Optional

from .bits import U16, to_signed8
from .errors import InvalidOpcodeError, StopError
from .instructions import (
    AddrMode, CBOp, CondType, INVALID, InType, Instruction, decode, decode_cb,
)
from .registers import CLEAR, SET, RegisterFile, RegType

logger = logging.getLogger(__name__)


class CPU:
    """
    Sharp SM83 CPU - the Z80-like core of the DMG.

    Every bus access the CPU makes costs one M-cycle and is reported through
    cycles(), so the rest of the machine advances in step with the program.
    Instructions that take longer than their bus traffic add internal cycles
    so each one totals its documented duration.

    Interrupt master enable lives on the interrupt controller; EI only
    takes effect after the instruction that follows it.
    """

    def __init__(self, memory, cycles_callback: Optional[Callable[[int], None]] = None):
        self.memory = memory
        self.interrupts = memory.interrupts
        self.regs = RegisterFile()

        self.halted = False
        self.total_cycles = 0
        self._cycles_callback = cycles_callback

        # Instruction being executed
        self.instruction_pc = 0
        self.opcode = 0
        self.instruction: Instruction = INVALID
        self.fetched_data = 0
        self.mem_dest = 0
        self.dest_is_mem = False

        self._build_handlers()

    # Timing
    def cycles(self, count: int):
        """Advance the rest of the machine by count M-cycles."""
        self.total_cycles += count
        if self._cycles_callback is not None:
            self._cycles_callback(count)

    # Bus access, one M-cycle each
    def read8(self, addr: int) -> int:
        value = self.memory.read(addr)
        self.cycles(1)
        return value

    def write8(self, addr: int, value: int):
        self.memory.write(addr, value)
        self.cycles(1)

    def fetch8(self) -> int:
        value = self.read8(self.regs.pc)
        self.regs.pc = (self.regs.pc + 1) & 0xFFFF
        return value

    def fetch16(self) -> int:
        lo = self.fetch8()
        hi = self.fetch8()
        return (hi << 8) | lo

    # Stack operations
    def push16(self, value: int):
        """Push high byte then low byte, decrementing SP before each write."""
        self.regs.sp = (self.regs.sp - 1) & 0xFFFF
        self.write8(self.regs.sp, (value >> 8) & 0xFF)
        self.regs.sp = (self.regs.sp - 1) & 0xFFFF
        self.write8(self.regs.sp, value & 0xFF)

    def pop16(self) -> int:
        lo = self.read8(self.regs.sp)
        self.regs.sp = (self.regs.sp + 1) & 0xFFFF
        hi = self.read8(self.regs.sp)
        self.regs.sp = (self.regs.sp + 1) & 0xFFFF
        return (hi << 8) | lo

    def step(self):
        """Execute one instruction (or one halted M-cycle), then service interrupts."""
        if not self.halted:
            self.instruction_pc = self.regs.pc
            self.opcode = self.fetch8()
            self.instruction = decode(self.opcode)
            if self.instruction.kind is InType.NONE:
                raise InvalidOpcodeError(self.opcode, self.instruction_pc)
            self._fetch_data()
            self._handlers[self.instruction.kind]()
        else:
            self.cycles(1)
            # Any requested and enabled interrupt wakes the CPU, even with IME off
            if self.interrupts.pending():
                self.halted = False

        if self.interrupts.ime:
            self.interrupts.dispatch(self)
            self.interrupts.ime_pending = False

        if self.interrupts.ime_pending:
            self.interrupts.ime = True

    # =========================================================================
    # OPERAND FETCH
    # =========================================================================

    def _fetch_data(self):
        """Resolve the operand and destination for the current addressing mode."""
        ins = self.instruction
        regs = self.regs
        mode = ins.mode

        self.mem_dest = 0
        self.dest_is_mem = False

        if mode is AddrMode.IMP:
            return

        if mode is AddrMode.R:
            self.fetched_data = regs.get(ins.reg1)

        elif mode is AddrMode.R_R:
            self.fetched_data = regs.get(ins.reg2)

        elif mode in (AddrMode.R_D8, AddrMode.D8, AddrMode.HL_SPR):
            self.fetched_data = self.fetch8()

        elif mode in (AddrMode.R_D16, AddrMode.D16):
            self.fetched_data = self.fetch16()

        elif mode is AddrMode.MR_R:
            self.fetched_data = regs.get(ins.reg2)
            self.mem_dest = regs.get(ins.reg1)
            self.dest_is_mem = True
            if ins.reg1 is RegType.C:
                self.mem_dest |= 0xFF00

        elif mode is AddrMode.R_MR:
            addr = regs.get(ins.reg2)
            if ins.reg2 is RegType.C:
                addr |= 0xFF00
            self.fetched_data = self.read8(addr)

        elif mode is AddrMode.R_HLI:
            self.fetched_data = self.read8(regs.hl)
            regs.hl = (regs.hl + 1) & 0xFFFF

        elif mode is AddrMode.R_HLD:
            self.fetched_data = self.read8(regs.hl)
            regs.hl = (regs.hl - 1) & 0xFFFF

        elif mode is AddrMode.HLI_R:
            self.fetched_data = regs.get(ins.reg2)
            self.mem_dest = regs.hl
            self.dest_is_mem = True
            regs.hl = (regs.hl + 1) & 0xFFFF

        elif mode is AddrMode.HLD_R:
            self.fetched_data = regs.get(ins.reg2)
            self.mem_dest = regs.hl
            self.dest_is_mem = True
            regs.hl = (regs.hl - 1) & 0xFFFF

        elif mode is AddrMode.R_A8:
            self.fetched_data = self.read8(0xFF00 | self.fetch8())

        elif mode is AddrMode.A8_R:
            self.mem_dest = 0xFF00 | self.fetch8()
            self.dest_is_mem = True
            self.fetched_data = regs.get(ins.reg2)

        elif mode is AddrMode.MR_D8:
            self.fetched_data = self.fetch8()
            self.mem_dest = regs.get(ins.reg1)
            self.dest_is_mem = True

        elif mode is AddrMode.MR:
            self.mem_dest = regs.get(ins.reg1)
            self.dest_is_mem = True
            self.fetched_data = self.read8(self.mem_dest)

        elif mode is AddrMode.A16_R:
            self.mem_dest = self.fetch16()
            self.dest_is_mem = True
            self.fetched_data = regs.get(ins.reg2)

        elif mode is AddrMode.R_A16:
            self.fetched_data = self.read8(self.fetch16())

    # =========================================================================
    # OPCODE IMPLEMENTATIONS
    # =========================================================================

    def _build_handlers(self):
        """Map each instruction kind to its implementation."""
        self._handlers: Dict[InType, Callable[[], None]] = {
            InType.NOP: self._nop,
            InType.LD: self._ld,
            InType.LDH: self._ld,
            InType.INC: self._inc,
            InType.DEC: self._dec,
            InType.ADD: self._add,
            InType.ADC: lambda: self._adc_a(self.fetched_data),
            InType.SUB: lambda: self._sub_a(self.fetched_data),
            InType.SBC: lambda: self._sbc_a(self.fetched_data),
            InType.AND: lambda: self._and_a(self.fetched_data),
            InType.XOR: lambda: self._xor_a(self.fetched_data),
            InType.OR: lambda: self._or_a(self.fetched_data),
            InType.CP: lambda: self._cp_a(self.fetched_data),
            InType.RLCA: self._rlca,
            InType.RRCA: self._rrca,
            InType.RLA: self._rla,
            InType.RRA: self._rra,
            InType.DAA: self._daa,
            InType.CPL: self._cpl,
            InType.SCF: self._scf,
            InType.CCF: self._ccf,
            InType.JP: self._jp,
            InType.JPHL: self._jp_hl,
            InType.JR: self._jr,
            InType.CALL: self._call,
            InType.RET: self._ret,
            InType.RETI: self._reti,
            InType.RST: self._rst,
            InType.PUSH: self._push,
            InType.POP: self._pop,
            InType.DI: self._di,
            InType.EI: self._ei,
            InType.HALT: self._halt,
            InType.STOP: self._stop,
            InType.CB: self._cb,
        }

    def _check_cond(self) -> bool:
        cond = self.instruction.cond
        if cond is CondType.NONE:
            return True
        if cond is CondType.Z:
            return self.regs.z
        if cond is CondType.NZ:
            return not self.regs.z
        if cond is CondType.C:
            return self.regs.c
        return not self.regs.c

    # Misc / control
    def _nop(self):
        pass

    def _halt(self):
        self.halted = True

    def _stop(self):
        raise StopError(self.instruction_pc)

    def _di(self):
        self.interrupts.ime = False

    def _ei(self):
        self.interrupts.ime_pending = True

    # Loads
    def _ld(self):
        ins = self.instruction
        regs = self.regs

        if self.dest_is_mem:
            if ins.reg2 is RegType.SP:
                # LD (a16), SP stores both bytes, low first
                self.write8(self.mem_dest, self.fetched_data & 0xFF)
                self.write8((self.mem_dest + 1) & 0xFFFF, self.fetched_data >> 8)
            else:
                self.write8(self.mem_dest, self.fetched_data)
            return

        if ins.mode is AddrMode.HL_SPR:
            regs.hl = self._sp_plus_e8(self.fetched_data)
            self.cycles(1)
            return

        if ins.reg1 is RegType.SP and ins.reg2 is RegType.HL:
            self.cycles(1)

        regs.set(ins.reg1, self.fetched_data)

    # 8-bit and 16-bit INC/DEC
    def _inc(self):
        ins = self.instruction
        regs = self.regs

        if ins.mode is AddrMode.MR:
            value = (self.fetched_data + 1) & 0xFF
            self.write8(self.mem_dest, value)
        elif regs.is_8bit(ins.reg1):
            value = (regs.get(ins.reg1) + 1) & 0xFF
            regs.set(ins.reg1, value)
        else:
            regs.set(ins.reg1, (regs.get(ins.reg1) + 1) & 0xFFFF)
            self.cycles(1)
            value = 0

        # INC rr (x3) leaves flags alone
        if (self.opcode & 0x03) == 0x03:
            return

        regs.set_flags(z=value == 0, n=CLEAR, h=(value & 0x0F) == 0)

    def _dec(self):
        ins = self.instruction
        regs = self.regs

        if ins.mode is AddrMode.MR:
            value = (self.fetched_data - 1) & 0xFF
            self.write8(self.mem_dest, value)
        elif regs.is_8bit(ins.reg1):
            value = (regs.get(ins.reg1) - 1) & 0xFF
            regs.set(ins.reg1, value)
        else:
            regs.set(ins.reg1, (regs.get(ins.reg1) - 1) & 0xFFFF)
            self.cycles(1)
            value = 0

        # DEC rr (xB) leaves flags alone
        if (self.opcode & 0x0B) == 0x0B:
            return

        regs.set_flags(z=value == 0, n=SET, h=(value & 0x0F) == 0x0F)

    # ADD in its three widths
    def _sp_plus_e8(self, e8: int) -> int:
        """SP + signed e8, setting H and C from the unsigned low byte."""
        sp = self.regs.sp
        self.regs.set_flags(
            z=CLEAR,
            n=CLEAR,
            h=((sp & 0x0F) + (e8 & 0x0F)) > 0x0F,
            c=((sp & 0xFF) + (e8 & 0xFF)) > 0xFF,
        )
        return U16(sp).add_signed(e8).value

    def _add(self):
        ins = self.instruction
        regs = self.regs

        if ins.reg1 is RegType.SP:
            regs.sp = self._sp_plus_e8(self.fetched_data)
            self.cycles(2)
            return

        if ins.reg1 is RegType.HL:
            hl = regs.hl
            value = self.fetched_data
            result = hl + value
            regs.set_flags(
                n=CLEAR,
                h=((hl & 0x0FFF) + (value & 0x0FFF)) > 0x0FFF,
                c=result > 0xFFFF,
            )
            regs.hl = result & 0xFFFF
            self.cycles(1)
            return

        self._add_a(self.fetched_data)

    # ALU operations
    def _add_a(self, value: int):
        a = self.regs.a
        result = a + value
        self.regs.set_flags(
            z=(result & 0xFF) == 0,
            n=CLEAR,
            h=((a & 0x0F) + (value & 0x0F)) > 0x0F,
            c=result > 0xFF,
        )
        self.regs.a = result & 0xFF

    def _adc_a(self, value: int):
        a = self.regs.a
        carry = 1 if self.regs.c else 0
        result = a + value + carry
        self.regs.set_flags(
            z=(result & 0xFF) == 0,
            n=CLEAR,
            h=((a & 0x0F) + (value & 0x0F) + carry) > 0x0F,
            c=result > 0xFF,
        )
        self.regs.a = result & 0xFF

    def _sub_a(self, value: int):
        self.regs.a = self._compare(value, 0)

    def _sbc_a(self, value: int):
        self.regs.a = self._compare(value, 1 if self.regs.c else 0)

    def _cp_a(self, value: int):
        self._compare(value, 0)

    def _compare(self, value: int, carry: int) -> int:
        """A - value - carry with borrow flags. Returns the 8-bit result."""
        a = self.regs.a
        result = a - value - carry
        self.regs.set_flags(
            z=(result & 0xFF) == 0,
            n=SET,
            h=(a & 0x0F) < (value & 0x0F) + carry,
            c=result < 0,
        )
        return result & 0xFF

    def _and_a(self, value: int):
        self.regs.a &= value
        self.regs.set_flags(z=self.regs.a == 0, n=CLEAR, h=SET, c=CLEAR)

    def _xor_a(self, value: int):
        self.regs.a ^= value
        self.regs.set_flags(z=self.regs.a == 0, n=CLEAR, h=CLEAR, c=CLEAR)

    def _or_a(self, value: int):
        self.regs.a |= value
        self.regs.set_flags(z=self.regs.a == 0, n=CLEAR, h=CLEAR, c=CLEAR)

    def _daa(self):
        regs = self.regs
        a = regs.a
        adjust = 0
        carry = False

        if regs.h or (not regs.n and (a & 0x0F) > 0x09):
            adjust = 0x06
        if regs.c or (not regs.n and a > 0x99):
            adjust |= 0x60
            carry = True

        a = (a - adjust) if regs.n else (a + adjust)
        a &= 0xFF
        regs.a = a
        regs.set_flags(z=a == 0, h=CLEAR, c=carry)

    def _cpl(self):
        self.regs.a ^= 0xFF
        self.regs.set_flags(n=SET, h=SET)

    def _scf(self):
        self.regs.set_flags(n=CLEAR, h=CLEAR, c=SET)

    def _ccf(self):
        self.regs.set_flags(n=CLEAR, h=CLEAR, c=not self.regs.c)

    # Accumulator rotates
    def _rlca(self):
        a = self.regs.a
        carry = (a >> 7) & 1
        self.regs.a = ((a << 1) | carry) & 0xFF
        self.regs.set_flags(z=CLEAR, n=CLEAR, h=CLEAR, c=carry)

    def _rrca(self):
        a = self.regs.a
        carry = a & 1
        self.regs.a = (a >> 1) | (carry << 7)
        self.regs.set_flags(z=CLEAR, n=CLEAR, h=CLEAR, c=carry)

    def _rla(self):
        a = self.regs.a
        carry = 1 if self.regs.c else 0
        self.regs.a = ((a << 1) | carry) & 0xFF
        self.regs.set_flags(z=CLEAR, n=CLEAR, h=CLEAR, c=(a >> 7) & 1)

    def _rra(self):
        a = self.regs.a
        carry = 0x80 if self.regs.c else 0
        self.regs.a = (a >> 1) | carry
        self.regs.set_flags(z=CLEAR, n=CLEAR, h=CLEAR, c=a & 1)

    # Jumps, calls and returns
    def _goto(self, addr: int, push_pc: bool):
        if not self._check_cond():
            return
        self.cycles(1)
        if push_pc:
            self.push16(self.regs.pc)
        self.regs.pc = addr & 0xFFFF

    def _jp(self):
        self._goto(self.fetched_data, push_pc=False)

    def _jp_hl(self):
        self.regs.pc = self.regs.hl

    def _jr(self):
        self._goto(self.regs.pc + to_signed8(self.fetched_data), push_pc=False)

    def _call(self):
        self._goto(self.fetched_data, push_pc=True)

    def _rst(self):
        self.cycles(1)
        self.push16(self.regs.pc)
        self.regs.pc = self.instruction.param

    def _ret(self):
        if self.instruction.cond is not CondType.NONE:
            self.cycles(1)
            if not self._check_cond():
                return
        self.regs.pc = self.pop16()
        self.cycles(1)

    def _reti(self):
        self.interrupts.ime = True
        self._ret()

    # Stack
    def _push(self):
        self.cycles(1)
        self.push16(self.regs.get(self.instruction.reg1))

    def _pop(self):
        self.regs.set(self.instruction.reg1, self.pop16())

    # =========================================================================
    # CB PREFIX
    # =========================================================================

    def _cb(self):
        cb = decode_cb(self.fetched_data)
        regs = self.regs
        indirect = cb.reg is RegType.HL

        value = self.read8(regs.hl) if indirect else regs.get(cb.reg)

        if cb.op is CBOp.BIT:
            regs.set_flags(z=(value >> cb.bit) & 1 == 0, n=CLEAR, h=SET)
            return

        if cb.op is CBOp.RES:
            result = value & ~(1 << cb.bit) & 0xFF
        elif cb.op is CBOp.SET:
            result = value | (1 << cb.bit)
        else:
            result = self._cb_shift(cb.op, value)

        if indirect:
            self.write8(regs.hl, result)
        else:
            regs.set(cb.reg, result)

    def _cb_shift(self, op: CBOp, value: int) -> int:
        """Rotates, shifts and SWAP. Z from the result, N and H cleared."""
        carry_in = 1 if self.regs.c else 0

        if op is CBOp.RLC:
            carry = value >> 7
            result = ((value << 1) | carry) & 0xFF
        elif op is CBOp.RRC:
            carry = value & 1
            result = (value >> 1) | (carry << 7)
        elif op is CBOp.RL:
            carry = value >> 7
            result = ((value << 1) | carry_in) & 0xFF
        elif op is CBOp.RR:
            carry = value & 1
            result = (value >> 1) | (carry_in << 7)
        elif op is CBOp.SLA:
            carry = value >> 7
            result = (value << 1) & 0xFF
        elif op is CBOp.SRA:
            carry = value & 1
            result = (value >> 1) | (value & 0x80)
        elif op is CBOp.SWAP:
            carry = 0
            result = ((value & 0x0F) << 4) | (value >> 4)
        else:  # SRL
            carry = value & 1
            result = value >> 1

        self.regs.set_flags(z=result == 0, n=CLEAR, h=CLEAR, c=carry)
        return result
