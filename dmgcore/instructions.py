"""
SM83 instruction decoding.
Maps every base opcode and every CB-prefixed opcode to an immutable descriptor.
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from .registers import RegType, CB_REGISTERS


class InType(Enum):
    NONE = 0
    NOP = 1
    LD = 2
    INC = 3
    DEC = 4
    RLCA = 5
    ADD = 6
    RRCA = 7
    STOP = 8
    RLA = 9
    JR = 10
    RRA = 11
    DAA = 12
    CPL = 13
    SCF = 14
    CCF = 15
    HALT = 16
    ADC = 17
    SUB = 18
    SBC = 19
    AND = 20
    XOR = 21
    OR = 22
    CP = 23
    POP = 24
    JP = 25
    PUSH = 26
    RET = 27
    CB = 28
    CALL = 29
    RETI = 30
    LDH = 31
    JPHL = 32
    DI = 33
    EI = 34
    RST = 35


class AddrMode(Enum):
    NONE = 0
    IMP = 1       # implied, nothing to fetch
    R_D16 = 2     # register <- 16-bit immediate
    R_R = 3
    MR_R = 4      # (register) <- register
    R = 5
    R_D8 = 6
    R_MR = 7      # register <- (register)
    R_HLI = 8     # register <- (HL), HL++
    R_HLD = 9
    HLI_R = 10    # (HL) <- register, HL++
    HLD_R = 11
    R_A8 = 12     # register <- (0xFF00 + a8)
    A8_R = 13
    HL_SPR = 14   # HL <- SP + e8
    D16 = 15
    D8 = 16
    MR_D8 = 17
    MR = 18
    A16_R = 19
    R_A16 = 20


class CondType(Enum):
    NONE = 0
    NZ = 1
    Z = 2
    NC = 3
    C = 4


class CBOp(Enum):
    RLC = 0
    RRC = 1
    RL = 2
    RR = 3
    SLA = 4
    SRA = 5
    SWAP = 6
    SRL = 7
    BIT = 8
    RES = 9
    SET = 10


@dataclass(frozen=True)
class Instruction:
    kind: InType = InType.NONE
    mode: AddrMode = AddrMode.IMP
    reg1: RegType = RegType.NONE
    reg2: RegType = RegType.NONE
    cond: CondType = CondType.NONE
    param: int = 0


@dataclass(frozen=True)
class CBInstruction:
    op: CBOp
    bit: int
    reg: RegType


INVALID = Instruction()

R = RegType
_ALU = (InType.ADD, InType.ADC, InType.SUB, InType.SBC,
        InType.AND, InType.XOR, InType.OR, InType.CP)
_CONDS = (CondType.NZ, CondType.Z, CondType.NC, CondType.C)


def _build_table() -> List[Instruction]:
    """Build the base opcode table."""
    t: List[Instruction] = [INVALID] * 256
    I = Instruction
    M = AddrMode

    t[0x00] = I(InType.NOP)
    t[0x10] = I(InType.STOP)
    t[0x76] = I(InType.HALT)
    t[0xF3] = I(InType.DI)
    t[0xFB] = I(InType.EI)

    # Accumulator rotates and misc
    t[0x07] = I(InType.RLCA)
    t[0x0F] = I(InType.RRCA)
    t[0x17] = I(InType.RLA)
    t[0x1F] = I(InType.RRA)
    t[0x27] = I(InType.DAA)
    t[0x2F] = I(InType.CPL)
    t[0x37] = I(InType.SCF)
    t[0x3F] = I(InType.CCF)

    # 16-bit loads, INC/DEC/ADD on pairs
    for row, pair in enumerate((R.BC, R.DE, R.HL, R.SP)):
        base = row << 4
        t[base | 0x01] = I(InType.LD, M.R_D16, pair)
        t[base | 0x03] = I(InType.INC, M.R, pair)
        t[base | 0x09] = I(InType.ADD, M.R_R, R.HL, pair)
        t[base | 0x0B] = I(InType.DEC, M.R, pair)

    # Indirect accumulator loads
    t[0x02] = I(InType.LD, M.MR_R, R.BC, R.A)
    t[0x12] = I(InType.LD, M.MR_R, R.DE, R.A)
    t[0x22] = I(InType.LD, M.HLI_R, R.HL, R.A)
    t[0x32] = I(InType.LD, M.HLD_R, R.HL, R.A)
    t[0x0A] = I(InType.LD, M.R_MR, R.A, R.BC)
    t[0x1A] = I(InType.LD, M.R_MR, R.A, R.DE)
    t[0x2A] = I(InType.LD, M.R_HLI, R.A, R.HL)
    t[0x3A] = I(InType.LD, M.R_HLD, R.A, R.HL)
    t[0x08] = I(InType.LD, M.A16_R, R.NONE, R.SP)

    # 8-bit INC/DEC/LD d8, in B C D E H L (HL) A order
    for idx, reg in enumerate(CB_REGISTERS):
        base = idx << 3
        if reg is R.HL:
            t[base | 0x04] = I(InType.INC, M.MR, R.HL)
            t[base | 0x05] = I(InType.DEC, M.MR, R.HL)
            t[base | 0x06] = I(InType.LD, M.MR_D8, R.HL)
        else:
            t[base | 0x04] = I(InType.INC, M.R, reg)
            t[base | 0x05] = I(InType.DEC, M.R, reg)
            t[base | 0x06] = I(InType.LD, M.R_D8, reg)

    # Relative jumps
    t[0x18] = I(InType.JR, M.D8)
    for i, cond in enumerate(_CONDS):
        t[0x20 + (i << 3)] = I(InType.JR, M.D8, cond=cond)

    # LD r, r' block
    for dst_idx, dst in enumerate(CB_REGISTERS):
        for src_idx, src in enumerate(CB_REGISTERS):
            opcode = 0x40 + (dst_idx << 3) + src_idx
            if opcode == 0x76:
                continue
            if dst is R.HL:
                t[opcode] = I(InType.LD, M.MR_R, R.HL, src)
            elif src is R.HL:
                t[opcode] = I(InType.LD, M.R_MR, dst, R.HL)
            else:
                t[opcode] = I(InType.LD, M.R_R, dst, src)

    # ALU block and immediate forms
    for op_idx, kind in enumerate(_ALU):
        for src_idx, src in enumerate(CB_REGISTERS):
            opcode = 0x80 + (op_idx << 3) + src_idx
            mode = M.R_MR if src is R.HL else M.R_R
            t[opcode] = I(kind, mode, R.A, src)
        t[0xC6 + (op_idx << 3)] = I(kind, M.R_D8, R.A)

    # Control flow
    for i, cond in enumerate(_CONDS):
        base = 0xC0 + (i << 3)
        t[base] = I(InType.RET, cond=cond)
        t[base | 0x02] = I(InType.JP, M.D16, cond=cond)
        t[base | 0x04] = I(InType.CALL, M.D16, cond=cond)
    t[0xC3] = I(InType.JP, M.D16)
    t[0xC9] = I(InType.RET)
    t[0xCD] = I(InType.CALL, M.D16)
    t[0xD9] = I(InType.RETI)
    t[0xE9] = I(InType.JPHL, M.R, R.HL)
    for i in range(8):
        t[0xC7 + (i << 3)] = I(InType.RST, param=i << 3)

    # Stack
    for row, pair in enumerate((R.BC, R.DE, R.HL, R.AF)):
        t[0xC1 + (row << 4)] = I(InType.POP, M.R, pair)
        t[0xC5 + (row << 4)] = I(InType.PUSH, M.R, pair)

    t[0xCB] = I(InType.CB, M.D8)

    # High page and absolute loads
    t[0xE0] = I(InType.LDH, M.A8_R, R.NONE, R.A)
    t[0xF0] = I(InType.LDH, M.R_A8, R.A)
    t[0xE2] = I(InType.LD, M.MR_R, R.C, R.A)
    t[0xF2] = I(InType.LD, M.R_MR, R.A, R.C)
    t[0xEA] = I(InType.LD, M.A16_R, R.NONE, R.A)
    t[0xFA] = I(InType.LD, M.R_A16, R.A)

    # Stack pointer arithmetic
    t[0xE8] = I(InType.ADD, M.R_D8, R.SP)
    t[0xF8] = I(InType.LD, M.HL_SPR, R.HL, R.SP)
    t[0xF9] = I(InType.LD, M.R_R, R.SP, R.HL)

    return t


def _build_cb_table() -> List[CBInstruction]:
    """Build the CB-prefixed table: bits 6-7 class, 3-5 bit/variant, 0-2 operand."""
    shifts = (CBOp.RLC, CBOp.RRC, CBOp.RL, CBOp.RR,
              CBOp.SLA, CBOp.SRA, CBOp.SWAP, CBOp.SRL)
    table = []
    for opcode in range(256):
        reg = CB_REGISTERS[opcode & 0x07]
        bit = (opcode >> 3) & 0x07
        group = opcode >> 6
        if group == 0:
            op = shifts[bit]
        else:
            op = (CBOp.BIT, CBOp.RES, CBOp.SET)[group - 1]
        table.append(CBInstruction(op, bit, reg))
    return table


INSTRUCTIONS = _build_table()
CB_INSTRUCTIONS = _build_cb_table()


def decode(opcode: int) -> Instruction:
    return INSTRUCTIONS[opcode & 0xFF]


def decode_cb(opcode: int) -> CBInstruction:
    return CB_INSTRUCTIONS[opcode & 0xFF]


def _operand(reg: RegType, indirect: bool = False) -> str:
    name = reg.name
    return f"({name})" if indirect else name


def mnemonic(ins: Instruction, operands: Optional[bytes] = None) -> str:
    """Short text form of an instruction, used by debug views."""
    if ins.kind is InType.NONE:
        return "???"
    parts = [ins.kind.name]
    if ins.cond is not CondType.NONE:
        parts.append(ins.cond.name)
    mode = ins.mode
    imm8 = f"${operands[0]:02X}" if operands else "d8"
    imm16 = f"${operands[1]:02X}{operands[0]:02X}" if operands and len(operands) > 1 else "d16"
    args = {
        AddrMode.R_D16: (_operand(ins.reg1), imm16),
        AddrMode.R_R: (_operand(ins.reg1), _operand(ins.reg2)),
        AddrMode.MR_R: (_operand(ins.reg1, True), _operand(ins.reg2)),
        AddrMode.R: (_operand(ins.reg1),),
        AddrMode.R_D8: (_operand(ins.reg1), imm8),
        AddrMode.R_MR: (_operand(ins.reg1), _operand(ins.reg2, True)),
        AddrMode.R_HLI: (_operand(ins.reg1), "(HL+)"),
        AddrMode.R_HLD: (_operand(ins.reg1), "(HL-)"),
        AddrMode.HLI_R: ("(HL+)", _operand(ins.reg2)),
        AddrMode.HLD_R: ("(HL-)", _operand(ins.reg2)),
        AddrMode.R_A8: (_operand(ins.reg1), f"({imm8})"),
        AddrMode.A8_R: (f"({imm8})", _operand(ins.reg2)),
        AddrMode.HL_SPR: ("HL", f"SP+{imm8}"),
        AddrMode.D16: (imm16,),
        AddrMode.D8: (imm8,),
        AddrMode.MR_D8: (_operand(ins.reg1, True), imm8),
        AddrMode.MR: (_operand(ins.reg1, True),),
        AddrMode.A16_R: (f"({imm16})", _operand(ins.reg2)),
        AddrMode.R_A16: (_operand(ins.reg1), f"({imm16})"),
    }.get(mode, ())
    if ins.kind is InType.RST:
        args = (f"${ins.param:02X}",)
    text = " ".join(parts)
    if args:
        text += " " + ",".join(args)
    return text
