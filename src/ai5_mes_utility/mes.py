from dataclasses import dataclass
from enum import IntEnum
from typing import Optional, Tuple

from .common import hx

MES_ADDRESS_SYNTHETIC = 0xFFFFFFFF


class StmtOp(IntEnum):
    # virtual numbering; physical bytes come from the title's OpcodeTable
    END = 0x00
    TXT = 0x01
    STR = 0x02
    SETRBC = 0x03
    SETV = 0x04
    SETRBE = 0x05
    SETAC = 0x06
    SETA_AT = 0x07
    SETAD = 0x08
    SETAW = 0x09
    SETAB = 0x0A
    JZ = 0x0B
    JMP = 0x0C
    SYS = 0x0D
    GOTO = 0x0E
    CALL = 0x0F
    MENUI = 0x10
    PROC = 0x11
    UTIL = 0x12
    LINE = 0x13
    PROCD = 0x14
    MENUS = 0x15
    SETRD = 0x16


class ExprOp(IntEnum):
    IMM = 0x00
    VAR = 0x80
    ARRAY16_GET16 = 0xA0
    ARRAY16_GET8 = 0xC0
    PLUS = 0xE0
    MINUS = 0xE1
    MUL = 0xE2
    DIV = 0xE3
    MOD = 0xE4
    RAND = 0xE5
    AND = 0xE6
    OR = 0xE7
    BITAND = 0xE8
    BITIOR = 0xE9
    BITXOR = 0xEA
    LT = 0xEB
    GT = 0xEC
    LTE = 0xED
    GTE = 0xEE
    EQ = 0xEF
    NEQ = 0xF0
    IMM16 = 0xF1
    IMM32 = 0xF2
    REG16 = 0xF3
    REG8 = 0xF4
    ARRAY32_GET32 = 0xF5
    ARRAY32_GET16 = 0xF6
    ARRAY32_GET8 = 0xF7
    VAR32 = 0xF8
    END = 0xFF


class ParamType(IntEnum):
    STRING = 1
    EXPRESSION = 2


# compact families: operand folded into the opcode byte
RANGE_SIZES = {
    ExprOp.IMM: 0x80,
    ExprOp.VAR: 0x20,
    ExprOp.ARRAY16_GET16: 0x20,
    ExprOp.ARRAY16_GET8: 0x20,
}

ARITHMETIC_OPS = frozenset(
    (ExprOp.PLUS, ExprOp.MINUS, ExprOp.MUL, ExprOp.DIV, ExprOp.MOD)
)
MULTIPLICATIVE_OPS = frozenset((ExprOp.MUL, ExprOp.DIV, ExprOp.MOD))
LOGICAL_OPS = frozenset((ExprOp.AND, ExprOp.OR))
BITWISE_OPS = frozenset((ExprOp.BITAND, ExprOp.BITIOR, ExprOp.BITXOR))
COMPARISON_OPS = frozenset(
    (ExprOp.LT, ExprOp.GT, ExprOp.LTE, ExprOp.GTE, ExprOp.EQ, ExprOp.NEQ)
)
BINARY_OPS = ARITHMETIC_OPS | LOGICAL_OPS | BITWISE_OPS | COMPARISON_OPS

TARGET_STMTS = frozenset((StmtOp.JZ, StmtOp.JMP, StmtOp.MENUI, StmtOp.PROCD))


class ConfigurationError(RuntimeError):
    pass


class MesError(ValueError):
    def __init__(self, msg: str, offset: Optional[int] = None):
        self.msg = msg
        self.offset = offset
        if offset is None:
            super().__init__(msg)
        else:
            super().__init__(f"{msg} at {hx(offset)}")


class MalformedOpcode(MesError):
    pass


class TruncatedBuffer(MesError):
    pass


class MalformedExpression(MesError):
    pass


class InvalidExpressionOpcode(MalformedExpression, MalformedOpcode):
    pass


class TruncatedExpression(MalformedExpression, TruncatedBuffer):
    pass


@dataclass(frozen=True)
class Expression:
    op: ExprOp
    arg: int = 0
    # unary operand, or the right-hand operand of a binary op
    sub_a: Optional["Expression"] = None
    # left-hand operand of a binary op
    sub_b: Optional["Expression"] = None

    @property
    def is_binary(self) -> bool:
        return self.op in BINARY_OPS

    @classmethod
    def imm(cls, value: int) -> "Expression":
        value = int(value)
        if value < 0x80:
            return cls(ExprOp.IMM, value)
        if value <= 0xFFFF:
            return cls(ExprOp.IMM16, value)
        return cls(ExprOp.IMM32, value & 0xFFFFFFFF)

    @classmethod
    def binary(cls, op: ExprOp, lhs: "Expression", rhs: "Expression") -> "Expression":
        if op not in BINARY_OPS:
            raise ValueError(f"not a binary operator: {op!r}")
        return cls(op, sub_a=rhs, sub_b=lhs)


@dataclass(frozen=True)
class Parameter:
    type: ParamType
    text: Optional[str] = None
    expr: Optional[Expression] = None

    @classmethod
    def string(cls, text: str) -> "Parameter":
        return cls(ParamType.STRING, text=text)

    @classmethod
    def expression(cls, expr: Expression) -> "Parameter":
        return cls(ParamType.EXPRESSION, expr=expr)


@dataclass(frozen=True)
class Statement:
    """One decoded MES statement.

    Payload fields are shared across kinds:

    * ``text``, ``terminated``, ``unprefixed``: TXT/STR
    * ``no``: register (SETRBC), variable (SETV, SETAC..SETAB, SETRD), LINE argument
    * ``expr``: JZ condition, SYS selector, SETRBE register, array offset,
      PROCD procedure number
    * ``values``: assigned expressions in source order
    * ``params``: SYS/GOTO/CALL/MENUI/PROC/UTIL parameters
    * ``target``: absolute address of JZ/JMP/MENUI/PROCD
    """

    op: StmtOp
    address: int = MES_ADDRESS_SYNTHETIC
    next_address: int = MES_ADDRESS_SYNTHETIC
    is_jump_target: bool = False
    text: Optional[str] = None
    terminated: bool = True
    unprefixed: bool = False
    no: int = 0
    expr: Optional[Expression] = None
    values: Tuple[Expression, ...] = ()
    params: Tuple[Parameter, ...] = ()
    target: Optional[int] = None

    @property
    def is_synthetic(self) -> bool:
        return self.address == MES_ADDRESS_SYNTHETIC
