import dataclasses
import struct
from typing import List, Optional, Tuple

from .common import decode_sjis, hx, is_hankaku, is_zenkaku, is_zenkaku_trail
from .mes import (
    BINARY_OPS,
    ExprOp,
    Expression,
    InvalidExpressionOpcode,
    MalformedExpression,
    MalformedOpcode,
    ParamType,
    Parameter,
    Statement,
    StmtOp,
    TARGET_STMTS,
    TruncatedBuffer,
    TruncatedExpression,
)
from .opcodes import OpcodeTable, resolve_table

_U16 = struct.Struct("<H")
_U32 = struct.Struct("<I")


class _Reader:
    def __init__(self, data, size: int, pos: int = 0):
        self.data = data
        self.size = size
        self.pos = pos
        # set while decoding an expression so overruns report as such
        self.in_expr = False

    def _need(self, n: int, what: str):
        if self.pos + n > self.size:
            exc = TruncatedExpression if self.in_expr else TruncatedBuffer
            raise exc(f"unexpected end of buffer reading {what}", self.pos)

    def at_end(self) -> bool:
        return self.pos >= self.size

    def peek(self, what: str = "opcode") -> int:
        self._need(1, what)
        return self.data[self.pos]

    def u8(self, what: str = "byte") -> int:
        self._need(1, what)
        v = self.data[self.pos]
        self.pos += 1
        return v

    def u16(self, what: str = "u16") -> int:
        self._need(2, what)
        v = _U16.unpack_from(self.data, self.pos)[0]
        self.pos += 2
        return v

    def u32(self, what: str = "u32") -> int:
        self._need(4, what)
        v = _U32.unpack_from(self.data, self.pos)[0]
        self.pos += 4
        return v

    def cstring(self) -> str:
        start = self.pos
        end = start
        while end < self.size and self.data[end] != 0:
            end += 1
        if end >= self.size:
            raise TruncatedBuffer("unterminated string parameter", start)
        self.pos = end + 1
        return decode_sjis(self.data[start:end])


def _read_expression(r: _Reader, table: OpcodeTable) -> Expression:
    start = r.pos
    stack: List[Expression] = []

    def pop(op, at):
        if not stack:
            raise MalformedExpression(
                f"{ExprOp(op).name} is missing an operand (expression at {hx(start)})",
                at,
            )
        return stack.pop()

    r.in_expr = True
    try:
        while True:
            at = r.pos
            b = r.u8("expression opcode")
            ent = table.opcode_to_expr(b)
            if ent is None:
                raise InvalidExpressionOpcode(f"invalid expression opcode 0x{b:02x}", at)
            op, implicit = ent
            if op == ExprOp.END:
                if len(stack) != 1:
                    raise MalformedExpression(
                        f"expression ends with {len(stack)} values on the stack (expected 1)",
                        at,
                    )
                return stack[0]
            if op in (ExprOp.IMM, ExprOp.VAR):
                stack.append(Expression(op, implicit))
            elif op in (ExprOp.ARRAY16_GET16, ExprOp.ARRAY16_GET8):
                stack.append(Expression(op, implicit, pop(op, at)))
            elif op in BINARY_OPS:
                rhs = pop(op, at)
                lhs = pop(op, at)
                stack.append(Expression(op, sub_a=rhs, sub_b=lhs))
            elif op in (ExprOp.RAND, ExprOp.REG8):
                stack.append(Expression(op, sub_a=pop(op, at)))
            elif op in (ExprOp.IMM16, ExprOp.REG16):
                stack.append(Expression(op, r.u16(f"{op.name} operand")))
            elif op == ExprOp.IMM32:
                stack.append(Expression(op, r.u32(f"{op.name} operand")))
            elif op in (
                ExprOp.ARRAY32_GET32,
                ExprOp.ARRAY32_GET16,
                ExprOp.ARRAY32_GET8,
            ):
                no = r.u8(f"{op.name} operand")
                stack.append(Expression(op, no, pop(op, at)))
            elif op == ExprOp.VAR32:
                stack.append(Expression(op, r.u8(f"{op.name} operand")))
            else:
                raise InvalidExpressionOpcode(f"unhandled expression opcode {op!r}", at)
    finally:
        r.in_expr = False


def _read_expression_list(r: _Reader, table: OpcodeTable) -> Tuple[Expression, ...]:
    out = []
    while True:
        out.append(_read_expression(r, table))
        if not r.u8("expression list separator"):
            break
    return tuple(out)


def _read_parameter_list(r: _Reader, table: OpcodeTable) -> Tuple[Parameter, ...]:
    out = []
    while True:
        at = r.pos
        t = r.u8("parameter type")
        if t == 0:
            break
        if t == ParamType.STRING:
            out.append(Parameter.string(r.cstring()))
        elif t == ParamType.EXPRESSION:
            out.append(Parameter.expression(_read_expression(r, table)))
        else:
            raise MalformedOpcode(f"invalid parameter type {t}", at)
    return tuple(out)


def _read_text(r: _Reader, wide: bool):
    start = r.pos
    terminated = False
    while not r.at_end():
        b = r.data[r.pos]
        if b == 0:
            terminated = True
            break
        if wide:
            if not is_zenkaku(b):
                break
            if r.pos + 2 > r.size:
                raise TruncatedBuffer("truncated double-byte character", r.pos)
            trail = r.data[r.pos + 1]
            if not is_zenkaku_trail(trail):
                # the lead byte would restart an unprefixed TXT here
                raise MalformedOpcode(
                    f"invalid double-byte character 0x{b:02x}{trail:02x}", r.pos
                )
            r.pos += 2
        else:
            if not is_hankaku(b):
                break
            r.pos += 1
    text = decode_sjis(r.data[start : r.pos])
    if terminated:
        r.pos += 1
    return text, terminated


def _read_statement(r: _Reader, table: OpcodeTable) -> Statement:
    addr = r.pos
    b = r.peek("statement opcode")
    op = table.opcode_to_stmt(b)
    unprefixed = False
    if op is None:
        if is_zenkaku(b):
            op = StmtOp.TXT
        elif is_hankaku(b):
            op = StmtOp.STR
        else:
            raise MalformedOpcode(f"invalid statement opcode 0x{b:02x}", addr)
        unprefixed = True
    else:
        r.pos += 1

    kw = {}
    if op in (StmtOp.END, StmtOp.MENUS):
        pass
    elif op in (StmtOp.TXT, StmtOp.STR):
        text, terminated = _read_text(r, op == StmtOp.TXT)
        kw.update(text=text, terminated=terminated, unprefixed=unprefixed)
    elif op == StmtOp.SETRBC:
        kw["no"] = r.u16("register number")
        kw["values"] = _read_expression_list(r, table)
    elif op in (StmtOp.SETV, StmtOp.SETRD):
        kw["no"] = r.u8("variable number")
        kw["values"] = _read_expression_list(r, table)
    elif op == StmtOp.SETRBE:
        kw["expr"] = _read_expression(r, table)
        kw["values"] = _read_expression_list(r, table)
    elif op in (
        StmtOp.SETAC,
        StmtOp.SETA_AT,
        StmtOp.SETAD,
        StmtOp.SETAW,
        StmtOp.SETAB,
    ):
        kw["no"] = r.u8("variable number")
        kw["expr"] = _read_expression(r, table)
        kw["values"] = _read_expression_list(r, table)
    elif op in (StmtOp.JZ, StmtOp.PROCD):
        kw["expr"] = _read_expression(r, table)
        kw["target"] = r.u32("jump target")
    elif op == StmtOp.JMP:
        kw["target"] = r.u32("jump target")
    elif op == StmtOp.SYS:
        kw["expr"] = _read_expression(r, table)
        kw["params"] = _read_parameter_list(r, table)
    elif op in (StmtOp.GOTO, StmtOp.CALL, StmtOp.PROC, StmtOp.UTIL):
        kw["params"] = _read_parameter_list(r, table)
    elif op == StmtOp.MENUI:
        kw["params"] = _read_parameter_list(r, table)
        kw["target"] = r.u32("menu target")
    elif op == StmtOp.LINE:
        kw["no"] = r.u8("line argument")
    else:
        raise MalformedOpcode(f"unhandled statement opcode {op!r}", addr)
    return Statement(op, address=addr, **kw)


def parse_expression(
    data, offset: int = 0, table: Optional[OpcodeTable] = None
) -> Tuple[Expression, int]:
    table = resolve_table(table)
    r = _Reader(data, len(data), offset)
    expr = _read_expression(r, table)
    return expr, r.pos


def parse_statement(
    data, offset: int = 0, table: Optional[OpcodeTable] = None
) -> Tuple[Statement, int]:
    table = resolve_table(table)
    r = _Reader(data, len(data), offset)
    stmt = _read_statement(r, table)
    return dataclasses.replace(stmt, next_address=r.pos), r.pos


def parse_statements(
    data, size: Optional[int] = None, table: Optional[OpcodeTable] = None
) -> List[Statement]:
    table = resolve_table(table)
    n = len(data) if size is None else int(size)
    if n < 0 or n > len(data):
        raise TruncatedBuffer(f"size {n} exceeds buffer length {len(data)}", 0)
    r = _Reader(data, n)
    raw = []
    while not r.at_end():
        raw.append(_read_statement(r, table))

    targets = {s.target for s in raw if s.op in TARGET_STMTS}
    out = []
    for i, s in enumerate(raw):
        nxt = raw[i + 1].address if i + 1 < len(raw) else n
        out.append(
            dataclasses.replace(
                s, next_address=nxt, is_jump_target=s.address in targets
            )
        )
    return out


def dangling_targets(statements) -> List[int]:
    addrs = {s.address for s in statements}
    out = set()
    for s in statements:
        if s.op in TARGET_STMTS and s.target not in addrs:
            out.add(s.target)
    return sorted(out)
