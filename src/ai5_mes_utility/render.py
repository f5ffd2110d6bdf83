import io
import sys
from typing import Iterable, Sequence

from .common import label_name
from .mes import (
    ARITHMETIC_OPS,
    BITWISE_OPS,
    COMPARISON_OPS,
    LOGICAL_OPS,
    MULTIPLICATIVE_OPS,
    ExprOp,
    Expression,
    ParamType,
    Parameter,
    Statement,
    StmtOp,
)
from .system import resolve_syscall, system_var16_name, system_var32_name

BINARY_OP_SYMBOLS = {
    ExprOp.PLUS: "+",
    ExprOp.MINUS: "-",
    ExprOp.MUL: "*",
    ExprOp.DIV: "/",
    ExprOp.MOD: "%",
    ExprOp.AND: "&&",
    ExprOp.OR: "||",
    ExprOp.BITAND: "&",
    ExprOp.BITIOR: "|",
    ExprOp.BITXOR: "^",
    ExprOp.LT: "<",
    ExprOp.GT: ">",
    ExprOp.LTE: "<=",
    ExprOp.GTE: ">=",
    ExprOp.EQ: "==",
    ExprOp.NEQ: "!=",
}

ASM_MNEMONICS = {
    StmtOp.SETRBC: "SETRBC",
    StmtOp.SETV: "SETV",
    StmtOp.SETRBE: "SETRBE",
    StmtOp.SETAC: "SETAC",
    StmtOp.SETA_AT: "SETA@",
    StmtOp.SETAD: "SETAD",
    StmtOp.SETAW: "SETAW",
    StmtOp.SETAB: "SETAB",
    StmtOp.SETRD: "SETRD",
}


# immediates {{{


def format_number(n: int, bitwise: bool = False) -> str:
    n = int(n) & 0xFFFFFFFF
    if n < 255:
        return f"{n:d}"
    # mask-shaped constants
    if (n & 0xFF) == 0 or (n & (n - 1)) == 0 or ((n + 1) & n) == 0:
        return f"0x{n:x}"
    return f"0x{n:x}" if bitwise else f"{n:d}"


# }}}
# expressions {{{


def binary_op_symbol(op: ExprOp) -> str:
    try:
        return BINARY_OP_SYMBOLS[op]
    except KeyError:
        raise RuntimeError(f"invalid binary operator: {op!r}") from None


def parens_required(op: ExprOp, sub: Expression) -> bool:
    if op not in BINARY_OP_SYMBOLS:
        raise RuntimeError(f"invalid binary operator: {op!r}")
    if not sub.is_binary:
        return False
    if op in MULTIPLICATIVE_OPS or op in BITWISE_OPS:
        return True
    if op in ARITHMETIC_OPS:
        return sub.op not in MULTIPLICATIVE_OPS
    if op in COMPARISON_OPS:
        return sub.op not in ARITHMETIC_OPS
    return sub.op in LOGICAL_OPS


def _binary_to_str(expr: Expression, bitwise: bool) -> str:
    parts = []
    # sub_b is the left operand; it was popped last
    for sub in (expr.sub_b, expr.sub_a):
        s = _expr_to_str(sub, bitwise)
        parts.append(f"({s})" if parens_required(expr.op, sub) else s)
    return f"{parts[0]} {binary_op_symbol(expr.op)} {parts[1]}"


def _system_array_to_str(expr: Expression, width: str, name_of, elem: str) -> str:
    if expr.arg == 0:
        sub = expr.sub_a
        name = name_of(sub.arg) if sub.op == ExprOp.IMM else None
        if name:
            return f"System.{name}"
        return f"System.{width}[{expression_to_str(sub)}]"
    return f"{width}[{expr.arg - 1:d}]->{elem}[{expression_to_str(expr.sub_a)}]"


def _expr_to_str(expr: Expression, bitwise: bool) -> str:
    op = expr.op
    if op in (ExprOp.IMM, ExprOp.IMM16, ExprOp.IMM32):
        return format_number(expr.arg, bitwise)
    if op == ExprOp.VAR:
        return f"var16[{expr.arg:d}]"
    if op == ExprOp.ARRAY16_GET16:
        return _system_array_to_str(expr, "var16", system_var16_name, "word")
    if op == ExprOp.ARRAY16_GET8:
        return f"var16[{expr.arg:d}]->byte[{expression_to_str(expr.sub_a)}]"
    if op in ARITHMETIC_OPS:
        return _binary_to_str(expr, bitwise)
    if op in LOGICAL_OPS or op in COMPARISON_OPS:
        return _binary_to_str(expr, False)
    if op in BITWISE_OPS:
        return _binary_to_str(expr, True)
    if op == ExprOp.RAND:
        return f"rand({expression_to_str(expr.sub_a)})"
    if op == ExprOp.REG16:
        return f"var4[{expr.arg:d}]"
    if op == ExprOp.REG8:
        return f"var4[{expression_to_str(expr.sub_a)}]"
    if op == ExprOp.ARRAY32_GET32:
        return _system_array_to_str(expr, "var32", system_var32_name, "dword")
    if op == ExprOp.ARRAY32_GET16:
        return f"var32[{expr.arg - 1:d}]->word[{expression_to_str(expr.sub_a)}]"
    if op == ExprOp.ARRAY32_GET8:
        return f"var32[{expr.arg - 1:d}]->byte[{expression_to_str(expr.sub_a)}]"
    if op == ExprOp.VAR32:
        return f"var32[{expr.arg:d}]"
    raise RuntimeError(f"encountered {ExprOp(op).name} expression when printing")


def expression_to_str(expr: Expression) -> str:
    return _expr_to_str(expr, False)


def expression_list_to_str(exprs: Iterable[Expression]) -> str:
    return ",".join(expression_to_str(e) for e in exprs)


def print_expression(expr: Expression, out=None) -> None:
    if out is None:
        out = sys.stdout
    out.write(expression_to_str(expr))


# }}}
# parameters {{{


def parameter_to_str(param: Parameter) -> str:
    if param.type == ParamType.STRING:
        return f'"{param.text}"'
    return expression_to_str(param.expr)


def parameters_to_str(params: Sequence[Parameter], start: int = 0) -> str:
    return "(" + ",".join(parameter_to_str(p) for p in params[start:]) + ")"


def print_parameters(params: Sequence[Parameter], out=None) -> None:
    if out is None:
        out = sys.stdout
    out.write(parameters_to_str(params))


# }}}
# assembly statements {{{


def asm_statement_to_str(stmt: Statement) -> str:
    op = stmt.op
    if op == StmtOp.END:
        return "END;"
    if op in (StmtOp.TXT, StmtOp.STR):
        return f'{op.name} "{stmt.text}";'
    if op in (StmtOp.SETRBC, StmtOp.SETV, StmtOp.SETRD):
        return f"{ASM_MNEMONICS[op]}[{stmt.no:d}] = {expression_list_to_str(stmt.values)};"
    if op == StmtOp.SETRBE:
        return (
            f"SETRBE[{expression_to_str(stmt.expr)}] = "
            f"{expression_list_to_str(stmt.values)};"
        )
    if op in ASM_MNEMONICS:
        return (
            f"{ASM_MNEMONICS[op]}[{stmt.no:d}][{expression_to_str(stmt.expr)}] = "
            f"{expression_list_to_str(stmt.values)};"
        )
    if op == StmtOp.JZ:
        return f"JZ {expression_to_str(stmt.expr)} {label_name(stmt.target)};"
    if op == StmtOp.JMP:
        return f"JMP {label_name(stmt.target)};"
    if op == StmtOp.SYS:
        return f"SYS[{expression_to_str(stmt.expr)}]{parameters_to_str(stmt.params)};"
    if op in (StmtOp.GOTO, StmtOp.CALL, StmtOp.PROC, StmtOp.UTIL):
        return f"{op.name}{parameters_to_str(stmt.params)};"
    if op == StmtOp.MENUI:
        return f"MENUI{parameters_to_str(stmt.params)} {label_name(stmt.target)};"
    if op == StmtOp.LINE:
        return f"LINE {stmt.no:d};"
    if op == StmtOp.PROCD:
        return f"PROCD {expression_to_str(stmt.expr)} {label_name(stmt.target)};"
    if op == StmtOp.MENUS:
        return "MENUS;"
    raise RuntimeError(f"invalid statement: {op!r}")


def print_asm_statement(stmt: Statement, out=None, indent: int = 1) -> None:
    if out is None:
        out = sys.stdout
    if stmt.is_jump_target:
        out.write("\t" * max(indent - 1, 0) + label_name(stmt.address) + ":\n")
    out.write("\t" * indent + asm_statement_to_str(stmt) + "\n")


def print_asm(statements: Iterable[Statement], out=None) -> None:
    if out is None:
        out = sys.stdout
    for stmt in statements:
        print_asm_statement(stmt, out, 1)


# }}}
# pseudocode statements {{{


def _system_lvalue_to_str(stmt: Statement, width: str, name_of, elem: str) -> str:
    off = stmt.expr
    if stmt.no == 0:
        name = name_of(off.arg) if off.op == ExprOp.IMM else None
        if name:
            return f"System.{name}"
        return f"System.{width}[{expression_to_str(off)}]"
    return f"{width}[{stmt.no - 1:d}]->{elem}[{expression_to_str(off)}]"


def _lvalue_to_str(stmt: Statement) -> str:
    op = stmt.op
    if op == StmtOp.SETRBC:
        return f"var4[{stmt.no:d}]"
    if op == StmtOp.SETV:
        return f"var16[{stmt.no:d}]"
    if op == StmtOp.SETRBE:
        return f"var4[{expression_to_str(stmt.expr)}]"
    if op == StmtOp.SETAC:
        return f"var16[{stmt.no:d}]->byte[{expression_to_str(stmt.expr)}]"
    if op == StmtOp.SETA_AT:
        return _system_lvalue_to_str(stmt, "var16", system_var16_name, "word")
    if op == StmtOp.SETAD:
        return _system_lvalue_to_str(stmt, "var32", system_var32_name, "dword")
    if op == StmtOp.SETAW:
        return f"var32[{stmt.no - 1:d}]->word[{expression_to_str(stmt.expr)}]"
    if op == StmtOp.SETAB:
        return f"var32[{stmt.no - 1:d}]->byte[{expression_to_str(stmt.expr)}]"
    if op == StmtOp.SETRD:
        return f"var32[{stmt.no:d}]"
    raise RuntimeError(f"not an assignment: {op!r}")


def syscall_to_str(stmt: Statement) -> str:
    hit = resolve_syscall(stmt.expr, stmt.params)
    if hit is None:
        return (
            f"System.function[{expression_to_str(stmt.expr)}]"
            f"{parameters_to_str(stmt.params)}"
        )
    name, consumed = hit
    return name + parameters_to_str(stmt.params, consumed)


def statement_to_str(stmt: Statement) -> str:
    op = stmt.op
    if op == StmtOp.END:
        return "return;"
    if op in (StmtOp.TXT, StmtOp.STR):
        prefix = ""
        if stmt.unprefixed:
            prefix += "unprefixed "
        if not stmt.terminated:
            prefix += "unterminated "
        return f'{prefix}"{stmt.text}";'
    if op in ASM_MNEMONICS:
        return f"{_lvalue_to_str(stmt)} = {expression_list_to_str(stmt.values)};"
    if op == StmtOp.JZ:
        return f"jz {expression_to_str(stmt.expr)} {label_name(stmt.target)};"
    if op == StmtOp.JMP:
        return f"goto {label_name(stmt.target)};"
    if op == StmtOp.SYS:
        return syscall_to_str(stmt) + ";"
    if op == StmtOp.GOTO:
        return f"jump{parameters_to_str(stmt.params)};"
    if op in (StmtOp.CALL, StmtOp.PROC):
        return f"call{parameters_to_str(stmt.params)};"
    if op == StmtOp.MENUI:
        return f"defmenu{parameters_to_str(stmt.params)} {label_name(stmt.target)};"
    if op == StmtOp.UTIL:
        return f"util{parameters_to_str(stmt.params)};"
    if op == StmtOp.LINE:
        return f"line {stmt.no:d};"
    if op == StmtOp.PROCD:
        return f"defproc {expression_to_str(stmt.expr)} {label_name(stmt.target)};"
    if op == StmtOp.MENUS:
        return "menuexec;"
    raise RuntimeError(f"invalid statement: {op!r}")


def print_statement(stmt: Statement, out=None, indent: int = 1) -> None:
    if out is None:
        out = sys.stdout
    out.write("\t" * indent + statement_to_str(stmt) + "\n")


def print_statements(statements: Iterable[Statement], out=None, indent: int = 1) -> None:
    if out is None:
        out = sys.stdout
    for stmt in statements:
        print_statement(stmt, out, indent)


def print_flat(statements: Iterable[Statement], out=None) -> None:
    if out is None:
        out = sys.stdout
    for stmt in statements:
        if stmt.is_jump_target:
            out.write(label_name(stmt.address) + ":\n")
        print_statement(stmt, out, 1)


# }}}

RENDERERS = {
    "asm": print_asm,
    "flat": print_flat,
    "plain": print_statements,
}


def render(statements: Iterable[Statement], mode: str = "flat") -> str:
    try:
        fn = RENDERERS[mode]
    except KeyError:
        raise ValueError(f"unknown render mode: {mode}") from None
    buf = io.StringIO()
    fn(statements, buf)
    return buf.getvalue()
