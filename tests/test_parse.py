import struct

import pytest
from ai5_mes_utility.mes import (
    MES_ADDRESS_SYNTHETIC,
    ExprOp,
    Expression,
    InvalidExpressionOpcode,
    MalformedExpression,
    MalformedOpcode,
    ParamType,
    StmtOp,
    TruncatedBuffer,
    TruncatedExpression,
)
from ai5_mes_utility.opcodes import AI5WIN, AI5WIN_V1
from ai5_mes_utility.parse import (
    dangling_targets,
    parse_expression,
    parse_statement,
    parse_statements,
)
from ai5_mes_utility.render import render


def u32(v):
    return struct.pack("<I", v)


def test_assign_sum_then_end():
    """var16[3] = 1 + 2; return;"""
    data = bytes([0x04, 0x03, 0x01, 0x02, 0xE0, 0xFF, 0x00, 0x00])
    stmts = parse_statements(data, len(data), AI5WIN)
    assert [s.op for s in stmts] == [StmtOp.SETV, StmtOp.END]
    setv, end = stmts
    assert setv.no == 3
    assert setv.address == 0 and setv.next_address == 7
    assert end.address == 7 and end.next_address == 8
    (val,) = setv.values
    assert val.op == ExprOp.PLUS
    assert val.sub_b == Expression(ExprOp.IMM, 1)
    assert val.sub_a == Expression(ExprOp.IMM, 2)
    assert not any(s.is_jump_target for s in stmts)
    assert render(stmts, "flat") == "\tvar16[3] = 1 + 2;\n\treturn;\n"


def test_decode_is_deterministic():
    """Decoding the same buffer twice gives equal statement sequences."""
    data = (
        bytes([0x0B, 0x81, 0xFF])
        + u32(9)
        + bytes([0x0C])
        + u32(0)
        + bytes([0x00])
    )
    assert parse_statements(data, table=AI5WIN) == parse_statements(data, table=AI5WIN)


def test_expression_list_keeps_order():
    data = bytes([0x04, 0x01, 0x05, 0xFF, 0x01, 0x06, 0xFF, 0x00])
    (stmt,) = parse_statements(data, table=AI5WIN)
    assert [e.arg for e in stmt.values] == [5, 6]
    assert render([stmt], "plain") == "\tvar16[1] = 5,6;\n"


def test_jump_target_marked_once():
    data = bytes([0x0C]) + u32(5) + bytes([0x00])
    jmp, end = parse_statements(data, table=AI5WIN)
    assert jmp.target == 5
    assert not jmp.is_jump_target
    assert end.is_jump_target
    assert render([jmp, end], "flat") == (
        "\tgoto L_00000005;\nL_00000005:\n\treturn;\n"
    )


def test_conditional_jump_and_procedure_targets():
    data = (
        bytes([0x0B, 0x81, 0xFF])
        + u32(14)
        + bytes([0x14, 0x01, 0xFF])
        + u32(15)
        + bytes([0x00, 0x00])
    )
    stmts = parse_statements(data, table=AI5WIN)
    assert [s.op for s in stmts] == [StmtOp.JZ, StmtOp.PROCD, StmtOp.END, StmtOp.END]
    assert [s.address for s in stmts] == [0, 7, 14, 15]
    assert [s.is_jump_target for s in stmts] == [False, False, True, True]
    assert stmts[0].expr == Expression(ExprOp.VAR, 1)
    assert stmts[1].expr == Expression(ExprOp.IMM, 1)


def test_dangling_target_is_preserved():
    data = bytes([0x0C]) + u32(0x100) + bytes([0x00])
    stmts = parse_statements(data, table=AI5WIN)
    assert stmts[0].target == 0x100
    assert not any(s.is_jump_target for s in stmts)
    assert dangling_targets(stmts) == [0x100]
    assert "goto L_00000100;" in render(stmts, "flat")


def test_target_inside_statement_is_not_marked():
    data = bytes([0x0C]) + u32(2) + bytes([0x00])
    stmts = parse_statements(data, table=AI5WIN)
    assert not any(s.is_jump_target for s in stmts)
    assert dangling_targets(stmts) == [2]


def test_size_bounds_the_buffer():
    data = bytes([0x00, 0x00, 0xEE, 0xEE])
    stmts = parse_statements(data, 2, AI5WIN)
    assert len(stmts) == 2
    assert stmts[-1].next_address == 2


def test_size_larger_than_buffer():
    with pytest.raises(TruncatedBuffer):
        parse_statements(b"\x00", 4, AI5WIN)


def test_truncated_jump():
    data = bytes([0x00, 0x0C, 0x05, 0x00])
    with pytest.raises(TruncatedBuffer) as ei:
        parse_statements(data, table=AI5WIN)
    assert ei.value.offset == 2


def test_invalid_statement_opcode():
    with pytest.raises(MalformedOpcode) as ei:
        parse_statements(bytes([0x00, 0x17]), table=AI5WIN)
    assert ei.value.offset == 1
    assert "0x00000001" in str(ei.value)


def test_missing_opcode_in_older_layout():
    """0x15 is MENUS in the newer layout and unassigned in the older one."""
    data = bytes([0x15])
    assert parse_statements(data, table=AI5WIN)[0].op == StmtOp.MENUS
    with pytest.raises(MalformedOpcode):
        parse_statements(data, table=AI5WIN_V1)


def test_same_byte_different_titles():
    data = bytes([0x07, 0x00, 0x05, 0xFF, 0x01, 0xFF, 0x00])
    (a,) = parse_statements(data, table=AI5WIN)
    (b,) = parse_statements(data, table=AI5WIN_V1)
    assert a.op == StmtOp.SETA_AT
    assert b.op == StmtOp.SETAD
    assert render([a], "plain") == "\tSystem.text_home_x = 1;\n"
    assert render([b], "plain") == "\tSystem.palette = 1;\n"


@pytest.mark.parametrize(
    "data,op,arg",
    [
        (bytes([0x05, 0xFF]), ExprOp.IMM, 5),
        (bytes([0x9F, 0xFF]), ExprOp.VAR, 0x1F),
        (bytes([0xF1, 0x34, 0x12, 0xFF]), ExprOp.IMM16, 0x1234),
        (bytes([0xF2, 0x78, 0x56, 0x34, 0x12, 0xFF]), ExprOp.IMM32, 0x12345678),
        (bytes([0xF3, 0x10, 0x00, 0xFF]), ExprOp.REG16, 0x10),
        (bytes([0xF8, 0x03, 0xFF]), ExprOp.VAR32, 3),
    ],
)
def test_operand_expressions(data, op, arg):
    expr, end = parse_expression(data, 0, AI5WIN)
    assert expr.op == op
    assert expr.arg == arg
    assert end == len(data)


def test_indexed_reads_pop_their_index():
    expr, _ = parse_expression(bytes([0x04, 0xA2, 0xFF]), 0, AI5WIN)
    assert expr == Expression(ExprOp.ARRAY16_GET16, 2, Expression(ExprOp.IMM, 4))
    expr, _ = parse_expression(bytes([0x00, 0xF5, 0x00, 0xFF]), 0, AI5WIN)
    assert expr == Expression(ExprOp.ARRAY32_GET32, 0, Expression(ExprOp.IMM, 0))


def test_binary_operands_order():
    expr, _ = parse_expression(bytes([0x05, 0x03, 0xE1, 0xFF]), 0, AI5WIN)
    assert expr.op == ExprOp.MINUS
    assert expr.sub_b.arg == 5
    assert expr.sub_a.arg == 3


def test_expression_at_offset():
    data = bytes([0xEE, 0x01, 0xE5, 0xFF])
    expr, end = parse_expression(data, 1, AI5WIN)
    assert expr == Expression(ExprOp.RAND, sub_a=Expression(ExprOp.IMM, 1))
    assert end == 4


def test_invalid_expression_opcode():
    with pytest.raises(InvalidExpressionOpcode) as ei:
        parse_expression(bytes([0x01, 0xF9, 0xFF]), 0, AI5WIN)
    assert isinstance(ei.value, MalformedExpression)
    assert isinstance(ei.value, MalformedOpcode)
    assert ei.value.offset == 1


def test_missing_operand():
    with pytest.raises(MalformedExpression):
        parse_expression(bytes([0x01, 0xE0, 0xFF]), 0, AI5WIN)


def test_terminator_with_leftover_values():
    with pytest.raises(MalformedExpression):
        parse_expression(bytes([0x01, 0x02, 0xFF]), 0, AI5WIN)


def test_empty_expression():
    with pytest.raises(MalformedExpression):
        parse_expression(bytes([0xFF]), 0, AI5WIN)


def test_truncated_expression():
    with pytest.raises(TruncatedExpression) as ei:
        parse_statements(bytes([0x04, 0x01, 0xF1, 0x34]), table=AI5WIN)
    assert isinstance(ei.value, TruncatedBuffer)
    assert isinstance(ei.value, MalformedExpression)


def test_prefixed_text():
    data = bytes([0x01, 0x82, 0xA0, 0x82, 0xA2, 0x00])
    (stmt,) = parse_statements(data, table=AI5WIN)
    assert stmt.op == StmtOp.TXT
    assert stmt.text == "あい"
    assert stmt.terminated and not stmt.unprefixed
    assert render([stmt], "plain") == '\t"あい";\n'


def test_unprefixed_text():
    data = bytes([0x82, 0xA0, 0x00, 0x00])
    txt, end = parse_statements(data, table=AI5WIN)
    assert txt.op == StmtOp.TXT
    assert txt.unprefixed
    assert txt.address == 0 and end.address == 3
    assert render([txt], "plain") == '\tunprefixed "あ";\n'


def test_unterminated_string():
    data = bytes([0x02, 0x41, 0x42])
    (stmt,) = parse_statements(data, table=AI5WIN)
    assert stmt.op == StmtOp.STR
    assert stmt.text == "AB"
    assert not stmt.terminated
    assert render([stmt], "plain") == '\tunterminated "AB";\n'


def test_text_stops_at_non_text_byte():
    data = bytes([0x02, 0x41, 0x13, 0x07])
    s, line = parse_statements(data, table=AI5WIN)
    assert s.text == "A" and not s.terminated
    assert line.op == StmtOp.LINE and line.no == 7


def test_truncated_double_byte_text():
    with pytest.raises(TruncatedBuffer):
        parse_statements(bytes([0x01, 0x82]), table=AI5WIN)


@pytest.mark.parametrize("trail", [0x0A, 0x00, 0x3F, 0x7F, 0xFD])
def test_double_byte_text_rejects_bad_trail_byte(trail):
    data = bytes([0x01, 0x82, 0xA0, 0x82, trail, 0x00])
    with pytest.raises(MalformedOpcode) as ei:
        parse_statements(data, table=AI5WIN)
    assert ei.value.offset == 3


def test_syscall_parameters():
    data = (
        bytes([0x0D, 0x02, 0xFF])
        + bytes([0x02, 0x05, 0xFF])
        + bytes([0x02, 0x0A, 0xFF])
        + bytes([0x01])
        + b"bg.mag\x00"
        + bytes([0x00])
    )
    (stmt,) = parse_statements(data, table=AI5WIN)
    assert stmt.op == StmtOp.SYS
    assert stmt.expr.arg == 2
    assert [p.type for p in stmt.params] == [
        ParamType.EXPRESSION,
        ParamType.EXPRESSION,
        ParamType.STRING,
    ]
    assert stmt.params[2].text == "bg.mag"
    assert render([stmt], "plain") == '\tSystem.Cursor.show(10,"bg.mag");\n'


def test_invalid_parameter_type():
    with pytest.raises(MalformedOpcode) as ei:
        parse_statements(bytes([0x0F, 0x03]), table=AI5WIN)
    assert ei.value.offset == 1


def test_unterminated_string_parameter():
    with pytest.raises(TruncatedBuffer):
        parse_statements(bytes([0x0F, 0x01, 0x41, 0x42]), table=AI5WIN)


def test_menu_definition():
    data = bytes([0x10, 0x01]) + b"menu\x00" + bytes([0x00]) + u32(12) + bytes([0x15])
    menui, menus = parse_statements(data, table=AI5WIN)
    assert menui.op == StmtOp.MENUI and menui.target == 12
    assert menus.op == StmtOp.MENUS and menus.is_jump_target
    assert render([menui, menus], "asm") == (
        '\tMENUI("menu") L_0000000c;\nL_0000000c:\n\tMENUS;\n'
    )


def test_assignment_payloads():
    data = (
        bytes([0x03, 0x02, 0x01, 0x07, 0xFF, 0x00])  # var4[0x102] = 7
        + bytes([0x05, 0x81, 0xFF, 0x08, 0xFF, 0x00])  # var4[var16[1]] = 8
        + bytes([0x06, 0x02, 0x03, 0xFF, 0x09, 0xFF, 0x00])  # var16[2]->byte[3] = 9
        + bytes([0x16, 0x04, 0x0A, 0xFF, 0x00])  # var32[4] = 10
    )
    stmts = parse_statements(data, table=AI5WIN)
    assert [s.op for s in stmts] == [
        StmtOp.SETRBC,
        StmtOp.SETRBE,
        StmtOp.SETAC,
        StmtOp.SETRD,
    ]
    assert stmts[0].no == 0x102
    assert render(stmts, "plain") == (
        "\tvar4[258] = 7;\n"
        "\tvar4[var16[1]] = 8;\n"
        "\tvar16[2]->byte[3] = 9;\n"
        "\tvar32[4] = 10;\n"
    )


def test_parse_single_statement():
    data = bytes([0x13, 0x02, 0x00])
    stmt, end = parse_statement(data, 0, AI5WIN)
    assert stmt.op == StmtOp.LINE and stmt.no == 2
    assert end == 2 and stmt.next_address == 2
    assert not stmt.is_jump_target


def test_constructed_statement_is_synthetic():
    stmt, _ = parse_statement(bytes([0x00]), 0, AI5WIN)
    assert not stmt.is_synthetic
    assert Expression.imm(3) == Expression(ExprOp.IMM, 3)
    from ai5_mes_utility.mes import Statement

    assert Statement(StmtOp.END).address == MES_ADDRESS_SYNTHETIC
    assert Statement(StmtOp.END).is_synthetic
