__version__ = "0.1.0"

from .game import GAMES, GameId, parse_game_id
from .mes import (
    MES_ADDRESS_SYNTHETIC,
    ConfigurationError,
    ExprOp,
    Expression,
    MalformedExpression,
    MalformedOpcode,
    MesError,
    ParamType,
    Parameter,
    Statement,
    StmtOp,
    TruncatedBuffer,
)
from .opcodes import OpcodeTable, active_table, set_game, table_for_game
from .parse import dangling_targets, parse_expression, parse_statement, parse_statements
from .render import (
    expression_to_str,
    format_number,
    print_asm,
    print_flat,
    print_statements,
    render,
    statement_to_str,
)
