from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional, Tuple

from .game import GameId, game_name, parse_game_id
from .mes import RANGE_SIZES, ConfigurationError, ExprOp, StmtOp


@dataclass(frozen=True, eq=False)
class OpcodeTable:
    name: str
    stmt_ops: Mapping[StmtOp, int]
    # compact families map to the base byte of their range
    expr_ops: Mapping[ExprOp, int]
    _stmt_rev: Mapping[int, StmtOp] = field(init=False, repr=False, compare=False)
    _expr_rev: Tuple = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        stmt_ops = {StmtOp(k): int(v) for k, v in dict(self.stmt_ops).items()}
        expr_ops = {ExprOp(k): int(v) for k, v in dict(self.expr_ops).items()}
        if ExprOp.END not in expr_ops:
            raise ValueError(f"{self.name}: expression table has no terminator")
        stmt_rev = {}
        for op, b in stmt_ops.items():
            if not 0 <= b <= 0xFF:
                raise ValueError(f"{self.name}: {op.name} opcode out of range: {b}")
            if b in stmt_rev:
                raise ValueError(
                    f"{self.name}: opcode 0x{b:02x} used by {stmt_rev[b].name} and {op.name}"
                )
            stmt_rev[b] = op
        expr_rev = [None] * 256
        for op, base in expr_ops.items():
            for i in range(RANGE_SIZES.get(op, 1)):
                b = base + i
                if not 0 <= b <= 0xFF:
                    raise ValueError(f"{self.name}: {op.name} range exceeds 0xff")
                if expr_rev[b] is not None:
                    raise ValueError(
                        f"{self.name}: opcode 0x{b:02x} used by {expr_rev[b][0].name} and {op.name}"
                    )
                expr_rev[b] = (op, i)
        object.__setattr__(self, "stmt_ops", MappingProxyType(stmt_ops))
        object.__setattr__(self, "expr_ops", MappingProxyType(expr_ops))
        object.__setattr__(self, "_stmt_rev", MappingProxyType(stmt_rev))
        object.__setattr__(self, "_expr_rev", tuple(expr_rev))

    def stmt_opcode(self, op: StmtOp) -> int:
        try:
            return self.stmt_ops[op]
        except KeyError:
            raise KeyError(f"{self.name}: no opcode for statement {StmtOp(op).name}")

    def expr_opcode(self, op: ExprOp) -> int:
        try:
            return self.expr_ops[op]
        except KeyError:
            raise KeyError(f"{self.name}: no opcode for expression {ExprOp(op).name}")

    def opcode_to_stmt(self, b: int) -> Optional[StmtOp]:
        return self._stmt_rev.get(int(b))

    def opcode_to_expr(self, b: int) -> Optional[Tuple[ExprOp, int]]:
        b = int(b)
        if not 0 <= b <= 0xFF:
            return None
        return self._expr_rev[b]


def _layout(ops):
    return {op: i for i, op in enumerate(ops)}


AI5WIN = OpcodeTable(
    "ai5win",
    {op: op.value for op in StmtOp},
    {op: op.value for op in ExprOp},
)

# older titles lack SETA@ and SETRD; later statements close the gap.
# Unverified: no dump of these titles has been checked against this layout.
AI5WIN_V1 = OpcodeTable(
    "ai5win_v1",
    _layout(
        (
            StmtOp.END,
            StmtOp.TXT,
            StmtOp.STR,
            StmtOp.SETRBC,
            StmtOp.SETV,
            StmtOp.SETRBE,
            StmtOp.SETAC,
            StmtOp.SETAD,
            StmtOp.SETAW,
            StmtOp.SETAB,
            StmtOp.JZ,
            StmtOp.JMP,
            StmtOp.SYS,
            StmtOp.GOTO,
            StmtOp.CALL,
            StmtOp.MENUI,
            StmtOp.PROC,
            StmtOp.UTIL,
            StmtOp.LINE,
            StmtOp.PROCD,
            StmtOp.MENUS,
        )
    ),
    {op: op.value for op in ExprOp},
)

GAME_TABLES = {
    GameId.AI_SHIMAI: AI5WIN,
    GameId.BEYOND: AI5WIN_V1,
    GameId.DOUKYUUSEI: AI5WIN_V1,
    GameId.ISAKU: AI5WIN,
    GameId.KOIHIME: AI5WIN_V1,
    GameId.YUKINOJOU: AI5WIN_V1,
    GameId.ELF_CLASSICS: AI5WIN,
}

_active_game: Optional[GameId] = None
_active_table: Optional[OpcodeTable] = None


def _to_game_id(game) -> GameId:
    if isinstance(game, str):
        return parse_game_id(game)
    return GameId(game)


def table_for_game(game) -> OpcodeTable:
    return GAME_TABLES[_to_game_id(game)]


def set_game(game, reselect: bool = False) -> OpcodeTable:
    global _active_game, _active_table
    gid = _to_game_id(game)
    if _active_game is not None and _active_game != gid and not reselect:
        raise ConfigurationError(
            f"game already selected: {game_name(_active_game)} (requested {game_name(gid)})"
        )
    _active_game = gid
    _active_table = GAME_TABLES[gid]
    return _active_table


def clear_game() -> None:
    global _active_game, _active_table
    _active_game = None
    _active_table = None


def active_game() -> Optional[GameId]:
    return _active_game


def active_table() -> OpcodeTable:
    if _active_table is None:
        raise ConfigurationError("no game selected; call set_game() first")
    return _active_table


def resolve_table(table: Optional[OpcodeTable] = None) -> OpcodeTable:
    if table is not None:
        return table
    return active_table()
