from dataclasses import dataclass, field
from typing import Dict, Optional, Sequence, Tuple

from .mes import ExprOp, Expression, ParamType, Parameter

NR_SYSTEM_VARIABLES = 26


def _names(known):
    out = [None] * NR_SYSTEM_VARIABLES
    for i, name in known.items():
        out[i] = name
    return tuple(out)


SYSTEM_VAR16_NAMES = _names(
    {
        2: "flags",
        5: "text_home_x",
        6: "text_home_y",
        7: "width",
        8: "height",
        9: "text_cursor_x",
        10: "text_cursor_y",
        12: "font_width",
        13: "font_height",
        15: "font_width2",
        16: "font_height2",
        23: "mask_color",
    }
)

SYSTEM_VAR32_NAMES = _names(
    {
        0: "memory",
        5: "palette",
        7: "file_data",
        8: "menu_entry_addresses",
        9: "menu_entry_numbers",
    }
)


def system_var16_name(no: int) -> Optional[str]:
    if 0 <= no < NR_SYSTEM_VARIABLES:
        return SYSTEM_VAR16_NAMES[no]
    return None


def system_var32_name(no: int) -> Optional[str]:
    if 0 <= no < NR_SYSTEM_VARIABLES:
        return SYSTEM_VAR32_NAMES[no]
    return None


@dataclass(frozen=True)
class SysGroup:
    """A system call whose first parameter selects the actual function."""

    name: Optional[str]
    functions: Dict[int, str] = field(default_factory=dict)


SYSCALLS = {
    0: "set_font_size",
    2: SysGroup(
        "Cursor",
        {
            0: "reload",
            1: "unload",
            2: "save_pos",
            3: "set_pos",
            4: "load",
            5: "show",
            6: "hide",
        },
    ),
    3: SysGroup(None),
    4: SysGroup(
        "SaveData",
        {
            0: "resume_load",
            1: "resume_save",
            2: "load",
            3: "save",
            4: "load_var4",
            5: "save_var4",
            6: "save_union_var4",
            7: "load_var4_slice",
            8: "save_var4_slice",
            9: "copy",
            13: "set_mes_name",
        },
    ),
    5: SysGroup(
        "Audio",
        {
            0: "bgm_play",
            2: "bgm_stop",
            3: "se_play",
            4: "bgm_fade_sync",
            5: "bgm_set_volume",
            7: "bgm_fade",
            9: "bgm_fade_out_sync",
            10: "bgm_fade_out",
            12: "se_stop",
            18: "bgm_stop2",
        },
    ),
    7: SysGroup("File", {0: "read", 1: "write"}),
    8: "load_image",
    9: SysGroup("Palette", {0: "set"}),
    10: SysGroup("Image", {2: "fill_bg", 4: "swap_bg_fg"}),
    11: "wait",
    12: "set_text_colors",
    13: "farcall",
    16: "get_time",
    17: "noop",
    19: SysGroup(None),
    20: "noop2",
    21: "strlen",
    22: SysGroup(None),
    23: "set_screen_surface",
}


def imm8_value(expr: Optional[Expression]) -> Optional[int]:
    if expr is None or expr.op != ExprOp.IMM:
        return None
    return expr.arg


def int_parameter(params: Sequence[Parameter], i: int) -> Optional[int]:
    if i >= len(params):
        return None
    p = params[i]
    if p.type != ParamType.EXPRESSION:
        return None
    return imm8_value(p.expr)


def resolve_syscall(
    expr: Expression, params: Sequence[Parameter]
) -> Optional[Tuple[str, int]]:
    """Return ``(qualified name, parameters consumed)`` or None for the generic form."""
    no = imm8_value(expr)
    if no is None:
        return None
    ent = SYSCALLS.get(no)
    if ent is None:
        return None
    if isinstance(ent, str):
        return f"System.{ent}", 0
    cmd = int_parameter(params, 0)
    if cmd is None:
        return None
    group = ent.name if ent.name is not None else f"function[{no}]"
    fn = ent.functions.get(cmd)
    if fn is None:
        fn = f"function[{cmd}]"
    return f"System.{group}.{fn}", 1
