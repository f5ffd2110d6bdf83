import os
import sys

from .common import (
    MES_EXTENSIONS,
    eprint,
    iter_files_by_ext,
    log_stage,
    norm_charset,
    read_bytes,
    write_text,
)
from .game import game_from_env, parse_game_id
from .mes import MesError
from .opcodes import table_for_game
from .parse import dangling_targets, parse_statements
from .render import RENDERERS, render


def disassemble_mes_bytes(data, table, mode: str = "flat") -> str:
    stmts = parse_statements(data, len(data), table)
    return render(stmts, mode)


def _warn_dangling(path, stmts):
    for addr in dangling_targets(stmts):
        eprint(f"warning: {os.path.basename(path)}: jump target 0x{addr:08x} is not a statement")


def _disam_file(path, table, mode):
    data = read_bytes(path)
    stmts = parse_statements(data, len(data), table)
    _warn_dangling(path, stmts)
    return render(stmts, mode)


def _disam_dir(in_dir, out_dir, table, mode, enc):
    files = iter_files_by_ext(in_dir, MES_EXTENSIONS)
    if not files:
        eprint(f"no .mes files found in: {in_dir}")
        return 1
    failed = 0
    for path in files:
        log_stage("disam", path)
        try:
            text = _disam_file(path, table, mode)
        except MesError as e:
            eprint(f"{path}: {e}")
            failed += 1
            continue
        rel = os.path.relpath(path, in_dir)
        write_text(os.path.join(out_dir, rel + ".txt"), text, enc=enc)
    if failed:
        eprint(f"{failed:d}/{len(files):d} files failed to decode")
        return 1
    return 0


def main(argv=None):
    if argv is None:
        argv = sys.argv[1:]
    args = list(argv)
    if not args or args[0] in ("-h", "--help", "help"):
        return 2

    mode = "flat"
    game = None
    enc = "utf-8"
    rest = []
    it = iter(args)
    for a in it:
        if a in ("--asm", "--flat", "--plain"):
            mode = a[2:]
        elif a in ("--game", "-g"):
            try:
                game = next(it)
            except StopIteration:
                eprint("--game requires a value")
                return 2
        elif a == "--charset":
            try:
                enc = norm_charset(next(it))
            except StopIteration:
                eprint("--charset requires a value")
                return 2
            if not enc:
                eprint("--charset must be jis/cp932 or utf8")
                return 2
        elif a.startswith("--"):
            eprint(f"unknown disam option: {a}")
            return 2
        else:
            rest.append(a)
    if mode not in RENDERERS or len(rest) not in (1, 2):
        return 2

    try:
        gid = parse_game_id(game) if game else game_from_env()
    except ValueError as e:
        eprint(str(e))
        return 2
    if gid is None:
        eprint("no game selected: pass --game NAME or set AI5_MES_GAME")
        return 2
    table = table_for_game(gid)

    in_path = rest[0]
    out_path = rest[1] if len(rest) > 1 else ""
    if os.path.isdir(in_path):
        if not out_path:
            eprint("directory input requires an output directory")
            return 2
        return _disam_dir(in_path, out_path, table, mode, enc)
    if not os.path.isfile(in_path):
        eprint(f"not found: {in_path}")
        return 2

    try:
        text = _disam_file(in_path, table, mode)
    except MesError as e:
        eprint(f"{in_path}: {e}")
        return 1
    if out_path:
        write_text(out_path, text, enc=enc)
        sys.stdout.write(f"Wrote: {out_path}\n")
    else:
        sys.stdout.write(text)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
