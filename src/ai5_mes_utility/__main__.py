import os
import sys


def _prog():
    p = os.path.basename(sys.argv[0]) if sys.argv and sys.argv[0] else "ai5-mes"
    if not p or p in ("__main__.py", "-c"):
        return "ai5-mes"
    return p


def _get_version() -> str:
    try:
        from importlib.metadata import version as _pkg_version

        return _pkg_version("ai5-mes-utility")
    except Exception:
        try:
            from . import __version__ as _v

            return str(_v)
        except Exception:
            return "unknown"


def _print_version(out=None) -> None:
    if out is None:
        out = sys.stdout
    p = _prog()
    out.write(f"{p} {_get_version()}\n")


def _usage(out=None):
    if out is None:
        out = sys.stderr
    p = _prog()
    out.write(f"{p} {_get_version()}\n")
    out.write(f"usage: {p} [-h] [-V|--version] (games|-d) [args]\n")
    out.write("\n")
    out.write("Options:\n")
    out.write("  -V, --version   Show version and exit\n")
    out.write("\n")
    out.write("Modes:\n")
    out.write("  games           List supported games\n")
    out.write("  -d, --disam     Decode .mes bytecode to a readable listing\n")
    out.write("\n")
    out.write("Disassemble mode:\n")
    out.write(
        f"  {p} -d [--asm|--flat|--plain] [--game NAME] [--charset ENC] <input_mes> [output_txt]\n"
    )
    out.write(
        f"  {p} -d [--asm|--flat|--plain] [--game NAME] [--charset ENC] <input_dir> <output_dir>\n"
    )
    out.write("    --asm          Literal statement mnemonics with labels\n")
    out.write("    --flat         Pseudocode with labels (default)\n")
    out.write("    --plain        Pseudocode without labels\n")
    out.write("    --game NAME    Target game (default: $AI5_MES_GAME)\n")
    out.write("    --charset ENC  Output charset (jis/cp932 or utf8, default: utf8)\n")


def _usage_short(out=None):
    if out is None:
        out = sys.stderr
    p = _prog()
    out.write(f"{p} {_get_version()}\n")
    out.write(f"usage: {p} [-h] [-V|--version] (games|-d) [args]\n")
    out.write(f"Try '{p} --help' for more information.\n")


def main(argv=None):
    if argv is None:
        argv = sys.argv[1:]
    argv = list(argv)
    if argv and argv[0] in ("-V", "--version", "version"):
        _print_version()
        return 0
    if not argv:
        _usage_short()
        return 0
    if argv[0] in ("-h", "--help", "help"):
        _usage()
        return 0
    if len(argv) > 1 and argv[1] in ("-h", "--help", "help"):
        _usage()
        return 0
    mode = argv[0]

    if mode in ("games", "--games"):
        from .game import game_listing

        sys.stdout.write(game_listing() + "\n")
        return 0

    if mode in ("-d", "--disam"):
        from . import disam

        rc = disam.main(argv[1:])
        if rc == 2:
            _usage_short()
        return rc

    sys.stderr.write(f"{_prog()}: unknown mode: {mode}\n")
    _usage_short()
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
