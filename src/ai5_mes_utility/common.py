import os
import sys

MES_EXTENSIONS = (".mes",)

TEXT_CHARSET = "cp932"

_CHARSET_ALIASES = {
    "cp932": ("jis", "sjis", "shift_jis", "shift-jis", "cp932", "ms932"),
    "utf-8": ("utf8", "utf-8", "utf_8"),
}


def norm_charset(cs: str) -> str:
    s = str(cs or "").strip().lower()
    for name, aliases in _CHARSET_ALIASES.items():
        if s in aliases:
            return name
    return ""


def decode_sjis(data: bytes) -> str:
    return bytes(data).decode(TEXT_CHARSET, "backslashreplace")


def is_zenkaku(b: int) -> bool:
    return 0x81 <= b <= 0x9F or 0xE0 <= b <= 0xEF


def is_zenkaku_trail(b: int) -> bool:
    return 0x40 <= b <= 0xFC and b != 0x7F


def is_hankaku(b: int) -> bool:
    return 0x20 <= b <= 0x7E or 0xA1 <= b <= 0xDF


def read_bytes(path: str) -> bytes:
    with open(path, "rb") as f:
        return f.read()


def write_text(path: str, text: str, enc: str = "utf-8") -> None:
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    with open(path, "w", encoding=enc, newline="\n") as f:
        f.write(text)


def log_stage(stage, file_path):
    print(f"{stage}: {os.path.basename(file_path)}")


def eprint(msg: str) -> None:
    try:
        sys.stderr.write(msg + "\n")
    except UnicodeEncodeError:
        sys.stderr.buffer.write((msg + "\n").encode("utf-8", "backslashreplace"))
    sys.stderr.flush()


def hx(offset: int) -> str:
    return f"0x{offset:08X}"


def label_name(addr: int) -> str:
    return f"L_{int(addr) & 0xFFFFFFFF:08x}"


def iter_files_by_ext(root: str, extensions):
    ext_set = {ext.lower() for ext in extensions}
    if os.path.isfile(root):
        return [root] if os.path.splitext(root)[1].lower() in ext_set else []
    out = []
    for dirpath, _dirs, filenames in os.walk(root):
        for name in filenames:
            if os.path.splitext(name)[1].lower() in ext_set:
                out.append(os.path.join(dirpath, name))
    return sorted(out)
