import os
from dataclasses import dataclass
from enum import IntEnum
from typing import Optional

GAME_ENV = "AI5_MES_GAME"


class GameId(IntEnum):
    AI_SHIMAI = 1
    BEYOND = 2
    DOUKYUUSEI = 3
    ISAKU = 4
    KOIHIME = 5
    YUKINOJOU = 6
    ELF_CLASSICS = 7


@dataclass(frozen=True)
class Game:
    name: str
    id: GameId
    description: str


GAMES = (
    Game("aishimai", GameId.AI_SHIMAI, "愛姉妹 ～二人の果実～"),
    Game("beyond", GameId.BEYOND, "ビ・ ヨンド ～黒大将に見られてる～"),
    Game("doukyuusei", GameId.DOUKYUUSEI, "同級生 Windows版"),
    Game("isaku", GameId.ISAKU, "遺作 リニューアル"),
    Game("koihime", GameId.KOIHIME, "恋姫"),
    Game("yukinojou", GameId.YUKINOJOU, "あしたの雪之丞"),
    Game(
        "yuno",
        GameId.ELF_CLASSICS,
        "この世の果てで恋を唄う少女YU-NO (エルフclassics)",
    ),
)


def game_listing() -> str:
    return "\n".join(f"    {g.name:<11s} - {g.description}" for g in GAMES)


def parse_game_id(name: str) -> GameId:
    s = str(name or "").strip().casefold()
    for g in GAMES:
        if g.name == s:
            return g.id
    raise ValueError(
        f"Unrecognized game name: {name}\nValid names are:\n{game_listing()}"
    )


def game_name(game_id) -> str:
    for g in GAMES:
        if g.id == game_id:
            return g.name
    return str(game_id)


def game_from_env(environ=None) -> Optional[GameId]:
    env = os.environ if environ is None else environ
    v = (env.get(GAME_ENV) or "").strip()
    if not v:
        return None
    return parse_game_id(v)
