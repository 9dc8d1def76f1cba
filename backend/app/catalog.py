from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

GameId = Literal["rock-paper-scissors", "dice", "coin-flip", "quick-draw", "odd-even", "number-guess"]
Token = Literal["ETH", "SOL", "USDC", "APE", "PEPE"]


@dataclass(frozen=True)
class GameDescriptor:
    id: GameId
    name: str
    icon: str
    description: str
    spectators: int
    active_players: int


GAMES: tuple[GameDescriptor, ...] = (
    GameDescriptor("rock-paper-scissors", "Rock Paper Scissors", "✊", "Classic showdown", 234, 48),
    GameDescriptor("dice", "Dice Roll", "🎲", "High roll wins", 189, 36),
    GameDescriptor("coin-flip", "Coin Flip", "🪙", "Call it in the air", 312, 72),
    GameDescriptor("quick-draw", "Quick Draw", "⚡", "Fastest click wins", 156, 28),
    GameDescriptor("odd-even", "Odd / Even", "🔢", "Pick your parity", 98, 22),
    GameDescriptor("number-guess", "Number Guess", "🎯", "Closest to target", 145, 31),
)

TOKENS: tuple[Token, ...] = ("ETH", "SOL", "USDC", "APE", "PEPE")

QUICK_AMOUNTS: tuple[str, ...] = ("0.01", "0.1", "0.5", "1.0")

_GAMES_BY_ID: dict[str, GameDescriptor] = {game.id: game for game in GAMES}


def get_game(game_id: str) -> GameDescriptor | None:
    return _GAMES_BY_ID.get(game_id)


def is_token(value: str) -> bool:
    return value in TOKENS
