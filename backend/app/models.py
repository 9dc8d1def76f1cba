from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, StrictInt, StrictStr

from .catalog import GameId, Token

Phase = Literal["lobby", "wager_setup", "playing", "result"]
OpponentMode = Literal["ai", "human"]
Outcome = Literal["win", "lose", "draw"]
ChoiceValue = Union[int, str]


def to_camel(value: str) -> str:
    parts = value.split("_")
    return parts[0] + "".join(part.capitalize() for part in parts[1:])


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)


class GameDescriptorModel(CamelModel):
    id: GameId
    name: str
    icon: str
    description: str
    spectators: int
    active_players: int
    choices: List[str]
    free_input: bool


class CatalogModel(CamelModel):
    games: List[GameDescriptorModel]
    tokens: List[Token]
    quick_amounts: List[str]


class WagerModel(CamelModel):
    amount: str
    token: Token


class SessionStateModel(CamelModel):
    session_id: str
    round_id: int
    phase: Phase
    selected_game: Optional[GameDescriptorModel] = None
    wager: WagerModel
    opponent_mode: OpponentMode
    opponent_name: str
    player_choice: Optional[ChoiceValue] = None
    opponent_choice: Optional[ChoiceValue] = None
    outcome: Optional[Outcome] = None
    countdown: Optional[int] = None
    quick_draw_armed: bool
    reaction_ms: Optional[float] = None
    details: Dict[str, Any]
    pot: str
    winnings: Optional[str] = None
    can_submit: bool


class RoundSummaryModel(CamelModel):
    round_id: int
    game_id: GameId
    player_choice: Optional[ChoiceValue] = None
    opponent_choice: Optional[ChoiceValue] = None
    outcome: Outcome
    wager: WagerModel
    resolved_at: str


class SelectGameRequestModel(CamelModel):
    game_id: GameId


class OpponentModeRequestModel(CamelModel):
    mode: OpponentMode


class WagerRequestModel(CamelModel):
    amount: str
    token: str


class SubmitRequestModel(CamelModel):
    choice: Union[StrictInt, StrictStr]
