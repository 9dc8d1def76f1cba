from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, Protocol, Sequence, Union

from .catalog import GameId

Outcome = Literal["win", "lose", "draw"]
Choice = Union[int, str]

RPS_CHOICES: tuple[str, ...] = ("rock", "paper", "scissors")
RPS_BEATS: dict[str, str] = {"rock": "scissors", "paper": "rock", "scissors": "paper"}
COIN_SIDES: tuple[str, ...] = ("heads", "tails")
PARITIES: tuple[str, ...] = ("odd", "even")

GUESS_MIN = 1
GUESS_MAX = 100
OPPONENT_REACTION_MIN_MS = 200.0
OPPONENT_REACTION_SPAN_MS = 300.0


class InvalidInputError(ValueError):
    pass


class RoundResolutionError(RuntimeError):
    pass


class RandomSource(Protocol):
    def random(self) -> float:
        ...

    def randint(self, a: int, b: int) -> int:
        ...

    def choice(self, seq: Sequence[Any]) -> Any:
        ...


@dataclass(frozen=True)
class RoundContext:
    opponent_name: str = "AI"
    reaction_ms: float | None = None


@dataclass(frozen=True)
class RoundOutcome:
    outcome: Outcome
    opponent_choice: Choice | None
    player_value: Choice
    details: dict[str, Any] = field(default_factory=dict)


def compare_higher(player: float, opponent: float) -> Outcome:
    if player > opponent:
        return "win"
    if player < opponent:
        return "lose"
    return "draw"


def compare_lower(player: float, opponent: float) -> Outcome:
    return compare_higher(opponent, player)


def _normalize_label(raw: Any, allowed: Sequence[str]) -> str:
    if not isinstance(raw, str):
        raise InvalidInputError(f"Choice must be one of: {', '.join(allowed)}.")
    value = raw.strip().lower()
    if value not in allowed:
        raise InvalidInputError(f"Choice must be one of: {', '.join(allowed)}.")
    return value


class GameRules(Protocol):
    game_id: GameId
    choices: tuple[str, ...]
    countdown_ticks: int

    def validate_input(self, raw: Any) -> Choice:
        ...

    def resolve(self, player_choice: Choice, rng: RandomSource, context: RoundContext) -> RoundOutcome:
        ...


class RockPaperScissorsRules:
    game_id: GameId = "rock-paper-scissors"
    choices = RPS_CHOICES
    countdown_ticks = 3

    def validate_input(self, raw: Any) -> Choice:
        return _normalize_label(raw, self.choices)

    def resolve(self, player_choice: Choice, rng: RandomSource, context: RoundContext) -> RoundOutcome:
        opponent = rng.choice(self.choices)
        if player_choice == opponent:
            outcome: Outcome = "draw"
        elif RPS_BEATS[str(player_choice)] == opponent:
            outcome = "win"
        else:
            outcome = "lose"
        return RoundOutcome(outcome=outcome, opponent_choice=opponent, player_value=player_choice)


class DiceRules:
    game_id: GameId = "dice"
    choices = ("roll",)
    countdown_ticks = 3

    def validate_input(self, raw: Any) -> Choice:
        return _normalize_label(raw, self.choices)

    def resolve(self, player_choice: Choice, rng: RandomSource, context: RoundContext) -> RoundOutcome:
        # The player's die is only thrown at resolution time.
        player_roll = rng.randint(1, 6)
        opponent_roll = rng.randint(1, 6)
        return RoundOutcome(
            outcome=compare_higher(player_roll, opponent_roll),
            opponent_choice=opponent_roll,
            player_value=player_roll,
            details={"player_roll": player_roll, "opponent_roll": opponent_roll},
        )


class CoinFlipRules:
    game_id: GameId = "coin-flip"
    choices = COIN_SIDES
    countdown_ticks = 3

    def validate_input(self, raw: Any) -> Choice:
        return _normalize_label(raw, self.choices)

    def resolve(self, player_choice: Choice, rng: RandomSource, context: RoundContext) -> RoundOutcome:
        side = rng.choice(self.choices)
        outcome: Outcome = "win" if side == player_choice else "lose"
        return RoundOutcome(outcome=outcome, opponent_choice=side, player_value=player_choice)


class QuickDrawRules:
    game_id: GameId = "quick-draw"
    choices = ("draw",)
    countdown_ticks = 1

    def validate_input(self, raw: Any) -> Choice:
        return _normalize_label(raw, self.choices)

    def resolve(self, player_choice: Choice, rng: RandomSource, context: RoundContext) -> RoundOutcome:
        if context.reaction_ms is None:
            raise RoundResolutionError("Quick draw resolved without a recorded reaction time.")
        opponent_ms = OPPONENT_REACTION_MIN_MS + rng.random() * OPPONENT_REACTION_SPAN_MS
        return RoundOutcome(
            outcome=compare_lower(context.reaction_ms, opponent_ms),
            opponent_choice=round(opponent_ms),
            player_value=round(context.reaction_ms),
            details={
                "player_reaction_ms": context.reaction_ms,
                "opponent_reaction_ms": opponent_ms,
            },
        )


class OddEvenRules:
    game_id: GameId = "odd-even"
    choices = PARITIES
    countdown_ticks = 3

    def validate_input(self, raw: Any) -> Choice:
        return _normalize_label(raw, self.choices)

    def resolve(self, player_choice: Choice, rng: RandomSource, context: RoundContext) -> RoundOutcome:
        drawn = rng.randint(1, 10)
        parity = "odd" if drawn % 2 == 1 else "even"
        outcome: Outcome = "win" if parity == player_choice else "lose"
        return RoundOutcome(
            outcome=outcome,
            opponent_choice=parity,
            player_value=player_choice,
            details={"drawn": drawn},
        )


class NumberGuessRules:
    game_id: GameId = "number-guess"
    choices: tuple[str, ...] = ()
    countdown_ticks = 3

    def validate_input(self, raw: Any) -> Choice:
        if isinstance(raw, bool):
            raise InvalidInputError("Guess must be a whole number.")
        if isinstance(raw, float):
            if not raw.is_integer():
                raise InvalidInputError("Guess must be a whole number.")
            raw = int(raw)
        if isinstance(raw, str):
            text = raw.strip()
            try:
                raw = int(text)
            except ValueError as exc:
                raise InvalidInputError("Guess must be a whole number.") from exc
        if not isinstance(raw, int):
            raise InvalidInputError("Guess must be a whole number.")
        if raw < GUESS_MIN or raw > GUESS_MAX:
            raise InvalidInputError(f"Guess must be between {GUESS_MIN} and {GUESS_MAX}.")
        return raw

    def resolve(self, player_choice: Choice, rng: RandomSource, context: RoundContext) -> RoundOutcome:
        target = rng.randint(GUESS_MIN, GUESS_MAX)
        opponent_guess = rng.randint(GUESS_MIN, GUESS_MAX)
        player_distance = abs(int(player_choice) - target)
        opponent_distance = abs(opponent_guess - target)
        return RoundOutcome(
            outcome=compare_lower(player_distance, opponent_distance),
            opponent_choice=f"Target: {target}, {context.opponent_name}: {opponent_guess}",
            player_value=player_choice,
            details={"target": target, "opponent_guess": opponent_guess},
        )


RULES: dict[str, GameRules] = {
    rules.game_id: rules
    for rules in (
        RockPaperScissorsRules(),
        DiceRules(),
        CoinFlipRules(),
        QuickDrawRules(),
        OddEvenRules(),
        NumberGuessRules(),
    )
}


def rules_for(game_id: str) -> GameRules:
    rules = RULES.get(game_id)
    if rules is None:
        raise RoundResolutionError(f"No rules registered for game: {game_id}")
    return rules


def resolve_round(
    game_id: str,
    player_choice: Choice | None,
    rng: RandomSource,
    context: RoundContext | None = None,
) -> RoundOutcome:
    if player_choice is None:
        raise RoundResolutionError(f"Cannot resolve {game_id} without a player choice.")
    return rules_for(game_id).resolve(player_choice, rng, context or RoundContext())
