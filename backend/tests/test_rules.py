import random

import pytest

from backend.app.rules import (
    RULES,
    InvalidInputError,
    RoundContext,
    RoundResolutionError,
    resolve_round,
    rules_for,
)
from backend.tests.support import ScriptedRandom

RPS_WINS = {("rock", "scissors"), ("paper", "rock"), ("scissors", "paper")}


@pytest.mark.parametrize("player", ["rock", "paper", "scissors"])
@pytest.mark.parametrize("opponent", ["rock", "paper", "scissors"])
def test_rock_paper_scissors_table(player: str, opponent: str) -> None:
    result = resolve_round("rock-paper-scissors", player, ScriptedRandom(choices=[opponent]))

    if player == opponent:
        expected = "draw"
    elif (player, opponent) in RPS_WINS:
        expected = "win"
    else:
        expected = "lose"
    assert result.outcome == expected
    assert result.opponent_choice == opponent


@pytest.mark.parametrize(
    ("player_roll", "opponent_roll", "expected"),
    [(6, 3, "win"), (4, 4, "draw"), (5, 4, "win"), (4, 5, "lose"), (1, 1, "draw")],
)
def test_dice_higher_roll_wins(player_roll: int, opponent_roll: int, expected: str) -> None:
    result = resolve_round("dice", "roll", ScriptedRandom(randints=[player_roll, opponent_roll]))

    assert result.outcome == expected
    assert result.player_value == player_roll
    assert result.opponent_choice == opponent_roll


def test_coin_flip_never_draws() -> None:
    outcomes = {}
    for player in ("heads", "tails"):
        for side in ("heads", "tails"):
            outcomes[(player, side)] = resolve_round("coin-flip", player, ScriptedRandom(choices=[side])).outcome

    assert outcomes == {
        ("heads", "heads"): "win",
        ("heads", "tails"): "lose",
        ("tails", "heads"): "lose",
        ("tails", "tails"): "win",
    }


def test_odd_even_never_draws_and_exposes_parity() -> None:
    for player in ("odd", "even"):
        for drawn in range(1, 11):
            result = resolve_round("odd-even", player, ScriptedRandom(randints=[drawn]))
            parity = "odd" if drawn % 2 else "even"
            assert result.outcome == ("win" if parity == player else "lose")
            assert result.opponent_choice == parity
            assert result.details == {"drawn": drawn}


@pytest.mark.parametrize(
    ("target", "player", "opponent", "expected"),
    [
        (50, 48, 55, "win"),
        (50, 45, 55, "draw"),
        (50, 47, 52, "lose"),
        (50, 48, 53, "win"),
        (1, 1, 100, "win"),
    ],
)
def test_number_guess_closest_to_target_wins(target: int, player: int, opponent: int, expected: str) -> None:
    result = resolve_round("number-guess", player, ScriptedRandom(randints=[target, opponent]))

    assert result.outcome == expected
    assert result.opponent_choice == f"Target: {target}, AI: {opponent}"
    assert result.details == {"target": target, "opponent_guess": opponent}


def test_number_guess_composite_uses_opponent_name() -> None:
    result = resolve_round(
        "number-guess", 10, ScriptedRandom(randints=[20, 30]), RoundContext(opponent_name="Opponent")
    )
    assert result.opponent_choice == "Target: 20, Opponent: 30"


@pytest.mark.parametrize(
    ("reaction_ms", "expected"),
    [(350.0, "draw"), (349.0, "win"), (351.0, "lose"), (120.5, "win")],
)
def test_quick_draw_lower_reaction_wins(reaction_ms: float, expected: str) -> None:
    # 0.5 puts the opponent at exactly 350 ms.
    result = resolve_round("quick-draw", "draw", ScriptedRandom(randoms=[0.5]), RoundContext(reaction_ms=reaction_ms))

    assert result.outcome == expected
    assert result.opponent_choice == 350
    assert result.details["opponent_reaction_ms"] == 350.0


def test_quick_draw_without_reaction_time_is_a_bug() -> None:
    with pytest.raises(RoundResolutionError):
        resolve_round("quick-draw", "draw", ScriptedRandom(randoms=[0.5]))


@pytest.mark.parametrize("game_id", sorted(RULES))
def test_resolving_without_player_choice_fails_fast(game_id: str) -> None:
    with pytest.raises(RoundResolutionError):
        resolve_round(game_id, None, random.Random(1))


@pytest.mark.parametrize(("raw", "expected"), [(1, 1), (100, 100), ("42", 42), (" 7 ", 7), (25.0, 25)])
def test_number_guess_accepts_whole_numbers_in_range(raw, expected) -> None:
    assert rules_for("number-guess").validate_input(raw) == expected


@pytest.mark.parametrize("raw", [0, 101, -5, "abc", "", 4.5, "4.5", True, None, [3]])
def test_number_guess_rejects_bad_input(raw) -> None:
    with pytest.raises(InvalidInputError):
        rules_for("number-guess").validate_input(raw)


def test_labels_are_normalized_and_checked() -> None:
    assert rules_for("rock-paper-scissors").validate_input(" ROCK ") == "rock"
    assert rules_for("coin-flip").validate_input("Tails") == "tails"
    with pytest.raises(InvalidInputError):
        rules_for("rock-paper-scissors").validate_input("lizard")
    with pytest.raises(InvalidInputError):
        rules_for("odd-even").validate_input(3)
    with pytest.raises(InvalidInputError):
        rules_for("dice").validate_input("throw")


def test_opponent_draws_stay_in_range() -> None:
    rng = random.Random("range-check")
    for _ in range(300):
        dice = resolve_round("dice", "roll", rng)
        assert 1 <= dice.player_value <= 6
        assert 1 <= dice.opponent_choice <= 6

        quick = resolve_round("quick-draw", "draw", rng, RoundContext(reaction_ms=300.0))
        assert 200.0 <= quick.details["opponent_reaction_ms"] < 500.0

        odd_even = resolve_round("odd-even", "odd", rng)
        assert 1 <= odd_even.details["drawn"] <= 10

        guess = resolve_round("number-guess", 50, rng)
        assert 1 <= guess.details["target"] <= 100
        assert 1 <= guess.details["opponent_guess"] <= 100


def test_unknown_game_has_no_rules() -> None:
    with pytest.raises(RoundResolutionError):
        rules_for("blackjack")
