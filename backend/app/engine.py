from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Callable

from .catalog import GAMES, QUICK_AMOUNTS, TOKENS, GameDescriptor, GameId, get_game, is_token
from .clock import AsyncioScheduler, Clock, Scheduler, SystemClock, TimerHandle
from .config import ArcadeSettings
from .models import (
    CatalogModel,
    GameDescriptorModel,
    OpponentMode,
    Outcome,
    Phase,
    RoundSummaryModel,
    SessionStateModel,
    WagerModel,
)
from .rules import Choice, InvalidInputError, RandomSource, RoundContext, RoundResolutionError, resolve_round, rules_for

logger = logging.getLogger(__name__)

OPPONENT_NAMES: dict[str, str] = {"ai": "AI", "human": "Opponent"}

StateListener = Callable[[SessionStateModel], None]


@dataclass(frozen=True)
class Wager:
    amount: str
    token: str
    pot: str


@dataclass(frozen=True)
class SessionState:
    wager: Wager
    phase: Phase = "lobby"
    selected_game: GameId | None = None
    opponent_mode: OpponentMode = "ai"
    player_choice: Choice | None = None
    opponent_choice: Choice | None = None
    outcome: Outcome | None = None
    countdown: int | None = None
    quick_draw_armed: bool = False
    quick_draw_signal_time: float | None = None
    reaction_ms: float | None = None
    details: dict[str, Any] = field(default_factory=dict)
    round_id: int = 0


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def parse_wager(amount: str, token: str) -> Wager:
    text = str(amount).strip()
    try:
        value = Decimal(text)
    except InvalidOperation as exc:
        raise InvalidInputError(f"Wager amount is not a number: {amount!r}") from exc
    if not value.is_finite() or value <= 0:
        raise InvalidInputError("Wager amount must be greater than zero.")
    if not is_token(token):
        raise InvalidInputError(f"Unsupported token: {token}. Choose one of {', '.join(TOKENS)}.")
    try:
        pot = value * 2
    except ArithmeticError as exc:
        raise InvalidInputError(f"Wager amount is out of range: {amount!r}") from exc
    return Wager(amount=text, token=token, pot=str(pot))


def descriptor_model(game: GameDescriptor) -> GameDescriptorModel:
    rules = rules_for(game.id)
    return GameDescriptorModel(
        id=game.id,
        name=game.name,
        icon=game.icon,
        description=game.description,
        spectators=game.spectators,
        active_players=game.active_players,
        choices=list(rules.choices),
        free_input=not rules.choices,
    )


def catalog_model() -> CatalogModel:
    return CatalogModel(
        games=[descriptor_model(game) for game in GAMES],
        tokens=list(TOKENS),
        quick_amounts=list(QUICK_AMOUNTS),
    )


class ArcadeSession:
    """One player's arcade session: lobby, wager setup, a round, its result.

    Every intent replaces ``state`` with a new frozen ``SessionState``. Intents
    that make no sense in the current phase are ignored. Countdown ticks and the
    quick-draw go signal are one-shot timers tagged with the round they were
    armed for, so a timer that outlives its round does nothing.
    """

    def __init__(
        self,
        session_id: str,
        settings: ArcadeSettings | None = None,
        rng: RandomSource | None = None,
        clock: Clock | None = None,
        scheduler: Scheduler | None = None,
    ) -> None:
        self.session_id = session_id
        self.settings = settings or ArcadeSettings()
        if rng is None:
            seed = f"{self.settings.seed}:{session_id}" if self.settings.seed else None
            rng = random.Random(seed)
        self.rng = rng
        self.clock = clock or SystemClock()
        self.scheduler = scheduler or AsyncioScheduler()
        self.default_wager = parse_wager(self.settings.default_wager_amount, self.settings.default_wager_token)
        self.state = SessionState(wager=self.default_wager)
        self.completed_rounds: list[RoundSummaryModel] = []
        self.closed = False
        self._round_counter = 0
        self._tick_timer: TimerHandle | None = None
        self._signal_timer: TimerHandle | None = None
        self._listeners: list[StateListener] = []

    # Render boundary

    def get_state(self) -> SessionStateModel:
        state = self.state
        game = get_game(state.selected_game) if state.selected_game else None
        return SessionStateModel(
            session_id=self.session_id,
            round_id=state.round_id,
            phase=state.phase,
            selected_game=descriptor_model(game) if game else None,
            wager=WagerModel(amount=state.wager.amount, token=state.wager.token),
            opponent_mode=state.opponent_mode,
            opponent_name=OPPONENT_NAMES[state.opponent_mode],
            player_choice=state.player_choice,
            opponent_choice=state.opponent_choice,
            outcome=state.outcome,
            countdown=state.countdown,
            quick_draw_armed=state.quick_draw_armed,
            reaction_ms=state.reaction_ms,
            details=dict(state.details),
            pot=state.wager.pot,
            winnings=state.wager.amount if state.outcome == "win" else None,
            can_submit=self._can_submit(state),
        )

    def list_rounds(self) -> list[RoundSummaryModel]:
        return list(self.completed_rounds)

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # Intent boundary

    def select_game(self, game_id: str) -> SessionStateModel:
        if self.state.phase != "lobby":
            return self._ignored("select_game")
        game = get_game(game_id)
        if game is None:
            raise InvalidInputError(f"Unknown game: {game_id}")
        self._commit(replace(self.state, phase="wager_setup", selected_game=game.id))
        return self.get_state()

    def back(self) -> SessionStateModel:
        if self.state.phase == "lobby":
            return self._ignored("back")
        self._reset_to_lobby()
        return self.get_state()

    def set_opponent_mode(self, mode: str) -> SessionStateModel:
        if self.state.phase != "wager_setup":
            return self._ignored("set_opponent_mode")
        if mode not in OPPONENT_NAMES:
            raise InvalidInputError(f"Unsupported opponent mode: {mode}")
        self._commit(replace(self.state, opponent_mode=mode))
        return self.get_state()

    def set_wager(self, amount: str, token: str) -> SessionStateModel:
        if self.state.phase != "wager_setup":
            return self._ignored("set_wager")
        self._commit(replace(self.state, wager=parse_wager(amount, token)))
        return self.get_state()

    def start(self) -> SessionStateModel:
        if self.state.phase != "wager_setup":
            return self._ignored("start")
        self._begin_round()
        return self.get_state()

    def rematch(self) -> SessionStateModel:
        if self.state.phase != "result":
            return self._ignored("rematch")
        self._begin_round()
        return self.get_state()

    def new_game(self) -> SessionStateModel:
        if self.state.phase != "result":
            return self._ignored("new_game")
        self._reset_to_lobby()
        return self.get_state()

    def submit(self, choice: Any) -> SessionStateModel:
        state = self.state
        if state.phase != "playing" or state.selected_game is None:
            return self._ignored("submit")
        if state.player_choice is not None or state.countdown is not None:
            return self._ignored("submit")

        rules = rules_for(state.selected_game)
        value = rules.validate_input(choice)

        if state.selected_game == "quick-draw":
            if not state.quick_draw_armed or state.quick_draw_signal_time is None:
                self._cancel_timers()
                self._commit(
                    replace(state, phase="result", player_choice=value, outcome="lose", details={"early": True})
                )
                logger.info("Session %s round %s: quick draw pressed before the signal.", self.session_id, state.round_id)
                self._record_round()
                return self.get_state()

            reaction_ms = self.clock.now_ms() - state.quick_draw_signal_time
            self._commit(replace(state, player_choice=value, reaction_ms=reaction_ms, countdown=rules.countdown_ticks))
        else:
            self._commit(replace(state, player_choice=value, countdown=rules.countdown_ticks))

        self._schedule_tick(state.round_id)
        return self.get_state()

    def close(self) -> None:
        self._cancel_timers()
        self._listeners.clear()
        self.closed = True

    # Round lifecycle

    def _begin_round(self) -> None:
        self._cancel_timers()
        self._round_counter += 1
        round_id = self._round_counter
        self._commit(
            replace(
                self.state,
                phase="playing",
                round_id=round_id,
                player_choice=None,
                opponent_choice=None,
                outcome=None,
                countdown=None,
                quick_draw_armed=False,
                quick_draw_signal_time=None,
                reaction_ms=None,
                details={},
            )
        )
        logger.info("Session %s round %s started: %s", self.session_id, round_id, self.state.selected_game)

        if self.state.selected_game == "quick-draw":
            low = self.settings.quick_draw_min_delay_ms
            high = self.settings.quick_draw_max_delay_ms
            delay_ms = low + self.rng.random() * (high - low)
            self._signal_timer = self.scheduler.call_later(delay_ms, lambda: self._on_go_signal(round_id))

    def _reset_to_lobby(self) -> None:
        self._cancel_timers()
        self._commit(SessionState(wager=self.default_wager, round_id=self.state.round_id))

    def _schedule_tick(self, round_id: int) -> None:
        self._tick_timer = self.scheduler.call_later(self.settings.countdown_tick_ms, lambda: self._on_tick(round_id))

    def _on_tick(self, round_id: int) -> None:
        if self._is_stale(round_id) or self.state.countdown is None:
            logger.debug("Session %s: dropping stale countdown tick for round %s.", self.session_id, round_id)
            return
        self._tick_timer = None

        # Reaching zero resolves in the same step; a countdown of 0 is never published.
        remaining = self.state.countdown - 1
        if remaining > 0:
            self._commit(replace(self.state, countdown=remaining))
            self._schedule_tick(round_id)
            return
        self._resolve()

    def _on_go_signal(self, round_id: int) -> None:
        if self._is_stale(round_id) or self.state.player_choice is not None:
            logger.debug("Session %s: dropping stale go signal for round %s.", self.session_id, round_id)
            return
        self._signal_timer = None
        self._commit(replace(self.state, quick_draw_armed=True, quick_draw_signal_time=self.clock.now_ms()))

    def _resolve(self) -> None:
        state = self.state
        if state.selected_game is None:
            raise RoundResolutionError("Cannot resolve a round without a selected game.")

        context = RoundContext(opponent_name=OPPONENT_NAMES[state.opponent_mode], reaction_ms=state.reaction_ms)
        result = resolve_round(state.selected_game, state.player_choice, self.rng, context)
        self._commit(
            replace(
                state,
                phase="result",
                player_choice=result.player_value,
                opponent_choice=result.opponent_choice,
                outcome=result.outcome,
                countdown=None,
                details=dict(result.details),
            )
        )
        logger.info(
            "Session %s round %s resolved: %s (%s vs %s)",
            self.session_id,
            state.round_id,
            result.outcome,
            result.player_value,
            result.opponent_choice,
        )
        self._record_round()

    def _record_round(self) -> None:
        state = self.state
        if state.selected_game is None or state.outcome is None:
            return
        self.completed_rounds.insert(
            0,
            RoundSummaryModel(
                round_id=state.round_id,
                game_id=state.selected_game,
                player_choice=state.player_choice,
                opponent_choice=state.opponent_choice,
                outcome=state.outcome,
                wager=WagerModel(amount=state.wager.amount, token=state.wager.token),
                resolved_at=now_iso(),
            ),
        )
        del self.completed_rounds[self.settings.round_history_limit :]

    # Helpers

    def _is_stale(self, round_id: int) -> bool:
        return self.closed or self.state.phase != "playing" or self.state.round_id != round_id

    def _cancel_timers(self) -> None:
        for timer in (self._tick_timer, self._signal_timer):
            if timer is not None:
                timer.cancel()
        self._tick_timer = None
        self._signal_timer = None

    def _can_submit(self, state: SessionState) -> bool:
        return state.phase == "playing" and state.player_choice is None and state.countdown is None

    def _ignored(self, intent: str) -> SessionStateModel:
        logger.debug("Session %s: ignoring %s in phase %s.", self.session_id, intent, self.state.phase)
        return self.get_state()

    def _commit(self, state: SessionState) -> None:
        self.state = state
        if not self._listeners:
            return
        snapshot = self.get_state()
        for listener in list(self._listeners):
            listener(snapshot)
