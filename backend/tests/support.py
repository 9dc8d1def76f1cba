from __future__ import annotations

import itertools
from typing import Any, Callable, Sequence


class ScriptedRandom:
    """Random source that hands out pre-recorded draws in order."""

    def __init__(
        self,
        randints: Sequence[int] = (),
        randoms: Sequence[float] = (),
        choices: Sequence[Any] = (),
    ) -> None:
        self._randints = list(randints)
        self._randoms = list(randoms)
        self._choices = list(choices)

    def randint(self, a: int, b: int) -> int:
        assert self._randints, "No scripted randint left"
        value = self._randints.pop(0)
        assert a <= value <= b, f"Scripted randint {value} outside [{a}, {b}]"
        return value

    def random(self) -> float:
        assert self._randoms, "No scripted random left"
        value = self._randoms.pop(0)
        assert 0.0 <= value < 1.0
        return value

    def choice(self, seq: Sequence[Any]) -> Any:
        assert self._choices, "No scripted choice left"
        value = self._choices.pop(0)
        assert value in seq, f"Scripted choice {value!r} not in {seq!r}"
        return value


class ManualTimer:
    def __init__(self, due_ms: float, order: int, callback: Callable[[], None], honor_cancel: bool) -> None:
        self.due_ms = due_ms
        self.order = order
        self.callback = callback
        self.cancelled = False
        self.fired = False
        self._honor_cancel = honor_cancel

    def cancel(self) -> None:
        if self._honor_cancel:
            self.cancelled = True


class ManualScheduler:
    """Clock and scheduler in one; time only moves through ``advance``.

    With ``honor_cancel=False`` cancelled timers still fire, which lets tests
    check that a leftover callback from an old round changes nothing.
    """

    def __init__(self, start_ms: float = 0.0, honor_cancel: bool = True) -> None:
        self.now = start_ms
        self.honor_cancel = honor_cancel
        self.timers: list[ManualTimer] = []
        self._order = itertools.count()

    def now_ms(self) -> float:
        return self.now

    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> ManualTimer:
        timer = ManualTimer(self.now + max(0.0, delay_ms), next(self._order), callback, self.honor_cancel)
        self.timers.append(timer)
        return timer

    def pending(self) -> list[ManualTimer]:
        return [timer for timer in self.timers if not timer.cancelled and not timer.fired]

    def advance(self, delta_ms: float) -> None:
        target = self.now + delta_ms
        while True:
            due = [timer for timer in self.pending() if timer.due_ms <= target]
            if not due:
                break
            timer = min(due, key=lambda item: (item.due_ms, item.order))
            self.now = timer.due_ms
            timer.fired = True
            timer.callback()
        self.now = target
