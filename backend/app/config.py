from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


def _strip_quotes(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in {"'", '"'}:
        return value[1:-1]
    return value


def _load_env_file(path: Path) -> None:
    if not path.is_file():
        return

    for raw_line in path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue

        key, value = line.split("=", 1)
        env_key = key.strip().removeprefix("export ").strip()
        if not env_key:
            continue

        # Exported variables win over file values.
        os.environ.setdefault(env_key, _strip_quotes(value.strip()))


def load_environment() -> None:
    backend_root = Path(__file__).resolve().parents[1]

    _load_env_file(backend_root.parent / ".env")
    _load_env_file(backend_root / ".env")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


@dataclass(frozen=True)
class ArcadeSettings:
    countdown_tick_ms: int = 1000
    quick_draw_min_delay_ms: int = 2000
    quick_draw_max_delay_ms: int = 5000
    default_wager_amount: str = "0.1"
    default_wager_token: str = "ETH"
    seed: str | None = None
    round_history_limit: int = 50

    @classmethod
    def from_env(cls) -> "ArcadeSettings":
        min_delay = _env_int("QUICK_DRAW_MIN_DELAY_MS", 2000)
        max_delay = _env_int("QUICK_DRAW_MAX_DELAY_MS", 5000)
        if max_delay < min_delay:
            raise ValueError("QUICK_DRAW_MAX_DELAY_MS must not be lower than QUICK_DRAW_MIN_DELAY_MS.")
        return cls(
            countdown_tick_ms=max(1, _env_int("COUNTDOWN_TICK_MS", 1000)),
            quick_draw_min_delay_ms=min_delay,
            quick_draw_max_delay_ms=max_delay,
            default_wager_amount=os.getenv("DEFAULT_WAGER_AMOUNT", "0.1"),
            default_wager_token=os.getenv("DEFAULT_WAGER_TOKEN", "ETH"),
            seed=os.getenv("ARCADE_SEED") or None,
            round_history_limit=max(0, _env_int("ROUND_HISTORY_LIMIT", 50)),
        )
