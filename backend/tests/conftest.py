from __future__ import annotations

import os

import pytest

# Read by the module-level SessionManager when backend.app.main is imported.
os.environ.setdefault("COUNTDOWN_TICK_MS", "20")

from backend.app.config import ArcadeSettings  # noqa: E402
from backend.app.engine import ArcadeSession  # noqa: E402
from backend.tests.support import ManualScheduler, ScriptedRandom  # noqa: E402


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def make_session(scheduler: ManualScheduler):
    def factory(rng: ScriptedRandom | None = None, settings: ArcadeSettings | None = None) -> ArcadeSession:
        return ArcadeSession(
            session_id="test-session",
            settings=settings or ArcadeSettings(),
            rng=rng or ScriptedRandom(),
            clock=scheduler,
            scheduler=scheduler,
        )

    return factory
