"""pytest configuration and fixtures."""

from __future__ import annotations

from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any

import pytest

from thoughtchain.config import reload_config
from thoughtchain.tools.thinking import ThinkingEngine, reset_engine
from thoughtchain.tools.thought_types import ThoughtRecord
from thoughtchain.utils.persistence import SessionFile
from thoughtchain.utils.session import SessionStore
from thoughtchain.utils.text_metrics import clear_word_cache

# Distinct, non-repetitive steps (each >= 50 chars so they also pass burst limits)
STEPS = [
    "Reproduce the timeout locally using recorded production traffic samples.",
    "Profile database queries; several joins scan unindexed customer columns.",
    "Adding composite indexes should reduce query latency below fifty milliseconds.",
    "Benchmark results confirm p99 latency dropped from 900ms to 40ms overall.",
    "Deploy gradually behind feature flags while monitoring error budgets closely.",
    "Document rollback procedures so operators can revert quickly during incidents.",
]


@pytest.fixture(autouse=True)
def isolated_state(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> Generator[None, None, None]:
    """Point the process engine at a temporary session file and reset caches."""
    monkeypatch.setenv("THOUGHTCHAIN_SESSION_FILE", str(tmp_path / "engine_session.json"))
    reload_config()
    clear_word_cache()
    reset_engine()
    yield
    reset_engine()
    clear_word_cache()
    reload_config()


@pytest.fixture
def session_path(tmp_path: Path) -> Path:
    return tmp_path / "thought_session.json"


@pytest.fixture
def session_file(session_path: Path) -> Generator[SessionFile, None, None]:
    """SessionFile on a temporary path, drained after the test."""
    sf = SessionFile(session_path)
    yield sf
    sf.close()


@pytest.fixture
def engine(session_file: SessionFile) -> ThinkingEngine:
    """Fresh engine with persistence to a temporary file."""
    return ThinkingEngine(persistence=session_file)


@pytest.fixture
def memory_engine() -> ThinkingEngine:
    """Fresh engine without persistence."""
    return ThinkingEngine()


@pytest.fixture
def store() -> SessionStore:
    return SessionStore()


def _make_record(number: int, text: str | None = None, **kwargs: Any) -> ThoughtRecord:
    kwargs.setdefault("session_id", "s1")
    return ThoughtRecord(
        thought=text if text is not None else STEPS[(number - 1) % len(STEPS)],
        thought_number=number,
        total_thoughts=max(number, 3),
        **kwargs,
    )


def _submit_steps(engine: ThinkingEngine, count: int, **kwargs: Any) -> None:
    for number in range(1, count + 1):
        result = engine.submit_thought(
            {
                "thought": STEPS[number - 1],
                "thought_number": number,
                "total_thoughts": count,
                "next_thought_needed": number < count,
                **kwargs,
            }
        )
        assert not result.is_error, result.error_message


@pytest.fixture
def steps() -> list[str]:
    return list(STEPS)


@pytest.fixture
def make_record() -> Callable[..., ThoughtRecord]:
    """Factory for stored thoughts of the test session ``s1``."""
    return _make_record


@pytest.fixture
def submit_steps() -> Callable[..., None]:
    """Submit steps 1..count to an engine in order."""
    return _submit_steps
