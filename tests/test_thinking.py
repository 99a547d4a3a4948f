"""Tests for thoughtchain/tools/thinking.py (engine flows)."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from thoughtchain.tools.thinking import (
    CRITICAL_EXTENSION_ADVICE,
    EMPTY_THOUGHT_ERROR,
    EXTENSION_ADVICE,
    ThinkingEngine,
    get_engine,
    init_engine,
    reset_engine,
)
from thoughtchain.tools.thought_types import ExtensionType, ThoughtRecord
from thoughtchain.utils.persistence import SessionFile

Submit = Callable[..., None]
Factory = Callable[..., ThoughtRecord]

GOAL = "Find why checkout requests time out"
REVISED = "Partial indexes on active customers avoid the write overhead entirely."
REPEATED = "Maybe the cache layer returns stale values after deploys."


def _thought(text: str, number: int, total: int = 5, **kwargs: Any) -> dict[str, Any]:
    return {
        "thought": text,
        "thought_number": number,
        "total_thoughts": total,
        "next_thought_needed": number < total,
        **kwargs,
    }


class TestSubmitThought:
    """Admission and hard rejections."""

    def test_first_thought_starts_session(
        self, memory_engine: ThinkingEngine, steps: list[str]
    ) -> None:
        result = memory_engine.submit_thought(_thought(steps[0], 1, goal=GOAL))
        assert not result.is_error
        assert result.thought_history_length == 1
        assert result.session_goal == GOAL
        assert memory_engine.session_id
        assert [s.thought_number for s in result.context_summary] == [1]

    def test_empty_thought_rejected(self, memory_engine: ThinkingEngine) -> None:
        result = memory_engine.submit_thought(_thought("   ", 1))
        assert result.is_error
        assert result.error_message == EMPTY_THOUGHT_ERROR
        assert len(memory_engine.store) == 0

    def test_duplicate_rejected(
        self, memory_engine: ThinkingEngine, submit_steps: Submit, steps: list[str]
    ) -> None:
        submit_steps(memory_engine, 2)
        result = memory_engine.submit_thought(_thought(steps[4], 2))
        assert result.is_error
        assert (result.error_message or "").startswith("REJECTED: Thought #2 already exists")
        assert result.thought_history_length == 2

    def test_skip_is_soft_warning(
        self, memory_engine: ThinkingEngine, submit_steps: Submit, steps: list[str]
    ) -> None:
        submit_steps(memory_engine, 2)
        result = memory_engine.submit_thought(_thought(steps[3], 4))
        assert not result.is_error
        assert (result.warning or "").startswith("Sequence break detected! Expected step 3, got 4.")
        assert result.thought_history_length == 3

    def test_late_step_keeps_last_number(
        self, memory_engine: ThinkingEngine, steps: list[str]
    ) -> None:
        memory_engine.submit_thought(_thought(steps[0], 1))
        memory_engine.submit_thought(_thought(steps[2], 3))
        late = memory_engine.submit_thought(_thought(steps[1], 2))
        assert (late.warning or "").startswith("Sequence break detected! Expected step 4, got 2.")
        assert memory_engine.store.last_thought_number == 3

        result = memory_engine.submit_thought(_thought(steps[3], 4))
        assert not result.is_error
        assert result.warning is None
        assert memory_engine.store.last_thought_number == 4

    def test_total_auto_raised(self, memory_engine: ThinkingEngine, steps: list[str]) -> None:
        memory_engine.submit_thought(_thought(steps[0], 1, total=1))
        result = memory_engine.submit_thought(_thought(steps[1], 2, total=1))
        assert result.total_thoughts == 2
        assert memory_engine.store.history[-1].total_thoughts == 2

    def test_branch(
        self, memory_engine: ThinkingEngine, submit_steps: Submit, steps: list[str]
    ) -> None:
        submit_steps(memory_engine, 3)
        result = memory_engine.submit_thought(
            _thought(steps[4], 4, branch_from_thought=1, branch_id="alt")
        )
        assert not result.is_error
        assert result.branches == ["alt"]

    def test_branch_from_missing_rejected(
        self, memory_engine: ThinkingEngine, submit_steps: Submit, steps: list[str]
    ) -> None:
        submit_steps(memory_engine, 3)
        result = memory_engine.submit_thought(
            _thought(steps[4], 4, branch_from_thought=9, branch_id="alt")
        )
        assert result.is_error
        assert (result.error_message or "").startswith("INVALID BRANCH")

    def test_stagnation_warning(self, memory_engine: ThinkingEngine) -> None:
        for number in (1, 2, 3):
            memory_engine.submit_thought(_thought(REPEATED, number))
        result = memory_engine.submit_thought(_thought(REPEATED, 4))
        assert not result.is_error
        assert (result.warning or "").startswith("STAGNATION: Last 3 thoughts 100% similar.")

    def test_quick_extension_attached(
        self, memory_engine: ThinkingEngine, steps: list[str]
    ) -> None:
        memory_engine.submit_thought(
            _thought(
                steps[0],
                1,
                quick_extension={"type": "critique", "content": "Too vague", "impact": "high"},
            )
        )
        record = memory_engine.store.history[0]
        assert record.quick_extension is None
        assert [e.type for e in record.extensions] == [ExtensionType.CRITIQUE]


class TestRevisions:
    """Revisions are rejected hard when invalid."""

    def test_shallow_revision_rejected(
        self, memory_engine: ThinkingEngine, submit_steps: Submit, steps: list[str]
    ) -> None:
        submit_steps(memory_engine, 3)
        result = memory_engine.submit_thought(
            _thought(steps[1], 4, is_revision=True, revises_thought=2)
        )
        assert result.is_error
        assert (result.error_message or "").startswith("SHALLOW REVISION")
        assert len(memory_engine.store) == 3

    def test_revision_of_missing_rejected(
        self, memory_engine: ThinkingEngine, submit_steps: Submit
    ) -> None:
        submit_steps(memory_engine, 2)
        result = memory_engine.submit_thought(
            _thought(REVISED, 3, is_revision=True, revises_thought=7)
        )
        assert result.is_error
        assert (result.error_message or "").startswith("INVALID REVISION")

    def test_revision_without_target_rejected(
        self, memory_engine: ThinkingEngine, submit_steps: Submit
    ) -> None:
        submit_steps(memory_engine, 2)
        result = memory_engine.submit_thought(_thought(REVISED, 3, is_revision=True))
        assert result.is_error
        assert (result.error_message or "").startswith("INVALID REVISION")
        assert len(memory_engine.store) == 2

    def test_valid_revision(self, memory_engine: ThinkingEngine, submit_steps: Submit) -> None:
        submit_steps(memory_engine, 3)
        result = memory_engine.submit_thought(
            _thought(REVISED, 4, is_revision=True, revises_thought=2)
        )
        assert not result.is_error
        assert result.warning is None
        assert result.thought_history_length == 4
        assert memory_engine.store.last_thought_number == 3


class TestSessions:
    """Session boundaries and reset."""

    def test_new_first_thought_starts_new_session(
        self, memory_engine: ThinkingEngine, submit_steps: Submit, steps: list[str]
    ) -> None:
        submit_steps(memory_engine, 3)
        old_id = memory_engine.session_id
        result = memory_engine.submit_thought(_thought(steps[5], 1))
        assert not result.is_error
        assert memory_engine.session_id != old_id
        assert result.thought_history_length == 1

    def test_empty_first_thought_keeps_session(
        self, memory_engine: ThinkingEngine, submit_steps: Submit
    ) -> None:
        submit_steps(memory_engine, 2)
        old_id = memory_engine.session_id
        result = memory_engine.submit_thought(_thought("   ", 1))
        assert result.is_error
        assert result.error_message == EMPTY_THOUGHT_ERROR
        assert len(memory_engine.store) == 2
        assert memory_engine.session_id == old_id

    def test_reset_session(
        self, memory_engine: ThinkingEngine, submit_steps: Submit, steps: list[str]
    ) -> None:
        submit_steps(memory_engine, 3)
        old_id = memory_engine.session_id
        assert memory_engine.reset_session() == {"clearedThoughts": 3, "clearedBranches": 0}
        assert len(memory_engine.store) == 0
        memory_engine.submit_thought(_thought(steps[0], 1))
        assert memory_engine.session_id != old_id


class TestConfidence:
    """Weighted average confidence."""

    def test_recent_weighted_double(
        self, memory_engine: ThinkingEngine, steps: list[str]
    ) -> None:
        result = None
        for number, confidence in ((1, 8), (2, 6), (3, 4), (4, 2)):
            result = memory_engine.submit_thought(
                _thought(steps[number - 1], number, confidence=confidence)
            )
        assert result is not None
        # (8*1 + 6*2 + 4*2 + 2*2) / 7
        assert result.average_confidence == 4.6

    def test_no_ratings(self, memory_engine: ThinkingEngine, steps: list[str]) -> None:
        result = memory_engine.submit_thought(_thought(steps[0], 1))
        assert result.average_confidence is None

    def test_capped_by_unrevised_critique(
        self, memory_engine: ThinkingEngine, steps: list[str]
    ) -> None:
        memory_engine.submit_thought(
            _thought(
                steps[0],
                1,
                confidence=9,
                quick_extension={"type": "critique", "content": "Unproven", "impact": "high"},
            )
        )
        result = memory_engine.submit_thought(_thought(steps[1], 2, confidence=9))
        assert result.average_confidence == 4.0


class TestDeadEnds:
    """Dead-end recording and warnings."""

    def test_prefix_warning(
        self, memory_engine: ThinkingEngine, submit_steps: Submit, steps: list[str]
    ) -> None:
        submit_steps(memory_engine, 2)
        memory_engine.record_dead_end([1, 2, 3], "Index theory disproved")
        result = memory_engine.submit_thought(_thought(steps[2], 3))
        assert result.system_advice == (
            "DEAD END WARNING: Your current path [1,2,3] matches rejected path [1,2,3]. "
            'Reason: "Index theory disproved". Consider a different approach or use '
            "isRevision to fix the flaw."
        )

    def test_diverging_path_no_warning(
        self, memory_engine: ThinkingEngine, submit_steps: Submit, steps: list[str]
    ) -> None:
        submit_steps(memory_engine, 2)
        memory_engine.record_dead_end([1, 3], "Skipped profiling")
        result = memory_engine.submit_thought(_thought(steps[2], 3))
        assert result.system_advice is None

    def test_get_dead_ends(self, memory_engine: ThinkingEngine, submit_steps: Submit) -> None:
        submit_steps(memory_engine, 2)
        memory_engine.record_dead_end([1, 2], "wrong")
        assert [d.path for d in memory_engine.get_dead_ends()] == [[1, 2]]


class TestExtendThought:
    """Tests for extend_thought()."""

    def test_not_found(self, memory_engine: ThinkingEngine, submit_steps: Submit) -> None:
        submit_steps(memory_engine, 2)
        result = memory_engine.extend_thought(
            {"target_thought_number": 5, "extension_type": "critique", "content": "x"}
        )
        assert result.status == "error"
        assert result.system_advice == "Thought #5 not found."

    def test_previous_session(self, memory_engine: ThinkingEngine, make_record: Factory) -> None:
        store = memory_engine.store
        store.add_thought(make_record(1, session_id="old"))
        store.add_thought(make_record(2, session_id="old"))
        store.session_id = "new"
        store.add_thought(make_record(1, session_id="new"))
        result = memory_engine.extend_thought(
            {"target_thought_number": 2, "extension_type": "critique", "content": "x"}
        )
        assert result.status == "error"
        assert result.system_advice == "Thought #2 is from a previous session."

    def test_critical_critique_advice(
        self, memory_engine: ThinkingEngine, submit_steps: Submit, steps: list[str]
    ) -> None:
        submit_steps(memory_engine, 2)
        result = memory_engine.extend_thought(
            {
                "target_thought_number": 2,
                "extension_type": "critique",
                "content": "Joins were never measured",
                "impact_on_final_result": "blocker",
            }
        )
        assert result.status == "success"
        assert result.system_advice == CRITICAL_EXTENSION_ADVICE
        assert result.total_extensions_on_this_thought == 1
        assert result.target_thought == steps[1]

    def test_type_specific_advice(
        self, memory_engine: ThinkingEngine, submit_steps: Submit
    ) -> None:
        submit_steps(memory_engine, 1)
        result = memory_engine.extend_thought(
            {"target_thought_number": 1, "extension_type": "innovation", "content": "Try CDN"}
        )
        assert result.system_advice == EXTENSION_ADVICE[ExtensionType.INNOVATION]

    def test_default_advice_and_count(
        self, memory_engine: ThinkingEngine, submit_steps: Submit
    ) -> None:
        submit_steps(memory_engine, 1)
        request = {
            "target_thought_number": 1,
            "extension_type": "elaboration",
            "content": "Detail",
            "impact_on_final_result": "low",
        }
        memory_engine.extend_thought(request)
        result = memory_engine.extend_thought(request)
        assert result.system_advice == "Extension recorded."
        assert result.total_extensions_on_this_thought == 2

    def test_targets_latest_revision(
        self, memory_engine: ThinkingEngine, submit_steps: Submit
    ) -> None:
        submit_steps(memory_engine, 3)
        memory_engine.submit_thought(_thought(REVISED, 2, is_revision=True, revises_thought=2))
        memory_engine.extend_thought(
            {"target_thought_number": 2, "extension_type": "polish", "content": "Wording"}
        )
        assert memory_engine.store.history[-1].extensions
        assert not memory_engine.store.history[1].extensions


class TestConsolidate:
    """Engine-level consolidation."""

    def test_success_calls_insight_sink(self, submit_steps: Submit) -> None:
        insights: list[tuple[list[int], str]] = []
        engine = ThinkingEngine(insight_sink=lambda path, summary: insights.append((path, summary)))
        submit_steps(engine, 3)
        result = engine.consolidate(
            {"winning_path": [1, 2, 3], "summary": "Indexes fix it", "verdict": "ready"}
        )
        assert result.can_proceed_to_final_answer
        assert insights == [([1, 2, 3], "Indexes fix it")]

    def test_needs_more_work_records_dead_end(
        self, memory_engine: ThinkingEngine, submit_steps: Submit
    ) -> None:
        submit_steps(memory_engine, 3)
        memory_engine.consolidate(
            {"winning_path": [1, 2], "summary": "Not proven", "verdict": "needs_more_work"}
        )
        dead_ends = memory_engine.get_dead_ends()
        assert [d.path for d in dead_ends] == [[1, 2]]
        assert dead_ends[0].reason == "Not proven"


class TestSubmitBatch:
    """Burst submissions."""

    @staticmethod
    def _batch(steps: list[str], count: int = 3) -> list[dict[str, Any]]:
        return [{"thought_number": n, "thought": steps[n - 1]} for n in range(1, count + 1)]

    def test_accepted_replaces_session(
        self, memory_engine: ThinkingEngine, submit_steps: Submit, steps: list[str]
    ) -> None:
        submit_steps(memory_engine, 2)
        memory_engine.record_dead_end([1, 2], "old")
        result = memory_engine.submit_batch(GOAL, self._batch(steps, 4))
        assert result.status == "accepted"
        assert result.thoughts_processed == 4
        assert result.session_id == memory_engine.session_id
        assert result.validation.passed
        store = memory_engine.store
        assert len(store) == 4
        assert store.goal == GOAL
        assert store.last_thought_number == 4
        assert store.dead_ends == []
        assert store.history[-1].next_thought_needed is False

    def test_rejected_leaves_state(
        self, memory_engine: ThinkingEngine, submit_steps: Submit, steps: list[str]
    ) -> None:
        submit_steps(memory_engine, 2)
        session_id = memory_engine.session_id
        result = memory_engine.submit_batch("short", self._batch(steps))
        assert result.status == "rejected"
        assert result.session_id == ""
        assert not result.validation.passed
        assert len(memory_engine.store) == 2
        assert memory_engine.session_id == session_id

    def test_needs_more_work_consolidation(
        self, memory_engine: ThinkingEngine, steps: list[str]
    ) -> None:
        result = memory_engine.submit_batch(
            GOAL,
            self._batch(steps),
            {"winning_path": [1, 2, 3], "summary": "Unverified", "verdict": "needs_more_work"},
        )
        assert result.status == "accepted"
        assert [d.path for d in memory_engine.get_dead_ends()] == [[1, 2, 3]]

    def test_followed_by_single_thought(
        self, memory_engine: ThinkingEngine, steps: list[str]
    ) -> None:
        memory_engine.submit_batch(GOAL, self._batch(steps))
        result = memory_engine.submit_thought(_thought(steps[3], 4))
        assert not result.is_error
        assert result.warning is None
        assert result.session_goal == GOAL


class TestPersistence:
    """State survives a restart through the session file."""

    def test_reload(
        self,
        engine: ThinkingEngine,
        submit_steps: Submit,
        session_path: Path,
    ) -> None:
        submit_steps(engine, 3)
        engine.record_dead_end([1, 2], "wrong")
        engine.flush()

        restarted_file = SessionFile(session_path)
        try:
            restarted = ThinkingEngine(persistence=restarted_file)
            assert restarted.load_session()
            assert restarted.session_id == engine.session_id
            assert len(restarted.store) == 3
            assert restarted.store.last_thought_number == 3
            assert [d.path for d in restarted.get_dead_ends()] == [[1, 2]]
        finally:
            restarted_file.close()

    def test_reset_clears_file(
        self, engine: ThinkingEngine, submit_steps: Submit, session_path: Path
    ) -> None:
        submit_steps(engine, 2)
        engine.flush()
        assert session_path.exists()
        engine.reset_session()
        engine.flush()
        assert not session_path.exists()

    def test_no_persistence(self, memory_engine: ThinkingEngine) -> None:
        assert memory_engine.load_session() is False
        assert memory_engine.save_session().result() is None


class TestProcessEngine:
    """Process-wide engine accessors."""

    def test_get_engine_is_singleton(self) -> None:
        assert get_engine() is get_engine()

    def test_init_engine_uses_configured_file(self, tmp_path: Path) -> None:
        engine = init_engine()
        assert engine.persistence is not None
        assert engine.persistence.path == tmp_path / "engine_session.json"

    def test_reset_engine(self) -> None:
        first = get_engine()
        reset_engine()
        assert get_engine() is not first

    @pytest.mark.parametrize("count", [1, 3])
    def test_engine_tracks_history(self, submit_steps: Submit, count: int) -> None:
        engine = get_engine()
        submit_steps(engine, count)
        assert len(engine.store) == count
