"""Session engine: admission of thoughts, extensions, consolidation and bursts.

The engine owns one ``SessionStore`` and an optional ``SessionFile``. Every
operation validates and mutates synchronously, then schedules a
fire-and-forget save of a snapshot. Validators are pure functions that
receive the current session thoughts as parameters.
"""

from __future__ import annotations

from collections.abc import Callable
from concurrent.futures import Future
from typing import Any

from loguru import logger

from thoughtchain.config import get_config
from thoughtchain.tools.burst import BurstValidator, to_thought_record
from thoughtchain.tools.consolidation import consolidate as run_consolidation
from thoughtchain.tools.stagnation import detect_stagnation
from thoughtchain.tools.thought_types import (
    BurstConsolidation,
    BurstResult,
    BurstThought,
    BurstValidation,
    ConsolidateInput,
    ConsolidateResult,
    DeadEnd,
    ExtendThoughtInput,
    ExtendThoughtResult,
    ExtensionType,
    ImpactLevel,
    ThinkingResult,
    ThoughtExtension,
    ThoughtInput,
    ThoughtRecord,
    ThoughtSummary,
)
from thoughtchain.tools.validation import (
    check_duplicate,
    validate_branch_source,
    validate_sequence,
)
from thoughtchain.utils.logging import set_session_id
from thoughtchain.utils.persistence import SessionFile
from thoughtchain.utils.session import SessionStore
from thoughtchain.utils.text_metrics import clear_word_cache

# Context summary / confidence weighting
CONTEXT_SUMMARY_COUNT = 3
CONTEXT_SUMMARY_MAX_CHARS = 150
RECENT_THOUGHTS_COUNT = 3
RECENT_WEIGHT_MULTIPLIER = 2
UNRESOLVED_CRITICAL_CONFIDENCE_CAP = 4.0
TARGET_PREVIEW_CHARS = 100

EMPTY_THOUGHT_ERROR = "REJECTED: Empty thought. Provide meaningful content."

EXTENSION_ADVICE: dict[ExtensionType, str] = {
    ExtensionType.INNOVATION: (
        "INNOVATION recorded. Ensure you proposed 2-3 concrete directions. "
        "Consider which aligns best with project goals."
    ),
    ExtensionType.OPTIMIZATION: (
        'OPTIMIZATION recorded. Did you include "Before vs After" metrics? '
        "Quantify the improvement."
    ),
    ExtensionType.POLISH: (
        "POLISH recorded. Create a checklist of specific items to fix. "
        "Track completion in next thoughts."
    ),
}
CRITICAL_EXTENSION_ADVICE = (
    "WARNING: This extension identified a critical issue. "
    "You should probably use 'sequentialthinking' with isRevision: true next."
)
DEFAULT_EXTENSION_ADVICE = "Extension recorded."

InsightSink = Callable[[list[int], str], None]


def _truncate(text: str, limit: int) -> str:
    return text[:limit] + "..." if len(text) > limit else text


class ThinkingEngine:
    """Single mutable engine holding all session state of the process.

    Usage:
        engine = ThinkingEngine(persistence=SessionFile(path))
        engine.load_session()
        result = engine.submit_thought({"thought": "...", "thoughtNumber": 1, ...})
    """

    def __init__(
        self,
        store: SessionStore | None = None,
        persistence: SessionFile | None = None,
        *,
        insight_sink: InsightSink | None = None,
        burst_validator: BurstValidator | None = None,
    ) -> None:
        self.store = store if store is not None else SessionStore()
        self.persistence = persistence
        self.insight_sink = insight_sink
        self.burst_validator = burst_validator or BurstValidator()

    @property
    def session_id(self) -> str:
        return self.store.session_id

    # -------------------------------------------------------------------------
    # Persistence lifecycle
    # -------------------------------------------------------------------------

    def load_session(self) -> bool:
        """Restore state from the session file. Returns True if restored."""
        if self.persistence is None:
            return False
        data = self.persistence.load()
        if data is None:
            return False
        self.store.restore(data)
        set_session_id(self.store.session_id or None)
        return True

    def save_session(self) -> Future[None]:
        """Schedule a save of the current state (fire and forget)."""
        if self.persistence is None:
            done: Future[None] = Future()
            done.set_result(None)
            return done
        return self.persistence.save(self.store.to_session_data())

    def flush(self) -> None:
        """Wait for every pending write."""
        if self.persistence is not None:
            self.persistence.flush()

    def close(self) -> None:
        if self.persistence is not None:
            self.persistence.close()

    def _start_new_session(self) -> None:
        """Wipe memory synchronously; the file is cleared on the writer queue."""
        self.store.reset()
        clear_word_cache()
        if self.persistence is not None:
            self.persistence.clear()

    # -------------------------------------------------------------------------
    # Single thought
    # -------------------------------------------------------------------------

    def submit_thought(self, thought: ThoughtInput | dict[str, Any]) -> ThinkingResult:
        """Validate and admit one thought.

        Hard rejections (empty text, duplicate number, unknown branch origin,
        invalid revision) return ``is_error=True`` and store nothing. Sequence
        skips and stagnation produce warnings on a successful admission.
        """
        candidate = (
            thought if isinstance(thought, ThoughtInput) else ThoughtInput.model_validate(thought)
        )
        # Auto-raise total when exceeded
        if candidate.thought_number > candidate.total_thoughts:
            candidate = candidate.model_copy(update={"total_thoughts": candidate.thought_number})

        with self.store.locked() as store:
            if not candidate.thought.strip():
                return self._rejection(candidate, EMPTY_THOUGHT_ERROR)

            is_fresh_start = candidate.thought_number == 1 and not candidate.is_revision
            if is_fresh_start:
                if len(store) > 0:
                    logger.info("New session detected (thought #1), clearing previous state")
                    self._start_new_session()
                new_id = store.start_session()
                set_session_id(new_id)
                logger.debug(f"New session ID: {new_id}")

            if candidate.goal and candidate.thought_number == 1:
                store.goal = candidate.goal
                logger.info(f"Session goal set: {candidate.goal[:50]}")

            session_thoughts = store.session_thoughts()

            error = check_duplicate(candidate, session_thoughts) or validate_branch_source(
                candidate, session_thoughts
            )
            if error:
                return self._rejection(candidate, error)

            validation = validate_sequence(candidate, session_thoughts, store.last_thought_number)
            if not validation.valid and candidate.is_revision:
                return self._rejection(candidate, validation.warning or "Invalid revision")

            stagnation_warning = detect_stagnation(candidate.thought, store.history)

            record = ThoughtRecord.model_validate(
                {
                    **candidate.model_dump(exclude={"quick_extension"}),
                    "session_id": store.session_id,
                }
            )
            store.add_thought(record)

            if candidate.quick_extension is not None:
                ext = candidate.quick_extension
                record.extensions.append(
                    ThoughtExtension(type=ext.type, content=ext.content, impact=ext.impact)
                )
                logger.debug(
                    f"Quick extension on #{record.thought_number} "
                    f"[{ext.type.value.upper()}]: {ext.content[:40]}"
                )

            kind = (
                "Revision"
                if candidate.is_revision
                else "Branch"
                if candidate.branch_from_thought
                else "Thought"
            )
            confidence = f" [conf: {candidate.confidence:g}/10]" if candidate.confidence else ""
            logger.info(
                f"{kind} {candidate.thought_number}/{candidate.total_thoughts}{confidence}: "
                f"{candidate.thought[:80]}"
            )

            self.save_session()

            warnings = [w for w in (validation.warning, stagnation_warning) if w]
            return ThinkingResult(
                thought_number=candidate.thought_number,
                total_thoughts=candidate.total_thoughts,
                next_thought_needed=candidate.next_thought_needed,
                branches=list(store.branches),
                thought_history_length=len(store.history),
                context_summary=self._context_summary(),
                warning="\n".join(warnings) or None,
                average_confidence=self._average_confidence(),
                system_advice=self._check_dead_ends(candidate.thought_number),
                session_goal=store.goal,
            )

    def _rejection(self, candidate: ThoughtInput, message: str) -> ThinkingResult:
        logger.warning(f"Thought #{candidate.thought_number} rejected: {message}")
        return ThinkingResult(
            thought_number=candidate.thought_number,
            total_thoughts=candidate.total_thoughts,
            next_thought_needed=True,
            branches=list(self.store.branches),
            thought_history_length=len(self.store.history),
            context_summary=self._context_summary(),
            warning=message,
            is_error=True,
            error_message=message,
        )

    def _context_summary(self) -> list[ThoughtSummary]:
        return [
            ThoughtSummary(
                thought_number=t.thought_number,
                thought=_truncate(t.thought, CONTEXT_SUMMARY_MAX_CHARS),
                confidence=t.confidence,
            )
            for t in self.store.session_thoughts()[-CONTEXT_SUMMARY_COUNT:]
        ]

    def _has_unresolved_critical(self, session_thoughts: list[ThoughtRecord]) -> bool:
        return any(
            any(e.is_critical_critique for e in t.extensions)
            and not t.has_revision_in(session_thoughts)
            for t in session_thoughts
        )

    def _average_confidence(self) -> float | None:
        """Weighted mean confidence: the last 3 rated thoughts count double.

        Capped at 4 while a high/blocker critique has no revision.
        """
        session_thoughts = self.store.session_thoughts()
        rated = [t.confidence for t in session_thoughts if t.confidence is not None]
        if not rated:
            return None

        recent_start = max(0, len(rated) - RECENT_THOUGHTS_COUNT)
        weights = [
            RECENT_WEIGHT_MULTIPLIER if index >= recent_start else 1 for index in range(len(rated))
        ]
        weighted = sum(c * w for c, w in zip(rated, weights, strict=True))
        average = round(weighted / sum(weights), 1)

        if (
            average > UNRESOLVED_CRITICAL_CONFIDENCE_CAP
            and self._has_unresolved_critical(session_thoughts)
        ):
            average = UNRESOLVED_CRITICAL_CONFIDENCE_CAP
        return average

    def _check_dead_ends(self, current_number: int) -> str | None:
        """Warn when the current path is a prefix of a rejected path."""
        dead_ends = self.store.current_dead_ends()
        if not dead_ends:
            return None

        current_path = sorted(
            t.thought_number
            for t in self.store.session_thoughts()
            if not t.is_revision and t.thought_number <= current_number
        )
        if len(current_path) < 2:
            return None

        for dead_end in dead_ends:
            if dead_end.path[: len(current_path)] == current_path:
                return (
                    f"DEAD END WARNING: Your current path [{','.join(map(str, current_path))}] "
                    f"matches rejected path [{','.join(map(str, dead_end.path))}]. "
                    f'Reason: "{dead_end.reason}". Consider a different approach or use '
                    "isRevision to fix the flaw."
                )
        return None

    # -------------------------------------------------------------------------
    # Extensions
    # -------------------------------------------------------------------------

    def extend_thought(self, request: ExtendThoughtInput | dict[str, Any]) -> ExtendThoughtResult:
        """Attach an extension to the most recent current-session thought with that number."""
        if not isinstance(request, ExtendThoughtInput):
            request = ExtendThoughtInput.model_validate(request)
        number = request.target_thought_number

        with self.store.locked() as store:
            target = store.find_latest(number)
            if target is None:
                if any(t.thought_number == number for t in store.history):
                    return ExtendThoughtResult(
                        status="error",
                        system_advice=f"Thought #{number} is from a previous session.",
                        error_message=(
                            f"Thought #{number} exists but belongs to a previous session. "
                            "Only current session thoughts can be extended."
                        ),
                    )
                return ExtendThoughtResult(
                    status="error",
                    system_advice=f"Thought #{number} not found.",
                    error_message=f"Thought #{number} not found in history.",
                )

            target.extensions.append(
                ThoughtExtension(
                    type=request.extension_type,
                    content=request.content,
                    impact=request.impact_on_final_result,
                )
            )
            logger.info(
                f"Extension on #{number} [{request.extension_type.value.upper()}]: "
                f"{request.content[:50]}"
            )

            advice = EXTENSION_ADVICE.get(request.extension_type)
            if advice is None:
                critical = request.impact_on_final_result in (ImpactLevel.HIGH, ImpactLevel.BLOCKER)
                advice = CRITICAL_EXTENSION_ADVICE if critical else DEFAULT_EXTENSION_ADVICE

            self.save_session()
            return ExtendThoughtResult(
                status="success",
                system_advice=advice,
                target_thought=_truncate(target.thought, TARGET_PREVIEW_CHARS),
                total_extensions_on_this_thought=len(target.extensions),
            )

    # -------------------------------------------------------------------------
    # Consolidation and dead ends
    # -------------------------------------------------------------------------

    def consolidate(self, request: ConsolidateInput | dict[str, Any]) -> ConsolidateResult:
        """Audit a winning path; needs_more_work records the path as a dead end."""
        if not isinstance(request, ConsolidateInput):
            request = ConsolidateInput.model_validate(request)
        with self.store.locked() as store:
            return run_consolidation(
                request,
                store.session_thoughts(),
                on_dead_end=self.record_dead_end,
                on_success=self.insight_sink,
            )

    def record_dead_end(self, path: list[int], reason: str) -> DeadEnd | None:
        dead_end = self.store.record_dead_end(path, reason)
        if dead_end is not None:
            self.save_session()
        return dead_end

    def get_dead_ends(self) -> list[DeadEnd]:
        """Dead ends of the current session."""
        return self.store.current_dead_ends()

    # -------------------------------------------------------------------------
    # Burst
    # -------------------------------------------------------------------------

    def submit_batch(
        self,
        goal: str,
        thoughts: list[BurstThought | dict[str, Any]],
        consolidation: BurstConsolidation | dict[str, Any] | None = None,
    ) -> BurstResult:
        """Validate a whole chain and, if it passes, replace the session with it."""
        batch = [
            t if isinstance(t, BurstThought) else BurstThought.model_validate(t) for t in thoughts
        ]
        if consolidation is not None and not isinstance(consolidation, BurstConsolidation):
            consolidation = BurstConsolidation.model_validate(consolidation)

        outcome = self.burst_validator.validate(goal, batch, consolidation)
        validation = BurstValidation(
            passed=outcome.passed, errors=outcome.errors, warnings=outcome.warnings
        )
        if not outcome.passed or outcome.sorted_thoughts is None:
            logger.warning(f"Burst session rejected: {len(outcome.errors)} error(s)")
            return BurstResult(status="rejected", metrics=outcome.metrics, validation=validation)

        sorted_thoughts = outcome.sorted_thoughts
        with self.store.locked() as store:
            self._start_new_session()
            session_id = store.start_session()

            total = len(sorted_thoughts)
            records = [to_thought_record(t, total, session_id) for t in sorted_thoughts]
            last_number = max(
                (r.thought_number for r in records if not r.is_revision), default=0
            )
            store.replace(records, session_id, goal, last_number)
            set_session_id(session_id)

            if consolidation is not None and consolidation.verdict == "needs_more_work":
                store.record_dead_end(consolidation.winning_path, consolidation.summary)

            self.save_session()

        logger.info(
            f"Burst session accepted: {len(records)} thoughts, "
            f"stagnation={outcome.metrics.stagnation_score}"
        )
        return BurstResult(
            status="accepted",
            session_id=session_id,
            thoughts_processed=len(records),
            metrics=outcome.metrics,
            validation=validation,
        )

    # -------------------------------------------------------------------------
    # Reset
    # -------------------------------------------------------------------------

    def reset_session(self) -> dict[str, int]:
        """Clear all session state and the session file."""
        with self.store.locked():
            cleared_thoughts, cleared_branches = self.store.reset()
            clear_word_cache()
            if self.persistence is not None:
                self.persistence.clear()
            set_session_id(None)
        logger.info(f"Session reset: {cleared_thoughts} thoughts, {cleared_branches} branches")
        return {"clearedThoughts": cleared_thoughts, "clearedBranches": cleared_branches}


# =============================================================================
# Process-wide engine
# =============================================================================

_engine: ThinkingEngine | None = None


def init_engine(
    persistence: SessionFile | None = None,
    insight_sink: InsightSink | None = None,
) -> ThinkingEngine:
    """Create the process engine, using the configured session file if none is given."""
    global _engine
    session_config = get_config().session
    if persistence is None and session_config.persistence_enabled:
        persistence = SessionFile(session_config.session_file, session_config.ttl_hours)
    _engine = ThinkingEngine(
        store=SessionStore(max_dead_ends=session_config.max_dead_ends),
        persistence=persistence,
        insight_sink=insight_sink,
    )
    return _engine


def get_engine() -> ThinkingEngine:
    """Get or create the process engine."""
    if _engine is None:
        return init_engine()
    return _engine


def reset_engine() -> None:
    """Drop the process engine (for testing)."""
    global _engine
    if _engine is not None:
        _engine.close()
    _engine = None
