"""Consolidation audit: certify a winning path through the session.

Hard errors (empty session, unknown path members) produce an error result.
Everything else accumulates as warnings; ``can_proceed_to_final_answer``
requires a "ready" verdict, no unresolved blocker/critical issue, no missing
revision, a connected path and at most one warning.
"""

from __future__ import annotations

from collections.abc import Callable

from loguru import logger

from thoughtchain.tools.thought_graph import validate_path_connectivity
from thoughtchain.tools.thought_types import (
    ConsolidateInput,
    ConsolidateResult,
    PathAnalysis,
    ThoughtRecord,
)

LOW_CONFIDENCE_THRESHOLD = 5
MAX_IGNORED_RATIO = 0.6
SHORT_PATH_SESSION_SIZE = 3

PathCallback = Callable[[list[int], str], None]


def consolidate(
    request: ConsolidateInput,
    session_thoughts: list[ThoughtRecord],
    on_dead_end: PathCallback | None = None,
    on_success: PathCallback | None = None,
) -> ConsolidateResult:
    """Audit ``request.winning_path`` against the current session.

    Args:
        request: Winning path, summary and verdict.
        session_thoughts: Thoughts of the current session.
        on_dead_end: Called with (path, summary) when verdict is needs_more_work.
        on_success: Called with (path, summary) when the synthesis is accepted.

    Returns:
        ConsolidateResult with evaluation, warnings and path analysis.

    """
    path = request.winning_path
    warnings: list[str] = []

    if not session_thoughts:
        return ConsolidateResult(
            status="error",
            evaluation="Cannot consolidate empty thought history.",
            error_message="No thoughts recorded. Use sequentialthinking first.",
        )

    existing = {t.thought_number for t in session_thoughts}
    invalid_refs = [n for n in path if n not in existing]
    if invalid_refs:
        refs = ", ".join(str(n) for n in invalid_refs)
        return ConsolidateResult(
            status="error",
            evaluation=f"Invalid thought references in winning path: {refs}",
            path_analysis=PathAnalysis(
                total_thoughts=len(session_thoughts), path_length=len(path)
            ),
            error_message=f"Thoughts {refs} do not exist in current session.",
        )

    connectivity = validate_path_connectivity(path, session_thoughts)
    if not connectivity.valid:
        warnings.append(f"PATH DISCONTINUITY: {connectivity.error}")

    in_path = [t for t in session_thoughts if t.thought_number in path]

    low_confidence = [
        t.thought_number
        for t in in_path
        if t.confidence is not None and t.confidence < LOW_CONFIDENCE_THRESHOLD
    ]
    if low_confidence:
        warnings.append(
            "LOW CONFIDENCE: Your winning path includes thoughts with confidence < 5: "
            f"#{_join(low_confidence)}. Are you sure about these steps?"
        )

    ignored_ratio = 1 - len(path) / len(session_thoughts)
    if ignored_ratio > MAX_IGNORED_RATIO:
        warnings.append(
            f"HIGH DISCARD RATE: You are ignoring {round(ignored_ratio * 100)}% of your "
            "thoughts. Ensure you haven't missed important contradictions in discarded branches."
        )

    unaddressed_blockers: list[int] = []
    unaddressed_critical: list[int] = []
    missing_revisions: list[int] = []
    for thought in in_path:
        if not thought.extensions:
            continue
        revised = thought.has_revision_in(session_thoughts)
        if not revised and any(e.is_blocker for e in thought.extensions):
            unaddressed_blockers.append(thought.thought_number)
        if not revised and any(e.is_high_critique for e in thought.extensions):
            unaddressed_critical.append(thought.thought_number)

        if any(e.is_critical_critique for e in thought.extensions):
            revision = next(
                (
                    t
                    for t in session_thoughts
                    if t.is_revision and t.revises_thought == thought.thought_number
                ),
                None,
            )
            if revision is not None and revision.thought_number not in path:
                missing_revisions.append(thought.thought_number)

    if unaddressed_blockers:
        warnings.append(
            f"UNADDRESSED BLOCKERS: Thoughts #{_join(unaddressed_blockers)} have BLOCKER "
            "extensions but no revisions. You MUST address these before proceeding."
        )
    if unaddressed_critical:
        warnings.append(
            f"UNADDRESSED CRITICAL: Thoughts #{_join(unaddressed_critical)} have HIGH impact "
            "critiques but no revisions. Address these issues with isRevision: true."
        )
    if missing_revisions:
        warnings.append(
            f"MISSING REVISIONS IN PATH: Thoughts #{_join(missing_revisions)} have critical "
            "critiques with revisions, but those revisions are NOT in your winningPath."
        )

    if not path:
        warnings.append("EMPTY PATH: No thoughts selected in winning path.")
    elif len(path) < 2 and len(session_thoughts) > SHORT_PATH_SESSION_SIZE:
        warnings.append(
            "SUSPICIOUSLY SHORT PATH: Only 1 thought selected from a longer chain. "
            "Did you skip important reasoning?"
        )

    can_proceed = (
        request.verdict == "ready"
        and not unaddressed_blockers
        and not unaddressed_critical
        and not missing_revisions
        and connectivity.valid
        and len(warnings) <= 1
    )

    if can_proceed:
        evaluation = (
            "SYNTHESIS ACCEPTED: Your reasoning chain is coherent. "
            "You may proceed to final answer."
        )
        if on_success:
            on_success(path, request.summary)
    elif request.verdict == "needs_more_work":
        evaluation = (
            "ACKNOWLEDGED: You identified this needs more work. "
            "Continue with sequentialthinking or extend_thought."
        )
        if on_dead_end:
            on_dead_end(path, request.summary)
    else:
        evaluation = (
            f"SYNTHESIS REJECTED: {len(warnings)} issue(s) found. "
            "Address them before providing final answer."
        )

    logger.info(
        f"Consolidation: verdict={request.verdict}, path=[{_join(path, ',')}], "
        f"warnings={len(warnings)}, can_proceed={can_proceed}"
    )

    return ConsolidateResult(
        status="success",
        evaluation=evaluation,
        warnings=warnings,
        can_proceed_to_final_answer=can_proceed,
        path_analysis=PathAnalysis(
            total_thoughts=len(session_thoughts),
            path_length=len(path),
            ignored_ratio=round(ignored_ratio, 2),
            low_confidence_in_path=low_confidence,
            unaddressed_blockers=unaddressed_blockers,
            unaddressed_critical=unaddressed_critical,
            disconnected_at=(
                [connectivity.disconnected_at] if connectivity.disconnected_at else None
            ),
        ),
    )


def _join(numbers: list[int], sep: str = ", ") -> str:
    return sep.join(str(n) for n in numbers)
