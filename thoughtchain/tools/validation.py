"""Structural validation of submitted thoughts.

Stateless: every check receives the current session thoughts as a
parameter. Checks run in this order inside the engine:

    check_duplicate -> validate_branch_source -> validate_sequence

Duplicate and branch failures are hard rejections. A sequence break is a
soft warning for fresh thoughts, while any failure of a revision is a hard
rejection.
"""

from __future__ import annotations

from thoughtchain.tools.thought_types import ThoughtInput, ThoughtRecord, ValidationResult
from thoughtchain.utils.text_metrics import jaccard_similarity

SHALLOW_REVISION_THRESHOLD = 0.85
CIRCULAR_REVISION_THRESHOLD = 0.80


def _available(session_thoughts: list[ThoughtRecord]) -> str:
    return ", ".join(str(t.thought_number) for t in session_thoughts) or "none"


def validate_revision(
    candidate: ThoughtInput, session_thoughts: list[ThoughtRecord]
) -> ValidationResult:
    """Check that a revision targets an existing thought and actually changes it.

    Rejects revisions of missing thoughts, revisions too similar to their
    target ("shallow"), and revisions that drift back to an even earlier
    thought ("circular").
    """
    target_number = candidate.revises_thought
    target = next((t for t in session_thoughts if t.thought_number == target_number), None)
    if target is None:
        return ValidationResult(
            valid=False,
            warning=(
                f"INVALID REVISION: Cannot revise thought #{target_number} - it doesn't exist "
                f"in current session. Available: {_available(session_thoughts)}"
            ),
        )

    similarity = jaccard_similarity(candidate.thought, target.thought)
    if similarity > SHALLOW_REVISION_THRESHOLD:
        return ValidationResult(
            valid=False,
            warning=(
                f"SHALLOW REVISION: Your revision is {round(similarity * 100)}% similar to the "
                "original. A meaningful revision should substantially change the content."
            ),
        )

    for earlier in session_thoughts:
        if earlier.is_revision or earlier.thought_number >= target_number:
            continue
        circular = jaccard_similarity(candidate.thought, earlier.thought)
        if circular > CIRCULAR_REVISION_THRESHOLD:
            return ValidationResult(
                valid=False,
                warning=(
                    f"CIRCULAR REVISION DETECTED: Your revision is {round(circular * 100)}% "
                    f"similar to thought #{earlier.thought_number}. You may be going in "
                    "circles. Try a genuinely new approach."
                ),
            )

    return ValidationResult(valid=True)


def validate_sequence(
    candidate: ThoughtInput,
    session_thoughts: list[ThoughtRecord],
    last_thought_number: int,
) -> ValidationResult:
    """Validate ordering, plus revision content when the candidate is a revision.

    Args:
        candidate: The thought being submitted.
        session_thoughts: Thoughts of the current session.
        last_thought_number: Number of the last accepted non-revision thought.

    Returns:
        ValidationResult; ``valid=False`` with a "Sequence break" warning
        when a fresh thought skips or repeats a step.

    """
    if candidate.is_revision:
        if candidate.revises_thought is None:
            return ValidationResult(
                valid=False,
                warning=(
                    f"INVALID REVISION: Thought #{candidate.thought_number} is marked as a "
                    "revision but does not say which thought it revises. Set revisesThought."
                ),
            )
        revision = validate_revision(candidate, session_thoughts)
        if not revision.valid:
            return revision

    # Revisions and branches may jump in sequence
    if candidate.is_revision or candidate.branch_from_thought:
        return ValidationResult(valid=True)

    expected = last_thought_number + 1
    if candidate.thought_number != expected:
        return ValidationResult(
            valid=False,
            warning=(
                f"Sequence break detected! Expected step {expected}, got "
                f"{candidate.thought_number}. Don't skip steps - think through each one."
            ),
        )

    return ValidationResult(valid=True)


def check_duplicate(candidate: ThoughtInput, session_thoughts: list[ThoughtRecord]) -> str | None:
    """Return a rejection message if a non-revision reuses an existing number."""
    if candidate.is_revision:
        return None

    if any(t.thought_number == candidate.thought_number for t in session_thoughts):
        return (
            f"REJECTED: Thought #{candidate.thought_number} already exists in this session. "
            "Use isRevision: true to revise it, or extend_thought to add critique/elaboration."
        )
    return None


def validate_branch_source(
    candidate: ThoughtInput, session_thoughts: list[ThoughtRecord]
) -> str | None:
    """Return a rejection message if the declared branch origin does not exist."""
    origin = candidate.branch_from_thought
    if not origin:
        return None

    if not any(t.thought_number == origin for t in session_thoughts):
        return (
            f"INVALID BRANCH: Cannot branch from thought #{origin} - it doesn't exist in "
            f"current session. Available thoughts: {_available(session_thoughts)}"
        )
    return None
