"""Detection of repetitive, non-progressing reasoning.

Advisory only: a detected pattern produces a warning attached to an
otherwise accepted thought and never blocks admission.

Rules are evaluated in table order and the first match wins:
    1. stagnation        - new text highly similar to each of the last 3
    2. low entropy       - new and recent text reuse the same few words
    3. confidence drop   - recent confidence non-increasing and below 5
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass

from thoughtchain.tools.thought_types import ThoughtRecord
from thoughtchain.utils.text_metrics import jaccard_similarity, word_entropy

STAGNATION_CHECK_COUNT = 3
MIN_ENTROPY_THRESHOLD = 0.25
MIN_STAGNATION_TEXT_LENGTH = 20
LOW_CONFIDENCE_THRESHOLD = 5

JACCARD_STAGNATION_BASE = 0.60  # lenient early in a session
JACCARD_STAGNATION_MAX = 0.85  # strict late in a session
JACCARD_DEPTH_FACTOR = 0.015  # increase per thought of history


def stagnation_threshold(history_length: int) -> float:
    """Adaptive similarity threshold, non-decreasing in history length.

    ``BASE + min(MAX - BASE, history_length * FACTOR)``, so the result lies
    in [0.60, 0.85].
    """
    increase = min(
        JACCARD_STAGNATION_MAX - JACCARD_STAGNATION_BASE,
        max(history_length, 0) * JACCARD_DEPTH_FACTOR,
    )
    return JACCARD_STAGNATION_BASE + increase


@dataclass(frozen=True)
class StagnationContext:
    """Inputs shared by every rule of one evaluation."""

    new_thought: str
    recent: Sequence[ThoughtRecord]
    history_length: int


def _similarity_rule(ctx: StagnationContext) -> str | None:
    threshold = stagnation_threshold(ctx.history_length)
    similarities = [jaccard_similarity(ctx.new_thought, t.thought) for t in ctx.recent]
    if (
        all(s > threshold for s in similarities)
        and len(ctx.new_thought.strip()) > MIN_STAGNATION_TEXT_LENGTH
    ):
        avg = sum(similarities) / len(similarities)
        return (
            f"STAGNATION: Last {len(ctx.recent)} thoughts {round(avg * 100)}% similar. "
            "Different approach needed."
        )
    return None


def _entropy_rule(ctx: StagnationContext) -> str | None:
    new_entropy = word_entropy(ctx.new_thought)
    avg_recent = sum(word_entropy(t.thought) for t in ctx.recent) / len(ctx.recent)
    if new_entropy < MIN_ENTROPY_THRESHOLD and avg_recent < MIN_ENTROPY_THRESHOLD:
        return (
            f"LOW ENTROPY: Vocabulary repetitive ({new_entropy:.2f}). "
            "Rephrase with different concepts."
        )
    return None


def _confidence_rule(ctx: StagnationContext) -> str | None:
    confidences = [t.confidence for t in ctx.recent if t.confidence is not None]
    if len(confidences) < STAGNATION_CHECK_COUNT:
        return None

    non_increasing = all(b <= a for a, b in zip(confidences, confidences[1:], strict=False))
    avg = sum(confidences) / len(confidences)
    if non_increasing and avg < LOW_CONFIDENCE_THRESHOLD:
        return f"CONFIDENCE DROP: Avg {avg:.1f}. Use extend_thought:critique"
    return None


STAGNATION_RULES: tuple[Callable[[StagnationContext], str | None], ...] = (
    _similarity_rule,
    _entropy_rule,
    _confidence_rule,
)


def detect_stagnation(new_thought: str, history: Sequence[ThoughtRecord]) -> str | None:
    """Return a warning if the new thought shows a non-progress pattern.

    Args:
        new_thought: Text of the thought about to be stored.
        history: Full raw thought history (not filtered by session).

    Returns:
        Warning message of the first matching rule, or None.

    """
    if len(history) < STAGNATION_CHECK_COUNT:
        return None

    ctx = StagnationContext(
        new_thought=new_thought,
        recent=history[-STAGNATION_CHECK_COUNT:],
        history_length=len(history),
    )
    for rule in STAGNATION_RULES:
        warning = rule(ctx)
        if warning:
            return warning
    return None
